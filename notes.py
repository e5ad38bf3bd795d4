"""Chromatic pitch classes detected from audio."""

from enum import Enum
from math import log2
from typing import Optional

from config import A4_FREQUENCY


class Note(Enum):
    """One of the twelve chromatic pitch classes."""

    C = "C"
    C_SHARP = "C#"
    D = "D"
    D_SHARP = "D#"
    E = "E"
    F = "F"
    F_SHARP = "F#"
    G = "G"
    G_SHARP = "G#"
    A = "A"
    A_SHARP = "A#"
    B = "B"

    def __str__(self) -> str:
        return self.value

    @classmethod
    def from_index(cls, index: int) -> "Note":
        """Pitch class for a semitone index (0 = C), wrapping around octaves."""
        return NOTES[index % 12]

    @classmethod
    def from_frequency(cls, freq: float) -> Optional["Note"]:
        """Nearest pitch class for a frequency in Hz (equal temperament)."""
        if freq <= 0:
            return None
        midi = 69 + 12 * log2(freq / A4_FREQUENCY)
        return cls.from_index(int(round(midi)))


# Chromatic order, C first
NOTES = list(Note)
