"""Maps detected notes to Hue light colors."""

from dataclasses import dataclass
from typing import Optional

from notes import Note


@dataclass(frozen=True)
class Color:
    """An RGB color, each channel 0-255."""

    red: int
    green: int
    blue: int

    def __post_init__(self):
        for channel in (self.red, self.green, self.blue):
            if not 0 <= channel <= 255:
                raise ValueError(f"RGB channel out of range: {channel}")

    def as_tuple(self) -> tuple[int, int, int]:
        return (self.red, self.green, self.blue)

    def to_xy(self) -> tuple[float, float]:
        """Convert to CIE 1931 xy, the color space Hue lights take.

        Uses the Wide RGB D65 matrix from the Hue developer docs, after
        expanding sRGB gamma.
        """
        r, g, b = (_expand_gamma(c / 255) for c in self.as_tuple())

        x = r * 0.664511 + g * 0.154324 + b * 0.162028
        y = r * 0.283881 + g * 0.668433 + b * 0.047685
        z = r * 0.000088 + g * 0.072310 + b * 0.986039

        total = x + y + z
        if total == 0:
            return (0.0, 0.0)
        return (round(x / total, 4), round(y / total, 4))


def _expand_gamma(value: float) -> float:
    if value > 0.04045:
        return ((value + 0.055) / 1.055) ** 2.4
    return value / 12.92


# One hue per semitone around the color wheel, red at C
NOTE_COLORS: dict[Note, Color] = {
    Note.C: Color(254, 1, 1),
    Note.C_SHARP: Color(254, 128, 1),
    Note.D: Color(254, 254, 1),
    Note.D_SHARP: Color(128, 254, 1),
    Note.E: Color(1, 254, 1),
    Note.F: Color(1, 254, 128),
    Note.F_SHARP: Color(1, 254, 254),
    Note.G: Color(1, 128, 254),
    Note.G_SHARP: Color(1, 1, 254),
    Note.A: Color(127, 1, 254),
    Note.A_SHARP: Color(254, 1, 254),
    Note.B: Color(254, 1, 127),
}


def note_to_color(note) -> Optional[Color]:
    """Look up the color for a note.

    Returns None for anything that is not a Note, so callers issue no
    command rather than picking an arbitrary color.
    """
    if not isinstance(note, Note):
        return None
    return NOTE_COLORS.get(note)
