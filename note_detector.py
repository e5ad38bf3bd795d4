"""Microphone pitch detection using sounddevice + numpy."""

import logging
import random
import threading
from typing import Callable, Optional

import numpy as np
import sounddevice as sd

from config import BUFFER_SIZE, MAX_FREQUENCY, MIN_FREQUENCY, SAMPLE_RATE, SILENCE_RMS
from notes import Note

LOGGER = logging.getLogger(__name__)

NoteCallback = Callable[[Note], None]


def detect_frequency(samples: np.ndarray, sample_rate: int = SAMPLE_RATE) -> Optional[float]:
    """Estimate the dominant frequency of an audio block.

    Returns None for silence or when no peak lies in the playable range.
    """
    samples = np.asarray(samples, dtype=np.float64).reshape(-1)
    if samples.size < 2:
        return None

    rms = float(np.sqrt(np.mean(np.square(samples))))
    if rms < SILENCE_RMS:
        return None

    spectrum = np.abs(np.fft.rfft(samples * np.hanning(samples.size)))
    freqs = np.fft.rfftfreq(samples.size, d=1.0 / sample_rate)

    in_range = np.nonzero((freqs >= MIN_FREQUENCY) & (freqs <= MAX_FREQUENCY))[0]
    if in_range.size == 0:
        return None
    peak = int(in_range[np.argmax(spectrum[in_range])])
    if spectrum[peak] <= 0:
        return None

    # Parabolic interpolation between neighbouring bins
    offset = 0.0
    if 0 < peak < spectrum.size - 1:
        left, center, right = spectrum[peak - 1], spectrum[peak], spectrum[peak + 1]
        denom = left - 2 * center + right
        if denom != 0:
            offset = 0.5 * (left - right) / denom

    return float((peak + offset) * sample_rate / samples.size)


class NoteDetector:
    """Listens to the default input device and reports detected notes.

    `on_note` is called from the audio thread.
    """

    def __init__(self, on_note: NoteCallback, sample_rate: int = SAMPLE_RATE,
                 block_size: int = BUFFER_SIZE):
        self.on_note = on_note
        self.sample_rate = sample_rate
        self.block_size = block_size
        self._stream = None

    @property
    def running(self) -> bool:
        return self._stream is not None

    def _audio_callback(self, indata, frames, time_info, status):
        """Turn one input block into at most one note."""
        if status:
            LOGGER.debug("Audio input status: %s", status)
        freq = detect_frequency(indata[:, 0], self.sample_rate)
        if freq is None:
            return
        note = Note.from_frequency(freq)
        if note is not None:
            self.on_note(note)

    def start(self) -> bool:
        """Open and start the input stream."""
        if self._stream is not None:
            return True

        try:
            self._stream = sd.InputStream(
                samplerate=self.sample_rate,
                blocksize=self.block_size,
                channels=1,
                callback=self._audio_callback,
            )
            self._stream.start()
            return True
        except Exception as e:
            LOGGER.error("Failed to start audio input: %s", e)
            self._stream = None
            return False

    def stop(self):
        """Stop the input stream."""
        if self._stream:
            self._stream.stop()
            self._stream.close()
            self._stream = None


# Demo/mock detector for running without a microphone
class MockNoteDetector:
    """Plays back a looping melody with the odd misdetection."""

    MELODY = [Note.C, Note.E, Note.G, Note.A, Note.F, Note.D, Note.G, Note.B]

    def __init__(self, on_note: NoteCallback, notes_per_step: int = 40,
                 glitch_rate: float = 0.2, seed: Optional[int] = None):
        self.on_note = on_note
        self.notes_per_step = notes_per_step
        self.glitch_rate = glitch_rate
        self._random = random.Random(seed)
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    @property
    def running(self) -> bool:
        return self._thread is not None

    def _next_notes(self):
        """Yield the melody forever, each note repeated with some noise."""
        while True:
            for note in self.MELODY:
                for _ in range(self.notes_per_step):
                    if self._random.random() < self.glitch_rate:
                        yield self._random.choice(list(Note))
                    else:
                        yield note

    def _run(self):
        for note in self._next_notes():
            # Irregular cadence, roughly 20 events per second
            if self._stop.wait(self._random.uniform(0.02, 0.08)):
                return
            self.on_note(note)

    def start(self) -> bool:
        if self._thread is not None:
            return True
        self._stop.clear()
        self._thread = threading.Thread(target=self._run, daemon=True)
        self._thread.start()
        return True

    def stop(self):
        if self._thread is None:
            return
        self._stop.set()
        self._thread.join(timeout=1)
        self._thread = None
