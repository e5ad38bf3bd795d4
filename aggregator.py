"""Reduces the raw detector note stream to dominant-note changes.

Two strategies:

- TumblingWindowAggregator votes over a fixed time window and announces the
  most frequent note on each timer tick.
- DebounceAggregator samples one note every N events.

Both only announce when the dominant note actually changes.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Callable, Optional

from config import (
    DEFAULT_DEBOUNCE_THRESHOLD,
    DEFAULT_INTERVAL_MS,
    MAX_INTERVAL_MS,
    MIN_INTERVAL_MS,
)
from notes import Note

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class DominantNoteState:
    """Last two announced dominant notes."""

    previous: Optional[Note] = None
    current: Optional[Note] = None

    @property
    def changed(self) -> bool:
        return self.current is not None and self.current != self.previous


Listener = Callable[[DominantNoteState], None]


def dominant_note(notes: list[Note]) -> Optional[Note]:
    """Most frequent note, ties going to the one seen first.

    Counts are kept in a dict, which preserves first-seen order, so a
    later candidate only wins with a strictly higher count.
    """
    counts: dict[Note, int] = {}
    for note in notes:
        counts[note] = counts.get(note, 0) + 1

    best = None
    best_count = 0
    for note, count in counts.items():
        if count > best_count:
            best, best_count = note, count
    return best


class NoteAggregator:
    """Common plumbing: activity gate, state and listeners."""

    def __init__(self):
        self.active = True
        self._state = DominantNoteState()
        self._listeners: list[Listener] = []

    @property
    def state(self) -> DominantNoteState:
        return self._state

    def subscribe(self, listener: Listener):
        self._listeners.append(listener)

    def set_active(self, active: bool):
        """Activity signal. Inactive drops incoming notes but keeps the state."""
        self.active = active

    def add_note(self, note: Note):
        if not self.active:
            return
        self._on_note(note)

    def _on_note(self, note: Note):
        raise NotImplementedError

    def _announce(self, state: DominantNoteState):
        self._state = state
        LOGGER.info("Dominant note %s -> %s", state.previous, state.current)
        for listener in self._listeners:
            try:
                listener(state)
            except Exception:
                LOGGER.exception("Dominant note listener failed")


class TumblingWindowAggregator(NoteAggregator):
    """Votes over all notes seen in each timer interval."""

    def __init__(self, interval_ms: int = DEFAULT_INTERVAL_MS):
        super().__init__()
        self.interval_ms = _check_interval(interval_ms)
        self.buffer: list[Note] = []
        self.tick_count = 0
        self._timer: Optional[asyncio.TimerHandle] = None
        self._loop: Optional[asyncio.AbstractEventLoop] = None

    @property
    def running(self) -> bool:
        return self._timer is not None

    def _on_note(self, note: Note):
        self.buffer.append(note)

    def tick(self) -> Optional[Note]:
        """Close the current window; returns the newly announced note, if any."""
        self.tick_count += 1
        mode = dominant_note(self.buffer)
        if mode is None:
            return None

        # Keep the winner so the next window leans towards continuity
        self.buffer = [mode]
        if mode == self._state.current:
            return None

        self._announce(DominantNoteState(previous=self._state.current, current=mode))
        return mode

    def start(self, loop: Optional[asyncio.AbstractEventLoop] = None):
        """Start ticking on the event loop every `interval_ms`."""
        self._loop = loop or asyncio.get_running_loop()
        self._schedule()

    def stop(self):
        self._loop = None
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def set_interval(self, interval_ms: int):
        """Change the window length; the next tick is a full new interval away.

        Buffered notes are kept.
        """
        self.interval_ms = _check_interval(interval_ms)
        if self._timer is not None:
            self._timer.cancel()
            self._schedule()
        LOGGER.info("Aggregation interval set to %d ms", self.interval_ms)

    def _schedule(self):
        if self._timer is not None:
            self._timer.cancel()
        self._timer = self._loop.call_later(self.interval_ms / 1000, self._on_timer)

    def _on_timer(self):
        self._timer = None
        try:
            self.tick()
        finally:
            # tick() listeners may have stopped us
            if self._loop is not None and self._timer is None:
                self._schedule()


class DebounceAggregator(NoteAggregator):
    """Commits the note that pushes the event counter past a threshold.

    This samples rather than votes: only the crossing event counts. The
    counter is only consistent while events are fed one at a time from a
    single thread (here, the event loop). Feeding it concurrently from
    several threads could commit two events for one crossing.
    """

    def __init__(self, threshold: int = DEFAULT_DEBOUNCE_THRESHOLD):
        super().__init__()
        if threshold < 0:
            raise ValueError("threshold must not be negative")
        self.threshold = threshold
        self.counter = 0

    def _on_note(self, note: Note):
        self.counter += 1
        if self.counter <= self.threshold:
            return

        self.counter = 0
        state = DominantNoteState(previous=self._state.current, current=note)
        if state.changed:
            self._announce(state)
        else:
            self._state = state


def _check_interval(interval_ms: int) -> int:
    interval_ms = int(interval_ms)
    if not MIN_INTERVAL_MS <= interval_ms <= MAX_INTERVAL_MS:
        raise ValueError(
            f"Interval must be between {MIN_INTERVAL_MS} and {MAX_INTERVAL_MS} ms, got {interval_ms}"
        )
    return interval_ms
