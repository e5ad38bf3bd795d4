"""Pushes the dominant note's color to every light in the session."""

import asyncio
import logging
from typing import Optional

from aggregator import DominantNoteState
from mapper import Color, note_to_color
from notes import Note
from session import SessionManager

LOGGER = logging.getLogger(__name__)


class SyncDriver:
    """Fans a color out to all fixtures whenever the dominant note changes.

    Pushes are fire-and-forget: each runs in the default executor and a
    failure on one light is only logged. Each light has at most one push
    in flight; a color arriving meanwhile waits and replaces any older
    waiting color, so a light always ends on the latest one. Changes that
    happen before the session is ready are dropped, not queued.
    """

    def __init__(self, sessions: SessionManager):
        self.sessions = sessions
        self.current_note: Optional[Note] = None
        self.current_color: Optional[Color] = None
        self.push_count = 0
        self.failure_count = 0
        self._pending: set[asyncio.Future] = set()
        self._in_flight: set[int] = set()
        self._waiting: dict[int, tuple[object, Color]] = {}

    def on_dominant_change(self, state: DominantNoteState):
        if not state.changed:
            return

        color = note_to_color(state.current)
        if color is None:
            LOGGER.warning("No color for %r, skipping", state.current)
            return
        self.current_note = state.current
        self.current_color = color

        session = self.sessions.session
        if session is None:
            LOGGER.debug("No bridge session yet, %s not sent", state.current)
            return

        for light_id in session.fixtures:
            self._waiting[light_id] = (session.controller, color)
            if light_id not in self._in_flight:
                self._push_next(light_id)
        LOGGER.debug("Sent %s %s to %d lights", state.current, color.as_tuple(), len(session.fixtures))

    def _push_next(self, light_id: int):
        controller, color = self._waiting.pop(light_id)
        future = asyncio.get_running_loop().run_in_executor(None, controller.put_color, light_id, color)
        self._in_flight.add(light_id)
        self._pending.add(future)
        future.add_done_callback(lambda f: self._push_done(f, light_id))

    def _push_done(self, future: asyncio.Future, light_id: int):
        self._pending.discard(future)
        self._in_flight.discard(light_id)
        if not future.cancelled():
            error = future.exception()
            if error is not None:
                self.failure_count += 1
                LOGGER.warning("Could not update light %s: %s", light_id, error)
            else:
                self.push_count += 1
        if light_id in self._waiting:
            self._push_next(light_id)

    async def wait_pending(self):
        """Wait for all in-flight pushes to finish."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)
