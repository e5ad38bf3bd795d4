#!/usr/bin/env python3
"""Music Lights - Colors your Philips Hue lights after the note being played."""

import argparse
import asyncio
import logging
import sys
import threading
from typing import Optional

from aggregator import DebounceAggregator, NoteAggregator, TumblingWindowAggregator
from config import (
    DEFAULT_DEBOUNCE_THRESHOLD,
    DEFAULT_INTERVAL_MS,
    MAX_INTERVAL_MS,
    MIN_INTERVAL_MS,
    MOCK_CONFIG_FILE,
)
from credential_cache import CredentialCache
from hue_controller import DiscoveryError, HueController, MockHueController
from note_detector import MockNoteDetector, NoteDetector
from session import SessionManager
from sync_driver import SyncDriver

# Display width (inner content width, total box width = WIDTH + 2 for borders)
WIDTH = 60


def box_line(content: str) -> str:
    """Format a line inside a box with proper padding. Total width = WIDTH + 2."""
    return f"│ {content:<{WIDTH-1}}│"


def box_top(title: str) -> str:
    """Format top border with title. Total width = WIDTH + 2."""
    padding = WIDTH - len(title) - 1
    return f"┌─{title}{'─' * padding}┐"


def box_bottom() -> str:
    """Format bottom border. Total width = WIDTH + 2."""
    return "└" + "─" * WIDTH + "┘"


def render_status(app: "MusicLights") -> str:
    sessions = app.sessions
    driver = app.driver
    aggregator = app.aggregator

    lines = []
    lines.append(box_top("BRIDGE "))
    session = sessions.session
    bridge = session.bridge_address if session else "-"
    lines.append(box_line(f"Bridge: {bridge:<20} State: {sessions.state.value}"))
    if sessions.error:
        lines.append(box_line(f"Error: {sessions.error[:WIDTH - 9]}"))
    lights = len(session.fixtures) if session else 0
    lines.append(box_line(f"Lights: {lights:<20} Pushes: {driver.push_count} ({driver.failure_count} failed)"))
    lines.append(box_bottom())

    lines.append(box_top("NOTES "))
    if isinstance(aggregator, TumblingWindowAggregator):
        mode = f"window {aggregator.interval_ms} ms"
    else:
        mode = f"debounce every {aggregator.threshold + 1} notes"
    listening = "listening" if aggregator.active else "paused"
    lines.append(box_line(f"Mode: {mode:<28} {listening}"))
    note = str(driver.current_note) if driver.current_note else "-"
    color = driver.current_color.as_tuple() if driver.current_color else "-"
    lines.append(box_line(f"Note: {note:<6} Color: {color}"))
    lines.append(box_bottom())
    lines.append("[number = interval ms, pause, resume, quit]")
    return "\n".join(lines)


class MusicLights:
    """Wires detector, aggregator, driver and bridge session together."""

    def __init__(self, aggregator: NoteAggregator, sessions: SessionManager,
                 detector_cls=NoteDetector, quiet: bool = False):
        self.aggregator = aggregator
        self.sessions = sessions
        self.driver = SyncDriver(sessions)
        self.quiet = quiet
        self.detector = detector_cls(self._on_detected)
        self.stopped = asyncio.Event()
        self._loop: Optional[asyncio.AbstractEventLoop] = None

        aggregator.subscribe(self.driver.on_dominant_change)
        aggregator.subscribe(lambda state: self.refresh())
        sessions.subscribe(lambda manager: self.refresh())

    def _on_detected(self, note):
        # Detector callbacks arrive on the audio thread
        self._loop.call_soon_threadsafe(self.aggregator.add_note, note)

    def refresh(self):
        if not self.quiet:
            print("\033[H\033[J", end="")  # Clear screen
            print(render_status(self))

    def set_active(self, active: bool):
        """Start or stop listening; the last dominant note is kept."""
        self.aggregator.set_active(active)
        if active:
            if not self.detector.start():
                print("Failed to start audio input")
                self.aggregator.set_active(False)
        else:
            self.detector.stop()
        self.refresh()

    def handle_command(self, line: str) -> Optional[str]:
        """Apply one control command; returns a message for the user, if any."""
        command = line.strip().lower()
        if not command:
            return None
        if command in ("q", "quit", "exit"):
            self.stopped.set()
            return None
        if command in ("p", "pause"):
            self.set_active(False)
            return None
        if command in ("r", "resume"):
            self.set_active(True)
            return None
        if command.isdigit():
            if not isinstance(self.aggregator, TumblingWindowAggregator):
                return "Interval only applies to window mode"
            try:
                self.aggregator.set_interval(int(command))
            except ValueError as e:
                return str(e)
            self.refresh()
            return None
        return f"Unknown command: {line.strip()}"

    def _read_commands(self):
        for line in sys.stdin:
            self._loop.call_soon_threadsafe(self._run_command, line)

    def _run_command(self, line: str):
        message = self.handle_command(line)
        if message:
            print(message)

    async def _connect(self):
        try:
            await self.sessions.start()
        except DiscoveryError as e:
            print(f"Could not connect to Hue Bridge: {e}")
            print("Still listening; colors will not be sent. Use --mock for demo mode.")

    async def run(self, read_stdin: bool = True):
        self._loop = asyncio.get_running_loop()
        if isinstance(self.aggregator, TumblingWindowAggregator):
            self.aggregator.start(self._loop)

        connect_task = asyncio.ensure_future(self._connect())
        self.set_active(True)
        if read_stdin:
            threading.Thread(target=self._read_commands, daemon=True).start()

        try:
            await self.stopped.wait()
        finally:
            self.detector.stop()
            if isinstance(self.aggregator, TumblingWindowAggregator):
                self.aggregator.stop()
            connect_task.cancel()
            await self.driver.wait_pending()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Color Philips Hue lights after the note being played")
    parser.add_argument("--mock", action="store_true", help="Use mock microphone and bridge (no hardware needed)")
    parser.add_argument("--quiet", action="store_true", help="Don't print status")
    parser.add_argument("--verbose", action="store_true", help="Debug logging")
    parser.add_argument(
        "--strategy", choices=["window", "debounce"], default="window",
        help="window: vote over a time window (default); debounce: sample every N notes",
    )
    parser.add_argument(
        "--interval", type=int, default=DEFAULT_INTERVAL_MS,
        help=f"Window length in ms ({MIN_INTERVAL_MS}-{MAX_INTERVAL_MS}, default {DEFAULT_INTERVAL_MS})",
    )
    parser.add_argument(
        "--threshold", type=int, default=DEFAULT_DEBOUNCE_THRESHOLD,
        help=f"Debounce event count (default {DEFAULT_DEBOUNCE_THRESHOLD})",
    )
    parser.add_argument("--reset-credentials", action="store_true", help="Forget the cached bridge and pair again")
    return parser


def build_aggregator(args: argparse.Namespace) -> NoteAggregator:
    if args.strategy == "debounce":
        return DebounceAggregator(args.threshold)
    return TumblingWindowAggregator(args.interval)


def main(argv=None):
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.verbose:
        level = logging.DEBUG
    elif args.quiet:
        level = logging.INFO
    else:
        level = logging.WARNING
    logging.basicConfig(level=level, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

    try:
        aggregator = build_aggregator(args)
    except ValueError as e:
        parser.error(str(e))

    sessions = SessionManager(
        CredentialCache(MOCK_CONFIG_FILE) if args.mock else CredentialCache(),
        controller_cls=MockHueController if args.mock else HueController,
    )
    if args.reset_credentials:
        sessions.forget_credentials()

    app = MusicLights(
        aggregator,
        sessions,
        detector_cls=MockNoteDetector if args.mock else NoteDetector,
        quiet=args.quiet,
    )

    print("Music Lights started!")
    print("Listening for notes...\n")
    try:
        asyncio.run(app.run())
    except KeyboardInterrupt:
        print("\n\nStopping...")
    finally:
        print("Goodbye!")


if __name__ == "__main__":
    main()
