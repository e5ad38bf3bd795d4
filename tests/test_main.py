"""Tests for the command-line shell wiring."""

import asyncio

import pytest

from aggregator import DebounceAggregator, DominantNoteState, TumblingWindowAggregator
from conftest import MemoryCache, make_controller_cls
from hue_controller import DiscoveryError
from main import MusicLights, build_aggregator, build_parser, render_status
from notes import Note
from session import SessionManager, SessionState


class FakeDetector:
    def __init__(self, on_note):
        self.on_note = on_note
        self.running = False
        self.fail_start = False

    def start(self):
        if self.fail_start:
            return False
        self.running = True
        return True

    def stop(self):
        self.running = False


def make_app(aggregator=None, controller_cls=None, cache=None):
    sessions = SessionManager(cache or MemoryCache(), controller_cls=controller_cls or make_controller_cls())
    return MusicLights(
        aggregator or TumblingWindowAggregator(),
        sessions,
        detector_cls=FakeDetector,
        quiet=True,
    )


def test_parser_defaults():
    args = build_parser().parse_args([])
    assert args.strategy == "window"
    assert args.interval == 2000
    assert args.threshold == 9
    assert not args.mock


def test_build_aggregator():
    window = build_aggregator(build_parser().parse_args(["--interval", "500"]))
    assert isinstance(window, TumblingWindowAggregator)
    assert window.interval_ms == 500

    debounce = build_aggregator(build_parser().parse_args(["--strategy", "debounce", "--threshold", "4"]))
    assert isinstance(debounce, DebounceAggregator)
    assert debounce.threshold == 4


def test_build_aggregator_rejects_bad_interval():
    with pytest.raises(ValueError):
        build_aggregator(build_parser().parse_args(["--interval", "50"]))


def test_interval_command():
    app = make_app()
    assert app.handle_command("750\n") is None
    assert app.aggregator.interval_ms == 750


def test_interval_command_out_of_range():
    app = make_app()
    message = app.handle_command("20000")
    assert "between 100 and 10000" in message
    assert app.aggregator.interval_ms == 2000


def test_interval_command_in_debounce_mode():
    app = make_app(aggregator=DebounceAggregator())
    assert app.handle_command("500") == "Interval only applies to window mode"


def test_pause_and_resume_keep_state():
    app = make_app()
    app.aggregator.add_note(Note.F)
    app.aggregator.tick()

    app.handle_command("pause")
    assert not app.detector.running
    assert not app.aggregator.active

    app.handle_command("resume")
    assert app.detector.running
    assert app.aggregator.active
    assert app.aggregator.state == DominantNoteState(current=Note.F)


def test_failed_detector_start_stays_paused():
    app = make_app()
    app.detector.fail_start = True
    app.set_active(True)
    assert not app.aggregator.active


def test_unknown_and_empty_commands():
    app = make_app()
    assert app.handle_command("") is None
    assert app.handle_command("dance") == "Unknown command: dance"


def test_quit_command_stops_run():
    app = make_app(cache=MemoryCache({"bridge_ip": "192.168.1.20", "username": "abc"}))

    async def scenario():
        task = asyncio.ensure_future(app.run(read_stdin=False))
        await asyncio.sleep(0.05)
        assert app.sessions.state is SessionState.READY
        assert app.detector.running
        app.handle_command("quit")
        await asyncio.wait_for(task, timeout=1)

    asyncio.run(scenario())
    assert not app.detector.running
    assert not app.aggregator.running


def test_run_survives_discovery_failure():
    controller_cls = make_controller_cls(discover_error=DiscoveryError("No Hue Bridge found"))
    app = make_app(controller_cls=controller_cls)

    async def scenario():
        task = asyncio.ensure_future(app.run(read_stdin=False))
        await asyncio.sleep(0.05)
        assert app.sessions.state is SessionState.FAILED
        assert not task.done()

        # Notes are still aggregated, nothing is sent
        app.aggregator.add_note(Note.A)
        app.aggregator.tick()
        assert app.driver.current_note is Note.A

        app.stopped.set()
        await task

    asyncio.run(scenario())
    assert app.driver.push_count == 0


def test_detected_notes_reach_the_aggregator_through_the_loop():
    app = make_app()

    async def scenario():
        task = asyncio.ensure_future(app.run(read_stdin=False))
        await asyncio.sleep(0)
        app.detector.on_note(Note.B)
        await asyncio.sleep(0.01)
        buffered = list(app.aggregator.buffer)
        app.stopped.set()
        await task
        return buffered

    assert asyncio.run(scenario()) == [Note.B]


def test_render_status():
    app = make_app()
    app.aggregator.add_note(Note.C)

    async def scenario():
        await app.sessions.start()
        app.aggregator.tick()
        await app.driver.wait_pending()

    asyncio.run(scenario())
    status = render_status(app)
    assert "10.0.0.5" in status
    assert "ready" in status
    assert "window 2000 ms" in status
    assert "Note: C " in status
