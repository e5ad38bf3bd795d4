"""Shared fakes for the bridge, cache and session."""

from dataclasses import dataclass
from typing import Optional

from credential_cache import CacheError
from hue_controller import Fixture


class MemoryCache:
    """In-memory stand-in for CredentialCache."""

    def __init__(self, data=None, fail_reads=False, fail_writes=False):
        self.data = dict(data or {})
        self.fail_reads = fail_reads
        self.fail_writes = fail_writes

    def get(self, key):
        if self.fail_reads:
            raise CacheError("disk on fire")
        return self.data.get(key)

    def set(self, key, value):
        if self.fail_writes:
            raise CacheError("read-only")
        self.data[key] = value

    def delete(self, key):
        self.data.pop(key, None)


def make_controller_cls(fixtures=None, discover_error=None, fixtures_error=None, failing_lights=()):
    """Build a fresh fake controller class with its own call log."""

    class FakeController:
        discover_calls = []
        connect_calls = []
        pushes = []

        def __init__(self, bridge_ip, username):
            self.bridge_ip = bridge_ip
            self.username = username

        @classmethod
        def discover(cls, app_name, device_name):
            cls.discover_calls.append((app_name, device_name))
            if discover_error is not None:
                raise discover_error
            return cls("10.0.0.5", "fresh-user")

        @classmethod
        def from_credentials(cls, bridge_ip, username):
            cls.connect_calls.append((bridge_ip, username))
            return cls(bridge_ip, username)

        def get_fixtures(self):
            if fixtures_error is not None:
                raise fixtures_error
            if fixtures is None:
                return {i: Fixture(i, f"Light {i}") for i in (1, 2, 3)}
            return dict(fixtures)

        def put_color(self, light_id, color):
            if light_id in failing_lights:
                raise OSError(f"light {light_id} unreachable")
            self.pushes.append((light_id, color))

    return FakeController


@dataclass
class FakeSessions:
    """Just enough of SessionManager for the driver."""

    session: Optional[object] = None
