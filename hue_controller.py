"""Philips Hue bridge access: discovery, app registration and light control."""

import logging
import time
from dataclasses import dataclass
from http.client import HTTPException
from typing import Optional

import requests
from phue import Bridge, PhueException

from config import (
    COMMON_BRIDGE_IPS,
    DISCOVERY_TIMEOUT,
    DISCOVERY_URL,
    PROBE_TIMEOUT,
    REGISTRATION_TIMEOUT,
)
from mapper import Color

LOGGER = logging.getLogger(__name__)

# Hue API error type returned while the link button has not been pressed
LINK_BUTTON_NOT_PRESSED = 101


class DiscoveryError(Exception):
    """No usable bridge session could be established."""


class HueError(Exception):
    """The bridge answered a request with an error."""


@dataclass
class Fixture:
    """A controllable light on the bridge."""

    light_id: int
    name: str
    reachable: bool = True
    model_id: str = ""  # e.g., LCT007, LST002, LWB010
    light_type: str = ""  # e.g., "Extended color light", "Dimmable light"


def discover_bridge() -> Optional[str]:
    """Auto-discover a Hue Bridge on the network."""
    LOGGER.info("Searching for Hue Bridge...")

    # Method 1: Philips discovery endpoint (requires internet)
    try:
        response = requests.get(DISCOVERY_URL, timeout=DISCOVERY_TIMEOUT)
        bridges = response.json()
        if isinstance(bridges, list) and bridges and isinstance(bridges[0], dict):
            ip = bridges[0].get("internalipaddress")
            if ip:
                LOGGER.info("Found bridge via Philips discovery: %s", ip)
                return ip
        LOGGER.debug("No bridge in discovery reply: %r", bridges)
    except Exception as e:
        LOGGER.debug("Discovery endpoint failed: %s", e)

    # Method 2: Try common local IPs
    for ip in COMMON_BRIDGE_IPS:
        try:
            response = requests.get(f"http://{ip}/api/config", timeout=PROBE_TIMEOUT)
            if "bridgeid" in response.text.lower():
                LOGGER.info("Found bridge at: %s", ip)
                return ip
        except requests.RequestException:
            continue

    LOGGER.warning("Could not auto-discover bridge.")
    return None


def register_app(bridge_ip: str, app_name: str, device_name: str,
                 timeout: float = REGISTRATION_TIMEOUT) -> str:
    """Create an API username on the bridge.

    The link button on the bridge has to be pressed while this runs. Polls
    once per second until the bridge accepts or `timeout` seconds pass.
    """
    devicetype = f"{app_name}#{device_name}"
    print(f"\n>>> Press the button on your Hue Bridge ({bridge_ip}) <<<\n")

    deadline = time.monotonic() + timeout
    while True:
        try:
            response = requests.post(
                f"http://{bridge_ip}/api", json={"devicetype": devicetype}, timeout=DISCOVERY_TIMEOUT
            )
            data = response.json()
        except (requests.RequestException, ValueError) as e:
            raise DiscoveryError(f"Registration with {bridge_ip} failed: {e}") from e

        if not isinstance(data, list) or not data or not isinstance(data[0], dict):
            raise DiscoveryError(f"Unexpected registration response: {data}")

        entry = data[0]
        if "success" in entry:
            LOGGER.info("Registered %s on bridge %s", devicetype, bridge_ip)
            return entry["success"]["username"]

        error = entry.get("error", {})
        if error.get("type") != LINK_BUTTON_NOT_PRESSED:
            raise DiscoveryError(f"Bridge refused registration: {error.get('description', error)}")

        if time.monotonic() >= deadline:
            raise DiscoveryError("Timeout - button was not pressed.")
        time.sleep(1)


def _raise_for_error(response, what: str):
    """phue returns Hue API errors as data, not exceptions."""
    if isinstance(response, list):
        for entry in response:
            if isinstance(entry, list):
                entry = entry[0] if entry else {}
            if isinstance(entry, dict) and "error" in entry:
                raise HueError(f"{what}: {entry['error'].get('description', entry['error'])}")


class HueController:
    """A session with one Hue Bridge."""

    def __init__(self, bridge_ip: str, username: str):
        self.bridge_ip = bridge_ip
        self.username = username
        # With both ip and username given phue does not touch the network
        # or its own config file here.
        self.bridge = Bridge(bridge_ip, username=username)

    @classmethod
    def discover(cls, app_name: str, device_name: str) -> "HueController":
        """Find a bridge and register this app on it."""
        bridge_ip = discover_bridge()
        if not bridge_ip:
            raise DiscoveryError("No Hue Bridge found on the network")
        username = register_app(bridge_ip, app_name, device_name)
        return cls(bridge_ip, username)

    @classmethod
    def from_credentials(cls, bridge_ip: str, username: str) -> "HueController":
        return cls(bridge_ip, username)

    def get_fixtures(self) -> dict[int, Fixture]:
        """Enumerate all lights on the bridge."""
        try:
            lights = self.bridge.get_light()
        except (PhueException, OSError, HTTPException, ValueError) as e:
            # A non-bridge device at the address answers with HTML, not JSON
            raise HueError(f"Could not list lights on {self.bridge_ip}: {e}") from e
        _raise_for_error(lights, "Could not list lights")
        if not isinstance(lights, dict):
            raise HueError(f"Unexpected light list from {self.bridge_ip}: {lights!r}")

        fixtures = {}
        for light_id, light_data in lights.items():
            state = light_data.get("state", {})
            fixtures[int(light_id)] = Fixture(
                light_id=int(light_id),
                name=light_data.get("name", f"Light {light_id}"),
                reachable=state.get("reachable", False),
                model_id=light_data.get("modelid", ""),
                light_type=light_data.get("type", ""),
            )
        return fixtures

    def put_color(self, light_id: int, color: Color):
        """Set one light to a color."""
        x, y = color.to_xy()
        result = self.bridge.set_light(light_id, {"xy": [x, y]})
        _raise_for_error(result, f"Light {light_id} rejected color")


# Demo/mock controller for testing without actual Hue Bridge
class MockHueController:
    """Mock controller for running without Hue hardware."""

    def __init__(self, bridge_ip: str = "mock", username: str = "mock-user"):
        self.bridge_ip = bridge_ip
        self.username = username
        self.colors: dict[int, Color] = {}

    @classmethod
    def discover(cls, app_name: str, device_name: str) -> "MockHueController":
        LOGGER.info("Using mock Hue bridge for %s#%s", app_name, device_name)
        return cls()

    @classmethod
    def from_credentials(cls, bridge_ip: str, username: str) -> "MockHueController":
        return cls(bridge_ip, username)

    def get_fixtures(self) -> dict[int, Fixture]:
        return {
            1: Fixture(1, "Living Room", model_id="LCT007", light_type="Extended color light"),
            2: Fixture(2, "Bedroom", model_id="LST002", light_type="Extended color light"),
            3: Fixture(3, "Kitchen", model_id="LCA001", light_type="Extended color light"),
        }

    def put_color(self, light_id: int, color: Color):
        self.colors[light_id] = color
        LOGGER.debug("Mock light %s -> %s", light_id, color.as_tuple())
