"""Configuration for Music Lights.

Hue Bridge settings (IP, API username) are auto-discovered and stored
in .hue_config.json which is gitignored.
"""

from pathlib import Path

# App registration on the bridge ("<app>#<device>" devicetype)
APP_NAME = "MusicLights"
DEVICE_NAME = "TestDevice"

# Credential cache
CONFIG_DIR = Path(__file__).parent
CONFIG_FILE = CONFIG_DIR / ".hue_config.json"
MOCK_CONFIG_FILE = CONFIG_DIR / ".hue_config.mock.json"
BRIDGE_IP_KEY = "bridge_ip"
USERNAME_KEY = "username"

# Bridge discovery
DISCOVERY_URL = "https://discovery.meethue.com"
DISCOVERY_TIMEOUT = 5  # seconds
PROBE_TIMEOUT = 1  # seconds, per fallback IP
REGISTRATION_TIMEOUT = 30  # seconds to wait for the link button
COMMON_BRIDGE_IPS = [
    "192.168.1.1", "192.168.0.1",
    "192.168.1.2", "192.168.0.2",
    "10.0.0.1", "10.0.0.2",
]

# Aggregation window in milliseconds
DEFAULT_INTERVAL_MS = 2000
MIN_INTERVAL_MS = 100
MAX_INTERVAL_MS = 10000

# Event-count debounce
DEFAULT_DEBOUNCE_THRESHOLD = 9

# Audio settings
SAMPLE_RATE = 44100
BUFFER_SIZE = 4096  # ~93ms per block, enough resolution for low notes
SILENCE_RMS = 0.01
MIN_FREQUENCY = 60.0  # Hz
MAX_FREQUENCY = 2000.0  # Hz
A4_FREQUENCY = 440.0
