"""Bridge session lifecycle: cached credentials, discovery and fixture enumeration."""

import asyncio
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Optional

from config import APP_NAME, BRIDGE_IP_KEY, DEVICE_NAME, USERNAME_KEY
from credential_cache import CacheError, CredentialCache
from hue_controller import DiscoveryError, Fixture, HueController, HueError

LOGGER = logging.getLogger(__name__)


class SessionState(Enum):
    IDLE = "idle"
    ACQUIRING = "acquiring"
    READY = "ready"
    FAILED = "failed"


@dataclass(frozen=True)
class CachedCredential:
    bridge_address: str
    access_credential: str


@dataclass(frozen=True)
class Session:
    """A live bridge connection and the lights it controls."""

    bridge_address: str
    access_credential: str
    controller: object = field(repr=False)
    fixtures: dict[int, Fixture] = field(default_factory=dict)


class SessionManager:
    """Acquires the single bridge session for this run.

    With cached credentials the session is built straight from them.
    Otherwise the bridge is discovered, the app registered, and the new
    credentials cached for the next run. Blocking network calls run in the
    default executor so note events keep flowing meanwhile.
    """

    def __init__(
        self,
        cache: CredentialCache,
        controller_cls=HueController,
        app_name: str = APP_NAME,
        device_name: str = DEVICE_NAME,
    ):
        self.cache = cache
        self.controller_cls = controller_cls
        self.app_name = app_name
        self.device_name = device_name
        self.state = SessionState.IDLE
        self.error: Optional[str] = None
        self.used_cache: Optional[bool] = None
        self._session: Optional[Session] = None
        self._listeners: list[Callable[["SessionManager"], None]] = []

    @property
    def session(self) -> Optional[Session]:
        return self._session

    def subscribe(self, listener: Callable[["SessionManager"], None]):
        """Call `listener` whenever the session state changes."""
        self._listeners.append(listener)

    def _set_state(self, state: SessionState, error: Optional[str] = None):
        self.state = state
        self.error = error
        for listener in self._listeners:
            try:
                listener(self)
            except Exception:
                LOGGER.exception("Session listener failed")

    def load_cached_credential(self) -> Optional[CachedCredential]:
        """Read both cache keys; either one missing counts as a miss."""
        try:
            bridge_ip = self.cache.get(BRIDGE_IP_KEY)
            username = self.cache.get(USERNAME_KEY)
        except CacheError as e:
            LOGGER.warning("Credential cache unreadable, treating as empty: %s", e)
            return None

        if not bridge_ip or not username:
            LOGGER.info("No cached bridge credentials")
            return None
        return CachedCredential(bridge_ip, username)

    def save_credential(self, credential: CachedCredential):
        try:
            self.cache.set(BRIDGE_IP_KEY, credential.bridge_address)
            self.cache.set(USERNAME_KEY, credential.access_credential)
        except CacheError as e:
            LOGGER.warning("Could not cache bridge credentials: %s", e)

    def forget_credentials(self):
        """Drop cached credentials so the next run pairs again."""
        try:
            self.cache.delete(BRIDGE_IP_KEY)
            self.cache.delete(USERNAME_KEY)
        except CacheError as e:
            LOGGER.warning("Could not clear credential cache: %s", e)

    async def acquire_session(self, cached: Optional[CachedCredential]) -> Session:
        """Build the session from `cached`, or discover a bridge if None.

        Runs at most once per manager. Raises DiscoveryError if no session
        could be established; the manager then stays FAILED.
        """
        if self.state is not SessionState.IDLE:
            raise RuntimeError(f"Session acquisition already ran ({self.state.value})")

        self._set_state(SessionState.ACQUIRING)
        loop = asyncio.get_running_loop()
        self.used_cache = cached is not None

        try:
            if cached is None:
                controller = await loop.run_in_executor(
                    None, self.controller_cls.discover, self.app_name, self.device_name
                )
                cached = CachedCredential(controller.bridge_ip, controller.username)
                await loop.run_in_executor(None, self.save_credential, cached)
            else:
                controller = self.controller_cls.from_credentials(
                    cached.bridge_address, cached.access_credential
                )
            fixtures = await loop.run_in_executor(None, controller.get_fixtures)
        except DiscoveryError as e:
            self._fail(str(e))
            raise
        except (HueError, OSError) as e:
            self._fail(str(e))
            raise DiscoveryError(str(e)) from e
        except Exception as e:
            self._fail(f"{type(e).__name__}: {e}")
            raise DiscoveryError(str(e)) from e

        self._session = Session(
            bridge_address=cached.bridge_address,
            access_credential=cached.access_credential,
            controller=controller,
            fixtures=fixtures,
        )
        LOGGER.info("Connected to Hue Bridge at %s with %d lights", cached.bridge_address, len(fixtures))
        self._set_state(SessionState.READY)
        return self._session

    def _fail(self, message: str):
        LOGGER.error("Could not connect to Hue Bridge: %s", message)
        self._set_state(SessionState.FAILED, message)

    async def start(self) -> Session:
        """Load cached credentials, then acquire the session."""
        cached = await asyncio.get_running_loop().run_in_executor(None, self.load_cached_credential)
        return await self.acquire_session(cached)
