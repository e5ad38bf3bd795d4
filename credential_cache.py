"""Persistent key/value store for the bridge address and API username."""

import json
import logging
from pathlib import Path
from typing import Optional

from config import CONFIG_FILE

LOGGER = logging.getLogger(__name__)


class CacheError(Exception):
    """Raised when the cache file cannot be read or written."""


class CredentialCache:
    """String key/value pairs kept in a small JSON file."""

    def __init__(self, path: Path = CONFIG_FILE):
        self.path = Path(path)

    def _load(self) -> dict:
        if not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text())
        except (OSError, ValueError) as e:
            raise CacheError(f"Could not read {self.path}: {e}") from e
        if not isinstance(data, dict):
            raise CacheError(f"Unexpected content in {self.path}")
        return data

    def _save(self, data: dict):
        try:
            self.path.write_text(json.dumps(data, indent=2))
        except OSError as e:
            raise CacheError(f"Could not write {self.path}: {e}") from e

    def get(self, key: str) -> Optional[str]:
        value = self._load().get(key)
        if value is None:
            return None
        return str(value)

    def set(self, key: str, value: str):
        try:
            data = self._load()
        except CacheError as e:
            LOGGER.warning("%s, starting a fresh cache", e)
            data = {}
        data[key] = value
        self._save(data)
        LOGGER.debug("Stored %s in %s", key, self.path)

    def delete(self, key: str):
        data = self._load()
        if data.pop(key, None) is not None:
            self._save(data)
