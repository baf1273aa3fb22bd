"""
Key-value storage for cached credentials and the authenticated session.

Stands in for the browser's local storage. Three backends share one
small interface (``get`` / ``set`` / ``clear`` by string key):

- ``MemoryStore``: process-local dict, used by tests.
- ``JsonFileStore``: a single JSON file (mode 0600), the default.
- ``RedisStore``: Redis, when ``REDIS_URL`` is configured.

This is a placeholder for secret storage, not a secure vault.
"""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Protocol

from kiteauth.config import settings

logger = logging.getLogger(__name__)

# Fixed keys for the persisted wizard state
API_KEY_KEY = "kite_api_key"
API_SECRET_KEY = "kite_api_secret"
TOKEN_DATA_KEY = "kite_token_data"

_REDIS_PREFIX = "kiteauth"


class KeyValueStore(Protocol):
    def get(self, key: str) -> str | None: ...

    def set(self, key: str, value: str) -> None: ...

    def clear(self, key: str) -> None: ...


class MemoryStore:
    """In-memory store; contents vanish with the process."""

    def __init__(self, initial: dict[str, str] | None = None) -> None:
        self._data: dict[str, str] = dict(initial or {})

    def get(self, key: str) -> str | None:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value

    def clear(self, key: str) -> None:
        self._data.pop(key, None)

    def __contains__(self, key: str) -> bool:
        return key in self._data


class JsonFileStore:
    """Persists all keys in one JSON object on disk."""

    def __init__(self, path: Path | None = None) -> None:
        self._path = path or settings.storage_path
        self._path.parent.mkdir(parents=True, exist_ok=True)

    def _read(self) -> dict[str, str]:
        if not self._path.exists():
            return {}
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except ValueError as e:
            # JSONDecodeError and UnicodeDecodeError
            logger.warning("Storage file %s is corrupt, starting empty: %s", self._path, e)
            return {}
        return data if isinstance(data, dict) else {}

    def _write(self, data: dict[str, str]) -> None:
        # Owner-only from creation, then swapped in atomically
        tmp = self._path.with_name(self._path.name + ".tmp")
        fd = os.open(tmp, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2)
            os.chmod(tmp, 0o600)
            os.replace(tmp, self._path)
        except BaseException:
            tmp.unlink(missing_ok=True)
            raise

    def get(self, key: str) -> str | None:
        return self._read().get(key)

    def set(self, key: str, value: str) -> None:
        data = self._read()
        data[key] = value
        self._write(data)

    def clear(self, key: str) -> None:
        data = self._read()
        if data.pop(key, None) is not None:
            self._write(data)


class RedisStore:
    """Redis-backed store; keys are namespaced under ``kiteauth:``."""

    def __init__(self, redis_url: str | None = None, client=None) -> None:
        if client is None:
            import redis

            client = redis.Redis.from_url(
                redis_url or settings.redis_url,
                decode_responses=True,
                socket_connect_timeout=3,
            )
        self._redis = client

    @staticmethod
    def _key(key: str) -> str:
        return f"{_REDIS_PREFIX}:{key}"

    def get(self, key: str) -> str | None:
        return self._redis.get(self._key(key))

    def set(self, key: str, value: str) -> None:
        self._redis.set(self._key(key), value)

    def clear(self, key: str) -> None:
        self._redis.delete(self._key(key))


def default_store() -> KeyValueStore:
    """Redis when ``REDIS_URL`` is set and reachable, the JSON file otherwise."""
    if settings.redis_url:
        try:
            store = RedisStore(settings.redis_url)
            store._redis.ping()
            logger.info("Storage: Redis connected at %s", settings.redis_url)
            return store
        except Exception as e:
            logger.warning("Storage: Redis unavailable (%s), using file fallback", e)
    return JsonFileStore()
