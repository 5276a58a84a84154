"""
Key-value storage port for client-side state.

Values are JSON-serialisable. MemoryStorage is the default and what tests
use; RedisStorage keeps state across processes. Redis failures degrade to
"nothing stored" with a warning: client state is a cache, never the source
of truth.
"""

import json
import logging
from abc import ABC, abstractmethod
from typing import Any

import redis.asyncio as aioredis

from pushsync.config import settings

logger = logging.getLogger(__name__)


class KeyValueStore(ABC):
    @abstractmethod
    async def get(self, key: str) -> Any | None: ...

    @abstractmethod
    async def set(self, key: str, value: Any) -> None: ...

    @abstractmethod
    async def delete(self, key: str) -> None: ...


class MemoryStorage(KeyValueStore):
    def __init__(self, initial: dict[str, Any] | None = None) -> None:
        self._data: dict[str, str] = {k: json.dumps(v) for k, v in (initial or {}).items()}

    async def get(self, key: str) -> Any | None:
        raw = self._data.get(key)
        return None if raw is None else json.loads(raw)

    async def set(self, key: str, value: Any) -> None:
        self._data[key] = json.dumps(value)

    async def delete(self, key: str) -> None:
        self._data.pop(key, None)

    def __contains__(self, key: str) -> bool:
        return key in self._data


class RedisStorage(KeyValueStore):
    """Namespaced JSON values in Redis: ``{prefix}:{key}``."""

    def __init__(self, client: aioredis.Redis, prefix: str | None = None) -> None:
        self._client = client
        self._prefix = prefix if prefix is not None else settings.STORAGE_PREFIX

    @classmethod
    def from_url(cls, url: str, prefix: str | None = None) -> "RedisStorage":
        return cls(aioredis.from_url(url, decode_responses=True), prefix=prefix)

    def _key(self, key: str) -> str:
        return f"{self._prefix}:{key}"

    async def get(self, key: str) -> Any | None:
        try:
            raw = await self._client.get(self._key(key))
        except Exception as exc:
            logger.warning("storage.get(%s) failed: %s", key, exc)
            return None
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except ValueError:
            logger.warning("storage.get(%s): discarding undecodable value", key)
            return None

    async def set(self, key: str, value: Any) -> None:
        try:
            await self._client.set(self._key(key), json.dumps(value))
        except Exception as exc:
            logger.warning("storage.set(%s) failed: %s", key, exc)

    async def delete(self, key: str) -> None:
        try:
            await self._client.delete(self._key(key))
        except Exception as exc:
            logger.warning("storage.delete(%s) failed: %s", key, exc)

    async def aclose(self) -> None:
        await self._client.aclose()


def create_storage(url: str | None = None) -> KeyValueStore:
    """RedisStorage when a URL is configured, otherwise in-process memory."""
    url = settings.REDIS_URL if url is None else url
    if not url:
        logger.info("REDIS_URL is empty, client state kept in memory")
        return MemoryStorage()
    return RedisStorage.from_url(url)
