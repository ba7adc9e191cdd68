# server/core/session_store.py

import time
from abc import ABC, abstractmethod
from datetime import timedelta
from threading import Lock

import redis
from loguru import logger

import config


class SessionStore(ABC):
    """
    Maps username -> the one token currently allowed for that user.
    """

    @abstractmethod
    def get(self, key: str) -> str | None:
        ...

    @abstractmethod
    def set(self, key: str, value: str, ttl: timedelta):
        ...

    @abstractmethod
    def delete(self, key: str):
        ...


class MemorySessionStore(SessionStore):
    """
    In-process store. Entries expire lazily when read after their TTL.
    """

    def __init__(self, clock=time.monotonic):
        self._clock = clock
        self._entries: dict[str, tuple[str, float]] = {}
        self._lock = Lock()

    def get(self, key: str) -> str | None:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            value, expires_at = entry
            if self._clock() >= expires_at:
                del self._entries[key]
                return None
            return value

    def set(self, key: str, value: str, ttl: timedelta):
        with self._lock:
            self._entries[key] = (value, self._clock() + ttl.total_seconds())

    def delete(self, key: str):
        with self._lock:
            self._entries.pop(key, None)

    def __len__(self):
        with self._lock:
            now = self._clock()
            return sum(1 for _, expires_at in self._entries.values() if expires_at > now)


class RedisSessionStore(SessionStore):
    """
    Redis-backed store; TTL is enforced by Redis itself.
    """

    def __init__(self, client: redis.Redis, prefix: str = "session:"):
        self.client = client
        self.prefix = prefix

    @classmethod
    def from_url(cls, url: str) -> "RedisSessionStore":
        return cls(redis.Redis.from_url(url))

    def _key(self, key: str) -> str:
        return f"{self.prefix}{key}"

    def get(self, key: str) -> str | None:
        value = self.client.get(self._key(key))
        if value is None:
            return None
        return value.decode() if isinstance(value, bytes) else value

    def set(self, key: str, value: str, ttl: timedelta):
        self.client.set(self._key(key), value.encode(), ex=ttl)

    def delete(self, key: str):
        self.client.delete(self._key(key))


_store: SessionStore | None = None
_store_lock = Lock()


def get_session_store() -> SessionStore:
    global _store
    with _store_lock:
        if _store is None:
            if config.REDIS_URL:
                logger.info("Using Redis session store")
                _store = RedisSessionStore.from_url(config.REDIS_URL)
            else:
                logger.info("Using in-memory session store")
                _store = MemorySessionStore()
        return _store


def session_ttl() -> timedelta:
    return timedelta(minutes=config.JWT_EXPIRED_TIME)
