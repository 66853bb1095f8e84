import os
from typing import Optional

import redis

REDIS_URL = os.getenv("REDIS_URL", "redis://localhost:6379/0")
KEY_PREFIX = os.getenv("FLAGGATE_KEY_PREFIX", "flaggate")

_redis = redis.Redis.from_url(REDIS_URL, decode_responses=True)

_TRUE = ("1", "true", "yes")
_FALSE = ("0", "false", "no")


def get_redis() -> redis.Redis:
    return _redis


def installation_prefix(installation_id: str) -> str:
    return f"{KEY_PREFIX}:device:{installation_id}:"


class RedisKeyValueStore:
    """Key-value store over redis; every key is namespaced with ``prefix``."""

    def __init__(self, client: Optional[redis.Redis] = None, prefix: str = ""):
        self.client = client if client is not None else get_redis()
        self.prefix = prefix

    def _key(self, key: str) -> str:
        return f"{self.prefix}{key}"

    def get_string(self, key: str) -> Optional[str]:
        value = self.client.get(self._key(key))
        if isinstance(value, bytes):
            return value.decode("utf-8")
        return value

    def set_string(self, key: str, value: str) -> None:
        self.client.set(self._key(key), value)

    def set_string_if_absent(self, key: str, value: str) -> bool:
        return bool(self.client.set(self._key(key), value, nx=True))

    def get_bool(self, key: str) -> Optional[bool]:
        value = self.get_string(key)
        if value is None:
            return None
        if value.lower() in _TRUE:
            return True
        if value.lower() in _FALSE:
            return False
        return None
