"""Key-value store over a redis-py compatible client.

The client is injected so this module carries no hard dependency on a Redis
driver; anything exposing `get`, `set(name, value, nx=, xx=)`, `delete`,
`scan_iter(match=)` and `flushdb` will do (redis.Redis, fakeredis, ...).
"""
import logging
from typing import Any, Iterable, Optional

from .base import KeyValueStore, SetCondition

logger = logging.getLogger(__name__)


class RedisStore(KeyValueStore):
    def __init__(self, client: Any, *, scan_count: int = 500):
        self._client = client
        self._scan_count = scan_count

    def get(self, key: str) -> Optional[bytes]:
        value = self._client.get(key)
        if value is None:
            return None
        if isinstance(value, str):
            # client configured with decode_responses=True
            return value.encode("utf-8")
        return bytes(value)

    def set(self, key: str, value: bytes, condition: SetCondition = SetCondition.ALWAYS) -> bool:
        kwargs = {}
        if condition is SetCondition.IF_ABSENT:
            kwargs["nx"] = True
        elif condition is SetCondition.IF_PRESENT:
            kwargs["xx"] = True
        # redis-py returns None when an nx/xx precondition fails
        return bool(self._client.set(key, value, **kwargs))

    def delete(self, key: str) -> None:
        self._client.delete(key)

    def keys(self, prefix: str = "") -> Iterable[str]:
        for k in self._client.scan_iter(match=f"{prefix}*", count=self._scan_count):
            yield k.decode("utf-8") if isinstance(k, bytes) else k

    def exists(self, key: str) -> bool:
        return bool(self._client.exists(key))

    def flush(self) -> None:
        logger.warning("Flushing redis database")
        self._client.flushdb()
