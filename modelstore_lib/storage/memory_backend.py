"""Simple memory-backed key-value store.

Values are held in a dict guarded by a re-entrant lock, so conditional
writes are atomic with respect to other callers in the same process.
"""
from threading import RLock
from typing import Dict, Iterable, Optional

from .base import KeyValueStore, SetCondition


class MemoryStore(KeyValueStore):
    def __init__(self):
        self._lock = RLock()
        self._store: Dict[str, bytes] = {}

    def get(self, key: str) -> Optional[bytes]:
        with self._lock:
            return self._store.get(key)

    def set(self, key: str, value: bytes, condition: SetCondition = SetCondition.ALWAYS) -> bool:
        with self._lock:
            present = key in self._store
            if condition is SetCondition.IF_ABSENT and present:
                return False
            if condition is SetCondition.IF_PRESENT and not present:
                return False
            self._store[key] = bytes(value)
            return True

    def delete(self, key: str) -> None:
        with self._lock:
            self._store.pop(key, None)

    def keys(self, prefix: str = "") -> Iterable[str]:
        with self._lock:
            return [k for k in self._store if k.startswith(prefix)]

    def exists(self, key: str) -> bool:
        with self._lock:
            return key in self._store

    def flush(self) -> None:
        with self._lock:
            self._store.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._store)
