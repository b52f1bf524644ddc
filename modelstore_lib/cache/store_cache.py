"""Record cache over a key-value store.

Entries are addressed with EPHEMERAL keys, so a cache may share a store with
the persistent records it shadows without collisions. An index of entry
timestamps is kept in the same store; entries older than the TTL are treated
as misses, and every `prune_every` fetches the index is trimmed to the
`max_entries` most recently written entries.
"""
from __future__ import annotations
import json
import logging
import threading
from concurrent.futures import Executor, Future
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional, Type

from pydantic import BaseModel

from modelstore_lib.cache.base import CacheDriver
from modelstore_lib.model import metadata
from modelstore_lib.model.codec import ModelCodec, PydanticModelCodec
from modelstore_lib.model.descriptor import schema_for
from modelstore_lib.model.keys import cache_key
from modelstore_lib.model.options import FETCH_DEFAULTS, FetchOptions
from modelstore_lib.storage.base import KeyValueStore

logger = logging.getLogger(__name__)

CACHE_TTL = timedelta(minutes=30)
INDEX_KEY = "_modelstore_::cache:index"


class StoreCache(CacheDriver):
    def __init__(self, model: Type[BaseModel], store: KeyValueStore, *,
                 codec: Optional[ModelCodec] = None,
                 ttl: timedelta = CACHE_TTL,
                 max_entries: int = 50,
                 prune_every: int = 100):
        self.model = model
        self.schema = schema_for(model)
        self.key_schema = metadata.key_schema_of(self.schema)
        self.store = store
        self.codec = codec or PydanticModelCodec(model)
        self.ttl = ttl
        self.max_entries = max_entries
        self.prune_every = prune_every
        self._lock = threading.Lock()
        self._fetch_count = 0

    def address(self, key: Any) -> str:
        return cache_key(metadata.require_id(key, self.key_schema))

    # -- index ----------------------------------------------------------------

    def _read_index(self) -> Dict[str, Dict[str, str]]:
        try:
            raw = self.store.get(INDEX_KEY)
            return json.loads(raw) if raw else {}
        except Exception:
            logger.exception("Failed to read cache index")
            return {}

    def _write_index(self, idx: Dict[str, Dict[str, str]]) -> None:
        try:
            self.store.set(INDEX_KEY, json.dumps(idx, sort_keys=True).encode("utf-8"))
        except Exception:
            logger.exception("Failed to write cache index")

    def _touch(self, target: str) -> None:
        with self._lock:
            index = self._read_index()
            index[target] = {"last_update": datetime.now(timezone.utc).isoformat()}
            self._write_index(index)

    def _forget(self, target: str) -> None:
        with self._lock:
            index = self._read_index()
            if index.pop(target, None) is not None:
                self._write_index(index)

    def get_timestamp(self, key: Any) -> Optional[datetime]:
        target = self.address(key)
        with self._lock:
            entry = self._read_index().get(target)
        if not entry or "last_update" not in entry:
            return None
        try:
            last_update = datetime.fromisoformat(entry["last_update"])
        except ValueError:
            return None
        if last_update.tzinfo is None:
            last_update = last_update.replace(tzinfo=timezone.utc)
        return last_update

    def is_stale(self, key: Any, ttl: Optional[timedelta] = None) -> bool:
        last_update = self.get_timestamp(key)
        if last_update is None:
            return True
        return (datetime.now(timezone.utc) - last_update) > (ttl or self.ttl)

    def prune_old_entries(self) -> List[str]:
        """Trim the cache to its most recent entries, every `prune_every` fetches."""
        with self._lock:
            self._fetch_count += 1
            if self._fetch_count % self.prune_every != 0:
                return []
            index = self._read_index()
            entries = sorted(index.items(), key=lambda kv: kv[1].get("last_update", ""))
            keep = {k for k, _ in entries[-self.max_entries:]} if self.max_entries > 0 else set()
            removed = [k for k in index if k not in keep]
            for k in removed:
                try:
                    self.store.delete(k)
                except Exception:
                    logger.exception("Failed to delete cache entry %s", k)
                index.pop(k, None)
            if removed:
                self._write_index(index)
                logger.debug("Pruned %d old cache entries", len(removed))
            return removed

    # -- contract -------------------------------------------------------------

    def put(self, key: Any, model: Any, executor: Optional[Executor] = None) -> Future:
        return self.run(executor, self._put, key, model)

    def _put(self, key: Any, model: Any) -> bool:
        try:
            target = self.address(key)
            self.store.set(target, self.codec.encode(model))
            self._touch(target)
            return True
        except Exception:
            logger.exception("Failed to write cache entry for key %s", key)
            return False

    def fetch(self, key: Any, options: FetchOptions = FETCH_DEFAULTS,
              executor: Optional[Executor] = None) -> Future:
        return self.run(executor, self._fetch, key, options)

    def _fetch(self, key: Any, options: FetchOptions) -> Optional[Any]:
        try:
            self.prune_old_entries()
            if self.is_stale(key, options.cache_ttl):
                return None
            data = self.store.get(self.address(key))
            if data is None:
                return None
            model = self.codec.decode(data)
            model = metadata.apply_mask(model, options.field_mask, self.schema)
            return metadata.splice_key(model, self.schema, key)
        except Exception:
            logger.exception("Failed to read cache entry for key %s", key)
            return None

    def evict(self, key: Any, executor: Optional[Executor] = None) -> Future:
        return self.run(executor, self._evict, key)

    def _evict(self, key: Any) -> None:
        try:
            target = self.address(key)
            self.store.delete(target)
            self._forget(target)
        except Exception:
            logger.exception("Failed to evict cache entry for key %s", key)

    def flush(self, executor: Optional[Executor] = None) -> Future:
        return self.run(executor, self._flush)

    def _flush(self) -> int:
        with self._lock:
            index = self._read_index()
            for k in index:
                try:
                    self.store.delete(k)
                except Exception:
                    logger.exception("Failed to delete cache entry %s", k)
            self._write_index({})
        logger.info("Cleared all caches: %d entries removed", len(index))
        return len(index)
