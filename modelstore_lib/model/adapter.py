"""The caller-facing facade over one driver and an optional cache.

Read path: ask the cache (unless the fetch bypasses it); on a miss, delegate
to the driver and populate the cache with the result. Write path: after a
successful write, write the stored record through to the cache, evicting the
entry instead if that put fails. Delete path: evict after a successful delete.
Cache trouble is logged by the cache and never fails an operation.
"""
from __future__ import annotations
import logging
from concurrent.futures import Future
from typing import Any, Generic, Iterator, List, Optional, TypeVar

from pydantic import BaseModel

from modelstore_lib.cache.base import CacheDriver
from modelstore_lib.model import metadata
from modelstore_lib.model.codec import ModelCodec
from modelstore_lib.model.driver import PersistenceDriver, QueryableDriver
from modelstore_lib.model.options import (
    DELETE_DEFAULTS,
    FETCH_DEFAULTS,
    QUERY_DEFAULTS,
    WRITE_DEFAULTS,
    DeleteOptions,
    FetchOptions,
    QueryOptions,
    WriteOptions,
)
from modelstore_lib.util.futures import resolved, then, then_future

logger = logging.getLogger(__name__)

K = TypeVar("K", bound=BaseModel)
M = TypeVar("M", bound=BaseModel)


class ModelAdapter(Generic[K, M]):
    def __init__(self, driver: PersistenceDriver, cache: Optional[CacheDriver] = None) -> None:
        self._driver = driver
        self._cache = cache

    @property
    def engine(self) -> PersistenceDriver:
        return self._driver

    @property
    def codec(self) -> ModelCodec:
        return self._driver.codec

    @property
    def cache(self) -> Optional[CacheDriver]:
        return self._cache

    def generate_key(self, model: Optional[M] = None) -> K:
        return self._driver.generate_key(model)

    def close(self) -> None:
        self._driver.close()

    # -- reads ----------------------------------------------------------------

    def retrieve(self, key: K, options: FetchOptions = FETCH_DEFAULTS) -> "Future[Optional[M]]":
        self._driver.id_of(key)
        if self._cache is None or not options.enable_cache:
            return self._driver.retrieve(key, options)
        executor = self._driver.executor_for(options)

        def _on_cache(cached: Optional[M]) -> Future:
            if cached is not None:
                logger.debug("Cache hit for %s", key)
                return resolved(cached)
            logger.debug("Cache miss for %s", key)
            return then_future(self._driver.retrieve(key, options), _populate)

        def _populate(found: Optional[M]) -> Future:
            # a masked record is partial and must not be cached
            if found is None or options.field_mask:
                return resolved(found)
            return then(self._cache.put(key, found, executor), lambda _: found)

        return then_future(self._cache.fetch(key, options, executor), _on_cache)

    def fetch(self, key: K, options: FetchOptions = FETCH_DEFAULTS) -> Optional[M]:
        """Blocking `retrieve`: the record, or None when absent. Failures re-raise."""
        return self.retrieve(key, options).result()

    # -- writes ---------------------------------------------------------------

    def persist(self, key: Optional[K], model: M, options: WriteOptions = WRITE_DEFAULTS) -> "Future[M]":
        return self._write_through(self._driver.persist(key, model, options), options)

    def create(self, model: M, options: WriteOptions = WRITE_DEFAULTS) -> "Future[M]":
        return self._write_through(self._driver.create(model, options), options)

    def update(self, key: K, model: M, options: WriteOptions = WRITE_DEFAULTS) -> "Future[M]":
        return self._write_through(self._driver.update(key, model, options), options)

    def put(self, key: K, model: M, options: WriteOptions = WRITE_DEFAULTS) -> "Future[M]":
        return self._write_through(self._driver.put(key, model, options), options)

    def _write_through(self, written: "Future[M]", options: WriteOptions) -> "Future[M]":
        if self._cache is None:
            return written
        executor = self._driver.executor_for(options)
        cache = self._cache

        def _after_write(stored: M) -> Future:
            key = self._key_of(stored)

            def _after_put(ok: Any) -> Future:
                if ok is False:
                    # the cache may still hold the previous version
                    return then(cache.evict(key, executor), lambda _: stored)
                return resolved(stored)

            return then_future(cache.put(key, stored, executor), _after_put)

        return then_future(written, _after_write)

    # -- deletes --------------------------------------------------------------

    def delete(self, key: K, options: DeleteOptions = DELETE_DEFAULTS) -> "Future[K]":
        deleted = self._driver.delete(key, options)
        if self._cache is None:
            return deleted
        executor = self._driver.executor_for(options)
        cache = self._cache
        return then_future(deleted, lambda k: then(cache.evict(k, executor), lambda _: k))

    # -- queries --------------------------------------------------------------

    def supports_query(self) -> bool:
        return isinstance(self._driver, QueryableDriver)

    def _queryable(self) -> QueryableDriver:
        if not isinstance(self._driver, QueryableDriver):
            raise NotImplementedError(f"Driver {type(self._driver).__name__} does not support queries")
        return self._driver

    def query_async(self, query: Any, options: QueryOptions = QUERY_DEFAULTS) -> "Future[Iterator[M]]":
        return self._queryable().query_async(query, options)

    def query_keys_async(self, query: Any, options: QueryOptions = QUERY_DEFAULTS) -> "Future[Iterator[K]]":
        return self._queryable().query_keys_async(query, options)

    def query(self, query: Any, options: QueryOptions = QUERY_DEFAULTS) -> Iterator[M]:
        return self._queryable().query(query, options)

    def query_keys(self, query: Any, options: QueryOptions = QUERY_DEFAULTS) -> Iterator[K]:
        return self._queryable().query_keys(query, options)

    def query_sync(self, query: Any, options: QueryOptions = QUERY_DEFAULTS) -> List[M]:
        return self._queryable().query_sync(query, options)

    def query_keys_sync(self, query: Any, options: QueryOptions = QUERY_DEFAULTS) -> List[K]:
        return self._queryable().query_keys_sync(query, options)

    def _key_of(self, model: M) -> K:
        return metadata.key_of(model, self._driver.schema)
