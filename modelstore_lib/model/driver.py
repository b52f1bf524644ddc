"""Driver contracts: the engine-specific half of the persistence layer.

A `PersistenceDriver` turns keys and records into collaborator calls for one
record type. Every operation returns a `concurrent.futures.Future` right away;
argument validation happens before the future is created and raises
synchronously, while backend and codec failures surface through the future.
"""
from __future__ import annotations
import logging
import threading
from abc import ABC, abstractmethod
from concurrent.futures import Executor, Future, ThreadPoolExecutor
from typing import Any, Callable, Generic, Iterator, List, Optional, Type, TypeVar

from pydantic import BaseModel

from modelstore_lib.model import metadata
from modelstore_lib.model.codec import ModelCodec
from modelstore_lib.model.descriptor import ModelSchema, schema_for
from modelstore_lib.model.options import (
    DELETE_DEFAULTS,
    FETCH_DEFAULTS,
    QUERY_DEFAULTS,
    WRITE_DEFAULTS,
    DeleteOptions,
    FetchOptions,
    QueryOptions,
    WriteDisposition,
    WriteOptions,
)
from modelstore_lib.util.futures import then

logger = logging.getLogger(__name__)

K = TypeVar("K", bound=BaseModel)
M = TypeVar("M", bound=BaseModel)

DEFAULT_MAX_WORKERS = 4


class PersistenceDriver(ABC, Generic[K, M]):
    """Abstract driver for one record type.

    Subclasses implement `retrieve`, `persist` and `delete`. Blocking I/O is
    submitted to `options.executor` when set, else to the driver's own pool.
    """

    def __init__(self, model: Type[M], codec: ModelCodec, *,
                 executor: Optional[Executor] = None,
                 max_workers: int = DEFAULT_MAX_WORKERS) -> None:
        self.model = model
        self.schema: ModelSchema = schema_for(model)
        self.key_schema: ModelSchema = metadata.key_schema_of(self.schema)
        self.codec = codec
        self._executor = executor
        self._owns_executor = executor is None
        self._max_workers = max_workers
        self._executor_lock = threading.Lock()

    # -- executors ------------------------------------------------------------

    @property
    def executor(self) -> Executor:
        if self._executor is None:
            with self._executor_lock:
                if self._executor is None:
                    self._executor = ThreadPoolExecutor(
                        max_workers=self._max_workers,
                        thread_name_prefix=f"modelstore-{self.model.__name__}")
        return self._executor

    def executor_for(self, options: Any) -> Executor:
        return getattr(options, "executor", None) or self.executor

    def submit(self, options: Any, fn: Callable[..., Any], *args: Any) -> Future:
        return self.executor_for(options).submit(fn, *args)

    def close(self) -> None:
        """Shut down the driver's own executor. Injected executors are left alone."""
        if self._owns_executor and self._executor is not None:
            self._executor.shutdown(wait=True)
            self._executor = None

    # -- keys -----------------------------------------------------------------

    def generate_key(self, model: Optional[M] = None) -> K:
        """Build a fresh key for a new record of this driver's type."""
        return metadata.generate_key(self.key_schema)

    def id_of(self, key: K) -> Any:
        return metadata.require_id(key, self.key_schema)

    # -- contract -------------------------------------------------------------

    @abstractmethod
    def retrieve(self, key: K, options: FetchOptions = FETCH_DEFAULTS) -> "Future[Optional[M]]":
        """Fetch the record at `key`; resolves to None when absent."""

    @abstractmethod
    def persist(self, key: Optional[K], model: M, options: WriteOptions = WRITE_DEFAULTS) -> "Future[M]":
        """Write `model` at `key` under the disposition in `options`.

        A `None` key generates a fresh one and forces MUST_NOT_EXIST. The
        future resolves to the written model with its key spliced in, or fails
        with `WriteConflict` when the disposition precondition does not hold.
        """

    @abstractmethod
    def delete(self, key: K, options: DeleteOptions = DELETE_DEFAULTS) -> "Future[K]":
        """Delete the record at `key`; resolves to the key. Absent records are not an error."""

    # -- conveniences ---------------------------------------------------------

    def fetch(self, key: K, options: FetchOptions = FETCH_DEFAULTS) -> Optional[M]:
        """Blocking `retrieve`: the record, or None when absent. Failures re-raise."""
        return self.retrieve(key, options).result()

    def create(self, model: M, options: WriteOptions = WRITE_DEFAULTS) -> "Future[M]":
        """Write a new record. Uses the model's own key when it carries an ID."""
        key = metadata.key_of(model, self.schema)
        if key is not None and metadata.id_of(key, self.key_schema) is None:
            key = None
        return self.persist(key, model, options.with_mode(WriteDisposition.MUST_NOT_EXIST))

    def update(self, key: K, model: M, options: WriteOptions = WRITE_DEFAULTS) -> "Future[M]":
        return self.persist(key, model, options.with_mode(WriteDisposition.MUST_EXIST))

    def put(self, key: K, model: M, options: WriteOptions = WRITE_DEFAULTS) -> "Future[M]":
        return self.persist(key, model, options.with_mode(WriteDisposition.BLIND))


class QueryableDriver(PersistenceDriver[K, M]):
    """A driver that can also answer queries.

    `query_async` is the one abstract method; every other variant is derived
    from it.
    """

    @abstractmethod
    def query_async(self, query: Any, options: QueryOptions = QUERY_DEFAULTS) -> "Future[Iterator[M]]":
        """Run `query`; resolves to an iterator of matching records."""

    def query_keys_async(self, query: Any, options: QueryOptions = QUERY_DEFAULTS) -> "Future[Iterator[K]]":
        return then(self.query_async(query, options),
                    lambda records: (metadata.key_of(r, self.schema) for r in records))

    def query(self, query: Any, options: QueryOptions = QUERY_DEFAULTS) -> Iterator[M]:
        return self.query_async(query, options).result()

    def query_keys(self, query: Any, options: QueryOptions = QUERY_DEFAULTS) -> Iterator[K]:
        return self.query_keys_async(query, options).result()

    def query_sync(self, query: Any, options: QueryOptions = QUERY_DEFAULTS) -> List[M]:
        return list(self.query(query, options))

    def query_keys_sync(self, query: Any, options: QueryOptions = QUERY_DEFAULTS) -> List[K]:
        return list(self.query_keys(query, options))
