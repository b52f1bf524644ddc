"""Cache driver contract.

A cache sits in front of a persistence driver and is purely advisory: a
failure inside the cache must never fail the caller's operation. Every
method returns a future that resolves (never fails) once the work is done.
"""
from __future__ import annotations
from abc import ABC, abstractmethod
from concurrent.futures import Executor, Future
from typing import Any, Callable, Optional

from modelstore_lib.model.options import FETCH_DEFAULTS, FetchOptions
from modelstore_lib.util.futures import resolved


class CacheDriver(ABC):
    @abstractmethod
    def put(self, key: Any, model: Any, executor: Optional[Executor] = None) -> Future:
        """Store `model` under `key`."""

    @abstractmethod
    def fetch(self, key: Any, options: FetchOptions = FETCH_DEFAULTS,
              executor: Optional[Executor] = None) -> "Future[Optional[Any]]":
        """Resolve to the cached model, or None on a miss."""

    @abstractmethod
    def evict(self, key: Any, executor: Optional[Executor] = None) -> Future:
        """Drop any entry for `key`."""

    @abstractmethod
    def flush(self, executor: Optional[Executor] = None) -> Future:
        """Drop every entry."""

    @staticmethod
    def run(executor: Optional[Executor], fn: Callable[..., Any], *args: Any) -> Future:
        """Run `fn` on `executor`, or inline when no executor is given."""
        if executor is not None:
            return executor.submit(fn, *args)
        return resolved(fn(*args))
