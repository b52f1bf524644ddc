"""Immutable option bundles for fetch, write, delete and query operations.

Every bundle has a module-level default instance. Options never change after
construction; use `dataclasses.replace` or the `with_*` helpers to derive a
variant.
"""
from __future__ import annotations
from concurrent.futures import Executor
from dataclasses import dataclass, replace
from datetime import timedelta
from enum import Enum
from typing import FrozenSet, Optional, Tuple


class WriteDisposition(Enum):
    BLIND = "blind"
    MUST_EXIST = "must_exist"
    MUST_NOT_EXIST = "must_not_exist"


@dataclass(frozen=True)
class FetchOptions:
    executor: Optional[Executor] = None
    field_mask: Optional[FrozenSet[str]] = None
    enable_cache: bool = True
    cache_ttl: Optional[timedelta] = None

    def with_mask(self, *paths: str) -> "FetchOptions":
        return replace(self, field_mask=frozenset(paths))

    def bypass_cache(self) -> "FetchOptions":
        return replace(self, enable_cache=False)


@dataclass(frozen=True)
class WriteOptions:
    executor: Optional[Executor] = None
    write_mode: Optional[WriteDisposition] = None

    def with_mode(self, mode: WriteDisposition) -> "WriteOptions":
        return replace(self, write_mode=mode)


@dataclass(frozen=True)
class DeleteOptions:
    executor: Optional[Executor] = None


@dataclass(frozen=True)
class QueryOptions:
    executor: Optional[Executor] = None
    field_mask: Optional[FrozenSet[str]] = None
    limit: Optional[int] = None
    offset: int = 0
    order_by: Tuple[str, ...] = ()
    descending: bool = False


FETCH_DEFAULTS = FetchOptions()
WRITE_DEFAULTS = WriteOptions()
DELETE_DEFAULTS = DeleteOptions()
QUERY_DEFAULTS = QueryOptions()
