"""Driver for columnar collaborators.

Each record type maps to one table: the key model's ID field becomes the
primary key column and every eligible data field becomes a typed column, as
decided by the schema resolver. Dispositions map to INSERT / UPDATE / UPSERT
on the collaborator.
"""
from __future__ import annotations
import logging
from concurrent.futures import Executor, Future
from dataclasses import dataclass, field
from typing import Any, Iterator, Mapping, Optional, Type

from pydantic import BaseModel

from modelstore_lib.errors import PersistenceException, PersistenceFailure, WriteConflict
from modelstore_lib.model.codec import ModelCodec
from modelstore_lib.model.driver import DEFAULT_MAX_WORKERS, QueryableDriver
from modelstore_lib.model import metadata
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
from modelstore_lib.drivers.kv import CONDITIONS
from modelstore_lib.drivers.rows import RowCodec
from modelstore_lib.schema.settings import DEFAULTS, ResolverSettings
from modelstore_lib.storage.base import ColumnarStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TableQuery:
    """Equality filters keyed by field name. An empty query matches every row."""

    filters: Mapping[str, Any] = field(default_factory=dict)

    @classmethod
    def where(cls, **filters: Any) -> "TableQuery":
        return cls(filters=filters)


class ColumnarDriver(QueryableDriver):
    def __init__(self, model: Type[BaseModel], codec: ModelCodec, store: ColumnarStore, *,
                 settings: ResolverSettings = DEFAULTS,
                 create_table: bool = True,
                 executor: Optional[Executor] = None,
                 max_workers: int = DEFAULT_MAX_WORKERS) -> None:
        super().__init__(model, codec, executor=executor, max_workers=max_workers)
        self.store = store
        self.settings = settings
        self.rows = RowCodec(self.schema, settings)
        self.table = self.rows.table
        if create_table:
            self.ensure_table()

    def ensure_table(self) -> None:
        statement = self.table.create_statement()
        logger.info("Ensuring table '%s' exists", self.table.name)
        self.store.execute_ddl(statement)

    def _call(self, what: str, identifier: Any, fn, *args, **kwargs):
        try:
            return fn(*args, **kwargs)
        except PersistenceException:
            raise
        except Exception as exc:
            raise PersistenceFailure(f"Failed to {what} row at ID '{identifier}' in '{self.table.name}': {exc}") from exc

    # -- retrieve -------------------------------------------------------------

    def retrieve(self, key, options: FetchOptions = FETCH_DEFAULTS) -> Future:
        identifier = self.id_of(key)
        columns = [self.rows.key_column] + [c.name for c in self.rows.columns_for_mask(options.field_mask)]
        logger.debug("Retrieving row at ID '%s' from '%s'", identifier, self.table.name)
        return self.submit(options, self._retrieve, key, identifier, columns, options)

    def _retrieve(self, key, identifier: Any, columns, options: FetchOptions):
        row = self._call("read", identifier, self.store.read,
                         self.table.name, columns, self.rows.key_column, identifier)
        if row is None:
            logger.debug("No row found at ID '%s' in '%s'", identifier, self.table.name)
            return None
        model = self.rows.from_row(row, options.field_mask)
        return metadata.splice_key(model, self.schema, key)

    # -- persist --------------------------------------------------------------

    def persist(self, key, model, options: WriteOptions = WRITE_DEFAULTS) -> Future:
        if model is None:
            raise ValueError("Cannot persist a `None` model")
        if key is None:
            target_key = self.generate_key(model)
            disposition = WriteDisposition.MUST_NOT_EXIST
        else:
            target_key = key
            disposition = options.write_mode or WriteDisposition.BLIND
        identifier = self.id_of(target_key)
        logger.debug("Persisting row at ID '%s' in '%s' (disposition: %s)",
                     identifier, self.table.name, disposition.name)
        return self.submit(options, self._persist, target_key, identifier, model, disposition)

    def _persist(self, key, identifier: Any, model, disposition: WriteDisposition):
        row = self.rows.to_row(model, identifier)
        written = self._call("write", identifier, self.store.write,
                             self.table.name, row, self.rows.key_column, CONDITIONS[disposition])
        if not written:
            logger.error("Write failure: precondition failed for row at ID '%s' in '%s'",
                         identifier, self.table.name)
            raise WriteConflict(identifier, model, disposition)
        logger.info("Wrote row at ID '%s' in '%s'", identifier, self.table.name)
        return metadata.splice_key(model, self.schema, key)

    # -- delete ---------------------------------------------------------------

    def delete(self, key, options: DeleteOptions = DELETE_DEFAULTS) -> Future:
        identifier = self.id_of(key)
        return self.submit(options, self._delete, key, identifier)

    def _delete(self, key, identifier: Any):
        self._call("delete", identifier, self.store.delete, self.table.name, self.rows.key_column, identifier)
        logger.info("Deleted row at ID '%s' in '%s'", identifier, self.table.name)
        return key

    # -- query ----------------------------------------------------------------

    def query_async(self, query: Optional[TableQuery] = None,
                    options: QueryOptions = QUERY_DEFAULTS) -> "Future[Iterator[BaseModel]]":
        query = query or TableQuery()
        if not isinstance(query, TableQuery):
            raise TypeError(f"Columnar driver cannot run query of type {type(query).__name__}")
        filters = dict(self.rows.encode_filter(name, value) for name, value in query.filters.items())
        order_by = tuple(self._order_column(name) for name in options.order_by)
        columns = [self.rows.key_column] + [c.name for c in self.rows.columns_for_mask(options.field_mask)]
        logger.debug("Querying '%s' with filters %s", self.table.name, filters)
        return self.submit(options, self._query, columns, filters, order_by, options)

    def _order_column(self, field_name: str) -> str:
        column = self.rows.column_for_field(field_name)
        if column is None:
            raise ValueError(f"Cannot order by '{field_name}': not a stored field of {self.schema.name}")
        return column

    def _query(self, columns, filters, order_by, options: QueryOptions) -> Iterator[BaseModel]:
        rows = self._call("scan", "*", self.store.scan, self.table.name, columns,
                          filters=filters, order_by=order_by, descending=options.descending,
                          limit=options.limit, offset=options.offset)
        rows = list(rows)
        logger.debug("Query on '%s' matched %d rows", self.table.name, len(rows))
        return (self.rows.from_row(row, options.field_mask) for row in rows)
