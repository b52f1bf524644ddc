"""Table definitions derived from record schemas, and SQLite DDL text."""
from __future__ import annotations
from dataclasses import dataclass
from typing import Optional, Tuple

from modelstore_lib.model.descriptor import ModelSchema
from modelstore_lib.schema import resolver
from modelstore_lib.schema.settings import DEFAULTS, ResolverSettings
from modelstore_lib.schema.types import ColumnType, TypeCode
from modelstore_lib.storage.sqlite_backend import quote

# SQLite storage class per column type. Structured columns are JSON text.
SQLITE_TYPES = {
    TypeCode.STRING: "TEXT",
    TypeCode.JSON: "TEXT",
    TypeCode.NUMERIC: "TEXT",
    TypeCode.FLOAT64: "REAL",
    TypeCode.INT64: "INTEGER",
    TypeCode.BYTES: "BLOB",
    TypeCode.BOOL: "INTEGER",
    TypeCode.DATE: "TEXT",
    TypeCode.TIMESTAMP: "TEXT",
    TypeCode.STRUCT: "TEXT",
    TypeCode.ARRAY: "TEXT",
}


@dataclass(frozen=True)
class Column:
    name: str
    type: ColumnType
    size: int = 0
    field: Optional[str] = None

    def sqlite_type(self) -> str:
        return SQLITE_TYPES[self.type.code]

    def definition(self, primary: bool = False) -> str:
        parts = [quote(self.name), self.sqlite_type()]
        if primary:
            parts.append("PRIMARY KEY NOT NULL")
        elif self.type.code is TypeCode.STRING and self.size > 0:
            parts.append(f"CHECK (length({quote(self.name)}) <= {self.size})")
        return " ".join(parts)


@dataclass(frozen=True)
class TableDefinition:
    name: str
    primary_key: Column
    columns: Tuple[Column, ...]

    @property
    def column_names(self) -> Tuple[str, ...]:
        return (self.primary_key.name,) + tuple(c.name for c in self.columns)

    def create_statement(self) -> str:
        lines = [self.primary_key.definition(primary=True)]
        lines.extend(c.definition() for c in self.columns)
        body = ",\n  ".join(lines)
        return f"CREATE TABLE IF NOT EXISTS {quote(self.name)} (\n  {body}\n)"

    def drop_statement(self) -> str:
        return f"DROP TABLE IF EXISTS {quote(self.name)}"


def generate_table(schema: ModelSchema, settings: ResolverSettings = DEFAULTS) -> TableDefinition:
    """Build the table for an object schema: key column first, then data columns."""
    id_ptr = resolver.id_pointer(schema)
    key_type = resolver.resolve_key_type(id_ptr)
    primary = Column(
        name=resolver.resolve_key_column(id_ptr, settings),
        type=key_type,
        size=resolver.resolve_column_size(id_ptr, settings) if key_type.code is TypeCode.STRING else 0,
        field=schema.key_field(),
    )
    columns = tuple(
        Column(name=c.name, type=c.type, size=c.size, field=c.pointer.name)
        for c in resolver.resolve_columns(schema, settings)
    )
    seen = set()
    for name in (primary.name,) + tuple(c.name for c in columns):
        if name in seen:
            raise ValueError(f"Duplicate column '{name}' in table for '{schema.name}'")
        seen.add(name)
    return TableDefinition(name=resolver.resolve_table_name(schema), primary_key=primary, columns=columns)
