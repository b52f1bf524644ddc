"""Map record fields to typed columns for columnar engines.

Resolution is stateless and deterministic: fields are visited in declaration
order, and every decision derives from the registered `ModelSchema` and the
active `ResolverSettings`.

Column name precedence (highest wins): SQL column option, generic column
option, calculated default. Column type precedence: SQL type option, generic
type option, default by native Python type. Identifier fields never appear as
data columns; the KEY field of a record is promoted to the primary key column,
which is named and typed after the key model's ID field.
"""
from __future__ import annotations
import datetime
import decimal
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Collection, Iterator, List, Optional, Tuple

from pydantic import BaseModel

from modelstore_lib.errors import InvalidModelType, MissingAnnotatedField, UnsupportedFieldType
from modelstore_lib.model.descriptor import (
    FieldRole,
    FieldSpec,
    ModelKind,
    ModelSchema,
    Visibility,
    inspect_annotation,
    is_key_model,
    schema_for,
)
from modelstore_lib.schema import types as t
from modelstore_lib.schema.settings import DEFAULTS, ResolverSettings

logger = logging.getLogger(__name__)

ENUM_COLUMN_SIZE = 32


@dataclass(frozen=True)
class FieldPointer:
    """A field of `base`, with its descriptor and unwrapped annotation."""

    base: ModelSchema
    name: str
    spec: FieldSpec
    annotation: Any
    repeated: bool

    @property
    def role(self) -> FieldRole:
        return self.spec.role


@dataclass(frozen=True)
class ResolvedColumn:
    pointer: FieldPointer
    name: str
    type: t.ColumnType
    size: int


def pointer(schema: ModelSchema, name: str) -> FieldPointer:
    inner, repeated = inspect_annotation(schema.annotation(name))
    return FieldPointer(base=schema, name=name, spec=schema.spec(name), annotation=inner, repeated=repeated)


def for_each_field(schema: ModelSchema,
                   predicate: Optional[Callable[[FieldPointer], bool]] = None) -> Iterator[FieldPointer]:
    for name in schema.field_names():
        ptr = pointer(schema, name)
        if predicate is None or predicate(ptr):
            yield ptr


def _is_enum(tp: Any) -> bool:
    return isinstance(tp, type) and issubclass(tp, Enum)


# -- eligibility -------------------------------------------------------------

def is_eligible(ptr: FieldPointer,
                settings: ResolverSettings = DEFAULTS,
                allowed: Optional[Collection[str]] = None) -> bool:
    """Return True when `ptr` may be read from or written to a column.

    Ignored and INTERNAL fields are never eligible. When `allowed` is
    non-empty, the field's resolved column name must also be in it.
    """
    spec = ptr.spec
    if spec.column is not None and spec.column.ignore:
        return False
    if spec.sql is not None and spec.sql.ignore:
        return False
    if spec.visibility is Visibility.INTERNAL:
        return False
    if allowed:
        return resolve_column_name(ptr, settings) in allowed
    return True


def eligible_fields(settings: ResolverSettings = DEFAULTS,
                    allowed: Optional[Collection[str]] = None) -> Callable[[FieldPointer], bool]:
    return lambda ptr: is_eligible(ptr, settings, allowed)


# -- names -------------------------------------------------------------------

def json_name(ptr: FieldPointer) -> str:
    """The JSON-style name of a field: its declared alias, else lowerCamelCase."""
    info = ptr.base.model.model_fields[ptr.name]
    alias = info.serialization_alias or info.alias
    if isinstance(alias, str) and alias:
        return alias
    head, *rest = ptr.name.split("_")
    return head + "".join(part[:1].upper() + part[1:] for part in rest)


def resolve_column_name(ptr: FieldPointer, settings: ResolverSettings = DEFAULTS) -> str:
    spec = ptr.spec
    if spec.sql is not None and spec.sql.column.strip():
        name = spec.sql.column
    elif spec.column is not None and spec.column.name.strip():
        name = spec.column.name
    elif settings.preserve_field_names:
        name = ptr.name
    else:
        name = json_name(ptr)
        if settings.capitalized_names:
            name = name[:1].upper() + name[1:]
    logger.debug("Resolved column name for field '%s': '%s'", ptr.name, name)
    return name


def resolve_table_name(schema: ModelSchema) -> str:
    """Table for a key or object model; objects fall back to their key's table."""
    if schema.table:
        return schema.table
    if schema.kind is ModelKind.OBJECT:
        ks = schema.key_schema()
        if ks is not None and ks.table:
            return ks.table
    raise MissingAnnotatedField(
        f"Must describe key or object model '{schema.name}' with a table name to use a columnar engine")


# -- keys --------------------------------------------------------------------

def id_pointer(schema: ModelSchema) -> FieldPointer:
    """The ID field addressing `schema`: its own for keys, its key's for objects."""
    target = schema
    if schema.kind is ModelKind.OBJECT:
        target = schema.key_schema()
        if target is None or target.kind is not ModelKind.KEY:
            raise InvalidModelType(f"Model '{schema.name}' has no registered key model")
    name = target.id_field()
    if name is None:
        raise InvalidModelType(f"Key model '{target.name}' declares no ID field")
    return pointer(target, name)


def resolve_key_column(id_ptr: FieldPointer, settings: ResolverSettings = DEFAULTS) -> str:
    if id_ptr.role is not FieldRole.ID:
        raise InvalidModelType(f"Cannot use non-ID field as key column: '{id_ptr.base.name}.{id_ptr.name}'")
    return resolve_column_name(id_ptr, settings)


def resolve_key_type(id_ptr: FieldPointer) -> t.ColumnType:
    if id_ptr.repeated:
        raise InvalidModelType(f"Unsupported key field '{id_ptr.name}': keys cannot be repeated")
    if id_ptr.annotation is str:
        return t.STRING
    if id_ptr.annotation is int:
        return t.INT64
    raise InvalidModelType(f"Unsupported key field type: '{id_ptr.annotation!r}'")


# -- types -------------------------------------------------------------------

def maybe_wrap(ptr: FieldPointer, inner: t.ColumnType) -> t.ColumnType:
    return t.ColumnType.array(inner) if ptr.repeated else inner


# Python types an explicit column type may be declared on.
_COHERENT = {
    t.TypeCode.STRING: (str, Enum),
    t.TypeCode.JSON: (str,),
    t.TypeCode.NUMERIC: (decimal.Decimal, int, float),
    t.TypeCode.FLOAT64: (float, int),
    t.TypeCode.INT64: (int, Enum),
    t.TypeCode.BYTES: (bytes,),
    t.TypeCode.BOOL: (bool,),
    t.TypeCode.DATE: (datetime.date,),
    t.TypeCode.TIMESTAMP: (datetime.datetime,),
}


def resolve_explicit_type(ptr: FieldPointer, code: t.TypeCode,
                          settings: ResolverSettings = DEFAULTS) -> t.ColumnType:
    """Normalize an explicitly declared type, checking it against the field."""
    if code not in t.SCALAR_CODES:
        raise UnsupportedFieldType(f"Explicit type {code.name} on '{ptr.name}' is not a scalar column type")
    if settings.check_expected_types:
        if ptr.repeated and ptr.role in (FieldRole.ID, FieldRole.KEY):
            raise InvalidModelType(f"Field '{ptr.name}' is an ID or KEY field and cannot be repeated")
        tp = ptr.annotation
        if not (isinstance(tp, type) and issubclass(tp, _COHERENT[code])):
            raise InvalidModelType(
                f"Explicit type {code.name} is not coherent with field '{ptr.name}' of type {tp!r}")
        if code is t.TypeCode.DATE and issubclass(tp, datetime.datetime):
            raise InvalidModelType(f"Field '{ptr.name}' is a datetime; use TIMESTAMP, not DATE")
    if code is t.TypeCode.JSON and not settings.native_json_type:
        return maybe_wrap(ptr, t.STRING)
    return maybe_wrap(ptr, t.ColumnType.scalar(code))


def resolve_default_type(ptr: FieldPointer, settings: ResolverSettings = DEFAULTS) -> t.ColumnType:
    tp = ptr.annotation
    if ptr.role is FieldRole.KEY:
        return resolve_key_type(id_pointer(ptr.base))
    if not isinstance(tp, type):
        raise UnsupportedFieldType(f"Unrecognized field type for '{ptr.base.name}.{ptr.name}': {tp!r}")
    # order matters: bool is an int, IntEnum is an int, datetime is a date
    if issubclass(tp, bool):
        return maybe_wrap(ptr, t.BOOL)
    if issubclass(tp, Enum):
        if settings.enums_as_numbers:
            if not all(isinstance(m.value, int) for m in tp):
                raise UnsupportedFieldType(f"Enum {tp.__name__} on '{ptr.name}' has non-integer values")
            return maybe_wrap(ptr, t.INT64)
        return maybe_wrap(ptr, t.STRING)
    if issubclass(tp, int):
        return maybe_wrap(ptr, t.INT64)
    if issubclass(tp, float):
        return maybe_wrap(ptr, t.FLOAT64)
    if issubclass(tp, decimal.Decimal):
        return maybe_wrap(ptr, t.NUMERIC)
    if issubclass(tp, str):
        return maybe_wrap(ptr, t.STRING)
    if issubclass(tp, bytes):
        return maybe_wrap(ptr, t.BYTES)
    if issubclass(tp, datetime.datetime):
        return maybe_wrap(ptr, t.TIMESTAMP)
    if issubclass(tp, datetime.date):
        return maybe_wrap(ptr, t.DATE)
    if issubclass(tp, BaseModel):
        if is_key_model(tp):
            # reference to another record: store the referenced ID
            return maybe_wrap(ptr, resolve_key_type(id_pointer(schema_for(tp))))
        return maybe_wrap(ptr, t.ColumnType.struct(generate_struct(schema_for(tp), settings)))
    raise UnsupportedFieldType(f"Unrecognized field type for '{ptr.base.name}.{ptr.name}': {tp!r}")


def resolve_column_type(ptr: FieldPointer, settings: ResolverSettings = DEFAULTS) -> t.ColumnType:
    spec = ptr.spec
    if spec.sql is not None and spec.sql.type is not None:
        return resolve_explicit_type(ptr, spec.sql.type, settings)
    if spec.column is not None and spec.column.type is not None:
        return resolve_explicit_type(ptr, spec.column.type, settings)
    return resolve_default_type(ptr, settings)


def resolve_column_size(ptr: FieldPointer, settings: ResolverSettings = DEFAULTS) -> int:
    spec = ptr.spec
    if spec.sql is not None and spec.sql.size > 0:
        return spec.sql.size
    if spec.column is not None and spec.column.size > 0:
        return spec.column.size
    if _is_enum(ptr.annotation):
        return ENUM_COLUMN_SIZE
    return settings.default_column_size


# -- projections -------------------------------------------------------------

def resolve_columns(schema: ModelSchema,
                    settings: ResolverSettings = DEFAULTS,
                    allowed: Optional[Collection[str]] = None) -> List[ResolvedColumn]:
    """Resolve every eligible data field of `schema`, in declaration order.

    ID and KEY fields are excluded; see `calculate_default_fields` for the
    full projection including the primary key.
    """
    out = []
    for ptr in for_each_field(schema, eligible_fields(settings, allowed)):
        if ptr.role in (FieldRole.ID, FieldRole.KEY):
            continue
        out.append(ResolvedColumn(
            pointer=ptr,
            name=resolve_column_name(ptr, settings),
            type=resolve_column_type(ptr, settings),
            size=resolve_column_size(ptr, settings),
        ))
    return out


def generate_struct(schema: ModelSchema, settings: ResolverSettings = DEFAULTS) -> Tuple[t.StructField, ...]:
    return tuple(t.StructField(c.name, c.type) for c in resolve_columns(schema, settings))


def calculate_default_fields(schema: ModelSchema,
                             settings: ResolverSettings = DEFAULTS) -> List[Tuple[str, str]]:
    """Pairs of (field name, column name): the key column first, then data columns."""
    pairs: List[Tuple[str, str]] = []
    key_name = schema.key_field()
    if key_name is not None:
        pairs.append((key_name, resolve_key_column(id_pointer(schema), settings)))
    pairs.extend((c.pointer.name, c.name) for c in resolve_columns(schema, settings))
    return pairs
