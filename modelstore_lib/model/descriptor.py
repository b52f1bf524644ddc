"""Field-descriptor tables for record types.

Each record type used with a driver is described once, at import time, with
`describe()`. The resulting `ModelSchema` is a constant mapping from field
name to `FieldSpec` (role, visibility, column overrides) and is what the
schema resolver and drivers consult; nothing reads annotations at runtime.

Example::

    class PersonKey(BaseModel):
        model_config = ConfigDict(frozen=True)
        id: Optional[str] = None

    class Person(BaseModel):
        model_config = ConfigDict(frozen=True)
        key: Optional[PersonKey] = None
        name: str = ""

    describe(PersonKey, kind=ModelKind.KEY, table="people",
             fields={"id": FieldSpec(role=FieldRole.ID)})
    describe(Person, table="people",
             fields={"key": FieldSpec(role=FieldRole.KEY)})
"""
from __future__ import annotations
import threading
import types
import typing
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Mapping, Optional, Tuple, Type

from pydantic import BaseModel

from modelstore_lib.errors import InvalidModelType
from modelstore_lib.schema.types import TypeCode


class ModelKind(Enum):
    OBJECT = "object"
    KEY = "key"


class FieldRole(Enum):
    DATA = "data"
    ID = "id"
    KEY = "key"


class Visibility(Enum):
    PUBLIC = "public"
    INTERNAL = "internal"


@dataclass(frozen=True)
class ColumnOptions:
    """Generic options for columnar engines."""

    name: str = ""
    type: Optional[TypeCode] = None
    size: int = 0
    ignore: bool = False


@dataclass(frozen=True)
class SqlColumnOptions:
    """SQL-engine specific options. These override `ColumnOptions`."""

    column: str = ""
    type: Optional[TypeCode] = None
    size: int = 0
    ignore: bool = False


@dataclass(frozen=True)
class FieldSpec:
    role: FieldRole = FieldRole.DATA
    visibility: Visibility = Visibility.PUBLIC
    column: Optional[ColumnOptions] = None
    sql: Optional[SqlColumnOptions] = None


DEFAULT_SPEC = FieldSpec()

_REPEATED_ORIGINS = (list, tuple, set, frozenset)


def inspect_annotation(annotation: Any) -> Tuple[Any, bool]:
    """Unwrap `Optional[...]` and one level of collection.

    Returns `(inner_type, repeated)`. Unions other than `Optional[X]` are
    returned unchanged so the resolver can reject them.
    """
    origin = typing.get_origin(annotation)
    if origin is typing.Union or origin is getattr(types, "UnionType", None):
        args = [a for a in typing.get_args(annotation) if a is not type(None)]
        if len(args) == 1:
            return inspect_annotation(args[0])
        return annotation, False
    if origin in _REPEATED_ORIGINS:
        args = [a for a in typing.get_args(annotation) if a is not Ellipsis]
        if len(args) == 1:
            inner, nested = inspect_annotation(args[0])
            if nested:
                # repeated-of-repeated has no column mapping
                return annotation, False
            return inner, True
        return annotation, False
    return annotation, False


@dataclass(frozen=True)
class ModelSchema:
    model: Type[BaseModel]
    kind: ModelKind = ModelKind.OBJECT
    table: Optional[str] = None
    specs: Mapping[str, FieldSpec] = field(default_factory=dict)

    @property
    def name(self) -> str:
        return f"{self.model.__module__}.{self.model.__qualname__}"

    def field_names(self) -> Tuple[str, ...]:
        """Field names in declaration order."""
        return tuple(self.model.model_fields.keys())

    def spec(self, name: str) -> FieldSpec:
        return self.specs.get(name, DEFAULT_SPEC)

    def annotation(self, name: str) -> Any:
        return self.model.model_fields[name].annotation

    def fields_with_role(self, role: FieldRole) -> Tuple[str, ...]:
        return tuple(n for n in self.field_names() if self.spec(n).role is role)

    def id_field(self) -> Optional[str]:
        found = self.fields_with_role(FieldRole.ID)
        return found[0] if found else None

    def key_field(self) -> Optional[str]:
        found = self.fields_with_role(FieldRole.KEY)
        return found[0] if found else None

    def key_model(self) -> Optional[Type[BaseModel]]:
        name = self.key_field()
        if name is None:
            return None
        inner, _ = inspect_annotation(self.annotation(name))
        return inner

    def key_schema(self) -> Optional["ModelSchema"]:
        km = self.key_model()
        return schema_for(km) if km is not None else None

    def id_type(self) -> type:
        """Native type of this key schema's ID field."""
        name = self.id_field()
        if name is None:
            raise InvalidModelType(f"Model '{self.name}' declares no ID field")
        inner, _ = inspect_annotation(self.annotation(name))
        return inner


_registry: Dict[type, ModelSchema] = {}
_lock = threading.Lock()


def _validate(schema: ModelSchema) -> None:
    names = set(schema.field_names())
    unknown = [n for n in schema.specs if n not in names]
    if unknown:
        raise InvalidModelType(f"Model '{schema.name}' has no fields named {sorted(unknown)}")

    ids = schema.fields_with_role(FieldRole.ID)
    keys = schema.fields_with_role(FieldRole.KEY)
    if schema.kind is ModelKind.KEY:
        if len(ids) != 1:
            raise InvalidModelType(
                f"Key model '{schema.name}' must declare exactly one ID field, found {len(ids)}")
        inner, repeated = inspect_annotation(schema.annotation(ids[0]))
        if repeated or inner not in (str, int):
            raise InvalidModelType(
                f"Key model '{schema.name}' ID field must be a string or 64-bit integer")
    else:
        if ids:
            raise InvalidModelType(
                f"Object model '{schema.name}' may not declare ID fields; use a KEY field")
        if len(keys) > 1:
            raise InvalidModelType(f"Object model '{schema.name}' declares more than one KEY field")
        if keys:
            inner, repeated = inspect_annotation(schema.annotation(keys[0]))
            if repeated or not (isinstance(inner, type) and issubclass(inner, BaseModel)):
                raise InvalidModelType(
                    f"KEY field '{keys[0]}' on '{schema.name}' must hold a single key model")


def describe(model: Type[BaseModel],
             *,
             kind: ModelKind = ModelKind.OBJECT,
             table: Optional[str] = None,
             fields: Optional[Mapping[str, FieldSpec]] = None) -> ModelSchema:
    """Build, validate and register the descriptor table for `model`."""
    if not (isinstance(model, type) and issubclass(model, BaseModel)):
        raise InvalidModelType(f"{model!r} is not a pydantic model")
    schema = ModelSchema(model=model, kind=kind, table=table, specs=dict(fields or {}))
    _validate(schema)
    with _lock:
        _registry[model] = schema
    return schema


def schema_for(model: Type[BaseModel]) -> ModelSchema:
    """Return the registered schema for `model`, or an unannotated default."""
    with _lock:
        found = _registry.get(model)
    if found is not None:
        return found
    return ModelSchema(model=model)


def is_key_model(model: Any) -> bool:
    if not isinstance(model, type):
        return False
    with _lock:
        found = _registry.get(model)
    return found is not None and found.kind is ModelKind.KEY
