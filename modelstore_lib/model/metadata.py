"""Helpers that read and rewrite record/key metadata using a `ModelSchema`."""
from __future__ import annotations
import logging
import threading
import time
import uuid
from typing import Any, Dict, FrozenSet, Iterable, Optional

from pydantic import BaseModel

from modelstore_lib.errors import InvalidKey, InvalidModelType
from modelstore_lib.model.descriptor import ModelKind, ModelSchema, schema_for

logger = logging.getLogger(__name__)


class MonotonicIds:
    """Strictly increasing 64-bit integer IDs seeded from the nanosecond clock."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._last = 0

    def next(self) -> int:
        with self._lock:
            candidate = time.time_ns()
            if candidate <= self._last:
                candidate = self._last + 1
            self._last = candidate
            return candidate


_int_ids = MonotonicIds()


def key_schema_of(model_schema: ModelSchema) -> ModelSchema:
    """Return the key schema an object schema is addressed by."""
    ks = model_schema.key_schema()
    if ks is None:
        raise InvalidModelType(f"Model '{model_schema.name}' declares no KEY field and cannot be stored")
    if ks.kind is not ModelKind.KEY:
        raise InvalidModelType(f"KEY field of '{model_schema.name}' must hold a registered key model")
    return ks


def enforce_key(key: Any, key_schema: ModelSchema) -> BaseModel:
    if key is None:
        raise InvalidKey("Cannot operate on a `None` key")
    if not isinstance(key, key_schema.model):
        raise InvalidKey(f"Expected key of type {key_schema.model.__name__}, got {type(key).__name__}")
    return key


def id_of(key: BaseModel, key_schema: Optional[ModelSchema] = None) -> Optional[Any]:
    ks = key_schema or schema_for(type(key))
    name = ks.id_field()
    if name is None:
        raise InvalidModelType(f"Key model '{ks.name}' declares no ID field")
    value = getattr(key, name)
    if value is None or value == "":
        return None
    return value


def require_id(key: Any, key_schema: ModelSchema) -> Any:
    """Validate `key` and return its identifier, raising `InvalidKey` if empty."""
    enforce_key(key, key_schema)
    ident = id_of(key, key_schema)
    if ident is None:
        raise InvalidKey("Cannot operate on a key with an empty ID")
    return ident


def key_of(model: BaseModel, model_schema: ModelSchema) -> Optional[BaseModel]:
    name = model_schema.key_field()
    return getattr(model, name) if name else None


def splice_key(model: BaseModel, model_schema: ModelSchema, key: Optional[BaseModel]) -> BaseModel:
    """Return a copy of `model` with `key` placed in its KEY field."""
    name = model_schema.key_field()
    if name is None or key is None:
        return model
    if getattr(model, name) == key:
        return model
    return model.model_copy(update={name: key})


def generate_key(key_schema: ModelSchema) -> BaseModel:
    """Build a fresh key: UUID hex for string IDs, monotonic int for integer IDs."""
    name = key_schema.id_field()
    if key_schema.id_type() is int:
        ident: Any = _int_ids.next()
    else:
        ident = uuid.uuid4().hex
    logger.debug("Generated key ID '%s' for %s", ident, key_schema.name)
    return key_schema.model(**{name: ident})


def _split_mask(paths: Iterable[str]) -> Dict[str, Optional[FrozenSet[str]]]:
    tree: Dict[str, Optional[set]] = {}
    for path in paths:
        head, _, rest = path.partition(".")
        if not rest:
            tree[head] = None
        elif head not in tree or tree[head] is not None:
            tree.setdefault(head, set()).add(rest)
    return {k: (frozenset(v) if v is not None else None) for k, v in tree.items()}


def apply_mask(model: BaseModel, mask: Optional[Iterable[str]], model_schema: Optional[ModelSchema] = None) -> BaseModel:
    """Project `model` down to the dotted field paths in `mask`.

    Fields outside the mask are reset to their defaults. The KEY field is
    always kept. An empty or missing mask returns the model unchanged.
    """
    if not mask:
        return model
    schema = model_schema or schema_for(type(model))
    tree = _split_mask(mask)
    key_name = schema.key_field()
    kept: Dict[str, Any] = {}
    for name in schema.field_names():
        if name == key_name:
            kept[name] = getattr(model, name)
            continue
        if name not in tree:
            continue
        value = getattr(model, name)
        sub = tree[name]
        if sub is not None and isinstance(value, BaseModel):
            value = apply_mask(value, sub)
        kept[name] = value
    return type(model).model_construct(_fields_set=set(kept), **kept)
