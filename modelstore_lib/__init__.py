"""Storage-engine-agnostic persistence for pydantic records."""

from modelstore_lib.errors import (
    InvalidKey,
    InvalidModelType,
    PersistenceException,
    PersistenceFailure,
    WriteConflict,
)
from modelstore_lib.model.descriptor import FieldRole, FieldSpec, ModelKind, describe
from modelstore_lib.model.options import (
    DeleteOptions,
    FetchOptions,
    QueryOptions,
    WriteDisposition,
    WriteOptions,
)
from modelstore_lib.model.adapter import ModelAdapter
from modelstore_lib.factory import create_adapter

__version__ = "0.1.0"

__all__ = [
    "InvalidKey",
    "InvalidModelType",
    "PersistenceException",
    "PersistenceFailure",
    "WriteConflict",
    "FieldRole",
    "FieldSpec",
    "ModelKind",
    "describe",
    "DeleteOptions",
    "FetchOptions",
    "QueryOptions",
    "WriteDisposition",
    "WriteOptions",
    "ModelAdapter",
    "create_adapter",
]
