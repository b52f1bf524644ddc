"""Exception taxonomy for the persistence layer.

Validation errors (`InvalidKey`, `InvalidModelType`, `MissingAnnotatedField`,
`UnsupportedFieldType`) are raised synchronously, before any backend call.
Backend-originated errors (`WriteConflict`, `PersistenceFailure` and the
codec failures) surface through the returned future.
"""
from __future__ import annotations
from typing import Any, Optional


class PersistenceException(Exception):
    """Base class for every error raised by `modelstore_lib`."""


class InvalidKey(PersistenceException, ValueError):
    """A key is missing, carries no identifier, or has an unsupported ID type."""


class InvalidModelType(PersistenceException, TypeError):
    """A record type cannot be used for storage (e.g. no ID field declared)."""


class MissingAnnotatedField(PersistenceException, ValueError):
    """A schema lacks mapping metadata a backend requires (e.g. a table name)."""


class UnsupportedFieldType(PersistenceException, TypeError):
    """Schema resolution reached a field kind it cannot map to a column."""


class SerializationFailure(PersistenceException):
    """A record could not be encoded by a codec."""


class DeserializationFailure(PersistenceException):
    """Encoded bytes could not be decoded back into a record."""


# Names used by codec implementations.
DeflateFailure = SerializationFailure
InflateFailure = DeserializationFailure


class PersistenceFailure(PersistenceException):
    """Generic backend I/O failure."""


class WriteConflict(PersistenceException):
    """A conditional write failed its disposition precondition.

    Nothing was written. Callers decide whether to retry with fresh data.
    """

    def __init__(self, identifier: Any, model: Any, disposition: Any, message: Optional[str] = None) -> None:
        self.identifier = identifier
        self.model = model
        self.disposition = disposition
        name = getattr(disposition, "name", disposition)
        super().__init__(message or f"Write conflict at ID '{identifier}' (disposition: {name})")
