"""Codecs between records and the engine-neutral `EncodedModel` form."""
from __future__ import annotations
import json
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Generic, Optional, Protocol, Type, TypeVar

from pydantic import BaseModel

from modelstore_lib.errors import DeserializationFailure, SerializationFailure
from modelstore_lib.storage.serializer import (
    EncryptedSerializer,
    JSONSerializer,
    PickleSerializer,
    Serializer,
    YAMLSerializer,
)

logger = logging.getLogger(__name__)

M = TypeVar("M", bound=BaseModel)

FRAME_VERSION = 1


class Dialect(Enum):
    BINARY = "binary"
    TEXT = "text"
    JSON = "json"


_SERIALIZERS = {
    Dialect.BINARY: PickleSerializer,
    Dialect.TEXT: YAMLSerializer,
    Dialect.JSON: JSONSerializer,
}


@dataclass(frozen=True)
class EncodedModel:
    """Serialized record: the record type, the dialect tag and opaque bytes."""

    type_name: str
    dialect: Dialect
    data: bytes


class ModelCodec(Protocol[M]):
    type_name: str
    dialect: Dialect

    def serialize(self, model: M) -> EncodedModel: ...

    def deserialize(self, encoded: EncodedModel) -> M: ...

    def encode(self, model: M) -> bytes: ...

    def decode(self, data: bytes) -> M: ...


def type_name(model: Type[BaseModel]) -> str:
    return f"{model.__module__}.{model.__qualname__}"


def serializer_for(dialect: Dialect) -> Serializer:
    return _SERIALIZERS[dialect]()


class PydanticModelCodec(Generic[M]):
    """Codec for pydantic records with a fixed dialect.

    BINARY pickles the python-mode dump; TEXT (YAML) and JSON use the
    JSON-mode dump. Pass `encryption` to wrap the dialect serializer in an
    `EncryptedSerializer`.
    """

    def __init__(self, model: Type[M], dialect: Dialect = Dialect.BINARY,
                 encryption: Optional[EncryptedSerializer] = None) -> None:
        self.model = model
        self.dialect = dialect
        self.type_name = type_name(model)
        base = serializer_for(dialect)
        if encryption is not None:
            self._serializer: Serializer = encryption.wrapping(base)
        else:
            self._serializer = base

    def serialize(self, model: M) -> EncodedModel:
        if not isinstance(model, self.model):
            raise SerializationFailure(
                f"Codec for {self.type_name} cannot serialize {type(model).__name__}")
        try:
            mode = "python" if self.dialect is Dialect.BINARY else "json"
            payload = model.model_dump(mode=mode)
            data = self._serializer.dump(payload)
        except Exception as exc:
            raise SerializationFailure(f"Failed to serialize {self.type_name}: {exc}") from exc
        return EncodedModel(type_name=self.type_name, dialect=self.dialect, data=data)

    def deserialize(self, encoded: EncodedModel) -> M:
        if encoded.type_name != self.type_name:
            raise DeserializationFailure(
                f"Encoded type '{encoded.type_name}' does not match codec type '{self.type_name}'")
        if encoded.dialect is not self.dialect:
            raise DeserializationFailure(
                f"Encoded dialect {encoded.dialect.name} does not match codec dialect {self.dialect.name}")
        try:
            payload = self._serializer.load(encoded.data)
            return self.model.model_validate(payload)
        except Exception as exc:
            raise DeserializationFailure(f"Failed to deserialize {self.type_name}: {exc}") from exc

    def encode(self, model: M) -> bytes:
        """Serialize to a framed byte string for byte-oriented collaborators.

        The frame is a one-line JSON header carrying the type name and dialect,
        a newline, then the serialized payload. `decode` checks the header
        against this codec before loading the payload.
        """
        encoded = self.serialize(model)
        header = {"v": FRAME_VERSION, "type": encoded.type_name, "dialect": encoded.dialect.value}
        return json.dumps(header, sort_keys=True).encode("utf-8") + b"\n" + encoded.data

    def decode(self, data: bytes) -> M:
        return self.deserialize(unframe(data))


def unframe(data: bytes) -> EncodedModel:
    """Split a framed byte string written by `PydanticModelCodec.encode`."""
    head, sep, payload = bytes(data).partition(b"\n")
    if not sep:
        raise DeserializationFailure("Stored value has no encoding header")
    try:
        header = json.loads(head.decode("utf-8"))
        if header.get("v") != FRAME_VERSION:
            raise ValueError(f"unsupported frame version {header.get('v')!r}")
        return EncodedModel(type_name=header["type"], dialect=Dialect(header["dialect"]), data=payload)
    except Exception as exc:
        raise DeserializationFailure(f"Malformed encoding header: {exc}") from exc
