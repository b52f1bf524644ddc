"""Deterministic key encoding for key-value backends.

Layout of every encoded key, before hex encoding::

    NAMESPACE_TAG || VERSION_TAG || role byte || identifier

The role byte is always written directly after the prefix. String
identifiers are UTF-8 encoded and the whole buffer is hashed with SHA-256;
64-bit integer identifiers are written as 8 big-endian bytes and the buffer
is used as-is, so adjacent integer IDs stay adjacent in backends that sort
keys. The layout is stable for as long as `VERSION_TAG` is unchanged.
"""
from __future__ import annotations
import hashlib
import struct
from enum import Enum
from typing import Union

from modelstore_lib.errors import InvalidKey

NAMESPACE_TAG = b"_modelstore_::model:"
VERSION_TAG = b"v1a"
PREFIX = NAMESPACE_TAG + VERSION_TAG

INT64_MIN = -(2 ** 63)
INT64_MAX = 2 ** 63 - 1

Identifier = Union[str, int]


class KeyRole(Enum):
    PERSISTENT = b"p"
    EPHEMERAL = b"c"


def identifier_bytes(identifier: Identifier) -> bytes:
    """Return the canonical byte form of `identifier`.

    Raises `InvalidKey` for anything other than a string or a 64-bit int.
    """
    # bool is an int subclass but never a valid identifier
    if isinstance(identifier, bool):
        raise InvalidKey(f"Failed to resolve key type for class {type(identifier).__name__}")
    if isinstance(identifier, str):
        return identifier.encode("utf-8")
    if isinstance(identifier, int):
        if identifier < INT64_MIN or identifier > INT64_MAX:
            raise InvalidKey(f"Integer identifier out of 64-bit range: {identifier}")
        return struct.pack(">q", identifier)
    raise InvalidKey(f"Failed to resolve key type for class {type(identifier).__name__}")


def encode_raw(role: KeyRole, identifier: Identifier) -> bytes:
    """Return the raw (un-hexed) key bytes for `identifier` under `role`."""
    body = identifier_bytes(identifier)
    buf = PREFIX + role.value + body
    if isinstance(identifier, str):
        return hashlib.sha256(buf).digest()
    return buf


def encode_key(role: KeyRole, identifier: Identifier) -> str:
    """Encode `identifier` into a transport-safe hex key string."""
    return encode_raw(role, identifier).hex()


def persistent_key(identifier: Identifier) -> str:
    return encode_key(KeyRole.PERSISTENT, identifier)


def cache_key(identifier: Identifier) -> str:
    return encode_key(KeyRole.EPHEMERAL, identifier)
