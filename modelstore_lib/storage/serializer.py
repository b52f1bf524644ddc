"""Byte-level serializers for primitive record payloads.

Each serializer turns a primitive value (dicts, lists, strings, numbers)
into bytes and back. All of them are deterministic: dumping equal values
twice yields identical bytes, which the codec layer relies on.
"""
from __future__ import annotations
import base64
import copy
import json
import pickle
from typing import Any, Protocol

import yaml

# Pinned so encoded bytes do not change with the interpreter default.
PICKLE_PROTOCOL = 5


class Serializer(Protocol):
    """Serialize/deserialize primitive values to/from bytes.

    Implementations should be symmetric: `dump` -> bytes, `load` <- bytes.
    """

    def dump(self, value: Any) -> bytes: ...

    def load(self, data: bytes) -> Any: ...


class PickleSerializer:
    """Binary serializer using pickle.

    Only ever load bytes written by this library; pickle is not safe for
    untrusted input.
    """

    def dump(self, value: Any) -> bytes:
        return pickle.dumps(value, protocol=PICKLE_PROTOCOL)

    def load(self, data: bytes) -> Any:
        return pickle.loads(data)


class JSONSerializer:
    """Serializer using canonical JSON (sorted keys, compact separators)."""

    def dump(self, value: Any) -> bytes:
        return json.dumps(value, sort_keys=True, separators=(",", ":"), ensure_ascii=False).encode("utf-8")

    def load(self, data: bytes) -> Any:
        return json.loads(data.decode("utf-8"))


class YAMLSerializer:
    """Serializer using YAML text."""

    def dump(self, value: Any) -> bytes:
        return yaml.safe_dump(value, sort_keys=True, allow_unicode=True).encode("utf-8")

    def load(self, data: bytes) -> Any:
        return yaml.safe_load(data.decode("utf-8"))


class EncryptedSerializer:
    """Serializer that encrypts payloads with AES-SIV.

    AES-SIV is deterministic authenticated encryption, so equal plaintexts
    under the same key produce equal ciphertexts and the determinism of the
    wrapped serializer is preserved. Provide either `key` (64 bytes, see
    `generate_key`) or `password` plus `salt`; the password is stretched
    with PBKDF2-SHA256.
    """

    def __init__(
        self,
        *,
        key: bytes | None = None,
        password: str | None = None,
        salt: bytes | None = None,
        iterations: int = 390000,
        base_serializer: Serializer | None = None,
    ) -> None:
        if key is None and password is None:
            raise ValueError("EncryptedSerializer requires either `key` or `password`")
        if password is not None and not salt:
            raise ValueError("password mode requires a fixed `salt` to stay deterministic")
        self.base_serializer = base_serializer or JSONSerializer()
        self._key = key if key is not None else self._derive_key(password, salt, iterations)

    def wrapping(self, base_serializer: Serializer) -> "EncryptedSerializer":
        """Return a copy with the same key around `base_serializer`."""
        clone = copy.copy(self)
        clone.base_serializer = base_serializer
        return clone

    @staticmethod
    def generate_key() -> bytes:
        from cryptography.hazmat.primitives.ciphers.aead import AESSIV

        return AESSIV.generate_key(512)

    @staticmethod
    def _derive_key(password: str, salt: bytes, iterations: int) -> bytes:
        from cryptography.hazmat.primitives import hashes
        from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

        kdf = PBKDF2HMAC(
            algorithm=hashes.SHA256(),
            length=64,
            salt=salt,
            iterations=iterations,
        )
        return kdf.derive(password.encode("utf-8"))

    def dump(self, value: Any) -> bytes:
        """Serialize with the base serializer, encrypt, and frame as JSON."""
        from cryptography.hazmat.primitives.ciphers.aead import AESSIV

        inner = self.base_serializer.dump(value)
        ct = AESSIV(self._key).encrypt(inner, None)
        frame = {"v": 1, "alg": "aes-siv", "ct": base64.urlsafe_b64encode(ct).decode("ascii")}
        return json.dumps(frame, sort_keys=True).encode("utf-8")

    def load(self, data: bytes) -> Any:
        from cryptography.hazmat.primitives.ciphers.aead import AESSIV

        frame = json.loads(data.decode("utf-8"))
        if frame.get("alg") != "aes-siv":
            raise ValueError("unknown frame format")
        ct = base64.urlsafe_b64decode(frame["ct"].encode("ascii"))
        pt = AESSIV(self._key).decrypt(ct, None)
        return self.base_serializer.load(pt)
