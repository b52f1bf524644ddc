import hashlib
import struct

import pytest

from modelstore_lib.errors import InvalidKey
from modelstore_lib.model.keys import (
    PREFIX,
    KeyRole,
    cache_key,
    encode_key,
    encode_raw,
    persistent_key,
)


def test_string_identifier_is_hashed():
    expected = hashlib.sha256(b"_modelstore_::model:v1a" + b"p" + "abc".encode("utf-8")).hexdigest()
    assert encode_key(KeyRole.PERSISTENT, "abc") == expected
    assert len(encode_key(KeyRole.PERSISTENT, "abc")) == 64


def test_integer_identifier_is_raw_big_endian():
    raw = encode_raw(KeyRole.PERSISTENT, 42)
    assert raw == PREFIX + b"p" + struct.pack(">q", 42)
    assert encode_key(KeyRole.PERSISTENT, 42) == raw.hex()
    # adjacent ids stay adjacent under byte ordering
    assert encode_key(KeyRole.PERSISTENT, 41) < encode_key(KeyRole.PERSISTENT, 42)


def test_negative_and_boundary_integers():
    assert encode_raw(KeyRole.PERSISTENT, -1).endswith(b"\xff" * 8)
    encode_key(KeyRole.PERSISTENT, 2 ** 63 - 1)
    encode_key(KeyRole.PERSISTENT, -(2 ** 63))


def test_unicode_identifier():
    expected = hashlib.sha256(PREFIX + b"p" + "schlüssel-✓".encode("utf-8")).hexdigest()
    assert persistent_key("schlüssel-✓") == expected


def test_encoding_is_deterministic():
    assert persistent_key("abc") == persistent_key("abc")
    assert persistent_key(7) == persistent_key(7)


def test_roles_never_collide():
    assert persistent_key("abc") != cache_key("abc")
    assert persistent_key(1) != cache_key(1)
    assert cache_key(1) == encode_key(KeyRole.EPHEMERAL, 1)


def test_string_and_int_forms_differ():
    assert persistent_key("1") != persistent_key(1)


@pytest.mark.parametrize("bad", [True, False, 1.5, None, b"bytes", ["a"], 2 ** 63, -(2 ** 63) - 1])
def test_invalid_identifiers_rejected(bad):
    with pytest.raises(InvalidKey):
        encode_key(KeyRole.PERSISTENT, bad)
