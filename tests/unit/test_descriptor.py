from typing import List, Optional, Tuple

import pytest
from pydantic import BaseModel

from modelstore_lib.errors import InvalidKey, InvalidModelType
from modelstore_lib.model import metadata
from modelstore_lib.model.descriptor import (
    FieldRole,
    FieldSpec,
    ModelKind,
    describe,
    inspect_annotation,
    is_key_model,
    schema_for,
)
from tests.models import Address, Order, OrderKey, Person, PersonKey, Unkeyed, person


def test_registered_schema_lookup():
    schema = schema_for(Person)
    assert schema.kind is ModelKind.OBJECT
    assert schema.table == "people"
    assert schema.key_field() == "key"
    assert schema.key_model() is PersonKey
    assert schema.key_schema().id_field() == "id"
    assert schema.key_schema().id_type() is str
    assert schema_for(OrderKey).id_type() is int


def test_unregistered_model_gets_default_schema():
    schema = schema_for(Unkeyed)
    assert schema.table is None
    assert schema.spec("value").role is FieldRole.DATA
    assert schema.key_field() is None


def test_is_key_model():
    assert is_key_model(PersonKey)
    assert not is_key_model(Person)
    assert not is_key_model("PersonKey")


def test_inspect_annotation():
    assert inspect_annotation(Optional[str]) == (str, False)
    assert inspect_annotation(List[int]) == (int, True)
    assert inspect_annotation(Optional[List[Address]]) == (Address, True)
    assert inspect_annotation(Tuple[str, ...]) == (str, True)
    assert inspect_annotation(int | None) == (int, False)
    # repeated-of-repeated is left alone for the resolver to reject
    assert inspect_annotation(List[List[int]])[1] is False


def test_key_model_needs_exactly_one_id():
    class TwoIds(BaseModel):
        a: Optional[str] = None
        b: Optional[str] = None

    with pytest.raises(InvalidModelType):
        describe(TwoIds, kind=ModelKind.KEY)
    with pytest.raises(InvalidModelType):
        describe(TwoIds, kind=ModelKind.KEY, fields={
            "a": FieldSpec(role=FieldRole.ID), "b": FieldSpec(role=FieldRole.ID)})


def test_key_id_must_be_str_or_int():
    class FloatKey(BaseModel):
        id: Optional[float] = None

    with pytest.raises(InvalidModelType):
        describe(FloatKey, kind=ModelKind.KEY, fields={"id": FieldSpec(role=FieldRole.ID)})


def test_object_rules():
    class Bad(BaseModel):
        key: Optional[PersonKey] = None
        other: List[PersonKey] = []
        name: str = ""

    with pytest.raises(InvalidModelType):
        describe(Bad, fields={"name": FieldSpec(role=FieldRole.ID)})
    with pytest.raises(InvalidModelType):
        describe(Bad, fields={"key": FieldSpec(role=FieldRole.KEY), "other": FieldSpec(role=FieldRole.KEY)})
    with pytest.raises(InvalidModelType):
        describe(Bad, fields={"other": FieldSpec(role=FieldRole.KEY)})
    with pytest.raises(InvalidModelType):
        describe(Bad, fields={"missing": FieldSpec()})
    with pytest.raises(InvalidModelType):
        describe(dict)


def test_generate_key():
    ks = schema_for(PersonKey)
    a, b = metadata.generate_key(ks), metadata.generate_key(ks)
    assert isinstance(a, PersonKey)
    assert len(a.id) == 32 and a.id != b.id

    ints = [metadata.generate_key(schema_for(OrderKey)).id for _ in range(100)]
    assert ints == sorted(ints) and len(set(ints)) == 100


def test_key_validation():
    ks = schema_for(PersonKey)
    assert metadata.require_id(PersonKey(id="x"), ks) == "x"
    with pytest.raises(InvalidKey):
        metadata.require_id(None, ks)
    with pytest.raises(InvalidKey):
        metadata.require_id(PersonKey(), ks)
    with pytest.raises(InvalidKey):
        metadata.require_id(PersonKey(id=""), ks)
    with pytest.raises(InvalidKey):
        metadata.require_id(OrderKey(id=1), ks)


def test_key_schema_of_requires_key_field():
    with pytest.raises(InvalidModelType):
        metadata.key_schema_of(schema_for(Unkeyed))
    assert metadata.key_schema_of(schema_for(Order)).model is OrderKey


def test_splice_key_returns_new_instance():
    schema = schema_for(Person)
    original = person()
    spliced = metadata.splice_key(original, schema, PersonKey(id="k"))
    assert spliced.key == PersonKey(id="k")
    assert original.key is None
    assert metadata.splice_key(spliced, schema, PersonKey(id="k")) is spliced
    assert metadata.key_of(spliced, schema) == PersonKey(id="k")


def test_apply_mask():
    schema = schema_for(Person)
    full = person(key=PersonKey(id="k"))
    masked = metadata.apply_mask(full, ["name", "address.street"], schema)
    assert masked == Person(key=PersonKey(id="k"), name="Ada", address=Address(street="1 Analytical Way"))
    assert metadata.apply_mask(full, None, schema) is full
    assert metadata.apply_mask(full, frozenset(), schema) is full
    # a whole-field path wins over a nested one
    both = metadata.apply_mask(full, ["address.street", "address"], schema)
    assert both.address == full.address
