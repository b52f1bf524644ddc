"""Record types shared by the test-suite.

They are described once at import time, the way applications would.
"""
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict

from modelstore_lib.model.descriptor import (
    ColumnOptions,
    FieldRole,
    FieldSpec,
    ModelKind,
    SqlColumnOptions,
    Visibility,
    describe,
)
from modelstore_lib.schema.types import TypeCode


class Status(Enum):
    ACTIVE = "active"
    RETIRED = "retired"


class Priority(Enum):
    LOW = 1
    HIGH = 2


class PersonKey(BaseModel):
    model_config = ConfigDict(frozen=True)
    id: Optional[str] = None


class Address(BaseModel):
    model_config = ConfigDict(frozen=True)
    street: str = ""
    zip_code: str = ""
    internal_note: str = ""


class Person(BaseModel):
    model_config = ConfigDict(frozen=True)
    key: Optional[PersonKey] = None
    name: str = ""
    age: int = 0
    score: float = 0.0
    active: Optional[bool] = None
    status: Status = Status.ACTIVE
    tags: List[str] = []
    address: Optional[Address] = None
    secret: str = ""


class OrderKey(BaseModel):
    model_config = ConfigDict(frozen=True)
    id: Optional[int] = None


class Line(BaseModel):
    model_config = ConfigDict(frozen=True)
    sku: str = ""
    quantity: int = 0


class Order(BaseModel):
    model_config = ConfigDict(frozen=True)
    key: Optional[OrderKey] = None
    buyer: Optional[PersonKey] = None
    placed_on: Optional[date] = None
    placed_at: Optional[datetime] = None
    total: Decimal = Decimal("0")
    priority: Priority = Priority.LOW
    lines: List[Line] = []
    payload: str = ""
    thumbnail: bytes = b""


class Pet(BaseModel):
    model_config = ConfigDict(frozen=True)
    key: Optional[PersonKey] = None
    name: str = ""


class Unkeyed(BaseModel):
    model_config = ConfigDict(frozen=True)
    value: int = 0


describe(PersonKey, kind=ModelKind.KEY, table="people",
         fields={"id": FieldSpec(role=FieldRole.ID)})
describe(Address, fields={"internal_note": FieldSpec(visibility=Visibility.INTERNAL)})
describe(Person, table="people", fields={
    "key": FieldSpec(role=FieldRole.KEY),
    "name": FieldSpec(sql=SqlColumnOptions(column="full_name"), column=ColumnOptions(name="ignored_name")),
    "score": FieldSpec(column=ColumnOptions(type=TypeCode.FLOAT64)),
    "secret": FieldSpec(visibility=Visibility.INTERNAL),
})

describe(OrderKey, kind=ModelKind.KEY, table="orders",
         fields={"id": FieldSpec(role=FieldRole.ID)})
describe(Order, fields={
    "key": FieldSpec(role=FieldRole.KEY),
    "payload": FieldSpec(sql=SqlColumnOptions(type=TypeCode.JSON, size=4096)),
    "thumbnail": FieldSpec(column=ColumnOptions(size=64)),
})

describe(Pet, fields={"key": FieldSpec(role=FieldRole.KEY)})


def person(**kwargs) -> Person:
    values = dict(name="Ada", age=36, score=9.5, active=True, tags=["math", "engines"],
                  address=Address(street="1 Analytical Way", zip_code="N1"))
    values.update(kwargs)
    return Person(**values)
