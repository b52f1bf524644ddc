"""Column type vocabulary shared by the schema resolver and columnar drivers."""
from __future__ import annotations
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Tuple


class TypeCode(Enum):
    STRING = "STRING"
    JSON = "JSON"
    NUMERIC = "NUMERIC"
    FLOAT64 = "FLOAT64"
    INT64 = "INT64"
    BYTES = "BYTES"
    BOOL = "BOOL"
    DATE = "DATE"
    TIMESTAMP = "TIMESTAMP"
    STRUCT = "STRUCT"
    ARRAY = "ARRAY"


# Types that may be named explicitly in column options.
SCALAR_CODES = frozenset({
    TypeCode.STRING,
    TypeCode.JSON,
    TypeCode.NUMERIC,
    TypeCode.FLOAT64,
    TypeCode.INT64,
    TypeCode.BYTES,
    TypeCode.BOOL,
    TypeCode.DATE,
    TypeCode.TIMESTAMP,
})


@dataclass(frozen=True)
class StructField:
    name: str
    type: "ColumnType"


@dataclass(frozen=True)
class ColumnType:
    """A resolved column type. `element` is set for arrays, `fields` for structs."""

    code: TypeCode
    element: Optional["ColumnType"] = None
    fields: Tuple[StructField, ...] = ()

    @classmethod
    def scalar(cls, code: TypeCode) -> "ColumnType":
        if code not in SCALAR_CODES:
            raise ValueError(f"{code.name} is not a scalar column type")
        return cls(code)

    @classmethod
    def array(cls, element: "ColumnType") -> "ColumnType":
        return cls(TypeCode.ARRAY, element=element)

    @classmethod
    def struct(cls, fields) -> "ColumnType":
        return cls(TypeCode.STRUCT, fields=tuple(fields))

    @property
    def is_array(self) -> bool:
        return self.code is TypeCode.ARRAY

    @property
    def is_struct(self) -> bool:
        return self.code is TypeCode.STRUCT

    def __str__(self) -> str:
        if self.code is TypeCode.ARRAY:
            return f"ARRAY<{self.element}>"
        if self.code is TypeCode.STRUCT:
            inner = ", ".join(f"{f.name} {f.type}" for f in self.fields)
            return f"STRUCT<{inner}>"
        return self.code.value


STRING = ColumnType(TypeCode.STRING)
JSON = ColumnType(TypeCode.JSON)
NUMERIC = ColumnType(TypeCode.NUMERIC)
FLOAT64 = ColumnType(TypeCode.FLOAT64)
INT64 = ColumnType(TypeCode.INT64)
BYTES = ColumnType(TypeCode.BYTES)
BOOL = ColumnType(TypeCode.BOOL)
DATE = ColumnType(TypeCode.DATE)
TIMESTAMP = ColumnType(TypeCode.TIMESTAMP)
