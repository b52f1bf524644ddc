"""Convert records to and from rows of SQLite-native values.

Column names and types come from the schema resolver. Scalars map directly
(booleans as 0/1, decimals, dates and timestamps as ISO text); STRUCT and
ARRAY columns are stored as JSON text whose members use the same column
names as a flat row would.
"""
from __future__ import annotations
import base64
import datetime
import decimal
import json
import logging
from enum import Enum
from typing import Any, Collection, Dict, List, Mapping, Optional, Tuple

from pydantic import BaseModel

from modelstore_lib.errors import DeserializationFailure, SerializationFailure
from modelstore_lib.model import metadata
from modelstore_lib.model.descriptor import ModelSchema, is_key_model, schema_for
from modelstore_lib.schema import resolver
from modelstore_lib.schema.ddl import TableDefinition, generate_table
from modelstore_lib.schema.settings import DEFAULTS, ResolverSettings
from modelstore_lib.schema.types import ColumnType, TypeCode

logger = logging.getLogger(__name__)


def _dumps(value: Any) -> str:
    return json.dumps(value, sort_keys=True, separators=(",", ":"), ensure_ascii=False)


class RowCodec:
    """Row encoder/decoder for one object schema."""

    def __init__(self, schema: ModelSchema, settings: ResolverSettings = DEFAULTS) -> None:
        self.schema = schema
        self.settings = settings
        self.table: TableDefinition = generate_table(schema, settings)
        self.key_schema = metadata.key_schema_of(schema)
        self.key_column = self.table.primary_key.name
        self.columns = resolver.resolve_columns(schema, settings)

    # -- projection -----------------------------------------------------------

    def column_for_field(self, field_name: str) -> Optional[str]:
        if field_name == self.schema.key_field():
            return self.key_column
        for col in self.columns:
            if col.pointer.name == field_name:
                return col.name
        return None

    def columns_for_mask(self, mask: Optional[Collection[str]]) -> List[resolver.ResolvedColumn]:
        if not mask:
            return list(self.columns)
        heads = {path.partition(".")[0] for path in mask}
        allowed = {c.name for c in self.columns if c.pointer.name in heads}
        if not allowed:
            return []
        return resolver.resolve_columns(self.schema, self.settings, allowed=allowed)

    # -- encode ---------------------------------------------------------------

    def to_row(self, model: BaseModel, identifier: Any) -> Dict[str, Any]:
        row: Dict[str, Any] = {self.key_column: identifier}
        try:
            for col in self.columns:
                value = getattr(model, col.pointer.name)
                row[col.name] = self._to_cell(col.pointer, col.type, value)
        except (AttributeError, TypeError, ValueError) as exc:
            raise SerializationFailure(f"Failed to encode {self.schema.name} as a row: {exc}") from exc
        return row

    def _to_cell(self, ptr: resolver.FieldPointer, ctype: ColumnType, value: Any) -> Any:
        if ctype.code is TypeCode.BOOL and value is None and self.settings.write_empty_bools_as_false:
            return 0
        if value is None:
            return None
        if ctype.is_array or ctype.is_struct or (ctype.code is TypeCode.JSON and not isinstance(value, str)):
            return _dumps(self._to_json(ptr.annotation, ctype, value))
        return self._to_scalar(ptr.annotation, ctype, value)

    def _to_scalar(self, tp: Any, ctype: ColumnType, value: Any) -> Any:
        code = ctype.code
        if isinstance(value, Enum):
            return value.value if code is TypeCode.INT64 else value.name
        if isinstance(value, BaseModel) and is_key_model(type(value)):
            return metadata.id_of(value)
        if code is TypeCode.BOOL:
            return 1 if value else 0
        if code is TypeCode.NUMERIC:
            return str(value)
        if code in (TypeCode.DATE, TypeCode.TIMESTAMP):
            return value.isoformat()
        if code is TypeCode.BYTES:
            return bytes(value)
        return value

    def _to_json(self, tp: Any, ctype: ColumnType, value: Any) -> Any:
        if value is None:
            return None
        if ctype.is_array:
            return [self._to_json(tp, ctype.element, v) for v in value]
        if ctype.is_struct:
            sub = schema_for(type(value))
            out = {}
            for col in resolver.resolve_columns(sub, self.settings):
                out[col.name] = self._to_json(col.pointer.annotation, col.type, getattr(value, col.pointer.name))
            return out
        scalar = self._to_scalar(tp, ctype, value)
        if isinstance(scalar, bytes):
            return base64.b64encode(scalar).decode("ascii")
        return scalar

    # -- decode ---------------------------------------------------------------

    def from_row(self, row: Mapping[str, Any], mask: Optional[Collection[str]] = None) -> BaseModel:
        values: Dict[str, Any] = {}
        try:
            key_name = self.schema.key_field()
            if key_name is not None:
                id_name = self.key_schema.id_field()
                values[key_name] = self.key_schema.model(**{id_name: row[self.key_column]})
            for col in self.columns_for_mask(mask):
                if col.name not in row:
                    continue
                values[col.pointer.name] = self._from_cell(col.pointer, col.type, row[col.name])
            if mask:
                model = self.schema.model.model_construct(_fields_set=set(values), **values)
                return metadata.apply_mask(model, mask, self.schema)
            return self.schema.model.model_validate(values)
        except Exception as exc:
            raise DeserializationFailure(f"Failed to decode {self.schema.name} from row: {exc}") from exc

    def _from_cell(self, ptr: resolver.FieldPointer, ctype: ColumnType, cell: Any) -> Any:
        if cell is None:
            return None
        if ctype.is_array or ctype.is_struct:
            return self._from_json(ptr.annotation, ctype, json.loads(cell))
        if ctype.code is TypeCode.JSON and not (isinstance(ptr.annotation, type) and issubclass(ptr.annotation, str)):
            return json.loads(cell)
        return self._from_scalar(ptr.annotation, ctype, cell)

    def _from_scalar(self, tp: Any, ctype: ColumnType, cell: Any) -> Any:
        code = ctype.code
        if isinstance(tp, type):
            if issubclass(tp, Enum):
                return tp(cell) if code is TypeCode.INT64 else tp[cell]
            if issubclass(tp, BaseModel) and is_key_model(tp):
                ks = schema_for(tp)
                return tp(**{ks.id_field(): cell})
        if code is TypeCode.BOOL:
            return bool(cell)
        if code is TypeCode.NUMERIC:
            return decimal.Decimal(cell)
        if code is TypeCode.TIMESTAMP:
            return datetime.datetime.fromisoformat(cell)
        if code is TypeCode.DATE:
            return datetime.date.fromisoformat(cell)
        return cell

    def _from_json(self, tp: Any, ctype: ColumnType, data: Any) -> Any:
        if data is None:
            return None
        if ctype.is_array:
            return [self._from_json(tp, ctype.element, v) for v in data]
        if ctype.is_struct:
            sub = schema_for(tp)
            values = {}
            for col in resolver.resolve_columns(sub, self.settings):
                if col.name in data:
                    values[col.pointer.name] = self._from_json(col.pointer.annotation, col.type, data[col.name])
            return tp.model_validate(values)
        if ctype.code is TypeCode.BYTES:
            return base64.b64decode(data)
        return self._from_scalar(tp, ctype, data)

    def encode_filter(self, field_name: str, value: Any) -> Tuple[str, Any]:
        """Translate an equality filter on a field into (column, cell value)."""
        if field_name == self.schema.key_field():
            if isinstance(value, BaseModel):
                value = metadata.require_id(value, self.key_schema)
            return self.key_column, value
        for col in self.columns:
            if col.pointer.name == field_name:
                return col.name, self._to_cell(col.pointer, col.type, value)
        raise ValueError(f"'{field_name}' is not a stored field of {self.schema.name}")
