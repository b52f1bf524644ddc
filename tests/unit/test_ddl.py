import pytest

from modelstore_lib.model.descriptor import FieldSpec, ModelSchema, SqlColumnOptions, schema_for
from modelstore_lib.schema.ddl import generate_table
from modelstore_lib.schema.settings import ResolverSettings
from modelstore_lib.schema.types import TypeCode
from tests.models import Order, Person


def test_person_table():
    table = generate_table(schema_for(Person))
    assert table.name == "people"
    assert table.primary_key.name == "Id"
    assert table.primary_key.field == "key"
    assert table.column_names == ("Id", "full_name", "Age", "Score", "Active", "Status", "Tags", "Address")
    assert table.create_statement() == (
        'CREATE TABLE IF NOT EXISTS "people" (\n'
        '  "Id" TEXT PRIMARY KEY NOT NULL,\n'
        '  "full_name" TEXT CHECK (length("full_name") <= 2048),\n'
        '  "Age" INTEGER,\n'
        '  "Score" REAL,\n'
        '  "Active" INTEGER,\n'
        '  "Status" TEXT CHECK (length("Status") <= 32),\n'
        '  "Tags" TEXT,\n'
        '  "Address" TEXT\n'
        ')'
    )


def test_order_table_types():
    table = generate_table(schema_for(Order))
    assert table.name == "orders"
    assert table.primary_key.type.code is TypeCode.INT64
    assert table.primary_key.definition(primary=True) == '"Id" INTEGER PRIMARY KEY NOT NULL'
    by_name = {c.name: c.sqlite_type() for c in table.columns}
    assert by_name == {
        "Buyer": "TEXT",
        "PlacedOn": "TEXT",
        "PlacedAt": "TEXT",
        "Total": "TEXT",
        "Priority": "TEXT",
        "Lines": "TEXT",
        "Payload": "TEXT",
        "Thumbnail": "BLOB",
    }
    assert 'length("Payload") <= 4096' in table.create_statement()


def test_statement_is_deterministic_and_respects_settings():
    settings = ResolverSettings(preserve_field_names=True)
    first = generate_table(schema_for(Person), settings).create_statement()
    assert first == generate_table(schema_for(Person), settings).create_statement()
    assert '"age" INTEGER' in first
    assert generate_table(schema_for(Person)).drop_statement() == 'DROP TABLE IF EXISTS "people"'


def test_duplicate_columns_rejected():
    base = schema_for(Person)
    schema = ModelSchema(model=Person, table="people", specs={
        **base.specs,
        "age": FieldSpec(sql=SqlColumnOptions(column="full_name")),
    })
    with pytest.raises(ValueError):
        generate_table(schema)
