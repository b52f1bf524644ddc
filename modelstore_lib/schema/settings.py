from __future__ import annotations
from dataclasses import dataclass, fields
from typing import Any, Mapping, Optional


@dataclass(frozen=True)
class ResolverSettings:
    """Knobs for schema resolution and row encoding on columnar engines.

    preserve_field_names: use the literal field name as the default column name.
    capitalized_names: capitalize the JSON-style default name (``firstName`` -> ``FirstName``).
    enums_as_numbers: store enums as INT64 values instead of STRING names.
    check_expected_types: verify explicit column types against the field's Python type.
    write_empty_bools_as_false: write ``None`` booleans as ``False``.
    default_column_size: size for STRING/BYTES columns without an explicit size.
    native_json_type: express fields typed JSON as JSON rather than STRING.
    """

    preserve_field_names: bool = False
    capitalized_names: bool = True
    enums_as_numbers: bool = False
    check_expected_types: bool = True
    write_empty_bools_as_false: bool = True
    default_column_size: int = 2048
    native_json_type: bool = False

    @classmethod
    def from_mapping(cls, data: Optional[Mapping[str, Any]]) -> "ResolverSettings":
        if not data:
            return cls()
        known = {f.name for f in fields(cls)}
        unknown = set(data) - known
        if unknown:
            raise ValueError(f"Unknown resolver settings: {sorted(unknown)}")
        return cls(**dict(data))


DEFAULTS = ResolverSettings()
