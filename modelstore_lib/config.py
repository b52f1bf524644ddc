"""Store configuration, loaded from YAML.

Example ``modelstore.yml``::

    backend: sqlite          # memory | file | sqlite
    dialect: binary          # binary | text | json
    database_path: data/store.db
    cache_enabled: true
    cache_ttl_seconds: 1800
    max_workers: 8
    log_level: info
    resolver:
      preserve_field_names: true
"""
from __future__ import annotations
from dataclasses import asdict, dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

import yaml

from modelstore_lib.model.codec import Dialect
from modelstore_lib.schema.settings import ResolverSettings

BACKENDS = ("memory", "file", "sqlite")
DEFAULT_CONFIG_PATH = Path("data/config/modelstore.yml")


@dataclass
class StoreConfig:
    backend: str = "memory"
    dialect: str = "binary"
    data_dir: str = "data"
    database_path: str = "data/modelstore.db"
    cache_enabled: bool = False
    cache_ttl_seconds: int = 1800
    cache_max_entries: int = 50
    max_workers: int = 4
    log_level: Optional[str] = None
    resolver: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if self.backend not in BACKENDS:
            raise ValueError(f"Unknown backend '{self.backend}', expected one of {BACKENDS}")
        # validates the dialect name
        Dialect(self.dialect)
        if self.max_workers < 1:
            raise ValueError("max_workers must be at least 1")

    @property
    def codec_dialect(self) -> Dialect:
        return Dialect(self.dialect)

    @property
    def resolver_settings(self) -> ResolverSettings:
        return ResolverSettings.from_mapping(self.resolver)

    @classmethod
    def from_mapping(cls, data: Optional[Mapping[str, Any]]) -> "StoreConfig":
        data = dict(data or {})
        known = {f.name for f in fields(cls)}
        unknown = set(data) - known
        if unknown:
            raise ValueError(f"Unknown configuration keys: {sorted(unknown)}")
        return cls(**data)

    def to_mapping(self) -> Dict[str, Any]:
        return asdict(self)


def load_config(path: Optional[Path] = None) -> StoreConfig:
    """Read a `StoreConfig` from YAML. A missing file yields the defaults."""
    cfg_path = Path(path) if path is not None else DEFAULT_CONFIG_PATH
    if not cfg_path.exists():
        return StoreConfig()
    with cfg_path.open("r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValueError(f"Configuration in {cfg_path} must be a mapping")
    return StoreConfig.from_mapping(data)
