"""Assemble adapters from a `StoreConfig`."""
from __future__ import annotations
import logging
from datetime import timedelta
from pathlib import Path
from typing import Any, Optional, Type, Union

from pydantic import BaseModel

from modelstore_lib.cache.store_cache import StoreCache
from modelstore_lib.config import StoreConfig
from modelstore_lib.drivers.columnar import ColumnarDriver
from modelstore_lib.drivers.kv import KeyValueDriver
from modelstore_lib.model.adapter import ModelAdapter
from modelstore_lib.model.codec import PydanticModelCodec
from modelstore_lib.storage.interfaces import ColumnarStoreProtocol, KeyValueStoreProtocol
from modelstore_lib.storage.file_backend import FileStore
from modelstore_lib.storage.memory_backend import MemoryStore
from modelstore_lib.storage.serializer import EncryptedSerializer
from modelstore_lib.storage.sqlite_backend import SQLiteStore

logger = logging.getLogger(__name__)


def create_store(config: StoreConfig, namespace: str = "records") -> Any:
    """Create the collaborator selected by `config.backend`."""
    if config.backend == "memory":
        return MemoryStore()
    if config.backend == "file":
        return FileStore(Path(config.data_dir) / namespace)
    if config.backend == "sqlite":
        Path(config.database_path).parent.mkdir(parents=True, exist_ok=True)
        return SQLiteStore(config.database_path)
    raise ValueError(f"Unknown backend: {config.backend}")


def create_adapter(config: StoreConfig,
                   model: Type[BaseModel],
                   *,
                   store: Union[KeyValueStoreProtocol, ColumnarStoreProtocol, None] = None,
                   cache_store: Optional[KeyValueStoreProtocol] = None,
                   encryption: Optional[EncryptedSerializer] = None) -> ModelAdapter:
    """Build a collaborator, codec, driver and optional cache for `model`.

    `store` overrides the configured backend (e.g. a `RedisStore`). Any object
    with the key-value or columnar protocol methods is accepted, subclassing
    the storage base classes is not required. The cache shares the key-value
    store unless `cache_store` is given; columnar backends get an in-memory
    cache store.
    """
    store = store if store is not None else create_store(config)
    codec = PydanticModelCodec(model, config.codec_dialect, encryption=encryption)
    if isinstance(store, KeyValueStoreProtocol):
        driver: Any = KeyValueDriver(model, codec, store, max_workers=config.max_workers)
    elif isinstance(store, ColumnarStoreProtocol):
        driver = ColumnarDriver(model, codec, store,
                                settings=config.resolver_settings,
                                max_workers=config.max_workers)
    else:
        raise TypeError(f"Unsupported store type: {type(store).__name__}")

    cache = None
    if config.cache_enabled:
        if cache_store is None:
            cache_store = store if isinstance(store, KeyValueStoreProtocol) else MemoryStore()
        cache = StoreCache(model, cache_store,
                           codec=PydanticModelCodec(model),
                           ttl=timedelta(seconds=config.cache_ttl_seconds),
                           max_entries=config.cache_max_entries)
    logger.info("Created %s adapter for %s (cache: %s)",
                type(driver).__name__, model.__name__, "on" if cache else "off")
    return ModelAdapter(driver, cache)
