"""Backend collaborators: key-value and columnar stores."""

from .base import ColumnarStore, KeyValueStore, SetCondition
from .memory_backend import MemoryStore
from .file_backend import FileStore
from .redis_backend import RedisStore
from .sqlite_backend import SQLiteStore

__all__ = [
    "ColumnarStore",
    "KeyValueStore",
    "SetCondition",
    "MemoryStore",
    "FileStore",
    "RedisStore",
    "SQLiteStore",
]
