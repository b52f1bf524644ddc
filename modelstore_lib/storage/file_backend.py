"""Simple file-backed key-value store.

Each key is stored as `<data_dir>/<key>.bin`. Writes go to a temporary file
which is then renamed over the target, so readers never observe a partial
value. Conditional writes are serialized with an in-process lock; the store
is not safe for several processes writing the same directory.
"""
from __future__ import annotations
import logging
import os
import threading
from pathlib import Path
from typing import Iterable, Optional

from .base import KeyValueStore, SetCondition

logger = logging.getLogger(__name__)

SUFFIX = ".bin"


class FileStore(KeyValueStore):
    def __init__(self, data_dir: str | Path = "./data") -> None:
        self.data_dir = Path(data_dir)
        self.data_dir.mkdir(parents=True, exist_ok=True)
        self._lock = threading.RLock()

    def _path_for(self, key: str) -> Path:
        safe_key = key.replace("/", "_").replace("\\", "_")
        return self.data_dir / f"{safe_key}{SUFFIX}"

    def _write(self, path: Path, value: bytes) -> None:
        tmp = path.with_suffix(path.suffix + f".{threading.get_ident()}.tmp")
        try:
            with open(tmp, "wb") as f:
                f.write(bytes(value))
                f.flush()
                os.fsync(f.fileno())
            tmp.replace(path)
        except Exception:
            tmp.unlink(missing_ok=True)
            raise

    def get(self, key: str) -> Optional[bytes]:
        path = self._path_for(key)
        try:
            with open(path, "rb") as f:
                return f.read()
        except FileNotFoundError:
            return None

    def set(self, key: str, value: bytes, condition: SetCondition = SetCondition.ALWAYS) -> bool:
        path = self._path_for(key)
        with self._lock:
            present = path.exists()
            if condition is SetCondition.IF_ABSENT and present:
                return False
            if condition is SetCondition.IF_PRESENT and not present:
                return False
            self._write(path, value)
        logger.debug("FileStore wrote %s (%d bytes)", path, len(value))
        return True

    def delete(self, key: str) -> None:
        with self._lock:
            try:
                self._path_for(key).unlink()
            except FileNotFoundError:
                pass

    def keys(self, prefix: str = "") -> Iterable[str]:
        for p in self.data_dir.iterdir():
            if p.is_file() and p.suffix == SUFFIX and p.stem.startswith(prefix):
                yield p.stem

    def exists(self, key: str) -> bool:
        return self._path_for(key).exists()

    def flush(self) -> None:
        with self._lock:
            for p in list(self.data_dir.iterdir()):
                if p.is_file() and p.suffix == SUFFIX:
                    p.unlink()
