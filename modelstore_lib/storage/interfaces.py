from typing import Any, Dict, Iterable, Mapping, Optional, Protocol, Sequence, runtime_checkable

from modelstore_lib.storage.base import SetCondition


@runtime_checkable
class KeyValueStoreProtocol(Protocol):
    """Key-value collaborator protocol mirroring `modelstore_lib.storage.base.KeyValueStore`.

    Implementations should follow the semantics documented on the abstract
    base class (None for missing keys, False on a failed precondition,
    idempotent deletes, thread-safety).
    """

    def get(self, key: str) -> Optional[bytes]: ...

    def set(self, key: str, value: bytes, condition: SetCondition = SetCondition.ALWAYS) -> bool: ...

    def delete(self, key: str) -> None: ...

    def keys(self, prefix: str = "") -> Iterable[str]: ...

    def flush(self) -> None: ...


@runtime_checkable
class ColumnarStoreProtocol(Protocol):
    """Columnar collaborator protocol mirroring `modelstore_lib.storage.base.ColumnarStore`."""

    def execute_ddl(self, statement: str) -> None: ...

    def read(self, table: str, columns: Sequence[str], key_column: str, key: Any) -> Optional[Dict[str, Any]]: ...

    def write(self, table: str, row: Mapping[str, Any], key_column: str,
              condition: SetCondition = SetCondition.ALWAYS) -> bool: ...

    def delete(self, table: str, key_column: str, key: Any) -> None: ...

    def scan(self, table: str, columns: Sequence[str], **kwargs: Any) -> Iterable[Dict[str, Any]]: ...
