"""Storage collaborator interface definitions.

Drivers talk to backends only through these classes. Key-value stores hold
opaque bytes under string keys; columnar stores hold rows of typed columns
in named tables. Implementations must be safe for concurrent use, and their
conditional writes must be atomic.
"""
from __future__ import annotations
from abc import ABC, abstractmethod
from enum import Enum
from typing import Any, Dict, Iterable, Mapping, Optional, Sequence


class SetCondition(Enum):
    ALWAYS = "always"
    IF_ABSENT = "if_absent"
    IF_PRESENT = "if_present"


class KeyValueStore(ABC):
    """Abstract key-value collaborator."""

    @abstractmethod
    def get(self, key: str) -> Optional[bytes]:
        """Return the bytes stored at `key`, or None when absent."""

    @abstractmethod
    def set(self, key: str, value: bytes, condition: SetCondition = SetCondition.ALWAYS) -> bool:
        """Store `value` at `key` if `condition` holds.

        Returns True when written, False when the precondition failed.
        """

    @abstractmethod
    def delete(self, key: str) -> None:
        """Delete `key`. Deleting an absent key is not an error."""

    @abstractmethod
    def keys(self, prefix: str = "") -> Iterable[str]:
        """Return an iterable of stored keys starting with `prefix`."""

    @abstractmethod
    def flush(self) -> None:
        """Remove every stored key."""

    def exists(self, key: str) -> bool:
        return self.get(key) is not None


class ColumnarStore(ABC):
    """Abstract table/row collaborator."""

    @abstractmethod
    def execute_ddl(self, statement: str) -> None:
        """Execute a schema statement (e.g. CREATE TABLE)."""

    @abstractmethod
    def read(self, table: str, columns: Sequence[str], key_column: str, key: Any) -> Optional[Dict[str, Any]]:
        """Return the requested columns of the row at `key`, or None."""

    @abstractmethod
    def write(self, table: str, row: Mapping[str, Any], key_column: str,
              condition: SetCondition = SetCondition.ALWAYS) -> bool:
        """Write `row` if `condition` holds. Returns False on a failed precondition."""

    @abstractmethod
    def delete(self, table: str, key_column: str, key: Any) -> None:
        """Delete the row at `key`. Deleting an absent row is not an error."""

    @abstractmethod
    def scan(self, table: str, columns: Sequence[str], *,
             filters: Optional[Mapping[str, Any]] = None,
             order_by: Sequence[str] = (),
             descending: bool = False,
             limit: Optional[int] = None,
             offset: int = 0) -> Iterable[Dict[str, Any]]:
        """Yield rows matching equality `filters`, in the requested order."""
