"""SQLite implementation of the columnar store.

A single connection is opened with `check_same_thread=False` and every
statement runs under a lock, so one store may be shared by all executor
threads. Values must already be SQLite-native (str, int, float, bytes,
None); the row codec converts structured columns before they get here.
"""
from __future__ import annotations
import logging
import os
import sqlite3
import threading
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence

from .base import ColumnarStore, SetCondition

logger = logging.getLogger(__name__)


def quote(identifier: str) -> str:
    return '"' + identifier.replace('"', '""') + '"'


class SQLiteStore(ColumnarStore):
    def __init__(self, path: str | Path = ":memory:"):
        path = str(path)
        if path != ":memory:" and os.path.isdir(path):
            raise ValueError(f"Path points to a directory, expected file: {path}")
        self.path = path
        self._lock = threading.RLock()
        self._conn = sqlite3.connect(path, check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        if path != ":memory:":
            self._conn.execute("PRAGMA journal_mode=WAL")
        self._conn.execute("PRAGMA foreign_keys=ON")

    def close(self) -> None:
        with self._lock:
            self._conn.close()

    def execute_ddl(self, statement: str) -> None:
        logger.debug("SQLiteStore DDL: %s", statement)
        with self._lock, self._conn:
            self._conn.execute(statement)

    def read(self, table: str, columns: Sequence[str], key_column: str, key: Any) -> Optional[Dict[str, Any]]:
        cols = ", ".join(quote(c) for c in columns)
        sql = f"SELECT {cols} FROM {quote(table)} WHERE {quote(key_column)} = ?"
        with self._lock:
            row = self._conn.execute(sql, (key,)).fetchone()
        return dict(row) if row is not None else None

    def write(self, table: str, row: Mapping[str, Any], key_column: str,
              condition: SetCondition = SetCondition.ALWAYS) -> bool:
        if key_column not in row:
            raise ValueError(f"Row for {table} is missing key column {key_column}")
        names = list(row.keys())
        values = [row[n] for n in names]
        cols = ", ".join(quote(n) for n in names)
        marks = ", ".join("?" for _ in names)
        if condition is SetCondition.IF_PRESENT:
            others = [n for n in names if n != key_column]
            if not others:
                # nothing to update, the write succeeds iff the row exists
                sql = f"SELECT 1 FROM {quote(table)} WHERE {quote(key_column)} = ?"
                with self._lock:
                    return self._conn.execute(sql, (row[key_column],)).fetchone() is not None
            assignments = ", ".join(f"{quote(n)} = ?" for n in others)
            sql = f"UPDATE {quote(table)} SET {assignments} WHERE {quote(key_column)} = ?"
            params: List[Any] = [row[n] for n in others] + [row[key_column]]
        elif condition is SetCondition.IF_ABSENT:
            # only a key clash is ignored, CHECK violations still raise
            sql = (f"INSERT INTO {quote(table)} ({cols}) VALUES ({marks}) "
                   f"ON CONFLICT({quote(key_column)}) DO NOTHING")
            params = values
        else:
            sql = f"INSERT OR REPLACE INTO {quote(table)} ({cols}) VALUES ({marks})"
            params = values
        with self._lock, self._conn:
            cur = self._conn.execute(sql, params)
            return cur.rowcount > 0

    def delete(self, table: str, key_column: str, key: Any) -> None:
        sql = f"DELETE FROM {quote(table)} WHERE {quote(key_column)} = ?"
        with self._lock, self._conn:
            self._conn.execute(sql, (key,))

    def scan(self, table: str, columns: Sequence[str], *,
             filters: Optional[Mapping[str, Any]] = None,
             order_by: Sequence[str] = (),
             descending: bool = False,
             limit: Optional[int] = None,
             offset: int = 0) -> Iterable[Dict[str, Any]]:
        cols = ", ".join(quote(c) for c in columns)
        sql = f"SELECT {cols} FROM {quote(table)}"
        params: List[Any] = []
        if filters:
            clauses = []
            for name, value in filters.items():
                if value is None:
                    clauses.append(f"{quote(name)} IS NULL")
                else:
                    clauses.append(f"{quote(name)} = ?")
                    params.append(value)
            sql += " WHERE " + " AND ".join(clauses)
        if order_by:
            direction = "DESC" if descending else "ASC"
            sql += " ORDER BY " + ", ".join(f"{quote(c)} {direction}" for c in order_by)
        if limit is not None or offset:
            sql += " LIMIT ? OFFSET ?"
            params.extend([-1 if limit is None else int(limit), int(offset)])
        with self._lock:
            rows = self._conn.execute(sql, params).fetchall()
        return [dict(r) for r in rows]

    def tables(self) -> List[str]:
        with self._lock:
            rows = self._conn.execute(
                "SELECT name FROM sqlite_master WHERE type='table' ORDER BY name"
            ).fetchall()
        return [r["name"] for r in rows]
