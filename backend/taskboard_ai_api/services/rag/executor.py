from __future__ import annotations

from contextlib import closing
import json
import logging
import sqlite3
from typing import Any

from .catalog import open_read_connection
from .errors import QueryExecutionError, UnsupportedStorageError
from .sql_guard import validate_read_only_sql


logger = logging.getLogger(__name__)

SUPPORTED_DB_TYPES = {"sqlite3", "sqlite"}


def _native(value: Any) -> Any:
    if isinstance(value, (bytes, bytearray, memoryview)):
        return bytes(value).decode("utf-8", errors="replace")
    return value


def serialize_result_set(rows: list[dict[str, Any]]) -> str:
    return json.dumps(rows, ensure_ascii=False)


def parse_result_set(text: str) -> list[dict[str, Any]]:
    data = json.loads(text)
    if not isinstance(data, list):
        raise ValueError("result set must be a JSON array")
    return [row for row in data if isinstance(row, dict)]


class QueryExecutor:
    def __init__(self, *, db_type: str, db_path: str, busy_timeout_ms: int = 5000) -> None:
        self._db_type = (db_type or "").strip().lower()
        self._db_path = db_path
        self._busy_timeout_ms = busy_timeout_ms

    def fetch(self, sql: str) -> list[dict[str, Any]]:
        if self._db_type not in SUPPORTED_DB_TYPES:
            logger.error("query execution unsupported db_type=%s", self._db_type)
            raise UnsupportedStorageError(self._db_type)

        validate_read_only_sql(sql)

        try:
            with closing(open_read_connection(self._db_path, self._busy_timeout_ms)) as conn:
                cur = conn.execute(sql)
                cols = [d[0] for d in cur.description or []]
                rows = [{col: _native(v) for col, v in zip(cols, r)} for r in cur.fetchall()]
        except sqlite3.Error as e:
            logger.error("query execution failed sql=%r error=%s", sql, e)
            raise QueryExecutionError(f"SQL执行失败：{e}") from e

        logger.debug("query executed row_count=%d", len(rows))
        return rows

    def execute(self, sql: str) -> str:
        """Run one validated SELECT and return its rows as a JSON array text."""

        return serialize_result_set(self.fetch(sql))
