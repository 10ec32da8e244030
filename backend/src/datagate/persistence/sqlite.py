"""SQLite store adapter."""

import json
import logging
import sqlite3
from datetime import datetime
from pathlib import Path
from typing import Any

from datagate.core.types import get_storage_type
from datagate.errors import StoreError, UniqueConstraintError
from datagate.persistence.codec import (
    SINGLETON_COLUMN,
    column_types,
    new_id,
    now_iso,
    table_name,
    unique_columns,
    writable_columns,
)
from datagate.persistence.filters import WhereCompiler, compile_order_by, quote_identifier
from datagate.schema.types import CollectionSchema

logger = logging.getLogger(__name__)


class SQLiteAdapter:
    """Simple SQLite store adapter."""

    def __init__(self, db_path: Path | str = ":memory:"):
        self.db_path = str(db_path)
        self.conn: sqlite3.Connection | None = None

    def connect(self) -> None:
        """Establish database connection."""
        self.conn = sqlite3.connect(self.db_path, check_same_thread=False)
        self.conn.row_factory = sqlite3.Row
        # Match in-memory filter semantics: contains/startsWith are case-sensitive
        self.conn.execute("PRAGMA case_sensitive_like = ON")

    def close(self) -> None:
        """Close database connection."""
        if self.conn:
            self.conn.close()
            self.conn = None

    def _require_conn(self) -> sqlite3.Connection:
        if not self.conn:
            raise RuntimeError("Database not connected")
        return self.conn

    def initialize_collection(self, schema: CollectionSchema) -> None:
        """Create table for collection if it doesn't exist."""
        conn = self._require_conn()

        unique = unique_columns(schema)
        columns = []
        for column, field_type in column_types(schema).items():
            col_def = f"{quote_identifier(column)} {get_storage_type(field_type)}"
            if column == "id":
                col_def += " PRIMARY KEY"
            elif column in unique:
                col_def += " UNIQUE"
            columns.append(col_def)

        if schema.is_singleton:
            # At most one row, enforced by the database even under races
            columns.append(
                f"{quote_identifier(SINGLETON_COLUMN)} INTEGER NOT NULL DEFAULT 1 "
                f"UNIQUE CHECK ({quote_identifier(SINGLETON_COLUMN)} = 1)"
            )

        sql = (
            f"CREATE TABLE IF NOT EXISTS {quote_identifier(table_name(schema.name))} "
            f"({', '.join(columns)})"
        )
        conn.execute(sql)
        conn.commit()

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def find_unique(self, schema: CollectionSchema, id: str) -> dict[str, Any] | None:
        """Fetch a single row by id."""
        rows = self.find_many(schema, where={"id": id}, take=1)
        return rows[0] if rows else None

    def find_many(
        self,
        schema: CollectionSchema,
        where: dict[str, Any] | None = None,
        take: int | None = None,
        skip: int = 0,
        order_by: dict[str, str] | list[dict[str, str]] | None = None,
    ) -> list[dict[str, Any]]:
        """Query rows with filtering, sorting, and pagination."""
        conn = self._require_conn()
        types = column_types(schema)
        where_clause, params = self._where(schema, where)
        order_clause = compile_order_by(order_by, list(types))

        limit_clause = ""
        if take is not None:
            limit_clause = f" LIMIT {int(take)} OFFSET {int(skip or 0)}"
        elif skip:
            limit_clause = f" LIMIT -1 OFFSET {int(skip)}"

        sql = (
            f"SELECT {self._select_cols(schema)} "
            f"FROM {quote_identifier(table_name(schema.name))}"
            f"{where_clause}{order_clause}{limit_clause}"
        )
        cursor = conn.execute(sql, params)
        return [self._decode(schema, dict(row)) for row in cursor.fetchall()]

    def count(self, schema: CollectionSchema, where: dict[str, Any] | None = None) -> int:
        """Count rows matching where."""
        conn = self._require_conn()
        where_clause, params = self._where(schema, where)
        sql = f"SELECT COUNT(*) FROM {quote_identifier(table_name(schema.name))}{where_clause}"
        return conn.execute(sql, params).fetchone()[0]

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def create(self, schema: CollectionSchema, data: dict[str, Any]) -> dict[str, Any]:
        """Insert a new row.

        Returns:
            The created row with generated id and timestamps

        Raises:
            UniqueConstraintError: On unique (or singleton) violations
        """
        conn = self._require_conn()
        columns = writable_columns(schema, data)
        now = now_iso()
        record = {"id": new_id(), "createdAt": now, "updatedAt": now}
        for column in columns:
            if column not in ("createdAt", "updatedAt"):
                record[column] = data[column]

        names = list(record)
        values = [self._encode(schema, name, record[name]) for name in names]
        sql = (
            f"INSERT INTO {quote_identifier(table_name(schema.name))} "
            f"({', '.join(quote_identifier(n) for n in names)}) "
            f"VALUES ({', '.join('?' for _ in names)})"
        )
        self._execute(schema, sql, values)
        return self.find_unique(schema, record["id"])

    def update(
        self, schema: CollectionSchema, id: str, data: dict[str, Any]
    ) -> dict[str, Any] | None:
        """Update an existing row. Returns None if the row does not exist."""
        columns = [c for c in writable_columns(schema, data) if c not in ("createdAt", "updatedAt")]
        record = {column: data[column] for column in columns}
        record["updatedAt"] = now_iso()

        set_clause = ", ".join(f"{quote_identifier(c)} = ?" for c in record)
        values = [self._encode(schema, c, v) for c, v in record.items()]
        values.append(id)

        sql = (
            f"UPDATE {quote_identifier(table_name(schema.name))} "
            f"SET {set_clause} WHERE \"id\" = ?"
        )
        cursor = self._execute(schema, sql, values)
        if cursor.rowcount == 0:
            return None
        return self.find_unique(schema, id)

    def delete(self, schema: CollectionSchema, id: str) -> dict[str, Any] | None:
        """Delete a row. Returns the deleted row, or None if it did not exist."""
        row = self.find_unique(schema, id)
        if row is None:
            return None
        sql = f"DELETE FROM {quote_identifier(table_name(schema.name))} WHERE \"id\" = ?"
        self._execute(schema, sql, [id])
        return row

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _execute(self, schema: CollectionSchema, sql: str, values: list[Any]) -> sqlite3.Cursor:
        conn = self._require_conn()
        try:
            cursor = conn.execute(sql, values)
            conn.commit()
            return cursor
        except sqlite3.IntegrityError as e:
            conn.rollback()
            if "UNIQUE" in str(e):
                logger.debug("Unique constraint failed on %s: %s", schema.name, e)
                raise UniqueConstraintError(schema.name, str(e)) from e
            raise StoreError(f"Integrity error on {schema.name}: {e}") from e

    def _where(self, schema: CollectionSchema, where: dict[str, Any] | None) -> tuple[str, list[Any]]:
        types = column_types(schema)
        compiler = WhereCompiler(
            list(types),
            placeholder="?",
            encode=lambda column, value: self._encode(schema, column, value, types),
        )
        sql, params = compiler.compile(where)
        if not sql:
            return "", []
        return f" WHERE {sql}", params

    def _select_cols(self, schema: CollectionSchema) -> str:
        return ", ".join(quote_identifier(c) for c in column_types(schema))

    def _encode(
        self,
        schema: CollectionSchema,
        column: str,
        value: Any,
        types: dict[str, str] | None = None,
    ) -> Any:
        if value is None:
            return None
        field_type = (types or column_types(schema)).get(column)
        if field_type == "json":
            return json.dumps(value)
        if field_type == "checkbox":
            return 1 if value else 0
        if isinstance(value, datetime):
            return value.isoformat()
        return value

    def _decode(self, schema: CollectionSchema, row: dict[str, Any]) -> dict[str, Any]:
        types = column_types(schema)
        for column, value in row.items():
            if value is None:
                continue
            field_type = types.get(column)
            if field_type == "json":
                row[column] = json.loads(value)
            elif field_type == "checkbox":
                row[column] = bool(value)
        return row
