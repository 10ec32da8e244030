"""PostgreSQL store adapter.

Uses psycopg v3 (psycopg[binary]>=3.1.0) for database access.
Mirrors SQLiteAdapter method-for-method with PostgreSQL-specific SQL:
  - %s placeholders instead of ?
  - native BOOLEAN and JSONB columns
  - dict_row cursor factory for dict-based row access

Identifier quoting strategy
----------------------------
PostgreSQL folds unquoted identifiers to lowercase. datagate uses
camelCase field names (e.g. ``authorId``, ``createdAt``), so every
table name and column name in DDL and DML is double-quoted to preserve
the original casing and avoid conflicts with reserved words such as
``user``, ``order`` and ``group``.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any

import psycopg
from psycopg.rows import dict_row
from psycopg.types.json import Jsonb

from datagate.core.types import get_pg_type
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


class PostgreSQLAdapter:
    """PostgreSQL store adapter using psycopg v3."""

    def __init__(self, url: str):
        # psycopg.connect() wants a plain libpq DSN or postgres:// URL,
        # so strip the +psycopg driver suffix when present.
        self.url = url.replace("postgresql+psycopg://", "postgresql://")
        self.conn: Any = None

    def connect(self) -> None:
        """Establish database connection."""
        self.conn = psycopg.connect(self.url, row_factory=dict_row)
        self.conn.autocommit = False

    def close(self) -> None:
        """Close database connection."""
        if self.conn:
            self.conn.close()
            self.conn = None

    def _require_conn(self) -> Any:
        if not self.conn:
            raise RuntimeError("Database not connected")
        return self.conn

    def _table(self, schema: CollectionSchema) -> str:
        return quote_identifier(table_name(schema.name))

    # ------------------------------------------------------------------
    # Collection initialization
    # ------------------------------------------------------------------

    def initialize_collection(self, schema: CollectionSchema) -> None:
        """Create table for collection if it doesn't exist."""
        conn = self._require_conn()

        unique = unique_columns(schema)
        columns = []
        for column, field_type in column_types(schema).items():
            col_def = f"{quote_identifier(column)} {get_pg_type(field_type)}"
            if column == "id":
                col_def += " PRIMARY KEY"
            elif column in unique:
                col_def += " UNIQUE"
            columns.append(col_def)

        if schema.is_singleton:
            columns.append(
                f"{quote_identifier(SINGLETON_COLUMN)} INTEGER NOT NULL DEFAULT 1 "
                f"UNIQUE CHECK ({quote_identifier(SINGLETON_COLUMN)} = 1)"
            )

        conn.execute(f"CREATE TABLE IF NOT EXISTS {self._table(schema)} ({', '.join(columns)})")
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
            limit_clause = f" LIMIT {int(take)}"
        if skip:
            limit_clause += f" OFFSET {int(skip)}"

        select_cols = ", ".join(quote_identifier(c) for c in types)
        sql = f"SELECT {select_cols} FROM {self._table(schema)}{where_clause}{order_clause}{limit_clause}"
        try:
            rows = conn.execute(sql, params).fetchall()
            conn.commit()
        except psycopg.Error:
            conn.rollback()
            raise
        return [dict(row) for row in rows]

    def count(self, schema: CollectionSchema, where: dict[str, Any] | None = None) -> int:
        """Count rows matching where."""
        conn = self._require_conn()
        where_clause, params = self._where(schema, where)
        sql = f'SELECT COUNT(*) AS "count" FROM {self._table(schema)}{where_clause}'
        try:
            row = conn.execute(sql, params).fetchone()
            conn.commit()
        except psycopg.Error:
            conn.rollback()
            raise
        return row["count"]

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def create(self, schema: CollectionSchema, data: dict[str, Any]) -> dict[str, Any]:
        """Insert a new row.

        Raises:
            UniqueConstraintError: On unique (or singleton) violations
        """
        columns = writable_columns(schema, data)
        now = now_iso()
        record = {"id": new_id(), "createdAt": now, "updatedAt": now}
        for column in columns:
            if column not in ("createdAt", "updatedAt"):
                record[column] = data[column]

        names = list(record)
        values = [self._encode(schema, name, record[name]) for name in names]
        sql = (
            f"INSERT INTO {self._table(schema)} "
            f"({', '.join(quote_identifier(n) for n in names)}) "
            f"VALUES ({', '.join('%s' for _ in names)})"
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

        set_clause = ", ".join(f"{quote_identifier(c)} = %s" for c in record)
        values = [self._encode(schema, c, v) for c, v in record.items()]
        values.append(id)

        sql = f'UPDATE {self._table(schema)} SET {set_clause} WHERE "id" = %s'
        cursor = self._execute(schema, sql, values)
        if cursor.rowcount == 0:
            return None
        return self.find_unique(schema, id)

    def delete(self, schema: CollectionSchema, id: str) -> dict[str, Any] | None:
        """Delete a row. Returns the deleted row, or None if it did not exist."""
        row = self.find_unique(schema, id)
        if row is None:
            return None
        self._execute(schema, f'DELETE FROM {self._table(schema)} WHERE "id" = %s', [id])
        return row

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _execute(self, schema: CollectionSchema, sql: str, values: list[Any]) -> Any:
        conn = self._require_conn()
        try:
            cursor = conn.execute(sql, values)
            conn.commit()
            return cursor
        except psycopg.errors.UniqueViolation as e:
            conn.rollback()
            logger.debug("Unique constraint failed on %s: %s", schema.name, e)
            raise UniqueConstraintError(schema.name, str(e)) from e
        except psycopg.IntegrityError as e:
            conn.rollback()
            raise StoreError(f"Integrity error on {schema.name}: {e}") from e

    def _where(self, schema: CollectionSchema, where: dict[str, Any] | None) -> tuple[str, list[Any]]:
        types = column_types(schema)
        compiler = WhereCompiler(
            list(types),
            placeholder="%s",
            encode=lambda column, value: self._encode(schema, column, value, types),
        )
        sql, params = compiler.compile(where)
        if not sql:
            return "", []
        return f" WHERE {sql}", params

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
            return Jsonb(value)
        if field_type == "checkbox":
            return bool(value)
        if isinstance(value, datetime):
            return value.isoformat()
        return value
