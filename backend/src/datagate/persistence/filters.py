"""Compiles where predicates into parameterised SQL.

Shared by the SQLite and PostgreSQL adapters; the dialects differ only
in placeholder style and identifier quoting. Field names are checked
against the collection's columns, so a predicate can never inject SQL.
"""

from collections.abc import Callable, Mapping
from typing import Any

from datagate.access.filters import OPERATORS, is_operator_map
from datagate.errors import FilterError


def quote_identifier(name: str) -> str:
    """Double-quote an identifier (valid in both SQLite and PostgreSQL)."""
    return '"' + name.replace('"', '""') + '"'


def _escape_like(value: str) -> str:
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


class WhereCompiler:
    """Compiles one predicate for one table.

    Args:
        columns: Column names that may be referenced
        placeholder: "?" for sqlite3, "%s" for psycopg
        encode: Converts a Python value for a column into its stored form
    """

    def __init__(
        self,
        columns: list[str],
        placeholder: str = "?",
        encode: Callable[[str, Any], Any] | None = None,
    ):
        self.columns = set(columns)
        self.placeholder = placeholder
        self.encode = encode or (lambda column, value: value)

    def compile(self, where: Mapping[str, Any] | None) -> tuple[str, list[Any]]:
        """Return (sql, params); sql is "" for an empty predicate."""
        if not where:
            return "", []
        return self._predicate(where)

    def _predicate(self, where: Mapping[str, Any]) -> tuple[str, list[Any]]:
        if not isinstance(where, Mapping):
            raise FilterError(f"Filter must be a mapping, got {type(where).__name__}")

        parts: list[str] = []
        params: list[Any] = []
        for key, condition in where.items():
            if key in ("AND", "OR", "NOT"):
                sql, values = self._combinator(key, condition)
            else:
                sql, values = self._field(key, condition)
            parts.append(sql)
            params.extend(values)

        if not parts:
            return "1 = 1", []
        if len(parts) == 1:
            return parts[0], params
        return "(" + " AND ".join(parts) + ")", params

    def _combinator(self, key: str, condition: Any) -> tuple[str, list[Any]]:
        if isinstance(condition, Mapping):
            terms = [condition]
        elif isinstance(condition, list):
            terms = condition
        else:
            raise FilterError(f"{key} expects a filter or a list of filters")

        compiled = [self._predicate(term) for term in terms]
        params = [value for _, values in compiled for value in values]
        sqls = [sql for sql, _ in compiled]

        if key == "AND":
            if not sqls:
                return "1 = 1", []
            return "(" + " AND ".join(sqls) + ")", params
        if key == "OR":
            if not sqls:
                return "1 = 0", []
            return "(" + " OR ".join(sqls) + ")", params
        if not sqls:
            return "1 = 1", []
        # NULL comparisons inside NOT count as "no match", so NOT keeps the row
        return "NOT COALESCE((" + " OR ".join(sqls) + "), FALSE)", params

    def _field(self, column: str, condition: Any) -> tuple[str, list[Any]]:
        if column not in self.columns:
            raise FilterError(f"Unknown field '{column}' in filter")

        if not is_operator_map(condition):
            if isinstance(condition, Mapping):
                unknown = [k for k in condition if k not in OPERATORS]
                raise FilterError(f"Unknown filter operator(s): {', '.join(unknown)}")
            return self._operator(column, "equals", condition)

        parts: list[str] = []
        params: list[Any] = []
        for op, operand in condition.items():
            sql, values = self._operator(column, op, operand)
            parts.append(sql)
            params.extend(values)
        if len(parts) == 1:
            return parts[0], params
        return "(" + " AND ".join(parts) + ")", params

    def _operator(self, column: str, op: str, operand: Any) -> tuple[str, list[Any]]:
        col = quote_identifier(column)
        ph = self.placeholder

        if op == "equals":
            if operand is None:
                return f"{col} IS NULL", []
            return f"{col} = {ph}", [self.encode(column, operand)]

        if op == "not":
            if isinstance(operand, Mapping):
                sql, values = self._field(column, operand)
                return f"({col} IS NULL OR NOT {sql})", values
            if operand is None:
                return f"{col} IS NOT NULL", []
            return f"({col} IS NULL OR {col} <> {ph})", [self.encode(column, operand)]

        if op in ("in", "notIn"):
            values = list(operand or [])
            non_null = [v for v in values if v is not None]
            has_null = len(non_null) != len(values)
            if op == "in":
                clauses = []
                if non_null:
                    clauses.append(f"{col} IN ({', '.join(ph for _ in non_null)})")
                if has_null:
                    clauses.append(f"{col} IS NULL")
                if not clauses:
                    return "1 = 0", []
                return "(" + " OR ".join(clauses) + ")", [self.encode(column, v) for v in non_null]
            if not values:
                return "1 = 1", []
            clause = f"{col} IS NOT NULL" if has_null else f"{col} IS NULL"
            if not non_null:
                return clause, []
            sql = f"{col} NOT IN ({', '.join(ph for _ in non_null)})"
            if has_null:
                return f"({clause} AND {sql})", [self.encode(column, v) for v in non_null]
            return f"({clause} OR {sql})", [self.encode(column, v) for v in non_null]

        if op in ("lt", "lte", "gt", "gte"):
            symbol = {"lt": "<", "lte": "<=", "gt": ">", "gte": ">="}[op]
            if operand is None:
                return "1 = 0", []
            return f"{col} {symbol} {ph}", [self.encode(column, operand)]

        if op in ("contains", "startsWith", "endsWith"):
            if not isinstance(operand, str):
                raise FilterError(f"'{op}' expects a string")
            escaped = _escape_like(operand)
            pattern = {
                "contains": f"%{escaped}%",
                "startsWith": f"{escaped}%",
                "endsWith": f"%{escaped}",
            }[op]
            return f"{col} LIKE {ph} ESCAPE '\\'", [pattern]

        raise FilterError(f"Unknown filter operator '{op}'")


def compile_order_by(
    order_by: Mapping[str, str] | list[Mapping[str, str]] | None,
    columns: list[str],
) -> str:
    """Compile {"field": "asc"|"desc"} or a list of those to ORDER BY."""
    if not order_by:
        return ""
    entries = [order_by] if isinstance(order_by, Mapping) else order_by
    parts = []
    for entry in entries:
        for column, direction in entry.items():
            if column not in columns:
                raise FilterError(f"Unknown field '{column}' in orderBy")
            if str(direction).lower() not in ("asc", "desc"):
                raise FilterError(f"Invalid sort direction '{direction}'")
            parts.append(f"{quote_identifier(column)} {str(direction).upper()}")
    return " ORDER BY " + ", ".join(parts)
