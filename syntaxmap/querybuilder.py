"""Criteria-driven SQL composition on top of ``psycopg2.sql``.

Filters follow one contract across every DAO: the values given for a single
key are OR-ed inside a parenthesised group, groups for different keys are
AND-ed together. Values always travel as bound parameters.
"""
import json
import math
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from psycopg2 import sql

from syntaxmap.errors import bad_request

_OPERATORS = {">=", "<=", ">", "<", "=", "<>"}
_DIRECTIONS = {"ASC", "DESC"}


def _column(name: str) -> sql.Composable:
    # "t.id" -> "t"."id"
    return sql.Identifier(*name.split("."))


def _text(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def split_values(value: Any) -> List[str]:
    """Normalise a criterion value into the list of elements it stands for."""
    if isinstance(value, str):
        return value.split(",")
    if isinstance(value, (list, tuple, set)):
        return [_text(v) for v in value]
    return [_text(value)]


def _is_empty(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str) and value == "":
        return True
    if isinstance(value, (list, tuple, set)) and len(value) == 0:
        return True
    return False


def _number(element: str):
    number = float(element)
    if number.is_integer():
        return int(number)
    return number


def bind_value(value: Any) -> Any:
    """Python value as it should be bound for an INSERT parameter."""
    if isinstance(value, float) and math.isnan(value):
        return None
    if isinstance(value, tuple):
        return list(value)
    if isinstance(value, dict):
        return json.dumps(value)
    return value


class QueryBuilder:

    def __init__(self, statement: sql.Composable, params: Optional[Sequence[Any]] = None):
        self._statement = statement
        self._params: List[Any] = list(params or [])
        self._conditions: List[sql.Composable] = []
        self._order: Optional[sql.Composable] = None
        self._limit: Optional[int] = None
        self._offset: Optional[int] = None

    # ---------- conditions ----------
    def where(self, column: str, value: Any, kind: Optional[str] = None) -> "QueryBuilder":
        if not column or _is_empty(value):
            return self
        parts = []
        for element in split_values(value):
            if kind == "n":
                try:
                    self._params.append(_number(element))
                except ValueError:
                    raise bad_request(f"{column} must be numeric")
                parts.append(sql.SQL("{} = %s").format(_column(column)))
            elif kind == "b":
                self._params.append(element.strip().lower() == "true")
                parts.append(sql.SQL("{} = %s").format(_column(column)))
            elif kind == "h":
                self._params.append(element)
                parts.append(sql.SQL("%s = ANY(avals({}))").format(_column(column)))
            else:
                self._params.append(element)
                parts.append(sql.SQL("{} = %s").format(_column(column)))
        self._conditions.append(sql.SQL("({})").format(sql.SQL(" OR ").join(parts)))
        return self

    def compare(self, column: str, operator: str, value: Any) -> "QueryBuilder":
        if _is_empty(value):
            return self
        if operator not in _OPERATORS:
            raise ValueError(f"unsupported operator {operator!r}")
        self._params.append(value)
        self._conditions.append(
            sql.SQL("({} {} %s)").format(_column(column), sql.SQL(operator))
        )
        return self

    def between(self, column: str, low: Any, high: Any) -> "QueryBuilder":
        self._params.extend([low, high])
        self._conditions.append(sql.SQL("({} BETWEEN %s AND %s)").format(_column(column)))
        return self

    def in_list(self, column: str, values: Iterable[Any]) -> "QueryBuilder":
        values = list(values)
        if not values:
            return self
        self._params.append(tuple(values))
        self._conditions.append(sql.SQL("({} IN %s)").format(_column(column)))
        return self

    def array_contains(self, column: str, value: Any, index: int = -1) -> "QueryBuilder":
        if _is_empty(value):
            return self
        if index < 0:
            values = value if isinstance(value, (list, tuple)) else [value]
            self._params.append(list(values))
            self._conditions.append(sql.SQL("({} @> %s)").format(_column(column)))
        else:
            self._params.append(value)
            self._conditions.append(
                sql.SQL("({}[{}] = %s)").format(_column(column), sql.Literal(int(index)))
            )
        return self

    def add_criteria(self, criteria: Dict[str, Any],
                     mapping: Dict[str, Tuple[str, Optional[str]]]) -> "QueryBuilder":
        """Apply wire-level criteria through a ``key -> (column, kind)`` mapping."""
        for key, (column, kind) in mapping.items():
            if key in criteria:
                self.where(column, criteria[key], kind)
        return self

    # ---------- ordering & paging ----------
    def order_by(self, terms: Sequence[Tuple[str, str]],
                 allowed: Optional[Iterable[str]] = None) -> "QueryBuilder":
        allowed = set(allowed) if allowed is not None else None
        parts = []
        for column, direction in terms:
            direction = (direction or "ASC").upper()
            if direction not in _DIRECTIONS:
                raise bad_request(f"Invalid order direction {direction}")
            if allowed is not None and column not in allowed:
                raise bad_request(f"Invalid order column {column}")
            parts.append(sql.SQL("{} {}").format(_column(column), sql.SQL(direction)))
        if parts:
            self._order = sql.SQL(" ORDER BY ") + sql.SQL(", ").join(parts)
        return self

    def order_random(self) -> "QueryBuilder":
        self._order = sql.SQL(" ORDER BY random()")
        return self

    def limit(self, count: Optional[int]) -> "QueryBuilder":
        if count is not None:
            self._limit = int(count)
        return self

    def offset(self, count: Optional[int]) -> "QueryBuilder":
        if count:
            self._offset = int(count)
        return self

    def build(self) -> Tuple[sql.Composed, List[Any]]:
        query = sql.Composed([self._statement])
        params = list(self._params)
        if self._conditions:
            query += sql.SQL(" WHERE ") + sql.SQL(" AND ").join(self._conditions)
        if self._order is not None:
            query += self._order
        if self._limit is not None:
            query += sql.SQL(" LIMIT %s")
            params.append(self._limit)
        if self._offset is not None:
            query += sql.SQL(" OFFSET %s")
            params.append(self._offset)
        return query, params


def insert_statement(table: str, row: Dict[str, Any],
                     returning: bool = True) -> Tuple[sql.Composed, List[Any]]:
    """INSERT ... VALUES (%s, ...) for a column -> value dict, plus its bound params."""
    columns = list(row.keys())
    query = sql.SQL("INSERT INTO {} ({}) VALUES ({})").format(
        sql.Identifier(table),
        sql.SQL(", ").join(sql.Identifier(c) for c in columns),
        sql.SQL(", ").join(sql.Placeholder() for _ in columns),
    )
    if returning:
        query += sql.SQL(" RETURNING *")
    return query, [bind_value(row[c]) for c in columns]


def update_statement(table: str, values: Dict[str, Any], key_column: str) -> sql.Composed:
    """UPDATE ... SET col = %s ... WHERE key = %s RETURNING *; key value binds last."""
    assignments = sql.SQL(", ").join(
        sql.SQL("{} = %s").format(sql.Identifier(c)) for c in values
    )
    return sql.SQL("UPDATE {} SET {} WHERE {} = %s RETURNING *").format(
        sql.Identifier(table), assignments, sql.Identifier(key_column)
    )
