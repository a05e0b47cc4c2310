from typing import Any, Dict, List, Optional

import psycopg2
import pytest
from psycopg2 import sql

from syntaxmap.auth import create_access_token


def render(query: Any) -> str:
    """Text of a psycopg2.sql composition, rendered without a live connection"""
    if isinstance(query, str):
        return query
    if isinstance(query, sql.Composed):
        return "".join(render(part) for part in query.seq)
    if isinstance(query, sql.SQL):
        return query.string
    if isinstance(query, sql.Identifier):
        return ".".join(f'"{s}"' for s in query.strings)
    if isinstance(query, sql.Placeholder):
        return f"%({query.name})s" if query.name else "%s"
    if isinstance(query, sql.Literal):
        value = query.wrapped
        if value is None:
            return "NULL"
        if isinstance(value, bool):
            return "true" if value else "false"
        if isinstance(value, str):
            return "'" + value.replace("'", "''") + "'"
        return str(value)
    raise TypeError(f"cannot render {query!r}")


class FakeCursor:

    def __init__(self, conn: "FakeConnection"):
        self.conn = conn
        self.rows: List[Dict[str, Any]] = []
        self.rowcount = -1
        self.closed = False

    def execute(self, query, params=None):
        text = render(query)
        self.conn.executed.append((text, params))
        result = self.conn.next_result(text)
        if isinstance(result, Exception):
            raise result
        self.rows = [dict(r) for r in result.get("rows", [])]
        self.rowcount = result.get("rowcount", len(self.rows))

    def fetchone(self) -> Optional[Dict[str, Any]]:
        return self.rows[0] if self.rows else None

    def fetchall(self) -> List[Dict[str, Any]]:
        return list(self.rows)

    def close(self):
        self.closed = True

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()
        return False


class FakeConnection:
    """Stands in for a psycopg2 connection.

    Each executed statement consumes the next scripted result: a dict with
    ``rows`` and optionally ``rowcount``, or an exception to raise. Once the
    script is exhausted every statement returns no rows.
    """

    def __init__(self, results=None):
        self.results = list(results or [])
        self.executed: List[Any] = []
        self.commits = 0
        self.rollbacks = 0

    def script(self, *results):
        self.results.extend(results)
        return self

    def next_result(self, text: str):
        if self.results:
            return self.results.pop(0)
        return {"rows": []}

    def cursor(self, cursor_factory=None):
        return FakeCursor(self)

    def commit(self):
        self.commits += 1

    def rollback(self):
        self.rollbacks += 1

    @property
    def statements(self) -> List[str]:
        return [text for text, _ in self.executed]


class ClosedConnection(FakeConnection):
    """A connection the server has already dropped"""

    def cursor(self, cursor_factory=None):
        raise psycopg2.InterfaceError("connection already closed")

    def rollback(self):
        raise psycopg2.InterfaceError("connection already closed")


def rows(*items, rowcount=None):
    result = {"rows": list(items)}
    if rowcount is not None:
        result["rowcount"] = rowcount
    return result


def exists(flag=True):
    return rows({"table_exists": flag})


def bearer(user_id: str, role: int) -> Dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token(user_id, role)}"}


@pytest.fixture
def conn():
    return FakeConnection()


def inserted(conn: FakeConnection, index: int) -> Dict[str, Any]:
    """Column -> bound value of the INSERT executed at ``index``"""
    text, params = conn.executed[index]
    columns = text[text.index("(") + 1:text.index(") VALUES")]
    names = [c.strip().strip('"') for c in columns.split(",")]
    return dict(zip(names, params))
