"""
==========================================
Context-scoped access to the current session.
==========================================

Module-level functions that act on the *current* Database session, for
code that does not want to pass a session around. The current session is
stored in a ContextVar, so threads and asyncio tasks each see their own
session instead of sharing one process-wide connection and trace.

If no session has been set in the current context, the first call
connects one using the 'default' preset (DB_DIALECT, DB_NAME, ... from
the environment).

Example:
    >>> from db import facade as db
    >>>
    >>> db.connect({'dialect': 'sqlite', 'database': ':memory:'})
    >>> db.execute('CREATE TABLE users (id INTEGER PRIMARY KEY, name TEXT, active INTEGER)')
    >>> db.insert('users', {'name': 'Ann', 'active': 1})
    >>> db.count('users', {'active': 1})
    1
    >>> db.last_query()
    'SELECT COUNT(*) AS aggregation\\nFROM "users"\\nWHERE "active" = :p1'
"""

from contextlib import contextmanager
from contextvars import ContextVar
from typing import Any, Iterator, List, Optional

from db.database import Bindings, Database
from db.query import Query
from db.state import ExecutionResult, TraceEntry
from sql.results import FetchShape, ResultContainer
from utils.database_utils import ConnectionParams

_current: ContextVar[Optional[Database]] = ContextVar('current_database', default=None)


def connect(params: ConnectionParams = None, trace_limit: Optional[int] = None) -> Database:
    """Connect a new session and make it current for this context.

    The previous session is left open: a copied context may still be using
    it. Call disconnect() first to close it.

    Raises:
        ConfigError: If the configuration cannot be resolved
        DatabaseConnectionError: If the engine refuses the connection
    """
    database = Database(params, trace_limit=trace_limit)
    database.connect()
    _current.set(database)
    return database


def current() -> Database:
    """Current session, connecting the default preset if there is none."""
    database = _current.get()
    if database is None:
        database = connect()
    return database


@contextmanager
def use(database: Database) -> Iterator[Database]:
    """Temporarily make another session current.

    Example:
        >>> with use(Database('analytics')):
        ...     count('events')
    """
    token = _current.set(database)
    try:
        yield database
    finally:
        _current.reset(token)


def disconnect() -> None:
    """Close the current session and forget it."""
    database = _current.get()
    if database is not None:
        database.close()
        _current.set(None)


def connection():
    return current().connection()


def dialect():
    return current().dialect


def prefix() -> str:
    return current().prefix


def escape(value: Any) -> str:
    return current().escape(value)


def fail(flag: bool = True) -> Database:
    return current().fail(flag)


def hit(sql: str, bindings: Bindings = None) -> ExecutionResult:
    return current().hit(sql, bindings)


def query(
    sql: str,
    bindings: Bindings = None,
    fetch: FetchShape = FetchShape.STRUCTURED,
    container: ResultContainer = ResultContainer.COLLECTION
):
    return current().query(sql, bindings, fetch=fetch, container=container)


def execute(sql: str, bindings: Bindings = None) -> bool:
    return current().execute(sql, bindings)


def affected() -> int:
    return current().affected


def last_id():
    return current().last_id


def last_query() -> Optional[str]:
    return current().last_query


def last_result():
    return current().last_result


def last_error():
    return current().last_error


def trace() -> List[TraceEntry]:
    return current().trace


def clear_trace() -> None:
    current().clear_trace()


def table(name: str) -> Query:
    return current().table(name)


def select(table, columns='*', where=None, order=None, offset=0, limit=None):
    return current().select(table, columns, where, order, offset, limit)


def first(table, columns='*', where=None, order=None):
    return current().first(table, columns, where, order)


row = first
one = first


def column(table, column, where=None, order=None, offset=0, limit=None):
    return current().column(table, column, where, order, offset, limit)


def insert(table, values) -> bool:
    return current().insert(table, values)


def update(table, values, where=None) -> bool:
    return current().update(table, values, where)


def delete(table, where=None) -> bool:
    return current().delete(table, where)


def count(table, where=None) -> int:
    return current().count(table, where)


def min(table, column, where=None):
    return current().min(table, column, where)


def max(table, column, where=None):
    return current().max(table, column, where)


def avg(table, column, where=None):
    return current().avg(table, column, where)


def sum(table, column, where=None):
    return current().sum(table, column, where)
