"""
====================================
Execution layer for SQL statements.
====================================

A Database is one logical session: it owns a single live connection,
executes rendered or raw SQL through bound parameters, and records the
outcome of every statement (last query, affected rows, last insert id,
last error, full trace).

Failed statements are recovered by default. hit() returns a falsy
ExecutionResult, the QueryError is kept in last_error, and the terminal
methods return an empty result of their declared type. Arm fail() before
a call to have the next failure raised instead; the flag is reset after
every statement, success or failure.

Configuration and connection problems are never swallowed: ConfigError
and DatabaseConnectionError always propagate.

Example:
    >>> from db.database import Database
    >>>
    >>> with Database({'dialect': 'sqlite', 'database': ':memory:'}) as database:
    ...     database.execute('CREATE TABLE users (id INTEGER PRIMARY KEY, name TEXT)')
    ...     database.insert('users', {'name': 'Ann'})
    ...     database.last_id
    ...     database.first('users', 'name', {'id': 1}).name
    True
    True
    1
    'Ann'
"""

import logging
import re
import time
from collections import deque
from typing import Any, List, Mapping, Optional, Sequence, Union

from sqlalchemy import text
from sqlalchemy.engine import Connection
from sqlalchemy.exc import SQLAlchemyError

from core.config import DatabaseConfig, config
from core.exceptions import QueryError
from core.logger import format_bindings, format_sql
from db.query import Query
from db.state import ExecutionResult, ExecutionState, TraceEntry
from sql.dialects import Dialect, escape_string
from sql.results import FetchShape, ResultContainer, materialize
from utils.database_utils import ConnectionParams, close_connection, open_connection, resolve_config

logger = logging.getLogger(__name__)

_INSERT_STATEMENT = re.compile(r'^\s*(INSERT|REPLACE)\b', re.IGNORECASE)
_NUMBERED_PLACEHOLDER = re.compile(r'(?<![:\w]):p\d+\b')
_QUOTE_CHARACTERS = ("'", '"', '`')

Bindings = Union[None, Sequence[Any], Mapping[str, Any]]


def bind_parameters(bindings: Bindings) -> dict:
    """
    Convert bindings to the named parameters expected by text().

    A sequence is bound positionally onto :p1, :p2, ... (the names the
    builders generate); a mapping is passed through by name.

    Args:
        bindings: None, a sequence or a mapping

    Returns:
        Parameter dictionary
    """
    if not bindings:
        return {}
    if isinstance(bindings, Mapping):
        return dict(bindings)
    return {f"p{index}": value for index, value in enumerate(bindings, start=1)}


def positional_placeholders(sql: str) -> str:
    """
    Rewrite '?' placeholders to :p1, :p2, ... so a sequence can bind them.

    Question marks inside string literals and quoted identifiers are left
    alone.

    Example:
        >>> positional_placeholders("SELECT * FROM users WHERE id = ? AND name <> '?'")
        "SELECT * FROM users WHERE id = :p1 AND name <> '?'"
    """
    parts = []
    count = 0
    quote = None
    for char in sql:
        if quote:
            if char == quote:
                quote = None
        elif char in _QUOTE_CHARACTERS:
            quote = char
        elif char == '?':
            count += 1
            parts.append(f":p{count}")
            continue
        parts.append(char)
    return ''.join(parts)


class Database:
    """Database session with execution state.

    Attributes:
        params: Connection parameters used for (re)connecting
    """

    def __init__(self, params: ConnectionParams = None, trace_limit: Optional[int] = None):
        """Create a session; the connection is opened on first use.

        Args:
            params: Anything utils.database_utils.resolve_config() accepts
            trace_limit: Maximum number of trace entries kept (defaults to DB_TRACE_LIMIT, else unbounded)
        """
        self.params = params
        limit = trace_limit if trace_limit is not None else config.trace_limit
        self._state = ExecutionState(trace=deque(maxlen=limit))

    def __enter__(self) -> 'Database':
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False

    def __repr__(self):
        status = 'connected' if self.connected else 'not connected'
        return f"Database({self.config.dialect.value}, {status})" if self._state.config else f"Database({status})"

    # ---------------------------------------------------------------
    # Connection
    # ---------------------------------------------------------------

    def connect(self, params: ConnectionParams = None) -> Connection:
        """Open a connection, replacing the current one.

        Args:
            params: Connection parameters; defaults to the ones given at construction

        Returns:
            The live connection

        Raises:
            ConfigError: If the configuration cannot be resolved
            DatabaseConnectionError: If the engine refuses the connection
        """
        if params is not None:
            self.params = params

        db_config = resolve_config(self.params)
        connection = open_connection(db_config)

        close_connection(self._state.connection)
        self._state.connection = connection
        self._state.config = db_config
        return connection

    def connection(self) -> Connection:
        """Current connection, connecting first if necessary."""
        if self._state.connection is None:
            return self.connect()
        return self._state.connection

    @property
    def connected(self) -> bool:
        return self._state.connection is not None

    def close(self) -> None:
        """Close the connection; the next statement reconnects."""
        if self._state.connection is not None:
            close_connection(self._state.connection)
            self._state.connection = None
            logger.info("Database connection closed")

    @property
    def config(self) -> DatabaseConfig:
        """Resolved configuration (resolved without connecting)."""
        if self._state.config is None:
            self._state.config = resolve_config(self.params)
        return self._state.config

    @property
    def dialect(self) -> Dialect:
        return self.config.dialect

    @property
    def prefix(self) -> str:
        return self.config.prefix

    def escape(self, value: Any) -> str:
        """Escape a value for a hand-written string literal (without the quotes)."""
        return escape_string(value, self.dialect)

    def fail(self, flag: bool = True) -> 'Database':
        """Raise the next statement failure instead of swallowing it (one-shot)."""
        self._state.fail = bool(flag)
        return self

    # ---------------------------------------------------------------
    # Execution
    # ---------------------------------------------------------------

    def hit(self, sql: str, bindings: Bindings = None) -> ExecutionResult:
        """
        Execute a statement and record its outcome.

        Every call appends one trace entry and resets the fail-fast flag.

        Args:
            sql: SQL text with :name, :pN or ? placeholders
            bindings: Sequence bound onto :p1..:pN (or ? in order), or a mapping bound by name

        Returns:
            ExecutionResult, truthy on success

        Raises:
            QueryError: If the statement fails while fail() is armed
        """
        state = self._state
        bindings = [] if bindings is None else bindings

        # One-shot: consumed even when the connection cannot be opened
        fail = state.fail
        state.fail = False
        connection = self.connection()

        statement = sql
        if bindings and not isinstance(bindings, Mapping) and not _NUMBERED_PLACEHOLDER.search(sql):
            statement = positional_placeholders(sql)

        started = time.perf_counter()
        try:
            result = connection.execute(text(statement), bind_parameters(bindings))
            affected = max(result.rowcount or 0, 0)
            last_id = self._last_insert_id(connection, result, sql)
            rows = result.all() if result.returns_rows else []
            connection.commit()
            error = None
        except SQLAlchemyError as e:
            error = QueryError.from_exception(e, sql, bindings)
            affected, last_id, rows = 0, None, []
            self._rollback(connection)
        elapsed_ms = (time.perf_counter() - started) * 1000

        state.affected = affected
        state.last_id = last_id
        state.last_error = error
        state.last_query = sql
        state.last_bindings = bindings
        state.trace.append(TraceEntry(sql, bindings, error, round(elapsed_ms, 3)))

        if error is not None:
            logger.warning(f"⚠️ Query failed ({error.kind}): {error.message} | SQL: {format_sql(sql)}")
            if fail:
                raise error
            return ExecutionResult(False, error=error)

        logger.debug(
            f"SQL: {format_sql(sql)} | bindings: {format_bindings(bindings)} | "
            f"{affected} affected | {elapsed_ms:.2f} ms"
        )
        return ExecutionResult(True, affected=affected, last_id=last_id, rows=rows)

    def _last_insert_id(self, connection: Connection, result, sql: str) -> Optional[Any]:
        if not _INSERT_STATEMENT.match(sql):
            return None

        if self.dialect is Dialect.POSTGRESQL:
            # psycopg2's lastrowid is an OID; ask the session's sequence instead
            try:
                return connection.execute(text("SELECT LASTVAL()")).scalar()
            except SQLAlchemyError as e:
                logger.debug(f"No sequence value available for last insert id: {e}")
                self._rollback(connection)
                return None

        return result.lastrowid

    @staticmethod
    def _rollback(connection: Connection) -> None:
        try:
            connection.rollback()
        except SQLAlchemyError as e:
            logger.warning(f"⚠️ Rollback failed: {e}")

    def query(
        self,
        sql: str,
        bindings: Bindings = None,
        fetch: FetchShape = FetchShape.STRUCTURED,
        container: ResultContainer = ResultContainer.COLLECTION
    ):
        """
        Execute a statement that returns rows.

        Args:
            sql: SQL text
            bindings: Bound values
            fetch: Row objects (STRUCTURED) or dicts (ASSOCIATIVE)
            container: Collection or plain list

        Returns:
            Shaped rows, or False if the statement failed
        """
        result = self.hit(sql, bindings)
        if not result:
            self._state.last_result = False
            return False

        records = materialize(result.rows, fetch, container)
        self._state.last_result = records
        return records

    def execute(self, sql: str, bindings: Bindings = None) -> bool:
        """Execute a statement that returns no rows (INSERT, UPDATE, DELETE, DDL)."""
        success = bool(self.hit(sql, bindings))
        self._state.last_result = success
        return success

    # ---------------------------------------------------------------
    # State accessors
    # ---------------------------------------------------------------

    @property
    def affected(self) -> int:
        """Rows affected by the last statement (0 after a failure)."""
        return self._state.affected

    @property
    def last_id(self) -> Optional[Any]:
        """Id generated by the last INSERT, None otherwise."""
        return self._state.last_id

    @property
    def last_query(self) -> Optional[str]:
        return self._state.last_query

    @property
    def last_bindings(self) -> Any:
        return self._state.last_bindings

    @property
    def last_result(self) -> Any:
        return self._state.last_result

    @property
    def last_error(self) -> Optional[QueryError]:
        """Error of the last statement, None if it succeeded."""
        return self._state.last_error

    @property
    def trace(self) -> List[TraceEntry]:
        """Every attempted statement, oldest first."""
        return list(self._state.trace)

    def clear_trace(self) -> None:
        self._state.trace.clear()

    # ---------------------------------------------------------------
    # Table shortcuts
    # ---------------------------------------------------------------

    def table(self, name: str) -> Query:
        """Start a query on a table (the connection prefix is added)."""
        return Query(self.prefix + name, database=self, prefix=self.prefix)

    def select(self, table, columns='*', where=None, order=None, offset=0, limit=None):
        return self.table(table).select(columns).where(where).order(order).offset(offset).limit(limit).all()

    def first(self, table, columns='*', where=None, order=None):
        return self.table(table).select(columns).where(where).order(order).first()

    row = first
    one = first

    def column(self, table, column, where=None, order=None, offset=0, limit=None) -> List[Any]:
        return self.table(table).where(where).order(order).offset(offset).limit(limit).column(column)

    def insert(self, table, values) -> bool:
        return self.table(table).insert(values)

    def update(self, table, values, where=None) -> bool:
        return self.table(table).where(where).update(values)

    def delete(self, table, where=None) -> bool:
        return self.table(table).where(where).delete()

    def count(self, table, where=None) -> int:
        return self.table(table).where(where).count()

    def min(self, table, column, where=None):
        return self.table(table).where(where).min(column)

    def max(self, table, column, where=None):
        return self.table(table).where(where).max(column)

    def avg(self, table, column, where=None):
        return self.table(table).where(where).avg(column)

    def sum(self, table, column, where=None):
        return self.table(table).where(where).sum(column)
