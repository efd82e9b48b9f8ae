"""
=============================================
Exception taxonomy for the database layer.
=============================================

All errors raised by the connector, the query builder and the execution
layer derive from DatabaseError, so callers can catch the whole family
with a single except clause.

Classes:
    DatabaseError: Base class carrying a message and the underlying cause
    ConfigError: Unresolved or malformed connection configuration
    DatabaseConnectionError: The engine refused or failed to open
    QueryError: A statement failed to prepare or execute
    ValidationError: Malformed builder input, raised at the call site

Example:
    >>> from core.exceptions import DatabaseError, QueryError
    >>>
    >>> try:
    ...     database.fail().execute('INSERT INTO missing VALUES (1)')
    ... except QueryError as e:
    ...     print(e.kind, e.sql)
"""

from typing import Any, Optional

from sqlalchemy import exc as sa_exc


class DatabaseError(Exception):
    """Base exception for all database layer errors.

    Attributes:
        message: Human-readable error message
        cause: Original exception that triggered this error, if any
    """

    def __init__(self, message: str, cause: Optional[BaseException] = None):
        super().__init__(message)
        self.message = message
        self.cause = cause


class ConfigError(DatabaseError):
    """Exception raised when a connection configuration cannot be resolved.

    Raised for unknown preset keys, unknown dialects and missing required
    fields. Always fatal.
    """
    pass


class DatabaseConnectionError(DatabaseError):
    """Exception raised when database connection fails."""

    def __init__(
        self,
        message: str,
        dialect: Optional[str] = None,
        cause: Optional[BaseException] = None
    ):
        super().__init__(message, cause)
        self.dialect = dialect


class QueryError(DatabaseError):
    """Exception raised when a statement fails to prepare or execute.

    Attributes:
        sql: The SQL text that failed
        bindings: The bound parameter values sent with it
        kind: Coarse error category (syntax, integrity, data, operational, unknown)
    """

    def __init__(
        self,
        message: str,
        sql: Optional[str] = None,
        bindings: Any = None,
        kind: str = 'unknown',
        cause: Optional[BaseException] = None
    ):
        super().__init__(message, cause)
        self.sql = sql
        self.bindings = bindings
        self.kind = kind

    @classmethod
    def from_exception(cls, error: BaseException, sql: str, bindings: Any = None) -> 'QueryError':
        """Wrap a driver or SQLAlchemy exception.

        Args:
            error: The original exception
            sql: SQL text that was executed
            bindings: Bound values

        Returns:
            QueryError with kind derived from the exception class
        """
        if isinstance(error, sa_exc.DBAPIError) and error.orig is not None:
            message = str(error.orig)
        else:
            message = str(error)
        return cls(message, sql=sql, bindings=bindings, kind=error_kind(error), cause=error)


class ValidationError(DatabaseError):
    """Exception raised for malformed query builder input."""
    pass


def error_kind(error: BaseException) -> str:
    """Classify an exception into a coarse error kind.

    Args:
        error: Exception raised while executing a statement

    Returns:
        One of 'syntax', 'integrity', 'data', 'operational' or 'unknown'
    """
    if isinstance(error, sa_exc.IntegrityError):
        return 'integrity'
    if isinstance(error, sa_exc.DataError):
        return 'data'
    if isinstance(error, sa_exc.ProgrammingError):
        return 'syntax'
    if isinstance(error, sa_exc.OperationalError):
        # sqlite3 reports syntax errors and missing tables as OperationalError
        text = str(getattr(error, 'orig', error)).lower()
        if 'syntax error' in text or 'no such' in text:
            return 'syntax'
        return 'operational'
    return 'unknown'
