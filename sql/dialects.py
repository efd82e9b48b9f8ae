"""
=======================
SQL dialect differences.
=======================

Everything that differs between the supported engines lives here so the
builders can stay dialect-agnostic:

- Identifier quoting (double quotes vs. backticks)
- LIMIT/OFFSET syntax when only an offset is given
- SQLAlchemy driver names

Supported dialects:
    sqlite: File-based engine (stdlib sqlite3 driver)
    mysql: Client/server engine (mysql-connector-python driver)
    postgresql: Client/server engine (psycopg2 driver)

Example:
    >>> from sql.dialects import Dialect, quote_identifier, render_limit
    >>>
    >>> quote_identifier('users.name', Dialect.MYSQL)
    '`users`.`name`'
    >>> render_limit(None, 20, Dialect.SQLITE)
    'LIMIT -1 OFFSET 20'
"""

import re
from enum import Enum
from typing import Optional


class Dialect(str, Enum):
    """Supported SQL dialects."""

    SQLITE = 'sqlite'
    MYSQL = 'mysql'
    POSTGRESQL = 'postgresql'

    @classmethod
    def parse(cls, name) -> 'Dialect':
        """Parse a dialect name, accepting common aliases.

        Args:
            name: Dialect name or Dialect member

        Returns:
            Matching Dialect

        Raises:
            ValueError: If the name is not a known dialect
        """
        if isinstance(name, cls):
            return name
        key = str(name).strip().lower()
        key = _ALIASES.get(key, key)
        return cls(key)


_ALIASES = {
    'sqlite3': 'sqlite',
    'postgres': 'postgresql',
    'pgsql': 'postgresql',
    'mariadb': 'mysql',
}

_DRIVERS = {
    Dialect.SQLITE: 'sqlite',
    Dialect.MYSQL: 'mysql+mysqlconnector',
    Dialect.POSTGRESQL: 'postgresql+psycopg2',
}

_QUOTES = {
    Dialect.SQLITE: '"',
    Dialect.MYSQL: '`',
    Dialect.POSTGRESQL: '"',
}

# Largest unsigned BIGINT; MySQL has no "no limit" keyword
MYSQL_NO_LIMIT = 18446744073709551615

_PLAIN_IDENTIFIER = re.compile(r'^[A-Za-z_][A-Za-z0-9_$]*(\.[A-Za-z_][A-Za-z0-9_$]*)?$')


def driver_name(dialect: Dialect) -> str:
    """Get the SQLAlchemy drivername for a dialect."""
    return _DRIVERS[dialect]


def is_plain_identifier(text: str) -> bool:
    """Check whether text is a bare (optionally schema/table-qualified) identifier."""
    return bool(_PLAIN_IDENTIFIER.match(text))


def quote_identifier(name: str, dialect: Dialect) -> str:
    """Quote a column or table identifier for a dialect.

    Each dot-separated part is quoted separately and embedded quote
    characters are doubled. '*' parts stay unquoted.

    Args:
        name: Identifier, e.g. 'name' or 'users.name'
        dialect: Target dialect

    Returns:
        Quoted identifier
    """
    quote = _QUOTES[dialect]
    parts = []
    for part in name.split('.'):
        part = part.strip()
        if part == '*':
            parts.append(part)
        else:
            parts.append(quote + part.replace(quote, quote * 2) + quote)
    return '.'.join(parts)


def quote_table(name: str, dialect: Dialect) -> str:
    """Quote a table name unless it is an expression (alias, implicit join)."""
    return quote_identifier(name, dialect) if is_plain_identifier(name) else name


def escape_string(value: str, dialect: Dialect) -> str:
    """Escape a string for use inside a single-quoted SQL literal (quotes not included).

    Prefer bound parameters; this is for the rare fragment that must be
    written by hand.
    """
    value = str(value)
    if dialect is Dialect.MYSQL:
        # MySQL treats backslash as an escape character inside literals
        value = value.replace('\\', '\\\\')
    return value.replace("'", "''")


def render_limit(limit: Optional[int], offset: Optional[int], dialect: Dialect) -> str:
    """
    Render the LIMIT/OFFSET tail of a SELECT statement.

    SQLite and MySQL cannot express OFFSET without LIMIT, so an explicit
    "no limit" value is used there.

    Args:
        limit: Maximum number of rows, None for no limit
        offset: Number of rows to skip, None or 0 for none
        dialect: Target dialect

    Returns:
        Clause text, empty when neither is set
    """
    if limit is None and not offset:
        return ''

    if limit is None:
        if dialect is Dialect.SQLITE:
            return f"LIMIT -1 OFFSET {offset}"
        if dialect is Dialect.MYSQL:
            return f"LIMIT {MYSQL_NO_LIMIT} OFFSET {offset}"
        return f"OFFSET {offset}"

    if offset:
        return f"LIMIT {limit} OFFSET {offset}"
    return f"LIMIT {limit}"
