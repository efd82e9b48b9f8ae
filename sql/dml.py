"""
===========================================
Data Manipulation Language (DML) Utilities.
===========================================

Builders for INSERT, UPDATE and DELETE statements. Like the SELECT
builders, every value is bound through a Placeholders counter and column
names are identifier-quoted for the target dialect.

Functions:
- insert_builder: Single or multi-row INSERT
- update_builder: UPDATE with an optional WHERE clause
- delete_builder: DELETE with an optional WHERE clause

Usage:
    from sql.dialects import Dialect
    from sql.dml import insert_builder
    from sql.query_builder import Placeholders

    placeholders = Placeholders()
    sql = insert_builder('users', [{'name': 'Ann', 'active': True}], Dialect.MYSQL, placeholders)
    # INSERT INTO `users` (`name`, `active`)
    # VALUES (:p1, :p2)
"""

from typing import Any, Mapping, Optional, Sequence

from core.exceptions import ValidationError
from sql.dialects import Dialect, quote_identifier, quote_table
from sql.query_builder import ConditionGroup, Placeholders, where_builder


def _check_columns(columns) -> None:
    for column in columns:
        if not isinstance(column, str) or not column.strip():
            raise ValidationError(f"Column names must be non-empty strings, got {column!r}")


def insert_builder(
    table: str,
    rows: Sequence[Mapping[str, Any]],
    dialect: Dialect,
    placeholders: Placeholders
) -> str:
    """
    Generate an INSERT statement for one or more rows.

    All rows must have the same columns; the column order of the first
    row is used for every row.

    Args:
        table: Table name (already prefixed)
        rows: Column → value mappings
        dialect: Target dialect
        placeholders: Placeholder counter receiving the bound values

    Returns:
        SQL INSERT statement

    Raises:
        ValidationError: If there are no rows, a row is empty, a column name is not a string or rows differ in columns
    """
    if not rows:
        raise ValidationError("Insert requires at least one row of values")

    columns = list(rows[0])
    if not columns:
        raise ValidationError("Insert values must not be empty")
    _check_columns(columns)

    for row in rows[1:]:
        if set(row) != set(columns):
            raise ValidationError("All inserted rows must have the same columns")

    column_list = ", ".join(quote_identifier(col, dialect) for col in columns)
    value_lists = []
    for row in rows:
        names = ", ".join(placeholders.add(row[col]) for col in columns)
        value_lists.append(f"({names})")

    return (
        f"INSERT INTO {quote_table(table, dialect)} ({column_list})\n"
        f"VALUES {', '.join(value_lists)}"
    )


def update_builder(
    table: str,
    values: Mapping[str, Any],
    dialect: Dialect,
    placeholders: Placeholders,
    where: Optional[Sequence[ConditionGroup]] = None
) -> str:
    """
    Generate an UPDATE statement.

    Args:
        table: Table name (already prefixed)
        values: Column → new value
        dialect: Target dialect
        placeholders: Placeholder counter receiving the bound values
        where: WHERE condition groups; without them every row is updated

    Returns:
        SQL UPDATE statement
    """
    if not values:
        raise ValidationError("Update values must not be empty")
    _check_columns(values)

    assignments = ", ".join(
        f"{quote_identifier(col, dialect)} = {placeholders.add(value)}"
        for col, value in values.items()
    )
    sql = f"UPDATE {quote_table(table, dialect)}\nSET {assignments}"

    where_clause = where_builder(where or (), dialect, placeholders)
    if where_clause:
        sql += f"\nWHERE {where_clause}"

    return sql


def delete_builder(
    table: str,
    dialect: Dialect,
    placeholders: Placeholders,
    where: Optional[Sequence[ConditionGroup]] = None
) -> str:
    """
    Generate a DELETE statement.

    Args:
        table: Table name (already prefixed)
        where: WHERE condition groups; without them every row is deleted

    Returns:
        SQL DELETE statement
    """
    sql = f"DELETE FROM {quote_table(table, dialect)}"

    where_clause = where_builder(where or (), dialect, placeholders)
    if where_clause:
        sql += f"\nWHERE {where_clause}"

    return sql
