"""
============================
SQL Query Builder Utilities.
============================

This module provides low-level building blocks for constructing SELECT
queries. All builders follow the _builder naming convention and are pure
functions: the same input always renders the same SQL text and bindings.

Values are never interpolated into the SQL text. Every literal becomes a
named bind parameter (:p1, :p2, ...) handed out by a Placeholders counter,
and the value is appended to the counter's bindings list in the same order
the placeholder appears in the text.

Query Builders:
- select_builder: Build SELECT statements
- aggregate_builder: Build COUNT/MIN/MAX/AVG/SUM statements
- join_builder: Construct JOIN clauses
- where_builder: Build WHERE conditions from condition groups
- condition_builder: Render a single comparison
- order_builder / group_builder: ORDER BY and GROUP BY lists
- pagination_builder: Calculate LIMIT and OFFSET for a page

Shorthand Parsing (used by db.query.Query):
- parse_where: where()/or_where() arguments -> Condition list
- parse_columns, parse_order, parse_group, parse_join_type
- to_count: LIMIT/OFFSET validation

Usage:
    from sql.dialects import Dialect
    from sql.query_builder import Condition, ConditionGroup, Placeholders, select_builder

    placeholders = Placeholders()
    sql = select_builder(
        table='users',
        columns=['id', 'name'],
        dialect=Dialect.SQLITE,
        placeholders=placeholders,
        where=[ConditionGroup('AND', [Condition('id', '=', 5)])],
    )
    # sql == 'SELECT "id", "name"\\nFROM "users"\\nWHERE "id" = :p1'
    # placeholders.bindings == [5]
"""

import re
from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

from core.exceptions import ValidationError
from sql.dialects import Dialect, is_plain_identifier, quote_identifier, quote_table, render_limit

COMPARISON_OPERATORS = ('=', '!=', '<>', '>', '<', '>=', '<=', 'LIKE', 'NOT LIKE')
SET_OPERATORS = ('IN', 'NOT IN')
OPERATORS = COMPARISON_OPERATORS + SET_OPERATORS

JOIN_TYPES = ('INNER', 'LEFT', 'RIGHT', 'FULL', 'CROSS')
DIRECTIONS = ('ASC', 'DESC')
AGGREGATE_FUNCTIONS = ('COUNT', 'MIN', 'MAX', 'AVG', 'SUM')

# Column alias used by aggregate_builder
AGGREGATE_ALIAS = 'aggregation'


class Placeholders:
    """Hands out numbered bind parameter names and collects their values.

    Attributes:
        bindings: Bound values, in placeholder order
    """

    def __init__(self):
        self.bindings: List[Any] = []

    def add(self, value: Any) -> str:
        """Bind a value and return its placeholder."""
        self.bindings.append(value)
        return f":p{len(self.bindings)}"


@dataclass(frozen=True)
class Condition:
    """A single WHERE condition.

    Either a comparison (column, operator, value) or a raw SQL fragment
    (column=None, fragment set).
    """

    column: Optional[str] = None
    operator: str = '='
    value: Any = None
    fragment: Optional[str] = None


@dataclass(frozen=True)
class ConditionGroup:
    """Conditions added by one where()/or_where() call, ANDed together.

    Attributes:
        connector: How the group joins the previous ones (AND or OR)
        conditions: The conditions in the group
    """

    connector: str
    conditions: Tuple[Condition, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class Join:
    """A JOIN clause definition."""

    table: str
    on: Optional[str] = None
    type: str = 'INNER'


def normalize_operator(operator: str) -> str:
    """Normalize an operator string and check it is supported.

    Raises:
        ValidationError: If the operator is not supported
    """
    normalized = ' '.join(str(operator).upper().split())
    if normalized not in OPERATORS:
        raise ValidationError(f"Unsupported operator: {operator!r}")
    return normalized


def column_expression(column: str, dialect: Dialect) -> str:
    """Quote plain identifiers, leave expressions (functions, aliases, '*') as written."""
    column = column.strip()
    if column == '*' or not is_plain_identifier(column):
        return column
    return quote_identifier(column, dialect)


def condition_builder(condition: Condition, dialect: Dialect, placeholders: Placeholders) -> str:
    """
    Render a single condition.

    Args:
        condition: Condition to render
        dialect: Target dialect
        placeholders: Placeholder counter receiving the bound values

    Returns:
        SQL condition text
    """
    if condition.fragment is not None:
        return condition.fragment

    column = column_expression(condition.column, dialect)
    operator = condition.operator
    value = condition.value

    if operator in SET_OPERATORS:
        values = list(value)
        if not values:
            # IN () is invalid SQL; an empty set matches nothing
            return '1 = 0' if operator == 'IN' else '1 = 1'
        names = ", ".join(placeholders.add(item) for item in values)
        return f"{column} {operator} ({names})"

    if value is None and operator in ('=', '!=', '<>'):
        return f"{column} IS NULL" if operator == '=' else f"{column} IS NOT NULL"

    return f"{column} {operator} {placeholders.add(value)}"


def where_builder(
    groups: Sequence[ConditionGroup],
    dialect: Dialect,
    placeholders: Placeholders
) -> str:
    """
    Build WHERE clause from condition groups.

    Conditions inside a group are ANDed; groups are joined with their own
    connector. Groups with more than one condition and raw fragments are
    parenthesized when combined with other groups.

    Args:
        groups: Condition groups in call order
        dialect: Target dialect
        placeholders: Placeholder counter receiving the bound values

    Returns:
        WHERE clause without the WHERE keyword, empty if there are no conditions
    """
    groups = [group for group in groups if group.conditions]
    wrap = len(groups) > 1

    sql = ''
    for group in groups:
        parts = [condition_builder(condition, dialect, placeholders) for condition in group.conditions]
        text = " AND ".join(parts)

        if wrap and (len(parts) > 1 or group.conditions[0].fragment is not None):
            text = f"({text})"

        sql = f"{sql} {group.connector} {text}" if sql else text

    return sql


def join_builder(join: Join, dialect: Dialect) -> str:
    """
    Build a JOIN clause.

    Args:
        join: Join definition
        dialect: Target dialect

    Returns:
        SQL JOIN clause
    """
    join_clause = f"{join.type} JOIN {quote_table(join.table, dialect)}"

    if join.on:
        join_clause += f" ON {join.on}"

    return join_clause


def order_builder(order: Sequence[Tuple[str, Optional[str]]], dialect: Dialect) -> str:
    """
    Build the ORDER BY list.

    Args:
        order: (expression, direction) pairs; direction None keeps the expression as written

    Returns:
        ORDER BY list without the keyword
    """
    parts = []
    for expression, direction in order:
        expression = column_expression(expression, dialect)
        parts.append(f"{expression} {direction}" if direction else expression)
    return ", ".join(parts)


def group_builder(group: Sequence[str], dialect: Dialect) -> str:
    """Build the GROUP BY list without the keyword."""
    return ", ".join(column_expression(column, dialect) for column in group)


def _tail(
    table: str,
    dialect: Dialect,
    placeholders: Placeholders,
    joins: Optional[Sequence[Join]],
    where: Optional[Sequence[ConditionGroup]],
    group_by: Optional[Sequence[str]],
    having: Optional[Sequence[str]]
) -> str:
    sql = f"FROM {quote_table(table, dialect)}"

    for join in joins or ():
        sql += "\n" + join_builder(join, dialect)

    where_clause = where_builder(where or (), dialect, placeholders)
    if where_clause:
        sql += f"\nWHERE {where_clause}"

    if group_by:
        sql += f"\nGROUP BY {group_builder(group_by, dialect)}"

    if having:
        sql += "\nHAVING " + " AND ".join(having)

    return sql


def select_builder(
    table: str,
    columns: Sequence[str],
    dialect: Dialect,
    placeholders: Placeholders,
    joins: Optional[Sequence[Join]] = None,
    where: Optional[Sequence[ConditionGroup]] = None,
    group_by: Optional[Sequence[str]] = None,
    having: Optional[Sequence[str]] = None,
    order_by: Optional[Sequence[Tuple[str, Optional[str]]]] = None,
    limit: Optional[int] = None,
    offset: Optional[int] = None,
    distinct: bool = False
) -> str:
    """
    Build a SELECT statement with optional joins, filtering, and ordering.

    Args:
        table: Main table name (already prefixed)
        columns: Column expressions; empty means '*'
        dialect: Target dialect
        placeholders: Placeholder counter receiving the bound values
        joins: JOIN definitions
        where: WHERE condition groups
        group_by: GROUP BY columns
        having: HAVING fragments
        order_by: ORDER BY (expression, direction) pairs
        limit: LIMIT value, None for no limit
        offset: OFFSET value
        distinct: Use SELECT DISTINCT

    Returns:
        SQL SELECT statement
    """
    select_keyword = "SELECT DISTINCT" if distinct else "SELECT"
    column_clause = ", ".join(column_expression(col, dialect) for col in columns) or "*"

    sql = f"{select_keyword} {column_clause}\n"
    sql += _tail(table, dialect, placeholders, joins, where, group_by, having)

    if order_by:
        sql += f"\nORDER BY {order_builder(order_by, dialect)}"

    limit_clause = render_limit(limit, offset, dialect)
    if limit_clause:
        sql += f"\n{limit_clause}"

    return sql


def aggregate_builder(
    function: str,
    column: str,
    table: str,
    dialect: Dialect,
    placeholders: Placeholders,
    joins: Optional[Sequence[Join]] = None,
    where: Optional[Sequence[ConditionGroup]] = None,
    group_by: Optional[Sequence[str]] = None,
    having: Optional[Sequence[str]] = None
) -> str:
    """
    Build an aggregate query returning a single 'aggregation' column.

    ORDER BY and LIMIT are not rendered: they do not change the aggregate.
    GROUP BY and HAVING are rejected since they would yield one value per
    group; select the aggregate as a column for grouped results.

    Args:
        function: COUNT, MIN, MAX, AVG or SUM
        column: Column to aggregate ('*' for COUNT)
        table: Table name (already prefixed)

    Returns:
        SQL SELECT statement
    """
    function = function.upper()
    if function not in AGGREGATE_FUNCTIONS:
        raise ValidationError(f"Unsupported aggregate function: {function!r}")
    if group_by or having:
        raise ValidationError(f"{function} returns a single value and cannot be combined with GROUP BY or HAVING")

    expression = column_expression(column, dialect)
    sql = f"SELECT {function}({expression}) AS {AGGREGATE_ALIAS}\n"
    return sql + _tail(table, dialect, placeholders, joins, where, group_by, having)


def pagination_builder(page: int, page_size: int) -> Dict[str, int]:
    """
    Calculate LIMIT and OFFSET for pagination.

    Args:
        page: Page number (1-based)
        page_size: Number of records per page

    Returns:
        Dictionary with limit and offset values

    Raises:
        ValidationError: If page < 1 or page_size < 0
    """
    if page < 1:
        raise ValidationError(f"Page must be 1 or greater, got {page}")
    if page_size < 0:
        raise ValidationError(f"Page size must not be negative, got {page_size}")

    offset = (page - 1) * page_size
    return {
        'limit': page_size,
        'offset': offset
    }


# ---------------------------------------------------------------------------
# Shorthand parsing for the fluent Query interface
# ---------------------------------------------------------------------------

class Operation(str, Enum):
    """Statement kind a query renders to."""

    SELECT = 'select'
    INSERT = 'insert'
    UPDATE = 'update'
    DELETE = 'delete'
    COUNT = 'count'
    MIN = 'min'
    MAX = 'max'
    AVG = 'avg'
    SUM = 'sum'

    @property
    def is_aggregate(self) -> bool:
        return self.value.upper() in AGGREGATE_FUNCTIONS


_WHOLE_NUMBER = re.compile(r'^\s*-?\d+\s*$')

SET_TYPES = (list, tuple, set, frozenset)


def to_count(value: Any, name: str) -> int:
    """
    Validate a LIMIT/OFFSET style value.

    Args:
        value: int, integral float or numeric string
        name: Parameter name for error messages

    Returns:
        Non-negative integer

    Raises:
        ValidationError: If the value is non-numeric or negative
    """
    if isinstance(value, bool):
        raise ValidationError(f"{name} must be a whole number, got {value!r}")

    if isinstance(value, int):
        number = value
    elif isinstance(value, float) and value.is_integer():
        number = int(value)
    elif isinstance(value, str) and _WHOLE_NUMBER.match(value):
        number = int(value)
    else:
        raise ValidationError(f"{name} must be a whole number, got {value!r}")

    if number < 0:
        raise ValidationError(f"{name} must not be negative, got {number}")
    return number


def split_columns(text: str) -> List[str]:
    """Split a comma-delimited column list, ignoring commas inside parentheses."""
    columns = []
    depth = 0
    current = ''
    for char in text:
        if char == '(':
            depth += 1
        elif char == ')':
            depth = max(depth - 1, 0)
        if char == ',' and depth == 0:
            columns.append(current.strip())
            current = ''
        else:
            current += char
    columns.append(current.strip())
    return [column for column in columns if column]


def parse_columns(columns: Union[None, str, Sequence[str]]) -> List[str]:
    """
    Normalize a column selection to a list of column expressions.

    Args:
        columns: None, '*', a comma-delimited string or a sequence of strings

    Returns:
        List of column expressions, ['*'] when nothing was selected
    """
    if columns is None:
        return ['*']
    if isinstance(columns, str):
        parsed = split_columns(columns)
    else:
        parsed = []
        for column in columns:
            if not isinstance(column, str):
                raise ValidationError(f"Column names must be strings, got {column!r}")
            if column.strip():
                parsed.append(column.strip())
    return parsed or ['*']


def _comparison(column: Any, operator: str, value: Any) -> Condition:
    if not isinstance(column, str) or not is_plain_identifier(column.strip()):
        raise ValidationError(
            f"Condition column must be a plain identifier, got {column!r}; use a raw fragment for expressions"
        )

    operator = normalize_operator(operator)

    if operator in SET_OPERATORS:
        if not isinstance(value, SET_TYPES):
            raise ValidationError(f"{operator} needs a list of values, got {value!r}")
        return Condition(column.strip(), operator, tuple(value))

    if isinstance(value, SET_TYPES):
        raise ValidationError(f"Operator {operator} cannot compare against a list; use IN")

    return Condition(column.strip(), operator, value)


def _is_operator(token: Any) -> bool:
    return isinstance(token, str) and ' '.join(token.upper().split()) in OPERATORS


def _parse_sequence(items: Sequence[Any]) -> List[Condition]:
    if len(items) == 3 and _is_operator(items[0]):
        return [_comparison(items[1], items[0], items[2])]

    if len(items) == 3 and isinstance(items[0], str) and _is_operator(items[1]):
        return [_comparison(items[0], items[1], items[2])]

    if all(isinstance(item, (list, tuple, Mapping, str)) for item in items):
        conditions = []
        for item in items:
            conditions.extend(parse_where((item,)))
        return conditions

    raise ValidationError(f"Cannot parse condition: {items!r}")


def parse_where(args: Sequence[Any]) -> List[Condition]:
    """
    Parse the arguments of a where()/or_where() call into conditions.

    Accepted forms:
        where("raw SQL fragment")
        where({"column": value, ...})      # lists become IN, None becomes IS NULL
        where(["operator", "column", value])
        where(["column", "operator", value])
        where([[...], [...]])              # several triples, ANDed
        where("column", value)
        where("column", "operator", value)

    Columns must be plain identifiers (optionally table-qualified). Use the
    raw fragment form for expressions such as LOWER(name) = 'ann'.

    None, empty strings and empty containers produce no conditions.

    Args:
        args: Positional arguments given to where()

    Returns:
        Conditions to AND together (possibly empty)

    Raises:
        ValidationError: If the arguments cannot be parsed or use an unknown operator
    """
    if len(args) == 0:
        return []

    if len(args) == 2:
        column, value = args
        operator = 'IN' if isinstance(value, SET_TYPES) else '='
        return [_comparison(column, operator, value)]

    if len(args) == 3:
        return [_comparison(args[0], args[1], args[2])]

    if len(args) > 3:
        raise ValidationError(f"where() takes at most 3 arguments, got {len(args)}")

    condition = args[0]

    if condition is None:
        return []

    if isinstance(condition, str):
        fragment = condition.strip()
        return [Condition(fragment=fragment)] if fragment else []

    if isinstance(condition, Mapping):
        conditions = []
        for column, value in condition.items():
            operator = 'IN' if isinstance(value, SET_TYPES) else '='
            conditions.append(_comparison(column, operator, value))
        return conditions

    if isinstance(condition, (list, tuple)):
        return _parse_sequence(condition) if condition else []

    raise ValidationError(f"Cannot parse condition of type {type(condition).__name__}")


def _direction(direction: Any) -> str:
    normalized = str(direction).strip().upper()
    if normalized not in DIRECTIONS:
        raise ValidationError(f"Sort direction must be ASC or DESC, got {direction!r}")
    return normalized


def parse_order(spec: Any) -> List[Tuple[str, Optional[str]]]:
    """
    Normalize an ORDER BY specification.

    Args:
        spec: None, a string used as written, a mapping {column: direction},
            or a sequence of strings and (column, direction) pairs

    Returns:
        (expression, direction) pairs; direction is None for strings
    """
    if not spec:
        return []
    if isinstance(spec, str):
        return [(spec.strip(), None)]
    if isinstance(spec, Mapping):
        return [(column, _direction(direction)) for column, direction in spec.items()]

    order = []
    for item in spec:
        if isinstance(item, str):
            order.append((item.strip(), None))
        elif isinstance(item, (list, tuple)) and len(item) == 2:
            order.append((item[0], _direction(item[1])))
        else:
            raise ValidationError(f"Cannot parse order item: {item!r}")
    return order


def parse_group(spec: Any) -> List[str]:
    """Normalize a GROUP BY specification to a list of columns."""
    if not spec:
        return []
    if isinstance(spec, str):
        return split_columns(spec)
    return parse_columns(spec)


def parse_join_type(join_type: str) -> str:
    """Normalize a JOIN type ('left', 'LEFT OUTER', ...)."""
    normalized = ' '.join(str(join_type).upper().split())
    normalized = normalized.replace(' OUTER', '')
    if normalized not in JOIN_TYPES:
        raise ValidationError(f"Unsupported join type: {join_type!r}")
    return normalized
