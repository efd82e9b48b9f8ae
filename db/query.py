"""
=======================
Fluent query interface.
=======================

A Query accumulates clauses for one table and renders them through the
builders in the sql package. Clause methods validate their input at the
call site (ValidationError) and return the query itself for chaining.
Terminal methods render the statement and run it through the Database
the query belongs to.

Rendering is pure: render() and statement() never change the query, and
terminals work on copies, so a query can be rendered or executed as often
as needed. Use clone() to branch a query before adding more clauses.

Example:
    >>> users = database.table('users')
    >>> users.where({'active': True}).order('name').limit(10).all()
    >>> database.table('users').where('id', 5).select('name').first().name
    'Ann'
    >>> database.table('users').where(['>', 'age', 30]).count()
    2
"""

import copy
from typing import TYPE_CHECKING, Any, List, Mapping, Optional, Sequence, Tuple, Union

from core.exceptions import DatabaseError, ValidationError
from sql.dialects import Dialect
from sql.dml import delete_builder, insert_builder, update_builder
from sql.query_builder import (
    ConditionGroup,
    Join,
    Operation,
    Placeholders,
    aggregate_builder,
    pagination_builder,
    parse_columns,
    parse_group,
    parse_join_type,
    parse_order,
    parse_where,
    select_builder,
    to_count,
)
from sql.results import (
    FetchShape,
    ResultContainer,
    aggregate_value,
    first_or_none,
    materialize,
    scalar_column,
)

if TYPE_CHECKING:
    from db.database import Database


class Query:
    """Statement under construction for a single table.

    Attributes:
        table: Table name including the connection prefix
    """

    def __init__(
        self,
        table: str,
        database: Optional['Database'] = None,
        dialect: Optional[Dialect] = None,
        prefix: str = ''
    ):
        """Create a query.

        Args:
            table: Table name, already prefixed
            database: Session that executes the terminals
            dialect: Dialect to render for (defaults to the database's)
            prefix: Prefix applied to joined tables
        """
        if not table or not str(table).strip():
            raise ValidationError("Table name must not be empty")

        self.table = str(table).strip()
        self._database = database
        self._dialect = Dialect.parse(dialect) if dialect is not None else None
        self._prefix = prefix

        self._columns: List[str] = ['*']
        self._distinct = False
        self._joins: List[Join] = []
        self._where: List[ConditionGroup] = []
        self._group: List[str] = []
        self._having: List[str] = []
        self._order: List[Tuple[str, Optional[str]]] = []
        self._offset = 0
        self._limit: Optional[int] = None
        self._fetch = FetchShape.STRUCTURED
        self._container = ResultContainer.COLLECTION

    def __repr__(self):
        return f"Query(table={self.table!r})"

    @property
    def dialect(self) -> Dialect:
        if self._dialect is not None:
            return self._dialect
        if self._database is None:
            raise DatabaseError("Query has neither a dialect nor a database")
        return self._database.dialect

    def clone(self) -> 'Query':
        """Independent copy sharing only the database session."""
        clone = copy.copy(self)
        clone._columns = list(self._columns)
        clone._joins = list(self._joins)
        clone._where = list(self._where)
        clone._group = list(self._group)
        clone._having = list(self._having)
        clone._order = list(self._order)
        return clone

    # ---------------------------------------------------------------
    # Clauses
    # ---------------------------------------------------------------

    def select(self, columns: Union[None, str, Sequence[str]] = '*') -> 'Query':
        """Set the selected columns (comma-delimited string or sequence)."""
        self._columns = parse_columns(columns)
        return self

    def distinct(self, flag: bool = True) -> 'Query':
        self._distinct = bool(flag)
        return self

    def where(self, *args: Any) -> 'Query':
        """Add conditions, ANDed with the existing ones.

        See sql.query_builder.parse_where for the accepted forms. None or
        an empty condition is a no-op.
        """
        return self._add_conditions('AND', args)

    def or_where(self, *args: Any) -> 'Query':
        """Add conditions, ORed with the existing ones."""
        return self._add_conditions('OR', args)

    def _add_conditions(self, connector: str, args: Sequence[Any]) -> 'Query':
        conditions = parse_where(args)
        if conditions:
            self._where.append(ConditionGroup(connector, tuple(conditions)))
        return self

    def join(self, table: str, on: Optional[str] = None, type: str = 'INNER') -> 'Query':
        """Join another table; the connection prefix is applied to its name."""
        if not table or not str(table).strip():
            raise ValidationError("Join table must not be empty")
        self._joins.append(Join(self._prefix + str(table).strip(), on, parse_join_type(type)))
        return self

    def left_join(self, table: str, on: Optional[str] = None) -> 'Query':
        return self.join(table, on, 'LEFT')

    def right_join(self, table: str, on: Optional[str] = None) -> 'Query':
        return self.join(table, on, 'RIGHT')

    def order(self, spec: Any) -> 'Query':
        """Replace the ORDER BY specification."""
        self._order = parse_order(spec)
        return self

    def group(self, spec: Any) -> 'Query':
        """Replace the GROUP BY columns."""
        self._group = parse_group(spec)
        return self

    def having(self, fragment: Optional[str]) -> 'Query':
        """Add a raw HAVING condition (ANDed); empty input is a no-op."""
        if fragment and fragment.strip():
            self._having.append(fragment.strip())
        return self

    def offset(self, offset: Any) -> 'Query':
        """Set the number of rows to skip; None resets it to 0."""
        self._offset = 0 if offset is None else to_count(offset, 'offset')
        return self

    def limit(self, limit: Any) -> 'Query':
        """Set the maximum number of rows; None removes the limit, 0 returns no rows."""
        self._limit = None if limit is None else to_count(limit, 'limit')
        return self

    def page(self, page: Any, per_page: Any) -> 'Query':
        """Select one page of results (pages start at 1)."""
        pagination = pagination_builder(to_count(page, 'page'), to_count(per_page, 'per_page'))
        self._limit = pagination['limit']
        self._offset = pagination['offset']
        return self

    def fetch(self, shape: Union[FetchShape, str]) -> 'Query':
        """Choose Row objects (structured) or dicts (associative) for results."""
        self._fetch = _enum(FetchShape, shape)
        return self

    def iterator(self, container: Union[ResultContainer, str]) -> 'Query':
        """Choose a Collection or a plain list for result sets."""
        self._container = _enum(ResultContainer, container)
        return self

    # ---------------------------------------------------------------
    # Rendering
    # ---------------------------------------------------------------

    def render(self) -> Tuple[str, List[Any]]:
        """Render the SELECT statement.

        Returns:
            (sql, bindings) with bindings in placeholder order
        """
        return self.statement(Operation.SELECT)

    def statement(
        self,
        operation: Union[Operation, str] = Operation.SELECT,
        values: Any = None,
        column: str = '*'
    ) -> Tuple[str, List[Any]]:
        """Render the query as a given kind of statement.

        Args:
            operation: Statement kind
            values: Row values for INSERT (mapping or sequence of mappings) or UPDATE (mapping)
            column: Column for aggregate operations

        Returns:
            (sql, bindings)
        """
        operation = Operation(operation)
        dialect = self.dialect
        placeholders = Placeholders()

        if operation is Operation.SELECT:
            sql = select_builder(
                table=self.table,
                columns=self._columns,
                dialect=dialect,
                placeholders=placeholders,
                joins=self._joins,
                where=self._where,
                group_by=self._group,
                having=self._having,
                order_by=self._order,
                limit=self._limit,
                offset=self._offset,
                distinct=self._distinct
            )
        elif operation is Operation.INSERT:
            sql = insert_builder(self.table, _insert_rows(values), dialect, placeholders)
        elif operation is Operation.UPDATE:
            sql = update_builder(self.table, _update_values(values), dialect, placeholders, self._where)
        elif operation is Operation.DELETE:
            sql = delete_builder(self.table, dialect, placeholders, self._where)
        else:
            sql = aggregate_builder(
                operation.value,
                column,
                self.table,
                dialect,
                placeholders,
                joins=self._joins,
                where=self._where,
                group_by=self._group,
                having=self._having
            )

        return sql, placeholders.bindings

    # ---------------------------------------------------------------
    # Terminals
    # ---------------------------------------------------------------

    def _require_database(self) -> 'Database':
        if self._database is None:
            raise DatabaseError("Query is not bound to a database")
        return self._database

    def _rows(self, sql: str, bindings: List[Any], fetch: FetchShape) -> List[Any]:
        rows = self._require_database().query(sql, bindings, fetch=fetch, container=ResultContainer.RAW_LIST)
        return rows if rows is not False else []

    def all(self):
        """Run the SELECT and return every row.

        Returns:
            Collection or list (see iterator()); empty when the query failed
        """
        sql, bindings = self.render()
        result = self._require_database().query(sql, bindings, fetch=self._fetch, container=self._container)
        if result is False:
            return materialize([], self._fetch, self._container)
        return result

    def first(self):
        """Return the first row, or None when there is none or the query failed."""
        sql, bindings = self.clone().limit(1).render()
        return first_or_none(self._rows(sql, bindings, self._fetch))

    row = first
    one = first

    def column(self, name: str) -> List[Any]:
        """Return the values of one column across the matching rows."""
        sql, bindings = self.clone().select([name]).render()
        return scalar_column(self._rows(sql, bindings, FetchShape.ASSOCIATIVE), name)

    def aggregate(self, operation: Union[Operation, str], column: str = '*') -> Any:
        """Run an aggregate function over the matching rows.

        Returns:
            Scalar result; 0 for an empty or failed count, None for other aggregates
        """
        operation = _enum(Operation, operation.lower() if isinstance(operation, str) else operation)
        if not operation.is_aggregate:
            raise ValidationError(f"Not an aggregate operation: {operation.value}")
        sql, bindings = self.statement(operation, column=column)
        return aggregate_value(self._rows(sql, bindings, FetchShape.ASSOCIATIVE), operation.value)

    def count(self, column: str = '*') -> int:
        return self.aggregate(Operation.COUNT, column)

    def min(self, column: str) -> Any:
        return self.aggregate(Operation.MIN, column)

    def max(self, column: str) -> Any:
        return self.aggregate(Operation.MAX, column)

    def avg(self, column: str) -> Optional[float]:
        return self.aggregate(Operation.AVG, column)

    def sum(self, column: str) -> Any:
        return self.aggregate(Operation.SUM, column)

    def exists(self) -> bool:
        """Whether at least one row (or group, when grouped) matches."""
        if self._group or self._having:
            sql, bindings = self.clone().limit(1).render()
            return bool(self._rows(sql, bindings, FetchShape.ASSOCIATIVE))
        return self.count() > 0

    def insert(self, values: Union[Mapping[str, Any], Sequence[Mapping[str, Any]]]) -> bool:
        """Insert one row (mapping) or several rows (sequence of mappings).

        Raises:
            ValidationError: If values are empty, before anything is executed
        """
        sql, bindings = self.statement(Operation.INSERT, values=values)
        return self._require_database().execute(sql, bindings)

    def update(self, values: Mapping[str, Any]) -> bool:
        """Update the matching rows (all rows when there is no where clause)."""
        sql, bindings = self.statement(Operation.UPDATE, values=values)
        return self._require_database().execute(sql, bindings)

    def delete(self) -> bool:
        """Delete the matching rows (all rows when there is no where clause)."""
        sql, bindings = self.statement(Operation.DELETE)
        return self._require_database().execute(sql, bindings)


def _enum(enum_type, value):
    try:
        return enum_type(value)
    except ValueError as e:
        raise ValidationError(f"Invalid {enum_type.__name__}: {value!r}") from e


def _insert_rows(values: Any) -> List[Mapping[str, Any]]:
    if isinstance(values, Mapping):
        rows = [values]
    elif isinstance(values, (list, tuple)) and all(isinstance(row, Mapping) for row in values):
        rows = list(values)
    else:
        raise ValidationError("Insert values must be a mapping or a list of mappings")

    if not rows or any(not row for row in rows):
        raise ValidationError("Insert values must not be empty")
    return rows


def _update_values(values: Any) -> Mapping[str, Any]:
    if not isinstance(values, Mapping):
        raise ValidationError("Update values must be a mapping")
    if not values:
        raise ValidationError("Update values must not be empty")
    return values
