"""
==========================================
Pytest suite for sql/query_builder.py
==========================================

Sections:
---------
1. Unit tests - Builders render SQL text and bindings
2. Unit tests - Shorthand parsing (where/order/columns/join types)
3. Edge case tests - Empty sets, NULL comparisons, invalid input

Available markers:
------------------
unit, edge_case

How to Execute:
---------------
All tests:          python -m pytest tests/tests_sql/test_query_builder.py -v
By category:        python -m pytest tests/tests_sql/test_query_builder.py -m unit
"""

import pytest

from core.exceptions import ValidationError
from sql.dialects import Dialect
from sql.query_builder import (
    Condition,
    ConditionGroup,
    Join,
    Operation,
    Placeholders,
    aggregate_builder,
    condition_builder,
    join_builder,
    normalize_operator,
    order_builder,
    pagination_builder,
    parse_columns,
    parse_group,
    parse_join_type,
    parse_order,
    parse_where,
    select_builder,
    split_columns,
    to_count,
    where_builder,
)


def group(connector, *conditions):
    return ConditionGroup(connector, tuple(conditions))


# =================
# 1. BUILDER TESTS
# =================


@pytest.mark.unit
def test_placeholders_are_numbered_in_order():
    """Each bound value gets the next :pN name."""
    placeholders = Placeholders()

    assert placeholders.add('a') == ':p1'
    assert placeholders.add(None) == ':p2'
    assert placeholders.bindings == ['a', None]


@pytest.mark.unit
def test_select_builder_minimal():
    """SELECT * FROM a quoted table, clauses separated by newlines."""
    sql = select_builder('users', ['*'], Dialect.SQLITE, Placeholders())

    assert sql == 'SELECT *\nFROM "users"'


@pytest.mark.unit
def test_select_builder_with_where_order_and_limit():
    """A full SELECT binds every value in placeholder order."""
    placeholders = Placeholders()

    sql = select_builder(
        table='users',
        columns=['id', 'name'],
        dialect=Dialect.SQLITE,
        placeholders=placeholders,
        where=[group('AND', Condition('id', '=', 5), Condition('name', '=', 'Ann'))],
        order_by=[('name', 'DESC')],
        limit=10,
        offset=20,
    )

    assert sql == (
        'SELECT "id", "name"\n'
        'FROM "users"\n'
        'WHERE "id" = :p1 AND "name" = :p2\n'
        'ORDER BY "name" DESC\n'
        'LIMIT 10 OFFSET 20'
    )
    assert placeholders.bindings == [5, 'Ann']


@pytest.mark.unit
def test_select_builder_mysql_quoting_and_distinct():
    """MySQL identifiers use backticks; distinct adds SELECT DISTINCT."""
    sql = select_builder('users', ['name'], Dialect.MYSQL, Placeholders(), distinct=True)

    assert sql == 'SELECT DISTINCT `name`\nFROM `users`'


@pytest.mark.unit
def test_select_builder_keeps_expressions_verbatim():
    """Function calls and aliases are not quoted."""
    sql = select_builder('users', ['COUNT(id) AS total', 'users.name'], Dialect.POSTGRESQL, Placeholders())

    assert sql == 'SELECT COUNT(id) AS total, "users"."name"\nFROM "users"'


@pytest.mark.unit
def test_select_builder_join_group_having():
    """Joins, GROUP BY and HAVING appear in SQL clause order."""
    sql = select_builder(
        table='users',
        columns=['users.name', 'COUNT(orders.id) AS orders'],
        dialect=Dialect.SQLITE,
        placeholders=Placeholders(),
        joins=[Join('orders', 'orders.user_id = users.id', 'LEFT')],
        group_by=['users.name'],
        having=['COUNT(orders.id) > 1'],
    )

    assert sql == (
        'SELECT "users"."name", COUNT(orders.id) AS orders\n'
        'FROM "users"\n'
        'LEFT JOIN "orders" ON orders.user_id = users.id\n'
        'GROUP BY "users"."name"\n'
        'HAVING COUNT(orders.id) > 1'
    )


@pytest.mark.unit
def test_select_builder_is_deterministic():
    """Rendering the same description twice yields identical output."""
    where = [group('AND', Condition('active', '=', 1))]

    first = Placeholders()
    second = Placeholders()
    sql_a = select_builder('users', ['*'], Dialect.SQLITE, first, where=where, limit=5)
    sql_b = select_builder('users', ['*'], Dialect.SQLITE, second, where=where, limit=5)

    assert sql_a == sql_b
    assert first.bindings == second.bindings == [1]


@pytest.mark.unit
def test_aggregate_builder_count():
    """Aggregates select one column aliased 'aggregation'."""
    placeholders = Placeholders()

    sql = aggregate_builder(
        'count', '*', 'users', Dialect.SQLITE, placeholders,
        where=[group('AND', Condition('active', '=', 1))]
    )

    assert sql == 'SELECT COUNT(*) AS aggregation\nFROM "users"\nWHERE "active" = :p1'
    assert placeholders.bindings == [1]


@pytest.mark.unit
def test_aggregate_builder_quotes_column():
    """The aggregated column is identifier-quoted."""
    sql = aggregate_builder('AVG', 'age', 'users', Dialect.MYSQL, Placeholders())

    assert sql == 'SELECT AVG(`age`) AS aggregation\nFROM `users`'


@pytest.mark.unit
def test_aggregate_builder_rejects_unknown_function():
    """Only COUNT, MIN, MAX, AVG and SUM are accepted."""
    with pytest.raises(ValidationError):
        aggregate_builder('median', 'age', 'users', Dialect.SQLITE, Placeholders())


@pytest.mark.unit
def test_where_builder_or_groups_are_parenthesized():
    """Multi-condition groups and fragments are wrapped when groups are combined."""
    placeholders = Placeholders()
    groups = [
        group('AND', Condition('a', '=', 1), Condition('b', '=', 2)),
        group('OR', Condition(fragment='c > 3')),
    ]

    sql = where_builder(groups, Dialect.SQLITE, placeholders)

    assert sql == '("a" = :p1 AND "b" = :p2) OR (c > 3)'
    assert placeholders.bindings == [1, 2]


@pytest.mark.unit
def test_where_builder_single_conditions_are_not_wrapped():
    """Single comparisons joined by OR stay bare."""
    groups = [
        group('AND', Condition('id', '=', 1)),
        group('OR', Condition('id', '=', 2)),
    ]

    assert where_builder(groups, Dialect.SQLITE, Placeholders()) == '"id" = :p1 OR "id" = :p2'


@pytest.mark.unit
def test_where_builder_single_group_fragment_not_wrapped():
    """A lone raw fragment is used as written."""
    groups = [group('AND', Condition(fragment='age > 30 OR active = 1'))]

    assert where_builder(groups, Dialect.SQLITE, Placeholders()) == 'age > 30 OR active = 1'


@pytest.mark.unit
def test_condition_builder_in_list():
    """IN binds one placeholder per value."""
    placeholders = Placeholders()

    sql = condition_builder(Condition('id', 'IN', (1, 2, 3)), Dialect.SQLITE, placeholders)

    assert sql == '"id" IN (:p1, :p2, :p3)'
    assert placeholders.bindings == [1, 2, 3]


@pytest.mark.unit
def test_join_builder_without_on():
    """CROSS JOIN needs no ON clause."""
    assert join_builder(Join('tags', None, 'CROSS'), Dialect.SQLITE) == 'CROSS JOIN "tags"'


@pytest.mark.unit
def test_order_builder_mixed():
    """Strings are used as written; pairs get a direction."""
    order = [('name', 'ASC'), ('age DESC', None)]

    assert order_builder(order, Dialect.MYSQL) == '`name` ASC, age DESC'


@pytest.mark.unit
def test_pagination_builder():
    """Page 3 of 10 skips 20 rows."""
    assert pagination_builder(3, 10) == {'limit': 10, 'offset': 20}
    assert pagination_builder(1, 25) == {'limit': 25, 'offset': 0}


@pytest.mark.unit
def test_operation_is_aggregate():
    assert Operation.COUNT.is_aggregate
    assert Operation.AVG.is_aggregate
    assert not Operation.SELECT.is_aggregate
    assert not Operation.DELETE.is_aggregate


# ==================
# 2. PARSING TESTS
# ==================


@pytest.mark.unit
def test_parse_where_mapping():
    """Mapping entries become equality tests; lists become IN."""
    conditions = parse_where(({'active': 1, 'id': [1, 2]},))

    assert conditions == [Condition('active', '=', 1), Condition('id', 'IN', (1, 2))]


@pytest.mark.unit
def test_parse_where_column_value_pair():
    """where('id', 5) means id = 5."""
    assert parse_where(('id', 5)) == [Condition('id', '=', 5)]


@pytest.mark.unit
def test_parse_where_column_operator_value():
    """where('age', '>=', 30) uses the given operator."""
    assert parse_where(('age', '>=', 30)) == [Condition('age', '>=', 30)]


@pytest.mark.unit
def test_parse_where_operator_first_triple():
    """where(['>', 'age', 30]) puts the operator first."""
    assert parse_where((['>', 'age', 30],)) == [Condition('age', '>', 30)]


@pytest.mark.unit
def test_parse_where_column_first_triple():
    """where(['name', 'like', 'A%']) normalizes the operator."""
    assert parse_where((['name', 'like', 'A%'],)) == [Condition('name', 'LIKE', 'A%')]


@pytest.mark.unit
def test_parse_where_list_of_triples():
    """Several triples in one call are ANDed."""
    conditions = parse_where(([['age', '>', 20], ['=', 'active', 1]],))

    assert conditions == [Condition('age', '>', 20), Condition('active', '=', 1)]


@pytest.mark.unit
def test_parse_where_raw_fragment():
    """A string is a raw SQL fragment."""
    assert parse_where(('age > 30',)) == [Condition(fragment='age > 30')]


@pytest.mark.unit
@pytest.mark.parametrize("empty", [None, '', '   ', {}, [], ()])
def test_parse_where_empty_input_is_noop(empty):
    """None and empty conditions produce nothing."""
    assert parse_where((empty,)) == []


@pytest.mark.unit
def test_parse_columns():
    """Comma-delimited strings are split outside parentheses."""
    assert parse_columns('id, name') == ['id', 'name']
    assert parse_columns(['id', ' name ']) == ['id', 'name']
    assert parse_columns(None) == ['*']
    assert parse_columns('') == ['*']
    assert split_columns('COALESCE(a, b) AS x, id') == ['COALESCE(a, b) AS x', 'id']


@pytest.mark.unit
def test_parse_order_forms():
    """Order accepts strings, mappings and (column, direction) pairs."""
    assert parse_order('name DESC') == [('name DESC', None)]
    assert parse_order({'name': 'desc', 'id': 'ASC'}) == [('name', 'DESC'), ('id', 'ASC')]
    assert parse_order(['name', ('id', 'desc')]) == [('name', None), ('id', 'DESC')]
    assert parse_order(None) == []


@pytest.mark.unit
def test_parse_group_and_join_type():
    assert parse_group('country, city') == ['country', 'city']
    assert parse_group(['country']) == ['country']
    assert parse_join_type('left outer') == 'LEFT'
    assert parse_join_type('inner') == 'INNER'


@pytest.mark.unit
@pytest.mark.parametrize("value, expected", [(0, 0), (10, 10), ('15', 15), (3.0, 3)])
def test_to_count_accepts_whole_numbers(value, expected):
    assert to_count(value, 'limit') == expected


# ===================
# 3. EDGE CASE TESTS
# ===================


@pytest.mark.edge_case
def test_empty_in_matches_nothing():
    """IN () is invalid SQL; an empty IN renders an always-false test."""
    placeholders = Placeholders()

    assert condition_builder(Condition('id', 'IN', ()), Dialect.SQLITE, placeholders) == '1 = 0'
    assert condition_builder(Condition('id', 'NOT IN', ()), Dialect.SQLITE, placeholders) == '1 = 1'
    assert placeholders.bindings == []


@pytest.mark.edge_case
def test_none_equality_renders_is_null():
    """Comparing to None uses IS NULL / IS NOT NULL and binds nothing."""
    placeholders = Placeholders()

    assert condition_builder(Condition('email', '=', None), Dialect.SQLITE, placeholders) == '"email" IS NULL'
    assert condition_builder(Condition('email', '!=', None), Dialect.SQLITE, placeholders) == '"email" IS NOT NULL'
    assert placeholders.bindings == []


@pytest.mark.edge_case
def test_values_are_never_interpolated():
    """Hostile values only ever appear in the bindings."""
    placeholders = Placeholders()
    hostile = "x'; DROP TABLE users; --"

    sql = select_builder(
        'users', ['*'], Dialect.SQLITE, placeholders,
        where=[group('AND', Condition('name', '=', hostile))]
    )

    assert hostile not in sql
    assert placeholders.bindings == [hostile]


@pytest.mark.edge_case
@pytest.mark.parametrize("value", [-1, '-5', 'ten', 2.5, True, None, [3]])
def test_to_count_rejects_invalid(value):
    """Negative, fractional, boolean and non-numeric values are rejected."""
    with pytest.raises(ValidationError):
        to_count(value, 'limit')


@pytest.mark.edge_case
def test_unknown_operator_rejected():
    with pytest.raises(ValidationError):
        normalize_operator('===')
    with pytest.raises(ValidationError):
        parse_where(('age', 'BETWEEN', 3))


@pytest.mark.edge_case
def test_in_requires_a_list_and_comparisons_reject_lists():
    with pytest.raises(ValidationError):
        parse_where(('id', 'IN', 5))
    with pytest.raises(ValidationError):
        parse_where(('id', '>', [1, 2]))


@pytest.mark.edge_case
def test_where_rejects_unparseable_input():
    with pytest.raises(ValidationError):
        parse_where(('a', '=', 1, 'extra'))
    with pytest.raises(ValidationError):
        parse_where((42,))
    with pytest.raises(ValidationError):
        parse_where((['id', 5],))


@pytest.mark.edge_case
def test_pagination_rejects_page_zero():
    with pytest.raises(ValidationError):
        pagination_builder(0, 10)


@pytest.mark.edge_case
def test_invalid_order_direction_and_join_type():
    with pytest.raises(ValidationError):
        parse_order({'name': 'sideways'})
    with pytest.raises(ValidationError):
        parse_join_type('diagonal')


@pytest.mark.edge_case
@pytest.mark.parametrize("args", [
    ({"1=1 OR name": "x"},),
    ({"name = 'a' --": "x"},),
    (["name) OR (1", "=", 1],),
    (["=", "id; DROP TABLE users", 1],),
    ("LOWER(name)", "ann"),
])
def test_where_columns_must_be_plain_identifiers(args):
    """Mapping keys and triple columns are never pasted into the SQL as-is."""
    with pytest.raises(ValidationError, match="plain identifier"):
        parse_where(args)


@pytest.mark.edge_case
def test_where_accepts_qualified_columns_and_fragments():
    assert parse_where(({'users.name': 'Ann'},)) == [Condition('users.name', '=', 'Ann')]
    assert parse_where(("LOWER(name) = 'ann'",)) == [Condition(fragment="LOWER(name) = 'ann'")]


@pytest.mark.edge_case
@pytest.mark.parametrize("grouping", [
    {'group_by': ['active']},
    {'having': ['COUNT(*) > 1']},
])
def test_aggregate_builder_rejects_grouping(grouping):
    """A scalar aggregate cannot be split into groups."""
    with pytest.raises(ValidationError, match="GROUP BY or HAVING"):
        aggregate_builder('COUNT', '*', 'users', Dialect.SQLITE, Placeholders(), **grouping)
