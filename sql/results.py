"""
=================================
Result shaping for executed SQL.
=================================

Turns the rows fetched from a statement into the shape the caller asked
for. The shape is chosen from two closed enumerations instead of strings:

    FetchShape.STRUCTURED   -> SQLAlchemy Row objects (row.name, row[0])
    FetchShape.ASSOCIATIVE  -> plain dicts (row['name'])

    ResultContainer.COLLECTION -> Collection (first(), pluck(), to_frame())
    ResultContainer.RAW_LIST   -> list

Aggregate policy:
    count -> int, 0 when nothing matched
    min/max/avg/sum -> None when nothing matched
    avg -> float; Decimal values from the driver are returned as float

Example:
    >>> from sql.results import FetchShape, ResultContainer, materialize
    >>>
    >>> rows = connection.execute(text('SELECT id, name FROM users')).all()
    >>> users = materialize(rows, FetchShape.ASSOCIATIVE, ResultContainer.COLLECTION)
    >>> users.pluck('name')
    ['Ann', 'Bob']
"""

from collections.abc import Mapping, Sequence
from decimal import Decimal
from enum import Enum
from typing import Any, Iterable, List, Optional

import pandas as pd


class FetchShape(Enum):
    """How each row is represented."""

    STRUCTURED = 'structured'
    ASSOCIATIVE = 'associative'


class ResultContainer(Enum):
    """What holds the rows."""

    COLLECTION = 'collection'
    RAW_LIST = 'raw_list'


class Collection(Sequence):
    """Read-only sequence of result records with a few helpers.

    Example:
        >>> users = Collection([{'id': 1, 'name': 'Ann'}, {'id': 2, 'name': 'Bob'}])
        >>> users.first()['name']
        'Ann'
        >>> users.pluck('id')
        [1, 2]
    """

    def __init__(self, items: Iterable[Any] = ()):
        self._items = list(items)

    def __getitem__(self, index):
        if isinstance(index, slice):
            return Collection(self._items[index])
        return self._items[index]

    def __len__(self):
        return len(self._items)

    def __eq__(self, other):
        if isinstance(other, Collection):
            return self._items == other._items
        if isinstance(other, list):
            return self._items == other
        return NotImplemented

    def __repr__(self):
        return f"Collection({self._items!r})"

    def first(self) -> Optional[Any]:
        """First record, or None when empty."""
        return self._items[0] if self._items else None

    def last(self) -> Optional[Any]:
        """Last record, or None when empty."""
        return self._items[-1] if self._items else None

    def pluck(self, column: str) -> List[Any]:
        """Values of one column across all records."""
        return scalar_column(self._items, column)

    def to_dicts(self) -> List[dict]:
        """Records as plain dicts."""
        return [dict(as_mapping(item)) for item in self._items]

    def to_frame(self) -> pd.DataFrame:
        """Records as a pandas DataFrame, one row per record."""
        return pd.DataFrame(self.to_dicts())


def as_mapping(row: Any) -> Mapping:
    """Get a column → value view of a Row or dict.

    Raises:
        TypeError: If the row has no mapping view
    """
    if isinstance(row, Mapping):
        return row
    mapping = getattr(row, '_mapping', None)
    if mapping is None:
        raise TypeError(f"Cannot read columns from {type(row).__name__}")
    return mapping


def structured(rows: Iterable[Any], shape: FetchShape = FetchShape.STRUCTURED) -> List[Any]:
    """
    Shape rows into records.

    Args:
        rows: Fetched rows
        shape: STRUCTURED keeps the Row objects, ASSOCIATIVE converts them to dicts

    Returns:
        List of records
    """
    if shape is FetchShape.STRUCTURED:
        return list(rows)
    return [dict(as_mapping(row)) for row in rows]


def materialize(
    rows: Iterable[Any],
    shape: FetchShape = FetchShape.STRUCTURED,
    container: ResultContainer = ResultContainer.COLLECTION
):
    """Shape rows and wrap them in the requested container."""
    records = structured(rows, shape)
    if container is ResultContainer.COLLECTION:
        return Collection(records)
    return records


def scalar_column(rows: Iterable[Any], column: str) -> List[Any]:
    """
    Extract one column's values across all rows.

    A qualified name such as 'users.name' falls back to the bare column
    name, which is how drivers label it in the result.

    Args:
        rows: Fetched rows or records
        column: Column name

    Returns:
        Column values in row order
    """
    values = []
    for row in rows:
        mapping = as_mapping(row)
        if column in mapping:
            values.append(mapping[column])
        else:
            values.append(mapping[column.rsplit('.', 1)[-1]])
    return values


def first_or_none(rows: Sequence, shape: FetchShape = FetchShape.STRUCTURED) -> Optional[Any]:
    """First row in the requested shape, or None for an empty result."""
    if not rows:
        return None
    return structured(rows[:1], shape)[0]


def aggregate_value(rows: Sequence, operation: str) -> Any:
    """
    Unwrap a single-row, single-column aggregate result into a scalar.

    Args:
        rows: Rows returned by an aggregate query
        operation: count, min, max, avg or sum

    Returns:
        Coerced scalar; 0 for an empty count, None for other empty aggregates
    """
    operation = operation.lower()
    value = None
    if rows:
        values = list(as_mapping(rows[0]).values())
        value = values[0] if values else None

    if operation == 'count':
        return int(value) if value is not None else 0

    if value is None:
        return None

    if operation == 'avg':
        return float(value)

    if isinstance(value, Decimal):
        return float(value)

    return value
