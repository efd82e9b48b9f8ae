"""
=========================================
SQL rendering and result shaping package.
=========================================

This package provides the pure, side-effect free half of the database
layer: turning a query description into dialect-correct SQL text plus a
list of bound values, and turning fetched rows into records.

The package follows a clear organization:
    - dialects.py: Dialect enum, identifier quoting, LIMIT/OFFSET syntax
    - query_builder.py: SELECT and aggregate builders (_builder suffix)
    - dml.py: INSERT/UPDATE/DELETE builders
    - results.py: FetchShape/ResultContainer strategies and Collection

Architecture:
    - All builders end with '_builder' suffix (e.g., select_builder, insert_builder)
    - dml.py imports from query_builder.py (not vice versa)
    - Values are always bound as :pN parameters, never interpolated

Example:
    >>> from sql import Dialect, Placeholders, insert_builder
    >>>
    >>> placeholders = Placeholders()
    >>> insert_builder('users', [{'name': 'Ann'}], Dialect.SQLITE, placeholders)
    'INSERT INTO "users" ("name")\\nVALUES (:p1)'
    >>> placeholders.bindings
    ['Ann']
"""

__version__ = "1.0.0"
__all__ = [
    # Dialects
    'Dialect', 'quote_identifier', 'render_limit',
    # SELECT builders
    'Placeholders', 'Condition', 'ConditionGroup', 'Join',
    'select_builder', 'aggregate_builder', 'where_builder', 'pagination_builder',
    # DML builders
    'insert_builder', 'update_builder', 'delete_builder',
    # Results
    'FetchShape', 'ResultContainer', 'Collection', 'materialize',
]

from .dialects import Dialect, quote_identifier, render_limit
from .dml import delete_builder, insert_builder, update_builder
from .query_builder import (
    Condition,
    ConditionGroup,
    Join,
    Placeholders,
    aggregate_builder,
    pagination_builder,
    select_builder,
    where_builder,
)
from .results import Collection, FetchShape, ResultContainer, materialize
