"""
=====================================
Database sessions and fluent queries.
=====================================

The executing half of the package: sessions that own a connection and
record execution state, fluent queries bound to a session, and a
context-scoped facade over the current session.

Modules:
    database: Database session (hit/query/execute, state accessors, table shortcuts)
    query: Query, the fluent clause builder with terminal operations
    state: ExecutionState, ExecutionResult and TraceEntry
    facade: Module-level functions acting on the current session

Example:
    >>> from db import Database
    >>>
    >>> database = Database('default')
    >>> database.table('users').where({'active': True}).order('name').all()
"""

__version__ = "1.0.0"
__all__ = ['Database', 'Query', 'ExecutionResult', 'ExecutionState', 'TraceEntry', 'facade']

from db import facade
from db.database import Database
from db.query import Query
from db.state import ExecutionResult, ExecutionState, TraceEntry
