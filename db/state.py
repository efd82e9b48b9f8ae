"""
===================================
Execution state of a database session.
===================================

Holds what a Database session remembers between statements: the live
connection, the last statement and its outcome, the one-shot fail-fast
flag and the trace of every attempted statement.

Classes:
    TraceEntry: One attempted statement (query, bindings, error, elapsed time)
    ExecutionResult: Outcome of a single hit, truthy on success
    ExecutionState: Mutable per-session state, written only by Database.hit()
"""

from collections import deque
from dataclasses import dataclass, field
from typing import Any, Deque, List, Optional

from sqlalchemy.engine import Connection

from core.config import DatabaseConfig
from core.exceptions import QueryError


@dataclass(frozen=True)
class TraceEntry:
    """One attempted statement.

    Attributes:
        query: SQL text sent to the engine
        bindings: Bound values sent with it
        error: QueryError if the statement failed, None otherwise
        elapsed_ms: Wall-clock execution time in milliseconds
    """

    query: str
    bindings: Any
    error: Optional[QueryError] = None
    elapsed_ms: float = 0.0

    @property
    def failed(self) -> bool:
        return self.error is not None

    def to_dict(self) -> dict:
        """Entry as a plain dict with the keys query, bindings, error, elapsed_ms."""
        return {
            'query': self.query,
            'bindings': self.bindings,
            'error': self.error,
            'elapsed_ms': self.elapsed_ms,
        }


@dataclass
class ExecutionResult:
    """Outcome of Database.hit().

    Evaluates to True on success and False on failure, so it can be used
    wherever a success flag is expected.
    """

    success: bool
    error: Optional[QueryError] = None
    affected: int = 0
    last_id: Optional[Any] = None
    rows: List[Any] = field(default_factory=list)

    def __bool__(self) -> bool:
        return self.success


@dataclass
class ExecutionState:
    """Per-session execution state."""

    connection: Optional[Connection] = None
    config: Optional[DatabaseConfig] = None
    last_query: Optional[str] = None
    last_bindings: Any = None
    affected: int = 0
    last_id: Optional[Any] = None
    last_result: Any = None
    last_error: Optional[QueryError] = None
    fail: bool = False
    trace: Deque[TraceEntry] = field(default_factory=deque)
