"""
Shared pytest configuration and fixtures for all tests.
"""

import sys
from pathlib import Path

import pytest

# Add project root to sys.path to enable importing project modules
# This allows tests to import from 'core', 'sql', 'db', etc. without installation
project_root = Path(__file__).parent.parent
if str(project_root) not in sys.path:
    sys.path.insert(0, str(project_root))


def pytest_configure(config):
    """Register custom markers for test categorization."""
    config.addinivalue_line("markers", "unit: Unit tests - isolated function-level tests")
    config.addinivalue_line("markers", "integration: Integration tests - component interactions")
    config.addinivalue_line("markers", "smoke: Smoke tests - basic functionality checks")
    config.addinivalue_line("markers", "edge_case: Edge case tests - boundary conditions")
    config.addinivalue_line("markers", "regression: Regression tests - previously fixed bugs")
    config.addinivalue_line("markers", "system: System tests - full system behavior tests")
    config.addinivalue_line("markers", "e2e: End-to-end tests - complete workflow tests")


MEMORY_DB = {'dialect': 'sqlite', 'database': ':memory:'}

USERS = [
    {'id': 1, 'name': 'Bob', 'email': 'bob@example.com', 'active': 1, 'age': 34},
    {'id': 2, 'name': 'Cara', 'email': 'cara@example.com', 'active': 0, 'age': 28},
    {'id': 3, 'name': 'Dan', 'email': 'dan@example.com', 'active': 1, 'age': 45},
    {'id': 4, 'name': 'Eve', 'email': 'eve@example.com', 'active': 0, 'age': 22},
    {'id': 5, 'name': 'Ann', 'email': 'ann@example.com', 'active': 1, 'age': 31},
]

CREATE_USERS = (
    'CREATE TABLE {table} ('
    'id INTEGER PRIMARY KEY, '
    'name TEXT NOT NULL, '
    'email TEXT UNIQUE, '
    'active INTEGER NOT NULL DEFAULT 1, '
    'age INTEGER)'
)


@pytest.fixture
def memory_params():
    """Connection parameters for a fresh in-memory SQLite database."""
    return dict(MEMORY_DB)


@pytest.fixture
def users_db():
    """
    In-memory SQLite session with a populated 'users' table.

    Five users, three of them active (ids 1, 3, 5); id 5 is 'Ann'.
    The trace is cleared after setup so tests start from an empty trace.
    """
    from db.database import Database

    database = Database(dict(MEMORY_DB))
    assert database.execute(CREATE_USERS.format(table='users'))
    assert database.insert('users', USERS)
    database.clear_trace()

    yield database

    database.close()
