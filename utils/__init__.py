"""
==========================
Utility Functions Package.
==========================

Connection helpers shared by the execution layer.

Modules:
    database_utils: Configuration resolution, connection opening and health checks
"""

__version__ = "1.0.0"
__all__ = [
    'resolve_config',
    'open_connection',
    'close_connection',
    'get_connection_string',
    'check_database_available'
]

from .database_utils import (
    check_database_available,
    close_connection,
    get_connection_string,
    open_connection,
    resolve_config,
)
