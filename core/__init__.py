"""
=====================================
Core infrastructure for the package.
=====================================

Centralized configuration, logging and the exception taxonomy shared by
the connector, the query builder and the execution layer.

Modules:
    config: Connection presets and settings from environment variables
    logger: Centralized logging configuration and utilities
    exceptions: ConfigError, DatabaseConnectionError, QueryError, ValidationError

Example:
    >>> from core.config import config
    >>> from core.logger import get_logger
    >>>
    >>> logger = get_logger(__name__)
    >>> logger.info(f"Known presets: {sorted(config.presets)}")
"""

__version__ = "1.0.0"
__all__ = [
    'get_logger', 'setup_logging', 'get_module_logger', 'config', 'Config',
    'DatabaseConfig', 'DatabaseError', 'ConfigError', 'DatabaseConnectionError',
    'QueryError', 'ValidationError'
]

from core.config import Config, DatabaseConfig, config
from core.exceptions import (
    ConfigError,
    DatabaseConnectionError,
    DatabaseError,
    QueryError,
    ValidationError,
)
from core.logger import get_logger, get_module_logger, setup_logging
