"""
==================================================
Database connectivity utilities.
==================================================

Resolves connection configuration (named presets or explicit parameters)
into a DatabaseConfig and opens a live SQLAlchemy connection for it.

This module does not keep any state: the execution layer in db.database
owns the connection it gets from open_connection(). There is no retry
logic here; a failed connection is reported to the caller immediately.

Key Features:
    - Preset lookup through core.config
    - Dialect aliases and required-field validation per dialect
    - One unpooled connection per session (NullPool), autocommit mode
    - Health check that never raises

Example:
    >>> from utils.database_utils import open_connection, resolve_config
    >>>
    >>> db_config = resolve_config({'dialect': 'sqlite', 'database': ':memory:'})
    >>> connection = open_connection(db_config)
    >>> connection.execute(text('SELECT 1')).scalar()
    1
"""

import logging
from pathlib import Path
from typing import Any, Mapping, Optional, Union

from sqlalchemy import create_engine, text
from sqlalchemy.engine import Connection
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.pool import NullPool, StaticPool

from core.config import DEFAULT_PRESET, DatabaseConfig, config
from core.exceptions import ConfigError, DatabaseConnectionError
from sql.dialects import Dialect

logger = logging.getLogger(__name__)

ConnectionParams = Union[None, str, Mapping[str, Any], DatabaseConfig]

# Accepted spellings for each DatabaseConfig field
KEY_ALIASES = {
    'type': 'dialect',
    'driver': 'dialect',
    'name': 'database',
    'file': 'database',
    'path': 'database',
    'username': 'user',
}

REQUIRED_FIELDS = {
    Dialect.SQLITE: ('database',),
    Dialect.MYSQL: ('host', 'database', 'user'),
    Dialect.POSTGRESQL: ('host', 'database', 'user'),
}


def resolve_config(params: ConnectionParams = None) -> DatabaseConfig:
    """
    Resolve connection parameters into a DatabaseConfig.

    Args:
        params: None for the default preset, a preset name, an explicit
            mapping of connection parameters, or a DatabaseConfig

    Returns:
        Validated, immutable DatabaseConfig

    Raises:
        ConfigError: If the preset is unknown or required fields are missing/invalid

    Example:
        >>> resolve_config({'type': 'sqlite', 'file': 'app.db', 'prefix': 'app_'}).prefix
        'app_'
    """
    if isinstance(params, DatabaseConfig):
        return params

    if params is None or isinstance(params, str):
        name = params or DEFAULT_PRESET
        preset = config.get_preset(name)
        if preset is None:
            logger.error(f"Unknown database preset: {name}")
            raise ConfigError(f"Unknown database preset: '{name}'")
        params = preset

    if not isinstance(params, Mapping):
        raise ConfigError(f"Connection parameters must be a preset name or a mapping, got {type(params).__name__}")

    values = {}
    for key, value in params.items():
        values[KEY_ALIASES.get(key, key)] = value

    if not values.get('dialect'):
        raise ConfigError("Connection parameters are missing 'dialect'")

    try:
        dialect = Dialect.parse(values['dialect'])
    except ValueError as e:
        raise ConfigError(f"Unknown database dialect: '{values['dialect']}'", cause=e) from e

    missing = [key for key in REQUIRED_FIELDS[dialect] if not values.get(key)]
    if missing:
        raise ConfigError(
            f"Missing required {dialect.value} connection parameters: {', '.join(missing)}"
        )

    port = values.get('port')
    if port is not None and port != '':
        try:
            port = int(port)
        except (TypeError, ValueError) as e:
            raise ConfigError(f"Port must be an integer, got {port!r}", cause=e) from e
    else:
        port = None

    return DatabaseConfig(
        dialect=dialect,
        database=str(values['database']),
        host=values.get('host'),
        port=port,
        user=values.get('user'),
        password=values.get('password'),
        prefix=values.get('prefix') or '',
        charset=values.get('charset')
    )


def get_connection_string(db_config: DatabaseConfig) -> str:
    """
    Render the connection URL for log messages, with the password hidden.

    Example:
        >>> get_connection_string(resolve_config({'dialect': 'mysql', 'host': 'db',
        ...                                       'database': 'shop', 'user': 'app',
        ...                                       'password': 's3cret'}))
        'mysql+mysqlconnector://app:***@db/shop'
    """
    return db_config.get_connection_url().render_as_string(hide_password=True)


def open_connection(db_config: DatabaseConfig) -> Connection:
    """
    Open a live connection for a resolved configuration.

    The engine does not pool connections and runs in autocommit mode, so
    every statement is committed as soon as it executes.

    Args:
        db_config: Resolved configuration

    Returns:
        Open SQLAlchemy Connection

    Raises:
        DatabaseConnectionError: If the SQLite file does not exist or the engine refuses the connection
    """
    url = get_connection_string(db_config)

    if db_config.is_file and not db_config.is_memory and not Path(db_config.database).is_file():
        logger.error(f"❌ Database file not found: {db_config.database}")
        raise DatabaseConnectionError(
            f"Database file not found: {db_config.database}",
            dialect=db_config.dialect.value
        )

    # An in-memory SQLite database lives as long as its single connection
    poolclass = StaticPool if db_config.is_memory else NullPool

    try:
        engine = create_engine(
            db_config.get_connection_url(),
            poolclass=poolclass,
            isolation_level='AUTOCOMMIT',
            echo=False
        )
        connection = engine.connect()
    except SQLAlchemyError as e:
        logger.error(f"❌ Could not connect to {url}: {e}")
        raise DatabaseConnectionError(
            f"Could not connect to {url}: {e}",
            dialect=db_config.dialect.value,
            cause=e
        ) from e

    logger.info(f"✅ Connected to {url}")
    return connection


def check_database_available(params: ConnectionParams = None) -> bool:
    """
    Check if a database accepts connections and answers a trivial query.

    Args:
        params: Anything resolve_config() accepts

    Returns:
        True if the database is available, False otherwise

    Example:
        >>> if check_database_available('analytics'):
        ...     print("Analytics database ready")
    """
    try:
        connection = open_connection(resolve_config(params))
    except (ConfigError, DatabaseConnectionError) as e:
        logger.debug(f"Database not available: {e}")
        return False

    try:
        connection.execute(text("SELECT 1"))
        return True
    except SQLAlchemyError as e:
        logger.debug(f"Database not available: {e}")
        return False
    finally:
        close_connection(connection)


def close_connection(connection: Optional[Connection]) -> None:
    """Close a connection and dispose of its engine."""
    if connection is None:
        return
    engine = connection.engine
    connection.close()
    engine.dispose()
