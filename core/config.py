"""
=========================================
Configuration management for connections.
=========================================

Loads all configuration from environment variables (.env file) and provides
a centralized Config singleton for application-wide access.

Connection presets are read from the environment:

    DB_DIALECT, DB_HOST, DB_PORT, DB_NAME, DB_USER, DB_PASSWORD,
    DB_PREFIX, DB_CHARSET                 -> the 'default' preset
    DB_<NAME>_DIALECT, DB_<NAME>_HOST ... -> the '<name>' preset

DB_NAME holds the database name for client/server dialects and the file
path for SQLite. Presets can also be registered at runtime with
Config.register_preset().

Example:
    >>> from core.config import config
    >>>
    >>> config.register_preset('local', {'dialect': 'sqlite', 'database': ':memory:'})
    >>> config.get_preset('local')['dialect']
    'sqlite'
"""

import os
import re
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Union

from dotenv import load_dotenv
from sqlalchemy.engine import URL

from core.exceptions import ConfigError
from sql.dialects import Dialect, driver_name

# Load environment variables from .env file
env_path = Path(__file__).parent.parent / '.env'
load_dotenv(dotenv_path=env_path)

DEFAULT_PRESET = 'default'

# Environment suffixes and the preset keys they map to
PRESET_FIELDS = {
    'DIALECT': 'dialect',
    'HOST': 'host',
    'PORT': 'port',
    'NAME': 'database',
    'USER': 'user',
    'PASSWORD': 'password',
    'PREFIX': 'prefix',
    'CHARSET': 'charset',
}

_NAMED_PRESET = re.compile(r'^DB_([A-Z0-9_]+)_DIALECT$')


@dataclass(frozen=True)
class DatabaseConfig:
    """Resolved connection settings.

    Attributes:
        dialect: SQL dialect of the engine
        host: Server hostname (client/server dialects only)
        port: Server port, None for the driver default
        database: Database name, or file path for SQLite
        user: Database username
        password: Database password
        prefix: Prefix prepended to every table name
        charset: Connection character set (MySQL only)
    """

    dialect: Dialect
    database: str
    host: Optional[str] = None
    port: Optional[int] = None
    user: Optional[str] = None
    password: Optional[str] = None
    prefix: str = ''
    charset: Optional[str] = None

    @property
    def is_file(self) -> bool:
        """Whether the database lives in a local file."""
        return self.dialect is Dialect.SQLITE

    @property
    def is_memory(self) -> bool:
        """Whether this is an in-memory SQLite database."""
        return self.is_file and self.database == ':memory:'

    def get_connection_url(self) -> URL:
        """Get SQLAlchemy connection URL.

        Returns:
            URL built with URL.create() for the dialect's driver
        """
        query = {}
        if self.charset and self.dialect is Dialect.MYSQL:
            query['charset'] = self.charset

        if self.is_file:
            return URL.create(drivername=driver_name(self.dialect), database=self.database)

        return URL.create(
            drivername=driver_name(self.dialect),
            username=self.user,
            password=self.password,
            host=self.host,
            port=self.port,
            database=self.database,
            query=query
        )

    def get_connection_params(self) -> dict:
        """Get connection parameters as dictionary.

        Returns:
            Dictionary with every field, dialect as its string value
        """
        params = asdict(self)
        params['dialect'] = self.dialect.value
        return params


class Config:
    """Centralized configuration manager.

    Attributes:
        presets: Mapping of preset name to raw connection parameters
        log_level: Default logging level name
        trace_limit: Maximum number of trace entries kept per session (None = unbounded)
    """

    def __init__(self, environ: Optional[Mapping[str, str]] = None):
        """Initialize configuration from environment variables.

        Args:
            environ: Environment mapping to read (defaults to os.environ)
        """
        environ = os.environ if environ is None else environ

        self.presets: Dict[str, Dict[str, Any]] = self._load_presets(environ)
        self.log_level = environ.get('LOG_LEVEL', 'INFO')

        self.trace_limit = self._parse_trace_limit(environ.get('DB_TRACE_LIMIT'))

    @staticmethod
    def _parse_trace_limit(value: Optional[str]) -> Optional[int]:
        if not value:
            return None
        try:
            limit = int(value)
        except ValueError as e:
            raise ConfigError(f"DB_TRACE_LIMIT must be a non-negative integer, got {value!r}", cause=e) from e
        if limit < 0:
            raise ConfigError(f"DB_TRACE_LIMIT must be a non-negative integer, got {value!r}")
        return limit

    @staticmethod
    def _load_presets(environ: Mapping[str, str]) -> Dict[str, Dict[str, Any]]:
        presets = {}

        if environ.get('DB_DIALECT'):
            presets[DEFAULT_PRESET] = _read_preset(environ, 'DB_')

        for key in environ:
            match = _NAMED_PRESET.match(key)
            if match and environ[key]:
                name = match.group(1)
                presets[name.lower()] = _read_preset(environ, f'DB_{name}_')

        return presets

    def register_preset(self, name: str, params: Union[Mapping[str, Any], DatabaseConfig]) -> None:
        """Register or replace a named connection preset.

        Args:
            name: Preset key
            params: Connection parameters or a resolved DatabaseConfig
        """
        if isinstance(params, DatabaseConfig):
            params = params.get_connection_params()
        self.presets[name] = dict(params)

    def get_preset(self, name: str) -> Optional[Dict[str, Any]]:
        """Get a copy of a preset's raw parameters, or None if unknown."""
        preset = self.presets.get(name)
        return dict(preset) if preset is not None else None

    def has_preset(self, name: str) -> bool:
        """Check whether a preset is defined."""
        return name in self.presets


def _read_preset(environ: Mapping[str, str], prefix: str) -> Dict[str, Any]:
    params = {}
    for suffix, key in PRESET_FIELDS.items():
        value = environ.get(prefix + suffix)
        if value is not None and value != '':
            params[key] = value
    return params


# Global configuration instance
config = Config()
