"""
==================================================
Centralized logging configuration for the package.
==================================================

Provides consistent logging setup across all modules with:
- Console and optional file output
- Colored console output with emojis
- Compact rendering of SQL statements and bound values for log lines

Statement logging happens at DEBUG level in db.database, so enable it with
setup_logging(log_level='DEBUG') to see every executed query.

Example:
    >>> from core.logger import get_logger, setup_logging
    >>>
    >>> setup_logging(log_level='DEBUG', log_file='queries.log')
    >>> logger = get_logger(__name__)
    >>> logger.debug(f"SQL: {format_sql('SELECT *\\n  FROM users')}")
"""

import logging
import sys
from pathlib import Path
from typing import Any, Optional

from core.config import config

# Longest binding value rendered in a log line before truncation
MAX_BINDING_LENGTH = 80


class ColoredFormatter(logging.Formatter):
    """Formatter with ANSI colors and emoji indicators for console output.

    Attributes:
        COLORS: Dict mapping log levels to ANSI color codes
        EMOJI: Dict mapping log levels to emoji indicators
    """

    COLORS = {
        'DEBUG': '\033[36m',      # Cyan
        'INFO': '\033[32m',       # Green
        'WARNING': '\033[33m',    # Yellow
        'ERROR': '\033[31m',      # Red
        'CRITICAL': '\033[35m',   # Magenta
        'RESET': '\033[0m'
    }

    EMOJI = {
        'DEBUG': '🔍',
        'INFO': 'ℹ️ ',
        'WARNING': '⚠️ ',
        'ERROR': '❌',
        'CRITICAL': '🔥'
    }

    def format(self, record):
        levelname = record.levelname
        record.emoji = self.EMOJI.get(levelname, '')
        if levelname in self.COLORS:
            record.levelname = f"{self.COLORS[levelname]}{levelname}{self.COLORS['RESET']}"
        try:
            return super().format(record)
        finally:
            record.levelname = levelname


def format_sql(sql: str) -> str:
    """Collapse a (possibly multi-line) SQL statement onto one line."""
    return ' '.join(sql.split())


def format_bindings(bindings: Any) -> str:
    """Render bound values for a log line, truncating long values.

    Args:
        bindings: Sequence or mapping of bound values

    Returns:
        Compact string representation
    """
    if not bindings:
        return '[]'

    def short(value):
        text = repr(value)
        if len(text) > MAX_BINDING_LENGTH:
            return text[:MAX_BINDING_LENGTH - 3] + '...'
        return text

    if isinstance(bindings, dict):
        return '{' + ', '.join(f"{key}: {short(value)}" for key, value in bindings.items()) + '}'
    return '[' + ', '.join(short(value) for value in bindings) + ']'


def get_logger(name: str, level: Optional[str] = None) -> logging.Logger:
    """Get a logger instance for the specified module.

    Args:
        name: Logger name (typically __name__ of calling module)
        level: Optional logging level override (DEBUG/INFO/WARNING/ERROR/CRITICAL)

    Returns:
        Configured Logger instance
    """
    logger = logging.getLogger(name)

    if level:
        logger.setLevel(getattr(logging, level.upper()))

    return logger


def setup_logging(
    log_level: Optional[str] = None,
    log_file: Optional[str] = None,
    log_dir: Optional[str] = None,
    console_output: bool = True,
    use_colors: bool = True
) -> None:
    """Setup centralized logging configuration.

    Configures the root logger with console and/or file handlers.

    Args:
        log_level: Logging level (defaults to LOG_LEVEL from the environment)
        log_file: Optional log file name (e.g., 'queries.log')
        log_dir: Optional log directory path (defaults to 'logs/')
        console_output: If True, output to console (stdout)
        use_colors: If True, use colored output for console
    """
    level = getattr(logging, (log_level or config.log_level).upper())

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers.clear()

    if console_output:
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setLevel(level)

        if use_colors:
            console_formatter = ColoredFormatter(
                '%(emoji)s %(asctime)s - %(name)s - %(levelname)s - %(message)s',
                datefmt='%Y-%m-%d %H:%M:%S'
            )
        else:
            console_formatter = logging.Formatter(
                '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
                datefmt='%Y-%m-%d %H:%M:%S'
            )

        console_handler.setFormatter(console_formatter)
        root_logger.addHandler(console_handler)

    if log_file:
        log_path = Path(log_dir) if log_dir else Path('logs')
        log_path.mkdir(parents=True, exist_ok=True)

        file_handler = logging.FileHandler(log_path / log_file, encoding='utf-8')
        file_handler.setLevel(level)
        file_handler.setFormatter(logging.Formatter(
            '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S'
        ))
        root_logger.addHandler(file_handler)


def get_module_logger(module_name: str) -> logging.Logger:
    """Get a logger for a specific module (alias of logging.getLogger)."""
    return logging.getLogger(module_name)


def _init_default_logging():
    """Initialize default logging if the application has not configured any."""
    if not logging.getLogger().handlers:
        setup_logging(console_output=True, use_colors=True)


# Auto-initialize on import
_init_default_logging()
