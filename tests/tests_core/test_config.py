"""
==========================================
Pytest suite for core/config.py
==========================================

Sections:
---------
1. Unit tests - Preset loading from environment mappings
2. Unit tests - DatabaseConfig URLs and parameters
3. Edge case tests - Empty values and runtime registration

Available markers:
------------------
unit, edge_case

How to Execute:
---------------
All tests:          python -m pytest tests/tests_core/test_config.py -v
"""

import pytest

from core.config import DEFAULT_PRESET, Config, DatabaseConfig
from core.exceptions import ConfigError
from sql.dialects import Dialect

# =================
# 1. PRESET TESTS
# =================


@pytest.mark.unit
def test_default_preset_from_db_variables():
    """DB_* variables define the 'default' preset."""
    environ = {
        'DB_DIALECT': 'mysql',
        'DB_HOST': 'db.internal',
        'DB_PORT': '3307',
        'DB_NAME': 'shop',
        'DB_USER': 'app',
        'DB_PASSWORD': 's3cret',
        'DB_PREFIX': 'shop_',
    }

    config = Config(environ)

    assert config.get_preset(DEFAULT_PRESET) == {
        'dialect': 'mysql',
        'host': 'db.internal',
        'port': '3307',
        'database': 'shop',
        'user': 'app',
        'password': 's3cret',
        'prefix': 'shop_',
    }


@pytest.mark.unit
def test_named_presets_from_prefixed_variables():
    """DB_<NAME>_* variables define a lower-cased '<name>' preset."""
    environ = {
        'DB_ANALYTICS_DIALECT': 'postgresql',
        'DB_ANALYTICS_HOST': 'warehouse',
        'DB_ANALYTICS_NAME': 'events',
        'DB_ANALYTICS_USER': 'reader',
        'DB_CACHE_DIALECT': 'sqlite',
        'DB_CACHE_NAME': '/tmp/cache.db',
    }

    config = Config(environ)

    assert not config.has_preset(DEFAULT_PRESET)
    assert config.get_preset('analytics')['host'] == 'warehouse'
    assert config.get_preset('cache') == {'dialect': 'sqlite', 'database': '/tmp/cache.db'}


@pytest.mark.unit
def test_log_level_and_trace_limit():
    config = Config({'LOG_LEVEL': 'DEBUG', 'DB_TRACE_LIMIT': '50'})

    assert config.log_level == 'DEBUG'
    assert config.trace_limit == 50


@pytest.mark.unit
def test_defaults_without_environment():
    config = Config({})

    assert config.presets == {}
    assert config.log_level == 'INFO'
    assert config.trace_limit is None


# =====================
# 2. DATABASECONFIG
# =====================


@pytest.mark.unit
def test_sqlite_url():
    db_config = DatabaseConfig(dialect=Dialect.SQLITE, database='/data/app.db')

    assert db_config.get_connection_url().render_as_string(hide_password=False) == 'sqlite:////data/app.db'
    assert db_config.is_file
    assert not db_config.is_memory


@pytest.mark.unit
def test_memory_sqlite():
    db_config = DatabaseConfig(dialect=Dialect.SQLITE, database=':memory:')

    assert db_config.is_memory


@pytest.mark.unit
def test_mysql_url_with_charset():
    db_config = DatabaseConfig(
        dialect=Dialect.MYSQL, database='shop', host='db', port=3306,
        user='app', password='pw', charset='utf8mb4'
    )

    url = db_config.get_connection_url().render_as_string(hide_password=False)

    assert url == 'mysql+mysqlconnector://app:pw@db:3306/shop?charset=utf8mb4'


@pytest.mark.unit
def test_postgresql_url():
    db_config = DatabaseConfig(
        dialect=Dialect.POSTGRESQL, database='events', host='warehouse', user='reader', password='pw'
    )

    url = db_config.get_connection_url().render_as_string(hide_password=False)

    assert url == 'postgresql+psycopg2://reader:pw@warehouse/events'


@pytest.mark.unit
def test_get_connection_params():
    db_config = DatabaseConfig(dialect=Dialect.SQLITE, database=':memory:', prefix='t_')

    params = db_config.get_connection_params()

    assert params['dialect'] == 'sqlite'
    assert params['database'] == ':memory:'
    assert params['prefix'] == 't_'


# ===================
# 3. EDGE CASE TESTS
# ===================


@pytest.mark.edge_case
def test_empty_variables_are_ignored():
    """Blank values do not define presets or fields."""
    config = Config({'DB_DIALECT': '', 'DB_X_DIALECT': 'sqlite', 'DB_X_NAME': 'x.db', 'DB_X_PREFIX': ''})

    assert not config.has_preset(DEFAULT_PRESET)
    assert config.get_preset('x') == {'dialect': 'sqlite', 'database': 'x.db'}


@pytest.mark.edge_case
def test_register_preset_and_get_returns_copy():
    config = Config({})
    config.register_preset('local', {'dialect': 'sqlite', 'database': ':memory:'})

    preset = config.get_preset('local')
    preset['database'] = 'changed.db'

    assert config.get_preset('local')['database'] == ':memory:'
    assert config.get_preset('missing') is None


@pytest.mark.edge_case
def test_register_preset_from_database_config():
    config = Config({})
    config.register_preset('local', DatabaseConfig(dialect=Dialect.SQLITE, database=':memory:'))

    assert config.get_preset('local')['dialect'] == 'sqlite'


@pytest.mark.edge_case
@pytest.mark.parametrize("value", ['abc', '1.5', '-1'])
def test_invalid_trace_limit_is_config_error(value):
    """A malformed DB_TRACE_LIMIT is reported as a configuration problem."""
    with pytest.raises(ConfigError, match="DB_TRACE_LIMIT"):
        Config({'DB_TRACE_LIMIT': value})


@pytest.mark.edge_case
def test_zero_trace_limit_is_kept():
    assert Config({'DB_TRACE_LIMIT': '0'}).trace_limit == 0
