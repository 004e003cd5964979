"""Settings for sqlstore, built on Pydantic Settings.

Configuration Sources (precedence order):
    1. Explicit keyword arguments
    2. Environment variables
    3. ``.env`` file
    4. Default values in code

Environment Variable Naming:
    - Data store: ``DEEPDIVE_`` prefix (e.g. ``DEEPDIVE_TABLE_PREFIX``)
    - Nested: double underscore (e.g. ``DEEPDIVE_POOLS__DEFAULT__URL``)
    - SQL program: ``SQL_RUNNER_`` prefix (e.g. ``SQL_RUNNER_TIMEOUT_SECONDS``)

Quick Start:
    >>> from sqlstore.settings import get_settings
    >>> settings = get_settings()
    >>> settings.pools["default"].redacted_url()
"""

from .base import StoreBaseSettings
from .datastore import PoolSettings, SqlRunnerSettings
from .main import DataStoreSettings, _reload_settings, get_settings

__all__ = [
    "StoreBaseSettings",
    "PoolSettings",
    "SqlRunnerSettings",
    "DataStoreSettings",
    "get_settings",
    "_reload_settings",
]
