from typing import Dict, Optional

from pydantic import Field, field_validator
from pydantic_settings import SettingsConfigDict

from sqlstore.constants import (
    DEFAULT_ENVIRONMENT,
    DEFAULT_POOL_NAME,
    INTERNAL_TABLE_PREFIX,
    BackendSelection,
    ExecutorType,
)
from .base import StoreBaseSettings
from .datastore import PoolSettings, SqlRunnerSettings


class DataStoreSettings(StoreBaseSettings):
    """Named-environment configuration for the data store.

    Environment variables use the ``DEEPDIVE_`` prefix and ``__`` for
    nesting, e.g. ``DEEPDIVE_POOLS__DEFAULT__URL``.
    """

    model_config = SettingsConfigDict(env_prefix="DEEPDIVE_")

    environment: str = Field(
        default=DEFAULT_ENVIRONMENT,
        description="Name of the configuration environment the pools belong to"
    )
    pools: Dict[str, PoolSettings] = Field(
        default_factory=dict,
        description="Named connection pools; 'default' is used unless a name is given"
    )
    sql_runner: SqlRunnerSettings = Field(
        default_factory=SqlRunnerSettings,
        description="External SQL program configuration"
    )
    table_prefix: str = Field(
        default=INTERNAL_TABLE_PREFIX,
        description="Prefix every internally managed table must carry"
    )
    backend: BackendSelection = Field(
        default=BackendSelection.AUTO,
        description="Backend policy to use; 'auto' detects it from version()"
    )
    executor: ExecutorType = Field(
        default=ExecutorType.PROCESS,
        description="How raw SQL text is executed"
    )
    guard_raw_sql: bool = Field(
        default=True,
        description="Reject DROP TABLE statements on unprefixed names in raw SQL"
    )
    eager_capability_probe: bool = Field(
        default=False,
        description="Compute cached backend capabilities during init"
    )
    log_level: str = Field(default="INFO")

    @field_validator("table_prefix")
    @classmethod
    def validate_table_prefix(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("table_prefix must not be empty")
        return v

    @property
    def default_pool(self) -> Optional[PoolSettings]:
        return self.pools.get(DEFAULT_POOL_NAME)


# Singleton instance
_settings: Optional[DataStoreSettings] = None


def get_settings(force_reload: bool = False) -> DataStoreSettings:
    """Get the singleton settings instance for the application.

    The settings are loaded from environment variables (and ``.env``) on
    first access.

    Args:
        force_reload: If True, creates a new settings instance even if
                     one already exists.

    Returns:
        DataStoreSettings: The singleton settings instance

    Note:
        This function is safe for reading but not for the initial creation.
        Settings are typically loaded once at startup before threading begins.
    """
    global _settings

    if _settings is None or force_reload:
        _settings = DataStoreSettings()

    return _settings


def _reload_settings() -> DataStoreSettings:
    """Force reload of settings.

    This is primarily for testing purposes where you need to reset
    the singleton instance.
    """
    global _settings
    _settings = None
    return get_settings(force_reload=True)
