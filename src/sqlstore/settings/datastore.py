import shlex
from typing import Annotated, Any, Dict, List, Optional

from pydantic import BaseModel, Field, SecretStr, field_validator, model_validator
from pydantic_settings import NoDecode, SettingsConfigDict
from sqlalchemy.engine import URL, make_url

from sqlstore.constants import DEFAULT_SQL_COMMAND
from .base import StoreBaseSettings


class PoolSettings(BaseModel):
    """Settings for one named connection pool.

    Either ``url`` or the individual connection fields must be given.
    When ``url`` is set it wins over the individual fields.
    """

    url: Optional[str] = Field(
        default=None,
        description="Full SQLAlchemy URL, e.g. postgresql+psycopg2://user:pw@host:5432/db"
    )
    drivername: str = Field(default="postgresql+psycopg2")
    host: Optional[str] = Field(default=None)
    port: Optional[int] = Field(default=5432, ge=1, le=65535)
    database: Optional[str] = Field(default=None)
    username: Optional[str] = Field(default=None)
    password: Optional[SecretStr] = Field(default=None)

    pool_size: int = Field(default=8, ge=1, le=100)
    max_overflow: int = Field(default=8, ge=0)
    pool_timeout: float = Field(default=30.0, gt=0, description="Seconds to wait for a free connection")
    pool_pre_ping: bool = Field(default=True, description="Verify connections before handing them out")
    connect_args: Dict[str, Any] = Field(default_factory=dict)

    @model_validator(mode="after")
    def _require_target(self) -> "PoolSettings":
        if not self.url and not self.database:
            raise ValueError("Pool settings need either 'url' or 'database'")
        return self

    def sqlalchemy_url(self) -> URL:
        """Build the SQLAlchemy URL for this pool."""
        if self.url:
            return make_url(self.url)
        return URL.create(
            drivername=self.drivername,
            username=self.username,
            password=self.password.get_secret_value() if self.password else None,
            host=self.host,
            port=self.port,
            database=self.database,
        )

    def redacted_url(self) -> str:
        """URL rendered with the password hidden, for logging."""
        return self.sqlalchemy_url().render_as_string(hide_password=True)


class SqlRunnerSettings(StoreBaseSettings):
    """Settings for the external SQL program used by the process executor."""

    model_config = SettingsConfigDict(env_prefix="SQL_RUNNER_")

    command: Annotated[List[str], NoDecode] = Field(
        default_factory=lambda: [DEFAULT_SQL_COMMAND],
        description="Program (and leading arguments) invoked with the SQL text appended"
    )
    eval_subcommand: str = Field(
        default="eval",
        description="Subcommand that evaluates a query and prints TSV rows"
    )
    timeout_seconds: Optional[float] = Field(
        default=None,
        gt=0,
        description="Kill the program after this many seconds; None waits indefinitely"
    )
    env: Dict[str, str] = Field(
        default_factory=dict,
        description="Extra environment variables for the program"
    )

    @field_validator("command", mode="before")
    @classmethod
    def _split_command(cls, v: Any) -> Any:
        if isinstance(v, str):
            return shlex.split(v)
        return v

    @field_validator("command")
    @classmethod
    def _non_empty_command(cls, v: List[str]) -> List[str]:
        if not v:
            raise ValueError("SQL runner command must not be empty")
        return v
