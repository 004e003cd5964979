"""Backend-related constants and enumerations.

This module defines type-safe enumerations used to tag backend variants,
execution modes and transaction states.
"""

from enum import Enum


class BackendType(str, Enum):
    """Supported PostgreSQL-family engine variants.

    Values:
        POSTGRES: Standard single-node PostgreSQL
        GREENPLUM: Greenplum massively-parallel database (segments)
        POSTGRES_XL: Postgres-XL massively-parallel cluster (datanodes)
    """

    POSTGRES = "postgres"
    GREENPLUM = "greenplum"
    POSTGRES_XL = "postgres_xl"

    @property
    def is_mpp(self) -> bool:
        """Whether the variant distributes rows across nodes."""
        return self in (BackendType.GREENPLUM, BackendType.POSTGRES_XL)


class BackendSelection(str, Enum):
    """How the data store chooses its backend policy."""

    AUTO = "auto"
    POSTGRES = "postgres"
    GREENPLUM = "greenplum"
    POSTGRES_XL = "postgres_xl"


class ExecutorType(str, Enum):
    """Implementation used to run raw SQL text.

    Values:
        PROCESS: Delegate to the external SQL program
        DRIVER: Run over a pooled DB-API connection
    """

    PROCESS = "process"
    DRIVER = "driver"


class ExecutionMode(str, Enum):
    """How a SQL command is handed to the SQL program.

    Values:
        SCRIPT: Run statements, stream output to the log
        EVAL: Evaluate a query and capture its TSV output
    """

    SCRIPT = "script"
    EVAL = "eval"


class TransactionState(str, Enum):
    """States of a transactional statement execution."""

    IDLE = "idle"
    AUTOCOMMIT_OFF = "autocommit_off"
    STATEMENT_BOUND = "statement_bound"
    COMMITTED = "committed"
    FAILED = "failed"
    CONNECTION_CLOSED = "connection_closed"
