"""Backend capability detection and per-engine SQL policies."""

from sqlstore.backends.factory import create_policy, resolve_backend_type
from sqlstore.backends.greenplum import GreenplumPolicy
from sqlstore.backends.policy import BackendPolicy
from sqlstore.backends.postgres import PostgresPolicy
from sqlstore.backends.postgres_xl import PostgresXLPolicy
from sqlstore.backends.probe import BackendCapabilityProbe

__all__ = [
    "BackendCapabilityProbe",
    "BackendPolicy",
    "PostgresPolicy",
    "GreenplumPolicy",
    "PostgresXLPolicy",
    "create_policy",
    "resolve_backend_type",
]
