"""Backend policy selection.

Policies form a closed set keyed by ``BackendType``. ``create_policy``
builds the one matching a tag; ``resolve_backend_type`` turns the configured
selection (possibly ``auto``) into a tag.
"""

from typing import Dict, Optional, Type, Union

from sqlstore.backends.greenplum import GreenplumPolicy
from sqlstore.backends.policy import BackendPolicy
from sqlstore.backends.postgres import PostgresPolicy
from sqlstore.backends.postgres_xl import PostgresXLPolicy
from sqlstore.backends.probe import BackendCapabilityProbe
from sqlstore.common.exceptions import platform_not_supported_error
from sqlstore.constants import BackendSelection, BackendType
from sqlstore.execution.base import SqlExecutor
from sqlstore.logging import get_logger

logger = get_logger(__name__)

_POLICIES: Dict[BackendType, Type[BackendPolicy]] = {
    BackendType.POSTGRES: PostgresPolicy,
    BackendType.GREENPLUM: GreenplumPolicy,
    BackendType.POSTGRES_XL: PostgresXLPolicy,
}


def resolve_backend_type(
    selection: Union[BackendSelection, str],
    probe: BackendCapabilityProbe,
) -> BackendType:
    """Map a configured selection to a concrete backend, probing on ``auto``."""
    if str(getattr(selection, "value", selection)) == BackendSelection.AUTO.value:
        backend_type = probe.detect_backend_type()
        logger.info("Detected backend", extra={"backend": backend_type.value})
        return backend_type
    try:
        return BackendType(getattr(selection, "value", selection))
    except ValueError:
        raise platform_not_supported_error(str(selection)) from None


def create_policy(
    backend_type: Union[BackendType, str],
    executor: SqlExecutor,
    probe: Optional[BackendCapabilityProbe] = None,
) -> BackendPolicy:
    """Build the policy for ``backend_type``.

    Raises:
        DataStoreError: PLATFORM_NOT_SUPPORTED for an unknown tag
    """
    try:
        policy_class = _POLICIES[BackendType(backend_type)]
    except (KeyError, ValueError):
        raise platform_not_supported_error(str(backend_type)) from None

    policy = policy_class(executor, probe)
    logger.info(
        "Created backend policy",
        extra={"backend": policy.backend_type.value, "mpp": policy.backend_type.is_mpp},
    )
    return policy
