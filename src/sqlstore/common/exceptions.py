from enum import Enum
from typing import Any, Dict, Optional


class ErrorCode(Enum):
    """Standard error codes for data store operations.

    Error kinds are told apart by code rather than by a hierarchy of
    exception classes. Each category has its own prefix.

    Attributes:
        CONFIG_*: Configuration errors
        SECURITY_*: Namespace guard violations
        EXECUTION_*: SQL execution failures (process or driver)
        CONVERSION_*: Scalar results that cannot be converted
        RESOURCE_*: Connection pool acquire/release failures
        PLATFORM_*: Unsupported backend variants
    """
    # Configuration errors
    CONFIG_ERROR = "CONFIG_001"
    CONFIG_INVALID = "CONFIG_002"

    # Security errors
    NAMESPACE_VIOLATION = "SECURITY_001"

    # Execution errors
    SQL_EXECUTION_FAILED = "EXECUTION_001"
    SQL_EXECUTION_TIMEOUT = "EXECUTION_002"
    SQL_EXECUTION_CANCELLED = "EXECUTION_003"

    # Conversion errors
    CONVERSION_FAILED = "CONVERSION_001"

    # Resource errors
    POOL_NOT_INITIALIZED = "RESOURCE_001"
    CONNECTION_ACQUIRE_FAILED = "RESOURCE_002"
    CONNECTION_RELEASE_FAILED = "RESOURCE_003"

    # Platform errors
    PLATFORM_NOT_SUPPORTED = "PLATFORM_001"


class DataStoreError(Exception):
    """Base exception for all data store errors.

    Attributes:
        message: Error message
        error_code: Error code from ErrorCode enum
        details: Additional error details
        cause: Optional underlying exception
    """

    def __init__(
        self,
        message: str,
        error_code: ErrorCode = ErrorCode.SQL_EXECUTION_FAILED,
        details: Optional[Dict[str, Any]] = None,
        cause: Optional[Exception] = None,
    ):
        """Initialize data store error.

        Args:
            message: Error message
            error_code: Error code from ErrorCode enum
            details: Additional error details
            cause: Optional underlying exception
        """
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.details = details or {}
        self.cause = cause

        # Lazy import to avoid circular dependency
        from sqlstore.logging import get_logger
        logger = get_logger(__name__)
        logger.error(
            message,
            extra={
                "error_code": error_code.value,
                "error_details": self.details,
            },
            exc_info=cause is not None,
        )

    def __str__(self) -> str:
        """String representation of the error."""
        msg = f"[{self.error_code.value}] {self.message}"
        if self.cause:
            msg = f"{msg} (caused by: {type(self.cause).__name__}: {str(self.cause)})"
        return msg

    @property
    def exit_code(self) -> Optional[int]:
        """Exit status of the SQL program, when the error came from one."""
        return self.details.get("exit_code")

    @property
    def sql(self) -> Optional[str]:
        """SQL text that was being executed, when applicable."""
        return self.details.get("sql")

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for serialization."""
        return {
            "type": self.__class__.__name__,
            "message": self.message,
            "error_code": self.error_code.value,
            "error_name": self.error_code.name,
            "details": self.details,
        }


# Helper functions for common error scenarios
def configuration_error(
    message: str,
    config_key: Optional[str] = None,
    **kwargs
) -> DataStoreError:
    """Create a configuration error.

    Args:
        message: Error message
        config_key: Configuration key that caused the error
        **kwargs: Additional error details

    Returns:
        DataStoreError with CONFIG_ERROR code
    """
    details = kwargs.get('details', {})
    if config_key:
        details["config_key"] = config_key

    return DataStoreError(
        message=message,
        error_code=ErrorCode.CONFIG_ERROR,
        details=details,
        **{k: v for k, v in kwargs.items() if k != 'details'}
    )


def sql_execution_error(
    sql: str,
    exit_code: Optional[int] = None,
    **kwargs
) -> DataStoreError:
    """Create an execution error for a failed SQL run.

    The full SQL text is kept in the details so the caller can see exactly
    what failed.

    Args:
        sql: SQL text that failed
        exit_code: Exit status of the SQL program (None for driver failures)
        **kwargs: Additional error details

    Returns:
        DataStoreError with SQL_EXECUTION_FAILED code
    """
    details = kwargs.get('details', {})
    details["sql"] = sql
    details["exit_code"] = exit_code

    if exit_code is None:
        message = f"Failure while executing SQL: {sql}"
    else:
        message = f"Failure (exit status = {exit_code}) while executing SQL: {sql}"

    return DataStoreError(
        message=message,
        error_code=ErrorCode.SQL_EXECUTION_FAILED,
        details=details,
        **{k: v for k, v in kwargs.items() if k != 'details'}
    )


def sql_timeout_error(
    sql: str,
    timeout_seconds: float,
    **kwargs
) -> DataStoreError:
    """Create an execution error for a SQL run that exceeded its time limit."""
    details = kwargs.get('details', {})
    details["sql"] = sql
    details["timeout_seconds"] = timeout_seconds

    return DataStoreError(
        message=f"Timed out after {timeout_seconds}s while executing SQL: {sql}",
        error_code=ErrorCode.SQL_EXECUTION_TIMEOUT,
        details=details,
        **{k: v for k, v in kwargs.items() if k != 'details'}
    )


def sql_cancelled_error(
    sql: str,
    **kwargs
) -> DataStoreError:
    """Create an execution error for a SQL run stopped by cancel()."""
    details = kwargs.get('details', {})
    details["sql"] = sql

    return DataStoreError(
        message=f"Cancelled while executing SQL: {sql}",
        error_code=ErrorCode.SQL_EXECUTION_CANCELLED,
        details=details,
        **{k: v for k, v in kwargs.items() if k != 'details'}
    )


def namespace_violation_error(
    name: str,
    prefix: str,
    **kwargs
) -> DataStoreError:
    """Create a security violation for a table outside the managed namespace.

    Args:
        name: Offending table name
        prefix: Required internal prefix

    Returns:
        DataStoreError with NAMESPACE_VIOLATION code
    """
    details = kwargs.get('details', {})
    details["table"] = name
    details["prefix"] = prefix

    return DataStoreError(
        message=f"Refusing destructive operation on non-internal table '{name}' (expected prefix '{prefix}')",
        error_code=ErrorCode.NAMESPACE_VIOLATION,
        details=details,
        **{k: v for k, v in kwargs.items() if k != 'details'}
    )


def conversion_error(
    value: Any,
    target_type: str,
    **kwargs
) -> DataStoreError:
    """Create a conversion error for a scalar that cannot be parsed.

    Args:
        value: Raw value that failed conversion
        target_type: Name of the requested type
        **kwargs: Additional error details

    Returns:
        DataStoreError with CONVERSION_FAILED code
    """
    details = kwargs.get('details', {})
    details["value"] = str(value)
    details["target_type"] = target_type

    return DataStoreError(
        message=f"Cannot convert {value!r} to {target_type}",
        error_code=ErrorCode.CONVERSION_FAILED,
        details=details,
        **{k: v for k, v in kwargs.items() if k != 'details'}
    )


def resource_error(
    message: str,
    error_code: ErrorCode = ErrorCode.CONNECTION_ACQUIRE_FAILED,
    pool: Optional[str] = None,
    **kwargs
) -> DataStoreError:
    """Create a resource error for connection pool failures.

    Args:
        message: Error message
        error_code: One of the RESOURCE_* codes
        pool: Name of the pool involved
        **kwargs: Additional error details

    Returns:
        DataStoreError with the given resource code
    """
    details = kwargs.get('details', {})
    if pool:
        details["pool"] = pool

    return DataStoreError(
        message=message,
        error_code=error_code,
        details=details,
        **{k: v for k, v in kwargs.items() if k != 'details'}
    )


def platform_not_supported_error(
    platform: str,
    **kwargs
) -> DataStoreError:
    """Create a platform not supported error.

    Args:
        platform: Backend variant that is not supported
        **kwargs: Additional error details

    Returns:
        DataStoreError with PLATFORM_NOT_SUPPORTED code
    """
    details = kwargs.get('details', {})
    details["platform"] = platform

    return DataStoreError(
        message=f"Backend '{platform}' is not supported",
        error_code=ErrorCode.PLATFORM_NOT_SUPPORTED,
        details=details,
        **{k: v for k, v in kwargs.items() if k != 'details'}
    )
