"""Common exceptions for sqlstore.

Exception Design:
    The exception system uses error codes for categorization rather than
    numerous specific exception classes. Every error raised by this package
    is a DataStoreError carrying an ErrorCode and structured details.
"""

from sqlstore.common.exceptions import (
    DataStoreError,
    ErrorCode,
    # Helper functions
    configuration_error,
    conversion_error,
    namespace_violation_error,
    platform_not_supported_error,
    resource_error,
    sql_cancelled_error,
    sql_execution_error,
    sql_timeout_error,
)

__all__ = [
    # Base Exception and Error Codes
    "DataStoreError",
    "ErrorCode",
    # Helper functions
    "configuration_error",
    "conversion_error",
    "namespace_violation_error",
    "platform_not_supported_error",
    "resource_error",
    "sql_cancelled_error",
    "sql_execution_error",
    "sql_timeout_error",
]
