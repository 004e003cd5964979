import functools
from typing import Any, Callable, Dict, Optional, TypeVar

from opentelemetry.trace import SpanKind, Status, StatusCode

from sqlstore.common.exceptions import DataStoreError
from sqlstore.logging import get_logger
from sqlstore.telemetry import get_tracer

F = TypeVar('F', bound=Callable[..., Any])

logger = get_logger(__name__)


def _error_attributes(exc: Exception) -> Dict[str, Any]:
    """Span attributes describing a failed data store call."""
    if not isinstance(exc, DataStoreError):
        return {"sqlstore.error_code": "UNEXPECTED"}
    attributes: Dict[str, Any] = {"sqlstore.error_code": exc.error_code.value}
    if exc.exit_code is not None:
        attributes["sqlstore.exit_code"] = exc.exit_code
    return attributes


def traced(
    span_name: Optional[str] = None,
    *,
    kind: SpanKind = SpanKind.CLIENT,
    attributes: Optional[Dict[str, Any]] = None,
    attribute_getter: Optional[Callable[..., Optional[Dict[str, Any]]]] = None,
) -> Callable[[F], F]:
    """Run a data store call inside an OpenTelemetry span.

    Failures are recorded on the span together with the ``ErrorCode`` and,
    for SQL program failures, its exit status.

    Args:
        span_name: Explicit span name; defaults to the module-qualified function name
        kind: Span kind, CLIENT by default
        attributes: Static span attributes
        attribute_getter: Called with the decorated function's arguments to
            build per-call attributes such as ``db.statement``
    """

    def decorator(func: F) -> F:
        name = span_name or f"{func.__module__}.{func.__qualname__}"

        def _collect_attributes(args: tuple, kwargs: dict) -> Dict[str, Any]:
            collected = dict(attributes or {})
            if attribute_getter:
                try:
                    collected.update(attribute_getter(*args, **kwargs) or {})
                except Exception as exc:  # pragma: no cover
                    logger.warning("Span attribute getter failed", extra={"span": name, "error": str(exc)})
            return {k: v for k, v in collected.items() if v is not None}

        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            with get_tracer(func.__module__).start_as_current_span(name, kind=kind) as span:
                for key, value in _collect_attributes(args, kwargs).items():
                    span.set_attribute(key, value)

                try:
                    return func(*args, **kwargs)
                except Exception as exc:
                    span.record_exception(exc)
                    for key, value in _error_attributes(exc).items():
                        span.set_attribute(key, value)
                    span.set_status(Status(StatusCode.ERROR, str(exc)))
                    raise

        return wrapper  # type: ignore[return-value]

    return decorator
