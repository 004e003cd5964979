"""OpenTelemetry tracer and meter access.

Instruments are registered under the caller's module name and versioned
with the installed ``sqlstore`` distribution.
"""

from typing import Optional

from opentelemetry import metrics, trace
from opentelemetry.metrics import Meter
from opentelemetry.trace import Tracer

from sqlstore.__version__ import __version__

__all__ = [
    "INSTRUMENTATION_SCOPE",
    "get_tracer",
    "get_meter",
]

INSTRUMENTATION_SCOPE = "sqlstore"


def get_tracer(name: str = INSTRUMENTATION_SCOPE, version: Optional[str] = None) -> Tracer:
    return trace.get_tracer(name, version or __version__)


def get_meter(name: str = INSTRUMENTATION_SCOPE, version: Optional[str] = None) -> Meter:
    return metrics.get_meter(name, version or __version__)
