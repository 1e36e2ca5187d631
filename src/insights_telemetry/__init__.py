"""
Best-effort Application Insights telemetry.

Usage:
    from insights_telemetry import emit_event, emit_exception

    emit_event("Get-Report", properties={"Target": "docs"}, metrics={"Duration": 1.25})

    try:
        ...
    except Exception as e:
        emit_exception(e, error_bucket="Get-Report")

Neither function raises; delivery problems are logged and dropped.
"""

__version__ = "0.1.0"

from .client import (
    TelemetryClient,
    get_client,
    set_client,
    emit_event,
    emit_exception,
)
from .config import TelemetrySettings
from .errors import (
    DeliveryError,
    TelemetryError,
    TelemetryConfigError,
    TelemetryDeliveryError,
    TransportFailure,
    IsolatedUnitFailure,
)
from .events import BaseType, TelemetryEvent, ExceptionRecord
from .normalizer import normalize
from .pii import redact

__all__ = [
    # Client
    "TelemetryClient",
    "TelemetrySettings",
    "get_client",
    "set_client",
    "emit_event",
    "emit_exception",
    # Events
    "BaseType",
    "TelemetryEvent",
    "ExceptionRecord",
    # Errors
    "DeliveryError",
    "TelemetryError",
    "TelemetryConfigError",
    "TelemetryDeliveryError",
    "TransportFailure",
    "IsolatedUnitFailure",
    # Helpers
    "normalize",
    "redact",
]
