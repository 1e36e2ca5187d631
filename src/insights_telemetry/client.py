"""Telemetry client and module-level convenience functions."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from typing import Any, Mapping

from .builder import EventBuilder
from .config import TelemetrySettings
from .dispatcher import DeliveryDispatcher
from .errors import TelemetryDeliveryError
from .events import TelemetryEvent
from .normalizer import normalize


logger = logging.getLogger(__name__)

TELEMETRY_REMINDER = (
    "Telemetry is currently enabled. It can be disabled by setting DisableTelemetry "
    "(INSIGHTS_DISABLE_TELEMETRY=true). Stop seeing this message by setting "
    "SuppressTelemetryReminder (INSIGHTS_SUPPRESS_TELEMETRY_REMINDER=true)."
)


@dataclass
class TelemetryClient:
    """
    Best-effort telemetry for a host application.

    Usage:
        client = TelemetryClient()
        client.emit_event("Invoke-Build", properties={"Target": "docs"})

        try:
            ...
        except Exception as e:
            client.emit_exception(e, error_bucket="Invoke-Build")

    Neither method ever raises. Failures are logged (diagnostic at error
    level, then a warning) and dropped.
    """
    settings: TelemetrySettings = field(default_factory=TelemetrySettings)
    builder: EventBuilder | None = None
    dispatcher: DeliveryDispatcher | None = None

    _reminder_shown: bool = field(default=False, init=False)
    _reminder_lock: threading.Lock = field(default_factory=threading.Lock, init=False, repr=False)

    def __post_init__(self):
        if self.builder is None:
            self.builder = EventBuilder(settings=self.settings)
        if self.dispatcher is None:
            self.dispatcher = DeliveryDispatcher(settings=self.settings)

    @property
    def session_id(self) -> str:
        return self.builder.session_id

    def emit_event(
        self,
        name: str,
        properties: Mapping[str, Any] | None = None,
        metrics: Mapping[str, float] | None = None,
        run_synchronously: bool | None = None,
    ) -> None:
        """
        Send a custom event.

        Args:
            name: Event name (usually the invoked command)
            properties: Extra string properties, merged over the defaults
            metrics: Numeric measurements (omitted when empty)
            run_synchronously: Send on this thread; None uses DefaultNoStatus
        """
        if self.settings.disable_telemetry:
            logger.debug(f"Telemetry is disabled, not sending event '{name}'")
            return

        try:
            self._remind()
            event = self.builder.custom_event(name, properties, metrics)
            self._send(event, run_synchronously)
        except Exception as e:
            logger.warning(f"Telemetry event '{name}' was not sent: {type(e).__name__}")

    def emit_exception(
        self,
        exception: BaseException,
        error_bucket: str | None = None,
        properties: Mapping[str, Any] | None = None,
        run_synchronously: bool | None = None,
    ) -> None:
        """
        Send an exception event.

        Args:
            exception: The exception to report
            error_bucket: Grouping label, usually the failing command
            properties: Extra string properties
            run_synchronously: Send on this thread; None uses DefaultNoStatus
        """
        if self.settings.disable_telemetry:
            logger.debug(f"Telemetry is disabled, not sending exception {type(exception).__name__}")
            return

        try:
            self._remind()
            event = self.builder.exception_event(exception, error_bucket, properties)
            self._send(event, run_synchronously)
        except Exception as e:
            logger.warning(f"Telemetry exception event was not sent: {type(e).__name__}")

    def _send(self, event: TelemetryEvent, run_synchronously: bool | None) -> None:
        if run_synchronously is None:
            synchronous = self.settings.default_no_status
        else:
            synchronous = run_synchronously

        try:
            self.dispatcher.send(event, synchronous)
        except Exception as failure:
            # normalize() re-raises failures it doesn't recognize
            message = normalize(failure)
            logger.error(message)
            raise TelemetryDeliveryError(message) from failure

    def _remind(self) -> None:
        if self.settings.suppress_telemetry_reminder:
            return
        with self._reminder_lock:
            if self._reminder_shown:
                return
            self._reminder_shown = True
        logger.info(TELEMETRY_REMINDER)


# Module-level default client
_default_client: TelemetryClient | None = None
_default_lock = threading.Lock()


def get_client() -> TelemetryClient:
    """Get or create the default client."""
    global _default_client
    if _default_client is None:
        with _default_lock:
            if _default_client is None:
                _default_client = TelemetryClient()
    return _default_client


def set_client(client: TelemetryClient | None) -> None:
    """Replace the default client (None resets it)."""
    global _default_client
    with _default_lock:
        _default_client = client


def emit_event(
    name: str,
    properties: Mapping[str, Any] | None = None,
    metrics: Mapping[str, float] | None = None,
    run_synchronously: bool | None = None,
) -> None:
    """
    Send a custom event using the default client.

    Usage:
        from insights_telemetry import emit_event
        emit_event("Get-Report", metrics={"Duration": 1.25})
    """
    try:
        client = get_client()
    except Exception as e:
        logger.warning(f"Telemetry client could not be created: {e}")
        return
    client.emit_event(name, properties, metrics, run_synchronously)


def emit_exception(
    exception: BaseException,
    error_bucket: str | None = None,
    properties: Mapping[str, Any] | None = None,
    run_synchronously: bool | None = None,
) -> None:
    """Send an exception event using the default client."""
    try:
        client = get_client()
    except Exception as e:
        logger.warning(f"Telemetry client could not be created: {e}")
        return
    client.emit_exception(exception, error_bucket, properties, run_synchronously)
