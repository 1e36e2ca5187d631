"""Builds telemetry envelopes from a cached base template."""

from __future__ import annotations

import copy
import getpass
import logging
import threading
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Mapping

from . import __version__
from .config import TelemetrySettings
from .events import BaseType, BaseData, EventData, ExceptionRecord, TelemetryEvent
from .pii import redact


logger = logging.getLogger(__name__)

SDK_VERSION = f"py:insights-telemetry:{__version__}"
HANDLED_AT_USER_CODE = "UserCode"


def current_user() -> str:
    """Name of the OS user running the process."""
    try:
        return getpass.getuser()
    except (KeyError, OSError):
        return ""


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def format_hresult(exception: BaseException) -> str:
    """Hex error code of an exception (hresult, winerror or errno, else 0)."""
    for attr in ("hresult", "winerror", "errno"):
        value = getattr(exception, attr, None)
        if isinstance(value, int):
            return f"0x{value & 0xFFFFFFFF:08X}"
    return "0x00000000"


@dataclass
class EventBuilder:
    """
    Produces telemetry envelopes for one client.

    The base template is built once and deep-copied for every caller, so
    callers can attach fields freely. The timestamp and day of week are a
    snapshot taken when the template is first built.
    """
    settings: TelemetrySettings
    session_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    user_name: str = field(default_factory=current_user)
    clock: Callable[[], datetime] = _utcnow

    _template: TelemetryEvent | None = field(default=None, init=False, repr=False)
    _lock: threading.Lock = field(default_factory=threading.Lock, init=False, repr=False)

    @property
    def application_version(self) -> str:
        return self.settings.application_version or __version__

    def base_event(self) -> TelemetryEvent:
        """Return an independent copy of the base template."""
        if self._template is None:
            with self._lock:
                if self._template is None:
                    self._template = self._build_template()
        return copy.deepcopy(self._template)

    def _build_template(self) -> TelemetryEvent:
        key = self.settings.application_insights_key
        if not key or not key.strip():
            raise ValueError("ApplicationInsightsKey must be configured to send telemetry")

        now = self.clock()
        user_id = redact(self.user_name, self.settings)
        logger.debug(f"Building base telemetry event for session {self.session_id}")

        return TelemetryEvent(
            time=now.isoformat(),
            instrumentation_key=key,
            tags={
                "ai.user.id": user_id,
                "ai.session.id": self.session_id,
                "ai.application.ver": self.application_version,
                "ai.internal.sdkVersion": SDK_VERSION,
            },
            data=EventData(
                base_type=BaseType.EVENT,
                base_data=BaseData(
                    properties={
                        "DayOfWeek": now.strftime("%A"),
                        "Username": user_id,
                    },
                ),
            ),
        )

    def custom_event(
        self,
        name: str,
        properties: Mapping[str, Any] | None = None,
        metrics: Mapping[str, float] | None = None,
    ) -> TelemetryEvent:
        """Build an EventData envelope named `name`."""
        event = self.base_event()
        base = event.data.base_data
        base.name = name
        _merge_properties(base.properties, properties)

        if metrics:
            base.measurements = {key: float(value) for key, value in metrics.items()}

        return event

    def exception_event(
        self,
        exception: BaseException,
        error_bucket: str | None = None,
        properties: Mapping[str, Any] | None = None,
    ) -> TelemetryEvent:
        """Build an ExceptionData envelope describing `exception`."""
        event = self.base_event()
        event.data.base_type = BaseType.EXCEPTION
        base = event.data.base_data
        base.handled_at = HANDLED_AT_USER_CODE

        if error_bucket and error_bucket.strip():
            base.properties["ErrorBucket"] = error_bucket

        base.properties["Message"] = str(exception)
        base.properties["HResult"] = format_hresult(exception)
        _merge_properties(base.properties, properties)

        base.exceptions.append(ExceptionRecord.from_exception(exception))
        return event


def _merge_properties(target: dict[str, str], properties: Mapping[str, Any] | None) -> None:
    # Later keys win
    if not properties:
        return
    for key, value in properties.items():
        target[str(key)] = "" if value is None else str(value)
