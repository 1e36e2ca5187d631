"""Configuration for telemetry emission."""

from __future__ import annotations

import os
from dataclasses import dataclass, field, fields
from typing import Any

from .errors import TelemetryConfigError


DEFAULT_INGESTION_URL = "https://dc.services.visualstudio.com/v2/track"


_TRUE_VALUES = ("1", "true", "yes", "on")
_FALSE_VALUES = ("0", "false", "no", "off", "")


def _env_bool(name: str, default: str = "false") -> bool:
    return os.environ.get(name, default).strip().lower() in _TRUE_VALUES


def _parse_bool(key: str, value: Any) -> bool:
    """Convert a file value to bool; quoted "false" must stay False."""
    if isinstance(value, bool):
        return value
    if isinstance(value, int) and value in (0, 1):
        return bool(value)
    if isinstance(value, str):
        text = value.strip().lower()
        if text in _TRUE_VALUES:
            return True
        if text in _FALSE_VALUES:
            return False
    raise TelemetryConfigError(f"{key} must be a boolean, got {value!r}")


def _parse_int(key: str, value: Any) -> int:
    if isinstance(value, bool):
        raise TelemetryConfigError(f"{key} must be an integer, got {value!r}")
    try:
        return int(value)
    except (TypeError, ValueError):
        raise TelemetryConfigError(f"{key} must be an integer, got {value!r}") from None


def _parse_str(key: str, value: Any) -> str | None:
    if value is None or isinstance(value, str):
        return value
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(value)
    raise TelemetryConfigError(f"{key} must be a string, got {value!r}")


# PascalCase key -> attribute name
_KEY_MAP = {
    "DisableTelemetry": "disable_telemetry",
    "DisablePiiProtection": "disable_pii_protection",
    "SuppressTelemetryReminder": "suppress_telemetry_reminder",
    "ApplicationInsightsKey": "application_insights_key",
    "WebRequestTimeoutSec": "web_request_timeout_sec",
    "DefaultNoStatus": "default_no_status",
    "DeliveryIsolation": "delivery_isolation",
    "ShowProgress": "show_progress",
    "ApplicationVersion": "application_version",
    "IngestionUrl": "ingestion_url",
}


@dataclass
class TelemetrySettings:
    """
    Configuration for the telemetry client.

    Can be set via:
    - Constructor arguments
    - Environment variables (INSIGHTS_*)
    - Config file (YAML or JSON)
    """
    # Turn telemetry off entirely (no network activity)
    disable_telemetry: bool = field(
        default_factory=lambda: _env_bool("INSIGHTS_DISABLE_TELEMETRY")
    )

    # Send identifiers in the clear instead of hashing them
    disable_pii_protection: bool = field(
        default_factory=lambda: _env_bool("INSIGHTS_DISABLE_PII_PROTECTION")
    )

    # Don't log the "telemetry is enabled" reminder
    suppress_telemetry_reminder: bool = field(
        default_factory=lambda: _env_bool("INSIGHTS_SUPPRESS_TELEMETRY_REMINDER")
    )

    # Instrumentation key for the ingestion endpoint
    application_insights_key: str = field(
        default_factory=lambda: os.environ.get("INSIGHTS_APPLICATION_INSIGHTS_KEY", "")
    )

    # Request timeout (seconds, 0 = no timeout)
    web_request_timeout_sec: int = field(
        default_factory=lambda: int(os.environ.get("INSIGHTS_WEB_REQUEST_TIMEOUT_SEC", "0"))
    )

    # No status rendering means deliveries run on the calling thread
    default_no_status: bool = field(
        default_factory=lambda: _env_bool("INSIGHTS_DEFAULT_NO_STATUS")
    )

    # Isolated unit for asynchronous delivery: thread | process
    delivery_isolation: str = field(
        default_factory=lambda: os.environ.get("INSIGHTS_DELIVERY_ISOLATION", "thread")
    )

    # Render a spinner while waiting on asynchronous delivery
    show_progress: bool = field(
        default_factory=lambda: _env_bool("INSIGHTS_SHOW_PROGRESS", "true")
    )

    # Reported as ai.application.ver (defaults to the package version)
    application_version: str | None = field(
        default_factory=lambda: os.environ.get("INSIGHTS_APPLICATION_VERSION")
    )

    ingestion_url: str = field(
        default_factory=lambda: os.environ.get("INSIGHTS_INGESTION_URL", DEFAULT_INGESTION_URL)
    )

    def __post_init__(self):
        if self.delivery_isolation not in ("thread", "process"):
            raise TelemetryConfigError(
                f"DeliveryIsolation must be 'thread' or 'process', got {self.delivery_isolation!r}"
            )
        self.web_request_timeout_sec = _parse_int("WebRequestTimeoutSec", self.web_request_timeout_sec)
        if self.web_request_timeout_sec < 0:
            raise TelemetryConfigError("WebRequestTimeoutSec cannot be negative")

    def get(self, key: str) -> Any:
        """Read a value by its PascalCase configuration name."""
        attr = _KEY_MAP.get(key)
        if attr is None:
            raise TelemetryConfigError(f"Unknown configuration key: {key}")
        return getattr(self, attr)

    @property
    def timeout(self) -> float | None:
        """Request timeout for httpx (None = wait forever)."""
        if self.web_request_timeout_sec <= 0:
            return None
        return float(self.web_request_timeout_sec)

    @classmethod
    def from_dict(cls, data: dict) -> TelemetrySettings:
        """Create settings from a dictionary (PascalCase or snake_case keys)."""
        if not isinstance(data, dict):
            raise TelemetryConfigError(
                f"Settings must be a mapping of keys to values, got {type(data).__name__}"
            )
        known = {f.name: f.type for f in fields(cls)}
        kwargs = {}
        for key, value in data.items():
            attr = _KEY_MAP.get(key, key)
            if attr not in known:
                raise TelemetryConfigError(f"Unknown configuration key: {key}")
            field_type = known[attr]
            if field_type == "bool":
                value = _parse_bool(key, value)
            elif field_type == "int":
                value = _parse_int(key, value)
            else:
                value = _parse_str(key, value)
            kwargs[attr] = value
        return cls(**kwargs)

    @classmethod
    def from_yaml(cls, path: str) -> TelemetrySettings:
        """Load settings from YAML file."""
        import yaml
        with open(path, "r") as f:
            data = yaml.safe_load(f)
        return cls.from_dict(data or {})

    @classmethod
    def from_json(cls, path: str) -> TelemetrySettings:
        """Load settings from JSON file."""
        import json
        with open(path, "r") as f:
            data = json.load(f)
        return cls.from_dict(data)
