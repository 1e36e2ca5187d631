"""Delivery error record and telemetry exception types."""

from __future__ import annotations

import json
from dataclasses import asdict, dataclass
from typing import Any


class TelemetryError(Exception):
    """Base exception for telemetry errors."""
    pass


class TelemetryConfigError(TelemetryError):
    """Invalid telemetry configuration."""
    pass


class TelemetryDeliveryError(TelemetryError):
    """A send failed; the message is the normalized diagnostic."""
    pass


@dataclass
class DeliveryError:
    """
    Normalized failure record for a single send.

    Built directly from the transport error on the synchronous path, or
    rebuilt from JSON text returned by the isolated delivery unit.
    """
    message: str
    status_code: int | None = None
    status_description: str | None = None
    inner_message: str | None = None
    raw_response_body: str | None = None
    request_id: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    def to_json(self) -> str:
        return json.dumps(self.to_dict())

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> DeliveryError:
        status_code = data.get("status_code")
        return cls(
            message=str(data.get("message") or ""),
            status_code=int(status_code) if status_code is not None else None,
            status_description=data.get("status_description"),
            inner_message=data.get("inner_message"),
            raw_response_body=data.get("raw_response_body"),
            request_id=data.get("request_id"),
        )

    @classmethod
    def from_json(cls, text: str) -> DeliveryError:
        """Parse JSON produced by to_json (raises ValueError if not an object)."""
        data = json.loads(text)
        if not isinstance(data, dict):
            raise ValueError("Delivery error payload must be a JSON object")
        return cls.from_dict(data)


class TransportFailure(TelemetryError):
    """HTTP-level failure raised on the calling thread."""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        status_description: str | None = None,
        headers: dict[str, str] | None = None,
        body: str | None = None,
        inner_message: str | None = None,
        request_id: str | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.status_description = status_description
        self.headers = headers or {}
        self.body = body
        self.inner_message = inner_message
        self.request_id = request_id

    def to_delivery_error(self) -> DeliveryError:
        # A JSON body is already carried as inner_message
        raw = None if self.body == self.inner_message else self.body
        return DeliveryError(
            message=self.message,
            status_code=self.status_code,
            status_description=self.status_description,
            inner_message=self.inner_message,
            raw_response_body=raw,
            request_id=self.request_id,
        )


class IsolatedUnitFailure(TelemetryError):
    """
    Failure reported by the isolated delivery unit.

    Carries the serialized DeliveryError as text, not a live exception.
    """

    def __init__(self, payload: str):
        super().__init__(payload)
        self.payload = payload
