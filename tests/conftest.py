"""Shared test fixtures for telemetry tests."""

import sys
from datetime import datetime, timezone
from pathlib import Path

import httpx
import pytest

_REPO_ROOT = Path(__file__).parent.parent
if (_REPO_ROOT / "src" / "insights_telemetry").exists():
    sys.path.insert(0, str(_REPO_ROOT / "src"))

from insights_telemetry import client as client_module
from insights_telemetry.builder import EventBuilder
from insights_telemetry.config import TelemetrySettings
from insights_telemetry.dispatcher import DeliveryDispatcher


# A Monday
FIXED_NOW = datetime(2024, 1, 15, 12, 30, 0, tzinfo=timezone.utc)


class RecordingTransport:
    """Mock transport that records requests and replies with a canned response."""

    def __init__(self, status_code=200, json=None, content=b"", headers=None, error=None):
        self.status_code = status_code
        self.json = json
        self.content = content
        self.headers = headers or {}
        self.error = error
        self.requests: list[httpx.Request] = []

    def handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.error is not None:
            raise self.error(f"simulated {self.error.__name__}", request=request)
        if self.json is not None:
            return httpx.Response(self.status_code, json=self.json, headers=self.headers)
        return httpx.Response(self.status_code, content=self.content, headers=self.headers)

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handle)


@pytest.fixture
def settings() -> TelemetrySettings:
    """Telemetry enabled, reminder and spinner off."""
    return TelemetrySettings(
        disable_telemetry=False,
        disable_pii_protection=False,
        suppress_telemetry_reminder=True,
        application_insights_key="00000000-1111-2222-3333-444444444444",
        web_request_timeout_sec=5,
        default_no_status=False,
        delivery_isolation="thread",
        show_progress=False,
        application_version="1.2.3",
    )


@pytest.fixture
def builder(settings) -> EventBuilder:
    return EventBuilder(
        settings=settings,
        session_id="session-1",
        user_name="octocat",
        clock=lambda: FIXED_NOW,
    )


@pytest.fixture
def transport_factory():
    return RecordingTransport


@pytest.fixture
def ok_transport() -> RecordingTransport:
    return RecordingTransport(status_code=200, json={"itemsReceived": 1, "itemsAccepted": 1})


@pytest.fixture
def forbidden_transport() -> RecordingTransport:
    return RecordingTransport(
        status_code=403,
        json={"message": "Bad credentials", "documentation_url": "http://x"},
        headers={"Request-Id": "req-42"},
    )


@pytest.fixture
def make_dispatcher(settings):
    def factory(recording: RecordingTransport) -> DeliveryDispatcher:
        return DeliveryDispatcher(settings=settings, transport=recording.transport)
    return factory


@pytest.fixture(autouse=True)
def reset_default_client():
    """Keep the module-level default client from leaking between tests."""
    client_module.set_client(None)
    yield
    client_module.set_client(None)
