"""Delivery of telemetry envelopes to the ingestion endpoint."""

from __future__ import annotations

import logging
from concurrent.futures import Executor, ProcessPoolExecutor, ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import TextIO, Union

import httpx

from .config import TelemetrySettings
from .errors import DeliveryError, IsolatedUnitFailure, TransportFailure
from .events import TelemetryEvent
from .progress import wait_with_animation


logger = logging.getLogger(__name__)

CONTENT_TYPE = "application/json; charset=UTF-8"

# Checked in order for a correlation id on failed responses
REQUEST_ID_HEADERS = ("Request-Id", "X-Request-Id", "x-ms-request-id")


@dataclass(frozen=True)
class DeliveryRequest:
    """
    Everything needed to perform one send, passed by value.

    Picklable so it can cross into a worker process.
    """
    url: str
    body: bytes
    headers: tuple[tuple[str, str], ...] = (("Content-Type", CONTENT_TYPE),)
    timeout: float | None = None
    method: str = "POST"


@dataclass(frozen=True)
class DeliveryOutcome:
    """Result handed back by the isolated delivery unit."""
    succeeded: bool
    status_code: int | None = None
    # DeliveryError serialized as JSON when the send failed
    error: str | None = None


def post(request: DeliveryRequest, transport: httpx.BaseTransport | None = None) -> httpx.Response:
    """
    Perform a single HTTP attempt.

    Raises:
        TransportFailure: on connection errors, timeouts and non-2xx responses
    """
    try:
        with httpx.Client(timeout=request.timeout, transport=transport) as client:
            response = client.request(
                request.method,
                request.url,
                content=request.body,
                headers=dict(request.headers),
            )
    except httpx.HTTPError as e:
        raise TransportFailure(f"{type(e).__name__}: {e}") from e

    if not response.is_success:
        raise _failure_from_response(request, response)

    return response


def _failure_from_response(request: DeliveryRequest, response: httpx.Response) -> TransportFailure:
    body = _response_body(response)
    content_type = response.headers.get("content-type", "")
    inner_message = body if body and "json" in content_type.lower() else None

    request_id = None
    for header in REQUEST_ID_HEADERS:
        if header in response.headers:
            request_id = response.headers[header]
            break

    return TransportFailure(
        f"Response status code does not indicate success: {response.status_code} "
        f"({response.reason_phrase}) for {request.method} {request.url}",
        status_code=response.status_code,
        status_description=response.reason_phrase,
        headers=dict(response.headers),
        body=body,
        inner_message=inner_message,
        request_id=request_id,
    )


def _response_body(response: httpx.Response) -> str | None:
    # A broken body must never hide the delivery failure itself
    try:
        return response.text
    except (httpx.HTTPError, UnicodeDecodeError, LookupError) as e:
        logger.warning(f"Unable to read telemetry response body: {e}")
        return None


def deliver_in_isolation(
    request: DeliveryRequest,
    transport: httpx.BaseTransport | None = None,
) -> DeliveryOutcome:
    """
    Entry point of the isolated delivery unit.

    Transport failures are converted to a serialized DeliveryError because
    live exception objects don't survive the trip back to the caller.
    """
    try:
        response = post(request, transport)
    except TransportFailure as failure:
        return DeliveryOutcome(
            succeeded=False,
            status_code=failure.status_code,
            error=failure.to_delivery_error().to_json(),
        )
    return DeliveryOutcome(succeeded=True, status_code=response.status_code)


@dataclass
class DeliveryDispatcher:
    """
    Sends telemetry envelopes, one attempt per call.

    Synchronous sends run on the calling thread and raise TransportFailure.
    Asynchronous sends run in an isolated unit (thread or process) while the
    caller waits, and raise IsolatedUnitFailure carrying the serialized error.
    """
    settings: TelemetrySettings

    # Custom transport (tests); only used with thread isolation
    transport: httpx.BaseTransport | None = None

    # Where the progress spinner is drawn (default stderr)
    progress_stream: TextIO | None = field(default=None, repr=False)

    def build_request(self, event: TelemetryEvent, timeout_seconds: float | None = None) -> DeliveryRequest:
        if timeout_seconds is None:
            timeout = self.settings.timeout
        else:
            timeout = float(timeout_seconds) if timeout_seconds > 0 else None
        return DeliveryRequest(
            url=self.settings.ingestion_url,
            body=event.to_json().encode("utf-8"),
            timeout=timeout,
        )

    def send(
        self,
        event: TelemetryEvent,
        synchronous: bool,
        timeout_seconds: float | None = None,
    ) -> Union[httpx.Response, DeliveryOutcome]:
        """
        Send one event.

        Args:
            event: Envelope to serialize and post
            synchronous: Run on the calling thread instead of an isolated unit
            timeout_seconds: Override for WebRequestTimeoutSec (0 = no timeout)
        """
        request = self.build_request(event, timeout_seconds)

        if synchronous:
            logger.debug(f"Sending telemetry synchronously to {request.url}")
            return post(request, self.transport)

        return self._send_isolated(request)

    def _send_isolated(self, request: DeliveryRequest) -> DeliveryOutcome:
        isolation = self.settings.delivery_isolation
        logger.debug(f"Sending telemetry to {request.url} via isolated {isolation}")

        with self._executor() as executor:
            if isolation == "process":
                future = executor.submit(deliver_in_isolation, request)
            else:
                future = executor.submit(deliver_in_isolation, request, self.transport)

            if self.settings.show_progress:
                wait_with_animation(future, stream=self.progress_stream)
            outcome = future.result()

        if not outcome.succeeded:
            raise IsolatedUnitFailure(
                outcome.error or DeliveryError(message="Telemetry delivery failed").to_json()
            )
        return outcome

    def _executor(self) -> Executor:
        if self.settings.delivery_isolation == "process":
            return ProcessPoolExecutor(max_workers=1)
        return ThreadPoolExecutor(max_workers=1, thread_name_prefix="telemetry-send")
