"""Turns delivery failures into a readable multi-line diagnostic."""

from __future__ import annotations

import json
import logging
import os
from typing import Any

from .errors import DeliveryError, IsolatedUnitFailure, TransportFailure


logger = logging.getLogger(__name__)


def to_delivery_error(failure: BaseException) -> DeliveryError:
    """
    Extract the DeliveryError fields from either failure shape.

    Raises:
        The original failure, unchanged, if it is neither a TransportFailure
        nor an IsolatedUnitFailure.
    """
    if isinstance(failure, TransportFailure):
        return failure.to_delivery_error()

    if isinstance(failure, IsolatedUnitFailure):
        try:
            return DeliveryError.from_json(failure.payload)
        except ValueError:
            return DeliveryError(message=failure.payload)

    logger.error(f"Unrecognized telemetry failure: {type(failure).__name__}: {failure}")
    raise failure


def normalize(failure: BaseException) -> str:
    """Build the diagnostic text for a failed send."""
    error = to_delivery_error(failure)
    lines = [error.message]

    if error.status_code is not None:
        lines.append(f"{error.status_code} | {(error.status_description or '').strip()}")

    if error.inner_message and error.inner_message.strip():
        lines.extend(_inner_message_lines(error.inner_message))

    if error.raw_response_body and error.raw_response_body.strip():
        lines.append(error.raw_response_body)

    if error.request_id:
        lines.append(f"RequestId: {error.request_id}")

    return os.linesep.join(lines)


def _inner_message_lines(inner_message: str) -> list[str]:
    try:
        parsed = json.loads(inner_message)
    except ValueError:
        # Not JSON, keep the text as-is
        return [inner_message.strip()]

    if isinstance(parsed, str):
        return [parsed.strip()]

    if isinstance(parsed, dict) and str(parsed.get("message") or "").strip():
        message = str(parsed["message"]).strip()
        documentation_url = str(parsed.get("documentation_url") or "").strip()
        lines = [f"{message} | {documentation_url}"]
        if "details" in parsed:
            lines.append(format_details(parsed["details"]))
        return lines

    return [str(parsed)]


def format_details(details: Any) -> str:
    """
    Render an error `details` value as a fixed-width table.

    Lists of objects become one row per object with a column per key;
    a single object becomes a one-row table; anything else is one
    value per line.
    """
    if isinstance(details, dict):
        details = [details]

    if not isinstance(details, list):
        return str(details)

    if not all(isinstance(row, dict) for row in details):
        return os.linesep.join(str(item) for item in details)

    columns: list[str] = []
    for row in details:
        for key in row:
            if key not in columns:
                columns.append(key)

    if not columns:
        return ""

    cells = [[_cell(row.get(col)) for col in columns] for row in details]
    widths = [
        max([len(col)] + [len(r[i]) for r in cells])
        for i, col in enumerate(columns)
    ]

    def render(values: list[str]) -> str:
        return " ".join(v.ljust(w) for v, w in zip(values, widths)).rstrip()

    table = [render(columns), render(["-" * w for w in widths])]
    table.extend(render(r) for r in cells)
    return os.linesep.join(table)


def _cell(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, (dict, list)):
        return json.dumps(value)
    return str(value)
