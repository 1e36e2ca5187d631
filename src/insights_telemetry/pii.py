"""PII redaction for identifiers sent with telemetry."""

from __future__ import annotations

import hashlib

from .config import TelemetrySettings


def redact(plain_text: str | None, settings: TelemetrySettings) -> str | None:
    """
    Hash a free-text identifier unless PII protection is disabled.

    Returns the uppercase hex SHA-512 digest of the UTF-8 text. None is
    hashed as the empty string. With protection disabled the input is
    returned untouched, None included.
    """
    if settings.disable_pii_protection:
        return plain_text

    return hashlib.sha512((plain_text or "").encode("utf-8")).hexdigest().upper()
