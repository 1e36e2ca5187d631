"""Tests for event construction."""

import errno
import hashlib
import json
from datetime import datetime, timezone

import pytest

from insights_telemetry.builder import EventBuilder, format_hresult, SDK_VERSION
from insights_telemetry.config import TelemetrySettings
from insights_telemetry.events import BaseType, EVENT_ENVELOPE_NAME


OCTOCAT_HASH = hashlib.sha512(b"octocat").hexdigest().upper()


def _raise(exc):
    raise exc


class TestBaseEvent:
    def test_envelope_fields(self, builder, settings):
        event = builder.base_event()

        assert event.name == EVENT_ENVELOPE_NAME
        assert event.time == "2024-01-15T12:30:00+00:00"
        assert event.instrumentation_key == settings.application_insights_key
        assert event.data.base_type == BaseType.EVENT
        assert event.tags == {
            "ai.user.id": OCTOCAT_HASH,
            "ai.session.id": "session-1",
            "ai.application.ver": "1.2.3",
            "ai.internal.sdkVersion": SDK_VERSION,
        }

    def test_default_properties(self, builder):
        event = builder.base_event()
        assert event.properties == {"DayOfWeek": "Monday", "Username": OCTOCAT_HASH}

    def test_copies_are_equal_but_independent(self, builder):
        first = builder.base_event()
        second = builder.base_event()

        assert first == second
        assert first is not second
        assert first.data.base_data.properties is not second.data.base_data.properties

        first.properties["Extra"] = "value"
        first.tags["ai.session.id"] = "changed"
        first.data.base_data.measurements["M"] = 1.0

        third = builder.base_event()
        assert "Extra" not in second.properties
        assert "Extra" not in third.properties
        assert third.tags["ai.session.id"] == "session-1"
        assert third.measurements == {}

    def test_timestamp_is_snapshot(self, settings):
        times = iter([
            datetime(2024, 1, 15, tzinfo=timezone.utc),
            datetime(2024, 1, 16, tzinfo=timezone.utc),
        ])
        builder = EventBuilder(settings=settings, user_name="u", clock=lambda: next(times))

        first = builder.base_event()
        second = builder.base_event()
        assert first.time == second.time
        assert second.properties["DayOfWeek"] == "Monday"

    def test_pii_disabled_uses_plain_username(self, settings):
        settings.disable_pii_protection = True
        builder = EventBuilder(settings=settings, user_name="octocat")

        event = builder.base_event()
        assert event.tags["ai.user.id"] == "octocat"
        assert event.properties["Username"] == "octocat"

    def test_session_id_is_random_per_builder(self, settings):
        a = EventBuilder(settings=settings, user_name="u")
        b = EventBuilder(settings=settings, user_name="u")
        assert a.session_id != b.session_id
        assert a.base_event().tags["ai.session.id"] == a.session_id

    @pytest.mark.parametrize("key", ["", "   "])
    def test_missing_key_raises(self, key):
        settings = TelemetrySettings(application_insights_key=key)
        builder = EventBuilder(settings=settings, user_name="u")

        with pytest.raises(ValueError, match="ApplicationInsightsKey"):
            builder.base_event()


class TestCustomEvent:
    def test_name_and_properties(self, builder):
        event = builder.custom_event("X", {"A": "B"}, {})

        assert event.data.base_data.name == "X"
        assert event.properties["A"] == "B"
        assert "measurements" not in event.to_dict()["data"]["baseData"]

    def test_metrics(self, builder):
        event = builder.custom_event("X", {}, {"M": 1.5})

        assert event.measurements["M"] == 1.5
        assert event.to_dict()["data"]["baseData"]["measurements"] == {"M": 1.5}

    def test_properties_overwrite_defaults(self, builder):
        event = builder.custom_event("X", {"DayOfWeek": "Caturday", "Count": 3})

        assert event.properties["DayOfWeek"] == "Caturday"
        assert event.properties["Count"] == "3"

    def test_does_not_leak_into_template(self, builder):
        builder.custom_event("X", {"A": "B"}, {"M": 2})
        base = builder.base_event()

        assert base.data.base_data.name is None
        assert "A" not in base.properties
        assert base.measurements == {}

    def test_json_body(self, builder):
        body = json.loads(builder.custom_event("Get-Report", {"Target": "docs"}).to_json())

        assert body["iKey"] == builder.settings.application_insights_key
        assert body["data"]["baseType"] == "EventData"
        assert body["data"]["baseData"]["ver"] == 2
        assert body["data"]["baseData"]["name"] == "Get-Report"
        assert body["data"]["baseData"]["properties"]["Target"] == "docs"
        assert "exceptions" not in body["data"]["baseData"]


class TestExceptionEvent:
    def _caught(self, exc):
        try:
            _raise(exc)
        except Exception as e:
            return e

    def test_exception_fields(self, builder):
        error = self._caught(RuntimeError("disk full"))
        event = builder.exception_event(error, "Export-Data", {"Target": "docs"})

        assert event.data.base_type == BaseType.EXCEPTION
        assert event.data.base_data.handled_at == "UserCode"
        assert event.properties["ErrorBucket"] == "Export-Data"
        assert event.properties["Message"] == "disk full"
        assert event.properties["HResult"] == "0x00000000"
        assert event.properties["Target"] == "docs"

    def test_single_exception_record(self, builder):
        error = self._caught(RuntimeError("disk full"))
        event = builder.exception_event(error)

        assert len(event.data.base_data.exceptions) == 1
        record = event.data.base_data.exceptions[0]
        assert record.type_name == "builtins.RuntimeError"
        assert record.message == "disk full"
        assert record.has_full_stack
        # Innermost frame first
        assert record.parsed_stack[0].method == "_raise"
        assert record.parsed_stack[0].assembly == "test_builder"

    @pytest.mark.parametrize("bucket", [None, "", "   "])
    def test_blank_bucket_omitted(self, builder, bucket):
        event = builder.exception_event(RuntimeError("x"), bucket)
        assert "ErrorBucket" not in event.properties

    def test_unraised_exception_has_no_stack(self, builder):
        event = builder.exception_event(ValueError("never raised"))
        record = event.data.base_data.exceptions[0]

        assert record.parsed_stack == []
        assert not record.has_full_stack

    def test_wire_form(self, builder):
        event = builder.exception_event(self._caught(KeyError("k")), "Get-Thing")
        base_data = event.to_dict()["data"]["baseData"]

        assert event.to_dict()["data"]["baseType"] == "ExceptionData"
        assert base_data["handledAt"] == "UserCode"
        assert base_data["exceptions"][0]["typeName"] == "builtins.KeyError"
        assert base_data["exceptions"][0]["parsedStack"][0]["fileName"].endswith("test_builder.py")


class TestHResult:
    def test_errno(self):
        assert format_hresult(OSError(errno.ENOENT, "missing")) == f"0x{errno.ENOENT:08X}"

    def test_hresult_attribute_wins(self):
        error = RuntimeError("x")
        error.hresult = -2146233088
        assert format_hresult(error) == "0x80131500"

    def test_default(self):
        assert format_hresult(ValueError("x")) == "0x00000000"
