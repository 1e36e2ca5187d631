"""Telemetry event types."""

from __future__ import annotations

import json
import traceback
from dataclasses import dataclass, field
from enum import Enum
from typing import Any


EVENT_ENVELOPE_NAME = "Microsoft.ApplicationInsights.Event"
SCHEMA_VERSION = 2


class BaseType(str, Enum):
    """Kind of payload carried in the envelope."""
    EVENT = "EventData"
    EXCEPTION = "ExceptionData"


@dataclass
class StackFrame:
    """One frame of a parsed exception stack."""
    level: int
    method: str
    assembly: str  # Python module of the frame
    file_name: str
    line: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "level": self.level,
            "method": self.method,
            "assembly": self.assembly,
            "fileName": self.file_name,
            "line": self.line,
        }


@dataclass
class ExceptionRecord:
    """Details of one exception attached to an ExceptionData event."""
    type_name: str
    message: str
    id: int = 1
    outer_id: int = 0
    has_full_stack: bool = True
    parsed_stack: list[StackFrame] = field(default_factory=list)

    @classmethod
    def from_exception(cls, exception: BaseException) -> ExceptionRecord:
        """Build a record from a live exception and its traceback."""
        frames = traceback.extract_tb(exception.__traceback__)
        # Innermost frame first
        parsed = [
            StackFrame(
                level=level,
                method=frame.name,
                assembly=_module_name(frame.filename),
                file_name=frame.filename,
                line=frame.lineno or 0,
            )
            for level, frame in enumerate(reversed(frames))
        ]
        exc_type = type(exception)
        return cls(
            type_name=f"{exc_type.__module__}.{exc_type.__qualname__}",
            message=str(exception),
            has_full_stack=bool(parsed),
            parsed_stack=parsed,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "outerId": self.outer_id,
            "typeName": self.type_name,
            "message": self.message,
            "hasFullStack": self.has_full_stack,
            "parsedStack": [frame.to_dict() for frame in self.parsed_stack],
        }


def _module_name(filename: str) -> str:
    name = filename.replace("\\", "/").rsplit("/", 1)[-1]
    return name[:-3] if name.endswith(".py") else name


@dataclass
class BaseData:
    """The baseData section: name, property bag and measurements."""
    ver: int = SCHEMA_VERSION
    name: str | None = None
    properties: dict[str, str] = field(default_factory=dict)
    measurements: dict[str, float] = field(default_factory=dict)
    handled_at: str | None = None
    exceptions: list[ExceptionRecord] = field(default_factory=list)


@dataclass
class EventData:
    """The data section of the envelope."""
    base_type: BaseType = BaseType.EVENT
    base_data: BaseData = field(default_factory=BaseData)


@dataclass
class TelemetryEvent:
    """
    A single telemetry envelope as accepted by the ingestion endpoint.

    Optional sections are left out of the wire form:
    - measurements only when non-empty
    - exceptions only for ExceptionData
    """
    time: str
    instrumentation_key: str
    tags: dict[str, str] = field(default_factory=dict)
    data: EventData = field(default_factory=EventData)
    name: str = EVENT_ENVELOPE_NAME

    @property
    def properties(self) -> dict[str, str]:
        return self.data.base_data.properties

    @property
    def measurements(self) -> dict[str, float]:
        return self.data.base_data.measurements

    def to_dict(self) -> dict[str, Any]:
        """Convert to the wire structure."""
        base = self.data.base_data
        base_data: dict[str, Any] = {"ver": base.ver}
        if base.name is not None:
            base_data["name"] = base.name
        if base.handled_at is not None:
            base_data["handledAt"] = base.handled_at
        base_data["properties"] = dict(base.properties)
        if base.measurements:
            base_data["measurements"] = dict(base.measurements)
        if self.data.base_type == BaseType.EXCEPTION:
            base_data["exceptions"] = [record.to_dict() for record in base.exceptions]

        return {
            "name": self.name,
            "time": self.time,
            "iKey": self.instrumentation_key,
            "tags": dict(self.tags),
            "data": {
                "baseType": self.data.base_type.value,
                "baseData": base_data,
            },
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), default=str)
