"""Domain models for unit readings and alert log records.

Raw payloads come from the remote store and are parsed leniently: a missing
or malformed field becomes None instead of raising, so a single bad record
never stops the fleet from being evaluated.
"""

from __future__ import annotations

import math
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from fleetwatch.lib.config import AlertKind


def _as_float(value: Any) -> float | None:
    if isinstance(value, bool) or not isinstance(value, int | float):
        return None
    if not math.isfinite(value):
        return None
    return float(value)


def _as_int(value: Any) -> int | None:
    number = _as_float(value)
    return None if number is None else int(number)


def _as_number(value: Any) -> int | float | None:
    """Keep ints as ints so exported values match their JSON form."""
    if isinstance(value, bool) or not isinstance(value, int | float):
        return None
    if isinstance(value, float) and not math.isfinite(value):
        return None
    return value


@dataclass(frozen=True, slots=True)
class Reading:
    """The latest telemetry reported by one unit."""

    humidity: float | None = None
    temperature: float | None = None
    battery: int | None = None
    timestamp: int | None = None

    @classmethod
    def from_raw(cls, raw: Mapping[str, Any]) -> Reading:
        """Create a reading from its wire form ({hum, temp, battery, timestamp})."""
        return cls(
            humidity=_as_float(raw.get("hum")),
            temperature=_as_float(raw.get("temp")),
            battery=_as_int(raw.get("battery")),
            timestamp=_as_int(raw.get("timestamp")),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "hum": self.humidity,
            "temp": self.temperature,
            "battery": self.battery,
            "timestamp": self.timestamp,
        }


def parse_reading(raw: Any) -> Reading | None:
    """Parse one unit's raw reading; anything but a mapping is absent."""
    if not isinstance(raw, Mapping):
        return None
    return Reading.from_raw(raw)


def parse_readings(raw: Any) -> dict[str, Reading | None]:
    """Parse the raw readings map keyed by unit id."""
    if not isinstance(raw, Mapping):
        return {}
    return {str(unit_id): parse_reading(value) for unit_id, value in raw.items()}


@dataclass(frozen=True, slots=True)
class NewAlert:
    """An alert about to be appended to the log (id and time set by the store)."""

    unit_id: str
    kind: AlertKind
    value: float
    threshold: float
    message: str | None = None

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "nodeId": self.unit_id,
            "type": str(self.kind),
            "value": self.value,
            "threshold": self.threshold,
        }
        if self.message is not None:
            payload["message"] = self.message
        return payload


@dataclass(frozen=True, slots=True)
class AlertRecord:
    """A threshold breach recorded in the append-only alert log."""

    id: str
    unit_id: str | None
    kind: AlertKind | str | None
    value: int | float | None
    threshold: int | float | None
    message: str | None
    timestamp: int | None

    @classmethod
    def from_raw(cls, record_id: str, raw: Mapping[str, Any]) -> AlertRecord:
        """Create a record from its store key and wire form."""
        kind = raw.get("type")
        if isinstance(kind, str) and kind in set(AlertKind):
            kind = AlertKind(kind)
        elif not isinstance(kind, str):
            kind = None
        unit_id = raw.get("nodeId")
        message = raw.get("message")
        return cls(
            id=str(record_id),
            unit_id=None if unit_id is None else str(unit_id),
            kind=kind,
            value=_as_number(raw.get("value")),
            threshold=_as_number(raw.get("threshold")),
            message=None if message is None else str(message),
            timestamp=_as_int(raw.get("timestamp")),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "nodeId": self.unit_id,
            "type": None if self.kind is None else str(self.kind),
            "value": self.value,
            "threshold": self.threshold,
            "message": self.message,
            "timestamp": self.timestamp,
        }
