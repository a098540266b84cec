"""Fleet aggregator: folds unit classifications into a fleet snapshot."""

from __future__ import annotations

import math
from collections.abc import Mapping
from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal
from types import MappingProxyType
from typing import Any

from fleetwatch.lib.classifier import classify
from fleetwatch.lib.config import FleetStatus, Thresholds, UnitStatus
from fleetwatch.lib.models import Reading


@dataclass(frozen=True, slots=True)
class UnitView:
    """A unit's reading enriched with its derived status."""

    unit_id: str
    status: UnitStatus
    is_online: bool
    last_seen_ago: int | None
    humidity: float | None = None
    temperature: float | None = None
    battery: int | None = None
    timestamp: int | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "nodeId": self.unit_id,
            "hum": self.humidity,
            "temp": self.temperature,
            "battery": self.battery,
            "timestamp": self.timestamp,
            "status": str(self.status),
            "isOnline": self.is_online,
            "lastSeenAgo": self.last_seen_ago,
        }


_EMPTY_UNITS: Mapping[str, UnitView] = MappingProxyType({})


@dataclass(frozen=True, slots=True)
class FleetSnapshot:
    """Immutable aggregate view of fleet health at one point in time."""

    overall_status: FleetStatus = FleetStatus.NO_DATA
    average_temperature: float = 0
    average_humidity: float = 0
    total_units: int = 0
    online_units: int = 0
    offline_units: int = 0
    at_risk_count: int = 0
    critical_count: int = 0
    low_battery_units: tuple[str, ...] = ()
    units: Mapping[str, UnitView] = field(default_factory=lambda: _EMPTY_UNITS)
    computed_at: int = 0

    @property
    def critical_units(self) -> tuple[str, ...]:
        """Ids of the units currently classified Critical."""
        return tuple(
            unit_id
            for unit_id, unit in self.units.items()
            if unit.status == UnitStatus.CRITICAL
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "overallStatus": str(self.overall_status),
            "averageTemp": self.average_temperature,
            "averageHum": self.average_humidity,
            "totalNodes": self.total_units,
            "onlineNodes": self.online_units,
            "offlineNodes": self.offline_units,
            "atRiskNodesCount": self.at_risk_count,
            "criticalNodesCount": self.critical_count,
            "lowBatteryNodes": list(self.low_battery_units),
            "enrichedNodes": {
                unit_id: unit.to_dict() for unit_id, unit in self.units.items()
            },
        }


def _seconds_since(timestamp: int | None, now: float) -> int | None:
    if not timestamp:
        return None
    return math.floor((now - timestamp) / 1000)


def enrich_unit(
    unit_id: str,
    reading: Reading | None,
    thresholds: Thresholds,
    now: float,
) -> UnitView:
    """Classify a single unit and attach its reading fields."""
    status = classify(reading, thresholds, now)
    reading = reading or Reading()
    return UnitView(
        unit_id=unit_id,
        status=status,
        is_online=status != UnitStatus.OFFLINE,
        last_seen_ago=_seconds_since(reading.timestamp, now),
        humidity=reading.humidity,
        temperature=reading.temperature,
        battery=reading.battery,
        timestamp=reading.timestamp,
    )


def _average(total: float, count: int) -> float:
    """Mean rounded to one decimal, ties away from zero."""
    if count <= 0:
        return 0
    mean = Decimal(repr(total / count))
    return float(mean.quantize(Decimal("0.1"), rounding=ROUND_HALF_UP))


def aggregate(
    readings: Mapping[str, Reading | None],
    thresholds: Thresholds,
    now: float,
) -> FleetSnapshot:
    """Aggregate every unit's status into a fleet-wide snapshot.

    Averages only cover online units. The overall status is the most severe
    unit status: a single Critical unit makes the whole fleet Critical. A
    fleet with no online units reports No Data.
    """
    computed_at = int(now)
    if not readings:
        return FleetSnapshot(computed_at=computed_at)

    temp_sum = 0.0
    hum_sum = 0.0
    online = 0
    at_risk = 0
    critical = 0
    low_battery: list[str] = []
    units: dict[str, UnitView] = {}

    for unit_id, reading in readings.items():
        unit = enrich_unit(unit_id, reading, thresholds, now)
        units[unit_id] = unit

        if unit.is_online:
            temp_sum += unit.temperature or 0
            hum_sum += unit.humidity or 0
            online += 1

        if unit.status == UnitStatus.AT_RISK:
            at_risk += 1
        elif unit.status == UnitStatus.CRITICAL:
            critical += 1

        if (
            unit.is_online
            and unit.battery is not None
            and unit.battery < thresholds.min_battery
        ):
            low_battery.append(unit_id)

    if critical > 0:
        overall = FleetStatus.CRITICAL
    elif at_risk > 0:
        overall = FleetStatus.AT_RISK
    elif online == 0:
        overall = FleetStatus.NO_DATA
    else:
        overall = FleetStatus.OPTIMAL

    return FleetSnapshot(
        overall_status=overall,
        average_temperature=_average(temp_sum, online),
        average_humidity=_average(hum_sum, online),
        total_units=len(readings),
        online_units=online,
        offline_units=len(readings) - online,
        at_risk_count=at_risk,
        critical_count=critical,
        low_battery_units=tuple(low_battery),
        units=MappingProxyType(units),
        computed_at=computed_at,
    )
