"""Unit classifier: maps one unit's latest reading to a health status."""

from fleetwatch.lib.config import CRITICAL_MARGIN, Thresholds, UnitStatus
from fleetwatch.lib.models import Reading
from fleetwatch.lib.staleness import is_stale


def _exceeds(value: float | None, ceiling: float) -> bool:
    # A missing measurement never counts as a breach
    return value is not None and value > ceiling


def classify(
    reading: Reading | None, thresholds: Thresholds, now: float
) -> UnitStatus:
    """Classify a unit against the active thresholds.

    Staleness wins over everything else: a silent unit is Offline whatever
    its last values were. Exceeding a ceiling is At Risk; exceeding it by
    more than CRITICAL_MARGIN is Critical. Battery level does not affect the
    status, it only feeds the fleet's low-battery list.
    """
    if reading is None or is_stale(reading.timestamp, now):
        return UnitStatus.OFFLINE

    max_hum = thresholds.max_humidity
    max_temp = thresholds.max_temperature

    if _exceeds(reading.humidity, max_hum * CRITICAL_MARGIN) or _exceeds(
        reading.temperature, max_temp * CRITICAL_MARGIN
    ):
        return UnitStatus.CRITICAL

    if _exceeds(reading.humidity, max_hum) or _exceeds(
        reading.temperature, max_temp
    ):
        return UnitStatus.AT_RISK

    return UnitStatus.OPTIMAL
