"""Enumerations for the FleetWatch application."""

from enum import StrEnum


class NotificationBackend(StrEnum):
    GMAIL = "gmail"
    SLACK = "slack"


class UnitStatus(StrEnum):
    """Health of a single unit, derived from its latest reading."""

    OPTIMAL = "Optimal"
    AT_RISK = "At Risk"
    CRITICAL = "Critical"
    OFFLINE = "Offline"


class FleetStatus(StrEnum):
    """Overall health of the fleet."""

    OPTIMAL = "Optimal"
    AT_RISK = "At Risk"
    CRITICAL = "Critical"
    NO_DATA = "No Data"


class AlertKind(StrEnum):
    """Kind of breach recorded in the alert log."""

    HUMIDITY = "humidity"
    TEMPERATURE = "temperature"
    BATTERY = "battery"


class StorePath(StrEnum):
    """Logical paths in the remote store."""

    READINGS = "readings"
    THRESHOLDS = "configs/thresholds"
    ALERTS = "logs/alerts"
