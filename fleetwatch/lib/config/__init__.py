"""Centralized configuration for the FleetWatch application.

This package provides:
- Enums for unit and fleet status, alert kinds and notification backends
- Policy constants (staleness timeout, critical margin, default thresholds)
- The Thresholds model and its merge with partial remote config
- Pydantic settings models for environment configuration
"""

from .constants import (
    CRITICAL_MARGIN,
    STALE_THRESHOLD_MS,
    THRESHOLD_INPUT_MAX,
    THRESHOLD_INPUT_MIN,
)
from .enums import (
    AlertKind,
    FleetStatus,
    NotificationBackend,
    StorePath,
    UnitStatus,
)
from .settings import (
    GmailSettings,
    MockSettings,
    MonitorSettings,
    NotificationSettings,
    Settings,
    SlackSettings,
    StoreSettings,
    get_settings,
)
from .thresholds import DEFAULT_THRESHOLDS, Thresholds, merge_thresholds

__all__ = [
    # Constants
    "CRITICAL_MARGIN",
    "DEFAULT_THRESHOLDS",
    "STALE_THRESHOLD_MS",
    "THRESHOLD_INPUT_MAX",
    "THRESHOLD_INPUT_MIN",
    # Enums
    "AlertKind",
    "FleetStatus",
    "NotificationBackend",
    "StorePath",
    "UnitStatus",
    # Settings models
    "GmailSettings",
    "MockSettings",
    "MonitorSettings",
    "NotificationSettings",
    "Settings",
    "SlackSettings",
    "StoreSettings",
    "Thresholds",
    # Functions
    "get_settings",
    "merge_thresholds",
]
