"""Shared constants for the configuration module.

These constants are separated to avoid circular imports between settings.py
and thresholds.py.
"""

# A unit silent for longer than this is Offline
STALE_THRESHOLD_MS = 120_000

# Exceeding a ceiling by more than 10% escalates At Risk to Critical
CRITICAL_MARGIN = 1.1

# Used until the first authoritative thresholds arrive from the store
DEFAULT_MAX_HUMIDITY = 60.0  # %
DEFAULT_MAX_TEMPERATURE = 30.0  # Celsius
DEFAULT_MIN_BATTERY = 20  # %

# Bounds accepted by the threshold editor
THRESHOLD_INPUT_MIN = 0
THRESHOLD_INPUT_MAX = 200
