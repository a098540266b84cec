"""Staleness policy: when a silent unit is treated as offline."""

import time

from fleetwatch.lib.config import STALE_THRESHOLD_MS


def now_ms() -> int:
    """Return the current wall clock time in epoch milliseconds."""
    return int(time.time() * 1000)


def is_stale(
    last_seen_ms: float | None,
    now: float,
    threshold_ms: int = STALE_THRESHOLD_MS,
) -> bool:
    """Check whether a unit has been silent for longer than threshold_ms.

    A unit that has never reported (no or zero timestamp) is always stale.
    """
    if not last_seen_ms:
        return True
    return now - last_seen_ms > threshold_ms
