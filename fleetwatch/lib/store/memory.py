"""In-memory store for development and tests."""

from collections.abc import Callable, Mapping
from typing import Any, override

from fleetwatch.lib.config import Thresholds
from fleetwatch.lib.models import NewAlert, Reading
from fleetwatch.lib.staleness import now_ms
from fleetwatch.lib.store.base import ChannelStore, RawAlerts
from fleetwatch.logging import get_logger

logger = get_logger("lib.store.memory")


class InMemoryStore(ChannelStore):
    """Holds fleet state in process and pushes every change synchronously.

    Starts connected and publishes its initial state right away, so
    subscribers receive a value as soon as they subscribe.
    """

    def __init__(
        self,
        readings: Mapping[str, Any] | None = None,
        thresholds: Mapping[str, Any] | None = None,
        alerts: Mapping[str, Any] | None = None,
        *,
        clock: Callable[[], int] = now_ms,
    ) -> None:
        super().__init__()
        self._clock = clock
        self._reading_data: dict[str, Any] = dict(readings or {})
        self._threshold_data: dict[str, Any] | None = (
            dict(thresholds) if thresholds is not None else None
        )
        self._alert_data: dict[str, Any] = dict(alerts or {})
        self._alert_seq = 0

        self._readings.publish(dict(self._reading_data))
        self._thresholds.publish(self._threshold_copy())
        self._alerts.publish(dict(self._alert_data))
        self._set_connected(True)

    def _threshold_copy(self) -> dict[str, Any] | None:
        if self._threshold_data is None:
            return None
        return dict(self._threshold_data)

    def set_reading(self, unit_id: str, reading: Reading | Mapping[str, Any]) -> None:
        """Overwrite a unit's latest reading (last write wins)."""
        if isinstance(reading, Reading):
            reading = reading.to_dict()
        self._reading_data[unit_id] = dict(reading)
        self._readings.publish(dict(self._reading_data))

    def remove_reading(self, unit_id: str) -> None:
        """Remove a unit from the fleet."""
        if self._reading_data.pop(unit_id, None) is not None:
            self._readings.publish(dict(self._reading_data))

    def set_connected(self, connected: bool) -> None:
        """Simulate the transport going down or coming back."""
        self._set_connected(connected)

    @override
    async def save_thresholds(self, thresholds: Thresholds) -> None:
        self._threshold_data = thresholds.to_dict()
        self._thresholds.publish(self._threshold_copy())
        logger.info("Saved thresholds: %s", self._threshold_data)

    @override
    async def push_alert(self, alert: NewAlert) -> str:
        self._alert_seq += 1
        timestamp = self._clock()
        alert_id = f"{timestamp:013d}-{self._alert_seq:06d}"
        self._alert_data[alert_id] = {**alert.to_dict(), "timestamp": timestamp}
        self._alerts.publish(dict(self._alert_data))
        logger.info("Appended %s alert %s for %s", alert.kind, alert_id, alert.unit_id)
        return alert_id

    @override
    async def fetch_alerts(self) -> RawAlerts:
        return dict(self._alert_data)
