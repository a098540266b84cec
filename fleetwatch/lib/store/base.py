"""Store contract consumed by the fleet monitor.

The remote store owns readings, thresholds and the alert log, and pushes
every change to subscribers. Payloads are delivered raw (as stored); parsing
and defaulting is the monitor's job.
"""

from abc import ABC, abstractmethod
from collections.abc import Mapping
from typing import Any, Protocol

from fleetwatch.lib.config import Thresholds
from fleetwatch.lib.eventbus import Channel, Handler, Subscription
from fleetwatch.lib.models import NewAlert

type RawRecord = Mapping[str, Any]
type RawReadings = Mapping[str, Any]
type RawAlerts = Mapping[str, Any]


class FleetStore(Protocol):
    """Push-based access to the remote fleet store.

    Every subscription fires at least once with the current value, then on
    every remote change. There is no ordering guarantee between streams.
    """

    def subscribe_readings(self, handler: Handler[RawReadings]) -> Subscription: ...

    def subscribe_unit(
        self, unit_id: str, handler: Handler[RawRecord | None]
    ) -> Subscription: ...

    def subscribe_thresholds(
        self, handler: Handler[RawRecord | None]
    ) -> Subscription: ...

    def subscribe_alerts(self, handler: Handler[RawAlerts]) -> Subscription: ...

    def subscribe_connection(self, handler: Handler[bool]) -> Subscription: ...

    async def save_thresholds(self, thresholds: Thresholds) -> None: ...

    async def push_alert(self, alert: NewAlert) -> str: ...

    async def fetch_alerts(self) -> RawAlerts: ...


_UNSET = object()


class ChannelStore(ABC):
    """Base for stores that fan out their latest state through channels."""

    def __init__(self) -> None:
        self._readings: Channel[RawReadings] = Channel("store.readings")
        self._thresholds: Channel[RawRecord | None] = Channel("store.thresholds")
        self._alerts: Channel[RawAlerts] = Channel("store.alerts")
        self._connection: Channel[bool] = Channel("store.connection")

    def subscribe_readings(self, handler: Handler[RawReadings]) -> Subscription:
        return self._readings.subscribe(handler)

    def subscribe_unit(
        self, unit_id: str, handler: Handler[RawRecord | None]
    ) -> Subscription:
        """Subscribe to a single unit; only changes to that unit are delivered."""
        last: object = _UNSET

        def on_readings(readings: RawReadings) -> None:
            nonlocal last
            value = readings.get(unit_id)
            if value == last:
                return
            last = value
            handler(value)

        subscription = self._readings.subscribe(on_readings)
        subscription.name = f"store.readings/{unit_id}"
        return subscription

    def subscribe_thresholds(
        self, handler: Handler[RawRecord | None]
    ) -> Subscription:
        return self._thresholds.subscribe(handler)

    def subscribe_alerts(self, handler: Handler[RawAlerts]) -> Subscription:
        return self._alerts.subscribe(handler)

    def subscribe_connection(self, handler: Handler[bool]) -> Subscription:
        return self._connection.subscribe(handler)

    async def sync(self) -> None:
        """Load the current state into the channels.

        Stores that publish on every write are always in sync.
        """

    @property
    def is_connected(self) -> bool:
        return bool(self._connection.latest)

    def _set_connected(self, connected: bool) -> None:
        if self._connection.has_value and self._connection.latest == connected:
            return
        self._connection.publish(connected)

    @abstractmethod
    async def save_thresholds(self, thresholds: Thresholds) -> None:
        """Replace the thresholds config as a whole."""

    @abstractmethod
    async def push_alert(self, alert: NewAlert) -> str:
        """Append an alert to the log and return its assigned id."""

    @abstractmethod
    async def fetch_alerts(self) -> RawAlerts:
        """Read the whole alert log once."""
