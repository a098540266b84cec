"""Fleet monitor: multiplexes store subscriptions into fleet snapshots.

Holds the latest readings, thresholds and alert log pushed by the store,
and recomputes the fleet snapshot from the current readings and thresholds
on every update of either. Everything runs synchronously inside the store's
callbacks, so no locking is needed: each handler sees and leaves a
consistent state.
"""

from collections.abc import Callable, Mapping
from datetime import UTC, datetime
from types import MappingProxyType
from typing import Any, Self

from fleetwatch.lib.aggregator import FleetSnapshot, UnitView, aggregate
from fleetwatch.lib.alarm import CriticalAlarm
from fleetwatch.lib.alertlog import project
from fleetwatch.lib.config import DEFAULT_THRESHOLDS, Thresholds, merge_thresholds
from fleetwatch.lib.eventbus import Channel, Handler, Subscription, SubscriptionGroup
from fleetwatch.lib.models import AlertRecord, Reading, parse_readings
from fleetwatch.lib.staleness import now_ms
from fleetwatch.lib.store import FleetStore
from fleetwatch.logging import get_logger

logger = get_logger("lib.monitor")

_UNSET = object()


class FleetMonitor:
    """Keeps a live fleet snapshot in sync with the store.

    Consumers only get immutable snapshots and read-only views; the latest
    value slots are written exclusively by the store callbacks.
    """

    def __init__(
        self,
        store: FleetStore,
        *,
        alarm: CriticalAlarm | None = None,
        clock: Callable[[], int] = now_ms,
    ) -> None:
        self._store = store
        self._alarm = alarm
        self._clock = clock
        self._subscriptions = SubscriptionGroup()
        self._started = False

        self._readings: dict[str, Reading | None] = {}
        self._thresholds: Thresholds = DEFAULT_THRESHOLDS
        self._alerts: tuple[AlertRecord, ...] = ()
        self._connected = False
        self._last_sync: datetime | None = None

        self._snapshots: Channel[FleetSnapshot] = Channel("monitor.snapshot")
        self._alert_log: Channel[list[AlertRecord]] = Channel("monitor.alerts")
        self._thresholds_channel: Channel[Thresholds] = Channel("monitor.thresholds")

    # Lifecycle

    def start(self) -> Self:
        """Subscribe to every store stream; calling it again is a no-op."""
        if self._started:
            return self
        self._started = True
        self._subscriptions.add(self._store.subscribe_readings(self._on_readings))
        self._subscriptions.add(
            self._store.subscribe_thresholds(self._on_thresholds)
        )
        self._subscriptions.add(self._store.subscribe_alerts(self._on_alerts))
        self._subscriptions.add(
            self._store.subscribe_connection(self._on_connection)
        )
        logger.info("Fleet monitor started")
        return self

    def close(self) -> None:
        """Unsubscribe everything, including unit watches. Idempotent."""
        if self._subscriptions.closed:
            return
        self._subscriptions.close()
        self._snapshots.clear()
        self._alert_log.clear()
        self._thresholds_channel.clear()
        logger.info("Fleet monitor closed")

    @property
    def closed(self) -> bool:
        return self._subscriptions.closed

    def __enter__(self) -> Self:
        return self.start()

    def __exit__(self, *_: object) -> None:
        self.close()

    # Store callbacks

    def _on_readings(self, raw: Mapping[str, Any]) -> None:
        self._readings = parse_readings(raw)
        self._last_sync = datetime.now(UTC)
        self._connected = True
        logger.debug("Readings updated: %d unit(s)", len(self._readings))
        self.recompute()

    def _on_thresholds(self, raw: Mapping[str, Any] | None) -> None:
        self._thresholds = merge_thresholds(raw)
        logger.info("Thresholds updated: %s", self._thresholds.to_dict())
        self._thresholds_channel.publish(self._thresholds)
        self.recompute()

    def _on_alerts(self, raw: Mapping[str, Any]) -> None:
        self._alerts = tuple(project(raw))
        self._alert_log.publish(list(self._alerts))

    def _on_connection(self, connected: bool) -> None:
        if connected == self._connected:
            return
        self._connected = connected
        if connected:
            logger.info("Store connection established")
        else:
            logger.warning("Store connection lost, keeping last known values")

    # Recomputation

    def recompute(self) -> FleetSnapshot:
        """Rebuild the snapshot from the current readings and thresholds."""
        snapshot = aggregate(self._readings, self._thresholds, self._clock())
        self._snapshots.publish(snapshot)
        if self._alarm is not None:
            self._alarm.observe(snapshot)
        return snapshot

    def refresh(self) -> FleetSnapshot:
        """Re-evaluate with the current time so silent units go Offline."""
        return self.recompute()

    # Read-only views

    @property
    def snapshot(self) -> FleetSnapshot | None:
        return self._snapshots.latest

    @property
    def readings(self) -> Mapping[str, Reading | None]:
        return MappingProxyType(self._readings)

    @property
    def thresholds(self) -> Thresholds:
        return self._thresholds

    @property
    def alerts(self) -> tuple[AlertRecord, ...]:
        return self._alerts

    @property
    def is_connected(self) -> bool:
        return self._connected

    @property
    def last_sync(self) -> datetime | None:
        """When readings were last received from the store."""
        return self._last_sync

    @property
    def alarm(self) -> CriticalAlarm | None:
        return self._alarm

    # Consumer subscriptions

    def subscribe_snapshots(self, handler: Handler[FleetSnapshot]) -> Subscription:
        """Receive the current snapshot, then every recomputed one."""
        return self._subscriptions.add(self._snapshots.subscribe(handler))

    def subscribe_alerts(self, handler: Handler[list[AlertRecord]]) -> Subscription:
        """Receive the alert log, newest first, on every change."""
        return self._subscriptions.add(self._alert_log.subscribe(handler))

    def subscribe_thresholds(self, handler: Handler[Thresholds]) -> Subscription:
        """Receive the active thresholds on every change."""
        return self._subscriptions.add(self._thresholds_channel.subscribe(handler))

    def watch_unit(
        self, unit_id: str, handler: Handler[UnitView | None]
    ) -> Subscription:
        """Follow a single unit, independently of the fleet subscription.

        The handler gets the unit as classified by the latest snapshot, or
        None if the unit is not in the fleet. It is called again whenever a
        recomputation changes that view, including threshold updates and
        refresh ticks.
        """
        last: object = _UNSET

        def on_snapshot(snapshot: FleetSnapshot) -> None:
            nonlocal last
            unit = snapshot.units.get(unit_id)
            if unit == last:
                return
            last = unit
            handler(unit)

        subscription = self._snapshots.subscribe(on_snapshot)
        subscription.name = f"monitor.unit/{unit_id}"
        return self._subscriptions.add(subscription)
