"""Fleet monitor service.

Keeps a live fleet snapshot from the store, logs every change of overall
status and dispatches notifications when the fleet enters Critical.

- Uses the Redis store, or an in-memory store fed by a mock fleet when
  MOCK_UNITS=1 is set
- Re-evaluates the fleet periodically so silent units go Offline
- Unsubscribes everything and closes the store on shutdown
"""

import asyncio
from contextlib import suppress

from fleetwatch.lib.aggregator import FleetSnapshot
from fleetwatch.lib.alarm import CriticalAlarm
from fleetwatch.lib.config import FleetStatus, get_settings
from fleetwatch.lib.mock import MockFleet
from fleetwatch.lib.monitor import FleetMonitor
from fleetwatch.lib.notifications import NotifierCues
from fleetwatch.lib.service import run_service
from fleetwatch.lib.store import InMemoryStore, RedisStore
from fleetwatch.logging import get_logger

logger = get_logger("monitor.service")


class StatusLogger:
    """Logs the fleet snapshot whenever the overall status changes."""

    def __init__(self) -> None:
        self._last: FleetStatus | None = None

    def __call__(self, snapshot: FleetSnapshot) -> None:
        if snapshot.overall_status == self._last:
            return
        self._last = snapshot.overall_status
        logger.info(
            "Fleet %s: %d/%d online, %d at risk, %d critical, "
            "avg %.1f°C / %.1f%%, low battery: %s",
            snapshot.overall_status,
            snapshot.online_units,
            snapshot.total_units,
            snapshot.at_risk_count,
            snapshot.critical_count,
            snapshot.average_temperature,
            snapshot.average_humidity,
            ", ".join(snapshot.low_battery_units) or "none",
        )


async def _refresh_periodically(monitor: FleetMonitor, interval_sec: float) -> None:
    while True:
        await asyncio.sleep(interval_sec)
        monitor.refresh()


async def run() -> None:
    """Run the fleet monitor service."""
    settings = get_settings()
    cues = NotifierCues()
    alarm = CriticalAlarm(cues=cues)

    store: InMemoryStore | RedisStore
    tasks: list[asyncio.Task[None]] = []
    if settings.mock.enabled:
        store = InMemoryStore()
        fleet = MockFleet(
            store,
            unit_count=settings.mock.unit_count,
            frequency_sec=settings.mock.frequency_sec,
        )
        tasks.append(asyncio.create_task(fleet.run()))
    else:
        store = RedisStore(settings.store)
        tasks.append(asyncio.create_task(store.run()))

    monitor = FleetMonitor(store, alarm=alarm)
    monitor.subscribe_snapshots(StatusLogger())
    monitor.start()
    tasks.append(
        asyncio.create_task(
            _refresh_periodically(monitor, settings.monitor.refresh_interval_sec)
        )
    )
    logger.info("Monitor service started")

    try:
        await asyncio.gather(*tasks)
    finally:
        for task in tasks:
            task.cancel()
        with suppress(asyncio.CancelledError):
            await asyncio.gather(*tasks, return_exceptions=True)
        monitor.close()
        if isinstance(store, RedisStore):
            await store.close()
        await cues.drain()
        logger.info("Monitor service stopped")


def main() -> None:
    """Entry point for the monitor service."""
    run_service(run, name="monitor")


if __name__ == "__main__":
    main()
