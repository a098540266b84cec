"""Mock fleet data generator for development.

Writes realistic unit readings to an in-memory store so the monitor can run
without a remote store. Used by the monitor service when MOCK_UNITS=1 is set.
"""

import asyncio
import random

from fleetwatch.lib.models import Reading
from fleetwatch.lib.staleness import now_ms
from fleetwatch.lib.store import InMemoryStore
from fleetwatch.logging import get_logger

logger = get_logger("lib.mock")


def random_walk(
    current: float, drift: float, min_val: float, max_val: float
) -> float:
    """Generate next value using random walk with bounds."""
    change = random.gauss(0, drift)
    new_val = current + change
    return max(min_val, min(max_val, new_val))


class MockUnit:
    """A simulated sensor unit.

    - Temperature: drift=0.3, bounds 15-40
    - Humidity: drift=0.8, bounds 30-85
    - Battery: slowly drains, bounds 0-100
    """

    def __init__(self, unit_id: str) -> None:
        self.unit_id = unit_id
        self._temperature = random.uniform(20.0, 26.0)
        self._humidity = random.uniform(45.0, 55.0)
        self._battery = random.uniform(40.0, 100.0)

    def read(self) -> Reading:
        self._temperature = random_walk(
            self._temperature, drift=0.3, min_val=15.0, max_val=40.0
        )
        self._humidity = random_walk(
            self._humidity, drift=0.8, min_val=30.0, max_val=85.0
        )
        self._battery = max(0.0, self._battery - random.uniform(0.0, 0.05))
        return Reading(
            humidity=round(self._humidity, 1),
            temperature=round(self._temperature, 1),
            battery=int(self._battery),
            timestamp=now_ms(),
        )


class MockFleet:
    """Periodically publishes readings for a set of simulated units."""

    def __init__(
        self, store: InMemoryStore, unit_count: int = 4, frequency_sec: float = 2.0
    ) -> None:
        self._store = store
        self._frequency_sec = frequency_sec
        self.units = [MockUnit(f"node-{i}") for i in range(1, unit_count + 1)]

    def tick(self) -> None:
        """Publish one reading per unit."""
        for unit in self.units:
            self._store.set_reading(unit.unit_id, unit.read())

    async def run(self) -> None:
        logger.info("Mock fleet started with %d unit(s)", len(self.units))
        while True:
            self.tick()
            await asyncio.sleep(self._frequency_sec)
