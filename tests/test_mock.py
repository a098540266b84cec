"""Tests for the mock fleet generator."""

from unittest.mock import patch

from fleetwatch.lib.mock import MockFleet, MockUnit, random_walk


class TestRandomWalk:
    """Tests for the bounded random walk."""

    def test_clamped_to_max(self):
        with patch("fleetwatch.lib.mock.random.gauss", return_value=100.0):
            assert random_walk(50.0, 1.0, 0.0, 60.0) == 60.0

    def test_clamped_to_min(self):
        with patch("fleetwatch.lib.mock.random.gauss", return_value=-100.0):
            assert random_walk(50.0, 1.0, 10.0, 60.0) == 10.0

    def test_applies_change(self):
        with patch("fleetwatch.lib.mock.random.gauss", return_value=1.5):
            assert random_walk(20.0, 0.3, 15.0, 40.0) == 21.5


class TestMockUnit:
    """Simulated units produce plausible readings."""

    def test_reading_in_bounds(self):
        unit = MockUnit("node-1")
        for _ in range(50):
            reading = unit.read()
            assert 15.0 <= reading.temperature <= 40.0
            assert 30.0 <= reading.humidity <= 85.0
            assert 0 <= reading.battery <= 100
            assert reading.timestamp is not None


class TestMockFleet:
    """The mock fleet writes one reading per unit per tick."""

    def test_tick_publishes_all_units(self, store):
        fleet = MockFleet(store, unit_count=3)
        received = []
        store.subscribe_readings(received.append)

        fleet.tick()

        assert set(received[-1]) == {"node-1", "node-2", "node-3"}
        assert received[-1]["node-1"]["hum"] is not None

    def test_feeds_monitor(self, monitor, store):
        MockFleet(store, unit_count=2).tick()
        assert monitor.snapshot.total_units == 2
