"""Shared pytest fixtures for the test suite."""

import logging

import pytest

from fleetwatch.lib.alarm import CriticalAlarm
from fleetwatch.lib.config import Thresholds
from fleetwatch.lib.config.testing import set_settings
from fleetwatch.lib.monitor import FleetMonitor
from fleetwatch.lib.store import InMemoryStore

# 2024-06-15 12:00:00 UTC
NOW_MS = 1_718_452_800_000


def make_reading(hum=50.0, temp=22.0, battery=80, timestamp=NOW_MS):
    """Raw reading payload as stored under readings/{unitId}."""
    return {"hum": hum, "temp": temp, "battery": battery, "timestamp": timestamp}


class FakeClock:
    """Controllable epoch-milliseconds clock."""

    def __init__(self, now: int = NOW_MS) -> None:
        self.now = now

    def __call__(self) -> int:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += int(seconds * 1000)


class RecordingCues:
    """Alarm cues that record every call."""

    def __init__(self) -> None:
        self.alarms = []
        self.dismissals = 0

    def alarm(self, snapshot) -> None:
        self.alarms.append(snapshot)

    def dismissed(self) -> None:
        self.dismissals += 1


@pytest.fixture(autouse=True)
def configure_caplog(caplog):
    """Ensure caplog captures logs from the fleetwatch namespace."""
    caplog.set_level(logging.INFO, logger="fleetwatch")


@pytest.fixture(autouse=True)
def reset_settings():
    """Reset global settings after each test to avoid cross-test pollution."""
    yield
    set_settings(None)


@pytest.fixture
def now_ms():
    """A fixed 'now' in epoch milliseconds for deterministic tests."""
    return NOW_MS


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def thresholds():
    """The default thresholds: humidity 60, temperature 30, battery 20."""
    return Thresholds()


@pytest.fixture
def store(clock):
    return InMemoryStore(clock=clock)


@pytest.fixture
def cues():
    return RecordingCues()


@pytest.fixture
def alarm(cues):
    return CriticalAlarm(cues=cues)


@pytest.fixture
def monitor(store, alarm, clock):
    """A started monitor over an empty in-memory store."""
    fleet_monitor = FleetMonitor(store, alarm=alarm, clock=clock).start()
    yield fleet_monitor
    fleet_monitor.close()
