"""Remote fleet store clients."""

from .base import ChannelStore, FleetStore, RawAlerts, RawReadings, RawRecord
from .memory import InMemoryStore
from .redis_store import RedisStore

__all__ = [
    "ChannelStore",
    "FleetStore",
    "InMemoryStore",
    "RawAlerts",
    "RawReadings",
    "RawRecord",
    "RedisStore",
]
