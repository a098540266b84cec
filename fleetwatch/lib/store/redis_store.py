"""Redis-backed fleet store.

Layout under the configured key prefix (default ``fleet``):

- ``<prefix>:readings``: hash of unit id to reading JSON (last write wins)
- ``<prefix>:configs:thresholds``: thresholds JSON (whole-object replace)
- ``<prefix>:logs:alerts``: hash of alert id to alert JSON (append-only)
- ``<prefix>:changes``: pub/sub channel carrying the logical path that changed

Writers update the key then publish the path; readers refetch the path and
push the new value to subscribers.
"""

import asyncio
import json
from contextlib import suppress
from typing import Any, Self, override

import redis.asyncio as aioredis

from fleetwatch.lib.config import StorePath, StoreSettings, Thresholds, get_settings
from fleetwatch.lib.exceptions import (
    StoreError,
    StoreNotConnectedError,
    StoreWriteError,
)
from fleetwatch.lib.models import NewAlert, Reading
from fleetwatch.lib.retry import backoff_delay
from fleetwatch.lib.store.base import ChannelStore, RawAlerts, RawRecord
from fleetwatch.logging import get_logger

logger = get_logger("lib.store.redis_store")


def _loads(raw: str, what: str) -> Any:
    try:
        return json.loads(raw)
    except (ValueError, TypeError) as e:
        logger.warning("Invalid JSON for %s: %s", what, e)
        return None


class RedisStore(ChannelStore):
    """Fleet store client that mirrors Redis state into local channels.

    The store client, not the monitor, owns reconnection: run() keeps the
    change listener alive, marking the store disconnected while Redis is
    unreachable and reloading every path once it is back.
    """

    def __init__(self, settings: StoreSettings | None = None) -> None:
        super().__init__()
        self._cfg = settings or get_settings().store
        self._client: aioredis.Redis | None = None
        self._attempt = 0

    def _key(self, path: StorePath) -> str:
        return f"{self._cfg.prefix}:{path.replace('/', ':')}"

    @property
    def changes_channel(self) -> str:
        return f"{self._cfg.prefix}:changes"

    async def connect(self) -> None:
        """Connect to Redis."""
        if self._client is None:
            self._client = aioredis.from_url(
                self._cfg.redis_url, decode_responses=True
            )
            logger.info("Store connected to Redis")

    async def close(self) -> None:
        """Close the store connection."""
        if self._client is not None:
            with suppress(aioredis.RedisError, OSError):
                await self._client.aclose()
            self._client = None
            logger.info("Store closed")
        self._set_connected(False)

    async def __aenter__(self) -> Self:
        await self.connect()
        return self

    async def __aexit__(self, *_: object) -> None:
        await self.close()

    def _require_client(self) -> aioredis.Redis:
        if self._client is None:
            raise StoreNotConnectedError()
        return self._client

    # Reads

    async def _load_readings(self) -> dict[str, Any]:
        client = self._require_client()
        raw = await client.hgetall(self._key(StorePath.READINGS))
        return {
            unit_id: _loads(value, f"reading {unit_id}")
            for unit_id, value in raw.items()
        }

    async def _load_thresholds(self) -> RawRecord | None:
        client = self._require_client()
        raw = await client.get(self._key(StorePath.THRESHOLDS))
        if raw is None:
            return None
        return _loads(raw, "thresholds")

    async def _load_alerts(self) -> dict[str, Any]:
        client = self._require_client()
        raw = await client.hgetall(self._key(StorePath.ALERTS))
        alerts = {}
        for alert_id, value in raw.items():
            record = _loads(value, f"alert {alert_id}")
            if record is not None:
                alerts[alert_id] = record
        return alerts

    async def _refresh(self, path: StorePath) -> None:
        """Refetch one path and push it to subscribers."""
        match path:
            case StorePath.READINGS:
                self._readings.publish(await self._load_readings())
            case StorePath.THRESHOLDS:
                self._thresholds.publish(await self._load_thresholds())
            case StorePath.ALERTS:
                self._alerts.publish(await self._load_alerts())

    @override
    async def fetch_alerts(self) -> RawAlerts:
        try:
            return await self._load_alerts()
        except (aioredis.RedisError, OSError) as e:
            raise StoreError(f"Failed to read alerts: {e}") from e

    async def sync(self) -> None:
        """Load every path once and push it to subscribers."""
        try:
            for path in StorePath:
                await self._refresh(path)
        except (aioredis.RedisError, OSError) as e:
            raise StoreError(f"Failed to load store state: {e}") from e
        self._set_connected(True)

    # Writes

    async def _write(self, path: StorePath, op: str, *args: Any) -> None:
        client = self._require_client()
        try:
            await getattr(client, op)(self._key(path), *args)
            await client.publish(self.changes_channel, str(path))
        except (aioredis.RedisError, OSError) as e:
            raise StoreWriteError(f"Failed to write {path}: {e}") from e

    async def set_reading(self, unit_id: str, reading: Reading) -> None:
        """Overwrite a unit's latest reading (used by producers)."""
        await self._write(
            StorePath.READINGS, "hset", unit_id, json.dumps(reading.to_dict())
        )

    @override
    async def save_thresholds(self, thresholds: Thresholds) -> None:
        await self._write(
            StorePath.THRESHOLDS, "set", json.dumps(thresholds.to_dict())
        )
        logger.info("Saved thresholds: %s", thresholds.to_dict())

    @override
    async def push_alert(self, alert: NewAlert) -> str:
        client = self._require_client()
        key = self._key(StorePath.ALERTS)
        try:
            seconds, micros = await client.time()
            timestamp = seconds * 1000 + micros // 1000
            seq = await client.incr(f"{key}:seq")
        except (aioredis.RedisError, OSError) as e:
            raise StoreWriteError(f"Failed to append alert: {e}") from e

        alert_id = f"{timestamp:013d}-{seq:06d}"
        payload = {**alert.to_dict(), "timestamp": timestamp}
        await self._write(StorePath.ALERTS, "hset", alert_id, json.dumps(payload))
        logger.info("Appended %s alert %s for %s", alert.kind, alert_id, alert.unit_id)
        return alert_id

    # Change listener

    async def _listen(self) -> None:
        """Load every path, then refresh paths as change messages arrive."""
        await self.connect()
        client = self._require_client()
        pubsub = client.pubsub()
        try:
            # Subscribe before loading so no change between the two is lost
            await pubsub.subscribe(self.changes_channel)
            await self.sync()
            self._attempt = 0
            logger.info("Store synced, listening on %s", self.changes_channel)

            async for message in pubsub.listen():
                if message["type"] != "message":
                    continue
                try:
                    path = StorePath(message["data"])
                except ValueError:
                    logger.warning("Unknown store path: %s", message["data"])
                    continue
                await self._refresh(path)
        finally:
            with suppress(aioredis.RedisError, OSError):
                await pubsub.unsubscribe()
                await pubsub.aclose()

    async def run(self) -> None:
        """Keep the store in sync until cancelled, reconnecting on failure."""
        while True:
            try:
                await self._listen()
                logger.warning("Store change listener ended")
            except (aioredis.RedisError, StoreError, OSError) as e:
                logger.error("Store connection error: %s", e)

            self._set_connected(False)
            if self._client is not None:
                with suppress(aioredis.RedisError, OSError):
                    await self._client.aclose()
                self._client = None

            delay = backoff_delay(
                self._attempt,
                self._cfg.reconnect_initial_sec,
                self._cfg.reconnect_max_sec,
            )
            self._attempt += 1
            logger.info("Reconnecting to store in %.1fs", delay)
            await asyncio.sleep(delay)
