"""Tests for the Redis-backed store."""

import asyncio
import json
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
import redis.asyncio as aioredis

from fleetwatch.lib.config import AlertKind, StorePath, StoreSettings, Thresholds
from fleetwatch.lib.exceptions import (
    StoreError,
    StoreNotConnectedError,
    StoreWriteError,
)
from fleetwatch.lib.models import NewAlert, Reading
from fleetwatch.lib.store import RedisStore


def make_client():
    client = MagicMock()
    client.hgetall = AsyncMock(return_value={})
    client.get = AsyncMock(return_value=None)
    client.hset = AsyncMock()
    client.set = AsyncMock()
    client.publish = AsyncMock()
    client.incr = AsyncMock(return_value=1)
    client.time = AsyncMock(return_value=(1_718_452_800, 123_456))
    client.aclose = AsyncMock()
    return client


def make_pubsub(messages):
    pubsub = MagicMock()
    pubsub.subscribe = AsyncMock()
    pubsub.unsubscribe = AsyncMock()
    pubsub.aclose = AsyncMock()

    async def listen():
        for message in messages:
            yield message

    pubsub.listen = listen
    return pubsub


@pytest.fixture
def client():
    return make_client()


@pytest.fixture
def store(client):
    with patch(
        "fleetwatch.lib.store.redis_store.aioredis.from_url", return_value=client
    ):
        yield RedisStore(StoreSettings(prefix="test"))


class TestKeys:
    """Tests for the key layout."""

    def test_keys_under_prefix(self, store):
        assert store._key(StorePath.READINGS) == "test:readings"
        assert store._key(StorePath.THRESHOLDS) == "test:configs:thresholds"
        assert store._key(StorePath.ALERTS) == "test:logs:alerts"
        assert store.changes_channel == "test:changes"


class TestConnection:
    """Tests for connect and close."""

    @pytest.mark.asyncio
    async def test_write_before_connect(self, store):
        with pytest.raises(StoreNotConnectedError):
            await store.save_thresholds(Thresholds())

    @pytest.mark.asyncio
    async def test_context_manager(self, store, client):
        async with store:
            assert store._client is client

        client.aclose.assert_awaited_once()
        assert store._client is None
        assert store.is_connected is False

    @pytest.mark.asyncio
    async def test_connect_is_idempotent(self, store):
        with patch(
            "fleetwatch.lib.store.redis_store.aioredis.from_url"
        ) as from_url:
            from_url.return_value = make_client()
            await store.connect()
            await store.connect()
        from_url.assert_called_once()


class TestWrites:
    """Writers update the key then publish the changed path."""

    @pytest.mark.asyncio
    async def test_save_thresholds(self, store, client):
        await store.connect()
        await store.save_thresholds(Thresholds(max_humidity=55))

        key, payload = client.set.await_args.args
        assert key == "test:configs:thresholds"
        assert json.loads(payload) == {
            "max_humidity": 55.0,
            "max_temperature": 30.0,
            "min_battery": 20,
        }
        client.publish.assert_awaited_once_with("test:changes", "configs/thresholds")

    @pytest.mark.asyncio
    async def test_set_reading(self, store, client):
        await store.connect()
        await store.set_reading("n1", Reading(humidity=50.0, timestamp=1))

        key, unit_id, payload = client.hset.await_args.args
        assert (key, unit_id) == ("test:readings", "n1")
        assert json.loads(payload)["hum"] == 50.0
        client.publish.assert_awaited_once_with("test:changes", "readings")

    @pytest.mark.asyncio
    async def test_write_failure(self, store, client):
        client.set.side_effect = aioredis.ConnectionError("refused")
        await store.connect()

        with pytest.raises(StoreWriteError, match="configs/thresholds"):
            await store.save_thresholds(Thresholds())
        client.publish.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_push_alert_uses_server_time(self, store, client):
        client.incr.return_value = 7
        await store.connect()

        alert_id = await store.push_alert(
            NewAlert("n1", AlertKind.HUMIDITY, 72.5, 60)
        )

        assert alert_id == "1718452800123-000007"
        key, field, payload = client.hset.await_args.args
        assert key == "test:logs:alerts"
        assert field == alert_id
        assert json.loads(payload) == {
            "nodeId": "n1",
            "type": "humidity",
            "value": 72.5,
            "threshold": 60,
            "timestamp": 1718452800123,
        }
        client.incr.assert_awaited_once_with("test:logs:alerts:seq")

    @pytest.mark.asyncio
    async def test_push_alert_failure(self, store, client):
        client.time.side_effect = aioredis.TimeoutError("slow")
        await store.connect()

        with pytest.raises(StoreWriteError):
            await store.push_alert(NewAlert("n1", AlertKind.HUMIDITY, 70, 60))


class TestReads:
    """Tests for loading state from Redis."""

    @pytest.mark.asyncio
    async def test_fetch_alerts_skips_invalid_json(self, store, client, caplog):
        client.hgetall.return_value = {
            "a1": json.dumps({"type": "humidity", "timestamp": 1}),
            "a2": "{not json",
        }
        await store.connect()

        alerts = await store.fetch_alerts()

        assert list(alerts) == ["a1"]
        assert "Invalid JSON for alert a2" in caplog.text

    @pytest.mark.asyncio
    async def test_fetch_alerts_failure(self, store, client):
        client.hgetall.side_effect = aioredis.ConnectionError("down")
        await store.connect()

        with pytest.raises(StoreError):
            await store.fetch_alerts()

    @pytest.mark.asyncio
    async def test_invalid_reading_is_none(self, store, client):
        client.hgetall.return_value = {"n1": "garbage", "n2": '{"hum": 40}'}
        await store.connect()
        received = []
        store.subscribe_readings(received.append)

        await store._refresh(StorePath.READINGS)

        assert received[-1] == {"n1": None, "n2": {"hum": 40}}


class TestListen:
    """The change listener loads everything then follows changes."""

    @pytest.mark.asyncio
    async def test_initial_load_and_change(self, store, client, caplog):
        client.pubsub.return_value = make_pubsub(
            [
                {"type": "subscribe", "data": 1},
                {"type": "message", "data": "configs/thresholds"},
                {"type": "message", "data": "nowhere"},
            ]
        )
        client.get.side_effect = [None, json.dumps({"max_humidity": 50})]
        thresholds, connection = [], []
        store.subscribe_thresholds(thresholds.append)
        store.subscribe_connection(connection.append)

        await store._listen()

        assert thresholds == [None, {"max_humidity": 50}]
        assert connection == [True]
        assert "Unknown store path: nowhere" in caplog.text
        client.pubsub.return_value.aclose.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_run_reconnects_with_backoff(self, store):
        store._listen = AsyncMock(side_effect=aioredis.ConnectionError("down"))
        sleep = AsyncMock(side_effect=[None, asyncio.CancelledError()])

        with patch("fleetwatch.lib.store.redis_store.asyncio.sleep", sleep):
            with pytest.raises(asyncio.CancelledError):
                await store.run()

        assert [c.args[0] for c in sleep.await_args_list] == [1.0, 2.0]
        assert store.is_connected is False


class TestSync:
    """One-shot load used by short-lived commands."""

    @pytest.mark.asyncio
    async def test_sync_publishes_state(self, store, client):
        client.get.return_value = json.dumps({"min_battery": 10})
        await store.connect()
        thresholds = []
        store.subscribe_thresholds(thresholds.append)

        await store.sync()

        assert thresholds == [{"min_battery": 10}]
        assert store.is_connected is True

    @pytest.mark.asyncio
    async def test_sync_failure(self, store, client):
        client.hgetall.side_effect = aioredis.ConnectionError("down")
        await store.connect()

        with pytest.raises(StoreError, match="Failed to load store state"):
            await store.sync()
        assert store.is_connected is False
