"""Tests for the thresholds command."""

import json
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from fleetwatch.lib.config import Thresholds
from fleetwatch.lib.exceptions import StoreNotConnectedError, StoreWriteError
from fleetwatch.lib.store import InMemoryStore
from fleetwatch.thresholds.__main__ import main


def patched_store(store: InMemoryStore) -> MagicMock:
    factory = MagicMock()
    factory.return_value.__aenter__.return_value = store
    return factory


@pytest.fixture
def remote():
    return InMemoryStore(thresholds={"max_humidity": 65})


class TestShow:
    """Without options the active thresholds are printed."""

    def test_prints_merged_thresholds(self, remote, capsys):
        with patch("fleetwatch.thresholds.__main__.RedisStore", patched_store(remote)):
            assert main([]) == 0

        assert json.loads(capsys.readouterr().out) == {
            "max_humidity": 65.0,
            "max_temperature": 30.0,
            "min_battery": 20,
        }


class TestUpdate:
    """Options are applied over the active thresholds and saved."""

    def test_saves_whole_object(self, remote, capsys):
        with patch("fleetwatch.thresholds.__main__.RedisStore", patched_store(remote)):
            assert main(["--max-temperature", "27.5", "--min-battery", "15"]) == 0

        assert remote._thresholds.latest == Thresholds(
            max_humidity=65, max_temperature=27.5, min_battery=15
        ).to_dict()
        assert json.loads(capsys.readouterr().out)["max_temperature"] == 27.5

    def test_out_of_bounds_rejected(self, remote, caplog):
        with patch("fleetwatch.thresholds.__main__.RedisStore", patched_store(remote)):
            assert main(["--max-humidity", "250"]) == 2

        assert remote._thresholds.latest == {"max_humidity": 65}
        assert "Invalid thresholds" in caplog.text

    def test_save_failure_reports_user_message(self, remote, caplog):
        with (
            patch("fleetwatch.thresholds.__main__.RedisStore", patched_store(remote)),
            patch.object(
                remote,
                "save_thresholds",
                AsyncMock(side_effect=StoreWriteError("read-only replica")),
            ),
        ):
            assert main(["--max-humidity", "70"]) == 1

        assert "Failed to save. Check your store permissions." in caplog.text

    def test_store_unavailable(self, caplog):
        factory = MagicMock()
        factory.return_value.__aenter__.side_effect = StoreNotConnectedError()

        with patch("fleetwatch.thresholds.__main__.RedisStore", factory):
            assert main([]) == 1
        assert "Store unavailable" in caplog.text
