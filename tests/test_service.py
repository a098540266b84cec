"""Tests for the service runner."""

from unittest.mock import AsyncMock

from fleetwatch.lib.service import run_service


class TestRunService:
    """Tests for run_service."""

    def test_runs_main(self):
        main = AsyncMock()
        run_service(main, name="test")
        main.assert_awaited_once()

    def test_disabled_service_skipped(self, caplog):
        main = AsyncMock()
        run_service(main, enabled=lambda: False, name="test")

        main.assert_not_called()
        assert "Test service is disabled, exiting" in caplog.text
