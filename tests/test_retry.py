"""Tests for the retry helpers."""

import logging
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from fleetwatch.lib.retry import backoff_delay, with_retry

logger = logging.getLogger("fleetwatch.test")


class TestBackoffDelay:
    """Delays double on every attempt."""

    def test_doubles(self):
        assert [backoff_delay(n, 1.0) for n in range(4)] == [1.0, 2.0, 4.0, 8.0]

    def test_capped(self):
        assert backoff_delay(10, 1.0, 30.0) == 30.0


class TestWithRetry:
    """Tests for with_retry."""

    @pytest.mark.asyncio
    async def test_success_first_try(self):
        fn = MagicMock()
        assert await with_retry(fn, name="Test", logger=logger) is True
        fn.assert_called_once()

    @pytest.mark.asyncio
    async def test_async_function(self):
        fn = AsyncMock()
        assert await with_retry(fn, name="Test", logger=logger) is True
        fn.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_retries_then_succeeds(self):
        fn = MagicMock(side_effect=[OSError("a"), None])
        sleep = AsyncMock()

        with patch("fleetwatch.lib.retry.asyncio.sleep", sleep):
            result = await with_retry(
                fn, name="Test", logger=logger, initial_backoff_sec=2
            )

        assert result is True
        sleep.assert_awaited_once_with(2)

    @pytest.mark.asyncio
    async def test_gives_up(self, caplog):
        fn = MagicMock(side_effect=OSError("down"))
        sleep = AsyncMock()

        with patch("fleetwatch.lib.retry.asyncio.sleep", sleep):
            result = await with_retry(fn, name="Test", logger=logger, max_retries=3)

        assert result is False
        assert fn.call_count == 3
        assert sleep.await_count == 2
        assert "Test failed after 3 attempts" in caplog.text

    @pytest.mark.asyncio
    async def test_non_retryable(self, caplog):
        fn = MagicMock(side_effect=ValueError("bad"))

        assert await with_retry(fn, name="Test", logger=logger) is False
        fn.assert_called_once()
        assert "non-retryable" in caplog.text
