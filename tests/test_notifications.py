"""Tests for alarm notifications."""

import asyncio
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from fleetwatch.lib.aggregator import FleetSnapshot
from fleetwatch.lib.config import FleetStatus, Settings
from fleetwatch.lib.config.testing import set_settings
from fleetwatch.lib.notifications import (
    AlarmNotification,
    CompositeNotifier,
    GmailNotifier,
    NoOpNotifier,
    NotifierCues,
    Priority,
    SlackNotifier,
    format_alarm_message,
    get_notifier,
)

SLACK_URL = "https://hooks.slack.com/services/T000/B000/XXXX"


@pytest.fixture
def snapshot():
    return FleetSnapshot(
        overall_status=FleetStatus.CRITICAL,
        average_temperature=24.3,
        average_humidity=71.0,
        critical_count=1,
    )


class TestAlarmNotification:
    """Tests for building notifications from alarm transitions."""

    def test_alarm_is_high_priority(self, snapshot):
        notification = AlarmNotification.alarm(snapshot)

        assert notification.priority == Priority.HIGH
        assert notification.average_humidity == 71.0

    def test_dismissed_is_low_priority(self):
        assert AlarmNotification.dismissed().priority == Priority.LOW

    def test_format_alarm(self, snapshot):
        notification = AlarmNotification(
            priority=Priority.HIGH,
            title="Fleet critical",
            critical_units=("n1", "n3"),
            average_temperature=24.3,
            average_humidity=71.0,
        )
        message = format_alarm_message(notification)

        assert "Critical units: n1, n3" in message
        assert "Average temperature: 24.3°C" in message
        assert "Average humidity: 71.0%" in message

    def test_format_dismissed(self):
        message = format_alarm_message(AlarmNotification.dismissed())
        assert message.startswith("Fleet alarm acknowledged\n\nTime: ")


class TestGetNotifier:
    """Tests for the backend factory."""

    def test_disabled(self):
        set_settings(Settings(enable_notification_service=False))
        assert isinstance(get_notifier(), NoOpNotifier)

    def test_slack_only(self):
        set_settings(
            Settings(
                enable_notification_service=True,
                notification_backends="slack",
                slack_webhook_url=SLACK_URL,
            )
        )
        assert isinstance(get_notifier(), SlackNotifier)

    def test_multiple_backends(self):
        set_settings(
            Settings(
                enable_notification_service=True,
                notification_backends="gmail,slack",
                gmail_sender="fleet@example.com",
                gmail_recipients="ops@example.com",
                gmail_username="fleet@example.com",
                gmail_password="secret",
                slack_webhook_url=SLACK_URL,
            )
        )
        assert isinstance(get_notifier(), CompositeNotifier)


class TestGmailNotifier:
    """Gmail only carries alarms."""

    @pytest.mark.asyncio
    async def test_skips_low_priority(self):
        notifier = GmailNotifier()
        with patch.object(notifier, "_send_email", AsyncMock()) as send_email:
            await notifier.send(AlarmNotification.dismissed())
        send_email.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_sends_alarm(self, snapshot):
        set_settings(
            Settings(
                gmail_sender="fleet@example.com",
                gmail_recipients="ops@example.com",
            )
        )
        notifier = GmailNotifier()
        with patch.object(notifier, "_send_email", AsyncMock()) as send_email:
            await notifier.send(AlarmNotification.alarm(snapshot))

        message = send_email.await_args.args[0]
        assert message["Subject"] == "FleetWatch alarm - Fleet critical"
        assert message["To"] == "ops@example.com"


class TestSlackNotifier:
    """Tests for the Slack payload."""

    @pytest.mark.asyncio
    async def test_alarm_payload(self, snapshot):
        notifier = SlackNotifier()
        with patch.object(notifier, "_send_slack", AsyncMock()) as send_slack:
            await notifier.send(AlarmNotification.alarm(snapshot))

        payload = send_slack.await_args.args[0]
        assert payload["text"] == "Fleet critical"
        assert payload["blocks"][1]["type"] == "section"

    @pytest.mark.asyncio
    async def test_dismissed_payload_has_no_fields(self):
        notifier = SlackNotifier()
        with patch.object(notifier, "_send_slack", AsyncMock()) as send_slack:
            await notifier.send(AlarmNotification.dismissed())

        payload = send_slack.await_args.args[0]
        assert [b["type"] for b in payload["blocks"]] == ["header", "context"]

    @pytest.mark.asyncio
    async def test_retries_on_network_error(self):
        set_settings(
            Settings(slack_webhook_url=SLACK_URL, notification_max_retries=2)
        )
        response = MagicMock(status=200)
        response.__enter__.return_value = response
        urlopen = MagicMock(side_effect=[OSError("reset"), response])

        with (
            patch("fleetwatch.lib.notifications.urllib.request.urlopen", urlopen),
            patch("fleetwatch.lib.retry.asyncio.sleep", AsyncMock()),
        ):
            await SlackNotifier().send(AlarmNotification.dismissed())

        assert urlopen.call_count == 2


class TestCompositeNotifier:
    """One failing backend does not stop the others."""

    @pytest.mark.asyncio
    async def test_sends_to_all(self):
        broken = MagicMock(send=AsyncMock(side_effect=RuntimeError("down")))
        working = MagicMock(send=AsyncMock())

        await CompositeNotifier([broken, working]).send(
            AlarmNotification.dismissed()
        )

        working.send.assert_awaited_once()


class TestNotifierCues:
    """Cues schedule notifications without blocking the alarm."""

    @pytest.mark.asyncio
    async def test_alarm_cue_sends_high_priority(self, snapshot):
        notifier = MagicMock(send=AsyncMock())
        cues = NotifierCues(notifier)

        cues.alarm(snapshot)
        notifier.send.assert_not_awaited()
        await cues.drain()

        notification = notifier.send.await_args.args[0]
        assert notification.priority == Priority.HIGH

    @pytest.mark.asyncio
    async def test_dismissed_cue_sends_low_priority(self):
        notifier = MagicMock(send=AsyncMock())
        cues = NotifierCues(notifier)

        cues.dismissed()
        await cues.drain()

        assert notifier.send.await_args.args[0].priority == Priority.LOW

    @pytest.mark.asyncio
    async def test_failure_is_logged(self, snapshot, caplog):
        notifier = MagicMock(send=AsyncMock(side_effect=RuntimeError("smtp down")))
        cues = NotifierCues(notifier)

        cues.alarm(snapshot)
        await cues.drain()
        await asyncio.sleep(0)

        assert "Notification failed: smtp down" in caplog.text

    def test_outside_event_loop_dropped(self, snapshot, caplog):
        notifier = MagicMock(send=AsyncMock())
        cues = NotifierCues(notifier)

        cues.alarm(snapshot)

        notifier.send.assert_not_called()
        assert "dropping notification" in caplog.text
