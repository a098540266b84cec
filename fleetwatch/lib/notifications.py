"""Notification system for fleet alarms.

Provides an abstract notification interface with pluggable backends.
Supports Gmail and Slack notifications, or both simultaneously. Alarm
notifications are high priority; dismissal confirmations are low priority
and only go to backends that accept them.
"""

import asyncio
import json
import ssl
import urllib.request
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import UTC, datetime
from email.message import EmailMessage
from enum import IntEnum
from smtplib import SMTP
from typing import Any, override

from fleetwatch.lib.aggregator import FleetSnapshot
from fleetwatch.lib.config import NotificationBackend, get_settings
from fleetwatch.lib.retry import with_retry
from fleetwatch.logging import get_logger

logger = get_logger("lib.notifications")


class Priority(IntEnum):
    LOW = 1
    HIGH = 2


@dataclass(frozen=True, slots=True)
class AlarmNotification:
    """A notification about an alarm transition."""

    priority: Priority
    title: str
    critical_units: tuple[str, ...] = ()
    average_temperature: float | None = None
    average_humidity: float | None = None
    recorded_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    @classmethod
    def alarm(cls, snapshot: FleetSnapshot) -> "AlarmNotification":
        return cls(
            priority=Priority.HIGH,
            title="Fleet critical",
            critical_units=snapshot.critical_units,
            average_temperature=snapshot.average_temperature,
            average_humidity=snapshot.average_humidity,
        )

    @classmethod
    def dismissed(cls) -> "AlarmNotification":
        return cls(priority=Priority.LOW, title="Fleet alarm acknowledged")


def format_alarm_message(notification: AlarmNotification) -> str:
    """Format an alarm notification as a plain text message."""
    time_str = notification.recorded_at.strftime("%H:%M:%S")
    if notification.priority < Priority.HIGH:
        return f"{notification.title}\n\nTime: {time_str}"

    units = ", ".join(notification.critical_units) or "none"
    return (
        f"{notification.title}!\n\n"
        f"Critical units: {units}\n"
        f"Average temperature: {notification.average_temperature:.1f}°C\n"
        f"Average humidity: {notification.average_humidity:.1f}%\n"
        f"Time: {time_str}"
    )


class AbstractNotifier(ABC):
    """Abstract base class for notification backends."""

    @abstractmethod
    async def send(self, notification: AlarmNotification) -> None:
        """Send the given notification."""


class GmailNotifier(AbstractNotifier):
    """Gmail notification backend, for alarms only."""

    def _build_email(self, subject: str, body: str) -> EmailMessage:
        """Build an email message with the given subject and body."""
        gmail = get_settings().notifications.gmail
        msg = EmailMessage()
        msg.add_header("From", gmail.sender)
        msg.add_header("To", gmail.recipients)
        msg.add_header("Subject", subject)
        msg.set_content(body)
        return msg

    async def _send_email(self, message: EmailMessage) -> None:
        """Send an email with retry logic and exponential backoff."""
        cfg = get_settings().notifications
        gmail = cfg.gmail
        timeout = cfg.timeout_sec

        def do_send() -> None:
            context = ssl.create_default_context()
            with SMTP("smtp.gmail.com", 587, timeout=timeout) as server:
                server.starttls(context=context)
                server.login(gmail.username, gmail.password.get_secret_value())
                server.send_message(message)
            logger.info("Sent email notification")

        await with_retry(
            do_send,
            name="Email",
            logger=logger,
            max_retries=cfg.max_retries,
            initial_backoff_sec=cfg.initial_backoff_sec,
            run_in_thread=True,
        )

    @override
    async def send(self, notification: AlarmNotification) -> None:
        """Send email notification for high-priority alarms."""
        if notification.priority < Priority.HIGH:
            logger.debug("Skipping low-priority email: %s", notification.title)
            return
        subject = f"{get_settings().notifications.gmail.subject} - {notification.title}"
        message = self._build_email(subject, format_alarm_message(notification))
        await self._send_email(message)


class SlackNotifier(AbstractNotifier):
    """Slack webhook notification backend."""

    def _build_payload(
        self,
        title: str,
        fields: list[dict[str, str]],
        time_str: str,
    ) -> dict[str, Any]:
        """Build a Slack message payload."""
        blocks: list[dict[str, Any]] = [
            {
                "type": "header",
                "text": {"type": "plain_text", "text": title},
            },
        ]
        if fields:
            blocks.append({"type": "section", "fields": fields})
        blocks.append(
            {
                "type": "context",
                "elements": [{"type": "mrkdwn", "text": f":clock1: {time_str}"}],
            }
        )
        return {"text": title, "blocks": blocks}

    async def _send_slack(self, payload: dict[str, Any]) -> None:
        """Send a Slack message with retry logic."""
        data = json.dumps(payload).encode("utf-8")
        cfg = get_settings().notifications
        webhook_url = cfg.slack.webhook_url
        timeout = cfg.timeout_sec

        def do_send() -> None:
            req = urllib.request.Request(
                webhook_url,
                data=data,
                headers={"Content-Type": "application/json"},
                method="POST",
            )
            with urllib.request.urlopen(req, timeout=timeout) as resp:
                if resp.status != 200:
                    raise OSError(f"Slack API returned status {resp.status}")
            logger.info("Sent Slack notification: %s", payload["text"])

        await with_retry(
            do_send,
            name="Slack",
            logger=logger,
            max_retries=cfg.max_retries,
            initial_backoff_sec=cfg.initial_backoff_sec,
            run_in_thread=True,
        )

    @override
    async def send(self, notification: AlarmNotification) -> None:
        """Send Slack notification."""
        time_str = notification.recorded_at.strftime("%H:%M:%S")
        fields: list[dict[str, str]] = []
        if notification.priority >= Priority.HIGH:
            units = ", ".join(notification.critical_units) or "none"
            fields = [
                {"type": "mrkdwn", "text": f"*Critical units:*\n{units}"},
                {
                    "type": "mrkdwn",
                    "text": (
                        f"*Averages:*\n{notification.average_temperature:.1f}°C"
                        f" / {notification.average_humidity:.1f}%"
                    ),
                },
            ]
        payload = self._build_payload(notification.title, fields, time_str)
        await self._send_slack(payload)


class CompositeNotifier(AbstractNotifier):
    """Sends notifications to multiple backends."""

    def __init__(self, notifiers: list[AbstractNotifier]):
        self._notifiers = notifiers

    @override
    async def send(self, notification: AlarmNotification) -> None:
        """Send notification to all configured backends concurrently."""
        await asyncio.gather(
            *(notifier.send(notification) for notifier in self._notifiers),
            return_exceptions=True,
        )


class NoOpNotifier(AbstractNotifier):
    """No-op notifier that logs but doesn't send notifications."""

    @override
    async def send(self, notification: AlarmNotification) -> None:
        """Log the notification but don't send it."""
        logger.info(
            "Notifications disabled, skipping %s", notification.title
        )


_BACKEND_MAP: dict[NotificationBackend, type[AbstractNotifier]] = {
    NotificationBackend.GMAIL: GmailNotifier,
    NotificationBackend.SLACK: SlackNotifier,
}


def get_notifier() -> AbstractNotifier:
    """Factory function to get the configured notifier."""
    cfg = get_settings().notifications
    if not cfg.enabled:
        return NoOpNotifier()

    notifiers: list[AbstractNotifier] = []
    for backend_str in cfg.backends:
        try:
            backend = NotificationBackend(backend_str)
            notifiers.append(_BACKEND_MAP[backend]())
        except (ValueError, KeyError):
            logger.warning("Unknown notification backend: %s", backend_str)

    if not notifiers:
        return NoOpNotifier()
    if len(notifiers) == 1:
        return notifiers[0]
    return CompositeNotifier(notifiers)


class NotifierCues:
    """Alarm cues that dispatch notifications without blocking the alarm.

    Sends are scheduled as tasks on the running event loop and never
    awaited by the caller. Outside a loop the cue is logged and dropped.
    """

    def __init__(self, notifier: AbstractNotifier | None = None) -> None:
        self._notifier = notifier or get_notifier()
        self._pending: set[asyncio.Task[None]] = set()

    def alarm(self, snapshot: FleetSnapshot) -> None:
        self._dispatch(AlarmNotification.alarm(snapshot))

    def dismissed(self) -> None:
        self._dispatch(AlarmNotification.dismissed())

    def _dispatch(self, notification: AlarmNotification) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.warning(
                "No running event loop, dropping notification: %s",
                notification.title,
            )
            return
        task = loop.create_task(self._notifier.send(notification))
        self._pending.add(task)
        task.add_done_callback(self._on_done)

    def _on_done(self, task: asyncio.Task[None]) -> None:
        self._pending.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.error("Notification failed: %s", task.exception())

    async def drain(self) -> None:
        """Wait for in-flight notifications (used on shutdown)."""
        if self._pending:
            await asyncio.gather(*self._pending, return_exceptions=True)
