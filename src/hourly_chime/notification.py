"""Notification sinks used to tell the user what happened at each hour."""

from __future__ import annotations

import json
import logging
import urllib.error
import urllib.request
from dataclasses import dataclass
from typing import Dict, List, Protocol


_LOG = logging.getLogger("hourly_chime.notification")

DEFAULT_APP_NAME = "Hourly Chime"


class NotificationError(RuntimeError):
    """Raised when a notification could not be delivered."""


class NotificationSink(Protocol):
    """Fire-and-forget delivery of a titled message."""

    def __call__(self, title: str, body: str) -> None:  # pragma: no cover - interface
        ...


@dataclass(frozen=True)
class NotificationOptions:
    """Options controlling notification rendering."""

    app_name: str = DEFAULT_APP_NAME
    slack_webhook_url: str | None = None
    timeout: float = 10.0


class LoggingNotificationSink:
    """Sink that writes notifications to the package logger."""

    def __init__(self, logger: logging.Logger | None = None) -> None:
        self._logger = logger or _LOG

    def __call__(self, title: str, body: str) -> None:
        self._logger.info("%s: %s", title, body)


def build_slack_payload(title: str, body: str) -> Dict[str, object]:
    """Render a Slack-compatible payload for a single notification."""

    blocks: List[Dict[str, object]] = [
        {
            "type": "header",
            "text": {"type": "plain_text", "text": title, "emoji": True},
        },
        {
            "type": "section",
            "text": {"type": "mrkdwn", "text": body},
        },
    ]
    return {"text": f"{title} / {body}", "blocks": blocks}


class SlackWebhookNotificationSink:
    """Sink posting notifications to a Slack incoming webhook."""

    def __init__(self, webhook_url: str, *, timeout: float = 10.0) -> None:
        if not webhook_url.startswith("https://"):
            raise ValueError("Slack webhook URL must start with 'https://'")
        self._webhook_url = webhook_url
        self._timeout = timeout

    def __call__(self, title: str, body: str) -> None:
        data = json.dumps(build_slack_payload(title, body)).encode("utf-8")
        request = urllib.request.Request(
            self._webhook_url,
            data=data,
            headers={"Content-Type": "application/json"},
            method="POST",
        )
        try:
            with urllib.request.urlopen(request, timeout=self._timeout) as response:
                status = getattr(response, "status", 200)
                if 200 <= status < 300:
                    return
                raise NotificationError(f"Slack webhook responded with status {status}")
        except urllib.error.HTTPError as exc:
            raise NotificationError(f"Slack webhook error: {exc.code} {exc.reason}") from exc
        except urllib.error.URLError as exc:
            raise NotificationError(f"Failed to reach Slack webhook: {exc.reason}") from exc


def build_notification_sink(options: NotificationOptions | None = None) -> NotificationSink:
    """Return the Slack sink when a webhook is configured, otherwise the logging sink."""

    opts = options or NotificationOptions()
    if opts.slack_webhook_url:
        return SlackWebhookNotificationSink(opts.slack_webhook_url, timeout=opts.timeout)
    return LoggingNotificationSink()


__all__ = [
    "DEFAULT_APP_NAME",
    "LoggingNotificationSink",
    "NotificationError",
    "NotificationOptions",
    "NotificationSink",
    "SlackWebhookNotificationSink",
    "build_notification_sink",
    "build_slack_payload",
]
