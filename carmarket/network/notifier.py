"""
Fire-and-forget notifications for listing transitions.

Delivery (email, push, sockets) lives in another service; the lifecycle
core only emits an event. ``notify_safely`` guarantees a failing notifier
never affects the transition that triggered it.
"""

from __future__ import annotations

from typing import Any, Optional, Protocol

import requests
import structlog

from carmarket.config import NOTIFY_WEBHOOK_URL, OBJECT_STORE_TIMEOUT_SECONDS

logger = structlog.get_logger(__name__)


class Notifier(Protocol):
    def notify(self, event: str, payload: dict[str, Any]) -> None: ...


class LogNotifier:
    """Writes notification events to the structured log."""

    def notify(self, event: str, payload: dict[str, Any]) -> None:
        logger.info("listing_notification", notification=event, **payload)


class WebhookNotifier:
    """
    POSTs notification events as JSON to a webhook.

    Args:
        url: Receiving endpoint
        timeout: Request timeout in seconds
    """

    def __init__(self, url: str, timeout: float = OBJECT_STORE_TIMEOUT_SECONDS) -> None:
        self.url = url
        self.timeout = timeout

    def notify(self, event: str, payload: dict[str, Any]) -> None:
        res = requests.post(
            self.url,
            json={"event": event, "payload": payload},
            timeout=self.timeout,
        )
        res.raise_for_status()


def notify_safely(notifier: Optional[Notifier], event: str, payload: dict[str, Any]) -> None:
    """
    Send a notification, logging and swallowing any delivery failure.

    Args:
        notifier: Notifier to use (None disables notifications)
        event: Event name, e.g. ``listing.sold``
        payload: JSON-serializable event data
    """
    if notifier is None:
        return
    try:
        notifier.notify(event, payload)
    except Exception as e:
        logger.warning("notification_failed", notification=event, error=str(e))


def build_notifier() -> Notifier:
    """Return the webhook notifier when NOTIFY_WEBHOOK_URL is set, else the log notifier."""
    if NOTIFY_WEBHOOK_URL:
        return WebhookNotifier(NOTIFY_WEBHOOK_URL)
    return LogNotifier()
