# backend/masterbook/services/notification_provider.py
"""
Notification transports.

The core decides that a notice goes out and what it says; a provider only
moves the rendered message. Providers raise on failure; the notification
service turns that into a logged, non-retried ``False``.
"""

from __future__ import annotations

from dataclasses import dataclass
import logging
import threading
from typing import Any, Dict, List, Optional

import resend

from ..core.config import settings
from ..core.exceptions import ServiceException

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class Notification:
    """A rendered notice ready for delivery."""

    kind: str
    to_email: str
    to_name: str
    subject: str
    html: str
    text: str


class NotificationProvider:
    """Interface every transport implements."""

    name = "base"

    def send(self, notification: Notification) -> Optional[Dict[str, Any]]:
        raise NotImplementedError


class ConsoleNotificationProvider(NotificationProvider):
    """Logs notices instead of sending them; keeps them in memory for inspection."""

    name = "console"

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self.sent: List[Notification] = []

    def send(self, notification: Notification) -> Optional[Dict[str, Any]]:
        with self._lock:
            self.sent.append(notification)
        logger.info(
            f"[console notification] {notification.kind} to {notification.to_email}: {notification.subject}",
            extra={"kind": notification.kind, "to_email": notification.to_email},
        )
        return None


class ResendNotificationProvider(NotificationProvider):
    """Email delivery through the Resend API."""

    name = "resend"

    def __init__(self, api_key: Optional[str] = None, from_email: Optional[str] = None):
        api_key = api_key or settings.resend_api_key
        if not api_key:
            raise ServiceException("Resend API key not configured")
        resend.api_key = api_key
        self.from_email = from_email or settings.from_email

    def send(self, notification: Notification) -> Optional[Dict[str, Any]]:
        response = resend.Emails.send(
            {
                "from": self.from_email,
                "to": notification.to_email,
                "subject": notification.subject,
                "html": notification.html,
                "text": notification.text,
            }
        )
        logger.info(f"Email sent to {notification.to_email} - Subject: {notification.subject}")
        return response


def build_notification_provider(name: Optional[str] = None) -> NotificationProvider:
    """Create the configured provider ("console" or "resend")."""
    name = name or settings.notification_provider
    if name == "resend":
        return ResendNotificationProvider()
    return ConsoleNotificationProvider()
