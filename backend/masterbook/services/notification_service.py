# backend/masterbook/services/notification_service.py
"""
Notification Service for the MasterBook platform.

Renders appointment notices with Jinja2 and hands them to a
NotificationProvider. Delivery is best effort: each send is bounded by
``notification_timeout_seconds``, and timeouts or transport errors are
logged and reported as False. Nothing is retried here.
"""

from concurrent.futures import Future
from concurrent.futures import TimeoutError as FutureTimeout
from datetime import datetime
import logging
from pathlib import Path
import re
import threading
from typing import Any, Dict, Optional

from jinja2 import Environment, FileSystemLoader, select_autoescape

from ..core.config import settings
from ..core.timezone_utils import format_instant
from ..events.appointment_events import (
    AppointmentCancelled,
    AppointmentCreated,
    AppointmentStatusChanged,
    Recipient,
)
from ..events.publisher import EventPublisher
from ..models.appointment import Appointment, AppointmentStatus
from ..monitoring.prometheus_metrics import prometheus_metrics
from .base import BaseService
from .notification_provider import Notification, NotificationProvider, build_notification_provider

logger = logging.getLogger(__name__)

TEMPLATE_DIR = Path(__file__).parent.parent / "templates" / "notifications"

SUBJECTS = {
    "appointment_requested": "New appointment request from {client}",
    "appointment_confirmed": "Your session with {provider} is confirmed",
    "appointment_cancelled": "Appointment cancelled: {date} at {time}",
    "replacement_opportunity": "A spot just opened with {provider}",
    "appointment_reminder": "Appointment Reminder",
    "follow_up": "How was your session?",
}


def _start_send(provider: NotificationProvider, notification: Notification) -> Future:
    """
    Run one provider call on its own daemon thread.

    A hung transport only ever holds its own thread, so later notices are
    never queued behind it.
    """
    future: Future = Future()

    def run() -> None:
        if not future.set_running_or_notify_cancel():
            return
        try:
            future.set_result(provider.send(notification))
        except Exception as exc:
            future.set_exception(exc)

    threading.Thread(target=run, name=f"notify-{notification.kind}", daemon=True).start()
    return future


def _html_to_text(html_content: str) -> str:
    text = re.sub(r"<[^>]+>", "", html_content)
    return re.sub(r"[ \t]+", " ", text).strip()


class NotificationService:
    """Renders and dispatches appointment notices."""

    def __init__(
        self,
        provider: Optional[NotificationProvider] = None,
        timeout_seconds: Optional[float] = None,
    ):
        self.provider = provider or build_notification_provider()
        self.timeout_seconds = (
            settings.notification_timeout_seconds if timeout_seconds is None else timeout_seconds
        )
        self.logger = logging.getLogger(self.__class__.__name__)
        self.env = Environment(
            loader=FileSystemLoader(TEMPLATE_DIR),
            autoescape=select_autoescape(["html"]),
            trim_blocks=True,
            lstrip_blocks=True,
        )

    def register(self, publisher: EventPublisher) -> EventPublisher:
        """Subscribe this service's handlers to ``publisher``."""
        publisher.subscribe(AppointmentCreated, self.notify_appointment_created)
        publisher.subscribe(AppointmentStatusChanged, self.notify_status_changed)
        publisher.subscribe(AppointmentCancelled, self.notify_appointment_cancelled)
        return publisher

    def render(self, kind: str, recipient: Recipient, context: Dict[str, Any]) -> Notification:
        html = self.env.get_template(f"{kind}.html").render(recipient=recipient, **context)
        subject = SUBJECTS[kind].format(**{k: v for k, v in context.items() if isinstance(v, str)})
        return Notification(
            kind=kind,
            to_email=recipient.email,
            to_name=recipient.full_name,
            subject=subject,
            html=html,
            text=_html_to_text(html),
        )

    @BaseService.measure_operation("send_notification")
    def send(self, kind: str, recipient: Recipient, context: Dict[str, Any]) -> bool:
        """
        Render and deliver one notice within the configured timeout.

        Returns:
            True when the provider accepted the notice
        """
        notification = self.render(kind, recipient, context)
        future = _start_send(self.provider, notification)
        try:
            future.result(timeout=self.timeout_seconds)
        except FutureTimeout:
            prometheus_metrics.record_notification(kind, "timeout")
            self.logger.warning(
                f"Notification {kind} to {recipient.email} timed out after {self.timeout_seconds}s",
                extra={"kind": kind, "user_id": recipient.user_id},
            )
            return False
        except Exception as exc:
            prometheus_metrics.record_notification(kind, "failed")
            self.logger.error(
                f"Notification {kind} to {recipient.email} failed: {exc}",
                extra={"kind": kind, "user_id": recipient.user_id, "error_type": type(exc).__name__},
            )
            return False
        prometheus_metrics.record_notification(kind, "sent")
        return True

    @staticmethod
    def _context(start_at: datetime, duration_minutes: int, provider: Recipient, client: Recipient) -> Dict[str, Any]:
        when = format_instant(start_at)
        return {
            "date": when["date"],
            "time": when["time"],
            "timezone": when["timezone"],
            "duration_minutes": duration_minutes,
            "provider": provider.full_name,
            "client": client.full_name,
        }

    def notify_appointment_created(self, event: AppointmentCreated) -> bool:
        context = self._context(event.start_at, event.duration_minutes, event.provider, event.client)
        return self.send("appointment_requested", event.provider, context)

    def notify_status_changed(self, event: AppointmentStatusChanged) -> bool:
        if event.new_status != AppointmentStatus.CONFIRMED.value:
            return False
        context = self._context(event.start_at, event.duration_minutes, event.provider, event.client)
        return self.send("appointment_confirmed", event.client, context)

    def notify_appointment_cancelled(self, event: AppointmentCancelled) -> int:
        """
        Cancellation notice to the master, opportunity notice to each candidate.

        Returns:
            Number of notices delivered
        """
        context = self._context(event.start_at, event.duration_minutes, event.provider, event.client)
        context.update(reason=event.reason or "", replacement_count=len(event.replacements))

        delivered = int(self.send("appointment_cancelled", event.provider, context))
        for candidate in event.replacements:
            delivered += int(self.send("replacement_opportunity", candidate, context))

        self.logger.info(
            f"Cancellation of {event.appointment_id}: {delivered} notice(s) delivered",
            extra={"appointment_id": event.appointment_id, "replacements": len(event.replacements)},
        )
        return delivered

    def send_reminder(self, appointment: Appointment) -> bool:
        provider = Recipient.from_user(appointment.master)
        client = Recipient.from_user(appointment.student)
        context = self._context(appointment.start_utc, appointment.duration_minutes, provider, client)
        return self.send("appointment_reminder", client, context)

    def send_follow_up(self, appointment: Appointment) -> bool:
        provider = Recipient.from_user(appointment.master)
        client = Recipient.from_user(appointment.student)
        context = self._context(appointment.start_utc, appointment.duration_minutes, provider, client)
        return self.send("follow_up", client, context)
