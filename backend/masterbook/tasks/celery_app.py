# backend/masterbook/tasks/celery_app.py
"""
Celery application configuration for MasterBook.

Redis is the broker and backend. Beat drives the reminder and follow-up
automations; nothing else in the scheduling core runs in the worker.
"""

from datetime import timedelta
from typing import Any

from celery import Celery
from celery.signals import setup_logging

from ..core.config import settings


def create_celery_app() -> Celery:
    """
    Create and configure the Celery application.

    Returns:
        Celery: Configured Celery application instance
    """
    celery_app = Celery(
        "masterbook",
        broker=settings.celery_broker_url,
        backend=settings.celery_result_backend,
    )

    celery_app.conf.update(
        {
            "task_serializer": "json",
            "accept_content": ["json"],
            "result_serializer": "json",
            "timezone": settings.business_timezone,
            "enable_utc": True,
            "worker_prefetch_multiplier": 4,
            "task_soft_time_limit": 300,  # 5 minutes soft limit
            "task_time_limit": 600,  # 10 minutes hard limit
            "task_acks_late": True,
            "worker_hijack_root_logger": False,
        }
    )
    celery_app.conf.imports = ("masterbook.tasks.automation_tasks",)
    celery_app.conf.task_routes = {"masterbook.tasks.automation_tasks.*": {"queue": "notifications"}}
    celery_app.conf.beat_schedule = {
        "send-due-reminders": {
            "task": "masterbook.tasks.automation_tasks.send_due_reminders",
            "schedule": timedelta(minutes=15),
        },
        "send-due-follow-ups": {
            "task": "masterbook.tasks.automation_tasks.send_due_follow_ups",
            "schedule": timedelta(hours=1),
        },
    }
    return celery_app


# Disable Celery's default logging configuration
@setup_logging.connect
def config_loggers(*args: Any, **kwargs: Any) -> None:
    """Configure logging to integrate with the application's logging setup."""
    import logging

    logging.basicConfig(
        level=settings.log_level, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )


celery_app = create_celery_app()
