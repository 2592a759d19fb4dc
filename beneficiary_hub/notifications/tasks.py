"""
Notification Celery tasks.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from celery import shared_task
from flask import current_app

from .events import NotificationEvent


@shared_task(name="notifications.healthcheck", bind=True)
def notifications_healthcheck(self) -> dict[str, Any]:
    """Heartbeat used by worker health checks."""
    return {
        "status": "ok",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "worker_hostname": self.request.hostname,
    }


@shared_task(name="notifications.deliver", bind=True)
def deliver_notification(self, *, payload: dict[str, Any]) -> bool:
    """
    Deliver a queued notification through the configured transport.

    Failures are logged and not retried; the workflow treats delivery as best-effort.
    """
    event = NotificationEvent.from_dict(payload)
    transport = current_app.extensions["matching"]["dispatcher"].transport
    try:
        transport.send(event)
    except Exception as exc:
        current_app.logger.error(
            f"Queued {event.kind.value} notification failed: {exc}",
            extra={"notification_kind": event.kind.value, "celery_task_id": self.request.id},
        )
        return False
    return True
