"""
Best-effort notification dispatch.

Dispatch never raises: a transition that has committed is final, so delivery
problems are logged and reported through the return value only.
"""

from __future__ import annotations

import logging
from typing import Any, Iterable

from .events import NotificationEvent
from .transports import NotificationTransport

DELIVER_TASK_NAME = "notifications.deliver"


class NotificationDispatcher:
    def __init__(
        self,
        transport: NotificationTransport,
        *,
        enabled: bool = True,
        celery_app: Any | None = None,
        queue: str | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self.transport = transport
        self.enabled = enabled
        self.celery_app = celery_app
        self.queue = queue
        self.logger = logger or logging.getLogger(__name__)

    def dispatch(self, event: NotificationEvent) -> bool:
        """Deliver or enqueue ``event``. Returns False when it was skipped or failed."""
        log_extra = {"notification_kind": event.kind.value, "notification_recipient": event.recipient}
        if not self.enabled:
            self.logger.debug("Notifications disabled; dropping event", extra=log_extra)
            return False
        if not event.recipient:
            self.logger.warning(f"No recipient for {event.kind.value} notification", extra=log_extra)
            return False

        if self.celery_app is not None:
            try:
                self.celery_app.send_task(DELIVER_TASK_NAME, kwargs={"payload": event.as_dict()}, queue=self.queue)
            except Exception as exc:
                self.logger.error(f"Failed to enqueue {event.kind.value} notification: {exc}", extra=log_extra)
                return False
            return True

        try:
            self.transport.send(event)
        except Exception as exc:
            self.logger.error(f"Failed to send {event.kind.value} notification: {exc}", extra=log_extra)
            return False
        return True

    def dispatch_all(self, events: Iterable[NotificationEvent]) -> int:
        """Dispatch every event; returns how many were delivered or enqueued."""
        return sum(1 for event in events if self.dispatch(event))


__all__ = ["NotificationDispatcher", "DELIVER_TASK_NAME"]
