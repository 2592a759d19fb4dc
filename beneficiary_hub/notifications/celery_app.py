"""
Celery wiring for the optional notification worker.

Only built when NOTIFICATIONS_WORKER_ENABLED is set. Delivery results are not
stored, so no result backend is configured unless CELERY_RESULT_BACKEND asks
for one; without CELERY_BROKER_URL a SQLite broker in the instance folder is
used for local runs.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Mapping

from celery import Celery
from flask import Flask
from kombu import Queue

from .dispatcher import DELIVER_TASK_NAME

DEFAULT_QUEUE_NAME = "notifications"
LOCAL_BROKER_FILENAME = "notifications-broker.sqlite"


def _local_broker_url(app: Flask) -> str:
    broker_file = Path(app.config.get("CELERY_SQLITE_PATH") or LOCAL_BROKER_FILENAME)
    if not broker_file.is_absolute():
        broker_file = Path(app.instance_path) / broker_file
    broker_file.parent.mkdir(parents=True, exist_ok=True)
    return f"sqla+sqlite:///{broker_file.as_posix()}"


def _overrides(app: Flask) -> Mapping[str, Any]:
    raw = app.config.get("CELERY_CONFIG")
    if not raw:
        return {}
    if isinstance(raw, Mapping):
        return raw
    try:
        parsed = json.loads(raw)
    except json.JSONDecodeError:
        app.logger.warning("CELERY_CONFIG is not valid JSON; ignoring value.", exc_info=True)
        return {}
    if not isinstance(parsed, dict):
        app.logger.warning("CELERY_CONFIG must be a JSON object; ignoring value.")
        return {}
    return parsed


def create_celery_app(app: Flask, queue: str = DEFAULT_QUEUE_NAME) -> Celery:
    """Build a Celery app whose tasks run inside ``app``'s application context."""
    broker_url = app.config.get("CELERY_BROKER_URL") or _local_broker_url(app)
    result_backend = app.config.get("CELERY_RESULT_BACKEND")

    celery_app = Celery(
        f"{app.import_name}.notifications",
        broker=broker_url,
        backend=result_backend,
        include=("beneficiary_hub.notifications.tasks",),
    )
    celery_app.conf.update(
        task_queues=[Queue(queue)],
        task_default_queue=queue,
        task_routes={DELIVER_TASK_NAME: {"queue": queue}},
        task_ignore_result=result_backend is None,
        # ack after delivery so a crashed worker redelivers the message
        task_acks_late=True,
        worker_prefetch_multiplier=1,
        task_time_limit=app.config.get("NOTIFICATIONS_TASK_TIME_LIMIT", 60),
        broker_connection_retry_on_startup=True,
        worker_hijack_root_logger=False,
    )
    celery_app.conf.update(_overrides(app))

    app.logger.info(
        f"Notification worker uses queue '{queue}'",
        extra={"celery_broker_url": broker_url, "celery_result_backend": result_backend},
    )

    class AppContextTask(celery_app.Task):  # type: ignore[misc]
        def __call__(self, *args, **kwargs):
            with app.app_context():
                return super().__call__(*args, **kwargs)

    celery_app.Task = AppContextTask  # type: ignore[assignment]
    return celery_app


def ensure_celery_app(app: Flask, state: dict[str, Any]) -> Celery:
    """Return the worker app cached in the matching extension state, creating it once."""
    if state.get("celery_app") is None:
        state["celery_app"] = create_celery_app(app)
    return state["celery_app"]
