"""
Matching extension wiring.

``init_matching`` builds the configured ranker and notification dispatcher
once per app and records them in ``app.extensions['matching']`` so services,
routes and the CLI share them.
"""

from __future__ import annotations

from typing import Any

from flask import Flask, current_app

from .heuristic import HeuristicRanker
from .http_ranker import DEFAULT_TIMEOUT_SECONDS, HttpRanker
from .ranker import CandidateRanker

MATCHING_EXTENSION_KEY = "matching"
RANKER_BACKENDS = ("heuristic", "http")


def build_ranker(config) -> CandidateRanker:
    backend = str(config.get("RANKER_BACKEND", "heuristic")).lower()
    if backend == "http":
        return HttpRanker(
            config.get("RANKER_URL"),
            api_key=config.get("RANKER_API_KEY"),
            timeout=float(config.get("RANKER_TIMEOUT_SECONDS", DEFAULT_TIMEOUT_SECONDS)),
        )
    if backend != "heuristic":
        raise ValueError(f"Unknown RANKER_BACKEND '{backend}'. Expected one of: {', '.join(RANKER_BACKENDS)}.")
    return HeuristicRanker()


def build_dispatcher(app: Flask, state: dict[str, Any]):
    from beneficiary_hub.notifications import NotificationDispatcher, build_transport

    celery_app = None
    queue = None
    if app.config.get("NOTIFICATIONS_WORKER_ENABLED", False):
        from beneficiary_hub.notifications.celery_app import DEFAULT_QUEUE_NAME, ensure_celery_app

        celery_app = ensure_celery_app(app, state)
        queue = DEFAULT_QUEUE_NAME

    return NotificationDispatcher(
        build_transport(app.config),
        enabled=bool(app.config.get("NOTIFICATIONS_ENABLED", True)),
        celery_app=celery_app,
        queue=queue,
        logger=app.logger,
    )


def _set_cli(app: Flask) -> None:
    from .cli import matching_cli

    # Avoid duplicate registrations when the app is re-initialised in tests
    if matching_cli.name in app.cli.commands:
        app.cli.commands.pop(matching_cli.name)
    app.cli.add_command(matching_cli)


def init_matching(app: Flask) -> None:
    state = app.extensions.setdefault(MATCHING_EXTENSION_KEY, {"celery_app": None})
    state["ranker"] = build_ranker(app.config)
    state["dispatcher"] = build_dispatcher(app, state)
    _set_cli(app)
    app.logger.info(
        "Matching initialised with ranker '%s' and notification transport '%s'",
        state["ranker"].name,
        state["dispatcher"].transport.name,
    )


def _state(app: Flask | None = None) -> dict[str, Any]:
    app = app or current_app
    try:
        return app.extensions[MATCHING_EXTENSION_KEY]
    except KeyError:
        raise RuntimeError("Matching extension is not initialised; call init_matching(app).") from None


def get_ranker(app: Flask | None = None) -> CandidateRanker:
    return _state(app)["ranker"]


def set_ranker(ranker: CandidateRanker, app: Flask | None = None) -> CandidateRanker:
    """Swap the active ranker, returning the previous one."""
    state = _state(app)
    previous = state["ranker"]
    state["ranker"] = ranker
    return previous


def get_dispatcher(app: Flask | None = None):
    return _state(app)["dispatcher"]


__all__ = [
    "MATCHING_EXTENSION_KEY",
    "build_ranker",
    "build_dispatcher",
    "init_matching",
    "get_ranker",
    "set_ranker",
    "get_dispatcher",
]
