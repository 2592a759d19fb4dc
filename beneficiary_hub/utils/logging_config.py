# beneficiary_hub/utils/logging_config.py

"""
Logging setup for the application.

Console and rotating-file handlers are attached to both ``app.logger`` and the
``beneficiary_hub`` package logger. ``LOG_FORMAT=json`` switches to one JSON
object per line with the ``extra=`` fields merged in.
"""

import json
import logging
import os
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler

PACKAGE_LOGGER = "beneficiary_hub"
TEXT_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"

_STDLIB_KEYS = frozenset(vars(logging.LogRecord("", 0, "", 0, "", (), None)).keys()) | {"message", "taskName"}


class JsonFormatter(logging.Formatter):
    """Formats each record as a single JSON line."""

    def format(self, record):
        payload = {
            "ts": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for key, value in vars(record).items():
            if key not in _STDLIB_KEYS and key not in payload:
                payload[key] = value
        if record.exc_info and record.exc_info[1] is not None:
            exc = record.exc_info[1]
            payload["exc_type"] = type(exc).__name__
            payload["exc_message"] = str(exc)
            if hasattr(exc, "code"):
                payload["exc_code"] = exc.code
            payload["traceback"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str)


def _build_formatter(config):
    if str(config.get("LOG_FORMAT", "text")).lower() == "json":
        return JsonFormatter()
    return logging.Formatter(TEXT_FORMAT)


def _reset_handlers(logger):
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()


def setup_logging(app):
    """Configure application logging from LOG_LEVEL, LOG_DIR and the ENABLE_* flags."""
    config = app.config
    level_name = str(config.get("LOG_LEVEL", "INFO")).upper()
    level = getattr(logging, level_name, logging.INFO)
    formatter = _build_formatter(config)

    handlers = []
    if config.get("ENABLE_CONSOLE_LOGGING", True):
        console_handler = logging.StreamHandler()
        console_handler.setFormatter(formatter)
        handlers.append(console_handler)

    if config.get("ENABLE_FILE_LOGGING", False):
        log_dir = config.get("LOG_DIR") or os.path.join(app.root_path, "logs")
        os.makedirs(log_dir, exist_ok=True)
        file_handler = RotatingFileHandler(
            os.path.join(log_dir, "beneficiary_hub.log"),
            maxBytes=int(config.get("LOG_MAX_BYTES", 10 * 1024 * 1024)),
            backupCount=int(config.get("LOG_BACKUP_COUNT", 5)),
        )
        file_handler.setFormatter(formatter)
        handlers.append(file_handler)

    for logger in (app.logger, logging.getLogger(PACKAGE_LOGGER)):
        _reset_handlers(logger)
        logger.setLevel(level)
        for handler in handlers:
            logger.addHandler(handler)
        logger.propagate = False

    if not config.get("SQLALCHEMY_ECHO", False):
        logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)

    app.logger.debug(f"Logging configured at {level_name}")
    return app.logger
