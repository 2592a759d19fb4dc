# beneficiary_hub/models/base.py

import logging
from datetime import date, datetime, timezone
from enum import Enum as PyEnum

from flask import current_app
from flask_sqlalchemy import SQLAlchemy
from sqlalchemy import event
from sqlalchemy.exc import SQLAlchemyError

db = SQLAlchemy()


def utcnow():
    return datetime.now(timezone.utc)


def enum_values(enum_cls):
    """Persist enum values ("allocated_by_admin") rather than member names."""
    return [member.value for member in enum_cls]


class BaseModel(db.Model):
    """Abstract base with audit timestamps and guarded persistence helpers"""

    __abstract__ = True

    created_at = db.Column(db.DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = db.Column(db.DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)

    def to_dict(self):
        """Serialize column values to JSON-friendly primitives"""
        payload = {}
        for column in self.__table__.columns:
            value = getattr(self, column.name)
            if isinstance(value, PyEnum):
                value = value.value
            elif isinstance(value, (datetime, date)):
                value = value.isoformat()
            payload[column.name] = value
        return payload

    @classmethod
    def safe_create(cls, **kwargs):
        """Create and commit a row, returning (instance, error)"""
        try:
            instance = cls(**kwargs)
            db.session.add(instance)
            db.session.commit()
            return instance, None
        except SQLAlchemyError as e:
            db.session.rollback()
            current_app.logger.error(f"Database error creating {cls.__name__}: {str(e)}")
            return None, str(e)


def configure_sqlite(engine, *, enforce_foreign_keys=True):
    """
    Apply connection pragmas to a SQLite engine once.

    WAL plus a busy timeout make a second writer wait for the lock instead of
    failing immediately.
    """
    if not engine.url.drivername.startswith("sqlite") or getattr(engine, "_pragmas_configured", False):
        return

    pragmas = ["journal_mode=WAL", "synchronous=NORMAL", "busy_timeout=5000"]
    if enforce_foreign_keys:
        pragmas.append("foreign_keys=ON")

    @event.listens_for(engine, "connect")
    def _apply_pragmas(dbapi_connection, connection_record):  # pragma: no cover - driver hook
        cursor = dbapi_connection.cursor()
        try:
            for pragma in pragmas:
                cursor.execute(f"PRAGMA {pragma}")
        except Exception as exc:
            logging.getLogger(__name__).warning(f"Failed to apply SQLite pragmas: {exc}")
        finally:
            cursor.close()

    engine._pragmas_configured = True  # type: ignore[attr-defined]
