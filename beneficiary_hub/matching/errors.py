"""
Typed errors raised by the matching workflow.

Every error carries a stable ``code`` (safe to return to API clients) and the
HTTP status the JSON layer maps it to. Callers catch by type, never by message.
"""

from __future__ import annotations

from http import HTTPStatus
from typing import Iterable


class MatchingError(Exception):
    """Base class for workflow failures."""

    code = "matching_error"
    http_status = HTTPStatus.INTERNAL_SERVER_ERROR

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def as_dict(self) -> dict[str, object]:
        return {"code": self.code, "message": self.message}


class Unauthorized(MatchingError):
    """The actor lacks the role required by the operation."""

    code = "unauthorized"
    http_status = HTTPStatus.FORBIDDEN


class NotFound(MatchingError):
    """Entity missing, or not in the state the operation requires."""

    code = "not_found"
    http_status = HTTPStatus.NOT_FOUND


class ValidationError(MatchingError):
    code = "validation_error"
    http_status = HTTPStatus.UNPROCESSABLE_ENTITY

    def __init__(self, message: str, *, fields: Iterable[str] = ()) -> None:
        super().__init__(message)
        self.fields = tuple(fields)

    def as_dict(self) -> dict[str, object]:
        payload = super().as_dict()
        if self.fields:
            payload["fields"] = list(self.fields)
        return payload


class Conflict(MatchingError):
    """A conditional update lost against a concurrent mutation; refresh and retry."""

    code = "conflict"
    http_status = HTTPStatus.CONFLICT


class UpstreamFailure(MatchingError):
    """The candidate ranker failed or returned a malformed response."""

    code = "upstream_failure"
    http_status = HTTPStatus.BAD_GATEWAY


class PersistenceError(MatchingError):
    """A storage write failed; the transaction was rolled back and may be retried."""

    code = "persistence_error"
    http_status = HTTPStatus.SERVICE_UNAVAILABLE


__all__ = [
    "MatchingError",
    "Unauthorized",
    "NotFound",
    "ValidationError",
    "Conflict",
    "UpstreamFailure",
    "PersistenceError",
]
