"""
Facade over the matching services returning ``OperationResult`` values.

Every workflow error is turned into a failed result carrying its stable code,
so callers that prefer values over exceptions (the CLI, background jobs)
never need to catch.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Mapping

from flask import current_app
from sqlalchemy.orm import Session

from beneficiary_hub.models import db
from beneficiary_hub.utils.permissions import Actor

from .allocation import AllocationService
from .approval import ApprovalService
from .errors import MatchingError
from .generation import MatchGenerationService
from .review import DonationReviewService


@dataclass(frozen=True)
class OperationResult:
    success: bool
    data: Any = None
    error: MatchingError | None = None

    @classmethod
    def ok(cls, data: Any = None) -> "OperationResult":
        return cls(success=True, data=data)

    @classmethod
    def failed(cls, error: MatchingError) -> "OperationResult":
        return cls(success=False, error=error)

    def as_dict(self) -> dict[str, Any]:
        if self.success:
            return {"success": True, "data": self.data}
        return {"success": False, "error": self.error.as_dict()}


def _serialize(value: Any) -> Any:
    if isinstance(value, list):
        return [_serialize(item) for item in value]
    if hasattr(value, "to_dict"):
        return value.to_dict()
    return value


class MatchingWorkflow:
    """Single entry point for generation, allocation, review and the read queries."""

    def __init__(self, session: Session | None = None, *, ranker=None, dispatcher=None):
        session = session or db.session
        self.generation = MatchGenerationService(session, ranker=ranker)
        self.allocation = AllocationService(session, dispatcher=dispatcher)
        self.approval = ApprovalService(session, dispatcher=dispatcher)
        self.review = DonationReviewService(session, dispatcher=dispatcher)

    def _run(self, operation: str, call: Callable[[], Any]) -> OperationResult:
        try:
            return OperationResult.ok(_serialize(call()))
        except MatchingError as exc:
            current_app.logger.info(
                f"{operation} failed: {exc.code}: {exc.message}",
                extra={"operation": operation, "error_code": exc.code},
            )
            return OperationResult.failed(exc)

    def generate(self, actor: Actor, donation_id: int) -> OperationResult:
        return self._run("generate", lambda: self.generation.generate(actor, donation_id))

    def list_candidates(self, actor: Actor, donation_id: int) -> OperationResult:
        return self._run("list_candidates", lambda: self.generation.list_candidates(actor, donation_id))

    def allocate(self, actor: Actor, match_id: int, admin_notes: str | None = None) -> OperationResult:
        return self._run("allocate", lambda: self.allocation.allocate(actor, match_id, admin_notes))

    def approve(
        self,
        actor: Actor,
        match_id: int,
        handover_schedule: Mapping[str, Any] | None,
        approver_notes: str | None = None,
    ) -> OperationResult:
        return self._run("approve", lambda: self.approval.approve(actor, match_id, handover_schedule, approver_notes))

    def reject(
        self, actor: Actor, match_id: int, reason: str | None, approver_notes: str | None = None
    ) -> OperationResult:
        return self._run("reject", lambda: self.approval.reject(actor, match_id, reason, approver_notes))

    def list_pending(self, actor: Actor) -> OperationResult:
        return self._run("list_pending", lambda: self.approval.list_pending(actor))

    def list_history(self, actor: Actor, limit: int | None = None) -> OperationResult:
        return self._run("list_history", lambda: self.approval.list_history(actor, limit))

    def approve_donation(self, actor: Actor, donation_id: int) -> OperationResult:
        return self._run("approve_donation", lambda: self.review.approve_donation(actor, donation_id))

    def reject_donation(self, actor: Actor, donation_id: int, reason: str | None) -> OperationResult:
        return self._run("reject_donation", lambda: self.review.reject_donation(actor, donation_id, reason))


__all__ = ["MatchingWorkflow", "OperationResult"]
