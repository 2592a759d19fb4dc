"""
Admin review of donor listings: a donation must be approved before it can be matched.
"""

from __future__ import annotations

from flask import current_app
from sqlalchemy import update
from sqlalchemy.orm import Session

from beneficiary_hub.models import Donation, DonationApprovalStatus, DonationStatus, db
from beneficiary_hub.models.base import utcnow
from beneficiary_hub.notifications import donation_review_event
from beneficiary_hub.utils.permissions import ADMIN, Actor, authorize

from .errors import Conflict, NotFound, ValidationError
from .extension import get_dispatcher
from .transitions import atomic


class DonationReviewService:
    def __init__(self, session: Session | None = None, dispatcher=None):
        self.session = session or db.session
        self._dispatcher = dispatcher

    @property
    def dispatcher(self):
        return self._dispatcher or get_dispatcher()

    def _review(self, actor: Actor, donation_id: int, decision: DonationApprovalStatus, **values) -> Donation:
        donation = self.session.get(Donation, donation_id)
        if donation is None:
            raise NotFound(f"Donation {donation_id} not found.")
        if donation.approval_status == decision:
            return donation
        if donation.approval_status != DonationApprovalStatus.PENDING:
            raise Conflict(f"Donation {donation_id} was already {donation.approval_status.value}.")

        now = utcnow()
        with atomic(self.session, f"donation {decision.value}", donation_id=donation_id):
            result = self.session.execute(
                update(Donation)
                .where(Donation.id == donation_id, Donation.approval_status == DonationApprovalStatus.PENDING)
                .values(approval_status=decision, reviewed_by=actor.user_id, reviewed_at=now, updated_at=now, **values)
            )
            if result.rowcount != 1:
                raise Conflict(f"Donation {donation_id} was reviewed concurrently.")

        current_app.logger.info(
            f"Donation {donation_id} {decision.value}",
            extra={"donation_id": donation_id, "actor_id": actor.user_id},
        )
        self.session.refresh(donation)
        self.dispatcher.dispatch(donation_review_event(donation))
        return donation

    def approve_donation(self, actor: Actor, donation_id: int) -> Donation:
        """Approve a pending listing so it becomes eligible for matching."""
        authorize(actor, ADMIN)
        return self._review(actor, donation_id, DonationApprovalStatus.APPROVED, status=DonationStatus.APPROVED)

    def reject_donation(self, actor: Actor, donation_id: int, reason: str | None) -> Donation:
        authorize(actor, ADMIN)
        reason = (reason or "").strip()
        if not reason:
            raise ValidationError("A rejection reason is required.", fields=("reason",))
        return self._review(
            actor,
            donation_id,
            DonationApprovalStatus.REJECTED,
            status=DonationStatus.CANCELLED,
            rejection_reason=reason,
        )


__all__ = ["DonationReviewService"]
