"""
Second-tier review: an approver confirms an allocation (scheduling the
handover) or rejects it and releases the donation.
"""

from __future__ import annotations

from typing import Any, Mapping

from flask import current_app
from sqlalchemy.orm import Session, joinedload

from beneficiary_hub.models import HANDOVER_FIELDS, REVIEWED_MATCH_STATUSES, DonationMatch, MatchStatus, db
from beneficiary_hub.models.base import utcnow
from beneficiary_hub.utils.permissions import ADMIN_OR_APPROVER, Actor, authorize

from .allocation import load_match
from .errors import Unauthorized, ValidationError
from .extension import get_dispatcher
from .transitions import MatchEvent, already_applied, apply_transition, atomic, resolve_transition

REQUIRED_HANDOVER_FIELDS = ("date", "time", "venue", "venue_address", "contact_person", "contact_phone")

DEFAULT_HISTORY_PAGE_SIZE = 50
DEFAULT_HISTORY_MAX_PAGE_SIZE = 200


def _clean(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def validate_handover_schedule(schedule: Mapping[str, Any] | None) -> dict[str, str | None]:
    """
    Normalise a handover schedule, requiring every field but ``notes``.

    Raises:
        ValidationError: listing each missing field
    """
    if not isinstance(schedule, Mapping):
        raise ValidationError("Handover schedule is required.", fields=REQUIRED_HANDOVER_FIELDS)
    cleaned = {field: _clean(schedule.get(field)) for field in HANDOVER_FIELDS}
    missing = [field for field in REQUIRED_HANDOVER_FIELDS if not cleaned[field]]
    if missing:
        raise ValidationError(f"Handover schedule is missing: {', '.join(missing)}.", fields=missing)
    return cleaned


class ApprovalService:
    def __init__(self, session: Session | None = None, dispatcher=None):
        self.session = session or db.session
        self._dispatcher = dispatcher

    @property
    def dispatcher(self):
        return self._dispatcher or get_dispatcher()

    def _check_independent(self, actor: Actor, match: DonationMatch) -> None:
        if not current_app.config.get("MATCHING_REQUIRE_INDEPENDENT_APPROVER", True):
            return
        if match.allocated_by is not None and match.allocated_by == actor.user_id:
            current_app.logger.warning(
                f"User {actor.user_id} tried to review their own allocation",
                extra={"match_id": match.id, "actor_id": actor.user_id},
            )
            raise Unauthorized("The admin who allocated a match cannot review it.")

    def approve(
        self,
        actor: Actor,
        match_id: int,
        handover_schedule: Mapping[str, Any] | None,
        approver_notes: str | None = None,
    ) -> DonationMatch:
        """
        Approve an allocated match: donation delivered, application fulfilled.

        Raises:
            Unauthorized: actor is not approver/admin, or allocated the match
            ValidationError: handover schedule incomplete (nothing read or written)
            NotFound: match missing or not allocated
            Conflict: a concurrent change won
        """
        authorize(actor, ADMIN_OR_APPROVER)
        schedule = validate_handover_schedule(handover_schedule)
        match = load_match(self.session, match_id)

        if already_applied(match, MatchEvent.APPROVE):
            current_app.logger.info(f"Match {match_id} already approved; nothing to do", extra={"match_id": match_id})
            return match

        resolve_transition(match.status, MatchEvent.APPROVE)
        self._check_independent(actor, match)

        now = utcnow()
        match_values: dict[str, Any] = {
            "reviewed_by": actor.user_id,
            "reviewed_at": now,
            "approver_notes": _clean(approver_notes),
            # Stamped with the approval, independent of delivery outcome.
            "school_notified_at": now,
            "donor_notified_at": now,
        }
        match_values.update({f"handover_{field}": value for field, value in schedule.items()})

        with atomic(self.session, "approve", match_id=match_id, donation_id=match.donation_id):
            transition = apply_transition(self.session, match, MatchEvent.APPROVE, now=now, match_values=match_values)

        current_app.logger.info(
            f"Approved match {match_id}; donation {match.donation_id} delivered",
            extra={"match_id": match_id, "donation_id": match.donation_id, "actor_id": actor.user_id},
        )
        self.dispatcher.dispatch_all(transition.events(match))
        return match

    def reject(
        self,
        actor: Actor,
        match_id: int,
        reason: str | None,
        approver_notes: str | None = None,
    ) -> DonationMatch:
        """Reject an allocated match and release its donation for reallocation."""
        authorize(actor, ADMIN_OR_APPROVER)
        reason = _clean(reason)
        if not reason:
            raise ValidationError("A rejection reason is required.", fields=("reason",))
        match = load_match(self.session, match_id)

        if already_applied(match, MatchEvent.REJECT):
            current_app.logger.info(f"Match {match_id} already rejected; nothing to do", extra={"match_id": match_id})
            return match

        resolve_transition(match.status, MatchEvent.REJECT)
        self._check_independent(actor, match)

        now = utcnow()
        with atomic(self.session, "reject", match_id=match_id, donation_id=match.donation_id):
            transition = apply_transition(
                self.session,
                match,
                MatchEvent.REJECT,
                now=now,
                match_values={
                    "reviewed_by": actor.user_id,
                    "reviewed_at": now,
                    "rejection_reason": reason,
                    "approver_notes": _clean(approver_notes),
                },
            )

        current_app.logger.info(
            f"Rejected match {match_id}; donation {match.donation_id} released",
            extra={"match_id": match_id, "donation_id": match.donation_id, "actor_id": actor.user_id},
        )
        self.dispatcher.dispatch_all(transition.events(match))
        return match

    def _with_context(self, query):
        return query.options(
            joinedload(DonationMatch.donation),
            joinedload(DonationMatch.school),
            joinedload(DonationMatch.application),
        )

    def list_pending(self, actor: Actor) -> list[DonationMatch]:
        """Allocated matches awaiting review, highest priority first."""
        authorize(actor, ADMIN_OR_APPROVER)
        return (
            self._with_context(self.session.query(DonationMatch))
            .filter(DonationMatch.status == MatchStatus.ALLOCATED_BY_ADMIN)
            .order_by(DonationMatch.priority_rank.asc(), DonationMatch.id.asc())
            .all()
        )

    def list_history(self, actor: Actor, limit: int | None = None) -> list[DonationMatch]:
        """Reviewed matches, most recent first."""
        authorize(actor, ADMIN_OR_APPROVER)
        config = current_app.config
        max_page = int(config.get("MATCH_HISTORY_MAX_PAGE_SIZE", DEFAULT_HISTORY_MAX_PAGE_SIZE))
        if limit is None:
            limit = int(config.get("MATCH_HISTORY_PAGE_SIZE", DEFAULT_HISTORY_PAGE_SIZE))
        if limit < 1:
            raise ValidationError("History limit must be at least 1.", fields=("limit",))
        limit = min(limit, max_page)
        return (
            self._with_context(self.session.query(DonationMatch))
            .filter(DonationMatch.status.in_(REVIEWED_MATCH_STATUSES))
            .order_by(DonationMatch.reviewed_at.desc(), DonationMatch.id.desc())
            .limit(limit)
            .all()
        )


__all__ = ["ApprovalService", "validate_handover_schedule", "REQUIRED_HANDOVER_FIELDS"]
