"""
Admin allocation of one candidate match, locking the donation to its school.
"""

from __future__ import annotations

from flask import current_app
from sqlalchemy.orm import Session

from beneficiary_hub.models import DonationMatch, DonationStatus, db
from beneficiary_hub.models.base import utcnow
from beneficiary_hub.utils.permissions import ADMIN, Actor, authorize

from .errors import NotFound
from .extension import get_dispatcher
from .transitions import MatchEvent, already_applied, apply_transition, atomic, guard_sibling_exclusion, resolve_transition


def load_match(session: Session, match_id: int) -> DonationMatch:
    match = session.get(DonationMatch, match_id)
    if match is None:
        raise NotFound(f"Match {match_id} not found.")
    return match


class AllocationService:
    def __init__(self, session: Session | None = None, dispatcher=None):
        self.session = session or db.session
        self._dispatcher = dispatcher

    @property
    def dispatcher(self):
        return self._dispatcher or get_dispatcher()

    def allocate(self, actor: Actor, match_id: int, admin_notes: str | None = None) -> DonationMatch:
        """
        Promote a pending match to ``allocated_by_admin`` and lock its donation.

        Retrying an allocation that already took effect returns the match unchanged.

        Raises:
            Unauthorized: actor is not an admin
            NotFound: match missing or not pending allocation
            Conflict: a sibling match is active or a concurrent change won
        """
        authorize(actor, ADMIN)
        match = load_match(self.session, match_id)

        if already_applied(match, MatchEvent.ALLOCATE):
            donation = match.donation
            if donation.status == DonationStatus.ALLOCATED and donation.allocated_to == match.school_id:
                current_app.logger.info(
                    f"Match {match_id} already allocated; nothing to do",
                    extra={"match_id": match_id, "actor_id": actor.user_id},
                )
                return match

        resolve_transition(match.status, MatchEvent.ALLOCATE)
        guard_sibling_exclusion(self.session, match)

        now = utcnow()
        with atomic(self.session, "allocate", match_id=match_id, donation_id=match.donation_id):
            transition = apply_transition(
                self.session,
                match,
                MatchEvent.ALLOCATE,
                now=now,
                match_values={"allocated_by": actor.user_id, "allocated_at": now, "admin_notes": admin_notes},
            )

        current_app.logger.info(
            f"Allocated match {match_id} to school {match.school_id}",
            extra={"match_id": match_id, "donation_id": match.donation_id, "actor_id": actor.user_id},
        )
        self.dispatcher.dispatch_all(transition.events(match))
        return match


__all__ = ["AllocationService", "load_match"]
