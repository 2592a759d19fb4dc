"""
Match generation: rank open applications for a donation and replace its candidate batch.
"""

from __future__ import annotations

import threading
from contextlib import contextmanager
from typing import Iterator

from flask import current_app
from sqlalchemy import delete, update
from sqlalchemy.orm import Session, joinedload

from beneficiary_hub.models import (
    OPEN_APPLICATION_STATUSES,
    Donation,
    DonationApprovalStatus,
    DonationMatch,
    DonationStatus,
    MatchStatus,
    ResourceApplication,
    db,
)
from beneficiary_hub.models.base import utcnow
from beneficiary_hub.utils.permissions import ADMIN, Actor, authorize

from .errors import Conflict, NotFound, UpstreamFailure
from .extension import get_ranker
from .ranker import CandidateRanker, RankedCandidate, build_request, validate_ranking
from .transitions import atomic

_in_flight_guard = threading.Lock()
_in_flight: set[int] = set()


@contextmanager
def generation_slot(donation_id: int) -> Iterator[None]:
    """
    Hold the per-donation generation slot for the duration of the block.

    A second caller for the same donation does not wait: it gets ``Conflict``.
    """
    with _in_flight_guard:
        if donation_id in _in_flight:
            raise Conflict(f"Match generation for donation {donation_id} is already running.")
        _in_flight.add(donation_id)
    try:
        yield
    finally:
        with _in_flight_guard:
            _in_flight.discard(donation_id)


class MatchGenerationService:
    """Produces and reads a donation's ranked candidate batch."""

    def __init__(self, session: Session | None = None, ranker: CandidateRanker | None = None):
        self.session = session or db.session
        self._ranker = ranker

    @property
    def ranker(self) -> CandidateRanker:
        return self._ranker or get_ranker()

    def _load_donation(self, donation_id: int) -> Donation:
        donation = self.session.get(Donation, donation_id)
        if donation is None or donation.approval_status != DonationApprovalStatus.APPROVED:
            raise NotFound(f"Donation {donation_id} not found or not approved.")
        return donation

    def _open_applications(self) -> list[ResourceApplication]:
        applications = (
            self.session.query(ResourceApplication)
            .options(joinedload(ResourceApplication.school))
            .filter(ResourceApplication.status.in_(OPEN_APPLICATION_STATUSES))
            .order_by(ResourceApplication.id.asc())
            .all()
        )
        eligible = []
        for application in applications:
            if application.school is None:
                current_app.logger.warning(
                    f"Skipping application {application.id}: no school profile",
                    extra={"application_id": application.id},
                )
                continue
            eligible.append(application)
        return eligible

    def _rank(self, request) -> list[RankedCandidate]:
        ranker = self.ranker
        try:
            raw = ranker.rank(request)
        except UpstreamFailure:
            raise
        except Exception as exc:
            current_app.logger.error(
                f"Ranker '{ranker.name}' failed: {exc}",
                extra={"donation_id": request.donation_id},
                exc_info=True,
            )
            raise UpstreamFailure(f"Ranker '{ranker.name}' failed: {exc}") from exc

        try:
            return validate_ranking(raw, request)
        except UpstreamFailure as exc:
            current_app.logger.warning(
                f"Rejected ranker output for donation {request.donation_id}: {exc.message}",
                extra={"donation_id": request.donation_id},
            )
            raise

    def generate(self, actor: Actor, donation_id: int) -> list[DonationMatch]:
        """
        Replace the donation's candidate batch with a freshly ranked one.

        The ranker runs outside the transaction. The write phase bumps
        ``match_generation`` from the value read up front, so a concurrent
        generation or allocation that lands in between makes this call lose
        with ``Conflict`` and leaves the winner's rows untouched.

        Raises:
            Unauthorized: actor is not an admin
            NotFound: donation missing or not approved, or no open applications
            Conflict: donation is allocated/delivered, or another change won
            UpstreamFailure: ranker failed or returned an invalid batch
            PersistenceError: the replacement could not be written
        """
        authorize(actor, ADMIN)
        donation = self._load_donation(donation_id)
        if donation.status != DonationStatus.APPROVED:
            status_value = donation.status.value if donation.status else "unreviewed"
            raise Conflict(f"Donation {donation_id} is {status_value}; candidates cannot be regenerated.")

        with generation_slot(donation_id):
            expected_generation = donation.match_generation
            applications = self._open_applications()
            if not applications:
                raise NotFound("No applications found to match.")

            request = build_request(
                donation.to_ranker_context(),
                [application.to_ranker_context() for application in applications],
            )
            candidates = self._rank(request)

            now = utcnow()
            new_generation = expected_generation + 1
            with atomic(self.session, "generate", donation_id=donation_id):
                bumped = self.session.execute(
                    update(Donation)
                    .where(
                        Donation.id == donation_id,
                        Donation.status == DonationStatus.APPROVED,
                        Donation.match_generation == expected_generation,
                    )
                    .values(match_generation=new_generation, updated_at=now)
                )
                if bumped.rowcount != 1:
                    raise Conflict(f"Donation {donation_id} changed while candidates were being ranked; retry.")

                self.session.execute(
                    delete(DonationMatch)
                    .where(DonationMatch.donation_id == donation_id)
                    .execution_options(synchronize_session="fetch")
                )
                self.session.add_all(
                    [
                        DonationMatch(
                            donation_id=donation_id,
                            application_id=candidate.application_id,
                            school_id=candidate.school_id,
                            generation=new_generation,
                            match_score=candidate.match_score,
                            justification=candidate.justification,
                            priority_rank=candidate.priority_rank,
                            status=MatchStatus.PENDING_ADMIN_ALLOCATION,
                        )
                        for candidate in candidates
                    ]
                )

        current_app.logger.info(
            f"Generated {len(candidates)} candidates for donation {donation_id}",
            extra={
                "donation_id": donation_id,
                "actor_id": actor.user_id,
                "match_generation": new_generation,
                "ranker": self.ranker.name,
            },
        )
        return self._batch(donation_id)

    def _batch(self, donation_id: int) -> list[DonationMatch]:
        return (
            self.session.query(DonationMatch)
            .options(joinedload(DonationMatch.school), joinedload(DonationMatch.application))
            .filter(DonationMatch.donation_id == donation_id)
            .order_by(DonationMatch.priority_rank.asc())
            .all()
        )

    def list_candidates(self, actor: Actor, donation_id: int) -> list[DonationMatch]:
        """Current candidate batch ordered by priority rank."""
        authorize(actor, ADMIN)
        if self.session.get(Donation, donation_id) is None:
            raise NotFound(f"Donation {donation_id} not found.")
        return self._batch(donation_id)


__all__ = ["MatchGenerationService", "generation_slot"]
