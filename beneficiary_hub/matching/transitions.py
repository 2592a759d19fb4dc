"""
State transition guard shared by allocation and approval.

All match lifecycle rules live in ``TRANSITIONS``: one entry per
``(current match status, event)`` naming the next match status, the donation
status it must find and the one it leaves behind, and the application status
change (if any), plus the notification it triggers and, for a release, the
event it compensates. ``apply_transition`` turns an entry into conditional UPDATE
statements (compare-and-swap on the expected prior status) and raises
``Conflict`` as soon as one of them matches no row.

The caller owns the transaction: wrap the call in ``atomic`` so any failure
rolls back every row touched and a retry starts from a clean state.
"""

from __future__ import annotations

import enum
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Iterator, Mapping

from flask import current_app
from sqlalchemy import func, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from beneficiary_hub.models import (
    ACTIVE_MATCH_STATUSES,
    ApplicationStatus,
    Donation,
    DonationApprovalStatus,
    DonationMatch,
    DonationStatus,
    MatchStatus,
    OPEN_APPLICATION_STATUSES,
    ResourceApplication,
)
from beneficiary_hub.notifications import (
    NotificationEvent,
    NotificationKind,
    allocation_event,
    handover_events,
    rejection_event,
)

from .errors import Conflict, MatchingError, NotFound, PersistenceError


class MatchEvent(str, enum.Enum):
    ALLOCATE = "allocate"
    APPROVE = "approve"
    REJECT = "reject"


DonationValues = Callable[[DonationMatch, datetime], Mapping[str, Any]]


@dataclass(frozen=True)
class Transition:
    event: MatchEvent
    from_status: MatchStatus
    to_status: MatchStatus
    donation_from: DonationStatus
    donation_to: DonationStatus
    donation_values: DonationValues
    application_from: tuple[ApplicationStatus, ...] = field(default=())
    application_to: ApplicationStatus | None = None
    notification: NotificationKind | None = None
    # The earlier event whose donation lock this one releases.
    compensates: MatchEvent | None = None

    @property
    def requires_allocated_school(self) -> bool:
        """Approve/reject must find the donation locked to this match's school."""
        return self.donation_from is DonationStatus.ALLOCATED

    def events(self, match: DonationMatch) -> list[NotificationEvent]:
        """Notifications to dispatch once this transition has committed."""
        if self.notification is None:
            return []
        built = NOTIFICATION_BUILDERS[self.notification](match)
        return built if isinstance(built, list) else [built]


NOTIFICATION_BUILDERS: dict[NotificationKind, Callable[[DonationMatch], NotificationEvent | list[NotificationEvent]]] = {
    NotificationKind.ALLOCATION: allocation_event,
    NotificationKind.HANDOVER: handover_events,
    NotificationKind.REJECTION: rejection_event,
}


def _allocate_values(match: DonationMatch, now: datetime) -> Mapping[str, Any]:
    return {"allocated_to": match.school_id, "allocated_at": now}


def _approve_values(match: DonationMatch, now: datetime) -> Mapping[str, Any]:
    return {"delivered_at": now}


def _reject_values(match: DonationMatch, now: datetime) -> Mapping[str, Any]:
    return {"allocated_to": None, "allocated_at": None}


TRANSITIONS: dict[tuple[MatchStatus, MatchEvent], Transition] = {
    (MatchStatus.PENDING_ADMIN_ALLOCATION, MatchEvent.ALLOCATE): Transition(
        event=MatchEvent.ALLOCATE,
        from_status=MatchStatus.PENDING_ADMIN_ALLOCATION,
        to_status=MatchStatus.ALLOCATED_BY_ADMIN,
        donation_from=DonationStatus.APPROVED,
        donation_to=DonationStatus.ALLOCATED,
        donation_values=_allocate_values,
        notification=NotificationKind.ALLOCATION,
    ),
    (MatchStatus.ALLOCATED_BY_ADMIN, MatchEvent.APPROVE): Transition(
        event=MatchEvent.APPROVE,
        from_status=MatchStatus.ALLOCATED_BY_ADMIN,
        to_status=MatchStatus.APPROVED_BY_APPROVER,
        donation_from=DonationStatus.ALLOCATED,
        donation_to=DonationStatus.DELIVERED,
        donation_values=_approve_values,
        # An application already fulfilled by another donation stays fulfilled.
        application_from=(*OPEN_APPLICATION_STATUSES, ApplicationStatus.FULFILLED),
        application_to=ApplicationStatus.FULFILLED,
        notification=NotificationKind.HANDOVER,
    ),
    (MatchStatus.ALLOCATED_BY_ADMIN, MatchEvent.REJECT): Transition(
        event=MatchEvent.REJECT,
        from_status=MatchStatus.ALLOCATED_BY_ADMIN,
        to_status=MatchStatus.REJECTED_BY_APPROVER,
        donation_from=DonationStatus.ALLOCATED,
        donation_to=DonationStatus.APPROVED,
        donation_values=_reject_values,
        notification=NotificationKind.REJECTION,
        compensates=MatchEvent.ALLOCATE,
    ),
}

# Status a match is left in once the event has been applied; used to treat retries as no-ops.
TARGET_STATUS: dict[MatchEvent, MatchStatus] = {t.event: t.to_status for t in TRANSITIONS.values()}


def resolve_transition(current: MatchStatus, event: MatchEvent) -> Transition:
    """
    Look up the transition for ``event`` from ``current``.

    Raises:
        NotFound: if the match is not in a state the event applies to
    """
    transition = TRANSITIONS.get((current, event))
    if transition is None:
        status_value = current.value if isinstance(current, MatchStatus) else str(current)
        raise NotFound(f"Match is {status_value}; it cannot be handled by {event.value}.")
    return transition


def already_applied(match: DonationMatch, event: MatchEvent) -> bool:
    """True when the match already sits in the event's target state (client retry)."""
    return match.status == TARGET_STATUS[event]


def guard_sibling_exclusion(session: Session, match: DonationMatch) -> None:
    """
    Refuse to promote ``match`` while another match of its donation is active.

    This is an early, friendly check; the donation CAS in ``apply_transition``
    and the partial unique index remain the enforcement points.
    """
    active_siblings = (
        session.query(func.count(DonationMatch.id))
        .filter(
            DonationMatch.donation_id == match.donation_id,
            DonationMatch.id != match.id,
            DonationMatch.status.in_(ACTIVE_MATCH_STATUSES),
        )
        .scalar()
        or 0
    )
    if active_siblings:
        raise Conflict(f"Donation {match.donation_id} already has an allocated or approved match.")


def apply_transition(
    session: Session,
    match: DonationMatch,
    event: MatchEvent,
    *,
    now: datetime,
    match_values: Mapping[str, Any] | None = None,
) -> Transition:
    """
    Apply ``event`` to ``match`` and its donation/application via conditional updates.

    Statements run donation first, so two allocations racing on sibling matches
    serialize on the donation row and exactly one of them wins.

    Raises:
        NotFound: the match is not in a state the event applies to
        Conflict: a row no longer holds the expected prior status
    """
    transition = resolve_transition(match.status, event)
    match_id = match.id
    donation_id = match.donation_id
    application_id = match.application_id

    donation_filters = [Donation.id == donation_id, Donation.status == transition.donation_from]
    if transition.requires_allocated_school:
        donation_filters.append(Donation.allocated_to == match.school_id)
    else:
        donation_filters.append(Donation.approval_status == DonationApprovalStatus.APPROVED)

    donation_result = session.execute(
        update(Donation)
        .where(*donation_filters)
        .values(status=transition.donation_to, updated_at=now, **transition.donation_values(match, now))
    )
    if donation_result.rowcount != 1:
        raise Conflict(
            f"Donation {donation_id} is no longer {transition.donation_from.value}; "
            f"refresh before retrying {event.value}."
        )

    match_result = session.execute(
        update(DonationMatch)
        .where(DonationMatch.id == match_id, DonationMatch.status == transition.from_status)
        .values(status=transition.to_status, updated_at=now, **dict(match_values or {}))
    )
    if match_result.rowcount != 1:
        raise Conflict(f"Match {match_id} changed concurrently; refresh before retrying {event.value}.")

    if transition.application_to is not None:
        application_result = session.execute(
            update(ResourceApplication)
            .where(
                ResourceApplication.id == application_id,
                ResourceApplication.status.in_(transition.application_from),
            )
            .values(status=transition.application_to, updated_at=now)
        )
        if application_result.rowcount != 1:
            raise Conflict(f"Application {application_id} is no longer open; it cannot be {transition.application_to.value}.")

    current_app.logger.debug(
        f"Applied {event.value} to match {match_id}",
        extra={"match_id": match_id, "donation_id": donation_id, "match_status": transition.to_status.value},
    )
    return transition


@contextmanager
def atomic(session: Session, operation: str, **context: Any) -> Iterator[Session]:
    """
    Commit on success, roll back on any failure.

    Integrity violations (the one-active-match index, duplicate ranks) surface as
    ``Conflict``; any other storage failure as ``PersistenceError``.
    """
    try:
        yield session
        session.commit()
    except MatchingError:
        session.rollback()
        raise
    except IntegrityError as exc:
        session.rollback()
        current_app.logger.warning(f"Integrity conflict during {operation}", extra=context)
        raise Conflict(f"{operation} conflicted with a concurrent change; refresh and retry.") from exc
    except SQLAlchemyError as exc:
        session.rollback()
        current_app.logger.error(f"Storage failure during {operation}", extra=context, exc_info=True)
        raise PersistenceError(f"{operation} could not be saved; retry the request.") from exc


__all__ = [
    "MatchEvent",
    "Transition",
    "TRANSITIONS",
    "NOTIFICATION_BUILDERS",
    "TARGET_STATUS",
    "resolve_transition",
    "already_applied",
    "guard_sibling_exclusion",
    "apply_transition",
    "atomic",
]
