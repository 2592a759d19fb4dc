"""
Notification events emitted by the matching workflow.

Events are plain, serializable values built from committed rows so they can be
delivered inline or handed to the worker queue unchanged.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Any, Mapping

from beneficiary_hub.models import Donation, DonationMatch


class NotificationKind(str, enum.Enum):
    ALLOCATION = "allocation"
    HANDOVER = "handover"
    REJECTION = "rejection"
    DONATION_REVIEW = "donation_review"


@dataclass(frozen=True)
class NotificationEvent:
    kind: NotificationKind
    recipient: str | None
    subject: str
    context: Mapping[str, Any] = field(default_factory=dict)

    def as_dict(self) -> dict[str, Any]:
        return {
            "kind": self.kind.value,
            "recipient": self.recipient,
            "subject": self.subject,
            "context": dict(self.context),
        }

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "NotificationEvent":
        return cls(
            kind=NotificationKind(payload["kind"]),
            recipient=payload.get("recipient"),
            subject=payload["subject"],
            context=dict(payload.get("context") or {}),
        )

    def render_body(self) -> str:
        """Plain-text body for the event."""
        ctx = self.context
        if self.kind is NotificationKind.ALLOCATION:
            return (
                f"Good news, {ctx.get('school_name')}!\n\n"
                f"The donation \"{ctx.get('donation_title')}\" has been allocated to your application "
                f"\"{ctx.get('application_title')}\".\n"
                "An approver will confirm the allocation and share the handover details shortly."
            )
        if self.kind is NotificationKind.HANDOVER:
            schedule = ctx.get("handover_schedule") or {}
            lines = [
                f"The donation \"{ctx.get('donation_title')}\" to {ctx.get('school_name')} has been approved.",
                "",
                "Handover details:",
                f"  Date: {schedule.get('date')}",
                f"  Time: {schedule.get('time')}",
                f"  Venue: {schedule.get('venue')}",
                f"  Address: {schedule.get('venue_address')}",
                f"  Contact: {schedule.get('contact_person')} ({schedule.get('contact_phone')})",
            ]
            if schedule.get("notes"):
                lines.append(f"  Notes: {schedule['notes']}")
            return "\n".join(lines)
        if self.kind is NotificationKind.REJECTION:
            return (
                f"The allocation of \"{ctx.get('donation_title')}\" to {ctx.get('school_name')} was rejected.\n\n"
                f"Reason: {ctx.get('reason')}\n"
                "The donation is available again for allocation."
            )
        decision = ctx.get("decision")
        body = f"Your donation \"{ctx.get('donation_title')}\" was {decision}."
        if ctx.get("reason"):
            body += f"\n\nReason: {ctx['reason']}"
        return body


def _match_context(match: DonationMatch) -> dict[str, Any]:
    return {
        "match_id": match.id,
        "donation_id": match.donation_id,
        "donation_title": match.donation.title if match.donation else None,
        "school_id": match.school_id,
        "school_name": match.school.school_name if match.school else None,
        "application_id": match.application_id,
        "application_title": match.application.application_title if match.application else None,
    }


def allocation_event(match: DonationMatch) -> NotificationEvent:
    school = match.school
    context = _match_context(match)
    context["admin_notes"] = match.admin_notes
    return NotificationEvent(
        kind=NotificationKind.ALLOCATION,
        recipient=school.contact_email if school else None,
        subject="A donation has been allocated to your school",
        context=context,
    )


def handover_events(match: DonationMatch) -> list[NotificationEvent]:
    """One handover event for the school and one for the donor."""
    context = _match_context(match)
    context["handover_schedule"] = match.handover_schedule
    donor = match.donation.donor if match.donation else None
    school = match.school
    return [
        NotificationEvent(
            kind=NotificationKind.HANDOVER,
            recipient=school.contact_email if school else None,
            subject="Donation approved: handover scheduled",
            context={**context, "audience": "school"},
        ),
        NotificationEvent(
            kind=NotificationKind.HANDOVER,
            recipient=donor.email if donor else None,
            subject="Your donation is approved: handover scheduled",
            context={**context, "audience": "donor"},
        ),
    ]


def rejection_event(match: DonationMatch) -> NotificationEvent:
    admin = match.allocated_by_user
    context = _match_context(match)
    context["reason"] = match.rejection_reason
    return NotificationEvent(
        kind=NotificationKind.REJECTION,
        recipient=admin.email if admin else None,
        subject="An allocation you made was rejected",
        context=context,
    )


def donation_review_event(donation: Donation) -> NotificationEvent:
    decision = donation.approval_status.value
    return NotificationEvent(
        kind=NotificationKind.DONATION_REVIEW,
        recipient=donation.donor.email if donation.donor else None,
        subject=f"Your donation listing was {decision}",
        context={
            "donation_id": donation.id,
            "donation_title": donation.title,
            "decision": decision,
            "reason": donation.rejection_reason,
        },
    )
