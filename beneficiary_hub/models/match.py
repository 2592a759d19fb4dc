"""
Donation match model: one scored candidate pairing of a donation to an application.
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import CheckConstraint, Enum, ForeignKey, Index, UniqueConstraint, text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import BaseModel, db, enum_values
from .enums import MatchStatus

HANDOVER_FIELDS = (
    "date",
    "time",
    "venue",
    "venue_address",
    "contact_person",
    "contact_phone",
    "notes",
)

_ACTIVE_STATUS_CLAUSE = text("status IN ('allocated_by_admin', 'approved_by_approver')")


class DonationMatch(BaseModel):
    """Candidate produced by match generation, with its own two-tier review lifecycle."""

    __tablename__ = "donation_matches"

    id: Mapped[int] = mapped_column(primary_key=True)
    donation_id: Mapped[int] = mapped_column(
        ForeignKey("donations.id", ondelete="CASCADE"), nullable=False, index=True
    )
    application_id: Mapped[int] = mapped_column(ForeignKey("resource_applications.id"), nullable=False, index=True)
    school_id: Mapped[int] = mapped_column(ForeignKey("schools.id"), nullable=False, index=True)
    generation: Mapped[int] = mapped_column(db.Integer, nullable=False, default=0)
    match_score: Mapped[int] = mapped_column(db.Integer, nullable=False)
    justification: Mapped[str] = mapped_column(db.Text, nullable=False)
    priority_rank: Mapped[int] = mapped_column(db.Integer, nullable=False)
    status: Mapped[MatchStatus] = mapped_column(
        Enum(MatchStatus, name="donation_match_status_enum", values_callable=enum_values),
        nullable=False,
        default=MatchStatus.PENDING_ADMIN_ALLOCATION,
        index=True,
    )

    # Allocation metadata
    allocated_by: Mapped[int | None] = mapped_column(ForeignKey("users.id"), nullable=True)
    allocated_at: Mapped[datetime | None] = mapped_column(db.DateTime(timezone=True), nullable=True)
    admin_notes: Mapped[str | None] = mapped_column(db.Text, nullable=True)

    # Approval metadata
    reviewed_by: Mapped[int | None] = mapped_column(ForeignKey("users.id"), nullable=True)
    reviewed_at: Mapped[datetime | None] = mapped_column(db.DateTime(timezone=True), nullable=True, index=True)
    approver_notes: Mapped[str | None] = mapped_column(db.Text, nullable=True)
    rejection_reason: Mapped[str | None] = mapped_column(db.Text, nullable=True)

    # Handover schedule, denormalized once approved
    handover_date: Mapped[str | None] = mapped_column(db.String(20), nullable=True)
    handover_time: Mapped[str | None] = mapped_column(db.String(20), nullable=True)
    handover_venue: Mapped[str | None] = mapped_column(db.String(200), nullable=True)
    handover_venue_address: Mapped[str | None] = mapped_column(db.Text, nullable=True)
    handover_contact_person: Mapped[str | None] = mapped_column(db.String(200), nullable=True)
    handover_contact_phone: Mapped[str | None] = mapped_column(db.String(50), nullable=True)
    handover_notes: Mapped[str | None] = mapped_column(db.Text, nullable=True)

    # Stamped when the approval commits, whether or not dispatch later succeeds
    school_notified_at: Mapped[datetime | None] = mapped_column(db.DateTime(timezone=True), nullable=True)
    donor_notified_at: Mapped[datetime | None] = mapped_column(db.DateTime(timezone=True), nullable=True)

    donation = relationship("Donation", back_populates="matches")
    application = relationship("ResourceApplication", back_populates="matches")
    school = relationship("School")
    allocated_by_user = relationship("User", foreign_keys=[allocated_by])
    reviewed_by_user = relationship("User", foreign_keys=[reviewed_by])

    __table_args__ = (
        UniqueConstraint("donation_id", "generation", "priority_rank", name="uq_match_batch_rank"),
        CheckConstraint("match_score >= 0 AND match_score <= 100", name="ck_match_score_range"),
        CheckConstraint("priority_rank >= 1", name="ck_match_priority_rank_positive"),
        Index("idx_match_donation_status", "donation_id", "status"),
        # At most one allocated/approved match per donation.
        Index(
            "uq_match_one_active_per_donation",
            "donation_id",
            unique=True,
            sqlite_where=_ACTIVE_STATUS_CLAUSE,
            postgresql_where=_ACTIVE_STATUS_CLAUSE,
        ),
        # ids of a replaced batch must never be handed out again
        {"sqlite_autoincrement": True},
    )

    def __repr__(self) -> str:
        return f"<DonationMatch {self.id} donation={self.donation_id} rank={self.priority_rank} status={self.status}>"

    @property
    def handover_schedule(self) -> dict | None:
        if self.handover_date is None:
            return None
        return {field: getattr(self, f"handover_{field}") for field in HANDOVER_FIELDS}

    def to_dict(self) -> dict:
        payload = super().to_dict()
        payload["handover_schedule"] = self.handover_schedule
        if self.school is not None:
            payload["school_name"] = self.school.school_name
        if self.application is not None:
            payload["application_title"] = self.application.application_title
        if self.donation is not None:
            payload["donation_title"] = self.donation.title
        return payload
