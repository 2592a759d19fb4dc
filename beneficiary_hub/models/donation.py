"""
Donation and resource application models.

Both rows are mutated by the matching workflow only through conditional
(compare-and-swap) updates; see ``beneficiary_hub.matching.transitions``.
"""

from __future__ import annotations

from datetime import date, datetime

from sqlalchemy import Enum, ForeignKey, Index
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import BaseModel, db, enum_values
from .enums import ApplicationStatus, DonationApprovalStatus, DonationStatus


class Donation(BaseModel):
    """A donor-listed resource offer moving through approval, allocation and delivery."""

    __tablename__ = "donations"

    id: Mapped[int] = mapped_column(primary_key=True)
    donor_id: Mapped[int | None] = mapped_column(ForeignKey("users.id"), nullable=True, index=True)
    title: Mapped[str] = mapped_column(db.String(200), nullable=False)
    description: Mapped[str | None] = mapped_column(db.Text, nullable=True)
    donation_type: Mapped[str | None] = mapped_column(db.String(100), nullable=True)
    items: Mapped[list | None] = mapped_column(db.JSON, nullable=True)
    condition: Mapped[str | None] = mapped_column(db.String(50), nullable=True)
    available_quantity: Mapped[int | None] = mapped_column(db.Integer, nullable=True)
    city: Mapped[str | None] = mapped_column(db.String(100), nullable=True)
    province: Mapped[str | None] = mapped_column(db.String(100), nullable=True)
    delivery_available: Mapped[bool] = mapped_column(db.Boolean, nullable=False, default=False)
    urgency_level: Mapped[str | None] = mapped_column(db.String(20), nullable=True)

    approval_status: Mapped[DonationApprovalStatus] = mapped_column(
        Enum(DonationApprovalStatus, name="donation_approval_status_enum", values_callable=enum_values),
        nullable=False,
        default=DonationApprovalStatus.PENDING,
        index=True,
    )
    # NULL until the listing has been reviewed.
    status: Mapped[DonationStatus | None] = mapped_column(
        Enum(DonationStatus, name="donation_status_enum", values_callable=enum_values),
        nullable=True,
        index=True,
    )
    rejection_reason: Mapped[str | None] = mapped_column(db.Text, nullable=True)
    reviewed_by: Mapped[int | None] = mapped_column(ForeignKey("users.id"), nullable=True)
    reviewed_at: Mapped[datetime | None] = mapped_column(db.DateTime(timezone=True), nullable=True)

    allocated_to: Mapped[int | None] = mapped_column(ForeignKey("schools.id"), nullable=True, index=True)
    allocated_at: Mapped[datetime | None] = mapped_column(db.DateTime(timezone=True), nullable=True)
    delivered_at: Mapped[datetime | None] = mapped_column(db.DateTime(timezone=True), nullable=True)
    match_generation: Mapped[int] = mapped_column(
        db.Integer,
        nullable=False,
        default=0,
        comment="Version of the current candidate batch; bumped by every regeneration.",
    )

    donor = relationship("User", back_populates="donations", foreign_keys=[donor_id])
    allocated_school = relationship("School", foreign_keys=[allocated_to])
    matches = relationship(
        "DonationMatch",
        back_populates="donation",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="DonationMatch.priority_rank",
    )

    __table_args__ = (
        Index("idx_donation_review_state", "approval_status", "status"),
        {"sqlite_autoincrement": True},
    )

    def __repr__(self) -> str:
        return f"<Donation {self.id} {self.title!r} status={self.status}>"

    def to_ranker_context(self) -> dict:
        """Donation snapshot as sent to the candidate ranker."""
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "donation_type": self.donation_type,
            "items": self.items or [],
            "condition": self.condition,
            "available_quantity": self.available_quantity,
            "city": self.city,
            "province": self.province,
            "delivery_available": self.delivery_available,
            "urgency_level": self.urgency_level,
        }


class ResourceApplication(BaseModel):
    """A school's request for resources, eligible to be matched while open."""

    __tablename__ = "resource_applications"

    id: Mapped[int] = mapped_column(primary_key=True)
    school_id: Mapped[int | None] = mapped_column(ForeignKey("schools.id"), nullable=True, index=True)
    application_title: Mapped[str] = mapped_column(db.String(200), nullable=False)
    application_type: Mapped[str | None] = mapped_column(db.String(100), nullable=True)
    priority_level: Mapped[str | None] = mapped_column(db.String(20), nullable=True)
    resources_needed: Mapped[list | None] = mapped_column(db.JSON, nullable=True)
    current_situation: Mapped[str | None] = mapped_column(db.Text, nullable=True)
    expected_impact: Mapped[str | None] = mapped_column(db.Text, nullable=True)
    beneficiaries_count: Mapped[int | None] = mapped_column(db.Integer, nullable=True)
    needed_by_date: Mapped[date | None] = mapped_column(db.Date, nullable=True)
    status: Mapped[ApplicationStatus] = mapped_column(
        Enum(ApplicationStatus, name="application_status_enum", values_callable=enum_values),
        nullable=False,
        default=ApplicationStatus.DRAFT,
        index=True,
    )

    school = relationship("School", back_populates="applications")
    matches = relationship("DonationMatch", back_populates="application")

    __table_args__ = ({"sqlite_autoincrement": True},)

    def __repr__(self) -> str:
        return f"<ResourceApplication {self.id} school={self.school_id} status={self.status}>"

    def to_ranker_context(self) -> dict:
        """Application enriched with its school's profile, as sent to the ranker."""
        return {
            "id": self.id,
            "application_title": self.application_title,
            "application_type": self.application_type,
            "priority_level": self.priority_level,
            "resources_needed": self.resources_needed or [],
            "current_situation": self.current_situation,
            "expected_impact": self.expected_impact,
            "beneficiaries_count": self.beneficiaries_count,
            "needed_by_date": self.needed_by_date.isoformat() if self.needed_by_date else None,
            "school": self.school.to_ranker_context() if self.school else None,
        }
