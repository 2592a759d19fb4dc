# beneficiary_hub/models/enums.py
"""
Enums shared by the donation workflow models.
"""

import enum


class UserRole(str, enum.Enum):
    """Account role enumeration"""

    ADMIN = "admin"
    APPROVER = "approver"
    DONOR = "donor"
    SCHOOL = "school"


class DonationApprovalStatus(str, enum.Enum):
    """Review state of a donor's listing"""

    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class DonationStatus(str, enum.Enum):
    """Fulfilment state of a reviewed donation"""

    APPROVED = "approved"
    ALLOCATED = "allocated"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


class ApplicationStatus(str, enum.Enum):
    """Resource application status enumeration"""

    DRAFT = "draft"
    SUBMITTED = "submitted"
    UNDER_REVIEW = "under_review"
    APPROVED = "approved"
    REJECTED = "rejected"
    FULFILLED = "fulfilled"


OPEN_APPLICATION_STATUSES = (
    ApplicationStatus.SUBMITTED,
    ApplicationStatus.UNDER_REVIEW,
    ApplicationStatus.APPROVED,
)


class MatchStatus(str, enum.Enum):
    """Lifecycle states for a donation match."""

    PENDING_ADMIN_ALLOCATION = "pending_admin_allocation"
    ALLOCATED_BY_ADMIN = "allocated_by_admin"
    APPROVED_BY_APPROVER = "approved_by_approver"
    REJECTED_BY_APPROVER = "rejected_by_approver"


# A donation may hold at most one match in these states.
ACTIVE_MATCH_STATUSES = (
    MatchStatus.ALLOCATED_BY_ADMIN,
    MatchStatus.APPROVED_BY_APPROVER,
)

REVIEWED_MATCH_STATUSES = (
    MatchStatus.APPROVED_BY_APPROVER,
    MatchStatus.REJECTED_BY_APPROVER,
)
