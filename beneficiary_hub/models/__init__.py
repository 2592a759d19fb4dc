# beneficiary_hub/models/__init__.py
"""
Database models package
"""

from .base import BaseModel, db
from .donation import Donation, ResourceApplication
from .enums import (
    ACTIVE_MATCH_STATUSES,
    OPEN_APPLICATION_STATUSES,
    REVIEWED_MATCH_STATUSES,
    ApplicationStatus,
    DonationApprovalStatus,
    DonationStatus,
    MatchStatus,
    UserRole,
)
from .match import HANDOVER_FIELDS, DonationMatch
from .school import School
from .user import User

__all__ = [
    "db",
    "BaseModel",
    "User",
    "School",
    "Donation",
    "ResourceApplication",
    "DonationMatch",
    "HANDOVER_FIELDS",
    # Enums
    "UserRole",
    "DonationApprovalStatus",
    "DonationStatus",
    "ApplicationStatus",
    "MatchStatus",
    "OPEN_APPLICATION_STATUSES",
    "ACTIVE_MATCH_STATUSES",
    "REVIEWED_MATCH_STATUSES",
]
