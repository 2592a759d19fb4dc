"""
Donation matching: candidate generation, admin allocation and approver review.

Only the error types and extension helpers are exported here; services are
imported from their modules so model and permission imports stay acyclic.
"""

from .errors import (
    Conflict,
    MatchingError,
    NotFound,
    PersistenceError,
    Unauthorized,
    UpstreamFailure,
    ValidationError,
)
from .extension import MATCHING_EXTENSION_KEY, get_dispatcher, get_ranker, init_matching, set_ranker

__all__ = [
    "MatchingError",
    "Unauthorized",
    "NotFound",
    "ValidationError",
    "Conflict",
    "UpstreamFailure",
    "PersistenceError",
    "MATCHING_EXTENSION_KEY",
    "init_matching",
    "get_ranker",
    "set_ranker",
    "get_dispatcher",
]
