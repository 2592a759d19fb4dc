"""
Notification events, transports and the best-effort dispatcher.
"""

from .dispatcher import NotificationDispatcher
from .events import (
    NotificationEvent,
    NotificationKind,
    allocation_event,
    donation_review_event,
    handover_events,
    rejection_event,
)
from .transports import LoggingTransport, NotificationTransport, SmtpTransport, build_transport

__all__ = [
    "NotificationDispatcher",
    "NotificationEvent",
    "NotificationKind",
    "NotificationTransport",
    "LoggingTransport",
    "SmtpTransport",
    "build_transport",
    "allocation_event",
    "handover_events",
    "rejection_event",
    "donation_review_event",
]
