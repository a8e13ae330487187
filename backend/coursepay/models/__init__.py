# backend/coursepay/models/__init__.py
"""
Database models for the payment settlement backend.

Importing this package registers every table on ``Base.metadata``.
"""

from .course import Course
from .enrollment import Enrollment
from .payment import Payment, Transaction
from .user import User
from .webhook_event import WebhookEvent
from .withdrawal import Withdrawal

__all__ = [
    "Course",
    "Enrollment",
    "Payment",
    "Transaction",
    "User",
    "WebhookEvent",
    "Withdrawal",
]
