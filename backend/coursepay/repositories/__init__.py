# backend/coursepay/repositories/__init__.py
"""
Repository layer.

Each repository wraps one model; services compose them and own commits.
"""

from .base_repository import BaseRepository
from .course_repository import CourseRepository
from .enrollment_repository import EnrollmentRepository
from .payment_repository import PaymentRepository, TransactionRepository
from .user_repository import UserRepository
from .webhook_event_repository import WebhookEventRepository
from .withdrawal_repository import WithdrawalRepository

__all__ = [
    "BaseRepository",
    "CourseRepository",
    "EnrollmentRepository",
    "PaymentRepository",
    "TransactionRepository",
    "UserRepository",
    "WebhookEventRepository",
    "WithdrawalRepository",
]
