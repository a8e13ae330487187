"""Shared status vocabularies for payments, transactions and withdrawals."""

from __future__ import annotations

from enum import Enum


class PaymentStatus(str, Enum):
    PENDING = "pending"
    SUCCESS = "success"
    FAILED = "failed"


class WithdrawalStatus(str, Enum):
    PENDING = "pending"
    SUCCESS = "success"
    FAILED = "failed"


class UserRole(str, Enum):
    STUDENT = "student"
    INSTRUCTOR = "instructor"
    ADMIN = "admin"


TRANSACTION_STATUS_COMPLETED = "completed"

# Withdrawals that still hold funds against the instructor balance.
# A pending payout has an unknown outcome, so its amount stays reserved.
BALANCE_RESERVING_WITHDRAWAL_STATUSES = (
    WithdrawalStatus.PENDING.value,
    WithdrawalStatus.SUCCESS.value,
)
