# backend/coursepay/api/dependencies/__init__.py
"""
FastAPI dependency providers.
"""

from .auth import get_current_instructor, get_current_student, get_current_user
from .database import get_db
from .services import (
    get_balance_service,
    get_gateway_client,
    get_payment_service,
    get_settlement_service,
    get_webhook_ledger_service,
    get_withdrawal_service,
)

__all__ = [
    "get_balance_service",
    "get_current_instructor",
    "get_current_student",
    "get_current_user",
    "get_db",
    "get_gateway_client",
    "get_payment_service",
    "get_settlement_service",
    "get_webhook_ledger_service",
    "get_withdrawal_service",
]
