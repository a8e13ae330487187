# backend/coursepay/services/__init__.py
"""
Service layer: business logic on top of the repositories.
"""

from .balance_service import BalanceService
from .base import BaseService
from .notification_service import NotificationService
from .payment_service import PaymentService
from .settlement_service import SettlementOutcome, SettlementResult, SettlementService
from .webhook_ledger_service import WebhookLedgerService
from .withdrawal_service import WithdrawalOutcome, WithdrawalService

__all__ = [
    "BalanceService",
    "BaseService",
    "NotificationService",
    "PaymentService",
    "SettlementOutcome",
    "SettlementResult",
    "SettlementService",
    "WebhookLedgerService",
    "WithdrawalOutcome",
    "WithdrawalService",
]
