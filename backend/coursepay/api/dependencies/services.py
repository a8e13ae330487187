# backend/coursepay/api/dependencies/services.py
"""
Service layer dependencies.

The payment gateway client is built once in the application lifespan and
kept on ``app.state``; services receive it through these providers so tests
can swap it with ``app.dependency_overrides``.
"""

from typing import Optional

from fastapi import Depends, Request
from sqlalchemy.orm import Session

from ...integrations.chapa_client import ChapaClient
from ...services.balance_service import BalanceService
from ...services.notification_service import NotificationService
from ...services.payment_service import PaymentService
from ...services.settlement_service import SettlementService
from ...services.webhook_ledger_service import WebhookLedgerService
from ...services.withdrawal_service import WithdrawalService
from .database import get_db


def get_gateway_client(request: Request) -> Optional[ChapaClient]:
    return getattr(request.app.state, "gateway_client", None)


def get_notification_service(request: Request) -> NotificationService:
    notifier = getattr(request.app.state, "notification_service", None)
    return notifier if notifier is not None else NotificationService()


def get_settlement_service(
    db: Session = Depends(get_db),
    notifier: NotificationService = Depends(get_notification_service),
) -> SettlementService:
    return SettlementService(db, notifier=notifier)


def get_payment_service(
    db: Session = Depends(get_db),
    gateway: Optional[ChapaClient] = Depends(get_gateway_client),
    settlement_service: SettlementService = Depends(get_settlement_service),
) -> PaymentService:
    return PaymentService(db, gateway, settlement_service)


def get_webhook_ledger_service(db: Session = Depends(get_db)) -> WebhookLedgerService:
    return WebhookLedgerService(db)


def get_balance_service(db: Session = Depends(get_db)) -> BalanceService:
    return BalanceService(db)


def get_withdrawal_service(
    db: Session = Depends(get_db),
    gateway: Optional[ChapaClient] = Depends(get_gateway_client),
    balance_service: BalanceService = Depends(get_balance_service),
) -> WithdrawalService:
    return WithdrawalService(db, gateway, balance_service)
