# backend/coursepay/routes/v1/withdrawals.py
"""
Instructor balance, earnings and withdrawal routes.
"""

from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status

from ...api.dependencies.auth import get_current_instructor
from ...api.dependencies.services import get_balance_service, get_withdrawal_service
from ...core.exceptions import DomainException
from ...domain.date_range import DateRange
from ...models.user import User
from ...schemas.withdrawal_schemas import (
    BalanceResponse,
    EarningsResponse,
    WithdrawalHistoryResponse,
    WithdrawalRequest,
    WithdrawalRequestResponse,
    WithdrawalResponse,
)
from ...services.balance_service import BalanceService
from ...services.withdrawal_service import WithdrawalService

router = APIRouter(prefix="/withdrawals", tags=["withdrawals"])


@router.get("/balance", response_model=BalanceResponse)
def get_balance(
    range_param: str = Query(
        default="all", alias="range", description="all | 7d | 30d | 90d | 1y"
    ),
    current_user: User = Depends(get_current_instructor),
    balance_service: BalanceService = Depends(get_balance_service),
) -> BalanceResponse:
    try:
        date_range = DateRange.from_range_param(range_param)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))
    try:
        balance = balance_service.compute_balance(current_user.id, date_range)
    except DomainException as exc:
        raise exc.to_http_exception()
    return BalanceResponse(balance=balance, range=range_param.strip().lower() or "all")


@router.post("/request", response_model=WithdrawalRequestResponse)
def request_withdrawal(
    payload: WithdrawalRequest,
    current_user: User = Depends(get_current_instructor),
    withdrawal_service: WithdrawalService = Depends(get_withdrawal_service),
) -> WithdrawalRequestResponse:
    """Withdraw part of the available balance to a bank account."""
    try:
        outcome = withdrawal_service.request_withdrawal(
            current_user.id, payload.amount, payload.payout_details
        )
    except DomainException as exc:
        raise exc.to_http_exception()
    return WithdrawalRequestResponse(
        withdrawal=WithdrawalResponse.model_validate(outcome.withdrawal),
        remaining_balance=outcome.remaining_balance,
    )


@router.get("/history", response_model=WithdrawalHistoryResponse)
def get_withdrawal_history(
    current_user: User = Depends(get_current_instructor),
    withdrawal_service: WithdrawalService = Depends(get_withdrawal_service),
) -> WithdrawalHistoryResponse:
    withdrawals = withdrawal_service.list_history(current_user.id)
    return WithdrawalHistoryResponse(
        withdrawals=[WithdrawalResponse.model_validate(w) for w in withdrawals]
    )


@router.get("/earnings", response_model=EarningsResponse)
def get_earnings(
    start_date: Optional[date] = Query(default=None),
    end_date: Optional[date] = Query(default=None),
    current_user: User = Depends(get_current_instructor),
    balance_service: BalanceService = Depends(get_balance_service),
) -> EarningsResponse:
    """Earnings totals and per-course revenue, optionally limited to a date window."""
    try:
        date_range = DateRange.from_dates(start_date, end_date)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))
    return balance_service.earnings_summary(current_user.id, date_range)
