"""Schemas for instructor balance, earnings and withdrawals."""

from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import AliasChoices, ConfigDict, Field

from ._strict_base import StrictModel, StrictRequestModel


class PayoutDetails(StrictRequestModel):
    account_name: str = Field(
        ..., min_length=1, max_length=255, validation_alias=AliasChoices("account_name", "accountName")
    )
    account_number: str = Field(
        ...,
        min_length=1,
        max_length=64,
        validation_alias=AliasChoices("account_number", "accountNumber"),
    )
    bank_code: str = Field(
        ..., min_length=1, max_length=64, validation_alias=AliasChoices("bank_code", "bankCode")
    )
    bank_name: Optional[str] = Field(
        default=None, max_length=255, validation_alias=AliasChoices("bank_name", "bankName")
    )


class WithdrawalRequest(StrictRequestModel):
    # Positivity is a business rule enforced by the service.
    amount: Decimal = Field(..., max_digits=12, decimal_places=2)
    payout_details: PayoutDetails = Field(
        ..., validation_alias=AliasChoices("payout_details", "payoutDetails")
    )


class WithdrawalResponse(StrictModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    amount: Decimal
    status: str
    reference: str
    response_message: Optional[str] = None
    bank_name: Optional[str] = None
    account_number: Optional[str] = None
    created_at: datetime


class WithdrawalRequestResponse(StrictModel):
    withdrawal: WithdrawalResponse
    remaining_balance: Decimal


class WithdrawalHistoryResponse(StrictModel):
    withdrawals: List[WithdrawalResponse]


class BalanceResponse(StrictModel):
    balance: Decimal
    range: str = "all"


class EarningsSummary(StrictModel):
    total_instructor_earnings: Decimal
    total_platform_revenue: Decimal
    total_received: Decimal


class CourseRevenue(StrictModel):
    course_id: str
    course_title: str
    total_earnings: Decimal
    total_payments: int
    student_count: int


class EarningsResponse(StrictModel):
    summary: EarningsSummary
    per_course_revenue: List[CourseRevenue]
