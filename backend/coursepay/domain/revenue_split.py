"""Pure revenue split arithmetic for settled payments."""

from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal

CENT = Decimal("0.01")


def quantize_money(value: Decimal | int | str) -> Decimal:
    """Round to cents, half-up, the way receipts and balances are displayed."""
    return Decimal(str(value)).quantize(CENT, rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class RevenueSplit:
    amount_paid: Decimal
    instructor_share: Decimal
    platform_share: Decimal


def compute_revenue_split(amount: Decimal | int | str, ratio: Decimal) -> RevenueSplit:
    """
    Split ``amount`` between instructor and platform.

    The instructor share is rounded; the platform keeps the remainder so the
    two shares always add back to the amount paid exactly.
    """
    amount_paid = quantize_money(amount)
    if amount_paid < 0:
        raise ValueError("amount must not be negative")
    if not Decimal("0") < ratio < Decimal("1"):
        raise ValueError("ratio must be strictly between 0 and 1")
    instructor_share = quantize_money(amount_paid * ratio)
    return RevenueSplit(
        amount_paid=amount_paid,
        instructor_share=instructor_share,
        platform_share=amount_paid - instructor_share,
    )
