from decimal import Decimal
import random

import pytest

from coursepay.domain.revenue_split import compute_revenue_split, quantize_money

pytestmark = pytest.mark.unit


@pytest.mark.parametrize(
    "amount, ratio, instructor, platform",
    [
        ("1000", "0.80", "800.00", "200.00"),
        ("999.99", "0.80", "799.99", "200.00"),
        ("0.01", "0.80", "0.01", "0.00"),
        ("333.33", "0.70", "233.33", "100.00"),
        ("10.05", "0.50", "5.03", "5.02"),
    ],
)
def test_split_known_amounts(amount, ratio, instructor, platform):
    split = compute_revenue_split(Decimal(amount), Decimal(ratio))

    assert split.instructor_share == Decimal(instructor)
    assert split.platform_share == Decimal(platform)
    assert split.amount_paid == quantize_money(amount)


def test_split_shares_always_sum_to_amount():
    rng = random.Random(20240601)
    ratio = Decimal("0.80")
    for _ in range(500):
        amount = Decimal(rng.randint(1, 10_000_000)) / Decimal(100)
        split = compute_revenue_split(amount, ratio)

        assert split.instructor_share + split.platform_share == amount
        assert split.instructor_share == quantize_money(amount * ratio)
        assert split.platform_share >= 0


def test_split_rejects_negative_amount():
    with pytest.raises(ValueError):
        compute_revenue_split(Decimal("-1"), Decimal("0.80"))


@pytest.mark.parametrize("ratio", ["0", "1", "1.5", "-0.2"])
def test_split_rejects_ratio_outside_open_interval(ratio):
    with pytest.raises(ValueError):
        compute_revenue_split(Decimal("100"), Decimal(ratio))


def test_quantize_rounds_half_up():
    assert quantize_money("2.345") == Decimal("2.35")
    assert quantize_money(7) == Decimal("7.00")
