from decimal import Decimal

import pytest
from hypothesis import given, strategies as st

from services.order_service import ledger
from services.order_service.errors import InvalidRateError

totals = st.decimals(min_value=0, max_value=Decimal("1000000"), places=2, allow_nan=False, allow_infinity=False)
rates = st.decimals(min_value=0, max_value=100, places=2, allow_nan=False, allow_infinity=False)


@given(total=totals, rate=rates)
def test_commission_plus_seller_amount_equals_total(total, rate):
    result = ledger.split(total, rate)
    assert result.commission + result.seller_amount == result.total == total
    assert Decimal(0) <= result.commission <= total


@given(total=totals, rate=st.integers(min_value=0, max_value=100))
def test_integer_rates_are_accepted(total, rate):
    result = ledger.split(total, rate)
    assert result.commission + result.seller_amount == total


def test_ten_percent_of_one_hundred():
    result = ledger.split(Decimal("100.00"), 10)
    assert result.commission == Decimal("10.00")
    assert result.seller_amount == Decimal("90.00")


def test_commission_rounds_half_up_to_the_cent():
    # 0.05 * 10% = 0.005 -> 0.01; the seller gets the remainder, not an independently rounded figure
    result = ledger.split(Decimal("0.05"), 10)
    assert result.commission == Decimal("0.01")
    assert result.seller_amount == Decimal("0.04")


def test_odd_total_keeps_every_cent():
    result = ledger.split(Decimal("33.33"), Decimal("12.5"))
    assert result.commission == Decimal("4.17")
    assert result.seller_amount == Decimal("29.16")


@pytest.mark.parametrize("rate, commission", [(0, "0.00"), (100, "59.99")])
def test_rate_bounds_are_inclusive(rate, commission):
    result = ledger.split(Decimal("59.99"), rate)
    assert result.commission == Decimal(commission)
    assert result.seller_amount == Decimal("59.99") - Decimal(commission)


@pytest.mark.parametrize("rate", [-1, Decimal("-0.01"), Decimal("100.01"), 250, "ten", None, "NaN", "Infinity"])
def test_out_of_range_or_non_numeric_rate_is_rejected(rate):
    with pytest.raises(InvalidRateError):
        ledger.split(Decimal("10.00"), rate)


def test_float_input_is_quantised_without_binary_noise():
    result = ledger.split(0.1 + 0.2, 50)
    assert result.total == Decimal("0.30")
    assert result.commission == Decimal("0.15")


def test_negative_total_is_rejected():
    with pytest.raises(ValueError):
        ledger.split(Decimal("-5.00"), 10)


def test_estimate_is_labelled_as_such():
    estimate = ledger.estimate(Decimal("80.00"), 10)
    assert estimate.is_estimate is True
    assert estimate.seller_amount == Decimal("72.00")


def test_rate_is_applied_at_stored_precision():
    result = ledger.split(Decimal("100.00"), "12.345")
    assert result.commission_rate == Decimal("12.35")
    assert result.commission == Decimal("12.35")
    assert result.seller_amount == Decimal("87.65")
