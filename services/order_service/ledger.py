"""
Ledger Calculator: commission / seller payout split for an order total.

Pure functions over Decimal. The seller amount is always derived by
subtraction so that ``commission + seller_amount == total`` holds exactly.
"""
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

from .errors import InvalidRateError

CENT = Decimal("0.01")
HUNDRED = Decimal("100")


def to_money(value) -> Decimal:
    """Quantises a number to cents. Floats go through str() to avoid binary noise."""
    if isinstance(value, float):
        value = str(value)
    return Decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class LedgerSplit:
    total: Decimal
    commission_rate: Decimal
    commission: Decimal
    seller_amount: Decimal


@dataclass(frozen=True)
class SettlementEstimate:
    """Pre-settlement figure shown to sellers. The released split is authoritative."""
    total: Decimal
    commission_rate: Decimal
    commission: Decimal
    seller_amount: Decimal
    is_estimate: bool = True


def _validate_rate(commission_rate_percent) -> Decimal:
    try:
        rate = Decimal(str(commission_rate_percent))
    except (InvalidOperation, ValueError, TypeError):
        raise InvalidRateError(f"Commission rate {commission_rate_percent!r} is not a number")
    if not rate.is_finite() or rate < 0 or rate > HUNDRED:
        raise InvalidRateError(f"Commission rate {commission_rate_percent} is outside [0, 100]")
    # Same precision as orders.commission_rate, so the applied rate is the stored one
    return rate.quantize(CENT, rounding=ROUND_HALF_UP)


def split(total_amount, commission_rate_percent) -> LedgerSplit:
    rate = _validate_rate(commission_rate_percent)
    total = to_money(total_amount)
    if total < 0:
        raise ValueError(f"Order total cannot be negative: {total}")

    commission = (total * rate / HUNDRED).quantize(CENT, rounding=ROUND_HALF_UP)
    return LedgerSplit(
        total=total,
        commission_rate=rate,
        commission=commission,
        seller_amount=total - commission,
    )


def estimate(total_amount, commission_rate_percent) -> SettlementEstimate:
    s = split(total_amount, commission_rate_percent)
    return SettlementEstimate(
        total=s.total,
        commission_rate=s.commission_rate,
        commission=s.commission,
        seller_amount=s.seller_amount,
    )
