# backend/miche/core/money.py
"""
Currency unit conversion for the booking and payment flow.

Prices are stored in major units (dollars) as Decimal. The payment processor
works in minor units (cents). All conversions go through this module so the
rounding rule is defined exactly once:

- major -> minor: multiply by 100, round half up.
- platform fee: percentage of the minor-unit total, rounded down.
"""

from dataclasses import dataclass
from decimal import ROUND_DOWN, ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Union

from .constants import MINOR_UNITS_PER_MAJOR

Amount = Union[Decimal, int, float, str]


def _as_decimal(value: Amount) -> Decimal:
    if isinstance(value, Decimal):
        return value
    try:
        # str() keeps floats like 50.1 from turning into 50.0999...
        return Decimal(str(value))
    except (InvalidOperation, ValueError) as exc:
        raise ValueError(f"Not a valid amount: {value!r}") from exc


def to_minor_units(amount: Amount) -> int:
    """Convert a major-unit amount to minor units (round half up)."""
    scaled = _as_decimal(amount) * MINOR_UNITS_PER_MAJOR
    return int(scaled.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def from_minor_units(amount_minor: int) -> Decimal:
    """Convert minor units back to a two-place major-unit Decimal."""
    return (Decimal(amount_minor) / MINOR_UNITS_PER_MAJOR).quantize(Decimal("0.01"))


def platform_fee_minor(total_minor: int, fee_percent: int) -> int:
    """Platform fee in minor units: ``fee_percent`` of the total, rounded down."""
    if total_minor < 0:
        raise ValueError("total_minor must be non-negative")
    fee = Decimal(total_minor) * Decimal(fee_percent) / Decimal(100)
    return int(fee.quantize(Decimal("1"), rounding=ROUND_DOWN))


@dataclass(frozen=True)
class SplitAmounts:
    """A single charge divided between the platform and the professional."""

    total_minor: int
    platform_fee_minor: int
    payout_minor: int


def split_payment(total: Amount, fee_percent: int) -> SplitAmounts:
    """Split a major-unit total into platform fee and professional payout."""
    total_minor = to_minor_units(total)
    fee = platform_fee_minor(total_minor, fee_percent)
    return SplitAmounts(
        total_minor=total_minor,
        platform_fee_minor=fee,
        payout_minor=total_minor - fee,
    )
