"""
Coverage Calculator
===================

Pure derivation of a contract's repair-coverage limits.

The limit accrues with payment progress:
- maxLimit is 70% of the device price
- 0 or 1 paid installments unlock 10% of maxLimit
- 2 paid installments unlock 30% of maxLimit
- 3 or more (or a one-shot payment) unlock all of it

Every product is floored on its own. `remaining_limit` is never clamped:
a negative value means the contract is over its limit.

Version: 0.1.0
"""

from __future__ import annotations

import math
from collections.abc import Iterable
from dataclasses import dataclass
from decimal import ROUND_FLOOR, Decimal, InvalidOperation
from typing import Any

from services.warranty.models.contract import PaymentInfo, PaymentStatus, WarrantyContract


MAX_LIMIT_RATIO = Decimal("0.70")
FULLY_PAID_INSTALLMENTS = 3

# (minimum installments paid, share of maxLimit), checked top to bottom
INSTALLMENT_TIERS: tuple[tuple[int, Decimal], ...] = (
    (3, Decimal("1.0")),
    (2, Decimal("0.30")),
    (0, Decimal("0.10")),
)


@dataclass(frozen=True)
class CoverageLimits:
    """Derived limits for one contract."""

    device_price: float
    installments_paid: int
    max_limit: int
    current_limit: int
    used_coverage: float
    remaining_limit: float

    def as_dict(self) -> dict[str, Any]:
        return {
            "max_limit": self.max_limit,
            "current_limit": self.current_limit,
            "used_coverage": self.used_coverage,
            "remaining_limit": self.remaining_limit,
            "installments_paid": self.installments_paid,
        }


def _to_decimal(value: Any) -> Decimal:
    """Money as Decimal; anything missing, non-numeric or non-finite is 0."""
    if value is None or isinstance(value, bool):
        return Decimal(0)
    try:
        result = Decimal(str(value))
    except (InvalidOperation, ValueError):
        return Decimal(0)
    if not result.is_finite():
        return Decimal(0)
    return result


def _floor(value: Decimal) -> int:
    return int(value.to_integral_value(rounding=ROUND_FLOOR))


def resolve_device_price(contract: WarrantyContract) -> float:
    """Contract price, falling back to the device's stated value."""
    price = contract.device_price
    if price is None:
        price = contract.device.device_value
    return float(_to_decimal(price))


def max_limit(device_price: Any) -> int:
    """floor(device_price * 0.70); a negative price counts as 0."""
    price = max(_to_decimal(device_price), Decimal(0))
    return _floor(price * MAX_LIMIT_RATIO)


def derive_installments_paid(payment: PaymentInfo | None) -> int:
    """
    Count paid installments, capped at 3.

    Anything other than an installment plan counts as fully paid.
    """
    if payment is None or not payment.is_installment:
        return FULLY_PAID_INSTALLMENTS
    paid = sum(1 for entry in payment.schedule if entry.status == PaymentStatus.PAID)
    return min(FULLY_PAID_INSTALLMENTS, max(0, paid))


def current_limit(max_limit_value: int, installments_paid: int) -> int:
    """Share of maxLimit unlocked by the installments paid so far."""
    ratio = INSTALLMENT_TIERS[-1][1]
    for threshold, tier_ratio in INSTALLMENT_TIERS:
        if installments_paid >= threshold:
            ratio = tier_ratio
            break
    return _floor(Decimal(max_limit_value) * ratio)


def remaining_limit(current_limit_value: int, used_coverage: float) -> float:
    """current_limit - used_coverage, unclamped."""
    result = Decimal(current_limit_value) - _to_decimal(used_coverage)
    return int(result) if result == result.to_integral_value() else float(result)


def resolve_used_coverage(
    tracked: float | None,
    claim_totals: Iterable[float] | None = None,
) -> float:
    """
    Used coverage recorded on the contract, or the sum of its claims' costs
    when the contract does not track it.
    """
    if tracked is not None and math.isfinite(tracked):
        return tracked
    return float(sum(_to_decimal(total) for total in (claim_totals or ())))


def compute_limits(
    contract: WarrantyContract,
    claim_totals: Iterable[float] | None = None,
) -> CoverageLimits:
    """
    Derive every limit for a contract from its stored fields.

    `installments_paid` comes from the payment schedule, never from the
    stored value, so a tampered document cannot raise its own limit.
    """
    price = resolve_device_price(contract)
    paid = derive_installments_paid(contract.payment)
    ceiling = max_limit(price)
    unlocked = current_limit(ceiling, paid)
    used = resolve_used_coverage(contract.used_coverage, claim_totals)
    return CoverageLimits(
        device_price=price,
        installments_paid=paid,
        max_limit=ceiling,
        current_limit=unlocked,
        used_coverage=used,
        remaining_limit=remaining_limit(unlocked, used),
    )
