"""Tests for the coverage-limit calculator."""

import pytest

from services.warranty.models import Installment, PaymentInfo, PaymentStatus
from services.warranty.services.coverage import (
    compute_limits,
    current_limit,
    derive_installments_paid,
    max_limit,
    remaining_limit,
    resolve_used_coverage,
)


def _schedule(paid: int, total: int = 3) -> PaymentInfo:
    return PaymentInfo(
        method="Installment",
        schedule=[
            Installment(
                installment_no=n,
                amount=1000,
                status=PaymentStatus.PAID if n <= paid else PaymentStatus.PENDING,
            )
            for n in range(1, total + 1)
        ],
    )


class TestMaxLimit:
    """Tests for the 70% ceiling."""

    def test_seventy_percent_floored(self) -> None:
        """Test maxLimit is floor(price * 0.70)."""
        assert max_limit(10000) == 7000
        assert max_limit(999) == 699
        assert max_limit(1) == 0

    def test_decimal_price_floors_exactly(self) -> None:
        """Test decimal prices do not pick up float error."""
        # 0.70 * 14285.71 = 9999.997
        assert max_limit(14285.71) == 9999
        assert max_limit("100.10") == 70

    @pytest.mark.parametrize("price", [None, "abc", float("nan"), float("inf"), -500, True])
    def test_invalid_price_is_zero(self, price: object) -> None:
        """Test missing, invalid and negative prices give a zero limit."""
        assert max_limit(price) == 0


class TestInstallmentsPaid:
    """Tests for deriving installments paid from the payment schedule."""

    def test_counts_paid_entries(self) -> None:
        assert derive_installments_paid(_schedule(0)) == 0
        assert derive_installments_paid(_schedule(1)) == 1
        assert derive_installments_paid(_schedule(2)) == 2

    def test_capped_at_three(self) -> None:
        """Test longer schedules never unlock more than full coverage."""
        assert derive_installments_paid(_schedule(6, total=6)) == 3

    def test_one_shot_payment_counts_as_fully_paid(self) -> None:
        assert derive_installments_paid(PaymentInfo(method="Cash")) == 3
        assert derive_installments_paid(PaymentInfo(method="Transfer")) == 3
        assert derive_installments_paid(None) == 3


class TestCurrentLimit:
    """Tests for the installment tiers."""

    @pytest.mark.parametrize(
        ("paid", "expected"),
        [(0, 700), (1, 700), (2, 2100), (3, 7000), (5, 7000)],
    )
    def test_tiers(self, paid: int, expected: int) -> None:
        assert current_limit(7000, paid) == expected

    def test_each_tier_floored(self) -> None:
        """Test 10% and 30% of an odd ceiling are floored."""
        assert current_limit(699, 1) == 69
        assert current_limit(699, 2) == 209

    @pytest.mark.parametrize("price", [0, 1, 333, 9999, 10000, 123456.78])
    def test_monotone_and_bounded(self, price: float) -> None:
        """Test the limit never drops as installments are paid and never exceeds maxLimit."""
        ceiling = max_limit(price)
        limits = [current_limit(ceiling, paid) for paid in range(0, 5)]
        assert limits == sorted(limits)
        assert all(limit <= ceiling for limit in limits)
        assert ceiling <= price


class TestRemainingLimit:
    """Tests for remaining coverage."""

    def test_subtracts_used(self) -> None:
        assert remaining_limit(2100, 500) == 1600

    def test_not_clamped(self) -> None:
        """Test an over-limit contract goes negative."""
        assert remaining_limit(700, 1000) == -300

    def test_fractional_used(self) -> None:
        assert remaining_limit(700, 100.5) == 599.5


class TestUsedCoverage:
    """Tests for the used coverage fallback."""

    def test_tracked_value_wins(self) -> None:
        assert resolve_used_coverage(250, [100, 200]) == 250

    def test_zero_is_tracked(self) -> None:
        assert resolve_used_coverage(0, [100, 200]) == 0

    def test_falls_back_to_claim_totals(self) -> None:
        assert resolve_used_coverage(None, [100, 200, 0]) == 300

    def test_no_claims(self) -> None:
        assert resolve_used_coverage(None) == 0


class TestComputeLimits:
    """Tests for deriving all limits from a contract."""

    def test_reference_example(self, contract_factory) -> None:
        """Test price 10000 with 2 installments paid and 500 used."""
        contract = contract_factory(payment=_schedule(2), used_coverage=500)

        limits = compute_limits(contract)

        assert limits.max_limit == 7000
        assert limits.current_limit == 2100
        assert limits.remaining_limit == 1600
        assert limits.installments_paid == 2

    def test_ignores_stored_installments(self, contract_factory) -> None:
        """Test a stored installments_paid cannot raise the limit."""
        contract = contract_factory(payment=_schedule(1), installments_paid=3)

        assert compute_limits(contract).current_limit == 700

    def test_device_value_fallback(self, contract_factory) -> None:
        """Test the device value is used when the contract has no price."""
        contract = contract_factory(device_price=None, payment=PaymentInfo(method="Cash"))
        contract.device.device_value = 5000

        assert compute_limits(contract).max_limit == 3500

    def test_used_coverage_from_claims(self, contract_factory) -> None:
        contract = contract_factory(payment=PaymentInfo(method="Cash"), used_coverage=None)

        limits = compute_limits(contract, [1000, 250])

        assert limits.used_coverage == 1250
        assert limits.remaining_limit == 5750

    def test_persist_reload_same_limits(self, contract_factory) -> None:
        """Test limits survive a document round trip."""
        from services.warranty.models import WarrantyContract

        contract = contract_factory(payment=_schedule(2), used_coverage=123.5)
        reloaded = WarrantyContract.from_document(contract.to_document())

        assert compute_limits(reloaded) == compute_limits(contract)
