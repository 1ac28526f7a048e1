"""
Coverage Reconciler
===================

Keeps a contract's `used_coverage` equal to the total cost of every claim
filed against it. Always a full recompute from the claim aggregate, so it
is safe to run any number of times in any order.

Version: 0.1.0
"""

from __future__ import annotations

from services.warranty.repository.base import WarrantyRepository
from shared.logging import get_logger
from shared.models.common import utcnow


logger = get_logger(__name__)


class CoverageReconciler:
    """Recomputes used coverage after claim cost mutations."""

    def __init__(self, repository: WarrantyRepository) -> None:
        self.repository = repository

    async def reconcile(self, warranty_id: str) -> float | None:
        """
        Recompute and persist used coverage for one contract.

        Failures are logged and swallowed; the claim mutation that
        triggered reconciliation has already been persisted.

        Returns:
            The new used coverage, or None when reconciliation failed
        """
        try:
            total = await self.repository.sum_claim_costs(warranty_id)
            updated = await self.repository.update_warranty(
                warranty_id,
                {"used_coverage": total, "updated_at": utcnow()},
            )
        except Exception as e:
            logger.error(
                "coverage_reconcile_failed",
                warranty_id=warranty_id,
                error=str(e),
                error_type=type(e).__name__,
            )
            return None

        if updated is None:
            logger.warning("coverage_reconcile_missing_contract", warranty_id=warranty_id)
            return None

        logger.info("coverage_reconciled", warranty_id=warranty_id, used_coverage=total)
        return total
