"""
Warranty Services
=================

Business logic for contracts, claims and reference records.

Services:
- WarrantyLedger: registration, payments, approval gate, enriched listings
- ClaimWorkflow: claim intake, progress updates, completion
- CoverageReconciler: keeps used coverage equal to claim costs
- ClaimTracker: read models over claims and the customer portal
- MemberRegistry / ShopRegistry / StaffRegistry: reference records

Version: 0.1.0
"""

from services.warranty.services.coverage import CoverageLimits, compute_limits
from services.warranty.services.ledger import (
    DashboardStatus,
    PaymentRecord,
    WarrantyLedger,
    WarrantyView,
)
from services.warranty.services.reconciler import CoverageReconciler
from services.warranty.services.registry import MemberRegistry, ShopRegistry, StaffRegistry
from services.warranty.services.tracking import ClaimTracker, ClaimView, CustomerPortal
from services.warranty.services.workflow import (
    ClaimCompletion,
    ClaimWorkflow,
    OverdueStatus,
    ProgressUpdate,
    overdue_status,
)


__all__ = [
    # Coverage
    "CoverageLimits",
    "compute_limits",
    "CoverageReconciler",
    # Ledger
    "DashboardStatus",
    "PaymentRecord",
    "WarrantyLedger",
    "WarrantyView",
    # Claims
    "ClaimCompletion",
    "ClaimWorkflow",
    "OverdueStatus",
    "ProgressUpdate",
    "overdue_status",
    "ClaimTracker",
    "ClaimView",
    "CustomerPortal",
    # Reference
    "MemberRegistry",
    "ShopRegistry",
    "StaffRegistry",
]
