"""
Claim Workflow
==============

State machine for a single repair claim.

States:
- awaiting intake ("รอเคลม"): initial; accepts progress updates
- device received ("รับเครื่องแล้ว"): terminal; set by completion

Transitions:
- open: approved, unexpired contract -> new claim; contract claim status
  becomes pending
- add update: appends step len(updates) + 2 and adds its cost; a cost
  needs at least one evidence image
- complete: records the return method, appends a zero-cost closing step,
  stamps the pickup date and puts the contract claim status back to normal

Every mutation of one claim runs under that claim's lock, so concurrent
updates cannot lose a cost increment. Cost changes trigger the coverage
reconciler; every transition fires a claim-updated event.

Version: 0.1.0
"""

from __future__ import annotations

import math
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timedelta

from services.warranty.errors import (
    BusinessRuleError,
    DuplicateKeyError,
    NotFoundError,
    ValidationError,
)
from services.warranty.models import (
    Claim,
    ClaimState,
    ClaimUpdate,
    ContractClaimStatus,
    DeliveryAddressType,
    ReturnMethod,
)
from services.warranty.notifications import Events, NotificationDispatcher
from services.warranty.repository.base import WarrantyRepository
from services.warranty.services.identifiers import generate_claim_id, insert_unique
from services.warranty.services.ledger import WarrantyLedger
from services.warranty.services.locks import KeyedLock
from services.warranty.services.reconciler import CoverageReconciler
from shared.logging import get_logger
from shared.models.common import utcnow


logger = get_logger(__name__)

COMPLETION_TITLE = "ปิดงานเคลม: "
PICKUP_SUMMARY = "ลูกค้ามารับเครื่องที่สาขา {branch}"
DELIVERY_SUMMARY = "จัดส่งเรียบร้อยแล้ว"

DEFAULT_OVERDUE_DAYS = 5


@dataclass
class ProgressUpdate:
    """A repair progress event as reported by staff."""

    title: str = ""
    cost: float = 0
    center_name: str = ""
    center_location: str = ""
    center_phone: str = ""
    technician_name: str = ""
    technician_phone: str = ""
    images: list[str] = field(default_factory=list)
    evidence_images: list[str] = field(default_factory=list)


@dataclass
class ClaimCompletion:
    """How the repaired device went back to the customer."""

    return_method: ReturnMethod
    pickup_branch: str = ""
    delivery_address_type: DeliveryAddressType | None = None
    delivery_address_detail: str = ""
    images: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class OverdueStatus:
    """Whether an open claim has gone quiet for too long."""

    is_overdue: bool
    days_overdue: int
    days_since_update: int


def overdue_status(
    claim: Claim,
    now: datetime,
    threshold_days: int = DEFAULT_OVERDUE_DAYS,
) -> OverdueStatus:
    """
    Whole days since the claim's last update (or intake), and whether
    that reaches the overdue threshold. Only open claims can be overdue.
    """
    elapsed = now - claim.last_activity
    days = max(0, math.floor(elapsed / timedelta(days=1)))
    is_overdue = claim.is_open and days >= threshold_days
    return OverdueStatus(
        is_overdue=is_overdue,
        days_overdue=days if is_overdue else 0,
        days_since_update=days,
    )


def completion_title(completion: ClaimCompletion) -> str:
    if completion.return_method == ReturnMethod.PICKUP:
        return COMPLETION_TITLE + PICKUP_SUMMARY.format(branch=completion.pickup_branch or "")
    return COMPLETION_TITLE + DELIVERY_SUMMARY


class ClaimWorkflow:
    """Runs claims through intake, progress updates and completion."""

    def __init__(
        self,
        repository: WarrantyRepository,
        ledger: WarrantyLedger,
        reconciler: CoverageReconciler,
        notifier: NotificationDispatcher,
        id_attempts: int = 10,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.repository = repository
        self.ledger = ledger
        self.reconciler = reconciler
        self.notifier = notifier
        self.id_attempts = id_attempts
        self.clock = clock
        self._locks = KeyedLock()

    # =========================================================================
    # Transitions
    # =========================================================================

    async def open_claim(self, claim: Claim) -> Claim:
        """
        File a new claim against an approved, unexpired contract.

        Intake snapshot fields left blank are filled from the contract.

        Raises:
            NotFoundError: No such contract
            BusinessRuleError: Contract not approved or expired
            IdentifierExhaustedError: No free claim id was found
        """
        contract = await self.ledger.require_claimable(claim.warranty_id)
        now = self.clock()

        is_pickup = claim.return_method == ReturnMethod.PICKUP
        is_delivery = claim.return_method == ReturnMethod.DELIVERY

        base = claim.model_copy(update={
            "policy_number": claim.policy_number or contract.policy_number,
            "member_id": claim.member_id or contract.member_id,
            "customer_name": claim.customer_name or contract.customer.full_name,
            "customer_phone": claim.customer_phone or contract.customer.phone,
            "device_model": claim.device_model or contract.device.model,
            "claim_shop_name": claim.claim_shop_name.strip(),
            "pickup_branch": claim.pickup_branch if is_pickup else "",
            "delivery_address_type": claim.delivery_address_type if is_delivery else None,
            "delivery_address_detail": claim.delivery_address_detail if is_delivery else "",
            "status": ClaimState.AWAITING_INTAKE.value,
            "total_cost": 0.0,
            "updates": [],
            "claim_date": now,
            "created_at": now,
            "updated_at": now,
        })

        async def insert(claim_id: str) -> Claim:
            return await self.repository.insert_claim(base.model_copy(update={"claim_id": claim_id}))

        try:
            saved = await insert_unique(
                insert,
                generate_claim_id,
                key_field="claim_id",
                attempts=self.id_attempts,
            )
        except DuplicateKeyError as e:
            raise ValidationError(f"Duplicate value for {e.field}") from e

        await self._mark_contract(contract.id, ContractClaimStatus.PENDING, now)

        logger.info(
            "claim_opened",
            claim_id=saved.claim_id,
            claim_pk=saved.id,
            warranty_id=contract.id,
        )
        self._announce(saved)
        return saved

    async def add_update(self, claim_pk: str, update: ProgressUpdate) -> Claim:
        """
        Append a progress step and add its cost to the claim total.

        Raises:
            NotFoundError: No such claim
            ValidationError: Negative cost
            BusinessRuleError: Cost without evidence, or claim already closed
        """
        if update.cost < 0:
            raise ValidationError("cost must not be negative")

        async with self._locks.hold(claim_pk):
            claim = await self._require(claim_pk)
            if not claim.is_open:
                raise BusinessRuleError(f"Claim {claim.claim_id} is already closed")
            if update.cost > 0 and not update.evidence_images:
                raise BusinessRuleError("An update with a cost needs at least one evidence image")

            now = self.clock()
            step = ClaimUpdate(
                step=claim.next_step,
                title=update.title,
                date=now,
                cost=update.cost,
                center_name=update.center_name.strip(),
                center_location=update.center_location.strip(),
                center_phone=update.center_phone.strip(),
                technician_name=update.technician_name.strip(),
                technician_phone=update.technician_phone.strip(),
                images=list(update.images),
                evidence_images=list(update.evidence_images),
            )
            saved = await self._replace(claim.model_copy(update={
                "updates": [*claim.updates, step],
                "total_cost": claim.total_cost + update.cost,
                "updated_at": now,
            }))

        logger.info(
            "claim_update_added",
            claim_id=saved.claim_id,
            step=step.step,
            cost=update.cost,
            total_cost=saved.total_cost,
        )

        await self.reconciler.reconcile(saved.warranty_id)
        self._announce(saved)
        return saved

    async def complete(self, claim_pk: str, completion: ClaimCompletion) -> Claim:
        """
        Close a claim once the device has gone back to the customer.

        Raises:
            NotFoundError: No such claim
            BusinessRuleError: Claim already closed
        """
        async with self._locks.hold(claim_pk):
            claim = await self._require(claim_pk)
            if not claim.is_open:
                raise BusinessRuleError(f"Claim {claim.claim_id} is already closed")

            now = self.clock()
            changes: dict[str, object] = {
                "completed_return_method": completion.return_method,
                "status": ClaimState.DEVICE_RECEIVED.value,
                "pickup_date": now,
                "updated_at": now,
            }
            if completion.return_method == ReturnMethod.PICKUP:
                changes["completed_return_branch"] = completion.pickup_branch
            else:
                changes["completed_delivery_address_type"] = completion.delivery_address_type
                changes["completed_delivery_address_detail"] = completion.delivery_address_detail

            closing = ClaimUpdate(
                step=claim.next_step,
                title=completion_title(completion),
                date=now,
                cost=0,
                images=list(completion.images),
            )
            changes["updates"] = [*claim.updates, closing]

            # Revalidate so enum fields are stored the same way as on intake
            data = claim.model_dump()
            data.update(changes)
            saved = await self._replace(Claim.model_validate(data))

        await self._mark_contract(saved.warranty_id, ContractClaimStatus.NORMAL, now)

        logger.info(
            "claim_completed",
            claim_id=saved.claim_id,
            return_method=saved.completed_return_method,
        )
        self._announce(saved)
        return saved

    async def save_signatures(
        self,
        claim_pk: str,
        customer_signature: str | None,
        staff_signature: str | None,
        manager_signature: str | None,
    ) -> Claim:
        async with self._locks.hold(claim_pk):
            saved = await self.repository.update_claim(
                claim_pk,
                {
                    "customer_signature": customer_signature,
                    "staff_signature": staff_signature,
                    "manager_signature": manager_signature,
                    "updated_at": self.clock(),
                },
            )
        if saved is None:
            raise NotFoundError("Claim", claim_pk)
        logger.info("claim_signatures_saved", claim_id=saved.claim_id)
        return saved

    # =========================================================================
    # Internal
    # =========================================================================

    async def _mark_contract(
        self,
        warranty_id: str,
        status: ContractClaimStatus,
        now: datetime,
    ) -> None:
        """
        Set the contract's claim status. Best-effort: the claim itself is
        already persisted, so failures are logged and not raised.
        """
        try:
            updated = await self.repository.update_warranty(
                warranty_id,
                {"claim_status": status.value, "updated_at": now},
            )
        except Exception as e:
            logger.error(
                "contract_claim_status_failed",
                warranty_id=warranty_id,
                claim_status=status.value,
                error=str(e),
                error_type=type(e).__name__,
            )
            return

        if updated is None:
            logger.warning(
                "contract_claim_status_missing_contract",
                warranty_id=warranty_id,
                claim_status=status.value,
            )

    def _announce(self, claim: Claim) -> None:
        self.notifier.fire(
            Events.CLAIM_UPDATED,
            {"claimId": claim.claim_id, "id": claim.id, "warrantyId": claim.warranty_id},
        )

    async def _require(self, claim_pk: str) -> Claim:
        claim = await self.repository.get_claim(claim_pk)
        if claim is None:
            raise NotFoundError("Claim", claim_pk)
        return claim

    async def _replace(self, claim: Claim) -> Claim:
        saved = await self.repository.replace_claim(claim)
        if saved is None:
            raise NotFoundError("Claim", claim.id)
        return saved
