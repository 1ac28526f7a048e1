"""
Warranty Ledger
===============

Owns a contract's financial state and its approval gate: registration,
partial updates, payment recording, approve/reject, and every listing of
contracts enriched with derived coverage limits.

`installments_paid` is recomputed from the payment schedule before every
persist; input never sets it.

Version: 0.1.0
"""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any

from services.warranty.errors import (
    BusinessRuleError,
    DuplicateKeyError,
    NotFoundError,
    ValidationError,
)
from services.warranty.models import (
    ApprovalStatus,
    ContractClaimStatus,
    Member,
    PaymentStatus,
    WarrantyContract,
)
from services.warranty.notifications import Events, NotificationDispatcher
from services.warranty.repository.base import (
    ClaimQuery,
    SearchFilter,
    WarrantyQuery,
    WarrantyRepository,
)
from services.warranty.services.coverage import (
    CoverageLimits,
    compute_limits,
    derive_installments_paid,
)
from services.warranty.services.identifiers import generate_policy_number, insert_unique
from services.warranty.services.locks import KeyedLock
from shared.logging import get_logger
from shared.models.common import utcnow


logger = get_logger(__name__)

# Fields a caller may never set through a partial update
PROTECTED_FIELDS = frozenset({
    "id",
    "member_id",
    "policy_number",
    "installments_paid",
    "used_coverage",
    "approval_status",
    "approver",
    "approval_date",
    "reject_reason",
    "reject_by",
    "reject_date",
    "claim_status",
    "created_at",
    "updated_at",
})

DEVICE_LOOKUP_FIELDS = ("serial", "imei")


class DashboardStatus(str, Enum):
    """Status filters offered by the warranty dashboard."""

    ALL = "all"
    ACTIVE = "active"
    EXPIRED = "expired"
    APPROVAL_PENDING = "approval_pending"
    APPROVAL_APPROVED = "approval_approved"
    APPROVAL_REJECTED = "approval_rejected"
    CLAIM_PENDING = "claim_pending"
    CLAIM_COMPLETED = "claim_completed"


@dataclass
class PaymentRecord:
    """A payment event against a contract."""

    installment_no: int | None = None
    pay_all_remaining: bool = False
    paid_cash: float | None = None
    paid_transfer: float | None = None
    ref_id: str | None = None


@dataclass
class WarrantyView:
    """A contract with its derived limits, claim total and member details."""

    contract: WarrantyContract
    limits: CoverageLimits
    total_claim_amount: float
    member: Member | None = None

    def as_dict(self) -> dict[str, Any]:
        data = self.contract.model_dump(mode="json")
        data["device_price"] = self.limits.device_price
        data.update(self.limits.as_dict())
        data["total_claim_amount"] = self.total_claim_amount

        customer = data.setdefault("customer", {})
        customer["id"] = self.contract.member_id
        if self.member is not None:
            customer["citizen_id"] = self.member.citizen_id
            customer["facebook"] = self.member.facebook
            customer["id_card_address"] = self.member.id_card_address
            customer["shipping_address"] = self.member.shipping_address
        return data


def _apply_dashboard_status(query: WarrantyQuery, status: DashboardStatus) -> None:
    if status == DashboardStatus.ACTIVE:
        query.approval_status = ApprovalStatus.APPROVED.value
        query.claim_status = ContractClaimStatus.NORMAL.value
        query.expired = False
    elif status == DashboardStatus.EXPIRED:
        query.expired = True
    elif status == DashboardStatus.APPROVAL_PENDING:
        query.approval_status = ApprovalStatus.PENDING.value
    elif status == DashboardStatus.APPROVAL_APPROVED:
        query.approval_status = ApprovalStatus.APPROVED.value
    elif status == DashboardStatus.APPROVAL_REJECTED:
        query.approval_status = ApprovalStatus.REJECTED.value
    elif status == DashboardStatus.CLAIM_PENDING:
        query.claim_status = ContractClaimStatus.PENDING.value
    elif status == DashboardStatus.CLAIM_COMPLETED:
        query.claim_status = ContractClaimStatus.COMPLETED.value


class WarrantyLedger:
    """
    Contract registration, payments, approval and enriched reads.

    Every read-modify-write of a contract runs under a per-contract lock
    and persists only the fields it changed.
    """

    def __init__(
        self,
        repository: WarrantyRepository,
        notifier: NotificationDispatcher,
        id_attempts: int = 10,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.repository = repository
        self.notifier = notifier
        self.id_attempts = id_attempts
        self.clock = clock
        self._locks = KeyedLock()

    # =========================================================================
    # Registration and updates
    # =========================================================================

    async def register(self, contract: WarrantyContract) -> WarrantyContract:
        """
        Register a new contract as pending approval.

        Raises:
            ValidationError: Missing member or an already registered serial
            IdentifierExhaustedError: No free policy number was found
        """
        if not contract.member_id.strip():
            raise ValidationError("member_id is required")

        serial = contract.device.serial
        if serial and await self.repository.find_warranty_by_device("serial", serial):
            raise ValidationError(f"Serial number {serial} is already registered")

        now = self.clock()
        base = contract.model_copy(update={
            "approval_status": ApprovalStatus.PENDING.value,
            "approver": None,
            "approval_date": None,
            "reject_reason": None,
            "reject_by": None,
            "reject_date": None,
            "claim_status": ContractClaimStatus.NORMAL.value,
            "installments_paid": derive_installments_paid(contract.payment),
            "used_coverage": 0.0,
            "created_at": now,
            "updated_at": now,
        })

        async def insert(policy_number: str) -> WarrantyContract:
            return await self.repository.insert_warranty(
                base.model_copy(update={"policy_number": policy_number})
            )

        try:
            saved = await insert_unique(
                insert,
                generate_policy_number,
                key_field="policy_number",
                attempts=self.id_attempts,
            )
        except DuplicateKeyError as e:
            raise ValidationError(f"Duplicate value for {e.field}") from e

        logger.info(
            "warranty_registered",
            warranty_id=saved.id,
            policy_number=saved.policy_number,
            member_id=saved.member_id,
        )

        self.notifier.fire(
            Events.APPROVAL_NEEDED,
            {
                "warrantyId": saved.id,
                "policyNumber": saved.policy_number,
                "customerName": saved.customer.full_name or "-",
            },
        )
        return saved

    async def update(self, warranty_id: str, changes: dict[str, Any]) -> WarrantyContract:
        """
        Apply a partial update. Identity, approval, claim and coverage
        fields are ignored; `installments_paid` is recomputed.
        """
        allowed = {k: v for k, v in changes.items() if k not in PROTECTED_FIELDS}
        ignored = sorted(set(changes) - set(allowed))
        if ignored:
            logger.debug("warranty_update_fields_ignored", warranty_id=warranty_id, fields=ignored)

        async with self._locks.hold(warranty_id):
            contract = await self._require(warranty_id)

            data = contract.model_dump()
            data.update(allowed)
            try:
                updated = WarrantyContract.model_validate(data)
            except ValueError as e:
                raise ValidationError(str(e)) from e

            serial = updated.device.serial
            if serial and serial != contract.device.serial:
                if await self.repository.find_warranty_by_device("serial", serial, exclude_id=warranty_id):
                    raise ValidationError(f"Serial number {serial} is already registered")

            updated = updated.model_copy(update={
                "installments_paid": derive_installments_paid(updated.payment),
                "updated_at": self.clock(),
            })
            saved = await self._write(updated, [*allowed, "installments_paid", "updated_at"])

        logger.info("warranty_updated", warranty_id=warranty_id, fields=sorted(allowed))
        return saved

    async def record_payment(self, warranty_id: str, record: PaymentRecord) -> WarrantyContract:
        """
        Record a payment in one of three modes.

        - `installment_no`: mark that installment paid; when all are paid
          the whole payment is marked paid
        - `pay_all_remaining`: mark the payment and every outstanding
          installment paid
        - neither: a one-shot full payment
        """
        async with self._locks.hold(warranty_id):
            contract = await self._require(warranty_id)
            payment = contract.payment.model_copy(deep=True)
            now = self.clock()
            paid = PaymentStatus.PAID.value

            if record.pay_all_remaining:
                payment.status = paid
                payment.paid_date = now
                payment.paid_cash = (payment.paid_cash or 0) + (record.paid_cash or 0)
                payment.paid_transfer = (payment.paid_transfer or 0) + (record.paid_transfer or 0)
                outstanding = [i for i in payment.schedule if i.status != paid]
                # Every outstanding installment gets the same amounts and ref
                for installment in outstanding:
                    installment.status = paid
                    installment.paid_date = now
                    installment.paid_cash = record.paid_cash
                    installment.paid_transfer = record.paid_transfer
                    installment.ref_id = record.ref_id
                if len(outstanding) > 1:
                    logger.warning(
                        "payment_amounts_copied_to_installments",
                        warranty_id=warranty_id,
                        installments=[i.installment_no for i in outstanding],
                    )
            elif record.installment_no:
                installment = next(
                    (i for i in payment.schedule if i.installment_no == record.installment_no),
                    None,
                )
                if installment is None:
                    raise ValidationError(f"Installment {record.installment_no} not in schedule")
                installment.status = paid
                installment.paid_date = now
                installment.paid_cash = record.paid_cash
                installment.paid_transfer = record.paid_transfer
                installment.ref_id = record.ref_id
                if all(i.status == paid for i in payment.schedule):
                    payment.status = paid
                    payment.paid_date = now
            else:
                payment.status = paid
                payment.paid_date = now
                payment.paid_cash = record.paid_cash
                payment.paid_transfer = record.paid_transfer
                payment.ref_id = record.ref_id

            updated = contract.model_copy(update={
                "payment": payment,
                "installments_paid": derive_installments_paid(payment),
                "updated_at": now,
            })
            saved = await self._write(updated, ["payment", "installments_paid", "updated_at"])

        logger.info(
            "warranty_payment_recorded",
            warranty_id=warranty_id,
            installment_no=record.installment_no,
            pay_all_remaining=record.pay_all_remaining,
            installments_paid=saved.installments_paid,
        )
        return saved

    async def delete(self, warranty_id: str) -> None:
        if not await self.repository.delete_warranty(warranty_id):
            raise NotFoundError("Warranty", warranty_id)
        logger.info("warranty_deleted", warranty_id=warranty_id)

    # =========================================================================
    # Approval gate
    # =========================================================================

    async def approve(self, warranty_id: str, approver: str) -> WarrantyContract:
        """Approve a pending contract. Decided contracts cannot be re-decided."""
        async with self._locks.hold(warranty_id):
            contract = await self._require_pending(warranty_id)
            now = self.clock()
            changes = {
                "approval_status": ApprovalStatus.APPROVED.value,
                "approver": approver,
                "approval_date": now,
                "updated_at": now,
            }
            saved = await self._write(contract.model_copy(update=changes), changes)
        logger.info("warranty_approved", warranty_id=warranty_id, approver=approver)
        return saved

    async def reject(self, warranty_id: str, reason: str, reject_by: str) -> WarrantyContract:
        """Reject a pending contract with a reason."""
        async with self._locks.hold(warranty_id):
            contract = await self._require_pending(warranty_id)
            now = self.clock()
            changes = {
                "approval_status": ApprovalStatus.REJECTED.value,
                "reject_reason": reason,
                "reject_by": reject_by,
                "reject_date": now,
                "updated_at": now,
            }
            saved = await self._write(contract.model_copy(update=changes), changes)
        logger.info("warranty_rejected", warranty_id=warranty_id, reject_by=reject_by)
        return saved

    async def require_claimable(self, warranty_id: str) -> WarrantyContract:
        """
        Return the contract if claims may be filed against it.

        Raises:
            NotFoundError: No such contract
            BusinessRuleError: Not approved, or coverage has ended
        """
        contract = await self._require(warranty_id)
        if contract.approval_status != ApprovalStatus.APPROVED.value:
            raise BusinessRuleError(
                f"Warranty {warranty_id} is {contract.approval_status}, not approved"
            )
        if contract.is_expired(self.clock()):
            raise BusinessRuleError(f"Warranty {warranty_id} has expired")
        return contract

    # =========================================================================
    # Reads
    # =========================================================================

    async def get(self, warranty_id: str) -> WarrantyContract:
        return await self._require(warranty_id)

    async def get_view(self, warranty_id: str) -> WarrantyView:
        contract = await self._require(warranty_id)
        views = await self._views([contract])
        return views[0]

    async def list_views(
        self,
        search: SearchFilter | None = None,
        status: DashboardStatus = DashboardStatus.ALL,
    ) -> list[WarrantyView]:
        query = WarrantyQuery(filter=search or SearchFilter(), now=self.clock())
        _apply_dashboard_status(query, status)
        return await self._views(await self.repository.list_warranties(query))

    async def list_by_approval(
        self,
        search: SearchFilter | None = None,
        approval_status: str = ApprovalStatus.PENDING.value,
    ) -> list[WarrantyView]:
        """Contracts in one approval state; "all" lists every state."""
        if approval_status != DashboardStatus.ALL.value:
            try:
                approval_status = ApprovalStatus(approval_status).value
            except ValueError as e:
                raise ValidationError(f"Unknown approval status {approval_status}") from e
        query = WarrantyQuery(
            filter=search or SearchFilter(),
            approval_status=None if approval_status == DashboardStatus.ALL.value else approval_status,
        )
        return await self._views(await self.repository.list_warranties(query))

    async def pending_count(self) -> int:
        return await self.repository.count_warranties(ApprovalStatus.PENDING.value)

    async def list_active(self, search: SearchFilter | None = None) -> list[WarrantyView]:
        """Approved contracts whose coverage has not ended."""
        query = WarrantyQuery(
            filter=search or SearchFilter(),
            approval_status=ApprovalStatus.APPROVED.value,
            expired=False,
            now=self.clock(),
        )
        return await self._views(await self.repository.list_warranties(query))

    async def check_duplicate(
        self,
        field_name: str,
        value: str | None,
        exclude_id: str | None = None,
    ) -> bool:
        """Whether another contract already holds this serial or IMEI."""
        if not field_name or not value:
            return False
        if field_name not in DEVICE_LOOKUP_FIELDS:
            raise ValidationError(f"Invalid duplicate check type {field_name}")
        found = await self.repository.find_warranty_by_device(field_name, value, exclude_id)
        return found is not None

    async def claim_totals(self, warranty_ids: list[str]) -> dict[str, list[float]]:
        """Per-contract list of claim totals."""
        totals: dict[str, list[float]] = defaultdict(list)
        if not warranty_ids:
            return totals
        claims = await self.repository.list_claims(ClaimQuery(warranty_ids=warranty_ids))
        for claim in claims:
            totals[claim.warranty_id].append(claim.total_cost)
        return totals

    # =========================================================================
    # Internal
    # =========================================================================

    async def _views(self, contracts: list[WarrantyContract]) -> list[WarrantyView]:
        totals = await self.claim_totals([c.id for c in contracts])

        members: dict[str, Member | None] = {}
        for member_id in {c.member_id for c in contracts}:
            members[member_id] = await self.repository.find_member("member_id", member_id)

        views = []
        for contract in contracts:
            claim_totals = totals.get(contract.id, [])
            views.append(WarrantyView(
                contract=contract,
                limits=compute_limits(contract, claim_totals),
                total_claim_amount=float(sum(claim_totals)),
                member=members.get(contract.member_id),
            ))
        return views

    async def _require(self, warranty_id: str) -> WarrantyContract:
        contract = await self.repository.get_warranty(warranty_id)
        if contract is None:
            raise NotFoundError("Warranty", warranty_id)
        return contract

    async def _require_pending(self, warranty_id: str) -> WarrantyContract:
        contract = await self._require(warranty_id)
        if contract.approval_status != ApprovalStatus.PENDING.value:
            raise BusinessRuleError(
                f"Warranty {warranty_id} was already {contract.approval_status}"
            )
        return contract

    async def _write(self, contract: WarrantyContract, fields: Iterable[str]) -> WarrantyContract:
        """
        Persist only the named top-level fields of `contract`.

        `used_coverage` and `claim_status` belong to the claim side and are
        never written from here.
        """
        doc = contract.to_document()
        changes = {name: doc[name] for name in fields if name in doc}
        try:
            saved = await self.repository.update_warranty(contract.id, changes)
        except DuplicateKeyError as e:
            raise ValidationError(f"Duplicate value for {e.field}") from e
        if saved is None:
            raise NotFoundError("Warranty", contract.id)
        return saved
