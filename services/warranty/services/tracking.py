"""
Claim Read Models
=================

Query-side views over claims and contracts:
- public tracking by claim id, without internal identifiers
- open claims with overdue flags
- claim history and latest claim per contract
- the customer portal (member, contracts, claims)

Claim views fill `imei`, `serial_number` and `color` from the contract's
device when the claim does not carry them.

Version: 0.1.0
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from services.warranty.errors import NotFoundError, ValidationError
from services.warranty.models import Claim, ClaimState, DeviceInfo, Member, WarrantyContract
from services.warranty.repository.base import (
    ClaimQuery,
    SearchFilter,
    WarrantyQuery,
    WarrantyRepository,
)
from services.warranty.services.coverage import compute_limits
from services.warranty.services.workflow import DEFAULT_OVERDUE_DAYS, overdue_status
from shared.logging import get_logger
from shared.models.common import utcnow


logger = get_logger(__name__)


@dataclass
class ClaimView:
    """A claim with device details backfilled from its contract."""

    claim: Claim
    device: DeviceInfo | None = None

    def as_dict(self) -> dict[str, Any]:
        data = self.claim.model_dump(mode="json")
        if self.device is not None:
            if data.get("imei") is None:
                data["imei"] = self.device.imei
            if data.get("serial_number") is None:
                data["serial_number"] = self.device.serial
            if data.get("color") is None:
                data["color"] = self.device.color
        return data


@dataclass
class CustomerPortal:
    """Everything a member may see about their own contracts."""

    member: Member
    warranties: list[dict[str, Any]]
    claims: list[dict[str, Any]]


class ClaimTracker:
    """Read-only views over claims."""

    def __init__(
        self,
        repository: WarrantyRepository,
        overdue_after_days: int = DEFAULT_OVERDUE_DAYS,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.repository = repository
        self.overdue_after_days = overdue_after_days
        self.clock = clock

    async def track(self, claim_id: str) -> dict[str, Any]:
        """Public progress of a claim by its SML id."""
        claim = await self.repository.find_claim_by_claim_id(claim_id)
        if claim is None:
            raise NotFoundError("Claim", claim_id)

        coverage_limit: float = 0
        remaining_balance: float = 0
        contract = await self.repository.get_warranty(claim.warranty_id)
        if contract is not None:
            siblings = await self.repository.list_claims(ClaimQuery(warranty_ids=[contract.id]))
            limits = compute_limits(contract, [c.total_cost for c in siblings])
            coverage_limit = limits.current_limit
            remaining_balance = limits.remaining_limit

        updates = sorted(claim.updates, key=lambda u: u.date, reverse=True)
        return {
            "claim_id": claim.claim_id,
            "device_model": claim.device_model,
            "symptoms": claim.symptoms,
            "status": claim.status,
            "total_cost": claim.total_cost,
            "coverage_limit": coverage_limit,
            "remaining_balance": remaining_balance,
            "updates": [u.model_dump(mode="json") for u in updates],
            "timestamp": self.clock().isoformat(),
        }

    async def pending(self, search: SearchFilter | None = None) -> list[dict[str, Any]]:
        """Open claims, newest first, flagged when overdue."""
        claims = await self.repository.list_claims(
            ClaimQuery(filter=search or SearchFilter(), status=ClaimState.AWAITING_INTAKE.value)
        )
        now = self.clock()
        views = await self._views(claims)
        result = []
        for view in views:
            status = overdue_status(view.claim, now, self.overdue_after_days)
            data = view.as_dict()
            data["is_overdue"] = status.is_overdue
            data["days_overdue"] = status.days_overdue
            result.append(data)
        return result

    async def list_all(self, search: SearchFilter | None = None) -> list[ClaimView]:
        claims = await self.repository.list_claims(ClaimQuery(filter=search or SearchFilter()))
        return await self._views(claims)

    async def history(self, warranty_id: str) -> list[ClaimView]:
        claims = await self.repository.list_claims(ClaimQuery(warranty_ids=[warranty_id]))
        return await self._views(claims)

    async def latest(self, warranty_id: str) -> ClaimView:
        """Most recently created claim on a contract, for receipt printing."""
        views = await self.history(warranty_id)
        if not views:
            raise NotFoundError("Claim for warranty", warranty_id)
        return views[0]

    async def get(self, claim_pk: str) -> ClaimView:
        claim = await self.repository.get_claim(claim_pk)
        if claim is None:
            raise NotFoundError("Claim", claim_pk)
        views = await self._views([claim])
        return views[0]

    async def customer_portal(self, citizen_id: str, member_id: str) -> CustomerPortal:
        """
        Member self-service view, gated on citizen id and member id
        matching the same member record.
        """
        if not citizen_id or not member_id:
            raise ValidationError("citizen_id and member_id are required")

        member = await self.repository.find_member_by_credentials(citizen_id, member_id)
        if member is None:
            logger.info("customer_portal_lookup_failed", member_id=member_id)
            raise NotFoundError("Member", member_id)

        contracts = await self.repository.list_warranties(WarrantyQuery(member_id=member.member_id))
        ids = [c.id for c in contracts]
        claims = (
            await self.repository.list_claims(ClaimQuery(warranty_ids=ids, sort_by="claim_date"))
            if ids
            else []
        )

        totals: dict[str, float] = {}
        for claim in claims:
            totals[claim.warranty_id] = totals.get(claim.warranty_id, 0) + claim.total_cost

        warranties = []
        for contract in contracts:
            data = contract.model_dump(mode="json")
            data["total_claim_amount"] = totals.get(contract.id, 0)
            warranties.append(data)

        devices = {c.id: c.device for c in contracts}
        claim_views = []
        for claim in claims:
            data = ClaimView(claim, devices.get(claim.warranty_id)).as_dict()
            device = devices.get(claim.warranty_id)
            if device is not None and device.model:
                data["device_model"] = device.model
            claim_views.append(data)

        return CustomerPortal(member=member, warranties=warranties, claims=claim_views)

    async def _views(self, claims: list[Claim]) -> list[ClaimView]:
        devices: dict[str, DeviceInfo | None] = {}
        for warranty_id in {c.warranty_id for c in claims}:
            contract: WarrantyContract | None = await self.repository.get_warranty(warranty_id)
            devices[warranty_id] = contract.device if contract else None
        return [ClaimView(claim, devices.get(claim.warranty_id)) for claim in claims]
