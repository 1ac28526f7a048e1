"""
Repository Protocol
===================

Storage capability consumed by the warranty core: point lookups, natural
key lookups, filtered listings, an aggregate of claim costs per contract
and atomic single-document update-with-return.

Inserts must enforce uniqueness and raise `DuplicateKeyError` naming the
offending field; identifier generation relies on that.

Version: 0.1.0
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, date, datetime, time
from typing import Any, Protocol

from services.warranty.models import Claim, Member, Shop, Staff, WarrantyContract


# Fields matched by free-text search, in document paths
WARRANTY_SEARCH_FIELDS = (
    "customer.first_name",
    "customer.last_name",
    "customer.phone",
    "policy_number",
    "member_id",
    "device.imei",
    "device.serial",
)

CLAIM_SEARCH_FIELDS = (
    "customer_name",
    "customer_phone",
    "claim_id",
    "policy_number",
    "imei",
    "device_model",
)

MEMBER_SEARCH_FIELDS = (
    "phone",
    "member_id",
    "citizen_id",
    "first_name",
    "last_name",
)


@dataclass
class SearchFilter:
    """Free-text search plus an inclusive date range."""

    search: str | None = None
    start_date: date | None = None
    end_date: date | None = None

    @property
    def range_start(self) -> datetime | None:
        if self.start_date is None:
            return None
        return datetime.combine(self.start_date, time.min, tzinfo=UTC)

    @property
    def range_end(self) -> datetime | None:
        if self.end_date is None:
            return None
        return datetime.combine(self.end_date, time.max, tzinfo=UTC)


@dataclass
class WarrantyQuery:
    """Listing criteria for contracts; `expired` needs `now`."""

    filter: SearchFilter = field(default_factory=SearchFilter)
    approval_status: str | None = None
    claim_status: str | None = None
    member_id: str | None = None
    expired: bool | None = None
    now: datetime | None = None


@dataclass
class ClaimQuery:
    """Listing criteria for claims."""

    filter: SearchFilter = field(default_factory=SearchFilter)
    status: str | None = None
    warranty_ids: list[str] | None = None
    sort_by: str = "created_at"


class WarrantyRepository(Protocol):
    """Protocol for warranty, claim and reference-record storage."""

    # Contracts
    async def insert_warranty(self, contract: WarrantyContract) -> WarrantyContract: ...

    async def get_warranty(self, warranty_id: str) -> WarrantyContract | None: ...

    async def find_warranty_by_device(
        self,
        field_name: str,
        value: str,
        exclude_id: str | None = None,
    ) -> WarrantyContract | None: ...

    async def update_warranty(
        self,
        warranty_id: str,
        changes: dict[str, Any],
    ) -> WarrantyContract | None: ...

    async def delete_warranty(self, warranty_id: str) -> bool: ...

    async def list_warranties(self, query: WarrantyQuery) -> list[WarrantyContract]: ...

    async def count_warranties(self, approval_status: str | None = None) -> int: ...

    # Claims
    async def insert_claim(self, claim: Claim) -> Claim: ...

    async def get_claim(self, claim_pk: str) -> Claim | None: ...

    async def find_claim_by_claim_id(self, claim_id: str) -> Claim | None: ...

    async def replace_claim(self, claim: Claim) -> Claim | None: ...

    async def update_claim(self, claim_pk: str, changes: dict[str, Any]) -> Claim | None: ...

    async def list_claims(self, query: ClaimQuery) -> list[Claim]: ...

    async def sum_claim_costs(self, warranty_id: str) -> float: ...

    # Members
    async def insert_member(self, member: Member) -> Member: ...

    async def get_member(self, member_pk: str) -> Member | None: ...

    async def find_member(
        self,
        field_name: str,
        value: str,
        exclude_id: str | None = None,
    ) -> Member | None: ...

    async def find_member_by_credentials(self, citizen_id: str, member_id: str) -> Member | None: ...

    async def update_member(self, member_pk: str, changes: dict[str, Any]) -> Member | None: ...

    async def delete_member(self, member_pk: str) -> bool: ...

    async def list_members(self) -> list[Member]: ...

    async def search_members(self, text: str, limit: int = 10) -> list[Member]: ...

    # Shops
    async def insert_shop(self, shop: Shop) -> Shop: ...

    async def list_shops(self) -> list[Shop]: ...

    async def update_shop(self, shop_pk: str, changes: dict[str, Any]) -> Shop | None: ...

    async def delete_shop(self, shop_pk: str) -> bool: ...

    # Staff
    async def insert_staff(self, staff: Staff) -> Staff: ...

    async def find_staff(
        self,
        field_name: str,
        value: str,
        exclude_id: str | None = None,
    ) -> Staff | None: ...

    async def list_staff(self) -> list[Staff]: ...

    async def update_staff(self, staff_pk: str, changes: dict[str, Any]) -> Staff | None: ...

    async def delete_staff(self, staff_pk: str) -> bool: ...
