"""
In-Memory Repository
====================

Dictionary-backed storage for development and tests. Documents are kept
as plain dicts and copied on the way in and out, so callers always see a
persist-and-reload round trip, and uniqueness is enforced per collection
the way MongoDB's unique indexes enforce it.

Version: 0.1.0
"""

from __future__ import annotations

import copy
import re
from collections.abc import Callable, Iterable
from datetime import datetime
from typing import Any

from services.warranty.errors import DuplicateKeyError
from services.warranty.models import Claim, Member, Shop, Staff, WarrantyContract
from services.warranty.repository.base import (
    CLAIM_SEARCH_FIELDS,
    MEMBER_SEARCH_FIELDS,
    WARRANTY_SEARCH_FIELDS,
    ClaimQuery,
    SearchFilter,
    WarrantyQuery,
)
from shared.models.common import as_utc


def get_path(doc: dict[str, Any], path: str) -> Any:
    """Read a dotted path from a nested dict."""
    value: Any = doc
    for part in path.split("."):
        if not isinstance(value, dict):
            return None
        value = value.get(part)
    return value


def set_path(doc: dict[str, Any], path: str, value: Any) -> None:
    """Write a dotted path into a nested dict."""
    parts = path.split(".")
    target = doc
    for part in parts[:-1]:
        target = target.setdefault(part, {})
    target[parts[-1]] = value


def matches_text(doc: dict[str, Any], fields: Iterable[str], text: str) -> bool:
    pattern = re.compile(re.escape(text), re.IGNORECASE)
    for path in fields:
        value = get_path(doc, path)
        if value is not None and pattern.search(str(value)):
            return True
    return False


def matches_filter(doc: dict[str, Any], flt: SearchFilter, fields: Iterable[str], date_field: str) -> bool:
    if flt.search and not matches_text(doc, fields, flt.search):
        return False
    start, end = flt.range_start, flt.range_end
    if start is not None or end is not None:
        stamp = get_path(doc, date_field)
        if stamp is None:
            return False
        stamp = as_utc(stamp)
        if start is not None and stamp < start:
            return False
        if end is not None and stamp > end:
            return False
    return True


class _Collection:
    """A dict of documents with unique-field enforcement."""

    def __init__(self, unique_fields: tuple[str, ...]) -> None:
        self.unique_fields = unique_fields
        self.docs: dict[str, dict[str, Any]] = {}

    def _check_unique(self, doc: dict[str, Any], exclude_id: str | None) -> None:
        for path in self.unique_fields:
            value = get_path(doc, path)
            if value is None:
                continue
            for other_id, other in self.docs.items():
                if other_id != exclude_id and get_path(other, path) == value:
                    raise DuplicateKeyError(path, value)

    def insert(self, doc: dict[str, Any]) -> dict[str, Any]:
        if doc["_id"] in self.docs:
            raise DuplicateKeyError("_id", doc["_id"])
        self._check_unique(doc, exclude_id=None)
        self.docs[doc["_id"]] = copy.deepcopy(doc)
        return copy.deepcopy(doc)

    def get(self, doc_id: str) -> dict[str, Any] | None:
        doc = self.docs.get(doc_id)
        return copy.deepcopy(doc) if doc is not None else None

    def find(self, predicate: Callable[[dict[str, Any]], bool]) -> list[dict[str, Any]]:
        return [copy.deepcopy(d) for d in self.docs.values() if predicate(d)]

    def update(self, doc_id: str, changes: dict[str, Any]) -> dict[str, Any] | None:
        current = self.docs.get(doc_id)
        if current is None:
            return None
        updated = copy.deepcopy(current)
        for path, value in changes.items():
            set_path(updated, path, copy.deepcopy(value))
        self._check_unique(updated, exclude_id=doc_id)
        self.docs[doc_id] = updated
        return copy.deepcopy(updated)

    def replace(self, doc: dict[str, Any]) -> dict[str, Any] | None:
        if doc["_id"] not in self.docs:
            return None
        self._check_unique(doc, exclude_id=doc["_id"])
        self.docs[doc["_id"]] = copy.deepcopy(doc)
        return copy.deepcopy(doc)

    def delete(self, doc_id: str) -> bool:
        return self.docs.pop(doc_id, None) is not None


def _newest_first(docs: list[dict[str, Any]], field: str = "created_at") -> list[dict[str, Any]]:
    return sorted(docs, key=lambda d: as_utc(get_path(d, field) or datetime.min), reverse=True)


class InMemoryRepository:
    """`WarrantyRepository` backed by process memory."""

    def __init__(self) -> None:
        self.warranties = _Collection(("policy_number", "device.serial"))
        self.claims = _Collection(("claim_id",))
        self.members = _Collection(("member_id", "phone", "citizen_id"))
        self.shops = _Collection(("shop_id",))
        self.staff = _Collection(("staff_id", "username"))

    # =========================================================================
    # Contracts
    # =========================================================================

    async def insert_warranty(self, contract: WarrantyContract) -> WarrantyContract:
        return WarrantyContract.from_document(self.warranties.insert(contract.to_document()))

    async def get_warranty(self, warranty_id: str) -> WarrantyContract | None:
        doc = self.warranties.get(warranty_id)
        return WarrantyContract.from_document(doc) if doc else None

    async def find_warranty_by_device(
        self,
        field_name: str,
        value: str,
        exclude_id: str | None = None,
    ) -> WarrantyContract | None:
        path = f"device.{field_name}"
        found = self.warranties.find(
            lambda d: d["_id"] != exclude_id and get_path(d, path) == value
        )
        return WarrantyContract.from_document(found[0]) if found else None

    async def update_warranty(
        self,
        warranty_id: str,
        changes: dict[str, Any],
    ) -> WarrantyContract | None:
        doc = self.warranties.update(warranty_id, changes)
        return WarrantyContract.from_document(doc) if doc else None

    async def delete_warranty(self, warranty_id: str) -> bool:
        return self.warranties.delete(warranty_id)

    async def list_warranties(self, query: WarrantyQuery) -> list[WarrantyContract]:
        def predicate(doc: dict[str, Any]) -> bool:
            if query.approval_status and doc.get("approval_status") != query.approval_status:
                return False
            if query.claim_status and doc.get("claim_status") != query.claim_status:
                return False
            if query.member_id and doc.get("member_id") != query.member_id:
                return False
            if query.expired is not None:
                end = get_path(doc, "warranty_dates.end")
                if query.now is None:
                    return False
                is_expired = end is not None and as_utc(end) < query.now
                if is_expired != query.expired:
                    return False
            return matches_filter(doc, query.filter, WARRANTY_SEARCH_FIELDS, "created_at")

        docs = _newest_first(self.warranties.find(predicate))
        return [WarrantyContract.from_document(d) for d in docs]

    async def count_warranties(self, approval_status: str | None = None) -> int:
        return len(self.warranties.find(
            lambda d: approval_status is None or d.get("approval_status") == approval_status
        ))

    # =========================================================================
    # Claims
    # =========================================================================

    async def insert_claim(self, claim: Claim) -> Claim:
        return Claim.from_document(self.claims.insert(claim.to_document()))

    async def get_claim(self, claim_pk: str) -> Claim | None:
        doc = self.claims.get(claim_pk)
        return Claim.from_document(doc) if doc else None

    async def find_claim_by_claim_id(self, claim_id: str) -> Claim | None:
        found = self.claims.find(lambda d: d.get("claim_id") == claim_id)
        return Claim.from_document(found[0]) if found else None

    async def replace_claim(self, claim: Claim) -> Claim | None:
        doc = self.claims.replace(claim.to_document())
        return Claim.from_document(doc) if doc else None

    async def update_claim(self, claim_pk: str, changes: dict[str, Any]) -> Claim | None:
        doc = self.claims.update(claim_pk, changes)
        return Claim.from_document(doc) if doc else None

    async def list_claims(self, query: ClaimQuery) -> list[Claim]:
        def predicate(doc: dict[str, Any]) -> bool:
            if query.status and doc.get("status") != query.status:
                return False
            if query.warranty_ids is not None and doc.get("warranty_id") not in query.warranty_ids:
                return False
            return matches_filter(doc, query.filter, CLAIM_SEARCH_FIELDS, "claim_date")

        docs = _newest_first(self.claims.find(predicate), query.sort_by)
        return [Claim.from_document(d) for d in docs]

    async def sum_claim_costs(self, warranty_id: str) -> float:
        return float(sum(
            d.get("total_cost") or 0
            for d in self.claims.find(lambda d: d.get("warranty_id") == warranty_id)
        ))

    # =========================================================================
    # Members
    # =========================================================================

    async def insert_member(self, member: Member) -> Member:
        return Member.from_document(self.members.insert(member.to_document()))

    async def get_member(self, member_pk: str) -> Member | None:
        doc = self.members.get(member_pk)
        return Member.from_document(doc) if doc else None

    async def find_member(
        self,
        field_name: str,
        value: str,
        exclude_id: str | None = None,
    ) -> Member | None:
        found = self.members.find(
            lambda d: d["_id"] != exclude_id and d.get(field_name) == value
        )
        return Member.from_document(found[0]) if found else None

    async def find_member_by_credentials(self, citizen_id: str, member_id: str) -> Member | None:
        found = self.members.find(
            lambda d: d.get("citizen_id") == citizen_id and d.get("member_id") == member_id
        )
        return Member.from_document(found[0]) if found else None

    async def update_member(self, member_pk: str, changes: dict[str, Any]) -> Member | None:
        doc = self.members.update(member_pk, changes)
        return Member.from_document(doc) if doc else None

    async def delete_member(self, member_pk: str) -> bool:
        return self.members.delete(member_pk)

    async def list_members(self) -> list[Member]:
        return [Member.from_document(d) for d in _newest_first(self.members.find(lambda d: True))]

    async def search_members(self, text: str, limit: int = 10) -> list[Member]:
        found = self.members.find(lambda d: matches_text(d, MEMBER_SEARCH_FIELDS, text))
        return [Member.from_document(d) for d in found[:limit]]

    # =========================================================================
    # Shops
    # =========================================================================

    async def insert_shop(self, shop: Shop) -> Shop:
        return Shop.from_document(self.shops.insert(shop.to_document()))

    async def list_shops(self) -> list[Shop]:
        return [Shop.from_document(d) for d in _newest_first(self.shops.find(lambda d: True))]

    async def update_shop(self, shop_pk: str, changes: dict[str, Any]) -> Shop | None:
        doc = self.shops.update(shop_pk, changes)
        return Shop.from_document(doc) if doc else None

    async def delete_shop(self, shop_pk: str) -> bool:
        return self.shops.delete(shop_pk)

    # =========================================================================
    # Staff
    # =========================================================================

    async def insert_staff(self, staff: Staff) -> Staff:
        return Staff.from_document(self.staff.insert(staff.to_document()))

    async def find_staff(
        self,
        field_name: str,
        value: str,
        exclude_id: str | None = None,
    ) -> Staff | None:
        found = self.staff.find(
            lambda d: d["_id"] != exclude_id and d.get(field_name) == value
        )
        return Staff.from_document(found[0]) if found else None

    async def list_staff(self) -> list[Staff]:
        return [Staff.from_document(d) for d in _newest_first(self.staff.find(lambda d: True))]

    async def update_staff(self, staff_pk: str, changes: dict[str, Any]) -> Staff | None:
        doc = self.staff.update(staff_pk, changes)
        return Staff.from_document(doc) if doc else None

    async def delete_staff(self, staff_pk: str) -> bool:
        return self.staff.delete(staff_pk)
