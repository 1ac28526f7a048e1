"""
MongoDB Repository
==================

`WarrantyRepository` on Motor. Uniqueness is delegated to the unique
indexes created by `MongoDBClient.create_indexes`; index violations come
back as the domain `DuplicateKeyError` naming the indexed field.

Version: 0.1.0
"""

from __future__ import annotations

import re
from collections.abc import Iterable
from typing import Any

from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import DESCENDING, ReturnDocument
from pymongo.errors import DuplicateKeyError as MongoDuplicateKeyError

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
from shared.logging import get_logger


logger = get_logger(__name__)


def _duplicate_field(error: MongoDuplicateKeyError) -> str:
    details = error.details or {}
    key_pattern = details.get("keyPattern") or {}
    if key_pattern:
        return next(iter(key_pattern))
    return "_id"


def _text_clause(fields: Iterable[str], text: str) -> dict[str, Any]:
    regex = {"$regex": re.escape(text), "$options": "i"}
    return {"$or": [{f: regex} for f in fields]}


def _filter_match(
    flt: SearchFilter,
    fields: Iterable[str],
    date_field: str,
    base: dict[str, Any] | None = None,
) -> dict[str, Any]:
    """Merge search and date-range filters into a base match."""
    match = dict(base or {})
    if flt.search:
        match.update(_text_clause(fields, flt.search))
    date_range: dict[str, Any] = {}
    if flt.range_start is not None:
        date_range["$gte"] = flt.range_start
    if flt.range_end is not None:
        date_range["$lte"] = flt.range_end
    if date_range:
        match[date_field] = date_range
    return match


class MongoRepository:
    """Warranty, claim and reference storage in MongoDB."""

    def __init__(self, db: AsyncIOMotorDatabase) -> None:  # type: ignore[type-arg]
        self.db = db

    async def _insert(self, collection: str, doc: dict[str, Any]) -> dict[str, Any]:
        try:
            await self.db[collection].insert_one(doc)
        except MongoDuplicateKeyError as e:
            field = _duplicate_field(e)
            logger.debug("mongodb_duplicate_key", collection=collection, field=field)
            raise DuplicateKeyError(field) from e
        return doc

    async def _update(
        self,
        collection: str,
        doc_id: str,
        changes: dict[str, Any],
    ) -> dict[str, Any] | None:
        try:
            return await self.db[collection].find_one_and_update(
                {"_id": doc_id},
                {"$set": changes},
                return_document=ReturnDocument.AFTER,
            )
        except MongoDuplicateKeyError as e:
            raise DuplicateKeyError(_duplicate_field(e)) from e

    async def _replace(self, collection: str, doc: dict[str, Any]) -> dict[str, Any] | None:
        try:
            return await self.db[collection].find_one_and_replace(
                {"_id": doc["_id"]},
                doc,
                return_document=ReturnDocument.AFTER,
            )
        except MongoDuplicateKeyError as e:
            raise DuplicateKeyError(_duplicate_field(e)) from e

    async def _find(
        self,
        collection: str,
        match: dict[str, Any],
        sort_field: str = "created_at",
        limit: int = 0,
    ) -> list[dict[str, Any]]:
        cursor = self.db[collection].find(match).sort(sort_field, DESCENDING)
        if limit:
            cursor = cursor.limit(limit)
        return [doc async for doc in cursor]

    async def _delete(self, collection: str, doc_id: str) -> bool:
        result = await self.db[collection].delete_one({"_id": doc_id})
        return result.deleted_count > 0

    # =========================================================================
    # Contracts
    # =========================================================================

    async def insert_warranty(self, contract: WarrantyContract) -> WarrantyContract:
        await self._insert("warranties", contract.to_document())
        return contract

    async def get_warranty(self, warranty_id: str) -> WarrantyContract | None:
        doc = await self.db.warranties.find_one({"_id": warranty_id})
        return WarrantyContract.from_document(doc) if doc else None

    async def find_warranty_by_device(
        self,
        field_name: str,
        value: str,
        exclude_id: str | None = None,
    ) -> WarrantyContract | None:
        match: dict[str, Any] = {f"device.{field_name}": value}
        if exclude_id:
            match["_id"] = {"$ne": exclude_id}
        doc = await self.db.warranties.find_one(match)
        return WarrantyContract.from_document(doc) if doc else None

    async def update_warranty(
        self,
        warranty_id: str,
        changes: dict[str, Any],
    ) -> WarrantyContract | None:
        doc = await self._update("warranties", warranty_id, changes)
        return WarrantyContract.from_document(doc) if doc else None

    async def delete_warranty(self, warranty_id: str) -> bool:
        return await self._delete("warranties", warranty_id)

    async def list_warranties(self, query: WarrantyQuery) -> list[WarrantyContract]:
        base: dict[str, Any] = {}
        if query.approval_status:
            base["approval_status"] = query.approval_status
        if query.claim_status:
            base["claim_status"] = query.claim_status
        if query.member_id:
            base["member_id"] = query.member_id
        if query.expired is not None and query.now is not None:
            # A contract without an end date never expires
            ended = {"$lt": query.now}
            base["warranty_dates.end"] = ended if query.expired else {"$not": ended}
        match = _filter_match(query.filter, WARRANTY_SEARCH_FIELDS, "created_at", base)
        docs = await self._find("warranties", match)
        return [WarrantyContract.from_document(d) for d in docs]

    async def count_warranties(self, approval_status: str | None = None) -> int:
        match = {"approval_status": approval_status} if approval_status else {}
        return await self.db.warranties.count_documents(match)

    # =========================================================================
    # Claims
    # =========================================================================

    async def insert_claim(self, claim: Claim) -> Claim:
        await self._insert("claims", claim.to_document())
        return claim

    async def get_claim(self, claim_pk: str) -> Claim | None:
        doc = await self.db.claims.find_one({"_id": claim_pk})
        return Claim.from_document(doc) if doc else None

    async def find_claim_by_claim_id(self, claim_id: str) -> Claim | None:
        doc = await self.db.claims.find_one({"claim_id": claim_id})
        return Claim.from_document(doc) if doc else None

    async def replace_claim(self, claim: Claim) -> Claim | None:
        doc = await self._replace("claims", claim.to_document())
        return Claim.from_document(doc) if doc else None

    async def update_claim(self, claim_pk: str, changes: dict[str, Any]) -> Claim | None:
        doc = await self._update("claims", claim_pk, changes)
        return Claim.from_document(doc) if doc else None

    async def list_claims(self, query: ClaimQuery) -> list[Claim]:
        base: dict[str, Any] = {}
        if query.status:
            base["status"] = query.status
        if query.warranty_ids is not None:
            base["warranty_id"] = {"$in": query.warranty_ids}
        match = _filter_match(query.filter, CLAIM_SEARCH_FIELDS, "claim_date", base)
        docs = await self._find("claims", match, sort_field=query.sort_by)
        return [Claim.from_document(d) for d in docs]

    async def sum_claim_costs(self, warranty_id: str) -> float:
        pipeline = [
            {"$match": {"warranty_id": warranty_id}},
            {
                "$group": {
                    "_id": "$warranty_id",
                    "total_used": {"$sum": {"$ifNull": ["$total_cost", 0]}},
                }
            },
        ]
        rows = await self.db.claims.aggregate(pipeline).to_list(length=1)
        return float(rows[0]["total_used"]) if rows else 0.0

    # =========================================================================
    # Members
    # =========================================================================

    async def insert_member(self, member: Member) -> Member:
        await self._insert("members", member.to_document())
        return member

    async def get_member(self, member_pk: str) -> Member | None:
        doc = await self.db.members.find_one({"_id": member_pk})
        return Member.from_document(doc) if doc else None

    async def find_member(
        self,
        field_name: str,
        value: str,
        exclude_id: str | None = None,
    ) -> Member | None:
        match: dict[str, Any] = {field_name: value}
        if exclude_id:
            match["_id"] = {"$ne": exclude_id}
        doc = await self.db.members.find_one(match)
        return Member.from_document(doc) if doc else None

    async def find_member_by_credentials(self, citizen_id: str, member_id: str) -> Member | None:
        doc = await self.db.members.find_one({"citizen_id": citizen_id, "member_id": member_id})
        return Member.from_document(doc) if doc else None

    async def update_member(self, member_pk: str, changes: dict[str, Any]) -> Member | None:
        doc = await self._update("members", member_pk, changes)
        return Member.from_document(doc) if doc else None

    async def delete_member(self, member_pk: str) -> bool:
        return await self._delete("members", member_pk)

    async def list_members(self) -> list[Member]:
        return [Member.from_document(d) for d in await self._find("members", {})]

    async def search_members(self, text: str, limit: int = 10) -> list[Member]:
        docs = await self._find("members", _text_clause(MEMBER_SEARCH_FIELDS, text), limit=limit)
        return [Member.from_document(d) for d in docs]

    # =========================================================================
    # Shops
    # =========================================================================

    async def insert_shop(self, shop: Shop) -> Shop:
        await self._insert("shops", shop.to_document())
        return shop

    async def list_shops(self) -> list[Shop]:
        return [Shop.from_document(d) for d in await self._find("shops", {})]

    async def update_shop(self, shop_pk: str, changes: dict[str, Any]) -> Shop | None:
        doc = await self._update("shops", shop_pk, changes)
        return Shop.from_document(doc) if doc else None

    async def delete_shop(self, shop_pk: str) -> bool:
        return await self._delete("shops", shop_pk)

    # =========================================================================
    # Staff
    # =========================================================================

    async def insert_staff(self, staff: Staff) -> Staff:
        await self._insert("staff", staff.to_document())
        return staff

    async def find_staff(
        self,
        field_name: str,
        value: str,
        exclude_id: str | None = None,
    ) -> Staff | None:
        match: dict[str, Any] = {field_name: value}
        if exclude_id:
            match["_id"] = {"$ne": exclude_id}
        doc = await self.db.staff.find_one(match)
        return Staff.from_document(doc) if doc else None

    async def list_staff(self) -> list[Staff]:
        return [Staff.from_document(d) for d in await self._find("staff", {})]

    async def update_staff(self, staff_pk: str, changes: dict[str, Any]) -> Staff | None:
        doc = await self._update("staff", staff_pk, changes)
        return Staff.from_document(doc) if doc else None

    async def delete_staff(self, staff_pk: str) -> bool:
        return await self._delete("staff", staff_pk)
