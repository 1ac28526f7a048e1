"""
Reference Registry
==================

Members, shops and staff. The only rules are natural-key uniqueness,
input normalization and generated identifiers.

Member rules:
- phone is stored as digits only and must be exactly 10 digits
- postal code, when given, must be 5 digits
- phone and citizen id are unique across members

Version: 0.1.0
"""

from __future__ import annotations

import re
from collections.abc import Callable
from datetime import datetime
from typing import Any

from services.warranty.errors import DuplicateKeyError, NotFoundError, ValidationError
from services.warranty.models import Member, Shop, Staff, StaffRole
from services.warranty.repository.base import WarrantyRepository
from services.warranty.services.identifiers import (
    generate_member_id,
    generate_shop_id,
    generate_staff_id,
    insert_unique,
)
from shared.logging import get_logger
from shared.models.common import utcnow


logger = get_logger(__name__)

PHONE_DIGITS = 10
POSTAL_CODE_DIGITS = 5
MEMBER_LOOKUP_LIMIT = 10

STAFF_POSITIONS = {
    StaffRole.ADMIN.value: "ผู้ดูแลระบบ",
    StaffRole.APPROVER.value: "ผู้อนุมัติ",
    StaffRole.SALES.value: "พนักงานขาย",
}

_NON_DIGITS = re.compile(r"\D")

# Fields generated or managed here; never taken from input
_MEMBER_MANAGED = frozenset({"id", "member_id", "created_at", "updated_at"})
_SHOP_MANAGED = frozenset({"id", "shop_id", "created_at", "updated_at"})


def normalize_digits(value: Any) -> str:
    """Strip everything but digits."""
    if value is None:
        return ""
    return _NON_DIGITS.sub("", str(value))


def normalize_member_input(data: dict[str, Any]) -> dict[str, Any]:
    """
    Validate and normalize phone and postal code.

    Raises:
        ValidationError: Phone is not 10 digits or postal code not 5
    """
    result = dict(data)
    phone = normalize_digits(data.get("phone"))
    if len(phone) != PHONE_DIGITS:
        raise ValidationError(f"phone must be {PHONE_DIGITS} digits")
    result["phone"] = phone

    postal = normalize_digits(data.get("postal_code"))
    if postal and len(postal) != POSTAL_CODE_DIGITS:
        raise ValidationError(f"postal_code must be {POSTAL_CODE_DIGITS} digits")
    if postal:
        result["postal_code"] = postal

    if not result.get("citizen_id"):
        result["citizen_id"] = None
    return result


def _translate_duplicate(e: DuplicateKeyError) -> ValidationError:
    return ValidationError(f"{e.field} is already in use")


class MemberRegistry:
    """Create, update, search and delete members."""

    def __init__(
        self,
        repository: WarrantyRepository,
        id_attempts: int = 10,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.repository = repository
        self.id_attempts = id_attempts
        self.clock = clock

    async def create(self, data: dict[str, Any]) -> Member:
        fields = normalize_member_input(
            {k: v for k, v in data.items() if k not in _MEMBER_MANAGED}
        )
        await self._check_unique(fields)

        now = self.clock()
        try:
            base = Member.model_validate({**fields, "created_at": now, "updated_at": now})
        except ValueError as e:
            raise ValidationError(str(e)) from e

        async def insert(member_id: str) -> Member:
            return await self.repository.insert_member(base.model_copy(update={"member_id": member_id}))

        try:
            member = await insert_unique(
                insert,
                generate_member_id,
                key_field="member_id",
                attempts=self.id_attempts,
            )
        except DuplicateKeyError as e:
            raise _translate_duplicate(e) from e

        logger.info("member_created", member_id=member.member_id)
        return member

    async def update(self, member_pk: str, data: dict[str, Any]) -> Member:
        current = await self.get(member_pk)
        merged = {**current.model_dump(), **{k: v for k, v in data.items() if k not in _MEMBER_MANAGED}}
        fields = normalize_member_input(merged)
        await self._check_unique(fields, exclude_id=member_pk)

        changes = {k: v for k, v in fields.items() if k not in _MEMBER_MANAGED}
        try:
            Member.model_validate({**fields, "member_id": current.member_id})
        except ValueError as e:
            raise ValidationError(str(e)) from e
        changes["updated_at"] = self.clock()

        try:
            member = await self.repository.update_member(member_pk, changes)
        except DuplicateKeyError as e:
            raise _translate_duplicate(e) from e
        if member is None:
            raise NotFoundError("Member", member_pk)

        logger.info("member_updated", member_id=member.member_id)
        return member

    async def get(self, member_pk: str) -> Member:
        member = await self.repository.get_member(member_pk)
        if member is None:
            raise NotFoundError("Member", member_pk)
        return member

    async def list_all(self) -> list[Member]:
        return await self.repository.list_members()

    async def lookup(self, text: str) -> list[Member]:
        """Partial match over phone, ids and names, at most 10 results."""
        if not text or not text.strip():
            raise ValidationError("A search term is required")
        return await self.repository.search_members(text.strip(), limit=MEMBER_LOOKUP_LIMIT)

    async def delete(self, member_pk: str) -> None:
        if not await self.repository.delete_member(member_pk):
            raise NotFoundError("Member", member_pk)
        logger.info("member_deleted", member_pk=member_pk)

    async def _check_unique(self, fields: dict[str, Any], exclude_id: str | None = None) -> None:
        citizen_id = fields.get("citizen_id")
        if citizen_id and await self.repository.find_member("citizen_id", citizen_id, exclude_id):
            raise ValidationError("citizen_id is already in use")
        if await self.repository.find_member("phone", fields["phone"], exclude_id):
            raise ValidationError("phone is already in use")


class ShopRegistry:
    """Create, list, update and delete shops."""

    def __init__(
        self,
        repository: WarrantyRepository,
        id_attempts: int = 10,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.repository = repository
        self.id_attempts = id_attempts
        self.clock = clock

    async def create(self, shop_name: str, location: str = "") -> Shop:
        if not shop_name.strip():
            raise ValidationError("shop_name is required")
        now = self.clock()
        base = Shop(shop_name=shop_name.strip(), location=location, created_at=now, updated_at=now)

        async def insert(shop_id: str) -> Shop:
            return await self.repository.insert_shop(base.model_copy(update={"shop_id": shop_id}))

        shop = await insert_unique(insert, generate_shop_id, key_field="shop_id", attempts=self.id_attempts)
        logger.info("shop_created", shop_id=shop.shop_id)
        return shop

    async def list_all(self) -> list[Shop]:
        return await self.repository.list_shops()

    async def update(self, shop_pk: str, changes: dict[str, Any]) -> Shop:
        allowed = {k: v for k, v in changes.items() if k not in _SHOP_MANAGED}
        allowed["updated_at"] = self.clock()
        shop = await self.repository.update_shop(shop_pk, allowed)
        if shop is None:
            raise NotFoundError("Shop", shop_pk)
        return shop

    async def delete(self, shop_pk: str) -> None:
        if not await self.repository.delete_shop(shop_pk):
            raise NotFoundError("Shop", shop_pk)
        logger.info("shop_deleted", shop_pk=shop_pk)


class StaffRegistry:
    """Staff reference records; the position title follows the role."""

    def __init__(
        self,
        repository: WarrantyRepository,
        id_attempts: int = 10,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.repository = repository
        self.id_attempts = id_attempts
        self.clock = clock

    async def create(
        self,
        staff_name: str,
        username: str,
        role: StaffRole = StaffRole.SALES,
    ) -> Staff:
        role_value = StaffRole(role).value
        if await self.repository.find_staff("username", username):
            raise ValidationError("username is already in use")

        now = self.clock()
        base = Staff(
            staff_name=staff_name,
            staff_position=STAFF_POSITIONS[role_value],
            username=username,
            role=role_value,
            created_at=now,
            updated_at=now,
        )

        async def insert(staff_id: str) -> Staff:
            return await self.repository.insert_staff(base.model_copy(update={"staff_id": staff_id}))

        try:
            staff = await insert_unique(insert, generate_staff_id, key_field="staff_id", attempts=self.id_attempts)
        except DuplicateKeyError as e:
            raise _translate_duplicate(e) from e

        logger.info("staff_created", staff_id=staff.staff_id, role=role_value)
        return staff

    async def list_all(self) -> list[Staff]:
        return await self.repository.list_staff()

    async def update(self, staff_pk: str, staff_name: str, role: StaffRole) -> Staff:
        role_value = StaffRole(role).value
        staff = await self.repository.update_staff(
            staff_pk,
            {
                "staff_name": staff_name,
                "role": role_value,
                "staff_position": STAFF_POSITIONS[role_value],
                "updated_at": self.clock(),
            },
        )
        if staff is None:
            raise NotFoundError("Staff", staff_pk)
        return staff

    async def delete(self, staff_pk: str) -> None:
        if not await self.repository.delete_staff(staff_pk):
            raise NotFoundError("Staff", staff_pk)
        logger.info("staff_deleted", staff_pk=staff_pk)
