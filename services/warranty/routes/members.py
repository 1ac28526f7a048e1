"""
Reference Record Routes
=======================

API endpoints for members, shops and staff.

Version: 0.1.0
"""

from datetime import datetime
from typing import Any

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel, Field

from services.warranty.dependencies import ServiceContainer, get_container
from services.warranty.models import StaffRole
from shared.models.common import BaseResponse


members_router = APIRouter()
shops_router = APIRouter()
staff_router = APIRouter()


# ============================================================================
# Request Models
# ============================================================================


class MemberCreate(BaseModel):
    """Member details. Phone may contain separators; digits are kept."""

    citizen_id: str | None = None
    prefix: str = ""
    first_name: str = Field(..., min_length=1)
    last_name: str = Field(..., min_length=1)
    first_name_en: str = ""
    last_name_en: str = ""
    phone: str
    birthdate: datetime | None = None
    gender: str = ""
    address: str = ""
    id_card_address: str = ""
    shipping_address: str = ""
    postal_code: str = ""
    issue_date: datetime | None = None
    expiry_date: datetime | None = None
    facebook: str = ""
    facebook_link: str = ""
    photo: str | None = None


class MemberUpdate(BaseModel):
    citizen_id: str | None = None
    prefix: str | None = None
    first_name: str | None = None
    last_name: str | None = None
    first_name_en: str | None = None
    last_name_en: str | None = None
    phone: str | None = None
    birthdate: datetime | None = None
    gender: str | None = None
    address: str | None = None
    id_card_address: str | None = None
    shipping_address: str | None = None
    postal_code: str | None = None
    issue_date: datetime | None = None
    expiry_date: datetime | None = None
    facebook: str | None = None
    facebook_link: str | None = None
    photo: str | None = None


class ShopCreate(BaseModel):
    shop_name: str = Field(..., min_length=1)
    location: str = ""


class ShopUpdate(BaseModel):
    shop_name: str | None = None
    location: str | None = None


class StaffCreate(BaseModel):
    staff_name: str = Field(..., min_length=1)
    username: str = Field(..., min_length=1)
    role: StaffRole = StaffRole.SALES


class StaffUpdate(BaseModel):
    staff_name: str = Field(..., min_length=1)
    role: StaffRole = StaffRole.SALES


# ============================================================================
# Members
# ============================================================================


@members_router.get("", response_model=list[dict[str, Any]])
async def list_members(
    services: ServiceContainer = Depends(get_container),
) -> list[dict[str, Any]]:
    return [m.model_dump(mode="json") for m in await services.members.list_all()]


@members_router.post("", status_code=status.HTTP_201_CREATED, response_model=BaseResponse[dict[str, Any]])
async def create_member(
    request: MemberCreate,
    services: ServiceContainer = Depends(get_container),
) -> BaseResponse[dict[str, Any]]:
    member = await services.members.create(request.model_dump())
    return BaseResponse(data=member.model_dump(mode="json"), message="Member created")


@members_router.get("/lookup", response_model=list[dict[str, Any]])
async def lookup_members(
    query: str = Query(default="", description="Phone, member id, citizen id or name"),
    services: ServiceContainer = Depends(get_container),
) -> list[dict[str, Any]]:
    """Partial-match lookup, at most 10 members."""
    return [m.model_dump(mode="json") for m in await services.members.lookup(query)]


@members_router.get("/{member_pk}", response_model=dict[str, Any])
async def get_member(
    member_pk: str,
    services: ServiceContainer = Depends(get_container),
) -> dict[str, Any]:
    member = await services.members.get(member_pk)
    return member.model_dump(mode="json")


@members_router.put("/{member_pk}", response_model=BaseResponse[dict[str, Any]])
async def update_member(
    member_pk: str,
    request: MemberUpdate,
    services: ServiceContainer = Depends(get_container),
) -> BaseResponse[dict[str, Any]]:
    member = await services.members.update(member_pk, request.model_dump(exclude_unset=True))
    return BaseResponse(data=member.model_dump(mode="json"))


@members_router.delete("/{member_pk}", response_model=BaseResponse[None])
async def delete_member(
    member_pk: str,
    services: ServiceContainer = Depends(get_container),
) -> BaseResponse[None]:
    await services.members.delete(member_pk)
    return BaseResponse(message="Member deleted")


# ============================================================================
# Shops
# ============================================================================


@shops_router.get("", response_model=list[dict[str, Any]])
async def list_shops(
    services: ServiceContainer = Depends(get_container),
) -> list[dict[str, Any]]:
    return [s.model_dump(mode="json") for s in await services.shops.list_all()]


@shops_router.post("", status_code=status.HTTP_201_CREATED, response_model=BaseResponse[dict[str, Any]])
async def create_shop(
    request: ShopCreate,
    services: ServiceContainer = Depends(get_container),
) -> BaseResponse[dict[str, Any]]:
    shop = await services.shops.create(request.shop_name, request.location)
    return BaseResponse(data=shop.model_dump(mode="json"), message="Shop created")


@shops_router.put("/{shop_pk}", response_model=BaseResponse[dict[str, Any]])
async def update_shop(
    shop_pk: str,
    request: ShopUpdate,
    services: ServiceContainer = Depends(get_container),
) -> BaseResponse[dict[str, Any]]:
    shop = await services.shops.update(shop_pk, request.model_dump(exclude_unset=True))
    return BaseResponse(data=shop.model_dump(mode="json"))


@shops_router.delete("/{shop_pk}", response_model=BaseResponse[None])
async def delete_shop(
    shop_pk: str,
    services: ServiceContainer = Depends(get_container),
) -> BaseResponse[None]:
    await services.shops.delete(shop_pk)
    return BaseResponse(message="Shop deleted")


# ============================================================================
# Staff
# ============================================================================


@staff_router.get("", response_model=list[dict[str, Any]])
async def list_staff(
    services: ServiceContainer = Depends(get_container),
) -> list[dict[str, Any]]:
    return [s.model_dump(mode="json") for s in await services.staff.list_all()]


@staff_router.post("", status_code=status.HTTP_201_CREATED, response_model=BaseResponse[dict[str, Any]])
async def create_staff(
    request: StaffCreate,
    services: ServiceContainer = Depends(get_container),
) -> BaseResponse[dict[str, Any]]:
    staff = await services.staff.create(request.staff_name, request.username, request.role)
    return BaseResponse(data=staff.model_dump(mode="json"), message="Staff created")


@staff_router.put("/{staff_pk}", response_model=BaseResponse[dict[str, Any]])
async def update_staff(
    staff_pk: str,
    request: StaffUpdate,
    services: ServiceContainer = Depends(get_container),
) -> BaseResponse[dict[str, Any]]:
    staff = await services.staff.update(staff_pk, request.staff_name, request.role)
    return BaseResponse(data=staff.model_dump(mode="json"))


@staff_router.delete("/{staff_pk}", response_model=BaseResponse[None])
async def delete_staff(
    staff_pk: str,
    services: ServiceContainer = Depends(get_container),
) -> BaseResponse[None]:
    await services.staff.delete(staff_pk)
    return BaseResponse(message="Staff deleted")
