"""
Warranty Routes
===============

API endpoints for contract registration, payments and the approval gate.

Version: 0.1.0
"""

from typing import Any

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel, Field

from services.warranty.dependencies import ServiceContainer, get_container
from services.warranty.models import (
    CustomerInfo,
    DeviceInfo,
    PackageInfo,
    PaymentInfo,
    WarrantyContract,
    WarrantyDates,
)
from services.warranty.repository.base import SearchFilter
from services.warranty.routes.params import search_filter
from services.warranty.services import DashboardStatus, PaymentRecord
from shared.logging import get_logger
from shared.models.common import BaseResponse


logger = get_logger(__name__)

router = APIRouter()


# ============================================================================
# Request Models
# ============================================================================


class WarrantyCreate(BaseModel):
    """Request to register a contract."""

    member_id: str = Field(..., min_length=1)
    shop_name: str = ""
    protection_type: str = ""
    staff_name: str = ""
    device_price: float | None = Field(default=None, ge=0)
    customer: CustomerInfo = Field(default_factory=CustomerInfo)
    device: DeviceInfo = Field(default_factory=DeviceInfo)
    package: PackageInfo = Field(default_factory=PackageInfo)
    warranty_dates: WarrantyDates = Field(default_factory=WarrantyDates)
    payment: PaymentInfo = Field(default_factory=PaymentInfo)


class WarrantyUpdate(BaseModel):
    """Partial contract update. Member and policy number never change."""

    shop_name: str | None = None
    protection_type: str | None = None
    staff_name: str | None = None
    device_price: float | None = Field(default=None, ge=0)
    customer: CustomerInfo | None = None
    device: DeviceInfo | None = None
    package: PackageInfo | None = None
    warranty_dates: WarrantyDates | None = None
    payment: PaymentInfo | None = None


class PaymentRequest(BaseModel):
    """Payment against a contract."""

    installment_no: int | None = Field(default=None, ge=1)
    pay_all_remaining: bool = False
    paid_cash: float | None = Field(default=None, ge=0)
    paid_transfer: float | None = Field(default=None, ge=0)
    ref_id: str | None = None


class ApproveRequest(BaseModel):
    approver: str = Field(..., min_length=1)


class RejectRequest(BaseModel):
    reason: str = Field(..., min_length=1)
    reject_by: str = Field(..., min_length=1)


# ============================================================================
# Listings
# ============================================================================


@router.get("", response_model=list[dict[str, Any]])
async def list_warranties(
    status_filter: DashboardStatus = Query(default=DashboardStatus.ALL, alias="status"),
    search: SearchFilter = Depends(search_filter),
    services: ServiceContainer = Depends(get_container),
) -> list[dict[str, Any]]:
    """
    List contracts with derived limits, newest first.

    Supports free-text search, a created-at date range and the
    dashboard status filters.
    """
    views = await services.ledger.list_views(search, status_filter)
    return [v.as_dict() for v in views]


@router.get("/pending", response_model=list[dict[str, Any]])
async def list_pending(
    approval_status: str = Query(default="pending", alias="status"),
    search: SearchFilter = Depends(search_filter),
    services: ServiceContainer = Depends(get_container),
) -> list[dict[str, Any]]:
    """List contracts by approval state ("all" for every state)."""
    views = await services.ledger.list_by_approval(search, approval_status)
    return [v.as_dict() for v in views]


@router.get("/pending-count")
async def pending_count(
    services: ServiceContainer = Depends(get_container),
) -> dict[str, int]:
    """Number of contracts awaiting approval."""
    return {"count": await services.ledger.pending_count()}


@router.get("/active", response_model=list[dict[str, Any]])
async def list_active(
    search: SearchFilter = Depends(search_filter),
    services: ServiceContainer = Depends(get_container),
) -> list[dict[str, Any]]:
    """Approved, unexpired contracts; the ones claims can be filed against."""
    views = await services.ledger.list_active(search)
    return [v.as_dict() for v in views]


@router.get("/check-duplicate")
async def check_duplicate(
    type: str | None = Query(default=None, description="serial or imei"),
    value: str | None = Query(default=None),
    exclude_id: str | None = Query(default=None, alias="excludeId"),
    services: ServiceContainer = Depends(get_container),
) -> dict[str, bool]:
    """Whether a serial or IMEI is already registered."""
    exists = await services.ledger.check_duplicate(type or "", value, exclude_id)
    return {"exists": exists}


# ============================================================================
# Single contract
# ============================================================================


@router.post("", status_code=status.HTTP_201_CREATED, response_model=BaseResponse[dict[str, Any]])
async def create_warranty(
    request: WarrantyCreate,
    services: ServiceContainer = Depends(get_container),
) -> BaseResponse[dict[str, Any]]:
    """Register a contract; it starts pending approval."""
    contract = WarrantyContract.model_validate(request.model_dump())
    saved = await services.ledger.register(contract)
    return BaseResponse(data=saved.model_dump(mode="json"), message="Warranty registered")


@router.get("/{warranty_id}", response_model=dict[str, Any])
async def get_warranty(
    warranty_id: str,
    services: ServiceContainer = Depends(get_container),
) -> dict[str, Any]:
    """Get a contract with derived limits and member details."""
    view = await services.ledger.get_view(warranty_id)
    return view.as_dict()


@router.put("/{warranty_id}", response_model=BaseResponse[dict[str, Any]])
async def update_warranty(
    warranty_id: str,
    request: WarrantyUpdate,
    services: ServiceContainer = Depends(get_container),
) -> BaseResponse[dict[str, Any]]:
    changes = request.model_dump(exclude_unset=True)
    saved = await services.ledger.update(warranty_id, changes)
    return BaseResponse(data=saved.model_dump(mode="json"))


@router.patch("/{warranty_id}/payment", response_model=BaseResponse[dict[str, Any]])
async def record_payment(
    warranty_id: str,
    request: PaymentRequest,
    services: ServiceContainer = Depends(get_container),
) -> BaseResponse[dict[str, Any]]:
    """Record an installment, all remaining installments, or a full payment."""
    saved = await services.ledger.record_payment(
        warranty_id,
        PaymentRecord(**request.model_dump()),
    )
    return BaseResponse(data=saved.model_dump(mode="json"))


@router.put("/{warranty_id}/approve", response_model=BaseResponse[dict[str, Any]])
async def approve_warranty(
    warranty_id: str,
    request: ApproveRequest,
    services: ServiceContainer = Depends(get_container),
) -> BaseResponse[dict[str, Any]]:
    saved = await services.ledger.approve(warranty_id, request.approver)
    return BaseResponse(data=saved.model_dump(mode="json"), message="Warranty approved")


@router.put("/{warranty_id}/reject", response_model=BaseResponse[dict[str, Any]])
async def reject_warranty(
    warranty_id: str,
    request: RejectRequest,
    services: ServiceContainer = Depends(get_container),
) -> BaseResponse[dict[str, Any]]:
    saved = await services.ledger.reject(warranty_id, request.reason, request.reject_by)
    return BaseResponse(data=saved.model_dump(mode="json"), message="Warranty rejected")


@router.delete("/{warranty_id}", response_model=BaseResponse[None])
async def delete_warranty(
    warranty_id: str,
    services: ServiceContainer = Depends(get_container),
) -> BaseResponse[None]:
    await services.ledger.delete(warranty_id)
    return BaseResponse(message="Warranty deleted")
