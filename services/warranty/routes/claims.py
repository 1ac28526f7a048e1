"""
Claim Routes
============

API endpoints for claim intake, repair progress and completion.
Images arrive as URLs of files already stored elsewhere.

Version: 0.1.0
"""

from typing import Any

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, Field, model_validator

from services.warranty.dependencies import ServiceContainer, get_container
from services.warranty.models import (
    Claim,
    DeliveryAddressType,
    DeviceCondition,
    PowerState,
    ReturnMethod,
)
from services.warranty.repository.base import SearchFilter
from services.warranty.routes.params import search_filter
from services.warranty.services import ClaimCompletion, ProgressUpdate
from shared.logging import get_logger
from shared.models.common import BaseResponse


logger = get_logger(__name__)

router = APIRouter()


# ============================================================================
# Request Models
# ============================================================================


class ClaimCreate(BaseModel):
    """Request to open a claim against a contract."""

    warranty_id: str = Field(..., min_length=1)
    policy_number: str = ""
    member_id: str = ""
    claim_shop_name: str = ""
    customer_name: str = ""
    customer_phone: str = ""
    device_model: str = ""
    device_power_state: PowerState = PowerState.ON
    imei: str | None = None
    serial_number: str | None = None
    color: str | None = None
    symptoms: str = ""
    images: list[str] = Field(default_factory=list, max_length=10)
    staff_name: str = ""
    device_condition: DeviceCondition = Field(default_factory=DeviceCondition)
    return_method: ReturnMethod | None = None
    pickup_branch: str = ""
    delivery_address_type: DeliveryAddressType | None = None
    delivery_address_detail: str = ""


class ClaimUpdateRequest(BaseModel):
    """A repair progress step."""

    title: str = ""
    cost: float = Field(default=0, ge=0)
    center_name: str = ""
    center_location: str = ""
    center_phone: str = ""
    technician_name: str = ""
    technician_phone: str = ""
    images: list[str] = Field(default_factory=list, max_length=10)
    evidence_images: list[str] = Field(default_factory=list, max_length=10)


class ClaimCompleteRequest(BaseModel):
    """How the device went back to the customer, with handover photos."""

    return_method: ReturnMethod
    pickup_branch: str = ""
    delivery_address_type: DeliveryAddressType | None = None
    delivery_address_detail: str = ""
    device_images: list[str] = Field(default_factory=list)
    box_images: list[str] = Field(default_factory=list)
    receipt_images: list[str] = Field(default_factory=list)
    customer_images: list[str] = Field(default_factory=list)

    @model_validator(mode="after")
    def delivery_needs_address_type(self) -> "ClaimCompleteRequest":
        if self.return_method == ReturnMethod.DELIVERY and self.delivery_address_type is None:
            raise ValueError("delivery_address_type is required for delivery")
        return self

    @property
    def images(self) -> list[str]:
        return [*self.device_images, *self.box_images, *self.receipt_images, *self.customer_images]


class SignatureRequest(BaseModel):
    customer_signature: str | None = None
    staff_signature: str | None = None
    manager_signature: str | None = None


# ============================================================================
# Endpoints
# ============================================================================


@router.post("", status_code=status.HTTP_201_CREATED, response_model=BaseResponse[dict[str, Any]])
async def create_claim(
    request: ClaimCreate,
    services: ServiceContainer = Depends(get_container),
) -> BaseResponse[dict[str, Any]]:
    """Open a claim; the contract must be approved and unexpired."""
    claim = Claim.model_validate(request.model_dump())
    saved = await services.workflow.open_claim(claim)
    return BaseResponse(data=saved.model_dump(mode="json"), message="Claim opened")


@router.get("", response_model=list[dict[str, Any]])
async def list_claims(
    search: SearchFilter = Depends(search_filter),
    services: ServiceContainer = Depends(get_container),
) -> list[dict[str, Any]]:
    views = await services.tracker.list_all(search)
    return [v.as_dict() for v in views]


@router.get("/pending", response_model=list[dict[str, Any]])
async def list_pending_claims(
    search: SearchFilter = Depends(search_filter),
    services: ServiceContainer = Depends(get_container),
) -> list[dict[str, Any]]:
    """Open claims, newest first, with overdue flags."""
    return await services.tracker.pending(search)


@router.get("/warranty/{warranty_id}", response_model=BaseResponse[dict[str, Any]])
async def latest_claim_for_warranty(
    warranty_id: str,
    services: ServiceContainer = Depends(get_container),
) -> BaseResponse[dict[str, Any]]:
    """Most recent claim on a contract."""
    view = await services.tracker.latest(warranty_id)
    return BaseResponse(data=view.as_dict())


@router.get("/history/{warranty_id}", response_model=list[dict[str, Any]])
async def claim_history(
    warranty_id: str,
    services: ServiceContainer = Depends(get_container),
) -> list[dict[str, Any]]:
    views = await services.tracker.history(warranty_id)
    return [v.as_dict() for v in views]


@router.get("/{claim_pk}", response_model=dict[str, Any])
async def get_claim(
    claim_pk: str,
    services: ServiceContainer = Depends(get_container),
) -> dict[str, Any]:
    view = await services.tracker.get(claim_pk)
    return view.as_dict()


@router.post("/{claim_pk}/updates", response_model=BaseResponse[dict[str, Any]])
async def add_claim_update(
    claim_pk: str,
    request: ClaimUpdateRequest,
    services: ServiceContainer = Depends(get_container),
) -> BaseResponse[dict[str, Any]]:
    """Append a repair step; any cost needs an evidence image."""
    saved = await services.workflow.add_update(claim_pk, ProgressUpdate(**request.model_dump()))
    return BaseResponse(data=saved.model_dump(mode="json"))


@router.post("/{claim_pk}/complete", response_model=BaseResponse[dict[str, Any]])
async def complete_claim(
    claim_pk: str,
    request: ClaimCompleteRequest,
    services: ServiceContainer = Depends(get_container),
) -> BaseResponse[dict[str, Any]]:
    """Close a claim once the device is back with the customer."""
    completion = ClaimCompletion(
        return_method=request.return_method,
        pickup_branch=request.pickup_branch,
        delivery_address_type=request.delivery_address_type,
        delivery_address_detail=request.delivery_address_detail,
        images=request.images,
    )
    saved = await services.workflow.complete(claim_pk, completion)
    return BaseResponse(data=saved.model_dump(mode="json"), message="Claim completed")


@router.put("/{claim_pk}/signatures", response_model=BaseResponse[dict[str, Any]])
async def save_signatures(
    claim_pk: str,
    request: SignatureRequest,
    services: ServiceContainer = Depends(get_container),
) -> BaseResponse[dict[str, Any]]:
    saved = await services.workflow.save_signatures(
        claim_pk,
        request.customer_signature,
        request.staff_signature,
        request.manager_signature,
    )
    return BaseResponse(data=saved.model_dump(mode="json"))
