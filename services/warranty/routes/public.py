"""
Public Routes
=============

Customer-facing endpoints: claim tracking by claim id and the member
portal. Responses carry no internal identifiers beyond what the member
already holds.

Version: 0.1.0
"""

from typing import Any

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from services.warranty.dependencies import ServiceContainer, get_container
from shared.models.common import BaseResponse


router = APIRouter()


class PortalRequest(BaseModel):
    """Member credentials: citizen id and member id must match one member."""

    citizen_id: str = Field(..., min_length=1)
    member_id: str = Field(..., min_length=1)


@router.get("/track/{claim_id}", response_model=BaseResponse[dict[str, Any]])
async def track_claim(
    claim_id: str,
    services: ServiceContainer = Depends(get_container),
) -> BaseResponse[dict[str, Any]]:
    """Repair progress and remaining coverage for a claim."""
    return BaseResponse(data=await services.tracker.track(claim_id))


@router.post("/customer/portal", response_model=BaseResponse[dict[str, Any]])
async def customer_portal(
    request: PortalRequest,
    services: ServiceContainer = Depends(get_container),
) -> BaseResponse[dict[str, Any]]:
    """A member's contracts and claims."""
    portal = await services.tracker.customer_portal(request.citizen_id, request.member_id)
    return BaseResponse(data={
        "member": portal.member.model_dump(mode="json"),
        "warranties": portal.warranties,
        "claims": portal.claims,
    })
