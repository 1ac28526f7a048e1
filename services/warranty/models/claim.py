"""
Claim Models
============

Repair claim documents, their progress updates and the device condition
checklist captured at intake.

Version: 0.1.0
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from services.warranty.models.contract import DocumentModel, new_document_id
from shared.models.common import UTCDateTime, utcnow


class ClaimState(str, Enum):
    """Claim lifecycle state, stored with the shop-floor terms."""

    AWAITING_INTAKE = "รอเคลม"
    DEVICE_RECEIVED = "รับเครื่องแล้ว"


class ReturnMethod(str, Enum):
    """How the repaired device goes back to the customer."""

    PICKUP = "pickup"
    DELIVERY = "delivery"


class DeliveryAddressType(str, Enum):
    """Which address a delivery is sent to."""

    CARD = "card"
    MEMBER_SHIPPING = "memberShipping"
    NEW = "new"
    ORIGINAL = "original"


class PowerState(str, Enum):
    """Whether the device powered on at intake."""

    ON = "on"
    OFF = "off"


class ConditionItem(BaseModel):
    """One checklist line: a status word and a free-text reason."""

    status: str = ""
    reason: str = ""


class DeviceCondition(BaseModel):
    """Fixed device inspection checklist recorded when a claim is opened."""

    model_config = ConfigDict(extra="forbid")

    exterior: ConditionItem = Field(default_factory=ConditionItem)
    screen: ConditionItem = Field(default_factory=ConditionItem)
    assembly: ConditionItem = Field(default_factory=ConditionItem)
    apple_logo: ConditionItem = Field(default_factory=ConditionItem)
    buttons: ConditionItem = Field(default_factory=ConditionItem)
    charging_port: ConditionItem = Field(default_factory=ConditionItem)
    sim_tray: ConditionItem = Field(default_factory=ConditionItem)
    imei_match: ConditionItem = Field(default_factory=ConditionItem)
    model_match: ConditionItem = Field(default_factory=ConditionItem)
    screen_touch: ConditionItem = Field(default_factory=ConditionItem)
    face_id_touch_id: ConditionItem = Field(default_factory=ConditionItem)
    cameras: ConditionItem = Field(default_factory=ConditionItem)
    speaker_mic: ConditionItem = Field(default_factory=ConditionItem)
    connectivity: ConditionItem = Field(default_factory=ConditionItem)
    battery: ConditionItem = Field(default_factory=ConditionItem)
    warranty_void: ConditionItem = Field(default_factory=ConditionItem)
    other: ConditionItem = Field(default_factory=ConditionItem)


class ClaimUpdate(BaseModel):
    """A repair progress event. Step 1 is the implicit intake."""

    step: int = Field(..., ge=2)
    title: str = ""
    date: UTCDateTime = Field(default_factory=utcnow)
    cost: float = Field(default=0, ge=0)
    center_name: str = ""
    center_location: str = ""
    center_phone: str = ""
    technician_name: str = ""
    technician_phone: str = ""
    images: list[str] = Field(default_factory=list)
    evidence_images: list[str] = Field(default_factory=list)


class Claim(DocumentModel):
    """A single repair request against a warranty contract."""

    id: str = Field(default_factory=new_document_id)
    claim_id: str = ""
    warranty_id: str

    # Intake snapshot
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
    claim_date: UTCDateTime = Field(default_factory=utcnow)
    symptoms: str = ""
    images: list[str] = Field(default_factory=list)
    staff_name: str = ""
    device_condition: DeviceCondition = Field(default_factory=DeviceCondition)

    # Return preference at intake
    return_method: ReturnMethod | None = None
    pickup_branch: str = ""
    delivery_address_type: DeliveryAddressType | None = None
    delivery_address_detail: str = ""

    customer_signature: str | None = None
    staff_signature: str | None = None
    manager_signature: str | None = None

    status: ClaimState = ClaimState.AWAITING_INTAKE
    total_cost: float = 0
    updates: list[ClaimUpdate] = Field(default_factory=list)

    # Completion record
    completed_return_method: ReturnMethod | None = None
    completed_return_branch: str | None = None
    completed_delivery_address_type: DeliveryAddressType | None = None
    completed_delivery_address_detail: str | None = None
    pickup_date: UTCDateTime | None = None

    created_at: UTCDateTime = Field(default_factory=utcnow)
    updated_at: UTCDateTime = Field(default_factory=utcnow)

    @property
    def is_open(self) -> bool:
        return self.status == ClaimState.AWAITING_INTAKE

    @property
    def next_step(self) -> int:
        return len(self.updates) + 2

    @property
    def last_activity(self) -> datetime:
        """Date of the newest update, or the intake date."""
        if self.updates:
            return self.updates[-1].date
        return self.claim_date
