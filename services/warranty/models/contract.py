"""
Warranty Contract Models
========================

Persisted shape of a device protection contract and its payment schedule.

Version: 0.1.0
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field

from shared.models.common import UTCDateTime, utcnow


INSTALLMENT_METHOD = "Installment"


def new_document_id() -> str:
    """Opaque internal id for a stored document."""
    return uuid4().hex


class ApprovalStatus(str, Enum):
    """Approval gate state of a contract."""

    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class ContractClaimStatus(str, Enum):
    """Whether a contract currently has an open claim."""

    NORMAL = "normal"
    PENDING = "pending"
    COMPLETED = "completed"


class PaymentStatus(str, Enum):
    """Payment and installment state."""

    PENDING = "Pending"
    PAID = "Paid"


class DocumentModel(BaseModel):
    """Base for models stored as documents keyed by `_id`."""

    model_config = ConfigDict(use_enum_values=True, validate_default=True)

    def to_document(self) -> dict[str, Any]:
        """Convert to a storage document."""
        doc = self.model_dump(mode="python")
        doc["_id"] = doc.pop("id")
        return doc

    @classmethod
    def from_document(cls, doc: dict[str, Any]):  # type: ignore[no-untyped-def]
        """Build a model from a storage document."""
        data = dict(doc)
        if "_id" in data:
            data["id"] = str(data.pop("_id"))
        return cls.model_validate(data)


class CustomerInfo(BaseModel):
    """Customer snapshot taken at sale time."""

    first_name: str = ""
    last_name: str = ""
    phone: str = ""
    dob: UTCDateTime | None = None
    age: int | None = None
    address: str = ""

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()


class DeviceInfo(BaseModel):
    """The protected device."""

    type: str = ""
    model: str = ""
    color: str = ""
    capacity: str = ""
    serial: str | None = None
    imei: str | None = None
    device_value: float | None = None
    official_warranty_end: UTCDateTime | None = None


class PackageInfo(BaseModel):
    """Protection plan sold."""

    plan: str = ""
    price: float | None = None


class WarrantyDates(BaseModel):
    """Coverage period."""

    start: UTCDateTime | None = None
    end: UTCDateTime | None = None


class Installment(BaseModel):
    """One entry of an installment payment schedule."""

    model_config = ConfigDict(use_enum_values=True)

    installment_no: int
    amount: float = 0
    due_date: UTCDateTime | None = None
    grace_date: UTCDateTime | None = None
    status: PaymentStatus = PaymentStatus.PENDING
    paid_date: UTCDateTime | None = None
    paid_cash: float | None = None
    paid_transfer: float | None = None
    ref_id: str | None = None


class PaymentInfo(BaseModel):
    """How the package is paid for."""

    model_config = ConfigDict(use_enum_values=True)

    method: str = ""
    status: PaymentStatus = PaymentStatus.PENDING
    paid_date: UTCDateTime | None = None
    paid_cash: float | None = None
    paid_transfer: float | None = None
    ref_id: str | None = None
    schedule: list[Installment] = Field(default_factory=list)

    @property
    def is_installment(self) -> bool:
        return self.method == INSTALLMENT_METHOD


class WarrantyContract(DocumentModel):
    """
    A registered device protection policy tied to a member.

    `installments_paid` is a stored cache of the payment schedule and is
    rewritten on every persist; `used_coverage` is kept in step with claim
    costs by the coverage reconciler. Limits are never stored.
    """

    id: str = Field(default_factory=new_document_id)
    policy_number: str = ""
    member_id: str

    shop_name: str = ""
    protection_type: str = ""
    staff_name: str = ""

    device_price: float | None = None
    installments_paid: int = Field(default=1, ge=0, le=3)
    used_coverage: float | None = None

    customer: CustomerInfo = Field(default_factory=CustomerInfo)
    device: DeviceInfo = Field(default_factory=DeviceInfo)
    package: PackageInfo = Field(default_factory=PackageInfo)
    warranty_dates: WarrantyDates = Field(default_factory=WarrantyDates)
    payment: PaymentInfo = Field(default_factory=PaymentInfo)

    approval_status: ApprovalStatus = ApprovalStatus.PENDING
    approver: str | None = None
    approval_date: UTCDateTime | None = None
    reject_reason: str | None = None
    reject_by: str | None = None
    reject_date: UTCDateTime | None = None

    claim_status: ContractClaimStatus = ContractClaimStatus.NORMAL

    created_at: UTCDateTime = Field(default_factory=utcnow)
    updated_at: UTCDateTime = Field(default_factory=utcnow)

    def is_expired(self, now: datetime) -> bool:
        end = self.warranty_dates.end
        return end is not None and end < now
