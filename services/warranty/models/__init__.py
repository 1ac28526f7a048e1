"""Warranty service domain models."""

from services.warranty.models.claim import (
    Claim,
    ClaimState,
    ClaimUpdate,
    ConditionItem,
    DeliveryAddressType,
    DeviceCondition,
    PowerState,
    ReturnMethod,
)
from services.warranty.models.contract import (
    INSTALLMENT_METHOD,
    ApprovalStatus,
    ContractClaimStatus,
    CustomerInfo,
    DeviceInfo,
    Installment,
    PackageInfo,
    PaymentInfo,
    PaymentStatus,
    WarrantyContract,
    WarrantyDates,
)
from services.warranty.models.reference import Member, Shop, Staff, StaffRole

__all__ = [
    # Contracts
    "INSTALLMENT_METHOD",
    "ApprovalStatus",
    "ContractClaimStatus",
    "CustomerInfo",
    "DeviceInfo",
    "Installment",
    "PackageInfo",
    "PaymentInfo",
    "PaymentStatus",
    "WarrantyContract",
    "WarrantyDates",
    # Claims
    "Claim",
    "ClaimState",
    "ClaimUpdate",
    "ConditionItem",
    "DeliveryAddressType",
    "DeviceCondition",
    "PowerState",
    "ReturnMethod",
    # Reference
    "Member",
    "Shop",
    "Staff",
    "StaffRole",
]
