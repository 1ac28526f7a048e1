"""
Reference Records
=================

Members, shops and staff. Plain records whose only rules are uniqueness
of their natural keys.

Version: 0.1.0
"""

from __future__ import annotations

from enum import Enum

from pydantic import Field

from services.warranty.models.contract import DocumentModel, new_document_id
from shared.models.common import UTCDateTime, utcnow


class Member(DocumentModel):
    """A customer who holds one or more warranty contracts."""

    id: str = Field(default_factory=new_document_id)
    member_id: str = ""
    citizen_id: str | None = None
    prefix: str = ""
    first_name: str
    last_name: str
    first_name_en: str = ""
    last_name_en: str = ""
    phone: str
    birthdate: UTCDateTime | None = None
    gender: str = ""
    address: str = ""
    id_card_address: str = ""
    shipping_address: str = ""
    postal_code: str = ""
    issue_date: UTCDateTime | None = None
    expiry_date: UTCDateTime | None = None
    facebook: str = ""
    facebook_link: str = ""
    photo: str | None = None

    created_at: UTCDateTime = Field(default_factory=utcnow)
    updated_at: UTCDateTime = Field(default_factory=utcnow)


class Shop(DocumentModel):
    """A branch or partner shop."""

    id: str = Field(default_factory=new_document_id)
    shop_id: str = ""
    shop_name: str
    location: str = ""

    created_at: UTCDateTime = Field(default_factory=utcnow)
    updated_at: UTCDateTime = Field(default_factory=utcnow)


class StaffRole(str, Enum):
    """What a staff member is allowed to do on the shop floor."""

    SALES = "sales"
    APPROVER = "approver"
    ADMIN = "admin"


class Staff(DocumentModel):
    """A shop employee. Reference record only; there is no login."""

    id: str = Field(default_factory=new_document_id)
    staff_id: str = ""
    staff_name: str
    staff_position: str = ""
    username: str
    role: StaffRole = StaffRole.SALES

    created_at: UTCDateTime = Field(default_factory=utcnow)
    updated_at: UTCDateTime = Field(default_factory=utcnow)
