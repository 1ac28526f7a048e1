"""
Shared Models
=============

Pydantic models shared across EasyCare services.
"""

from shared.models.common import (
    BaseResponse,
    ErrorResponse,
    HealthResponse,
    UTCDateTime,
    as_utc,
    utcnow,
)

__all__ = [
    "BaseResponse",
    "ErrorResponse",
    "HealthResponse",
    "UTCDateTime",
    "as_utc",
    "utcnow",
]
