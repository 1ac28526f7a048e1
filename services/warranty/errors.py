"""
Warranty Service Errors
=======================

Exception taxonomy for the warranty and claim core. Routes let these
propagate; the application maps each family to one HTTP status.
"""

from __future__ import annotations


class WarrantyServiceError(Exception):
    """Base class for all domain errors raised by the warranty service."""

    error_code = "warranty_error"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ValidationError(WarrantyServiceError):
    """Malformed or missing input, or a duplicate natural key."""

    error_code = "validation_error"


class NotFoundError(WarrantyServiceError):
    """A referenced entity does not exist."""

    error_code = "not_found"

    def __init__(self, entity: str, identifier: str) -> None:
        super().__init__(f"{entity} {identifier} not found")
        self.entity = entity
        self.identifier = identifier


class BusinessRuleError(WarrantyServiceError):
    """The request is well formed but breaks a workflow rule."""

    error_code = "business_rule_violation"


class IdentifierExhaustedError(WarrantyServiceError):
    """Generated identifiers kept colliding past the retry bound."""

    error_code = "identifier_exhausted"

    def __init__(self, field: str, attempts: int) -> None:
        super().__init__(f"Could not generate a unique {field} after {attempts} attempts")
        self.field = field
        self.attempts = attempts


class DuplicateKeyError(WarrantyServiceError):
    """Raised by repositories when a uniqueness constraint rejects a write."""

    error_code = "duplicate_key"

    def __init__(self, field: str, value: object = None) -> None:
        super().__init__(f"Duplicate value for {field}")
        self.field = field
        self.value = value
