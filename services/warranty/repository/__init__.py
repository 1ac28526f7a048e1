"""Warranty storage: protocol plus in-memory and MongoDB implementations."""

from services.warranty.repository.base import (
    ClaimQuery,
    SearchFilter,
    WarrantyQuery,
    WarrantyRepository,
)
from services.warranty.repository.memory import InMemoryRepository
from services.warranty.repository.mongodb import MongoRepository

__all__ = [
    "ClaimQuery",
    "SearchFilter",
    "WarrantyQuery",
    "WarrantyRepository",
    "InMemoryRepository",
    "MongoRepository",
]
