"""
EasyCare Services
=================

Microservices for the EasyCare device protection platform.

Services:
- warranty: warranty contracts, coverage limits and repair claims
"""

__all__ = [
    "warranty",
]
