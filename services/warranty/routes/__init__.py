"""
Warranty Service Routes
=======================

API route handlers for the Warranty Service.
"""

from services.warranty.routes import claims, members, public, warranties


__all__ = ["claims", "members", "public", "warranties"]
