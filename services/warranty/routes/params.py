"""Shared query parameters for warranty and claim listings."""

from __future__ import annotations

from datetime import date

from fastapi import Query

from services.warranty.repository.base import SearchFilter


def search_filter(
    search: str | None = Query(default=None, description="Free-text search"),
    start_date: date | None = Query(default=None, alias="startDate", description="Inclusive start date"),
    end_date: date | None = Query(default=None, alias="endDate", description="Inclusive end date"),
) -> SearchFilter:
    """Free-text search and inclusive date range from the query string."""
    return SearchFilter(
        search=search.strip() if search and search.strip() else None,
        start_date=start_date,
        end_date=end_date,
    )
