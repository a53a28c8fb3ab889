"""Schemas for admin endpoints."""

from pydantic import BaseModel


class SiteStats(BaseModel):
    """Totals across every account."""

    total_users: int
    total_codes: int
    total_scans: int
