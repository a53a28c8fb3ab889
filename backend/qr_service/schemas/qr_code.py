"""Pydantic schemas for QR code records."""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, HttpUrl
from pydantic.alias_generators import to_camel


class QrCodeCreate(BaseModel):
    """Schema for saving a QR code from the editor."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    target_url: HttpUrl
    title: str = Field("", max_length=200)
    text_content: str = Field("", max_length=2000)
    show_title: bool = True
    show_text: bool = True
    qr_options: dict[str, Any] = Field(default_factory=dict)


class QrCode(BaseModel):
    """Schema for QR code responses; fields are sent in camelCase."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)

    short_id: str
    target_url: str
    title: str
    text_content: str
    show_title: bool
    show_text: bool
    qr_options: dict[str, Any]
    scan_count: int
    created_at: datetime | None = None
    last_scanned: datetime | None = None
    scan_url: str


class ScanEvent(BaseModel):
    """Schema for a recorded scan."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)

    short_id: str
    scanned_at: datetime
    device: str | None = None
    browser: str | None = None
    os: str | None = None
    location: str | None = None


class DashboardSummary(BaseModel):
    """Totals shown on the dashboard and in exports."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    total_codes: int
    total_scans: int
    average_scans: int
    most_scanned: str | None = None
