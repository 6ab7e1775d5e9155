# src/research_commons/schemas/conflict.py
"""Conflict resolution schemas."""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from research_commons.models import ContentType, Resolution


class ClaimIn(BaseModel):
    """A value asserted by one source."""

    value: bool | int | float | str
    valid_from: datetime | None = None
    valid_until: datetime | None = None


class ConflictCreate(BaseModel):
    """Schema for recording a field-versus-external contradiction."""

    field_claim: ClaimIn
    field_timestamp: datetime | None = None
    field_source_trust: int | None = Field(None, ge=0, le=100)
    field_content_id: int | None = None
    field_content_type: ContentType | None = None
    external_claim: ClaimIn
    external_timestamp: datetime | None = None
    external_source_trust: int | None = Field(None, ge=0, le=100)
    external_source_id: str = Field(..., min_length=1, max_length=64)
    location_name: str | None = None


class ConflictAdjudicate(BaseModel):
    """Human decision on an open conflict."""

    resolution: Resolution
    notes: str = Field(..., min_length=1)


class ConflictResponse(BaseModel):
    """Schema for a stored conflict record."""

    id: int
    conflict_type: str
    conflict_detail: str | None
    external_source_id: str
    external_claim: dict[str, Any]
    external_timestamp: datetime | None
    external_source_trust: int | None
    field_content_id: int | None
    field_content_type: str | None
    field_claim: dict[str, Any]
    field_timestamp: datetime | None
    field_source_trust: int | None
    resolution: str
    suggested_action: str | None
    action_taken: bool
    location_name: str | None
    adjudicated_resolution: str | None
    resolution_notes: str | None
    resolved_by: str | None
    resolved_at: datetime | None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)
