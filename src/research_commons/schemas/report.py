# src/research_commons/schemas/report.py
"""Report-related Pydantic schemas."""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from research_commons.models import ContentType, ReportAction, ReportStatus


class ReportCreate(BaseModel):
    """Schema for filing a report against content."""

    content_type: ContentType
    content_id: int
    reason: str = Field(..., description="Why the content should be reviewed")


class ReportUpdate(BaseModel):
    """Schema for moving a report through review."""

    status: ReportStatus
    action: ReportAction = Field(ReportAction.NONE, description="Action taken on the content")


class ReportReopen(BaseModel):
    """Schema for sending a closed report back to the queue."""

    reason: str = Field(..., min_length=1, description="Why the report is reopened")


class ReportResponse(BaseModel):
    """Schema for report information returned by the API."""

    id: int
    content_type: str
    content_id: int | None
    reporter_id: str | None
    reason: str
    status: str
    content_snapshot: dict[str, Any]
    moderation_data: dict[str, Any] | None
    action_taken: str | None
    reviewed_by: str | None
    reviewed_at: datetime | None
    appeal_outcome: str | None
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)
