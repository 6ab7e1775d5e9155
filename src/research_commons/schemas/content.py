# src/research_commons/schemas/content.py
"""Content submission schemas."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from research_commons.models import ContentType


class ContentCreate(BaseModel):
    """Schema for submitting a post or comment."""

    content_type: ContentType = Field(ContentType.POST, description="post or comment")
    title: str | None = Field(None, max_length=300, description="Optional title")
    body: str = Field(..., min_length=1, max_length=20000, description="Content body")
    parent_id: int | None = Field(None, description="Parent post ID for comments")


class ContentResponse(BaseModel):
    """Schema for stored content returned by the API."""

    id: int
    content_type: str
    author_id: str
    title: str | None
    body: str
    parent_id: int | None
    deleted: bool
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class SubmissionResponse(BaseModel):
    """Stored content plus any non-blocking moderation warnings."""

    content: ContentResponse
    warnings: list[str] = Field(default_factory=list)
    degraded: bool = Field(False, description="True when the analyzer could not be reached")
