# src/research_commons/schemas/audit.py
"""Audit log schemas."""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class AuditEventResponse(BaseModel):
    """Schema for one audit trail entry."""

    id: int
    action: str
    category: str
    actor_id: str | None
    source_ip: str | None
    user_agent: str | None
    metadata: dict[str, Any] = Field(validation_alias="metadata_")
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)
