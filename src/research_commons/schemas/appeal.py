# src/research_commons/schemas/appeal.py
"""Appeal-related Pydantic schemas."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from research_commons.models import Verdict


class AppealCreate(BaseModel):
    """Schema for appealing a closed report."""

    report_id: int
    dispute_reason: str = Field(..., description="Why the decision should be reconsidered")


class AppealDecision(BaseModel):
    """Administrator ruling on an escalated appeal."""

    verdict: Verdict
    admin_response: str = Field(..., min_length=1, description="Explanation for the appellant")


class AppealResponse(BaseModel):
    """Schema for appeal information returned by the API."""

    id: int
    report_id: int
    appellant_id: str
    dispute_reason: str
    status: str
    admin_response: str | None
    resolved_by: str | None
    resolved_at: datetime | None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)
