# src/research_commons/schemas/jury.py
"""Jury deliberation schemas."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from research_commons.models import Verdict


class JuryOpen(BaseModel):
    """Schema for convening a jury on a pending appeal."""

    appeal_id: int
    quorum: int | None = Field(None, ge=1, description="Votes needed to conclude")
    deadline_hours: int | None = Field(
        None,
        ge=1,
        description="Hours until the deliberation times out",
    )
    jurors: list[str] | None = Field(
        None,
        description="Explicit jurors; drawn at random if omitted",
    )


class JuryVoteCreate(BaseModel):
    """Schema for a juror's vote."""

    verdict: Verdict
    reasoning: str = Field(..., description="Juror's explanation")


class JuryDeliberationResponse(BaseModel):
    """Schema for deliberation state returned by the API."""

    id: int
    appeal_id: int
    quorum: int
    deadline: datetime
    status: str
    votes_uphold: int
    votes_overturn: int
    outcome: str | None
    created_at: datetime
    concluded_at: datetime | None
    jurors: list[str] = Field(default_factory=list)

    model_config = ConfigDict(from_attributes=True)
