"""Content submission endpoints."""

from __future__ import annotations

from fastapi import APIRouter, status

from research_commons.api.v1.dependencies import (
    ClientIPDep,
    CurrentUserDep,
    ModerationGateDep,
    RateLimiterDep,
    SessionDep,
)
from research_commons.schemas.content import ContentCreate, ContentResponse, SubmissionResponse
from research_commons.services.submission import ContentSubmission

router = APIRouter(prefix="/content", tags=["content"])


@router.post("", response_model=SubmissionResponse, status_code=status.HTTP_201_CREATED)
async def submit_content(
    payload: ContentCreate,
    current_user: CurrentUserDep,
    db: SessionDep,
    gate: ModerationGateDep,
    limiter: RateLimiterDep,
    ip: ClientIPDep,
) -> SubmissionResponse:
    """Submit a post or comment through the moderation gate.

    The ``write`` rate limit is charged by the submission workflow itself.
    """
    submission = ContentSubmission(db, gate=gate, rate_limiter=limiter)
    result = await submission.submit(
        current_user.id,
        payload.content_type,
        payload.body,
        title=payload.title,
        parent_id=payload.parent_id,
        client_ip=ip,
    )
    return SubmissionResponse(
        content=ContentResponse.model_validate(result.item),
        warnings=list(result.warnings),
        degraded=result.degraded,
    )
