"""Trust profile endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, status

from research_commons.api.v1.dependencies import (
    ClientIPDep,
    CurrentUserDep,
    SessionDep,
    rate_limit,
)
from research_commons.models import ContentType, TrustProfile
from research_commons.schemas.trust import TrustProfileResponse, TrustSignalsIn
from research_commons.services.trust import TrustScorer, TrustSignals

router = APIRouter(prefix="/trust", tags=["trust"])


@router.put(
    "/{content_type}/{content_id}",
    response_model=TrustProfileResponse,
    dependencies=[Depends(rate_limit("write"))],
)
async def score_content(
    content_type: ContentType,
    content_id: int,
    payload: TrustSignalsIn,
    current_user: CurrentUserDep,
    db: SessionDep,
    ip: ClientIPDep,
) -> TrustProfile:
    """Recompute and store the trust profile for one content item."""
    signals = TrustSignals(**payload.model_dump())
    return TrustScorer(db).score(
        content_id,
        content_type,
        signals,
        actor_id=current_user.id,
        source_ip=ip,
    )


@router.get(
    "/{content_type}/{content_id}",
    response_model=TrustProfileResponse,
    dependencies=[Depends(rate_limit("read"))],
)
async def get_trust_profile(
    content_type: ContentType,
    content_id: int,
    db: SessionDep,
) -> TrustProfile:
    """Return the stored trust profile."""
    profile = TrustScorer(db).get(content_id, content_type)
    if profile is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Trust profile not found",
        )
    return profile
