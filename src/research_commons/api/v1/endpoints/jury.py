"""Jury deliberation endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, status

from research_commons.api.v1.dependencies import (
    ClientIPDep,
    CurrentUserDep,
    SessionDep,
    rate_limit,
)
from research_commons.models import Appeal, JuryDeliberation
from research_commons.schemas.appeal import AppealDecision, AppealResponse
from research_commons.schemas.jury import JuryDeliberationResponse, JuryOpen, JuryVoteCreate
from research_commons.services.jury import JuryService

router = APIRouter(prefix="/jury", tags=["jury"])


def _deliberation_response(
    service: JuryService,
    deliberation: JuryDeliberation,
) -> JuryDeliberationResponse:
    response = JuryDeliberationResponse.model_validate(deliberation)
    response.jurors = service.jurors_of(deliberation.id)
    return response


@router.post(
    "/deliberations",
    response_model=JuryDeliberationResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(rate_limit("write"))],
)
async def open_deliberation(
    payload: JuryOpen,
    current_user: CurrentUserDep,
    db: SessionDep,
    ip: ClientIPDep,
) -> JuryDeliberationResponse:
    """Convene a jury for a pending appeal (admin only)."""
    service = JuryService(db)
    deliberation = service.open(
        payload.appeal_id,
        current_user.id,
        quorum=payload.quorum,
        deadline_hours=payload.deadline_hours,
        jurors=payload.jurors,
        source_ip=ip,
    )
    return _deliberation_response(service, deliberation)


@router.get(
    "/deliberations/{deliberation_id}",
    response_model=JuryDeliberationResponse,
    dependencies=[Depends(rate_limit("read"))],
)
async def get_deliberation(
    deliberation_id: int,
    current_user: CurrentUserDep,
    db: SessionDep,
    ip: ClientIPDep,
) -> JuryDeliberationResponse:
    """Fetch a deliberation and its current tally."""
    service = JuryService(db)
    deliberation = service.get_deliberation(deliberation_id, current_user.id, source_ip=ip)
    return _deliberation_response(service, deliberation)


@router.post(
    "/deliberations/{deliberation_id}/votes",
    response_model=JuryDeliberationResponse,
    dependencies=[Depends(rate_limit("write"))],
)
async def cast_vote(
    deliberation_id: int,
    payload: JuryVoteCreate,
    current_user: CurrentUserDep,
    db: SessionDep,
    ip: ClientIPDep,
) -> JuryDeliberationResponse:
    """Cast the caller's vote as an assigned juror."""
    service = JuryService(db)
    deliberation = service.cast_vote(
        deliberation_id,
        current_user.id,
        payload.verdict,
        payload.reasoning,
        source_ip=ip,
    )
    return _deliberation_response(service, deliberation)


@router.post(
    "/appeals/{appeal_id}/decision",
    response_model=AppealResponse,
    dependencies=[Depends(rate_limit("write"))],
)
async def decide_escalated_appeal(
    appeal_id: int,
    payload: AppealDecision,
    current_user: CurrentUserDep,
    db: SessionDep,
    ip: ClientIPDep,
) -> Appeal:
    """Rule on an appeal whose jury tied or timed out (admin only)."""
    return JuryService(db).decide_escalated(
        appeal_id,
        current_user.id,
        payload.verdict,
        payload.admin_response,
        source_ip=ip,
    )
