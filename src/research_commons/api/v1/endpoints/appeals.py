"""Appeal endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query, status

from research_commons.api.v1.dependencies import (
    ClientIPDep,
    CurrentUserDep,
    SessionDep,
    rate_limit,
)
from research_commons.models import Appeal, AppealStatus
from research_commons.schemas.appeal import AppealCreate, AppealResponse
from research_commons.services.appeals import AppealService

router = APIRouter(prefix="/appeals", tags=["appeals"])


@router.post(
    "",
    response_model=AppealResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(rate_limit("write"))],
)
async def file_appeal(
    payload: AppealCreate,
    current_user: CurrentUserDep,
    db: SessionDep,
    ip: ClientIPDep,
) -> Appeal:
    """Appeal a resolved or dismissed report."""
    return AppealService(db).file(
        payload.report_id,
        current_user.id,
        payload.dispute_reason,
        source_ip=ip,
    )


@router.get(
    "",
    response_model=list[AppealResponse],
    dependencies=[Depends(rate_limit("read"))],
)
async def list_appeals(
    current_user: CurrentUserDep,
    db: SessionDep,
    status_filter: AppealStatus | None = Query(None, alias="status"),
) -> list[Appeal]:
    """List the caller's appeals, or every appeal for staff."""
    return AppealService(db).list_for(current_user.id, status=status_filter)


@router.get(
    "/{appeal_id}",
    response_model=AppealResponse,
    dependencies=[Depends(rate_limit("read"))],
)
async def get_appeal(
    appeal_id: int,
    current_user: CurrentUserDep,
    db: SessionDep,
    ip: ClientIPDep,
) -> Appeal:
    """Fetch one appeal."""
    return AppealService(db).get(appeal_id, current_user.id, source_ip=ip)
