"""Report filing and review endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query, status

from research_commons.api.v1.dependencies import (
    ClientIPDep,
    CurrentUserDep,
    SessionDep,
    rate_limit,
)
from research_commons.models import Report, ReportStatus
from research_commons.schemas.report import (
    ReportCreate,
    ReportReopen,
    ReportResponse,
    ReportUpdate,
)
from research_commons.services.reports import ReportWorkflow

router = APIRouter(prefix="/reports", tags=["reports"])


@router.post(
    "",
    response_model=ReportResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(rate_limit("report"))],
)
async def file_report(
    payload: ReportCreate,
    current_user: CurrentUserDep,
    db: SessionDep,
    ip: ClientIPDep,
) -> Report:
    """Report a post or comment for moderator review."""
    return ReportWorkflow(db).file(
        current_user.id,
        payload.content_type,
        payload.content_id,
        payload.reason,
        source_ip=ip,
    )


@router.get(
    "",
    response_model=list[ReportResponse],
    dependencies=[Depends(rate_limit("read"))],
)
async def list_reports(
    current_user: CurrentUserDep,
    db: SessionDep,
    ip: ClientIPDep,
    status_filter: ReportStatus | None = Query(None, alias="status"),
    content_id: int | None = Query(None),
    limit: int = Query(50, ge=1, le=100),
    offset: int = Query(0, ge=0),
) -> list[Report]:
    """List reports for moderators, newest first."""
    return ReportWorkflow(db).list(
        current_user.id,
        status=status_filter,
        content_id=content_id,
        limit=limit,
        offset=offset,
        source_ip=ip,
    )


@router.get(
    "/{report_id}",
    response_model=ReportResponse,
    dependencies=[Depends(rate_limit("read"))],
)
async def get_report(
    report_id: int,
    current_user: CurrentUserDep,
    db: SessionDep,
    ip: ClientIPDep,
) -> Report:
    """Fetch one report; visible to staff and to its reporter."""
    return ReportWorkflow(db).get(report_id, current_user.id, source_ip=ip)


@router.put(
    "/{report_id}",
    response_model=ReportResponse,
    dependencies=[Depends(rate_limit("write"))],
)
async def update_report(
    report_id: int,
    payload: ReportUpdate,
    current_user: CurrentUserDep,
    db: SessionDep,
    ip: ClientIPDep,
) -> Report:
    """Move a report through review, optionally acting on the content."""
    return ReportWorkflow(db).update(
        report_id,
        current_user.id,
        payload.status,
        payload.action,
        source_ip=ip,
    )


@router.post(
    "/{report_id}/reopen",
    response_model=ReportResponse,
    dependencies=[Depends(rate_limit("write"))],
)
async def reopen_report(
    report_id: int,
    payload: ReportReopen,
    current_user: CurrentUserDep,
    db: SessionDep,
    ip: ClientIPDep,
) -> Report:
    """Send a resolved or dismissed report back to pending (admin only)."""
    return ReportWorkflow(db).reopen(report_id, current_user.id, payload.reason, source_ip=ip)
