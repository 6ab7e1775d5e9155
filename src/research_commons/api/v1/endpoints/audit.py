"""Audit trail endpoints (administrators only)."""

from __future__ import annotations

from datetime import datetime

from fastapi import APIRouter, Depends, Query

from research_commons.api.v1.dependencies import (
    ClientIPDep,
    CurrentUserDep,
    SessionDep,
    rate_limit,
)
from research_commons.core.errors import AuthorizationError
from research_commons.models import AuditCategory, AuditEvent
from research_commons.schemas.audit import AuditEventResponse
from research_commons.services.audit import AuditLog
from research_commons.services.identity import RoleDirectory
from research_commons.services.permissions import Operation, is_allowed

router = APIRouter(prefix="/audit", tags=["audit"])


@router.get(
    "",
    response_model=list[AuditEventResponse],
    dependencies=[Depends(rate_limit("read"))],
)
async def list_audit_events(
    current_user: CurrentUserDep,
    db: SessionDep,
    ip: ClientIPDep,
    category: AuditCategory | None = Query(None),
    action: str | None = Query(None),
    actor_id: str | None = Query(None),
    since: datetime | None = Query(None),
    limit: int = Query(100, ge=1, le=500),
    offset: int = Query(0, ge=0),
) -> list[AuditEvent]:
    """Search the audit trail, newest first."""
    log = AuditLog(db)
    if not is_allowed(RoleDirectory(db).role_of(current_user.id), Operation.VIEW_AUDIT_LOG):
        log.record(
            "unauthorized_attempt",
            current_user.id,
            {"operation": Operation.VIEW_AUDIT_LOG.value},
            category="moderation",
            source_ip=ip,
        )
        db.commit()
        raise AuthorizationError()
    return log.list_events(
        category=category,
        action=action,
        actor_id=actor_id,
        since=since,
        limit=limit,
        offset=offset,
    )
