"""Conflict recording and adjudication endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, status

from research_commons.api.v1.dependencies import (
    ClientIPDep,
    CurrentUserDep,
    SessionDep,
    rate_limit,
)
from research_commons.models import ConflictRecord
from research_commons.schemas.conflict import (
    ClaimIn,
    ConflictAdjudicate,
    ConflictCreate,
    ConflictResponse,
)
from research_commons.services.conflicts import Claim, ConflictResolver

router = APIRouter(prefix="/conflicts", tags=["conflicts"])


def _claim(payload: ClaimIn) -> Claim:
    return Claim(
        value=payload.value,
        valid_from=payload.valid_from,
        valid_until=payload.valid_until,
    )


@router.post(
    "",
    response_model=ConflictResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(rate_limit("write"))],
)
async def record_conflict(
    payload: ConflictCreate,
    current_user: CurrentUserDep,
    db: SessionDep,
    ip: ClientIPDep,
) -> ConflictRecord:
    """Classify, resolve and store a field-versus-external contradiction."""
    record, _ = ConflictResolver(db).record(
        _claim(payload.field_claim),
        payload.field_timestamp,
        _claim(payload.external_claim),
        payload.external_timestamp,
        external_source_id=payload.external_source_id,
        external_source_trust=payload.external_source_trust,
        field_source_trust=payload.field_source_trust,
        field_content_id=payload.field_content_id,
        field_content_type=payload.field_content_type,
        location_name=payload.location_name,
        actor_id=current_user.id,
        source_ip=ip,
    )
    return record


@router.get(
    "/{conflict_id}",
    response_model=ConflictResponse,
    dependencies=[Depends(rate_limit("read"))],
)
async def get_conflict(conflict_id: int, db: SessionDep) -> ConflictRecord:
    """Fetch one conflict record."""
    return ConflictResolver(db).get(conflict_id)


@router.post(
    "/{conflict_id}/adjudicate",
    response_model=ConflictResponse,
    dependencies=[Depends(rate_limit("write"))],
)
async def adjudicate_conflict(
    conflict_id: int,
    payload: ConflictAdjudicate,
    current_user: CurrentUserDep,
    db: SessionDep,
    ip: ClientIPDep,
) -> ConflictRecord:
    """Record a moderator's decision on an open conflict."""
    return ConflictResolver(db).adjudicate(
        conflict_id,
        current_user.id,
        payload.resolution,
        payload.notes,
        source_ip=ip,
    )


@router.post(
    "/{conflict_id}/action-taken",
    response_model=ConflictResponse,
    dependencies=[Depends(rate_limit("write"))],
)
async def mark_action_taken(
    conflict_id: int,
    current_user: CurrentUserDep,
    db: SessionDep,
    ip: ClientIPDep,
) -> ConflictRecord:
    """Flag that the suggested follow-up was carried out."""
    return ConflictResolver(db).mark_action_taken(conflict_id, current_user.id, source_ip=ip)
