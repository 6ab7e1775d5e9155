"""Appeals against closed moderation reports."""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from research_commons.core.errors import (
    AuthorizationError,
    DuplicateError,
    NotFoundError,
    ValidationError,
)
from research_commons.core.settings import settings
from research_commons.db.time import utcnow
from research_commons.models import Appeal, AppealStatus, Report, ReportStatus
from research_commons.services.audit import AuditLog
from research_commons.services.identity import RoleDirectory
from research_commons.services.permissions import Operation, is_allowed


def affected_party(report: Report) -> str | None:
    """Return the user entitled to appeal ``report``.

    The content author may contest a resolved report; the reporter may
    contest a dismissal.
    """
    if report.status == ReportStatus.RESOLVED.value:
        return (report.content_snapshot or {}).get("author_id")
    if report.status == ReportStatus.DISMISSED.value:
        return report.reporter_id
    return None


class AppealService:
    """Accepts and lists appeals."""

    def __init__(
        self,
        db: Session,
        *,
        roles: RoleDirectory | None = None,
        audit: AuditLog | None = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.db = db
        self.roles = roles or RoleDirectory(db)
        self.audit = audit or AuditLog(db)
        self.clock = clock

    def file(
        self,
        report_id: int,
        appellant_id: str,
        dispute_reason: str,
        *,
        source_ip: str | None = None,
    ) -> Appeal:
        """Open an appeal against a resolved or dismissed report.

        Raises:
            NotFoundError: The report does not exist.
            ValidationError: The report is still open or the reason is too short.
            AuthorizationError: The appellant is not the affected party.
            DuplicateError: The report already has an appeal.
        """
        report = self.db.get(Report, report_id)
        if report is None:
            raise NotFoundError("Report not found")
        if report.status not in (ReportStatus.RESOLVED.value, ReportStatus.DISMISSED.value):
            raise ValidationError("Only resolved or dismissed reports can be appealed")
        if affected_party(report) != appellant_id:
            self.audit.record(
                "unauthorized_attempt",
                appellant_id,
                {"operation": "file_appeal", "report_id": report_id},
                category="moderation",
                source_ip=source_ip,
            )
            self.db.commit()
            raise AuthorizationError()

        dispute_reason = (dispute_reason or "").strip()
        if len(dispute_reason) < settings.appeal_reason_min_length:
            raise ValidationError(
                f"Dispute reason must be at least {settings.appeal_reason_min_length} characters"
            )
        if self.db.scalar(select(Appeal.id).where(Appeal.report_id == report_id)) is not None:
            raise DuplicateError("This decision has already been appealed")

        appeal = Appeal(
            report_id=report_id,
            appellant_id=appellant_id,
            dispute_reason=dispute_reason,
            status=AppealStatus.PENDING.value,
            created_at=self.clock(),
        )
        try:
            with self.db.begin_nested():
                self.db.add(appeal)
                self.db.flush()
        except IntegrityError as exc:
            raise DuplicateError("This decision has already been appealed") from exc

        self.audit.record(
            "appeal_submitted",
            appellant_id,
            {"appeal_id": appeal.id, "report_id": report_id, "report_status": report.status},
            source_ip=source_ip,
        )
        self.db.commit()
        self.db.refresh(appeal)
        return appeal

    def get(self, appeal_id: int, actor_id: str, *, source_ip: str | None = None) -> Appeal:
        """Return an appeal visible to its appellant or to staff."""
        appeal = self.db.get(Appeal, appeal_id)
        staff = is_allowed(self.roles.role_of(actor_id), Operation.LIST_REPORTS)
        if appeal is None and staff:
            raise NotFoundError("Appeal not found")
        if appeal is None or (appeal.appellant_id != actor_id and not staff):
            self.audit.record(
                "unauthorized_attempt",
                actor_id,
                {"operation": "view_appeal", "appeal_id": appeal_id},
                category="moderation",
                source_ip=source_ip,
            )
            self.db.commit()
            raise AuthorizationError()
        return appeal

    def list_for(self, actor_id: str, *, status: AppealStatus | str | None = None) -> list[Appeal]:
        """Return all appeals for staff, otherwise only the actor's own."""
        stmt = select(Appeal)
        if not is_allowed(self.roles.role_of(actor_id), Operation.LIST_REPORTS):
            stmt = stmt.where(Appeal.appellant_id == actor_id)
        if status is not None:
            stmt = stmt.where(Appeal.status == AppealStatus(status).value)
        stmt = stmt.order_by(Appeal.created_at.desc(), Appeal.id.desc())
        return list(self.db.scalars(stmt))
