"""Human review workflow for reports filed against content."""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime
from typing import Any, NoReturn

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from research_commons.core.errors import (
    AuthorizationError,
    DuplicateError,
    InvalidTransitionError,
    NotFoundError,
    SelfReportError,
    ValidationError,
)
from research_commons.core.settings import settings
from research_commons.db.time import utcnow
from research_commons.models import ContentType, Report, ReportAction, ReportStatus
from research_commons.services.audit import AuditLog
from research_commons.services.content_store import ContentStore, SqlContentStore
from research_commons.services.identity import RoleDirectory
from research_commons.services.notifications import Notifier, SqlNotifier
from research_commons.services.permissions import Operation, is_allowed
from research_commons.services.report_states import TRANSITION_ACTIONS, ensure_transition

logger = logging.getLogger(__name__)


class ReportWorkflow:
    """File, review and reopen reports.

    Every state change is committed with a compare-and-swap on the current
    status, so two moderators racing on the same report cannot both win.
    """

    def __init__(
        self,
        db: Session,
        *,
        content_store: ContentStore | None = None,
        roles: RoleDirectory | None = None,
        audit: AuditLog | None = None,
        notifier: Notifier | None = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.db = db
        self.content_store = content_store or SqlContentStore(db)
        self.roles = roles or RoleDirectory(db)
        self.audit = audit or AuditLog(db)
        self.notifier = notifier or SqlNotifier(db)
        self.clock = clock

    # --- Filing ---------------------------------------------------------------------
    def file(
        self,
        reporter_id: str | None,
        content_type: ContentType | str,
        content_id: int | None,
        reason: str,
        *,
        moderation_data: dict[str, Any] | None = None,
        content_snapshot: dict[str, Any] | None = None,
        source_ip: str | None = None,
    ) -> Report:
        """Open a pending report.

        ``reporter_id`` is ``None`` for reports raised by the moderation gate;
        such reports may omit ``content_id`` when the content was never stored.

        Raises:
            ValidationError: Reason length out of bounds or missing snapshot.
            NotFoundError: A user report targets content that does not exist.
            SelfReportError: The reporter authored the content.
            DuplicateError: The reporter already has a pending report on it.
        """
        content_type = ContentType(content_type)
        reason = (reason or "").strip()
        if not (
            settings.report_reason_min_length <= len(reason) <= settings.report_reason_max_length
        ):
            raise ValidationError(
                f"Reason must be between {settings.report_reason_min_length} and "
                f"{settings.report_reason_max_length} characters"
            )

        if reporter_id is not None:
            if content_id is None:
                raise ValidationError("content_id is required")
            item = self.content_store.fetch(content_type, content_id)
            if item is None:
                raise NotFoundError(f"{content_type.value.capitalize()} not found")
            if item.author_id == reporter_id:
                raise SelfReportError("You cannot report your own content")
            if self._has_pending(reporter_id, content_type, content_id):
                raise DuplicateError("You have already reported this content")
            if content_snapshot is None:
                content_snapshot = {
                    "title": item.title,
                    "content": item.body,
                    "author_id": item.author_id,
                }
        elif content_snapshot is None:
            if content_id is None:
                raise ValidationError("System reports need a content snapshot")
            item = self.content_store.fetch(content_type, content_id)
            if item is None:
                raise NotFoundError(f"{content_type.value.capitalize()} not found")
            content_snapshot = {
                "title": item.title,
                "content": item.body,
                "author_id": item.author_id,
            }

        now = self.clock()
        report = Report(
            content_type=content_type.value,
            content_id=content_id,
            reporter_id=reporter_id,
            reason=reason,
            status=ReportStatus.PENDING.value,
            content_snapshot=dict(content_snapshot),
            moderation_data=moderation_data,
            created_at=now,
            updated_at=now,
        )
        try:
            with self.db.begin_nested():
                self.db.add(report)
                self.db.flush()
        except IntegrityError as exc:
            raise DuplicateError("You have already reported this content") from exc

        self.audit.record(
            "content_flagged",
            reporter_id,
            {
                "report_id": report.id,
                "content_type": content_type.value,
                "content_id": content_id,
                "system": reporter_id is None,
            },
            source_ip=source_ip,
        )
        self.db.commit()
        self.db.refresh(report)
        return report

    def _has_pending(self, reporter_id: str, content_type: ContentType, content_id: int) -> bool:
        stmt = select(Report.id).where(
            Report.reporter_id == reporter_id,
            Report.content_type == content_type.value,
            Report.content_id == content_id,
            Report.status == ReportStatus.PENDING.value,
        )
        return self.db.scalar(stmt) is not None

    # --- Review ---------------------------------------------------------------------
    def update(
        self,
        report_id: int,
        actor_id: str,
        new_status: ReportStatus | str,
        action: ReportAction | str = ReportAction.NONE,
        *,
        source_ip: str | None = None,
    ) -> Report:
        """Move a report to ``new_status``, optionally acting on the content.

        Raises:
            AuthorizationError: The actor is not a moderator or administrator.
            NotFoundError: The report does not exist.
            InvalidTransitionError: The move is illegal or lost a race.
            ValidationError: An action was attached to a non-resolving move.
        """
        target = ReportStatus(new_status)
        action = ReportAction(action)
        self._authorize(actor_id, Operation.REVIEW_REPORT, report_id, source_ip)

        report = self._load(report_id)
        current = ReportStatus(report.status)
        self._check_transition(report, current, target, actor_id, source_ip)
        if action is not ReportAction.NONE and target is not ReportStatus.RESOLVED:
            raise ValidationError("Actions can only accompany a resolved report")

        if action is ReportAction.DELETE_CONTENT and report.content_id is not None:
            deleted = self.content_store.delete(ContentType(report.content_type), report.content_id)
            if not deleted:
                logger.info("Content for report %s was already removed", report_id)

        now = self.clock()
        self._swap_status(
            report_id,
            current,
            target,
            actor_id,
            source_ip,
            reviewed_by=actor_id,
            reviewed_at=now,
            updated_at=now,
            action_taken=None if action is ReportAction.NONE else action.value,
        )
        self.audit.record(
            TRANSITION_ACTIONS[target],
            actor_id,
            {
                "report_id": report_id,
                "from_status": current.value,
                "to_status": target.value,
                "action": action.value,
            },
            source_ip=source_ip,
        )
        self._notify_review(report, target, action)
        self.db.commit()
        self.db.refresh(report)
        return report

    def reopen(
        self,
        report_id: int,
        actor_id: str,
        reason: str,
        *,
        source_ip: str | None = None,
    ) -> Report:
        """Send a closed report back to pending. Administrators only."""
        self._authorize(actor_id, Operation.REOPEN_REPORT, report_id, source_ip)
        reason = (reason or "").strip()
        if not reason:
            raise ValidationError("A reason is required to reopen a report")

        report = self._load(report_id)
        current = ReportStatus(report.status)
        self._check_transition(
            report,
            current,
            ReportStatus.PENDING,
            actor_id,
            source_ip,
            reopening=True,
        )

        try:
            self._swap_status(
                report_id,
                current,
                ReportStatus.PENDING,
                actor_id,
                source_ip,
                updated_at=self.clock(),
            )
        except IntegrityError as exc:
            self.db.rollback()
            raise DuplicateError("Reporter already has a pending report on this content") from exc

        self.audit.record(
            TRANSITION_ACTIONS[ReportStatus.PENDING],
            actor_id,
            {
                "report_id": report_id,
                "from_status": current.value,
                "to_status": ReportStatus.PENDING.value,
                "reason": reason,
            },
            source_ip=source_ip,
        )
        self.db.commit()
        self.db.refresh(report)
        return report

    # --- Reads ----------------------------------------------------------------------
    def get(self, report_id: int, actor_id: str, *, source_ip: str | None = None) -> Report:
        """Return a report visible to staff or to its reporter."""
        report = self.db.get(Report, report_id)
        staff = is_allowed(self.roles.role_of(actor_id), Operation.LIST_REPORTS)
        if report is None and staff:
            raise NotFoundError("Report not found")
        if report is None or (report.reporter_id != actor_id and not staff):
            self._deny(actor_id, "view_report", {"report_id": report_id}, source_ip)
        return report

    def list(
        self,
        actor_id: str,
        *,
        status: ReportStatus | str | None = None,
        content_id: int | None = None,
        limit: int = 50,
        offset: int = 0,
        source_ip: str | None = None,
    ) -> list[Report]:
        """Return reports newest first. Staff only."""
        if not is_allowed(self.roles.role_of(actor_id), Operation.LIST_REPORTS):
            self._deny(actor_id, Operation.LIST_REPORTS.value, {}, source_ip)
        stmt = select(Report)
        if status is not None:
            stmt = stmt.where(Report.status == ReportStatus(status).value)
        if content_id is not None:
            stmt = stmt.where(Report.content_id == content_id)
        stmt = stmt.order_by(Report.created_at.desc(), Report.id.desc()).limit(limit).offset(offset)
        return list(self.db.scalars(stmt))

    # --- Helpers --------------------------------------------------------------------
    def _authorize(
        self,
        actor_id: str,
        operation: Operation,
        report_id: int,
        source_ip: str | None,
    ) -> None:
        if is_allowed(self.roles.role_of(actor_id), operation):
            return
        self._deny(actor_id, operation.value, {"report_id": report_id}, source_ip)

    def _deny(
        self,
        actor_id: str,
        operation: str,
        metadata: dict[str, Any],
        source_ip: str | None,
    ) -> NoReturn:
        self.audit.record(
            "unauthorized_attempt",
            actor_id,
            {"operation": operation, **metadata},
            category="moderation",
            source_ip=source_ip,
        )
        self.db.commit()
        raise AuthorizationError()

    def _load(self, report_id: int) -> Report:
        report = self.db.get(Report, report_id)
        if report is None:
            raise NotFoundError("Report not found")
        return report

    def _check_transition(
        self,
        report: Report,
        current: ReportStatus,
        target: ReportStatus,
        actor_id: str,
        source_ip: str | None,
        *,
        reopening: bool = False,
    ) -> None:
        try:
            ensure_transition(current, target, reopening=reopening)
        except InvalidTransitionError:
            self.audit.record(
                "invalid_transition",
                actor_id,
                {
                    "report_id": report.id,
                    "from_status": current.value,
                    "to_status": target.value,
                },
                category="moderation",
                source_ip=source_ip,
            )
            self.db.commit()
            raise

    def _swap_status(
        self,
        report_id: int,
        expected: ReportStatus,
        target: ReportStatus,
        actor_id: str,
        source_ip: str | None,
        **values: Any,
    ) -> None:
        result = self.db.execute(
            update(Report)
            .where(Report.id == report_id, Report.status == expected.value)
            .values(status=target.value, **values)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            self.db.rollback()
            self.audit.record(
                "invalid_transition",
                actor_id,
                {
                    "report_id": report_id,
                    "expected_status": expected.value,
                    "to_status": target.value,
                },
                category="moderation",
                source_ip=source_ip,
            )
            self.db.commit()
            raise InvalidTransitionError("Report was changed by another reviewer; reload and retry")

    def _notify_review(self, report: Report, target: ReportStatus, action: ReportAction) -> None:
        if report.reporter_id and target in (ReportStatus.RESOLVED, ReportStatus.DISMISSED):
            outcome = "action was taken" if target is ReportStatus.RESOLVED else "it was dismissed"
            self.notifier.notify(
                report.reporter_id,
                "report_reviewed",
                "Your report was reviewed",
                f"A moderator reviewed your report and {outcome}.",
            )
        author_id = (report.content_snapshot or {}).get("author_id")
        if author_id and action is not ReportAction.NONE:
            message = (
                "Your content was removed after a moderation review."
                if action is ReportAction.DELETE_CONTENT
                else "A moderator issued a warning about your content."
            )
            self.notifier.notify(
                author_id,
                "moderation_action",
                "Moderation action on your content",
                f"{message} You may appeal this decision.",
            )
