"""Quorum-based jury deliberations on appeals."""

from __future__ import annotations

import logging
import random
from collections.abc import Callable, Iterator, Sequence
from contextlib import contextmanager
from datetime import datetime, timedelta
from threading import Lock
from typing import Final, NoReturn

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from research_commons.core.errors import (
    AuthorizationError,
    ClosedError,
    DuplicateError,
    DuplicateVoteError,
    InvalidTransitionError,
    NotFoundError,
    ValidationError,
)
from research_commons.core.settings import settings
from research_commons.db.time import as_utc, utcnow
from research_commons.models import (
    Appeal,
    AppealStatus,
    ContentType,
    DeliberationStatus,
    JuryAssignment,
    JuryDeliberation,
    JuryOutcome,
    JuryVote,
    Report,
    ReportAction,
    Role,
    Verdict,
)
from research_commons.services.audit import AuditLog
from research_commons.services.content_store import ContentStore, SqlContentStore
from research_commons.services.identity import RoleDirectory
from research_commons.services.notifications import Notifier, SqlNotifier
from research_commons.services.permissions import Operation, eligible_roles, is_allowed

logger = logging.getLogger(__name__)

_APPEAL_STATUS_FOR: Final[dict[JuryOutcome, AppealStatus]] = {
    JuryOutcome.UPHOLD: AppealStatus.UPHELD,
    JuryOutcome.OVERTURN: AppealStatus.OVERTURNED,
    JuryOutcome.ESCALATED: AppealStatus.ESCALATED,
}


def tally_outcome(votes_uphold: int, votes_overturn: int) -> JuryOutcome:
    """Return the strict-majority outcome; an exact tie escalates."""
    if votes_uphold > votes_overturn:
        return JuryOutcome.UPHOLD
    if votes_overturn > votes_uphold:
        return JuryOutcome.OVERTURN
    return JuryOutcome.ESCALATED


class JuryService:
    """Convene juries, collect votes and apply their outcome.

    Votes on one deliberation are serialized by an in-process lock, and the
    final status flip is a compare-and-swap on ``active``, so an outcome is
    applied exactly once. Overdue deliberations are timed out when they are
    next voted on or read, or in bulk by :meth:`expire_overdue`.
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
        rng: random.Random | None = None,
    ) -> None:
        self.db = db
        self.content_store = content_store or SqlContentStore(db)
        self.roles = roles or RoleDirectory(db)
        self.audit = audit or AuditLog(db)
        self.notifier = notifier or SqlNotifier(db)
        self.clock = clock
        self.rng = rng or random.SystemRandom()

    # --- Convening ------------------------------------------------------------------
    def open(
        self,
        appeal_id: int,
        actor_id: str,
        quorum: int | None = None,
        deadline_hours: int | None = None,
        jurors: Sequence[str] | None = None,
        *,
        source_ip: str | None = None,
    ) -> JuryDeliberation:
        """Convene a jury for a pending appeal. Administrators only.

        When ``jurors`` is omitted, ``quorum`` eligible users are drawn at
        random. Parties to the case never sit on its jury.

        Raises:
            AuthorizationError: The actor is not an administrator.
            NotFoundError: The appeal does not exist.
            DuplicateError: A deliberation already exists for the appeal.
            InvalidTransitionError: The appeal is not pending.
            ValidationError: Bad quorum or not enough eligible jurors.
        """
        self._authorize(actor_id, Operation.OPEN_JURY, {"appeal_id": appeal_id}, source_ip)
        appeal = self.db.get(Appeal, appeal_id)
        if appeal is None:
            raise NotFoundError("Appeal not found")
        existing = self.db.scalar(
            select(JuryDeliberation.id).where(JuryDeliberation.appeal_id == appeal_id)
        )
        if existing is not None:
            raise DuplicateError("A jury has already been convened for this appeal")
        if appeal.status != AppealStatus.PENDING.value:
            self._reject_transition(
                actor_id,
                {
                    "appeal_id": appeal_id,
                    "from_status": appeal.status,
                    "to_status": AppealStatus.UNDER_JURY_REVIEW.value,
                },
                source_ip,
                f"Appeal is {appeal.status}, not pending",
            )

        quorum = settings.jury_default_quorum if quorum is None else quorum
        deadline_hours = (
            settings.jury_default_deadline_hours if deadline_hours is None else deadline_hours
        )
        if quorum < 1:
            raise ValidationError("Quorum must be at least 1")
        if deadline_hours < 1:
            raise ValidationError("Deadline must be at least one hour away")

        selected = self._select_jurors(appeal, quorum, jurors)
        now = self.clock()
        deliberation = JuryDeliberation(
            appeal_id=appeal_id,
            quorum=quorum,
            deadline=now + timedelta(hours=deadline_hours),
            status=DeliberationStatus.ACTIVE.value,
            votes_uphold=0,
            votes_overturn=0,
            created_by=actor_id,
            created_at=now,
        )
        try:
            with self.db.begin_nested():
                self.db.add(deliberation)
                self.db.flush()
                for juror_id in selected:
                    self.db.add(
                        JuryAssignment(
                            deliberation_id=deliberation.id,
                            juror_id=juror_id,
                            assigned_at=now,
                        )
                    )
                appeal.status = AppealStatus.UNDER_JURY_REVIEW.value
                self.db.flush()
        except IntegrityError as exc:
            raise DuplicateError("A jury has already been convened for this appeal") from exc

        self.audit.record(
            "jury_convened",
            actor_id,
            {
                "deliberation_id": deliberation.id,
                "appeal_id": appeal_id,
                "quorum": quorum,
                "jurors": list(selected),
            },
            source_ip=source_ip,
        )
        for juror_id in selected:
            self.notifier.notify(
                juror_id,
                "jury_duty",
                "You have been selected for jury duty",
                "Please review the appeal and cast your vote before the deadline.",
                link=f"/jury/deliberations/{deliberation.id}",
            )
        self.db.commit()
        self.db.refresh(deliberation)
        return deliberation

    def _select_jurors(
        self,
        appeal: Appeal,
        quorum: int,
        requested: Sequence[str] | None,
    ) -> list[str]:
        report = self.db.get(Report, appeal.report_id)
        excluded = {appeal.appellant_id}
        if report is not None:
            excluded.update(
                {
                    (report.content_snapshot or {}).get("author_id"),
                    report.reporter_id,
                    report.reviewed_by,
                }
            )
        eligible = [
            user.id
            for user in self.roles.users_with_roles(eligible_roles(Operation.SERVE_ON_JURY))
            if user.id not in excluded
        ]

        if requested is not None:
            chosen = list(dict.fromkeys(requested))
            ineligible = [juror for juror in chosen if juror not in eligible]
            if ineligible:
                raise ValidationError(f"Ineligible jurors: {', '.join(ineligible)}")
            if len(chosen) < quorum:
                raise ValidationError(f"At least {quorum} jurors are required")
            return chosen

        if len(eligible) < quorum:
            raise ValidationError(
                f"Not enough eligible jurors: need {quorum}, found {len(eligible)}"
            )
        return self.rng.sample(eligible, quorum)

    # --- Voting ---------------------------------------------------------------------
    def cast_vote(
        self,
        deliberation_id: int,
        juror_id: str,
        verdict: Verdict | str,
        reasoning: str,
        *,
        source_ip: str | None = None,
    ) -> JuryDeliberation:
        """Record one juror's vote and finalise once quorum is reached.

        Raises:
            ValidationError: Unknown verdict or reasoning too short.
            NotFoundError: The deliberation does not exist.
            AuthorizationError: The juror was not assigned.
            ClosedError: The deliberation is decided or past its deadline; an
                overdue deliberation is timed out before this is raised.
            DuplicateVoteError: The juror has already voted.
        """
        try:
            verdict = Verdict(verdict)
        except ValueError as exc:
            raise ValidationError("Verdict must be 'uphold' or 'overturn'") from exc
        reasoning = (reasoning or "").strip()
        if len(reasoning) < settings.jury_reasoning_min_length:
            raise ValidationError(
                f"Reasoning must be at least {settings.jury_reasoning_min_length} characters"
            )

        with _deliberation_lock(deliberation_id):
            deliberation = self.db.get(JuryDeliberation, deliberation_id)
            if deliberation is None:
                raise NotFoundError("Deliberation not found")
            self.db.refresh(deliberation)

            if not self._is_assigned(deliberation_id, juror_id):
                self._deny(
                    juror_id,
                    "jury_vote",
                    {"deliberation_id": deliberation_id},
                    source_ip,
                )

            now = self.clock()
            if deliberation.status != DeliberationStatus.ACTIVE.value:
                raise ClosedError("This deliberation is no longer active")
            if now >= as_utc(deliberation.deadline):
                self._time_out(deliberation, now)
                self.db.commit()
                raise ClosedError("This deliberation has expired")

            if self.db.get(JuryVote, (deliberation_id, juror_id)) is not None:
                raise DuplicateVoteError("You have already voted on this deliberation")
            vote = JuryVote(
                deliberation_id=deliberation_id,
                juror_id=juror_id,
                verdict=verdict.value,
                reasoning=reasoning,
                created_at=now,
            )
            try:
                with self.db.begin_nested():
                    self.db.add(vote)
                    self.db.flush()
            except IntegrityError as exc:
                raise DuplicateVoteError("You have already voted on this deliberation") from exc

            tally_column = (
                JuryDeliberation.votes_uphold
                if verdict is Verdict.UPHOLD
                else JuryDeliberation.votes_overturn
            )
            result = self.db.execute(
                update(JuryDeliberation)
                .where(
                    JuryDeliberation.id == deliberation_id,
                    JuryDeliberation.status == DeliberationStatus.ACTIVE.value,
                )
                .values({tally_column: tally_column + 1})
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                self.db.rollback()
                raise ClosedError("This deliberation is no longer active")

            self.audit.record(
                "jury_vote_cast",
                juror_id,
                {"deliberation_id": deliberation_id, "verdict": verdict.value},
                source_ip=source_ip,
            )
            self.db.refresh(deliberation)
            if deliberation.total_votes >= deliberation.quorum:
                outcome = tally_outcome(deliberation.votes_uphold, deliberation.votes_overturn)
                self._finalize(deliberation, outcome, DeliberationStatus.CONCLUDED, now)
            self.db.commit()
            self.db.refresh(deliberation)
            return deliberation

    def expire_overdue(self, now: datetime | None = None) -> list[int]:
        """Time out active deliberations past their deadline.

        Each becomes ``timed_out`` with an ``escalated`` outcome. Returns the
        ids that were expired by this call.
        """
        now = now or self.clock()
        active = self.db.scalars(
            select(JuryDeliberation).where(
                JuryDeliberation.status == DeliberationStatus.ACTIVE.value
            )
        ).all()
        expired: list[int] = []
        for deliberation in active:
            if now < as_utc(deliberation.deadline):
                continue
            with _deliberation_lock(deliberation.id):
                if self._time_out(deliberation, now):
                    expired.append(deliberation.id)
        self.db.commit()
        if expired:
            logger.info("Expired %d overdue jury deliberation(s)", len(expired))
        return expired

    def decide_escalated(
        self,
        appeal_id: int,
        admin_id: str,
        verdict: Verdict | str,
        admin_response: str,
        *,
        source_ip: str | None = None,
    ) -> Appeal:
        """Settle an escalated appeal by administrative decision."""
        self._authorize(
            admin_id,
            Operation.DECIDE_ESCALATED_APPEAL,
            {"appeal_id": appeal_id},
            source_ip,
        )
        try:
            verdict = Verdict(verdict)
        except ValueError as exc:
            raise ValidationError("Verdict must be 'uphold' or 'overturn'") from exc
        admin_response = (admin_response or "").strip()
        if not admin_response:
            raise ValidationError("A response to the appellant is required")

        appeal = self.db.get(Appeal, appeal_id)
        if appeal is None:
            raise NotFoundError("Appeal not found")
        outcome = JuryOutcome(verdict.value)
        result = self.db.execute(
            update(Appeal)
            .where(Appeal.id == appeal_id, Appeal.status == AppealStatus.ESCALATED.value)
            .values(
                status=_APPEAL_STATUS_FOR[outcome].value,
                admin_response=admin_response,
                resolved_by=admin_id,
                resolved_at=self.clock(),
            )
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            self.db.rollback()
            self._reject_transition(
                admin_id,
                {
                    "appeal_id": appeal_id,
                    "expected_status": AppealStatus.ESCALATED.value,
                    "to_status": _APPEAL_STATUS_FOR[outcome].value,
                },
                source_ip,
                "Only escalated appeals can be decided by an admin",
            )
        self.db.refresh(appeal)

        self._apply_to_report(appeal, outcome)
        self.audit.record(
            "appeal_decided",
            admin_id,
            {"appeal_id": appeal_id, "outcome": outcome.value, "decided_by": "admin"},
            source_ip=source_ip,
        )
        self._notify_appellant(appeal, outcome)
        self.db.commit()
        self.db.refresh(appeal)
        return appeal

    # --- Reads ----------------------------------------------------------------------
    def get_deliberation(
        self,
        deliberation_id: int,
        actor_id: str,
        *,
        source_ip: str | None = None,
    ) -> JuryDeliberation:
        """Return a deliberation visible to its jurors, the appellant and staff.

        An active deliberation read after its deadline is timed out first.
        """
        deliberation = self.db.get(JuryDeliberation, deliberation_id)
        role = self.roles.role_of(actor_id)
        staff = role in (Role.MODERATOR, Role.ADMIN)
        if deliberation is None and staff:
            raise NotFoundError("Deliberation not found")
        visible = staff
        if deliberation is not None and not visible:
            appeal = self.db.get(Appeal, deliberation.appeal_id)
            visible = (
                appeal is not None and appeal.appellant_id == actor_id
            ) or self._is_assigned(deliberation_id, actor_id)
        if not visible:
            self._deny(
                actor_id,
                "view_deliberation",
                {"deliberation_id": deliberation_id},
                source_ip,
            )
        now = self.clock()
        if (
            deliberation.status == DeliberationStatus.ACTIVE.value
            and now >= as_utc(deliberation.deadline)
        ):
            with _deliberation_lock(deliberation_id):
                self._time_out(deliberation, now)
                self.db.commit()
            self.db.refresh(deliberation)
        return deliberation

    def jurors_of(self, deliberation_id: int) -> list[str]:
        """Return the ids of jurors assigned to a deliberation."""
        stmt = (
            select(JuryAssignment.juror_id)
            .where(JuryAssignment.deliberation_id == deliberation_id)
            .order_by(JuryAssignment.juror_id)
        )
        return list(self.db.scalars(stmt))

    # --- Helpers --------------------------------------------------------------------
    def _authorize(
        self,
        actor_id: str,
        operation: Operation,
        metadata: dict[str, int],
        source_ip: str | None,
    ) -> None:
        if is_allowed(self.roles.role_of(actor_id), operation):
            return
        self._deny(actor_id, operation.value, metadata, source_ip)

    def _deny(
        self,
        actor_id: str,
        operation: str,
        metadata: dict[str, int],
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

    def _reject_transition(
        self,
        actor_id: str,
        metadata: dict[str, int | str],
        source_ip: str | None,
        message: str,
    ) -> NoReturn:
        self.audit.record(
            "invalid_transition",
            actor_id,
            metadata,
            category="moderation",
            source_ip=source_ip,
        )
        self.db.commit()
        raise InvalidTransitionError(message)

    def _is_assigned(self, deliberation_id: int, juror_id: str) -> bool:
        return self.db.get(JuryAssignment, (deliberation_id, juror_id)) is not None

    def _time_out(self, deliberation: JuryDeliberation, now: datetime) -> bool:
        """Close an overdue deliberation as escalated; False if already closed."""
        return self._finalize(
            deliberation,
            JuryOutcome.ESCALATED,
            DeliberationStatus.TIMED_OUT,
            now,
        )

    def _finalize(
        self,
        deliberation: JuryDeliberation,
        outcome: JuryOutcome,
        status: DeliberationStatus,
        now: datetime,
    ) -> bool:
        """Close a deliberation and apply its outcome; False if already closed."""
        result = self.db.execute(
            update(JuryDeliberation)
            .where(
                JuryDeliberation.id == deliberation.id,
                JuryDeliberation.status == DeliberationStatus.ACTIVE.value,
            )
            .values(status=status.value, outcome=outcome.value, concluded_at=now)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            return False
        self.db.refresh(deliberation)

        appeal = self.db.get(Appeal, deliberation.appeal_id)
        if appeal is None:
            logger.warning("Deliberation %s has no appeal", deliberation.id)
            return True
        appeal.status = _APPEAL_STATUS_FOR[outcome].value
        if outcome is not JuryOutcome.ESCALATED:
            appeal.resolved_at = now
        self.db.flush()

        self._apply_to_report(appeal, outcome)
        self.audit.record(
            "appeal_decided",
            None,
            {
                "appeal_id": appeal.id,
                "deliberation_id": deliberation.id,
                "outcome": outcome.value,
                "votes_uphold": deliberation.votes_uphold,
                "votes_overturn": deliberation.votes_overturn,
                "status": status.value,
            },
        )
        self._notify_appellant(appeal, outcome)
        logger.info(
            "Deliberation %s finalised as %s (%s)",
            deliberation.id,
            outcome.value,
            status.value,
        )
        return True

    def _apply_to_report(self, appeal: Appeal, outcome: JuryOutcome) -> None:
        report = self.db.get(Report, appeal.report_id)
        if report is None:
            return
        report.appeal_outcome = outcome.value
        if (
            outcome is JuryOutcome.OVERTURN
            and report.action_taken == ReportAction.DELETE_CONTENT.value
            and report.content_id is not None
        ):
            restored = self.content_store.restore(
                ContentType(report.content_type),
                report.content_id,
            )
            if not restored:
                logger.warning("Nothing to restore for report %s", report.id)
        self.db.flush()

    def _notify_appellant(self, appeal: Appeal, outcome: JuryOutcome) -> None:
        messages = {
            JuryOutcome.UPHOLD: "The original moderation decision was upheld.",
            JuryOutcome.OVERTURN: "The original moderation decision was overturned.",
            JuryOutcome.ESCALATED: "Your appeal has been escalated to an administrator.",
        }
        self.notifier.notify(
            appeal.appellant_id,
            "appeal_decided",
            "Update on your appeal",
            messages[outcome],
        )


class _LockEntry:
    __slots__ = ("lock", "holders")

    def __init__(self) -> None:
        self.lock = Lock()
        self.holders = 0


_DELIBERATION_LOCKS: dict[int, _LockEntry] = {}
_LOCKS_GUARD = Lock()


@contextmanager
def _deliberation_lock(deliberation_id: int) -> Iterator[None]:
    """Serialize work on one deliberation within this process.

    Entries exist only while some caller holds or waits for them.
    """
    with _LOCKS_GUARD:
        entry = _DELIBERATION_LOCKS.get(deliberation_id)
        if entry is None:
            entry = _DELIBERATION_LOCKS[deliberation_id] = _LockEntry()
        entry.holders += 1
    try:
        with entry.lock:
            yield
    finally:
        with _LOCKS_GUARD:
            entry.holders -= 1
            if entry.holders == 0:
                del _DELIBERATION_LOCKS[deliberation_id]
