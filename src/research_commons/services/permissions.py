"""Role capability table consulted by every privileged operation."""

from __future__ import annotations

from enum import Enum
from typing import Final

from research_commons.models import Role


class Operation(str, Enum):
    """Privileged operations gated by role."""

    REVIEW_REPORT = "review_report"
    LIST_REPORTS = "list_reports"
    REOPEN_REPORT = "reopen_report"
    OPEN_JURY = "open_jury"
    DECIDE_ESCALATED_APPEAL = "decide_escalated_appeal"
    SERVE_ON_JURY = "serve_on_jury"
    ADJUDICATE_CONFLICT = "adjudicate_conflict"
    SCORE_TRUST = "score_trust"
    VIEW_AUDIT_LOG = "view_audit_log"


_STAFF: Final = frozenset({Role.MODERATOR, Role.ADMIN})
_ADMIN_ONLY: Final = frozenset({Role.ADMIN})
_CONTRIBUTORS: Final = frozenset({Role.RESEARCHER, Role.MODERATOR, Role.ADMIN})

PERMISSIONS: Final[dict[tuple[Role, Operation], bool]] = {
    (role, operation): role in allowed
    for operation, allowed in {
        Operation.REVIEW_REPORT: _STAFF,
        Operation.LIST_REPORTS: _STAFF,
        Operation.REOPEN_REPORT: _ADMIN_ONLY,
        Operation.OPEN_JURY: _ADMIN_ONLY,
        Operation.DECIDE_ESCALATED_APPEAL: _ADMIN_ONLY,
        Operation.SERVE_ON_JURY: _CONTRIBUTORS,
        Operation.ADJUDICATE_CONFLICT: _STAFF,
        Operation.SCORE_TRUST: _CONTRIBUTORS,
        Operation.VIEW_AUDIT_LOG: _ADMIN_ONLY,
    }.items()
    for role in Role
}


def is_allowed(role: Role | None, operation: Operation) -> bool:
    """Return True if ``role`` may perform ``operation``; unknown roles may not."""
    if role is None:
        return False
    return PERMISSIONS.get((role, operation), False)


def eligible_roles(operation: Operation) -> list[Role]:
    """Return the roles permitted to perform ``operation``."""
    return [role for role in Role if PERMISSIONS[(role, operation)]]
