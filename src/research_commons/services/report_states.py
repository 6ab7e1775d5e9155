"""Report lifecycle state machine."""

from __future__ import annotations

from typing import Final

from research_commons.core.errors import InvalidTransitionError
from research_commons.models import ReportStatus

TERMINAL_STATES: Final = frozenset({ReportStatus.RESOLVED, ReportStatus.DISMISSED})

# Moves available through a normal review.
TRANSITIONS: Final[dict[ReportStatus, frozenset[ReportStatus]]] = {
    ReportStatus.PENDING: frozenset(
        {ReportStatus.REVIEWING, ReportStatus.RESOLVED, ReportStatus.DISMISSED}
    ),
    ReportStatus.REVIEWING: frozenset({ReportStatus.RESOLVED, ReportStatus.DISMISSED}),
    ReportStatus.RESOLVED: frozenset(),
    ReportStatus.DISMISSED: frozenset(),
}

# Only reachable through an explicit administrative reopen.
REOPEN_TRANSITIONS: Final[dict[ReportStatus, frozenset[ReportStatus]]] = {
    ReportStatus.RESOLVED: frozenset({ReportStatus.PENDING}),
    ReportStatus.DISMISSED: frozenset({ReportStatus.PENDING}),
}

# Audit action recorded when a report enters a state.
TRANSITION_ACTIONS: Final[dict[ReportStatus, str]] = {
    ReportStatus.REVIEWING: "content_review_started",
    ReportStatus.RESOLVED: "content_rejected",
    ReportStatus.DISMISSED: "content_approved",
    ReportStatus.PENDING: "content_reopened",
}


def can_transition(
    current: ReportStatus,
    target: ReportStatus,
    *,
    reopening: bool = False,
) -> bool:
    """Return True if ``current -> target`` is legal in the selected table."""
    table = REOPEN_TRANSITIONS if reopening else TRANSITIONS
    return target in table.get(current, frozenset())


def ensure_transition(
    current: ReportStatus,
    target: ReportStatus,
    *,
    reopening: bool = False,
) -> None:
    """Raise ``InvalidTransitionError`` unless ``current -> target`` is legal."""
    if not can_transition(current, target, reopening=reopening):
        raise InvalidTransitionError(
            f"Cannot move report from {current.value} to {target.value}"
        )
