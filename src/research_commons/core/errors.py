"""Exception taxonomy shared by the trust and moderation services.

Services raise these; the API layer maps each family onto an HTTP status in
``research_commons.main``.
"""

from __future__ import annotations

from collections.abc import Sequence


class CommonsError(RuntimeError):
    """Base class for every domain error raised by the core."""


class ValidationError(CommonsError):
    """Raised for malformed input such as a missing or too-short reason."""


class SelfReportError(ValidationError):
    """Raised when a user tries to report content they authored."""


class DuplicateError(CommonsError):
    """Raised when a uniqueness rule would be violated (e.g. a second pending report)."""


class DuplicateVoteError(DuplicateError):
    """Raised when a juror votes twice on the same deliberation."""


class AuthorizationError(CommonsError):
    """Raised when the acting user lacks the capability for an operation.

    The message is intentionally generic so callers cannot probe report state.
    """

    def __init__(self, message: str = "You do not have permission to perform this action") -> None:
        super().__init__(message)


class InvalidTransitionError(CommonsError):
    """Raised when a status change is not allowed from the current state."""


class ClosedError(CommonsError):
    """Raised when acting on a deliberation that is past its deadline or decided."""


class NotFoundError(CommonsError):
    """Raised when a referenced record does not exist."""


class ExternalServiceError(CommonsError):
    """Raised when an external collaborator times out or answers with garbage."""


class RateLimitExceeded(CommonsError):
    """Raised when an identity has exhausted its window for an action class.

    Attributes:
        retry_after: Seconds until the window resets.
        reset_at: Epoch seconds at which the window resets.
        action_class: The throttled action class.
    """

    def __init__(self, action_class: str, retry_after: int, reset_at: float) -> None:
        super().__init__(f"Rate limit exceeded. Please try again in {retry_after} seconds.")
        self.action_class = action_class
        self.retry_after = retry_after
        self.reset_at = reset_at


class ContentBlockedError(CommonsError):
    """Raised when the moderation gate refuses a submission.

    Attributes:
        warnings: Warning messages to surface to the author.
        report_id: Identifier of the system-filed report, if one was stored.
    """

    def __init__(self, warnings: Sequence[str], report_id: int | None = None) -> None:
        message = warnings[0] if warnings else "Content violates community guidelines"
        super().__init__(message)
        self.warnings = list(warnings)
        self.report_id = report_id
