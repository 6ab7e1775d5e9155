# src/research_commons/services/__init__.py
"""Business logic services for the Research Commons trust and moderation core."""

from .appeals import AppealService
from .audit import AuditLog
from .conflicts import ConflictResolver
from .jury import JuryService
from .moderation_gate import ModerationGate
from .rate_limit import RateLimiter, get_rate_limiter
from .reports import ReportWorkflow
from .submission import ContentSubmission
from .trust import TrustScorer

__all__ = [
    "AppealService",
    "AuditLog",
    "ConflictResolver",
    "ContentSubmission",
    "JuryService",
    "ModerationGate",
    "RateLimiter",
    "ReportWorkflow",
    "TrustScorer",
    "get_rate_limiter",
]
