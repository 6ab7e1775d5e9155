"""SQLAlchemy models for the Research Commons trust and moderation core."""

from .appeal import Appeal, AppealStatus
from .audit import AuditCategory, AuditEvent
from .conflict import ConflictRecord, ConflictType, Resolution
from .content import ContentItem
from .jury import (
    DeliberationStatus,
    JuryAssignment,
    JuryDeliberation,
    JuryOutcome,
    JuryVote,
    Verdict,
)
from .notification import Notification
from .report import ContentType, Report, ReportAction, ReportStatus
from .trust import ConflictPhase, ProximityType, TrustProfile
from .user import Role, User

__all__ = [
    "Appeal", "AppealStatus",
    "AuditCategory", "AuditEvent",
    "ConflictRecord", "ConflictType", "Resolution",
    "ContentItem",
    "DeliberationStatus", "JuryAssignment", "JuryDeliberation", "JuryOutcome", "JuryVote",
    "Verdict",
    "Notification",
    "ContentType", "Report", "ReportAction", "ReportStatus",
    "ConflictPhase", "ProximityType", "TrustProfile",
    "Role", "User",
]
