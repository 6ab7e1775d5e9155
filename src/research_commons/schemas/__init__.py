# src/research_commons/schemas/__init__.py
"""
Pydantic schemas for API request/response models.

These schemas define the structure of API data for serialization and validation.
"""

from .appeal import AppealCreate, AppealDecision, AppealResponse
from .audit import AuditEventResponse
from .conflict import ClaimIn, ConflictAdjudicate, ConflictCreate, ConflictResponse
from .content import ContentCreate, ContentResponse, SubmissionResponse
from .jury import JuryDeliberationResponse, JuryOpen, JuryVoteCreate
from .report import ReportCreate, ReportReopen, ReportResponse, ReportUpdate
from .trust import TrustProfileResponse, TrustSignalsIn

__all__ = [
    "AppealCreate", "AppealDecision", "AppealResponse",
    "AuditEventResponse",
    "ClaimIn", "ConflictAdjudicate", "ConflictCreate", "ConflictResponse",
    "ContentCreate", "ContentResponse", "SubmissionResponse",
    "JuryDeliberationResponse", "JuryOpen", "JuryVoteCreate",
    "ReportCreate", "ReportReopen", "ReportResponse", "ReportUpdate",
    "TrustProfileResponse", "TrustSignalsIn",
]
