# src/research_commons/api/v1/endpoints/__init__.py
"""API endpoint modules for version 1."""

from .appeals import router as appeals_router
from .audit import router as audit_router
from .conflicts import router as conflicts_router
from .content import router as content_router
from .jury import router as jury_router
from .reports import router as reports_router
from .trust import router as trust_router

__all__ = [
    "appeals_router",
    "audit_router",
    "conflicts_router",
    "content_router",
    "jury_router",
    "reports_router",
    "trust_router",
]
