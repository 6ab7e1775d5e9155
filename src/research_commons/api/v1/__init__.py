# src/research_commons/api/v1/__init__.py
"""Version 1 API endpoints."""

from .endpoints import (
    appeals_router,
    audit_router,
    conflicts_router,
    content_router,
    jury_router,
    reports_router,
    trust_router,
)

__all__ = [
    "appeals_router",
    "audit_router",
    "conflicts_router",
    "content_router",
    "jury_router",
    "reports_router",
    "trust_router",
]
