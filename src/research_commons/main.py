# src/research_commons/main.py
"""Main entry point for the Research Commons trust and moderation API."""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse

from research_commons.api.v1 import (
    appeals_router,
    audit_router,
    conflicts_router,
    content_router,
    jury_router,
    reports_router,
    trust_router,
)
from research_commons.core.errors import (
    AuthorizationError,
    ClosedError,
    CommonsError,
    ContentBlockedError,
    DuplicateError,
    ExternalServiceError,
    InvalidTransitionError,
    NotFoundError,
    RateLimitExceeded,
    ValidationError,
)
from research_commons.core.settings import settings
from research_commons.models.audit import ImmutableAuditEventError
from research_commons.services.rate_limit import RateLimitResult, rate_limit_headers

logger = logging.getLogger(__name__)

# Initialize FastAPI app
app = FastAPI(
    title="Research Commons API",
    description="Trust scoring and moderation core for community research sharing",
    version=settings.app_version,
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=settings.cors_allow_credentials,
    allow_methods=settings.cors_allow_methods,
    allow_headers=settings.cors_allow_headers,
)

# Add GZip middleware for compression
app.add_middleware(GZipMiddleware)

# Include API routers
app.include_router(content_router, prefix="/api/v1")
app.include_router(reports_router, prefix="/api/v1")
app.include_router(appeals_router, prefix="/api/v1")
app.include_router(jury_router, prefix="/api/v1")
app.include_router(trust_router, prefix="/api/v1")
app.include_router(conflicts_router, prefix="/api/v1")
app.include_router(audit_router, prefix="/api/v1")

# Most specific classes first; the first isinstance match wins.
_STATUS_FOR_ERROR: list[tuple[type[CommonsError], int]] = [
    (ValidationError, status.HTTP_422_UNPROCESSABLE_ENTITY),
    (DuplicateError, status.HTTP_409_CONFLICT),
    (AuthorizationError, status.HTTP_403_FORBIDDEN),
    (InvalidTransitionError, status.HTTP_409_CONFLICT),
    (ClosedError, status.HTTP_409_CONFLICT),
    (ExternalServiceError, status.HTTP_502_BAD_GATEWAY),
    (NotFoundError, status.HTTP_404_NOT_FOUND),
]


@app.exception_handler(RateLimitExceeded)
async def rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    """Translate a throttled request into 429 with retry headers."""
    headers = rate_limit_headers(
        RateLimitResult(
            allowed=False,
            remaining=0,
            reset_at=exc.reset_at,
            retry_after=exc.retry_after,
        )
    )
    return JSONResponse(
        status_code=status.HTTP_429_TOO_MANY_REQUESTS,
        content={"detail": str(exc), "retry_after": exc.retry_after},
        headers=headers,
    )


@app.exception_handler(ContentBlockedError)
async def content_blocked_handler(request: Request, exc: ContentBlockedError) -> JSONResponse:
    """Report a gate refusal together with its warnings."""
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={"detail": str(exc), "warnings": exc.warnings, "report_id": exc.report_id},
    )


@app.exception_handler(CommonsError)
async def commons_error_handler(request: Request, exc: CommonsError) -> JSONResponse:
    """Map the remaining domain errors onto HTTP status codes."""
    for error_type, status_code in _STATUS_FOR_ERROR:
        if isinstance(exc, error_type):
            return JSONResponse(status_code=status_code, content={"detail": str(exc)})
    logger.error("Unmapped domain error on %s: %r", request.url.path, exc)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "Internal server error"},
    )


@app.exception_handler(ImmutableAuditEventError)
async def immutable_audit_handler(request: Request, exc: ImmutableAuditEventError) -> JSONResponse:
    """Audit rows are append-only; any attempt to rewrite one is refused."""
    logger.error("Attempt to modify audit trail on %s", request.url.path)
    return JSONResponse(
        status_code=status.HTTP_409_CONFLICT,
        content={"detail": str(exc)},
    )


@app.get("/health")
async def health_check() -> dict[str, str]:
    """Health check endpoint to verify the service is running."""
    return {"status": "ok"}


@app.get("/")
async def root() -> dict[str, str]:
    """Root endpoint with basic information about the API."""
    return {
        "name": settings.app_name,
        "version": settings.app_version,
        "description": "Trust scoring and moderation core for community research sharing",
        "docs": "/docs",
        "redoc": "/redoc",
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("research_commons.main:app", host="0.0.0.0", port=8000, reload=settings.debug)
