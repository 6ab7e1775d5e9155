"""Application settings and configuration.

This module defines all configuration options for the Research Commons trust
and moderation core. Settings are loaded from environment variables with
sensible defaults.
"""

from datetime import date

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    Settings can be overridden via environment variables or .env files.
    """

    # Application metadata
    app_name: str = Field(default="Research Commons", alias="APP_NAME")
    app_version: str = Field(default="0.1.0", alias="APP_VERSION")
    debug: bool = Field(default=False, alias="DEBUG")

    # Security and authentication
    secret_key: str = Field(alias="SECRET_KEY")
    jwt_algorithm: str = Field(default="HS256", alias="JWT_ALGORITHM")
    access_token_expire_minutes: int = Field(
        default=60 * 24 * 7,
        alias="ACCESS_TOKEN_EXPIRE_MINUTES",
    )

    # Database configuration
    database_url: str = Field(default="sqlite:///./commons.db", alias="DATABASE_URL")
    test_database_url: str | None = Field(default=None, alias="TEST_DATABASE_URL")
    use_testing_database: bool = Field(default=False, alias="USE_TEST_DATABASE")
    sql_debug: bool = Field(default=False, alias="SQL_DEBUG")

    # External content analyzer
    analyzer_url: str | None = Field(default=None, alias="CONTENT_ANALYZER_URL")
    analyzer_api_key: str | None = Field(default=None, alias="CONTENT_ANALYZER_API_KEY")
    analyzer_timeout_seconds: float = Field(default=5.0, alias="CONTENT_ANALYZER_TIMEOUT_SECONDS")
    # "open" lets content through with a warning when the analyzer is down,
    # "closed" blocks it until the analyzer answers again.
    analyzer_failure_mode: str = Field(default="open", alias="CONTENT_ANALYZER_FAILURE_MODE")

    # Moderation gate policy
    moderation_block_threshold: float = Field(default=0.7, alias="MODERATION_BLOCK_THRESHOLD")
    moderation_warn_threshold: float = Field(default=0.4, alias="MODERATION_WARN_THRESHOLD")
    plagiarism_block_threshold: float = Field(default=0.8, alias="PLAGIARISM_BLOCK_THRESHOLD")

    # Submission validation
    min_title_length: int = Field(default=3, alias="MIN_TITLE_LENGTH")
    min_body_length: int = Field(default=10, alias="MIN_BODY_LENGTH")

    # Report workflow
    report_reason_min_length: int = Field(default=10, alias="REPORT_REASON_MIN_LENGTH")
    report_reason_max_length: int = Field(default=1000, alias="REPORT_REASON_MAX_LENGTH")

    # Appeals and jury
    appeal_reason_min_length: int = Field(default=20, alias="APPEAL_REASON_MIN_LENGTH")
    jury_reasoning_min_length: int = Field(default=20, alias="JURY_REASONING_MIN_LENGTH")
    jury_default_quorum: int = Field(default=3, alias="JURY_DEFAULT_QUORUM")
    jury_default_deadline_hours: int = Field(default=72, alias="JURY_DEFAULT_DEADLINE_HOURS")

    # Conflict resolution
    conflict_trust_margin: int = Field(default=15, alias="CONFLICT_TRUST_MARGIN")
    conflict_staleness_days: int = Field(default=30, alias="CONFLICT_STALENESS_DAYS")

    # Trust scoring (temporal dimension)
    trust_half_life_days: int = Field(default=365, alias="TRUST_HALF_LIFE_DAYS")
    trust_volatile_half_life_days: int = Field(
        default=30,
        alias="TRUST_VOLATILE_HALF_LIFE_DAYS",
    )
    trust_undated_temporal_score: int = Field(default=40, alias="TRUST_UNDATED_TEMPORAL_SCORE")
    # Ordered (start date, phase) pairs; a timestamp takes the last phase whose
    # start is on or before it.
    conflict_phase_timeline: list[tuple[date, str]] = Field(
        default=[
            (date(2011, 3, 15), "active_conflict"),
            (date(2020, 3, 6), "de_escalation"),
            (date(2024, 12, 8), "early_reconstruction"),
            (date(2026, 1, 1), "active_reconstruction"),
        ],
        alias="CONFLICT_PHASE_TIMELINE",
    )

    # CORS configuration for web frontend access
    cors_origins: list[str] = Field(default=["*"], alias="CORS_ORIGINS")
    cors_allow_credentials: bool = Field(default=True, alias="CORS_ALLOW_CREDENTIALS")
    cors_allow_methods: list[str] = Field(
        default=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        alias="CORS_ALLOW_METHODS",
    )
    cors_allow_headers: list[str] = Field(default=["*"], alias="CORS_ALLOW_HEADERS")

    model_config = SettingsConfigDict(
        env_file=".env",
        validate_assignment=True,
        extra="ignore",
    )

    @property
    def database_url_sync(self) -> str:
        """Return a sync-compatible database URL for tooling.

        Converts asyncpg URLs to psycopg for synchronous database operations
        like Alembic migrations.
        """
        url = self.effective_database_url
        if url.startswith("postgresql+asyncpg"):
            return url.replace("postgresql+asyncpg", "postgresql+psycopg", 1)
        return url

    @property
    def effective_database_url(self) -> str:
        """Return the database URL respecting testing overrides."""
        if self.use_testing_database and self.test_database_url:
            return self.test_database_url
        return self.database_url

    @property
    def moderation_thresholds(self) -> dict[str, float]:
        """Return moderation gate thresholds as a convenience dictionary."""
        return {
            "block": self.moderation_block_threshold,
            "warn": self.moderation_warn_threshold,
            "plagiarism_block": self.plagiarism_block_threshold,
        }


settings = Settings()  # type: ignore[call-arg]
