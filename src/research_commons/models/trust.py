"""Models holding per-content trust profiles."""

from __future__ import annotations

from datetime import datetime
from enum import Enum

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    Integer,
    SmallInteger,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from research_commons.db.session import Base
from research_commons.db.time import utcnow


class ProximityType(str, Enum):
    """How close the author was to the observation (T3)."""

    ON_SITE = "on_site"
    REMOTE = "remote"
    INFERRED = "inferred"


class ConflictPhase(str, Enum):
    """Phase of the conflict the observed data belongs to (T4)."""

    PRE_CONFLICT = "pre_conflict"
    ACTIVE_CONFLICT = "active_conflict"
    DE_ESCALATION = "de_escalation"
    EARLY_RECONSTRUCTION = "early_reconstruction"
    ACTIVE_RECONSTRUCTION = "active_reconstruction"


_SCORE_COLUMNS = (
    "t1_source_score",
    "t2_method_score",
    "t3_proximity_score",
    "t4_temporal_score",
    "t5_validation_score",
)


class TrustProfile(Base):
    """Five independently scored trust dimensions for one content item.

    Keyed by (content_id, content_type); recomputation overwrites the row.
    """

    __tablename__ = "trust_profile"
    __table_args__ = (
        UniqueConstraint("content_id", "content_type", name="uq_trust_profile_content"),
        *(
            CheckConstraint(f"{column} BETWEEN 0 AND 100", name=f"ck_trust_profile_{column}")
            for column in _SCORE_COLUMNS
        ),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    content_id: Mapped[int] = mapped_column(Integer, nullable=False)
    content_type: Mapped[str] = mapped_column(String(16), nullable=False)

    # T1: source credibility
    t1_source_score: Mapped[int] = mapped_column(SmallInteger, nullable=False)
    t1_author_known: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    t1_institution: Mapped[str | None] = mapped_column(Text, nullable=True)

    # T2: method clarity
    t2_method_score: Mapped[int] = mapped_column(SmallInteger, nullable=False)
    t2_method_described: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    t2_reproducible: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    t2_data_available: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    # T3: evidence proximity
    t3_proximity_score: Mapped[int] = mapped_column(SmallInteger, nullable=False)
    t3_proximity_type: Mapped[str] = mapped_column(String(16), nullable=False)
    t3_firsthand: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    # T4: temporal relevance
    t4_temporal_score: Mapped[int] = mapped_column(SmallInteger, nullable=False)
    t4_conflict_phase: Mapped[str | None] = mapped_column(String(32), nullable=True)
    t4_data_timestamp: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )
    t4_is_time_sensitive: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    # T5: cross-validation
    t5_validation_score: Mapped[int] = mapped_column(SmallInteger, nullable=False)
    t5_corroborating_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    t5_contradicting_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    trust_summary: Mapped[str | None] = mapped_column(Text, nullable=True)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
    )
