"""Models for quorum-based jury deliberations on appeals."""

from __future__ import annotations

from datetime import datetime
from enum import Enum

from sqlalchemy import CheckConstraint, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from research_commons.db.session import Base
from research_commons.db.time import utcnow


class DeliberationStatus(str, Enum):
    """Lifecycle states of a deliberation."""

    ACTIVE = "active"
    CONCLUDED = "concluded"
    TIMED_OUT = "timed_out"


class Verdict(str, Enum):
    """A single juror's ruling on the original moderation decision."""

    UPHOLD = "uphold"
    OVERTURN = "overturn"


class JuryOutcome(str, Enum):
    """Final result of a deliberation."""

    UPHOLD = "uphold"
    OVERTURN = "overturn"
    # Tie at quorum or deadline reached; an administrator decides.
    ESCALATED = "escalated"


class JuryDeliberation(Base):
    """Voting process adjudicating exactly one appeal."""

    __tablename__ = "jury_deliberation"
    __table_args__ = (CheckConstraint("quorum > 0", name="ck_jury_deliberation_quorum"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    appeal_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("appeal.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
    )
    quorum: Mapped[int] = mapped_column(Integer, nullable=False)
    deadline: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    status: Mapped[str] = mapped_column(
        String(16),
        nullable=False,
        default=DeliberationStatus.ACTIVE.value,
    )
    votes_uphold: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    votes_overturn: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    outcome: Mapped[str | None] = mapped_column(String(16), nullable=True)
    created_by: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("user_account.id"),
        nullable=False,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
    )
    concluded_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    @property
    def total_votes(self) -> int:
        """Return the number of votes cast so far."""
        return self.votes_uphold + self.votes_overturn


class JuryAssignment(Base):
    """Juror drawn for a deliberation."""

    __tablename__ = "jury_assignment"

    deliberation_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("jury_deliberation.id", ondelete="CASCADE"),
        primary_key=True,
    )
    juror_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("user_account.id"),
        primary_key=True,
    )
    assigned_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
    )


class JuryVote(Base):
    """Append-only ballot; the composite key forbids a second vote per juror."""

    __tablename__ = "jury_vote"
    __table_args__ = (
        CheckConstraint("verdict IN ('uphold', 'overturn')", name="ck_jury_vote_verdict"),
    )

    deliberation_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("jury_deliberation.id", ondelete="CASCADE"),
        primary_key=True,
    )
    juror_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("user_account.id"),
        primary_key=True,
    )
    verdict: Mapped[str] = mapped_column(String(16), nullable=False)
    reasoning: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
    )
