"""SQLAlchemy models for platform identities and their roles."""

from __future__ import annotations

from enum import Enum
from uuid import uuid4

from sqlalchemy import String, Text
from sqlalchemy.orm import Mapped, mapped_column

from research_commons.db.session import Base


class Role(str, Enum):
    """Capability tiers recognised by the permission table."""

    MEMBER = "member"
    RESEARCHER = "researcher"
    MODERATOR = "moderator"
    ADMIN = "admin"


class User(Base):
    """Platform identity; the role column is the only source of authority."""

    __tablename__ = "user_account"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: uuid4().hex)
    display_name: Mapped[str] = mapped_column(Text, nullable=False)
    role: Mapped[str] = mapped_column(String(16), nullable=False, default=Role.MEMBER.value)
    affiliation: Mapped[str | None] = mapped_column(Text, nullable=True)
