"""Role lookups backed by the user table."""

from __future__ import annotations

from sqlalchemy.orm import Session

from research_commons.models import Role, User


class RoleDirectory:
    """Resolve the authoritative role of an actor.

    Roles are always read from storage, never trusted from a token or request.
    """

    def __init__(self, db: Session) -> None:
        self.db = db

    def role_of(self, actor_id: str | None) -> Role | None:
        """Return the actor's role, or ``None`` for unknown actors."""
        if not actor_id:
            return None
        user = self.db.get(User, actor_id)
        if user is None:
            return None
        try:
            return Role(user.role)
        except ValueError:
            return None

    def users_with_roles(self, roles: list[Role]) -> list[User]:
        """Return users holding any of ``roles``."""
        values = [role.value for role in roles]
        return self.db.query(User).filter(User.role.in_(values)).order_by(User.id).all()
