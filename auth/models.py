"""
auth/models.py -- Domain types for authentication entities.

Pattern: Data class (pure data container, zero logic). Stores hand back plain
record dicts; user_from_record() is the mapper into the auth domain.

Role lives in core/models.py so the validator can share it; it is re-exported
here for auth callers.

Layer rule: no imports from api/ or records/.
"""

from __future__ import annotations

from dataclasses import dataclass

from core.models import Role

__all__ = ["Identity", "Role", "User", "user_from_record"]


@dataclass(frozen=True)
class Identity:
    """The authenticated actor making a request. Embedded in every token."""

    id: int
    username: str
    role: Role


@dataclass
class User:
    """A stored account. password_hash never leaves the auth layer."""

    username: str
    email: str
    role: Role
    password_hash: str
    id: int | None = None
    contact: str | None = None
    created_at: str | None = None

    def identity(self) -> Identity:
        return Identity(id=self.id, username=self.username, role=self.role)


def user_from_record(record: dict) -> User:
    return User(
        id=record["id"],
        username=record["username"],
        email=record["email"],
        role=Role(record["role"]),
        password_hash=record["password_hash"],
        contact=record.get("contact"),
        created_at=record.get("created_at"),
    )
