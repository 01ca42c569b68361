"""
auth/models.py -- Domain dataclasses for authentication entities.

Pattern: Data class (pure data container, zero logic beyond projection).
Dataclasses own domain shape; the store and routes do the work.

Layer rule: no imports from api/.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any

ROLE_USER = "user"
ROLE_ADMIN = "admin"
ROLES = (ROLE_USER, ROLE_ADMIN)


@dataclass
class UserProfile:
    """The client-visible projection of a user row. Never carries the password."""

    id: int
    name: str
    email: str
    role: str
    created_at: str
    updated_at: str

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class User:
    """A full user row, password hash included.

    Only the auth service sees this shape. Strip it with profile() before it
    reaches any response body.
    """

    id: int
    name: str
    email: str
    hashed_password: str
    role: str
    created_at: str
    updated_at: str

    def profile(self) -> UserProfile:
        return UserProfile(
            id=self.id,
            name=self.name,
            email=self.email,
            role=self.role,
            created_at=self.created_at,
            updated_at=self.updated_at,
        )


@dataclass(frozen=True)
class Identity:
    """The decoded session token attached to an in-flight request.

    Built by TokenService.verify() and handed to route handlers through
    FastAPI dependencies. Discarded when the request ends.
    """

    id: int
    email: str
    role: str

    @property
    def is_admin(self) -> bool:
        return self.role == ROLE_ADMIN

    def owns(self, user_id: int | None) -> bool:
        return user_id is not None and self.id == user_id

    def claims(self) -> dict[str, Any]:
        return {"id": self.id, "email": self.email, "role": self.role}
