"""
API request and response models for the Acquisitions REST endpoints.

These Pydantic v2 models define the HTTP transport contract for the API layer.
They are intentionally separate from the dataclasses in auth/models.py, which
own the internal domain representation. Route handlers map between the two.

Request models are never bound directly as FastAPI body parameters: routes
hand the raw JSON to api.validation.validate() so failures come back as an
ordered {field, message} list with status 400.
"""

from __future__ import annotations

from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator, model_validator

from auth.models import User, UserProfile

EMAIL_MAX_LENGTH = 255
NAME_MIN_LENGTH = 1
NAME_MAX_LENGTH = 255
PASSWORD_MIN_LENGTH = 6
PASSWORD_MAX_LENGTH = 128
USER_ID_MAX = 2**63 - 1  # SQLite INTEGER range


def _normalize_email(v: str) -> str:
    v = v.strip().lower()
    if len(v) > EMAIL_MAX_LENGTH:
        raise ValueError(f"Email must be at most {EMAIL_MAX_LENGTH} characters")
    return v


def _normalize_name(v: str) -> str:
    v = v.strip()
    if len(v) < NAME_MIN_LENGTH:
        raise ValueError("Name is required")
    if len(v) > NAME_MAX_LENGTH:
        raise ValueError(f"Name must be at most {NAME_MAX_LENGTH} characters")
    return v


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------


class RoleEnum(str, Enum):
    user = "user"
    admin = "admin"


# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------


class SignupRequest(BaseModel):
    """Request body for POST /auth/signup."""

    name: str
    email: EmailStr
    password: str = Field(min_length=PASSWORD_MIN_LENGTH, max_length=PASSWORD_MAX_LENGTH)
    role: RoleEnum = RoleEnum.user

    @field_validator("name")
    @classmethod
    def normalize_name(cls, v: str) -> str:
        return _normalize_name(v)

    @field_validator("email", mode="before")
    @classmethod
    def normalize_email(cls, v):
        return _normalize_email(v) if isinstance(v, str) else v


class SigninRequest(BaseModel):
    """Request body for POST /auth/signin."""

    email: EmailStr
    password: str = Field(min_length=1)

    @field_validator("email", mode="before")
    @classmethod
    def normalize_email(cls, v):
        return _normalize_email(v) if isinstance(v, str) else v


class UserIdParam(BaseModel):
    """The {id} path parameter of /users/{id}."""

    id: int = Field(gt=0, le=USER_ID_MAX)


class UserUpdateRequest(BaseModel):
    """Request body for PUT /users/{id}.

    Partial: any subset of the four fields, but at least one. Explicit nulls
    count as absent. Unknown fields are rejected so a typo cannot silently
    turn into an empty update.
    """

    model_config = ConfigDict(extra="forbid")

    name: Optional[str] = None
    email: Optional[EmailStr] = None
    password: Optional[str] = Field(default=None, min_length=PASSWORD_MIN_LENGTH, max_length=PASSWORD_MAX_LENGTH)
    role: Optional[RoleEnum] = None

    @field_validator("name")
    @classmethod
    def normalize_name(cls, v: Optional[str]) -> Optional[str]:
        return None if v is None else _normalize_name(v)

    @field_validator("email", mode="before")
    @classmethod
    def normalize_email(cls, v):
        return _normalize_email(v) if isinstance(v, str) else v

    @model_validator(mode="after")
    def require_one_field(self) -> "UserUpdateRequest":
        if not self.to_updates():
            raise ValueError("At least one field must be provided for update")
        return self

    def to_updates(self) -> dict:
        """Return only the fields the client actually sent, as plain values."""
        updates = self.model_dump(exclude_unset=True, exclude_none=True)
        if "role" in updates:
            updates["role"] = RoleEnum(updates["role"]).value
        return updates


# ---------------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------------


class UserSummary(BaseModel):
    """The user block returned by sign-up and sign-in."""

    model_config = ConfigDict(frozen=True)

    id: int
    name: str
    email: str
    role: str

    @classmethod
    def from_user(cls, user: User) -> "UserSummary":
        return cls(id=user.id, name=user.name, email=user.email, role=user.role)


class UserOut(BaseModel):
    """A user profile as returned by the /users routes. Never has a password."""

    model_config = ConfigDict(frozen=True)

    id: int
    name: str
    email: str
    role: str
    created_at: str
    updated_at: str

    @classmethod
    def from_profile(cls, profile: UserProfile) -> "UserOut":
        return cls(**profile.to_dict())


class AuthResponse(BaseModel):
    """Response for POST /auth/signup and POST /auth/signin."""

    message: str
    user: UserSummary


class UserResponse(BaseModel):
    """Response for GET, PUT and DELETE /users/{id}."""

    message: str
    user: UserOut


class UserListResponse(BaseModel):
    """Response for GET /users."""

    message: str
    users: list[UserOut]
    count: int


class MessageResponse(BaseModel):
    message: str


class FieldError(BaseModel):
    """One field-level validation problem."""

    model_config = ConfigDict(frozen=True)

    field: str
    message: str


class ErrorResponse(BaseModel):
    """Flat error envelope returned on 4xx/5xx responses."""

    model_config = ConfigDict(frozen=True)

    error: str
    message: Optional[str] = None
    details: Optional[list[FieldError]] = None


class HealthResponse(BaseModel):
    """Response for GET /health."""

    model_config = ConfigDict(frozen=True)

    status: str = "OK"
    timestamp: str
    uptime: float
    database: str
