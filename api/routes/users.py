"""
api/routes/users.py -- User management endpoints.

Routes:
  GET    /users        -- list all users (admin only)
  GET    /users/{id}   -- one user (owner or admin)
  PUT    /users/{id}   -- partial update (owner or admin; role changes admin only)
  DELETE /users/{id}   -- delete (admin only; nobody deletes their own account here)

Check order on PUT and DELETE: id validation (400), body validation (400, PUT
only), authorization (403), existence (404). GET /users/{id} authorizes in its
dependency, before the id is validated.

The caller's Identity comes in as a dependency result and is passed to the
rule helpers explicitly.
"""

from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, Body, Depends, Request

from api.models import UserIdParam, UserListResponse, UserOut, UserResponse, UserUpdateRequest
from api.validation import validate
from auth.dependencies import authenticate_token, require_admin, require_ownership_or_admin
from auth.models import Identity
from auth.store import UserStore
from core.errors import Forbidden, ValidationFailed

logger = logging.getLogger("acquisitions.api.users")

router = APIRouter()


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _user_store(request: Request) -> UserStore:
    return request.app.state.user_store


def _validated_user_id(request: Request) -> int:
    result = validate(UserIdParam, dict(request.path_params))
    if not result.success:
        raise ValidationFailed(result.errors)
    return result.data.id


def authorize_update(identity: Identity, user_id: int, updates: dict) -> None:
    """Raise Forbidden unless `identity` may apply `updates` to `user_id`."""
    if not (identity.owns(user_id) or identity.is_admin):
        raise Forbidden("You can only update your own profile")
    if "role" in updates and not identity.is_admin:
        raise Forbidden("Only administrators can change user roles")


def authorize_delete(identity: Identity, user_id: int) -> None:
    """Raise Forbidden unless `identity` may delete `user_id`.

    Only admins delete accounts, and never their own.
    """
    if identity.owns(user_id):
        raise Forbidden("You cannot delete your own account. Please contact an administrator.")
    if not identity.is_admin:
        raise Forbidden("You can only delete your own account")


# ---------------------------------------------------------------------------
# Routes
# ---------------------------------------------------------------------------


@router.get("/users", response_model=UserListResponse)
def fetch_all_users(
    request: Request,
    identity: Identity = Depends(require_admin),
) -> UserListResponse:
    """List every user. Admin only."""
    logger.info("Fetching all users")
    users = [UserOut.from_profile(p) for p in _user_store(request).list_users()]
    return UserListResponse(message="Successfully retrieved all users", users=users, count=len(users))


@router.get("/users/{id}", response_model=UserResponse)
def fetch_user_by_id(
    request: Request,
    identity: Identity = Depends(require_ownership_or_admin),
) -> UserResponse:
    """Return one user. The caller must own the record or be an admin."""
    user_id = _validated_user_id(request)
    profile = _user_store(request).get_user(user_id)
    return UserResponse(message="User retrieved successfully", user=UserOut.from_profile(profile))


@router.put("/users/{id}", response_model=UserResponse)
def update_user_by_id(
    request: Request,
    payload: Any = Body(default=None),
    identity: Identity = Depends(authenticate_token),
) -> UserResponse:
    """Apply a partial update to a user's profile."""
    user_id = _validated_user_id(request)

    result = validate(UserUpdateRequest, payload)
    if not result.success:
        raise ValidationFailed(result.errors)
    updates = result.data.to_updates()

    authorize_update(identity, user_id, updates)

    profile = _user_store(request).update_user(user_id, updates)
    return UserResponse(message="User updated successfully", user=UserOut.from_profile(profile))


@router.delete("/users/{id}", response_model=UserResponse)
def delete_user_by_id(
    request: Request,
    identity: Identity = Depends(authenticate_token),
) -> UserResponse:
    """Delete a user account. Admin only, and never the caller's own."""
    user_id = _validated_user_id(request)
    authorize_delete(identity, user_id)

    profile = _user_store(request).delete_user(user_id)
    logger.info("User %s deleted by %s", user_id, identity.email)
    return UserResponse(message="User deleted successfully", user=UserOut.from_profile(profile))
