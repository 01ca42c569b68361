"""
auth/dependencies.py -- FastAPI Depends() helpers for authentication.

Token lookup order:
  1. Session cookie (Settings.cookie_name, "token" by default) -- set by
     sign-up and sign-in.
  2. Authorization: Bearer <token> header -- API clients.
The cookie wins when both are present.

Each request walks a short chain with terminal outcomes only:
  authenticate_token()           no token -> 401, bad token -> 403, else Identity
  require_admin()                no identity -> 401, not admin -> 403
  require_ownership_or_admin()   no identity -> 401, not owner and not admin -> 403

The decoded Identity is returned from the dependency and passed to handlers as
a parameter. Nothing is stashed on the request object.

check_admin() and check_ownership_or_admin() are the plain rule functions the
dependencies wrap, so the decision matrix can be tested without HTTP.

Layer rule: no imports from api/.
"""

from __future__ import annotations

import logging

from fastapi import Depends, Request

from auth.cookies import get_cookie
from auth.models import Identity
from auth.tokens import TokenService
from core.config import get_settings
from core.errors import Forbidden, TokenInvalidError, Unauthorized

logger = logging.getLogger("acquisitions.auth")

_BEARER_PREFIX = "Bearer "


def extract_token(request: Request, cookie_name: str) -> str | None:
    """Return the raw token from the cookie, else from the Bearer header."""
    token = get_cookie(request, cookie_name)
    if token:
        return token
    auth_header = request.headers.get("Authorization", "")
    if auth_header.startswith(_BEARER_PREFIX):
        return auth_header[len(_BEARER_PREFIX) :].strip() or None
    return None


def parse_user_id(raw: object) -> int | None:
    """Parse a path id as an integer. None when it is not one."""
    if raw is None:
        return None
    try:
        return int(str(raw))
    except ValueError:
        return None


# ---------------------------------------------------------------------------
# Rules
# ---------------------------------------------------------------------------


def check_admin(identity: Identity | None) -> Identity:
    if identity is None:
        raise Unauthorized("Authentication required")
    if not identity.is_admin:
        raise Forbidden("Admin access required")
    return identity


def check_ownership_or_admin(identity: Identity | None, raw_user_id: object) -> Identity:
    if identity is None:
        raise Unauthorized("Authentication required")
    if not (identity.owns(parse_user_id(raw_user_id)) or identity.is_admin):
        raise Forbidden("You can only access your own resources")
    return identity


# ---------------------------------------------------------------------------
# Dependencies
# ---------------------------------------------------------------------------


def authenticate_token(request: Request) -> Identity:
    """Require a valid session token and return the identity it carries.

    Use as a FastAPI dependency:
        @router.put("/users/{id}")
        async def route(identity: Identity = Depends(authenticate_token)): ...
    """
    token = extract_token(request, get_settings().cookie_name)
    if not token:
        raise Unauthorized("Access token is required")

    tokens: TokenService = request.app.state.tokens
    try:
        identity = tokens.verify(token)
    except TokenInvalidError:
        logger.warning("Authentication failed on %s %s", request.method, request.url.path)
        raise

    logger.info("User authenticated: %s", identity.email)
    return identity


def require_admin(identity: Identity = Depends(authenticate_token)) -> Identity:
    """Require an authenticated admin."""
    return check_admin(identity)


def require_ownership_or_admin(request: Request, identity: Identity = Depends(authenticate_token)) -> Identity:
    """Require that the caller owns the `{id}` path resource or is an admin."""
    return check_ownership_or_admin(identity, request.path_params.get("id"))
