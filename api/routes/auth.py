"""
api/routes/auth.py -- Sign-up, sign-in and sign-out endpoints.

Routes:
  POST /auth/signup   -- create account; 201 + session cookie
  POST /auth/signin   -- password login; 200 + session cookie
  POST /auth/signout  -- clears the session cookie; 200

All three are public. Domain errors (DuplicateEmail, UserNotFound,
InvalidPassword) propagate to the AppError handler in api/main.py, which maps
them to 409 / 404 / 401.

Cache-Control: no-store on every response that carries a session cookie.
"""

from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, Body, Request
from fastapi.responses import JSONResponse

from api.models import AuthResponse, MessageResponse, SigninRequest, SignupRequest, UserSummary
from api.validation import validate
from auth.cookies import clear_cookie, set_cookie
from auth.models import User
from auth.service import AuthService
from auth.tokens import TokenService
from core.config import get_settings
from core.errors import ValidationFailed

logger = logging.getLogger("acquisitions.api.auth")

router = APIRouter()


def _session_response(request: Request, user: User, message: str, status_code: int) -> JSONResponse:
    """Build the JSON response for a fresh session and attach its cookie."""
    tokens: TokenService = request.app.state.tokens
    token = tokens.sign({"id": user.id, "email": user.email, "role": user.role})

    resp = JSONResponse(
        status_code=status_code,
        content=AuthResponse(message=message, user=UserSummary.from_user(user)).model_dump(),
    )
    set_cookie(resp, get_settings().cookie_name, token)
    resp.headers["Cache-Control"] = "no-store"
    return resp


@router.post("/auth/signup", response_model=AuthResponse, status_code=201)
def signup(request: Request, payload: Any = Body(default=None)) -> JSONResponse:
    """Register a new user and start a session for them."""
    result = validate(SignupRequest, payload)
    if not result.success:
        raise ValidationFailed(result.errors)
    body = result.data

    auth_service: AuthService = request.app.state.auth_service
    user = auth_service.create_user(
        name=body.name,
        email=body.email,
        password=body.password,
        role=body.role.value,
    )

    logger.info("User registered successfully: %s", user.email)
    return _session_response(request, user, "User Registered", 201)


@router.post("/auth/signin", response_model=AuthResponse)
def signin(request: Request, payload: Any = Body(default=None)) -> JSONResponse:
    """Check email and password and start a session."""
    result = validate(SigninRequest, payload)
    if not result.success:
        raise ValidationFailed(result.errors)
    body = result.data

    auth_service: AuthService = request.app.state.auth_service
    user = auth_service.authenticate_user(email=body.email, password=body.password)

    logger.info("User signed in successfully: %s", user.email)
    return _session_response(request, user, "User signed in successfully", 200)


@router.post("/auth/signout", response_model=MessageResponse)
async def signout() -> JSONResponse:
    """Clear the session cookie. Needs no prior authentication."""
    resp = JSONResponse(content=MessageResponse(message="User signed out successfully").model_dump())
    clear_cookie(resp, get_settings().cookie_name)
    resp.headers["Cache-Control"] = "no-store"
    logger.info("User signed out successfully")
    return resp
