"""
auth/cookies.py -- Session cookie helpers.

Every cookie the API writes goes through cookie_options(), so setting and
clearing always send identical attributes. Some clients ignore a clearing
Set-Cookie whose attributes differ from the original, which would leave the
session cookie in place.

  httponly=True:     JS cannot read the cookie.
  samesite="strict": never sent on cross-site requests.
  secure:            only in production (APP_ENV=production).
  max_age:           one day, matching the token lifetime.

Layer rule: no imports from api/.
"""

from __future__ import annotations

from typing import Any

from fastapi import Request, Response

from core.config import ONE_DAY_SECONDS, get_settings


def cookie_options(secure: bool | None = None) -> dict[str, Any]:
    """Return the fixed attribute set for the session cookie.

    `secure` defaults to whether the app runs in production mode.
    """
    if secure is None:
        secure = get_settings().is_production
    return {
        "httponly": True,
        "secure": secure,
        "samesite": "strict",
        "max_age": ONE_DAY_SECONDS,
        "path": "/",
    }


def set_cookie(response: Response, name: str, value: str, secure: bool | None = None) -> None:
    response.set_cookie(name, value, **cookie_options(secure))


def clear_cookie(response: Response, name: str, secure: bool | None = None) -> None:
    """Expire the named cookie using the same attributes set_cookie() sends."""
    options = cookie_options(secure)
    # delete_cookie always sends max_age=0; everything else must match.
    options.pop("max_age")
    response.delete_cookie(name, **options)


def get_cookie(request: Request, name: str) -> str | None:
    return request.cookies.get(name) or None
