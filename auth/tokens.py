"""
auth/tokens.py -- JWT session tokens and password hashing.

Security design decisions:
  JWT: python-jose with HS256. Tokens carry id, email, role, iat and exp and
       live for exactly one day. TokenService owns the signing secret, which is
       injected at construction -- there is no module-level key. verify()
       raises TokenInvalidError for every failure (bad signature, malformed
       token, expiry, missing claims) so callers cannot tell expiry apart from
       tampering.

  Passwords: bcrypt directly (no passlib wrapper). Cost factor comes from
       Settings.bcrypt_rounds (default 10).

Layer rule: no imports from api/.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Mapping

import bcrypt
from jose import JWTError, jwt

from auth.models import ROLES, Identity
from core.config import ONE_DAY_SECONDS
from core.errors import TokenInvalidError, TokenSigningError

logger = logging.getLogger("acquisitions.auth.tokens")

DEFAULT_ALGORITHM = "HS256"
DEFAULT_BCRYPT_ROUNDS = 10

_REQUIRED_CLAIMS = ("id", "email", "role")

# ---------------------------------------------------------------------------
# Password hashing (bcrypt -- direct usage, no passlib wrapper)
# ---------------------------------------------------------------------------


def hash_password(plain: str, rounds: int = DEFAULT_BCRYPT_ROUNDS) -> str:
    """Return a salted bcrypt hash of the given plaintext password.

    bcrypt only looks at the first 72 bytes. The validation layer caps
    passwords at 128 characters, and longer byte strings are truncated here
    because bcrypt 4.x refuses them outright.
    """
    pw_bytes = plain.encode("utf-8")[:72]
    return bcrypt.hashpw(pw_bytes, bcrypt.gensalt(rounds=rounds)).decode("utf-8")


def verify_password(plain: str, hashed: str) -> bool:
    """Return True if the plaintext password matches the bcrypt hash."""
    try:
        return bcrypt.checkpw(plain.encode("utf-8")[:72], hashed.encode("utf-8"))
    except (ValueError, TypeError):
        return False


# ---------------------------------------------------------------------------
# JWT sign / verify
# ---------------------------------------------------------------------------


class TokenService:
    """Signs and verifies session tokens with an explicitly supplied secret.

    Usage:
        tokens = TokenService(secret_key=settings.secret_key)
        token = tokens.sign({"id": 1, "email": "a@x.com", "role": "user"})
        identity = tokens.verify(token)
    """

    def __init__(
        self,
        secret_key: str,
        algorithm: str = DEFAULT_ALGORITHM,
        expire_seconds: int = ONE_DAY_SECONDS,
    ) -> None:
        self._secret_key = secret_key
        self.algorithm = algorithm
        self.expire_seconds = expire_seconds

    def sign(self, payload: Mapping[str, Any], now: datetime | None = None) -> str:
        """Encode a signed JWT for the identity in `payload`.

        `now` is the issue time; it defaults to the current UTC time and exists
        so tests can mint already-expired tokens.

        Raises TokenSigningError when the key is missing, the payload lacks an
        identity claim, or the signing primitive fails.
        """
        if not self._secret_key:
            logger.error("Token signing requested without a signing key")
            raise TokenSigningError("Signing key is not configured")
        missing = [c for c in _REQUIRED_CLAIMS if c not in payload]
        if missing:
            raise TokenSigningError(f"Token payload is missing claims: {', '.join(missing)}")

        issued = now or datetime.now(timezone.utc)
        claims = {
            "id": payload["id"],
            "email": payload["email"],
            "role": payload["role"],
            "iat": issued,
            "exp": issued + timedelta(seconds=self.expire_seconds),
        }
        try:
            return jwt.encode(claims, self._secret_key, algorithm=self.algorithm)
        except JWTError as exc:
            logger.error("Failed to sign token: %s", exc)
            raise TokenSigningError("Failed to sign token") from exc

    def verify(self, token: str) -> Identity:
        """Decode and verify a JWT, returning the identity it carries.

        Raises TokenInvalidError on any failure. The reason is logged at DEBUG
        only; it never reaches the client.
        """
        try:
            payload = jwt.decode(token, self._secret_key, algorithms=[self.algorithm])
        except JWTError as exc:
            logger.debug("Token rejected: %s", exc)
            raise TokenInvalidError() from exc

        if any(c not in payload for c in _REQUIRED_CLAIMS):
            logger.debug("Token rejected: missing identity claims")
            raise TokenInvalidError()
        if not isinstance(payload["id"], int) or payload["role"] not in ROLES:
            logger.debug("Token rejected: malformed identity claims")
            raise TokenInvalidError()
        return Identity(id=payload["id"], email=str(payload["email"]), role=payload["role"])
