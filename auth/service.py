"""
auth/service.py -- Sign-up and sign-in business rules.

AuthService sits between the auth routes and UserStore. It owns the two rules
the store does not: hash the password before an insert, and compare a
supplied password against the stored hash on sign-in.

Both operations return the full User row, hash included. Callers must strip
it with User.profile() (or build a summary) before it reaches a response.

Layer rule: no imports from api/.
"""

from __future__ import annotations

import logging

from auth.models import ROLE_USER, User
from auth.store import UserStore
from auth.tokens import DEFAULT_BCRYPT_ROUNDS, hash_password, verify_password
from core.errors import DuplicateEmail, InvalidPassword, UserNotFound

logger = logging.getLogger("acquisitions.auth.service")


class AuthService:
    def __init__(self, store: UserStore, bcrypt_rounds: int = DEFAULT_BCRYPT_ROUNDS) -> None:
        self.store = store
        self.bcrypt_rounds = bcrypt_rounds

    def create_user(self, name: str, email: str, password: str, role: str | None = None) -> User:
        """Register a new account.

        Raises DuplicateEmail if the email is already registered. The lookup
        below is a fast path for the common case; the UNIQUE constraint in the
        store still decides concurrent sign-ups.
        """
        if self.store.get_by_email(email) is not None:
            raise DuplicateEmail()

        hashed = hash_password(password, self.bcrypt_rounds)
        user = self.store.create_user(name=name, email=email, hashed_password=hashed, role=role or ROLE_USER)
        logger.info("User %s created with role %s", user.email, user.role)
        return user

    def authenticate_user(self, email: str, password: str) -> User:
        """Return the user matching the credentials.

        Raises UserNotFound for an unknown email, InvalidPassword for a wrong
        password.
        """
        user = self.store.get_by_email(email)
        if user is None:
            raise UserNotFound()
        if not verify_password(password, user.hashed_password):
            raise InvalidPassword()
        logger.info("User %s authenticated", user.email)
        return user
