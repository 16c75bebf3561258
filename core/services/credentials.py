"""
Session credential issuance and resolution.

A session token is an opaque hex string bound to exactly one user. Issuing a
new token replaces the previous one; there is no expiry clock, so rotation is
the only way a token stops working.
"""

from __future__ import annotations

import secrets
from typing import Optional

from sqlalchemy import update

import core.config as config
from core.errors import AuthError, NotFound
from core.models import User


def generate_session_token(num_bytes: Optional[int] = None) -> str:
    """Return a random token of ``2 * num_bytes`` lowercase hex characters."""
    return secrets.token_hex(num_bytes or config.SESSION_TOKEN_BYTES)


class CredentialStore:
    def __init__(self, token_bytes: Optional[int] = None):
        self._token_bytes = token_bytes or config.SESSION_TOKEN_BYTES

    def new_token(self) -> str:
        return generate_session_token(self._token_bytes)

    def issue(self, db, username: str) -> str:
        """
        Store a fresh token for ``username`` and return it.

        Runs inside the caller's transaction; the caller commits.
        """
        token = self.new_token()
        result = db.execute(
            update(User.__table__)
            .where(User.__table__.c.username == username)
            .values(session_token=token)
        )
        if result.rowcount == 0:
            raise NotFound("User not found", field="username")
        return token

    def resolve(self, db, token: Optional[str]) -> User:
        if not token or not isinstance(token, str):
            raise AuthError("Missing session_token", field="session_token")
        user = db.query(User).filter(User.session_token == token).first()
        if user is None:
            raise AuthError("Invalid session token", field="session_token")
        return user

    def resolve_optional(self, db, token: Optional[str]) -> Optional[User]:
        """Resolve a token when a session is optional; an invalid token still fails."""
        if token is None or token == "":
            return None
        return self.resolve(db, token)
