"""
Password hashing and JWT issuance.

Passwords are hashed with bcrypt.  Tokens are HS256 JWTs signed with
python-jose; the signing secret is handed to ``TokenService`` by whoever
builds it (the app factory), never read from module state.

Claims
------
* ``sub``  -- username
* ``role`` -- ``Admin`` | ``Customer`` | ``Driver``
* ``iat`` / ``exp`` -- issue and expiry time
* ``jti``  -- random id, so two tokens issued in the same second differ
  and logging out of one session leaves the other valid
"""

from __future__ import annotations

import uuid
from datetime import datetime, timedelta, timezone
from typing import Any

import bcrypt
from jose import JWTError, jwt

from src.domain.errors import AuthenticationError


def hash_password(password: str, rounds: int = 12) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt(rounds)).decode(
        "utf-8"
    )


def verify_password(password: str, password_hash: str) -> bool:
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        # malformed stored hash
        return False


class TokenService:
    def __init__(
        self,
        secret: str,
        algorithm: str = "HS256",
        expires_minutes: int = 24 * 60,
    ):
        if not secret:
            raise ValueError("JWT secret must not be empty")
        self.secret = secret
        self.algorithm = algorithm
        self.expires = timedelta(minutes=expires_minutes)

    def issue(self, username: str, role: str) -> str:
        now = datetime.now(timezone.utc)
        claims = {
            "sub": username,
            "role": role,
            "iat": now,
            "exp": now + self.expires,
            "jti": uuid.uuid4().hex,
        }
        return jwt.encode(claims, self.secret, algorithm=self.algorithm)

    def decode(self, token: str) -> dict[str, Any]:
        """Return the claims of a valid token or raise ``AuthenticationError``."""
        try:
            claims = jwt.decode(token, self.secret, algorithms=[self.algorithm])
        except JWTError as exc:
            raise AuthenticationError("Invalid or expired JWT token") from exc
        if not claims.get("sub"):
            raise AuthenticationError("Token has no subject")
        return claims
