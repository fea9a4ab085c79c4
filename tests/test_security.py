"""Password hashing and JWT issuance."""

from datetime import datetime, timedelta, timezone

import pytest
from jose import jwt

from src.domain.errors import AuthenticationError
from src.infrastructure.security import TokenService, hash_password, verify_password


class TestPasswords:
    def test_hash_verifies(self):
        hashed = hash_password("hunter22", rounds=4)
        assert hashed != "hunter22"
        assert verify_password("hunter22", hashed)

    def test_wrong_password(self):
        assert not verify_password("nope", hash_password("hunter22", rounds=4))

    def test_malformed_hash_is_not_an_error(self):
        assert not verify_password("hunter22", "not-a-bcrypt-hash")


class TestTokenService:
    def setup_method(self):
        self.tokens = TokenService("unit-test-secret", expires_minutes=5)

    def test_round_trip_claims(self):
        claims = self.tokens.decode(self.tokens.issue("alice", "Driver"))
        assert claims["sub"] == "alice"
        assert claims["role"] == "Driver"
        assert claims["exp"] > claims["iat"]

    def test_tokens_are_unique(self):
        assert self.tokens.issue("alice", "Admin") != self.tokens.issue("alice", "Admin")

    def test_wrong_secret_rejected(self):
        token = TokenService("another-secret").issue("alice", "Customer")
        with pytest.raises(AuthenticationError):
            self.tokens.decode(token)

    def test_expired_token_rejected(self):
        past = datetime.now(timezone.utc) - timedelta(hours=1)
        token = jwt.encode(
            {"sub": "alice", "role": "Customer", "iat": past, "exp": past + timedelta(minutes=5)},
            "unit-test-secret",
            algorithm="HS256",
        )
        with pytest.raises(AuthenticationError, match="Invalid or expired"):
            self.tokens.decode(token)

    def test_token_without_subject_rejected(self):
        token = jwt.encode({"role": "Customer"}, "unit-test-secret", algorithm="HS256")
        with pytest.raises(AuthenticationError):
            self.tokens.decode(token)

    def test_empty_secret_refused(self):
        with pytest.raises(ValueError):
            TokenService("")
