"""Unit tests for auth/tokens.py and auth/passwords.py.

Covers:
- issued tokens decode to sub/email with a one-hour lifetime
- two tokens for the same identity differ
- wrong key, garbage and expired tokens all collapse to InvalidOrExpiredToken
- a missing signing secret refuses both issue and decode
- bcrypt hashes are salted, verify correctly, and malformed hashes raise HashingFailure
"""

import os

import pytest
from jose import jwt

from auth.errors import HashingFailure, InvalidOrExpiredToken, MissingSigningSecret
from auth.models import Identity
from auth.tokens import TokenIssuer

TEST_SECRET = os.environ["SECRET_KEY"]


@pytest.fixture
def identity():
    return Identity(id="abc123", email="tok@x.com", password_hash="x", is_verified=True)


class TestTokenIssuer:
    def test_round_trip_claims(self, issuer, identity):
        claims = issuer.decode(issuer.issue(identity))
        assert claims["sub"] == "abc123"
        assert claims["email"] == "tok@x.com"
        assert claims["exp"] - claims["iat"] == 3600

    def test_tokens_are_unique(self, issuer, identity):
        assert issuer.issue(identity) != issuer.issue(identity)

    def test_wrong_key_rejected(self, identity):
        other = TokenIssuer("another-secret-key-0123456789abcdef0123")
        token = other.issue(identity)
        with pytest.raises(InvalidOrExpiredToken):
            TokenIssuer(TEST_SECRET).decode(token)

    def test_garbage_rejected(self, issuer):
        with pytest.raises(InvalidOrExpiredToken):
            issuer.decode("not-a-token")

    def test_expired_rejected(self, identity):
        expired_issuer = TokenIssuer(TEST_SECRET, expire_seconds=-10)
        token = expired_issuer.issue(identity)
        with pytest.raises(InvalidOrExpiredToken):
            expired_issuer.decode(token)

    def test_missing_subject_rejected(self, issuer):
        token = jwt.encode({"email": "tok@x.com"}, TEST_SECRET, algorithm="HS256")
        with pytest.raises(InvalidOrExpiredToken):
            issuer.decode(token)

    def test_missing_secret_refuses_issue(self, identity):
        with pytest.raises(MissingSigningSecret):
            TokenIssuer("").issue(identity)

    def test_missing_secret_refuses_decode(self, issuer, identity):
        token = issuer.issue(identity)
        with pytest.raises(MissingSigningSecret):
            TokenIssuer("").decode(token)


class TestPasswordHasher:
    def test_hash_is_salted(self, hasher):
        assert hasher.hash("secret1") != hasher.hash("secret1")

    def test_verify(self, hasher):
        hashed = hasher.hash("secret1")
        assert hasher.verify("secret1", hashed)
        assert not hasher.verify("secret2", hashed)

    def test_plaintext_not_in_hash(self, hasher):
        assert "secret1" not in hasher.hash("secret1")

    def test_long_password_verifies(self, hasher):
        long_pw = "p" * 200
        assert hasher.verify(long_pw, hasher.hash(long_pw))

    def test_malformed_hash_raises(self, hasher):
        with pytest.raises(HashingFailure):
            hasher.verify("secret1", "not-a-bcrypt-hash")
