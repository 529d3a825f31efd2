"""
Tests for password hashing and access tokens.
"""

from freelance_marketplace_api.app.core.config import settings
from freelance_marketplace_api.app.core.security import (
    PASSWORD_SCHEME,
    create_access_token,
    decode_access_token,
    hash_password,
    verify_password,
)


def test_password_hash_format():
    hashed = hash_password("s3cure-password")
    scheme, iterations, salt, digest = hashed.split("$")
    assert scheme == PASSWORD_SCHEME
    assert int(iterations) > 0
    assert len(bytes.fromhex(salt)) == 16
    assert hashed != hash_password("s3cure-password")


def test_verify_password():
    hashed = hash_password("s3cure-password")
    assert verify_password("s3cure-password", hashed) is True
    assert verify_password("wrong-password", hashed) is False
    assert verify_password("s3cure-password", None) is False
    assert verify_password("s3cure-password", "plain-text") is False
    assert verify_password("s3cure-password", f"{PASSWORD_SCHEME}$x$zz$zz") is False


def test_token_claims():
    claims = decode_access_token(create_access_token({"sub": "dev@example.com"}, expires_delta=60))
    assert claims["sub"] == "dev@example.com"
    assert claims["exp"] - claims["iat"] == 60


def test_expired_token():
    token = create_access_token({"sub": "dev@example.com"}, expires_delta=-10)
    assert decode_access_token(token) is None


def test_tampered_token():
    header, _, signature = create_access_token({"sub": "dev@example.com"}).split(".")
    forged = create_access_token({"sub": "admin@example.com"}).split(".")[1]
    assert decode_access_token(f"{header}.{forged}.{signature}") is None
    assert decode_access_token("not-a-token") is None


def test_token_signed_with_other_secret(monkeypatch):
    token = create_access_token({"sub": "dev@example.com"})
    monkeypatch.setattr(settings, "secret_key", "rotated")
    assert decode_access_token(token) is None
