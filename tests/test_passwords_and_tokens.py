import re
from datetime import datetime, timedelta, timezone

import pytest
from jose import jwt

from pizza_service.services.passwords import PasswordHasher
from pizza_service.services.tokens import InvalidTokenError, TokenCodec
from tests.fixtures_data import JWT_PATTERN


def test_password_hash_verifies_only_the_same_password():
    hasher = PasswordHasher(rounds=4)

    hashed = hasher.hash("diner123")

    assert hashed != "diner123"
    assert hasher.looks_hashed(hashed)
    assert hasher.verify("diner123", hashed) is True
    assert hasher.verify("diner124", hashed) is False


def test_password_verify_handles_garbage_hash():
    hasher = PasswordHasher(rounds=4)

    assert hasher.verify("anything", "not-a-bcrypt-hash") is False
    assert hasher.verify("anything", "") is False


def test_long_passwords_are_truncated_consistently():
    hasher = PasswordHasher(rounds=4)
    long_password = "p" * 100

    hashed = hasher.hash(long_password)

    assert hasher.verify(long_password, hashed) is True


def test_token_carries_identity_generation_and_roles():
    codec = TokenCodec("secret")

    token = codec.encode(7, 3, [("diner", 0), ("franchisee", 12)])
    claims = codec.decode(token)

    assert re.match(JWT_PATTERN, token)
    assert claims.user_id == 7
    assert claims.generation == 3
    assert claims.roles == (("diner", 0), ("franchisee", 12))
    assert claims.expires_at > claims.issued_at
    assert claims.token_id


def test_each_token_is_unique():
    codec = TokenCodec("secret")

    assert codec.encode(1, 0, []) != codec.encode(1, 0, [])


def test_token_signed_with_other_secret_is_rejected():
    token = TokenCodec("secret-a").encode(1, 0, [])

    with pytest.raises(InvalidTokenError):
        TokenCodec("secret-b").decode(token)


def test_expired_token_is_rejected():
    codec = TokenCodec("secret", expire_minutes=5)
    issued = datetime.now(timezone.utc) - timedelta(hours=1)

    token = codec.encode(1, 0, [], now=issued)

    with pytest.raises(InvalidTokenError):
        codec.decode(token)


def test_token_without_generation_is_rejected():
    token = jwt.encode({"sub": "1", "roles": []}, "secret", algorithm="HS256")

    with pytest.raises(InvalidTokenError):
        TokenCodec("secret").decode(token)


def test_malformed_token_is_rejected():
    with pytest.raises(InvalidTokenError):
        TokenCodec("secret").decode("definitely-not-a-jwt")


def test_codec_requires_a_secret():
    with pytest.raises(RuntimeError):
        TokenCodec("")
