from datetime import datetime, timedelta, timezone

import pytest
from jose import JWTError

from schemas import Role
from security import create_access_token, decode_access_token, hash_password, verify_password


def test_token_carries_id_and_role():
    payload = decode_access_token(create_access_token("abc123", Role.STORE_OWNER.value))
    assert payload["id"] == "abc123"
    assert payload["role"] == "STORE_OWNER"
    assert payload["exp"] - payload["iat"] == 3600


def test_token_older_than_one_hour_is_rejected():
    issued = datetime.now(timezone.utc) - timedelta(hours=1, seconds=1)
    with pytest.raises(JWTError):
        decode_access_token(create_access_token("abc123", Role.NORMAL_USER.value, issued_at=issued))


def test_token_just_issued_is_accepted():
    issued = datetime.now(timezone.utc) - timedelta(minutes=59)
    assert decode_access_token(create_access_token("abc123", Role.NORMAL_USER.value, issued_at=issued))["id"] == "abc123"


def test_tampered_token_is_rejected():
    token = create_access_token("abc123", Role.NORMAL_USER.value)
    with pytest.raises(JWTError):
        decode_access_token(token[:-2] + ("aa" if not token.endswith("aa") else "bb"))


def test_password_hash_roundtrip():
    hashed = hash_password("Secret@123")
    assert hashed != "Secret@123"
    assert verify_password("Secret@123", hashed)
    assert not verify_password("Secret@124", hashed)
    assert not verify_password("Secret@123", "")
