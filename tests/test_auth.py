"""
Authentication utility tests.

Pure functions only: credential checks and JWT issue/decode.
"""

from datetime import timedelta

import pytest

from notevault.auth import (
    create_access_token,
    decode_access_token,
    get_password_hash,
    verify_credentials,
)

SECRET = "unit-test-secret"


@pytest.mark.unit
def test_plain_text_credential():
    assert verify_credentials("admin", "pw", "admin", "pw") is True
    assert verify_credentials("admin", "nope", "admin", "pw") is False
    assert verify_credentials("root", "pw", "admin", "pw") is False


@pytest.mark.unit
def test_non_string_input_is_rejected():
    assert verify_credentials(None, "pw", "admin", "pw") is False
    assert verify_credentials("admin", 123, "admin", "pw") is False


@pytest.mark.unit
def test_hashed_credential():
    """A bcrypt hash in the config is verified rather than compared literally"""
    hashed = get_password_hash("MyPassword123!")
    assert hashed.startswith("$2b$")
    assert verify_credentials("admin", "MyPassword123!", "admin", hashed) is True
    assert verify_credentials("admin", hashed, "admin", hashed) is False


@pytest.mark.unit
def test_token_round_trip():
    token = create_access_token("alice", SECRET, timedelta(days=7))
    payload = decode_access_token(token, SECRET)
    assert payload["sub"] == "alice"
    assert payload["exp"] > payload["iat"]


@pytest.mark.unit
def test_expired_token_is_rejected():
    token = create_access_token("alice", SECRET, timedelta(seconds=-5))
    assert decode_access_token(token, SECRET) is None


@pytest.mark.unit
def test_wrong_secret_or_garbage_is_rejected():
    token = create_access_token("alice", SECRET, timedelta(minutes=5))
    assert decode_access_token(token, "other-secret") is None
    assert decode_access_token("not.a.token", SECRET) is None
