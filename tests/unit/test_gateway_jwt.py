"""Unit tests for JWT handler."""

import pytest
from jose import jwt

from src.pt_common.errors import InvalidCredentialsError, InvalidRefreshTokenError
from src.pt_gateway.auth.jwt_handler import (
    create_access_token,
    create_refresh_token,
    decode_token,
)


def test_access_token_contains_correct_claims() -> None:
    token = create_access_token("user-123")
    payload = jwt.get_unverified_claims(token)
    assert payload["sub"] == "user-123"
    assert payload["type"] == "access"


def test_refresh_token_contains_correct_claims() -> None:
    token = create_refresh_token("user-123")
    payload = jwt.get_unverified_claims(token)
    assert payload["type"] == "refresh"


def test_decode_valid_access_token() -> None:
    payload = decode_token(create_access_token("user-abc"), expected_type="access")
    assert payload["sub"] == "user-abc"


def test_access_token_used_as_refresh_raises_error() -> None:
    with pytest.raises(InvalidRefreshTokenError):
        decode_token(create_access_token("user-abc"), expected_type="refresh")


def test_refresh_token_used_as_access_raises_error() -> None:
    with pytest.raises(InvalidCredentialsError):
        decode_token(create_refresh_token("user-abc"), expected_type="access")


def test_tampered_token_raises() -> None:
    header, _, signature = create_access_token("user-abc").split(".")
    other_payload = create_access_token("user-xyz").split(".")[1]
    with pytest.raises(InvalidCredentialsError):
        decode_token(f"{header}.{other_payload}.{signature}", expected_type="access")


def test_foreign_secret_rejected() -> None:
    forged = jwt.encode({"sub": "admin", "type": "access"}, "other-secret", algorithm="HS256")
    with pytest.raises(InvalidCredentialsError):
        decode_token(forged, expected_type="access")
