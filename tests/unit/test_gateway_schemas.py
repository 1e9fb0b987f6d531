"""Unit tests for auth request validation."""

import pytest
from pydantic import ValidationError

from src.pt_gateway.user.schemas import RegisterRequest


def _body(**overrides: object) -> dict[str, object]:
    body: dict[str, object] = {
        "username": "trader_01",
        "email": "trader@example.com",
        "password": "Passw0rdOK",
    }
    body.update(overrides)
    return body


def test_valid_registration() -> None:
    req = RegisterRequest(**_body(referral_code="AB12CD34"))
    assert req.referral_code == "AB12CD34"


def test_referral_code_optional() -> None:
    assert RegisterRequest(**_body()).referral_code is None


@pytest.mark.parametrize("password", ["short1A", "alllowercase1", "ALLUPPERCASE1", "NoDigitsHere"])
def test_weak_passwords_rejected(password: str) -> None:
    with pytest.raises(ValidationError):
        RegisterRequest(**_body(password=password))


def test_username_charset() -> None:
    with pytest.raises(ValidationError):
        RegisterRequest(**_body(username="bad name!"))


def test_email_validated() -> None:
    with pytest.raises(ValidationError):
        RegisterRequest(**_body(email="not-an-email"))
