"""Tests for pt_common.errors: codes and HTTP statuses."""

import pytest

from src.pt_common.errors import (
    AppError,
    ChallengeExpiredError,
    ConcurrentModificationError,
    EntityNotFoundError,
    InsufficientFundsError,
    InvalidAmountError,
    InvalidStateError,
    InvalidTargetError,
    NotAnIBError,
    UnavailableError,
)


@pytest.mark.parametrize(
    ("error", "code", "status"),
    [
        (InsufficientFundsError(500, 400), 2001, 422),
        (EntityNotFoundError("Wallet", "u1"), 2002, 404),
        (InvalidStateError("FAILED"), 2003, 409),
        (InvalidTargetError("same account"), 2004, 422),
        (ConcurrentModificationError("Challenge account", "c1"), 2005, 409),
        (InvalidAmountError("zero"), 2006, 422),
        (ChallengeExpiredError("c1"), 3001, 422),
        (NotAnIBError("u1"), 4001, 403),
        (UnavailableError(), 9003, 503),
    ],
)
def test_error_codes(error: AppError, code: int, status: int) -> None:
    assert isinstance(error, AppError)
    assert error.code == code
    assert error.http_status == status


def test_insufficient_funds_carries_amounts() -> None:
    err = InsufficientFundsError(50000, 40000)
    assert err.required == 50000
    assert err.available == 40000
    assert "50000" in err.message


def test_storage_failure_distinct_from_business_errors() -> None:
    assert UnavailableError().code // 1000 == 9
    assert InsufficientFundsError(1, 0).code // 1000 == 2
