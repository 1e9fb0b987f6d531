"""Validation tests for transfer and payout request schemas."""

import pytest
from pydantic import ValidationError

from src.pt_transfer.application.schemas import (
    BankPayout,
    DepositRequest,
    QrPayout,
    TransferRequest,
    UpiPayout,
    WithdrawRequest,
)


class TestPayoutMethod:
    def test_bank_details(self) -> None:
        req = WithdrawRequest.model_validate({
            "amount_cents": 40_000,
            "payout": {
                "method": "bank",
                "bank_name": "State Bank",
                "account_number": "001234567890",
                "ifsc_code": "SBIN0001234",
                "account_holder_name": "A Trader",
            },
        })
        assert isinstance(req.payout, BankPayout)

    def test_upi_details(self) -> None:
        req = WithdrawRequest.model_validate(
            {"amount_cents": 40_000, "payout": {"method": "upi", "upi_id": "trader.one@okaxis"}}
        )
        assert isinstance(req.payout, UpiPayout)

    def test_qr_details(self) -> None:
        req = WithdrawRequest.model_validate(
            {"amount_cents": 40_000, "payout": {"method": "qr", "qr_reference": "QR-778"}}
        )
        assert isinstance(req.payout, QrPayout)
        assert req.payout.model_dump() == {"method": "qr", "qr_reference": "QR-778"}

    @pytest.mark.parametrize(
        "payout",
        [
            {"method": "bank", "bank_name": "B", "account_number": "12AB",
             "ifsc_code": "SBIN0001234", "account_holder_name": "A"},
            {"method": "bank", "bank_name": "B", "account_number": "001234567890",
             "ifsc_code": "sbin0001234", "account_holder_name": "A"},
            {"method": "upi", "upi_id": "no-at-sign"},
            {"method": "crypto", "address": "0xabc"},
            {"upi_id": "trader@okaxis"},
        ],
    )
    def test_rejects_malformed(self, payout: dict) -> None:
        with pytest.raises(ValidationError):
            WithdrawRequest.model_validate({"amount_cents": 40_000, "payout": payout})

    @pytest.mark.parametrize("upi_id", ["trader_one-2@okhdfc", "a.b@ybl", "9876543210@paytm"])
    def test_upi_handle_characters(self, upi_id: str) -> None:
        assert UpiPayout(upi_id=upi_id).upi_id == upi_id

    @pytest.mark.parametrize("upi_id", ["träder@okaxis", "a@okaxis", "trader@ok1"])
    def test_upi_rejects_bad_handles(self, upi_id: str) -> None:
        with pytest.raises(ValidationError):
            UpiPayout(upi_id=upi_id)


class TestAmounts:
    @pytest.mark.parametrize("amount", [0, -1])
    def test_transfer_amount_positive(self, amount: int) -> None:
        with pytest.raises(ValidationError):
            TransferRequest(account_id="acc-1", amount_cents=amount, direction="deposit")

    def test_direction_values(self) -> None:
        with pytest.raises(ValidationError):
            TransferRequest(account_id="acc-1", amount_cents=100, direction="sideways")

    def test_deposit_method_restricted(self) -> None:
        with pytest.raises(ValidationError):
            DepositRequest(amount_cents=100, method="cheque", reference="R1")
