"""Tests for pt_common.cents: integer arithmetic utilities."""

import pytest

from src.pt_common.cents import (
    apply_bps,
    bps_to_display,
    cents_to_display,
    exceeds_bps,
    ratio_bps,
    reaches_bps,
)


class TestCentsToDisplay:
    def test_basic(self) -> None:
        assert cents_to_display(6500) == "$65.00"

    def test_zero(self) -> None:
        assert cents_to_display(0) == "$0.00"

    def test_one_cent(self) -> None:
        assert cents_to_display(1) == "$0.01"

    def test_large(self) -> None:
        assert cents_to_display(150000) == "$1,500.00"

    def test_negative(self) -> None:
        assert cents_to_display(-1200) == "-$12.00"


class TestBps:
    def test_bps_display(self) -> None:
        assert bps_to_display(650) == "6.50%"
        assert bps_to_display(5) == "0.05%"
        assert bps_to_display(-250) == "-2.50%"

    def test_ratio_is_floored(self) -> None:
        # 600 / 10000 = 6% exactly; 1 / 3 = 3333.33 bps
        assert ratio_bps(600, 10_000) == 600
        assert ratio_bps(1, 3) == 3333

    def test_ratio_zero_denominator(self) -> None:
        assert ratio_bps(5, 0) == 0

    def test_exceeds_is_strict(self) -> None:
        assert not exceeds_bps(500, 10_000, 500)
        assert exceeds_bps(501, 10_000, 500)

    def test_exceeds_sees_fractional_overshoot(self) -> None:
        # 5.0001% of 1,000,000: floors to 500 bps but is over the 5% limit
        assert ratio_bps(50_001, 1_000_000) == 500
        assert exceeds_bps(50_001, 1_000_000, 500)

    def test_reaches_is_inclusive(self) -> None:
        assert reaches_bps(800, 10_000, 800)
        assert not reaches_bps(799, 10_000, 800)

    def test_apply_bps_floors(self) -> None:
        assert apply_bps(300, 2_500) == 75
        assert apply_bps(200, 1_500) == 30
        assert apply_bps(333, 5_000) == 166
