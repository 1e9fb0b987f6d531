"""Integer arithmetic utilities for cents-based balances.

All amounts and balances use int (cents). No float, no Decimal.
Percent thresholds use basis points (1% = 100 bps); lot sizes use
hundredths of a lot (0.01 lot = 1).
"""

BPS_PER_UNIT = 10_000


def cents_to_display(cents: int) -> str:
    """Convert cents to display string: 6500 -> '$65.00', -1200 -> '-$12.00'."""
    if cents < 0:
        abs_cents = -cents
        return f"-${abs_cents // 100:,}.{abs_cents % 100:02d}"
    return f"${cents // 100:,}.{cents % 100:02d}"


def bps_to_display(bps: int) -> str:
    """Convert basis points to a percent string: 650 -> '6.50%'."""
    sign = "-" if bps < 0 else ""
    bps = abs(bps)
    return f"{sign}{bps // 100}.{bps % 100:02d}%"


def ratio_bps(numerator: int, denominator: int) -> int:
    """Floor of numerator/denominator expressed in basis points.

    Display-only. Threshold comparisons use `exceeds_bps` so that a value a
    fraction of a basis point over the limit is not rounded away.
    """
    if denominator <= 0:
        return 0
    return numerator * BPS_PER_UNIT // denominator


def exceeds_bps(numerator: int, denominator: int, limit_bps: int) -> bool:
    """Exact test of numerator/denominator > limit_bps / 10000 (denominator > 0)."""
    return numerator * BPS_PER_UNIT > limit_bps * denominator


def reaches_bps(numerator: int, denominator: int, target_bps: int) -> bool:
    """Exact test of numerator/denominator >= target_bps / 10000 (denominator > 0)."""
    return numerator * BPS_PER_UNIT >= target_bps * denominator


def apply_bps(amount: int, rate_bps: int) -> int:
    """amount * rate_bps / 10000, floored (payouts never round up)."""
    return amount * rate_bps // BPS_PER_UNIT
