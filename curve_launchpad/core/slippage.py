"""
Slippage bounds for callers building buy/sell requests

Turns a quote into the limit a trade request carries: a minimum output for
exact-input trades, a maximum cost for exact-output buys. Rounding is always
conservative for the trader.

Usage:
    quote = quote_buy(curve, 1_000_000_000)
    min_tokens = min_amount_out(quote.token_amount, tolerance_bps=500)
    launchpad.buy(mint, user, 1_000_000_000, min_tokens)
"""

from enum import Enum

from curve_launchpad.core.fees import BPS_DENOMINATOR


class TradeUrgency(Enum):
    """Urgency level mapped to a default slippage tolerance"""
    LOW = "low"  # 1%
    NORMAL = "normal"  # 5%
    HIGH = "high"  # 10%
    CRITICAL = "critical"  # 20%


SLIPPAGE_TOLERANCE_BPS = {
    TradeUrgency.LOW: 100,
    TradeUrgency.NORMAL: 500,
    TradeUrgency.HIGH: 1000,
    TradeUrgency.CRITICAL: 2000,
}


def _check_tolerance(tolerance_bps: int) -> None:
    if not 0 <= tolerance_bps <= BPS_DENOMINATOR:
        raise ValueError(f"tolerance_bps must be in [0, {BPS_DENOMINATOR}], got {tolerance_bps}")


def min_amount_out(expected_amount: int, tolerance_bps: int) -> int:
    """
    Smallest acceptable output, rounded down

    Example:
        min_amount_out(1_000_000, 500)  # 950_000
    """
    if expected_amount < 0:
        raise ValueError("Expected amount must be non-negative")
    _check_tolerance(tolerance_bps)
    return (expected_amount * (BPS_DENOMINATOR - tolerance_bps)) // BPS_DENOMINATOR


def max_amount_in(expected_amount: int, tolerance_bps: int) -> int:
    """
    Largest acceptable input, rounded up

    Example:
        max_amount_in(1_000_000, 500)  # 1_050_000
    """
    if expected_amount < 0:
        raise ValueError("Expected amount must be non-negative")
    _check_tolerance(tolerance_bps)
    numerator = expected_amount * (BPS_DENOMINATOR + tolerance_bps)
    return -(-numerator // BPS_DENOMINATOR)


def tolerance_for(urgency: TradeUrgency) -> int:
    """Default tolerance in basis points for an urgency level"""
    return SLIPPAGE_TOLERANCE_BPS[urgency]
