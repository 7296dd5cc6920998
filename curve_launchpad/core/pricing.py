"""
Pricing engine for bonding curves

Stateless constant-product math over a BondingCurveState snapshot.

Formula (on virtual reserves, k = vs * vt):
    buy:  tokens_out = vt - k / (vs + sol_in)      = floor(vt * sol_in / (vs + sol_in))
    sell: sol_out    = vs - k / (vt + tokens_in)   = floor(vs * tokens_in / (vt + tokens_in))

Outputs are floored, so the curve's k never shrinks and a trader can never
receive value that rounding created. Inputs and reserves are u64, products are
checked against u128; anything outside those domains fails with
ArithmeticOverflowError instead of wrapping.

Fees are not applied here: the executor takes them from the settlement leg of
the quote.
"""

from dataclasses import dataclass, replace

from curve_launchpad.core.bonding_curve import (
    U64_MAX,
    U128_MAX,
    BondingCurveState,
    TradeDirection,
)
from curve_launchpad.core.errors import (
    ArithmeticOverflowError,
    InsufficientLiquidityError,
    ZeroAmountError,
)
from curve_launchpad.core.fees import BPS_DENOMINATOR


@dataclass(frozen=True)
class Quote:
    """
    Result of pricing one trade

    sol_amount is the settlement leg before fees, token_amount the token leg.
    new_state is the curve after the trade, not yet committed anywhere.
    """
    direction: TradeDirection
    sol_amount: int
    token_amount: int
    new_state: BondingCurveState


def _check_u64(name: str, value: int) -> int:
    if value < 0 or value > U64_MAX:
        raise ArithmeticOverflowError(f"{name} outside u64 domain: {value}")
    return value


def _check_u128(name: str, value: int) -> int:
    if value < 0 or value > U128_MAX:
        raise ArithmeticOverflowError(f"{name} outside u128 domain: {value}")
    return value


def _check_input(name: str, amount: int) -> None:
    if amount <= 0:
        raise ZeroAmountError(f"{name} must be positive, got {amount}")
    _check_u64(name, amount)


def _check_reserves(state: BondingCurveState) -> None:
    for name in (
        "virtual_sol_reserves",
        "virtual_token_reserves",
        "real_sol_reserves",
        "real_token_reserves",
    ):
        _check_u64(name, getattr(state, name))


def quote_buy(state: BondingCurveState, sol_in: int) -> Quote:
    """
    Tokens released for an exact SOL input

    Args:
        state: Current curve snapshot
        sol_in: SOL spent on the curve, in lamports, excluding fees

    Returns:
        Quote with token_amount = tokens released

    Raises:
        ZeroAmountError: sol_in is zero, or too small to release a single token unit
        InsufficientLiquidityError: Quote exceeds real token reserves (no partial fills)
        ArithmeticOverflowError: An operand or result leaves its integer domain
    """
    _check_input("sol_in", sol_in)
    _check_reserves(state)

    vs = state.virtual_sol_reserves
    vt = state.virtual_token_reserves

    numerator = _check_u128("vt * sol_in", vt * sol_in)
    new_vs = _check_u64("virtual_sol_reserves", vs + sol_in)
    tokens_out = numerator // new_vs

    if tokens_out == 0:
        raise ZeroAmountError(f"sol_in {sol_in} buys zero tokens")

    if tokens_out > state.real_token_reserves:
        raise InsufficientLiquidityError(
            f"quote of {tokens_out} tokens exceeds real reserves {state.real_token_reserves}"
        )

    new_state = replace(
        state,
        virtual_sol_reserves=new_vs,
        virtual_token_reserves=vt - tokens_out,
        real_sol_reserves=_check_u64("real_sol_reserves", state.real_sol_reserves + sol_in),
        real_token_reserves=state.real_token_reserves - tokens_out,
    )

    return Quote(TradeDirection.BUY, sol_in, tokens_out, new_state)


def quote_buy_exact_tokens(state: BondingCurveState, tokens_out: int) -> Quote:
    """
    Minimum SOL cost for an exact token amount

    sol_in = floor(vs * tokens_out / (vt - tokens_out)) + 1, the smallest input
    whose buy quote releases at least tokens_out. The curve is charged for
    exactly tokens_out, so any rounding surplus stays with the curve.

    Raises:
        ZeroAmountError: tokens_out is zero
        InsufficientLiquidityError: tokens_out exceeds real token reserves
        ArithmeticOverflowError: An operand or result leaves its integer domain
    """
    _check_input("tokens_out", tokens_out)
    _check_reserves(state)

    if tokens_out > state.real_token_reserves or tokens_out >= state.virtual_token_reserves:
        raise InsufficientLiquidityError(
            f"requested {tokens_out} tokens exceeds real reserves {state.real_token_reserves}"
        )

    vs = state.virtual_sol_reserves
    vt = state.virtual_token_reserves

    numerator = _check_u128("vs * tokens_out", vs * tokens_out)
    sol_in = _check_u64("sol_in", numerator // (vt - tokens_out) + 1)

    new_state = replace(
        state,
        virtual_sol_reserves=_check_u64("virtual_sol_reserves", vs + sol_in),
        virtual_token_reserves=vt - tokens_out,
        real_sol_reserves=_check_u64("real_sol_reserves", state.real_sol_reserves + sol_in),
        real_token_reserves=state.real_token_reserves - tokens_out,
    )

    return Quote(TradeDirection.BUY, sol_in, tokens_out, new_state)


def quote_sell(state: BondingCurveState, tokens_in: int) -> Quote:
    """
    SOL returned for an exact token input

    Args:
        state: Current curve snapshot
        tokens_in: Tokens sold back to the curve, in base units

    Returns:
        Quote with sol_amount = SOL leaving the curve before fees

    Raises:
        ZeroAmountError: tokens_in is zero, or too small to return a single lamport
        InsufficientLiquidityError: Quote exceeds real SOL reserves
        ArithmeticOverflowError: An operand or result leaves its integer domain
    """
    _check_input("tokens_in", tokens_in)
    _check_reserves(state)

    vs = state.virtual_sol_reserves
    vt = state.virtual_token_reserves

    numerator = _check_u128("vs * tokens_in", vs * tokens_in)
    new_vt = _check_u64("virtual_token_reserves", vt + tokens_in)
    sol_out = numerator // new_vt

    if sol_out == 0:
        raise ZeroAmountError(f"tokens_in {tokens_in} returns zero lamports")

    if sol_out >state.real_sol_reserves:
        raise InsufficientLiquidityError(
            f"quote of {sol_out} lamports exceeds real reserves {state.real_sol_reserves}"
        )

    new_state = replace(
        state,
        virtual_sol_reserves=vs - sol_out,
        virtual_token_reserves=new_vt,
        real_sol_reserves=state.real_sol_reserves - sol_out,
        real_token_reserves=_check_u64("real_token_reserves", state.real_token_reserves + tokens_in),
    )

    return Quote(TradeDirection.SELL, sol_out, tokens_in, new_state)


def price_impact_bps(state: BondingCurveState, quote: Quote) -> int:
    """
    Move of the spot price caused by a quote, in basis points

    Compares vs/vt before and after with cross-multiplication, so no floats.
    """
    before_num, before_den = state.virtual_sol_reserves, state.virtual_token_reserves
    after_num, after_den = quote.new_state.virtual_sol_reserves, quote.new_state.virtual_token_reserves

    if before_num == 0 or after_den == 0:
        return 0

    # |after/before - 1| = |after_num*before_den - before_num*after_den| / (before_num*after_den)
    diff = abs(after_num * before_den - before_num * after_den)
    return (diff * BPS_DENOMINATOR) // (before_num * after_den)
