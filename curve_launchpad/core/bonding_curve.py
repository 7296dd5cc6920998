"""
Bonding curve reserve model

Holds the virtual and real reserves of one curve. Virtual reserves drive the
constant-product price; real reserves track what custody actually holds.

All values in base units:
- SOL values: lamports (9 decimals)
- Token values: base token units (6 decimals)

States are immutable. Every trade produces a new BondingCurveState via
dataclasses.replace(), so a half-applied update can never be observed.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, List

from solders.pubkey import Pubkey

from curve_launchpad.core.config import GlobalConfig
from curve_launchpad.core.errors import NotInitializedError
from curve_launchpad.core.fees import BPS_DENOMINATOR


U64_MAX = 2**64 - 1
U128_MAX = 2**128 - 1

BONDING_CURVE_SEED = b"bonding-curve"
LAMPORTS_PER_SOL = 1_000_000_000


class TradeDirection(Enum):
    """Side of a trade, from the trader's point of view"""
    BUY = "buy"
    SELL = "sell"


@dataclass(frozen=True)
class BondingCurveState:
    """Reserve snapshot of one bonding curve"""
    virtual_sol_reserves: int  # lamports, pricing only
    virtual_token_reserves: int  # base units, pricing only
    real_sol_reserves: int  # lamports held in curve custody
    real_token_reserves: int  # base units still sellable by the curve
    token_total_supply: int  # fixed at creation
    complete: bool = False  # one-way, set when real tokens run out

    @property
    def constant_product(self) -> int:
        """k = virtual_sol_reserves * virtual_token_reserves"""
        return self.virtual_sol_reserves * self.virtual_token_reserves


def new_curve_state(config: GlobalConfig) -> BondingCurveState:
    """
    Seed a curve from the global configuration

    Raises:
        NotInitializedError: If the global configuration has not been initialized
    """
    if not config.initialized:
        raise NotInitializedError("global configuration is not initialized")

    return BondingCurveState(
        virtual_sol_reserves=config.initial_virtual_sol_reserves,
        virtual_token_reserves=config.initial_virtual_token_reserves,
        real_sol_reserves=0,
        real_token_reserves=config.initial_real_token_reserves,
        token_total_supply=config.initial_token_supply,
        complete=False,
    )


def derive_bonding_curve_address(mint: Pubkey, program_id: Pubkey) -> Pubkey:
    """
    Deterministic curve address for a mint

    Args:
        mint: Token mint address
        program_id: Launchpad program id from GlobalConfig

    Returns:
        Program-derived address for seeds [b"bonding-curve", mint]
    """
    address, _ = Pubkey.find_program_address([BONDING_CURVE_SEED, bytes(mint)], program_id)
    return address


# =============================================================================
# STATE INVARIANTS
# =============================================================================

def inv_non_negative(s: BondingCurveState) -> bool:
    return min(
        s.virtual_sol_reserves,
        s.virtual_token_reserves,
        s.real_sol_reserves,
        s.real_token_reserves,
        s.token_total_supply,
    ) >= 0


def inv_u64_bounded(s: BondingCurveState) -> bool:
    return max(
        s.virtual_sol_reserves,
        s.virtual_token_reserves,
        s.real_sol_reserves,
        s.real_token_reserves,
        s.token_total_supply,
    ) <= U64_MAX


def inv_virtual_sol_covers_real(s: BondingCurveState) -> bool:
    return s.virtual_sol_reserves >= s.real_sol_reserves


def inv_virtual_token_covers_real(s: BondingCurveState) -> bool:
    return s.virtual_token_reserves >= s.real_token_reserves


def inv_real_tokens_within_supply(s: BondingCurveState) -> bool:
    return s.real_token_reserves <= s.token_total_supply


INVARIANT_REGISTRY: Dict[str, Callable[[BondingCurveState], bool]] = {
    "inv_non_negative": inv_non_negative,
    "inv_u64_bounded": inv_u64_bounded,
    "inv_virtual_sol_covers_real": inv_virtual_sol_covers_real,
    "inv_virtual_token_covers_real": inv_virtual_token_covers_real,
    "inv_real_tokens_within_supply": inv_real_tokens_within_supply,
}


def check_invariants(state: BondingCurveState) -> List[str]:
    """Return violated invariant ids (empty = all hold)"""
    return [
        inv_id
        for inv_id, check_fn in INVARIANT_REGISTRY.items()
        if not check_fn(state)
    ]


def check_transition(
    before: BondingCurveState,
    after: BondingCurveState,
    direction: TradeDirection
) -> List[str]:
    """
    Return violated trade-transition invariants (empty = valid)

    Checks the post-state invariants plus the rules that relate the two states:
    real token reserves move the right way, a sell pays out SOL, supply is
    fixed, completion is one-way and rounding never shrinks the constant
    product.
    """
    violations = check_invariants(after)

    if direction is TradeDirection.BUY and after.real_token_reserves > before.real_token_reserves:
        violations.append("trans_buy_real_tokens_non_increasing")
    if direction is TradeDirection.SELL and after.real_token_reserves < before.real_token_reserves:
        violations.append("trans_sell_real_tokens_non_decreasing")
    if direction is TradeDirection.SELL and after.real_sol_reserves >= before.real_sol_reserves:
        violations.append("trans_sell_real_sol_decreasing")
    if after.token_total_supply != before.token_total_supply:
        violations.append("trans_supply_fixed")
    if before.complete and not after.complete:
        violations.append("trans_complete_one_way")
    if after.constant_product < before.constant_product:
        violations.append("trans_constant_product_non_decreasing")

    return violations


# =============================================================================
# DISPLAY HELPERS
# =============================================================================

def spot_price(state: BondingCurveState) -> float:
    """
    Instantaneous price in lamports per base token unit

    Display only: trades are priced with exact integer math in pricing.py.
    """
    if state.virtual_token_reserves <= 0:
        return 0.0
    return state.virtual_sol_reserves / state.virtual_token_reserves


def market_cap_sol(state: BondingCurveState) -> float:
    """Fully diluted market cap in SOL at the current spot price"""
    return spot_price(state) * state.token_total_supply / LAMPORTS_PER_SOL


def progress_bps(state: BondingCurveState, initial_real_token_reserves: int) -> int:
    """
    Completion progress in basis points

    0 at launch, 10_000 once every real token has been sold.
    """
    if initial_real_token_reserves <= 0:
        return BPS_DENOMINATOR
    sold = initial_real_token_reserves - state.real_token_reserves
    return (sold * BPS_DENOMINATOR) // initial_real_token_reserves
