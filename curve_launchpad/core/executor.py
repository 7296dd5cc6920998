"""
Trade executor for bonding curves

Runs one buy or sell through a fixed pipeline:

    IDLE -> VALIDATING -> PRICING -> SETTLING -> COMPLETED
                 |            |          |
                 +------------+----------+--> REJECTED

The whole pipeline runs under the curve's lock, so balances read during
validation are the balances settled against, and at most one trade per curve
commits at a time. Nothing is mutated before settlement: the custody batch is
atomic and the curve state is swapped as one object after it succeeds, so a
rejected trade leaves reserves and balances exactly as they were.
"""

import threading
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, List, Optional

from solders.pubkey import Pubkey

from curve_launchpad.core.bonding_curve import (
    BondingCurveState,
    TradeDirection,
    check_transition,
)
from curve_launchpad.core.config import GlobalConfig
from curve_launchpad.core.custody import (
    Custody,
    CurveAuthority,
    Instruction,
    SolTransfer,
    TokenTransfer,
)
from curve_launchpad.core.errors import (
    ArithmeticOverflowError,
    CurveCompletedError,
    InsufficientBalanceError,
    InsufficientLiquidityError,
    InvalidFeeRecipientError,
    LaunchpadError,
    NotInitializedError,
    RejectReason,
    SlippageExceededError,
    ZeroAmountError,
    error_for,
)
from curve_launchpad.core.events import CompleteEvent, EventBus, MigrationRequested, TradeEvent
from curve_launchpad.core.fees import calculate_fee
from curve_launchpad.core.logger import get_logger
from curve_launchpad.core.metrics import LatencyTimer, MetricsCollector, get_metrics
from curve_launchpad.core.migration import MigrationTrigger
from curve_launchpad.core.pricing import Quote, quote_buy, quote_buy_exact_tokens, quote_sell


logger = get_logger(__name__)


class TradeState(Enum):
    """Lifecycle of one trade"""
    IDLE = "idle"
    VALIDATING = "validating"
    PRICING = "pricing"
    SETTLING = "settling"
    COMPLETED = "completed"
    REJECTED = "rejected"


@dataclass(frozen=True)
class TradeRequest:
    """
    One trade as submitted by a trader

    amount is the exact input (lamports for a buy, tokens for a sell) unless
    exact_tokens is set, in which case it is the exact token output of a buy.
    limit is the slippage bound:
        buy:              minimum tokens out
        buy, exact_tokens: maximum total lamports paid, fee included
        sell:             minimum lamports received, fee deducted
    """
    direction: TradeDirection
    amount: int
    limit: int
    user: Pubkey
    fee_recipient: Pubkey
    exact_tokens: bool = False


@dataclass(frozen=True)
class TradeResult:
    """Settled trade"""
    direction: TradeDirection
    sol_amount: int  # settlement leg before fees
    token_amount: int
    fee: int
    net_sol: int  # paid by the trader on a buy, received on a sell
    new_state: BondingCurveState
    completed: bool  # this trade completed the curve


@dataclass(frozen=True)
class TradeOutcome:
    """Terminal state of a trade plus its result or reject reason"""
    state: TradeState
    result: Optional[TradeResult] = None
    reason: Optional[RejectReason] = None
    message: str = ""

    @property
    def accepted(self) -> bool:
        return self.state is TradeState.COMPLETED

    def unwrap(self) -> TradeResult:
        """
        Return the result of an accepted trade

        Raises:
            LaunchpadError: The subclass matching the reject reason
        """
        if self.result is None:
            raise error_for(self.reason, self.message)
        return self.result


@dataclass
class CurveAccount:
    """
    One launched curve: identity, custody authority and current reserves

    state is only ever replaced while holding lock.
    """
    mint: Pubkey
    address: Pubkey
    creator: Pubkey
    authority: CurveAuthority
    state: BondingCurveState
    lock: threading.Lock = field(default_factory=threading.Lock, repr=False, compare=False)


class TradeExecutor:
    """
    Validates, prices and settles trades against a CurveAccount

    Usage:
        executor = TradeExecutor(custody, events)
        outcome = executor.execute(curve, TradeRequest(...), config)
        if outcome.accepted:
            print(outcome.result.token_amount)
    """

    def __init__(
        self,
        custody: Custody,
        events: EventBus,
        trigger: Optional[MigrationTrigger] = None,
        clock: Callable[[], int] = lambda: int(time.time()),
        metrics: Optional[MetricsCollector] = None
    ):
        self.custody = custody
        self.events = events
        self.trigger = trigger or MigrationTrigger()
        self._clock = clock
        self.metrics = metrics or get_metrics()

    def execute(self, curve: CurveAccount, request: TradeRequest, config: GlobalConfig) -> TradeOutcome:
        """
        Run one trade to completion or rejection

        Never raises for domain failures: they come back as a REJECTED outcome
        carrying the reason. Call unwrap() to turn a rejection into an exception.
        """
        direction = request.direction.value
        phase = TradeState.IDLE

        with LatencyTimer(self.metrics, f"trade_{direction}"):
            with curve.lock:
                before = curve.state
                try:
                    phase = TradeState.VALIDATING
                    self._validate(curve, request, config)

                    phase = TradeState.PRICING
                    quote = self._price(before, request)

                    phase = TradeState.SETTLING
                    result = self._settle(curve, request, config, quote)
                except LaunchpadError as e:
                    return self._reject(curve, request, phase, e)

                curve.state = result.new_state
                self._emit(curve, request, result)

        logger.info(
            "trade_executed",
            mint=curve.mint,
            user=request.user,
            direction=direction,
            sol_amount=result.sol_amount,
            token_amount=result.token_amount,
            fee=result.fee,
            real_token_reserves=result.new_state.real_token_reserves,
            completed=result.completed
        )
        self.metrics.record_trade(direction, result.sol_amount, result.token_amount, result.fee)

        return TradeOutcome(state=TradeState.COMPLETED, result=result)

    # =========================================================================
    # PIPELINE STAGES
    # =========================================================================

    def _validate(self, curve: CurveAccount, request: TradeRequest, config: GlobalConfig) -> None:
        if not config.initialized:
            raise NotInitializedError("global configuration is not initialized")

        if curve.state.complete:
            raise CurveCompletedError(f"curve for {curve.mint} is complete")

        if request.amount <= 0:
            raise ZeroAmountError(f"amount must be positive, got {request.amount}")

        if request.direction is TradeDirection.SELL:
            held = self.custody.read_balance(request.user, mint=curve.mint)
            if held < request.amount:
                raise InsufficientBalanceError(f"trader holds {held} tokens, selling {request.amount}")

            curve_held = self.custody.read_balance(curve.address, mint=curve.mint)
            if curve_held < request.amount:
                raise InsufficientLiquidityError(
                    f"curve token account holds {curve_held}, selling {request.amount}"
                )

        elif not request.exact_tokens:
            # Exact-token buys learn their cost from the quote and are checked in _settle
            self._check_buy_funds(request.user, request.amount, config.fee_basis_points)

        if request.fee_recipient != config.fee_recipient:
            raise InvalidFeeRecipientError(f"{request.fee_recipient} is not the configured fee recipient")

    def _price(self, state: BondingCurveState, request: TradeRequest) -> Quote:
        if request.direction is TradeDirection.SELL:
            return quote_sell(state, request.amount)
        if request.exact_tokens:
            return quote_buy_exact_tokens(state, request.amount)
        return quote_buy(state, request.amount)

    def _settle(
        self,
        curve: CurveAccount,
        request: TradeRequest,
        config: GlobalConfig,
        quote: Quote
    ) -> TradeResult:
        fee = calculate_fee(quote.sol_amount, config.fee_basis_points)

        if request.direction is TradeDirection.BUY:
            net_sol = quote.sol_amount + fee
            if request.exact_tokens:
                if net_sol > request.limit:
                    raise SlippageExceededError(f"cost {net_sol} exceeds max_sol_cost {request.limit}")
                self._check_buy_funds(request.user, quote.sol_amount, config.fee_basis_points)
            elif quote.token_amount < request.limit:
                raise SlippageExceededError(
                    f"{quote.token_amount} tokens below min_token_output {request.limit}"
                )
            instructions = self._buy_instructions(curve, request, quote, fee)
        else:
            net_sol = quote.sol_amount - fee
            if net_sol < request.limit:
                raise SlippageExceededError(f"{net_sol} lamports below min_sol_output {request.limit}")
            instructions = self._sell_instructions(curve, request, quote, fee)

        new_state, triggered = self.trigger.apply(quote.new_state)

        violations = check_transition(curve.state, new_state, request.direction)
        if violations:
            logger.error("invariant_violation", mint=curve.mint, violations=violations)
            raise ArithmeticOverflowError(f"trade would violate {', '.join(violations)}")

        # Raises TransferError with nothing applied
        self.custody.submit(instructions, signer=request.user, authority=curve.authority)

        return TradeResult(
            direction=request.direction,
            sol_amount=quote.sol_amount,
            token_amount=quote.token_amount,
            fee=fee,
            net_sol=net_sol,
            new_state=new_state,
            completed=triggered,
        )

    # =========================================================================
    # HELPERS
    # =========================================================================

    def _check_buy_funds(self, user: Pubkey, sol_amount: int, fee_basis_points: int) -> None:
        required = sol_amount + calculate_fee(sol_amount, fee_basis_points)
        available = self.custody.read_balance(user)
        if available < required:
            raise InsufficientBalanceError(f"trader holds {available} lamports, needs {required}")

    @staticmethod
    def _buy_instructions(
        curve: CurveAccount,
        request: TradeRequest,
        quote: Quote,
        fee: int
    ) -> List[Instruction]:
        return [
            SolTransfer(request.user, curve.address, quote.sol_amount),
            SolTransfer(request.user, request.fee_recipient, fee),
            TokenTransfer(curve.mint, curve.address, request.user, quote.token_amount),
        ]

    @staticmethod
    def _sell_instructions(
        curve: CurveAccount,
        request: TradeRequest,
        quote: Quote,
        fee: int
    ) -> List[Instruction]:
        return [
            TokenTransfer(curve.mint, request.user, curve.address, quote.token_amount),
            SolTransfer(curve.address, request.user, quote.sol_amount - fee),
            SolTransfer(curve.address, request.fee_recipient, fee),
        ]

    def _emit(self, curve: CurveAccount, request: TradeRequest, result: TradeResult) -> None:
        timestamp = self._clock()

        self.events.emit(TradeEvent.from_state(
            mint=curve.mint,
            user=request.user,
            sol_amount=result.sol_amount,
            token_amount=result.token_amount,
            fee=result.fee,
            is_buy=request.direction is TradeDirection.BUY,
            timestamp=timestamp,
            state=result.new_state,
        ))

        if result.completed:
            logger.info("curve_completed", mint=curve.mint, real_sol_reserves=result.new_state.real_sol_reserves)
            self.events.emit(CompleteEvent(
                user=request.user,
                mint=curve.mint,
                bonding_curve=curve.address,
                timestamp=timestamp,
            ))
            self.events.emit(MigrationRequested(
                mint=curve.mint,
                bonding_curve=curve.address,
                real_sol_reserves=result.new_state.real_sol_reserves,
                timestamp=timestamp,
            ))

    def _reject(
        self,
        curve: CurveAccount,
        request: TradeRequest,
        phase: TradeState,
        error: LaunchpadError
    ) -> TradeOutcome:
        direction = request.direction.value
        logger.warning(
            "trade_rejected",
            mint=curve.mint,
            user=request.user,
            direction=direction,
            phase=phase.value,
            reason=error.reason.value,
            error=str(error)
        )
        self.metrics.record_rejection(direction, error.reason.value)
        return TradeOutcome(state=TradeState.REJECTED, reason=error.reason, message=str(error))
