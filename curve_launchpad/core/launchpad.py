"""
Launchpad: the public surface over many bonding curves

Keeps the registry of launched curves, routes trades to the executor and
queues completed curves for migration. Each curve carries its own lock, so
trades on different mints never contend.

Usage:
    launchpad = Launchpad(config, custody, venue, events)
    launchpad.create(mint, creator, "Token", "TKN", "https://...")
    outcome = launchpad.buy(mint, trader, 1_000_000_000, min_token_output=0)
    tokens = outcome.unwrap().token_amount
"""

import threading
import time
from collections import deque
from typing import Callable, Deque, Dict, List, Optional

from solders.pubkey import Pubkey

from curve_launchpad.core.bonding_curve import (
    BondingCurveState,
    TradeDirection,
    derive_bonding_curve_address,
    new_curve_state,
)
from curve_launchpad.core.config import GlobalConfig
from curve_launchpad.core.custody import Custody, CurveAuthority, TokenMint
from curve_launchpad.core.errors import CurveExistsError, CurveNotFoundError, MigrationError
from curve_launchpad.core.events import CreateEvent, EventBus, MigrationRequested
from curve_launchpad.core.executor import CurveAccount, TradeExecutor, TradeOutcome, TradeRequest
from curve_launchpad.core.logger import get_logger
from curve_launchpad.core.metrics import MetricsCollector, get_metrics
from curve_launchpad.core.migration import LiquidityVenue, MigrationRecord, MigrationTrigger, Migrator


logger = get_logger(__name__)


class Launchpad:
    """Registry of curves plus create / buy / sell / migrate operations"""

    def __init__(
        self,
        config: GlobalConfig,
        custody: Custody,
        venue: LiquidityVenue,
        events: Optional[EventBus] = None,
        program_id: Optional[Pubkey] = None,
        clock: Callable[[], int] = lambda: int(time.time()),
        metrics: Optional[MetricsCollector] = None
    ):
        """
        Raises:
            ConfigError: config has out-of-range parameters
        """
        self.config = config.validate()
        self.custody = custody
        self.events = events or EventBus()
        self.program_id = program_id if program_id is not None else config.program_id
        self.metrics = metrics or get_metrics()
        self._clock = clock

        self._curves: Dict[Pubkey, CurveAccount] = {}
        self._registry_lock = threading.Lock()
        self._pending: Deque[MigrationRequested] = deque()
        self._pending_lock = threading.Lock()

        self.executor = TradeExecutor(
            custody,
            self.events,
            trigger=MigrationTrigger(),
            clock=clock,
            metrics=self.metrics,
        )
        self.migrator = Migrator(custody, venue, self.events, self._authority_for, clock, self.metrics)
        self.events.subscribe(MigrationRequested, self._enqueue_migration)

    # =========================================================================
    # CURVE LIFECYCLE
    # =========================================================================

    def create(self, mint: Pubkey, creator: Pubkey, name: str, symbol: str, uri: str) -> BondingCurveState:
        """
        Launch a curve for a new mint

        Mints the whole token supply into the curve's custody account and seeds
        reserves from the global configuration.

        Raises:
            NotInitializedError: Global configuration is not initialized
            CurveExistsError: A curve already exists for this mint
            TransferError: Custody refused the initial mint
        """
        state = new_curve_state(self.config)
        address = derive_bonding_curve_address(mint, self.program_id)

        with self._registry_lock:
            if mint in self._curves:
                raise CurveExistsError(f"curve for {mint} already exists")

            authority = self.custody.bind_curve(address)
            self.custody.submit(
                [TokenMint(mint, address, state.token_total_supply)],
                authority=authority,
            )

            self._curves[mint] = CurveAccount(
                mint=mint,
                address=address,
                creator=creator,
                authority=authority,
                state=state,
            )
            live = len(self._curves)

        self.metrics.set_gauge("curves_live", live)
        logger.info(
            "curve_created",
            mint=mint,
            bonding_curve=address,
            creator=creator,
            symbol=symbol,
            token_total_supply=state.token_total_supply
        )

        self.events.emit(CreateEvent(
            name=name,
            symbol=symbol,
            uri=uri,
            mint=mint,
            bonding_curve=address,
            creator=creator,
            timestamp=self._clock(),
        ))

        return state

    def get_curve(self, mint: Pubkey) -> BondingCurveState:
        """
        Current reserves of a curve

        Raises:
            CurveNotFoundError: No curve exists for this mint
        """
        return self._account(mint).state

    def get_address(self, mint: Pubkey) -> Pubkey:
        return self._account(mint).address

    def is_complete(self, mint: Pubkey) -> bool:
        return self._account(mint).state.complete

    def mints(self) -> List[Pubkey]:
        with self._registry_lock:
            return list(self._curves)

    # =========================================================================
    # TRADING
    # =========================================================================

    def buy(
        self,
        mint: Pubkey,
        user: Pubkey,
        sol_amount: int,
        min_token_output: int,
        fee_recipient: Optional[Pubkey] = None
    ) -> TradeOutcome:
        """Spend exactly sol_amount lamports (plus fee) on tokens"""
        return self._trade(mint, TradeRequest(
            direction=TradeDirection.BUY,
            amount=sol_amount,
            limit=min_token_output,
            user=user,
            fee_recipient=self._recipient(fee_recipient),
        ))

    def buy_exact_tokens(
        self,
        mint: Pubkey,
        user: Pubkey,
        token_amount: int,
        max_sol_cost: int,
        fee_recipient: Optional[Pubkey] = None
    ) -> TradeOutcome:
        """Buy exactly token_amount tokens paying at most max_sol_cost, fee included"""
        return self._trade(mint, TradeRequest(
            direction=TradeDirection.BUY,
            amount=token_amount,
            limit=max_sol_cost,
            user=user,
            fee_recipient=self._recipient(fee_recipient),
            exact_tokens=True,
        ))

    def sell(
        self,
        mint: Pubkey,
        user: Pubkey,
        token_amount: int,
        min_sol_output: int,
        fee_recipient: Optional[Pubkey] = None
    ) -> TradeOutcome:
        """Sell exactly token_amount tokens for at least min_sol_output lamports after fees"""
        return self._trade(mint, TradeRequest(
            direction=TradeDirection.SELL,
            amount=token_amount,
            limit=min_sol_output,
            user=user,
            fee_recipient=self._recipient(fee_recipient),
        ))

    def _trade(self, mint: Pubkey, request: TradeRequest) -> TradeOutcome:
        curve = self._account(mint)
        outcome = self.executor.execute(curve, request, self.config)
        if outcome.accepted and outcome.result.completed:
            self.metrics.set_gauge("curves_completed", self._completed_count())
        return outcome

    # =========================================================================
    # MIGRATION
    # =========================================================================

    def pending_migrations(self) -> List[Pubkey]:
        with self._pending_lock:
            return [request.mint for request in self._pending]

    def process_migrations(self) -> List[MigrationRecord]:
        """
        Hand every queued completed curve to the venue

        A request leaves the queue only once migrated. On the first venue
        failure the request is put back and the error propagates.

        Raises:
            MigrationError: Custody or the venue rejected a hand-off
        """
        records = []
        while True:
            with self._pending_lock:
                if not self._pending:
                    break
                request = self._pending.popleft()

            try:
                records.append(self.migrator.migrate(request))
            except MigrationError:
                with self._pending_lock:
                    self._pending.appendleft(request)
                raise

        return records

    def claim_fees(self, mint: Pubkey) -> int:
        """
        Claim venue fees of a migrated curve for the configured fee recipient

        Raises:
            MigrationError: The curve has not been migrated
        """
        self._account(mint)
        return self.migrator.claim_fees(mint, self.config.fee_recipient)

    def _enqueue_migration(self, request: MigrationRequested) -> None:
        with self._pending_lock:
            self._pending.append(request)
        logger.info("migration_queued", mint=request.mint, real_sol_reserves=request.real_sol_reserves)

    # =========================================================================
    # HELPERS
    # =========================================================================

    def _account(self, mint: Pubkey) -> CurveAccount:
        with self._registry_lock:
            curve = self._curves.get(mint)
        if curve is None:
            raise CurveNotFoundError(f"no curve for {mint}")
        return curve

    def _authority_for(self, mint: Pubkey) -> CurveAuthority:
        return self._account(mint).authority

    def _recipient(self, fee_recipient: Optional[Pubkey]) -> Pubkey:
        return fee_recipient if fee_recipient is not None else self.config.fee_recipient

    def _completed_count(self) -> int:
        with self._registry_lock:
            curves = list(self._curves.values())
        return sum(1 for curve in curves if curve.state.complete)
