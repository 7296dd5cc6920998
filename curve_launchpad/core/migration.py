"""
Curve completion and hand-off to an external liquidity venue

MigrationTrigger runs inside every committed trade and flips `complete` on the
trade that sells the last real token. The hand-off itself happens later, when
the Migrator consumes the resulting MigrationRequested event, so a venue
outage can never block or undo a trade.
"""

import math
import threading
import time
from dataclasses import dataclass, replace
from typing import Callable, Dict, Optional, Protocol, Tuple

from solders.pubkey import Pubkey

from curve_launchpad.core.bonding_curve import BondingCurveState
from curve_launchpad.core.custody import Custody, CurveAuthority, SolTransfer, TokenTransfer
from curve_launchpad.core.errors import MigrationError, TransferError
from curve_launchpad.core.events import EventBus, MigrationCompleted, MigrationRequested
from curve_launchpad.core.logger import get_logger
from curve_launchpad.core.metrics import MetricsCollector, get_metrics


logger = get_logger(__name__)
# Real token reserves at which a curve is complete
COMPLETION_THRESHOLD = 0


class MigrationTrigger:
    """Completion rule applied to every post-trade state"""

    def __init__(self, threshold: int = COMPLETION_THRESHOLD):
        self.threshold = threshold

    def should_complete(self, state: BondingCurveState) -> bool:
        return not state.complete and state.real_token_reserves <= self.threshold

    def apply(self, state: BondingCurveState) -> Tuple[BondingCurveState, bool]:
        """
        Mark the state complete when it crossed the threshold

        Returns:
            (state, triggered) where triggered is True only on the false->true flip
        """
        if not self.should_complete(state):
            return state, False
        return replace(state, complete=True), True


@dataclass(frozen=True)
class VenueHandle:
    """Pool created on the venue for one migrated curve"""
    pool_id: str
    lp_amount: int


@dataclass(frozen=True)
class MigrationRecord:
    """Outcome of a completed migration"""
    mint: Pubkey
    bonding_curve: Pubkey
    handle: VenueHandle
    settlement_amount: int
    token_amount: int
    timestamp: int


class LiquidityVenue(Protocol):
    """External pool the curve's liquidity migrates to"""

    venue_account: Pubkey

    def create_pool(self, mint: Pubkey, settlement_amount: int, token_amount: int) -> VenueHandle:
        ...

    def lock_receipt(self, handle: VenueHandle, owner: Pubkey) -> None:
        ...

    def claim_fee(self, handle: VenueHandle, recipient: Pubkey) -> int:
        ...


class Migrator:
    """
    Consumes MigrationRequested events and seeds the liquidity venue

    The curve's real SOL and the tokens left in its custody account are moved
    to the venue in one custody batch, the venue creates the pool, and the LP
    receipt is locked under the curve's own address.
    """

    def __init__(
        self,
        custody: Custody,
        venue: LiquidityVenue,
        events: EventBus,
        authority_for: Callable[[Pubkey], CurveAuthority],
        clock: Callable[[], int] = lambda: int(time.time()),
        metrics: Optional[MetricsCollector] = None
    ):
        self.custody = custody
        self.venue = venue
        self.events = events
        self._authority_for = authority_for
        self._clock = clock
        self.metrics = metrics or get_metrics()
        self._records: Dict[Pubkey, MigrationRecord] = {}
        self._lock = threading.Lock()

    def get_record(self, mint: Pubkey) -> Optional[MigrationRecord]:
        return self._records.get(mint)

    def migrate(self, request: MigrationRequested) -> MigrationRecord:
        """
        Hand one completed curve over to the venue

        Idempotent per mint: a second request returns the existing record.

        Raises:
            MigrationError: If custody or the venue rejects the hand-off
        """
        with self._lock:
            existing = self._records.get(request.mint)
            if existing is not None:
                return existing

            curve = request.bonding_curve
            authority = self._authority_for(request.mint)
            settlement_amount = self.custody.read_balance(curve)
            token_amount = self.custody.read_balance(curve, mint=request.mint)
            venue_account = self.venue.venue_account

            try:
                self.custody.submit(
                    [
                        SolTransfer(curve, venue_account, settlement_amount),
                        TokenTransfer(request.mint, curve, venue_account, token_amount),
                    ],
                    authority=authority,
                )
            except TransferError as e:
                logger.error("migration_transfer_failed", mint=request.mint, error=str(e))
                raise MigrationError(f"custody rejected migration of {request.mint}: {e}") from e

            try:
                handle = self.venue.create_pool(request.mint, settlement_amount, token_amount)
                self.venue.lock_receipt(handle, curve)
            except Exception as e:
                logger.error("migration_venue_failed", mint=request.mint, error=str(e))
                # Return the liquidity so the request can be retried
                try:
                    self.custody.submit(
                        [
                            SolTransfer(venue_account, curve, settlement_amount),
                            TokenTransfer(request.mint, venue_account, curve, token_amount),
                        ],
                        signer=venue_account,
                    )
                except TransferError as rollback_error:
                    logger.error(
                        "migration_rollback_failed",
                        mint=request.mint,
                        venue_account=venue_account,
                        settlement_amount=settlement_amount,
                        token_amount=token_amount,
                        error=str(rollback_error)
                    )
                    raise MigrationError(
                        f"venue rejected migration of {request.mint} and its liquidity "
                        f"is still held by {venue_account}: {rollback_error}"
                    ) from e
                raise MigrationError(f"venue rejected migration of {request.mint}: {e}") from e

            record = MigrationRecord(
                mint=request.mint,
                bonding_curve=curve,
                handle=handle,
                settlement_amount=settlement_amount,
                token_amount=token_amount,
                timestamp=self._clock(),
            )
            self._records[request.mint] = record

        logger.info(
            "curve_migrated",
            mint=request.mint,
            pool_id=handle.pool_id,
            settlement_amount=settlement_amount,
            token_amount=token_amount
        )
        self.metrics.increment_counter("curves_migrated")

        self.events.emit(MigrationCompleted(
            mint=request.mint,
            venue=handle.pool_id,
            settlement_amount=settlement_amount,
            token_amount=token_amount,
            timestamp=record.timestamp,
        ))

        return record

    def claim_fees(self, mint: Pubkey, recipient: Pubkey) -> int:
        """
        Claim protocol fees accrued on the venue for a migrated curve

        Raises:
            MigrationError: If the curve has not been migrated
        """
        record = self._records.get(mint)
        if record is None:
            raise MigrationError(f"curve for {mint} has not been migrated")

        claimed = self.venue.claim_fee(record.handle, recipient)
        logger.info("venue_fees_claimed", mint=mint, recipient=recipient, amount=claimed)
        return claimed


class InMemoryVenue:
    """
    Reference liquidity venue

    Pools are numbered sequentially; LP supply is the integer geometric mean of
    the deposit. Fees accrue only through accrue_fee().
    """

    def __init__(self, venue_account: Optional[Pubkey] = None, fail_create: bool = False):
        self.venue_account = venue_account if venue_account is not None else Pubkey.new_unique()
        self.fail_create = fail_create
        self.pools: Dict[str, Tuple[Pubkey, int, int]] = {}
        self.locked: Dict[str, Pubkey] = {}
        self._fees: Dict[str, int] = {}

    def create_pool(self, mint: Pubkey, settlement_amount: int, token_amount: int) -> VenueHandle:
        if self.fail_create:
            raise RuntimeError("venue unavailable")
        pool_id = f"pool-{len(self.pools) + 1}"
        self.pools[pool_id] = (mint, settlement_amount, token_amount)
        self._fees[pool_id] = 0
        return VenueHandle(pool_id=pool_id, lp_amount=math.isqrt(settlement_amount * token_amount))

    def lock_receipt(self, handle: VenueHandle, owner: Pubkey) -> None:
        if handle.pool_id in self.locked:
            raise RuntimeError(f"receipt for {handle.pool_id} already locked")
        self.locked[handle.pool_id] = owner

    def accrue_fee(self, pool_id: str, amount: int) -> None:
        self._fees[pool_id] += amount

    def claim_fee(self, handle: VenueHandle, recipient: Pubkey) -> int:
        claimed, self._fees[handle.pool_id] = self._fees[handle.pool_id], 0
        return claimed
