"""
Observable records emitted by the launchpad

Events are fire-and-forget: a failing subscriber is logged and never undoes
or fails the operation that emitted the event.
"""

from collections import defaultdict
from dataclasses import dataclass
from typing import Callable, DefaultDict, List, Type, TypeVar

from solders.pubkey import Pubkey

from curve_launchpad.core.bonding_curve import BondingCurveState
from curve_launchpad.core.logger import get_logger


logger = get_logger(__name__)


@dataclass(frozen=True)
class CreateEvent:
    """A curve was launched for a new mint"""
    name: str
    symbol: str
    uri: str
    mint: Pubkey
    bonding_curve: Pubkey
    creator: Pubkey
    timestamp: int


@dataclass(frozen=True)
class TradeEvent:
    """A buy or sell committed against a curve"""
    mint: Pubkey
    sol_amount: int  # settlement leg before fees
    token_amount: int
    fee: int
    is_buy: bool
    user: Pubkey
    timestamp: int
    virtual_sol_reserves: int
    virtual_token_reserves: int
    real_sol_reserves: int
    real_token_reserves: int

    @classmethod
    def from_state(
        cls,
        mint: Pubkey,
        user: Pubkey,
        sol_amount: int,
        token_amount: int,
        fee: int,
        is_buy: bool,
        timestamp: int,
        state: BondingCurveState
    ) -> "TradeEvent":
        return cls(
            mint=mint,
            sol_amount=sol_amount,
            token_amount=token_amount,
            fee=fee,
            is_buy=is_buy,
            user=user,
            timestamp=timestamp,
            virtual_sol_reserves=state.virtual_sol_reserves,
            virtual_token_reserves=state.virtual_token_reserves,
            real_sol_reserves=state.real_sol_reserves,
            real_token_reserves=state.real_token_reserves,
        )


@dataclass(frozen=True)
class CompleteEvent:
    """A curve sold its last real token"""
    user: Pubkey
    mint: Pubkey
    bonding_curve: Pubkey
    timestamp: int


@dataclass(frozen=True)
class MigrationRequested:
    """Hand-off request consumed by the Migrator"""
    mint: Pubkey
    bonding_curve: Pubkey
    real_sol_reserves: int
    timestamp: int


@dataclass(frozen=True)
class MigrationCompleted:
    """Liquidity moved to the venue and the LP receipt locked"""
    mint: Pubkey
    venue: str
    settlement_amount: int
    token_amount: int
    timestamp: int


E = TypeVar("E")
Handler = Callable[[object], None]


class EventBus:
    """
    Synchronous publish/subscribe for launchpad events

    Usage:
        bus = EventBus()
        bus.subscribe(TradeEvent, lambda e: print(e.sol_amount))
        bus.emit(trade_event)
    """

    def __init__(self):
        self._handlers: DefaultDict[type, List[Handler]] = defaultdict(list)

    def subscribe(self, event_type: Type[E], handler: Callable[[E], None]) -> None:
        self._handlers[event_type].append(handler)

    def emit(self, event: object) -> None:
        for handler in list(self._handlers.get(type(event), ())):
            try:
                handler(event)
            except Exception as e:
                logger.error(
                    "event_handler_failed",
                    event_type=type(event).__name__,
                    error=str(e),
                    exc_info=True
                )


class EventLog:
    """Recording sink: subscribes to every event type and keeps them in order"""

    EVENT_TYPES = (CreateEvent, TradeEvent, CompleteEvent, MigrationRequested, MigrationCompleted)

    def __init__(self, bus: EventBus):
        self.events: List[object] = []
        for event_type in self.EVENT_TYPES:
            bus.subscribe(event_type, self.events.append)

    def of_type(self, event_type: Type[E]) -> List[E]:
        return [e for e in self.events if isinstance(e, event_type)]
