"""Core curve model, pricing, execution and migration"""

from curve_launchpad.core.bonding_curve import BondingCurveState, TradeDirection
from curve_launchpad.core.config import GlobalConfig
from curve_launchpad.core.custody import InMemoryCustody
from curve_launchpad.core.errors import LaunchpadError, RejectReason
from curve_launchpad.core.events import EventBus, EventLog
from curve_launchpad.core.executor import TradeOutcome, TradeState
from curve_launchpad.core.launchpad import Launchpad
from curve_launchpad.core.migration import InMemoryVenue

__all__ = [
    "BondingCurveState",
    "EventBus",
    "EventLog",
    "GlobalConfig",
    "InMemoryCustody",
    "InMemoryVenue",
    "LaunchpadError",
    "Launchpad",
    "RejectReason",
    "TradeDirection",
    "TradeOutcome",
    "TradeState",
]
