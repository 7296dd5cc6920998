"""
Error taxonomy for the bonding curve launchpad

Every trade failure maps to exactly one RejectReason. The executor converts
LaunchpadError subclasses into rejected TradeOutcomes; create() and
TradeOutcome.unwrap() raise them directly.
"""

from enum import Enum
from typing import Dict, Type


class RejectReason(Enum):
    """Why a curve operation was refused"""
    NOT_INITIALIZED = "not_initialized"
    INSUFFICIENT_BALANCE = "insufficient_balance"
    INSUFFICIENT_LIQUIDITY = "insufficient_liquidity"
    INVALID_FEE_RECIPIENT = "invalid_fee_recipient"
    ZERO_AMOUNT = "zero_amount"
    SLIPPAGE_EXCEEDED = "slippage_exceeded"
    CURVE_COMPLETED = "curve_completed"
    TRANSFER_FAILED = "transfer_failed"
    OVERFLOW = "overflow"
    CURVE_NOT_FOUND = "curve_not_found"
    CURVE_EXISTS = "curve_exists"


class ConfigError(ValueError):
    """Raised when the global configuration is malformed or out of range"""


class LaunchpadError(Exception):
    """Base class for curve operation failures"""

    reason: RejectReason

    def __init__(self, message: str = ""):
        super().__init__(message or self.reason.value)


class NotInitializedError(LaunchpadError):
    reason = RejectReason.NOT_INITIALIZED


class InsufficientBalanceError(LaunchpadError):
    reason = RejectReason.INSUFFICIENT_BALANCE


class InsufficientLiquidityError(LaunchpadError):
    reason = RejectReason.INSUFFICIENT_LIQUIDITY


class InvalidFeeRecipientError(LaunchpadError):
    reason = RejectReason.INVALID_FEE_RECIPIENT


class ZeroAmountError(LaunchpadError):
    reason = RejectReason.ZERO_AMOUNT


class SlippageExceededError(LaunchpadError):
    reason = RejectReason.SLIPPAGE_EXCEEDED


class CurveCompletedError(LaunchpadError):
    reason = RejectReason.CURVE_COMPLETED


class TransferError(LaunchpadError):
    """Raised by custody when an instruction batch cannot be executed"""
    reason = RejectReason.TRANSFER_FAILED


class ArithmeticOverflowError(LaunchpadError):
    reason = RejectReason.OVERFLOW


class CurveNotFoundError(LaunchpadError):
    reason = RejectReason.CURVE_NOT_FOUND


class CurveExistsError(LaunchpadError):
    reason = RejectReason.CURVE_EXISTS


class MigrationError(Exception):
    """Raised when the liquidity venue rejects a migration hand-off"""


_ERRORS_BY_REASON: Dict[RejectReason, Type[LaunchpadError]] = {
    cls.reason: cls
    for cls in (
        NotInitializedError,
        InsufficientBalanceError,
        InsufficientLiquidityError,
        InvalidFeeRecipientError,
        ZeroAmountError,
        SlippageExceededError,
        CurveCompletedError,
        TransferError,
        ArithmeticOverflowError,
        CurveNotFoundError,
        CurveExistsError,
    )
}


def error_for(reason: RejectReason, message: str = "") -> LaunchpadError:
    """Build the exception matching a reject reason"""
    return _ERRORS_BY_REASON[reason](message)
