"""Pool error classes.

Every error carries a machine-checkable reason code in ``code``. Any error
raised inside a mutating pool call aborts the whole call and leaves the pool
exactly as it was before the call.
"""

from typing import ClassVar


class PoolError(Exception):
    """Base error for pool operations."""

    code: ClassVar[str] = "ERR_POOL"


class NotControllerError(PoolError):
    """Weight or fee mutation attempted by an account other than the controller."""

    code = "ERR_NOT_CONTROLLER"


class NotPublisherCollectorError(PoolError):
    """Publisher fee update attempted by an account other than its collector."""

    code = "ERR_NOT_PUBLISHER_COLLECTOR"


class AlreadyInitializedError(PoolError):
    """setup() called on a pool that is already initialized."""

    code = "ERR_ALREADY_INITIALIZED"


class NotInitializedError(PoolError):
    """Mutating call on a pool whose setup() has not run."""

    code = "ERR_NOT_INITIALIZED"


class AlreadyBoundError(PoolError):
    """Asset is already bound to the pool."""

    code = "ERR_IS_BOUND"


class NotBoundError(PoolError):
    """Asset is not bound to the pool."""

    code = "ERR_NOT_BOUND"


class SameAssetError(PoolError):
    """Swap input and output are the same asset."""

    code = "ERR_SAME_ASSET"


class AlreadyFinalizedError(PoolError):
    """Registry mutation after the pool was finalized."""

    code = "ERR_IS_FINALIZED"


class NotFinalizedError(PoolError):
    """Trade or liquidity call before the pool was finalized."""

    code = "ERR_NOT_FINALIZED"


class MinTokensNotBoundError(PoolError):
    """finalize() called before both assets were bound."""

    code = "ERR_MIN_TOKENS"


class MaxTokensExceededError(PoolError):
    """Binding would exceed the two-asset limit."""

    code = "ERR_MAX_TOKENS"


class WeightOutOfRangeError(PoolError):
    """Weight outside [MIN_WEIGHT, MAX_WEIGHT]."""

    code = "ERR_WEIGHT_RANGE"


class TotalWeightExceededError(PoolError):
    """Sum of weights would exceed MAX_TOTAL_WEIGHT."""

    code = "ERR_MAX_TOTAL_WEIGHT"


class BalanceTooLowError(PoolError):
    """Bind/rebind balance below MIN_BALANCE."""

    code = "ERR_MIN_BALANCE"


class FeeOutOfRangeError(PoolError):
    """Fee rate outside its configured bounds, or a market fee with no recipient."""

    code = "ERR_FEE_RANGE"


class MaxInRatioError(PoolError):
    """Input amount exceeds MAX_IN_RATIO of the input balance."""

    code = "ERR_MAX_IN_RATIO"


class MaxOutRatioError(PoolError):
    """Output amount exceeds MAX_OUT_RATIO of the output balance."""

    code = "ERR_MAX_OUT_RATIO"


class BadLimitPriceError(PoolError):
    """Spot price before the trade is already above the caller's max price."""

    code = "ERR_BAD_LIMIT_PRICE"


class LimitPriceError(PoolError):
    """Spot price after the trade is above the caller's max price."""

    code = "ERR_LIMIT_PRICE"


class ApproximationError(PoolError):
    """A computed amount rounded to zero or the price moved backwards."""

    code = "ERR_MATH_APPROX"


class LimitInError(PoolError):
    """Computed input exceeds the caller's maximum."""

    code = "ERR_LIMIT_IN"


class LimitOutError(PoolError):
    """Computed output is below the caller's minimum."""

    code = "ERR_LIMIT_OUT"


class InsufficientSharesError(PoolError):
    """Account holds fewer pool shares than requested."""

    code = "ERR_INSUFFICIENT_SHARES"


class ReentryError(PoolError):
    """Call made while another mutating call holds the pool lock."""

    code = "ERR_REENTRY"
