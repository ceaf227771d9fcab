"""Weighted pool: registry, math, fees, shares and the engine.

Pool types supported:
- Two-asset weighted pool with platform, publisher-market and per-trade fees
"""

# Engine
from .engine import PoolState, SwapQuote, WeightedPool

# Errors
from .errors import (
    AlreadyBoundError,
    AlreadyFinalizedError,
    AlreadyInitializedError,
    ApproximationError,
    BadLimitPriceError,
    BalanceTooLowError,
    FeeOutOfRangeError,
    InsufficientSharesError,
    LimitInError,
    LimitOutError,
    LimitPriceError,
    MaxInRatioError,
    MaxOutRatioError,
    MaxTokensExceededError,
    MinTokensNotBoundError,
    NotBoundError,
    NotControllerError,
    NotFinalizedError,
    NotInitializedError,
    NotPublisherCollectorError,
    PoolError,
    ReentryError,
    SameAssetError,
    TotalWeightExceededError,
    WeightOutOfRangeError,
)

# Notifications
from .events import (
    EventLog,
    ExitExecuted,
    JoinExecuted,
    PlatformFeesCollected,
    PoolEvent,
    PublisherFeeChanged,
    PublisherFeesCollected,
    SharesBurned,
    SharesMinted,
    SwapExecuted,
    SwapFeeChanged,
    SwapFeesCharged,
)

# Fees
from .fees import FeeLedger, SwapFeeRates, SwapFees, split_swap_fees

# Collaborators
from .interfaces import AssetLedger, NullStaking, StakingCollaborator, SupportsRollback

# Registry and shares
from .records import AssetRecord, TokenRegistry
from .shares import PoolShareToken

# Weighted math
from .weighted_math import (
    calc_in_given_out,
    calc_out_given_in,
    calc_pool_in_given_single_out,
    calc_pool_out_given_single_in,
    calc_single_in_given_pool_out,
    calc_single_out_given_pool_in,
    calc_spot_price,
)

__all__ = [
    # Engine
    "PoolState",
    "SwapQuote",
    "WeightedPool",
    # Errors
    "AlreadyBoundError",
    "AlreadyFinalizedError",
    "AlreadyInitializedError",
    "ApproximationError",
    "BadLimitPriceError",
    "BalanceTooLowError",
    "FeeOutOfRangeError",
    "InsufficientSharesError",
    "LimitInError",
    "LimitOutError",
    "LimitPriceError",
    "MaxInRatioError",
    "MaxOutRatioError",
    "MaxTokensExceededError",
    "MinTokensNotBoundError",
    "NotBoundError",
    "NotControllerError",
    "NotFinalizedError",
    "NotInitializedError",
    "NotPublisherCollectorError",
    "PoolError",
    "ReentryError",
    "SameAssetError",
    "TotalWeightExceededError",
    "WeightOutOfRangeError",
    # Notifications
    "EventLog",
    "ExitExecuted",
    "JoinExecuted",
    "PlatformFeesCollected",
    "PoolEvent",
    "PublisherFeeChanged",
    "PublisherFeesCollected",
    "SharesBurned",
    "SharesMinted",
    "SwapExecuted",
    "SwapFeeChanged",
    "SwapFeesCharged",
    # Fees
    "FeeLedger",
    "SwapFeeRates",
    "SwapFees",
    "split_swap_fees",
    # Collaborators
    "AssetLedger",
    "NullStaking",
    "StakingCollaborator",
    "SupportsRollback",
    # Registry and shares
    "AssetRecord",
    "PoolShareToken",
    "TokenRegistry",
    # Weighted math
    "calc_in_given_out",
    "calc_out_given_in",
    "calc_pool_in_given_single_out",
    "calc_pool_out_given_single_in",
    "calc_single_in_given_pool_out",
    "calc_single_out_given_pool_in",
    "calc_spot_price",
]
