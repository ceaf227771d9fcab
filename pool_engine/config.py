"""Pool configuration."""

from dataclasses import dataclass

from pool_engine.constants import (
    EXIT_FEE,
    INIT_POOL_SUPPLY,
    MAX_BOUND_TOKENS,
    MAX_FEE,
    MAX_IN_RATIO,
    MAX_OUT_RATIO,
    MAX_TOTAL_WEIGHT,
    MAX_WEIGHT,
    MIN_BALANCE,
    MIN_BOUND_TOKENS,
    MIN_FEE,
    MIN_WEIGHT,
)


@dataclass(frozen=True)
class PoolConfig:
    """Centralized protocol bounds for a pool instance.

    Holding the bounds in one frozen object (instead of reading module
    constants directly) keeps them consistent across the engine and lets
    tests run pools with different limits, e.g. a zero minimum swap fee.

    Attributes:
        min_fee: Lower bound for the swap fee and non-zero market fees
        max_fee: Upper bound for every fee rate
        exit_fee: Fraction of redeemed shares (or rebind withdrawals) routed
            to the factory collector
        min_weight: Lower bound for a denormalized weight
        max_weight: Upper bound for a denormalized weight
        max_total_weight: Upper bound for the sum of weights
        min_balance: Lower bound for a bound asset's balance on bind/rebind
        init_pool_supply: Pool shares minted on finalize
        max_in_ratio: Largest input as a fraction of the input balance
        max_out_ratio: Largest output as a fraction of the output balance
        min_bound_tokens: Assets required before finalize
        max_bound_tokens: Assets allowed in the registry
    """

    min_fee: int = MIN_FEE
    max_fee: int = MAX_FEE
    exit_fee: int = EXIT_FEE

    min_weight: int = MIN_WEIGHT
    max_weight: int = MAX_WEIGHT
    max_total_weight: int = MAX_TOTAL_WEIGHT
    min_balance: int = MIN_BALANCE

    init_pool_supply: int = INIT_POOL_SUPPLY

    max_in_ratio: int = MAX_IN_RATIO
    max_out_ratio: int = MAX_OUT_RATIO

    min_bound_tokens: int = MIN_BOUND_TOKENS
    max_bound_tokens: int = MAX_BOUND_TOKENS

    def swap_fee_in_range(self, fee: int) -> bool:
        """True if fee is a valid swap fee."""
        return self.min_fee <= fee <= self.max_fee

    def market_fee_in_range(self, fee: int) -> bool:
        """True if fee is a valid market fee (zero disables it)."""
        return fee == 0 or self.swap_fee_in_range(fee)


# Default configuration instance
DEFAULT_POOL_CONFIG = PoolConfig()
