"""Protocol constants for the weighted pool.

All fractions and weights are 18-decimal fixed-point values (BONE == 1.0).
"""

BONE = 10**18

# Exactly two assets are bound: the base currency and the data asset
MIN_BOUND_TOKENS = 2
MAX_BOUND_TOKENS = 2

# Fee bounds: 0.01% .. 10%
MIN_FEE = BONE // 10**4
MAX_FEE = BONE // 10

# Exit fee charged on withdrawals, routed to the factory collector
EXIT_FEE = 0

# Denormalized weight bounds (1 .. 50), total capped at 50
MIN_WEIGHT = BONE
MAX_WEIGHT = BONE * 50
MAX_TOTAL_WEIGHT = BONE * 50

MIN_BALANCE = BONE // 10**12

# Pool shares minted to the controller on finalize
INIT_POOL_SUPPLY = BONE * 100

# Single-trade price impact bounds, as a fraction of the affected balance
MAX_IN_RATIO = BONE // 2
MAX_OUT_RATIO = BONE // 3 + 1

ZERO_ADDRESS = "0x" + "0" * 40
