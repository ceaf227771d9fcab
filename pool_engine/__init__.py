"""Two-asset weighted AMM pool engine."""

from pool_engine.pool import WeightedPool
from pool_engine.simulation import InMemoryAssetLedger, InMemoryStaking, Simulation, build_demo_pool

__version__ = "0.1.0"
__all__ = [
    "InMemoryAssetLedger",
    "InMemoryStaking",
    "Simulation",
    "WeightedPool",
    "build_demo_pool",
    "__version__",
]
