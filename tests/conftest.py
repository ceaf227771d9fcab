"""Pytest configuration and fixtures."""

import pytest

from pool_engine.pool import WeightedPool
from pool_engine.simulation import InMemoryAssetLedger, InMemoryStaking
from tests.helpers import OCEAN, STAKER, TENTH_PERCENT, make_pool


@pytest.fixture
def pool_and_ledger() -> tuple[WeightedPool, InMemoryAssetLedger]:
    """Finalized 100/100 DT/OCEAN pool, equal weights, no fees."""
    return make_pool()


@pytest.fixture
def pool(pool_and_ledger) -> WeightedPool:
    return pool_and_ledger[0]


@pytest.fixture
def ledger(pool_and_ledger) -> InMemoryAssetLedger:
    return pool_and_ledger[1]


@pytest.fixture
def fee_pool_and_ledger() -> tuple[WeightedPool, InMemoryAssetLedger]:
    """Finalized 100/100 pool charging 0.1% swap, platform and publisher fees."""
    return make_pool(
        swap_fee=TENTH_PERCENT,
        platform_fee=TENTH_PERCENT,
        publisher_fee=TENTH_PERCENT,
    )


@pytest.fixture
def staking() -> InMemoryStaking:
    """Staking collaborator that mirrors single-sided liquidity on OCEAN."""
    return InMemoryStaking(STAKER, assets={OCEAN})
