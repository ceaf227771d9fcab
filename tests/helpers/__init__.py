"""Test helpers module for shared test utilities.

This module consolidates common test utilities to reduce duplication:
- constants: Asset ids, accounts and common amounts
- factories: Ledger and pool factory functions
"""

from tests.helpers.constants import (
    CONTROLLER,
    DEFAULT_BALANCE,
    DEFAULT_FUNDS,
    DEFAULT_WEIGHT,
    DT,
    FACTORY,
    LP,
    MARKET,
    OCEAN,
    PLATFORM,
    POOL,
    PUBLISHER,
    STAKER,
    TENTH_PERCENT,
    TRADER,
)
from tests.helpers.factories import make_ledger, make_pool, pool_snapshot

__all__ = [
    # Assets
    "DT",
    "OCEAN",
    # Accounts
    "CONTROLLER",
    "FACTORY",
    "LP",
    "MARKET",
    "PLATFORM",
    "POOL",
    "PUBLISHER",
    "STAKER",
    "TRADER",
    # Amounts
    "DEFAULT_BALANCE",
    "DEFAULT_FUNDS",
    "DEFAULT_WEIGHT",
    "TENTH_PERCENT",
    # Factories
    "make_ledger",
    "make_pool",
    "pool_snapshot",
]
