"""In-memory collaborators for running a pool outside a chain.

InMemoryAssetLedger holds fungible balances per (asset, account) and
InMemoryStaking records mirrored stakes. Both support snapshot/restore, so a
failed pool call also rolls back the transfers it made before failing.
"""

from __future__ import annotations

import copy
from collections import defaultdict
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

import structlog

from pool_engine.config import PoolConfig
from pool_engine.constants import BONE, MIN_FEE
from pool_engine.pool.engine import WeightedPool
from pool_engine.safe_int import S

logger = structlog.get_logger()

TransferHook = Callable[[str, str, str, int], None]


class InsufficientBalanceError(Exception):
    """Account balance is too low for the requested transfer."""

    pass


class InMemoryAssetLedger:
    """Fungible asset balances keyed by asset and account.

    Attributes:
        transfer_hooks: Callables run after every successful transfer with
            (asset, sender, recipient, amount)
    """

    def __init__(self) -> None:
        self._balances: defaultdict[str, defaultdict[str, int]] = defaultdict(
            lambda: defaultdict(int)
        )
        self.transfer_hooks: list[TransferHook] = []

    def mint(self, asset: str, account: str, amount: int) -> None:
        """Credit an account with newly created units of asset."""
        self._balances[asset][account] = (S(self.balance_of(asset, account)) + amount).value

    def balance_of(self, asset: str, account: str) -> int:
        holders = self._balances.get(asset)
        if holders is None:
            return 0
        return holders.get(account, 0)

    def transfer(self, asset: str, sender: str, recipient: str, amount: int) -> None:
        """Move amount of asset from sender to recipient.

        Raises:
            InsufficientBalanceError: If sender holds less than amount
        """
        balance = self.balance_of(asset, sender)
        if amount > balance:
            raise InsufficientBalanceError(
                f"{sender} holds {balance} of {asset}, needs {amount}"
            )
        self._balances[asset][sender] = balance - amount
        self._balances[asset][recipient] = (S(self.balance_of(asset, recipient)) + amount).value

        for hook in list(self.transfer_hooks):
            hook(asset, sender, recipient, amount)

    def pull(self, asset: str, sender: str, recipient: str, amount: int) -> None:
        self.transfer(asset, sender, recipient, amount)

    def push(self, asset: str, sender: str, recipient: str, amount: int) -> None:
        self.transfer(asset, sender, recipient, amount)

    def snapshot(self) -> Any:
        return copy.deepcopy(self._balances)

    def restore(self, snapshot: Any) -> None:
        self._balances = snapshot


class InMemoryStaking:
    """Staking collaborator that stakes for a fixed set of assets.

    Attributes:
        address: Account that supplies and receives the mirrored asset
        assets: Assets this collaborator agrees to stake
        enabled: Master switch; when False it declines everything
        staked_shares: Pool shares held per staked asset
        staked_amounts: Net asset amount deposited per staked asset
    """

    def __init__(self, address: str, assets: set[str] | None = None, enabled: bool = True) -> None:
        self.address = address
        self.assets = set(assets or ())
        self.enabled = enabled
        self.staked_shares: defaultdict[str, int] = defaultdict(int)
        self.staked_amounts: defaultdict[str, int] = defaultdict(int)

    def can_stake(self, asset: str, pair_asset: str, amount: int) -> bool:
        return self.enabled and asset in self.assets

    def can_unstake(self, asset: str, pair_asset: str, pool_shares: int) -> bool:
        return self.enabled and self.staked_shares.get(asset, 0) >= pool_shares

    def stake(self, asset: str, pair_asset: str, amount: int, pool_shares: int) -> None:
        self.staked_shares[asset] += pool_shares
        self.staked_amounts[asset] += amount
        logger.debug("staking_stake", asset=asset, amount=amount, pool_shares=pool_shares)

    def unstake(self, asset: str, pair_asset: str, amount: int, pool_shares: int) -> None:
        self.staked_shares[asset] -= pool_shares
        self.staked_amounts[asset] -= amount
        logger.debug("staking_unstake", asset=asset, amount=amount, pool_shares=pool_shares)

    def snapshot(self) -> Any:
        return dict(self.staked_shares), dict(self.staked_amounts)

    def restore(self, snapshot: Any) -> None:
        shares, amounts = snapshot
        self.staked_shares = defaultdict(int, shares)
        self.staked_amounts = defaultdict(int, amounts)


@dataclass
class Simulation:
    """A pool together with the in-memory ledger that backs it."""

    pool: WeightedPool
    ledger: InMemoryAssetLedger


def build_demo_pool(
    base_asset: str = "DT",
    quote_asset: str = "OCEAN",
    balance: int = 100 * BONE,
    weight: int = 5 * BONE,
    swap_fee: int = MIN_FEE,
    config: PoolConfig | None = None,
) -> Simulation:
    """Create a finalized 50/50 pool backed by an in-memory ledger.

    The controller ("controller") funds both assets; a "trader" account
    receives a balance of each asset for swaps and joins.

    Returns:
        Simulation holding the pool and its ledger
    """
    ledger = InMemoryAssetLedger()
    pool = WeightedPool("pool", ledger, config)
    for asset in (base_asset, quote_asset):
        ledger.mint(asset, "controller", balance)
        ledger.mint(asset, "trader", balance)

    pool.setup(
        controller="controller",
        factory="factory",
        swap_fee=swap_fee,
        platform_collector="platform",
    )
    pool.bind("controller", base_asset, balance, weight)
    pool.bind("controller", quote_asset, balance, weight)
    pool.finalize("controller")

    logger.info("demo_pool_built", base_asset=base_asset, quote_asset=quote_asset, balance=balance)
    return Simulation(pool=pool, ledger=ledger)
