"""Collaborator protocols used by the pool.

The pool only talks to the outside world through these narrow interfaces:
an asset ledger that moves exact amounts of fungible assets, and an
auto-staking collaborator that mirrors single-sided liquidity.
"""

from __future__ import annotations

from typing import Any, Protocol, runtime_checkable

from pool_engine.constants import ZERO_ADDRESS


class AssetLedger(Protocol):
    """Fungible asset transfers.

    Both methods move exactly ``amount`` of ``asset`` or raise; assets with
    transfer fees or rebasing balances are not supported.
    """

    def pull(self, asset: str, sender: str, recipient: str, amount: int) -> None:
        """Move amount from sender into the pool account (recipient)."""
        ...

    def push(self, asset: str, sender: str, recipient: str, amount: int) -> None:
        """Move amount from the pool account (sender) to recipient."""
        ...

    def balance_of(self, asset: str, account: str) -> int:
        ...


@runtime_checkable
class SupportsRollback(Protocol):
    """Collaborator whose state can be restored when a pool call fails."""

    def snapshot(self) -> Any:
        ...

    def restore(self, snapshot: Any) -> None:
        ...


class StakingCollaborator(Protocol):
    """Auto-staking collaborator.

    Consulted by single-asset joins and exits. When it agrees, the pool
    mirrors the caller's share amount on the other bound asset, pulling from
    (or paying to) the collaborator's ``address``.
    """

    @property
    def address(self) -> str:
        ...

    def can_stake(self, asset: str, pair_asset: str, amount: int) -> bool:
        ...

    def can_unstake(self, asset: str, pair_asset: str, pool_shares: int) -> bool:
        ...

    def stake(self, asset: str, pair_asset: str, amount: int, pool_shares: int) -> None:
        ...

    def unstake(self, asset: str, pair_asset: str, amount: int, pool_shares: int) -> None:
        ...


class NullStaking:
    """Staking collaborator that never stakes."""

    address = ZERO_ADDRESS

    def can_stake(self, asset: str, pair_asset: str, amount: int) -> bool:
        return False

    def can_unstake(self, asset: str, pair_asset: str, pool_shares: int) -> bool:
        return False

    def stake(self, asset: str, pair_asset: str, amount: int, pool_shares: int) -> None:
        raise RuntimeError("NullStaking never stakes")

    def unstake(self, asset: str, pair_asset: str, amount: int, pool_shares: int) -> None:
        raise RuntimeError("NullStaking never unstakes")
