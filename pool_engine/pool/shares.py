"""Pool share token.

Fungible accounting of proportional ownership. Shares are minted into the
pool's own account and then pushed to the recipient; redemptions pull shares
back into the pool account before burning them.
"""

from __future__ import annotations

from collections import defaultdict

from pool_engine.safe_int import S

from .errors import InsufficientSharesError


class PoolShareToken:
    """Balances and total supply of a pool's shares."""

    def __init__(self) -> None:
        self._balances: defaultdict[str, int] = defaultdict(int)
        self.total_supply = 0

    def balance_of(self, account: str) -> int:
        return self._balances.get(account, 0)

    def mint(self, account: str, amount: int) -> None:
        self._balances[account] = (S(self.balance_of(account)) + amount).value
        self.total_supply = (S(self.total_supply) + amount).value

    def burn(self, account: str, amount: int) -> None:
        self._debit(account, amount)
        self.total_supply = (S(self.total_supply) - amount).value

    def move(self, sender: str, recipient: str, amount: int) -> None:
        self._debit(sender, amount)
        self._balances[recipient] = (S(self.balance_of(recipient)) + amount).value

    def _debit(self, account: str, amount: int) -> None:
        balance = self.balance_of(account)
        if amount > balance:
            raise InsufficientSharesError(
                f"Account {account} holds {balance} shares, needs {amount}"
            )
        self._balances[account] = balance - amount
