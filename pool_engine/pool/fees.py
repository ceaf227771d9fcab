"""Swap fee splitting and the platform / publisher fee ledgers.

A swap charges four fee rates on the gross input amount:
- swap fee: stays in the pool balance and accrues to liquidity providers
- platform fee: held by the pool in the platform ledger until collected
- publisher-market fee: held in the publisher ledger until collected
- per-trade market fee: paid out immediately to the trade's fee address

Only the swap fee share increases the input balance beyond the amount used
for pricing; the other three slices never enter the pool balance.
"""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass

from pool_engine.math.fixed_point import Bfp
from pool_engine.safe_int import S


@dataclass(frozen=True)
class SwapFeeRates:
    """Fee rates applied to one swap (18-decimal fractions).

    Attributes:
        swap_fee: Liquidity-provider fee
        platform_fee: Platform (protocol) fee
        publisher_fee: Publisher-market fee
        market_fee: Per-trade fee paid to the trade's market fee address
    """

    swap_fee: int
    platform_fee: int
    publisher_fee: int
    market_fee: int

    @property
    def total(self) -> int:
        """Combined rate used for pricing."""
        return self.swap_fee + self.platform_fee + self.publisher_fee + self.market_fee


@dataclass(frozen=True)
class SwapFees:
    """Fee amounts charged on one swap, in input-asset units.

    Attributes:
        lp_fee: Swap-fee share kept in the pool balance
        platform_fee: Amount accrued to the platform ledger
        publisher_fee: Amount accrued to the publisher ledger
        market_fee: Amount paid to the market fee address
        balance_in_delta: Net increase of the input balance
    """

    lp_fee: int
    platform_fee: int
    publisher_fee: int
    market_fee: int
    balance_in_delta: int


def split_swap_fees(amount_in: int, rates: SwapFeeRates) -> SwapFees:
    """Split a gross input amount into its fee slices.

    Slices are rounded down, so any rounding remainder stays in the pool
    balance.

    Args:
        amount_in: Gross input amount paid by the trader
        rates: Fee rates of the swap

    Returns:
        SwapFees with each slice and the net input balance delta
    """
    gross = Bfp(amount_in)
    lp_fee = gross.mul_down(Bfp(rates.swap_fee)).value
    platform_fee = gross.mul_down(Bfp(rates.platform_fee)).value
    publisher_fee = gross.mul_down(Bfp(rates.publisher_fee)).value
    market_fee = gross.mul_down(Bfp(rates.market_fee)).value

    balance_in_delta = (S(amount_in) - platform_fee - publisher_fee - market_fee).value
    return SwapFees(
        lp_fee=lp_fee,
        platform_fee=platform_fee,
        publisher_fee=publisher_fee,
        market_fee=market_fee,
        balance_in_delta=balance_in_delta,
    )


class FeeLedger:
    """Accrued platform and publisher-market fees per asset.

    Entries only grow, except when drained by collection, which resets the
    entry to zero and returns the drained amount.
    """

    def __init__(self) -> None:
        self._platform: defaultdict[str, int] = defaultdict(int)
        self._publisher: defaultdict[str, int] = defaultdict(int)

    def platform(self, asset: str) -> int:
        return self._platform.get(asset, 0)

    def publisher(self, asset: str) -> int:
        return self._publisher.get(asset, 0)

    def accrue(self, asset: str, fees: SwapFees) -> None:
        """Add a swap's platform and publisher slices to the ledgers."""
        self._platform[asset] = (S(self.platform(asset)) + fees.platform_fee).value
        self._publisher[asset] = (S(self.publisher(asset)) + fees.publisher_fee).value

    def drain_platform(self, asset: str) -> int:
        return self._platform.pop(asset, 0)

    def drain_publisher(self, asset: str) -> int:
        return self._publisher.pop(asset, 0)
