"""Token registry and weight ledger.

Tracks the bound assets of a pool, their denormalized weights and their
balances, and keeps ``total_weight`` equal to the sum of the weights.
"""

from __future__ import annotations

from dataclasses import dataclass

from .errors import NotBoundError, TotalWeightExceededError


@dataclass
class AssetRecord:
    """Registry entry for a bound asset.

    Attributes:
        bound: True once the asset is bound to the pool
        index: Position in bind order (used only for enumeration)
        weight: Denormalized weight (18-decimal fixed-point)
        balance: Pool balance in the asset's 18-decimal units
    """

    bound: bool
    index: int
    weight: int = 0
    balance: int = 0


class TokenRegistry:
    """Fixed-capacity mapping of asset id to AssetRecord."""

    def __init__(self, capacity: int) -> None:
        self.capacity = capacity
        self._records: dict[str, AssetRecord] = {}
        self.total_weight = 0

    def __len__(self) -> int:
        return len(self._records)

    def __contains__(self, asset: object) -> bool:
        return asset in self._records

    def is_bound(self, asset: str) -> bool:
        record = self._records.get(asset)
        return record is not None and record.bound

    def get(self, asset: str) -> AssetRecord:
        """Return the record for a bound asset.

        Raises:
            NotBoundError: If the asset is not bound
        """
        record = self._records.get(asset)
        if record is None or not record.bound:
            raise NotBoundError(f"Asset {asset} is not bound")
        return record

    def add(self, asset: str) -> AssetRecord:
        """Register an asset with zero weight and zero balance."""
        record = AssetRecord(bound=True, index=len(self._records))
        self._records[asset] = record
        return record

    def tokens(self) -> list[str]:
        """Bound assets in bind order."""
        return sorted(self._records, key=lambda asset: self._records[asset].index)

    def other(self, asset: str) -> str:
        """Return the bound asset paired with ``asset``."""
        self.get(asset)
        for candidate in self.tokens():
            if candidate != asset:
                return candidate
        raise NotBoundError(f"Asset {asset} has no bound pair")

    def set_weight(self, asset: str, weight: int, max_total_weight: int) -> None:
        """Replace an asset's weight, adjusting total_weight by the delta.

        Raises:
            TotalWeightExceededError: If the new total exceeds max_total_weight
        """
        record = self.get(asset)
        new_total = self.total_weight - record.weight + weight
        if new_total > max_total_weight:
            raise TotalWeightExceededError(
                f"Total weight {new_total} exceeds maximum {max_total_weight}"
            )
        self.total_weight = new_total
        record.weight = weight
