"""Pool notifications.

Every balance-mutating call records notifications in the pool's EventLog in
the order they happen. A call that fails records nothing: the log is part of
the state restored on failure.
"""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass
from typing import TypeVar, Union


@dataclass(frozen=True)
class SwapExecuted:
    caller: str
    asset_in: str
    asset_out: str
    amount_in: int
    amount_out: int
    balance_in: int
    balance_out: int
    spot_price_after: int


@dataclass(frozen=True)
class SwapFeesCharged:
    asset: str
    lp_fee: int
    platform_fee: int
    publisher_fee: int
    market_fee: int
    market_fee_address: str | None


@dataclass(frozen=True)
class JoinExecuted:
    caller: str
    asset_in: str
    amount_in: int


@dataclass(frozen=True)
class ExitExecuted:
    caller: str
    asset_out: str
    amount_out: int


@dataclass(frozen=True)
class SharesMinted:
    account: str
    amount: int


@dataclass(frozen=True)
class SharesBurned:
    account: str
    amount: int


@dataclass(frozen=True)
class PlatformFeesCollected:
    caller: str
    collector: str
    asset: str
    amount: int


@dataclass(frozen=True)
class PublisherFeesCollected:
    caller: str
    collector: str
    asset: str
    amount: int


@dataclass(frozen=True)
class SwapFeeChanged:
    caller: str
    swap_fee: int


@dataclass(frozen=True)
class PublisherFeeChanged:
    caller: str
    new_collector: str
    publisher_fee: int


PoolEvent = Union[
    SwapExecuted,
    SwapFeesCharged,
    JoinExecuted,
    ExitExecuted,
    SharesMinted,
    SharesBurned,
    PlatformFeesCollected,
    PublisherFeesCollected,
    SwapFeeChanged,
    PublisherFeeChanged,
]

E = TypeVar("E")


class EventLog:
    """Ordered record of pool notifications."""

    def __init__(self) -> None:
        self._events: list[PoolEvent] = []

    def record(self, event: PoolEvent) -> None:
        self._events.append(event)

    def of_type(self, event_type: type[E]) -> list[E]:
        """Events of one type, in emission order."""
        return [event for event in self._events if isinstance(event, event_type)]

    def __iter__(self) -> Iterator[PoolEvent]:
        return iter(self._events)

    def __len__(self) -> int:
        return len(self._events)

    def truncate(self, length: int) -> None:
        """Drop every event recorded after the first length."""
        del self._events[length:]

    def __getitem__(self, index: int) -> PoolEvent:
        return self._events[index]
