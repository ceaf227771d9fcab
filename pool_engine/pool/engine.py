"""Two-asset weighted pool engine.

WeightedPool ties the registry, the weighted math, the fee ledgers and the
share token together and exposes the pool's read and mutating surface.

Every mutating method follows the same shape:
1. acquire the pool mutex (reentrant calls fail with ReentryError)
2. validate and compute with the pure math functions
3. update records, share balances, fee ledgers and notifications
4. run asset transfers and collaborator calls last

If anything raises, the mutex restores the state captured on entry, so a
failed call leaves no trace.
"""

from __future__ import annotations

import copy
import functools
from collections.abc import Callable, Iterator, Mapping
from contextlib import contextmanager
from dataclasses import dataclass, field, replace
from typing import Any, TypeVar

import structlog

from pool_engine.config import DEFAULT_POOL_CONFIG, PoolConfig
from pool_engine.constants import ZERO_ADDRESS
from pool_engine.math.fixed_point import Bfp
from pool_engine.safe_int import S

from .errors import (
    AlreadyBoundError,
    AlreadyFinalizedError,
    AlreadyInitializedError,
    ApproximationError,
    BadLimitPriceError,
    BalanceTooLowError,
    FeeOutOfRangeError,
    LimitInError,
    LimitOutError,
    LimitPriceError,
    MaxInRatioError,
    MaxOutRatioError,
    MaxTokensExceededError,
    MinTokensNotBoundError,
    NotControllerError,
    NotFinalizedError,
    NotInitializedError,
    NotPublisherCollectorError,
    ReentryError,
    SameAssetError,
    WeightOutOfRangeError,
)
from .events import (
    EventLog,
    ExitExecuted,
    JoinExecuted,
    PlatformFeesCollected,
    PublisherFeeChanged,
    PublisherFeesCollected,
    SharesBurned,
    SharesMinted,
    SwapExecuted,
    SwapFeeChanged,
    SwapFeesCharged,
)
from .fees import FeeLedger, SwapFeeRates, SwapFees, split_swap_fees
from .interfaces import AssetLedger, NullStaking, StakingCollaborator, SupportsRollback
from .records import AssetRecord, TokenRegistry
from .shares import PoolShareToken
from .weighted_math import (
    calc_in_given_out,
    calc_out_given_in,
    calc_pool_in_given_single_out,
    calc_pool_out_given_single_in,
    calc_single_in_given_pool_out,
    calc_single_out_given_pool_in,
    calc_spot_price,
)

logger = structlog.get_logger()

F = TypeVar("F", bound=Callable[..., Any])


def _viewlock(method: F) -> F:
    """Reject reads while a mutating call is in flight."""

    @functools.wraps(method)
    def wrapper(self: WeightedPool, *args: Any, **kwargs: Any) -> Any:
        if self._locked:
            raise ReentryError(f"{method.__name__} called during an in-flight mutation")
        return method(self, *args, **kwargs)

    return wrapper  # type: ignore[return-value]


@dataclass
class PoolState:
    """All mutable pool state, snapshotted and restored as one unit."""

    registry: TokenRegistry
    shares: PoolShareToken = field(default_factory=PoolShareToken)
    fees: FeeLedger = field(default_factory=FeeLedger)
    events: EventLog = field(default_factory=EventLog)

    initialized: bool = False
    finalized: bool = False

    controller: str = ZERO_ADDRESS
    factory: str = ZERO_ADDRESS
    swap_fee: int = 0
    platform_collector: str = ZERO_ADDRESS
    platform_fee: int = 0
    publisher_collector: str = ZERO_ADDRESS
    publisher_fee: int = 0

    def snapshot(self) -> PoolState:
        """Copy of the state that shares the append-only event log."""
        return replace(
            self,
            registry=copy.deepcopy(self.registry),
            shares=copy.deepcopy(self.shares),
            fees=copy.deepcopy(self.fees),
        )


@dataclass(frozen=True)
class SwapQuote:
    """Priced swap, before any state change.

    Attributes:
        amount_in: Gross input amount
        amount_out: Output amount
        spot_price_before: Spot price including the trade's total fee rate
        fee_rate: Total fee rate used for pricing
        fees: Fee slices of amount_in
    """

    amount_in: int
    amount_out: int
    spot_price_before: int
    fee_rate: int
    fees: SwapFees


@dataclass(frozen=True)
class _StakingLeg:
    """Mirrored join/exit performed on behalf of the staking collaborator."""

    asset: str
    pair_asset: str
    amount: int
    pool_shares: int


class WeightedPool:
    """Two-asset weighted AMM pool.

    Lifecycle: setup() once, bind() both assets, finalize(); after that
    swaps, joins and exits are open to any caller.

    Callers are identified by the ``caller`` argument of each mutating
    method. Amounts, weights, fees and prices are 18-decimal fixed-point
    integers.

    Attributes:
        address: The pool's own account on the asset ledger
        config: Protocol bounds (fees, weights, ratios, supplies)
    """

    def __init__(
        self,
        address: str,
        assets: AssetLedger,
        config: PoolConfig | None = None,
    ) -> None:
        self.address = address
        self.config = config or DEFAULT_POOL_CONFIG
        self._assets = assets
        self._staking: StakingCollaborator = NullStaking()
        self._locked = False
        self._state = PoolState(registry=TokenRegistry(self.config.max_bound_tokens))

    # =========================================================================
    # Mutual exclusion
    # =========================================================================

    @contextmanager
    def _mutex(self, operation: str) -> Iterator[PoolState]:
        """Hold the pool lock for one all-or-nothing mutating call.

        Snapshots the pool state (and any rollback-capable collaborator) on
        entry and restores it if the body raises. The event log is not copied;
        events recorded by the failed call are truncated instead.
        """
        if self._locked:
            logger.debug("pool_reentry_rejected", pool=self.address, operation=operation)
            raise ReentryError(f"{operation}: pool is locked")

        self._locked = True
        state_snapshot = self._state.snapshot()
        events_recorded = len(self._state.events)
        collaborator_snapshots = [
            (collaborator, collaborator.snapshot())
            for collaborator in (self._assets, self._staking)
            if isinstance(collaborator, SupportsRollback)
        ]
        try:
            yield self._state
        except Exception as err:
            self._state = state_snapshot
            self._state.events.truncate(events_recorded)
            for collaborator, snapshot in collaborator_snapshots:
                collaborator.restore(snapshot)
            logger.debug(
                "pool_call_reverted",
                pool=self.address,
                operation=operation,
                error=type(err).__name__,
                reason=str(err),
            )
            raise
        finally:
            self._locked = False

    @property
    def locked(self) -> bool:
        return self._locked

    @property
    def events(self) -> EventLog:
        return self._state.events

    # =========================================================================
    # Lifecycle and registry
    # =========================================================================

    def setup(
        self,
        controller: str,
        factory: str,
        swap_fee: int,
        platform_collector: str,
        platform_fee: int = 0,
        publisher_collector: str | None = None,
        publisher_fee: int = 0,
        staking: StakingCollaborator | None = None,
    ) -> None:
        """One-time initialisation performed by the deploying factory.

        Args:
            controller: Account allowed to bind, rebind, finalize and set the swap fee
            factory: Collector of exit fees
            swap_fee: Liquidity-provider fee rate
            platform_collector: Recipient of collected platform fees
            platform_fee: Platform fee rate, fixed for the pool's lifetime
            publisher_collector: Recipient of publisher-market fees (default: controller)
            publisher_fee: Publisher-market fee rate
            staking: Auto-staking collaborator (default: never stakes)

        Raises:
            AlreadyInitializedError: If setup already ran
            FeeOutOfRangeError: If a fee rate is outside its bounds
        """
        with self._mutex("setup") as state:
            if state.initialized:
                raise AlreadyInitializedError("Pool is already initialized")
            if not self.config.swap_fee_in_range(swap_fee):
                raise FeeOutOfRangeError(f"Swap fee {swap_fee} out of range")
            if not 0 <= platform_fee <= self.config.max_fee:
                raise FeeOutOfRangeError(f"Platform fee {platform_fee} out of range")
            if not self.config.market_fee_in_range(publisher_fee):
                raise FeeOutOfRangeError(f"Publisher fee {publisher_fee} out of range")

            state.initialized = True
            state.controller = controller
            state.factory = factory
            state.swap_fee = swap_fee
            state.platform_collector = platform_collector
            state.platform_fee = platform_fee
            state.publisher_collector = publisher_collector or controller
            state.publisher_fee = publisher_fee
            self._staking = staking or NullStaking()

            logger.info(
                "pool_setup",
                pool=self.address,
                controller=controller,
                swap_fee=swap_fee,
                platform_fee=platform_fee,
                publisher_fee=publisher_fee,
            )

    def bind(self, caller: str, asset: str, balance: int, weight: int) -> None:
        """Register an asset and deposit its initial balance from the controller.

        Raises:
            NotControllerError: If caller is not the controller
            AlreadyBoundError: If the asset is already bound
            AlreadyFinalizedError: If the pool is finalized
            MaxTokensExceededError: If two assets are already bound
        """
        with self._mutex("bind") as state:
            self._require_controller(state, caller)
            if state.registry.is_bound(asset):
                raise AlreadyBoundError(f"Asset {asset} is already bound")
            if state.finalized:
                raise AlreadyFinalizedError("Cannot bind after finalize")
            if len(state.registry) >= self.config.max_bound_tokens:
                raise MaxTokensExceededError(
                    f"Pool already holds {self.config.max_bound_tokens} assets"
                )

            state.registry.add(asset)
            self._rebind(state, caller, asset, balance, weight)

    def rebind(self, caller: str, asset: str, balance: int, weight: int) -> None:
        """Change a bound asset's weight and balance before finalize."""
        with self._mutex("rebind") as state:
            self._require_controller(state, caller)
            self._rebind(state, caller, asset, balance, weight)

    def _rebind(self, state: PoolState, caller: str, asset: str, balance: int, weight: int) -> None:
        if state.finalized:
            raise AlreadyFinalizedError("Cannot rebind after finalize")
        record = state.registry.get(asset)
        if not self.config.min_weight <= weight <= self.config.max_weight:
            raise WeightOutOfRangeError(f"Weight {weight} out of range")
        if balance < self.config.min_balance:
            raise BalanceTooLowError(f"Balance {balance} below minimum {self.config.min_balance}")

        state.registry.set_weight(asset, weight, self.config.max_total_weight)

        old_balance = record.balance
        record.balance = balance

        logger.info(
            "pool_rebind",
            pool=self.address,
            asset=asset,
            balance=balance,
            weight=weight,
            total_weight=state.registry.total_weight,
        )

        if balance > old_balance:
            self._assets.pull(asset, caller, self.address, balance - old_balance)
        elif balance < old_balance:
            withdrawn = old_balance - balance
            exit_fee = self._exit_fee(withdrawn)
            self._assets.push(asset, self.address, caller, withdrawn - exit_fee)
            if exit_fee:
                self._assets.push(asset, self.address, state.factory, exit_fee)

    def finalize(self, caller: str) -> None:
        """Open the pool to the public and mint the genesis shares to the caller.

        Raises:
            NotControllerError: If caller is not the controller
            AlreadyFinalizedError: If the pool is already finalized
            MinTokensNotBoundError: If fewer than two assets are bound
        """
        with self._mutex("finalize") as state:
            self._require_controller(state, caller)
            if state.finalized:
                raise AlreadyFinalizedError("Pool is already finalized")
            if len(state.registry) < self.config.min_bound_tokens:
                raise MinTokensNotBoundError(
                    f"Finalize needs {self.config.min_bound_tokens} bound assets"
                )

            state.finalized = True
            self._issue_shares(state, caller, self.config.init_pool_supply)

            logger.info("pool_finalized", pool=self.address, supply=self.config.init_pool_supply)

    # =========================================================================
    # Fee configuration and collection
    # =========================================================================

    def set_swap_fee(self, caller: str, swap_fee: int) -> None:
        """Change the liquidity-provider fee rate (controller only)."""
        with self._mutex("set_swap_fee") as state:
            self._require_controller(state, caller)
            if not self.config.swap_fee_in_range(swap_fee):
                raise FeeOutOfRangeError(f"Swap fee {swap_fee} out of range")

            state.swap_fee = swap_fee
            state.events.record(SwapFeeChanged(caller=caller, swap_fee=swap_fee))

    def update_market_fee_collector(self, caller: str, new_collector: str, new_fee: int) -> None:
        """Hand over the publisher-market fee collector role and set its fee rate.

        Raises:
            NotPublisherCollectorError: If caller is not the current collector
            FeeOutOfRangeError: If new_fee is outside its bounds
        """
        with self._mutex("update_market_fee_collector") as state:
            self._require_initialized(state)
            if caller != state.publisher_collector:
                raise NotPublisherCollectorError(f"{caller} is not the publisher fee collector")
            if not self.config.market_fee_in_range(new_fee):
                raise FeeOutOfRangeError(f"Publisher fee {new_fee} out of range")

            state.publisher_collector = new_collector
            state.publisher_fee = new_fee
            state.events.record(
                PublisherFeeChanged(caller=caller, new_collector=new_collector, publisher_fee=new_fee)
            )

    def collect_platform_fees(self, caller: str) -> dict[str, int]:
        """Pay accrued platform fees to the platform collector. Open to anyone.

        Returns:
            Amount paid out per bound asset (zero when nothing accrued)
        """
        with self._mutex("collect_platform_fees") as state:
            self._require_initialized(state)
            collector = state.platform_collector
            collected: dict[str, int] = {}
            for asset in state.registry.tokens():
                amount = state.fees.drain_platform(asset)
                state.events.record(
                    PlatformFeesCollected(caller=caller, collector=collector, asset=asset, amount=amount)
                )
                collected[asset] = amount

            for asset, amount in collected.items():
                if amount:
                    self._assets.push(asset, self.address, collector, amount)

        logger.info("pool_platform_fees_collected", pool=self.address, collector=collector, amounts=collected)
        return collected

    def collect_market_fees(self, caller: str) -> dict[str, int]:
        """Pay accrued publisher-market fees to their collector. Open to anyone.

        Returns:
            Amount paid out per bound asset (zero when nothing accrued)
        """
        with self._mutex("collect_market_fees") as state:
            self._require_initialized(state)
            collector = state.publisher_collector
            collected: dict[str, int] = {}
            for asset in state.registry.tokens():
                amount = state.fees.drain_publisher(asset)
                state.events.record(
                    PublisherFeesCollected(caller=caller, collector=collector, asset=asset, amount=amount)
                )
                collected[asset] = amount

            for asset, amount in collected.items():
                if amount:
                    self._assets.push(asset, self.address, collector, amount)

        logger.info("pool_market_fees_collected", pool=self.address, collector=collector, amounts=collected)
        return collected

    # =========================================================================
    # Swaps
    # =========================================================================

    def swap_exact_amount_in(
        self,
        caller: str,
        asset_in: str,
        amount_in: int,
        asset_out: str,
        min_amount_out: int,
        max_price: int,
        market_fee_address: str | None = None,
        market_fee: int = 0,
    ) -> tuple[int, int]:
        """Sell an exact amount of asset_in.

        Args:
            caller: Trader paying amount_in and receiving the output
            asset_in: Asset sold
            amount_in: Gross amount sold (fees included)
            asset_out: Asset bought
            min_amount_out: Smallest acceptable output
            max_price: Largest acceptable spot price, before and after the trade
            market_fee_address: Recipient of the per-trade market fee
            market_fee: Per-trade market fee rate

        Returns:
            Tuple of (amount_out, spot_price_after)
        """
        with self._mutex("swap_exact_amount_in") as state:
            self._require_market_fee_address(market_fee, market_fee_address)
            quote = self._quote_exact_in(state, asset_in, amount_in, asset_out, market_fee)
            if quote.spot_price_before > max_price:
                raise BadLimitPriceError(
                    f"Spot price {quote.spot_price_before} above limit {max_price}"
                )
            if quote.amount_out < min_amount_out:
                raise LimitOutError(f"Output {quote.amount_out} below minimum {min_amount_out}")

            spot_price_after = self._settle_swap(
                state, caller, asset_in, asset_out, quote, max_price, market_fee_address
            )

        logger.info(
            "pool_swap_exact_in",
            pool=self.address,
            caller=caller,
            asset_in=asset_in,
            asset_out=asset_out,
            amount_in=amount_in,
            amount_out=quote.amount_out,
        )
        return quote.amount_out, spot_price_after

    def swap_exact_amount_out(
        self,
        caller: str,
        asset_in: str,
        max_amount_in: int,
        asset_out: str,
        amount_out: int,
        max_price: int,
        market_fee_address: str | None = None,
        market_fee: int = 0,
    ) -> tuple[int, int]:
        """Buy an exact amount of asset_out.

        Returns:
            Tuple of (amount_in, spot_price_after)
        """
        with self._mutex("swap_exact_amount_out") as state:
            self._require_market_fee_address(market_fee, market_fee_address)
            quote = self._quote_exact_out(state, asset_in, asset_out, amount_out, market_fee)
            if quote.spot_price_before > max_price:
                raise BadLimitPriceError(
                    f"Spot price {quote.spot_price_before} above limit {max_price}"
                )
            if quote.amount_in > max_amount_in:
                raise LimitInError(f"Input {quote.amount_in} above maximum {max_amount_in}")

            spot_price_after = self._settle_swap(
                state, caller, asset_in, asset_out, quote, max_price, market_fee_address
            )

        logger.info(
            "pool_swap_exact_out",
            pool=self.address,
            caller=caller,
            asset_in=asset_in,
            asset_out=asset_out,
            amount_in=quote.amount_in,
            amount_out=amount_out,
        )
        return quote.amount_in, spot_price_after

    def _swap_records(
        self, state: PoolState, asset_in: str, asset_out: str
    ) -> tuple[AssetRecord, AssetRecord]:
        self._require_finalized(state)
        if asset_in == asset_out:
            raise SameAssetError(f"Cannot swap {asset_in} for itself")
        return state.registry.get(asset_in), state.registry.get(asset_out)

    @staticmethod
    def _require_market_fee_address(market_fee: int, market_fee_address: str | None) -> None:
        if market_fee > 0 and market_fee_address is None:
            raise FeeOutOfRangeError("A market fee requires a market fee address")

    def _fee_rates(self, state: PoolState, market_fee: int) -> SwapFeeRates:
        if not self.config.market_fee_in_range(market_fee):
            raise FeeOutOfRangeError(f"Market fee {market_fee} out of range")
        return SwapFeeRates(
            swap_fee=state.swap_fee,
            platform_fee=state.platform_fee,
            publisher_fee=state.publisher_fee,
            market_fee=market_fee,
        )

    @staticmethod
    def _spot_price(record_in: AssetRecord, record_out: AssetRecord, fee_rate: int) -> int:
        return calc_spot_price(
            Bfp(record_in.balance),
            Bfp(record_in.weight),
            Bfp(record_out.balance),
            Bfp(record_out.weight),
            Bfp(fee_rate),
        ).value

    def _quote_exact_in(
        self,
        state: PoolState,
        asset_in: str,
        amount_in: int,
        asset_out: str,
        market_fee: int,
    ) -> SwapQuote:
        record_in, record_out = self._swap_records(state, asset_in, asset_out)
        rates = self._fee_rates(state, market_fee)

        max_in = Bfp(record_in.balance).mul_down(Bfp(self.config.max_in_ratio)).value
        if amount_in > max_in:
            raise MaxInRatioError(
                f"Input {amount_in} exceeds max in ratio of balance {record_in.balance}"
            )

        amount_out = calc_out_given_in(
            Bfp(record_in.balance),
            Bfp(record_in.weight),
            Bfp(record_out.balance),
            Bfp(record_out.weight),
            Bfp(amount_in),
            Bfp(rates.total),
        ).value
        return SwapQuote(
            amount_in=amount_in,
            amount_out=amount_out,
            spot_price_before=self._spot_price(record_in, record_out, rates.total),
            fee_rate=rates.total,
            fees=split_swap_fees(amount_in, rates),
        )

    def _quote_exact_out(
        self,
        state: PoolState,
        asset_in: str,
        asset_out: str,
        amount_out: int,
        market_fee: int,
    ) -> SwapQuote:
        record_in, record_out = self._swap_records(state, asset_in, asset_out)
        rates = self._fee_rates(state, market_fee)

        max_out = Bfp(record_out.balance).mul_down(Bfp(self.config.max_out_ratio)).value
        if amount_out > max_out:
            raise MaxOutRatioError(
                f"Output {amount_out} exceeds max out ratio of balance {record_out.balance}"
            )

        amount_in = calc_in_given_out(
            Bfp(record_in.balance),
            Bfp(record_in.weight),
            Bfp(record_out.balance),
            Bfp(record_out.weight),
            Bfp(amount_out),
            Bfp(rates.total),
        ).value
        return SwapQuote(
            amount_in=amount_in,
            amount_out=amount_out,
            spot_price_before=self._spot_price(record_in, record_out, rates.total),
            fee_rate=rates.total,
            fees=split_swap_fees(amount_in, rates),
        )

    def _settle_swap(
        self,
        state: PoolState,
        caller: str,
        asset_in: str,
        asset_out: str,
        quote: SwapQuote,
        max_price: int,
        market_fee_address: str | None,
    ) -> int:
        """Apply a priced swap: post-trade guards, ledgers, then transfers."""
        if quote.amount_in == 0 or quote.amount_out == 0:
            raise ApproximationError("Swap amount rounds to zero")
        fees = quote.fees

        record_in = state.registry.get(asset_in)
        record_out = state.registry.get(asset_out)
        record_in.balance = (S(record_in.balance) + fees.balance_in_delta).value
        record_out.balance = (S(record_out.balance) - quote.amount_out).value

        spot_price_after = self._spot_price(record_in, record_out, quote.fee_rate)
        if spot_price_after < quote.spot_price_before:
            raise ApproximationError("Spot price moved backwards")
        if spot_price_after > max_price:
            raise LimitPriceError(f"Spot price after {spot_price_after} above limit {max_price}")
        average_price = Bfp(quote.amount_in).div_up(Bfp(quote.amount_out)).value
        if quote.spot_price_before > average_price:
            raise ApproximationError("Average price below spot price")

        state.fees.accrue(asset_in, fees)
        state.events.record(
            SwapExecuted(
                caller=caller,
                asset_in=asset_in,
                asset_out=asset_out,
                amount_in=quote.amount_in,
                amount_out=quote.amount_out,
                balance_in=record_in.balance,
                balance_out=record_out.balance,
                spot_price_after=spot_price_after,
            )
        )
        state.events.record(
            SwapFeesCharged(
                asset=asset_in,
                lp_fee=fees.lp_fee,
                platform_fee=fees.platform_fee,
                publisher_fee=fees.publisher_fee,
                market_fee=fees.market_fee,
                market_fee_address=market_fee_address,
            )
        )

        self._assets.pull(asset_in, caller, self.address, quote.amount_in)
        if fees.market_fee and market_fee_address is not None:
            self._assets.push(asset_in, self.address, market_fee_address, fees.market_fee)
        self._assets.push(asset_out, self.address, caller, quote.amount_out)
        return spot_price_after

    # =========================================================================
    # Proportional liquidity
    # =========================================================================

    def join_pool(
        self, caller: str, pool_amount_out: int, max_amounts_in: Mapping[str, int]
    ) -> dict[str, int]:
        """Deposit both assets in proportion and receive exact pool shares.

        Args:
            caller: Liquidity provider
            pool_amount_out: Shares to mint
            max_amounts_in: Largest acceptable deposit per asset

        Returns:
            Amount deposited per asset
        """
        with self._mutex("join_pool") as state:
            self._require_finalized(state)
            ratio = Bfp(pool_amount_out).div_up(Bfp(state.shares.total_supply))
            if ratio.value == 0:
                raise ApproximationError("Join ratio rounds to zero")

            amounts_in: dict[str, int] = {}
            for asset in state.registry.tokens():
                record = state.registry.get(asset)
                amount_in = Bfp(record.balance).mul_up(ratio).value
                if amount_in == 0:
                    raise ApproximationError(f"Join amount of {asset} rounds to zero")
                limit = max_amounts_in.get(asset, 0)
                if amount_in > limit:
                    raise LimitInError(f"Join needs {amount_in} of {asset}, limit {limit}")

                record.balance = (S(record.balance) + amount_in).value
                state.events.record(JoinExecuted(caller=caller, asset_in=asset, amount_in=amount_in))
                amounts_in[asset] = amount_in

            self._issue_shares(state, caller, pool_amount_out)

            for asset, amount_in in amounts_in.items():
                self._assets.pull(asset, caller, self.address, amount_in)

        logger.info("pool_join", pool=self.address, caller=caller, pool_amount_out=pool_amount_out)
        return amounts_in

    def exit_pool(
        self, caller: str, pool_amount_in: int, min_amounts_out: Mapping[str, int]
    ) -> dict[str, int]:
        """Redeem exact pool shares for both assets in proportion.

        The exit fee share of pool_amount_in goes to the factory collector;
        only the remainder is burned and paid out.

        Returns:
            Amount withdrawn per asset
        """
        with self._mutex("exit_pool") as state:
            self._require_finalized(state)
            exit_fee = self._exit_fee(pool_amount_in)
            ratio = Bfp(pool_amount_in - exit_fee).div_down(Bfp(state.shares.total_supply))
            if ratio.value == 0:
                raise ApproximationError("Exit ratio rounds to zero")

            self._redeem_shares(state, caller, pool_amount_in, exit_fee)

            amounts_out: dict[str, int] = {}
            for asset in state.registry.tokens():
                record = state.registry.get(asset)
                amount_out = Bfp(record.balance).mul_down(ratio).value
                if amount_out == 0:
                    raise ApproximationError(f"Exit amount of {asset} rounds to zero")
                minimum = min_amounts_out.get(asset, 0)
                if amount_out < minimum:
                    raise LimitOutError(f"Exit pays {amount_out} of {asset}, minimum {minimum}")

                record.balance = (S(record.balance) - amount_out).value
                state.events.record(ExitExecuted(caller=caller, asset_out=asset, amount_out=amount_out))
                amounts_out[asset] = amount_out

            for asset, amount_out in amounts_out.items():
                self._assets.push(asset, self.address, caller, amount_out)

        logger.info(
            "pool_exit",
            pool=self.address,
            caller=caller,
            pool_amount_in=pool_amount_in,
            exit_fee=exit_fee,
        )
        return amounts_out

    # =========================================================================
    # Single-asset liquidity
    # =========================================================================

    def joinswap_extern_amount_in(
        self, caller: str, asset_in: str, amount_in: int, min_pool_amount_out: int
    ) -> int:
        """Deposit an exact amount of one asset and receive pool shares.

        Returns:
            Pool shares minted to the caller
        """
        with self._mutex("joinswap_extern_amount_in") as state:
            self._require_finalized(state)
            record = state.registry.get(asset_in)
            self._check_max_in(record, amount_in)

            pool_supply = state.shares.total_supply
            pool_amount_out = calc_pool_out_given_single_in(
                Bfp(record.balance),
                Bfp(record.weight),
                Bfp(pool_supply),
                Bfp(state.registry.total_weight),
                Bfp(amount_in),
                Bfp(state.swap_fee),
            ).value
            if pool_amount_out == 0:
                raise ApproximationError("Pool amount out rounds to zero")
            if pool_amount_out < min_pool_amount_out:
                raise LimitOutError(
                    f"Pool amount out {pool_amount_out} below minimum {min_pool_amount_out}"
                )

            self._deposit(state, caller, asset_in, amount_in, pool_amount_out)
            leg = self._mirror_join(state, asset_in, pool_amount_out, pool_supply)

            self._assets.pull(asset_in, caller, self.address, amount_in)
            self._settle_stake(leg)

        logger.info(
            "pool_joinswap_extern_amount_in",
            pool=self.address,
            caller=caller,
            asset_in=asset_in,
            amount_in=amount_in,
            pool_amount_out=pool_amount_out,
            staked=leg is not None,
        )
        return pool_amount_out

    def joinswap_pool_amount_out(
        self, caller: str, asset_in: str, pool_amount_out: int, max_amount_in: int
    ) -> int:
        """Mint exact pool shares by depositing one asset.

        Returns:
            Amount of asset_in deposited
        """
        with self._mutex("joinswap_pool_amount_out") as state:
            self._require_finalized(state)
            record = state.registry.get(asset_in)

            pool_supply = state.shares.total_supply
            amount_in = calc_single_in_given_pool_out(
                Bfp(record.balance),
                Bfp(record.weight),
                Bfp(pool_supply),
                Bfp(state.registry.total_weight),
                Bfp(pool_amount_out),
                Bfp(state.swap_fee),
            ).value
            if amount_in == 0:
                raise ApproximationError("Amount in rounds to zero")
            if amount_in > max_amount_in:
                raise LimitInError(f"Amount in {amount_in} above maximum {max_amount_in}")
            self._check_max_in(record, amount_in)

            self._deposit(state, caller, asset_in, amount_in, pool_amount_out)
            leg = self._mirror_join(state, asset_in, pool_amount_out, pool_supply)

            self._assets.pull(asset_in, caller, self.address, amount_in)
            self._settle_stake(leg)

        logger.info(
            "pool_joinswap_pool_amount_out",
            pool=self.address,
            caller=caller,
            asset_in=asset_in,
            amount_in=amount_in,
            pool_amount_out=pool_amount_out,
            staked=leg is not None,
        )
        return amount_in

    def exitswap_pool_amount_in(
        self, caller: str, asset_out: str, pool_amount_in: int, min_amount_out: int
    ) -> int:
        """Redeem exact pool shares for one asset.

        Returns:
            Amount of asset_out paid to the caller
        """
        with self._mutex("exitswap_pool_amount_in") as state:
            self._require_finalized(state)
            record = state.registry.get(asset_out)

            pool_supply = state.shares.total_supply
            amount_out = calc_single_out_given_pool_in(
                Bfp(record.balance),
                Bfp(record.weight),
                Bfp(pool_supply),
                Bfp(state.registry.total_weight),
                Bfp(pool_amount_in),
                Bfp(state.swap_fee),
                Bfp(self.config.exit_fee),
            ).value
            if amount_out == 0:
                raise ApproximationError("Amount out rounds to zero")
            if amount_out < min_amount_out:
                raise LimitOutError(f"Amount out {amount_out} below minimum {min_amount_out}")
            self._check_max_out(record, amount_out)

            self._withdraw(state, caller, asset_out, amount_out, pool_amount_in)
            leg = self._mirror_exit(state, asset_out, pool_amount_in, pool_supply)

            self._assets.push(asset_out, self.address, caller, amount_out)
            self._settle_unstake(leg)

        logger.info(
            "pool_exitswap_pool_amount_in",
            pool=self.address,
            caller=caller,
            asset_out=asset_out,
            amount_out=amount_out,
            pool_amount_in=pool_amount_in,
            unstaked=leg is not None,
        )
        return amount_out

    def exitswap_extern_amount_out(
        self, caller: str, asset_out: str, amount_out: int, max_pool_amount_in: int
    ) -> int:
        """Withdraw an exact amount of one asset by redeeming pool shares.

        Returns:
            Pool shares redeemed from the caller
        """
        with self._mutex("exitswap_extern_amount_out") as state:
            self._require_finalized(state)
            record = state.registry.get(asset_out)
            self._check_max_out(record, amount_out)

            pool_supply = state.shares.total_supply
            pool_amount_in = calc_pool_in_given_single_out(
                Bfp(record.balance),
                Bfp(record.weight),
                Bfp(pool_supply),
                Bfp(state.registry.total_weight),
                Bfp(amount_out),
                Bfp(state.swap_fee),
                Bfp(self.config.exit_fee),
            ).value
            if pool_amount_in == 0:
                raise ApproximationError("Pool amount in rounds to zero")
            if pool_amount_in > max_pool_amount_in:
                raise LimitInError(
                    f"Pool amount in {pool_amount_in} above maximum {max_pool_amount_in}"
                )

            self._withdraw(state, caller, asset_out, amount_out, pool_amount_in)
            leg = self._mirror_exit(state, asset_out, pool_amount_in, pool_supply)

            self._assets.push(asset_out, self.address, caller, amount_out)
            self._settle_unstake(leg)

        logger.info(
            "pool_exitswap_extern_amount_out",
            pool=self.address,
            caller=caller,
            asset_out=asset_out,
            amount_out=amount_out,
            pool_amount_in=pool_amount_in,
            unstaked=leg is not None,
        )
        return pool_amount_in

    def _check_max_in(self, record: AssetRecord, amount_in: int) -> None:
        max_in = Bfp(record.balance).mul_down(Bfp(self.config.max_in_ratio)).value
        if amount_in > max_in:
            raise MaxInRatioError(f"Input {amount_in} exceeds max in ratio of balance {record.balance}")

    def _check_max_out(self, record: AssetRecord, amount_out: int) -> None:
        max_out = Bfp(record.balance).mul_down(Bfp(self.config.max_out_ratio)).value
        if amount_out > max_out:
            raise MaxOutRatioError(
                f"Output {amount_out} exceeds max out ratio of balance {record.balance}"
            )

    def _deposit(
        self, state: PoolState, account: str, asset: str, amount: int, pool_shares: int
    ) -> None:
        record = state.registry.get(asset)
        record.balance = (S(record.balance) + amount).value
        state.events.record(JoinExecuted(caller=account, asset_in=asset, amount_in=amount))
        self._issue_shares(state, account, pool_shares)

    def _withdraw(
        self, state: PoolState, account: str, asset: str, amount: int, pool_shares: int
    ) -> None:
        record = state.registry.get(asset)
        record.balance = (S(record.balance) - amount).value
        state.events.record(ExitExecuted(caller=account, asset_out=asset, amount_out=amount))
        self._redeem_shares(state, account, pool_shares, self._exit_fee(pool_shares))

    # =========================================================================
    # Auto-staking mirror legs
    # =========================================================================
    #
    # Both legs are priced against the share supply from before the call, so
    # the collaborator gets the same share amount as the caller. If the
    # collaborator declines, the caller's leg still commits.

    def _mirror_join(
        self, state: PoolState, asset_in: str, pool_amount_out: int, pool_supply: int
    ) -> _StakingLeg | None:
        pair_asset = state.registry.other(asset_in)
        record = state.registry.get(pair_asset)
        amount = calc_single_in_given_pool_out(
            Bfp(record.balance),
            Bfp(record.weight),
            Bfp(pool_supply),
            Bfp(state.registry.total_weight),
            Bfp(pool_amount_out),
            Bfp(state.swap_fee),
        ).value

        if not self._staking.can_stake(pair_asset, asset_in, amount):
            logger.debug("pool_stake_declined", pool=self.address, asset=pair_asset, amount=amount)
            return None

        self._deposit(state, self._staking.address, pair_asset, amount, pool_amount_out)
        return _StakingLeg(
            asset=pair_asset, pair_asset=asset_in, amount=amount, pool_shares=pool_amount_out
        )

    def _mirror_exit(
        self, state: PoolState, asset_out: str, pool_amount_in: int, pool_supply: int
    ) -> _StakingLeg | None:
        pair_asset = state.registry.other(asset_out)
        record = state.registry.get(pair_asset)
        amount = calc_single_out_given_pool_in(
            Bfp(record.balance),
            Bfp(record.weight),
            Bfp(pool_supply),
            Bfp(state.registry.total_weight),
            Bfp(pool_amount_in),
            Bfp(state.swap_fee),
            Bfp(self.config.exit_fee),
        ).value

        if not self._staking.can_unstake(pair_asset, asset_out, pool_amount_in):
            logger.debug(
                "pool_unstake_declined", pool=self.address, asset=pair_asset, pool_shares=pool_amount_in
            )
            return None

        self._withdraw(state, self._staking.address, pair_asset, amount, pool_amount_in)
        return _StakingLeg(
            asset=pair_asset, pair_asset=asset_out, amount=amount, pool_shares=pool_amount_in
        )

    def _settle_stake(self, leg: _StakingLeg | None) -> None:
        if leg is None:
            return
        self._staking.stake(leg.asset, leg.pair_asset, leg.amount, leg.pool_shares)
        self._assets.pull(leg.asset, self._staking.address, self.address, leg.amount)

    def _settle_unstake(self, leg: _StakingLeg | None) -> None:
        if leg is None:
            return
        self._assets.push(leg.asset, self.address, self._staking.address, leg.amount)
        self._staking.unstake(leg.asset, leg.pair_asset, leg.amount, leg.pool_shares)

    # =========================================================================
    # Pool shares
    # =========================================================================

    def transfer_shares(self, caller: str, recipient: str, amount: int) -> None:
        """Move pool shares between holders."""
        with self._mutex("transfer_shares") as state:
            state.shares.move(caller, recipient, amount)

    def _exit_fee(self, amount: int) -> int:
        return Bfp(amount).mul_up(Bfp(self.config.exit_fee)).value

    def _issue_shares(self, state: PoolState, account: str, amount: int) -> None:
        state.shares.mint(self.address, amount)
        state.shares.move(self.address, account, amount)
        state.events.record(SharesMinted(account=account, amount=amount))

    def _redeem_shares(self, state: PoolState, account: str, amount: int, exit_fee: int) -> None:
        state.shares.move(account, self.address, amount)
        if exit_fee:
            state.shares.move(self.address, state.factory, exit_fee)
        burned = amount - exit_fee
        state.shares.burn(self.address, burned)
        state.events.record(SharesBurned(account=account, amount=burned))

    # =========================================================================
    # Guards
    # =========================================================================

    @staticmethod
    def _require_initialized(state: PoolState) -> None:
        if not state.initialized:
            raise NotInitializedError("Pool is not initialized")

    def _require_controller(self, state: PoolState, caller: str) -> None:
        self._require_initialized(state)
        if caller != state.controller:
            raise NotControllerError(f"{caller} is not the pool controller")

    @staticmethod
    def _require_finalized(state: PoolState) -> None:
        if not state.finalized:
            raise NotFinalizedError("Pool is not finalized")

    # =========================================================================
    # Read surface
    # =========================================================================

    @property
    def initialized(self) -> bool:
        return self._state.initialized

    @_viewlock
    def is_finalized(self) -> bool:
        return self._state.finalized

    @_viewlock
    def is_public_swap(self) -> bool:
        return self._state.finalized

    @_viewlock
    def is_bound(self, asset: str) -> bool:
        return self._state.registry.is_bound(asset)

    @_viewlock
    def get_controller(self) -> str:
        return self._state.controller

    @_viewlock
    def get_num_tokens(self) -> int:
        return len(self._state.registry)

    @_viewlock
    def get_current_tokens(self) -> list[str]:
        return self._state.registry.tokens()

    @_viewlock
    def get_final_tokens(self) -> list[str]:
        self._require_finalized(self._state)
        return self._state.registry.tokens()

    @_viewlock
    def get_denormalized_weight(self, asset: str) -> int:
        return self._state.registry.get(asset).weight

    @_viewlock
    def get_total_denormalized_weight(self) -> int:
        return self._state.registry.total_weight

    @_viewlock
    def get_normalized_weight(self, asset: str) -> int:
        weight = self._state.registry.get(asset).weight
        return Bfp(weight).div_down(Bfp(self._state.registry.total_weight)).value

    @_viewlock
    def get_balance(self, asset: str) -> int:
        return self._state.registry.get(asset).balance

    @_viewlock
    def get_swap_fee(self) -> int:
        return self._state.swap_fee

    @_viewlock
    def get_market_fee(self) -> int:
        """Publisher-market fee rate."""
        return self._state.publisher_fee

    @_viewlock
    def get_market_fee_collector(self) -> str:
        return self._state.publisher_collector

    @_viewlock
    def get_platform_fee(self) -> int:
        return self._state.platform_fee

    @_viewlock
    def get_platform_fees_accrued(self, asset: str) -> int:
        return self._state.fees.platform(asset)

    @_viewlock
    def get_publisher_fees_accrued(self, asset: str) -> int:
        return self._state.fees.publisher(asset)

    @_viewlock
    def get_spot_price(self, asset_in: str, asset_out: str, market_fee: int = 0) -> int:
        """Spot price of asset_out in asset_in units, including all fee rates."""
        record_in = self._state.registry.get(asset_in)
        record_out = self._state.registry.get(asset_out)
        rates = self._fee_rates(self._state, market_fee)
        return self._spot_price(record_in, record_out, rates.total)

    @_viewlock
    def get_amount_out_exact_in(
        self, asset_in: str, asset_out: str, amount_in: int, market_fee: int = 0
    ) -> SwapQuote:
        """Price a swap_exact_amount_in without executing it."""
        return self._quote_exact_in(self._state, asset_in, amount_in, asset_out, market_fee)

    @_viewlock
    def get_amount_in_exact_out(
        self, asset_in: str, asset_out: str, amount_out: int, market_fee: int = 0
    ) -> SwapQuote:
        """Price a swap_exact_amount_out without executing it."""
        return self._quote_exact_out(self._state, asset_in, asset_out, amount_out, market_fee)

    @_viewlock
    def balance_of_shares(self, account: str) -> int:
        return self._state.shares.balance_of(account)

    @_viewlock
    def total_shares(self) -> int:
        return self._state.shares.total_supply
