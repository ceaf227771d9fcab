"""Tests for swaps: pricing, slippage guards, fees, reentrancy and rollback."""

from decimal import Decimal, localcontext

import pytest

from pool_engine.constants import BONE, MAX_FEE
from pool_engine.pool import (
    ApproximationError,
    BadLimitPriceError,
    FeeOutOfRangeError,
    LimitInError,
    LimitOutError,
    LimitPriceError,
    MaxInRatioError,
    MaxOutRatioError,
    NotBoundError,
    NotFinalizedError,
    ReentryError,
    SameAssetError,
    SwapExecuted,
    SwapFeesCharged,
)
from pool_engine.safe_int import UINT256_MAX
from pool_engine.simulation import InsufficientBalanceError
from tests.helpers import (
    DEFAULT_FUNDS,
    DT,
    MARKET,
    OCEAN,
    POOL,
    TENTH_PERCENT,
    TRADER,
    make_pool,
    pool_snapshot,
)

MAX_PRICE = UINT256_MAX


class TestSwapExactAmountIn:
    """swap_exact_amount_in on a fee-less 100/100 pool."""

    def test_reference_swap(self, pool, ledger):
        """Selling 10 DT returns about 9.0909 OCEAN."""
        amount_out, spot_after = pool.swap_exact_amount_in(TRADER, DT, 10 * BONE, OCEAN, 0, MAX_PRICE)

        assert amount_out == pytest.approx(9090909090909090909, rel=1e-12)
        assert pool.get_balance(DT) == 110 * BONE
        assert pool.get_balance(OCEAN) == 100 * BONE - amount_out
        assert ledger.balance_of(DT, TRADER) == DEFAULT_FUNDS - 10 * BONE
        assert ledger.balance_of(OCEAN, TRADER) == DEFAULT_FUNDS + amount_out
        assert spot_after == pool.get_spot_price(DT, OCEAN)
        assert spot_after == pytest.approx(1.21 * BONE, rel=1e-9)

    def test_quote_matches_execution(self, pool):
        """Quoting changes nothing and predicts the executed output."""
        before = pool_snapshot(pool)
        quote = pool.get_amount_out_exact_in(DT, OCEAN, 10 * BONE)
        assert pool_snapshot(pool) == before

        amount_out, _ = pool.swap_exact_amount_in(TRADER, DT, 10 * BONE, OCEAN, 0, MAX_PRICE)
        assert amount_out == quote.amount_out
        assert quote.spot_price_before == BONE

    def test_min_amount_out_enforced(self, pool, ledger):
        before = pool_snapshot(pool)
        with pytest.raises(LimitOutError):
            pool.swap_exact_amount_in(TRADER, DT, 10 * BONE, OCEAN, 10 * BONE, MAX_PRICE)
        assert pool_snapshot(pool) == before
        assert ledger.balance_of(DT, TRADER) == DEFAULT_FUNDS

    def test_spot_price_above_limit_before_trade(self, pool):
        with pytest.raises(BadLimitPriceError):
            pool.swap_exact_amount_in(TRADER, DT, 10 * BONE, OCEAN, 0, BONE - 1)

    def test_spot_price_above_limit_after_trade(self, pool):
        """Spot moves from 1.0 to 1.21; a 1.1 limit stops the trade."""
        before = pool_snapshot(pool)
        with pytest.raises(LimitPriceError):
            pool.swap_exact_amount_in(TRADER, DT, 10 * BONE, OCEAN, 0, 11 * BONE // 10)
        assert pool_snapshot(pool) == before

    def test_max_in_ratio(self, pool):
        """At most half the input balance per trade."""
        pool.get_amount_out_exact_in(DT, OCEAN, 50 * BONE)
        with pytest.raises(MaxInRatioError):
            pool.swap_exact_amount_in(TRADER, DT, 50 * BONE + 1, OCEAN, 0, MAX_PRICE)

    def test_zero_amount_rejected(self, pool):
        with pytest.raises(ApproximationError):
            pool.swap_exact_amount_in(TRADER, DT, 0, OCEAN, 0, MAX_PRICE)

    def test_same_asset_rejected(self, pool):
        with pytest.raises(SameAssetError):
            pool.swap_exact_amount_in(TRADER, DT, BONE, DT, 0, MAX_PRICE)

    def test_unbound_asset_rejected(self, pool):
        with pytest.raises(NotBoundError):
            pool.swap_exact_amount_in(TRADER, "USDC", BONE, OCEAN, 0, MAX_PRICE)

    def test_requires_finalized_pool(self):
        pool, _ = make_pool(finalize=False)
        with pytest.raises(NotFinalizedError):
            pool.swap_exact_amount_in(TRADER, DT, BONE, OCEAN, 0, MAX_PRICE)

    def test_records_swap_notification(self, pool):
        amount_out, spot_after = pool.swap_exact_amount_in(TRADER, DT, 10 * BONE, OCEAN, 0, MAX_PRICE)

        swap, fees = pool.events[-2], pool.events[-1]
        assert swap == SwapExecuted(
            caller=TRADER,
            asset_in=DT,
            asset_out=OCEAN,
            amount_in=10 * BONE,
            amount_out=amount_out,
            balance_in=pool.get_balance(DT),
            balance_out=pool.get_balance(OCEAN),
            spot_price_after=spot_after,
        )
        assert isinstance(fees, SwapFeesCharged)
        assert fees.lp_fee == 0


class TestSwapExactAmountOut:
    """swap_exact_amount_out on a fee-less 100/100 pool."""

    def test_reference_swap(self, pool, ledger):
        """Buying 10 OCEAN costs about 11.111 DT."""
        amount_in, _ = pool.swap_exact_amount_out(TRADER, DT, MAX_PRICE, OCEAN, 10 * BONE, MAX_PRICE)

        assert amount_in == pytest.approx(11111111111111111111, rel=1e-12)
        assert pool.get_balance(OCEAN) == 90 * BONE
        assert pool.get_balance(DT) == 100 * BONE + amount_in
        assert ledger.balance_of(DT, TRADER) == DEFAULT_FUNDS - amount_in
        assert ledger.balance_of(OCEAN, TRADER) == DEFAULT_FUNDS + 10 * BONE

    def test_max_amount_in_enforced(self, pool):
        before = pool_snapshot(pool)
        with pytest.raises(LimitInError):
            pool.swap_exact_amount_out(TRADER, DT, 11 * BONE, OCEAN, 10 * BONE, MAX_PRICE)
        assert pool_snapshot(pool) == before

    def test_max_out_ratio(self, pool):
        """At most a third of the output balance per trade."""
        with pytest.raises(MaxOutRatioError):
            pool.swap_exact_amount_out(TRADER, DT, MAX_PRICE, OCEAN, 34 * BONE, MAX_PRICE)

    def test_quote_matches_execution(self, pool):
        quote = pool.get_amount_in_exact_out(DT, OCEAN, 10 * BONE)
        amount_in, _ = pool.swap_exact_amount_out(TRADER, DT, MAX_PRICE, OCEAN, 10 * BONE, MAX_PRICE)
        assert amount_in == quote.amount_in

    def test_round_trip_with_exact_in(self, fee_pool_and_ledger):
        """Buying what 10 DT sells for costs about 10 DT on an identical pool."""
        pool, _ = fee_pool_and_ledger
        twin, _ = make_pool(
            swap_fee=TENTH_PERCENT, platform_fee=TENTH_PERCENT, publisher_fee=TENTH_PERCENT
        )

        amount_out, _ = pool.swap_exact_amount_in(TRADER, DT, 10 * BONE, OCEAN, 0, MAX_PRICE)
        amount_in, _ = twin.swap_exact_amount_out(TRADER, DT, MAX_PRICE, OCEAN, amount_out, MAX_PRICE)

        assert amount_in == pytest.approx(10 * BONE, rel=1e-9)

    def test_round_trip_with_exact_out(self, fee_pool_and_ledger):
        """Selling what 10 OCEAN costs returns about 10 OCEAN on an identical pool."""
        pool, _ = fee_pool_and_ledger
        twin, _ = make_pool(
            swap_fee=TENTH_PERCENT, platform_fee=TENTH_PERCENT, publisher_fee=TENTH_PERCENT
        )

        amount_in, _ = pool.swap_exact_amount_out(TRADER, DT, MAX_PRICE, OCEAN, 10 * BONE, MAX_PRICE)
        amount_out, _ = twin.swap_exact_amount_in(TRADER, DT, amount_in, OCEAN, 0, MAX_PRICE)

        assert amount_out == pytest.approx(10 * BONE, rel=1e-9)

    @pytest.mark.parametrize("exact_in_first", [True, False])
    def test_round_trip_unequal_weights(self, exact_in_first):
        """OCEAN for DT on a 30/70 pool, composed in either order."""
        pool_kwargs = dict(
            weights=(3 * BONE, 7 * BONE),
            swap_fee=TENTH_PERCENT,
            platform_fee=TENTH_PERCENT,
            publisher_fee=TENTH_PERCENT,
        )
        pool, _ = make_pool(**pool_kwargs)
        twin, _ = make_pool(**pool_kwargs)

        if exact_in_first:
            amount_out, _ = pool.swap_exact_amount_in(TRADER, OCEAN, 10 * BONE, DT, 0, MAX_PRICE)
            amount_in, _ = twin.swap_exact_amount_out(
                TRADER, OCEAN, MAX_PRICE, DT, amount_out, MAX_PRICE
            )
            assert amount_in == pytest.approx(10 * BONE, rel=1e-6)
        else:
            amount_in, _ = pool.swap_exact_amount_out(
                TRADER, OCEAN, MAX_PRICE, DT, 10 * BONE, MAX_PRICE
            )
            amount_out, _ = twin.swap_exact_amount_in(TRADER, OCEAN, amount_in, DT, 0, MAX_PRICE)
            assert amount_out == pytest.approx(10 * BONE, rel=1e-6)


class TestPriceImpact:
    """Price behaviour across trade sizes."""

    def test_effective_price_grows_with_size(self, pool):
        prices = []
        for amount_in in (BONE, 5 * BONE, 10 * BONE, 25 * BONE, 50 * BONE):
            quote = pool.get_amount_out_exact_in(DT, OCEAN, amount_in)
            prices.append(amount_in * BONE // quote.amount_out)

        assert prices == sorted(prices)
        assert len(set(prices)) == len(prices)
        with pytest.raises(MaxInRatioError):
            pool.get_amount_out_exact_in(DT, OCEAN, 50 * BONE + 1)

    def test_invariant_never_decreases(self, fee_pool_and_ledger):
        """With equal weights the invariant is the product of balances."""
        pool, _ = fee_pool_and_ledger
        invariant = pool.get_balance(DT) * pool.get_balance(OCEAN)

        trades = [(DT, OCEAN, 10 * BONE), (OCEAN, DT, 3 * BONE), (DT, OCEAN, 7 * BONE), (OCEAN, DT, 20 * BONE)]
        for asset_in, asset_out, amount_in in trades:
            pool.swap_exact_amount_in(TRADER, asset_in, amount_in, asset_out, 0, MAX_PRICE)
            current = pool.get_balance(DT) * pool.get_balance(OCEAN)
            assert current >= invariant
            invariant = current

    def test_weighted_invariant_never_decreases(self):
        """On a 30/70 pool the invariant is b_dt^0.3 * b_ocean^0.7."""
        pool, _ = make_pool(
            weights=(3 * BONE, 7 * BONE),
            swap_fee=TENTH_PERCENT,
            platform_fee=TENTH_PERCENT,
            publisher_fee=TENTH_PERCENT,
        )

        def weighted_invariant():
            total = Decimal(pool.get_total_denormalized_weight())
            value = Decimal(1)
            with localcontext() as ctx:
                ctx.prec = 60
                for asset in (DT, OCEAN):
                    weight = Decimal(pool.get_denormalized_weight(asset)) / total
                    value *= Decimal(pool.get_balance(asset)) ** weight
            return value

        invariant = weighted_invariant()
        trades = [(DT, OCEAN, 10 * BONE), (OCEAN, DT, 3 * BONE), (DT, OCEAN, 7 * BONE), (OCEAN, DT, 20 * BONE)]
        for asset_in, asset_out, amount_in in trades:
            pool.swap_exact_amount_in(TRADER, asset_in, amount_in, asset_out, 0, MAX_PRICE)
            current = weighted_invariant()
            assert current >= invariant
            invariant = current
        pool.swap_exact_amount_out(TRADER, DT, MAX_PRICE, OCEAN, 5 * BONE, MAX_PRICE)
        assert weighted_invariant() >= invariant

    def test_spot_price_includes_market_fee(self, fee_pool_and_ledger):
        pool, _ = fee_pool_and_ledger
        assert pool.get_spot_price(DT, OCEAN, TENTH_PERCENT) > pool.get_spot_price(DT, OCEAN)


class TestSwapFees:
    """Fee splitting on a pool charging 0.1% swap, platform and publisher fees."""

    def test_fee_slices_and_balances(self, fee_pool_and_ledger):
        pool, ledger = fee_pool_and_ledger
        slice_ = 10 * BONE // 1000

        pool.swap_exact_amount_in(TRADER, DT, 10 * BONE, OCEAN, 0, MAX_PRICE, MARKET, TENTH_PERCENT)

        assert pool.get_platform_fees_accrued(DT) == slice_
        assert pool.get_publisher_fees_accrued(DT) == slice_
        assert ledger.balance_of(DT, MARKET) == slice_
        assert pool.get_balance(DT) == 110 * BONE - 3 * slice_
        assert pool.get_platform_fees_accrued(OCEAN) == 0

        fees = pool.events.of_type(SwapFeesCharged)[-1]
        assert fees.lp_fee == slice_
        assert fees.market_fee == slice_
        assert fees.market_fee_address == MARKET

    def test_pool_holdings_cover_balance_and_ledgers(self, fee_pool_and_ledger):
        pool, ledger = fee_pool_and_ledger
        pool.swap_exact_amount_in(TRADER, DT, 10 * BONE, OCEAN, 0, MAX_PRICE, MARKET, TENTH_PERCENT)
        pool.swap_exact_amount_out(TRADER, OCEAN, MAX_PRICE, DT, 5 * BONE, MAX_PRICE)

        for asset in (DT, OCEAN):
            accrued = pool.get_platform_fees_accrued(asset) + pool.get_publisher_fees_accrued(asset)
            assert ledger.balance_of(asset, POOL) == pool.get_balance(asset) + accrued

    def test_fees_reduce_output(self, pool, fee_pool_and_ledger):
        fee_pool, _ = fee_pool_and_ledger
        plain, _ = pool.swap_exact_amount_in(TRADER, DT, 10 * BONE, OCEAN, 0, MAX_PRICE)
        charged, _ = fee_pool.swap_exact_amount_in(TRADER, DT, 10 * BONE, OCEAN, 0, MAX_PRICE)
        assert charged < plain

    def test_market_fee_needs_address(self, fee_pool_and_ledger):
        pool, ledger = fee_pool_and_ledger
        before = pool_snapshot(pool)
        with pytest.raises(FeeOutOfRangeError) as exc_info:
            pool.swap_exact_amount_in(TRADER, DT, 10 * BONE, OCEAN, 0, MAX_PRICE, None, TENTH_PERCENT)

        assert exc_info.value.code == "ERR_FEE_RANGE"
        assert pool_snapshot(pool) == before
        assert ledger.balance_of(DT, TRADER) == DEFAULT_FUNDS

    def test_exact_out_market_fee_needs_address(self, fee_pool_and_ledger):
        pool, _ = fee_pool_and_ledger
        with pytest.raises(FeeOutOfRangeError):
            pool.swap_exact_amount_out(TRADER, DT, MAX_PRICE, OCEAN, BONE, MAX_PRICE, None, TENTH_PERCENT)

    def test_market_fee_out_of_range(self, fee_pool_and_ledger):
        pool, _ = fee_pool_and_ledger
        with pytest.raises(FeeOutOfRangeError):
            pool.swap_exact_amount_in(TRADER, DT, 10 * BONE, OCEAN, 0, MAX_PRICE, MARKET, MAX_FEE + 1)


class TestAtomicity:
    """Reentrancy guard and all-or-nothing calls."""

    def test_reentrant_swap_from_transfer_callback_fails(self, pool, ledger):
        before = pool_snapshot(pool)

        def reenter(asset, sender, recipient, amount):
            pool.swap_exact_amount_in(TRADER, OCEAN, BONE, DT, 0, MAX_PRICE)

        ledger.transfer_hooks.append(reenter)
        with pytest.raises(ReentryError):
            pool.swap_exact_amount_in(TRADER, DT, 10 * BONE, OCEAN, 0, MAX_PRICE)
        ledger.transfer_hooks.clear()

        assert not pool.locked
        assert pool_snapshot(pool) == before
        assert ledger.balance_of(DT, TRADER) == DEFAULT_FUNDS
        assert ledger.balance_of(DT, POOL) == 100 * BONE

    def test_reads_rejected_during_mutation(self, pool, ledger):
        rejected = []

        def peek(asset, sender, recipient, amount):
            with pytest.raises(ReentryError):
                pool.get_balance(DT)
            rejected.append(asset)

        ledger.transfer_hooks.append(peek)
        pool.swap_exact_amount_in(TRADER, DT, 10 * BONE, OCEAN, 0, MAX_PRICE)

        assert rejected == [DT, OCEAN]
        assert pool.get_balance(DT) == 110 * BONE

    def test_pool_usable_after_rejected_reentry(self, pool, ledger):
        ledger.transfer_hooks.append(
            lambda *_: pool.join_pool(TRADER, BONE, {DT: MAX_PRICE, OCEAN: MAX_PRICE})
        )
        with pytest.raises(ReentryError):
            pool.swap_exact_amount_in(TRADER, DT, 10 * BONE, OCEAN, 0, MAX_PRICE)
        ledger.transfer_hooks.clear()

        amount_out, _ = pool.swap_exact_amount_in(TRADER, DT, 10 * BONE, OCEAN, 0, MAX_PRICE)
        assert amount_out > 0

    def test_failed_transfer_rolls_back_everything(self, fee_pool_and_ledger):
        """A trader without funds leaves no trace in balances, ledgers or events."""
        pool, ledger = fee_pool_and_ledger
        before = pool_snapshot(pool)

        with pytest.raises(InsufficientBalanceError):
            pool.swap_exact_amount_in("broke", DT, 10 * BONE, OCEAN, 0, MAX_PRICE, MARKET, TENTH_PERCENT)

        assert pool_snapshot(pool) == before
        assert ledger.balance_of(DT, MARKET) == 0
        assert ledger.balance_of(OCEAN, "broke") == 0

    def test_rollback_keeps_event_history(self, pool):
        """A failed call drops only its own events and never copies the log."""
        for _ in range(3):
            pool.swap_exact_amount_in(TRADER, DT, BONE, OCEAN, 0, MAX_PRICE)
        events = pool.events
        history = list(events)

        with pytest.raises(InsufficientBalanceError):
            pool.swap_exact_amount_in("broke", DT, BONE, OCEAN, 0, MAX_PRICE)

        assert pool.events is events
        assert list(pool.events) == history

        pool.swap_exact_amount_in(TRADER, DT, BONE, OCEAN, 0, MAX_PRICE)
        assert pool.events is events
        assert len(pool.events) == len(history) + 2
