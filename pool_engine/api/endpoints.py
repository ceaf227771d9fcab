"""API endpoints for the simulated pool."""

from functools import lru_cache

import structlog
from fastapi import APIRouter, Depends

from pool_engine.api.models import (
    AccountResponse,
    CollectFeesRequest,
    ExitRequest,
    FeesCollectedResponse,
    JoinRequest,
    LiquidityResponse,
    PoolStateResponse,
    QuoteRequest,
    QuoteResponse,
    SpotPriceResponse,
    SwapExactInRequest,
    SwapExactOutRequest,
    SwapResponse,
    TokenState,
)
from pool_engine.simulation import Simulation, build_demo_pool

logger = structlog.get_logger()

router = APIRouter(prefix="/pool")


@lru_cache(maxsize=1)
def get_default_simulation() -> Simulation:
    return build_demo_pool()


def get_simulation() -> Simulation:
    """Dependency provider for the simulated pool.

    Override this in tests to inject a fresh pool:
        app.dependency_overrides[get_simulation] = lambda: simulation

    Returns:
        The simulation (pool and ledger) served by the API.
    """
    return get_default_simulation()


@router.get("")
async def pool_state(sim: Simulation = Depends(get_simulation)) -> PoolStateResponse:
    """Return the pool's bound assets, fee rates and share supply."""
    pool = sim.pool
    tokens = [
        TokenState(
            asset=asset,
            balance=pool.get_balance(asset),
            weight=pool.get_denormalized_weight(asset),
            normalized_weight=pool.get_normalized_weight(asset),
        )
        for asset in pool.get_current_tokens()
    ]
    return PoolStateResponse(
        address=pool.address,
        finalized=pool.is_finalized(),
        controller=pool.get_controller(),
        tokens=tokens,
        swap_fee=pool.get_swap_fee(),
        platform_fee=pool.get_platform_fee(),
        market_fee=pool.get_market_fee(),
        total_shares=pool.total_shares(),
    )


@router.get("/spot-price")
async def spot_price(
    asset_in: str,
    asset_out: str,
    market_fee: int = 0,
    sim: Simulation = Depends(get_simulation),
) -> SpotPriceResponse:
    price = sim.pool.get_spot_price(asset_in, asset_out, market_fee)
    return SpotPriceResponse(asset_in=asset_in, asset_out=asset_out, spot_price=price)


@router.post("/quote/exact-in")
async def quote_exact_in(
    request: QuoteRequest, sim: Simulation = Depends(get_simulation)
) -> QuoteResponse:
    """Price an exact-in swap without changing any state."""
    quote = sim.pool.get_amount_out_exact_in(
        request.asset_in,
        request.asset_out,
        int(request.amount_in),
        int(request.market_fee),
    )
    return QuoteResponse(
        amount_in=quote.amount_in,
        amount_out=quote.amount_out,
        spot_price_before=quote.spot_price_before,
        lp_fee=quote.fees.lp_fee,
        platform_fee=quote.fees.platform_fee,
        publisher_fee=quote.fees.publisher_fee,
        market_fee=quote.fees.market_fee,
    )


@router.post("/swap/exact-in")
async def swap_exact_in(
    request: SwapExactInRequest, sim: Simulation = Depends(get_simulation)
) -> SwapResponse:
    """Sell an exact amount of assetIn.

    Error Handling:
        - Invalid request schema: 422 Validation Error (Pydantic)
        - Rejected pool call: 400 with the pool's reason code
    """
    logger.info(
        "received_swap",
        kind="exact_in",
        caller=request.caller,
        asset_in=request.asset_in,
        asset_out=request.asset_out,
        amount=request.amount_in,
    )
    amount_out, spot_price_after = sim.pool.swap_exact_amount_in(
        request.caller,
        request.asset_in,
        int(request.amount_in),
        request.asset_out,
        int(request.min_amount_out),
        int(request.max_price),
        request.market_fee_address,
        int(request.market_fee),
    )
    return SwapResponse(
        amount_in=request.amount_in,
        amount_out=amount_out,
        spot_price_after=spot_price_after,
    )


@router.post("/swap/exact-out")
async def swap_exact_out(
    request: SwapExactOutRequest, sim: Simulation = Depends(get_simulation)
) -> SwapResponse:
    """Buy an exact amount of assetOut."""
    logger.info(
        "received_swap",
        kind="exact_out",
        caller=request.caller,
        asset_in=request.asset_in,
        asset_out=request.asset_out,
        amount=request.amount_out,
    )
    amount_in, spot_price_after = sim.pool.swap_exact_amount_out(
        request.caller,
        request.asset_in,
        int(request.max_amount_in),
        request.asset_out,
        int(request.amount_out),
        int(request.max_price),
        request.market_fee_address,
        int(request.market_fee),
    )
    return SwapResponse(
        amount_in=amount_in,
        amount_out=request.amount_out,
        spot_price_after=spot_price_after,
    )


@router.post("/join")
async def join(request: JoinRequest, sim: Simulation = Depends(get_simulation)) -> LiquidityResponse:
    amounts_in = sim.pool.join_pool(
        request.caller,
        int(request.pool_amount_out),
        {asset: int(amount) for asset, amount in request.max_amounts_in.items()},
    )
    return LiquidityResponse(pool_shares=request.pool_amount_out, amounts=amounts_in)


@router.post("/exit")
async def exit_(request: ExitRequest, sim: Simulation = Depends(get_simulation)) -> LiquidityResponse:
    amounts_out = sim.pool.exit_pool(
        request.caller,
        int(request.pool_amount_in),
        {asset: int(amount) for asset, amount in request.min_amounts_out.items()},
    )
    return LiquidityResponse(pool_shares=request.pool_amount_in, amounts=amounts_out)


@router.post("/fees/collect")
async def collect_fees(
    request: CollectFeesRequest, sim: Simulation = Depends(get_simulation)
) -> FeesCollectedResponse:
    """Pay out accrued platform and publisher-market fees."""
    platform = sim.pool.collect_platform_fees(request.caller)
    publisher = sim.pool.collect_market_fees(request.caller)
    return FeesCollectedResponse(platform=platform, publisher=publisher)


@router.get("/accounts/{account}")
async def account(account: str, sim: Simulation = Depends(get_simulation)) -> AccountResponse:
    """Asset balances and pool shares held by an account."""
    balances = {
        asset: sim.ledger.balance_of(asset, account) for asset in sim.pool.get_current_tokens()
    }
    return AccountResponse(
        account=account, balances=balances, shares=sim.pool.balance_of_shares(account)
    )
