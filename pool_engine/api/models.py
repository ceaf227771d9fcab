"""Pydantic request and response models for the pool API.

Amounts, weights, fees and prices travel as decimal strings of 18-decimal
fixed-point integers, so JSON clients never lose precision.
"""

from typing import Annotated, Any

from pydantic import BaseModel, BeforeValidator, Field, model_validator

from pool_engine.safe_int import UINT256_MAX


def validate_uint256(value: Any) -> str:
    """Validate that a value is a valid uint256 decimal string.

    Args:
        value: Value to validate (string or int)

    Returns:
        Valid uint256 as decimal string

    Raises:
        ValueError: If value is not a non-negative integer within uint256 range
    """
    if isinstance(value, bool):
        raise ValueError("Uint256 must be string or int, got bool")
    if isinstance(value, int):
        int_value = value
    elif isinstance(value, str):
        try:
            int_value = int(value)
        except ValueError as err:
            raise ValueError(f"Uint256 must be a decimal integer string: '{value}'") from err
    else:
        raise ValueError(f"Uint256 must be string or int, got {type(value).__name__}")

    if int_value < 0:
        raise ValueError(f"Uint256 cannot be negative: {value}")
    if int_value > UINT256_MAX:
        raise ValueError(f"Uint256 overflow: {value} > 2^256-1")
    return str(int_value)


# 256-bit unsigned integer as decimal string (validated)
Uint256 = Annotated[
    str,
    BeforeValidator(validate_uint256),
    Field(description="256-bit unsigned integer as decimal string"),
]

# Unlimited price guard
MAX_PRICE = str(UINT256_MAX)


class TokenState(BaseModel):
    """One bound asset of the pool."""

    asset: str
    balance: Uint256
    weight: Uint256 = Field(description="Denormalized weight")
    normalized_weight: Uint256 = Field(alias="normalizedWeight")

    model_config = {"populate_by_name": True}


class PoolStateResponse(BaseModel):
    """Snapshot of the pool's public state."""

    address: str
    finalized: bool
    controller: str
    tokens: list[TokenState]
    swap_fee: Uint256 = Field(alias="swapFee")
    platform_fee: Uint256 = Field(alias="platformFee")
    market_fee: Uint256 = Field(alias="marketFee", description="Publisher-market fee rate")
    total_shares: Uint256 = Field(alias="totalShares")

    model_config = {"populate_by_name": True}


class SpotPriceResponse(BaseModel):
    asset_in: str = Field(alias="assetIn")
    asset_out: str = Field(alias="assetOut")
    spot_price: Uint256 = Field(alias="spotPrice")

    model_config = {"populate_by_name": True}


class QuoteRequest(BaseModel):
    """Price an exact-in swap without executing it."""

    asset_in: str = Field(alias="assetIn")
    asset_out: str = Field(alias="assetOut")
    amount_in: Uint256 = Field(alias="amountIn")
    market_fee: Uint256 = Field(default="0", alias="marketFee")

    model_config = {"populate_by_name": True}


class QuoteResponse(BaseModel):
    amount_in: Uint256 = Field(alias="amountIn")
    amount_out: Uint256 = Field(alias="amountOut")
    spot_price_before: Uint256 = Field(alias="spotPriceBefore")
    lp_fee: Uint256 = Field(alias="lpFee")
    platform_fee: Uint256 = Field(alias="platformFee")
    publisher_fee: Uint256 = Field(alias="publisherFee")
    market_fee: Uint256 = Field(alias="marketFee")

    model_config = {"populate_by_name": True}


class _SwapRequest(BaseModel):
    caller: str
    asset_in: str = Field(alias="assetIn")
    asset_out: str = Field(alias="assetOut")
    max_price: Uint256 = Field(default=MAX_PRICE, alias="maxPrice")
    market_fee_address: str | None = Field(default=None, alias="marketFeeAddress")
    market_fee: Uint256 = Field(default="0", alias="marketFee")

    model_config = {"populate_by_name": True}

    @model_validator(mode="after")
    def check_market_fee_address(self) -> "_SwapRequest":
        if int(self.market_fee) > 0 and self.market_fee_address is None:
            raise ValueError("marketFeeAddress is required when marketFee is non-zero")
        return self


class SwapExactInRequest(_SwapRequest):
    amount_in: Uint256 = Field(alias="amountIn")
    min_amount_out: Uint256 = Field(default="0", alias="minAmountOut")


class SwapExactOutRequest(_SwapRequest):
    amount_out: Uint256 = Field(alias="amountOut")
    max_amount_in: Uint256 = Field(default=MAX_PRICE, alias="maxAmountIn")


class SwapResponse(BaseModel):
    amount_in: Uint256 = Field(alias="amountIn")
    amount_out: Uint256 = Field(alias="amountOut")
    spot_price_after: Uint256 = Field(alias="spotPriceAfter")

    model_config = {"populate_by_name": True}


class JoinRequest(BaseModel):
    """Proportional join for an exact number of pool shares."""

    caller: str
    pool_amount_out: Uint256 = Field(alias="poolAmountOut")
    max_amounts_in: dict[str, Uint256] = Field(alias="maxAmountsIn")

    model_config = {"populate_by_name": True}


class ExitRequest(BaseModel):
    """Proportional exit of an exact number of pool shares."""

    caller: str
    pool_amount_in: Uint256 = Field(alias="poolAmountIn")
    min_amounts_out: dict[str, Uint256] = Field(default_factory=dict, alias="minAmountsOut")

    model_config = {"populate_by_name": True}


class LiquidityResponse(BaseModel):
    pool_shares: Uint256 = Field(alias="poolShares")
    amounts: dict[str, Uint256]

    model_config = {"populate_by_name": True}


class CollectFeesRequest(BaseModel):
    caller: str


class FeesCollectedResponse(BaseModel):
    platform: dict[str, Uint256]
    publisher: dict[str, Uint256]


class AccountResponse(BaseModel):
    account: str
    balances: dict[str, Uint256]
    shares: Uint256


class ErrorResponse(BaseModel):
    """Body returned for rejected pool calls."""

    code: str = Field(description="Machine-checkable reason code, e.g. ERR_LIMIT_OUT")
    detail: str
