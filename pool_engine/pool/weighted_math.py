"""Weighted pool math.

Pure functions relating balances, weights and pool-share supply. Fees are
passed in explicitly; nothing here reads or mutates pool state.

Every intermediate is rounded in the pool's favour: outputs round down,
inputs round up.
"""

from pool_engine.math.fixed_point import Bfp


def calc_spot_price(
    balance_in: Bfp,
    weight_in: Bfp,
    balance_out: Bfp,
    weight_out: Bfp,
    fee: Bfp,
) -> Bfp:
    """Calculate the marginal price of the output asset in input units.

    Formula:
        spot_price = (balance_in / weight_in) / (balance_out / weight_out) / (1 - fee)

    Args:
        balance_in: Balance of the input asset
        weight_in: Denormalized weight of the input asset
        balance_out: Balance of the output asset
        weight_out: Denormalized weight of the output asset
        fee: Total fee rate charged on the trade

    Returns:
        Spot price, rounded down
    """
    numer = balance_in.div_down(weight_in)
    denom = balance_out.div_up(weight_out)
    ratio = numer.div_down(denom)
    scale = Bfp.one().div_down(fee.complement())
    return ratio.mul_down(scale)


def calc_out_given_in(
    balance_in: Bfp,
    weight_in: Bfp,
    balance_out: Bfp,
    weight_out: Bfp,
    amount_in: Bfp,
    fee: Bfp,
) -> Bfp:
    """Calculate the output amount for an exact input.

    Formula:
        amount_out = balance_out * (1 - (balance_in / (balance_in + amount_in * (1 - fee)))^(weight_in / weight_out))

    Args:
        balance_in: Balance of the input asset
        weight_in: Denormalized weight of the input asset
        balance_out: Balance of the output asset
        weight_out: Denormalized weight of the output asset
        amount_in: Gross input amount (fees included)
        fee: Total fee rate charged on the trade

    Returns:
        Output amount, rounded down
    """
    exponent = weight_in.div_down(weight_out)
    adjusted_in = amount_in.mul_down(fee.complement())
    base = balance_in.div_up(balance_in.add(adjusted_in))
    power = base.pow_up(exponent)
    return balance_out.mul_down(power.complement())


def calc_in_given_out(
    balance_in: Bfp,
    weight_in: Bfp,
    balance_out: Bfp,
    weight_out: Bfp,
    amount_out: Bfp,
    fee: Bfp,
) -> Bfp:
    """Calculate the input amount needed for an exact output.

    Formula:
        amount_in = balance_in * ((balance_out / (balance_out - amount_out))^(weight_out / weight_in) - 1) / (1 - fee)

    Args:
        balance_in: Balance of the input asset
        weight_in: Denormalized weight of the input asset
        balance_out: Balance of the output asset
        weight_out: Denormalized weight of the output asset
        amount_out: Requested output amount (must be below balance_out)
        fee: Total fee rate charged on the trade

    Returns:
        Gross input amount (fees included), rounded up
    """
    exponent = weight_out.div_up(weight_in)
    base = balance_out.div_up(balance_out.sub(amount_out))
    power = base.pow_up(exponent)
    amount_in = balance_in.mul_up(power.sub(Bfp.one()))
    return amount_in.div_up(fee.complement())


# =============================================================================
# Single-asset join/exit
# =============================================================================
#
# A single-asset join is a proportional join plus an implicit swap of the
# other assets' share, so only (1 - normalized_weight) of the amount pays the
# swap fee. Exits additionally pay the exit fee on the share leg.


def calc_pool_out_given_single_in(
    balance_in: Bfp,
    weight_in: Bfp,
    pool_supply: Bfp,
    total_weight: Bfp,
    amount_in: Bfp,
    swap_fee: Bfp,
) -> Bfp:
    """Calculate pool shares minted for a single-asset deposit.

    Formula:
        pool_out = supply * ((balance_in + amount_in * (1 - (1 - w) * fee)) / balance_in)^w - supply
        where w = weight_in / total_weight

    Returns:
        Pool shares out, rounded down (zero if rounding eats the deposit)
    """
    normalized_weight = weight_in.div_down(total_weight)
    fee_fraction = normalized_weight.complement().mul_up(swap_fee)
    amount_in_after_fee = amount_in.mul_down(fee_fraction.complement())

    new_balance_in = balance_in.add(amount_in_after_fee)
    balance_ratio = new_balance_in.div_down(balance_in)

    pool_ratio = balance_ratio.pow_down(normalized_weight)
    new_pool_supply = pool_ratio.mul_down(pool_supply)
    return new_pool_supply.saturating_sub(pool_supply)


def calc_single_in_given_pool_out(
    balance_in: Bfp,
    weight_in: Bfp,
    pool_supply: Bfp,
    total_weight: Bfp,
    pool_amount_out: Bfp,
    swap_fee: Bfp,
) -> Bfp:
    """Calculate the single-asset deposit needed to mint exact pool shares.

    Formula:
        amount_in = (balance_in * ((supply + pool_out) / supply)^(1/w) - balance_in) / (1 - (1 - w) * fee)

    Returns:
        Deposit amount, rounded up
    """
    normalized_weight = weight_in.div_down(total_weight)
    new_pool_supply = pool_supply.add(pool_amount_out)
    pool_ratio = new_pool_supply.div_up(pool_supply)

    inverse_weight = Bfp.one().div_up(normalized_weight)
    balance_ratio = pool_ratio.pow_up(inverse_weight)
    new_balance_in = balance_ratio.mul_up(balance_in)
    amount_in_after_fee = new_balance_in.sub(balance_in)

    fee_fraction = normalized_weight.complement().mul_up(swap_fee)
    return amount_in_after_fee.div_up(fee_fraction.complement())


def calc_single_out_given_pool_in(
    balance_out: Bfp,
    weight_out: Bfp,
    pool_supply: Bfp,
    total_weight: Bfp,
    pool_amount_in: Bfp,
    swap_fee: Bfp,
    exit_fee: Bfp,
) -> Bfp:
    """Calculate the single-asset withdrawal for redeeming exact pool shares.

    Formula:
        amount_out = (balance_out - balance_out * ((supply - pool_in * (1 - exit_fee)) / supply)^(1/w)) * (1 - (1 - w) * fee)

    Returns:
        Withdrawal amount, rounded down
    """
    normalized_weight = weight_out.div_down(total_weight)
    pool_amount_in_after_exit_fee = pool_amount_in.mul_down(exit_fee.complement())
    new_pool_supply = pool_supply.sub(pool_amount_in_after_exit_fee)
    pool_ratio = new_pool_supply.div_up(pool_supply)

    inverse_weight = Bfp.one().div_down(normalized_weight)
    balance_ratio = pool_ratio.pow_up(inverse_weight)
    new_balance_out = balance_ratio.mul_up(balance_out)
    amount_out_before_fee = balance_out.saturating_sub(new_balance_out)

    fee_fraction = normalized_weight.complement().mul_up(swap_fee)
    return amount_out_before_fee.mul_down(fee_fraction.complement())


def calc_pool_in_given_single_out(
    balance_out: Bfp,
    weight_out: Bfp,
    pool_supply: Bfp,
    total_weight: Bfp,
    amount_out: Bfp,
    swap_fee: Bfp,
    exit_fee: Bfp,
) -> Bfp:
    """Calculate pool shares redeemed for an exact single-asset withdrawal.

    Formula:
        pool_in = (supply - supply * ((balance_out - amount_out / (1 - (1 - w) * fee)) / balance_out)^w) / (1 - exit_fee)

    Returns:
        Pool shares in, rounded up
    """
    normalized_weight = weight_out.div_down(total_weight)
    fee_fraction = normalized_weight.complement().mul_up(swap_fee)
    amount_out_before_fee = amount_out.div_up(fee_fraction.complement())

    new_balance_out = balance_out.sub(amount_out_before_fee)
    balance_ratio = new_balance_out.div_down(balance_out)

    pool_ratio = balance_ratio.pow_down(normalized_weight)
    new_pool_supply = pool_ratio.mul_down(pool_supply)
    pool_amount_in_after_exit_fee = pool_supply.sub(new_pool_supply)
    return pool_amount_in_after_exit_fee.div_up(exit_fee.complement())
