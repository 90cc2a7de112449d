"""Weighted constant-mean pool math.

Pure functions over 18-decimal fixed-point ints. The pool invariant is

    V = prod(balance_i ^ normalized_weight_i)

and every function below moves along that curve. Swap fees are charged on
the input side of a trade; for single-asset joins and exits only the part of
the amount that is implicitly traded against the other tokens pays the fee.
"""

from bpool.constants import BONE, EXIT_FEE
from bpool.errors import MathError

from .fixed_point import badd, bdiv, bmul, bpow, bsub, bsub_sign


def calc_spot_price(
    token_balance_in: int,
    token_weight_in: int,
    token_balance_out: int,
    token_weight_out: int,
    swap_fee: int,
) -> int:
    """Spot price of token_out in units of token_in.

    Formula:
        sP = (bI / wI) / (bO / wO) * 1 / (1 - sF)

    Pass swap_fee=0 for the price without fee.
    """
    numer = bdiv(token_balance_in, token_weight_in)
    denom = bdiv(token_balance_out, token_weight_out)
    ratio = bdiv(numer, denom)
    scale = bdiv(BONE, bsub(BONE, swap_fee))
    return bmul(ratio, scale)


def calc_out_given_in(
    token_balance_in: int,
    token_weight_in: int,
    token_balance_out: int,
    token_weight_out: int,
    token_amount_in: int,
    swap_fee: int,
) -> int:
    """Output amount for an exact input amount.

    Formula:
        aO = bO * (1 - (bI / (bI + aI * (1 - sF))) ^ (wI / wO))

    The result is always strictly below token_balance_out.
    """
    weight_ratio = bdiv(token_weight_in, token_weight_out)
    adjusted_in = bmul(token_amount_in, bsub(BONE, swap_fee))
    y = bdiv(token_balance_in, badd(token_balance_in, adjusted_in))
    foo = bpow(y, weight_ratio)
    bar = bsub(BONE, foo)
    return bmul(token_balance_out, bar)


def calc_in_given_out(
    token_balance_in: int,
    token_weight_in: int,
    token_balance_out: int,
    token_weight_out: int,
    token_amount_out: int,
    swap_fee: int,
) -> int:
    """Input amount required for an exact output amount.

    Formula:
        aI = bI * ((bO / (bO - aO)) ^ (wO / wI) - 1) / (1 - sF)

    Raises:
        MathError: If token_amount_out >= token_balance_out
    """
    if token_amount_out >= token_balance_out:
        raise MathError(
            f"Output {token_amount_out} must be below balance {token_balance_out}"
        )
    weight_ratio = bdiv(token_weight_out, token_weight_in)
    diff = bsub(token_balance_out, token_amount_out)
    y = bdiv(token_balance_out, diff)
    foo = bsub(bpow(y, weight_ratio), BONE)
    return bdiv(bmul(token_balance_in, foo), bsub(BONE, swap_fee))


def calc_pool_out_given_single_in(
    token_balance_in: int,
    token_weight_in: int,
    pool_supply: int,
    total_weight: int,
    token_amount_in: int,
    swap_fee: int,
) -> int:
    """Pool shares minted for a single-token deposit.

    Only the (1 - wI/tW) share of the deposit is implicitly swapped into the
    other tokens, so only that share pays the swap fee:

        aI' = aI * (1 - (1 - wI/tW) * sF)
        pAo = ((bI + aI') / bI) ^ (wI/tW) * pS - pS
    """
    normalized_weight = bdiv(token_weight_in, total_weight)
    zaz = bmul(bsub(BONE, normalized_weight), swap_fee)
    token_amount_in_after_fee = bmul(token_amount_in, bsub(BONE, zaz))

    new_token_balance_in = badd(token_balance_in, token_amount_in_after_fee)
    token_in_ratio = bdiv(new_token_balance_in, token_balance_in)

    pool_ratio = bpow(token_in_ratio, normalized_weight)
    new_pool_supply = bmul(pool_ratio, pool_supply)
    return bsub(new_pool_supply, pool_supply)


def calc_single_in_given_pool_out(
    token_balance_in: int,
    token_weight_in: int,
    pool_supply: int,
    total_weight: int,
    pool_amount_out: int,
    swap_fee: int,
) -> int:
    """Single-token deposit required to mint an exact amount of pool shares.

    Reverse of calc_pool_out_given_single_in, fee applied in reverse order:

        aI' = ((pS + pAo) / pS) ^ (tW/wI) * bI - bI
        aI  = aI' / (1 - (1 - wI/tW) * sF)
    """
    normalized_weight = bdiv(token_weight_in, total_weight)
    new_pool_supply = badd(pool_supply, pool_amount_out)
    pool_ratio = bdiv(new_pool_supply, pool_supply)

    boo = bdiv(BONE, normalized_weight)
    token_in_ratio = bpow(pool_ratio, boo)
    new_token_balance_in = bmul(token_in_ratio, token_balance_in)
    token_amount_in_after_fee = bsub(new_token_balance_in, token_balance_in)

    zar = bmul(bsub(BONE, normalized_weight), swap_fee)
    return bdiv(token_amount_in_after_fee, bsub(BONE, zar))


def calc_single_out_given_pool_in(
    token_balance_out: int,
    token_weight_out: int,
    pool_supply: int,
    total_weight: int,
    pool_amount_in: int,
    swap_fee: int,
) -> int:
    """Single-token withdrawal paid for burning an exact amount of pool shares.

        pAi' = pAi * (1 - eF)
        aO'  = bO - ((pS - pAi') / pS) ^ (tW/wO) * bO
        aO   = aO' * (1 - (1 - wO/tW) * sF)
    """
    normalized_weight = bdiv(token_weight_out, total_weight)
    pool_amount_in_after_exit_fee = bmul(pool_amount_in, bsub(BONE, EXIT_FEE))
    new_pool_supply = bsub(pool_supply, pool_amount_in_after_exit_fee)
    pool_ratio = bdiv(new_pool_supply, pool_supply)

    token_out_ratio = bpow(pool_ratio, bdiv(BONE, normalized_weight))
    new_token_balance_out = bmul(token_out_ratio, token_balance_out)

    token_amount_out_before_swap_fee = bsub(token_balance_out, new_token_balance_out)

    zaz = bmul(bsub(BONE, normalized_weight), swap_fee)
    return bmul(token_amount_out_before_swap_fee, bsub(BONE, zaz))


def calc_pool_in_given_single_out(
    token_balance_out: int,
    token_weight_out: int,
    pool_supply: int,
    total_weight: int,
    token_amount_out: int,
    swap_fee: int,
) -> int:
    """Pool shares burned for an exact single-token withdrawal.

        aO'  = aO / (1 - (1 - wO/tW) * sF)
        pAi' = pS - ((bO - aO') / bO) ^ (wO/tW) * pS
        pAi  = pAi' / (1 - eF)
    """
    normalized_weight = bdiv(token_weight_out, total_weight)
    zoo = bsub(BONE, normalized_weight)
    zar = bmul(zoo, swap_fee)
    token_amount_out_before_swap_fee = bdiv(token_amount_out, bsub(BONE, zar))

    new_token_balance_out = bsub(token_balance_out, token_amount_out_before_swap_fee)
    token_out_ratio = bdiv(new_token_balance_out, token_balance_out)

    pool_ratio = bpow(token_out_ratio, normalized_weight)
    new_pool_supply = bmul(pool_ratio, pool_supply)
    pool_amount_in_after_exit_fee = bsub(pool_supply, new_pool_supply)

    return bdiv(pool_amount_in_after_exit_fee, bsub(BONE, EXIT_FEE))


# =============================================================================
# Reserve skimming
# =============================================================================


def calc_reserves(amount_with_fee: int, amount_without_fee: int, reserves_ratio: int) -> int:
    """Share of a trade's fee diverted to the reserve ledger.

    The fee of a trade is the gap between the amount computed with the swap
    fee and the same amount computed with a zero fee. For exact-in trades the
    zero-fee output is the larger one; for exact-out trades the fee-inclusive
    input is. Either way the skim is

        reserves = reserves_ratio * |amount_with_fee - amount_without_fee|
    """
    fee_amount, _ = bsub_sign(amount_with_fee, amount_without_fee)
    return bmul(fee_amount, reserves_ratio)


def reserves_split(
    gross_amount: int,
    zero_fee_amount: int,
    reserves_ratio: int,
) -> tuple[int, int]:
    """Split an incoming gross amount between the reserve ledger and the pool.

    Returns:
        Tuple of (to_reserve, to_pool) with to_reserve + to_pool == gross_amount
    """
    to_reserve = calc_reserves(gross_amount, zero_fee_amount, reserves_ratio)
    return to_reserve, bsub(gross_amount, to_reserve)
