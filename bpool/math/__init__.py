"""Fixed-point and weighted invariant math for the pool.

- fixed_point: 18-decimal uint256 arithmetic and bpow()
- weighted_math: spot price, swap, single-asset join/exit and reserve formulas
"""

from bpool.math.fixed_point import (
    badd,
    bdiv,
    bmul,
    bpow,
    bsub,
    from_wei,
    to_wei,
)
from bpool.math.weighted_math import (
    calc_in_given_out,
    calc_out_given_in,
    calc_pool_in_given_single_out,
    calc_pool_out_given_single_in,
    calc_reserves,
    calc_single_in_given_pool_out,
    calc_single_out_given_pool_in,
    calc_spot_price,
    reserves_split,
)

__all__ = [
    "badd",
    "bsub",
    "bmul",
    "bdiv",
    "bpow",
    "to_wei",
    "from_wei",
    "calc_spot_price",
    "calc_out_given_in",
    "calc_in_given_out",
    "calc_pool_out_given_single_in",
    "calc_single_in_given_pool_out",
    "calc_single_out_given_pool_in",
    "calc_pool_in_given_single_out",
    "calc_reserves",
    "reserves_split",
]
