"""Records emitted by pool operations.

Pools append one of these to ``Pool.logs`` for each swap, join and exit leg.
Entries appended by an operation that fails are discarded with the rest of
the operation's effects.
"""

from dataclasses import dataclass


@dataclass(frozen=True)
class LogSwap:
    caller: str
    token_in: str
    token_out: str
    token_amount_in: int
    token_amount_out: int


@dataclass(frozen=True)
class LogJoin:
    caller: str
    token_in: str
    token_amount_in: int


@dataclass(frozen=True)
class LogExit:
    caller: str
    token_out: str
    token_amount_out: int


PoolEvent = LogSwap | LogJoin | LogExit


@dataclass(frozen=True)
class SwapResult:
    """Outcome of an executed swap.

    Attributes:
        token_in: Address of the token paid into the pool
        token_out: Address of the token paid out of the pool
        amount_in: Amount pulled from the caller
        amount_out: Amount pushed to the caller
        spot_price_after: Fee-inclusive spot price after the trade
        reserves: Amount skimmed into the reserve ledger by this trade
    """

    token_in: str
    token_out: str
    amount_in: int
    amount_out: int
    spot_price_after: int
    reserves: int
