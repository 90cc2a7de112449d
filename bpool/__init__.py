"""Weighted constant-mean liquidity pools with a protocol reserve ledger."""

from bpool.errors import (
    BoundsError,
    InvalidSwapError,
    MathError,
    PoolError,
    ReentrancyError,
    SlippageError,
    StateError,
    TokenAlreadyBoundError,
    TokenNotBoundError,
    TransferError,
    UnauthorizedError,
)
from bpool.events import LogExit, LogJoin, LogSwap, SwapResult
from bpool.factory import Factory
from bpool.pool import Pool, Record
from bpool.token import MintableToken, PoolShareToken, Token, TokenTransfer

__version__ = "0.1.0"

__all__ = [
    # Core
    "Factory",
    "Pool",
    "Record",
    # Tokens
    "Token",
    "TokenTransfer",
    "MintableToken",
    "PoolShareToken",
    # Events
    "LogSwap",
    "LogJoin",
    "LogExit",
    "SwapResult",
    # Errors
    "PoolError",
    "UnauthorizedError",
    "StateError",
    "TokenAlreadyBoundError",
    "ReentrancyError",
    "BoundsError",
    "TokenNotBoundError",
    "SlippageError",
    "MathError",
    "TransferError",
    "InvalidSwapError",
]
