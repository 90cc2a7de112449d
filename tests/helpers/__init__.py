"""Test helpers module for shared test utilities.

- constants: Accounts and scenario parameters
- factories: Token and pool factory functions
- reference_math: Decimal reference model of the pool formulas
"""

from tests.helpers.constants import (
    ADMIN,
    ERROR_DELTA,
    MAX,
    RESERVES,
    RESERVES_RATIO,
    SWAP_FEE,
    USER1,
    USER2,
)
from tests.helpers.factories import approve_all, finalize_pool, make_bound_pool, make_tokens

__all__ = [
    # Constants
    "ADMIN",
    "USER1",
    "USER2",
    "RESERVES",
    "MAX",
    "SWAP_FEE",
    "RESERVES_RATIO",
    "ERROR_DELTA",
    # Factories
    "make_tokens",
    "approve_all",
    "make_bound_pool",
    "finalize_pool",
]
