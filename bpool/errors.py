"""Pool error classes.

Every failure of a pool, factory or token operation is reported by raising
one of these. Operations are atomic: when one of these propagates out of a
pool operation, the pool is left exactly as it was before the call.
"""


class PoolError(Exception):
    """Base error for pool operations."""

    pass


class UnauthorizedError(PoolError, PermissionError):
    """Caller is not the controller, the factory, or the factory admin."""

    pass


class StateError(PoolError):
    """Operation is not valid in the pool's current lifecycle state."""

    pass


class TokenAlreadyBoundError(StateError):
    """Token is already bound to the pool."""

    pass


class ReentrancyError(StateError):
    """Pool was re-entered while an operation was in flight."""

    pass


class BoundsError(PoolError):
    """Weight, balance, fee, ratio or trade size outside its allowed range."""

    pass


class TokenNotBoundError(PoolError):
    """Token is not currently bound to the pool."""

    def __init__(self, token: str) -> None:
        super().__init__(f"Token {token} is not bound")
        self.token = token


class SlippageError(PoolError):
    """Computed amount or price violates a caller-supplied limit."""

    pass


class MathError(PoolError, ArithmeticError):
    """Overflow, underflow, division by zero or approximation failure."""

    pass


class TransferError(PoolError):
    """Token movement failed (insufficient balance or allowance)."""

    pass


class InvalidSwapError(PoolError, ValueError):
    """Swap request is malformed (e.g. token swapped for itself)."""

    pass
