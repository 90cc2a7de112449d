"""18-decimal fixed-point math with uint256 semantics.

All values are non-negative integers scaled by 10^18 (BONE). Results that
would leave the uint256 range, subtractions that would go negative and
divisions by zero raise MathError instead of wrapping.

Multiplication and division round half up. Exponentiation splits the
exponent into a whole part, computed exactly by binary exponentiation, and a
fractional part, computed with a binomial series that stops once a term falls
below BPOW_PRECISION (10^-10). The series keeps bpow() well within 1e-8
relative error over the [MIN_BPOW_BASE, MAX_BPOW_BASE] domain.
"""

from __future__ import annotations

from decimal import ROUND_DOWN, Decimal

from bpool.constants import (
    BONE,
    BPOW_PRECISION,
    MAX_BPOW_BASE,
    MIN_BPOW_BASE,
    UINT256_MAX,
)
from bpool.errors import MathError

__all__ = [
    "btoi",
    "bfloor",
    "badd",
    "bsub",
    "bsub_sign",
    "bmul",
    "bdiv",
    "bpowi",
    "bpow",
    "bpow_approx",
    "check_uint256",
    "to_wei",
    "from_wei",
]


# =============================================================================
# Range checks and conversions
# =============================================================================


def check_uint256(value: int, name: str = "value") -> int:
    """Validate that value is an int within [0, 2^256 - 1].

    Raises:
        MathError: If value is negative or exceeds uint256
    """
    if not isinstance(value, int) or isinstance(value, bool):
        raise MathError(f"{name} must be an int, got {type(value).__name__}")
    if value < 0:
        raise MathError(f"{name} cannot be negative: {value}")
    if value > UINT256_MAX:
        raise MathError(f"{name} exceeds uint256 max: {value}")
    return value


def to_wei(value: Decimal | str | int) -> int:
    """Scale a human-readable amount to 18-decimal fixed-point.

    Digits beyond the 18th decimal are truncated.

    Examples:
        to_wei("2.5") == 2_500_000_000_000_000_000
        to_wei(5) == 5 * 10**18
    """
    d = Decimal(value) if not isinstance(value, Decimal) else value
    if d < 0:
        raise MathError(f"to_wei requires non-negative input, got {value}")
    return check_uint256(int((d * BONE).quantize(Decimal("1"), rounding=ROUND_DOWN)))


def from_wei(amount: int) -> Decimal:
    """Convert an 18-decimal fixed-point amount to Decimal for display."""
    return Decimal(amount) / Decimal(BONE)


# =============================================================================
# Basic operations
# =============================================================================


def btoi(a: int) -> int:
    """Integer part of a fixed-point value."""
    return a // BONE


def bfloor(a: int) -> int:
    """Fixed-point value with its fractional part dropped."""
    return btoi(a) * BONE


def badd(a: int, b: int) -> int:
    c = a + b
    if c > UINT256_MAX:
        raise MathError(f"Addition overflow: {a} + {b}")
    return c


def bsub(a: int, b: int) -> int:
    c, negative = bsub_sign(a, b)
    if negative:
        raise MathError(f"Subtraction underflow: {a} - {b}")
    return c


def bsub_sign(a: int, b: int) -> tuple[int, bool]:
    """Return (|a - b|, a < b)."""
    if a >= b:
        return a - b, False
    return b - a, True


def bmul(a: int, b: int) -> int:
    """Multiply two fixed-point values, rounding half up."""
    c0 = a * b
    c1 = c0 + (BONE // 2)
    if c1 > UINT256_MAX:
        raise MathError(f"Multiplication overflow: {a} * {b}")
    return c1 // BONE


def bdiv(a: int, b: int) -> int:
    """Divide two fixed-point values, rounding half up."""
    if b == 0:
        raise MathError("Division by zero")
    c0 = a * BONE
    c1 = c0 + (b // 2)
    if c1 > UINT256_MAX:
        raise MathError(f"Division overflow: {a} / {b}")
    return c1 // b


# =============================================================================
# Exponentiation
# =============================================================================


def bpowi(a: int, n: int) -> int:
    """Compute a^n for fixed-point a and plain integer n (binary exponentiation)."""
    z = a if n % 2 != 0 else BONE

    n //= 2
    while n != 0:
        a = bmul(a, a)
        if n % 2 != 0:
            z = bmul(z, a)
        n //= 2

    return z


def bpow(base: int, exp: int) -> int:
    """Compute base^exp where both are fixed-point.

    Args:
        base: Base in [MIN_BPOW_BASE, MAX_BPOW_BASE], i.e. (0, 2)
        exp: Any non-negative fixed-point exponent

    Returns:
        base^exp as 18-decimal fixed-point

    Raises:
        MathError: If base is outside the supported domain
    """
    if base < MIN_BPOW_BASE:
        raise MathError(f"bpow base too low: {base}")
    if base > MAX_BPOW_BASE:
        raise MathError(f"bpow base too high: {base}")

    whole = bfloor(exp)
    remain = bsub(exp, whole)

    whole_pow = bpowi(base, btoi(whole))

    if remain == 0:
        return whole_pow

    partial_result = bpow_approx(base, remain, BPOW_PRECISION)
    return bmul(whole_pow, partial_result)


def bpow_approx(base: int, exp: int, precision: int) -> int:
    """Approximate base^exp for a fractional exponent with a binomial series.

    (1 + x)^a = 1 + a*x + a(a-1)/2! * x^2 + ...  with x = base - 1.

    Terms are accumulated until one drops below precision. Signs are tracked
    separately because every intermediate value is unsigned.
    """
    a = exp
    x, xneg = bsub_sign(base, BONE)
    term = BONE
    total = term
    negative = False

    i = 1
    while term >= precision:
        big_k = i * BONE
        c, cneg = bsub_sign(a, bsub(big_k, BONE))
        term = bmul(term, bmul(c, x))
        term = bdiv(term, big_k)
        if term == 0:
            break

        if xneg:
            negative = not negative
        if cneg:
            negative = not negative
        if negative:
            total = bsub(total, term)
        else:
            total = badd(total, term)
        i += 1

    return total
