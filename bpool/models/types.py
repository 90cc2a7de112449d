"""Shared field types for the HTTP models."""

from typing import Annotated, Any

from pydantic import BeforeValidator, Field

from bpool.errors import MathError
from bpool.math.fixed_point import check_uint256


def validate_uint256(value: Any) -> str:
    """Accept an amount as int or decimal string; emit its canonical decimal string."""
    if isinstance(value, str) and value.strip().isdigit():
        value = int(value)
    try:
        return str(check_uint256(value, "amount"))
    except MathError as err:
        raise ValueError(str(err)) from err


def normalize_address(value: Any) -> Any:
    """Lowercase address strings so lookups match the pool's ledgers."""
    if isinstance(value, str):
        return value.lower()
    return value


# 20-byte hex address, lowercased
Address = Annotated[
    str,
    BeforeValidator(normalize_address),
    Field(pattern=r"^0x[a-f0-9]{40}$"),
]

# 256-bit unsigned integer as decimal string (validated)
Uint256 = Annotated[
    str,
    BeforeValidator(validate_uint256),
    Field(description="256-bit unsigned integer as decimal string"),
]
