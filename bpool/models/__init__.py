"""Pydantic models for the pool HTTP API."""

from bpool.models.pool import (
    PoolStateModel,
    QuoteKind,
    QuoteRequest,
    QuoteResponse,
    SpotPriceResponse,
    TokenRecordModel,
)
from bpool.models.types import Address, Uint256

__all__ = [
    # Types
    "Address",
    "Uint256",
    # Pool state
    "PoolStateModel",
    "TokenRecordModel",
    "SpotPriceResponse",
    # Quotes
    "QuoteKind",
    "QuoteRequest",
    "QuoteResponse",
]
