"""HTTP models for pool state, prices and quotes.

Amounts are 18-decimal fixed-point integers serialized as decimal strings.
"""

from enum import Enum

from pydantic import BaseModel, Field

from bpool.models.types import Address, Uint256
from bpool.pool import Pool


class TokenRecordModel(BaseModel):
    """One bound token as seen by the API."""

    address: Address
    denorm: Uint256 = Field(description="Denormalized weight")
    normalized_weight: Uint256 = Field(alias="normalizedWeight")
    balance: Uint256 = Field(description="Tradable balance")
    reserves: Uint256 = Field(description="Skimmed fees owed to the protocol")

    model_config = {"populate_by_name": True}


class PoolStateModel(BaseModel):
    """Snapshot of a pool's configuration and balances."""

    address: Address
    controller: Address
    public_swap: bool = Field(alias="publicSwap")
    finalized: bool
    swap_fee: Uint256 = Field(alias="swapFee")
    reserves_ratio: Uint256 = Field(alias="reservesRatio")
    total_weight: Uint256 = Field(alias="totalWeight")
    total_supply: Uint256 = Field(alias="totalSupply")
    tokens: list[TokenRecordModel] = Field(description="Bound tokens in bind order")

    model_config = {"populate_by_name": True}

    @classmethod
    def from_pool(cls, pool: Pool) -> "PoolStateModel":
        total_weight = pool.get_total_denormalized_weight()
        tokens = [
            TokenRecordModel(
                address=token,
                denorm=pool.get_denormalized_weight(token),
                normalized_weight=pool.get_normalized_weight(token) if total_weight else 0,
                balance=pool.get_balance(token),
                reserves=pool.get_reserves(token),
            )
            for token in pool.get_current_tokens()
        ]
        return cls(
            address=pool.address,
            controller=pool.get_controller(),
            public_swap=pool.is_public_swap(),
            finalized=pool.is_finalized(),
            swap_fee=pool.get_swap_fee(),
            reserves_ratio=pool.get_reserves_ratio(),
            total_weight=total_weight,
            total_supply=pool.shares.total_supply(),
            tokens=tokens,
        )


class SpotPriceResponse(BaseModel):
    """Spot price of token_out in units of token_in."""

    token_in: Address = Field(alias="tokenIn")
    token_out: Address = Field(alias="tokenOut")
    spot_price: Uint256 = Field(alias="spotPrice", description="Price including the swap fee")
    spot_price_sans_fee: Uint256 = Field(alias="spotPriceSansFee")

    model_config = {"populate_by_name": True}


class QuoteKind(str, Enum):
    """Which side of the quote is fixed."""

    SELL = "sell"  # exact amount in
    BUY = "buy"  # exact amount out


class QuoteRequest(BaseModel):
    kind: QuoteKind
    token_in: Address = Field(alias="tokenIn")
    token_out: Address = Field(alias="tokenOut")
    amount: Uint256 = Field(description="Amount in for sell quotes, amount out for buy quotes")

    model_config = {"populate_by_name": True}


class QuoteResponse(BaseModel):
    """Amounts a swap would execute at against the pool's current state."""

    kind: QuoteKind
    token_in: Address = Field(alias="tokenIn")
    token_out: Address = Field(alias="tokenOut")
    amount_in: Uint256 = Field(alias="amountIn")
    amount_out: Uint256 = Field(alias="amountOut")
    reserves: Uint256 = Field(description="Amount the swap would skim into reserves")
    spot_price_after: Uint256 = Field(alias="spotPriceAfter")

    model_config = {"populate_by_name": True}
