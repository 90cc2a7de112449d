"""API endpoints for querying and quoting pools."""

import structlog
from fastapi import APIRouter, Depends, HTTPException

from bpool.errors import PoolError, TokenNotBoundError
from bpool.factory import Factory, get_default_factory
from bpool.models.pool import (
    PoolStateModel,
    QuoteKind,
    QuoteRequest,
    QuoteResponse,
    SpotPriceResponse,
)
from bpool.pool import Pool

logger = structlog.get_logger()

router = APIRouter(prefix="/pools")


def get_factory() -> Factory:
    """Dependency provider for the factory whose pools are served.

    Override this in tests to inject a prepared factory:
        app.dependency_overrides[get_factory] = lambda: factory

    Returns:
        The factory instance to serve pools from.
    """
    return get_default_factory()


def _lookup_pool(factory: Factory, address: str) -> Pool:
    pool = factory.get_pool(address)
    if pool is None:
        raise HTTPException(status_code=404, detail=f"Unknown pool {address}")
    return pool


def _pool_error(err: PoolError, pool: Pool) -> HTTPException:
    """Map a pool rule violation to an HTTP error."""
    status_code = 404 if isinstance(err, TokenNotBoundError) else 422
    logger.info(
        "api_error",
        pool=pool.address,
        error=type(err).__name__,
        reason=str(err),
        status_code=status_code,
    )
    return HTTPException(status_code=status_code, detail=str(err))


@router.get("")
async def list_pools(factory: Factory = Depends(get_factory)) -> list[str]:
    """Addresses of every pool created by the factory."""
    return [pool.address for pool in factory.pools()]


@router.get("/{address}", response_model_by_alias=True)
async def get_pool_state(address: str, factory: Factory = Depends(get_factory)) -> PoolStateModel:
    pool = _lookup_pool(factory, address)
    return PoolStateModel.from_pool(pool)


@router.get("/{address}/spot-price", response_model_by_alias=True)
async def get_spot_price(
    address: str,
    token_in: str,
    token_out: str,
    factory: Factory = Depends(get_factory),
) -> SpotPriceResponse:
    """Spot price of token_out in units of token_in, with and without the swap fee."""
    pool = _lookup_pool(factory, address)
    try:
        spot_price = pool.get_spot_price(token_in, token_out)
        spot_price_sans_fee = pool.get_spot_price_sans_fee(token_in, token_out)
    except PoolError as err:
        raise _pool_error(err, pool) from err

    return SpotPriceResponse(
        token_in=token_in.lower(),
        token_out=token_out.lower(),
        spot_price=spot_price,
        spot_price_sans_fee=spot_price_sans_fee,
    )


@router.post("/{address}/quote", response_model_by_alias=True)
async def quote(
    address: str,
    request: QuoteRequest,
    factory: Factory = Depends(get_factory),
) -> QuoteResponse:
    """Quote a swap against the pool's current state.

    Sell quotes fix the input amount, buy quotes fix the output amount. The
    pool is not modified. Requests the pool would reject (unfinalized pool,
    trade above the max in/out ratio, ...) return 422.
    """
    pool = _lookup_pool(factory, address)
    amount = int(request.amount)
    try:
        if request.kind == QuoteKind.SELL:
            result = pool.preview_swap_exact_amount_in(request.token_in, amount, request.token_out)
        else:
            result = pool.preview_swap_exact_amount_out(request.token_in, amount, request.token_out)
    except PoolError as err:
        raise _pool_error(err, pool) from err

    logger.debug(
        "quote_served",
        pool=pool.address,
        kind=request.kind.value,
        amount_in=result.amount_in,
        amount_out=result.amount_out,
    )
    return QuoteResponse(
        kind=request.kind,
        token_in=result.token_in,
        token_out=result.token_out,
        amount_in=result.amount_in,
        amount_out=result.amount_out,
        reserves=result.reserves,
        spot_price_after=result.spot_price_after,
    )
