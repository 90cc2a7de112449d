"""Pytest configuration and fixtures."""

from collections.abc import Callable

import pytest

from bpool import Factory, MintableToken, Pool, TransferError
from bpool.math import to_wei
from tests.helpers import (
    ADMIN,
    MAX,
    RESERVES,
    USER1,
    finalize_pool,
    make_bound_pool,
    make_tokens,
)


@pytest.fixture
def tokens() -> dict[str, MintableToken]:
    """WETH, MKR, DAI and XXX with the scenario balances minted."""
    return make_tokens()


@pytest.fixture
def factory() -> Factory:
    """Factory administered by ADMIN, sending reserves to RESERVES."""
    factory = Factory(admin=ADMIN)
    factory.set_reserves_address(RESERVES, sender=ADMIN)
    return factory


@pytest.fixture
def pool(factory: Factory) -> Pool:
    """Fresh pool controlled by ADMIN with nothing bound."""
    return factory.new_pool(sender=ADMIN)


@pytest.fixture
def bound_pool(factory: Factory, tokens: dict[str, MintableToken]) -> Pool:
    """Open pool with WETH 50, MKR 20, DAI 10000 bound at equal weights."""
    return make_bound_pool(factory, tokens)


@pytest.fixture
def finalized_pool(bound_pool: Pool) -> Pool:
    """bound_pool with a 0.3% fee, 20% reserves ratio, finalized by ADMIN."""
    return finalize_pool(bound_pool)


@pytest.fixture
def joined_pool(finalized_pool: Pool) -> Pool:
    """finalized_pool after USER1 minted 5 shares.

    Balances: WETH 52.5, MKR 21, DAI 10500. Share supply: 105.
    """
    finalized_pool.join_pool(to_wei("5"), [to_wei("1000")] * 3, sender=USER1)
    return finalized_pool


# =============================================================================
# Token doubles
# =============================================================================


class CallbackToken(MintableToken):
    """Token that runs a callback while the pool pulls from it.

    Usage:
        token = CallbackToken("Evil", "EVIL")
        token.on_transfer_from = lambda: pool.gulp(token)
    """

    def __init__(self, name: str, symbol: str, decimals: int = 18) -> None:
        super().__init__(name, symbol, decimals)
        self.on_transfer_from: Callable[[], object] | None = None

    def transfer_from(self, src: str, dst: str, amount: int, *, sender: str) -> bool:
        if self.on_transfer_from is not None:
            self.on_transfer_from()
        return super().transfer_from(src, dst, amount, sender=sender)


@pytest.fixture
def callback_token() -> CallbackToken:
    token = CallbackToken("Callback", "CBK")
    token.mint(ADMIN, to_wei("100"))
    return token


class BlockingToken(MintableToken):
    """Token whose transfer() fails for recipients listed in ``blocked``.

    transfer_from() is unaffected, so the pool can still pull it.
    """

    def __init__(self, name: str, symbol: str, decimals: int = 18) -> None:
        super().__init__(name, symbol, decimals)
        self.blocked: set[str] = set()

    def transfer(self, dst: str, amount: int, *, sender: str) -> bool:
        if dst.lower() in self.blocked:
            raise TransferError(f"{self.symbol}: transfers to {dst} are blocked")
        return super().transfer(dst, amount, sender=sender)


@pytest.fixture
def blocking_pool(factory: Factory) -> tuple[Pool, BlockingToken, BlockingToken]:
    """Finalized two-token pool holding 10 AAA and 10 BBB, all shares owned by ADMIN."""
    pool = factory.new_pool(sender=ADMIN)
    first, second = BlockingToken("Alpha", "AAA"), BlockingToken("Beta", "BBB")
    for token in (first, second):
        token.mint(ADMIN, to_wei("10"))
        token.approve(pool.address, MAX, sender=ADMIN)
        pool.bind(token, to_wei("10"), to_wei("5"), sender=ADMIN)
    pool.finalize(sender=ADMIN)
    return pool, first, second
