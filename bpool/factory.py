"""Pool factory and registry.

The factory creates pools, remembers which addresses it created, and is the
only account allowed to drain a pool's reserve ledger. Draining is exposed
to the factory admin through collect_token_reserves(), which sends every
bound token's reserves to the configured reserves address.
"""

from __future__ import annotations

import structlog

from bpool.errors import StateError, UnauthorizedError
from bpool.pool import Pool
from bpool.token import derive_address

logger = structlog.get_logger()


class Factory:
    """Creates pools and gates protocol-level collection.

    Args:
        admin: Initial admin address; also the initial reserves address
        address: Factory address. Derived from admin when omitted.
    """

    def __init__(self, admin: str, address: str | None = None) -> None:
        self.address = (address or derive_address("factory", admin)).lower()
        self._admin = admin.lower()
        self._reserves_address = admin.lower()
        self._pools: dict[str, Pool] = {}

    def __repr__(self) -> str:
        return f"Factory(address={self.address!r}, pools={len(self._pools)})"

    def _require_admin(self, sender: str, operation: str) -> None:
        if sender.lower() != self._admin:
            raise UnauthorizedError(f"{operation}: {sender} is not the factory admin")

    def _registered(self, pool: Pool) -> Pool:
        if self._pools.get(pool.address) is not pool:
            raise StateError(f"Pool {pool.address} was not created by this factory")
        return pool

    # --- Registry ---

    def new_pool(self, *, sender: str) -> Pool:
        """Create a pool controlled by sender."""
        address = derive_address("pool", self.address, str(len(self._pools)))
        pool = Pool(controller=sender, factory=self.address, address=address)
        self._pools[pool.address] = pool
        logger.info("pool_created", factory=self.address, pool=pool.address, controller=sender)
        return pool

    def is_pool(self, address: str) -> bool:
        return address.lower() in self._pools

    def get_pool(self, address: str) -> Pool | None:
        return self._pools.get(address.lower())

    def pools(self) -> list[Pool]:
        return list(self._pools.values())

    # --- Administration ---

    def get_admin(self) -> str:
        return self._admin

    def set_admin(self, admin: str, *, sender: str) -> None:
        self._require_admin(sender, "set_admin")
        self._admin = admin.lower()
        logger.info("factory_admin_changed", factory=self.address, admin=self._admin)

    def get_reserves_address(self) -> str:
        return self._reserves_address

    def set_reserves_address(self, reserves_address: str, *, sender: str) -> None:
        self._require_admin(sender, "set_reserves_address")
        self._reserves_address = reserves_address.lower()
        logger.info(
            "factory_reserves_address_changed",
            factory=self.address,
            reserves_address=self._reserves_address,
        )

    # --- Collection ---

    def collect_token_reserves(self, pool: Pool, *, sender: str) -> dict[str, int]:
        """Drain every bound token's reserves from pool to the reserves address.

        Returns:
            Mapping of token address to the amount drained
        """
        self._require_admin(sender, "collect_token_reserves")
        self._registered(pool)

        collected = {}
        for token in pool.get_current_tokens():
            collected[token] = pool.drain_token_reserves(
                token, self._reserves_address, sender=self.address
            )
        logger.info(
            "token_reserves_collected",
            factory=self.address,
            pool=pool.address,
            recipient=self._reserves_address,
            amounts=collected,
        )
        return collected

    def collect(self, pool: Pool, *, sender: str) -> int:
        """Send the pool shares the factory received as exit fees to the admin."""
        self._require_admin(sender, "collect")
        self._registered(pool)

        amount = pool.shares.balance_of(self.address)
        pool.shares.transfer(self._admin, amount, sender=self.address)
        logger.info("pool_shares_collected", factory=self.address, pool=pool.address, amount=amount)
        return amount


def _create_default_factory() -> Factory:
    """Create the process-wide factory served by the HTTP API.

    The admin address comes from BPOOL_FACTORY_ADMIN (default: zero address).
    """
    import os

    admin = os.environ.get("BPOOL_FACTORY_ADMIN", "0x" + "0" * 40)
    return Factory(admin=admin)


# Default factory instance
factory = _create_default_factory()


def get_default_factory() -> Factory:
    return factory
