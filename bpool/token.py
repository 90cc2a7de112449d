"""Fungible token ledgers.

TokenTransfer is the interface a pool needs from a bound token: move an exact
amount or fail, and report balances. Token is an in-memory ERC20-style
implementation of it, used for pool shares (PoolShareToken) and for
simulation/test tokens (MintableToken).

Every state-changing call names the acting address with the keyword-only
``sender`` argument.
"""

from __future__ import annotations

import hashlib
from typing import Protocol, runtime_checkable

import structlog

from bpool.constants import (
    POOL_TOKEN_DECIMALS,
    POOL_TOKEN_NAME,
    POOL_TOKEN_SYMBOL,
    UINT256_MAX,
)
from bpool.errors import TransferError
from bpool.math.fixed_point import badd, bsub, check_uint256

logger = structlog.get_logger()


def derive_address(*parts: str) -> str:
    """Derive a deterministic 20-byte hex address from arbitrary labels."""
    digest = hashlib.sha256(":".join(parts).encode()).hexdigest()
    return "0x" + digest[:40]


@runtime_checkable
class TokenTransfer(Protocol):
    """Token movement interface used by pools.

    transfer() and transfer_from() move exactly ``amount`` or raise
    TransferError without side effects.
    """

    address: str

    def balance_of(self, owner: str) -> int: ...

    def transfer(self, dst: str, amount: int, *, sender: str) -> bool: ...

    def transfer_from(self, src: str, dst: str, amount: int, *, sender: str) -> bool: ...


class Token:
    """ERC20-style fungible token ledger.

    An allowance of UINT256_MAX is treated as unlimited and never decremented.
    """

    def __init__(
        self,
        name: str,
        symbol: str,
        decimals: int = 18,
        address: str | None = None,
    ) -> None:
        self.name = name
        self.symbol = symbol
        self.decimals = decimals
        self.address = (address or derive_address("token", name, symbol)).lower()
        self._balances: dict[str, int] = {}
        self._allowances: dict[tuple[str, str], int] = {}
        self._total_supply = 0

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.symbol!r}, address={self.address!r})"

    # --- Queries ---

    def total_supply(self) -> int:
        return self._total_supply

    def balance_of(self, owner: str) -> int:
        return self._balances.get(owner.lower(), 0)

    def allowance(self, owner: str, spender: str) -> int:
        return self._allowances.get((owner.lower(), spender.lower()), 0)

    # --- Approvals ---

    def approve(self, spender: str, amount: int, *, sender: str) -> bool:
        check_uint256(amount, "amount")
        self._allowances[(sender.lower(), spender.lower())] = amount
        return True

    def increase_approval(self, spender: str, amount: int, *, sender: str) -> bool:
        check_uint256(amount, "amount")
        key = (sender.lower(), spender.lower())
        self._allowances[key] = badd(self._allowances.get(key, 0), amount)
        return True

    def decrease_approval(self, spender: str, amount: int, *, sender: str) -> bool:
        """Lower an allowance, flooring at zero."""
        check_uint256(amount, "amount")
        key = (sender.lower(), spender.lower())
        old_value = self._allowances.get(key, 0)
        self._allowances[key] = 0 if amount > old_value else old_value - amount
        return True

    # --- Transfers ---

    def transfer(self, dst: str, amount: int, *, sender: str) -> bool:
        self._move(sender, dst, amount)
        return True

    def transfer_from(self, src: str, dst: str, amount: int, *, sender: str) -> bool:
        """Move amount from src to dst on behalf of sender.

        Raises:
            TransferError: If sender is neither src nor approved for amount,
                or src holds less than amount
        """
        check_uint256(amount, "amount")
        src, sender = src.lower(), sender.lower()
        allowed = self._allowances.get((src, sender), 0)
        if sender != src and amount > allowed:
            raise TransferError(
                f"{self.symbol}: {sender} not approved to move {amount} from {src}"
            )
        self._move(src, dst, amount)
        if sender != src and allowed != UINT256_MAX:
            self._allowances[(src, sender)] = allowed - amount
        return True

    # --- Internal ledger operations ---

    def _move(self, src: str, dst: str, amount: int) -> None:
        check_uint256(amount, "amount")
        src, dst = src.lower(), dst.lower()
        balance = self._balances.get(src, 0)
        if balance < amount:
            raise TransferError(
                f"{self.symbol}: insufficient balance {balance} < {amount} for {src}"
            )
        self._balances[src] = balance - amount
        self._balances[dst] = self._balances.get(dst, 0) + amount

    def _mint(self, dst: str, amount: int) -> None:
        check_uint256(amount, "amount")
        self._total_supply = badd(self._total_supply, amount)
        dst = dst.lower()
        self._balances[dst] = self._balances.get(dst, 0) + amount

    def _burn(self, src: str, amount: int) -> None:
        check_uint256(amount, "amount")
        src = src.lower()
        balance = self._balances.get(src, 0)
        if balance < amount:
            raise TransferError(
                f"{self.symbol}: cannot burn {amount}, {src} holds {balance}"
            )
        self._balances[src] = balance - amount
        self._total_supply = bsub(self._total_supply, amount)

    def _snapshot(self) -> tuple[dict[str, int], dict[tuple[str, str], int], int]:
        return dict(self._balances), dict(self._allowances), self._total_supply

    def _restore(self, snapshot: tuple[dict[str, int], dict[tuple[str, str], int], int]) -> None:
        self._balances, self._allowances, self._total_supply = (
            dict(snapshot[0]),
            dict(snapshot[1]),
            snapshot[2],
        )


class MintableToken(Token):
    """Token with an open mint, for simulations and tests."""

    def mint(self, dst: str, amount: int) -> None:
        self._mint(dst, amount)
        logger.debug("token_minted", token=self.symbol, dst=dst, amount=amount)

    def burn(self, amount: int, *, sender: str) -> None:
        self._burn(sender, amount)


class PoolShareToken(Token):
    """Pool share token. Lives at the pool's address; only the pool mints and burns."""

    def __init__(self, pool_address: str) -> None:
        super().__init__(
            name=POOL_TOKEN_NAME,
            symbol=POOL_TOKEN_SYMBOL,
            decimals=POOL_TOKEN_DECIMALS,
            address=pool_address,
        )
