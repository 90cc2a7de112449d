"""Weighted constant-mean pool.

A Pool holds up to MAX_BOUND_TOKENS tokens, each with a denormalized weight
and a tradable balance, plus a separate reserve ledger fed by a share of
every trade's fee. The controller configures the pool while it is open;
finalize() freezes the configuration and opens trading and liquidity
operations to everyone.

Every state-changing operation runs as a transaction (see Pool._lock): the
pool cannot be re-entered while one is in flight, and if anything raises,
pool records, flags, the share ledger and the event log are restored and every
token transfer the operation already made is reversed.

Token arguments accept either a TokenTransfer object or its address, except
bind(), which needs the token object to move funds.
"""

from __future__ import annotations

import functools
from collections.abc import Callable, Iterator, Sequence
from contextlib import contextmanager
from dataclasses import dataclass, replace
from typing import Any, TypeVar

import structlog

from bpool.constants import (
    DEFAULT_RESERVES_RATIO,
    EXIT_FEE,
    INIT_POOL_SUPPLY,
    MAX_BOUND_TOKENS,
    MAX_FEE,
    MAX_IN_RATIO,
    MAX_OUT_RATIO,
    MAX_RESERVES_RATIO,
    MAX_TOTAL_WEIGHT,
    MAX_WEIGHT,
    MIN_BALANCE,
    MIN_BOUND_TOKENS,
    MIN_FEE,
    MIN_WEIGHT,
    UINT256_MAX,
)
from bpool.errors import (
    BoundsError,
    InvalidSwapError,
    MathError,
    ReentrancyError,
    SlippageError,
    StateError,
    TokenAlreadyBoundError,
    TokenNotBoundError,
    UnauthorizedError,
)
from bpool.events import LogExit, LogJoin, LogSwap, PoolEvent, SwapResult
from bpool.math.fixed_point import badd, bdiv, bmul, bsub, check_uint256
from bpool.math.weighted_math import (
    calc_in_given_out,
    calc_out_given_in,
    calc_pool_in_given_single_out,
    calc_pool_out_given_single_in,
    calc_reserves,
    calc_single_in_given_pool_out,
    calc_single_out_given_pool_in,
    calc_spot_price,
    reserves_split,
)
from bpool.token import PoolShareToken, TokenTransfer, derive_address

logger = structlog.get_logger()

TokenRef = TokenTransfer | str

F = TypeVar("F", bound=Callable[..., Any])


@dataclass
class Record:
    """Bookkeeping for one bound token.

    Attributes:
        token: Token object used to move funds
        denorm: Denormalized weight
        balance: Tradable balance, the amount the invariant sees
        reserves: Skimmed fees owed to the protocol, outside the invariant
    """

    token: TokenTransfer
    denorm: int
    balance: int
    reserves: int = 0


def _address_of(token: TokenRef) -> str:
    return (token if isinstance(token, str) else token.address).lower()


def _viewlock(method: F) -> F:
    """Reject queries while a state-changing operation is in flight."""

    @functools.wraps(method)
    def wrapper(self: Pool, *args: Any, **kwargs: Any) -> Any:
        if self._mutex:
            raise ReentrancyError(f"{method.__name__}: pool {self.address} is locked")
        return method(self, *args, **kwargs)

    return wrapper  # type: ignore[return-value]


class Pool:
    """Weighted pool with a protocol reserve ledger.

    Bound tokens keep their bind order. That order is the order of
    get_current_tokens() and of the per-token arrays taken by join_pool()
    and exit_pool(). Unbinding removes a token and shifts later tokens down.
    """

    def __init__(self, controller: str, factory: str, address: str | None = None) -> None:
        self.factory = factory.lower()
        self.address = (address or derive_address("pool", self.factory, controller)).lower()
        self.shares = PoolShareToken(self.address)
        self.logs: list[PoolEvent] = []

        self._controller = controller.lower()
        self._swap_fee = MIN_FEE
        self._reserves_ratio = DEFAULT_RESERVES_RATIO
        self._public_swap = False
        self._finalized = False
        self._records: dict[str, Record] = {}
        self._total_weight = 0

        self._mutex = False
        # (token, src, dst, amount) for every token movement of the current call
        self._transfers: list[tuple[TokenTransfer, str, str, int]] = []

    def __repr__(self) -> str:
        return (
            f"Pool(address={self.address!r}, tokens={len(self._records)}, "
            f"finalized={self._finalized})"
        )

    # =========================================================================
    # Transactions
    # =========================================================================

    @contextmanager
    def _lock(self, operation: str, sender: str | None = None) -> Iterator[None]:
        if self._mutex:
            raise ReentrancyError(f"{operation}: pool {self.address} re-entered")
        self._mutex = True
        self._transfers = []
        snapshot = self._snapshot()
        logger.debug("pool_call", pool=self.address, operation=operation, sender=sender)
        try:
            yield
        except Exception as err:
            self._rollback(snapshot)
            logger.debug(
                "pool_call_reverted",
                pool=self.address,
                operation=operation,
                error=type(err).__name__,
                reason=str(err),
            )
            raise
        finally:
            self._mutex = False
            self._transfers = []

    def _snapshot(self) -> dict[str, Any]:
        return {
            "records": {addr: replace(record) for addr, record in self._records.items()},
            "total_weight": self._total_weight,
            "controller": self._controller,
            "swap_fee": self._swap_fee,
            "reserves_ratio": self._reserves_ratio,
            "public_swap": self._public_swap,
            "finalized": self._finalized,
            "shares": self.shares._snapshot(),
            "log_count": len(self.logs),
        }

    def _rollback(self, snapshot: dict[str, Any]) -> None:
        try:
            self._restore(snapshot)
        finally:
            self._unwind_transfers()

    def _restore(self, snapshot: dict[str, Any]) -> None:
        self._records = snapshot["records"]
        self._total_weight = snapshot["total_weight"]
        self._controller = snapshot["controller"]
        self._swap_fee = snapshot["swap_fee"]
        self._reserves_ratio = snapshot["reserves_ratio"]
        self._public_swap = snapshot["public_swap"]
        self._finalized = snapshot["finalized"]
        self.shares._restore(snapshot["shares"])
        del self.logs[snapshot["log_count"] :]

    def _unwind_transfers(self) -> None:
        """Send every token moved by the failed call back where it came from.

        Runs after the records are restored. A push that cannot be reclaimed
        is debited from its record, so the restored balance and reserves
        never exceed what the pool holds.
        """
        for token, src, dst, amount in reversed(self._transfers):
            try:
                token.transfer(src, amount, sender=dst)
            except Exception as err:
                logger.error(
                    "pool_transfer_unwind_failed",
                    pool=self.address,
                    token=token.address,
                    src=src,
                    dst=dst,
                    amount=amount,
                    error=type(err).__name__,
                    reason=str(err),
                )
                if src == self.address:
                    self._debit_lost_push(token, amount)

    def _debit_lost_push(self, token: TokenTransfer, amount: int) -> None:
        record = self._records.get(_address_of(token))
        if record is None:
            return
        from_balance = min(amount, record.balance)
        record.balance -= from_balance
        record.reserves -= min(amount - from_balance, record.reserves)

    # =========================================================================
    # Guards
    # =========================================================================

    def _require_controller(self, sender: str, operation: str) -> None:
        if sender.lower() != self._controller:
            raise UnauthorizedError(f"{operation}: {sender} is not the controller")

    def _require_open(self, operation: str) -> None:
        if self._finalized:
            raise StateError(f"{operation}: pool is finalized")

    def _require_finalized(self, operation: str) -> None:
        if not self._finalized:
            raise StateError(f"{operation}: pool is not finalized")

    def _bound_record(self, token: TokenRef) -> Record:
        address = _address_of(token)
        record = self._records.get(address)
        if record is None:
            raise TokenNotBoundError(address)
        return record

    # =========================================================================
    # Token movement
    # =========================================================================

    def _pull(self, token: TokenTransfer, src: str, amount: int) -> None:
        token.transfer_from(src, self.address, amount, sender=self.address)
        self._transfers.append((token, src.lower(), self.address, amount))

    def _push(self, token: TokenTransfer, dst: str, amount: int) -> None:
        token.transfer(dst, amount, sender=self.address)
        self._transfers.append((token, self.address, dst.lower(), amount))

    def _pull_pool_share(self, src: str, amount: int) -> None:
        self.shares._move(src, self.address, amount)

    def _push_pool_share(self, dst: str, amount: int) -> None:
        self.shares._move(self.address, dst, amount)

    def _mint_pool_share(self, amount: int) -> None:
        self.shares._mint(self.address, amount)

    def _burn_pool_share(self, amount: int) -> None:
        self.shares._burn(self.address, amount)

    # =========================================================================
    # Controller operations
    # =========================================================================

    def set_swap_fee(self, swap_fee: int, *, sender: str) -> None:
        with self._lock("set_swap_fee", sender):
            self._require_controller(sender, "set_swap_fee")
            self._require_open("set_swap_fee")
            if not MIN_FEE <= swap_fee <= MAX_FEE:
                raise BoundsError(f"Swap fee {swap_fee} outside [{MIN_FEE}, {MAX_FEE}]")
            self._swap_fee = swap_fee

    def set_reserves_ratio(self, reserves_ratio: int, *, sender: str) -> None:
        with self._lock("set_reserves_ratio", sender):
            self._require_controller(sender, "set_reserves_ratio")
            self._require_open("set_reserves_ratio")
            if not 0 <= reserves_ratio <= MAX_RESERVES_RATIO:
                raise BoundsError(
                    f"Reserves ratio {reserves_ratio} outside [0, {MAX_RESERVES_RATIO}]"
                )
            self._reserves_ratio = reserves_ratio

    def set_controller(self, manager: str, *, sender: str) -> None:
        with self._lock("set_controller", sender):
            self._require_controller(sender, "set_controller")
            self._controller = manager.lower()

    def set_public_swap(self, public: bool, *, sender: str) -> None:
        with self._lock("set_public_swap", sender):
            self._require_controller(sender, "set_public_swap")
            self._require_open("set_public_swap")
            self._public_swap = public

    def finalize(self, *, sender: str) -> None:
        """Freeze the configuration and mint the initial share supply to sender."""
        with self._lock("finalize", sender):
            self._require_controller(sender, "finalize")
            self._require_open("finalize")
            if len(self._records) < MIN_BOUND_TOKENS:
                raise StateError(
                    f"finalize: need at least {MIN_BOUND_TOKENS} bound tokens, "
                    f"have {len(self._records)}"
                )

            self._finalized = True
            self._public_swap = True

            self._mint_pool_share(INIT_POOL_SUPPLY)
            self._push_pool_share(sender, INIT_POOL_SUPPLY)

        logger.info(
            "pool_finalized",
            pool=self.address,
            tokens=list(self._records),
            swap_fee=self._swap_fee,
            reserves_ratio=self._reserves_ratio,
        )

    def bind(self, token: TokenTransfer, balance: int, denorm: int, *, sender: str) -> None:
        """Add a token with an initial balance (pulled from sender) and weight."""
        with self._lock("bind", sender):
            self._require_controller(sender, "bind")
            self._require_open("bind")
            address = _address_of(token)
            if address in self._records:
                raise TokenAlreadyBoundError(f"bind: token {address} is already bound")
            if len(self._records) >= MAX_BOUND_TOKENS:
                raise BoundsError(f"bind: pool already holds {MAX_BOUND_TOKENS} tokens")

            self._records[address] = Record(token=token, denorm=0, balance=0)
            self._rebind(address, balance, denorm, sender)

        logger.debug("token_bound", pool=self.address, token=address, balance=balance, denorm=denorm)

    def rebind(self, token: TokenRef, balance: int, denorm: int, *, sender: str) -> None:
        """Change a bound token's weight and balance, settling the difference with sender."""
        with self._lock("rebind", sender):
            self._require_controller(sender, "rebind")
            self._require_open("rebind")
            record = self._bound_record(token)
            self._rebind(_address_of(record.token), balance, denorm, sender)

    def _rebind(self, address: str, balance: int, denorm: int, sender: str) -> None:
        check_uint256(balance, "balance")
        check_uint256(denorm, "denorm")
        if denorm < MIN_WEIGHT:
            raise BoundsError(f"Weight {denorm} below minimum {MIN_WEIGHT}")
        if denorm > MAX_WEIGHT:
            raise BoundsError(f"Weight {denorm} above maximum {MAX_WEIGHT}")
        if balance < MIN_BALANCE:
            raise BoundsError(f"Balance {balance} below minimum {MIN_BALANCE}")

        record = self._records[address]

        old_weight = record.denorm
        if denorm > old_weight:
            self._total_weight = badd(self._total_weight, denorm - old_weight)
            if self._total_weight > MAX_TOTAL_WEIGHT:
                raise BoundsError(
                    f"Total weight {self._total_weight} above maximum {MAX_TOTAL_WEIGHT}"
                )
        elif denorm < old_weight:
            self._total_weight = bsub(self._total_weight, old_weight - denorm)
        record.denorm = denorm

        old_balance = record.balance
        record.balance = balance
        if balance > old_balance:
            self._pull(record.token, sender, balance - old_balance)
        elif balance < old_balance:
            withdrawn = old_balance - balance
            exit_fee = bmul(withdrawn, EXIT_FEE)
            self._push(record.token, sender, withdrawn - exit_fee)
            if exit_fee:
                self._push(record.token, self.factory, exit_fee)

    def unbind(self, token: TokenRef, *, sender: str) -> None:
        """Remove a token and return its tradable balance to sender."""
        with self._lock("unbind", sender):
            self._require_controller(sender, "unbind")
            self._require_open("unbind")
            record = self._bound_record(token)
            address = _address_of(record.token)

            exit_fee = bmul(record.balance, EXIT_FEE)
            self._total_weight = bsub(self._total_weight, record.denorm)
            del self._records[address]

            self._push(record.token, sender, record.balance - exit_fee)
            if exit_fee:
                self._push(record.token, self.factory, exit_fee)

        logger.debug("token_unbound", pool=self.address, token=address, balance=record.balance)

    def gulp(self, token: TokenRef) -> None:
        """Absorb tokens sent to the pool outside of pool operations into its balance.

        The tradable balance becomes the custodial balance minus the reserves,
        so calling gulp again without a new external transfer changes nothing.
        """
        with self._lock("gulp"):
            record = self._bound_record(token)
            custodial = record.token.balance_of(self.address)
            record.balance = bsub(custodial, record.reserves)

    def drain_token_reserves(self, token: TokenRef, recipient: str, *, sender: str) -> int:
        """Send the whole reserve of token to recipient. Only the factory may call this."""
        with self._lock("drain_token_reserves", sender):
            if sender.lower() != self.factory:
                raise UnauthorizedError(f"drain_token_reserves: {sender} is not the factory")
            record = self._bound_record(token)
            amount = record.reserves
            record.reserves = 0
            self._push(record.token, recipient, amount)

        logger.info(
            "reserves_drained",
            pool=self.address,
            token=_address_of(token),
            recipient=recipient,
            amount=amount,
        )
        return amount

    # =========================================================================
    # Queries
    # =========================================================================

    @_viewlock
    def is_public_swap(self) -> bool:
        return self._public_swap

    @_viewlock
    def is_finalized(self) -> bool:
        return self._finalized

    @_viewlock
    def is_bound(self, token: TokenRef) -> bool:
        return _address_of(token) in self._records

    @_viewlock
    def get_num_tokens(self) -> int:
        return len(self._records)

    @_viewlock
    def get_current_tokens(self) -> list[str]:
        return list(self._records)

    @_viewlock
    def get_final_tokens(self) -> list[str]:
        self._require_finalized("get_final_tokens")
        return list(self._records)

    @_viewlock
    def get_denormalized_weight(self, token: TokenRef) -> int:
        return self._bound_record(token).denorm

    @_viewlock
    def get_total_denormalized_weight(self) -> int:
        return self._total_weight

    @_viewlock
    def get_normalized_weight(self, token: TokenRef) -> int:
        return bdiv(self._bound_record(token).denorm, self._total_weight)

    @_viewlock
    def get_balance(self, token: TokenRef) -> int:
        return self._bound_record(token).balance

    @_viewlock
    def get_reserves(self, token: TokenRef) -> int:
        return self._bound_record(token).reserves

    @_viewlock
    def get_swap_fee(self) -> int:
        return self._swap_fee

    @_viewlock
    def get_reserves_ratio(self) -> int:
        return self._reserves_ratio

    @_viewlock
    def get_controller(self) -> str:
        return self._controller

    @_viewlock
    def get_spot_price(self, token_in: TokenRef, token_out: TokenRef) -> int:
        in_record = self._bound_record(token_in)
        out_record = self._bound_record(token_out)
        return calc_spot_price(
            in_record.balance, in_record.denorm, out_record.balance, out_record.denorm, self._swap_fee
        )

    @_viewlock
    def get_spot_price_sans_fee(self, token_in: TokenRef, token_out: TokenRef) -> int:
        in_record = self._bound_record(token_in)
        out_record = self._bound_record(token_out)
        return calc_spot_price(
            in_record.balance, in_record.denorm, out_record.balance, out_record.denorm, 0
        )

    # =========================================================================
    # Proportional liquidity
    # =========================================================================

    def join_pool(self, pool_amount_out: int, max_amounts_in: Sequence[int], *, sender: str) -> list[int]:
        """Mint pool_amount_out shares for a proportional deposit of every token.

        max_amounts_in is indexed in bound-token order.

        Returns:
            The amount pulled for each token, in bound-token order
        """
        with self._lock("join_pool", sender):
            self._require_finalized("join_pool")
            check_uint256(pool_amount_out, "pool_amount_out")
            records = list(self._records.values())
            if len(max_amounts_in) != len(records):
                raise BoundsError(
                    f"join_pool: expected {len(records)} limits, got {len(max_amounts_in)}"
                )

            ratio = bdiv(pool_amount_out, self.shares.total_supply())
            if ratio == 0:
                raise MathError("join_pool: pool_amount_out too small")

            amounts_in = []
            for record, limit in zip(records, max_amounts_in, strict=True):
                token_amount_in = bmul(ratio, record.balance)
                if token_amount_in == 0:
                    raise MathError(f"join_pool: zero deposit of {record.token.address}")
                if token_amount_in > limit:
                    raise SlippageError(
                        f"join_pool: deposit {token_amount_in} of {record.token.address} "
                        f"exceeds limit {limit}"
                    )
                amounts_in.append(token_amount_in)

            for record, token_amount_in in zip(records, amounts_in, strict=True):
                record.balance = badd(record.balance, token_amount_in)
                self.logs.append(LogJoin(sender.lower(), record.token.address, token_amount_in))
                self._pull(record.token, sender, token_amount_in)

            self._mint_pool_share(pool_amount_out)
            self._push_pool_share(sender, pool_amount_out)

        logger.info("pool_join", pool=self.address, sender=sender, pool_amount_out=pool_amount_out)
        return amounts_in

    def exit_pool(self, pool_amount_in: int, min_amounts_out: Sequence[int], *, sender: str) -> list[int]:
        """Burn pool_amount_in shares for a proportional withdrawal of every token.

        min_amounts_out is indexed in bound-token order.

        Returns:
            The amount pushed for each token, in bound-token order
        """
        with self._lock("exit_pool", sender):
            self._require_finalized("exit_pool")
            check_uint256(pool_amount_in, "pool_amount_in")
            records = list(self._records.values())
            if len(min_amounts_out) != len(records):
                raise BoundsError(
                    f"exit_pool: expected {len(records)} limits, got {len(min_amounts_out)}"
                )

            pool_total = self.shares.total_supply()
            exit_fee = bmul(pool_amount_in, EXIT_FEE)
            pool_amount_in_after_exit_fee = bsub(pool_amount_in, exit_fee)
            ratio = bdiv(pool_amount_in_after_exit_fee, pool_total)
            if ratio == 0:
                raise MathError("exit_pool: pool_amount_in too small")

            amounts_out = []
            for record, limit in zip(records, min_amounts_out, strict=True):
                token_amount_out = bmul(ratio, record.balance)
                if token_amount_out == 0:
                    raise MathError(f"exit_pool: zero withdrawal of {record.token.address}")
                if token_amount_out < limit:
                    raise SlippageError(
                        f"exit_pool: withdrawal {token_amount_out} of {record.token.address} "
                        f"below limit {limit}"
                    )
                amounts_out.append(token_amount_out)

            self._pull_pool_share(sender, pool_amount_in)
            if exit_fee:
                self._push_pool_share(self.factory, exit_fee)
            self._burn_pool_share(pool_amount_in_after_exit_fee)

            for record, token_amount_out in zip(records, amounts_out, strict=True):
                record.balance = bsub(record.balance, token_amount_out)
                self.logs.append(LogExit(sender.lower(), record.token.address, token_amount_out))
            for record, token_amount_out in zip(records, amounts_out, strict=True):
                self._push(record.token, sender, token_amount_out)

        logger.info("pool_exit", pool=self.address, sender=sender, pool_amount_in=pool_amount_in)
        return amounts_out

    # =========================================================================
    # Swaps
    # =========================================================================

    def _swap_records(self, token_in: TokenRef, token_out: TokenRef, operation: str) -> tuple[Record, Record]:
        in_record = self._bound_record(token_in)
        out_record = self._bound_record(token_out)
        if in_record is out_record:
            raise InvalidSwapError(f"{operation}: cannot swap {_address_of(token_in)} for itself")
        self._require_finalized(operation)
        return in_record, out_record

    def swap_exact_amount_in(
        self,
        token_in: TokenRef,
        token_amount_in: int,
        token_out: TokenRef,
        min_amount_out: int,
        max_price: int,
        *,
        sender: str,
    ) -> SwapResult:
        """Sell exactly token_amount_in of token_in for as much token_out as the curve gives.

        Part of the fee, measured on the output side, is skimmed into the
        reserves of token_out.
        """
        with self._lock("swap_exact_amount_in", sender):
            in_record, out_record = self._swap_records(token_in, token_out, "swap_exact_amount_in")
            result = self._exact_in(in_record, out_record, token_amount_in, min_amount_out, max_price)
            self._settle_swap(in_record, out_record, result, sender)

        self._log_swap(result, sender)
        return result

    def swap_exact_amount_out(
        self,
        token_in: TokenRef,
        max_amount_in: int,
        token_out: TokenRef,
        token_amount_out: int,
        max_price: int,
        *,
        sender: str,
    ) -> SwapResult:
        """Buy exactly token_amount_out of token_out for as little token_in as the curve allows.

        Part of the fee, measured on the input side, is skimmed into the
        reserves of token_in.
        """
        with self._lock("swap_exact_amount_out", sender):
            in_record, out_record = self._swap_records(token_in, token_out, "swap_exact_amount_out")
            result = self._exact_out(in_record, out_record, token_amount_out, max_amount_in, max_price)
            self._settle_swap(in_record, out_record, result, sender)

        self._log_swap(result, sender)
        return result

    @_viewlock
    def preview_swap_exact_amount_in(
        self, token_in: TokenRef, token_amount_in: int, token_out: TokenRef
    ) -> SwapResult:
        """What swap_exact_amount_in would return with no limits, without trading."""
        in_record, out_record = self._swap_records(token_in, token_out, "preview_swap_exact_amount_in")
        return self._exact_in(replace(in_record), replace(out_record), token_amount_in, 0, UINT256_MAX)

    @_viewlock
    def preview_swap_exact_amount_out(
        self, token_in: TokenRef, token_amount_out: int, token_out: TokenRef
    ) -> SwapResult:
        """What swap_exact_amount_out would return with no limits, without trading."""
        in_record, out_record = self._swap_records(token_in, token_out, "preview_swap_exact_amount_out")
        return self._exact_out(
            replace(in_record), replace(out_record), token_amount_out, UINT256_MAX, UINT256_MAX
        )

    def _exact_in(
        self,
        in_record: Record,
        out_record: Record,
        token_amount_in: int,
        min_amount_out: int,
        max_price: int,
    ) -> SwapResult:
        check_uint256(token_amount_in, "token_amount_in")

        if token_amount_in > bmul(in_record.balance, MAX_IN_RATIO):
            raise BoundsError(
                f"swap_exact_amount_in: {token_amount_in} exceeds max in ratio "
                f"of balance {in_record.balance}"
            )

        spot_price_before = self._record_spot_price(in_record, out_record)
        if spot_price_before > max_price:
            raise SlippageError(
                f"swap_exact_amount_in: spot price {spot_price_before} above limit {max_price}"
            )

        curve = (in_record.balance, in_record.denorm, out_record.balance, out_record.denorm)
        token_amount_out = calc_out_given_in(*curve, token_amount_in, self._swap_fee)
        if token_amount_out < min_amount_out:
            raise SlippageError(
                f"swap_exact_amount_in: output {token_amount_out} below limit {min_amount_out}"
            )

        token_amount_out_zero_fee = calc_out_given_in(*curve, token_amount_in, 0)
        reserves = calc_reserves(token_amount_out_zero_fee, token_amount_out, self._reserves_ratio)

        in_record.balance = badd(in_record.balance, token_amount_in)
        out_record.balance = bsub(bsub(out_record.balance, token_amount_out), reserves)
        out_record.reserves = badd(out_record.reserves, reserves)

        spot_price_after = self._check_spot_price_after(
            in_record, out_record, spot_price_before, token_amount_in, token_amount_out, max_price
        )
        return SwapResult(
            token_in=in_record.token.address,
            token_out=out_record.token.address,
            amount_in=token_amount_in,
            amount_out=token_amount_out,
            spot_price_after=spot_price_after,
            reserves=reserves,
        )

    def _exact_out(
        self,
        in_record: Record,
        out_record: Record,
        token_amount_out: int,
        max_amount_in: int,
        max_price: int,
    ) -> SwapResult:
        check_uint256(token_amount_out, "token_amount_out")

        if token_amount_out > bmul(out_record.balance, MAX_OUT_RATIO):
            raise BoundsError(
                f"swap_exact_amount_out: {token_amount_out} exceeds max out ratio "
                f"of balance {out_record.balance}"
            )

        spot_price_before = self._record_spot_price(in_record, out_record)
        if spot_price_before > max_price:
            raise SlippageError(
                f"swap_exact_amount_out: spot price {spot_price_before} above limit {max_price}"
            )

        curve = (in_record.balance, in_record.denorm, out_record.balance, out_record.denorm)
        token_amount_in = calc_in_given_out(*curve, token_amount_out, self._swap_fee)
        if token_amount_in > max_amount_in:
            raise SlippageError(
                f"swap_exact_amount_out: input {token_amount_in} above limit {max_amount_in}"
            )

        token_amount_in_zero_fee = calc_in_given_out(*curve, token_amount_out, 0)
        reserves, to_pool = reserves_split(
            token_amount_in, token_amount_in_zero_fee, self._reserves_ratio
        )

        in_record.balance = badd(in_record.balance, to_pool)
        in_record.reserves = badd(in_record.reserves, reserves)
        out_record.balance = bsub(out_record.balance, token_amount_out)

        spot_price_after = self._check_spot_price_after(
            in_record, out_record, spot_price_before, token_amount_in, token_amount_out, max_price
        )
        return SwapResult(
            token_in=in_record.token.address,
            token_out=out_record.token.address,
            amount_in=token_amount_in,
            amount_out=token_amount_out,
            spot_price_after=spot_price_after,
            reserves=reserves,
        )

    def _record_spot_price(self, in_record: Record, out_record: Record) -> int:
        return calc_spot_price(
            in_record.balance, in_record.denorm, out_record.balance, out_record.denorm, self._swap_fee
        )

    def _check_spot_price_after(
        self,
        in_record: Record,
        out_record: Record,
        spot_price_before: int,
        token_amount_in: int,
        token_amount_out: int,
        max_price: int,
    ) -> int:
        spot_price_after = self._record_spot_price(in_record, out_record)
        if spot_price_after < spot_price_before:
            raise MathError("Spot price decreased after swap")
        if spot_price_after > max_price:
            raise SlippageError(f"Spot price after swap {spot_price_after} above limit {max_price}")
        if spot_price_before > bdiv(token_amount_in, token_amount_out):
            raise MathError("Effective price below spot price before swap")
        return spot_price_after

    def _settle_swap(self, in_record: Record, out_record: Record, result: SwapResult, sender: str) -> None:
        self.logs.append(
            LogSwap(sender.lower(), result.token_in, result.token_out, result.amount_in, result.amount_out)
        )
        self._pull(in_record.token, sender, result.amount_in)
        self._push(out_record.token, sender, result.amount_out)

    def _log_swap(self, result: SwapResult, sender: str) -> None:
        logger.info(
            "pool_swap",
            pool=self.address,
            sender=sender,
            token_in=result.token_in,
            token_out=result.token_out,
            amount_in=result.amount_in,
            amount_out=result.amount_out,
            reserves=result.reserves,
        )

    # =========================================================================
    # Single-asset liquidity
    # =========================================================================

    def joinswap_extern_amount_in(
        self,
        token_in: TokenRef,
        token_amount_in: int,
        min_pool_amount_out: int,
        *,
        sender: str,
    ) -> int:
        """Deposit exactly token_amount_in of one token; returns the shares minted."""
        with self._lock("joinswap_extern_amount_in", sender):
            record = self._bound_record(token_in)
            self._require_finalized("joinswap_extern_amount_in")
            check_uint256(token_amount_in, "token_amount_in")

            if token_amount_in > bmul(record.balance, MAX_IN_RATIO):
                raise BoundsError(
                    f"joinswap_extern_amount_in: {token_amount_in} exceeds max in ratio"
                )

            pool_supply = self.shares.total_supply()
            pool_amount_out = calc_pool_out_given_single_in(
                record.balance,
                record.denorm,
                pool_supply,
                self._total_weight,
                token_amount_in,
                self._swap_fee,
            )
            if pool_amount_out < min_pool_amount_out:
                raise SlippageError(
                    f"joinswap_extern_amount_in: {pool_amount_out} shares below limit "
                    f"{min_pool_amount_out}"
                )

            token_amount_in_zero_fee = calc_single_in_given_pool_out(
                record.balance, record.denorm, pool_supply, self._total_weight, pool_amount_out, 0
            )
            self._credit_single_in(record, token_amount_in, token_amount_in_zero_fee)

            self.logs.append(LogJoin(sender.lower(), record.token.address, token_amount_in))
            self._pull(record.token, sender, token_amount_in)
            self._mint_pool_share(pool_amount_out)
            self._push_pool_share(sender, pool_amount_out)

        logger.info(
            "pool_join_single",
            pool=self.address,
            sender=sender,
            token_in=record.token.address,
            amount_in=token_amount_in,
            pool_amount_out=pool_amount_out,
        )
        return pool_amount_out

    def joinswap_pool_amount_out(
        self,
        token_in: TokenRef,
        pool_amount_out: int,
        max_amount_in: int,
        *,
        sender: str,
    ) -> int:
        """Mint exactly pool_amount_out shares for one token; returns the amount pulled."""
        with self._lock("joinswap_pool_amount_out", sender):
            record = self._bound_record(token_in)
            self._require_finalized("joinswap_pool_amount_out")
            check_uint256(pool_amount_out, "pool_amount_out")

            pool_supply = self.shares.total_supply()
            token_amount_in = calc_single_in_given_pool_out(
                record.balance,
                record.denorm,
                pool_supply,
                self._total_weight,
                pool_amount_out,
                self._swap_fee,
            )
            if token_amount_in == 0:
                raise MathError("joinswap_pool_amount_out: zero deposit")
            if token_amount_in > max_amount_in:
                raise SlippageError(
                    f"joinswap_pool_amount_out: deposit {token_amount_in} above limit {max_amount_in}"
                )
            if token_amount_in > bmul(record.balance, MAX_IN_RATIO):
                raise BoundsError(
                    f"joinswap_pool_amount_out: {token_amount_in} exceeds max in ratio"
                )

            token_amount_in_zero_fee = calc_single_in_given_pool_out(
                record.balance, record.denorm, pool_supply, self._total_weight, pool_amount_out, 0
            )
            self._credit_single_in(record, token_amount_in, token_amount_in_zero_fee)

            self.logs.append(LogJoin(sender.lower(), record.token.address, token_amount_in))
            self._pull(record.token, sender, token_amount_in)
            self._mint_pool_share(pool_amount_out)
            self._push_pool_share(sender, pool_amount_out)

        logger.info(
            "pool_join_single",
            pool=self.address,
            sender=sender,
            token_in=record.token.address,
            amount_in=token_amount_in,
            pool_amount_out=pool_amount_out,
        )
        return token_amount_in

    def exitswap_pool_amount_in(
        self,
        token_out: TokenRef,
        pool_amount_in: int,
        min_amount_out: int,
        *,
        sender: str,
    ) -> int:
        """Burn exactly pool_amount_in shares for one token; returns the amount pushed."""
        with self._lock("exitswap_pool_amount_in", sender):
            record = self._bound_record(token_out)
            self._require_finalized("exitswap_pool_amount_in")
            check_uint256(pool_amount_in, "pool_amount_in")

            pool_supply = self.shares.total_supply()
            token_amount_out = calc_single_out_given_pool_in(
                record.balance,
                record.denorm,
                pool_supply,
                self._total_weight,
                pool_amount_in,
                self._swap_fee,
            )
            if token_amount_out < min_amount_out:
                raise SlippageError(
                    f"exitswap_pool_amount_in: withdrawal {token_amount_out} below limit "
                    f"{min_amount_out}"
                )
            if token_amount_out > bmul(record.balance, MAX_OUT_RATIO):
                raise BoundsError(
                    f"exitswap_pool_amount_in: {token_amount_out} exceeds max out ratio"
                )

            token_amount_out_zero_fee = calc_single_out_given_pool_in(
                record.balance, record.denorm, pool_supply, self._total_weight, pool_amount_in, 0
            )
            self._debit_single_out(record, token_amount_out, token_amount_out_zero_fee)
            self._settle_single_exit(record, pool_amount_in, token_amount_out, sender)

        logger.info(
            "pool_exit_single",
            pool=self.address,
            sender=sender,
            token_out=record.token.address,
            amount_out=token_amount_out,
            pool_amount_in=pool_amount_in,
        )
        return token_amount_out

    def exitswap_extern_amount_out(
        self,
        token_out: TokenRef,
        token_amount_out: int,
        max_pool_amount_in: int,
        *,
        sender: str,
    ) -> int:
        """Withdraw exactly token_amount_out of one token; returns the shares burned."""
        with self._lock("exitswap_extern_amount_out", sender):
            record = self._bound_record(token_out)
            self._require_finalized("exitswap_extern_amount_out")
            check_uint256(token_amount_out, "token_amount_out")

            if token_amount_out > bmul(record.balance, MAX_OUT_RATIO):
                raise BoundsError(
                    f"exitswap_extern_amount_out: {token_amount_out} exceeds max out ratio"
                )

            pool_supply = self.shares.total_supply()
            pool_amount_in = calc_pool_in_given_single_out(
                record.balance,
                record.denorm,
                pool_supply,
                self._total_weight,
                token_amount_out,
                self._swap_fee,
            )
            if pool_amount_in == 0:
                raise MathError("exitswap_extern_amount_out: zero shares burned")
            if pool_amount_in > max_pool_amount_in:
                raise SlippageError(
                    f"exitswap_extern_amount_out: {pool_amount_in} shares above limit "
                    f"{max_pool_amount_in}"
                )

            token_amount_out_zero_fee = calc_single_out_given_pool_in(
                record.balance, record.denorm, pool_supply, self._total_weight, pool_amount_in, 0
            )
            self._debit_single_out(record, token_amount_out, token_amount_out_zero_fee)
            self._settle_single_exit(record, pool_amount_in, token_amount_out, sender)

        logger.info(
            "pool_exit_single",
            pool=self.address,
            sender=sender,
            token_out=record.token.address,
            amount_out=token_amount_out,
            pool_amount_in=pool_amount_in,
        )
        return pool_amount_in

    def _credit_single_in(self, record: Record, token_amount_in: int, zero_fee_amount: int) -> None:
        reserves, to_pool = reserves_split(token_amount_in, zero_fee_amount, self._reserves_ratio)
        record.balance = badd(record.balance, to_pool)
        record.reserves = badd(record.reserves, reserves)

    def _debit_single_out(self, record: Record, token_amount_out: int, zero_fee_amount: int) -> None:
        reserves = calc_reserves(zero_fee_amount, token_amount_out, self._reserves_ratio)
        record.balance = bsub(bsub(record.balance, token_amount_out), reserves)
        record.reserves = badd(record.reserves, reserves)

    def _settle_single_exit(
        self, record: Record, pool_amount_in: int, token_amount_out: int, sender: str
    ) -> None:
        exit_fee = bmul(pool_amount_in, EXIT_FEE)
        self.logs.append(LogExit(sender.lower(), record.token.address, token_amount_out))
        self._pull_pool_share(sender, pool_amount_in)
        self._burn_pool_share(bsub(pool_amount_in, exit_fee))
        if exit_fee:
            self._push_pool_share(self.factory, exit_fee)
        self._push(record.token, sender, token_amount_out)
