"""Tests for swaps, spot prices and reserve skimming."""

from decimal import Decimal

import pytest

from bpool import (
    BoundsError,
    InvalidSwapError,
    LogSwap,
    SlippageError,
    TokenNotBoundError,
    TransferError,
)
from bpool.math import to_wei
from tests.helpers import ADMIN, ERROR_DELTA, MAX, RESERVES_RATIO, SWAP_FEE, USER2, make_bound_pool
from tests.helpers import reference_math as ref
from tests.helpers.reference_math import from_wei, relative_diff

DELTA = Decimal(ERROR_DELTA)


def assert_custody(pool, token) -> None:
    """The pool holds exactly its tradable balance plus its reserves."""
    assert token.balance_of(pool.address) == pool.get_balance(token) + pool.get_reserves(token)


class TestSpotPrice:
    """Tests for spot price queries on the joined pool."""

    def test_spot_price_sans_fee(self, joined_pool, tokens):
        assert joined_pool.get_spot_price_sans_fee(tokens["DAI"], tokens["WETH"]) == to_wei("200")

    def test_spot_price(self, joined_pool, tokens):
        # (10500 / 5) / (52.5 / 5) / (1 - 0.003)
        price = joined_pool.get_spot_price(tokens["DAI"], tokens["WETH"])
        assert price == 200_601_805_416_248_746_200

    def test_spot_price_unbound_token(self, joined_pool, tokens):
        with pytest.raises(TokenNotBoundError):
            joined_pool.get_spot_price(tokens["XXX"], tokens["WETH"])


class TestSwapExactAmountIn:
    """Tests for selling an exact amount."""

    def test_swap(self, joined_pool, tokens):
        """2.5 WETH -> DAI skims 20% of the output-side fee into DAI reserves."""
        weth, dai = tokens["WETH"], tokens["DAI"]

        result = joined_pool.swap_exact_amount_in(
            weth, to_wei("2.5"), dai, to_wei("475"), to_wei("200"), sender=USER2
        )

        expected = ref.out_given_in("52.5", "5", "10500", "5", "2.5", SWAP_FEE)
        expected_zero_fee = ref.out_given_in("52.5", "5", "10500", "5", "2.5", "0")
        assert relative_diff(expected, from_wei(result.amount_out)) < DELTA
        assert result.amount_in == to_wei("2.5")

        expected_reserves = ref.reserves(expected_zero_fee, expected, RESERVES_RATIO)
        assert abs(from_wei(joined_pool.get_reserves(dai)) - expected_reserves) < DELTA
        assert joined_pool.get_reserves(dai) == result.reserves
        assert joined_pool.get_reserves(weth) == 0

        assert dai.balance_of(USER2) == result.amount_out
        assert joined_pool.get_balance(weth) == to_wei("55")
        assert joined_pool.get_balance(dai) == to_wei("10500") - result.amount_out - result.reserves

    def test_swap_keeps_custody(self, joined_pool, tokens):
        weth, dai = tokens["WETH"], tokens["DAI"]
        joined_pool.swap_exact_amount_in(weth, to_wei("2.5"), dai, 0, MAX, sender=USER2)
        assert_custody(joined_pool, weth)
        assert_custody(joined_pool, dai)

    def test_spot_price_after_matches_balances(self, joined_pool, tokens):
        weth, dai = tokens["WETH"], tokens["DAI"]
        joined_pool.swap_exact_amount_in(weth, to_wei("2.5"), dai, 0, MAX, sender=USER2)

        expected = ref.spot_price(
            from_wei(joined_pool.get_balance(dai)), "5", from_wei(joined_pool.get_balance(weth)), "5", SWAP_FEE
        )
        actual = from_wei(joined_pool.get_spot_price(dai, weth))
        assert relative_diff(expected, actual) < DELTA
        assert joined_pool.get_normalized_weight(dai) == 333_333_333_333_333_333

    def test_swap_logs_event(self, joined_pool, tokens):
        weth, dai = tokens["WETH"], tokens["DAI"]
        result = joined_pool.swap_exact_amount_in(weth, to_wei("2.5"), dai, 0, MAX, sender=USER2)
        assert joined_pool.logs[-1] == LogSwap(
            caller=USER2,
            token_in=weth.address,
            token_out=dai.address,
            token_amount_in=to_wei("2.5"),
            token_amount_out=result.amount_out,
        )

    def test_spot_price_after_returned(self, joined_pool, tokens):
        weth, dai = tokens["WETH"], tokens["DAI"]
        before = joined_pool.get_spot_price(weth, dai)
        result = joined_pool.swap_exact_amount_in(weth, to_wei("2.5"), dai, 0, MAX, sender=USER2)
        assert result.spot_price_after == joined_pool.get_spot_price(weth, dai)
        assert result.spot_price_after > before

    @pytest.mark.parametrize(
        "operation, symbol_in, symbol_out",
        [
            ("swap_exact_amount_in", "WETH", "XXX"),
            ("swap_exact_amount_in", "XXX", "WETH"),
            ("swap_exact_amount_out", "WETH", "XXX"),
            ("swap_exact_amount_out", "XXX", "WETH"),
        ],
    )
    def test_unbound_token_fails(self, joined_pool, tokens, operation, symbol_in, symbol_out):
        balance = joined_pool.get_balance(tokens["WETH"])
        with pytest.raises(TokenNotBoundError):
            getattr(joined_pool, operation)(
                tokens[symbol_in], to_wei("1"), tokens[symbol_out], to_wei("1"), MAX, sender=USER2
            )
        assert joined_pool.get_balance(tokens["WETH"]) == balance

    def test_above_max_in_ratio_fails(self, joined_pool, tokens):
        with pytest.raises(BoundsError):
            joined_pool.swap_exact_amount_in(
                tokens["WETH"], to_wei("26.5"), tokens["DAI"], to_wei("5000"), to_wei("200"), sender=USER2
            )

    def test_self_swap_fails(self, joined_pool, tokens):
        with pytest.raises(InvalidSwapError):
            joined_pool.swap_exact_amount_in(tokens["WETH"], to_wei("1"), tokens["WETH"], 0, MAX, sender=USER2)

    def test_min_amount_out_fails(self, joined_pool, tokens):
        weth, dai = tokens["WETH"], tokens["DAI"]
        with pytest.raises(SlippageError):
            joined_pool.swap_exact_amount_in(weth, to_wei("2.5"), dai, to_wei("500"), MAX, sender=USER2)
        assert joined_pool.get_balance(weth) == to_wei("52.5")
        assert weth.balance_of(USER2) == to_wei("12.2222")

    def test_spot_price_before_above_limit_fails(self, joined_pool, tokens):
        with pytest.raises(SlippageError):
            joined_pool.swap_exact_amount_in(
                tokens["WETH"], to_wei("2.5"), tokens["DAI"], 0, to_wei("0.001"), sender=USER2
            )

    def test_spot_price_after_above_limit_fails(self, joined_pool, tokens):
        """Spot price moves from ~0.00502 to ~0.00550 DAI per WETH."""
        weth, dai = tokens["WETH"], tokens["DAI"]
        logs_before = list(joined_pool.logs)
        with pytest.raises(SlippageError):
            joined_pool.swap_exact_amount_in(weth, to_wei("2.5"), dai, 0, to_wei("0.0053"), sender=USER2)
        assert joined_pool.get_reserves(dai) == 0
        assert joined_pool.logs == logs_before

    def test_failed_pull_rolls_back(self, joined_pool, tokens):
        """USER2 holds no DAI, so the pull fails after the pool state was updated."""
        weth, dai = tokens["WETH"], tokens["DAI"]
        logs_before = list(joined_pool.logs)
        with pytest.raises(TransferError):
            joined_pool.swap_exact_amount_in(dai, to_wei("100"), weth, 0, MAX, sender=USER2)

        assert joined_pool.get_balance(dai) == to_wei("10500")
        assert joined_pool.get_balance(weth) == to_wei("52.5")
        assert joined_pool.get_reserves(weth) == 0
        assert weth.balance_of(USER2) == to_wei("12.2222")
        assert joined_pool.logs == logs_before


class TestSwapExactAmountOut:
    """Tests for buying an exact amount."""

    def test_swap(self, joined_pool, tokens):
        """WETH -> 1 MKR skims 20% of the input-side fee into WETH reserves."""
        weth, mkr = tokens["WETH"], tokens["MKR"]

        result = joined_pool.swap_exact_amount_out(
            weth, to_wei("3"), mkr, to_wei("1"), to_wei("500"), sender=USER2
        )

        expected = ref.in_given_out("52.5", "5", "21", "5", "1", SWAP_FEE)
        expected_zero_fee = ref.in_given_out("52.5", "5", "21", "5", "1", "0")
        assert relative_diff(expected, from_wei(result.amount_in)) < DELTA
        assert result.amount_out == to_wei("1")

        expected_reserves = ref.reserves(expected, expected_zero_fee, RESERVES_RATIO)
        assert abs(from_wei(joined_pool.get_reserves(weth)) - expected_reserves) < DELTA
        assert joined_pool.get_reserves(mkr) == 0

        assert joined_pool.get_balance(weth) == to_wei("52.5") + result.amount_in - result.reserves
        assert joined_pool.get_balance(mkr) == to_wei("20")
        assert mkr.balance_of(USER2) == to_wei("1.015333") + to_wei("1")
        assert_custody(joined_pool, weth)
        assert_custody(joined_pool, mkr)

    def test_max_amount_in_fails(self, joined_pool, tokens):
        with pytest.raises(SlippageError):
            joined_pool.swap_exact_amount_out(
                tokens["WETH"], to_wei("2"), tokens["MKR"], to_wei("1"), MAX, sender=USER2
            )

    def test_above_max_out_ratio_fails(self, joined_pool, tokens):
        with pytest.raises(BoundsError):
            joined_pool.swap_exact_amount_out(
                tokens["WETH"], MAX, tokens["MKR"], to_wei("7.5"), MAX, sender=USER2
            )

    def test_self_swap_fails(self, joined_pool, tokens):
        with pytest.raises(InvalidSwapError):
            joined_pool.swap_exact_amount_out(tokens["MKR"], MAX, tokens["MKR"], to_wei("1"), MAX, sender=USER2)


class TestReserveAccounting:
    """Tests for reserves across several trades and ratios."""

    def test_reserves_accumulate(self, joined_pool, tokens):
        weth, dai = tokens["WETH"], tokens["DAI"]
        first = joined_pool.swap_exact_amount_in(weth, to_wei("1"), dai, 0, MAX, sender=USER2)
        second = joined_pool.swap_exact_amount_in(weth, to_wei("1"), dai, 0, MAX, sender=USER2)

        assert first.reserves > 0
        assert second.reserves > 0
        assert joined_pool.get_reserves(dai) == first.reserves + second.reserves
        assert_custody(joined_pool, dai)

    def test_zero_ratio_skims_nothing(self, factory, tokens):
        pool = make_bound_pool(factory, tokens)
        pool.set_swap_fee(to_wei(SWAP_FEE), sender=ADMIN)
        pool.finalize(sender=ADMIN)

        result = pool.swap_exact_amount_in(tokens["WETH"], to_wei("2.5"), tokens["DAI"], 0, MAX, sender=USER2)

        assert result.reserves == 0
        assert pool.get_reserves(tokens["DAI"]) == 0
        assert pool.get_balance(tokens["DAI"]) == to_wei("10000") - result.amount_out


class TestPreview:
    """Tests for quoting swaps without executing them."""

    def test_preview_matches_swap(self, joined_pool, tokens):
        weth, dai = tokens["WETH"], tokens["DAI"]
        preview = joined_pool.preview_swap_exact_amount_in(weth, to_wei("2.5"), dai)

        assert joined_pool.get_balance(weth) == to_wei("52.5")
        assert joined_pool.get_reserves(dai) == 0

        result = joined_pool.swap_exact_amount_in(weth, to_wei("2.5"), dai, 0, MAX, sender=USER2)
        assert preview == result

    def test_preview_exact_out_matches_swap(self, joined_pool, tokens):
        weth, mkr = tokens["WETH"], tokens["MKR"]
        preview = joined_pool.preview_swap_exact_amount_out(weth, to_wei("1"), mkr)
        result = joined_pool.swap_exact_amount_out(weth, MAX, mkr, to_wei("1"), MAX, sender=USER2)
        assert preview == result

    def test_preview_checks_bounds(self, joined_pool, tokens):
        with pytest.raises(BoundsError):
            joined_pool.preview_swap_exact_amount_out(tokens["WETH"], to_wei("7.5"), tokens["MKR"])
