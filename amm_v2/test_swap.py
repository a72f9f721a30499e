"""
Test Suite: Swaps

Tests the constant product formula for both entry styles, the fee-adjusted
K check, slippage bounds, and protection against draining or underpaying.
"""
import pytest

from amm_v2.conftest import ALICE, BOB, CAROL, START_BALANCE, TOKEN0_ID, TOKEN1_ID
from amm_v2.errors import (
    CallbackFailure, InsufficientAllowance, InsufficientInputAmount, InsufficientLiquidity,
    InsufficientOutputAmount, InvalidRecipient, KInvariantViolation,
    SwapDoesNotMeetMinimumOut, UnsupportedToken,
)
from amm_v2.events import Swap
from amm_v2.ledger import AssetLedger, FeeOnTransferLedger
from amm_v2.pair import Pair
from amm_v2.swap_math import get_amount_in, get_amount_out, quote


class TestPricing:
    """Pure constant product math."""

    def test_small_pool_output(self):
        """10 in against (1000, 1000): 9_970_000 // 1_009_970 = 9."""
        assert get_amount_out(10, 1000, 1000) == 9

    def test_amount_in_covers_amount_out(self):
        amount_in = get_amount_in(996, 1_000_000, 1_000_000)
        assert amount_in == 1000
        assert get_amount_out(amount_in, 1_000_000, 1_000_000) >= 996

    def test_quote_keeps_ratio(self):
        assert quote(100, 1_000, 4_000) == 400

    def test_empty_pool(self):
        with pytest.raises(InsufficientLiquidity):
            get_amount_out(10, 0, 1000)

    def test_amount_in_cannot_drain(self):
        with pytest.raises(InsufficientLiquidity):
            get_amount_in(1000, 1000, 1000)


class TestSwapExactInput:
    """Pull-then-compute swaps."""

    def test_small_pool_trade(self, pool_1k):
        pool_1k.token0.approve(BOB, pool_1k.address, 10)

        amount_out = pool_1k.swap_exact_input(BOB, pool_1k.token0, 10)

        assert amount_out == 9
        assert pool_1k.get_reserves()[:2] == (1010, 991)
        assert pool_1k.token1.balance_of(BOB) == START_BALANCE + 9

    def test_reverse_direction_by_token_id(self, pool_1m):
        pool_1m.token1.approve(BOB, pool_1m.address, 1000)

        amount_out = pool_1m.swap_exact_input(BOB, TOKEN1_ID, 1000)

        assert amount_out == 996
        assert pool_1m.get_reserves()[:2] == (999_004, 1_001_000)

    def test_output_to_recipient(self, pool_1m):
        pool_1m.token0.approve(BOB, pool_1m.address, 1000)
        pool_1m.swap_exact_input(BOB, TOKEN0_ID, 1000, to=CAROL)

        assert pool_1m.token1.balance_of(CAROL) == 996

    def test_minimum_out_enforced(self, pool_1k):
        pool_1k.token0.approve(BOB, pool_1k.address, 10)

        with pytest.raises(SwapDoesNotMeetMinimumOut):
            pool_1k.swap_exact_input(BOB, pool_1k.token0, 10, min_amount_out=10)

        # Pull rolled back, allowance included
        assert pool_1k.token0.balance_of(BOB) == START_BALANCE
        assert pool_1k.token0.allowance(BOB, pool_1k.address) == 10
        assert pool_1k.get_reserves()[:2] == (1000, 1000)

    def test_minimum_out_must_be_exceeded(self, pool_1k):
        """An output equal to the bound is rejected; one above it goes through."""
        pool_1k.token0.approve(BOB, pool_1k.address, 20)

        with pytest.raises(SwapDoesNotMeetMinimumOut):
            pool_1k.swap_exact_input(BOB, pool_1k.token0, 10, min_amount_out=9)
        assert pool_1k.get_reserves()[:2] == (1000, 1000)

        assert pool_1k.swap_exact_input(BOB, pool_1k.token0, 10, min_amount_out=8) == 9

    def test_dust_input_buys_nothing(self, pool_1k):
        pool_1k.token0.approve(BOB, pool_1k.address, 1)

        with pytest.raises(InsufficientOutputAmount):
            pool_1k.swap_exact_input(BOB, pool_1k.token0, 1)

    def test_requires_allowance(self, pool_1k):
        with pytest.raises(InsufficientAllowance):
            pool_1k.swap_exact_input(BOB, pool_1k.token0, 10)

    def test_unknown_token(self, pool_1k):
        with pytest.raises(UnsupportedToken):
            pool_1k.swap_exact_input(BOB, b'\x00' * 19 + b'\x99', 10)

    def test_empty_pool(self, pair):
        pair.token0.approve(BOB, pair.address, 10)
        with pytest.raises(InsufficientLiquidity):
            pair.swap_exact_input(BOB, pair.token0, 10)

    def test_fee_on_transfer_input_priced_on_receipt(self, clock, add_liquidity):
        token0 = FeeOnTransferLedger(TOKEN0_ID, 'FOT', fee_bps=100)
        token1 = AssetLedger(TOKEN1_ID, 'TKB')
        for holder in (ALICE, BOB):
            token0.mint(holder, START_BALANCE)
            token1.mint(holder, START_BALANCE)
        pair = Pair(token0, token1, clock=clock)
        add_liquidity(pair, ALICE, 1_000_000, 1_000_000)
        reserve0, reserve1, _ = pair.get_reserves()

        token0.approve(BOB, pair.address, 10_000)
        amount_out = pair.swap_exact_input(BOB, token0, 10_000)

        assert amount_out == get_amount_out(9_900, reserve0, reserve1)
        assert amount_out < get_amount_out(10_000, reserve0, reserve1)

    def test_k_never_decreases(self, pool_1m):
        """Alternate directions and sizes; reserve0 * reserve1 only grows."""
        trades = [
            (pool_1m.token0, 1_000), (pool_1m.token1, 50_000), (pool_1m.token0, 7),
            (pool_1m.token0, 250_000), (pool_1m.token1, 123_456), (pool_1m.token1, 3),
        ]
        for token, amount in trades:
            r0, r1, _ = pool_1m.get_reserves()
            token.approve(BOB, pool_1m.address, amount)
            pool_1m.swap_exact_input(BOB, token, amount)
            n0, n1, _ = pool_1m.get_reserves()
            assert n0 * n1 >= r0 * r1


class TestOptimisticSwap:
    """Push-then-verify swaps."""

    def test_pay_then_swap(self, pool_1m):
        pool_1m.token0.transfer(BOB, pool_1m.address, 1000)

        amounts_in = pool_1m.swap(0, 996, BOB)

        assert amounts_in == (1000, 0)
        assert pool_1m.get_reserves()[:2] == (1_001_000, 999_004)
        assert pool_1m.token1.balance_of(BOB) == START_BALANCE + 996

    def test_k_violation_rolls_back(self, pool_1m):
        pool_1m.token0.transfer(BOB, pool_1m.address, 1000)
        bob_before = pool_1m.token1.balance_of(BOB)

        with pytest.raises(KInvariantViolation, match="UniswapV2: K"):
            pool_1m.swap(0, 997, BOB)

        assert pool_1m.token1.balance_of(BOB) == bob_before
        assert pool_1m.get_reserves()[:2] == (1_000_000, 1_000_000)
        assert pool_1m.token0.balance_of(pool_1m.address) == 1_001_000

    def test_no_output(self, pool_1m):
        with pytest.raises(InsufficientOutputAmount):
            pool_1m.swap(0, 0, BOB)

    def test_cannot_drain_reserve(self, pool_1m):
        pool_1m.token0.transfer(BOB, pool_1m.address, 10 ** 20)
        with pytest.raises(InsufficientLiquidity):
            pool_1m.swap(0, 1_000_000, BOB)

    def test_no_input(self, pool_1m):
        with pytest.raises(InsufficientInputAmount):
            pool_1m.swap(0, 10, BOB)
        assert pool_1m.token1.balance_of(BOB) == START_BALANCE

    def test_recipient_cannot_be_asset(self, pool_1m):
        pool_1m.token0.transfer(BOB, pool_1m.address, 1000)
        with pytest.raises(InvalidRecipient):
            pool_1m.swap(0, 996, TOKEN0_ID)

    def test_callback_pays_during_swap(self, pool_1m):
        pool_1m.token0.mint(CAROL, 1000)

        class Callee:
            address = CAROL

            def __init__(self):
                self.calls = []

            def on_swap(self, sender, amount0_out, amount1_out, data):
                self.calls.append((sender, amount0_out, amount1_out, data))
                # Output already delivered before payment
                assert pool_1m.token1.balance_of(CAROL) == 996
                pool_1m.token0.transfer(CAROL, pool_1m.address, 1000)

        callee = Callee()
        pool_1m.swap(0, 996, callee, data=b'arb', sender=ALICE)

        assert callee.calls == [(ALICE, 0, 996, b'arb')]
        assert pool_1m.token0.balance_of(CAROL) == 0
        assert pool_1m.get_reserves()[:2] == (1_001_000, 999_004)

    def test_data_requires_callee(self, pool_1m):
        pool_1m.token0.transfer(BOB, pool_1m.address, 1000)
        with pytest.raises(CallbackFailure):
            pool_1m.swap(0, 996, BOB, data=b'x')

    def test_swap_event(self, pool_1m):
        pool_1m.token0.transfer(BOB, pool_1m.address, 1000)
        pool_1m.swap(0, 996, BOB)

        assert pool_1m.events.of_type(Swap)[-1] == Swap(BOB, 1000, 0, 0, 996, BOB)
