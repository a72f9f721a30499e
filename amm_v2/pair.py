"""
A constant product pair over two asset ledgers.

SAFETY PROPERTIES:
- Amounts are measured as ledger balance differences, never taken from the caller
- reserve0 * reserve1 never decreases across a swap (fee-adjusted K check)
- Reserves stay below 2**112
- First mint locks MINIMUM_LIQUIDITY shares at the zero address
- Price accumulators record the price from before each update
- One non-blocking guard per pair; reentry raises ReentrancyError
- All-or-nothing: a failed call reverts every journaled change it made, on any
  ledger or pair its callbacks reached
"""
import logging
import time
from contextlib import contextmanager
from decimal import Decimal
from typing import Callable, Optional

from amm_v2.config import REFUND, Config, PoolConfig
from amm_v2.crypto import CALLBACK_SUCCESS, pair_id
from amm_v2.errors import (
    ArithmeticOverflow, CallbackFailure, ExcessiveInputAmount, FlashLoanFailed,
    FlashLoanNotRepaid, IdenticalAddresses, InsufficientAllowance, InsufficientBalance,
    InsufficientInputAmount, InsufficientLiquidity, InsufficientLiquidityBurned,
    InsufficientLiquidityMinted, InsufficientOutputAmount, InsufficientShares,
    InvalidAmount, InvalidRecipient, KInvariantViolation, MinimumLiquidity,
    SwapDoesNotMeetMinimumOut, UnsupportedToken, ZeroAddress,
)
from amm_v2.events import Burn, EventLog, FlashLoan, Mint, Swap, Sync
from amm_v2.fixed_point import UINT112, ceil_div, sqrt, wrap32
from amm_v2.guard import ConcurrencyGuard
from amm_v2.journal import Journal
from amm_v2.ledger import ZERO_ADDRESS, AssetLedger, ShareLedger
from amm_v2.monitoring import PoolMetrics
from amm_v2.oracle import accumulate
from amm_v2.pool_state import PoolState
from amm_v2.swap_math import get_amount_in, get_amount_out, k_satisfied

logger = logging.getLogger(__name__)

MINIMUM_LIQUIDITY = 1000


def _address_of(party) -> bytes:
    """Parties are plain addresses or callback objects carrying `.address`."""
    if isinstance(party, (bytes, bytearray)):
        return bytes(party)
    return party.address


class Pair:
    """
    Pool of two assets priced by x * y = k.

    The pair owns no balances of its own: it holds reserves, which are its
    last recorded view of what the ledgers say it owns. Anything above the
    reserves is treated as input to the current operation.
    """

    def __init__(self, token0: AssetLedger, token1: AssetLedger,
                 address: Optional[bytes] = None,
                 config: Optional[PoolConfig] = None,
                 clock: Optional[Callable[[], int]] = None,
                 shares: Optional[ShareLedger] = None,
                 events: Optional[EventLog] = None,
                 metrics: Optional[PoolMetrics] = None):
        if token0.token_id == token1.token_id:
            raise IdenticalAddresses("Pair assets must differ")
        if not token0.token_id.strip(b'\x00') or not token1.token_id.strip(b'\x00'):
            raise ZeroAddress("Pair asset id cannot be zero")
        # Rollback has to reach every ledger a callback can touch
        self.journal: Journal = token0.journal
        if token1.journal is not self.journal or (shares and shares.journal is not self.journal):
            raise ValueError("Pair ledgers must share one journal")

        self.token0 = token0
        self.token1 = token1
        self.address = address or pair_id(token0.token_id, token1.token_id)[:20]
        self.config = config or PoolConfig()
        self.clock = clock or (lambda: int(time.time()))
        self.shares = shares or ShareLedger(
            self.address, symbol=f"{token0.symbol}-{token1.symbol}-LP", journal=self.journal
        )
        self.events = events or EventLog()
        self.metrics = metrics
        self.state = PoolState()
        self.guard = ConcurrencyGuard(name=f"{token0.symbol}/{token1.symbol}")
        self._staged = None

    @classmethod
    def from_config(cls, token0: AssetLedger, token1: AssetLedger, config: Config,
                    **kwargs) -> 'Pair':
        """
        Build a pair from a loaded Config.

        Applies the logging section. When monitoring is enabled the pair gets
        its own PoolMetrics, served on the configured host and port.
        """
        config.logging.apply()
        metrics = kwargs.pop('metrics', None)
        if config.monitoring.enabled:
            metrics = metrics or PoolMetrics()
            metrics.start_server(config.monitoring.host, config.monitoring.port)
        return cls(token0, token1, config=config.pool, metrics=metrics, **kwargs)

    # ==========================================================================
    # READ SURFACE
    # ==========================================================================

    def get_reserves(self) -> tuple[int, int, int]:
        return self.state.reserve0, self.state.reserve1, self.state.block_timestamp_last

    @property
    def price0_cumulative_last(self) -> int:
        return self.state.price0_cumulative_last

    @property
    def price1_cumulative_last(self) -> int:
        return self.state.price1_cumulative_last

    @property
    def total_supply(self) -> int:
        return self.shares.total_supply

    def balance_of(self, holder: bytes) -> int:
        """LP shares held by `holder`."""
        return self.shares.balance_of(holder)

    @property
    def current_price(self) -> Decimal:
        return self.state.current_price

    def stats(self) -> dict:
        """Get current pair statistics."""
        return {
            'token0': self.token0.symbol,
            'token1': self.token1.symbol,
            'reserve0': str(self.state.reserve0),
            'reserve1': str(self.state.reserve1),
            'block_timestamp_last': str(self.state.block_timestamp_last),
            'lp_token_supply': str(self.total_supply),
            'current_price': str(self.current_price),
        }

    # ==========================================================================
    # LIQUIDITY
    # ==========================================================================

    def mint(self, to: bytes, sender: Optional[bytes] = None) -> int:
        """
        Credit `to` with shares for whatever was deposited since the last update.

        Depositors transfer both assets to the pair first, then call mint.
        """
        with self._operation('mint'):
            reserve0, reserve1, _ = self.get_reserves()
            balance0, balance1 = self._balances()
            amount0 = balance0 - reserve0
            amount1 = balance1 - reserve1
            if amount0 < 0 or amount1 < 0:
                raise InsufficientInputAmount("Balance below reserve; sync() first")

            total_supply = self.total_supply
            if total_supply == 0:
                liquidity = sqrt(amount0 * amount1) - MINIMUM_LIQUIDITY
                if liquidity <= 0:
                    raise MinimumLiquidity(
                        f"Initial liquidity must exceed {MINIMUM_LIQUIDITY} shares"
                    )
                # Permanently locked
                self.shares.mint(ZERO_ADDRESS, MINIMUM_LIQUIDITY)
            else:
                liquidity = min(
                    amount0 * total_supply // reserve0,
                    amount1 * total_supply // reserve1,
                )
                if liquidity <= 0:
                    raise InsufficientLiquidityMinted("Liquidity addition too small")
                if self.config.excess_deposit_policy == REFUND:
                    amount0, amount1 = self._refund_excess(
                        to, liquidity, total_supply, amount0, amount1, reserve0, reserve1
                    )
                    balance0, balance1 = self._balances()

            self.shares.mint(to, liquidity)
            self._update(balance0, balance1, reserve0, reserve1)
            self._stage(Mint(sender or to, amount0, amount1, to, liquidity))

        logger.info(f"Mint: {liquidity} shares to {to.hex()[:8]} for ({amount0}, {amount1})")
        return liquidity

    def _refund_excess(self, to: bytes, liquidity: int, total_supply: int,
                       amount0: int, amount1: int, reserve0: int, reserve1: int) -> tuple[int, int]:
        """
        Return the part of a deposit the minted shares do not pay for.
        Required amounts round up so the pool never loses to rounding.
        """
        used0 = ceil_div(liquidity * reserve0, total_supply)
        used1 = ceil_div(liquidity * reserve1, total_supply)
        if amount0 > used0:
            self.token0.transfer(self.address, to, amount0 - used0)
        if amount1 > used1:
            self.token1.transfer(self.address, to, amount1 - used1)
        logger.debug(f"Refunded excess deposit ({amount0 - used0}, {amount1 - used1})")
        return used0, used1

    def burn(self, owner: bytes, liquidity: int) -> tuple[int, int]:
        """
        Redeem `liquidity` of owner's shares for a pro-rata cut of current
        balances. The assets go to the owner.
        """
        with self._operation('burn'):
            if liquidity <= 0:
                raise InvalidAmount("Burn amount must be positive")
            if self.shares.balance_of(owner) < liquidity:
                raise InsufficientShares("Insufficient LP tokens.")

            reserve0, reserve1, _ = self.get_reserves()
            balance0, balance1 = self._balances()
            total_supply = self.total_supply

            amount0 = liquidity * balance0 // total_supply
            amount1 = liquidity * balance1 // total_supply
            if amount0 <= 0 or amount1 <= 0:
                raise InsufficientLiquidityBurned("Burn would return nothing")

            self.shares.burn(owner, liquidity)
            self.token0.transfer(self.address, owner, amount0)
            self.token1.transfer(self.address, owner, amount1)

            balance0, balance1 = self._balances()
            self._update(balance0, balance1, reserve0, reserve1)
            self._stage(Burn(owner, amount0, amount1, owner, liquidity))

        logger.info(f"Burn: {liquidity} shares from {owner.hex()[:8]} for ({amount0}, {amount1})")
        return amount0, amount1

    # ==========================================================================
    # SWAPS
    # ==========================================================================

    def swap(self, amount0_out: int, amount1_out: int, to, data: bytes = b'',
             sender: Optional[bytes] = None) -> tuple[int, int]:
        """
        Optimistic swap: send the requested outputs, then verify payment.

        Input is whatever arrived on top of the reserves, either before the
        call or during the `to.on_swap` callback (invoked only when `data`
        is non-empty). Returns the measured (amount0_in, amount1_in).
        """
        to_address = _address_of(to)
        with self._operation('swap'):
            if amount0_out < 0 or amount1_out < 0:
                raise InvalidAmount("Output amounts cannot be negative")
            if amount0_out == 0 and amount1_out == 0:
                raise InsufficientOutputAmount("No output requested")
            reserve0, reserve1, _ = self.get_reserves()
            if amount0_out >= reserve0 or amount1_out >= reserve1:
                raise InsufficientLiquidity("Output would drain a reserve")
            if to_address in (self.token0.token_id, self.token1.token_id):
                raise InvalidRecipient("Cannot send output to a pair asset")

            if amount0_out > 0:
                self.token0.transfer(self.address, to_address, amount0_out)
            if amount1_out > 0:
                self.token1.transfer(self.address, to_address, amount1_out)
            if data:
                on_swap = getattr(to, 'on_swap', None)
                if on_swap is None:
                    raise CallbackFailure("Recipient does not accept swap callbacks")
                on_swap(sender or to_address, amount0_out, amount1_out, data)

            balance0, balance1 = self._balances()
            amounts_in = self._settle_swap(
                amount0_out, amount1_out, balance0, balance1, reserve0, reserve1,
                sender or to_address, to_address,
            )

        logger.info(f"Swap: in {amounts_in} -> out ({amount0_out}, {amount1_out})")
        return amounts_in

    def swap_exact_input(self, sender: bytes, token_in, amount_in: int,
                         min_amount_out: int = 0, to: Optional[bytes] = None) -> int:
        """
        Pull `amount_in` of `token_in` from sender (who must have approved
        the pair) and pay out the constant product output.
        """
        to = to or sender
        with self._operation('swap_exact_input'):
            if amount_in <= 0:
                raise InsufficientInputAmount("Input amount must be positive")
            index_in = self._index_of(token_in)
            ledger_in, ledger_out = self._ledgers(index_in)
            reserve0, reserve1, _ = self.get_reserves()
            reserve_in, reserve_out = (reserve0, reserve1) if index_in == 0 else (reserve1, reserve0)
            if reserve_in == 0 or reserve_out == 0:
                raise InsufficientLiquidity("Empty pool")

            before = ledger_in.balance_of(self.address)
            ledger_in.transfer_from(self.address, sender, self.address, amount_in)
            received = ledger_in.balance_of(self.address) - before
            if received <= 0:
                raise InsufficientInputAmount("Nothing received")

            amount_out = get_amount_out(
                received, reserve_in, reserve_out,
                self.config.fee_numerator, self.config.fee_denominator,
            )
            if amount_out == 0:
                raise InsufficientOutputAmount("Input too small to buy anything")
            if amount_out <= min_amount_out:
                raise SwapDoesNotMeetMinimumOut(
                    f"Slippage: got {amount_out}, expected {min_amount_out}"
                )
            ledger_out.transfer(self.address, to, amount_out)

            amount0_out, amount1_out = (0, amount_out) if index_in == 0 else (amount_out, 0)
            balance0, balance1 = self._balances()
            self._settle_swap(
                amount0_out, amount1_out, balance0, balance1, reserve0, reserve1, sender, to,
            )

        logger.info(
            f"Swap: {received} {ledger_in.symbol} -> {amount_out} {ledger_out.symbol}"
        )
        return amount_out

    def _settle_swap(self, amount0_out: int, amount1_out: int, balance0: int, balance1: int,
                     reserve0: int, reserve1: int, sender: bytes, to: bytes) -> tuple[int, int]:
        """Measure inputs, enforce K, commit. Shared by every swap style."""
        amount0_in = balance0 - (reserve0 - amount0_out) if balance0 > reserve0 - amount0_out else 0
        amount1_in = balance1 - (reserve1 - amount1_out) if balance1 > reserve1 - amount1_out else 0
        if amount0_in == 0 and amount1_in == 0:
            raise InsufficientInputAmount("No input received")

        if not k_satisfied(balance0, balance1, amount0_in, amount1_in, reserve0, reserve1,
                           self.config.fee_numerator, self.config.fee_denominator):
            raise KInvariantViolation()

        self._update(balance0, balance1, reserve0, reserve1)
        self._stage(Swap(sender, amount0_in, amount1_in, amount0_out, amount1_out, to))
        return amount0_in, amount1_in

    # ==========================================================================
    # FLASH LOANS
    # ==========================================================================

    def flash_fee(self, amount: int) -> int:
        """Fee on a flash loan of `amount`. Rounds down."""
        return amount * self.config.flash_fee_bps // 10_000

    def flash_loan(self, receiver, token, amount: int, data: bytes = b'',
                   initiator: Optional[bytes] = None) -> int:
        """
        Lend `amount` of `token` to receiver for the duration of one callback.

        receiver.on_flash_loan(initiator, token_id, amount, fee, data) must
        return CALLBACK_SUCCESS and leave the pair approved to pull
        amount + fee. The fee stays in the reserves. Returns the fee.
        """
        receiver_address = _address_of(receiver)
        initiator = initiator or receiver_address
        with self._operation('flash_loan'):
            index = self._index_of(token)
            ledger, _ = self._ledgers(index)
            if amount <= 0:
                raise InvalidAmount("Loan amount must be positive")
            reserve0, reserve1, _ = self.get_reserves()
            if amount >= (reserve0, reserve1)[index]:
                raise InsufficientLiquidity("Loan exceeds reserve")

            fee = self.flash_fee(amount)
            ledger.transfer(self.address, receiver_address, amount)

            on_flash_loan = getattr(receiver, 'on_flash_loan', None)
            if on_flash_loan is None:
                raise FlashLoanFailed("Receiver does not implement on_flash_loan")
            result = on_flash_loan(initiator, ledger.token_id, amount, fee, data)
            if result != CALLBACK_SUCCESS:
                raise FlashLoanFailed("Callback did not return the success value")

            before = ledger.balance_of(self.address)
            try:
                ledger.transfer_from(self.address, receiver_address, self.address, amount + fee)
            except (InsufficientBalance, InsufficientAllowance) as e:
                raise FlashLoanNotRepaid(f"Could not collect {amount + fee}: {e}") from e
            repaid = ledger.balance_of(self.address) - before
            if repaid < amount + fee:
                raise FlashLoanNotRepaid(f"Repaid {repaid}, owed {amount + fee}")

            balance0, balance1 = self._balances()
            self._update(balance0, balance1, reserve0, reserve1)
            self._stage(FlashLoan(initiator, receiver_address, ledger.token_id, amount, fee))
            if self.metrics is not None:
                self.journal.defer(lambda: self.metrics.record_flash_fee(ledger.symbol, fee))

        logger.info(f"Flash loan: {amount} {ledger.symbol} to {receiver_address.hex()[:8]}, fee {fee}")
        return fee

    def flash_swap(self, receiver, token_out, amount_out: int, max_amount_in: int,
                   data: bytes = b'', initiator: Optional[bytes] = None) -> int:
        """
        Send `amount_out` of token_out first, then collect the other asset.

        receiver.on_flash_swap(initiator, token_in_id, amount_in, data) is told
        how much of the other asset it owes and must transfer it to the pair.
        The owed amount may not exceed max_amount_in. Returns amount_in.
        """
        receiver_address = _address_of(receiver)
        initiator = initiator or receiver_address
        with self._operation('flash_swap'):
            index_out = self._index_of(token_out)
            ledger_out, ledger_in = self._ledgers(index_out)
            reserve0, reserve1, _ = self.get_reserves()
            reserve_out, reserve_in = (reserve0, reserve1) if index_out == 0 else (reserve1, reserve0)

            amount_in = get_amount_in(
                amount_out, reserve_in, reserve_out,
                self.config.fee_numerator, self.config.fee_denominator,
            )
            if amount_in > max_amount_in:
                raise ExcessiveInputAmount(f"Owed {amount_in}, maximum {max_amount_in}")

            ledger_out.transfer(self.address, receiver_address, amount_out)
            on_flash_swap = getattr(receiver, 'on_flash_swap', None)
            if on_flash_swap is None:
                raise FlashLoanFailed("Receiver does not implement on_flash_swap")

            before = ledger_in.balance_of(self.address)
            on_flash_swap(initiator, ledger_in.token_id, amount_in, data)
            repaid = ledger_in.balance_of(self.address) - before
            if repaid < amount_in:
                raise FlashLoanNotRepaid(f"Repaid {repaid}, owed {amount_in}")
            if repaid > max_amount_in:
                raise ExcessiveInputAmount(f"Repaid {repaid}, maximum {max_amount_in}")

            amount0_out, amount1_out = (amount_out, 0) if index_out == 0 else (0, amount_out)
            balance0, balance1 = self._balances()
            self._settle_swap(
                amount0_out, amount1_out, balance0, balance1, reserve0, reserve1,
                initiator, receiver_address,
            )

        logger.info(
            f"Flash swap: {amount_out} {ledger_out.symbol} out, {repaid} {ledger_in.symbol} in"
        )
        return amount_in

    # ==========================================================================
    # RECONCILIATION
    # ==========================================================================

    def skim(self, to: bytes) -> tuple[int, int]:
        """Send balances above the reserves to `to`; reserves are unchanged."""
        with self._operation('skim'):
            reserve0, reserve1, _ = self.get_reserves()
            balance0, balance1 = self._balances()
            excess0 = max(balance0 - reserve0, 0)
            excess1 = max(balance1 - reserve1, 0)
            if excess0:
                self.token0.transfer(self.address, to, excess0)
            if excess1:
                self.token1.transfer(self.address, to, excess1)
        logger.info(f"Skim: ({excess0}, {excess1}) to {to.hex()[:8]}")
        return excess0, excess1

    def sync(self):
        """Force reserves to match balances."""
        with self._operation('sync'):
            reserve0, reserve1, _ = self.get_reserves()
            balance0, balance1 = self._balances()
            self._update(balance0, balance1, reserve0, reserve1)

    # ==========================================================================
    # INTERNALS
    # ==========================================================================

    def _update(self, balance0: int, balance1: int, reserve0: int, reserve1: int):
        """
        Commit new reserves, first accumulating prices from the previous ones.
        The timestamp wraps at 2**32.
        """
        if balance0 >= UINT112 or balance1 >= UINT112:
            raise ArithmeticOverflow("UniswapV2: OVERFLOW")
        previous = self.state.copy()
        self.journal.record(lambda: setattr(self, 'state', previous))

        block_timestamp = wrap32(self.clock())
        accumulate(self.state, reserve0, reserve1, block_timestamp)
        self.state.reserve0 = balance0
        self.state.reserve1 = balance1
        self.state.block_timestamp_last = block_timestamp
        self._stage(Sync(balance0, balance1))

    def _stage(self, event):
        self._staged.append(event)

    def _balances(self) -> tuple[int, int]:
        return self.token0.balance_of(self.address), self.token1.balance_of(self.address)

    def _index_of(self, token) -> int:
        token_id = token.token_id if hasattr(token, 'token_id') else token
        if token_id == self.token0.token_id:
            return 0
        if token_id == self.token1.token_id:
            return 1
        raise UnsupportedToken(f"Token {token_id!r} is not in this pair")

    def _ledgers(self, index: int) -> tuple[AssetLedger, AssetLedger]:
        """(ledger at index, the other ledger)."""
        return (self.token0, self.token1) if index == 0 else (self.token1, self.token0)

    @contextmanager
    def _operation(self, op: str):
        """
        Guarded, all-or-nothing execution of one entry point.

        The guard is taken before any balance is read. Everything the call
        changes, including what its callbacks do on other pairs sharing the
        journal, is reverted if it fails, and the error propagates.

        Events are staged per call and published once the outermost call
        has succeeded and released its guard, so a call nested in one that
        later fails publishes nothing.
        """
        staged = []
        with self.journal.scope():
            with self.guard.hold(op):
                started = time.perf_counter()
                self._staged = staged
                try:
                    yield
                except Exception as e:
                    logger.warning(f"{op} failed, rolling back: {e}")
                    self._record(op, 'failed', started)
                    raise
                finally:
                    self._staged = None
                self._record(op, 'ok', started)
            self.journal.defer(lambda: self._publish(staged))

    def _publish(self, staged: list):
        if self.metrics is not None:
            self.metrics.record_reserves(self.state.reserve0, self.state.reserve1, self.total_supply)
        self.events.publish(staged)

    def _record(self, op: str, status: str, started: float):
        if self.metrics is not None:
            self.metrics.record_operation(op, status, time.perf_counter() - started)

    def __repr__(self) -> str:
        return (
            f"Pair({self.token0.symbol}/{self.token1.symbol}, "
            f"reserves=({self.state.reserve0}, {self.state.reserve1}), "
            f"supply={self.total_supply})"
        )
