"""
Cumulative price accumulator and TWAP helpers.

Each pair keeps price0_cumulative_last and price1_cumulative_last: the sum
over time of the UQ112x112 spot price, weighted by seconds elapsed. A
consumer records two observations and divides the accumulator difference by
the time difference to get a time-weighted average price.

Both values wrap: timestamps modulo 2**32, accumulators modulo 2**256.
Differences MUST be taken with sub32/sub256; plain subtraction goes wrong
across a wrap.
"""
import logging
from dataclasses import dataclass
from decimal import Decimal

from amm_v2.fixed_point import decode, encode, sub32, sub256, uqdiv, wrap32, wrap256
from amm_v2.pool_state import PoolState

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Observation:
    """Accumulator reading at a wrapped 32-bit timestamp."""
    timestamp: int
    price0_cumulative: int
    price1_cumulative: int


def accumulate(state: PoolState, reserve0: int, reserve1: int, block_timestamp: int) -> int:
    """
    Advance the accumulators of `state` to `block_timestamp`.

    reserve0/reserve1 are the reserves that held since the last update; the
    accumulator never sees the price produced by the operation in progress.
    Returns the elapsed seconds. Nothing is added when no time has passed or
    either reserve is empty. The timestamp itself is left for the caller.
    """
    block_timestamp = wrap32(block_timestamp)
    elapsed = sub32(block_timestamp, state.block_timestamp_last)
    if elapsed > 0 and reserve0 != 0 and reserve1 != 0:
        state.price0_cumulative_last = wrap256(
            state.price0_cumulative_last + uqdiv(encode(reserve1), reserve0) * elapsed
        )
        state.price1_cumulative_last = wrap256(
            state.price1_cumulative_last + uqdiv(encode(reserve0), reserve1) * elapsed
        )
        logger.debug(f"Accumulated {elapsed}s at reserves ({reserve0}, {reserve1})")
    return elapsed


def observe(state: PoolState, now: int) -> Observation:
    """
    Accumulator values as they would read at `now`, without writing.

    Extrapolates from the stored reserves when the pair has not been touched
    since its last update, so a consumer does not need to call sync().
    """
    projected = state.copy()
    accumulate(projected, state.reserve0, state.reserve1, now)
    return Observation(
        timestamp=wrap32(now),
        price0_cumulative=projected.price0_cumulative_last,
        price1_cumulative=projected.price1_cumulative_last,
    )


def consult(earlier: Observation, later: Observation) -> tuple[int, int]:
    """
    Average prices between two observations, as UQ112x112.

    Returns (price0_average, price1_average): token0 priced in token1 and
    token1 priced in token0.
    """
    elapsed = sub32(later.timestamp, earlier.timestamp)
    if elapsed == 0:
        raise ValueError("Observations share a timestamp; no period elapsed")
    price0_average = sub256(later.price0_cumulative, earlier.price0_cumulative) // elapsed
    price1_average = sub256(later.price1_cumulative, earlier.price1_cumulative) // elapsed
    return price0_average, price1_average


def to_decimal(price: int) -> Decimal:
    """Decode a UQ112x112 average for display."""
    return decode(price)
