"""
Pair reserve state.
Implements the storage half of the constant product pool: x * y = k
"""
from decimal import Decimal

import msgpack

from amm_v2.fixed_point import UINT32, UINT112, UINT256


def _pack_uint256(value: int) -> bytes:
    return value.to_bytes(32, 'big')


def _unpack_uint256(raw: bytes) -> int:
    return int.from_bytes(raw, 'big')


class PoolState:
    """
    Represents the reserve and accumulator state held by a pair.

    Reserves are the last recorded balances, not live ones; the difference
    between a ledger balance and its reserve is what the pair treats as
    incoming for the current operation.
    """

    def __init__(self, data: dict = None):
        """
        Initialize pool state.

        Args:
            data: Dict with reserves, timestamp and cumulative prices
        """
        if data is None:
            data = {
                'reserve0': 0,
                'reserve1': 0,
                'block_timestamp_last': 0,
                'price0_cumulative_last': 0,
                'price1_cumulative_last': 0,
            }

        self.reserve0 = int(data['reserve0'])
        self.reserve1 = int(data['reserve1'])
        self.block_timestamp_last = int(data['block_timestamp_last'])
        self.price0_cumulative_last = int(data['price0_cumulative_last'])
        self.price1_cumulative_last = int(data['price1_cumulative_last'])
        self._validate()

    def to_dict(self) -> dict:
        """
        Convert to dict for storage.
        """
        return {
            'reserve0': self.reserve0,
            'reserve1': self.reserve1,
            'block_timestamp_last': self.block_timestamp_last,
            'price0_cumulative_last': self.price0_cumulative_last,
            'price1_cumulative_last': self.price1_cumulative_last,
        }

    def to_bytes(self) -> bytes:
        """
        Serialize with msgpack. The 256-bit accumulators do not fit msgpack
        integers and are stored as 32-byte big-endian binary.
        """
        return msgpack.packb({
            'reserve0': _pack_uint256(self.reserve0),
            'reserve1': _pack_uint256(self.reserve1),
            'block_timestamp_last': self.block_timestamp_last,
            'price0_cumulative_last': _pack_uint256(self.price0_cumulative_last),
            'price1_cumulative_last': _pack_uint256(self.price1_cumulative_last),
        }, use_bin_type=True)

    @classmethod
    def from_bytes(cls, raw: bytes) -> 'PoolState':
        data = msgpack.unpackb(raw, raw=False)
        return cls({
            'reserve0': _unpack_uint256(data['reserve0']),
            'reserve1': _unpack_uint256(data['reserve1']),
            'block_timestamp_last': data['block_timestamp_last'],
            'price0_cumulative_last': _unpack_uint256(data['price0_cumulative_last']),
            'price1_cumulative_last': _unpack_uint256(data['price1_cumulative_last']),
        })

    def copy(self) -> 'PoolState':
        return PoolState(self.to_dict())

    @property
    def k(self) -> int:
        return self.reserve0 * self.reserve1

    @property
    def current_price(self) -> Decimal:
        """
        Spot price of token0 in units of token1.

        Price = reserve1 / reserve0
        """
        if self.reserve0 == 0:
            return Decimal(0)
        return Decimal(self.reserve1) / Decimal(self.reserve0)

    def _validate(self):
        """Ensure state is within its storage bounds."""
        if not (0 <= self.reserve0 < UINT112 and 0 <= self.reserve1 < UINT112):
            raise ValueError("Reserves must fit in 112 bits")
        if not 0 <= self.block_timestamp_last < UINT32:
            raise ValueError("Timestamp must fit in 32 bits")
        if not (0 <= self.price0_cumulative_last < UINT256
                and 0 <= self.price1_cumulative_last < UINT256):
            raise ValueError("Cumulative prices must fit in 256 bits")

    def __eq__(self, other) -> bool:
        if not isinstance(other, PoolState):
            return NotImplemented
        return self.to_dict() == other.to_dict()

    def __repr__(self) -> str:
        """String representation for debugging."""
        return (
            f"PoolState("
            f"reserve0={self.reserve0}, "
            f"reserve1={self.reserve1}, "
            f"ts={self.block_timestamp_last}, "
            f"price={self.current_price})"
        )
