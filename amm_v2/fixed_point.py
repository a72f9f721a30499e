"""
Fixed-point and modular arithmetic for reserves and price accumulators.

Prices are UQ112x112: a 224-bit unsigned value with 112 integer bits and
112 fractional bits. Timestamps live in 32 bits and accumulators in 256 bits;
both wrap, and consumers must subtract them with the helpers below.
"""
import math
from decimal import Decimal, localcontext

RESOLUTION = 112
Q112 = 1 << RESOLUTION
UINT32 = 1 << 32
UINT112 = 1 << 112
UINT256 = 1 << 256


def encode(y: int) -> int:
    """Encode a uint112 as UQ112x112."""
    if not 0 <= y < UINT112:
        raise ValueError(f"value {y} does not fit in 112 bits")
    return y * Q112


def uqdiv(x: int, y: int) -> int:
    """Divide a UQ112x112 by a uint112, returning UQ112x112."""
    if y == 0:
        raise ZeroDivisionError("uqdiv by zero")
    return x // y


def decode(x: int) -> Decimal:
    """Decode a UQ112x112 into a Decimal for display."""
    with localcontext() as ctx:
        ctx.prec = 80
        return Decimal(x) / Decimal(Q112)


def wrap32(value: int) -> int:
    return value % UINT32


def wrap256(value: int) -> int:
    return value % UINT256


def sub32(later: int, earlier: int) -> int:
    """Elapsed time between two wrapped 32-bit timestamps."""
    return (later - earlier) % UINT32


def sub256(later: int, earlier: int) -> int:
    """Difference between two wrapped 256-bit accumulator readings."""
    return (later - earlier) % UINT256


def sqrt(y: int) -> int:
    """Floor of the square root of a non-negative integer."""
    return math.isqrt(y)


def ceil_div(a: int, b: int) -> int:
    return -(-a // b)
