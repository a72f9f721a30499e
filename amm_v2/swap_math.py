"""
Constant product pricing.

Formula: (x + Δx * 0.997) * (y - Δy) = x * y
All arithmetic is integer; results round in favour of the pool.
"""
from amm_v2.errors import InsufficientInputAmount, InsufficientLiquidity, InsufficientOutputAmount

FEE_NUMERATOR = 997  # Keep 99.7% of input
FEE_DENOMINATOR = 1000


def quote(amount_a: int, reserve_a: int, reserve_b: int) -> int:
    """Amount of B equal in value to amount_a of A at the current ratio."""
    if amount_a <= 0:
        raise InsufficientInputAmount("Quote amount must be positive")
    if reserve_a <= 0 or reserve_b <= 0:
        raise InsufficientLiquidity("Empty pool")
    return amount_a * reserve_b // reserve_a


def get_amount_out(amount_in: int, reserve_in: int, reserve_out: int,
                   fee_numerator: int = FEE_NUMERATOR,
                   fee_denominator: int = FEE_DENOMINATOR) -> int:
    """
    Output for an exact input.

    Solving for Δy: Δy = (y * Δx * 0.997) / (x + Δx * 0.997)

    Args:
        amount_in: Amount of the input asset actually received
        reserve_in: Reserve of the input asset before the trade
        reserve_out: Reserve of the output asset before the trade

    Returns:
        Amount of output asset (rounded down)
    """
    if amount_in <= 0:
        raise InsufficientInputAmount("Input amount must be positive")
    if reserve_in <= 0 or reserve_out <= 0:
        raise InsufficientLiquidity("Empty pool")
    amount_in_with_fee = amount_in * fee_numerator
    numerator = amount_in_with_fee * reserve_out
    denominator = reserve_in * fee_denominator + amount_in_with_fee
    return numerator // denominator


def get_amount_in(amount_out: int, reserve_in: int, reserve_out: int,
                  fee_numerator: int = FEE_NUMERATOR,
                  fee_denominator: int = FEE_DENOMINATOR) -> int:
    """
    Input required to receive an exact output (rounded up).
    """
    if amount_out <= 0:
        raise InsufficientOutputAmount("Output amount must be positive")
    if reserve_in <= 0 or reserve_out <= 0:
        raise InsufficientLiquidity("Empty pool")
    if amount_out >= reserve_out:
        raise InsufficientLiquidity(
            f"Output {amount_out} would drain reserve {reserve_out}"
        )
    numerator = reserve_in * amount_out * fee_denominator
    denominator = (reserve_out - amount_out) * fee_numerator
    return numerator // denominator + 1


def k_satisfied(balance0: int, balance1: int, amount0_in: int, amount1_in: int,
                reserve0: int, reserve1: int,
                fee_numerator: int = FEE_NUMERATOR,
                fee_denominator: int = FEE_DENOMINATOR) -> bool:
    """
    Fee-adjusted invariant check, scaled to avoid fractions:

        (b0*D - in0*(D-N)) * (b1*D - in1*(D-N)) >= r0 * r1 * D**2
    """
    fee = fee_denominator - fee_numerator
    balance0_adjusted = balance0 * fee_denominator - amount0_in * fee
    balance1_adjusted = balance1 * fee_denominator - amount1_in * fee
    return balance0_adjusted * balance1_adjusted >= reserve0 * reserve1 * fee_denominator ** 2
