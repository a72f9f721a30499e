"""
Exception hierarchy for pair operations.

Every mutating pair call either commits fully or raises one of these with
no state change left behind.
"""


class PoolError(Exception):
    """Base class for all pair failures."""
    pass


# ==============================================================================
# VALIDATION
# ==============================================================================

class ValidationError(PoolError):
    """Raised when call parameters or measured amounts are unacceptable."""
    pass


class IdenticalAddresses(ValidationError):
    pass


class ZeroAddress(ValidationError):
    pass


class UnsupportedToken(ValidationError):
    """Token is not one of the pair's two assets."""
    pass


class InvalidRecipient(ValidationError):
    pass


class InvalidAmount(ValidationError):
    pass


class InsufficientOutputAmount(ValidationError):
    pass


class InsufficientInputAmount(ValidationError):
    pass


class ExcessiveInputAmount(ValidationError):
    """Flash swap repayment would exceed the caller's maximum."""
    pass


class SwapDoesNotMeetMinimumOut(ValidationError):
    pass


class MinimumLiquidity(ValidationError):
    """Genesis deposit does not clear the locked minimum liquidity."""
    pass


class InsufficientLiquidityMinted(ValidationError):
    pass


class InsufficientLiquidityBurned(ValidationError):
    pass


class InsufficientShares(ValidationError):
    pass


class InsufficientBalance(ValidationError):
    """Raised by ledgers when a holder cannot cover a transfer."""
    pass


class InsufficientAllowance(ValidationError):
    pass


# ==============================================================================
# INVARIANTS
# ==============================================================================

class InvariantViolation(PoolError):
    """Raised when a state transition would break a pool invariant."""
    pass


class InsufficientLiquidity(InvariantViolation):
    """Requested output would drain (or exceed) a reserve."""
    pass


class KInvariantViolation(InvariantViolation):
    def __init__(self, message: str = "UniswapV2: K"):
        super().__init__(message)


class ArithmeticOverflow(InvariantViolation):
    """A balance does not fit the 112-bit reserve slot."""
    pass


# ==============================================================================
# CALLBACKS
# ==============================================================================

class CallbackFailure(PoolError):
    """Raised when an external callback misbehaves."""
    pass


class FlashLoanFailed(CallbackFailure):
    pass


class FlashLoanNotRepaid(CallbackFailure):
    pass


# ==============================================================================
# CONCURRENCY
# ==============================================================================

class ReentrancyError(PoolError):
    """Raised when a guarded operation is entered while the guard is held."""
    pass
