"""
Constant-product AMM pair engine.
"""
from amm_v2.errors import PoolError, ValidationError, InvariantViolation, CallbackFailure, ReentrancyError
from amm_v2.pair import Pair, MINIMUM_LIQUIDITY
from amm_v2.ledger import AssetLedger, ShareLedger
from amm_v2.journal import JOURNAL, Journal

__all__ = [
    'Pair',
    'MINIMUM_LIQUIDITY',
    'AssetLedger',
    'ShareLedger',
    'Journal',
    'JOURNAL',
    'PoolError',
    'ValidationError',
    'InvariantViolation',
    'CallbackFailure',
    'ReentrancyError',
]
