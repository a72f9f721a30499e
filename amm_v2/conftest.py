"""
Shared fixtures for pair tests.
"""
import pytest

from amm_v2.ledger import AssetLedger
from amm_v2.pair import Pair

ALICE = b'\x00' * 19 + b'\xa1'
BOB = b'\x00' * 19 + b'\xb0'
CAROL = b'\x00' * 19 + b'\xc0'

TOKEN0_ID = b'\x00' * 19 + b'\x10'
TOKEN1_ID = b'\x00' * 19 + b'\x11'

START_BALANCE = 10 ** 24
START_TIME = 1_700_000_000


class Clock:
    """Settable time source for deterministic accumulator tests."""

    def __init__(self, now: int = START_TIME):
        self.now = now

    def __call__(self) -> int:
        return self.now

    def advance(self, seconds: int):
        self.now += seconds


@pytest.fixture
def clock():
    return Clock()


@pytest.fixture
def tokens():
    """Two assets with ALICE and BOB funded."""
    token0 = AssetLedger(TOKEN0_ID, 'TKA')
    token1 = AssetLedger(TOKEN1_ID, 'TKB')
    for token in (token0, token1):
        token.mint(ALICE, START_BALANCE)
        token.mint(BOB, START_BALANCE)
    return token0, token1


@pytest.fixture
def pair(tokens, clock):
    return Pair(tokens[0], tokens[1], clock=clock)


@pytest.fixture
def add_liquidity():
    """Deposit both assets and mint, the way a router would."""
    def _add(pair, provider, amount0, amount1):
        pair.token0.transfer(provider, pair.address, amount0)
        pair.token1.transfer(provider, pair.address, amount1)
        return pair.mint(provider)
    return _add


@pytest.fixture
def pool_1m(pair, add_liquidity):
    """1,000,000 : 1,000,000 pool seeded by ALICE."""
    add_liquidity(pair, ALICE, 1_000_000, 1_000_000)
    return pair


@pytest.fixture
def pool_1k(pair, add_liquidity):
    """
    1000 : 1000 pool. A genesis deposit that small cannot clear the locked
    minimum, so seed 2000 : 2000 and withdraw half.
    """
    add_liquidity(pair, ALICE, 2000, 2000)
    pair.burn(ALICE, 1000)
    return pair
