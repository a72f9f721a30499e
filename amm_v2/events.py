"""
Pair notifications.

Events are observational: nothing in the pair reads them back. A pair
stages events while an operation runs and publishes them only once the
operation has committed, in the order they were staged. A rolled-back
operation publishes nothing.
"""
import logging
from dataclasses import dataclass, asdict
from typing import Callable

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Mint:
    sender: bytes
    amount0: int
    amount1: int
    to: bytes
    liquidity: int


@dataclass(frozen=True)
class Burn:
    sender: bytes
    amount0: int
    amount1: int
    to: bytes
    liquidity: int


@dataclass(frozen=True)
class Swap:
    sender: bytes
    amount0_in: int
    amount1_in: int
    amount0_out: int
    amount1_out: int
    to: bytes


@dataclass(frozen=True)
class Sync:
    reserve0: int
    reserve1: int


@dataclass(frozen=True)
class FlashLoan:
    initiator: bytes
    receiver: bytes
    token: bytes
    amount: int
    fee: int


class EventLog:
    """Ordered sink for committed pair events. Several pairs may share one."""

    def __init__(self):
        self.history = []
        self._subscribers = []

    def subscribe(self, callback: Callable[[object], None]):
        self._subscribers.append(callback)

    def publish(self, events: list):
        for event in events:
            self.history.append(event)
            logger.debug(f"{type(event).__name__} {asdict(event)}")
            for callback in self._subscribers:
                callback(event)

    def of_type(self, event_type) -> list:
        return [e for e in self.history if isinstance(e, event_type)]
