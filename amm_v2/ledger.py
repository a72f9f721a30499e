"""
In-process token ledgers.

The pair never trusts amounts a caller declares: it reads balance_of before
and after every transfer. These ledgers are the collaborators it reads from.
AssetLedger models one fungible asset with allowances; ShareLedger is the
plain mint/burn/transfer book the pair uses for LP shares.

Every write goes through the journal, so a failed pair operation reverts
exactly the movements it caused and nothing else.
"""
import logging
from collections import defaultdict
from typing import Callable, Optional

from amm_v2.errors import InsufficientAllowance, InsufficientBalance, InvalidAmount
from amm_v2.journal import JOURNAL, Journal

logger = logging.getLogger(__name__)

ZERO_ADDRESS = b'\x00' * 20


class Ledger:
    """Balance book with mint, burn and transfer."""

    def __init__(self, token_id: bytes, symbol: str = "", journal: Optional[Journal] = None):
        self.token_id = token_id
        self.symbol = symbol or token_id.hex()[:8]
        self.journal = journal or JOURNAL
        self.balances = defaultdict(int)
        self.total_supply = 0

    def balance_of(self, holder: bytes) -> int:
        return self.balances.get(holder, 0)

    def mint(self, to: bytes, amount: int):
        self._check_amount(amount)
        self._set_balance(to, self.balance_of(to) + amount)
        self._set_supply(self.total_supply + amount)

    def burn(self, holder: bytes, amount: int):
        self._check_amount(amount)
        if self.balance_of(holder) < amount:
            raise InsufficientBalance(
                f"{self.symbol}: burn of {amount} exceeds balance {self.balance_of(holder)}"
            )
        self._set_balance(holder, self.balance_of(holder) - amount)
        self._set_supply(self.total_supply - amount)

    def transfer(self, sender: bytes, to: bytes, amount: int) -> bool:
        self._move(sender, to, amount)
        return True

    def _move(self, sender: bytes, to: bytes, amount: int):
        self._check_amount(amount)
        if self.balance_of(sender) < amount:
            raise InsufficientBalance(
                f"{self.symbol}: transfer of {amount} exceeds balance {self.balance_of(sender)}"
            )
        self._set_balance(sender, self.balance_of(sender) - amount)
        self._set_balance(to, self.balance_of(to) + amount)

    def _set_balance(self, holder: bytes, value: int):
        previous = self.balance_of(holder)
        self.journal.record(lambda: self.balances.__setitem__(holder, previous))
        self.balances[holder] = value

    def _set_supply(self, value: int):
        previous = self.total_supply
        self.journal.record(lambda: setattr(self, 'total_supply', previous))
        self.total_supply = value

    def _check_amount(self, amount: int):
        if not isinstance(amount, int) or amount < 0:
            raise InvalidAmount(f"{self.symbol}: invalid amount {amount!r}")

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.symbol}, supply={self.total_supply})"


class ShareLedger(Ledger):
    """LP share book. Shares sent to ZERO_ADDRESS can never move again."""

    def transfer(self, sender: bytes, to: bytes, amount: int) -> bool:
        if sender == ZERO_ADDRESS:
            raise InsufficientBalance("locked shares cannot be transferred")
        return super().transfer(sender, to, amount)

    def burn(self, holder: bytes, amount: int):
        if holder == ZERO_ADDRESS:
            raise InsufficientBalance("locked shares cannot be burned")
        super().burn(holder, amount)


class AssetLedger(Ledger):
    """
    A fungible asset with ERC-20 style allowances.

    on_transfer, when set, is called as on_transfer(sender, to, amount) after
    every successful movement. It lets tests model tokens that call back
    into their holders.
    """

    def __init__(self, token_id: bytes, symbol: str = "",
                 on_transfer: Optional[Callable[[bytes, bytes, int], None]] = None,
                 journal: Optional[Journal] = None):
        super().__init__(token_id, symbol, journal)
        self.allowances = defaultdict(int)  # (owner, spender) -> amount
        self.on_transfer = on_transfer

    def approve(self, owner: bytes, spender: bytes, amount: int) -> bool:
        self._check_amount(amount)
        self._set_allowance(owner, spender, amount)
        return True

    def allowance(self, owner: bytes, spender: bytes) -> int:
        return self.allowances.get((owner, spender), 0)

    def transfer(self, sender: bytes, to: bytes, amount: int) -> bool:
        delivered = self._deliver(sender, to, amount)
        self._notify(sender, to, delivered)
        return True

    def transfer_from(self, spender: bytes, holder: bytes, to: bytes, amount: int) -> bool:
        if spender != holder:
            allowed = self.allowance(holder, spender)
            if allowed < amount:
                raise InsufficientAllowance(
                    f"{self.symbol}: allowance {allowed} below {amount}"
                )
            self._set_allowance(holder, spender, allowed - amount)
        delivered = self._deliver(holder, to, amount)
        self._notify(holder, to, delivered)
        return True

    def _set_allowance(self, owner: bytes, spender: bytes, value: int):
        key = (owner, spender)
        previous = self.allowance(owner, spender)
        self.journal.record(lambda: self.allowances.__setitem__(key, previous))
        self.allowances[key] = value

    def _deliver(self, sender: bytes, to: bytes, amount: int) -> int:
        self._move(sender, to, amount)
        return amount

    def _notify(self, sender: bytes, to: bytes, amount: int):
        if self.on_transfer is not None:
            self.on_transfer(sender, to, amount)


class FeeOnTransferLedger(AssetLedger):
    """
    Asset that burns a fee on every transfer, so the receiver gets less
    than the sender sent.
    """

    def __init__(self, token_id: bytes, symbol: str = "", fee_bps: int = 100, **kwargs):
        super().__init__(token_id, symbol, **kwargs)
        self.fee_bps = fee_bps

    def _deliver(self, sender: bytes, to: bytes, amount: int) -> int:
        fee = amount * self.fee_bps // 10_000
        self._move(sender, to, amount)
        if fee:
            self._set_balance(to, self.balance_of(to) - fee)
            self._set_supply(self.total_supply - fee)
            logger.debug(f"{self.symbol}: burned transfer fee {fee}")
        return amount - fee
