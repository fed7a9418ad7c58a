"""
Share ledger for a single exchange instance.

Tracks two buckets per holder:
- free: transferable and sellable
- escrowed: locked in the holder's own resting sell order

Conservation holds after every call:
    sum(free) + sum(escrowed) == total_supply
"""

from typing import Dict, List

from tangible.exceptions import InsufficientSharesError, InvalidAmountError


class ShareLedger:
    """Balances, encumbrance and total supply of one share issue."""

    def __init__(self):
        self.total_supply = 0
        self._free: Dict[str, int] = {}
        self._escrowed: Dict[str, int] = {}
        self._shareholders: List[str] = []

    def balance_of(self, holder: str) -> int:
        """Free balance only; escrowed shares are excluded."""
        return self._free.get(holder, 0)

    def escrowed_of(self, holder: str) -> int:
        return self._escrowed.get(holder, 0)

    def total_escrowed(self) -> int:
        return sum(self._escrowed.values())

    def is_conserved(self) -> bool:
        return sum(self._free.values()) + self.total_escrowed() == self.total_supply

    def shareholders(self) -> List[str]:
        """Holders in the order they first received or subscribed to shares."""
        return list(self._shareholders)

    def register(self, holder: str) -> None:
        if holder not in self._shareholders:
            self._shareholders.append(holder)

    def deregister(self, holder: str) -> None:
        if holder in self._shareholders and not self._holds_any(holder):
            self._shareholders.remove(holder)

    def mint(self, to: str, amount: int) -> None:
        """Issue new shares. Used only by initialization and presale finalization."""
        _require_positive(amount)
        self._credit(self._free, to, amount)
        self.total_supply += amount
        self.register(to)

    def escrow(self, holder: str, amount: int) -> None:
        """Lock `amount` free shares for a sell order."""
        _require_positive(amount)
        self._require_free(holder, amount)
        self._debit(self._free, holder, amount)
        self._credit(self._escrowed, holder, amount)

    def release(self, holder: str, amount: int) -> None:
        """Unlock `amount` escrowed shares back to the free balance."""
        _require_positive(amount)
        self._require_escrowed(holder, amount)
        self._debit(self._escrowed, holder, amount)
        self._credit(self._free, holder, amount)

    def move_escrowed(self, from_holder: str, to: str, amount: int) -> None:
        """Deliver escrowed shares of `from_holder` into the free balance of `to`."""
        _require_positive(amount)
        self._require_escrowed(from_holder, amount)
        self._debit(self._escrowed, from_holder, amount)
        self._credit(self._free, to, amount)
        self.register(to)

    def move_free(self, from_holder: str, to: str, amount: int) -> None:
        """Move free shares between holders."""
        _require_positive(amount)
        self._require_free(from_holder, amount)
        self._debit(self._free, from_holder, amount)
        self._credit(self._free, to, amount)
        self.register(to)

    def _require_free(self, holder: str, amount: int) -> None:
        if self.balance_of(holder) < amount:
            raise InsufficientSharesError()

    def _require_escrowed(self, holder: str, amount: int) -> None:
        if self.escrowed_of(holder) < amount:
            raise InsufficientSharesError()

    def _holds_any(self, holder: str) -> bool:
        return self.balance_of(holder) > 0 or self.escrowed_of(holder) > 0

    @staticmethod
    def _credit(bucket: Dict[str, int], holder: str, amount: int) -> None:
        bucket[holder] = bucket.get(holder, 0) + amount

    @staticmethod
    def _debit(bucket: Dict[str, int], holder: str, amount: int) -> None:
        remaining = bucket[holder] - amount
        # Empty entries are dropped so views never list zero balances
        if remaining == 0:
            del bucket[holder]
        else:
            bucket[holder] = remaining


def _require_positive(amount: int) -> None:
    if amount <= 0:
        raise InvalidAmountError(f"Amount must be positive: {amount}")
