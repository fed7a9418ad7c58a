"""
Fungible settlement ledger with allowance-based pull transfers.

Every trade, escrow and presale payment settles through a PaymentAsset.
The exchange never moves a holder's value directly; the holder approves the
exchange account first and the exchange pulls with `transfer_from`.
"""

from typing import Dict, Tuple

import structlog

from tangible.exceptions import (
    InsufficientAllowanceError,
    InsufficientBalanceError,
    InvalidAmountError,
)

logger = structlog.get_logger()


class PaymentAsset:
    """In-process fungible token ledger (approve / transfer / transfer_from)."""

    def __init__(self, symbol: str = "PAY"):
        self.symbol = symbol
        self.total_supply = 0
        self._balances: Dict[str, int] = {}
        self._allowances: Dict[Tuple[str, str], int] = {}

    def mint(self, holder: str, amount: int) -> None:
        """Create `amount` units for `holder`."""
        _require_non_negative(amount)
        self._balances[holder] = self._balances.get(holder, 0) + amount
        self.total_supply += amount

    def balance_of(self, holder: str) -> int:
        return self._balances.get(holder, 0)

    def allowance(self, owner: str, spender: str) -> int:
        return self._allowances.get((owner, spender), 0)

    def approve(self, owner: str, spender: str, amount: int) -> None:
        """Set the amount `spender` may pull from `owner` (replaces, not adds)."""
        _require_non_negative(amount)
        self._allowances[(owner, spender)] = amount
        logger.debug("allowance_set", asset=self.symbol, owner=owner,
                     spender=spender, amount=amount)

    def require_balance(self, holder: str, amount: int) -> None:
        """Raise if `holder` cannot send `amount`."""
        if self.balance_of(holder) < amount:
            raise InsufficientBalanceError(
                f"{holder} balance {self.balance_of(holder)} below {amount}"
            )

    def require_pullable(self, owner: str, spender: str, amount: int) -> None:
        """Raise if `spender` cannot pull `amount` from `owner` right now."""
        if self.allowance(owner, spender) < amount:
            raise InsufficientAllowanceError(
                f"Allowance {self.allowance(owner, spender)} below {amount}"
            )
        self.require_balance(owner, amount)

    def transfer(self, sender: str, to: str, amount: int) -> None:
        """Move `amount` from `sender` to `to`."""
        _require_non_negative(amount)
        self.require_balance(sender, amount)
        self._move(sender, to, amount)

    def transfer_from(self, spender: str, owner: str, to: str, amount: int) -> None:
        """Pull `amount` from `owner` to `to`, consuming `spender`'s allowance."""
        _require_non_negative(amount)
        self.require_pullable(owner, spender, amount)
        self._allowances[(owner, spender)] -= amount
        self._move(owner, to, amount)

    def _move(self, sender: str, to: str, amount: int) -> None:
        self._balances[sender] -= amount
        self._balances[to] = self._balances.get(to, 0) + amount


def _require_non_negative(amount: int) -> None:
    if amount < 0:
        raise InvalidAmountError(f"Amount must not be negative: {amount}")
