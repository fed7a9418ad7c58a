"""
Secondary value path used only for platform fees.

Royalties and issue fees travel here and never touch the PaymentAsset, so
trade settlement and platform fees stay two separate accounting paths.
"""

from typing import Dict

import structlog

from tangible.exceptions import InsufficientBalanceError, InvalidAmountError

logger = structlog.get_logger()


class SideChannel:
    """Native-value balances keyed by account."""

    def __init__(self):
        self._balances: Dict[str, int] = {}

    def deposit(self, holder: str, amount: int) -> None:
        if amount < 0:
            raise InvalidAmountError(f"Amount must not be negative: {amount}")
        self._balances[holder] = self._balances.get(holder, 0) + amount

    def balance_of(self, holder: str) -> int:
        return self._balances.get(holder, 0)

    def require_balance(self, holder: str, amount: int) -> None:
        if self.balance_of(holder) < amount:
            raise InsufficientBalanceError(
                f"{holder} side-channel balance {self.balance_of(holder)} below {amount}"
            )

    def send(self, sender: str, to: str, amount: int) -> None:
        """Move `amount` of native value from `sender` to `to`."""
        if amount < 0:
            raise InvalidAmountError(f"Amount must not be negative: {amount}")
        self.require_balance(sender, amount)
        self._balances[sender] -= amount
        self._balances[to] = self._balances.get(to, 0) + amount
        logger.debug("side_channel_sent", sender=sender, to=to, amount=amount)
