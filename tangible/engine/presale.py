"""
Capped, fixed-price presale with refund on failure.

Subscribers pay `amount * price` into engine escrow; no tax applies during
the presale. The call that fills the cap finalizes the presale: each
allocation is minted into the ShareLedger, the exchange moves to
PRESALE_FINISHED and the accumulated proceeds go to the owner. If the owner
terminates first, the exchange moves to PRESALE_FAILED and each subscriber
withdraws their own payment.
"""

import time
from typing import Callable, Optional

import structlog

from tangible.engine.ledger import ShareLedger
from tangible.engine.state_machine import ExchangeStateMachine
from tangible.events.models import ExchangeState, PresaleRecord
from tangible.exceptions import (
    InsufficientSharesError,
    InvalidAmountError,
    PresaleWindowError,
    StateError,
)
from tangible.settlement.payment import PaymentAsset

logger = structlog.get_logger()


class PresaleModule:
    """Presale subscription book of one exchange."""

    def __init__(self, ledger: ShareLedger, payments: PaymentAsset, escrow_account: str,
                 state_machine: ExchangeStateMachine,
                 clock: Callable[[], float] = time.time,
                 enforce_window: bool = False):
        self.ledger = ledger
        self.payments = payments
        self.escrow_account = escrow_account
        self.state_machine = state_machine
        self.clock = clock
        self.enforce_window = enforce_window
        self.record: Optional[PresaleRecord] = None

    @property
    def subscribed(self) -> int:
        return self.record.subscribed if self.record else 0

    def allocation_of(self, holder: str) -> int:
        if self.record is None:
            return 0
        return self.record.allocations.get(holder, 0)

    def open(self, target: int, decimals: int, price: int, start: int, end: int) -> PresaleRecord:
        """Establish the cap (`target` whole units scaled by `decimals`) and window."""
        if target <= 0:
            raise InvalidAmountError(f"Presale target must be positive: {target}")
        if price <= 0:
            raise InvalidAmountError(f"Presale price must be positive: {price}")
        if end < start:
            raise InvalidAmountError(f"Presale ends before it starts: {start} > {end}")

        self.record = PresaleRecord(
            target=target * 10 ** decimals,
            price=price,
            decimals=decimals,
            start=start,
            end=end
        )
        return self.record

    def purchase(self, caller: str, amount: int) -> bool:
        """
        Subscribe `amount` shares for `caller`.

        Returns:
            True if this purchase filled the cap and finalized the presale
        """
        record = self._require_record()
        if amount <= 0:
            raise InvalidAmountError(f"Amount must be positive: {amount}")
        if self.enforce_window and not record.is_open_at(self.clock()):
            raise PresaleWindowError()
        if amount > record.remaining():
            raise InsufficientSharesError("Not enough shares left in presale")
        cost = amount * record.price
        self.payments.require_pullable(caller, self.escrow_account, cost)

        if caller not in record.allocations:
            record.subscribers.append(caller)
            self.ledger.register(caller)
        record.allocations[caller] = record.allocations.get(caller, 0) + amount
        record.payments[caller] = record.payments.get(caller, 0) + cost
        record.subscribed += amount

        proceeds = 0
        finalized = record.is_full()
        if finalized:
            proceeds = self._finalize(record)

        self.payments.transfer_from(self.escrow_account, caller, self.escrow_account, cost)
        if proceeds:
            self.payments.transfer(self.escrow_account, self.state_machine.owner, proceeds)
        return finalized

    def _finalize(self, record: PresaleRecord) -> int:
        for holder in record.subscribers:
            self.ledger.mint(holder, record.allocations[holder])
        self.state_machine.transition(ExchangeState.PRESALE_FINISHED)
        proceeds = record.proceeds()
        self.record = None
        logger.info("presale_finalized", supply=self.ledger.total_supply,
                    subscribers=len(record.subscribers), proceeds=proceeds)
        return proceeds

    def fail(self) -> None:
        """Open the refund path after early termination."""
        record = self._require_record()
        record.refundable = True
        self.state_machine.transition(ExchangeState.PRESALE_FAILED)
        logger.info("presale_failed", subscribed=record.subscribed, target=record.target,
                    subscribers=len(record.subscribers))

    def withdraw(self, caller: str) -> int:
        """Refund `caller`'s full presale payment and zero their allocation."""
        record = self.record
        if record is not None and not record.refundable:
            raise StateError()
        refund = record.payments.get(caller, 0) if record else 0
        if refund == 0:
            raise InsufficientSharesError("No presale allocation")

        record.subscribed -= record.allocations.pop(caller)
        del record.payments[caller]
        record.subscribers.remove(caller)
        self.ledger.deregister(caller)
        if not record.payments:
            self.record = None

        self.payments.transfer(self.escrow_account, caller, refund)
        return refund

    def _require_record(self) -> PresaleRecord:
        if self.record is None:
            raise StateError()
        return self.record
