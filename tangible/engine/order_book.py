"""
Single-order-per-holder resting order book with escrow.

Unlike a price-time priority book, nothing matches automatically. A holder
posts at most one order; any other holder settles against it with `accept`,
wholly or partially, at the order's fixed price.

Escrow:
- Sell orders lock `amount` shares in the ShareLedger
- Buy orders lock `amount * price` plus tax in the settlement asset,
  held by the exchange account

Each operation validates first, mutates the book and ledger next, and only
then moves settlement value.
"""

from datetime import datetime
from typing import Dict, List, Optional

import structlog

from tangible.engine.fees import FeePolicy
from tangible.engine.ledger import ShareLedger
from tangible.events.models import Order, OrderSide, Trade
from tangible.exceptions import (
    ActiveOrderExistsError,
    InsufficientSharesError,
    InvalidAmountError,
    OrderNotFoundError,
    SelfTradeError,
)
from tangible.settlement.payment import PaymentAsset

logger = structlog.get_logger()


class OrderBook:
    """Resting orders of one exchange, keyed by holder."""

    def __init__(self, ledger: ShareLedger, fees: FeePolicy, payments: PaymentAsset,
                 escrow_account: str):
        self.ledger = ledger
        self.fees = fees
        self.payments = payments
        self.escrow_account = escrow_account
        self.orders: Dict[str, Order] = {}
        self.last_price = 0
        self._trade_counter = 0

    def get_order(self, holder: str) -> Optional[Order]:
        return self.orders.get(holder)

    def get_orders(self) -> List[Order]:
        """Active orders in creation order."""
        return list(self.orders.values())

    def escrowed_value(self) -> int:
        """Settlement value held for all resting buy orders."""
        return sum(order.escrow for order in self.orders.values() if order.is_buy())

    def sell(self, holder: str, price: int, amount: int) -> Order:
        """Post a sell order, moving `amount` free shares into escrow."""
        _validate_terms(price, amount)
        self._require_no_order(holder)
        if self.ledger.balance_of(holder) < amount:
            raise InsufficientSharesError()

        order = Order(
            owner=holder,
            side=OrderSide.SELL,
            price=price,
            amount=amount,
            timestamp=datetime.now()
        )
        self.ledger.escrow(holder, amount)
        self.orders[holder] = order
        return order

    def buy(self, holder: str, price: int, amount: int) -> Order:
        """Post a buy order, pulling principal plus tax into engine escrow."""
        _validate_terms(price, amount)
        self._require_no_order(holder)
        escrow = self.fees.gross(price * amount)
        self.payments.require_pullable(holder, self.escrow_account, escrow)

        order = Order(
            owner=holder,
            side=OrderSide.BUY,
            price=price,
            amount=amount,
            timestamp=datetime.now(),
            escrow=escrow
        )
        self.orders[holder] = order

        self.payments.transfer_from(self.escrow_account, holder, self.escrow_account, escrow)
        return order

    def accept(self, caller: str, holder: str, amount: int, tax_recipient: str) -> Trade:
        """
        Settle `amount` shares against `holder`'s resting order.

        Args:
            caller: Accepting party
            holder: Owner of the resting order
            amount: Quantity to settle, at most the order's remaining amount
            tax_recipient: Account credited with the tax (the exchange owner)

        Returns:
            The executed trade

        Raises:
            OrderNotFoundError: `holder` has no active order
            InsufficientSharesError: Order remainder or caller's free shares too small
        """
        if amount <= 0:
            raise InvalidAmountError(f"Amount must be positive: {amount}")
        if caller == holder:
            raise SelfTradeError()
        order = self.orders.get(holder)
        if order is None:
            raise OrderNotFoundError()
        if order.amount < amount:
            raise InsufficientSharesError()

        if order.side == OrderSide.SELL:
            return self._accept_sell(caller, order, amount, tax_recipient)
        return self._accept_buy(caller, order, amount, tax_recipient)

    def _accept_sell(self, buyer: str, order: Order, amount: int, tax_recipient: str) -> Trade:
        principal = order.value(amount)
        tax = self.fees.compute_tax(principal)
        self.payments.require_pullable(buyer, self.escrow_account, principal + tax)

        self.ledger.move_escrowed(order.owner, buyer, amount)
        self._consume(order, amount)
        trade = self._record_trade(buyer=buyer, seller=order.owner, order=order,
                                   amount=amount, tax=tax)

        self.payments.transfer_from(self.escrow_account, buyer, self.escrow_account,
                                    principal + tax)
        self.payments.transfer(self.escrow_account, order.owner, principal)
        if tax:
            self.payments.transfer(self.escrow_account, tax_recipient, tax)
        return trade

    def _accept_buy(self, seller: str, order: Order, amount: int, tax_recipient: str) -> Trade:
        if self.ledger.balance_of(seller) < amount:
            raise InsufficientSharesError()
        principal = order.value(amount)
        if order.amount == amount:
            # Last fill disburses the whole remaining escrow, rounding residue included
            tax = order.escrow - principal
        else:
            tax = self.fees.compute_tax(principal)

        self.ledger.move_free(seller, order.owner, amount)
        order.escrow -= principal + tax
        self._consume(order, amount)
        trade = self._record_trade(buyer=order.owner, seller=seller, order=order,
                                   amount=amount, tax=tax)

        self.payments.transfer(self.escrow_account, seller, principal)
        if tax:
            self.payments.transfer(self.escrow_account, tax_recipient, tax)
        return trade

    def cancel(self, holder: str) -> Order:
        """Remove `holder`'s order and return its remaining escrow unchanged."""
        order = self.orders.pop(holder, None)
        if order is None:
            raise OrderNotFoundError()

        if order.side == OrderSide.SELL:
            self.ledger.release(holder, order.amount)
        elif order.escrow:
            self.payments.transfer(self.escrow_account, holder, order.escrow)
        return order

    def _consume(self, order: Order, amount: int) -> None:
        order.amount -= amount
        self.last_price = order.price
        # Orders with nothing remaining are removed, never kept at zero
        if order.amount == 0:
            del self.orders[order.owner]

    def _record_trade(self, buyer: str, seller: str, order: Order, amount: int,
                      tax: int) -> Trade:
        trade = Trade(
            trade_id=f"T{self._trade_counter}",
            buyer=buyer,
            seller=seller,
            maker=order.owner,
            price=order.price,
            amount=amount,
            tax=tax,
            timestamp=datetime.now()
        )
        self._trade_counter += 1
        return trade

    def _require_no_order(self, holder: str) -> None:
        if holder in self.orders:
            raise ActiveOrderExistsError()


def _validate_terms(price: int, amount: int) -> None:
    if price <= 0:
        raise InvalidAmountError(f"Price must be positive: {price}")
    if amount <= 0:
        raise InvalidAmountError(f"Amount must be positive: {amount}")
