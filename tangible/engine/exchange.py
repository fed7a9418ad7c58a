"""
High-level exchange interface.

One Exchange instance tokenizes one asset. It wires the ShareLedger,
FeePolicy, OrderBook and PresaleModule together behind the lifecycle guard
and is the main entry point for every holder operation.

Every public operation takes the calling account first, runs under the
instance lock and either applies all of its effects or raises with none.
"""

import functools
import time
from typing import Callable, List, Optional
from uuid import uuid4

import structlog

from tangible.config.settings import Settings, settings
from tangible.engine.fees import FeePolicy, TaxRate
from tangible.engine.ledger import ShareLedger
from tangible.engine.order_book import OrderBook
from tangible.engine.presale import PresaleModule
from tangible.engine.state_machine import ExchangeStateMachine, Operation
from tangible.events.models import ExchangeState, FeeConfig, Order, Trade
from tangible.exceptions import (
    ExchangeError,
    InsufficientSharesError,
    InvalidAmountError,
    ReentrancyError,
)
from tangible.settlement.payment import PaymentAsset
from tangible.settlement.side_channel import SideChannel

logger = structlog.get_logger()


def guarded(operation: Operation):
    """Run the wrapped operation under the instance lock and lifecycle guard."""
    def decorator(method):
        @functools.wraps(method)
        def wrapper(self, caller, *args, **kwargs):
            if self._locked:
                raise ReentrancyError()
            self._locked = True
            try:
                self.state_machine.guard(operation, caller)
                return method(self, caller, *args, **kwargs)
            except ExchangeError as exc:
                logger.warning("operation_rejected", exchange=self.symbol,
                               operation=operation.value, caller=caller,
                               state=self.state.value, error=str(exc))
                raise
            finally:
                self._locked = False
        return wrapper
    return decorator


class Exchange:
    """Share exchange for a single tokenized asset."""

    def __init__(self, owner: str, name: str, symbol: str, payments: PaymentAsset,
                 side_channel: SideChannel, fee_source: Callable[[], FeeConfig],
                 address: Optional[str] = None, clock: Callable[[], float] = time.time,
                 config: Optional[Settings] = None):
        """
        Initialize an exchange in the CREATED state.

        Args:
            owner: Account that owns the exchange and receives tax
            name: Asset name
            symbol: Share symbol
            payments: Settlement asset every trade settles in
            side_channel: Value path for royalties
            fee_source: Returns the registry's current fee configuration
            address: Account the exchange holds escrow under
            clock: Time source for the presale window
            config: Engine settings (defaults to the module settings)
        """
        self.name = name
        self.symbol = symbol
        self.address = address or f"exchange-{uuid4().hex[:16]}"
        self.config = config or settings
        self.decimals = 0
        self.payments = payments
        self.trades: List[Trade] = []
        self._locked = False

        self.state_machine = ExchangeStateMachine(owner)
        self.ledger = ShareLedger()
        self.fees = FeePolicy(fee_source, side_channel)
        self.book = OrderBook(self.ledger, self.fees, payments, self.address)
        self.presale = PresaleModule(
            self.ledger, payments, self.address, self.state_machine,
            clock=clock, enforce_window=self.config.ENFORCE_PRESALE_WINDOW
        )

    @property
    def owner(self) -> str:
        return self.state_machine.owner

    @property
    def state(self) -> ExchangeState:
        return self.state_machine.state

    @property
    def tax(self) -> TaxRate:
        return self.fees.tax

    @property
    def total_supply(self) -> int:
        return self.ledger.total_supply

    @property
    def last_price(self) -> int:
        return self.book.last_price

    @property
    def presale_shares(self) -> int:
        """Cumulative presale subscription."""
        return self.presale.subscribed

    # Initialization

    @guarded(Operation.INITIALIZE)
    def initialize(self, caller: str, tax: int, decimals: int) -> None:
        """Issue all shares to the owner and open trading."""
        rate = TaxRate(tax, self.config.TAX_DECIMALS)
        self._validate_decimals(decimals)
        supply = self.config.SHARE_UNITS * 10 ** decimals

        self.fees.set_tax(rate)
        self.decimals = decimals
        self.ledger.mint(self.owner, supply)
        self.state_machine.transition(ExchangeState.TRADING)
        logger.info("exchange_initialized", exchange=self.symbol, supply=supply,
                    tax=tax, decimals=decimals)

    @guarded(Operation.INITIALIZE_PRESALE)
    def initialize_presale(self, caller: str, target: int, decimals: int, price: int,
                           start: int, end: int, tax: int = 0) -> None:
        """Open a capped presale of `target` whole units at `price` per base unit."""
        rate = TaxRate(tax, self.config.TAX_DECIMALS)
        self._validate_decimals(decimals)

        record = self.presale.open(target, decimals, price, start, end)
        self.fees.set_tax(rate)
        self.decimals = decimals
        self.state_machine.transition(ExchangeState.PRESALE_OPEN)
        logger.info("presale_opened", exchange=self.symbol, target=record.target,
                    price=price, start=start, end=end)

    # Presale

    @guarded(Operation.PURCHASE)
    def purchase(self, caller: str, amount: int) -> int:
        """Subscribe to the presale. Returns the caller's total allocation."""
        finalized = self.presale.purchase(caller, amount)
        logger.info("presale_purchase", exchange=self.symbol, holder=caller,
                    amount=amount, finalized=finalized)
        return self.get_shares(caller)

    @guarded(Operation.WITHDRAW)
    def withdraw(self, caller: str) -> int:
        """Refund the caller's presale payment after a failed presale."""
        refund = self.presale.withdraw(caller)
        logger.info("presale_refund", exchange=self.symbol, holder=caller, refund=refund)
        return refund

    # Trading

    @guarded(Operation.SELL)
    def sell(self, caller: str, price: int, amount: int) -> Order:
        order = self.book.sell(caller, price, amount)
        logger.info("order_created", exchange=self.symbol, holder=caller,
                    side=order.side.value, price=price, amount=amount)
        return order

    @guarded(Operation.BUY)
    def buy(self, caller: str, price: int, amount: int) -> Order:
        order = self.book.buy(caller, price, amount)
        logger.info("order_created", exchange=self.symbol, holder=caller,
                    side=order.side.value, price=price, amount=amount, escrow=order.escrow)
        return order

    @guarded(Operation.ACCEPT)
    def accept(self, caller: str, holder: str, amount: int, royalty: int = 0) -> Trade:
        """Settle `amount` shares against `holder`'s order, paying `royalty` on the side channel."""
        fee_config = self.fees.require_royalty(caller, royalty)
        trade = self.book.accept(caller, holder, amount, self.owner)
        self.trades.append(trade)
        self.fees.collect_royalty(caller, fee_config)
        logger.info("order_accepted", exchange=self.symbol, trade_id=trade.trade_id,
                    maker=holder, taker=caller, price=trade.price, amount=amount,
                    tax=trade.tax)
        return trade

    @guarded(Operation.CANCEL)
    def cancel(self, caller: str) -> Order:
        """Remove the caller's order and release its escrow."""
        order = self.book.cancel(caller)
        logger.info("order_cancelled", exchange=self.symbol, holder=caller,
                    side=order.side.value, amount=order.amount, escrow=order.escrow)
        return order

    @guarded(Operation.TRANSFER)
    def transfer(self, caller: str, to: str, amount: int, royalty: int = 0) -> None:
        """Move free shares to `to`. No tax; royalty required."""
        if amount <= 0:
            raise InvalidAmountError(f"Amount must be positive: {amount}")
        fee_config = self.fees.require_royalty(caller, royalty)
        if self.ledger.balance_of(caller) < amount:
            raise InsufficientSharesError()

        self.ledger.move_free(caller, to, amount)
        self.fees.collect_royalty(caller, fee_config)
        logger.info("shares_transferred", exchange=self.symbol, sender=caller, to=to,
                    amount=amount)

    # Wind-down

    @guarded(Operation.TERMINATE)
    def terminate(self, caller: str) -> ExchangeState:
        """Close the exchange; a running presale fails and opens refunds."""
        target = self.state_machine.termination_target()
        if target == ExchangeState.PRESALE_FAILED:
            self.presale.fail()
        else:
            self.state_machine.transition(target)
        logger.info("exchange_terminated", exchange=self.symbol, state=target.value,
                    open_orders=len(self.book.orders))
        return target

    # Views

    def get_orders(self) -> List[Order]:
        return self.book.get_orders()

    def get_order(self, holder: str) -> Optional[Order]:
        return self.book.get_order(holder)

    def get_shares(self, holder: str) -> int:
        """Free shares, or the presale allocation while a presale is unresolved."""
        if self.state in (ExchangeState.PRESALE_OPEN, ExchangeState.PRESALE_FAILED):
            return self.presale.allocation_of(holder)
        return self.ledger.balance_of(holder)

    def balance_of(self, holder: str) -> int:
        return self.ledger.balance_of(holder)

    def get_shareholders(self) -> List[str]:
        return self.ledger.shareholders()

    def _validate_decimals(self, decimals: int) -> None:
        if not 0 <= decimals <= self.config.MAX_SHARE_DECIMALS:
            raise InvalidAmountError(
                f"Decimals must be between 0 and {self.config.MAX_SHARE_DECIMALS}: {decimals}"
            )
