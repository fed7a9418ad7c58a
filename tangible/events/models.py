"""
Core domain models for the share exchange.

This module defines the data structures shared by every engine component:
lifecycle states, resting orders, executed trades, the presale record and the
registry-owned fee configuration. All amounts are integers in base units.
"""

from enum import Enum
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional


class OrderSide(Enum):
    """Side of the order: buy or sell."""
    BUY = "BUY"
    SELL = "SELL"


class ExchangeState(Enum):
    """Lifecycle phase of an exchange instance."""
    CREATED = "CREATED"
    PRESALE_OPEN = "PRESALE_OPEN"
    PRESALE_FINISHED = "PRESALE_FINISHED"
    PRESALE_FAILED = "PRESALE_FAILED"
    TRADING = "TRADING"
    TERMINATED = "TERMINATED"


@dataclass
class Order:
    """
    Represents a resting order. At most one exists per holder.

    Attributes:
        owner: Holder that placed the order
        side: BUY or SELL
        price: Price per share in settlement units
        amount: Remaining quantity of shares
        timestamp: When the order was created
        escrow: Settlement value held by the engine (buy orders only)
    """
    owner: str
    side: OrderSide
    price: int
    amount: int
    timestamp: datetime
    escrow: int = 0

    def value(self, amount: Optional[int] = None) -> int:
        """Principal value of `amount` shares (defaults to the remaining amount)."""
        if amount is None:
            amount = self.amount
        return self.price * amount

    def is_buy(self) -> bool:
        return self.side == OrderSide.BUY


@dataclass
class Trade:
    """
    Represents a settled acceptance of a resting order.

    Attributes:
        trade_id: Unique identifier for the trade within its exchange
        buyer: Holder receiving the shares
        seller: Holder giving up the shares
        maker: Owner of the resting order that was accepted
        price: Execution price per share
        amount: Number of shares traded
        tax: Tax credited to the exchange owner
        timestamp: When the trade occurred
    """
    trade_id: str
    buyer: str
    seller: str
    maker: str
    price: int
    amount: int
    tax: int
    timestamp: datetime

    def principal(self) -> int:
        return self.price * self.amount


@dataclass(frozen=True)
class FeeConfig:
    """Platform fee configuration owned by the registry."""
    royalty: int
    recipient: str
    issue_fee: int = 0


@dataclass
class PresaleRecord:
    """
    Capped, fixed-price subscription window.

    Attributes:
        target: Presale cap in base units; also the total supply on success
        price: Price per share in settlement units
        decimals: Share decimal scale
        start: Window start (unix seconds)
        end: Window end (unix seconds)
        allocations: Subscriber -> allocated shares
        payments: Subscriber -> settlement value paid in
        subscribers: Subscribers in first-purchase order
        subscribed: Cumulative subscribed amount
        refundable: Set once the presale failed and refunds are open
    """
    target: int
    price: int
    decimals: int
    start: int
    end: int
    allocations: Dict[str, int] = field(default_factory=dict)
    payments: Dict[str, int] = field(default_factory=dict)
    subscribers: List[str] = field(default_factory=list)
    subscribed: int = 0
    refundable: bool = False

    def remaining(self) -> int:
        """Shares still available for subscription."""
        return self.target - self.subscribed

    def is_full(self) -> bool:
        return self.subscribed >= self.target

    def is_open_at(self, now: float) -> bool:
        return self.start <= now <= self.end

    def proceeds(self) -> int:
        """Total settlement value currently held for subscribers."""
        return sum(self.payments.values())
