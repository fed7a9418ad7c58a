"""
Two independent fee layers.

- Tax: a fixed-point percentage of trade principal, paid in the settlement
  asset and credited to the exchange owner. Always rounded down.
- Royalty: a flat amount paid on the side channel on every accept and
  transfer, credited to the platform recipient from the registry.

The two never share a balance or a failure path.
"""

from dataclasses import dataclass
from typing import Callable, Optional

import structlog

from tangible.events.models import FeeConfig
from tangible.exceptions import InsufficientFeeError, InvalidAmountError
from tangible.settlement.side_channel import SideChannel

logger = structlog.get_logger()


@dataclass(frozen=True)
class TaxRate:
    """Tax rate as numerator / 10**decimals (e.g. 100 / 10**3 == 10%)."""
    numerator: int
    decimals: int

    def __post_init__(self):
        if self.decimals < 0:
            raise InvalidAmountError(f"Tax decimals must not be negative: {self.decimals}")
        if not 0 <= self.numerator <= self.scale:
            raise InvalidAmountError(
                f"Tax numerator must be between 0 and {self.scale}: {self.numerator}"
            )

    @property
    def scale(self) -> int:
        return 10 ** self.decimals

    def apply(self, value: int) -> int:
        return value * self.numerator // self.scale


ZERO_TAX = TaxRate(0, 0)


class FeePolicy:
    """Computes tax and collects royalty for one exchange."""

    def __init__(self, fee_source: Callable[[], FeeConfig], side_channel: SideChannel,
                 tax: Optional[TaxRate] = None):
        """
        Initialize fee policy.

        Args:
            fee_source: Returns the registry's current fee configuration
            side_channel: Value path royalties are paid through
            tax: Tax rate; zero until the exchange is initialized
        """
        self.fee_source = fee_source
        self.side_channel = side_channel
        self.tax = tax or ZERO_TAX

    def set_tax(self, tax: TaxRate) -> None:
        self.tax = tax

    def compute_tax(self, value: int) -> int:
        """floor(value * numerator / 10**decimals)."""
        return self.tax.apply(value)

    def gross(self, value: int) -> int:
        """Principal plus tax, the amount a buyer pays or escrows."""
        return value + self.compute_tax(value)

    def current(self) -> FeeConfig:
        return self.fee_source()

    def require_royalty(self, payer: str, attached: int) -> FeeConfig:
        """
        Check `attached` covers the configured royalty and `payer` can send it.

        Returns:
            The fee configuration the royalty will be paid under

        Raises:
            InsufficientFeeError: Attached royalty below the configured amount
            InsufficientBalanceError: Payer cannot cover the configured royalty
        """
        config = self.current()
        if attached < config.royalty:
            raise InsufficientFeeError()
        self.side_channel.require_balance(payer, config.royalty)
        return config

    def collect_royalty(self, payer: str, config: FeeConfig) -> None:
        """Send the configured royalty to the platform recipient; any overpayment stays with the payer."""
        if config.royalty == 0:
            return
        self.side_channel.send(payer, config.recipient, config.royalty)
        logger.info("royalty_collected", payer=payer, recipient=config.recipient,
                    amount=config.royalty)
