"""
Exchange registry.

Issues independent Exchange instances and owns the platform fee
configuration they all read. There is no shared mutable state between
exchanges apart from that configuration.

Key features:
- Issue fee collected on the side channel
- Live royalty configuration (changes apply to every exchange immediately)
- Lookup of issued exchanges by address
"""

import time
from typing import Callable, Dict, List, Optional, Tuple

import structlog

from tangible.config.settings import Settings, settings
from tangible.config.validators import validate_settings
from tangible.engine.exchange import Exchange
from tangible.events.models import FeeConfig
from tangible.exceptions import AuthorizationError, InsufficientFeeError, InvalidAmountError
from tangible.settlement.payment import PaymentAsset
from tangible.settlement.side_channel import SideChannel

logger = structlog.get_logger()


class Registry:
    """Factory for exchange instances and holder of the shared FeeConfig."""

    def __init__(self, owner: str, side_channel: SideChannel,
                 recipient: Optional[str] = None, royalty: Optional[int] = None,
                 issue_fee: Optional[int] = None, config: Optional[Settings] = None,
                 clock: Callable[[], float] = time.time):
        """
        Initialize registry.

        Args:
            owner: Account allowed to change fee configuration
            side_channel: Value path for royalties and issue fees
            recipient: Royalty recipient (defaults to the owner)
            royalty: Flat royalty per accept/transfer
            issue_fee: Fee required to issue an exchange
            config: Engine settings passed on to every exchange
            clock: Time source passed on to every exchange
        """
        self.config = config or settings
        validate_settings(self.config)
        self.owner = owner
        self.side_channel = side_channel
        self.clock = clock
        self.fee_config = FeeConfig(
            royalty=self.config.DEFAULT_ROYALTY if royalty is None else royalty,
            recipient=recipient or owner,
            issue_fee=self.config.DEFAULT_ISSUE_FEE if issue_fee is None else issue_fee,
        )
        self.exchanges: Dict[str, Exchange] = {}

    def issue(self, caller: str, payments: PaymentAsset, name: str, symbol: str,
              fee: int = 0) -> Exchange:
        """
        Issue a new exchange owned by `caller`.

        Args:
            caller: Future owner of the exchange
            payments: Settlement asset for the new exchange
            name: Asset name
            symbol: Share symbol (stored as "% <symbol>")
            fee: Issue fee attached on the side channel

        Returns:
            The new exchange, in the CREATED state

        Raises:
            InsufficientFeeError: Attached fee below the configured issue fee

        Only the configured issue fee is sent to the recipient.
        """
        config = self.fee_config
        if fee < config.issue_fee:
            raise InsufficientFeeError()
        self.side_channel.require_balance(caller, config.issue_fee)

        exchange = Exchange(
            owner=caller,
            name=name,
            symbol=f"% {symbol}",
            payments=payments,
            side_channel=self.side_channel,
            fee_source=self.get_fee_config,
            clock=self.clock,
            config=self.config,
        )
        self.exchanges[exchange.address] = exchange

        if config.issue_fee:
            self.side_channel.send(caller, config.recipient, config.issue_fee)
        logger.info("exchange_issued", address=exchange.address, owner=caller,
                    name=name, symbol=exchange.symbol)
        return exchange

    def get_fee_config(self) -> FeeConfig:
        return self.fee_config

    def get_fee(self) -> Tuple[int, str]:
        """Current royalty amount and recipient."""
        return self.fee_config.royalty, self.fee_config.recipient

    def set_fee(self, caller: str, royalty: int, issue_fee: int) -> None:
        self._require_owner(caller)
        if royalty < 0 or issue_fee < 0:
            raise InvalidAmountError("Fees must not be negative")
        self.fee_config = FeeConfig(royalty, self.fee_config.recipient, issue_fee)
        logger.info("fee_updated", royalty=royalty, issue_fee=issue_fee)

    def set_recipient(self, caller: str, recipient: str) -> None:
        self._require_owner(caller)
        self.fee_config = FeeConfig(self.fee_config.royalty, recipient,
                                    self.fee_config.issue_fee)
        logger.info("recipient_updated", recipient=recipient)

    def get_exchange(self, address: str) -> Exchange:
        """
        Get exchange by address.

        Raises:
            ValueError: If no exchange was issued at `address`
        """
        if address not in self.exchanges:
            raise ValueError(f"Exchange {address} not found")
        return self.exchanges[address]

    def get_addresses(self) -> List[str]:
        """Addresses of issued exchanges, in issue order."""
        return list(self.exchanges)

    def _require_owner(self, caller: str) -> None:
        if caller != self.owner:
            raise AuthorizationError()
