"""
Shared fixtures: funded accounts, a registry and exchanges in each phase.

Royalty and fee values mirror the platform defaults; prices and share
amounts are kept small so expected balances read directly.
"""

import pytest

from tangible.engine.registry import Registry
from tangible.settlement.payment import PaymentAsset
from tangible.settlement.side_channel import SideChannel
from tangible.utils.logging import configure_logging

ROYALTY = 10_000_000
ISSUE_FEE = 100_000_000
FUNDS = 40_000_000_000
ACCOUNTS = ["owner", "alice", "bob", "carol", "dave", "erin"]

configure_logging()


@pytest.fixture
def side_channel():
    channel = SideChannel()
    for account in ACCOUNTS:
        channel.deposit(account, 10 * ISSUE_FEE)
    return channel


@pytest.fixture
def token():
    asset = PaymentAsset("TKO")
    for account in ACCOUNTS:
        asset.mint(account, FUNDS)
    return asset


@pytest.fixture
def registry(side_channel):
    return Registry("platform", side_channel, recipient="dao",
                    royalty=ROYALTY, issue_fee=ISSUE_FEE)


@pytest.fixture
def exchange(registry, token):
    """Freshly issued exchange in the CREATED state."""
    return registry.issue("owner", token, "Example Pool", "EXP", fee=ISSUE_FEE)


@pytest.fixture
def trading(exchange):
    """Exchange trading with 100 whole shares held by the owner and 10% tax."""
    exchange.initialize("owner", 100, 0)
    return exchange


@pytest.fixture
def presale(exchange):
    """Exchange in a presale of 100 shares at price 10."""
    exchange.initialize_presale("owner", 100, 0, 10, 0, 2_000_000_000)
    return exchange


@pytest.fixture
def approve(token):
    """Approve the exchange to pull `amount` from `holder`."""
    def _approve(exchange, holder, amount):
        token.approve(holder, exchange.address, amount)
    return _approve
