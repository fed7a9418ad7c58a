"""
Tests for the presale: subscription, auto-finalization, failure and refund.
"""

import pytest
from tangible.config.settings import Settings
from tangible.engine.registry import Registry
from tangible.events.models import ExchangeState
from tangible.exceptions import (
    AuthorizationError,
    InsufficientAllowanceError,
    InsufficientSharesError,
    PresaleClosedError,
    PresaleWindowError,
    StateError,
)

ISSUE_FEE = 100_000_000


def test_presale_opens(presale):
    """Test presale starts with no subscribers."""
    assert presale.state == ExchangeState.PRESALE_OPEN
    assert presale.get_shareholders() == []
    assert presale.presale_shares == 0
    assert presale.total_supply == 0


def test_presale_cannot_initialize_twice(presale):
    """Test both initializers are closed once the presale is open."""
    with pytest.raises(StateError, match="Not available in current state"):
        presale.initialize_presale("owner", 100, 0, 10, 0, 2_000_000_000)
    with pytest.raises(StateError):
        presale.initialize("owner", 100, 0)


def test_purchase_records_subscription(presale, token, approve):
    """Test a purchase pulls amount * price and records the allocation."""
    approve(presale, "alice", 500)
    allocation = presale.purchase("alice", 50)

    assert allocation == 50
    assert presale.get_shares("alice") == 50
    assert presale.get_shareholders() == ["alice"]
    assert presale.presale_shares == 50
    assert presale.state == ExchangeState.PRESALE_OPEN
    assert token.balance_of(presale.address) == 500
    assert presale.total_supply == 0


def test_purchase_applies_no_tax(exchange, token, approve):
    """Test presale payments are untaxed even when trading tax is configured."""
    exchange.initialize_presale("owner", 100, 0, 10, 0, 2_000_000_000, tax=100)
    approve(exchange, "alice", 500)
    exchange.purchase("alice", 50)

    assert token.balance_of(exchange.address) == 500


def test_repeat_purchases_accumulate(presale, approve):
    """Test a subscriber can buy more than once and is listed once."""
    approve(presale, "alice", 200)
    presale.purchase("alice", 10)
    presale.purchase("alice", 10)

    assert presale.get_shares("alice") == 20
    assert presale.get_shareholders() == ["alice"]


def test_trading_blocked_during_presale(presale, approve):
    """Test buy, sell and transfer are unavailable while the presale runs."""
    approve(presale, "alice", 600)
    presale.purchase("alice", 50)

    with pytest.raises(StateError):
        presale.buy("alice", 10, 10)
    with pytest.raises(StateError):
        presale.sell("alice", 10, 10)
    with pytest.raises(StateError):
        presale.transfer("alice", "bob", 10, royalty=10_000_000)


def test_purchase_beyond_cap(presale, token, approve):
    """Test purchases cannot overshoot the cap and change nothing when rejected."""
    approve(presale, "alice", 2000)
    presale.purchase("alice", 60)

    with pytest.raises(InsufficientSharesError):
        presale.purchase("alice", 41)
    assert presale.presale_shares == 60
    assert token.balance_of(presale.address) == 600


def test_purchase_without_allowance(presale, approve):
    """Test a failed pull records nothing."""
    approve(presale, "alice", 499)
    with pytest.raises(InsufficientAllowanceError):
        presale.purchase("alice", 50)
    assert presale.get_shareholders() == []
    assert presale.presale_shares == 0


def test_presale_auto_finalizes(presale, token, approve):
    """Test the purchase that fills the cap mints shares and pays the owner."""
    owner_before = token.balance_of("owner")
    approve(presale, "alice", 500)
    approve(presale, "bob", 500)

    presale.purchase("alice", 50)
    presale.purchase("bob", 50)

    assert presale.state == ExchangeState.PRESALE_FINISHED
    assert presale.total_supply == 100
    assert presale.get_shares("alice") == 50
    assert presale.get_shares("bob") == 50
    assert presale.ledger.is_conserved()
    assert token.balance_of("owner") == owner_before + 1000
    assert token.balance_of(presale.address) == 0
    assert presale.get_shareholders() == ["alice", "bob"]


def test_trading_after_finalization(presale, token, approve):
    """Test PRESALE_FINISHED trades like TRADING."""
    approve(presale, "alice", 1000)
    presale.purchase("alice", 100)

    presale.sell("alice", 20, 10)
    approve(presale, "bob", 200)
    presale.accept("bob", "alice", 10, royalty=10_000_000)

    assert presale.get_shares("bob") == 10
    assert presale.last_price == 20


def test_finished_presale_cannot_be_terminated(presale, approve):
    """Test terminate is unavailable after a successful presale."""
    approve(presale, "alice", 1000)
    presale.purchase("alice", 100)

    with pytest.raises(StateError):
        presale.terminate("owner")


def test_terminate_requires_owner(presale):
    """Test only the owner can terminate a presale."""
    with pytest.raises(AuthorizationError, match="caller is not the owner"):
        presale.terminate("alice")
    assert presale.state == ExchangeState.PRESALE_OPEN


def test_terminate_fails_presale(presale, token, approve):
    """Test early termination opens refunds without moving funds."""
    approve(presale, "alice", 500)
    presale.purchase("alice", 50)

    state = presale.terminate("owner")

    assert state == ExchangeState.PRESALE_FAILED
    assert presale.state == ExchangeState.PRESALE_FAILED
    assert token.balance_of(presale.address) == 500
    with pytest.raises(StateError):
        presale.purchase("alice", 10)


def test_withdraw_refunds_payment(presale, token, approve):
    """Test withdraw returns exactly the recorded payment."""
    approve(presale, "alice", 500)
    presale.purchase("alice", 50)
    presale.terminate("owner")
    balance_before = token.balance_of("alice")

    refund = presale.withdraw("alice")

    assert refund == 500
    assert token.balance_of("alice") == balance_before + 500
    assert token.balance_of(presale.address) == 0
    assert presale.get_shares("alice") == 0
    assert presale.get_shareholders() == []


def test_withdraw_each_subscriber(presale, token, approve):
    """Test several subscribers each get their own payment back."""
    approve(presale, "alice", 300)
    approve(presale, "bob", 200)
    presale.purchase("alice", 30)
    presale.purchase("bob", 20)
    presale.terminate("owner")

    assert presale.withdraw("bob") == 200
    assert presale.presale_shares == 30
    assert presale.withdraw("alice") == 300
    assert token.balance_of(presale.address) == 0


def test_withdraw_twice(presale, approve):
    """Test a second withdraw has nothing to refund."""
    approve(presale, "alice", 500)
    presale.purchase("alice", 50)
    presale.terminate("owner")
    presale.withdraw("alice")

    with pytest.raises(InsufficientSharesError, match="No presale allocation"):
        presale.withdraw("alice")


def test_withdraw_non_subscriber(presale, approve):
    """Test holders who never subscribed cannot withdraw."""
    approve(presale, "alice", 500)
    presale.purchase("alice", 50)
    presale.terminate("owner")

    with pytest.raises(InsufficientSharesError):
        presale.withdraw("bob")


def test_withdraw_while_open(presale, approve):
    """Test refunds are unavailable while the presale runs."""
    approve(presale, "alice", 500)
    presale.purchase("alice", 50)
    with pytest.raises(StateError):
        presale.withdraw("alice")


def test_withdraw_after_finalization(presale, approve):
    """Test refunds are refused once shares were issued."""
    approve(presale, "alice", 1000)
    presale.purchase("alice", 100)

    with pytest.raises(PresaleClosedError, match="Presale already finished"):
        presale.withdraw("alice")


def test_withdraw_on_trading_exchange(trading):
    """Test an exchange that never ran a presale reports it closed."""
    with pytest.raises(PresaleClosedError):
        trading.withdraw("alice")


def test_presale_decimal_scale(exchange, approve):
    """Test the cap scales with the share decimals."""
    exchange.initialize_presale("owner", 100, 2, 10, 0, 2_000_000_000)
    approve(exchange, "alice", 50 * 100 * 10)
    exchange.purchase("alice", 50 * 100)

    assert exchange.presale.record.target == 10000
    assert exchange.presale_shares == 5000


def test_presale_window_enforced(side_channel, token, approve):
    """Test strict window enforcement rejects purchases outside [start, end]."""
    now = [50]
    registry = Registry("platform", side_channel, recipient="dao", royalty=0,
                        issue_fee=ISSUE_FEE,
                        config=Settings(ENFORCE_PRESALE_WINDOW=True),
                        clock=lambda: now[0])
    exchange = registry.issue("owner", token, "Example Pool", "EXP", fee=ISSUE_FEE)
    exchange.initialize_presale("owner", 100, 0, 10, 100, 200)
    approve(exchange, "alice", 1000)

    with pytest.raises(PresaleWindowError):
        exchange.purchase("alice", 10)

    now[0] = 150
    exchange.purchase("alice", 10)

    now[0] = 201
    with pytest.raises(PresaleWindowError):
        exchange.purchase("alice", 10)
    assert exchange.presale_shares == 10


def test_presale_window_informational_by_default(exchange, approve):
    """Test the window is not enforced unless configured."""
    exchange.initialize_presale("owner", 100, 0, 10, 0, 1)
    approve(exchange, "alice", 100)
    exchange.purchase("alice", 10)
    assert exchange.presale_shares == 10
