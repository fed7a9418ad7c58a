"""
Exchange lifecycle state machine.

The guard table below is the only place that decides whether an operation
is legal in a given phase. PRESALE_FINISHED shares the trading permission
class with TRADING once a presale fully subscribes.

    CREATED ──initialize──────────▶ TRADING ──terminate──▶ TERMINATED
       │  └──terminate───────────────────────────────────▶ TERMINATED
       └──initialize_presale──▶ PRESALE_OPEN ──target reached──▶ PRESALE_FINISHED
                                     └──terminate──▶ PRESALE_FAILED
"""

from enum import Enum
from typing import Dict, FrozenSet, Tuple

import structlog

from tangible.events.models import ExchangeState
from tangible.exceptions import AuthorizationError, PresaleClosedError, StateError

logger = structlog.get_logger()


class Operation(Enum):
    """Public exchange operations subject to the guard table."""
    INITIALIZE = "initialize"
    INITIALIZE_PRESALE = "initialize_presale"
    PURCHASE = "purchase"
    BUY = "buy"
    SELL = "sell"
    ACCEPT = "accept"
    CANCEL = "cancel"
    TRANSFER = "transfer"
    TERMINATE = "terminate"
    WITHDRAW = "withdraw"


TRADING_CLASS: FrozenSet[ExchangeState] = frozenset({
    ExchangeState.TRADING,
    ExchangeState.PRESALE_FINISHED,
})

GUARDS: Dict[Operation, FrozenSet[ExchangeState]] = {
    Operation.INITIALIZE: frozenset({ExchangeState.CREATED}),
    Operation.INITIALIZE_PRESALE: frozenset({ExchangeState.CREATED}),
    Operation.PURCHASE: frozenset({ExchangeState.PRESALE_OPEN}),
    Operation.BUY: TRADING_CLASS,
    Operation.SELL: TRADING_CLASS,
    Operation.ACCEPT: TRADING_CLASS,
    Operation.CANCEL: frozenset(ExchangeState),
    Operation.TRANSFER: frozenset(ExchangeState) - {
        ExchangeState.CREATED,
        ExchangeState.PRESALE_OPEN,
    },
    Operation.TERMINATE: frozenset({
        ExchangeState.CREATED,
        ExchangeState.TRADING,
        ExchangeState.PRESALE_OPEN,
    }),
    Operation.WITHDRAW: frozenset({ExchangeState.PRESALE_FAILED}),
}

OWNER_ONLY: FrozenSet[Operation] = frozenset({
    Operation.INITIALIZE,
    Operation.INITIALIZE_PRESALE,
    Operation.TERMINATE,
})

TRANSITIONS: FrozenSet[Tuple[ExchangeState, ExchangeState]] = frozenset({
    (ExchangeState.CREATED, ExchangeState.TRADING),
    (ExchangeState.CREATED, ExchangeState.PRESALE_OPEN),
    (ExchangeState.CREATED, ExchangeState.TERMINATED),
    (ExchangeState.PRESALE_OPEN, ExchangeState.PRESALE_FINISHED),
    (ExchangeState.PRESALE_OPEN, ExchangeState.PRESALE_FAILED),
    (ExchangeState.TRADING, ExchangeState.TERMINATED),
})

# Termination target per source state.
TERMINATION_TARGETS: Dict[ExchangeState, ExchangeState] = {
    ExchangeState.CREATED: ExchangeState.TERMINATED,
    ExchangeState.TRADING: ExchangeState.TERMINATED,
    ExchangeState.PRESALE_OPEN: ExchangeState.PRESALE_FAILED,
}


class ExchangeStateMachine:
    """Tracks the lifecycle phase and guards operations against it."""

    def __init__(self, owner: str, state: ExchangeState = ExchangeState.CREATED):
        self.owner = owner
        self._state = state

    @property
    def state(self) -> ExchangeState:
        return self._state

    def is_allowed(self, operation: Operation) -> bool:
        """Check whether `operation` is legal in the current state."""
        return self._state in GUARDS[operation]

    def is_trading(self) -> bool:
        return self._state in TRADING_CLASS

    def guard(self, operation: Operation, caller: str) -> None:
        """
        Validate `caller` may run `operation` now.

        The lifecycle is checked before ownership, so any caller outside the
        allowed states sees the same StateError.

        Raises:
            PresaleClosedError: Refund requested after shares were issued
            StateError: Operation not available in the current state
            AuthorizationError: Owner-only operation called by someone else
        """
        if not self.is_allowed(operation):
            if operation == Operation.WITHDRAW and self.is_trading():
                raise PresaleClosedError()
            raise StateError()

        if operation in OWNER_ONLY and caller != self.owner:
            raise AuthorizationError()

    def transition(self, new_state: ExchangeState) -> None:
        """Move to `new_state`, rejecting any edge not in the lifecycle graph."""
        if (self._state, new_state) not in TRANSITIONS:
            raise StateError()
        logger.info("state_transition", previous=self._state.value, new=new_state.value)
        self._state = new_state

    def termination_target(self) -> ExchangeState:
        """State reached by terminating from the current one."""
        if self._state not in TERMINATION_TARGETS:
            raise StateError()
        return TERMINATION_TARGETS[self._state]
