"""Custom exceptions for the tangible share exchange."""


class ExchangeError(Exception):
    """Base exception for all exchange errors."""


class StateError(ExchangeError):
    """Operation is not available in the current lifecycle state."""

    def __init__(self, message: str = "Not available in current state"):
        super().__init__(message)


class PresaleClosedError(StateError):
    """Refund requested after the presale was fully subscribed."""

    def __init__(self, message: str = "Presale already finished"):
        super().__init__(message)


class PresaleWindowError(StateError):
    """Purchase attempted outside the presale window."""

    def __init__(self, message: str = "Presale is not open"):
        super().__init__(message)


class OrderNotFoundError(StateError):
    """Holder has no active order."""

    def __init__(self, message: str = "No active order"):
        super().__init__(message)


class AuthorizationError(ExchangeError):
    """Caller is not the owner for an owner-gated operation."""

    def __init__(self, message: str = "Owner: caller is not the owner"):
        super().__init__(message)


class InsufficientSharesError(ExchangeError):
    """Not enough free shares, remaining order quantity or presale capacity."""

    def __init__(self, message: str = "Insufficient shares"):
        super().__init__(message)


class ActiveOrderExistsError(ExchangeError):
    """Holder already has an active order."""

    def __init__(self, message: str = "Active order, cancel first"):
        super().__init__(message)


class InsufficientFeeError(ExchangeError):
    """Royalty or issue fee under-paid."""

    def __init__(self, message: str = "Please provide enough fee"):
        super().__init__(message)


class SelfTradeError(ExchangeError):
    """Holder tried to accept their own order."""

    def __init__(self, message: str = "Cannot accept own order"):
        super().__init__(message)


class InvalidAmountError(ExchangeError, ValueError):
    """Amount, price or scale outside its valid range."""


class ReentrancyError(ExchangeError):
    """Exchange was called back into while an operation was in progress."""

    def __init__(self, message: str = "Reentrant call"):
        super().__init__(message)


class PaymentError(ExchangeError):
    """Settlement asset or side channel refused a value movement."""


class InsufficientBalanceError(PaymentError):
    """Sender balance is too low."""


class InsufficientAllowanceError(PaymentError):
    """Spender allowance is too low."""


class ConfigError(ExchangeError):
    """Missing or invalid configuration."""
