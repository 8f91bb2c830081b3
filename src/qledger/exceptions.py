"""Exceptions raised by the accounting engine.

Only caller mistakes raise. Business outcomes of order validation (insufficient
cash, missing market data, ...) are returned as values by
``qledger.services.orders.validation.validate_order``.
"""

from typing import Any


class AccountingError(Exception):
    """Base class for qledger errors."""


class PositionNotFoundError(AccountingError, KeyError):
    """Raised when closing a long or short position that does not exist."""

    def __init__(self, symbol: str, position_type: str) -> None:
        self.symbol = symbol
        self.position_type = position_type
        super().__init__(f"No {position_type.lower()} position found for {symbol}")

    def __str__(self) -> str:
        # KeyError quotes its argument; keep the message readable
        return str(self.args[0])


class InvalidParameterError(AccountingError, ValueError):
    """Raised when a ratio, rate or amount is outside its valid range."""

    def __init__(self, name: str, value: Any, reason: str) -> None:
        self.name = name
        self.value = value
        super().__init__(f"Invalid {name}: {value}. {reason}")
