"""Data models for portfolio accounting.

Defines the lot ledger and the containers built on it:
- LongLot / ShortLot: Individual acquisitions and short sales
- LongPosition / ShortPosition: Per-symbol aggregates derived from lots
- Position: One cash account per currency holding long and short books
- Portfolio: Multi-currency container of Positions

Aggregates are always derivable from lots. ``LongPosition.refresh()`` and
``ShortPosition.refresh()`` recompute them and must run after every lot
mutation.
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Union
from uuid import uuid4

from pydantic import BaseModel, Field, field_validator

ZERO = Decimal("0")

Number = Union[Decimal, int, float, str]


def as_decimal(value: Any) -> Decimal:
    """
    Convert a numeric input to Decimal.

    Floats go through ``str`` so that 0.1 becomes Decimal("0.1") rather than
    its binary expansion.

    Args:
        value: Decimal, int, str or float

    Returns:
        Decimal value
    """
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


class CloseStrategy(str, Enum):
    """Lot selection order when reducing a position."""

    FIFO = "FIFO"  # oldest lots first
    LIFO = "LIFO"  # newest lots first


class PositionType(str, Enum):
    """Side of a per-symbol position."""

    LONG = "LONG"
    SHORT = "SHORT"


class LongLot(BaseModel):
    """
    Single purchase within a long position.

    Attributes:
        quantity: Units still held from this purchase
        price: Acquisition price per unit
        total_cost: Remaining cost basis (price * quantity + commission,
            or basis transferred by a corporate action)
        created: When the lot was opened
        modified: Last partial close or adjustment

    Example:
        >>> lot = LongLot(quantity=Decimal("10"), price=Decimal("100"), total_cost=Decimal("1100"))
    """

    quantity: Decimal
    price: Decimal
    total_cost: Decimal
    created: datetime = Field(default_factory=datetime.now)
    modified: datetime = Field(default_factory=datetime.now)

    @field_validator("quantity")
    @classmethod
    def validate_quantity(cls, v: Decimal) -> Decimal:
        """Validate quantity is not negative."""
        if v < 0:
            raise ValueError(f"Lot quantity cannot be negative, got {v}")
        return v


class ShortLot(BaseModel):
    """
    Single short sale within a short position.

    Attributes:
        quantity: Units still owed from this sale
        price: Sale price per unit
        total_proceeds: Remaining proceeds basis (price * quantity - commission)
        created: When the lot was opened
        modified: Last partial close or adjustment
    """

    quantity: Decimal
    price: Decimal
    total_proceeds: Decimal
    created: datetime = Field(default_factory=datetime.now)
    modified: datetime = Field(default_factory=datetime.now)

    @field_validator("quantity")
    @classmethod
    def validate_quantity(cls, v: Decimal) -> Decimal:
        """Validate quantity is not negative."""
        if v < 0:
            raise ValueError(f"Lot quantity cannot be negative, got {v}")
        return v


class LongPosition(BaseModel):
    """
    Long holdings of one symbol.

    Lots are kept in insertion order. FIFO closes consume from the head, LIFO
    closes from the tail, so the order must never be changed.

    Attributes:
        symbol: Asset symbol
        quantity: Sum of lot quantities
        total_cost: Sum of lot cost bases
        average_cost: total_cost / quantity (0 when flat)
        realised_pnl: Lifetime realised P&L on this symbol
        lots: Open lots, oldest first
        created: When the position was first opened
        modified: Last mutation
    """

    symbol: str
    quantity: Decimal = ZERO
    total_cost: Decimal = ZERO
    average_cost: Decimal = ZERO
    realised_pnl: Decimal = ZERO
    lots: list[LongLot] = Field(default_factory=list)
    created: datetime = Field(default_factory=datetime.now)
    modified: datetime = Field(default_factory=datetime.now)

    def refresh(self, time: datetime) -> None:
        """Recompute quantity, total_cost and average_cost from lots."""
        self.quantity = sum((lot.quantity for lot in self.lots), start=ZERO)
        self.total_cost = sum((lot.total_cost for lot in self.lots), start=ZERO)
        self.average_cost = self.total_cost / self.quantity if self.quantity > 0 else ZERO
        self.modified = time


class ShortPosition(BaseModel):
    """
    Short exposure to one symbol.

    Attributes:
        symbol: Asset symbol
        quantity: Sum of lot quantities (positive number of units owed)
        total_proceeds: Sum of lot proceeds bases
        average_proceeds: total_proceeds / quantity (0 when flat)
        realised_pnl: Lifetime realised P&L on this symbol
        lots: Open lots, oldest first
        created: When the position was first opened
        modified: Last mutation
    """

    symbol: str
    quantity: Decimal = ZERO
    total_proceeds: Decimal = ZERO
    average_proceeds: Decimal = ZERO
    realised_pnl: Decimal = ZERO
    lots: list[ShortLot] = Field(default_factory=list)
    created: datetime = Field(default_factory=datetime.now)
    modified: datetime = Field(default_factory=datetime.now)

    def refresh(self, time: datetime) -> None:
        """Recompute quantity, total_proceeds and average_proceeds from lots."""
        self.quantity = sum((lot.quantity for lot in self.lots), start=ZERO)
        self.total_proceeds = sum((lot.total_proceeds for lot in self.lots), start=ZERO)
        self.average_proceeds = self.total_proceeds / self.quantity if self.quantity > 0 else ZERO
        self.modified = time


class Position(BaseModel):
    """
    Cash account for one currency with its long and short books.

    Attributes:
        cash: Signed cash balance
        long: symbol -> LongPosition
        short: symbol -> ShortPosition
        total_commission: Commission paid through this account
        realised_pnl: Realised P&L summed across all symbols
        created: Account creation time
        modified: Last mutation

    Example:
        >>> position = Position(cash=Decimal("100000"))
        >>> position.long
        {}
    """

    cash: Decimal = ZERO
    long: dict[str, LongPosition] = Field(default_factory=dict)
    short: dict[str, ShortPosition] = Field(default_factory=dict)
    total_commission: Decimal = ZERO
    realised_pnl: Decimal = ZERO
    created: datetime = Field(default_factory=datetime.now)
    modified: datetime = Field(default_factory=datetime.now)


class Portfolio(BaseModel):
    """
    Multi-currency portfolio.

    Attributes:
        id: Portfolio identifier
        name: Human-readable name
        positions: currency -> Position
        created: Creation time
        modified: Last mutation of any contained Position
    """

    id: str = Field(default_factory=lambda: str(uuid4()))
    name: str = ""
    positions: dict[str, Position] = Field(default_factory=dict)
    created: datetime = Field(default_factory=datetime.now)
    modified: datetime = Field(default_factory=datetime.now)
