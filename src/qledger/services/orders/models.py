"""Order and fill records.

Orders describe intent; fills describe executions. Both are immutable. The
side of a trade and its effect on positions are carried separately but must
agree: BUY opens a long or covers a short, SELL closes a long or opens a short.
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional
from uuid import uuid4

from pydantic import BaseModel, Field, field_validator, model_validator

ZERO = Decimal("0")


class OrderSide(str, Enum):
    """Direction of a trade."""

    BUY = "BUY"
    SELL = "SELL"


class PositionEffect(str, Enum):
    """What a trade does to the position book."""

    OPEN_LONG = "OPEN_LONG"
    CLOSE_LONG = "CLOSE_LONG"
    OPEN_SHORT = "OPEN_SHORT"
    CLOSE_SHORT = "CLOSE_SHORT"

    @property
    def side(self) -> OrderSide:
        """The only order side compatible with this effect."""
        if self in (PositionEffect.OPEN_LONG, PositionEffect.CLOSE_SHORT):
            return OrderSide.BUY
        return OrderSide.SELL


class OrderType(str, Enum):
    """Execution style of an order."""

    MARKET = "MARKET"
    LIMIT = "LIMIT"
    STOP = "STOP"
    STOP_LIMIT = "STOP_LIMIT"


class OrderStatus(str, Enum):
    """Lifecycle of a good-till-cancelled order."""

    OPEN = "OPEN"  # placed, nothing filled
    PARTIAL = "PARTIAL"
    FILLED = "FILLED"
    CANCELLED = "CANCELLED"


def _check_side_effect(side: OrderSide, effect: PositionEffect) -> None:
    if effect.side is not side:
        raise ValueError(f"{side.value} cannot be combined with {effect.value}")


class Order(BaseModel):
    """
    Intent to trade.

    Attributes:
        id: Order identifier
        symbol: Asset symbol
        side: BUY or SELL
        effect: Position effect, must agree with side
        type: MARKET, LIMIT, STOP or STOP_LIMIT
        quantity: Units to trade
        price: Limit price (LIMIT and STOP_LIMIT)
        stop_price: Trigger price (STOP and STOP_LIMIT)
        created: Creation time

    Quantity and prices are not range-checked here; ``validate_order`` reports
    bad values as results instead of raising.

    Example:
        >>> order = Order(
        ...     symbol="AAPL",
        ...     side=OrderSide.BUY,
        ...     effect=PositionEffect.OPEN_LONG,
        ...     type=OrderType.LIMIT,
        ...     quantity=Decimal("10"),
        ...     price=Decimal("150"),
        ... )
    """

    model_config = {"frozen": True}

    id: str = Field(default_factory=lambda: str(uuid4()))
    symbol: str
    side: OrderSide
    effect: PositionEffect
    type: OrderType = OrderType.MARKET
    quantity: Decimal
    price: Optional[Decimal] = None
    stop_price: Optional[Decimal] = None
    created: datetime = Field(default_factory=datetime.now)

    @model_validator(mode="after")
    def validate_side_effect(self) -> "Order":
        """Reject side/effect combinations that cannot occur."""
        _check_side_effect(self.side, self.effect)
        return self


class OrderState(BaseModel):
    """
    Execution progress of an order.

    Attributes:
        order: The immutable order
        filled_quantity: Units filled so far
        remaining_quantity: Units still open
        status: OPEN, PARTIAL, FILLED or CANCELLED
        modified: Last change
    """

    order: Order
    filled_quantity: Decimal = ZERO
    remaining_quantity: Decimal = ZERO
    status: OrderStatus = OrderStatus.OPEN
    modified: datetime = Field(default_factory=datetime.now)

    @classmethod
    def from_order(cls, order: Order, time: Optional[datetime] = None) -> "OrderState":
        """Start tracking a freshly placed order."""
        return cls(
            order=order,
            remaining_quantity=order.quantity,
            modified=time if time is not None else order.created,
        )

    def record_fill(self, fill: "Fill") -> None:
        """
        Account for an execution against this order.

        Args:
            fill: Execution belonging to this order

        Raises:
            ValueError: If the fill belongs to another order or the order is
                no longer open
        """
        if fill.order_id != self.order.id:
            raise ValueError(f"Fill {fill.id} belongs to order {fill.order_id}, not {self.order.id}")
        if self.status in (OrderStatus.FILLED, OrderStatus.CANCELLED):
            raise ValueError(f"Order {self.order.id} is {self.status.value}")

        self.filled_quantity += fill.quantity
        self.remaining_quantity = max(self.order.quantity - self.filled_quantity, ZERO)
        self.status = OrderStatus.FILLED if self.remaining_quantity == 0 else OrderStatus.PARTIAL
        self.modified = fill.created

    def cancel(self, time: Optional[datetime] = None) -> None:
        """Cancel the unfilled remainder. No-op once filled."""
        if self.status is OrderStatus.FILLED:
            return
        self.status = OrderStatus.CANCELLED
        self.modified = time if time is not None else datetime.now()


class Fill(BaseModel):
    """
    Execution of (part of) an order.

    Attributes:
        id: Fill identifier, for the audit trail
        order_id: Order this fill belongs to
        symbol: Asset symbol
        side: BUY or SELL
        effect: Position effect, must agree with side
        price: Execution price
        quantity: Units executed
        commission: Commission charged
        created: Execution time, used as the mutation time when applied
    """

    model_config = {"frozen": True}

    id: str = Field(default_factory=lambda: str(uuid4()))
    order_id: str = ""
    symbol: str
    side: OrderSide
    effect: PositionEffect
    price: Decimal
    quantity: Decimal
    commission: Decimal = ZERO
    created: datetime = Field(default_factory=datetime.now)

    @field_validator("quantity")
    @classmethod
    def validate_quantity(cls, v: Decimal) -> Decimal:
        """Validate quantity is positive."""
        if v <= 0:
            raise ValueError(f"Fill quantity must be positive, got {v}")
        return v

    @field_validator("commission")
    @classmethod
    def validate_commission(cls, v: Decimal) -> Decimal:
        """Validate commission is not negative."""
        if v < 0:
            raise ValueError(f"Commission cannot be negative, got {v}")
        return v

    @model_validator(mode="after")
    def validate_side_effect(self) -> "Fill":
        """Reject side/effect combinations that cannot occur."""
        _check_side_effect(self.side, self.effect)
        return self
