"""Order and fill records and pre-trade validation."""

from qledger.services.orders.models import Fill, Order, OrderSide, OrderState, OrderStatus, OrderType, PositionEffect
from qledger.services.orders.validation import OrderValidationError, OrderValidationResult, validate_order

__all__ = [
    "Fill",
    "Order",
    "OrderSide",
    "OrderState",
    "OrderStatus",
    "OrderType",
    "OrderValidationError",
    "OrderValidationResult",
    "PositionEffect",
    "validate_order",
]
