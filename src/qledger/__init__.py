"""qledger: lot-based position and portfolio accounting."""

from qledger.exceptions import AccountingError, InvalidParameterError, PositionNotFoundError
from qledger.services.market import (
    Asset,
    MarketBar,
    MarketQuote,
    MarketSnapshot,
    Universe,
    appraise_portfolio,
    appraise_position,
    calculate_unrealized_pnl,
    is_asset_valid_at,
)
from qledger.services.orders import (
    Fill,
    Order,
    OrderSide,
    OrderState,
    OrderStatus,
    OrderType,
    OrderValidationResult,
    PositionEffect,
    validate_order,
)
from qledger.services.portfolio import (
    ApplyFillResult,
    CloseStrategy,
    LongLot,
    LongPosition,
    Portfolio,
    Position,
    PositionType,
    ShortLot,
    ShortPosition,
    apply_fill,
    apply_fills,
    validate_position,
)

__version__ = "0.1.0"

__all__ = [
    "AccountingError",
    "ApplyFillResult",
    "Asset",
    "CloseStrategy",
    "Fill",
    "InvalidParameterError",
    "LongLot",
    "LongPosition",
    "MarketBar",
    "MarketQuote",
    "MarketSnapshot",
    "Order",
    "OrderSide",
    "OrderState",
    "OrderStatus",
    "OrderType",
    "OrderValidationResult",
    "Portfolio",
    "Position",
    "PositionEffect",
    "PositionNotFoundError",
    "PositionType",
    "ShortLot",
    "ShortPosition",
    "Universe",
    "appraise_portfolio",
    "appraise_position",
    "apply_fill",
    "apply_fills",
    "calculate_unrealized_pnl",
    "is_asset_valid_at",
    "validate_order",
    "validate_position",
]
