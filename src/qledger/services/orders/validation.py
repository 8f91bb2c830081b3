"""Pre-trade order validation.

``validate_order`` checks an order against the currency account it would
trade in and the latest prices. It never raises for business outcomes: a
rejected order comes back as an ``OrderValidationResult`` carrying one typed
error.

Checks by order type:
- MARKET: needs a snapshot price; cash and position sufficiency at that price
- LIMIT: needs a positive limit price; cash and position sufficiency at it
- STOP / STOP_LIMIT: need positive trigger (and limit) prices; the trigger must
  sit on the correct side of the current price. Sufficiency is not checked,
  the order is only a trigger until it fires.
"""

from decimal import Decimal
from typing import Literal, Optional, Union

from pydantic import BaseModel

from qledger.services.market.models import MarketSnapshot
from qledger.services.orders.models import Order, OrderType, PositionEffect
from qledger.services.portfolio.models import Position
from qledger.system import LoggerFactory

logger = LoggerFactory.get_logger()

PositionTypeName = Literal["LONG", "SHORT"]


# ==================== Errors ====================


class InsufficientCash(BaseModel):
    model_config = {"frozen": True}

    type: Literal["INSUFFICIENT_CASH"] = "INSUFFICIENT_CASH"
    required: Decimal
    available: Decimal


class InsufficientPosition(BaseModel):
    model_config = {"frozen": True}

    type: Literal["INSUFFICIENT_POSITION"] = "INSUFFICIENT_POSITION"
    symbol: str
    position_type: PositionTypeName
    required: Decimal
    available: Decimal


class PositionNotFound(BaseModel):
    model_config = {"frozen": True}

    type: Literal["POSITION_NOT_FOUND"] = "POSITION_NOT_FOUND"
    symbol: str
    position_type: PositionTypeName


class InvalidPrice(BaseModel):
    model_config = {"frozen": True}

    type: Literal["INVALID_PRICE"] = "INVALID_PRICE"
    value: Decimal


class InvalidQuantity(BaseModel):
    model_config = {"frozen": True}

    type: Literal["INVALID_QUANTITY"] = "INVALID_QUANTITY"
    value: Decimal


class InvalidStopPrice(BaseModel):
    model_config = {"frozen": True}

    type: Literal["INVALID_STOP_PRICE"] = "INVALID_STOP_PRICE"
    value: Decimal


class MissingPrice(BaseModel):
    model_config = {"frozen": True}

    type: Literal["MISSING_PRICE"] = "MISSING_PRICE"


class MissingStopPrice(BaseModel):
    model_config = {"frozen": True}

    type: Literal["MISSING_STOP_PRICE"] = "MISSING_STOP_PRICE"


class MarketDataMissing(BaseModel):
    model_config = {"frozen": True}

    type: Literal["MARKET_DATA_MISSING"] = "MARKET_DATA_MISSING"
    symbol: str


class InvalidStopDirection(BaseModel):
    """Stop-buys must trigger above the market, stop-sells below it."""

    model_config = {"frozen": True}

    type: Literal["INVALID_STOP_DIRECTION"] = "INVALID_STOP_DIRECTION"
    stop_price: Decimal
    current_price: Decimal
    expected_direction: Literal["ABOVE", "BELOW"]


OrderValidationError = Union[
    InsufficientCash,
    InsufficientPosition,
    PositionNotFound,
    InvalidPrice,
    InvalidQuantity,
    InvalidStopPrice,
    MissingPrice,
    MissingStopPrice,
    MarketDataMissing,
    InvalidStopDirection,
]


class OrderValidationResult(BaseModel):
    """
    Outcome of ``validate_order``.

    Attributes:
        valid: True if the order may be submitted
        error: Why it may not (None when valid)
    """

    model_config = {"frozen": True}

    valid: bool
    error: Optional[OrderValidationError] = None

    @classmethod
    def ok(cls) -> "OrderValidationResult":
        return cls(valid=True)

    @classmethod
    def fail(cls, error: OrderValidationError) -> "OrderValidationResult":
        return cls(valid=False, error=error)


# ==================== Validation ====================


def validate_order(order: Order, position: Position, snapshot: MarketSnapshot) -> OrderValidationResult:
    """
    Check whether an order is admissible.

    Args:
        order: Order to check
        position: Currency account the order would trade in
        snapshot: Latest prices

    Returns:
        OrderValidationResult; on rejection, error holds the first failing check

    Example:
        >>> result = validate_order(order, position, snapshot)
        >>> if not result.valid:
        ...     print(result.error.type)
        INSUFFICIENT_CASH
    """
    result = _dispatch(order, position, snapshot)

    if not result.valid and result.error is not None:
        logger.debug(
            "orders.validation_failed",
            order_id=order.id,
            symbol=order.symbol,
            order_type=order.type.value,
            effect=order.effect.value,
            error=result.error.type,
        )
    return result


def _dispatch(order: Order, position: Position, snapshot: MarketSnapshot) -> OrderValidationResult:
    if order.quantity <= 0:
        return OrderValidationResult.fail(InvalidQuantity(value=order.quantity))

    if order.type is OrderType.MARKET:
        market_price = snapshot.price.get(order.symbol)
        if not market_price:
            return OrderValidationResult.fail(MarketDataMissing(symbol=order.symbol))
        return _check_sufficiency(order, position, market_price)

    if order.type is OrderType.LIMIT:
        price_error = _check_limit_price(order)
        if price_error is not None:
            return OrderValidationResult.fail(price_error)
        assert order.price is not None
        return _check_sufficiency(order, position, order.price)

    if order.type is OrderType.STOP_LIMIT:
        price_error = _check_limit_price(order)
        if price_error is not None:
            return OrderValidationResult.fail(price_error)

    # STOP and STOP_LIMIT
    if order.stop_price is None:
        return OrderValidationResult.fail(MissingStopPrice())
    if order.stop_price <= 0:
        return OrderValidationResult.fail(InvalidStopPrice(value=order.stop_price))
    return _check_stop_direction(order, snapshot)


def _check_limit_price(order: Order) -> Optional[OrderValidationError]:
    if order.price is None:
        return MissingPrice()
    if order.price <= 0:
        return InvalidPrice(value=order.price)
    return None


def _check_sufficiency(order: Order, position: Position, price: Decimal) -> OrderValidationResult:
    effect = order.effect

    if effect is PositionEffect.OPEN_LONG:
        return _check_cash(position, price * order.quantity)

    if effect is PositionEffect.OPEN_SHORT:
        # Short sale raises cash; nothing to check
        return OrderValidationResult.ok()

    if effect is PositionEffect.CLOSE_LONG:
        long_pos = position.long.get(order.symbol)
        if long_pos is None:
            return OrderValidationResult.fail(PositionNotFound(symbol=order.symbol, position_type="LONG"))
        if long_pos.quantity < order.quantity:
            return OrderValidationResult.fail(
                InsufficientPosition(
                    symbol=order.symbol,
                    position_type="LONG",
                    required=order.quantity,
                    available=long_pos.quantity,
                )
            )
        return OrderValidationResult.ok()

    short_pos = position.short.get(order.symbol)
    if short_pos is None:
        return OrderValidationResult.fail(PositionNotFound(symbol=order.symbol, position_type="SHORT"))
    if short_pos.quantity < order.quantity:
        return OrderValidationResult.fail(
            InsufficientPosition(
                symbol=order.symbol,
                position_type="SHORT",
                required=order.quantity,
                available=short_pos.quantity,
            )
        )
    return _check_cash(position, price * order.quantity)


def _check_cash(position: Position, required: Decimal) -> OrderValidationResult:
    if position.cash < required:
        return OrderValidationResult.fail(InsufficientCash(required=required, available=position.cash))
    return OrderValidationResult.ok()


def _check_stop_direction(order: Order, snapshot: MarketSnapshot) -> OrderValidationResult:
    current_price = snapshot.price.get(order.symbol)
    if not current_price:
        return OrderValidationResult.fail(MarketDataMissing(symbol=order.symbol))

    assert order.stop_price is not None
    stop_price = order.stop_price

    if order.effect in (PositionEffect.OPEN_LONG, PositionEffect.CLOSE_SHORT):
        if stop_price <= current_price:
            return OrderValidationResult.fail(
                InvalidStopDirection(stop_price=stop_price, current_price=current_price, expected_direction="ABOVE")
            )
        return OrderValidationResult.ok()

    if stop_price >= current_price:
        return OrderValidationResult.fail(
            InvalidStopDirection(stop_price=stop_price, current_price=current_price, expected_direction="BELOW")
        )
    return OrderValidationResult.ok()
