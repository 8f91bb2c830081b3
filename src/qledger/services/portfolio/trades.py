"""Trade accounting.

Opens and closes long and short positions inside a single currency account
(``Position``), maintaining lots, aggregates, cash, commission and realised
P&L. Every function mutates the given Position in place and returns a value;
nothing keeps a reference to it afterwards.

Example:
    >>> position = Position(cash=Decimal("100000"))
    >>> open_long(position, "AAPL", Decimal("100"), Decimal("10"), Decimal("100"))
    Decimal('-1100')
    >>> close_long(position, "AAPL", Decimal("150"), Decimal("5"), Decimal("0"), CloseStrategy.FIFO)
    Decimal('200')
"""

from datetime import datetime
from decimal import Decimal
from typing import Optional

from qledger.exceptions import PositionNotFoundError
from qledger.services.portfolio.lot_tracker import (
    match_close_long,
    match_close_short,
    push_long_lot,
    push_short_lot,
    remove_if_empty,
)
from qledger.services.portfolio.models import (
    ZERO,
    CloseStrategy,
    LongLot,
    LongPosition,
    Number,
    Position,
    PositionType,
    ShortLot,
    ShortPosition,
    as_decimal,
)
from qledger.system import LoggerFactory

logger = LoggerFactory.get_logger()


def open_long(
    position: Position,
    symbol: str,
    price: Number,
    quantity: Number,
    commission: Number = ZERO,
    time: Optional[datetime] = None,
) -> Decimal:
    """
    Buy to open or add to a long position.

    Appends a lot with total_cost = price * quantity + commission and deducts
    that amount from cash.

    Args:
        position: Currency account to modify
        symbol: Asset symbol
        price: Price per unit
        quantity: Units bought
        commission: Commission paid
        time: Mutation timestamp (defaults to now)

    Returns:
        Cash flow (negative: cash out)
    """
    price, quantity, commission = as_decimal(price), as_decimal(quantity), as_decimal(commission)
    act_time = time if time is not None else datetime.now()

    cost = price * quantity + commission
    position.cash -= cost

    lot = LongLot(quantity=quantity, price=price, total_cost=cost, created=act_time, modified=act_time)
    push_long_lot(position, symbol, lot, act_time)

    position.total_commission += commission
    position.modified = act_time

    logger.debug(
        "portfolio.long_opened",
        symbol=symbol,
        quantity=str(quantity),
        price=str(price),
        commission=str(commission),
        cash=str(position.cash),
    )
    return -cost


def close_long(
    position: Position,
    symbol: str,
    price: Number,
    quantity: Number,
    commission: Number,
    strategy: CloseStrategy,
    time: Optional[datetime] = None,
) -> Decimal:
    """
    Sell to reduce or close a long position.

    Lots are consumed in FIFO or LIFO order. The caller is responsible for not
    selling more than is held (see ``validate_order``); the engine does not
    clamp.

    Args:
        position: Currency account to modify
        symbol: Asset symbol
        price: Sale price per unit
        quantity: Units sold
        commission: Commission paid
        strategy: Lot selection order
        time: Mutation timestamp (defaults to now)

    Returns:
        Realised P&L (proceeds net of commission minus consumed cost basis)

    Raises:
        PositionNotFoundError: If no long position exists for symbol
    """
    long_pos = position.long.get(symbol)
    if long_pos is None:
        raise PositionNotFoundError(symbol, PositionType.LONG.value)

    price, quantity, commission = as_decimal(price), as_decimal(quantity), as_decimal(commission)
    act_time = time if time is not None else datetime.now()

    proceeds = price * quantity - commission
    consumed_cost = match_close_long(long_pos, quantity, CloseStrategy(strategy), act_time)

    realised_pnl = proceeds - consumed_cost
    long_pos.realised_pnl += realised_pnl

    position.cash += proceeds
    position.total_commission += commission
    position.realised_pnl += realised_pnl
    position.modified = act_time

    removed = remove_if_empty(position.long, symbol)

    logger.info(
        "portfolio.long_closed",
        symbol=symbol,
        quantity=str(quantity),
        price=str(price),
        strategy=CloseStrategy(strategy).value,
        realised_pnl=str(realised_pnl),
        position_closed=removed,
    )
    return realised_pnl


def open_short(
    position: Position,
    symbol: str,
    price: Number,
    quantity: Number,
    commission: Number = ZERO,
    time: Optional[datetime] = None,
) -> Decimal:
    """
    Sell short to open or add to a short position.

    Appends a lot with total_proceeds = price * quantity - commission and adds
    that amount to cash.

    Args:
        position: Currency account to modify
        symbol: Asset symbol
        price: Sale price per unit
        quantity: Units sold short
        commission: Commission paid
        time: Mutation timestamp (defaults to now)

    Returns:
        Cash proceeds (positive: cash in)
    """
    price, quantity, commission = as_decimal(price), as_decimal(quantity), as_decimal(commission)
    act_time = time if time is not None else datetime.now()

    proceeds = price * quantity - commission
    position.cash += proceeds

    lot = ShortLot(quantity=quantity, price=price, total_proceeds=proceeds, created=act_time, modified=act_time)
    push_short_lot(position, symbol, lot, act_time)

    position.total_commission += commission
    position.modified = act_time

    logger.debug(
        "portfolio.short_opened",
        symbol=symbol,
        quantity=str(quantity),
        price=str(price),
        commission=str(commission),
        cash=str(position.cash),
    )
    return proceeds


def close_short(
    position: Position,
    symbol: str,
    price: Number,
    quantity: Number,
    commission: Number,
    strategy: CloseStrategy,
    time: Optional[datetime] = None,
) -> Decimal:
    """
    Buy to cover a short position.

    Args:
        position: Currency account to modify
        symbol: Asset symbol
        price: Buy-back price per unit
        quantity: Units bought back
        commission: Commission paid
        strategy: Lot selection order
        time: Mutation timestamp (defaults to now)

    Returns:
        Realised P&L (consumed proceeds basis minus buy-back cost)

    Raises:
        PositionNotFoundError: If no short position exists for symbol
    """
    short_pos = position.short.get(symbol)
    if short_pos is None:
        raise PositionNotFoundError(symbol, PositionType.SHORT.value)

    price, quantity, commission = as_decimal(price), as_decimal(quantity), as_decimal(commission)
    act_time = time if time is not None else datetime.now()

    cost = price * quantity + commission
    consumed_proceeds = match_close_short(short_pos, quantity, CloseStrategy(strategy), act_time)

    realised_pnl = consumed_proceeds - cost
    short_pos.realised_pnl += realised_pnl

    position.cash -= cost
    position.total_commission += commission
    position.realised_pnl += realised_pnl
    position.modified = act_time

    removed = remove_if_empty(position.short, symbol)

    logger.info(
        "portfolio.short_closed",
        symbol=symbol,
        quantity=str(quantity),
        price=str(price),
        strategy=CloseStrategy(strategy).value,
        realised_pnl=str(realised_pnl),
        position_closed=removed,
    )
    return realised_pnl


def average_cost(position: LongPosition) -> Decimal:
    """Average cost per unit of a long position (0 when flat)."""
    return position.total_cost / position.quantity if position.quantity > 0 else ZERO


def average_proceeds(position: ShortPosition) -> Decimal:
    """Average proceeds per unit of a short position (0 when flat)."""
    return position.total_proceeds / position.quantity if position.quantity > 0 else ZERO
