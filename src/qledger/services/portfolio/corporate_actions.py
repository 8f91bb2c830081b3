"""Stock corporate actions.

Splits, cash dividends, spinoffs and mergers applied to a single currency
account. Parameters are validated first; an action on a symbol with no open
long or short position is then a no-op.
"""

from datetime import datetime
from decimal import Decimal
from typing import Optional

from qledger.exceptions import InvalidParameterError
from qledger.services.portfolio.lot_tracker import push_long_lot, push_short_lot
from qledger.services.portfolio.models import ZERO, LongLot, Number, Position, ShortLot, as_decimal
from qledger.system import LoggerFactory

logger = LoggerFactory.get_logger()


def require_positive(name: str, value: Decimal) -> None:
    """Raise InvalidParameterError unless value > 0."""
    if value <= 0:
        raise InvalidParameterError(name, value, "Must be positive.")


def require_non_negative(name: str, value: Decimal) -> None:
    """Raise InvalidParameterError if value < 0."""
    if value < 0:
        raise InvalidParameterError(name, value, "Must be non-negative.")


def basis_price(basis: Decimal, quantity: Decimal) -> Decimal:
    """Per-unit price recorded on a lot whose basis was transferred."""
    return basis / quantity if quantity > 0 else ZERO


def handle_split(
    position: Position,
    symbol: str,
    ratio: Number,
    time: Optional[datetime] = None,
) -> None:
    """
    Apply a stock split or reverse split.

    Every lot's quantity is multiplied by ratio; cost and proceeds bases are
    unchanged, so averages scale by 1 / ratio.

    Args:
        position: Currency account to modify
        symbol: Splitting symbol
        ratio: New units per old unit (2 for 2-for-1, 0.5 for 1-for-2)
        time: Mutation timestamp (defaults to now)

    Raises:
        InvalidParameterError: If ratio is not positive

    Example:
        >>> # 4-for-1 split on 100 shares bought for $40,000
        >>> handle_split(position, "AAPL", Decimal("4"))
        >>> # Result: 400 shares, total cost still $40,000
    """
    ratio = as_decimal(ratio)
    require_positive("split ratio", ratio)

    act_time = time if time is not None else datetime.now()

    long_pos = position.long.get(symbol)
    short_pos = position.short.get(symbol)

    if long_pos is None and short_pos is None:
        logger.debug("corporate_action.split_skipped", symbol=symbol, reason="No position found for this symbol")
        return

    if long_pos is not None:
        for lot in long_pos.lots:
            lot.quantity *= ratio
            lot.modified = act_time
        long_pos.refresh(act_time)

    if short_pos is not None:
        for lot in short_pos.lots:
            lot.quantity *= ratio
            lot.modified = act_time
        short_pos.refresh(act_time)

    position.modified = act_time

    logger.info(
        "corporate_action.split_applied",
        symbol=symbol,
        ratio=str(ratio),
        split_type="split" if ratio > 1 else "reverse split",
        long_quantity=str(long_pos.quantity) if long_pos else None,
        short_quantity=str(short_pos.quantity) if short_pos else None,
    )


def handle_cash_dividend(
    position: Position,
    symbol: str,
    amount_per_share: Number,
    tax_rate: Number = ZERO,
    time: Optional[datetime] = None,
) -> Decimal:
    """
    Apply a cash dividend.

    Long holders receive the after-tax amount, which also reduces each lot's
    cost basis. Short holders owe the gross amount (no tax relief), which
    reduces each lot's proceeds basis.

    Args:
        position: Currency account to modify
        symbol: Symbol paying the dividend
        amount_per_share: Gross dividend per unit
        tax_rate: Withholding rate applied to long receipts, in [0, 1]
        time: Mutation timestamp (defaults to now)

    Returns:
        Net cash flow (positive for longs, negative for shorts)

    Raises:
        InvalidParameterError: If amount is negative or tax_rate is outside [0, 1]
    """
    amount_per_share, tax_rate = as_decimal(amount_per_share), as_decimal(tax_rate)
    require_non_negative("dividend amount", amount_per_share)
    if tax_rate < 0 or tax_rate > 1:
        raise InvalidParameterError("tax rate", tax_rate, "Must be between 0 and 1.")

    act_time = time if time is not None else datetime.now()

    long_pos = position.long.get(symbol)
    short_pos = position.short.get(symbol)

    if long_pos is None and short_pos is None:
        logger.debug("corporate_action.dividend_skipped", symbol=symbol, reason="No position found for this symbol")
        return ZERO

    cash_flow = ZERO

    if long_pos is not None:
        received = ZERO
        for lot in long_pos.lots:
            after_tax = lot.quantity * amount_per_share * (1 - tax_rate)
            lot.total_cost -= after_tax
            lot.modified = act_time
            received += after_tax
        long_pos.refresh(act_time)
        cash_flow += received

    if short_pos is not None:
        owed = ZERO
        for lot in short_pos.lots:
            gross = lot.quantity * amount_per_share
            lot.total_proceeds -= gross
            lot.modified = act_time
            owed += gross
        short_pos.refresh(act_time)
        cash_flow -= owed

    position.cash += cash_flow
    position.modified = act_time

    logger.info(
        "corporate_action.dividend_applied",
        symbol=symbol,
        amount_per_share=str(amount_per_share),
        tax_rate=str(tax_rate),
        cash_flow=str(cash_flow),
    )
    return cash_flow


def handle_spinoff(
    position: Position,
    symbol: str,
    new_symbol: str,
    ratio: Number,
    time: Optional[datetime] = None,
) -> None:
    """
    Apply a spinoff.

    Holders of symbol receive ratio units of new_symbol per unit held, as a
    zero-basis lot. The original position is untouched.

    Args:
        position: Currency account to modify
        symbol: Parent symbol
        new_symbol: Spun-off symbol
        ratio: New units per parent unit
        time: Mutation timestamp (defaults to now)

    Raises:
        InvalidParameterError: If ratio is not positive
    """
    ratio = as_decimal(ratio)
    require_positive("spinoff ratio", ratio)

    act_time = time if time is not None else datetime.now()

    long_pos = position.long.get(symbol)
    short_pos = position.short.get(symbol)

    if long_pos is None and short_pos is None:
        logger.debug("corporate_action.spinoff_skipped", symbol=symbol, reason="No position found for this symbol")
        return

    if long_pos is not None:
        lot = LongLot(quantity=long_pos.quantity * ratio, price=ZERO, total_cost=ZERO, created=act_time, modified=act_time)
        push_long_lot(position, new_symbol, lot, act_time)

    if short_pos is not None:
        short_lot = ShortLot(
            quantity=short_pos.quantity * ratio,
            price=ZERO,
            total_proceeds=ZERO,
            created=act_time,
            modified=act_time,
        )
        push_short_lot(position, new_symbol, short_lot, act_time)

    position.modified = act_time

    logger.info(
        "corporate_action.spinoff_applied",
        symbol=symbol,
        new_symbol=new_symbol,
        ratio=str(ratio),
    )


def handle_merger(
    position: Position,
    symbol: str,
    new_symbol: str,
    ratio: Number,
    cash_component: Number = ZERO,
    time: Optional[datetime] = None,
) -> Decimal:
    """
    Apply a merger or acquisition.

    Each unit of symbol becomes ratio units of new_symbol plus cash_component
    in cash. The cash received reduces the transferred basis. The old position
    is deleted.

    Args:
        position: Currency account to modify
        symbol: Acquired symbol
        new_symbol: Acquirer symbol
        ratio: Acquirer units per acquired unit
        cash_component: Cash paid per acquired unit
        time: Mutation timestamp (defaults to now)

    Returns:
        Net cash flow (positive for longs, negative for shorts)

    Raises:
        InvalidParameterError: If ratio is not positive or cash_component is negative

    Example:
        >>> # 10 TARGET shares with $1,100 basis, 2-for-1 plus $10 cash
        >>> handle_merger(position, "TARGET", "ACQUIRER", Decimal("2"), Decimal("10"))
        Decimal('100')
        >>> # ACQUIRER: 20 shares, total cost $1,000
    """
    ratio, cash_component = as_decimal(ratio), as_decimal(cash_component)
    require_positive("merger ratio", ratio)
    require_non_negative("cash component", cash_component)

    act_time = time if time is not None else datetime.now()

    long_pos = position.long.get(symbol)
    short_pos = position.short.get(symbol)

    if long_pos is None and short_pos is None:
        logger.debug("corporate_action.merger_skipped", symbol=symbol, reason="No position found for this symbol")
        return ZERO

    cash_flow = ZERO

    if long_pos is not None:
        new_quantity = long_pos.quantity * ratio
        cash_received = long_pos.quantity * cash_component
        new_cost = long_pos.total_cost - cash_received
        cash_flow += cash_received

        lot = LongLot(
            quantity=new_quantity,
            price=basis_price(new_cost, new_quantity),
            total_cost=new_cost,
            created=act_time,
            modified=act_time,
        )
        del position.long[symbol]
        push_long_lot(position, new_symbol, lot, act_time)

    if short_pos is not None:
        new_quantity = short_pos.quantity * ratio
        cash_owed = short_pos.quantity * cash_component
        new_proceeds = short_pos.total_proceeds - cash_owed
        cash_flow -= cash_owed

        short_lot = ShortLot(
            quantity=new_quantity,
            price=basis_price(new_proceeds, new_quantity),
            total_proceeds=new_proceeds,
            created=act_time,
            modified=act_time,
        )
        del position.short[symbol]
        push_short_lot(position, new_symbol, short_lot, act_time)

    position.cash += cash_flow
    position.modified = act_time

    logger.info(
        "corporate_action.merger_applied",
        symbol=symbol,
        new_symbol=new_symbol,
        ratio=str(ratio),
        cash_component=str(cash_component),
        cash_flow=str(cash_flow),
    )
    return cash_flow
