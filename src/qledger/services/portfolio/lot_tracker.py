"""Lot matching and book maintenance.

Closing walks a position's lots in FIFO (head to tail) or LIFO (tail to head)
order and consumes up to the requested quantity. A fully consumed lot gives up
its exact stored basis; a partially consumed lot gives up
``basis / quantity * closed``. Using the stored total on full consumption keeps
repeated partial closes from leaving residual basis behind.

Books (``Position.long`` / ``Position.short``) are maintained through explicit
``get_or_create_*`` and ``remove_if_empty`` calls so that "no position" and
"empty position" collapse to the same absent state.
"""

from collections.abc import Iterator, MutableMapping, Sequence
from datetime import datetime
from decimal import Decimal
from typing import TypeVar, Union

from qledger.services.portfolio.models import (
    ZERO,
    CloseStrategy,
    LongLot,
    LongPosition,
    Position,
    ShortLot,
    ShortPosition,
)
from qledger.system import LoggerFactory

logger = LoggerFactory.get_logger()

AnyLot = TypeVar("AnyLot", LongLot, ShortLot)
AnyPosition = Union[LongPosition, ShortPosition]


def iter_lots(lots: Sequence[AnyLot], strategy: CloseStrategy) -> Iterator[AnyLot]:
    """
    Yield lots in closing order.

    Args:
        lots: Lots in insertion order
        strategy: FIFO (oldest first) or LIFO (newest first)

    Returns:
        Iterator over the same lot objects (not copies)
    """
    if CloseStrategy(strategy) is CloseStrategy.FIFO:
        return iter(lots)
    return reversed(lots)


def _consume(
    lots: Sequence[AnyLot],
    quantity: Decimal,
    strategy: CloseStrategy,
    basis_field: str,
    time: datetime,
) -> tuple[Decimal, Decimal]:
    remaining = quantity
    consumed_basis = ZERO

    for lot in iter_lots(lots, strategy):
        if remaining <= 0:
            break

        close_qty = min(lot.quantity, remaining)
        lot_basis: Decimal = getattr(lot, basis_field)

        if close_qty == lot.quantity:
            # Whole lot: take the stored total, never re-derive it
            allocated = lot_basis
        else:
            allocated = lot_basis / lot.quantity * close_qty

        consumed_basis += allocated
        remaining -= close_qty

        lot.quantity -= close_qty
        setattr(lot, basis_field, lot_basis - allocated)
        lot.modified = time

    return consumed_basis, remaining


def match_close_long(
    position: LongPosition,
    quantity: Decimal,
    strategy: CloseStrategy,
    time: datetime,
) -> Decimal:
    """
    Consume long lots and return the cost basis released.

    Lots are mutated in place; emptied lots are dropped and the position's
    aggregates recomputed.

    Args:
        position: Long position to reduce
        quantity: Units to close
        strategy: Lot selection order
        time: Mutation timestamp

    Returns:
        Total cost basis of the consumed units
    """
    consumed, unmatched = _consume(position.lots, quantity, strategy, "total_cost", time)
    _drop_empty_lots(position)
    position.refresh(time)

    if unmatched > 0:
        logger.warning(
            "lot_tracker.unmatched_close",
            symbol=position.symbol,
            side="long",
            requested=str(quantity),
            unmatched=str(unmatched),
        )
    return consumed


def match_close_short(
    position: ShortPosition,
    quantity: Decimal,
    strategy: CloseStrategy,
    time: datetime,
) -> Decimal:
    """
    Consume short lots and return the proceeds basis released.

    Args:
        position: Short position to reduce
        quantity: Units to buy back
        strategy: Lot selection order
        time: Mutation timestamp

    Returns:
        Total proceeds basis of the consumed units
    """
    consumed, unmatched = _consume(position.lots, quantity, strategy, "total_proceeds", time)
    _drop_empty_lots(position)
    position.refresh(time)

    if unmatched > 0:
        logger.warning(
            "lot_tracker.unmatched_close",
            symbol=position.symbol,
            side="short",
            requested=str(quantity),
            unmatched=str(unmatched),
        )
    return consumed


def _drop_empty_lots(position: AnyPosition) -> None:
    # Filtering keeps the relative order of surviving lots
    position.lots = [lot for lot in position.lots if lot.quantity > 0]  # type: ignore[assignment]


# ==================== Book Maintenance ====================


def get_or_create_long(position: Position, symbol: str, time: datetime) -> LongPosition:
    """Return the long position for symbol, creating an empty one if absent."""
    long_pos = position.long.get(symbol)
    if long_pos is None:
        long_pos = LongPosition(symbol=symbol, created=time, modified=time)
        position.long[symbol] = long_pos
    return long_pos


def get_or_create_short(position: Position, symbol: str, time: datetime) -> ShortPosition:
    """Return the short position for symbol, creating an empty one if absent."""
    short_pos = position.short.get(symbol)
    if short_pos is None:
        short_pos = ShortPosition(symbol=symbol, created=time, modified=time)
        position.short[symbol] = short_pos
    return short_pos


def remove_if_empty(book: MutableMapping[str, AnyPosition], symbol: str) -> bool:
    """
    Delete a per-symbol position once its lot list is empty.

    Args:
        book: Position.long or Position.short
        symbol: Symbol to check

    Returns:
        True if the entry was removed
    """
    entry = book.get(symbol)
    if entry is not None and not entry.lots:
        del book[symbol]
        return True
    return False


def push_long_lot(position: Position, symbol: str, lot: LongLot, time: datetime) -> LongPosition:
    """
    Append a lot to the symbol's long position, creating it if needed.

    Args:
        position: Currency account
        symbol: Target symbol
        lot: Lot to append at the tail
        time: Mutation timestamp

    Returns:
        The updated LongPosition
    """
    long_pos = get_or_create_long(position, symbol, time)
    long_pos.lots.append(lot)
    long_pos.refresh(time)

    logger.debug(
        "lot_tracker.lot_added",
        symbol=symbol,
        side="long",
        quantity=str(lot.quantity),
        total_cost=str(lot.total_cost),
        lots=len(long_pos.lots),
    )
    return long_pos


def push_short_lot(position: Position, symbol: str, lot: ShortLot, time: datetime) -> ShortPosition:
    """Append a lot to the symbol's short position, creating it if needed."""
    short_pos = get_or_create_short(position, symbol, time)
    short_pos.lots.append(lot)
    short_pos.refresh(time)

    logger.debug(
        "lot_tracker.lot_added",
        symbol=symbol,
        side="short",
        quantity=str(lot.quantity),
        total_proceeds=str(lot.total_proceeds),
        lots=len(short_pos.lots),
    )
    return short_pos


# ==================== Integrity ====================


def validate_position(position: Position) -> bool:
    """
    Check that every per-symbol aggregate matches its lots.

    Compares quantity and cost/proceeds totals against the lot sums and flags
    entries left behind with no lots. Mismatches are logged.

    Args:
        position: Currency account to check

    Returns:
        True if all books are consistent
    """
    valid = True

    for symbol, long_pos in position.long.items():
        qty = sum((lot.quantity for lot in long_pos.lots), start=ZERO)
        cost = sum((lot.total_cost for lot in long_pos.lots), start=ZERO)
        if qty != long_pos.quantity or cost != long_pos.total_cost or not long_pos.lots:
            valid = False
            logger.error(
                "lot_tracker.validation_error",
                symbol=symbol,
                side="long",
                position_qty=str(long_pos.quantity),
                lot_qty=str(qty),
                position_cost=str(long_pos.total_cost),
                lot_cost=str(cost),
            )

    for symbol, short_pos in position.short.items():
        qty = sum((lot.quantity for lot in short_pos.lots), start=ZERO)
        proceeds = sum((lot.total_proceeds for lot in short_pos.lots), start=ZERO)
        if qty != short_pos.quantity or proceeds != short_pos.total_proceeds or not short_pos.lots:
            valid = False
            logger.error(
                "lot_tracker.validation_error",
                symbol=symbol,
                side="short",
                position_qty=str(short_pos.quantity),
                lot_qty=str(qty),
                position_proceeds=str(short_pos.total_proceeds),
                lot_proceeds=str(proceeds),
            )

    return valid
