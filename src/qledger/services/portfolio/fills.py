"""Applying executions to a currency account.

Routes each Fill to the trade engine according to its position effect and
reports the resulting cash flow and realised P&L. The fill's ``created``
timestamp becomes the mutation time so that replaying the same fills yields
the same state.
"""

from collections.abc import Iterable
from decimal import Decimal

from pydantic import BaseModel, Field

from qledger.services.orders.models import Fill, PositionEffect
from qledger.services.portfolio import trades
from qledger.services.portfolio.models import ZERO, CloseStrategy, Position
from qledger.system import LoggerFactory

logger = LoggerFactory.get_logger()


class ApplyFillResult(BaseModel):
    """
    Outcome of applying one or more fills.

    Attributes:
        fills: Fills applied, in order
        cash_flow: Net cash change (negative when buying)
        realised_pnl: Realised P&L (0 for opening fills)
    """

    fills: list[Fill] = Field(default_factory=list)
    cash_flow: Decimal = ZERO
    realised_pnl: Decimal = ZERO


def apply_fill(position: Position, fill: Fill, close_strategy: CloseStrategy) -> ApplyFillResult:
    """
    Apply a single fill.

    Args:
        position: Currency account to modify
        fill: Execution to apply
        close_strategy: Lot order for closing fills

    Returns:
        ApplyFillResult for this fill

    Raises:
        PositionNotFoundError: If a closing fill has no position to close
    """
    effect = fill.effect

    if effect is PositionEffect.OPEN_LONG:
        cash_flow = trades.open_long(position, fill.symbol, fill.price, fill.quantity, fill.commission, fill.created)
        realised_pnl = ZERO
    elif effect is PositionEffect.OPEN_SHORT:
        cash_flow = trades.open_short(position, fill.symbol, fill.price, fill.quantity, fill.commission, fill.created)
        realised_pnl = ZERO
    elif effect is PositionEffect.CLOSE_LONG:
        realised_pnl = trades.close_long(
            position, fill.symbol, fill.price, fill.quantity, fill.commission, close_strategy, fill.created
        )
        cash_flow = fill.price * fill.quantity - fill.commission
    else:
        realised_pnl = trades.close_short(
            position, fill.symbol, fill.price, fill.quantity, fill.commission, close_strategy, fill.created
        )
        cash_flow = -(fill.price * fill.quantity + fill.commission)

    logger.debug(
        "fills.fill_applied",
        fill_id=fill.id,
        order_id=fill.order_id,
        symbol=fill.symbol,
        effect=effect.value,
        cash_flow=str(cash_flow),
        realised_pnl=str(realised_pnl),
    )
    return ApplyFillResult(fills=[fill], cash_flow=cash_flow, realised_pnl=realised_pnl)


def apply_fills(position: Position, fills: Iterable[Fill], close_strategy: CloseStrategy) -> ApplyFillResult:
    """
    Apply fills strictly in order and total the results.

    A failing fill raises immediately; fills before it remain applied.

    Args:
        position: Currency account to modify
        fills: Executions in the order they happened
        close_strategy: Lot order for closing fills

    Returns:
        ApplyFillResult with every applied fill and the summed totals
    """
    total = ApplyFillResult()

    for fill in fills:
        result = apply_fill(position, fill, close_strategy)
        total.fills.append(fill)
        total.cash_flow += result.cash_flow
        total.realised_pnl += result.realised_pnl

    return total
