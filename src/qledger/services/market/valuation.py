"""Mark-to-market valuation.

Pure functions over a Position or Portfolio and a MarketSnapshot. Symbols
without a price in the snapshot are valued at zero.
"""

from decimal import Decimal

from qledger.services.market.models import MarketBar, MarketQuote, MarketSnapshot, is_asset_valid_at
from qledger.services.portfolio.models import ZERO, Portfolio, Position

__all__ = [
    "appraise_portfolio",
    "appraise_position",
    "calculate_unrealized_pnl",
    "is_asset_valid_at",
    "update_snapshot_bar",
    "update_snapshot_quote",
]


def appraise_position(position: Position, snapshot: MarketSnapshot) -> Decimal:
    """
    Value a currency account.

    value = cash + sum(long qty * price) - sum(short qty * price)

    Args:
        position: Currency account
        snapshot: Current prices

    Returns:
        Account value in its currency
    """
    total = position.cash

    for symbol, long_pos in position.long.items():
        total += long_pos.quantity * snapshot.price.get(symbol, ZERO)

    for symbol, short_pos in position.short.items():
        total -= short_pos.quantity * snapshot.price.get(symbol, ZERO)

    return total


def appraise_portfolio(portfolio: Portfolio, snapshot: MarketSnapshot) -> dict[str, Decimal]:
    """
    Value every currency account of a portfolio.

    Currencies are not converted; each value is in its own currency.

    Returns:
        currency -> account value
    """
    return {currency: appraise_position(position, snapshot) for currency, position in portfolio.positions.items()}


def calculate_unrealized_pnl(position: Position, snapshot: MarketSnapshot) -> Decimal:
    """
    Unrealized P&L of all open lots in a currency account.

    Long: (price - average_cost) * quantity
    Short: (average_proceeds - price) * quantity

    Args:
        position: Currency account
        snapshot: Current prices

    Returns:
        Sum over long and short positions
    """
    pnl = ZERO

    for symbol, long_pos in position.long.items():
        price = snapshot.price.get(symbol, ZERO)
        pnl += (price - long_pos.average_cost) * long_pos.quantity

    for symbol, short_pos in position.short.items():
        price = snapshot.price.get(symbol, ZERO)
        pnl += (short_pos.average_proceeds - price) * short_pos.quantity

    return pnl


def update_snapshot_quote(snapshot: MarketSnapshot, quote: MarketQuote) -> MarketSnapshot:
    """
    Fold a quote into a snapshot.

    Returns a new snapshot; the input is not modified. The timestamp moves
    to the later of the snapshot's and the quote's.
    """
    prices = dict(snapshot.price)
    prices[quote.symbol] = quote.price
    return MarketSnapshot(timestamp=max(snapshot.timestamp, quote.timestamp), price=prices)


def update_snapshot_bar(snapshot: MarketSnapshot, bar: MarketBar) -> MarketSnapshot:
    """Fold a bar's close into a snapshot. Returns a new snapshot."""
    prices = dict(snapshot.price)
    prices[bar.symbol] = bar.close
    return MarketSnapshot(timestamp=max(snapshot.timestamp, bar.timestamp), price=prices)
