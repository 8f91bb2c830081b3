"""Lot-based position accounting.

Single-currency engines operate on a ``Position``:
- ``trades``: open/close long and short
- ``corporate_actions``: splits, dividends, spinoffs, mergers
- ``crypto_events``: hard forks, airdrops, token swaps, staking rewards
- ``fills``: route executions to the trade engine

``service`` lifts them to a multi-currency ``Portfolio``.
"""

from qledger.services.portfolio import corporate_actions, crypto_events, service, trades
from qledger.services.portfolio.fills import ApplyFillResult, apply_fill, apply_fills
from qledger.services.portfolio.lot_tracker import validate_position
from qledger.services.portfolio.models import (
    CloseStrategy,
    LongLot,
    LongPosition,
    Portfolio,
    Position,
    PositionType,
    ShortLot,
    ShortPosition,
)

__all__ = [
    "ApplyFillResult",
    "CloseStrategy",
    "LongLot",
    "LongPosition",
    "Portfolio",
    "Position",
    "PositionType",
    "ShortLot",
    "ShortPosition",
    "apply_fill",
    "apply_fills",
    "corporate_actions",
    "crypto_events",
    "service",
    "trades",
    "validate_position",
]
