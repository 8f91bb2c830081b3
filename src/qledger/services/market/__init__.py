"""Market reference data and valuation."""

from qledger.services.market.models import Asset, MarketBar, MarketQuote, MarketSnapshot, Universe, is_asset_valid_at
from qledger.services.market.valuation import (
    appraise_portfolio,
    appraise_position,
    calculate_unrealized_pnl,
    update_snapshot_bar,
    update_snapshot_quote,
)

__all__ = [
    "Asset",
    "MarketBar",
    "MarketQuote",
    "MarketSnapshot",
    "Universe",
    "appraise_portfolio",
    "appraise_position",
    "calculate_unrealized_pnl",
    "is_asset_valid_at",
    "update_snapshot_bar",
    "update_snapshot_quote",
]
