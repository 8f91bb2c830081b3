"""Market reference data.

Read-only inputs to valuation and order validation:
- Asset: Tradable instrument metadata with an optional validity window
- MarketSnapshot: Last known price per symbol at a point in time
- MarketQuote / MarketBar: Raw price updates that can be folded into a snapshot
- Universe: The set of assets available for trading
"""

from collections.abc import Iterable, Mapping
from datetime import datetime
from decimal import Decimal
from typing import Literal, Optional

from pydantic import BaseModel, Field

MarketBarInterval = Literal["1m", "5m", "15m", "30m", "1h", "2h", "4h", "1d", "1w", "1M"]


class Asset(BaseModel):
    """
    Tradable instrument.

    Attributes:
        symbol: Unique identifier (e.g. "AAPL", "BTCUSDT")
        type: Asset class (e.g. "stock", "crypto", "forex")
        currency: Pricing currency; selects the Position an asset trades in
        exchange: Trading venue
        name: Human-readable name
        lot_size: Minimum quantity increment
        tick_size: Minimum price increment
        valid_from: First moment the asset is tradable (inclusive, None = always)
        valid_until: Last moment the asset is tradable (inclusive, None = never expires)
    """

    model_config = {"frozen": True}

    symbol: str
    type: str
    currency: str
    exchange: str = ""
    name: str = ""
    lot_size: Decimal = Decimal("1")
    tick_size: Decimal = Decimal("0.01")
    valid_from: Optional[datetime] = None
    valid_until: Optional[datetime] = None


class MarketSnapshot(BaseModel):
    """
    Prices at a point in time.

    Attributes:
        timestamp: When the prices were observed
        price: symbol -> last price
    """

    timestamp: datetime = Field(default_factory=datetime.now)
    price: dict[str, Decimal] = Field(default_factory=dict)


class MarketQuote(BaseModel):
    """Last trade with optional top of book."""

    model_config = {"frozen": True}

    symbol: str
    price: Decimal
    timestamp: datetime
    volume: Optional[Decimal] = None
    bid: Optional[Decimal] = None
    bid_vol: Optional[Decimal] = None
    ask: Optional[Decimal] = None
    ask_vol: Optional[Decimal] = None


class MarketBar(BaseModel):
    """
    OHLCV bar.

    Attributes:
        symbol: Asset symbol
        open: First price in the interval
        high: Highest price in the interval
        low: Lowest price in the interval
        close: Last price in the interval
        volume: Volume traded in the interval
        timestamp: End of the interval
        interval: Bar length
    """

    model_config = {"frozen": True}

    symbol: str
    open: Decimal
    high: Decimal
    low: Decimal
    close: Decimal
    volume: Decimal
    timestamp: datetime
    interval: MarketBarInterval = "1d"


def is_asset_valid_at(asset: Asset, timestamp: datetime) -> bool:
    """
    Check whether an asset is tradable at a given time.

    Both bounds are inclusive; an unset bound is open.

    Args:
        asset: Asset to check
        timestamp: Moment of interest

    Returns:
        True if valid_from <= timestamp <= valid_until
    """
    if asset.valid_from is not None and timestamp < asset.valid_from:
        return False
    if asset.valid_until is not None and timestamp > asset.valid_until:
        return False
    return True


class Universe:
    """
    Set of assets available for trading.

    When the universe carries a timestamp, the ``filter_by_*`` methods only
    consider assets valid at that time.

    Example:
        >>> universe = Universe({"AAPL": aapl, "BTC": btc}, timestamp=datetime(2024, 1, 1))
        >>> [a.symbol for a in universe.filter_by_type("crypto")]
        ['BTC']
    """

    def __init__(self, assets: Mapping[str, Asset], timestamp: Optional[datetime] = None) -> None:
        self.assets: dict[str, Asset] = dict(assets)
        self.timestamp = timestamp

    @classmethod
    def from_assets(cls, assets: Iterable[Asset], timestamp: Optional[datetime] = None) -> "Universe":
        """Build a universe keyed by each asset's symbol."""
        return cls({asset.symbol: asset for asset in assets}, timestamp)

    def get_valid_assets(self, timestamp: datetime) -> dict[str, Asset]:
        """Assets tradable at timestamp, keyed by symbol."""
        return {symbol: asset for symbol, asset in self.assets.items() if is_asset_valid_at(asset, timestamp)}

    def is_asset_valid(self, symbol: str, timestamp: datetime) -> bool:
        """False for unknown symbols."""
        asset = self.assets.get(symbol)
        return asset is not None and is_asset_valid_at(asset, timestamp)

    def get_symbols(self) -> list[str]:
        return list(self.assets)

    def get_type(self, symbol: str) -> str:
        asset = self.assets.get(symbol)
        return asset.type if asset is not None else ""

    def get_exchange(self, symbol: str) -> str:
        asset = self.assets.get(symbol)
        return asset.exchange if asset is not None else ""

    def get_currency(self, symbol: str) -> str:
        asset = self.assets.get(symbol)
        return asset.currency if asset is not None else ""

    def filter_by_type(self, asset_type: str) -> list[Asset]:
        return [asset for asset in self._candidates() if asset.type == asset_type]

    def filter_by_exchange(self, exchange: str) -> list[Asset]:
        return [asset for asset in self._candidates() if asset.exchange == exchange]

    def filter_by_currency(self, currency: str) -> list[Asset]:
        return [asset for asset in self._candidates() if asset.currency == currency]

    def _candidates(self) -> list[Asset]:
        if self.timestamp is not None:
            return list(self.get_valid_assets(self.timestamp).values())
        return list(self.assets.values())

    def __len__(self) -> int:
        return len(self.assets)

    def __contains__(self, symbol: object) -> bool:
        return symbol in self.assets
