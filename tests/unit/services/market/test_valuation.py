"""Unit tests for market models and valuation.

Tests cover:
- Position and portfolio appraisal
- Unrealized P&L for long and short books
- Asset validity windows and universe filtering
- Folding quotes and bars into snapshots
"""

from datetime import datetime, timedelta
from decimal import Decimal

import pytest

from qledger.services.market.models import Asset, MarketBar, MarketQuote, MarketSnapshot, Universe
from qledger.services.market.valuation import (
    appraise_portfolio,
    appraise_position,
    calculate_unrealized_pnl,
    is_asset_valid_at,
    update_snapshot_bar,
    update_snapshot_quote,
)
from qledger.services.portfolio.models import Portfolio, Position
from qledger.services.portfolio.trades import open_long, open_short

# ============================================================================
# Fixtures
# ============================================================================


@pytest.fixture
def mixed_position(position: Position, t0: datetime) -> Position:
    """Long 10 AAPL @ 100 (comm 100), short 5 MSFT @ 320 (comm 0)."""
    open_long(position, "AAPL", Decimal("100"), Decimal("10"), Decimal("100"), t0)
    open_short(position, "MSFT", Decimal("320"), Decimal("5"), time=t0)
    return position


@pytest.fixture
def universe_assets() -> list[Asset]:
    return [
        Asset(symbol="AAPL", type="stock", currency="USD", exchange="NASDAQ"),
        Asset(symbol="SAP", type="stock", currency="EUR", exchange="XETRA"),
        Asset(
            symbol="LUNA",
            type="crypto",
            currency="USDT",
            exchange="BINANCE",
            valid_until=datetime(2022, 5, 13),
        ),
        Asset(
            symbol="NEW",
            type="crypto",
            currency="USDT",
            exchange="BINANCE",
            valid_from=datetime(2024, 6, 1),
        ),
    ]


# ============================================================================
# Valuation Tests
# ============================================================================


class TestAppraisal:
    """Test mark-to-market valuation."""

    def test_appraise_position(self, mixed_position: Position, snapshot: MarketSnapshot):
        """cash + long value - short liability."""
        # cash = 100000 - 1100 + 1600 = 100500
        assert appraise_position(mixed_position, snapshot) == Decimal("100500") + Decimal("1500") - Decimal("1500")

    def test_missing_price_values_at_zero(self, mixed_position: Position, t0: datetime):
        empty = MarketSnapshot(timestamp=t0)

        assert appraise_position(mixed_position, empty) == mixed_position.cash

    def test_appraise_portfolio_per_currency(self, t0: datetime, snapshot: MarketSnapshot):
        usd = Position(cash=Decimal("1000"))
        open_long(usd, "AAPL", Decimal("100"), Decimal("2"), time=t0)
        usdt = Position(cash=Decimal("0"))
        open_long(usdt, "BTC", Decimal("30000"), Decimal("1"), time=t0)
        portfolio = Portfolio(positions={"USD": usd, "USDT": usdt})

        values = appraise_portfolio(portfolio, snapshot)

        assert values == {"USD": Decimal("1100"), "USDT": Decimal("10000")}

    def test_unrealized_pnl(self, mixed_position: Position, snapshot: MarketSnapshot):
        """Long: (150 - 110) x 10 = 400. Short: (320 - 300) x 5 = 100."""
        assert calculate_unrealized_pnl(mixed_position, snapshot) == Decimal("500")

    def test_unrealized_pnl_empty_position(self, position: Position, snapshot: MarketSnapshot):
        assert calculate_unrealized_pnl(position, snapshot) == Decimal("0")


# ============================================================================
# Universe Tests
# ============================================================================


class TestAssetValidity:
    """Test validity windows."""

    def test_open_bounds(self):
        asset = Asset(symbol="AAPL", type="stock", currency="USD")

        assert is_asset_valid_at(asset, datetime(1900, 1, 1))
        assert is_asset_valid_at(asset, datetime(2100, 1, 1))

    def test_bounds_are_inclusive(self):
        start, end = datetime(2020, 1, 1), datetime(2020, 12, 31)
        asset = Asset(symbol="X", type="stock", currency="USD", valid_from=start, valid_until=end)

        assert is_asset_valid_at(asset, start)
        assert is_asset_valid_at(asset, end)
        assert not is_asset_valid_at(asset, start - timedelta(seconds=1))
        assert not is_asset_valid_at(asset, end + timedelta(seconds=1))


class TestUniverse:
    """Test universe lookups and filters."""

    def test_lookups(self, universe_assets: list[Asset]):
        universe = Universe.from_assets(universe_assets)

        assert universe.get_symbols() == ["AAPL", "SAP", "LUNA", "NEW"]
        assert universe.get_type("SAP") == "stock"
        assert universe.get_exchange("LUNA") == "BINANCE"
        assert universe.get_currency("AAPL") == "USD"
        assert "SAP" in universe
        assert len(universe) == 4

    def test_unknown_symbol_returns_empty_string(self, universe_assets: list[Asset]):
        universe = Universe.from_assets(universe_assets)

        assert universe.get_type("NOPE") == ""
        assert universe.get_exchange("NOPE") == ""
        assert universe.get_currency("NOPE") == ""
        assert not universe.is_asset_valid("NOPE", datetime(2024, 1, 1))

    def test_valid_assets_at(self, universe_assets: list[Asset]):
        universe = Universe.from_assets(universe_assets)

        assert set(universe.get_valid_assets(datetime(2021, 1, 1))) == {"AAPL", "SAP", "LUNA"}
        assert set(universe.get_valid_assets(datetime(2024, 7, 1))) == {"AAPL", "SAP", "NEW"}
        assert universe.is_asset_valid("NEW", datetime(2024, 6, 1))

    def test_filters_without_timestamp_consider_all(self, universe_assets: list[Asset]):
        universe = Universe.from_assets(universe_assets)

        assert [a.symbol for a in universe.filter_by_type("crypto")] == ["LUNA", "NEW"]
        assert [a.symbol for a in universe.filter_by_exchange("XETRA")] == ["SAP"]
        assert [a.symbol for a in universe.filter_by_currency("USDT")] == ["LUNA", "NEW"]

    def test_filters_respect_universe_timestamp(self, universe_assets: list[Asset]):
        universe = Universe.from_assets(universe_assets, timestamp=datetime(2023, 1, 1))

        assert universe.filter_by_type("crypto") == []
        assert [a.symbol for a in universe.filter_by_currency("USD")] == ["AAPL"]


# ============================================================================
# Snapshot Update Tests
# ============================================================================


class TestSnapshotUpdates:
    """Test folding quotes and bars into snapshots."""

    def test_quote_replaces_price(self, snapshot: MarketSnapshot, t0: datetime):
        later = t0 + timedelta(minutes=1)
        quote = MarketQuote(symbol="AAPL", price=Decimal("151.25"), timestamp=later, bid=Decimal("151.2"))

        updated = update_snapshot_quote(snapshot, quote)

        assert updated.price["AAPL"] == Decimal("151.25")
        assert updated.price["MSFT"] == Decimal("300")
        assert updated.timestamp == later
        assert snapshot.price["AAPL"] == Decimal("150")

    def test_stale_quote_keeps_snapshot_time(self, snapshot: MarketSnapshot, t0: datetime):
        quote = MarketQuote(symbol="TSLA", price=Decimal("200"), timestamp=t0 - timedelta(days=1))

        updated = update_snapshot_quote(snapshot, quote)

        assert updated.price["TSLA"] == Decimal("200")
        assert updated.timestamp == t0

    def test_bar_close_becomes_price(self, snapshot: MarketSnapshot, t0: datetime):
        bar = MarketBar(
            symbol="BTC",
            open=Decimal("40000"),
            high=Decimal("42000"),
            low=Decimal("39000"),
            close=Decimal("41000"),
            volume=Decimal("1200"),
            timestamp=t0 + timedelta(days=1),
            interval="1d",
        )

        updated = update_snapshot_bar(snapshot, bar)

        assert updated.price["BTC"] == Decimal("41000")
        assert updated.timestamp == t0 + timedelta(days=1)
