"""Shared fixtures for qledger unit tests.

Provides fixed timestamps, funded currency accounts and reference assets so
that tests stay deterministic and free of file I/O.
"""

from datetime import datetime
from decimal import Decimal

import pytest

from qledger.services.market.models import Asset, MarketSnapshot
from qledger.services.portfolio.models import Portfolio, Position
from qledger.system import LoggerFactory


@pytest.fixture(autouse=True)
def reset_logging():
    """Restore structlog defaults after tests that configure logging."""
    yield
    LoggerFactory.reset()


@pytest.fixture
def t0() -> datetime:
    """Fixed base timestamp for deterministic mutations."""
    return datetime(2024, 1, 2, 9, 30, 0)


@pytest.fixture
def position(t0: datetime) -> Position:
    """USD account funded with 100,000."""
    return Position(cash=Decimal("100000"), created=t0, modified=t0)


@pytest.fixture
def empty_position(t0: datetime) -> Position:
    """Account with no cash and no books."""
    return Position(created=t0, modified=t0)


@pytest.fixture
def aapl() -> Asset:
    return Asset(symbol="AAPL", type="stock", currency="USD", exchange="NASDAQ", name="Apple Inc.")


@pytest.fixture
def btc() -> Asset:
    return Asset(
        symbol="BTC",
        type="crypto",
        currency="USDT",
        exchange="BINANCE",
        name="Bitcoin",
        lot_size=Decimal("0.00001"),
        tick_size=Decimal("0.01"),
    )


@pytest.fixture
def portfolio(t0: datetime) -> Portfolio:
    """Portfolio with a funded USD account."""
    return Portfolio(
        id="test-portfolio",
        name="Test",
        positions={"USD": Position(cash=Decimal("100000"), created=t0, modified=t0)},
        created=t0,
        modified=t0,
    )


@pytest.fixture
def snapshot(t0: datetime) -> MarketSnapshot:
    """Prices for the reference symbols."""
    return MarketSnapshot(
        timestamp=t0,
        price={"AAPL": Decimal("150"), "MSFT": Decimal("300"), "BTC": Decimal("40000")},
    )
