"""Unit tests for multi-currency portfolio operations.

Tests cover:
- Construction and lookups
- Cash deposits and withdrawals
- Currency routing of trades, fills and corporate actions
- Modification timestamps
- Portfolio-wide validation
"""

from datetime import datetime, timedelta
from decimal import Decimal

import pytest

from qledger.exceptions import InvalidParameterError, PositionNotFoundError
from qledger.services.market.models import Asset
from qledger.services.orders.models import Fill, PositionEffect
from qledger.services.portfolio import service
from qledger.services.portfolio.models import CloseStrategy, Portfolio

# ============================================================================
# Construction & Lookup Tests
# ============================================================================


class TestConstruction:
    """Test portfolio and account construction."""

    def test_create_defaults(self, t0: datetime):
        portfolio = service.create("p1", "Main", created=t0)

        assert portfolio.id == "p1"
        assert portfolio.name == "Main"
        assert portfolio.positions == {}
        assert portfolio.modified == t0

    def test_create_position(self, t0: datetime):
        position = service.create_position(Decimal("500"), t0)

        assert position.cash == Decimal("500")
        assert position.created == t0
        assert position.long == {}

    def test_get_or_create_position(self, t0: datetime):
        """An account is opened once and reused."""
        portfolio = service.create("p1", "Main", created=t0)

        first = service.get_or_create_position(portfolio, "EUR", t0)
        second = service.get_or_create_position(portfolio, "EUR", t0)

        assert first is second
        assert service.get_currencies(portfolio) == ["EUR"]

    def test_lookups_on_missing_currency(self, portfolio: Portfolio):
        assert service.get_position(portfolio, "JPY") is None
        assert service.get_cash(portfolio, "JPY") == Decimal("0")
        assert service.get_cash(portfolio, "USD") == Decimal("100000")


class TestCash:
    """Test deposits and withdrawals."""

    def test_deposit_opens_account(self, portfolio: Portfolio, t0: datetime):
        later = t0 + timedelta(days=1)

        balance = service.deposit(portfolio, "EUR", Decimal("2500"), later)

        assert balance == Decimal("2500")
        assert service.get_cash(portfolio, "EUR") == Decimal("2500")
        assert portfolio.modified == later

    def test_withdraw(self, portfolio: Portfolio):
        assert service.withdraw(portfolio, "USD", "40000") == Decimal("60000")

    def test_negative_deposit_rejected(self, portfolio: Portfolio):
        with pytest.raises(InvalidParameterError):
            service.deposit(portfolio, "USD", Decimal("-1"))


# ============================================================================
# Routing Tests
# ============================================================================


class TestTradeRouting:
    """Test that trades land in the asset's currency account."""

    def test_trades_route_by_currency(self, portfolio: Portfolio, aapl: Asset, btc: Asset, t0: datetime):
        service.deposit(portfolio, "USDT", Decimal("50000"), t0)

        service.open_long(portfolio, aapl, Decimal("150"), Decimal("10"), Decimal("1"), t0)
        service.open_long(portfolio, btc, Decimal("40000"), Decimal("0.5"), time=t0)

        assert service.get_cash(portfolio, "USD") == Decimal("98499")
        assert service.get_cash(portfolio, "USDT") == Decimal("30000")
        assert "AAPL" in portfolio.positions["USD"].long
        assert "BTC" in portfolio.positions["USDT"].long
        assert service.get_all_symbols(portfolio) == {"AAPL", "BTC"}
        assert service.has_asset(portfolio, aapl)

    def test_open_in_new_currency_creates_account(self, portfolio: Portfolio, btc: Asset, t0: datetime):
        """Buying without a funded account drives its cash negative."""
        service.open_long(portfolio, btc, Decimal("100"), Decimal("1"), time=t0)

        assert service.get_cash(portfolio, "USDT") == Decimal("-100")

    def test_close_routes_and_realises(self, portfolio: Portfolio, aapl: Asset, t0: datetime):
        service.open_long(portfolio, aapl, Decimal("100"), Decimal("10"), Decimal("100"), t0)
        service.open_long(portfolio, aapl, Decimal("120"), Decimal("10"), Decimal("120"), t0)

        pnl = service.close_long(portfolio, aapl, Decimal("150"), Decimal("5"), Decimal("150"), CloseStrategy.FIFO, t0)

        assert pnl == Decimal("50")
        assert service.get_cash(portfolio, "USD") == Decimal("98180")

    def test_short_round_trip(self, portfolio: Portfolio, aapl: Asset, t0: datetime):
        service.open_short(portfolio, aapl, Decimal("100"), Decimal("10"), Decimal("100"), t0)

        pnl = service.close_short(portfolio, aapl, Decimal("80"), Decimal("10"), Decimal("80"), CloseStrategy.LIFO, t0)

        assert pnl == Decimal("20")
        assert not service.has_asset(portfolio, aapl)

    def test_close_in_missing_currency_raises(self, portfolio: Portfolio, btc: Asset):
        with pytest.raises(PositionNotFoundError):
            service.close_long(portfolio, btc, Decimal("1"), Decimal("1"), Decimal("0"), CloseStrategy.FIFO)
        with pytest.raises(PositionNotFoundError):
            service.close_short(portfolio, btc, Decimal("1"), Decimal("1"), Decimal("0"), CloseStrategy.FIFO)

    def test_apply_fill_routes_by_asset(self, portfolio: Portfolio, aapl: Asset):
        executed = datetime(2024, 5, 1, 10, 0)
        fill = Fill(
            order_id="o1",
            symbol="AAPL",
            side=PositionEffect.OPEN_LONG.side,
            effect=PositionEffect.OPEN_LONG,
            price=Decimal("100"),
            quantity=Decimal("3"),
            created=executed,
        )

        result = service.apply_fill(portfolio, aapl, fill, CloseStrategy.FIFO)

        assert result.cash_flow == Decimal("-300")
        assert portfolio.modified == executed

    def test_closing_fill_in_missing_currency_opens_no_account(self, portfolio: Portfolio):
        """A rejected closing fill leaves the portfolio as it was."""
        sap = Asset(symbol="SAP", type="stock", currency="EUR")
        fill = Fill(
            symbol="SAP",
            side=PositionEffect.CLOSE_LONG.side,
            effect=PositionEffect.CLOSE_LONG,
            price=Decimal("100"),
            quantity=Decimal("1"),
        )

        with pytest.raises(PositionNotFoundError):
            service.apply_fill(portfolio, sap, fill, CloseStrategy.FIFO)

        assert service.get_currencies(portfolio) == ["USD"]

    def test_modified_tracks_mutation_time(self, portfolio: Portfolio, aapl: Asset, t0: datetime):
        later = t0 + timedelta(hours=2)

        service.open_long(portfolio, aapl, Decimal("100"), Decimal("1"), time=later)

        assert portfolio.modified == later


# ============================================================================
# Corporate Action Routing Tests
# ============================================================================


class TestCorporateActionRouting:
    """Test corporate actions and chain events at portfolio level."""

    def test_split_and_dividend(self, portfolio: Portfolio, aapl: Asset, t0: datetime):
        service.open_long(portfolio, aapl, Decimal("400"), Decimal("100"), time=t0)

        service.handle_split(portfolio, aapl, Decimal("4"), t0)
        cash_flow = service.handle_cash_dividend(portfolio, aapl, Decimal("0.25"), time=t0)

        assert portfolio.positions["USD"].long["AAPL"].quantity == Decimal("400")
        assert cash_flow == Decimal("100")

    def test_merger_and_spinoff(self, portfolio: Portfolio, t0: datetime):
        target = Asset(symbol="TARGET", type="stock", currency="USD")
        service.open_long(portfolio, target, Decimal("100"), Decimal("10"), Decimal("100"), t0)

        service.handle_spinoff(portfolio, target, "SPIN", Decimal("1"), t0)
        cash_flow = service.handle_merger(portfolio, target, "ACQUIRER", Decimal("2"), Decimal("10"), t0)

        usd = portfolio.positions["USD"]
        assert cash_flow == Decimal("100")
        assert set(usd.long) == {"SPIN", "ACQUIRER"}

    def test_actions_on_missing_currency_do_not_create_account(self, portfolio: Portfolio, btc: Asset):
        """No USDT account: no-ops, and no account is opened."""
        service.handle_split(portfolio, btc, Decimal("2"))
        assert service.handle_cash_dividend(portfolio, btc, Decimal("1")) == Decimal("0")
        service.handle_spinoff(portfolio, btc, "X", Decimal("1"))
        assert service.handle_merger(portfolio, btc, "X", Decimal("1")) == Decimal("0")
        service.handle_hard_fork(portfolio, btc, "BCH")
        service.handle_token_swap(portfolio, btc, "WBTC")
        assert service.handle_staking_reward(portfolio, btc, Decimal("0.1")) == Decimal("0")
        assert service.handle_airdrop(portfolio, "USDT", "BTC", "DROP", Decimal("5")) == Decimal("0")

        assert service.get_currencies(portfolio) == ["USD"]

    def test_actions_on_missing_currency_still_validate(self, portfolio: Portfolio, btc: Asset):
        with pytest.raises(InvalidParameterError):
            service.handle_split(portfolio, btc, Decimal("0"))

    def test_noop_leaves_modified_alone(self, portfolio: Portfolio, aapl: Asset, t0: datetime):
        service.handle_split(portfolio, aapl, Decimal("2"), t0 + timedelta(days=1))

        assert portfolio.modified == t0

    def test_zero_staking_reward_leaves_modified_alone(self, portfolio: Portfolio, aapl: Asset, t0: datetime):
        service.open_long(portfolio, aapl, Decimal("100"), Decimal("1"), time=t0)

        service.handle_staking_reward(portfolio, aapl, Decimal("0"), t0 + timedelta(days=1))

        assert portfolio.modified == t0

    def test_fixed_airdrop_opens_account(self, portfolio: Portfolio, t0: datetime):
        quantity = service.handle_airdrop(portfolio, "USDT", None, "DROP", fixed_amount=Decimal("25"), time=t0)

        assert quantity == Decimal("25")
        assert portfolio.positions["USDT"].long["DROP"].quantity == Decimal("25")
        assert portfolio.positions["USDT"].cash == Decimal("0")

    def test_crypto_events(self, portfolio: Portfolio, btc: Asset, t0: datetime):
        service.open_long(portfolio, btc, Decimal("30000"), Decimal("2"), time=t0)

        service.handle_hard_fork(portfolio, btc, "BCH", time=t0)
        reward = service.handle_staking_reward(portfolio, btc, Decimal("0.05"), t0)
        service.handle_token_swap(portfolio, btc, "WBTC", time=t0)

        usdt = portfolio.positions["USDT"]
        assert reward == Decimal("0.1")
        assert usdt.long["BCH"].quantity == Decimal("2")
        assert usdt.long["WBTC"].quantity == Decimal("2.1")
        assert usdt.long["WBTC"].total_cost == Decimal("60000")
        assert "BTC" not in usdt.long


class TestValidatePortfolio:
    """Test portfolio-wide consistency checks."""

    def test_consistent_portfolio(self, portfolio: Portfolio, aapl: Asset, btc: Asset, t0: datetime):
        service.open_long(portfolio, aapl, Decimal("100"), Decimal("10"), time=t0)
        service.open_short(portfolio, btc, Decimal("40000"), Decimal("1"), time=t0)

        assert service.validate_portfolio(portfolio)

    def test_inconsistent_account_fails(self, portfolio: Portfolio, aapl: Asset, t0: datetime):
        service.open_long(portfolio, aapl, Decimal("100"), Decimal("10"), time=t0)
        portfolio.positions["USD"].long["AAPL"].total_cost = Decimal("0")

        assert not service.validate_portfolio(portfolio)
