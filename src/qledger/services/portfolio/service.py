"""Multi-currency portfolio operations.

A Portfolio holds one Position (cash account plus long/short books) per
currency. Operations here pick the Position by ``asset.currency`` and delegate
to the single-account engines in ``trades``, ``corporate_actions``,
``crypto_events`` and ``fills``. Every call that changes an account stamps
``portfolio.modified`` with the same time it passed down.

Corporate actions and chain events never open a currency account: on a
currency the portfolio does not hold they validate their parameters and do
nothing. Fixed-amount airdrops are the exception since they do not depend on
existing holdings.

Example:
    >>> portfolio = create("main", "Main account")
    >>> deposit(portfolio, "USD", Decimal("100000"))
    Decimal('100000')
    >>> open_long(portfolio, aapl, Decimal("150"), Decimal("10"), Decimal("1"))
    Decimal('-1501')
"""

from datetime import datetime
from decimal import Decimal
from typing import Optional

from qledger.exceptions import PositionNotFoundError
from qledger.services.market.models import Asset
from qledger.services.orders.models import Fill, PositionEffect
from qledger.services.portfolio import corporate_actions, crypto_events, fills, trades
from qledger.services.portfolio.fills import ApplyFillResult
from qledger.services.portfolio.lot_tracker import validate_position
from qledger.services.portfolio.models import (
    ZERO,
    CloseStrategy,
    Number,
    Portfolio,
    Position,
    PositionType,
    as_decimal,
)
from qledger.system import LoggerFactory

logger = LoggerFactory.get_logger()


# ==================== Construction & Lookup ====================


def create(
    id: str,
    name: str,
    positions: Optional[dict[str, Position]] = None,
    created: Optional[datetime] = None,
    modified: Optional[datetime] = None,
) -> Portfolio:
    """
    Create a portfolio.

    Args:
        id: Portfolio identifier
        name: Human-readable name
        positions: Initial currency -> Position map
        created: Creation time (defaults to now)
        modified: Last modification (defaults to created)

    Returns:
        New Portfolio
    """
    created_at = created if created is not None else datetime.now()
    return Portfolio(
        id=id,
        name=name,
        positions=positions if positions is not None else {},
        created=created_at,
        modified=modified if modified is not None else created_at,
    )


def create_position(cash: Number = ZERO, time: Optional[datetime] = None) -> Position:
    """Create an empty currency account holding cash."""
    act_time = time if time is not None else datetime.now()
    return Position(cash=as_decimal(cash), created=act_time, modified=act_time)


def get_position(portfolio: Portfolio, currency: str) -> Optional[Position]:
    return portfolio.positions.get(currency)


def get_or_create_position(portfolio: Portfolio, currency: str, time: Optional[datetime] = None) -> Position:
    """Return the currency's account, opening an empty one if absent."""
    position = portfolio.positions.get(currency)
    if position is None:
        position = create_position(time=time)
        portfolio.positions[currency] = position
        logger.debug("portfolio.position_created", portfolio_id=portfolio.id, currency=currency)
    return position


def get_cash(portfolio: Portfolio, currency: str) -> Decimal:
    """Cash balance in currency (0 when the portfolio holds no such account)."""
    position = portfolio.positions.get(currency)
    return position.cash if position is not None else ZERO


def get_currencies(portfolio: Portfolio) -> list[str]:
    return list(portfolio.positions)


def get_all_symbols(portfolio: Portfolio) -> set[str]:
    """Symbols with an open long or short position in any currency."""
    symbols: set[str] = set()
    for position in portfolio.positions.values():
        symbols.update(position.long)
        symbols.update(position.short)
    return symbols


def has_asset(portfolio: Portfolio, asset: Asset) -> bool:
    """True if the asset has an open long or short position in its currency."""
    position = portfolio.positions.get(asset.currency)
    if position is None:
        return False
    return asset.symbol in position.long or asset.symbol in position.short


def validate_portfolio(portfolio: Portfolio) -> bool:
    """
    Check lot/aggregate consistency of every currency account.

    Returns:
        True if every account passes ``validate_position``
    """
    # Evaluate every account so each mismatch gets logged
    results = [validate_position(position) for position in portfolio.positions.values()]
    return all(results)


def _now(time: Optional[datetime]) -> datetime:
    return time if time is not None else datetime.now()


def _touch(portfolio: Portfolio, position: Position, act_time: datetime) -> None:
    # Engines only stamp the account when they changed it
    if position.modified == act_time:
        portfolio.modified = act_time


def _held(portfolio: Portfolio, currency: str) -> tuple[Position, bool]:
    """The currency's account, or a detached empty one when not held."""
    position = portfolio.positions.get(currency)
    if position is None:
        return Position(), False
    return position, True


# ==================== Cash ====================


def deposit(portfolio: Portfolio, currency: str, amount: Number, time: Optional[datetime] = None) -> Decimal:
    """
    Add cash to a currency account, opening it if needed.

    Returns:
        New cash balance

    Raises:
        InvalidParameterError: If amount is negative
    """
    amount = as_decimal(amount)
    corporate_actions.require_non_negative("deposit amount", amount)

    act_time = _now(time)
    position = get_or_create_position(portfolio, currency, act_time)
    position.cash += amount
    position.modified = act_time
    portfolio.modified = act_time

    logger.info("portfolio.cash_deposited", currency=currency, amount=str(amount), cash=str(position.cash))
    return position.cash


def withdraw(portfolio: Portfolio, currency: str, amount: Number, time: Optional[datetime] = None) -> Decimal:
    """
    Remove cash from a currency account.

    The balance may go negative; overdraft checks belong to the caller.

    Returns:
        New cash balance

    Raises:
        InvalidParameterError: If amount is negative
    """
    amount = as_decimal(amount)
    corporate_actions.require_non_negative("withdrawal amount", amount)

    act_time = _now(time)
    position = get_or_create_position(portfolio, currency, act_time)
    position.cash -= amount
    position.modified = act_time
    portfolio.modified = act_time

    logger.info("portfolio.cash_withdrawn", currency=currency, amount=str(amount), cash=str(position.cash))
    return position.cash


# ==================== Trades ====================


def open_long(
    portfolio: Portfolio,
    asset: Asset,
    price: Number,
    quantity: Number,
    commission: Number = ZERO,
    time: Optional[datetime] = None,
) -> Decimal:
    """Buy to open in the asset's currency account. Returns the cash flow."""
    act_time = _now(time)
    position = get_or_create_position(portfolio, asset.currency, act_time)
    cash_flow = trades.open_long(position, asset.symbol, price, quantity, commission, act_time)
    _touch(portfolio, position, act_time)
    return cash_flow


def close_long(
    portfolio: Portfolio,
    asset: Asset,
    price: Number,
    quantity: Number,
    commission: Number,
    strategy: CloseStrategy,
    time: Optional[datetime] = None,
) -> Decimal:
    """
    Sell to close in the asset's currency account.

    Returns:
        Realised P&L

    Raises:
        PositionNotFoundError: If the asset has no long position
    """
    position = portfolio.positions.get(asset.currency)
    if position is None:
        raise PositionNotFoundError(asset.symbol, PositionType.LONG.value)

    act_time = _now(time)
    realised_pnl = trades.close_long(position, asset.symbol, price, quantity, commission, strategy, act_time)
    _touch(portfolio, position, act_time)
    return realised_pnl


def open_short(
    portfolio: Portfolio,
    asset: Asset,
    price: Number,
    quantity: Number,
    commission: Number = ZERO,
    time: Optional[datetime] = None,
) -> Decimal:
    """Sell short in the asset's currency account. Returns the proceeds."""
    act_time = _now(time)
    position = get_or_create_position(portfolio, asset.currency, act_time)
    proceeds = trades.open_short(position, asset.symbol, price, quantity, commission, act_time)
    _touch(portfolio, position, act_time)
    return proceeds


def close_short(
    portfolio: Portfolio,
    asset: Asset,
    price: Number,
    quantity: Number,
    commission: Number,
    strategy: CloseStrategy,
    time: Optional[datetime] = None,
) -> Decimal:
    """
    Buy to cover in the asset's currency account.

    Raises:
        PositionNotFoundError: If the asset has no short position
    """
    position = portfolio.positions.get(asset.currency)
    if position is None:
        raise PositionNotFoundError(asset.symbol, PositionType.SHORT.value)

    act_time = _now(time)
    realised_pnl = trades.close_short(position, asset.symbol, price, quantity, commission, strategy, act_time)
    _touch(portfolio, position, act_time)
    return realised_pnl


def apply_fill(portfolio: Portfolio, asset: Asset, fill: Fill, close_strategy: CloseStrategy) -> ApplyFillResult:
    """
    Apply an execution to the asset's currency account.

    Raises:
        PositionNotFoundError: If a closing fill has nothing to close
    """
    if fill.effect is PositionEffect.CLOSE_LONG or fill.effect is PositionEffect.CLOSE_SHORT:
        position = portfolio.positions.get(asset.currency)
        if position is None:
            side = PositionType.LONG if fill.effect is PositionEffect.CLOSE_LONG else PositionType.SHORT
            raise PositionNotFoundError(asset.symbol, side.value)
    else:
        position = get_or_create_position(portfolio, asset.currency, fill.created)
    result = fills.apply_fill(position, fill, close_strategy)
    _touch(portfolio, position, fill.created)
    return result


# ==================== Corporate Actions ====================


def handle_split(portfolio: Portfolio, asset: Asset, ratio: Number, time: Optional[datetime] = None) -> None:
    act_time = _now(time)
    position, held = _held(portfolio, asset.currency)
    corporate_actions.handle_split(position, asset.symbol, ratio, act_time)
    if held:
        _touch(portfolio, position, act_time)


def handle_cash_dividend(
    portfolio: Portfolio,
    asset: Asset,
    amount_per_share: Number,
    tax_rate: Number = ZERO,
    time: Optional[datetime] = None,
) -> Decimal:
    """Pay a dividend on the asset. Returns the net cash flow."""
    act_time = _now(time)
    position, held = _held(portfolio, asset.currency)
    cash_flow = corporate_actions.handle_cash_dividend(position, asset.symbol, amount_per_share, tax_rate, act_time)
    if held:
        _touch(portfolio, position, act_time)
    return cash_flow


def handle_spinoff(
    portfolio: Portfolio,
    asset: Asset,
    new_symbol: str,
    ratio: Number,
    time: Optional[datetime] = None,
) -> None:
    act_time = _now(time)
    position, held = _held(portfolio, asset.currency)
    corporate_actions.handle_spinoff(position, asset.symbol, new_symbol, ratio, act_time)
    if held:
        _touch(portfolio, position, act_time)


def handle_merger(
    portfolio: Portfolio,
    asset: Asset,
    new_symbol: str,
    ratio: Number,
    cash_component: Number = ZERO,
    time: Optional[datetime] = None,
) -> Decimal:
    """Convert the asset into new_symbol. Returns the net cash flow."""
    act_time = _now(time)
    position, held = _held(portfolio, asset.currency)
    cash_flow = corporate_actions.handle_merger(position, asset.symbol, new_symbol, ratio, cash_component, act_time)
    if held:
        _touch(portfolio, position, act_time)
    return cash_flow


# ==================== Chain Events ====================


def handle_hard_fork(
    portfolio: Portfolio,
    asset: Asset,
    new_symbol: str,
    ratio: Number = Decimal("1"),
    time: Optional[datetime] = None,
) -> None:
    act_time = _now(time)
    position, held = _held(portfolio, asset.currency)
    crypto_events.handle_hard_fork(position, asset.symbol, new_symbol, ratio, act_time)
    if held:
        _touch(portfolio, position, act_time)


def handle_airdrop(
    portfolio: Portfolio,
    currency: str,
    holder_symbol: Optional[str],
    airdrop_symbol: str,
    amount_per_token: Number = ZERO,
    fixed_amount: Number = ZERO,
    time: Optional[datetime] = None,
) -> Decimal:
    """
    Credit an airdrop in a currency account.

    A fixed-amount airdrop opens the account if the portfolio does not hold
    the currency yet.

    Returns:
        Quantity airdropped
    """
    act_time = _now(time)
    position, held = _held(portfolio, currency)
    quantity = crypto_events.handle_airdrop(
        position, holder_symbol, airdrop_symbol, amount_per_token, fixed_amount, act_time
    )
    if quantity > 0 and not held:
        position.created = act_time
        portfolio.positions[currency] = position
        logger.debug("portfolio.position_created", portfolio_id=portfolio.id, currency=currency)
        held = True
    if held:
        _touch(portfolio, position, act_time)
    return quantity


def handle_token_swap(
    portfolio: Portfolio,
    asset: Asset,
    new_symbol: str,
    ratio: Number = Decimal("1"),
    time: Optional[datetime] = None,
) -> None:
    act_time = _now(time)
    position, held = _held(portfolio, asset.currency)
    crypto_events.handle_token_swap(position, asset.symbol, new_symbol, ratio, act_time)
    if held:
        _touch(portfolio, position, act_time)


def handle_staking_reward(
    portfolio: Portfolio,
    asset: Asset,
    reward_per_token: Number,
    time: Optional[datetime] = None,
) -> Decimal:
    """Credit staking rewards on the asset. Returns the reward quantity."""
    act_time = _now(time)
    position, held = _held(portfolio, asset.currency)
    reward = crypto_events.handle_staking_reward(position, asset.symbol, reward_per_token, act_time)
    if held:
        _touch(portfolio, position, act_time)
    return reward
