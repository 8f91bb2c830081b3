"""Chain events for crypto holdings.

Hard forks, airdrops, token swaps and staking rewards applied to a single
currency account. Like stock corporate actions these are no-ops when the
referenced symbol is not held, except fixed-amount airdrops which can create a
position from nothing.
"""

from datetime import datetime
from decimal import Decimal
from typing import Optional

from qledger.exceptions import InvalidParameterError
from qledger.services.portfolio.corporate_actions import basis_price, require_non_negative, require_positive
from qledger.services.portfolio.lot_tracker import push_long_lot, push_short_lot
from qledger.services.portfolio.models import ZERO, LongLot, Number, Position, ShortLot, as_decimal
from qledger.system import LoggerFactory

logger = LoggerFactory.get_logger()


def handle_hard_fork(
    position: Position,
    symbol: str,
    new_symbol: str,
    ratio: Number = Decimal("1"),
    time: Optional[datetime] = None,
) -> None:
    """
    Apply a hard fork.

    Holders of symbol receive ratio coins of new_symbol per coin, as a
    zero-basis lot. The original position is unchanged.

    Args:
        position: Currency account to modify
        symbol: Original chain's coin
        new_symbol: Forked coin
        ratio: New coins per original coin
        time: Mutation timestamp (defaults to now)

    Raises:
        InvalidParameterError: If ratio is not positive
    """
    ratio = as_decimal(ratio)
    require_positive("hard fork ratio", ratio)

    act_time = time if time is not None else datetime.now()

    long_pos = position.long.get(symbol)
    short_pos = position.short.get(symbol)

    if long_pos is None and short_pos is None:
        logger.debug("crypto_event.hard_fork_skipped", symbol=symbol, reason="No position found for this symbol")
        return

    if long_pos is not None:
        lot = LongLot(quantity=long_pos.quantity * ratio, price=ZERO, total_cost=ZERO, created=act_time, modified=act_time)
        push_long_lot(position, new_symbol, lot, act_time)

    if short_pos is not None:
        short_lot = ShortLot(
            quantity=short_pos.quantity * ratio,
            price=ZERO,
            total_proceeds=ZERO,
            created=act_time,
            modified=act_time,
        )
        push_short_lot(position, new_symbol, short_lot, act_time)

    position.modified = act_time

    logger.info("crypto_event.hard_fork_applied", symbol=symbol, new_symbol=new_symbol, ratio=str(ratio))


def handle_airdrop(
    position: Position,
    holder_symbol: Optional[str],
    airdrop_symbol: str,
    amount_per_token: Number = ZERO,
    fixed_amount: Number = ZERO,
    time: Optional[datetime] = None,
) -> Decimal:
    """
    Apply an airdrop.

    Proportional airdrops credit amount_per_token per unit of holder_symbol
    held long. Universal airdrops (holder_symbol None) credit fixed_amount.
    Either way the tokens arrive as a zero-basis lot.

    Args:
        position: Currency account to modify
        holder_symbol: Symbol that qualifies for the airdrop, or None
        airdrop_symbol: Token being airdropped
        amount_per_token: Tokens per qualifying unit (proportional airdrops)
        fixed_amount: Tokens credited (universal airdrops)
        time: Mutation timestamp (defaults to now)

    Returns:
        Quantity airdropped (0 if nothing qualified)

    Raises:
        InvalidParameterError: If neither a holder symbol nor a positive fixed
            amount is given, or amounts are negative

    Example:
        >>> # 2 BTC held, 100 tokens per BTC
        >>> handle_airdrop(position, "BTC", "AIRDROP", Decimal("100"))
        Decimal('200')
    """
    amount_per_token, fixed_amount = as_decimal(amount_per_token), as_decimal(fixed_amount)
    if not holder_symbol and fixed_amount <= 0:
        raise InvalidParameterError(
            "airdrop",
            fixed_amount,
            "Either holder_symbol with amount_per_token or a positive fixed_amount must be specified.",
        )
    require_non_negative("airdrop amount", amount_per_token)
    require_non_negative("airdrop fixed amount", fixed_amount)

    act_time = time if time is not None else datetime.now()

    if holder_symbol:
        holder = position.long.get(holder_symbol)
        quantity = holder.quantity * amount_per_token if holder is not None else ZERO
    else:
        quantity = fixed_amount

    if quantity <= 0:
        logger.debug(
            "crypto_event.airdrop_skipped",
            holder_symbol=holder_symbol,
            airdrop_symbol=airdrop_symbol,
            reason="Nothing qualifies for the airdrop",
        )
        return ZERO

    lot = LongLot(quantity=quantity, price=ZERO, total_cost=ZERO, created=act_time, modified=act_time)
    push_long_lot(position, airdrop_symbol, lot, act_time)
    position.modified = act_time

    logger.info(
        "crypto_event.airdrop_applied",
        holder_symbol=holder_symbol,
        airdrop_symbol=airdrop_symbol,
        quantity=str(quantity),
    )
    return quantity


def handle_token_swap(
    position: Position,
    old_symbol: str,
    new_symbol: str,
    ratio: Number = Decimal("1"),
    time: Optional[datetime] = None,
) -> None:
    """
    Apply a token swap or migration.

    The old position is replaced by ratio new tokens per old token carrying
    the full cost (or proceeds) basis unchanged.

    Args:
        position: Currency account to modify
        old_symbol: Token being retired
        new_symbol: Replacement token
        ratio: New tokens per old token
        time: Mutation timestamp (defaults to now)

    Raises:
        InvalidParameterError: If ratio is not positive
    """
    ratio = as_decimal(ratio)
    require_positive("swap ratio", ratio)

    act_time = time if time is not None else datetime.now()

    long_pos = position.long.get(old_symbol)
    short_pos = position.short.get(old_symbol)

    if long_pos is None and short_pos is None:
        logger.debug("crypto_event.token_swap_skipped", symbol=old_symbol, reason="No position found for this symbol")
        return

    if long_pos is not None:
        new_quantity = long_pos.quantity * ratio
        lot = LongLot(
            quantity=new_quantity,
            price=basis_price(long_pos.total_cost, new_quantity),
            total_cost=long_pos.total_cost,
            created=act_time,
            modified=act_time,
        )
        del position.long[old_symbol]
        push_long_lot(position, new_symbol, lot, act_time)

    if short_pos is not None:
        new_quantity = short_pos.quantity * ratio
        short_lot = ShortLot(
            quantity=new_quantity,
            price=basis_price(short_pos.total_proceeds, new_quantity),
            total_proceeds=short_pos.total_proceeds,
            created=act_time,
            modified=act_time,
        )
        del position.short[old_symbol]
        push_short_lot(position, new_symbol, short_lot, act_time)

    position.modified = act_time

    logger.info("crypto_event.token_swap_applied", old_symbol=old_symbol, new_symbol=new_symbol, ratio=str(ratio))


def handle_staking_reward(
    position: Position,
    symbol: str,
    reward_per_token: Number,
    time: Optional[datetime] = None,
) -> Decimal:
    """
    Credit staking rewards on a long position.

    Rewards are appended as a zero-cost lot, so quantity grows while total
    cost stays the same.

    Args:
        position: Currency account to modify
        symbol: Staked token
        reward_per_token: Reward units per staked unit
        time: Mutation timestamp (defaults to now)

    Returns:
        Reward quantity credited (0 if the token is not held long)

    Raises:
        InvalidParameterError: If reward_per_token is negative
    """
    reward_per_token = as_decimal(reward_per_token)
    require_non_negative("reward amount", reward_per_token)

    act_time = time if time is not None else datetime.now()

    long_pos = position.long.get(symbol)
    if long_pos is None:
        logger.debug("crypto_event.staking_reward_skipped", symbol=symbol, reason="No long position found for this symbol")
        return ZERO

    reward = long_pos.quantity * reward_per_token
    if reward > 0:
        lot = LongLot(quantity=reward, price=ZERO, total_cost=ZERO, created=act_time, modified=act_time)
        push_long_lot(position, symbol, lot, act_time)
        position.modified = act_time

    logger.info("crypto_event.staking_reward_applied", symbol=symbol, reward=str(reward))
    return reward
