"""
Trading bot lifecycle: purchase, progress updates and the one-time payout.

Bot figures are kept in KSH. The purchase price is taken from the user's
balance in the user's currency; the payout is converted back on completion.
"""
from datetime import timedelta
from decimal import Decimal
import logging
import random

from sqlalchemy import update

from extensions import db
from ledger import balances
from ledger.config import LedgerConfig
from ledger.currency import convert_currency, quantize
from ledger.exceptions import InsufficientBalanceError, LedgerValidationError, NotFoundError
from ledger.transactions import record_transaction
from models import (
    BotStatus,
    TradingBot,
    TransactionStatus,
    TransactionType,
    User,
    utcnow,
)

logger = logging.getLogger(__name__)


def bot_figures(investment_ksh):
    """Return (multiplier, total_profit, daily_profit) for a KSH investment."""
    investment_ksh = quantize(investment_ksh)
    multiplier = LedgerConfig.profit_multiplier(investment_ksh)
    total_profit = quantize(investment_ksh * multiplier)
    daily_profit = quantize(total_profit / LedgerConfig.BOT_CYCLE_DAYS)
    return multiplier, total_profit, daily_profit


def _next_mining_time(start=None):
    return (start or utcnow()) + timedelta(hours=LedgerConfig.MINING_INTERVAL_HOURS)


def _new_bot(user_id, name, investment_ksh, image_url=None, template_id=None):
    _, total_profit, daily_profit = bot_figures(investment_ksh)
    bot = TradingBot(
        user_id=user_id,
        template_id=template_id,
        name=name,
        investment=quantize(investment_ksh),
        daily_profit=daily_profit,
        total_profit=total_profit,
        progress=0,
        status=BotStatus.ACTIVE.value,
        image_url=image_url,
        next_mining_time=_next_mining_time(),
    )
    db.session.add(bot)
    db.session.flush()
    return bot


def purchase_bot(user: User, name: str, investment, image_url=None, template_id=None,
                 investment_ksh=None) -> TradingBot:
    """
    Buy a bot with `investment` expressed in the user's currency.
    Template purchases pass the template's own KSH price as `investment_ksh`.

    Raises InsufficientBalanceError before writing anything when the balance
    is short, and again if the conditional debit loses a race; the caller
    rolls back in that case. Does not commit.
    """
    investment = quantize(investment)
    if investment <= 0:
        raise LedgerValidationError("Investment must be greater than 0")

    if investment > Decimal(user.balance or 0):
        raise InsufficientBalanceError()

    if investment_ksh is None:
        investment_ksh = convert_currency(investment, user.currency, "KSH")
    investment_ksh = quantize(investment_ksh)

    if not balances.debit(user.id, investment, user.currency, active_bots=1):
        raise InsufficientBalanceError()

    bot = _new_bot(user.id, name, investment_ksh, image_url=image_url, template_id=template_id)

    record_transaction(
        user.id,
        TransactionType.PURCHASE.value,
        "balance",
        investment,
        user.currency,
        status=TransactionStatus.COMPLETED.value,
        reference_id=bot.id,
        note=f"Purchased {name}",
    )
    logger.info(
        f"User {user.id} bought bot {bot.id}: {investment} {user.currency} "
        f"({investment_ksh} KSH, total profit {bot.total_profit} KSH)"
    )
    return bot


def grant_bot(user: User, name: str, investment_ksh, image_url=None) -> TradingBot:
    """Admin-created bot: same figures as a purchase, no debit."""
    investment_ksh = quantize(investment_ksh)
    if investment_ksh <= 0:
        raise LedgerValidationError("Investment must be greater than 0")

    bot = _new_bot(user.id, name, investment_ksh, image_url=image_url)
    balances.adjust_counters(user.id, active_bots=1)
    return bot


def remove_bot(bot: TradingBot):
    if bot.status == BotStatus.ACTIVE.value:
        balances.adjust_counters(bot.user_id, active_bots=-1)
    db.session.delete(bot)


def get_user_bot(user_id, bot_id) -> TradingBot:
    bot = TradingBot.query.filter_by(id=bot_id, user_id=user_id).first()
    if bot is None:
        raise NotFoundError("Bot not found")
    return bot


def simulation_step(low: int, high: int) -> int:
    if high < low:
        low, high = high, low
    return random.randint(low, high)


def _result(bot: TradingBot, credited=Decimal("0")):
    return {
        "botId": bot.id,
        "progress": bot.progress,
        "status": bot.status,
        "completed": bot.status == BotStatus.COMPLETED.value,
        "credited": float(credited or 0),
        "nextMiningTime": bot.next_mining_time.isoformat() if bot.next_mining_time else None,
    }


def _complete(bot: TradingBot) -> Decimal:
    """Flip active -> completed and pay out. Only the caller that wins the flip pays."""
    stmt = (
        update(TradingBot)
        .where(TradingBot.id == bot.id, TradingBot.status == BotStatus.ACTIVE.value)
        .values(status=BotStatus.COMPLETED.value, progress=100, completed_at=utcnow())
        .execution_options(synchronize_session=False)
    )
    won = db.session.execute(stmt).rowcount == 1
    db.session.refresh(bot)
    if not won:
        return Decimal("0")

    user = db.session.get(User, bot.user_id)
    payout = quantize(convert_currency(bot.total_profit, "KSH", user.currency))

    balances.credit(user.id, payout, user.currency, profit=payout, active_bots=-1)
    record_transaction(
        user.id,
        TransactionType.PROFIT.value,
        "bot",
        payout,
        user.currency,
        status=TransactionStatus.COMPLETED.value,
        reference_id=bot.id,
        note=f"{bot.name} completed",
    )
    logger.info(f"Bot {bot.id} completed: credited {payout} {user.currency} to user {user.id}")
    return payout


def set_progress(bot: TradingBot, progress: int) -> dict:
    """Set progress (clamped to 0..100); reaching 100 completes the bot."""
    if bot.status == BotStatus.COMPLETED.value:
        return _result(bot)

    bot.progress = max(0, min(100, int(progress)))
    db.session.flush()

    credited = Decimal("0")
    if bot.progress >= 100:
        credited = _complete(bot)
    return _result(bot, credited)


def simulate(bot: TradingBot, step: int) -> dict:
    if bot.status == BotStatus.COMPLETED.value:
        return _result(bot)

    bot.next_mining_time = _next_mining_time()
    return set_progress(bot, (bot.progress or 0) + step)
