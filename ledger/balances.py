"""
Atomic balance mutations.

Every change to a user's money or counters is one UPDATE statement so a
balance check and its debit can't be split by a concurrent request. Nothing
here commits; the caller owns the unit of work.
"""
from decimal import Decimal
import logging

from sqlalchemy import case, update

from extensions import db
from ledger.currency import convert_currency, quantize
from ledger.exceptions import CurrencyError
from models import User

logger = logging.getLogger(__name__)


def _expire_cached_user(user_id: int):
    key = db.session.identity_key(User, user_id)
    cached = db.session.identity_map.get(key)
    if cached is not None:
        db.session.expire(cached)


def _counter(column, delta: int):
    if delta >= 0:
        return column + delta
    # Never let a counter drop below zero
    return case((column + delta < 0, 0), else_=column + delta)


def _apply(user_id: int, values: dict, *conditions) -> bool:
    stmt = (
        update(User)
        .where(User.id == user_id, *conditions)
        .values(values)
        .execution_options(synchronize_session=False)
    )
    result = db.session.execute(stmt)
    _expire_cached_user(user_id)
    return result.rowcount == 1


def _currency_changed(user_id: int, currency) -> bool:
    if currency is None:
        return False
    current = db.session.query(User.currency).filter(User.id == user_id).scalar()
    return current is not None and current != currency


def _guard(user_id: int, currency, applied: bool) -> bool:
    if not applied and _currency_changed(user_id, currency):
        logger.warning(f"Balance update for user {user_id} expected {currency}; account currency changed")
        raise CurrencyError("Account currency changed, please retry")
    return applied


def debit(user_id: int, amount, currency: str = None, active_bots: int = 0) -> bool:
    """
    UPDATE users SET balance = balance - :amt
    WHERE id = :id AND balance >= :amt [AND currency = :currency].

    `amount` is in `currency`; a currency switch that lands first makes the
    update miss and raises CurrencyError. Returns False when the user is
    missing or the funds are not there.
    """
    amount = quantize(amount)
    if amount <= 0:
        raise ValueError("debit amount must be positive")

    values = {User.balance: User.balance - amount}
    if active_bots:
        values[User.active_bots] = _counter(User.active_bots, active_bots)

    conditions = [User.balance >= amount]
    if currency is not None:
        conditions.append(User.currency == currency)

    applied = _guard(user_id, currency, _apply(user_id, values, *conditions))
    if not applied:
        logger.info(f"Debit of {amount} refused for user {user_id}")
    return applied


def credit(user_id: int, amount, currency: str = None, profit=None, active_bots: int = 0,
           referrals: int = 0) -> bool:
    values = {}
    amount = quantize(amount or 0)
    if amount:
        values[User.balance] = User.balance + amount
    if profit:
        values[User.profit] = User.profit + quantize(profit)
    if active_bots:
        values[User.active_bots] = _counter(User.active_bots, active_bots)
    if referrals:
        values[User.referrals] = _counter(User.referrals, referrals)
    if not values:
        return True
    if currency is None:
        return _apply(user_id, values)
    return _guard(user_id, currency, _apply(user_id, values, User.currency == currency))


def adjust_counters(user_id: int, active_bots: int = 0, referrals: int = 0) -> bool:
    return credit(user_id, Decimal("0"), active_bots=active_bots, referrals=referrals)


def convert_account_currency(user_id: int, from_currency: str, to_currency: str) -> bool:
    """Switch display currency, converting balance and profit in the same statement."""
    if from_currency == to_currency:
        return True
    rate = convert_currency(Decimal("1"), from_currency, to_currency)
    values = {
        User.currency: to_currency,
        User.balance: User.balance * rate,
        User.profit: User.profit * rate,
    }
    return _apply(user_id, values, User.currency == from_currency)


def set_balance(user_id: int, balance) -> bool:
    balance = quantize(balance)
    if balance < 0:
        raise ValueError("balance cannot be negative")
    return _apply(user_id, {User.balance: balance})
