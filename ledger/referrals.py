import logging
from decimal import Decimal
from typing import Optional

from sqlalchemy import func, update

from extensions import db
from ledger import balances
from ledger.config import LedgerConfig
from ledger.currency import convert_currency, quantize
from ledger.transactions import record_transaction
from models import (
    BonusStatus,
    ReferralBonus,
    TransactionStatus,
    TransactionType,
    User,
    utcnow,
)

logger = logging.getLogger(__name__)


def register_referral(referrer: User, referred: User) -> ReferralBonus:
    """
    Called at signup once the new user has an id. Creates the pending bonus in
    the referrer's currency and bumps the referrer's counter.
    """
    currency = referrer.currency
    bonus = ReferralBonus(
        referrer_id=referrer.id,
        referred_id=referred.id,
        amount=quantize(LedgerConfig.referral_bonus(currency)),
        currency=currency,
        status=BonusStatus.PENDING.value,
    )
    db.session.add(bonus)
    balances.adjust_counters(referrer.id, referrals=1)
    db.session.flush()
    return bonus


def complete_referral_bonus(user: User, deposit_amount) -> Optional[ReferralBonus]:
    """
    Pay the referrer of `user` if `deposit_amount` (in the user's currency)
    qualifies. The pending -> completed update decides who pays, so two
    qualifying deposits never pay twice.
    """
    if not user.referred_by:
        return None

    if not LedgerConfig.qualifies_for_referral(deposit_amount, user.currency):
        return None

    bonus = ReferralBonus.query.filter_by(
        referred_id=user.id, status=BonusStatus.PENDING.value
    ).first()
    if bonus is None:
        return None

    stmt = (
        update(ReferralBonus)
        .where(ReferralBonus.id == bonus.id, ReferralBonus.status == BonusStatus.PENDING.value)
        .values(status=BonusStatus.COMPLETED.value, completed_at=utcnow())
        .execution_options(synchronize_session=False)
    )
    if db.session.execute(stmt).rowcount != 1:
        return None
    db.session.refresh(bonus)

    referrer = db.session.get(User, bonus.referrer_id)
    if referrer is None:
        logger.warning(f"Referral bonus {bonus.id} completed but referrer {bonus.referrer_id} is gone")
        return bonus

    amount = Decimal(bonus.amount)
    if bonus.currency != referrer.currency:
        amount = quantize(convert_currency(amount, bonus.currency, referrer.currency))

    balances.credit(referrer.id, amount, referrer.currency)
    record_transaction(
        referrer.id,
        TransactionType.BONUS.value,
        "referral",
        amount,
        referrer.currency,
        status=TransactionStatus.COMPLETED.value,
        reference_id=user.id,
        note=f"Referral bonus for {user.email}",
    )
    logger.info(f"Referral bonus {bonus.id}: credited {amount} {referrer.currency} to user {referrer.id}")
    return bonus


def referral_stats(user: User) -> dict:
    rows = (
        db.session.query(ReferralBonus.status, func.count(ReferralBonus.id), func.sum(ReferralBonus.amount))
        .filter(ReferralBonus.referrer_id == user.id)
        .group_by(ReferralBonus.status)
        .all()
    )
    counts = {status: (count, Decimal(total or 0)) for status, count, total in rows}
    completed_count, completed_total = counts.get(BonusStatus.COMPLETED.value, (0, Decimal("0")))
    pending_count, pending_total = counts.get(BonusStatus.PENDING.value, (0, Decimal("0")))

    return {
        "totalReferrals": completed_count + pending_count,
        "completedReferrals": completed_count,
        "pendingReferrals": pending_count,
        "totalBonus": float(quantize(completed_total)),
        "pendingBonus": float(quantize(pending_total)),
        "bonusPerReferral": float(LedgerConfig.referral_bonus(user.currency)),
        "qualifyingDeposit": float(LedgerConfig.REFERRAL_QUALIFYING_DEPOSIT[user.currency]),
        "currency": user.currency,
        "referralCode": user.referral_code,
    }
