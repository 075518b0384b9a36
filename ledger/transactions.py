from typing import Optional, Tuple
import logging

from sqlalchemy import update

from extensions import db
from ledger import balances
from ledger.currency import convert_currency, quantize
from ledger.exceptions import LedgerValidationError, NotFoundError
from models import Transaction, TransactionStatus, TransactionType, User

logger = logging.getLogger(__name__)

TERMINAL_STATUSES = (TransactionStatus.COMPLETED.value, TransactionStatus.FAILED.value)


def record_transaction(user_id: int, type: str, method: str, amount, currency: str,
                       status: str = TransactionStatus.PENDING.value, **extra) -> Transaction:
    """Add a ledger row to the session and flush it so the id is available."""
    tx = Transaction(
        user_id=user_id,
        type=type,
        method=method,
        amount=quantize(amount),
        currency=currency,
        status=status,
        **extra,
    )
    db.session.add(tx)
    db.session.flush()
    return tx


def _claim_pending(tx_id: int, new_status: str) -> bool:
    stmt = (
        update(Transaction)
        .where(Transaction.id == tx_id, Transaction.status == TransactionStatus.PENDING.value)
        .values(status=new_status)
        .execution_options(synchronize_session=False)
    )
    return db.session.execute(stmt).rowcount == 1


def _amount_in_user_currency(tx: Transaction, user: Optional[User]):
    if user is None or tx.currency == user.currency:
        return tx.amount
    return quantize(convert_currency(tx.amount, tx.currency, user.currency))


def update_transaction_status(tx_id: int, new_status: str) -> Tuple[Transaction, bool]:
    """
    Move a transaction out of `pending`. Returns (transaction, changed).

    Balance effects run only for the request that wins the pending -> X
    update, so repeating a call never credits or debits twice:
      deposit  pending -> completed  credit the user
      withdraw pending -> failed     refund the amount debited at request time
    Completed and failed are final.
    """
    tx = db.session.get(Transaction, tx_id)
    if tx is None:
        raise NotFoundError("Transaction not found")

    if new_status not in (s.value for s in TransactionStatus):
        raise LedgerValidationError("Invalid status")

    if tx.status == new_status:
        return tx, False

    if new_status == TransactionStatus.PENDING.value or tx.status in TERMINAL_STATUSES:
        raise LedgerValidationError(
            f"Cannot change a {tx.status} transaction to {new_status}"
        )

    if not _claim_pending(tx.id, new_status):
        # Someone else moved it first
        db.session.refresh(tx)
        if tx.status == new_status:
            return tx, False
        raise LedgerValidationError(f"Transaction is already {tx.status}")

    user = db.session.get(User, tx.user_id)
    amount = _amount_in_user_currency(tx, user)

    if tx.type == TransactionType.DEPOSIT.value and new_status == TransactionStatus.COMPLETED.value:
        balances.credit(tx.user_id, amount, user.currency if user else None)
        logger.info(f"Deposit {tx.id} completed: credited {amount} to user {tx.user_id}")

    elif tx.type == TransactionType.WITHDRAW.value and new_status == TransactionStatus.FAILED.value:
        balances.credit(tx.user_id, amount, user.currency if user else None)
        logger.info(f"Withdrawal {tx.id} failed: refunded {amount} to user {tx.user_id}")

    db.session.refresh(tx)
    return tx, True
