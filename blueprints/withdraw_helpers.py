from decimal import Decimal
import logging
from typing import Tuple

from ledger import balances
from ledger.config import LedgerConfig
from ledger.currency import convert_currency, format_currency, quantize
from ledger.exceptions import InsufficientBalanceError
from ledger.transactions import record_transaction
from models import Transaction, TransactionStatus, TransactionType, User

logger = logging.getLogger("ledger.withdrawals")


# ==========================================================
#                  WITHDRAWAL VALIDATOR
# ==========================================================
class WithdrawalValidator:

    @staticmethod
    def has_completed_deposit(user_id: int) -> bool:
        return Transaction.query.filter_by(
            user_id=user_id,
            type=TransactionType.DEPOSIT.value,
            status=TransactionStatus.COMPLETED.value,
        ).first() is not None

    @staticmethod
    def validate_withdrawal_request(user: User, amount: Decimal, password: str) -> Tuple[bool, str]:
        """
        Checks run in this order and stop at the first failure:
        password, minimum, active bot, completed deposit, balance.
        `amount` is already in the user's currency.
        """
        # 1. Password before anything touches money
        if not user.check_password(password):
            return False, "Invalid password"

        # 2. Minimum
        minimum = LedgerConfig.min_withdrawal(user.currency)
        if amount < minimum:
            return False, f"Minimum withdrawal amount is {format_currency(minimum, user.currency)}"

        # 3. Must own a bot
        if (user.active_bots or 0) < 1:
            return False, "You must own at least one bot to withdraw"

        # 4. Must have deposited
        if not WithdrawalValidator.has_completed_deposit(user.id):
            return False, "You must have made at least one deposit to withdraw"

        # 5. Funds
        if Decimal(user.balance or 0) < amount:
            return False, "Insufficient balance"

        return True, "Validation passed"


# ==========================================================
#                  WITHDRAWAL PROCESSOR
# ==========================================================
class WithdrawalProcessor:

    @staticmethod
    def to_user_currency(user: User, amount, currency: str) -> Decimal:
        return quantize(convert_currency(amount, currency, user.currency))

    @staticmethod
    def process_withdrawal_request(user: User, amount: Decimal, method: str, address: str,
                                   network: str = None) -> Transaction:
        """
        Insert the pending withdrawal and debit right away. A lost debit race
        raises InsufficientBalanceError and the caller rolls the insert back.
        """
        tx = record_transaction(
            user.id,
            TransactionType.WITHDRAW.value,
            method,
            amount,
            user.currency,
            status=TransactionStatus.PENDING.value,
            address=address,
            network=network,
        )

        if not balances.debit(user.id, amount, user.currency):
            logger.warning(f"Withdrawal {tx.id} lost the balance race for user {user.id}")
            raise InsufficientBalanceError()

        logger.info(f"Withdrawal {tx.id} requested: {amount} {user.currency} by user {user.id}")
        return tx


# ==========================================================
#                  QUERIES
# ==========================================================
class WithdrawalQueryHelper:

    @staticmethod
    def get_user_withdrawals(user_id: int, limit: int = 50):
        return (
            Transaction.query.filter_by(user_id=user_id, type=TransactionType.WITHDRAW.value)
            .order_by(Transaction.created_at.desc(), Transaction.id.desc())
            .limit(limit)
            .all()
        )

    @staticmethod
    def get_pending_withdrawals():
        return (
            Transaction.query.filter_by(
                type=TransactionType.WITHDRAW.value, status=TransactionStatus.PENDING.value
            )
            .order_by(Transaction.created_at.asc(), Transaction.id.asc())
            .all()
        )
