#==========================================================================================
#       DEPOSIT / WITHDRAW SERVICE
#==========================================================================================
from flask import Blueprint, current_app, jsonify, request
from flask_login import current_user, login_required
from sqlalchemy.exc import SQLAlchemyError

from blueprints.auth_helpers import current_account, demo_blocked
from blueprints.withdraw_helpers import WithdrawalProcessor, WithdrawalQueryHelper, WithdrawalValidator
from extensions import db, limiter
from ledger.currency import format_currency
from ledger.exceptions import LedgerError, LedgerValidationError, NotFoundError
from ledger.referrals import complete_referral_bonus
from ledger.transactions import record_transaction
from models import DepositAddress, ReferralBonus, Transaction, TransactionStatus, TransactionType, User
from schemas import DepositRequest, WithdrawRequest, load_body
from utils import history_row

bp = Blueprint("payments", __name__)

CRYPTO_METHODS = ("crypto", "usdt", "btc", "eth")
DEFAULT_NETWORK = "BSC"


def _sensitive_limit():
    return current_app.config["SENSITIVE_RATE_LIMIT"]


def lookup_deposit_address(coin, network):
    """Admin-configured address through the per-app TTL cache."""
    coin = (coin or "USDT").upper()
    network = (network or DEFAULT_NETWORK).upper()
    cache = current_app.extensions["deposit_address_cache"]

    def load():
        row = DepositAddress.query.filter_by(coin=coin, network=network).first()
        return row.to_dict() if row else None

    return cache.get_or_load(coin, network, load)


@bp.route("/api/deposit/address", methods=["GET"])
@limiter.limit(_sensitive_limit)
@login_required
def deposit_address():
    address = lookup_deposit_address(request.args.get("coin"), request.args.get("network"))
    if address is None:
        raise NotFoundError("Deposit address not configured")
    return jsonify({
        "coin": address["coin"],
        "network": address["network"],
        "address": address["address"],
    }), 200


#===========================================================================
#      DEPOSIT
#==============================================================================
@bp.route("/api/deposit", methods=["POST"])
@limiter.limit(_sensitive_limit)
@login_required
@demo_blocked("Demo users cannot make deposits")
def deposit():
    """
    Record a pending deposit in the user's currency. A qualifying amount
    completes the user's pending referral bonus; a failure there is logged
    and the deposit still goes through.
    """
    data = load_body(DepositRequest)
    user = current_account()

    amount = WithdrawalProcessor.to_user_currency(user, data.amount, data.currency.value)
    if amount <= 0:
        raise LedgerValidationError("Amount is too small")
    method = data.method.lower()
    network = data.network
    address = data.address

    if method in CRYPTO_METHODS:
        network = (network or DEFAULT_NETWORK).upper()
        if not address:
            configured = lookup_deposit_address(data.coin.value if data.coin else "USDT", network)
            address = configured["address"] if configured else None

    tx = record_transaction(
        user.id,
        TransactionType.DEPOSIT.value,
        method,
        amount,
        user.currency,
        status=TransactionStatus.PENDING.value,
        network=network,
        address=address,
        tx_hash=data.tx_hash,
        note=f"Deposit of {format_currency(data.amount, data.currency.value)}",
    )

    bonus = None
    try:
        with db.session.begin_nested():
            bonus = complete_referral_bonus(user, amount)
    except (SQLAlchemyError, LedgerError):
        current_app.logger.exception(f"Referral processing failed for deposit {tx.id}")
        bonus = None

    db.session.commit()

    current_app.logger.info(f"Deposit {tx.id}: {amount} {user.currency} via {method} by user {user.id}")
    payload = {
        "message": "Deposit request submitted",
        "transaction": tx.to_dict(),
        "amount": format_currency(amount, user.currency),
        "originalAmount": format_currency(data.amount, data.currency.value),
        "referralBonusCompleted": bonus is not None,
    }
    if method in CRYPTO_METHODS:
        payload["depositAddress"] = address
        payload["network"] = network
    return jsonify(payload), 201


#===========================================================================
#      WITHDRAW
#==============================================================================
@bp.route("/api/withdraw", methods=["POST"])
@limiter.limit(_sensitive_limit)
@login_required
@demo_blocked("Demo users cannot make withdrawals")
def withdraw():
    data = load_body(WithdrawRequest)
    user = current_account()

    amount = WithdrawalProcessor.to_user_currency(user, data.amount, data.currency.value)

    ok, message = WithdrawalValidator.validate_withdrawal_request(user, amount, data.password)
    if not ok:
        raise LedgerValidationError(message)

    tx = WithdrawalProcessor.process_withdrawal_request(
        user, amount, data.method.lower(), data.address, network=data.network
    )
    db.session.commit()

    return jsonify({
        "message": "Withdrawal request submitted for approval",
        "withdrawalId": tx.id,
        "status": tx.status,
        "amount": format_currency(amount, user.currency),
        "originalAmount": format_currency(data.amount, data.currency.value),
        "balance": float(user.balance),
    }), 201


#===========================================================================
#      HISTORY
#==============================================================================
def _history(query, currency):
    rows = query.order_by(Transaction.created_at.desc(), Transaction.id.desc()).limit(100).all()
    return [history_row(tx, currency) for tx in rows]


@bp.route("/api/transactions", methods=["GET"])
@login_required
def transactions():
    if current_user.is_demo:
        return jsonify({"transactions": []}), 200
    user = current_account()
    return jsonify({"transactions": _history(Transaction.query.filter_by(user_id=user.id), user.currency)}), 200


@bp.route("/api/deposits", methods=["GET"])
@login_required
def deposits():
    if current_user.is_demo:
        return jsonify({"deposits": []}), 200
    user = current_account()
    query = Transaction.query.filter_by(user_id=user.id, type=TransactionType.DEPOSIT.value)
    return jsonify({"deposits": _history(query, user.currency)}), 200


@bp.route("/api/withdrawals", methods=["GET"])
@login_required
def withdrawals():
    if current_user.is_demo:
        return jsonify({"withdrawals": []}), 200
    user = current_account()
    rows = WithdrawalQueryHelper.get_user_withdrawals(user.id)
    return jsonify({"withdrawals": [history_row(tx, user.currency) for tx in rows]}), 200


@bp.route("/api/referrals", methods=["GET"])
@login_required
def referrals():
    """Referral bonuses earned by the caller, with the referred user's name."""
    if current_user.is_demo:
        return jsonify({"referrals": []}), 200
    user = current_account()
    rows = (
        db.session.query(ReferralBonus, User)
        .join(User, User.id == ReferralBonus.referred_id)
        .filter(ReferralBonus.referrer_id == user.id)
        .order_by(ReferralBonus.created_at.desc(), ReferralBonus.id.desc())
        .all()
    )
    items = []
    for bonus, referred in rows:
        item = bonus.to_dict()
        item["referredName"] = referred.name
        item["referredEmail"] = referred.email
        item["formattedAmount"] = format_currency(bonus.amount, bonus.currency)
        items.append(item)
    return jsonify({"referrals": items}), 200
