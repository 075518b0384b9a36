#======================================================================================
#
# ADMIN SERVICE
#
#=======================================================================================
from datetime import datetime, timezone

from flask import Blueprint, current_app, jsonify, request
from sqlalchemy import func, or_

from blueprints.auth_helpers import admin_required, make_token
from blueprints.withdraw_helpers import WithdrawalQueryHelper
from extensions import db, limiter
from ledger import balances, bots
from ledger.currency import EXCHANGE_RATES, convert_currency, format_currency, quantize
from ledger.exceptions import NotFoundError
from ledger.transactions import record_transaction, update_transaction_status
from models import (
    BotStatus,
    BotTemplate,
    DepositAddress,
    Role,
    TradingBot,
    Transaction,
    TransactionStatus,
    TransactionType,
    User,
)
from schemas import (
    AdminCreateBotRequest,
    AdminDepositRequest,
    AdminLoginRequest,
    BotTemplateRequest,
    UpdateDepositAddressRequest,
    UpdateTransactionRequest,
    UpdateUserBalanceRequest,
    VerifyUserRequest,
    load_body,
)

admin_bp = Blueprint('admin', __name__, url_prefix='')


def _admin_login_limit():
    return current_app.config["ADMIN_LOGIN_RATE_LIMIT"]


def _get_user_or_404(user_id):
    user = db.session.get(User, user_id)
    if user is None:
        raise NotFoundError("User not found")
    return user


def _truthy(value):
    return str(value).lower() in ("1", "true", "yes", "t")


@admin_bp.route("/api/admin/login", methods=["POST"])
@limiter.limit(_admin_login_limit)
def admin_login():
    data = load_body(AdminLoginRequest)

    admin = User.query.filter_by(email=data.username.lower(), role=Role.ADMIN.value).first()
    if not admin or not admin.check_password(data.password):
        current_app.logger.warning(f"Failed admin login for {data.username}")
        return jsonify({"error": "Invalid credentials"}), 401

    current_app.logger.info(f"Admin login successful for: {admin.email}")
    return jsonify({"message": "Admin login successful", "token": make_token(admin)}), 200


#============================================================================================================
#     DASHBOARD DATA
#============================================================================================================
@admin_bp.route("/api/admin/stats", methods=["GET"])
@admin_required
def admin_stats():
    today = datetime.now(timezone.utc).date()

    def tx_count(**filters):
        return Transaction.query.filter_by(**filters).count()

    return jsonify({
        "total_users": User.query.filter(User.role != Role.ADMIN.value).count(),
        "verified_users": User.query.filter_by(verified=True).count(),
        "daily_new_users": User.query.filter(func.date(User.created_at) == today.isoformat()).count(),
        "active_bots": TradingBot.query.filter_by(status=BotStatus.ACTIVE.value).count(),
        "completed_bots": TradingBot.query.filter_by(status=BotStatus.COMPLETED.value).count(),
        "pending_deposits": tx_count(type=TransactionType.DEPOSIT.value, status=TransactionStatus.PENDING.value),
        "pending_withdrawals": tx_count(type=TransactionType.WITHDRAW.value, status=TransactionStatus.PENDING.value),
        "completed_deposits": tx_count(type=TransactionType.DEPOSIT.value, status=TransactionStatus.COMPLETED.value),
    }), 200


#============================================================================================================
#     USERS
#============================================================================================================
@admin_bp.route("/api/admin/users", methods=["GET"])
@admin_required
def list_users():
    """Filter by q (name, email, phone, referral code or id), role and verified."""
    query = User.query

    q = request.args.get("q", "").strip()
    if q:
        clauses = [
            User.name.ilike(f"%{q}%"),
            User.email.ilike(f"%{q}%"),
            User.phone.ilike(f"%{q}%"),
            User.referral_code.ilike(f"%{q}%"),
        ]
        if q.isdigit():
            clauses.append(User.id == int(q))
        query = query.filter(or_(*clauses))

    role = request.args.get("role")
    if role:
        query = query.filter(User.role == role)

    verified = request.args.get("verified")
    if verified is not None and verified != "":
        query = query.filter(User.verified == _truthy(verified))

    users = query.order_by(User.created_at.desc(), User.id.desc()).limit(200).all()
    return jsonify({"users": [u.to_dict() for u in users]}), 200


@admin_bp.route("/api/admin/users/<int:user_id>/balance", methods=["PUT"])
@admin_required
def update_user_balance(user_id):
    data = load_body(UpdateUserBalanceRequest)
    user = _get_user_or_404(user_id)

    balances.set_balance(user.id, data.balance)
    db.session.commit()

    current_app.logger.info(f"Admin set balance of user {user.id} to {data.balance}")
    return jsonify({
        "message": "Balance updated",
        "user": user.to_dict(),
        "formattedBalance": format_currency(user.balance, user.currency),
    }), 200


@admin_bp.route("/api/admin/users/<int:user_id>/verify", methods=["PUT"])
@admin_required
def verify_user(user_id):
    data = load_body(VerifyUserRequest)
    user = _get_user_or_404(user_id)

    user.verified = data.verified
    db.session.commit()
    return jsonify({
        "message": "User verified" if data.verified else "User unverified",
        "user": user.to_dict(),
    }), 200


#============================================================================================================
#     TRANSACTIONS
#============================================================================================================
@admin_bp.route("/api/admin/transactions", methods=["GET"])
@admin_required
def list_transactions():
    query = db.session.query(Transaction, User).join(User, User.id == Transaction.user_id)

    for arg, column in (("type", Transaction.type), ("status", Transaction.status)):
        value = request.args.get(arg)
        if value:
            query = query.filter(column == value)

    user_id = request.args.get("user_id", type=int)
    if user_id:
        query = query.filter(Transaction.user_id == user_id)

    rows = query.order_by(Transaction.created_at.desc(), Transaction.id.desc()).limit(500).all()
    items = []
    for tx, user in rows:
        item = tx.to_dict()
        item["userName"] = user.name
        item["userEmail"] = user.email
        item["formattedAmount"] = format_currency(tx.amount, tx.currency)
        items.append(item)
    return jsonify({"transactions": items}), 200


@admin_bp.route("/api/admin/transactions/<int:tx_id>", methods=["PUT"])
@admin_required
def update_transaction(tx_id):
    """Status change; balance effects are applied once however often this is called."""
    data = load_body(UpdateTransactionRequest)

    tx, changed = update_transaction_status(tx_id, data.status.value)
    db.session.commit()

    if changed:
        current_app.logger.info(f"Admin moved transaction {tx.id} to {tx.status}")
    return jsonify({
        "message": "Transaction updated" if changed else "Transaction already in that status",
        "changed": changed,
        "transaction": tx.to_dict(),
    }), 200


@admin_bp.route("/api/admin/deposit", methods=["POST"])
@admin_required
def admin_deposit():
    """Completed immediately; no minimum and no referral processing."""
    data = load_body(AdminDepositRequest)
    user = _get_user_or_404(data.user_id)

    amount = quantize(convert_currency(data.amount, data.currency.value, user.currency))
    tx = record_transaction(
        user.id,
        TransactionType.DEPOSIT.value,
        "admin",
        amount,
        user.currency,
        status=TransactionStatus.COMPLETED.value,
        note=data.note or "Admin deposit",
    )
    balances.credit(user.id, amount, user.currency)
    db.session.commit()

    current_app.logger.info(f"Admin deposit {tx.id}: {amount} {user.currency} to user {user.id}")
    return jsonify({
        "message": "Deposit completed",
        "transaction": tx.to_dict(),
        "balance": float(user.balance),
        "formattedBalance": format_currency(user.balance, user.currency),
    }), 201


@admin_bp.route("/api/admin/withdrawals/pending", methods=["GET"])
@admin_required
def pending_withdrawals():
    rows = WithdrawalQueryHelper.get_pending_withdrawals()
    items = []
    for tx in rows:
        item = tx.to_dict()
        item["userName"] = tx.user.name if tx.user else None
        item["userEmail"] = tx.user.email if tx.user else None
        item["formattedAmount"] = format_currency(tx.amount, tx.currency)
        items.append(item)
    return jsonify({"withdrawals": items}), 200


#============================================================================================================
#     BOTS AND TEMPLATES
#============================================================================================================
@admin_bp.route("/api/admin/bots", methods=["GET"])
@admin_required
def list_bots():
    rows = (
        db.session.query(TradingBot, User)
        .join(User, User.id == TradingBot.user_id)
        .order_by(TradingBot.created_at.desc(), TradingBot.id.desc())
        .all()
    )
    items = []
    for bot, user in rows:
        item = bot.to_dict()
        item["userName"] = user.name
        item["userEmail"] = user.email
        items.append(item)
    return jsonify({"bots": items}), 200


@admin_bp.route("/api/admin/bots", methods=["POST"])
@admin_required
def create_bot():
    """Give a user a bot. Investment is in the user's currency; nothing is debited."""
    data = load_body(AdminCreateBotRequest)
    user = _get_user_or_404(data.user_id)

    investment_ksh = convert_currency(data.investment, user.currency, "KSH")
    bot = bots.grant_bot(user, data.name, investment_ksh, image_url=current_app.config["BOT_IMAGE_URL"])
    db.session.commit()

    return jsonify({
        "message": "Trading bot created successfully",
        "botId": bot.id,
        "bot": bot.to_dict(),
        "expectedReturn": format_currency(convert_currency(bot.total_profit, "KSH", user.currency), user.currency),
        "dailyProfit": format_currency(convert_currency(bot.daily_profit, "KSH", user.currency), user.currency),
        "investment": format_currency(data.investment, user.currency),
        "currency": user.currency,
    }), 201


@admin_bp.route("/api/admin/bots/<int:bot_id>", methods=["DELETE"])
@admin_required
def delete_bot(bot_id):
    bot = db.session.get(TradingBot, bot_id)
    if bot is None:
        raise NotFoundError("Bot not found")

    bots.remove_bot(bot)
    db.session.commit()
    return jsonify({"message": "Bot deleted successfully"}), 200


@admin_bp.route("/api/admin/bot-templates", methods=["GET"])
@admin_required
def list_bot_templates():
    templates = BotTemplate.query.order_by(BotTemplate.investment.asc()).all()
    return jsonify({"templates": [t.to_dict() for t in templates]}), 200


@admin_bp.route("/api/admin/bot-templates", methods=["POST"])
@admin_required
def create_bot_template():
    """Template figures are KSH and follow the same bracket table as purchases."""
    data = load_body(BotTemplateRequest)

    _, total_profit, daily_profit = bots.bot_figures(data.investment)
    template = BotTemplate(
        name=data.name,
        investment=quantize(data.investment),
        total_profit=total_profit,
        daily_profit=daily_profit,
        image_url=data.image_url or current_app.config["BOT_IMAGE_URL"],
        is_active=True,
    )
    db.session.add(template)
    db.session.commit()
    return jsonify({"message": "Bot template created", "template": template.to_dict()}), 201


@admin_bp.route("/api/admin/bot-templates/<int:template_id>", methods=["DELETE"])
@admin_required
def deactivate_bot_template(template_id):
    template = db.session.get(BotTemplate, template_id)
    if template is None:
        raise NotFoundError("Bot template not found")

    template.is_active = False
    db.session.commit()
    return jsonify({"message": "Bot template deactivated", "template": template.to_dict()}), 200


#============================================================================================================
#     DEPOSIT ADDRESSES
#============================================================================================================
@admin_bp.route("/api/admin/deposit/address", methods=["PUT"])
@admin_required
def update_deposit_address():
    data = load_body(UpdateDepositAddressRequest)
    coin, network = data.coin.value, data.network.value

    row = DepositAddress.query.filter_by(coin=coin, network=network).first()
    if row is None:
        row = DepositAddress(coin=coin, network=network, address=data.address)
        db.session.add(row)
    else:
        row.address = data.address
    db.session.commit()

    current_app.extensions["deposit_address_cache"].invalidate(coin, network)
    current_app.logger.info(f"Deposit address for {coin}/{network} updated")
    return jsonify({"message": "Deposit address updated", "address": row.to_dict()}), 200


@admin_bp.route("/api/admin/deposit/addresses", methods=["GET"])
@admin_required
def list_deposit_addresses():
    rows = DepositAddress.query.order_by(DepositAddress.coin, DepositAddress.network).all()
    return jsonify({"addresses": [r.to_dict() for r in rows]}), 200


@admin_bp.route("/api/exchange-rates", methods=["GET"])
def exchange_rates():
    return jsonify({
        "USD_TO_KSH": float(EXCHANGE_RATES["USD_TO_KSH"]),
        "KSH_TO_USD": float(EXCHANGE_RATES["KSH_TO_USD"]),
        "last_updated": datetime.now(timezone.utc).isoformat(),
    }), 200
