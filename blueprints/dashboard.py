from flask import Blueprint, jsonify
from flask_login import current_user, login_required
from sqlalchemy import func

from blueprints.auth_helpers import current_account, demo_profile
from extensions import db
from ledger.currency import convert_currency, format_currency, quantize
from models import BotStatus, TradingBot, Transaction
from utils import history_row

bp = Blueprint("dashboard", __name__)


def bot_summary(user):
    rows = (
        db.session.query(TradingBot.status, func.count(TradingBot.id), func.sum(TradingBot.investment))
        .filter(TradingBot.user_id == user.id)
        .group_by(TradingBot.status)
        .all()
    )
    summary = {"active": 0, "completed": 0, "invested": 0.0}
    invested_ksh = 0
    for status, count, invested in rows:
        if status == BotStatus.ACTIVE.value:
            summary["active"] = count
        elif status == BotStatus.COMPLETED.value:
            summary["completed"] = count
        invested_ksh += invested or 0

    invested = quantize(convert_currency(invested_ksh, "KSH", user.currency))
    summary["invested"] = float(invested)
    summary["formattedInvested"] = format_currency(invested, user.currency)
    return summary


@bp.route("/api/dashboard", methods=["GET"])
@login_required
def dashboard():
    if current_user.is_demo:
        return jsonify({
            "user": demo_profile(current_user),
            "recentTransactions": [],
            "bots": {"active": 0, "completed": 0, "invested": 0.0},
        }), 200

    user = current_account()
    recent = (
        Transaction.query.filter_by(user_id=user.id)
        .order_by(Transaction.created_at.desc(), Transaction.id.desc())
        .limit(10)
        .all()
    )
    return jsonify({
        "user": user.to_dict(),
        "balance": float(user.balance),
        "formattedBalance": format_currency(user.balance, user.currency),
        "profit": float(user.profit),
        "formattedProfit": format_currency(user.profit, user.currency),
        "activeBots": user.active_bots,
        "recentTransactions": [history_row(tx, user.currency) for tx in recent],
        "bots": bot_summary(user),
    }), 200
