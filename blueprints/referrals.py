from flask import Blueprint, jsonify
from flask_login import current_user, login_required

from blueprints.auth_helpers import current_account
from extensions import db
from ledger.currency import format_currency
from ledger.referrals import referral_stats
from models import BonusStatus, ReferralBonus, User

bp = Blueprint("referrals", __name__)


@bp.route("/api/referral/stats", methods=["GET"])
@login_required
def stats():
    if current_user.is_demo:
        return jsonify({
            "totalReferrals": 0,
            "completedReferrals": 0,
            "pendingReferrals": 0,
            "totalBonus": 0.0,
            "referralCode": None,
        }), 200

    user = current_account()
    data = referral_stats(user)
    data["formattedTotalBonus"] = format_currency(data["totalBonus"], user.currency)
    return jsonify(data), 200


@bp.route("/api/referral/history", methods=["GET"])
@login_required
def history():
    """Everyone who signed up with the caller's code, with their bonus status."""
    if current_user.is_demo:
        return jsonify({"history": []}), 200

    user = current_account()
    rows = (
        db.session.query(User, ReferralBonus)
        .outerjoin(ReferralBonus, ReferralBonus.referred_id == User.id)
        .filter(User.referred_by == user.referral_code)
        .order_by(User.created_at.desc(), User.id.desc())
        .all()
    )

    items = []
    for referred, bonus in rows:
        items.append({
            "userId": referred.id,
            "name": referred.name,
            "email": referred.email,
            "joinedAt": referred.created_at.isoformat() if referred.created_at else None,
            "status": bonus.status if bonus else BonusStatus.PENDING.value,
            "bonus": float(bonus.amount) if bonus else 0.0,
            "formattedBonus": format_currency(bonus.amount, bonus.currency) if bonus else None,
            "completedAt": bonus.completed_at.isoformat() if bonus and bonus.completed_at else None,
        })
    return jsonify({"history": items}), 200
