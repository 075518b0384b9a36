import os
import time

from flask import Blueprint, current_app, jsonify, request
from flask_login import current_user, login_required
from sqlalchemy import func

from blueprints.auth_helpers import current_account, demo_blocked, demo_profile
from extensions import db
from ledger import balances
from ledger.currency import convert_currency, format_currency, other_currency, quantize
from ledger.exceptions import LedgerValidationError
from models import BonusStatus, ReferralBonus, Transaction, TransactionType, User
from schemas import PasswordChangeRequest, ProfileUpdateRequest, load_body
from utils import allowed_image, remove_file_quietly

bp = Blueprint('profile', __name__, url_prefix="")

UPLOAD_URL_PREFIX = "/uploads/profiles/"


def profile_payload(user):
    data = user.to_dict()
    target = other_currency(user.currency)
    converted = quantize(convert_currency(user.balance, user.currency, target))

    data["formattedBalance"] = format_currency(user.balance, user.currency)
    data["formattedProfit"] = format_currency(user.profit, user.currency)
    data["convertedBalance"] = {
        "amount": float(converted),
        "currency": target,
        "formatted": format_currency(converted, target),
    }
    data["bonusCount"] = (
        db.session.query(func.count(Transaction.id))
        .filter(Transaction.user_id == user.id, Transaction.type == TransactionType.BONUS.value)
        .scalar()
    )
    data["completedReferrals"] = (
        db.session.query(func.count(ReferralBonus.id))
        .filter(ReferralBonus.referrer_id == user.id, ReferralBonus.status == BonusStatus.COMPLETED.value)
        .scalar()
    )
    return data


# ----------------------------------------------------------------------------------
# PROFILE DATA FOR THE DASHBOARD AND PROFILE PAGES
# ----------------------------------------------------------------------------------
@bp.route("/api/user/profile", methods=["GET"])
@login_required
def get_user_profile():
    if current_user.is_demo:
        return jsonify({"user": demo_profile(current_user)}), 200
    return jsonify({"user": profile_payload(current_account())}), 200


@bp.route('/api/user/profile', methods=['PUT'])
@login_required
@demo_blocked("Demo users cannot update a profile")
def update_user_profile():
    """Update profile fields; switching currency converts balance and profit."""
    data = load_body(ProfileUpdateRequest)
    user = current_account()

    if data.email and data.email != user.email:
        if User.query.filter(User.email == data.email, User.id != user.id).first():
            raise LedgerValidationError("Email already in use")
        user.email = data.email

    if data.name:
        user.name = data.name
    if data.phone is not None:
        user.phone = data.phone or None
    if data.country:
        user.country = data.country

    db.session.flush()

    if data.currency and data.currency.value != user.currency:
        previous = user.currency
        balances.convert_account_currency(user.id, previous, data.currency.value)
        current_app.logger.info(f"User {user.id} switched currency {previous} -> {data.currency.value}")

    db.session.commit()
    return jsonify({"message": "Profile updated", "user": profile_payload(user)}), 200


@bp.route("/api/user/password", methods=["PUT"])
@login_required
@demo_blocked("Demo users cannot change a password")
def change_password():
    data = load_body(PasswordChangeRequest)
    user = current_account()

    if not user.check_password(data.current_password):
        return jsonify({"error": "Current password is incorrect"}), 400

    user.set_password(data.new_password)
    db.session.commit()
    current_app.logger.info(f"Password changed for user {user.id}")
    return jsonify({"message": "Password updated successfully"}), 200


@bp.route("/api/user/profile-image", methods=["POST"])
@login_required
@demo_blocked("Demo users cannot upload a profile image")
def upload_profile_image():
    user = current_account()

    upload = request.files.get("profileImage")
    if upload is None or not upload.filename:
        return jsonify({"error": "No image uploaded"}), 400

    if not allowed_image(upload.filename, upload.mimetype):
        return jsonify({"error": "Only image files are allowed"}), 400

    content = upload.read()
    if len(content) > current_app.config["PROFILE_IMAGE_MAX_BYTES"]:
        return jsonify({"error": "Image must be 3MB or smaller"}), 400

    upload_dir = current_app.config["UPLOAD_DIR"]
    os.makedirs(upload_dir, exist_ok=True)

    ext = upload.filename.rsplit(".", 1)[1].lower()
    filename = f"profile-{user.id}-{int(time.time() * 1000)}.{ext}"
    with open(os.path.join(upload_dir, filename), "wb") as fh:
        fh.write(content)

    previous = user.profile_image
    user.profile_image = f"{UPLOAD_URL_PREFIX}{filename}"
    db.session.commit()

    if previous and previous != user.profile_image and previous.startswith(UPLOAD_URL_PREFIX):
        remove_file_quietly(os.path.join(upload_dir, previous[len(UPLOAD_URL_PREFIX):]))

    return jsonify({"message": "Profile image updated", "profileImage": user.profile_image}), 200


@bp.route("/api/user/referral-bonuses", methods=["GET"])
@login_required
def referral_bonuses():
    if current_user.is_demo:
        return jsonify({"bonuses": []}), 200
    user = current_account()
    rows = (
        ReferralBonus.query.filter_by(referrer_id=user.id)
        .order_by(ReferralBonus.created_at.desc(), ReferralBonus.id.desc())
        .all()
    )
    bonuses = []
    for bonus in rows:
        item = bonus.to_dict()
        item["referredName"] = bonus.referred_user.name if bonus.referred_user else None
        item["formattedAmount"] = format_currency(bonus.amount, bonus.currency)
        bonuses.append(item)
    return jsonify({"bonuses": bonuses}), 200


@bp.route("/api/user/referred-users", methods=["GET"])
@login_required
def referred_users():
    if current_user.is_demo:
        return jsonify({"users": []}), 200
    user = current_account()
    rows = (
        db.session.query(User, ReferralBonus.status)
        .outerjoin(ReferralBonus, ReferralBonus.referred_id == User.id)
        .filter(User.referred_by == user.referral_code)
        .order_by(User.created_at.desc(), User.id.desc())
        .all()
    )
    return jsonify({
        "users": [
            {
                "id": referred.id,
                "name": referred.name,
                "email": referred.email,
                "joinedAt": referred.created_at.isoformat() if referred.created_at else None,
                "bonusStatus": status or BonusStatus.PENDING.value,
            }
            for referred, status in rows
        ]
    }), 200
