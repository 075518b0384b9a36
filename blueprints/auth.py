from flask import Blueprint, current_app, jsonify
from flask_login import current_user, login_required
from sqlalchemy.exc import IntegrityError

from blueprints.auth_helpers import current_account, demo_profile, make_demo_token, make_token
from extensions import db, limiter
from ledger.config import LedgerConfig
from ledger.referrals import register_referral
from ledger.transactions import record_transaction
from models import Role, TransactionStatus, TransactionType, User
from schemas import LoginRequest, SignupRequest, load_body
from utils import generate_referral_code

bp = Blueprint("auth", __name__)


def _auth_limit():
    return current_app.config["AUTH_RATE_LIMIT"]


def _referral_code_taken(code):
    return User.query.filter_by(referral_code=code).first() is not None


#===========================================================================
#      SIGN UP ROUTE.
#==============================================================================
@bp.route("/api/auth/signup", methods=["POST"])
@limiter.limit(_auth_limit)
def signup():
    """
    Create the account with its signup bonus, and a pending referral bonus
    for the referrer when a referral code is given. One commit.
    """
    data = load_body(SignupRequest)

    if User.query.filter_by(email=data.email).first():
        return jsonify({"error": "Email already registered"}), 400

    referrer = None
    if data.referral_code:
        referrer = User.query.filter_by(referral_code=data.referral_code).first()
        if not referrer:
            return jsonify({"error": "Invalid referral code"}), 400

    currency = data.currency.value
    bonus = LedgerConfig.signup_bonus(currency)

    user = User(
        name=data.name,
        email=data.email,
        phone=data.phone,
        country=data.country or "Kenya",
        currency=currency,
        balance=bonus,
        referral_code=generate_referral_code(_referral_code_taken),
        referred_by=referrer.referral_code if referrer else None,
        role=Role.USER.value,
    )
    user.set_password(data.password)

    try:
        db.session.add(user)
        db.session.flush()

        record_transaction(
            user.id,
            TransactionType.BONUS.value,
            "signup_bonus",
            bonus,
            currency,
            status=TransactionStatus.COMPLETED.value,
            note="Welcome bonus",
        )

        if referrer:
            register_referral(referrer, user)

        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        current_app.logger.warning(f"Signup race on {data.email}")
        return jsonify({"error": "Email already registered"}), 400

    current_app.logger.info(f"New user {user.id} ({user.email}) referred_by={user.referred_by}")
    return jsonify({
        "message": "Account created successfully",
        "token": make_token(user),
        "user": user.to_dict(),
    }), 201


#===========================================================================
#      LOGIN / DEMO
#==============================================================================
@bp.route("/api/auth/login", methods=["POST"])
@limiter.limit(_auth_limit)
def login():
    data = load_body(LoginRequest)

    user = User.query.filter_by(email=data.email).first()
    if not user or not user.check_password(data.password):
        current_app.logger.info(f"Failed login for {data.email}")
        return jsonify({"error": "Invalid credentials"}), 400

    return jsonify({
        "message": "Login successful",
        "token": make_token(user),
        "user": user.to_dict(),
    }), 200


@bp.route("/api/auth/demo", methods=["POST"])
def demo():
    """Demo token only; nothing is stored."""
    demo_id, token = make_demo_token()
    return jsonify({
        "message": "Demo session started",
        "token": token,
        "user": {
            "id": demo_id,
            "name": "Demo User",
            "role": Role.DEMO.value,
            "currency": LedgerConfig.DEMO_CURRENCY,
            "balance": float(LedgerConfig.DEMO_BALANCE),
            "isDemo": True,
        },
    }), 200


@bp.route("/api/me", methods=["GET"])
@login_required
def me():
    if current_user.is_demo:
        return jsonify({"user": demo_profile(current_user)}), 200
    return jsonify({"user": current_account().to_dict()}), 200
