"""
Bearer-token authentication shared by every service.

Tokens are HS256 JWTs. The claims are trusted as-is: `current_user` is a
TokenUser built from them without a database lookup, so a role change only
takes effect at the next login.
"""
from datetime import datetime, timedelta, timezone
from functools import wraps

import jwt
from flask import current_app, g, jsonify
from flask_login import AnonymousUserMixin, UserMixin, current_user, login_required

from extensions import db, login_manager
from ledger.config import LedgerConfig
from ledger.exceptions import NotFoundError
from models import Role, User
from utils import generate_demo_id


class TokenUser(UserMixin):
    """Identity carried by a verified token."""

    def __init__(self, claims):
        self.id = claims.get("id")
        self.email = claims.get("email")
        self.role = claims.get("role", Role.USER.value)
        self.phone_verified = bool(claims.get("phone_verified", False))
        self.claims = claims

    @property
    def is_admin(self):
        return self.role == Role.ADMIN.value

    @property
    def is_demo(self):
        return self.role == Role.DEMO.value

    def get_id(self):
        return str(self.id)


class AnonymousUser(AnonymousUserMixin):
    role = None
    is_admin = False
    is_demo = False


login_manager.anonymous_user = AnonymousUser
login_manager.session_protection = None


def _secret():
    secret = current_app.config.get("JWT_SECRET")
    if not secret:
        raise RuntimeError("JWT_SECRET not configured")
    return secret


def _encode(claims, lifetime):
    now = datetime.now(timezone.utc)
    payload = dict(claims, iat=now, exp=now + lifetime)
    return jwt.encode(payload, _secret(), algorithm=current_app.config["JWT_ALGORITHM"])


def make_token(user):
    claims = {
        "id": user.id,
        "email": user.email,
        "role": user.role,
        "phone_verified": bool(user.phone_verified),
    }
    if user.role == Role.ADMIN.value:
        lifetime = timedelta(hours=current_app.config["ADMIN_JWT_EXPIRES_HOURS"])
    else:
        lifetime = timedelta(days=current_app.config["JWT_EXPIRES_DAYS"])
    return _encode(claims, lifetime)


def make_demo_token():
    demo_id = generate_demo_id()
    claims = {
        "id": demo_id,
        "email": f"{demo_id}@demo.forexpro",
        "role": Role.DEMO.value,
        "phone_verified": False,
    }
    return demo_id, _encode(claims, timedelta(days=current_app.config["JWT_EXPIRES_DAYS"]))


def decode_token(token):
    return jwt.decode(token, _secret(), algorithms=[current_app.config["JWT_ALGORITHM"]])


def demo_profile(identity):
    """Synthetic account returned to demo tokens; never stored."""
    return {
        "id": identity.id,
        "name": "Demo User",
        "email": identity.email,
        "currency": LedgerConfig.DEMO_CURRENCY,
        "balance": float(LedgerConfig.DEMO_BALANCE),
        "profit": 0.0,
        "active_bots": 0,
        "referrals": 0,
        "referral_code": None,
        "role": Role.DEMO.value,
        "verified": False,
        "phone_verified": False,
        "isDemo": True,
    }


@login_manager.request_loader
def load_user_from_request(request):
    header = request.headers.get("Authorization", "")
    if not header.lower().startswith("bearer "):
        g.auth_error = 401
        return None

    token = header.split(" ", 1)[1].strip()
    if not token:
        g.auth_error = 401
        return None

    try:
        claims = decode_token(token)
    except jwt.PyJWTError as e:
        current_app.logger.info(f"Rejected token: {e}")
        g.auth_error = 403
        return None

    if claims.get("id") is None:
        g.auth_error = 403
        return None
    return TokenUser(claims)


@login_manager.unauthorized_handler
def unauthorized():
    if g.get("auth_error") == 403:
        return jsonify({"error": "Invalid or expired token"}), 403
    return jsonify({"error": "Access token required"}), 401


def admin_required(f):
    """login_required plus role == admin (403 otherwise)."""
    @wraps(f)
    @login_required
    def decorated_function(*args, **kwargs):
        if not current_user.is_admin:
            return jsonify({"error": "Admin access required"}), 403
        return f(*args, **kwargs)

    return decorated_function


def demo_blocked(message="Demo accounts cannot perform this action"):
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            if current_user.is_demo:
                return jsonify({"error": message}), 403
            return f(*args, **kwargs)

        return decorated_function

    return decorator


def current_account():
    """Load the caller's User row; 404 when the token outlived the account."""
    user = None
    if not current_user.is_demo:
        try:
            user = db.session.get(User, int(current_user.id))
        except (TypeError, ValueError):
            user = None
    if user is None:
        raise NotFoundError("User not found")
    return user
