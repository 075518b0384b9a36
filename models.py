# models.py - Flask-SQLAlchemy models
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
import bcrypt
from sqlalchemy import UniqueConstraint, Index, text
from werkzeug.security import check_password_hash, generate_password_hash
from extensions import db

# ===========================================================
# ENUM DEFINITIONS
# ===========================================================

class Currency(Enum):
    KSH = "KSH"
    USD = "USD"


class Role(Enum):
    USER = "user"
    ADMIN = "admin"
    DEMO = "demo"


class TransactionType(Enum):
    DEPOSIT = "deposit"
    WITHDRAW = "withdraw"
    BONUS = "bonus"
    PURCHASE = "purchase"
    PROFIT = "profit"


class TransactionStatus(Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"


class BotStatus(Enum):
    ACTIVE = "active"
    COMPLETED = "completed"


class BonusStatus(Enum):
    PENDING = "pending"
    COMPLETED = "completed"


def utcnow():
    return datetime.now(timezone.utc)


def _money(value):
    return float(value) if value is not None else 0.0


def _iso(value):
    return value.isoformat() if value else None

# ===========================================================
# USER
# ===========================================================

class User(db.Model):
    """Account holder: one balance in the user's display currency."""
    __tablename__ = 'users'

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), nullable=False)
    email = db.Column(db.String(100), unique=True, nullable=False)
    password_hash = db.Column(db.String(255), nullable=False)
    phone = db.Column(db.String(20), nullable=True)
    country = db.Column(db.String(50), default="Kenya")
    currency = db.Column(db.String(10), nullable=False, default=Currency.KSH.value)

    balance = db.Column(db.Numeric(15, 2), nullable=False, default=Decimal("0.00"),
                        server_default=text("0"))
    profit = db.Column(db.Numeric(15, 2), nullable=False, default=Decimal("0.00"),
                       server_default=text("0"))
    active_bots = db.Column(db.Integer, nullable=False, default=0, server_default=text("0"))
    referrals = db.Column(db.Integer, nullable=False, default=0, server_default=text("0"))

    referral_code = db.Column(db.String(20), unique=True, nullable=False)
    referred_by = db.Column(db.String(20), nullable=True, index=True)  # referrer's code
    profile_image = db.Column(db.Text, nullable=True)

    role = db.Column(db.String(20), nullable=False, default=Role.USER.value, index=True)
    verified = db.Column(db.Boolean, nullable=False, default=False, server_default=text("false"))
    phone_verified = db.Column(db.Boolean, nullable=False, default=False, server_default=text("false"))

    created_at = db.Column(db.DateTime(timezone=True), default=utcnow)

    transactions = db.relationship('Transaction', back_populates='user', lazy='dynamic')
    bots = db.relationship('TradingBot', back_populates='user', lazy='dynamic')

    __table_args__ = (
        Index('idx_user_referral_code', 'referral_code'),
    )

    def set_password(self, password: str):
        self.password_hash = generate_password_hash(password)

    def check_password(self, password: str) -> bool:
        if not password or not self.password_hash:
            return False
        # Accounts migrated from the old service carry bcrypt hashes
        if self.password_hash.startswith("$2"):
            return bcrypt.checkpw(password.encode("utf-8"), self.password_hash.encode("utf-8"))
        return check_password_hash(self.password_hash, password)

    def to_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "phone": self.phone,
            "country": self.country,
            "currency": self.currency,
            "balance": _money(self.balance),
            "profit": _money(self.profit),
            "active_bots": self.active_bots,
            "referrals": self.referrals,
            "referral_code": self.referral_code,
            "referred_by": self.referred_by,
            "profile_image": self.profile_image,
            "role": self.role,
            "verified": bool(self.verified),
            "phone_verified": bool(self.phone_verified),
            "created_at": _iso(self.created_at),
        }

    def __repr__(self):
        return f"<User {self.id} {self.email}>"

# ===========================================================
# TRANSACTIONS
# ===========================================================

class Transaction(db.Model):
    """Ledger row; only `status` changes after insert."""
    __tablename__ = 'transactions'

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id', ondelete='CASCADE'), nullable=False, index=True)
    type = db.Column(db.String(20), nullable=False)
    method = db.Column(db.String(20), nullable=False)
    amount = db.Column(db.Numeric(15, 2), nullable=False)
    currency = db.Column(db.String(10), nullable=False, default=Currency.KSH.value)
    status = db.Column(db.String(20), nullable=False, default=TransactionStatus.PENDING.value)
    tx_hash = db.Column(db.Text, nullable=True)
    address = db.Column(db.Text, nullable=True)
    network = db.Column(db.Text, nullable=True)
    note = db.Column(db.String(255), nullable=True)
    reference_id = db.Column(db.Integer, nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), default=utcnow)

    user = db.relationship('User', back_populates='transactions')

    __table_args__ = (
        Index('idx_transaction_user_type_status', 'user_id', 'type', 'status'),
        Index('idx_transaction_created', 'created_at'),
    )

    def to_dict(self):
        return {
            "id": self.id,
            "user_id": self.user_id,
            "type": self.type,
            "method": self.method,
            "amount": _money(self.amount),
            "currency": self.currency,
            "status": self.status,
            "tx_hash": self.tx_hash,
            "address": self.address,
            "network": self.network,
            "note": self.note,
            "reference_id": self.reference_id,
            "created_at": _iso(self.created_at),
        }

# ===========================================================
# BOTS
# ===========================================================

class BotTemplate(db.Model):
    """Admin-created bot offering; figures in KSH."""
    __tablename__ = 'bot_templates'

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), nullable=False)
    investment = db.Column(db.Numeric(15, 2), nullable=False)
    daily_profit = db.Column(db.Numeric(15, 2), nullable=False)
    total_profit = db.Column(db.Numeric(15, 2), nullable=False)
    image_url = db.Column(db.Text, nullable=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    created_at = db.Column(db.DateTime(timezone=True), default=utcnow)

    def to_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "investment": _money(self.investment),
            "daily_profit": _money(self.daily_profit),
            "total_profit": _money(self.total_profit),
            "image_url": self.image_url,
            "is_active": self.is_active,
            "created_at": _iso(self.created_at),
        }


class TradingBot(db.Model):
    """A user's bot. investment/daily_profit/total_profit are stored in KSH."""
    __tablename__ = 'trading_bots'

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id', ondelete='CASCADE'), nullable=False, index=True)
    template_id = db.Column(db.Integer, db.ForeignKey('bot_templates.id', ondelete='SET NULL'), nullable=True)
    name = db.Column(db.String(100), nullable=False)
    investment = db.Column(db.Numeric(15, 2), nullable=False)
    daily_profit = db.Column(db.Numeric(15, 2), nullable=False)
    total_profit = db.Column(db.Numeric(15, 2), nullable=False)
    progress = db.Column(db.Integer, nullable=False, default=0)
    status = db.Column(db.String(20), nullable=False, default=BotStatus.ACTIVE.value)
    image_url = db.Column(db.Text, nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), default=utcnow)
    next_mining_time = db.Column(db.DateTime(timezone=True), default=utcnow)
    completed_at = db.Column(db.DateTime(timezone=True), nullable=True)

    user = db.relationship('User', back_populates='bots')

    __table_args__ = (
        Index('idx_bot_user_status', 'user_id', 'status'),
    )

    def to_dict(self):
        return {
            "id": self.id,
            "user_id": self.user_id,
            "template_id": self.template_id,
            "name": self.name,
            "investment": _money(self.investment),
            "daily_profit": _money(self.daily_profit),
            "total_profit": _money(self.total_profit),
            "progress": self.progress,
            "status": self.status,
            "image_url": self.image_url,
            "created_at": _iso(self.created_at),
            "next_mining_time": _iso(self.next_mining_time),
            "completed_at": _iso(self.completed_at),
        }

# ===========================================================
# REFERRALS
# ===========================================================

class ReferralBonus(db.Model):
    __tablename__ = 'referral_bonuses'

    id = db.Column(db.Integer, primary_key=True)
    referrer_id = db.Column(db.Integer, db.ForeignKey('users.id', ondelete='CASCADE'), nullable=False, index=True)
    referred_id = db.Column(db.Integer, db.ForeignKey('users.id', ondelete='CASCADE'), nullable=False)
    amount = db.Column(db.Numeric(15, 2), nullable=False)
    currency = db.Column(db.String(10), nullable=False, default=Currency.KSH.value)
    status = db.Column(db.String(20), nullable=False, default=BonusStatus.PENDING.value)
    created_at = db.Column(db.DateTime(timezone=True), default=utcnow)
    completed_at = db.Column(db.DateTime(timezone=True), nullable=True)

    referrer = db.relationship('User', foreign_keys=[referrer_id], backref='referral_earnings')
    referred_user = db.relationship('User', foreign_keys=[referred_id], backref='referral_bonus_rows')

    __table_args__ = (
        UniqueConstraint('referred_id', name='uq_referral_bonus_referred'),
    )

    def to_dict(self):
        return {
            "id": self.id,
            "referrer_id": self.referrer_id,
            "referred_id": self.referred_id,
            "amount": _money(self.amount),
            "currency": self.currency,
            "status": self.status,
            "created_at": _iso(self.created_at),
            "completed_at": _iso(self.completed_at),
        }

# ===========================================================
# DEPOSIT ADDRESSES
# ===========================================================

class DepositAddress(db.Model):
    __tablename__ = 'deposit_addresses'

    id = db.Column(db.Integer, primary_key=True)
    coin = db.Column(db.String(20), nullable=False)
    network = db.Column(db.String(20), nullable=False)
    address = db.Column(db.Text, nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), default=utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    __table_args__ = (
        UniqueConstraint('coin', 'network', name='uq_deposit_address_coin_network'),
    )

    def to_dict(self):
        return {
            "id": self.id,
            "coin": self.coin,
            "network": self.network,
            "address": self.address,
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }
