"""
Request schemas for the ForexPro JSON API.
Field names follow the camelCase bodies the web clients send.
"""
from decimal import Decimal
from enum import Enum
from typing import ClassVar, FrozenSet, Optional

from flask import request
from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from ledger.exceptions import LedgerValidationError
from utils import validate_email, validate_phone


class CurrencyCode(str, Enum):
    KSH = "KSH"
    USD = "USD"


class StatusValue(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"


class Coin(str, Enum):
    USDT = "USDT"
    BTC = "BTC"
    ETH = "ETH"


class Network(str, Enum):
    BSC = "BSC"
    ETH = "ETH"
    BTC = "BTC"


class RequestSchema(BaseModel):
    """Text fields are stripped, except the ones named in `raw_fields`."""
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    raw_fields: ClassVar[FrozenSet[str]] = frozenset()

    @field_validator("*", mode="before")
    @classmethod
    def strip_text(cls, v, info):
        if isinstance(v, str) and info.field_name not in cls.raw_fields:
            return v.strip()
        return v


def _positive(v: Decimal, label: str) -> Decimal:
    if v is None or v <= 0:
        raise ValueError(f"{label} must be greater than 0")
    return v


# ==================== AUTH SCHEMAS ====================

class SignupRequest(RequestSchema):
    raw_fields = frozenset({"password"})

    name: str = Field(..., max_length=100)
    email: str = Field(..., max_length=100)
    password: str
    phone: Optional[str] = Field(None, max_length=20)
    country: Optional[str] = Field(None, max_length=50)
    currency: CurrencyCode = CurrencyCode.KSH
    referral_code: Optional[str] = Field(None, alias="referralCode")

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        if len(v) < 2:
            raise ValueError("Name must be at least 2 characters")
        return v

    @field_validator("email")
    @classmethod
    def validate_email_address(cls, v: str) -> str:
        v = v.lower()
        if not validate_email(v):
            raise ValueError("Valid email is required")
        return v

    @field_validator("password")
    @classmethod
    def validate_password(cls, v: str) -> str:
        if len(v) < 8:
            raise ValueError("Password must be at least 8 characters")
        return v

    @field_validator("phone")
    @classmethod
    def validate_phone_number(cls, v):
        if v and not validate_phone(v):
            raise ValueError("Invalid phone number")
        return v or None

    @field_validator("country")
    @classmethod
    def validate_country(cls, v):
        if v is not None and len(v) < 2:
            raise ValueError("Country must be at least 2 characters")
        return v

    @field_validator("referral_code")
    @classmethod
    def normalize_referral_code(cls, v):
        return v.upper() if v else None


class LoginRequest(RequestSchema):
    raw_fields = frozenset({"password"})

    email: str
    password: str = Field(..., min_length=1)

    @field_validator("email")
    @classmethod
    def validate_email_address(cls, v: str) -> str:
        v = v.lower()
        if not validate_email(v):
            raise ValueError("Valid email is required")
        return v


class AdminLoginRequest(RequestSchema):
    raw_fields = frozenset({"password"})

    username: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)


# ==================== PROFILE SCHEMAS ====================

class ProfileUpdateRequest(RequestSchema):
    name: Optional[str] = Field(None, max_length=100)
    email: Optional[str] = Field(None, max_length=100)
    phone: Optional[str] = Field(None, max_length=20)
    country: Optional[str] = Field(None, max_length=50)
    currency: Optional[CurrencyCode] = None

    @field_validator("name")
    @classmethod
    def validate_name(cls, v):
        if v is not None and len(v) < 2:
            raise ValueError("Name must be at least 2 characters")
        return v

    @field_validator("email")
    @classmethod
    def validate_email_address(cls, v):
        if v is None:
            return v
        v = v.lower()
        if not validate_email(v):
            raise ValueError("Valid email is required")
        return v

    @field_validator("phone")
    @classmethod
    def validate_phone_number(cls, v):
        if v and not validate_phone(v):
            raise ValueError("Invalid phone number")
        return v


class PasswordChangeRequest(RequestSchema):
    raw_fields = frozenset({"current_password", "new_password", "confirm_password"})

    current_password: str = Field(..., min_length=1, alias="currentPassword")
    new_password: str = Field(..., alias="newPassword")
    confirm_password: str = Field(..., alias="confirmPassword")

    @field_validator("new_password")
    @classmethod
    def validate_new_password(cls, v: str) -> str:
        if len(v) < 8:
            raise ValueError("New password must be at least 8 characters")
        return v

    @field_validator("confirm_password")
    @classmethod
    def passwords_match(cls, v: str, info) -> str:
        if v != info.data.get("new_password"):
            raise ValueError("Passwords do not match")
        return v


# ==================== MONEY SCHEMAS ====================

class DepositRequest(RequestSchema):
    amount: Decimal = Field(..., max_digits=15, decimal_places=2)
    method: str = Field(..., min_length=1, max_length=20)
    currency: CurrencyCode
    coin: Optional[Coin] = None
    network: Optional[str] = None
    address: Optional[str] = None
    tx_hash: Optional[str] = Field(None, alias="txHash")

    @field_validator("amount")
    @classmethod
    def validate_amount(cls, v: Decimal) -> Decimal:
        return _positive(v, "Amount")


class WithdrawRequest(RequestSchema):
    raw_fields = frozenset({"password"})

    amount: Decimal = Field(..., max_digits=15, decimal_places=2)
    method: str = Field(..., min_length=1, max_length=20)
    currency: CurrencyCode
    address: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)
    network: Optional[str] = None

    @field_validator("amount")
    @classmethod
    def validate_amount(cls, v: Decimal) -> Decimal:
        return _positive(v, "Amount")


# ==================== BOT SCHEMAS ====================

class CreateBotRequest(RequestSchema):
    """Either a custom investment or a bot template id (`templateId`, or `botId` from older clients)."""
    name: Optional[str] = Field(None, max_length=100)
    investment: Optional[Decimal] = Field(None, max_digits=15, decimal_places=2)
    template_id: Optional[int] = Field(
        None, validation_alias=AliasChoices("templateId", "botId", "template_id")
    )

    @field_validator("investment")
    @classmethod
    def validate_investment(cls, v):
        if v is not None:
            _positive(v, "Investment")
        return v

    @model_validator(mode="after")
    def require_investment_or_template(self):
        if self.template_id is None:
            if not self.name:
                raise ValueError("Bot name is required")
            if self.investment is None:
                raise ValueError("Investment must be greater than 0")
        return self


class UpdateProgressRequest(RequestSchema):
    progress: int

    @field_validator("progress")
    @classmethod
    def validate_progress(cls, v: int) -> int:
        if v < 0 or v > 100:
            raise ValueError("Progress must be between 0 and 100")
        return v


# ==================== ADMIN SCHEMAS ====================

class UpdateTransactionRequest(RequestSchema):
    status: StatusValue


class AdminDepositRequest(RequestSchema):
    user_id: int = Field(..., alias="userId")
    amount: Decimal = Field(..., max_digits=15, decimal_places=2)
    currency: CurrencyCode
    note: Optional[str] = Field(None, max_length=255)

    @field_validator("amount")
    @classmethod
    def validate_amount(cls, v: Decimal) -> Decimal:
        return _positive(v, "Amount")


class UpdateUserBalanceRequest(RequestSchema):
    balance: Decimal = Field(..., max_digits=15, decimal_places=2)

    @field_validator("balance")
    @classmethod
    def validate_balance(cls, v: Decimal) -> Decimal:
        if v < 0:
            raise ValueError("Balance must be a positive number")
        return v


class VerifyUserRequest(RequestSchema):
    verified: bool


class AdminCreateBotRequest(RequestSchema):
    user_id: int = Field(..., alias="userId")
    name: str = Field(..., min_length=1, max_length=100)
    investment: Decimal = Field(..., max_digits=15, decimal_places=2)

    @field_validator("investment")
    @classmethod
    def validate_investment(cls, v: Decimal) -> Decimal:
        return _positive(v, "Investment")


class BotTemplateRequest(RequestSchema):
    name: str = Field(..., min_length=1, max_length=100)
    investment: Decimal = Field(..., max_digits=15, decimal_places=2)
    image_url: Optional[str] = Field(None, alias="imageUrl")

    @field_validator("investment")
    @classmethod
    def validate_investment(cls, v: Decimal) -> Decimal:
        return _positive(v, "Investment")


class UpdateDepositAddressRequest(RequestSchema):
    coin: Coin
    network: Network
    address: str

    @field_validator("address")
    @classmethod
    def validate_address(cls, v: str) -> str:
        if len(v) < 10:
            raise ValueError("Address is too short")
        return v


# ==================== HELPERS ====================

def _field_name(error) -> str:
    return ".".join(str(part) for part in error.get("loc", ())) or "body"


def _message(error) -> str:
    if error.get("type") == "missing":
        return f"{_field_name(error)} is required"
    msg = error.get("msg", "Invalid value")
    return msg.replace("Value error, ", "", 1)


def load_body(schema):
    """
    Validate the JSON body against `schema`.
    Raises LedgerValidationError (400) carrying every field error.
    """
    data = request.get_json(silent=True)
    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise LedgerValidationError("Invalid or missing JSON body")

    try:
        return schema.model_validate(data)
    except ValidationError as e:
        errors = [{"field": _field_name(err), "message": _message(err)} for err in e.errors()]
        raise LedgerValidationError(errors[0]["message"], payload={"errors": errors})
