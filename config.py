# ==========================================================================================================
# -------------- Configuration file for the ForexPro Flask services ----------------------------------------
# ==========================================================================================================
import os
from dotenv import load_dotenv


if os.environ.get("FLASK_ENV") != "production":
    load_dotenv()

basedir = os.path.abspath(os.path.dirname(__file__))


def _database_url():
    url = os.getenv("DATABASE_URL")
    if not url:
        url = f"sqlite:///{os.path.join(basedir, 'instance', 'forexpro.db')}"

    if url.startswith("postgres://"):
        url = url.replace("postgres://", "postgresql+pg8000://", 1)
    elif url.startswith("postgresql://"):
        url = url.replace("postgresql://", "postgresql+pg8000://", 1)
    return url


# Each service listens on its own port, as the standalone servers did.
SERVICE_PORTS = {
    "auth": ("PORT", 3000),
    "profile": ("PROFILE_PORT", 3001),
    "referrals": ("REFERRALS_PORT", 3002),
    "trading": ("TRADING_PORT", 3003),
    "demo": ("DEMO_PORT", 3004),
    "payments": ("DEPOSIT_WITHDRAW_PORT", 3005),
    "dashboard": ("DASHBOARD_PORT", 3006),
    "admin": ("ADMIN_PORT", 3007),
}


def service_port(service):
    env_name, default = SERVICE_PORTS[service]
    return int(os.getenv(env_name, default))


class Config:

    FLASK_ENV = os.getenv("FLASK_ENV", "production")
    DEBUG = os.getenv("DEBUG", "False").lower() in ("true", "1", "t")
    TESTING = False

    SECRET_KEY = os.getenv("SECRET_KEY", "dev_key_change_me")

    JWT_SECRET = os.getenv("JWT_SECRET")
    JWT_ALGORITHM = "HS256"
    JWT_EXPIRES_DAYS = int(os.getenv("JWT_EXPIRES_DAYS", 30))
    ADMIN_JWT_EXPIRES_HOURS = int(os.getenv("ADMIN_JWT_EXPIRES_HOURS", 24))

    SQLALCHEMY_DATABASE_URI = _database_url()
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SQLALCHEMY_ENGINE_OPTIONS = {
        "pool_pre_ping": True,
        "pool_recycle": 300,
    }

    # 10kb JSON bodies in the old servers; uploads need room for a 3MB image.
    MAX_CONTENT_LENGTH = 4 * 1024 * 1024
    PROFILE_IMAGE_MAX_BYTES = 3 * 1024 * 1024
    PUBLIC_DIR = os.getenv("PUBLIC_DIR", os.path.join(basedir, "public"))
    UPLOAD_DIR = os.getenv("UPLOAD_DIR", os.path.join(PUBLIC_DIR, "uploads", "profiles"))

    CORS_ORIGINS = [
        origin.strip()
        for origin in os.getenv(
            "CORS_ORIGINS",
            "http://localhost:3000,http://localhost:3006,https://forexproo.onrender.com",
        ).split(",")
        if origin.strip()
    ]

    # Flask-Limiter
    RATELIMIT_ENABLED = True
    RATELIMIT_STORAGE_URI = os.getenv("RATELIMIT_STORAGE_URI", "memory://")
    RATELIMIT_HEADERS_ENABLED = True
    API_RATE_LIMIT = os.getenv("API_RATE_LIMIT", "100 per 15 minutes")
    RATELIMIT_DEFAULT = API_RATE_LIMIT
    AUTH_RATE_LIMIT = os.getenv("AUTH_RATE_LIMIT", "8 per 15 minutes")
    BOT_RATE_LIMIT = os.getenv("BOT_RATE_LIMIT", "5 per 15 minutes")
    SENSITIVE_RATE_LIMIT = os.getenv("SENSITIVE_RATE_LIMIT", "10 per 15 minutes")
    ADMIN_LOGIN_RATE_LIMIT = os.getenv("ADMIN_LOGIN_RATE_LIMIT", "5 per 15 minutes")

    # Deposit address cache
    CACHE_REDIS_URL = os.getenv("CACHE_REDIS_URL")
    DEPOSIT_ADDRESS_CACHE_TTL = int(os.getenv("DEPOSIT_ADDRESS_CACHE_TTL", 300))

    BOT_SIMULATION_STEP_MIN = int(os.getenv("BOT_SIMULATION_STEP_MIN", 5))
    BOT_SIMULATION_STEP_MAX = int(os.getenv("BOT_SIMULATION_STEP_MAX", 15))
    BOT_IMAGE_URL = os.getenv(
        "BOT_IMAGE_URL", "https://images.unsplash.com/photo-1639762681485-074b7f938ba0"
    )

    LOG_DIR = os.getenv("LOG_DIR", "logs")

    # Behind Render's proxy the client IP arrives in X-Forwarded-For
    TRUST_PROXY = bool(os.getenv("RENDER")) or FLASK_ENV == "production"


class TestingConfig(Config):
    TESTING = True
    DEBUG = False
    SECRET_KEY = "test-secret-key"
    JWT_SECRET = "test-jwt-secret-with-at-least-32-bytes!!"
    SQLALCHEMY_DATABASE_URI = "sqlite://"
    SQLALCHEMY_ENGINE_OPTIONS = {}
    RATELIMIT_ENABLED = False
    CACHE_REDIS_URL = None
    BOT_SIMULATION_STEP_MIN = 10
    BOT_SIMULATION_STEP_MAX = 10
    TRUST_PROXY = False
