from flask import request
from flask_cors import CORS
from flask_limiter import Limiter
from flask_login import LoginManager
from flask_migrate import Migrate
from flask_sqlalchemy import SQLAlchemy


def get_client_ip():
    """Best-effort client IP; ProxyFix puts the real one first in access_route."""
    if request.access_route:
        return request.access_route[0]
    return request.remote_addr or "0.0.0.0"


db = SQLAlchemy()
login_manager = LoginManager()
migrate = Migrate()
cors = CORS()
# Per-process and keyed by IP; point RATELIMIT_STORAGE_URI at Redis to share it.
limiter = Limiter(key_func=get_client_ip)


def init_extensions(app):
    """Initialize Flask extensions"""
    db.init_app(app)
    migrate.init_app(app, db)
    login_manager.init_app(app)
    cors.init_app(
        app,
        resources={r"/api/*": {"origins": app.config["CORS_ORIGINS"]}},
        supports_credentials=True,
        methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization"],
    )
    limiter.init_app(app)

    return app
