import os
from datetime import datetime, timezone

from flask import Flask, jsonify, request
from werkzeug.exceptions import HTTPException
from werkzeug.middleware.proxy_fix import ProxyFix

from config import Config, SERVICE_PORTS
from extensions import db, init_extensions, limiter
from ledger.cache import DepositAddressCache
from ledger.exceptions import LedgerError
from logger import configure_app_logging


# --------------------------------------------------------------------------------------------------------
#       Which blueprints each service process serves. The page routes are always registered.
# --------------------------------------------------------------------------------------------------------
SERVICE_BLUEPRINTS = {
    "auth": ("auth",),
    "profile": ("profile",),
    "referrals": ("referrals",),
    "trading": ("trading",),
    "demo": (),
    "payments": ("payments",),
    "dashboard": ("dashboard", "profile"),
    "admin": ("admin",),
}


def _blueprints():
    from blueprints.admin import admin_bp
    from blueprints.auth import bp as auth_bp
    from blueprints.dashboard import bp as dashboard_bp
    from blueprints.payments import bp as payments_bp
    from blueprints.profile import bp as profile_bp
    from blueprints.referrals import bp as referrals_bp
    from blueprints.trading import bp as trading_bp

    return {
        "auth": auth_bp,
        "profile": profile_bp,
        "referrals": referrals_bp,
        "trading": trading_bp,
        "payments": payments_bp,
        "dashboard": dashboard_bp,
        "admin": admin_bp,
    }


def register_blueprints(app, service=None):
    import blueprints.auth_helpers  # noqa: F401  registers the token request_loader
    from blueprints.pages import bp as pages_bp

    available = _blueprints()
    if service is None:
        names = list(available)
    else:
        if service not in SERVICE_BLUEPRINTS:
            raise ValueError(f"Unknown service {service!r}; expected one of {sorted(SERVICE_PORTS)}")
        names = SERVICE_BLUEPRINTS[service]

    for name in names:
        app.register_blueprint(available[name])
    app.register_blueprint(pages_bp)


def add_security_headers(response):
    response.headers['X-Frame-Options'] = 'SAMEORIGIN'
    response.headers['X-Content-Type-Options'] = 'nosniff'
    response.headers['X-XSS-Protection'] = '1; mode=block'
    response.headers['Referrer-Policy'] = 'strict-origin-when-cross-origin'
    if request.is_secure:
        response.headers['Strict-Transport-Security'] = 'max-age=31536000; includeSubDomains'
    return response


def register_error_handlers(app):

    @app.errorhandler(LedgerError)
    def handle_ledger_error(e):
        db.session.rollback()
        return jsonify(e.to_dict()), e.status_code

    @app.errorhandler(404)
    def not_found(e):
        return jsonify({"error": "Not found"}), 404

    @app.errorhandler(405)
    def method_not_allowed(e):
        return jsonify({"error": "Method not allowed"}), 405

    @app.errorhandler(413)
    def too_large(e):
        return jsonify({"error": "Request body too large"}), 413

    @app.errorhandler(429)
    def rate_limited(e):
        return jsonify({"error": "Too many requests, please try again later."}), 429

    @app.errorhandler(Exception)
    def server_error(e):
        if isinstance(e, HTTPException):
            return jsonify({"error": e.description}), e.code
        db.session.rollback()
        app.logger.exception(f"Unhandled error on {request.method} {request.path}")
        return jsonify({"error": "Server error"}), 500


def create_app(service=None, config_class=Config):
    app = Flask(__name__)
    app.config.from_object(config_class)
    app.config["SERVICE"] = service or "all"

    configure_app_logging(app)

    if app.config.get("TRUST_PROXY"):
        # Trust a single proxy hop
        app.wsgi_app = ProxyFix(app.wsgi_app, x_for=1, x_proto=1, x_host=1)

    # ----------------------------------------------------------------------------------------------------------------------------------
    # SQLite fallback lives under instance/
    # --------------------------------------------------------------------------------------------------------------------------------------------
    if app.config["SQLALCHEMY_DATABASE_URI"].startswith("sqlite:///"):
        os.makedirs(app.instance_path, exist_ok=True)

    if not app.config.get("JWT_SECRET"):
        app.logger.error("JWT_SECRET is not set; token issuing and verification will fail")

    init_extensions(app)

    app.extensions["deposit_address_cache"] = DepositAddressCache(
        ttl=app.config["DEPOSIT_ADDRESS_CACHE_TTL"],
        redis_url=app.config.get("CACHE_REDIS_URL"),
    )

    register_blueprints(app, service)
    register_error_handlers(app)

    @app.after_request
    def after_request(response):
        add_security_headers(response)
        app.logger.info(f"{request.method} {request.path} {response.status_code}")
        return response

    @app.route("/healthz")
    @limiter.exempt
    def healthz():
        return {
            "status": "ok",
            "service": app.config["SERVICE"],
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }, 200

    return app


# ----------------------
# Create app instance
# ----------------------
app = create_app(os.getenv("SERVICE") or None)

# ----------------------
# Local development
# ----------------------
if __name__ == "__main__":
    from config import service_port

    port = service_port(os.getenv("SERVICE") or "auth")
    app.run(debug=app.config.get("DEBUG", False), host="0.0.0.0", port=port)
