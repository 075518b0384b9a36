"""
ForexPro Test Configuration
===========================
Pytest fixtures: a fresh in-memory database per test, user factories and
bearer-token headers.
"""

import os
import sys
import tempfile
from decimal import Decimal

import pytest
from flask import g, has_app_context
from flask.testing import FlaskClient

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

# Set test environment before importing app
os.environ['FLASK_ENV'] = 'testing'
os.environ.setdefault('LOG_DIR', tempfile.mkdtemp(prefix='forexpro-logs-'))
os.environ.setdefault('JWT_SECRET', 'test-jwt-secret-with-at-least-32-bytes!!')


class TokenClient(FlaskClient):
    """
    The fixture app context outlives each request, so `g` would keep the
    user Flask-Login loaded for the previous bearer token.
    """

    def open(self, *args, **kwargs):
        if has_app_context():
            g.pop("_login_user", None)
            g.pop("auth_error", None)
        return super().open(*args, **kwargs)


@pytest.fixture
def app(tmp_path):
    """Create a Flask application with every service registered."""
    from app import create_app
    from config import TestingConfig
    from extensions import db

    class Config(TestingConfig):
        PUBLIC_DIR = str(tmp_path / 'public')
        UPLOAD_DIR = str(tmp_path / 'public' / 'uploads' / 'profiles')

    flask_app = create_app(config_class=Config)
    flask_app.test_client_class = TokenClient

    with flask_app.app_context():
        db.create_all()
        yield flask_app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    """Create a test client for the Flask application."""
    return app.test_client()


@pytest.fixture
def make_user(app):
    """Factory for users stored directly in the database."""
    from extensions import db
    from models import User
    from utils import generate_referral_code

    def _make(email='user@example.com', password='Password123', currency='KSH',
              balance='0', role='user', name='Test User', **fields):
        user = User(
            name=name,
            email=email,
            currency=currency,
            balance=Decimal(str(balance)),
            role=role,
            referral_code=generate_referral_code(
                lambda code: User.query.filter_by(referral_code=code).first() is not None
            ),
            **fields,
        )
        user.set_password(password)
        db.session.add(user)
        db.session.commit()
        return user

    return _make


@pytest.fixture
def test_user(make_user):
    return make_user(email='test@example.com', balance='1000')


@pytest.fixture
def test_admin(make_user):
    return make_user(email='admin@example.com', password='AdminPassword123', role='admin', name='Admin')


@pytest.fixture
def auth_headers(app):
    """Build Authorization headers for a user."""
    from blueprints.auth_helpers import make_token

    def _headers(user):
        return {'Authorization': f'Bearer {make_token(user)}'}

    return _headers


@pytest.fixture
def user_headers(test_user, auth_headers):
    return auth_headers(test_user)


@pytest.fixture
def admin_headers(test_admin, auth_headers):
    return auth_headers(test_admin)


@pytest.fixture
def demo_headers(app):
    from blueprints.auth_helpers import make_demo_token

    _, token = make_demo_token()
    return {'Authorization': f'Bearer {token}'}


@pytest.fixture
def refresh():
    """Reload a model instance from the database."""
    from extensions import db

    def _refresh(obj):
        db.session.expire_all()
        return db.session.get(type(obj), obj.id)

    return _refresh


@pytest.fixture
def competing_update(monkeypatch):
    """
    Run `statement` just before `module` issues its next UPDATE, the way a
    concurrent request committing first would.
    """
    from sqlalchemy import update as sa_update
    from extensions import db

    def _install(module, statement):
        fired = []

        def update(entity):
            if not fired:
                fired.append(True)
                db.session.execute(statement.execution_options(synchronize_session=False))
            return sa_update(entity)

        monkeypatch.setattr(module, 'update', update)

    return _install
