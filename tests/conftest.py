"""
Pytest fixtures for the vendor ledger test suite.

Provides:
- A fresh application and in-memory SQLite database per test
- `app_ctx` for service-level tests that talk to the session directly
- Vendor / user factories
- `api`: seeded vendors plus logged-in clients (Flask-Login's FlaskLoginClient).
  Requests are made outside any pushed app context so every request gets
  its own session and its own current_user.
"""

from types import SimpleNamespace

import pytest
from flask_login import FlaskLoginClient

from app import create_app
from app.extensions import db as _db
from app.models import User, UserRole
from app.services.ledger_service import create_vendor
from config import TestConfig


def add_user(email, role=UserRole.VENDOR.value, vendor_id=None, password='secret123'):
    user = User(
        name=email.split('@')[0].title(),
        email=email,
        role=role,
        vendor_id=vendor_id
    )
    user.set_password(password)
    _db.session.add(user)
    _db.session.commit()
    return user


@pytest.fixture
def app():
    app = create_app(TestConfig)
    app.test_client_class = FlaskLoginClient

    yield app

    with app.app_context():
        _db.drop_all()


@pytest.fixture
def app_ctx(app):
    with app.app_context():
        yield app
        _db.session.remove()


@pytest.fixture
def db(app_ctx):
    return _db


@pytest.fixture
def make_vendor(app_ctx):
    counter = {'n': 0}

    def factory(name=None, cash_limit=10000, **kwargs):
        counter['n'] += 1
        return create_vendor(name or f"Vendor {counter['n']}", cash_limit=cash_limit, **kwargs)

    return factory


@pytest.fixture
def vendor(make_vendor):
    return make_vendor('Sharma Home Services', cash_limit=10000, phone='9876543210')


@pytest.fixture
def admin_user(app_ctx):
    return add_user('admin@ledger.test', role=UserRole.ADMIN.value)


@pytest.fixture
def notifications(app):
    """Capture vendor notifications instead of delivering them."""
    sent = []
    app.config['LEDGER_NOTIFIER'] = lambda vendor_id, title, message: sent.append(
        (vendor_id, title, message)
    )
    return sent


@pytest.fixture
def bank_details():
    return {
        'account_holder_name': 'Ravi Sharma',
        'account_number': '001122334455',
        'ifsc_code': 'HDFC0001234',
        'bank_name': 'HDFC Bank',
    }


@pytest.fixture
def api(app):
    """Two vendors, an admin, a vendor login and clients for each."""
    with app.app_context():
        vendor = create_vendor('Sharma Home Services', cash_limit=10000, phone='9876543210')
        other = create_vendor('Gupta Repairs', cash_limit=10000)

        admin = add_user('admin@ledger.test', role=UserRole.ADMIN.value)
        owner = add_user('sharma@ledger.test', vendor_id=vendor.id)
        outsider = add_user('gupta@ledger.test', vendor_id=other.id)

        return SimpleNamespace(
            vendor_id=vendor.id,
            other_vendor_id=other.id,
            admin=app.test_client(user=admin),
            vendor=app.test_client(user=owner),
            other_vendor=app.test_client(user=outsider),
            anonymous=app.test_client(),
        )
