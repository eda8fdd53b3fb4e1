"""Shared fixtures: an isolated SQLite database, both Flask clients and auth headers."""

from __future__ import annotations

import os
import tempfile
from pathlib import Path

from cryptography.fernet import Fernet

# Settings are read at import time, so the environment is prepared before any app module loads.
_TEST_DIR = Path(tempfile.mkdtemp(prefix="farmtech-tests-"))
os.environ["DATABASE_URL"] = f"sqlite:///{_TEST_DIR / 'farmtech-test.db'}"
os.environ["BCRYPT_ROUNDS"] = "4"
os.environ["OPENAI_API_KEY"] = ""
os.environ["SMTP_HOST"] = ""
os.environ["RAZORPAY_KEY_ID"] = ""
os.environ["RAZORPAY_KEY_SECRET"] = ""
os.environ["RATELIMIT_ENABLED"] = "true"
os.environ["SENSITIVE_DATA_KEY"] = Fernet.generate_key().decode("utf-8")

import pytest  # noqa: E402
from sqlalchemy import delete  # noqa: E402

import config  # noqa: E402
import database  # noqa: E402
from admin_app import admin_app  # noqa: E402
from app import app as storefront_app  # noqa: E402
from app import limiter  # noqa: E402
from security import generate_token  # noqa: E402

SEED_ADMIN_EMAIL = "admin@farmtech.com"
SEED_USER_EMAIL = "test@farmtech.com"
SEED_PASSWORD = "seed-pass"

SHIPPING = {
    "address": "12 Mandi Road, Near Water Tank",
    "city": "Nashik",
    "state": "Maharashtra",
    "pincode": "422001",
    "phone": "9876543210",
}


@pytest.fixture(autouse=True)
def fresh_database(monkeypatch):
    """Give every test the seeded catalogue, the two seed accounts and clean rate limits."""

    monkeypatch.setattr(config, "OPENAI_API_KEY", None)
    monkeypatch.setattr(config, "SMTP_HOST", "")
    monkeypatch.setattr(config, "RAZORPAY_KEY_ID", "")
    monkeypatch.setattr(config, "RAZORPAY_KEY_SECRET", "")

    with database.session_scope() as session:
        session.execute(delete(database.User))
    database.seed_data(reset=True)
    limiter.reset()
    yield


@pytest.fixture
def client():
    storefront_app.config["TESTING"] = True
    with storefront_app.test_client() as test_client:
        yield test_client


@pytest.fixture
def admin_client():
    admin_app.config["TESTING"] = True
    with admin_app.test_client() as test_client:
        yield test_client


@pytest.fixture
def seed_user():
    return database.get_user_by_email(SEED_USER_EMAIL)


@pytest.fixture
def seed_admin():
    return database.get_user_by_email(SEED_ADMIN_EMAIL)


@pytest.fixture
def user_headers(seed_user):
    return {"Authorization": f"Bearer {generate_token(int(seed_user['id']))}"}


@pytest.fixture
def admin_headers(seed_admin):
    return {"Authorization": f"Bearer {generate_token(int(seed_admin['id']))}"}


@pytest.fixture
def product_by_name():
    """Look up a seeded product by its exact catalogue name."""

    def _lookup(name: str) -> dict:
        for product in database.fetch_products():
            if product["name"] == name:
                return product
        raise LookupError(name)

    return _lookup


@pytest.fixture
def payment_secret(monkeypatch):
    monkeypatch.setattr(config, "RAZORPAY_KEY_SECRET", "test_razorpay_secret")
    return "test_razorpay_secret"


@pytest.fixture
def shipping():
    return dict(SHIPPING)
