"""Signup, OTP login, password login and profile endpoints."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

import app as storefront
import database
from security import hash_password

SEED_USER_EMAIL = "test@farmtech.com"
SEED_PASSWORD = "seed-pass"

FIXED_OTP = "482913"


@pytest.fixture
def fixed_otp(monkeypatch):
    """Make the next issued OTP predictable."""

    def _generate():
        expires_at = datetime.now(timezone.utc).replace(tzinfo=None) + timedelta(minutes=5)
        return FIXED_OTP, hash_password(FIXED_OTP), expires_at

    monkeypatch.setattr(storefront, "generate_otp", _generate)
    return FIXED_OTP


class TestSignup:
    def test_signup_then_password_login(self, client, fixed_otp):
        response = client.post(
            "/api/auth/signup",
            json={"name": "Ramesh Patil", "email": "Ramesh@Example.com", "password": "kheti-2024"},
        )
        assert response.status_code == 201
        assert response.get_json()["email"] == "ramesh@example.com"

        user = database.get_user_by_email("ramesh@example.com")
        assert user["is_verified"] is False
        assert user["otp_hash"]

        response = client.post("/api/auth/login", json={"email": "ramesh@example.com", "password": "kheti-2024"})
        body = response.get_json()
        assert response.status_code == 200
        assert body["token"]
        assert body["user"]["is_verified"] is True
        assert "password_hash" not in body["user"]

    def test_duplicate_email(self, client):
        response = client.post(
            "/api/auth/signup",
            json={"name": "Test Again", "email": SEED_USER_EMAIL, "password": "kheti-2024"},
        )
        assert response.status_code == 400
        assert response.get_json()["message"] == "User already exists with this email"

    def test_weak_password(self, client):
        response = client.post(
            "/api/auth/signup", json={"name": "Sita Devi", "email": "sita@example.com", "password": "123456"}
        )
        assert response.status_code == 400
        assert response.get_json()["success"] is False

    def test_missing_fields(self, client):
        response = client.post("/api/auth/signup", json={"email": "sita@example.com"})
        assert response.status_code == 400
        assert response.get_json()["message"] == "Email, name, and password are required"


class TestOtpLogin:
    def test_new_user_needs_a_name(self, client):
        response = client.post("/api/auth/send-otp", json={"email": "new.farmer@example.com"})
        assert response.status_code == 400
        assert response.get_json()["message"] == "Name is required for new users"

    def test_otp_creates_account_and_logs_in(self, client, fixed_otp):
        response = client.post("/api/auth/send-otp", json={"email": "new.farmer@example.com", "name": "Gopal"})
        assert response.status_code == 200

        response = client.post("/api/auth/verify-otp", json={"email": "new.farmer@example.com", "otp": fixed_otp})
        body = response.get_json()
        assert response.status_code == 200
        assert body["user"]["name"] == "Gopal"
        assert body["user"]["is_verified"] is True
        assert body["user"]["has_password"] is False

        user = database.get_user_by_email("new.farmer@example.com")
        assert user["otp_hash"] is None

    def test_otp_is_single_use(self, client, fixed_otp):
        client.post("/api/auth/send-otp", json={"email": SEED_USER_EMAIL})
        first = client.post("/api/auth/verify-otp", json={"email": SEED_USER_EMAIL, "otp": fixed_otp})
        second = client.post("/api/auth/verify-otp", json={"email": SEED_USER_EMAIL, "otp": fixed_otp})
        assert first.status_code == 200
        assert second.status_code == 400
        assert second.get_json()["message"] == "Invalid or expired OTP"

    def test_wrong_otp(self, client, fixed_otp):
        client.post("/api/auth/send-otp", json={"email": SEED_USER_EMAIL})
        response = client.post("/api/auth/verify-otp", json={"email": SEED_USER_EMAIL, "otp": "000000"})
        assert response.status_code == 400

    def test_unknown_email(self, client):
        response = client.post("/api/auth/verify-otp", json={"email": "nobody@example.com", "otp": "123456"})
        assert response.status_code == 404

    def test_send_otp_is_rate_limited(self, client):
        statuses = [
            client.post("/api/auth/send-otp", json={"email": SEED_USER_EMAIL}).status_code for _ in range(4)
        ]
        assert statuses == [200, 200, 200, 429]
        response = client.post("/api/auth/send-otp", json={"email": SEED_USER_EMAIL})
        assert response.get_json()["message"].startswith("Too many OTP requests")


class TestPasswordLogin:
    def test_wrong_password(self, client):
        response = client.post("/api/auth/login", json={"email": SEED_USER_EMAIL, "password": "not-it"})
        assert response.status_code == 401
        assert response.get_json()["message"] == "Invalid email or password"

    def test_otp_only_account(self, client):
        database.create_user("Otp Only", "otp.only@example.com")
        response = client.post("/api/auth/login", json={"email": "otp.only@example.com", "password": "whatever1"})
        assert response.status_code == 400


class TestProfile:
    def test_requires_token(self, client):
        response = client.get("/api/user/profile")
        assert response.status_code == 401
        response = client.get("/api/user/profile", headers={"Authorization": "Bearer not-a-token"})
        assert response.status_code == 401

    def test_read_and_update(self, client, user_headers):
        response = client.get("/api/user/profile", headers=user_headers)
        assert response.get_json()["data"]["email"] == SEED_USER_EMAIL

        response = client.put(
            "/api/user/profile",
            json={"name": "Test Farmer", "phone": "9000000001", "address": "Village Khed"},
            headers=user_headers,
        )
        data = response.get_json()["data"]
        assert data["name"] == "Test Farmer"
        assert data["phone"] == "9000000001"
        assert data["address"] == "Village Khed"

    def test_change_password(self, client, user_headers):
        response = client.put(
            "/api/user/change-password",
            json={"currentPassword": "wrong-one", "newPassword": "harvest-99"},
            headers=user_headers,
        )
        assert response.status_code == 400
        assert response.get_json()["message"] == "Current password is incorrect"

        response = client.put(
            "/api/user/change-password",
            json={"currentPassword": SEED_PASSWORD, "newPassword": "harvest-99"},
            headers=user_headers,
        )
        assert response.status_code == 200
        login = client.post("/api/auth/login", json={"email": SEED_USER_EMAIL, "password": "harvest-99"})
        assert login.status_code == 200

    def test_otp_account_can_set_first_password(self, client):
        from security import generate_token

        user_id = database.create_user("Otp Only", "otp.only@example.com", is_verified=True)
        headers = {"Authorization": f"Bearer {generate_token(user_id)}"}
        response = client.put("/api/user/change-password", json={"newPassword": "harvest-99"}, headers=headers)
        assert response.status_code == 200
        assert database.get_user_by_email("otp.only@example.com")["password_hash"]
