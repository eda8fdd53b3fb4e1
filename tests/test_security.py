"""Password, OTP, token, payment signature and column encryption helpers."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import jwt
from werkzeug.security import generate_password_hash

import config
import security


def _utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


class TestPasswords:
    def test_hash_round_trip(self):
        hashed = security.hash_password("krishi-2024")
        assert hashed != "krishi-2024"
        assert security.verify_password("krishi-2024", hashed)
        assert not security.verify_password("krishi-2025", hashed)

    def test_missing_hash_never_verifies(self):
        assert not security.verify_password("anything", None)
        assert not security.verify_password("", security.hash_password("x"))

    def test_legacy_werkzeug_hash_is_accepted(self):
        legacy = generate_password_hash("old-password")
        assert security.verify_password("old-password", legacy)


class TestOtp:
    def test_generated_code_is_six_digits_and_verifies(self):
        otp, otp_hash, expires_at = security.generate_otp()
        assert len(otp) == 6 and otp.isdigit()
        assert expires_at > _utcnow()
        assert security.verify_otp(otp, otp_hash, expires_at)

    def test_wrong_code_is_rejected(self):
        otp, otp_hash, expires_at = security.generate_otp()
        wrong = "100000" if otp != "100000" else "100001"
        assert not security.verify_otp(wrong, otp_hash, expires_at)

    def test_expired_code_is_rejected(self):
        otp, otp_hash, _ = security.generate_otp()
        assert not security.verify_otp(otp, otp_hash, _utcnow() - timedelta(seconds=1))


class TestTokens:
    def test_token_carries_user_id(self):
        payload = security.decode_token(security.generate_token(42))
        assert payload is not None
        assert payload["id"] == 42

    def test_tampered_or_foreign_token_is_rejected(self):
        token = security.generate_token(7)
        assert security.decode_token(token + "x") is None
        foreign = jwt.encode({"id": 7}, "some-other-secret", algorithm="HS256")
        assert security.decode_token(foreign) is None
        assert security.decode_token("") is None


class TestPaymentSignature:
    def test_valid_signature(self, payment_secret):
        signature = security.payment_signature("order_abc", "pay_xyz")
        assert security.verify_payment_signature("order_abc", "pay_xyz", signature)

    def test_signature_bound_to_both_ids(self, payment_secret):
        signature = security.payment_signature("order_abc", "pay_xyz")
        assert not security.verify_payment_signature("order_abc", "pay_other", signature)

    def test_missing_fields_fail(self, payment_secret):
        signature = security.payment_signature("order_abc", "pay_xyz")
        assert not security.verify_payment_signature(None, "pay_xyz", signature)
        assert not security.verify_payment_signature("order_abc", "pay_xyz", "")

    def test_unconfigured_secret_fails(self, monkeypatch):
        monkeypatch.setattr(config, "RAZORPAY_KEY_SECRET", "")
        signature = security.payment_signature("order_abc", "pay_xyz", secret="leaked")
        assert not security.verify_payment_signature("order_abc", "pay_xyz", signature)


class TestEncryption:
    def test_round_trip(self):
        token = security.encrypt_sensitive_value("9876543210")
        assert token != "9876543210"
        assert security.decrypt_sensitive_value(token) == "9876543210"

    def test_plaintext_rows_pass_through(self):
        assert security.decrypt_sensitive_value("Nashik") == "Nashik"
        assert security.decrypt_sensitive_value(None) == ""
