"""Helper utilities for hashing, tokens, payment signatures, and encrypting user data."""

from __future__ import annotations

import hashlib
import hmac
import os
import secrets
from datetime import datetime, timedelta, timezone
from typing import Optional

import bcrypt
import jwt
from cryptography.fernet import Fernet, InvalidToken
from werkzeug.security import check_password_hash

import config

SENSITIVE_KEY_ENV = "SENSITIVE_DATA_KEY"
JWT_ALGORITHM = "HS256"
OTP_DIGITS = 6

_sensitive_key_cache: Optional[bytes] = None
_sensitive_cipher: Optional[Fernet] = None


def hash_password(password: str) -> str:
    """Hash the provided password using bcrypt with a per-password salt."""

    if not isinstance(password, str):
        raise TypeError("Password must be a string.")
    salt = bcrypt.gensalt(rounds=config.BCRYPT_ROUNDS)
    hashed = bcrypt.hashpw(password.encode("utf-8"), salt)
    return hashed.decode("utf-8")


def verify_password(password: str, stored_hash: str | bytes | None) -> bool:
    """Validate a plaintext password against a stored bcrypt hash."""

    if not password or not stored_hash:
        return False

    stored_hash_str = stored_hash.decode("utf-8") if isinstance(stored_hash, bytes) else str(stored_hash)

    if stored_hash_str.startswith("scrypt:") or stored_hash_str.startswith("pbkdf2:"):
        return check_password_hash(stored_hash_str, password)

    try:
        return bcrypt.checkpw(password.encode("utf-8"), stored_hash_str.encode("utf-8"))
    except (ValueError, TypeError):
        return False


# --------------------------------------------------------------------------------------
# One-time passwords
# --------------------------------------------------------------------------------------


def generate_otp() -> tuple[str, str, datetime]:
    """Return ``(plain_otp, otp_hash, expires_at)`` for a fresh six digit code.

    The code is hashed like a password so a leaked row cannot be replayed.
    """

    otp = str(secrets.randbelow(900000) + 100000)
    expires_at = datetime.now(timezone.utc).replace(tzinfo=None) + timedelta(minutes=config.OTP_EXPIRY_MINUTES)
    return otp, hash_password(otp), expires_at


def verify_otp(otp: str, otp_hash: Optional[str], expires_at: Optional[datetime]) -> bool:
    """Check a submitted OTP against the stored hash and expiry."""

    if not otp or not otp_hash or expires_at is None:
        return False
    if expires_at < datetime.now(timezone.utc).replace(tzinfo=None):
        return False
    return verify_password(otp, otp_hash)


# --------------------------------------------------------------------------------------
# Bearer tokens
# --------------------------------------------------------------------------------------


def generate_token(user_id: int) -> str:
    """Issue a signed bearer token for the given user id."""

    now = datetime.now(timezone.utc)
    payload = {
        "id": int(user_id),
        "iat": now,
        "exp": now + timedelta(days=config.JWT_EXPIRE_DAYS),
    }
    return jwt.encode(payload, config.JWT_SECRET, algorithm=JWT_ALGORITHM)


def decode_token(token: str) -> Optional[dict[str, object]]:
    """Return the token payload, or None when it is invalid or expired."""

    if not token:
        return None
    try:
        return jwt.decode(token, config.JWT_SECRET, algorithms=[JWT_ALGORITHM])
    except jwt.PyJWTError:
        return None


# --------------------------------------------------------------------------------------
# Payment signatures
# --------------------------------------------------------------------------------------


def payment_signature(order_id: str, payment_id: str, secret: Optional[str] = None) -> str:
    """Compute the gateway signature for an ``order_id|payment_id`` pair."""

    key = (secret if secret is not None else config.RAZORPAY_KEY_SECRET).encode("utf-8")
    message = f"{order_id}|{payment_id}".encode("utf-8")
    return hmac.new(key, message, hashlib.sha256).hexdigest()


def verify_payment_signature(
    order_id: Optional[str],
    payment_id: Optional[str],
    signature: Optional[str],
    secret: Optional[str] = None,
) -> bool:
    """Constant-time comparison of a gateway signature."""

    if not order_id or not payment_id or not signature:
        return False
    if not (secret if secret is not None else config.RAZORPAY_KEY_SECRET):
        return False
    expected = payment_signature(str(order_id), str(payment_id), secret)
    return hmac.compare_digest(expected, str(signature))


# --------------------------------------------------------------------------------------
# Column encryption
# --------------------------------------------------------------------------------------


def _load_sensitive_key() -> bytes:
    """Fetch or lazily generate the symmetric key used for sensitive columns."""

    global _sensitive_key_cache
    if _sensitive_key_cache:
        return _sensitive_key_cache

    env_key = os.getenv(SENSITIVE_KEY_ENV)
    if env_key:
        key_bytes = env_key.strip().encode("utf-8")
    elif config.SENSITIVE_KEY_FILE.exists():
        key_bytes = config.SENSITIVE_KEY_FILE.read_bytes().strip()
    else:
        key_bytes = Fernet.generate_key()
        config.SENSITIVE_KEY_FILE.write_bytes(key_bytes)

    _sensitive_key_cache = key_bytes
    return key_bytes


def _get_sensitive_cipher() -> Fernet:
    global _sensitive_cipher
    if _sensitive_cipher is None:
        key_bytes = _load_sensitive_key()
        _sensitive_cipher = Fernet(key_bytes)
    return _sensitive_cipher


def encrypt_sensitive_value(value: Optional[str]) -> str:
    """Encrypt a sensitive string using the shared symmetric key."""

    if value is None:
        value = ""
    cipher = _get_sensitive_cipher()
    token = cipher.encrypt(value.encode("utf-8"))
    return token.decode("utf-8")


def decrypt_sensitive_value(value: Optional[str]) -> str:
    """Decrypt a stored sensitive value, returning the plain text."""

    if value is None:
        return ""
    if not isinstance(value, str):
        value = str(value)
    if not value:
        return ""

    cipher = _get_sensitive_cipher()
    try:
        return cipher.decrypt(value.encode("utf-8")).decode("utf-8")
    except (InvalidToken, ValueError, TypeError):
        # Legacy rows may still exist in plaintext; surface them as-is.
        return value
