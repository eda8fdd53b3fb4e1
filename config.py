"""Environment-driven settings for the FarmTech storefront."""

from __future__ import annotations

import logging
import os
from pathlib import Path

from dotenv import load_dotenv

BASE_DIR = Path(__file__).resolve().parent

load_dotenv(BASE_DIR / ".env")


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _env_flag(name: str, default: bool = False) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


def _read_key_file(path: Path) -> str | None:
    """Read a whitespace-trimmed secret from a local file if present."""

    try:
        contents = path.read_text(encoding="utf-8").strip()
    except FileNotFoundError:
        return None
    return contents or None


SECRET_KEY = os.getenv("SECRET_KEY", "dev-secret-key-change-me")
JWT_SECRET = os.getenv("JWT_SECRET", SECRET_KEY)
JWT_EXPIRE_DAYS = _env_int("JWT_EXPIRE_DAYS", 7)
DEBUG = _env_flag("FLASK_DEBUG")

DATABASE_URL = os.getenv("DATABASE_URL", f"sqlite:///{BASE_DIR / 'farmtech.db'}")

SENSITIVE_KEY_FILE = BASE_DIR / "sensitive_key.txt"
BCRYPT_ROUNDS = _env_int("BCRYPT_ROUNDS", 12)
OTP_EXPIRY_MINUTES = _env_int("OTP_EXPIRY_MINUTES", 5)

RAZORPAY_KEY_ID = os.getenv("RAZORPAY_KEY_ID", "")
RAZORPAY_KEY_SECRET = os.getenv("RAZORPAY_KEY_SECRET", "")
PAYMENT_CURRENCY = "INR"

OPENAI_KEY_FILE = BASE_DIR / "openai_key.txt"
OPENAI_API_KEY = os.getenv("OPENAI_API_KEY") or _read_key_file(OPENAI_KEY_FILE)
OPENAI_MODEL = os.getenv("OPENAI_MODEL", "gpt-4o-mini")

SMTP_HOST = os.getenv("SMTP_HOST", "")
SMTP_PORT = _env_int("SMTP_PORT", 587)
SMTP_USER = os.getenv("SMTP_USER", "")
SMTP_PASSWORD = os.getenv("SMTP_PASSWORD", "")
MAIL_SENDER = os.getenv("MAIL_SENDER", SMTP_USER or "no-reply@farmtech.local")

ALLOWED_ORIGINS = [
    origin.strip()
    for origin in os.getenv("ALLOWED_ORIGINS", "http://localhost:3000,http://localhost:3001").split(",")
    if origin.strip()
]

CHAT_RATE_LIMIT = os.getenv("CHAT_RATE_LIMIT", "30 per minute")
OTP_RATE_LIMIT = os.getenv("OTP_RATE_LIMIT", "3 per minute")
RATELIMIT_ENABLED = _env_flag("RATELIMIT_ENABLED", True)

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()


def configure_logging() -> None:
    """Apply the configured log level to the root logger once."""

    logging.basicConfig(
        level=getattr(logging, LOG_LEVEL, logging.INFO),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )
