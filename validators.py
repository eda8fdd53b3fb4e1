"""Field validation for JSON request bodies."""

from __future__ import annotations

import re
from typing import Mapping, Optional
from urllib.parse import urlparse

from database import PRODUCT_CATEGORIES

EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
OTP_PATTERN = re.compile(r"^\d{6}$")
PINCODE_PATTERN = re.compile(r"^\d{6}$")
PHONE_PATTERN = re.compile(r"^\d{10}$")
MIN_PASSWORD_LENGTH = 6
COMMON_PASSWORDS = {"password", "123456", "1234567", "12345678", "qwerty", "letmein", "111111"}


def is_valid_email(value: object) -> bool:
    return isinstance(value, str) and bool(EMAIL_PATTERN.match(value.strip()))


def validate_email_payload(data: Mapping[str, object], *, require_name: bool = False) -> dict[str, str]:
    errors: dict[str, str] = {}
    if not is_valid_email(data.get("email")):
        errors["email"] = "Invalid email address"
    name = data.get("name")
    if name is not None or require_name:
        if not isinstance(name, str) or len(name.strip()) < 2:
            errors["name"] = "Name must be at least 2 characters"
    return errors


def validate_otp_payload(data: Mapping[str, object]) -> dict[str, str]:
    errors: dict[str, str] = {}
    if not is_valid_email(data.get("email")):
        errors["email"] = "Invalid email address"
    otp = data.get("otp")
    otp_text = str(otp).strip() if otp is not None else ""
    if len(otp_text) != 6:
        errors["otp"] = "OTP must be 6 digits"
    elif not OTP_PATTERN.match(otp_text):
        errors["otp"] = "OTP must contain only numbers"
    return errors


def validate_password(password: object) -> Optional[str]:
    """Return an error message if the password fails validation, otherwise None."""

    if not isinstance(password, str) or len(password) < MIN_PASSWORD_LENGTH:
        return f"Password must be at least {MIN_PASSWORD_LENGTH} characters"
    if password.lower() in COMMON_PASSWORDS:
        return "Please choose a less common password"
    return None


def is_valid_image_url(value: object) -> bool:
    if not isinstance(value, str) or not value.strip():
        return False
    parsed = urlparse(value.strip())
    return parsed.scheme in {"http", "https"} and bool(parsed.netloc)


def _as_number(value: object) -> Optional[float]:
    # JSON booleans are ints in Python; they are never a valid price.
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, (int, float)):
        return float(value)
    try:
        return float(str(value).strip())
    except ValueError:
        return None


def validate_product_payload(
    data: Mapping[str, object], *, partial: bool = False
) -> tuple[dict[str, object], dict[str, str]]:
    """Return ``(cleaned_fields, errors)`` for a product create or update body.

    With ``partial`` only the fields present in ``data`` are checked.
    """

    cleaned: dict[str, object] = {}
    errors: dict[str, str] = {}

    def present(field: str) -> bool:
        return not partial or field in data

    if present("name"):
        name = str(data.get("name") or "").strip()
        if len(name) < 3:
            errors["name"] = "Product name must be at least 3 characters"
        else:
            cleaned["name"] = name

    if present("description"):
        description = str(data.get("description") or "").strip()
        if len(description) < 10:
            errors["description"] = "Description must be at least 10 characters"
        else:
            cleaned["description"] = description

    if present("category"):
        category = data.get("category")
        if category not in PRODUCT_CATEGORIES:
            errors["category"] = "Please select a valid category"
        else:
            cleaned["category"] = category

    if present("price"):
        price = _as_number(data.get("price"))
        if price is None or price < 0:
            errors["price"] = "Price must be positive"
        else:
            cleaned["price"] = price

    if "discount" in data:
        discount = _as_number(data.get("discount"))
        if discount is None or not 0 <= discount <= 100:
            errors["discount"] = "Discount must be between 0 and 100"
        else:
            cleaned["discount"] = discount

    if present("stock"):
        stock = _as_number(data.get("stock"))
        if stock is None or stock < 0 or int(stock) != stock:
            errors["stock"] = "Stock must be positive"
        else:
            cleaned["stock"] = int(stock)

    if present("image"):
        image = data.get("image")
        if not is_valid_image_url(image):
            errors["image"] = "Please provide a valid image URL"
        else:
            cleaned["image"] = str(image).strip()

    if "is_active" in data or "isActive" in data:
        cleaned["is_active"] = bool(data.get("is_active", data.get("isActive")))

    return cleaned, errors


def validate_shipping_address(data: object) -> tuple[dict[str, str], dict[str, str]]:
    """Return ``(cleaned_address, errors)`` for a checkout shipping block."""

    if not isinstance(data, Mapping):
        return {}, {"shippingAddress": "Shipping address is required"}

    cleaned = {
        field: str(data.get(field) or "").strip()
        for field in ("address", "city", "state", "pincode", "phone")
    }
    errors: dict[str, str] = {}
    if len(cleaned["address"]) < 10:
        errors["address"] = "Address must be at least 10 characters"
    if len(cleaned["city"]) < 2:
        errors["city"] = "City name is required"
    if len(cleaned["state"]) < 2:
        errors["state"] = "State name is required"
    if not PINCODE_PATTERN.match(cleaned["pincode"]):
        errors["pincode"] = "Pincode must be 6 digits"
    if not PHONE_PATTERN.match(cleaned["phone"]):
        errors["phone"] = "Phone number must be 10 digits"
    return cleaned, errors


def first_error(errors: Mapping[str, str]) -> str:
    """Pick one message for the ``message`` field of an error response."""

    return next(iter(errors.values()), "Validation failed")
