"""Razorpay order creation for checkout."""

from __future__ import annotations

import logging
import time
from typing import TYPE_CHECKING, Optional

import config

if TYPE_CHECKING:
    import razorpay

logger = logging.getLogger(__name__)

_client: Optional["razorpay.Client"] = None


class PaymentGatewayError(RuntimeError):
    """Raised when the payment gateway is missing or rejects a request."""


def gateway_configured() -> bool:
    return bool(config.RAZORPAY_KEY_ID and config.RAZORPAY_KEY_SECRET)


def _get_client() -> "razorpay.Client":
    global _client
    if not gateway_configured():
        raise PaymentGatewayError("Payment gateway not configured")
    if _client is None:
        # The SDK is only loaded once keys are configured.
        import razorpay

        _client = razorpay.Client(auth=(config.RAZORPAY_KEY_ID, config.RAZORPAY_KEY_SECRET))
    return _client


def to_paise(amount: float) -> int:
    return int(round(float(amount) * 100))


def create_gateway_order(amount: float) -> dict[str, object]:
    """Open a Razorpay order for ``amount`` rupees.

    Returns the fields the checkout widget needs: ``orderId``, ``amount`` in
    paise, ``currency`` and the public ``keyId``.
    """

    client = _get_client()
    payload = {
        "amount": to_paise(amount),
        "currency": config.PAYMENT_CURRENCY,
        "receipt": f"order_{int(time.time() * 1000)}",
    }
    try:
        order = client.order.create(data=payload)
    except Exception as exc:
        logger.exception("Razorpay order creation failed")
        raise PaymentGatewayError("Unable to create payment order") from exc

    return {
        "orderId": order.get("id"),
        "amount": order.get("amount", payload["amount"]),
        "currency": order.get("currency", config.PAYMENT_CURRENCY),
        "keyId": config.RAZORPAY_KEY_ID,
    }
