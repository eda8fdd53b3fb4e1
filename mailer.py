"""Outgoing email for OTP codes and order confirmations."""

from __future__ import annotations

import logging
import smtplib
from datetime import datetime
from email.message import EmailMessage
from typing import Mapping, Sequence

import config

logger = logging.getLogger(__name__)


def smtp_configured() -> bool:
    return bool(config.SMTP_HOST and config.SMTP_USER and config.SMTP_PASSWORD)


def _send(recipient: str, subject: str, body: str) -> bool:
    message = EmailMessage()
    message["From"] = f"FarmTech <{config.MAIL_SENDER}>"
    message["To"] = recipient
    message["Subject"] = subject
    message.set_content(body)

    try:
        with smtplib.SMTP(config.SMTP_HOST, config.SMTP_PORT, timeout=10) as server:
            server.ehlo()
            server.starttls()
            server.ehlo()
            server.login(config.SMTP_USER, config.SMTP_PASSWORD)
            server.send_message(message)
    except (smtplib.SMTPException, OSError):
        logger.exception("Failed to send '%s' to %s", subject, recipient)
        return False
    return True


def send_otp_email(email: str, otp: str) -> bool:
    """Email a login code; without SMTP settings the code is logged instead."""

    if not smtp_configured():
        logger.info("SMTP not configured, OTP for %s: %s", email, otp)
        return True

    body = (
        "Welcome! Here's your login OTP.\n\n"
        f"    {otp}\n\n"
        f"This OTP is valid for {config.OTP_EXPIRY_MINUTES} minutes.\n"
        "If you didn't request this OTP, please ignore this email.\n\n"
        f"(c) {datetime.now().year} FarmTech. All rights reserved."
    )
    return _send(email, "Your Login OTP - FarmTech", body)


def send_order_confirmation_email(
    email: str,
    reference: str,
    items: Sequence[Mapping[str, object]],
    total: float,
) -> bool:
    """Email an order summary; without SMTP settings the summary is logged."""

    if not smtp_configured():
        logger.info("SMTP not configured, order confirmation %s for %s (total %.2f)", reference, email, total)
        return True

    lines = [
        f"- {item['name']} x {item['quantity']} - Rs.{float(item['price']) * int(item['quantity']):.2f}"
        for item in items
    ]
    body = (
        "Thank you for your order!\n\n"
        f"Order {reference}\n\n"
        "Items:\n" + "\n".join(lines) + "\n\n"
        f"Total: Rs.{total:.2f}\n\n"
        "We'll send you another email when your order ships."
    )
    return _send(email, f"Order Confirmation - {reference}", body)
