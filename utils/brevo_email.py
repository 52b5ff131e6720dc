from __future__ import annotations

import html
import logging
import os
from datetime import datetime
from typing import Optional

import requests

from utils.otp_errors import EmailDeliveryError


logger = logging.getLogger(__name__)

BREVO_URL = "https://api.brevo.com/v3/smtp/email"
OTP_SUBJECT = os.getenv("OTP_SUBJECT", "Your Admin Portal OTP Code")
PORTAL_NAME = os.getenv("PORTAL_NAME", "Admin Portal")


def _timeout() -> float:
    return float(os.getenv("EMAIL_TIMEOUT_SECONDS", "15"))


def send_email(*, to_email: str, subject: str, html: str, text: Optional[str] = None) -> None:
    """
    Sends email using Brevo Transactional Email API.
    Requires:
      - BREVO_API_KEY
      - BREVO_FROM (email) OR EMAIL_FROM/SMTP_FROM
    Raises EmailDeliveryError on any failure, including timeouts.
    """
    api_key = os.getenv("BREVO_API_KEY")
    if not api_key:
        raise EmailDeliveryError("BREVO_API_KEY is not set")

    from_email = (
        os.getenv("BREVO_FROM")
        or os.getenv("EMAIL_FROM")
        or os.getenv("SMTP_FROM")
    )
    if not from_email:
        raise EmailDeliveryError("BREVO_FROM (or EMAIL_FROM/SMTP_FROM) is not set")

    payload = {
        "sender": {"email": from_email, "name": os.getenv("BREVO_FROM_NAME", PORTAL_NAME)},
        "to": [{"email": to_email}],
        "subject": subject,
        "htmlContent": html,
    }
    if text:
        payload["textContent"] = text

    try:
        resp = requests.post(
            BREVO_URL,
            headers={
                "accept": "application/json",
                "api-key": api_key,
                "content-type": "application/json",
            },
            json=payload,
            timeout=_timeout(),
        )
    except requests.RequestException as e:
        raise EmailDeliveryError(f"Brevo request failed: {e}") from e
    if resp.status_code >= 300:
        raise EmailDeliveryError(f"Brevo send failed ({resp.status_code}): {resp.text}")


def render_otp_email(
    *,
    code: str,
    destination: str,
    display_name: Optional[str] = None,
    year: Optional[int] = None,
    valid_minutes: int = 5,
) -> tuple[str, str]:
    """Returns (html, text) bodies for an OTP message."""
    year = year or datetime.now().year
    name = display_name or "Admin"
    portal = html.escape(PORTAL_NAME)
    body = f"""
    <div style="font-family:Arial,sans-serif;max-width:600px;margin:0 auto">
      <h2>{portal}</h2>
      <p>Two-Factor Authentication</p>
      <p>Hello {html.escape(name)},</p>
      <p>Your One-Time Password (OTP) for accessing the {portal} is:</p>
      <div style="font-size:40px;font-weight:700;letter-spacing:10px;font-family:monospace">{html.escape(code)}</div>
      <p><strong>Valid for:</strong> {valid_minutes} minutes</p>
      <p><strong>Requested for:</strong> {html.escape(destination)}</p>
      <p><strong>Security Notice:</strong></p>
      <ul>
        <li>Never share this code with anyone</li>
        <li>Our team will never ask for your OTP</li>
        <li>This is a one-time use code</li>
        <li>If you didn't request this code, please contact support immediately</li>
      </ul>
      <p style="color:#666;font-size:12px">&copy; {year} {portal}. This is an automated message. Please do not reply to this email.</p>
    </div>
    """
    text = (
        f"Hello {name},\n"
        f"Your OTP is {code}\n"
        f"Valid for {valid_minutes} minutes. Requested for {destination}.\n"
        f"(c) {year} {PORTAL_NAME}"
    )
    return body, text


class BrevoEmailSender:
    def send_otp(self, destination: str, code: str, display_name: Optional[str] = None) -> None:
        body, text = render_otp_email(code=code, destination=destination, display_name=display_name)
        send_email(to_email=destination, subject=f"{OTP_SUBJECT} - {code}", html=body, text=text)
        logger.info("OTP email sent to %s", destination)


class ConsoleEmailSender:
    """Development sender: logs the message instead of sending it."""

    def send_otp(self, destination: str, code: str, display_name: Optional[str] = None) -> None:
        _, text = render_otp_email(code=code, destination=destination, display_name=display_name)
        logger.warning("Email backend is 'console'; OTP message for %s:\n%s", destination, text)


def build_email_sender():
    backend = (os.getenv("EMAIL_BACKEND") or "brevo").strip().lower()
    if backend == "brevo":
        return BrevoEmailSender()
    if backend == "console":
        return ConsoleEmailSender()
    raise ValueError(f"Unknown EMAIL_BACKEND: {backend}")
