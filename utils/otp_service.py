from __future__ import annotations

import hmac
import logging
import secrets
from typing import Optional, Protocol

from utils.otp_errors import (
    AttemptsExhausted,
    DeliveryFailed,
    EmailDeliveryError,
    Expired,
    InvalidCode,
    InvalidInput,
    NotFound,
    RateLimited,
)
from utils.otp_store import OTP_EXPIRY_SECONDS, OTPStore


logger = logging.getLogger(__name__)

OTP_COOLDOWN_SECONDS = 60
OTP_MAX_ATTEMPTS = 5
OTP_LENGTH = 6


class EmailSender(Protocol):
    """Delivers a code or raises; EmailDeliveryError is the expected failure."""

    def send_otp(self, destination: str, code: str, display_name: Optional[str] = None) -> None:
        ...


def _gen_otp() -> str:
    low = 10 ** (OTP_LENGTH - 1)
    high = 10 ** OTP_LENGTH - 1
    return f"{secrets.randbelow(high - low + 1) + low:0{OTP_LENGTH}d}"


def _norm_email(email) -> str:
    if not isinstance(email, str):
        return ""
    return email.strip().lower()


def codes_equal(a: str, b: str) -> bool:
    # Constant-time compare
    return hmac.compare_digest(a.encode("utf-8"), b.encode("utf-8"))


class OTPService:
    def __init__(self, store: OTPStore, sender: EmailSender) -> None:
        self.store = store
        self.sender = sender

    def issue(self, email: str, user_name: Optional[str] = None) -> str:
        """
        Issues an OTP for 'email' and delivers it through the sender.
        Returns the normalized email; the code only travels by email.
        """
        key = _norm_email(email)
        if not key:
            raise InvalidInput("Invalid email")

        with self.store.transaction() as store:
            existing = store.get(key)
            if existing and existing.age(store.now()) < OTP_COOLDOWN_SECONDS:
                logger.info("OTP request for %s rate limited", key)
                raise RateLimited()
            code = _gen_otp()
            store.put(key, code)
        logger.info("OTP issued for %s", key)

        try:
            self.sender.send_otp(key, code, user_name)
        except EmailDeliveryError as e:
            # Record stays; a resend goes through the cooldown check again.
            logger.error("OTP delivery to %s failed: %s", key, e)
            raise DeliveryFailed() from e
        except Exception as e:
            logger.exception("OTP sender raised unexpectedly for %s", key)
            raise DeliveryFailed() from e
        return key

    def verify(self, email: str, code: str) -> None:
        key = _norm_email(email)
        submitted = code.strip() if isinstance(code, str) else ""
        if not key or not submitted:
            raise InvalidInput("Email and OTP are required")

        with self.store.transaction() as store:
            rec = store.get(key)
            if not rec:
                raise NotFound()

            if rec.age(store.now()) >= OTP_EXPIRY_SECONDS:
                store.delete(key)
                logger.info("OTP for %s expired", key)
                raise Expired()

            if rec.attempts >= OTP_MAX_ATTEMPTS:
                store.delete(key)
                logger.warning("OTP for %s locked after %d failed attempts", key, rec.attempts)
                raise AttemptsExhausted()

            if codes_equal(rec.code, submitted):
                store.delete(key)
                logger.info("OTP verified for %s", key)
                return

            attempts = store.increment_attempts(key)
            remaining = max(0, OTP_MAX_ATTEMPTS - attempts)
        logger.info("Invalid OTP for %s, %d attempts remaining", key, remaining)
        raise InvalidCode(remaining)
