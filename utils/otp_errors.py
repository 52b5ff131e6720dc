from __future__ import annotations

from typing import Any, Dict, Optional


class OTPError(Exception):
    """Base class for OTP failures that are reported back to the caller."""

    status_code = 400
    default_message = "OTP request failed"

    def __init__(self, message: Optional[str] = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)

    def to_payload(self) -> Dict[str, Any]:
        return {"success": False, "error": self.message}


class InvalidInput(OTPError):
    default_message = "Invalid request"


class RateLimited(OTPError):
    status_code = 429
    default_message = "Please wait before requesting a new OTP"


class DeliveryFailed(OTPError):
    status_code = 500
    default_message = "Failed to send OTP email"


class NotFound(OTPError):
    default_message = "No OTP found for this email. Please request a new OTP."


class Expired(OTPError):
    default_message = "OTP has expired. Please request a new one."


class AttemptsExhausted(OTPError):
    status_code = 429
    default_message = "Too many failed attempts. Please request a new OTP."


class InvalidCode(OTPError):
    """Wrong code; the client may retry while attempts remain."""

    def __init__(self, remaining_attempts: int) -> None:
        self.remaining_attempts = remaining_attempts
        super().__init__(f"Invalid OTP. {remaining_attempts} attempts remaining.")

    def to_payload(self) -> Dict[str, Any]:
        payload = super().to_payload()
        payload["remainingAttempts"] = self.remaining_attempts
        return payload


class EmailDeliveryError(RuntimeError):
    """Raised by an email sender when a message could not be delivered."""
