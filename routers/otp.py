from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Request
from pydantic import AliasChoices, BaseModel, Field

from utils.otp_service import OTPService


router = APIRouter(tags=["otp"])


def get_otp_service(request: Request) -> OTPService:
    return request.app.state.otp_service


class SendOtpIn(BaseModel):
    email: Optional[str] = None
    user_name: Optional[str] = Field(default=None, validation_alias=AliasChoices("userName", "user_name"))


class VerifyOtpIn(BaseModel):
    email: Optional[str] = None
    otp: Optional[str] = Field(default=None, validation_alias=AliasChoices("otp", "code"))


@router.post("/send-otp")
def send_otp(payload: SendOtpIn, service: OTPService = Depends(get_otp_service)):
    email = service.issue(payload.email, payload.user_name)
    return {"success": True, "message": "OTP sent to your email", "email": email}


@router.post("/verify-otp")
def verify_otp(payload: VerifyOtpIn, service: OTPService = Depends(get_otp_service)):
    service.verify(payload.email, payload.otp)
    return {"success": True, "message": "OTP verified successfully"}
