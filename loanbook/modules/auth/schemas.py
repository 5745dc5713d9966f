from pydantic import BaseModel, Field
from datetime import datetime
from typing import Optional

from loanbook.modules.auth.models import OtpMethod


class ClientInfo(BaseModel):
    """Client fingerprint captured when a session is created"""
    user_agent: Optional[str] = None
    ip_address: Optional[str] = None
    device_info: Optional[str] = None


class OtpRequest(BaseModel):
    method: OtpMethod
    identifier: str = Field(..., min_length=3, max_length=255)


class OtpRequestResponse(BaseModel):
    otp_id: int
    method: OtpMethod
    expires_at: datetime
    status: str = "otp-sent"


class OtpVerifyRequest(BaseModel):
    code: str = Field(..., min_length=4, max_length=32)


class SessionResponse(BaseModel):
    id: int
    user_id: int
    expires_at: datetime
    user_agent: Optional[str] = None
    ip_address: Optional[str] = None
    force_deactivation: bool
    last_active: datetime
    created_at: datetime

    class Config:
        from_attributes = True


class SessionTokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    expires_at: datetime
    session: SessionResponse


class RevokeAllResponse(BaseModel):
    revoked: int
