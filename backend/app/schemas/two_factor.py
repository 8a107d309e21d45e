# backend/app/schemas/two_factor.py
"""
Pydantic schemas for the /2fa resource.

Codes are accepted as strings (leading zeros matter); format checks
happen in the TOTP engine so a malformed code is just "invalid".
"""
from typing import Optional

from pydantic import BaseModel, Field

from backend.app.core.two_factor import TwoFactorState


class TwoFactorStatusResponse(BaseModel):
    """Current state; pairing data only while confirmation is pending."""
    state: TwoFactorState
    enabled: bool
    provisioning_uri: Optional[str] = None
    qr_code: Optional[str] = Field(
        default=None,
        description="Base64-encoded PNG of the provisioning URI"
    )


class EnrollmentResponse(BaseModel):
    """Freshly provisioned pending secret, to be scanned or typed in."""
    state: TwoFactorState
    secret: str
    provisioning_uri: str
    qr_code: str


class TwoFactorConfirmRequest(BaseModel):
    password: str = Field(..., max_length=128)
    code: str = Field(..., max_length=16)


class TwoFactorDisableRequest(BaseModel):
    password: str = Field(..., max_length=128)


class TwoFactorChangeResponse(BaseModel):
    success: bool
    state: TwoFactorState
    message: str
