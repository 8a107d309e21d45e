# backend/app/api/v1/endpoints/two_factor.py
"""
API endpoints for two-factor authentication of the current user.

Endpoints:
- GET    /2fa            - Current state (read-only, never rotates secrets)
- POST   /2fa/enrollment - Provision a new pending secret (rotates any previous one)
- POST   /2fa            - Confirm pairing with password + code, activates 2FA
- DELETE /2fa            - Disable 2FA with the password

Wrong password / wrong code → 422 with the offending field in `loc`.
Wrong lifecycle state → 409 (see exception handlers in main.py).
"""
from fastapi import APIRouter, Depends, HTTPException, status

from backend.app.api import deps
from backend.app.core.two_factor import TransitionResult, TwoFactorState
from backend.app.models.user import User
from backend.app.schemas.two_factor import (
    EnrollmentResponse,
    TwoFactorChangeResponse,
    TwoFactorConfirmRequest,
    TwoFactorDisableRequest,
    TwoFactorStatusResponse,
)
from backend.app.security.gate import FailureKind
from backend.app.security.provisioning import qr_code_base64
from backend.app.services.two_factor import TwoFactorService

router = APIRouter()

_FIELD_ERRORS = {
    FailureKind.PASSWORD_INVALID: ("password", "Password is invalid"),
    FailureKind.CODE_INVALID: ("code", "Code is invalid"),
}


def raise_for_failure(result: TransitionResult) -> None:
    """Turn a rejected transition into a FastAPI-style field error."""
    if result.ok:
        return
    field, message = _FIELD_ERRORS[result.failure]
    raise HTTPException(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        detail=[{"loc": ["body", field], "msg": message, "type": result.failure.value}],
    )


@router.get("", response_model=TwoFactorStatusResponse)
async def read_two_factor_status(
    current_user: User = Depends(deps.get_current_user),
    service: TwoFactorService = Depends(deps.get_two_factor_service),
):
    status_ = await service.status(current_user.id)
    qr_code = qr_code_base64(status_.provisioning_uri) if status_.provisioning_uri else None
    return TwoFactorStatusResponse(
        state=status_.state,
        enabled=status_.state is TwoFactorState.ACTIVE,
        provisioning_uri=status_.provisioning_uri,
        qr_code=qr_code,
    )


@router.post("/enrollment", response_model=EnrollmentResponse)
async def begin_two_factor_enrollment(
    current_user: User = Depends(deps.get_current_user),
    service: TwoFactorService = Depends(deps.get_two_factor_service),
):
    """
    Generate a new pending secret for the authenticator app.

    Calling again replaces the pending secret; only the latest one can be
    confirmed.
    """
    enrollment = await service.begin_enrollment(current_user.id)
    return EnrollmentResponse(
        state=TwoFactorState.PENDING_CONFIRMATION,
        secret=enrollment.secret,
        provisioning_uri=enrollment.provisioning_uri,
        qr_code=qr_code_base64(enrollment.provisioning_uri),
    )


@router.post("", response_model=TwoFactorChangeResponse)
async def confirm_two_factor(
    request: TwoFactorConfirmRequest,
    current_user: User = Depends(deps.get_current_user),
    service: TwoFactorService = Depends(deps.get_two_factor_service),
):
    result = await service.confirm_enrollment(current_user.id, request.password, request.code)
    raise_for_failure(result)
    return TwoFactorChangeResponse(
        success=True,
        state=result.account.state,
        message="Two-factor authentication has been enabled."
    )


@router.delete("", response_model=TwoFactorChangeResponse)
async def disable_two_factor(
    request: TwoFactorDisableRequest,
    current_user: User = Depends(deps.get_current_user),
    service: TwoFactorService = Depends(deps.get_two_factor_service),
):
    result = await service.disable(current_user.id, request.password)
    raise_for_failure(result)
    return TwoFactorChangeResponse(
        success=True,
        state=result.account.state,
        message="Two-factor authentication has been disabled."
    )
