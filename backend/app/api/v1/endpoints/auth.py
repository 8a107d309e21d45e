# backend/app/api/v1/endpoints/auth.py
from datetime import timedelta
from typing import Optional

from fastapi import APIRouter, Depends, Form, HTTPException, status
from fastapi.security import OAuth2PasswordRequestForm

from backend.app.api import deps
from backend.app.core.config import settings
from backend.app.crud.account_store import SqlAlchemyAccountStore
from backend.app.schemas.user import Token
from backend.app.security import hashing, jwt
from backend.app.security.gate import VerificationGate
from backend.app.services.two_factor import TwoFactorService

router = APIRouter()


@router.post("/login", response_model=Token)
async def login(
    form_data: OAuth2PasswordRequestForm = Depends(),
    otp_code: Optional[str] = Form(None),
    store: SqlAlchemyAccountStore = Depends(deps.get_account_store),
    gate: VerificationGate = Depends(deps.get_verification_gate),
    service: TwoFactorService = Depends(deps.get_two_factor_service),
):
    # 1. Password (unknown usernames still pay for a bcrypt check)
    account = await store.load_by_username(form_data.username)
    if account is None:
        password_ok = hashing.verify_unknown_account_password(form_data.password)
    else:
        password_ok = gate.verify_password_only(account, form_data.password).ok
    if not password_ok:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Incorrect username or password",
            headers={"WWW-Authenticate": "Bearer"},
        )

    # 2. Second factor, only when the account enforces it
    if account.enforced:
        if not otp_code:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Two-factor code required",
                headers={"WWW-Authenticate": "Bearer", "X-2FA-Required": "true"},
            )
        result = await service.verify_login(account.account_id, otp_code)
        if not result.ok:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Invalid two-factor code",
                headers={"WWW-Authenticate": "Bearer", "X-2FA-Required": "true"},
            )

    # 3. Token
    access_token_expires = timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    access_token = jwt.create_access_token(
        data={"sub": account.label},
        expires_delta=access_token_expires
    )

    return {"access_token": access_token, "token_type": "bearer"}
