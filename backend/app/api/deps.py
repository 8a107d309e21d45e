# backend/app/api/deps.py
import time
from functools import lru_cache

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from jose import jwt, JWTError
from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select

from backend.app.core.config import settings
from backend.app.core.two_factor import TwoFactorStateMachine
from backend.app.crud.account_store import SqlAlchemyAccountStore
from backend.app.db.session import get_db
from backend.app.models.user import User
from backend.app.schemas.user import TokenPayload
from backend.app.security.crypto import SecretCipher
from backend.app.security.gate import Clock, VerificationGate
from backend.app.security.hashing import verify_account_password
from backend.app.services.two_factor import TwoFactorService

reusable_oauth2 = OAuth2PasswordBearer(
    tokenUrl=f"{settings.API_V1_STR}/auth/login"
)


async def get_current_user(
        db: AsyncSession = Depends(get_db),
        token: str = Depends(reusable_oauth2)
) -> User:
    try:
        payload = jwt.decode(
            token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM]
        )
        token_data = TokenPayload(**payload)
    except (JWTError, ValidationError):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Could not validate credentials",
        )

    result = await db.execute(select(User).where(User.username == token_data.sub))
    user = result.scalars().first()

    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    if not user.is_active:
        raise HTTPException(status_code=403, detail="Inactive user")

    return user


def get_clock() -> Clock:
    return time.time


@lru_cache()
def get_secret_cipher() -> SecretCipher:
    # Key material enters here, once, from settings
    return SecretCipher.from_base64(settings.OTP_SECRET_ENCRYPTION_KEY)


def get_account_store(
        db: AsyncSession = Depends(get_db),
        cipher: SecretCipher = Depends(get_secret_cipher),
) -> SqlAlchemyAccountStore:
    return SqlAlchemyAccountStore(db, cipher)


def get_verification_gate(clock: Clock = Depends(get_clock)) -> VerificationGate:
    return VerificationGate(
        credential_verifier=verify_account_password,
        policy=settings.totp_policy,
        clock=clock,
    )


def get_two_factor_service(
        store: SqlAlchemyAccountStore = Depends(get_account_store),
        gate: VerificationGate = Depends(get_verification_gate),
) -> TwoFactorService:
    machine = TwoFactorStateMachine(
        gate,
        issuer=settings.TOTP_ISSUER,
        secret_length=settings.TOTP_SECRET_LENGTH,
    )
    return TwoFactorService(store, machine)
