# backend/app/crud/account_store.py
"""
Account store: loads and saves the two-factor attributes of a user row.

Secrets are encrypted with the SecretCipher handed to the constructor,
bound to the account id so a ciphertext copied onto another row will not
decrypt.

Updates are compare-and-swap on users.otp_version. If another request
saved the row after it was loaded, save() raises UpdateConflict and
changes nothing; retrying is up to the caller.
"""
import dataclasses
import logging
from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.core.exceptions import AccountNotFound, StorageFailure, UpdateConflict
from backend.app.core.two_factor import TwoFactorAccount
from backend.app.models.user import User
from backend.app.security.crypto import SecretCipher

logger = logging.getLogger(__name__)


class SqlAlchemyAccountStore:
    def __init__(self, db: AsyncSession, cipher: SecretCipher):
        self.db = db
        self.cipher = cipher

    @staticmethod
    def _associated_data(account_id: int) -> bytes:
        return f"users:{account_id}".encode()

    def _decrypt(self, account_id: int, token: Optional[str]) -> Optional[str]:
        if token is None:
            return None
        try:
            return self.cipher.decrypt(token, self._associated_data(account_id))
        except ValueError as exc:
            raise StorageFailure(f"Stored OTP secret for account {account_id} is unreadable") from exc

    def _encrypt(self, account_id: int, secret: Optional[str]) -> Optional[str]:
        if secret is None:
            return None
        return self.cipher.encrypt(secret, self._associated_data(account_id))

    def _to_account(self, user: User) -> TwoFactorAccount:
        confirmed = self._decrypt(user.id, user.encrypted_otp_secret)
        pending = self._decrypt(user.id, user.encrypted_pending_otp_secret)
        try:
            return TwoFactorAccount(
                account_id=user.id,
                label=user.username,
                password_hash=user.hashed_password,
                confirmed_secret=confirmed,
                pending_secret=pending,
                enforced=bool(user.otp_required_for_login),
                last_consumed_step=user.consumed_timestep,
                version=user.otp_version or 0,
            )
        except ValueError as exc:
            raise StorageFailure(f"Two-factor columns of account {user.id} are inconsistent") from exc

    async def _fetch_one(self, *criteria) -> Optional[User]:
        # populate_existing: never serve a row cached before a CAS update
        query = select(User).where(*criteria).execution_options(populate_existing=True)
        try:
            result = await self.db.execute(query)
        except SQLAlchemyError as exc:
            raise StorageFailure("Account store unavailable") from exc
        return result.scalars().first()

    async def load(self, account_id: int) -> TwoFactorAccount:
        user = await self._fetch_one(User.id == account_id)
        if user is None:
            raise AccountNotFound(f"Account {account_id} not found")
        return self._to_account(user)

    async def load_by_username(self, username: str) -> Optional[TwoFactorAccount]:
        user = await self._fetch_one(User.username == username)
        if user is None:
            return None
        return self._to_account(user)

    async def save(self, account: TwoFactorAccount) -> TwoFactorAccount:
        """
        Persist `account` if the row still has `account.version`.

        Returns the account carrying its new version.
        """
        new_version = account.version + 1
        stmt = (
            update(User)
            .where(User.id == account.account_id, User.otp_version == account.version)
            .values(
                encrypted_otp_secret=self._encrypt(account.account_id, account.confirmed_secret),
                encrypted_pending_otp_secret=self._encrypt(account.account_id, account.pending_secret),
                otp_required_for_login=account.enforced,
                consumed_timestep=account.last_consumed_step,
                otp_version=new_version,
            )
            .execution_options(synchronize_session=False)
        )

        try:
            result = await self.db.execute(stmt)
            if result.rowcount != 1:
                await self.db.rollback()
                logger.warning(
                    "Two-factor update conflict for account %s at version %s",
                    account.account_id, account.version,
                )
                raise UpdateConflict(f"Account {account.account_id} was modified concurrently")
            await self.db.commit()
        except SQLAlchemyError as exc:
            await self.db.rollback()
            raise StorageFailure("Account store update failed") from exc

        return dataclasses.replace(account, version=new_version)
