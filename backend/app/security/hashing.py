# backend/app/security/hashing.py
"""
Password hashing and the credential verifier used by the verification gate.

bcrypt.checkpw compares in constant time; nothing here adds a
data-dependent shortcut around it.
"""
import logging
from functools import lru_cache
from typing import TYPE_CHECKING

import bcrypt

from backend.app.core.config import settings

if TYPE_CHECKING:
    from backend.app.core.two_factor import TwoFactorAccount

logger = logging.getLogger(__name__)


def get_password_hash(password: str) -> str:
    salt = bcrypt.gensalt(rounds=settings.BCRYPT_ROUNDS)
    return bcrypt.hashpw(password.encode("utf-8"), salt).decode("utf-8")


def verify_password(plain_password: str, hashed_password: str) -> bool:
    if not plain_password or not hashed_password:
        return False
    try:
        return bcrypt.checkpw(
            plain_password.encode("utf-8"),
            hashed_password.encode("utf-8"),
        )
    except ValueError:
        # Malformed stored hash, or a password bcrypt refuses (> 72 bytes)
        logger.warning("Password check failed on unusable input")
        return False


def verify_account_password(account: "TwoFactorAccount", password: str) -> bool:
    """Default credential verifier: check a password against the account's hash."""
    return verify_password(password, account.password_hash)


@lru_cache()
def _placeholder_hash() -> str:
    return get_password_hash("placeholder-for-unknown-accounts")


def verify_unknown_account_password(password: str) -> bool:
    """
    Spend one bcrypt check on a username that does not exist.

    A failed login then costs the same whether or not the account exists.
    Always returns False.
    """
    verify_password(password, _placeholder_hash())
    return False
