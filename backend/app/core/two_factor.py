# backend/app/core/two_factor.py
"""
Two-factor enrollment lifecycle.

    DISABLED ──begin_enrollment──▶ PENDING_CONFIRMATION ──confirm_enrollment──▶ ACTIVE
                                   ▲          │                                   │
                                   └─rotate───┘                                   │
    DISABLED ◀─────────────────────────────disable────────────────────────────────┘

Everything here is pure: operations take a TwoFactorAccount and return a
new one. Loading and saving is the account store's job
(backend/app/crud/account_store.py), orchestration is the service's
(backend/app/services/two_factor.py).

Wrong passwords and wrong codes come back as TransitionResult.failure.
Calling an operation in the wrong state raises InvalidStateError.
"""
import dataclasses
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Optional, Tuple

from backend.app.core.exceptions import InvalidStateError
from backend.app.security.gate import FailureKind, VerificationGate
from backend.app.security.provisioning import build_uri
from backend.app.security.totp import SECRET_LENGTH, generate_secret

logger = logging.getLogger(__name__)


class TwoFactorState(str, Enum):
    DISABLED = "disabled"
    PENDING_CONFIRMATION = "pending_confirmation"
    ACTIVE = "active"


@dataclass(frozen=True)
class TwoFactorAccount:
    """
    Two-factor attributes of one account, as loaded from the account store.

    `version` is the store's concurrency token; the state machine carries
    it through unchanged and the store compares it on save.
    """

    account_id: int
    label: str
    password_hash: str = field(repr=False)
    confirmed_secret: Optional[str] = field(default=None, repr=False)
    pending_secret: Optional[str] = field(default=None, repr=False)
    enforced: bool = False
    last_consumed_step: Optional[int] = None
    version: int = 0

    def __post_init__(self):
        if self.enforced and (not self.confirmed_secret or self.pending_secret):
            raise ValueError(
                "Enforced two-factor requires a confirmed secret and no pending secret"
            )

    @property
    def state(self) -> TwoFactorState:
        if self.enforced:
            return TwoFactorState.ACTIVE
        if self.pending_secret:
            return TwoFactorState.PENDING_CONFIRMATION
        return TwoFactorState.DISABLED


@dataclass(frozen=True)
class Enrollment:
    secret: str = field(repr=False)
    provisioning_uri: str = field(repr=False)


@dataclass(frozen=True)
class TwoFactorStatus:
    state: TwoFactorState
    provisioning_uri: Optional[str] = field(default=None, repr=False)


@dataclass(frozen=True)
class TransitionResult:
    account: TwoFactorAccount
    failure: Optional[FailureKind] = None

    @property
    def ok(self) -> bool:
        return self.failure is None


class TwoFactorStateMachine:
    def __init__(
        self,
        gate: VerificationGate,
        issuer: str,
        secret_length: int = SECRET_LENGTH,
        secret_factory: Callable[[int], str] = generate_secret,
    ):
        self.gate = gate
        self.issuer = issuer
        self.secret_length = secret_length
        self.secret_factory = secret_factory

    def _uri(self, account: TwoFactorAccount, secret: str) -> str:
        return build_uri(account.label, self.issuer, secret, self.gate.policy)

    def status(self, account: TwoFactorAccount) -> TwoFactorStatus:
        state = account.state
        if state is TwoFactorState.PENDING_CONFIRMATION:
            return TwoFactorStatus(state, self._uri(account, account.pending_secret))
        return TwoFactorStatus(state)

    def begin_enrollment(self, account: TwoFactorAccount) -> Tuple[TwoFactorAccount, Enrollment]:
        """
        Provision a new pending secret, replacing any earlier one.

        Only the most recent pending secret can be confirmed.
        """
        if account.enforced:
            raise InvalidStateError("begin enrollment", account.state.value)

        secret = self.secret_factory(self.secret_length)
        updated = dataclasses.replace(account, pending_secret=secret)
        logger.info("Two-factor enrollment started for account %s", account.account_id)
        return updated, Enrollment(secret=secret, provisioning_uri=self._uri(account, secret))

    def confirm_enrollment(
        self,
        account: TwoFactorAccount,
        password: str,
        code: str,
    ) -> TransitionResult:
        """
        Promote the pending secret once the password and a code from the
        authenticator app check out.
        """
        if account.enforced or not account.pending_secret:
            raise InvalidStateError("confirm enrollment", account.state.value)

        result = self.gate.verify_password_and_code(
            account, password, code, account.pending_secret
        )
        if not result.ok:
            logger.warning(
                "Two-factor confirmation rejected for account %s (%s)",
                account.account_id, result.failure.value,
            )
            return TransitionResult(account, result.failure)

        updated = dataclasses.replace(
            account,
            confirmed_secret=account.pending_secret,
            pending_secret=None,
            enforced=True,
            last_consumed_step=result.step,
        )
        logger.info("Two-factor activated for account %s", account.account_id)
        return TransitionResult(updated)

    def disable(self, account: TwoFactorAccount, password: str) -> TransitionResult:
        if not account.enforced:
            raise InvalidStateError("disable", account.state.value)

        result = self.gate.verify_password_only(account, password)
        if not result.ok:
            logger.warning("Two-factor disable rejected for account %s", account.account_id)
            return TransitionResult(account, result.failure)

        updated = dataclasses.replace(
            account,
            confirmed_secret=None,
            pending_secret=None,
            enforced=False,
            last_consumed_step=None,
        )
        logger.info("Two-factor disabled for account %s", account.account_id)
        return TransitionResult(updated)

    def verify_login(self, account: TwoFactorAccount, code: str) -> TransitionResult:
        """
        Consume a code against the confirmed secret at sign-in.

        The password has already been checked by the login flow; this only
        handles the second factor and advances the replay guard.
        """
        if not account.enforced:
            raise InvalidStateError("verify a login code", account.state.value)

        result = self.gate.verify_code_only(account, code, account.confirmed_secret)
        if not result.ok:
            logger.warning("Two-factor login code rejected for account %s", account.account_id)
            return TransitionResult(account, result.failure)

        return TransitionResult(dataclasses.replace(account, last_consumed_step=result.step))
