# backend/app/security/gate.py
"""
Password + code double check guarding every two-factor state change.

Order matters: the password is checked first and, if it is wrong, the
code is never evaluated. Someone without the password learns nothing
about whether a code would have been accepted.

Failures are reported by field (password or code) so a form can
highlight the right input. A code failure never says why the code
was rejected.
"""
import time
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Callable, Optional

from backend.app.security.hashing import verify_account_password
from backend.app.security.totp import DEFAULT_POLICY, TotpPolicy, verify_code

if TYPE_CHECKING:
    from backend.app.core.two_factor import TwoFactorAccount

CredentialVerifier = Callable[["TwoFactorAccount", str], bool]
Clock = Callable[[], float]


class FailureKind(str, Enum):
    PASSWORD_INVALID = "password_invalid"
    CODE_INVALID = "code_invalid"


@dataclass(frozen=True)
class GateResult:
    step: Optional[int] = None
    failure: Optional[FailureKind] = None

    @property
    def ok(self) -> bool:
        return self.failure is None


PASSWORD_INVALID = GateResult(failure=FailureKind.PASSWORD_INVALID)
CODE_INVALID = GateResult(failure=FailureKind.CODE_INVALID)


class VerificationGate:
    def __init__(
        self,
        credential_verifier: CredentialVerifier = verify_account_password,
        policy: TotpPolicy = DEFAULT_POLICY,
        clock: Clock = time.time,
    ):
        self.credential_verifier = credential_verifier
        self.policy = policy
        self.clock = clock

    def verify_password_only(self, account: "TwoFactorAccount", password: str) -> GateResult:
        if not self.credential_verifier(account, password):
            return PASSWORD_INVALID
        return GateResult()

    def verify_code_only(self, account: "TwoFactorAccount", code: str, secret: str) -> GateResult:
        """Check a code against `secret`, honouring the account's replay guard."""
        step = verify_code(
            secret,
            code,
            self.clock(),
            last_consumed_step=account.last_consumed_step,
            policy=self.policy,
        )
        if step is None:
            return CODE_INVALID
        return GateResult(step=step)

    def verify_password_and_code(
        self,
        account: "TwoFactorAccount",
        password: str,
        code: str,
        secret: str,
    ) -> GateResult:
        password_result = self.verify_password_only(account, password)
        if not password_result.ok:
            return password_result
        return self.verify_code_only(account, code, secret)
