# backend/app/security/totp.py
"""
TOTP (Time-based One-Time Password) implementation
RFC 6238 compliant - Compatible with Google Authenticator, Authy, Aegis

Key points:
- 6-digit codes
- 30-second time step
- HMAC-SHA1 (standard)
- Base32 secret encoding

Verification works on explicit time steps rather than pyotp's boolean
verify() so the matched step can be returned and persisted as the
replay guard (last consumed step).
"""
import math
from dataclasses import dataclass
from typing import Optional

import pyotp
from pyotp.utils import strings_equal

from backend.app.core.exceptions import SecureRandomUnavailable

# 32 base32 characters = 160 bits, the RFC 4226 recommended minimum
SECRET_LENGTH = 32


@dataclass(frozen=True)
class TotpPolicy:
    """Code parameters shared by compute, verify and the provisioning URI."""

    digits: int = 6
    interval: int = 30
    # Steps accepted on each side of the current one (1 = ±30s)
    valid_window: int = 1


DEFAULT_POLICY = TotpPolicy()


def generate_secret(length: int = SECRET_LENGTH) -> str:
    """
    Generate a new random TOTP secret (Base32 encoded).

    Drawn from the OS CSPRNG. If the OS cannot provide secure randomness
    the error is raised as SecureRandomUnavailable; there is no fallback.
    """
    if length < SECRET_LENGTH:
        raise ValueError(f"TOTP secrets must be at least {SECRET_LENGTH} characters")

    try:
        return pyotp.random_base32(length=length)
    except (NotImplementedError, OSError) as exc:
        raise SecureRandomUnavailable("No secure random source available") from exc


def current_step(for_time: float, interval: int = DEFAULT_POLICY.interval) -> int:
    """Time step index containing the given unix time."""
    return math.floor(for_time / interval)


def _totp(secret: str, policy: TotpPolicy) -> pyotp.TOTP:
    return pyotp.TOTP(secret, digits=policy.digits, interval=policy.interval)


def compute_code(secret: str, for_time: float, policy: TotpPolicy = DEFAULT_POLICY) -> str:
    """Code for the time step containing `for_time`, zero-padded."""
    return _totp(secret, policy).generate_otp(current_step(for_time, policy.interval))


def _normalize_code(code: Optional[str], digits: int) -> Optional[str]:
    if not code:
        return None
    code = code.strip().replace(" ", "")
    if len(code) != digits or not code.isdigit():
        return None
    return code


def verify_code(
    secret: str,
    code: Optional[str],
    for_time: float,
    last_consumed_step: Optional[int] = None,
    policy: TotpPolicy = DEFAULT_POLICY,
) -> Optional[int]:
    """
    Verify a submitted code and return the time step it was issued for.

    Steps from (current - valid_window) to (current + valid_window) are
    checked in chronological order and the first match wins. The match is
    only accepted if it is later than `last_consumed_step`, so a code can
    be used at most once.

    Returns:
        The matched step, or None if the code is rejected. The reason for
        a rejection (malformed, wrong, expired, replayed) is not reported.
    """
    if not secret:
        return None

    code = _normalize_code(code, policy.digits)
    if code is None:
        return None

    totp = _totp(secret, policy)
    now_step = current_step(for_time, policy.interval)

    matched = None
    for step in range(now_step - policy.valid_window, now_step + policy.valid_window + 1):
        if step < 0:
            continue
        if strings_equal(code, totp.generate_otp(step)):
            matched = step
            break

    if matched is None:
        return None

    if last_consumed_step is not None and matched <= last_consumed_step:
        return None

    return matched
