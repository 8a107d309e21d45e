# backend/app/core/exceptions.py
"""
Exception taxonomy for the two-factor subsystem.

Only conditions the caller cannot fix by resubmitting a form are raised.
Wrong passwords and wrong codes are returned as results (see
backend/app/core/two_factor.py), never raised.
"""


class TwoFactorError(Exception):
    """Base class for every error raised by the two-factor core."""


class InvalidStateError(TwoFactorError):
    """
    Operation is not valid in the account's current lifecycle state.

    A usage error: callers are expected to check the status first.
    """

    def __init__(self, operation: str, state: str):
        self.operation = operation
        self.state = state
        super().__init__(f"Cannot {operation} while two-factor is {state}")


class StorageFailure(TwoFactorError):
    """The account store is unavailable or rejected the update."""


class UpdateConflict(StorageFailure):
    """The record changed since it was loaded (lost compare-and-swap)."""


class AccountNotFound(StorageFailure):
    """No account exists for the given identity."""


class SecureRandomUnavailable(TwoFactorError):
    """
    The OS cryptographically secure random source is unavailable.

    Fatal for enrollment; there is no fallback to a weaker generator.
    """
