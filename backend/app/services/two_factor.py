# backend/app/services/two_factor.py
"""
Request-scoped orchestration: load the account, run one state machine
operation, save the result.

Each call is one short transaction. A failed check (wrong password or
code) saves nothing; store errors propagate unchanged.
"""
from backend.app.core.two_factor import (
    Enrollment,
    TransitionResult,
    TwoFactorStateMachine,
    TwoFactorStatus,
)
from backend.app.crud.account_store import SqlAlchemyAccountStore


class TwoFactorService:
    def __init__(self, store: SqlAlchemyAccountStore, machine: TwoFactorStateMachine):
        self.store = store
        self.machine = machine

    async def status(self, account_id: int) -> TwoFactorStatus:
        account = await self.store.load(account_id)
        return self.machine.status(account)

    async def begin_enrollment(self, account_id: int) -> Enrollment:
        account = await self.store.load(account_id)
        updated, enrollment = self.machine.begin_enrollment(account)
        await self.store.save(updated)
        return enrollment

    async def _commit_if_ok(self, result: TransitionResult) -> TransitionResult:
        if not result.ok:
            return result
        saved = await self.store.save(result.account)
        return TransitionResult(saved)

    async def confirm_enrollment(self, account_id: int, password: str, code: str) -> TransitionResult:
        account = await self.store.load(account_id)
        return await self._commit_if_ok(self.machine.confirm_enrollment(account, password, code))

    async def disable(self, account_id: int, password: str) -> TransitionResult:
        account = await self.store.load(account_id)
        return await self._commit_if_ok(self.machine.disable(account, password))

    async def verify_login(self, account_id: int, code: str) -> TransitionResult:
        account = await self.store.load(account_id)
        return await self._commit_if_ok(self.machine.verify_login(account, code))
