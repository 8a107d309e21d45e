"""Tests for the SQLAlchemy account store."""
import dataclasses

import pytest
from sqlalchemy import select, update

from backend.app.core.exceptions import AccountNotFound, StorageFailure, UpdateConflict
from backend.app.crud.account_store import SqlAlchemyAccountStore
from backend.app.models.user import User
from backend.app.security.crypto import SecretCipher, generate_key

from conftest import USERNAME

SECRET = "JBSWY3DPEHPK3PXPJBSWY3DPEHPK3PXP"


async def test_load_fresh_account(session_factory, account_id, cipher):
    async with session_factory() as db:
        account = await SqlAlchemyAccountStore(db, cipher).load(account_id)

    assert account.account_id == account_id
    assert account.label == USERNAME
    assert account.enforced is False
    assert account.pending_secret is None
    assert account.confirmed_secret is None
    assert account.last_consumed_step is None
    assert account.version == 0


async def test_load_missing_account(session_factory, cipher):
    async with session_factory() as db:
        with pytest.raises(AccountNotFound):
            await SqlAlchemyAccountStore(db, cipher).load(999)


async def test_load_by_username(session_factory, account_id, cipher):
    async with session_factory() as db:
        store = SqlAlchemyAccountStore(db, cipher)
        assert (await store.load_by_username(USERNAME)).account_id == account_id
        assert await store.load_by_username("nobody") is None


async def test_save_round_trip_and_encrypts(session_factory, account_id, cipher):
    async with session_factory() as db:
        store = SqlAlchemyAccountStore(db, cipher)
        account = await store.load(account_id)
        saved = await store.save(dataclasses.replace(account, pending_secret=SECRET))
        assert saved.version == account.version + 1

    async with session_factory() as db:
        row = (await db.execute(select(User).where(User.id == account_id))).scalars().one()
        assert row.encrypted_pending_otp_secret is not None
        assert SECRET not in row.encrypted_pending_otp_secret
        assert row.otp_version == 1

        reloaded = await SqlAlchemyAccountStore(db, cipher).load(account_id)
        assert reloaded.pending_secret == SECRET
        assert reloaded.version == 1


async def test_save_active_account(session_factory, account_id, cipher):
    async with session_factory() as db:
        store = SqlAlchemyAccountStore(db, cipher)
        account = await store.load(account_id)
        await store.save(dataclasses.replace(
            account, confirmed_secret=SECRET, enforced=True, last_consumed_step=42,
        ))

    async with session_factory() as db:
        reloaded = await SqlAlchemyAccountStore(db, cipher).load(account_id)
    assert reloaded.enforced is True
    assert reloaded.confirmed_secret == SECRET
    assert reloaded.pending_secret is None
    assert reloaded.last_consumed_step == 42


async def test_stale_version_conflicts(session_factory, account_id, cipher):
    async with session_factory() as first_db, session_factory() as second_db:
        first = SqlAlchemyAccountStore(first_db, cipher)
        second = SqlAlchemyAccountStore(second_db, cipher)

        first_view = await first.load(account_id)
        second_view = await second.load(account_id)

        await first.save(dataclasses.replace(first_view, pending_secret=SECRET))
        with pytest.raises(UpdateConflict):
            await second.save(dataclasses.replace(second_view, pending_secret="A" * 32))

    async with session_factory() as db:
        reloaded = await SqlAlchemyAccountStore(db, cipher).load(account_id)
    assert reloaded.pending_secret == SECRET


async def test_reload_after_save_sees_new_version(session_factory, account_id, cipher):
    async with session_factory() as db:
        store = SqlAlchemyAccountStore(db, cipher)
        account = await store.load(account_id)
        await store.save(dataclasses.replace(account, pending_secret=SECRET))
        assert (await store.load(account_id)).version == 1


async def test_secret_under_other_key_is_storage_failure(session_factory, account_id, cipher):
    async with session_factory() as db:
        store = SqlAlchemyAccountStore(db, cipher)
        account = await store.load(account_id)
        await store.save(dataclasses.replace(account, pending_secret=SECRET))

    other = SecretCipher.from_base64(generate_key())
    async with session_factory() as db:
        with pytest.raises(StorageFailure):
            await SqlAlchemyAccountStore(db, other).load(account_id)


async def test_secret_copied_between_rows_is_rejected(session_factory, account_id, cipher, password_hash):
    async with session_factory() as db:
        store = SqlAlchemyAccountStore(db, cipher)
        account = await store.load(account_id)
        await store.save(dataclasses.replace(account, pending_secret=SECRET))

        mallory = User(username="mallory", hashed_password=password_hash)
        db.add(mallory)
        await db.commit()

        token = (await db.execute(
            select(User.encrypted_pending_otp_secret).where(User.id == account_id)
        )).scalar_one()
        await db.execute(
            update(User).where(User.id == mallory.id).values(encrypted_pending_otp_secret=token)
        )
        await db.commit()

        with pytest.raises(StorageFailure):
            await store.load(mallory.id)


async def test_enforced_row_without_secret_is_storage_failure(session_factory, account_id, cipher):
    async with session_factory() as db:
        await db.execute(update(User).where(User.id == account_id).values(otp_required_for_login=True))
        await db.commit()

        with pytest.raises(StorageFailure):
            await SqlAlchemyAccountStore(db, cipher).load(account_id)
