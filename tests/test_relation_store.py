import asyncio

from sqlalchemy import select

from pulselink.database import create_engine_for, init_schema, session_maker_for
from pulselink.db_models import CaregiverRelationRow
from pulselink.relations.models import (
    CaregiverRelation,
    RelationPermissions,
    RelationStatus,
    generate_relation_id,
)
from pulselink.relations.store import InMemoryRelationshipStore, SqlRelationshipStore
from pulselink.security.encryption import SecretCipher


def run(coro):
    return asyncio.run(coro)


async def _exercise_store(store):
    pending = await store.create_relation(
        CaregiverRelation(caregiver_id="cg-2", senior_id="SNR-AAAAAAAAAAAA", relationship="Daughter")
    )
    assert pending.id == generate_relation_id("cg-2", "SNR-AAAAAAAAAAAA")
    assert pending.is_pending
    assert pending.can_view_health_data and not pending.can_edit_health_data

    assert await store.get_relation("cg-2", "SNR-AAAAAAAAAAAA") == pending
    assert await store.get_relation("cg-3", "SNR-AAAAAAAAAAAA") is None
    assert [r.id for r in await store.get_pending_relations_by_senior("SNR-AAAAAAAAAAAA")] == [
        pending.id
    ]
    assert not await store.has_active_relation("cg-2", "SNR-AAAAAAAAAAAA")

    assert await store.approve_relation(pending.id, "cg-1")
    approved = await store.get_relation_by_id(pending.id)
    assert approved.is_active
    assert approved.approved_by == "cg-1"
    assert approved.approved_at is not None
    assert await store.has_active_relation("cg-2", "SNR-AAAAAAAAAAAA")
    assert [r.id for r in await store.get_active_relations_by_caregiver("cg-2")] == [pending.id]

    assert await store.update_permissions(pending.id, RelationPermissions.full())
    assert (await store.get_relation_by_id(pending.id)).permissions() == RelationPermissions.full()

    assert await store.update_relation_info(pending.id, nickname="Mom")
    info = await store.get_relation_by_id(pending.id)
    assert info.nickname == "Mom"
    assert info.relationship == "Daughter"

    # last write wins between approve and reject
    assert await store.reject_relation(pending.id, "SNR-AAAAAAAAAAAA")
    rejected = await store.get_relation_by_id(pending.id)
    assert rejected.status == RelationStatus.REJECTED
    assert rejected.rejected_by == "SNR-AAAAAAAAAAAA"

    # writing the same pair replaces the stored relation
    await store.create_relation(
        CaregiverRelation(
            caregiver_id="cg-2", senior_id="SNR-AAAAAAAAAAAA", status=RelationStatus.ACTIVE
        )
    )
    assert len(await store.get_relations_by_senior("SNR-AAAAAAAAAAAA")) == 1
    assert (await store.get_relation_by_id(pending.id)).is_active

    await store.create_relation(CaregiverRelation(caregiver_id="cg-3", senior_id="SNR-AAAAAAAAAAAA"))
    assert await store.delete_relation_between("cg-3", "SNR-AAAAAAAAAAAA")
    assert not await store.delete_relation_between("cg-3", "SNR-AAAAAAAAAAAA")
    assert not await store.approve_relation("missing", "cg-1")

    await store.create_relation(CaregiverRelation(caregiver_id="cg-4", senior_id="SNR-AAAAAAAAAAAA"))
    assert await store.delete_relations_by_senior("SNR-AAAAAAAAAAAA") == 2
    assert await store.get_relations_by_senior("SNR-AAAAAAAAAAAA") == []


def test_in_memory_relation_store():
    run(_exercise_store(InMemoryRelationshipStore()))


def test_sql_relation_store(tmp_path):
    async def scenario():
        engine = create_engine_for(f"sqlite+aiosqlite:///{tmp_path / 'relations.db'}")
        await init_schema(engine)
        try:
            await _exercise_store(SqlRelationshipStore(session_maker_for(engine)))
        finally:
            await engine.dispose()

    run(scenario())


def test_sql_store_encrypts_password_copy(tmp_path):
    async def scenario():
        engine = create_engine_for(f"sqlite+aiosqlite:///{tmp_path / 'secret.db'}")
        await init_schema(engine)
        sessions = session_maker_for(engine)
        key = SecretCipher.generate_key()
        try:
            store = SqlRelationshipStore(sessions, SecretCipher(key))
            await store.create_relation(
                CaregiverRelation(
                    caregiver_id="cg-1",
                    senior_id="SNR-AAAAAAAAAAAA",
                    status=RelationStatus.ACTIVE,
                    virtual_account_password="Ab3dEf9h",
                )
            )
            async with sessions() as session:
                stored = await session.scalar(select(CaregiverRelationRow.virtual_account_password))
            assert stored and stored != "Ab3dEf9h"

            relation = await store.get_relation("cg-1", "SNR-AAAAAAAAAAAA")
            assert relation.virtual_account_password == "Ab3dEf9h"

            # a different key cannot read the copy back
            other = SqlRelationshipStore(sessions, SecretCipher(SecretCipher.generate_key()))
            assert (await other.get_relation("cg-1", "SNR-AAAAAAAAAAAA")).virtual_account_password is None
        finally:
            await engine.dispose()

    run(scenario())


def test_cipher_without_key_passes_through():
    cipher = SecretCipher()
    assert not cipher.enabled
    assert cipher.protect("plain") == "plain"
    assert cipher.reveal("plain") == "plain"
    assert cipher.protect(None) is None
