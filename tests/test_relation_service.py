import asyncio

import pytest

from pulselink.audit.service import AuditService
from pulselink.errors import NotFoundError, PermissionDeniedError, ValidationError
from pulselink.profiles.models import RegistrationType, SeniorProfile
from pulselink.profiles.store import InMemoryProfileStore
from pulselink.relations.models import (
    CaregiverRelation,
    RelationPermissions,
    RelationStatus,
    generate_relation_id,
)
from pulselink.relations.service import RelationService
from pulselink.relations.store import InMemoryRelationshipStore


def run(coro):
    return asyncio.run(coro)


@pytest.fixture
def env():
    profiles = InMemoryProfileStore()
    relations = InMemoryRelationshipStore()
    service = RelationService(relations, profiles, audit_service=AuditService())
    senior = run(
        profiles.create_profile(
            SeniorProfile(name="Grandpa Zhao", age=84, creator_id="cg-owner", user_id="uid-senior")
        )
    )
    run(
        relations.create_relation(
            CaregiverRelation(
                caregiver_id="cg-owner",
                senior_id=senior.id,
                status=RelationStatus.ACTIVE,
                **RelationPermissions.full().model_dump(),
            )
        )
    )
    return service, senior


def test_request_and_approve(env):
    service, senior = env
    relation = run(service.request_relation("cg-new", senior.id, "Nephew", "Uncle", "hello"))
    assert relation.status == RelationStatus.PENDING
    assert relation.permissions() == RelationPermissions()
    assert relation.message == "hello"

    pending = run(service.get_pending_requests(senior.id, "cg-owner"))
    assert [r.id for r in pending] == [relation.id]

    approved = run(service.approve_relation(relation.id, "cg-owner"))
    assert approved.is_active
    assert approved.approved_by == "cg-owner"
    caregivers = run(service.get_caregivers_for_senior(senior.id, "cg-owner"))
    assert {r.caregiver_id for r in caregivers} == {"cg-owner", "cg-new"}
    with pytest.raises(PermissionDeniedError):
        run(service.get_caregivers_for_senior(senior.id, "cg-new"))


def test_senior_can_approve_own_requests(env):
    service, senior = env
    relation = run(service.request_relation("cg-new", senior.id))
    assert run(service.approve_relation(relation.id, "uid-senior")).is_active


def test_duplicate_requests_rejected(env):
    service, senior = env
    run(service.request_relation("cg-new", senior.id))
    with pytest.raises(ValidationError):
        run(service.request_relation("cg-new", senior.id))
    with pytest.raises(ValidationError):
        run(service.request_relation("cg-owner", senior.id))


def test_rejected_request_can_be_filed_again(env):
    service, senior = env
    relation = run(service.request_relation("cg-new", senior.id, message="first"))
    rejected = run(service.reject_relation(relation.id, "cg-owner"))
    assert rejected.is_rejected
    again = run(service.request_relation("cg-new", senior.id, message="second"))
    assert again.is_pending
    assert again.message == "second"
    assert again.id == generate_relation_id("cg-new", senior.id)


def test_request_for_unknown_senior(env):
    service, _ = env
    with pytest.raises(NotFoundError):
        run(service.request_relation("cg-new", "SNR-ZZZZZZZZZZZZ"))
    with pytest.raises(ValidationError):
        run(service.request_relation("", "SNR-ZZZZZZZZZZZZ"))


def test_only_managers_can_approve(env):
    service, senior = env
    relation = run(service.request_relation("cg-new", senior.id))
    other = run(service.request_relation("cg-other", senior.id))
    run(service.approve_relation(other.id, "cg-owner"))

    # active but without the approve flag
    with pytest.raises(PermissionDeniedError):
        run(service.approve_relation(relation.id, "cg-other"))
    # requester cannot approve themselves
    with pytest.raises(PermissionDeniedError):
        run(service.approve_relation(relation.id, "cg-new"))
    with pytest.raises(PermissionDeniedError):
        run(service.get_pending_requests(senior.id, "cg-other"))

    run(service.update_permissions(other.id, "cg-owner", RelationPermissions(can_approve_requests=True)))
    assert run(service.approve_relation(relation.id, "cg-other")).is_active


def test_update_permissions(env):
    service, senior = env
    relation = run(service.request_relation("cg-new", senior.id))
    run(service.approve_relation(relation.id, "cg-owner"))
    updated = run(
        service.update_permissions(
            relation.id, "uid-senior", RelationPermissions(can_edit_health_data=True)
        )
    )
    assert updated.can_edit_health_data
    with pytest.raises(PermissionDeniedError):
        run(service.update_permissions(relation.id, "cg-new", RelationPermissions.full()))
    with pytest.raises(NotFoundError):
        run(service.update_permissions("missing", "cg-owner", RelationPermissions.full()))


def test_update_relation_info(env):
    service, senior = env
    relation = run(service.request_relation("cg-new", senior.id, "Nephew"))
    updated = run(service.update_relation_info(relation.id, "cg-new", nickname="Uncle Zhao"))
    assert updated.nickname == "Uncle Zhao"
    assert updated.relationship == "Nephew"
    with pytest.raises(PermissionDeniedError):
        run(service.update_relation_info(relation.id, "stranger", relationship="Son"))


def test_remove_relation(env):
    service, senior = env
    relation = run(service.request_relation("cg-new", senior.id))
    run(service.approve_relation(relation.id, "cg-owner"))
    with pytest.raises(PermissionDeniedError):
        run(service.remove_relation(relation.id, "stranger"))
    # a caregiver may always leave
    assert run(service.remove_relation(relation.id, "cg-new"))
    with pytest.raises(NotFoundError):
        run(service.remove_relation(relation.id, "cg-new"))


def test_managed_seniors_include_created_profiles(env):
    service, senior = env
    orphan = run(
        service.profiles.create_profile(
            SeniorProfile(
                name="Grandma Zhao",
                age=80,
                creator_id="cg-owner",
                registration_type=RegistrationType.CAREGIVER_CREATED,
            )
        )
    )
    managed = run(service.get_managed_seniors("cg-owner"))
    by_id = {p.id: r for p, r in managed}
    assert set(by_id) == {senior.id, orphan.id}
    assert by_id[orphan.id].relationship == "Creator"
    assert by_id[orphan.id].permissions() == RelationPermissions.full()
    assert by_id[senior.id].relationship == ""

    assert run(service.get_managed_seniors("nobody")) == []
