import asyncio
import json

import pytest

from pulselink.audit.service import AuditService
from pulselink.errors import (
    ExternalServiceError,
    NotFoundError,
    PermissionDeniedError,
    ProvisioningError,
    ValidationError,
)
from pulselink.health.models import HealthRecord, HealthRecordType
from pulselink.health.store import InMemoryHealthRecordStore
from pulselink.identity.codec import IdentityCodec
from pulselink.monitoring.metrics import registry
from pulselink.profiles.store import InMemoryProfileStore
from pulselink.provisioning.coordinator import ProvisioningCoordinator
from pulselink.provisioning.issuer import InMemoryAccountIssuer
from pulselink.provisioning.models import ProvisioningStage, parse_login_payload
from pulselink.relations.models import CaregiverRelation, RelationPermissions, RelationStatus
from pulselink.relations.store import InMemoryRelationshipStore


def run(coro):
    return asyncio.run(coro)


class FailingIssuer(InMemoryAccountIssuer):
    async def create(self, senior_id, name, password):
        raise ExternalServiceError("issuer offline")

    async def delete(self, senior_id):
        raise ExternalServiceError("issuer offline")


class UnsuccessfulIssuer(InMemoryAccountIssuer):
    async def delete(self, senior_id):
        return False


class FailingRelationStore(InMemoryRelationshipStore):
    async def create_relation(self, relation):
        raise RuntimeError("write rejected")


class FailingRecordStore(InMemoryHealthRecordStore):
    async def delete_all_records(self, senior_id):
        raise RuntimeError("batch failed")


class FailingProfileCreate(InMemoryProfileStore):
    async def create_profile(self, profile):
        raise RuntimeError("profile write rejected")


class FailingProfileDelete(InMemoryProfileStore):
    async def delete_profile(self, profile_id):
        raise RuntimeError("profile delete failed")


def _coordinator(profiles=None, relations=None, records=None, issuer=None):
    return ProvisioningCoordinator(
        profiles=profiles or InMemoryProfileStore(),
        relations=relations or InMemoryRelationshipStore(),
        records=records or InMemoryHealthRecordStore(),
        issuer=issuer or InMemoryAccountIssuer(),
        audit_service=AuditService(),
    )


def _grandpa(coordinator, **overrides):
    kwargs = dict(
        name="Grandpa Li",
        age=78,
        gender="male",
        avatar_type="elder_m",
        creator_id="caregiver-1",
    )
    kwargs.update(overrides)
    return run(coordinator.create_senior_identity(**kwargs))


def test_create_senior_identity():
    coordinator = _coordinator()
    result = _grandpa(coordinator)

    assert IdentityCodec.is_valid(result.profile.id)
    assert result.email == f"senior_{result.profile.id}@pulselink.app"
    assert IdentityCodec().extract_identity(result.email) == result.profile.id
    assert len(result.password) == 8
    assert result.account_id

    relation = result.relation
    assert relation.id == f"caregiver-1_{result.profile.id}"
    assert relation.status == RelationStatus.ACTIVE
    assert relation.permissions() == RelationPermissions.full()
    assert relation.approved_by == "caregiver-1"
    assert relation.relationship == "Son"
    assert relation.virtual_account_password == result.password

    payload = json.loads(result.login_payload)
    assert payload == {"type": "pulselink_login", "id": result.profile.id, "password": result.password}
    assert parse_login_payload(result.login_payload)["id"] == result.profile.id

    stored = run(coordinator.profiles.get_profile(result.profile.id))
    assert stored.creator_id == "caregiver-1"
    assert stored.is_caregiver_created
    assert run(coordinator.relations.has_active_relation("caregiver-1", result.profile.id))


def test_requested_password_is_used():
    result = _grandpa(_coordinator(), password="s3cret!!", relationship="Daughter", nickname="Dad")
    assert result.password == "s3cret!!"
    assert result.relation.nickname == "Dad"
    assert result.relation.relationship == "Daughter"


@pytest.mark.parametrize(
    "overrides",
    [
        {"name": ""},
        {"name": "   "},
        {"age": 0},
        {"age": 151},
        {"creator_id": ""},
    ],
)
def test_invalid_input_has_no_side_effects(overrides):
    profiles = InMemoryProfileStore()
    issuer = InMemoryAccountIssuer()
    coordinator = _coordinator(profiles=profiles, issuer=issuer)
    with pytest.raises(ValidationError):
        _grandpa(coordinator, **overrides)
    assert run(profiles.get_profiles_by_creator("caregiver-1")) == []
    assert issuer.accounts == {}


def test_issuer_failure_leaves_orphaned_profile():
    profiles = InMemoryProfileStore()
    relations = InMemoryRelationshipStore()
    coordinator = _coordinator(profiles=profiles, relations=relations, issuer=FailingIssuer())

    with pytest.raises(ExternalServiceError) as exc:
        _grandpa(coordinator)

    err = exc.value
    assert err.stage == ProvisioningStage.PROFILE_CREATED
    assert err.orphaned_profile
    assert run(profiles.get_profile(err.profile_id)) is not None
    assert run(relations.get_relations_by_senior(err.profile_id)) == []


def test_relation_failure_reports_issued_account():
    issuer = InMemoryAccountIssuer()
    coordinator = _coordinator(relations=FailingRelationStore(), issuer=issuer)

    with pytest.raises(ProvisioningError) as exc:
        _grandpa(coordinator)

    err = exc.value
    assert not isinstance(err, ExternalServiceError)
    assert err.stage == ProvisioningStage.ACCOUNT_ISSUED
    assert err.account_id == issuer.accounts[err.profile_id].account_id


def _failures(stage):
    return registry.get_sample_value(
        "pulselink_provisioning_total", {"outcome": "failed", "stage": stage}
    ) or 0.0


def test_failure_metrics_name_the_failing_stage():
    rejected = registry.get_sample_value(
        "pulselink_provisioning_total", {"outcome": "rejected", "stage": "validating"}
    ) or 0.0
    store_failures = _failures("profile_store")

    with pytest.raises(RuntimeError):
        _grandpa(_coordinator(profiles=FailingProfileCreate()))
    with pytest.raises(ValidationError):
        _grandpa(_coordinator(), name=" ")

    assert _failures("profile_store") == store_failures + 1
    assert registry.get_sample_value(
        "pulselink_provisioning_total", {"outcome": "rejected", "stage": "validating"}
    ) == rejected + 1


def test_retry_after_failure_creates_a_new_profile():
    profiles = InMemoryProfileStore()
    with pytest.raises(ExternalServiceError):
        _grandpa(_coordinator(profiles=profiles, issuer=FailingIssuer()))
    _grandpa(_coordinator(profiles=profiles))
    assert len(run(profiles.get_profiles_by_creator("caregiver-1"))) == 2


def _seed_records(coordinator, senior_id, count=3):
    for i in range(count):
        run(
            coordinator.records.create_record(
                HealthRecord(
                    senior_id=senior_id,
                    type=HealthRecordType.HEART_RATE,
                    heart_rate=60 + i,
                )
            )
        )


def test_delete_by_creator():
    coordinator = _coordinator()
    senior = _grandpa(coordinator).profile
    _seed_records(coordinator, senior.id)
    run(
        coordinator.relations.create_relation(
            CaregiverRelation(caregiver_id="caregiver-2", senior_id=senior.id)
        )
    )

    report = run(coordinator.delete_senior_identity(senior.id, "caregiver-1"))

    assert report.deleted_profile
    assert report.deleted_health_records == 3
    assert report.deleted_relations == 2
    assert report.deleted_account
    assert report.failures == []
    assert report.complete
    assert run(coordinator.profiles.get_profile(senior.id)) is None
    assert senior.id not in coordinator.issuer.accounts


def test_delete_by_caregiver_with_approve_flag():
    coordinator = _coordinator()
    senior = _grandpa(coordinator).profile
    run(
        coordinator.relations.create_relation(
            CaregiverRelation(
                caregiver_id="caregiver-2",
                senior_id=senior.id,
                status=RelationStatus.ACTIVE,
                can_approve_requests=True,
            )
        )
    )
    assert run(coordinator.delete_senior_identity(senior.id, "caregiver-2")).deleted_profile


def test_unauthorized_delete_changes_nothing():
    coordinator = _coordinator()
    senior = _grandpa(coordinator).profile
    _seed_records(coordinator, senior.id)
    run(
        coordinator.relations.create_relation(
            CaregiverRelation(
                caregiver_id="caregiver-2",
                senior_id=senior.id,
                status=RelationStatus.ACTIVE,
            )
        )
    )

    for requester in ("caregiver-2", "stranger"):
        with pytest.raises(PermissionDeniedError):
            run(coordinator.delete_senior_identity(senior.id, requester))

    assert run(coordinator.profiles.get_profile(senior.id)) is not None
    assert len(run(coordinator.records.get_records_by_senior(senior.id))) == 3
    assert len(run(coordinator.relations.get_relations_by_senior(senior.id))) == 2
    assert senior.id in coordinator.issuer.accounts


def test_delete_validation_and_missing_profile():
    coordinator = _coordinator()
    with pytest.raises(ValidationError):
        run(coordinator.delete_senior_identity("", "caregiver-1"))
    with pytest.raises(ValidationError):
        run(coordinator.delete_senior_identity("SNR-AAAAAAAAAAAA", " "))
    with pytest.raises(NotFoundError):
        run(coordinator.delete_senior_identity("SNR-AAAAAAAAAAAA", "caregiver-1"))


def test_partial_failures_are_reported():
    coordinator = _coordinator(records=FailingRecordStore(), issuer=FailingIssuer())
    # provision with a working issuer, then delete through the failing one
    coordinator.issuer = InMemoryAccountIssuer()
    senior = _grandpa(coordinator).profile
    coordinator.issuer = FailingIssuer()

    report = run(coordinator.delete_senior_identity(senior.id, "caregiver-1"))

    assert report.deleted_profile
    assert report.deleted_health_records == 0
    assert report.deleted_relations == 1
    assert not report.deleted_account
    assert len(report.failures) == 2
    assert not report.complete


def test_issuer_reporting_no_success_on_delete():
    coordinator = _coordinator(issuer=UnsuccessfulIssuer())
    senior = _grandpa(coordinator).profile
    report = run(coordinator.delete_senior_identity(senior.id, "caregiver-1"))
    assert report.deleted_profile
    assert not report.deleted_account
    assert report.failures


def test_profile_delete_failure_stops_the_saga():
    coordinator = _coordinator(profiles=FailingProfileDelete())
    senior = _grandpa(coordinator).profile
    _seed_records(coordinator, senior.id)

    report = run(coordinator.delete_senior_identity(senior.id, "caregiver-1"))

    assert not report.deleted_profile
    assert report.deleted_health_records == 0
    assert report.deleted_relations == 0
    assert not report.deleted_account
    # the account is left alone
    assert senior.id in coordinator.issuer.accounts


def test_check_deletion_allowed():
    coordinator = _coordinator()
    senior = _grandpa(coordinator).profile

    check = run(coordinator.check_deletion_allowed(senior.id, "caregiver-1"))
    assert check.can_delete
    assert not check.has_other_caregivers
    assert check.total_active_relations == 1
    assert check.senior_name == "Grandpa Li"

    run(
        coordinator.relations.create_relation(
            CaregiverRelation(
                caregiver_id="caregiver-2",
                senior_id=senior.id,
                relationship="Daughter",
                status=RelationStatus.ACTIVE,
            )
        )
    )
    run(
        coordinator.relations.create_relation(
            CaregiverRelation(caregiver_id="caregiver-3", senior_id=senior.id)
        )
    )
    check = run(coordinator.check_deletion_allowed(senior.id, "caregiver-1"))
    assert not check.can_delete
    assert check.has_other_caregivers
    assert check.total_active_relations == 2
    assert check.other_caregivers_info == ["Daughter"]

    with pytest.raises(PermissionDeniedError):
        run(coordinator.check_deletion_allowed(senior.id, "caregiver-2"))
