"""
Senior provisioning and deletion sagas.

Creation runs profile -> external account -> relation. Each step commits on
its own and nothing is rolled back: a failure after the profile exists is
raised with the stage reached and the orphaned profile id, and the caller
decides between retrying and manual cleanup. Retrying the whole call creates
a new profile.

Deletion is best effort past the permission check. Every step after it is
attempted once and failures are collected into the returned report.
"""

from __future__ import annotations

import logging
import time
from typing import List, Optional

from ..audit.service import AuditCategory, AuditService
from ..errors import (
    ExternalServiceError,
    NotFoundError,
    PermissionDeniedError,
    ProvisioningError,
    ValidationError,
)
from ..health.store import HealthRecordStore
from ..monitoring.metrics import (
    deletion_step_failures_total,
    deletion_total,
    permission_denials_total,
    provisioning_duration,
    provisioning_total,
)
from ..policy.evaluator import PermissionEvaluator
from ..profiles.models import MAX_AGE, MIN_AGE, RegistrationType, SeniorProfile, utcnow
from ..profiles.store import ProfileStore
from ..relations.models import (
    CaregiverRelation,
    RelationPermissions,
    RelationStatus,
    generate_relation_id,
)
from ..relations.store import RelationshipStore
from .issuer import AccountIssuer
from .models import (
    DeletionCheck,
    DeletionReport,
    ProvisionedSenior,
    ProvisioningStage,
    build_login_payload,
)

logger = logging.getLogger(__name__)


class ProvisioningCoordinator:
    def __init__(
        self,
        profiles: ProfileStore,
        relations: RelationshipStore,
        records: HealthRecordStore,
        issuer: AccountIssuer,
        evaluator: Optional[PermissionEvaluator] = None,
        audit_service: Optional[AuditService] = None,
    ):
        self.profiles = profiles
        self.relations = relations
        self.records = records
        self.issuer = issuer
        self.evaluator = evaluator or PermissionEvaluator(relations)
        self.audit_service = audit_service or AuditService()

    @staticmethod
    def _validate(name: str, age: int, creator_id: str) -> None:
        if not name or not name.strip():
            raise ValidationError("Name must not be blank")
        if not isinstance(age, int) or isinstance(age, bool) or not MIN_AGE <= age <= MAX_AGE:
            raise ValidationError(f"Age must be between {MIN_AGE} and {MAX_AGE}")
        if not creator_id or not creator_id.strip():
            raise ValidationError("creator_id must not be blank")

    async def _audit_provisioning(
        self,
        result: str,
        creator_id: str,
        stage: ProvisioningStage,
        profile_id: Optional[str] = None,
        error: Optional[str] = None,
    ) -> None:
        details = {"stage": stage}
        if error:
            details["error"] = error
        await self.audit_service.log_event(
            event_type="senior_provisioned" if result == "success" else "senior_provisioning_failed",
            category=AuditCategory.PROVISIONING,
            action="create",
            result=result,
            description=f"Provisioning ended at {stage.value}",
            resource_type="senior_profile",
            resource_id=profile_id,
            user_id=creator_id,
            details=details,
        )

    async def create_senior_identity(
        self,
        name: str,
        age: int,
        gender: str,
        avatar_type: str,
        creator_id: str,
        password: Optional[str] = None,
        relationship: str = "Son",
        nickname: str = "",
    ) -> ProvisionedSenior:
        try:
            self._validate(name, age, creator_id)
        except ValidationError:
            provisioning_total.labels(
                outcome="rejected", stage=ProvisioningStage.VALIDATING.value
            ).inc()
            raise
        started = time.perf_counter()

        # Step 1: profile
        try:
            profile = await self.profiles.create_profile(
                SeniorProfile(
                    name=name.strip(),
                    age=age,
                    gender=gender,
                    avatar_type=avatar_type,
                    creator_id=creator_id,
                    registration_type=RegistrationType.CAREGIVER_CREATED,
                )
            )
        except Exception:
            provisioning_total.labels(outcome="failed", stage="profile_store").inc()
            raise

        # Step 2: external account
        try:
            account = await self.issuer.create(profile.id, profile.name, password or "")
        except Exception as e:
            logger.error("Account issuing failed for %s, profile left orphaned: %s", profile.id, e)
            provisioning_total.labels(
                outcome="failed", stage=ProvisioningStage.PROFILE_CREATED.value
            ).inc()
            await self._audit_provisioning(
                "failure", creator_id, ProvisioningStage.PROFILE_CREATED, profile.id, str(e)
            )
            raise ExternalServiceError(
                f"Account issuer failed: {e}",
                stage=ProvisioningStage.PROFILE_CREATED,
                profile_id=profile.id,
            ) from e

        # Step 3: creator relation, auto-approved with every capability
        now = utcnow()
        relation = CaregiverRelation(
            id=generate_relation_id(creator_id, profile.id),
            caregiver_id=creator_id,
            senior_id=profile.id,
            relationship=relationship,
            nickname=nickname,
            status=RelationStatus.ACTIVE,
            virtual_account_password=account.password,
            created_at=now,
            approved_at=now,
            approved_by=creator_id,
            **RelationPermissions.full().model_dump(),
        )
        try:
            relation = await self.relations.create_relation(relation)
        except Exception as e:
            logger.error(
                "Relation write failed for %s after account %s was issued: %s",
                profile.id,
                account.account_id,
                e,
            )
            provisioning_total.labels(
                outcome="failed", stage=ProvisioningStage.ACCOUNT_ISSUED.value
            ).inc()
            await self._audit_provisioning(
                "failure", creator_id, ProvisioningStage.ACCOUNT_ISSUED, profile.id, str(e)
            )
            raise ProvisioningError(
                f"Relation could not be created: {e}",
                stage=ProvisioningStage.ACCOUNT_ISSUED,
                profile_id=profile.id,
                account_id=account.account_id,
            ) from e

        provisioning_total.labels(outcome="success", stage=ProvisioningStage.PROVISIONED.value).inc()
        provisioning_duration.observe(time.perf_counter() - started)
        await self._audit_provisioning("success", creator_id, ProvisioningStage.PROVISIONED, profile.id)
        logger.info("Provisioned senior %s for caregiver %s", profile.id, creator_id)

        return ProvisionedSenior(
            profile=profile,
            email=account.email,
            password=account.password,
            account_id=account.account_id,
            relation=relation,
            login_payload=build_login_payload(profile.id, account.password),
        )

    async def _load_profile(self, profile_id: str, requester_id: str) -> SeniorProfile:
        if not profile_id or not profile_id.strip():
            raise ValidationError("profile_id must not be blank")
        if not requester_id or not requester_id.strip():
            raise ValidationError("requester_id must not be blank")
        profile = await self.profiles.get_profile(profile_id)
        if profile is None:
            raise NotFoundError(f"Senior profile not found: {profile_id}")
        return profile

    async def delete_senior_identity(self, profile_id: str, requester_id: str) -> DeletionReport:
        profile = await self._load_profile(profile_id, requester_id)

        allowed = profile.creator_id == requester_id or await self.evaluator.can_approve_requests(
            requester_id, profile_id
        )
        if not allowed:
            permission_denials_total.labels(operation="delete_senior_identity").inc()
            deletion_total.labels(outcome="denied").inc()
            await self.audit_service.log_event(
                event_type="senior_deletion_denied",
                category=AuditCategory.SECURITY,
                action="delete",
                result="denied",
                description="Requester may not delete this senior",
                resource_type="senior_profile",
                resource_id=profile_id,
                user_id=requester_id,
            )
            raise PermissionDeniedError(f"{requester_id} may not delete {profile_id}")

        failures: List[str] = []

        deleted_records = 0
        try:
            deleted_records = await self.records.delete_all_records(profile_id)
        except Exception as e:
            logger.warning("Failed to delete health records of %s: %s", profile_id, e)
            deletion_step_failures_total.labels(step="health_records").inc()
            failures.append(f"health_records: {e}")

        deleted_relations = 0
        try:
            relations = await self.relations.get_relations_by_senior(profile_id)
        except Exception as e:
            logger.warning("Failed to list relations of %s: %s", profile_id, e)
            deletion_step_failures_total.labels(step="relations").inc()
            failures.append(f"relations: {e}")
            relations = []
        for relation in relations:
            try:
                if await self.relations.delete_relation(relation.id):
                    deleted_relations += 1
            except Exception as e:
                logger.warning("Failed to delete relation %s: %s", relation.id, e)
                deletion_step_failures_total.labels(step="relations").inc()
                failures.append(f"relation {relation.id}: {e}")

        try:
            deleted_profile = await self.profiles.delete_profile(profile_id)
            if not deleted_profile:
                failures.append("profile: not deleted")
        except Exception as e:
            logger.error("Failed to delete profile %s: %s", profile_id, e)
            failures.append(f"profile: {e}")
            deleted_profile = False
        if not deleted_profile:
            deletion_step_failures_total.labels(step="profile").inc()
            deletion_total.labels(outcome="failed").inc()
            await self._audit_deletion("failure", requester_id, profile_id, failures)
            return DeletionReport(senior_id=profile_id, deleted_profile=False, failures=failures)

        try:
            deleted_account = await self.issuer.delete(profile_id)
            if not deleted_account:
                failures.append("account: issuer reported failure")
        except Exception as e:
            logger.warning("Failed to revoke account of %s: %s", profile_id, e)
            failures.append(f"account: {e}")
            deleted_account = False
        if not deleted_account:
            deletion_step_failures_total.labels(step="account").inc()

        report = DeletionReport(
            senior_id=profile_id,
            deleted_profile=True,
            deleted_health_records=deleted_records,
            deleted_relations=deleted_relations,
            deleted_account=deleted_account,
            failures=failures,
        )
        deletion_total.labels(outcome="complete" if report.complete else "partial").inc()
        await self._audit_deletion(
            "success" if report.complete else "partial", requester_id, profile_id, failures
        )
        logger.info(
            "Deleted senior %s: %d records, %d relations, account=%s",
            profile_id,
            deleted_records,
            deleted_relations,
            deleted_account,
        )
        return report

    async def _audit_deletion(
        self, result: str, requester_id: str, profile_id: str, failures: List[str]
    ) -> None:
        await self.audit_service.log_event(
            event_type="senior_deleted",
            category=AuditCategory.PROVISIONING,
            action="delete",
            result=result,
            description=f"Deletion finished with {len(failures)} failed step(s)",
            resource_type="senior_profile",
            resource_id=profile_id,
            user_id=requester_id,
            details={"failures": failures},
        )

    async def check_deletion_allowed(self, profile_id: str, requester_id: str) -> DeletionCheck:
        profile = await self._load_profile(profile_id, requester_id)
        if profile.creator_id != requester_id:
            permission_denials_total.labels(operation="check_deletion_allowed").inc()
            raise PermissionDeniedError("Only the creator may delete this senior")

        active = await self.relations.get_active_relations_by_senior(profile_id)
        others = [r for r in active if r.caregiver_id != requester_id]
        return DeletionCheck(
            can_delete=not others,
            has_other_caregivers=bool(others),
            total_active_relations=len(active),
            other_caregivers_info=[r.relationship or "Caregiver" for r in others],
            senior_name=profile.name,
        )
