"""
Caregiver relation workflows: link requests, approval, permission changes.

A relation may be managed by the senior (their linked account), by the
caregiver who created the senior's profile, or by any caregiver holding an
active relation with the approve-requests flag.
"""

from __future__ import annotations

import logging
from typing import List, Optional, Tuple

from ..audit.service import AuditCategory, AuditService
from ..errors import NotFoundError, PermissionDeniedError, ValidationError
from ..monitoring.metrics import permission_denials_total
from ..policy.evaluator import PermissionEvaluator
from ..profiles.models import SeniorProfile
from ..profiles.store import ProfileStore
from .models import (
    CaregiverRelation,
    RelationPermissions,
    RelationStatus,
    generate_relation_id,
)
from .store import RelationshipStore

logger = logging.getLogger(__name__)

CREATOR_RELATIONSHIP = "Creator"


class RelationService:
    def __init__(
        self,
        relations: RelationshipStore,
        profiles: ProfileStore,
        evaluator: Optional[PermissionEvaluator] = None,
        audit_service: Optional[AuditService] = None,
    ):
        self.relations = relations
        self.profiles = profiles
        self.evaluator = evaluator or PermissionEvaluator(relations)
        self.audit_service = audit_service or AuditService()

    async def _require_profile(self, senior_id: str) -> SeniorProfile:
        profile = await self.profiles.get_profile(senior_id)
        if profile is None:
            raise NotFoundError(f"Senior profile not found: {senior_id}")
        return profile

    async def _require_relation(self, relation_id: str) -> CaregiverRelation:
        if not relation_id or not relation_id.strip():
            raise ValidationError("relation_id must not be blank")
        relation = await self.relations.get_relation_by_id(relation_id)
        if relation is None:
            raise NotFoundError(f"Relation not found: {relation_id}")
        return relation

    async def can_manage(self, actor_id: str, profile: SeniorProfile) -> bool:
        if self.evaluator.is_self(actor_id, profile):
            return True
        if profile.creator_id and profile.creator_id == actor_id:
            return True
        return await self.evaluator.can_approve_requests(actor_id, profile.id)

    async def _require_manager(self, actor_id: str, senior_id: str, operation: str) -> None:
        profile = await self._require_profile(senior_id)
        if not await self.can_manage(actor_id, profile):
            permission_denials_total.labels(operation=operation).inc()
            raise PermissionDeniedError(
                f"{actor_id} may not manage caregivers of {senior_id}"
            )

    async def request_relation(
        self,
        caregiver_id: str,
        senior_id: str,
        relationship: str = "CAREGIVER",
        nickname: str = "",
        message: str = "",
    ) -> CaregiverRelation:
        if not caregiver_id or not caregiver_id.strip():
            raise ValidationError("caregiver_id must not be blank")
        if not senior_id or not senior_id.strip():
            raise ValidationError("senior_id must not be blank")
        await self._require_profile(senior_id)

        existing = await self.relations.get_relation(caregiver_id, senior_id)
        if existing is not None:
            if existing.status == RelationStatus.ACTIVE:
                raise ValidationError("Caregiver is already linked to this senior")
            if existing.status == RelationStatus.PENDING:
                raise ValidationError("A link request is already awaiting approval")
            # Rejected requests may be filed again
            await self.relations.delete_relation(existing.id)

        relation = await self.relations.create_relation(
            CaregiverRelation(
                id=generate_relation_id(caregiver_id, senior_id),
                caregiver_id=caregiver_id,
                senior_id=senior_id,
                relationship=relationship,
                nickname=nickname,
                message=message,
                status=RelationStatus.PENDING,
                **RelationPermissions().model_dump(),
            )
        )
        await self.audit_service.log_event(
            event_type="relation_requested",
            category=AuditCategory.RELATION,
            action="request",
            result="success",
            description=f"Link request {relation.id} filed",
            resource_type="caregiver_relation",
            resource_id=relation.id,
            user_id=caregiver_id,
        )
        return relation

    async def approve_relation(self, relation_id: str, approver_id: str) -> CaregiverRelation:
        relation = await self._require_relation(relation_id)
        await self._require_manager(approver_id, relation.senior_id, "approve_relation")
        await self.relations.approve_relation(relation_id, approver_id)
        await self.audit_service.log_event(
            event_type="relation_approved",
            category=AuditCategory.RELATION,
            action="approve",
            result="success",
            description=f"Relation {relation_id} approved",
            resource_type="caregiver_relation",
            resource_id=relation_id,
            user_id=approver_id,
        )
        return await self._require_relation(relation_id)

    async def reject_relation(self, relation_id: str, rejecter_id: str) -> CaregiverRelation:
        relation = await self._require_relation(relation_id)
        await self._require_manager(rejecter_id, relation.senior_id, "reject_relation")
        await self.relations.reject_relation(relation_id, rejecter_id)
        await self.audit_service.log_event(
            event_type="relation_rejected",
            category=AuditCategory.RELATION,
            action="reject",
            result="success",
            description=f"Relation {relation_id} rejected",
            resource_type="caregiver_relation",
            resource_id=relation_id,
            user_id=rejecter_id,
        )
        return await self._require_relation(relation_id)

    async def update_permissions(
        self, relation_id: str, updater_id: str, permissions: RelationPermissions
    ) -> CaregiverRelation:
        relation = await self._require_relation(relation_id)
        await self._require_manager(updater_id, relation.senior_id, "update_permissions")
        await self.relations.update_permissions(relation_id, permissions)
        await self.audit_service.log_event(
            event_type="relation_permissions_updated",
            category=AuditCategory.RELATION,
            action="update_permissions",
            result="success",
            description=f"Permissions of relation {relation_id} updated",
            resource_type="caregiver_relation",
            resource_id=relation_id,
            user_id=updater_id,
            details=permissions.model_dump(),
        )
        return await self._require_relation(relation_id)

    async def update_relation_info(
        self,
        relation_id: str,
        requester_id: str,
        relationship: Optional[str] = None,
        nickname: Optional[str] = None,
    ) -> CaregiverRelation:
        relation = await self._require_relation(relation_id)
        if relation.caregiver_id != requester_id:
            await self._require_manager(requester_id, relation.senior_id, "update_relation_info")
        await self.relations.update_relation_info(relation_id, relationship, nickname)
        return await self._require_relation(relation_id)

    async def remove_relation(self, relation_id: str, requester_id: str) -> bool:
        relation = await self._require_relation(relation_id)
        # A caregiver may always leave; anyone else needs management rights
        if relation.caregiver_id != requester_id:
            await self._require_manager(requester_id, relation.senior_id, "remove_relation")
        removed = await self.relations.delete_relation(relation_id)
        await self.audit_service.log_event(
            event_type="relation_removed",
            category=AuditCategory.RELATION,
            action="remove",
            result="success" if removed else "noop",
            description=f"Relation {relation_id} removed",
            resource_type="caregiver_relation",
            resource_id=relation_id,
            user_id=requester_id,
        )
        return removed

    async def get_pending_requests(
        self, senior_id: str, requester_id: str
    ) -> List[CaregiverRelation]:
        if not senior_id or not senior_id.strip():
            raise ValidationError("senior_id must not be blank")
        await self._require_manager(requester_id, senior_id, "get_pending_requests")
        return await self.relations.get_pending_relations_by_senior(senior_id)

    async def get_caregivers_for_senior(
        self, senior_id: str, requester_id: str
    ) -> List[CaregiverRelation]:
        if not senior_id or not senior_id.strip():
            raise ValidationError("senior_id must not be blank")
        await self._require_manager(requester_id, senior_id, "get_caregivers_for_senior")
        return await self.relations.get_active_relations_by_senior(senior_id)

    async def get_managed_seniors(
        self, caregiver_id: str
    ) -> List[Tuple[SeniorProfile, CaregiverRelation]]:
        """Seniors reachable through active relations, plus seniors the
        caregiver created whose relation has since disappeared."""
        relations = await self.relations.get_active_relations_by_caregiver(caregiver_id)
        profiles = {
            p.id: p
            for p in await self.profiles.get_profiles([r.senior_id for r in relations])
        }
        managed: List[Tuple[SeniorProfile, CaregiverRelation]] = [
            (profiles[r.senior_id], r) for r in relations if r.senior_id in profiles
        ]
        seen = {p.id for p, _ in managed}
        for profile in await self.profiles.get_profiles_by_creator(caregiver_id):
            if profile.id in seen:
                continue
            managed.append(
                (
                    profile,
                    CaregiverRelation(
                        id=generate_relation_id(caregiver_id, profile.id),
                        caregiver_id=caregiver_id,
                        senior_id=profile.id,
                        relationship=CREATOR_RELATIONSHIP,
                        status=RelationStatus.ACTIVE,
                        created_at=profile.created_at,
                        **RelationPermissions.full().model_dump(),
                    ),
                )
            )
        logger.debug("Caregiver %s manages %d seniors", caregiver_id, len(managed))
        return managed
