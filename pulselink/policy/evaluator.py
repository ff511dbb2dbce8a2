"""
Relation-based permission evaluator.

Resolves what a requester may do with a senior's data by reading the single
relation keyed by (requester, senior):

1. No relation -> deny
2. Relation not active -> deny
3. Active relation -> the capability flag for the action

A senior reading their own data has no relation with themselves. That case is
handled by ``is_self``: callers that have loaded the profile grant full
access when the requester is the profile's linked account. The evaluator
never consults the relation store for it.
"""

from __future__ import annotations

from enum import Enum
from typing import Optional
from dataclasses import dataclass
from datetime import datetime, timezone
import logging
import json

from ..profiles.models import SeniorProfile
from ..relations.models import CaregiverRelation, RelationPermissions
from ..relations.store import RelationshipStore

logger = logging.getLogger(__name__)


class PolicyDecision(str, Enum):
    ALLOW = "allow"
    DENY = "deny"


class Capability(str, Enum):
    VIEW_HEALTH = "can_view_health_data"
    EDIT_HEALTH = "can_edit_health_data"
    VIEW_REMINDERS = "can_view_reminders"
    EDIT_REMINDERS = "can_edit_reminders"
    APPROVE_REQUESTS = "can_approve_requests"


@dataclass
class PolicyResult:
    decision: PolicyDecision
    reason: str

    @property
    def allowed(self) -> bool:
        return self.decision == PolicyDecision.ALLOW


class PermissionEvaluator:
    def __init__(self, relations: RelationshipStore):
        self.relations = relations

    async def evaluate(
        self, requester_id: str, senior_id: str, capability: Capability
    ) -> PolicyResult:
        relation = await self.relations.get_relation(requester_id, senior_id)
        result = self._decide(relation, capability)
        self.audit(requester_id, senior_id, capability.value, result)
        return result

    @staticmethod
    def _decide(
        relation: Optional[CaregiverRelation], capability: Capability
    ) -> PolicyResult:
        if relation is None:
            return PolicyResult(PolicyDecision.DENY, "no_relation")
        if not relation.is_active:
            return PolicyResult(PolicyDecision.DENY, f"relation_{relation.status.value}")
        if getattr(relation, capability.value):
            return PolicyResult(PolicyDecision.ALLOW, "flag_set")
        return PolicyResult(PolicyDecision.DENY, "flag_missing")

    async def can_view(self, requester_id: str, senior_id: str) -> bool:
        return (await self.evaluate(requester_id, senior_id, Capability.VIEW_HEALTH)).allowed

    async def can_edit(self, requester_id: str, senior_id: str) -> bool:
        return (await self.evaluate(requester_id, senior_id, Capability.EDIT_HEALTH)).allowed

    async def can_view_reminders(self, requester_id: str, senior_id: str) -> bool:
        return (
            await self.evaluate(requester_id, senior_id, Capability.VIEW_REMINDERS)
        ).allowed

    async def can_edit_reminders(self, requester_id: str, senior_id: str) -> bool:
        return (
            await self.evaluate(requester_id, senior_id, Capability.EDIT_REMINDERS)
        ).allowed

    async def can_approve_requests(self, requester_id: str, senior_id: str) -> bool:
        return (
            await self.evaluate(requester_id, senior_id, Capability.APPROVE_REQUESTS)
        ).allowed

    async def get_permissions(
        self, requester_id: str, senior_id: str
    ) -> RelationPermissions:
        relation = await self.relations.get_relation(requester_id, senior_id)
        if relation is None or not relation.is_active:
            return RelationPermissions.denied()
        return relation.permissions()

    @staticmethod
    def is_self(requester_id: str, profile: Optional[SeniorProfile]) -> bool:
        return bool(
            requester_id and profile is not None and profile.user_id == requester_id
        )

    def audit(
        self,
        requester_id: str,
        senior_id: str,
        capability: str,
        result: PolicyResult,
    ) -> None:
        payload = {
            "ts": datetime.now(tz=timezone.utc).isoformat(),
            "source": requester_id,
            "target": senior_id,
            "capability": capability,
            "decision": result.decision.value,
            "reason": result.reason,
        }
        logger.info("policy_decision=%s", json.dumps(payload, separators=(",", ":")))
