"""
Relation storage: the ``caregiver_relations`` collection.

Relations are keyed by ``{caregiver_id}_{senior_id}``; writes with an
existing id replace the stored document. Status transitions are plain
updates, so concurrent approve/reject calls on one relation resolve as
last-write-wins.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Callable, Dict, List, Optional

from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from ..db_models import CaregiverRelationRow, as_utc
from ..profiles.models import utcnow
from ..security.encryption import SecretCipher
from .models import (
    CaregiverRelation,
    RelationPermissions,
    RelationStatus,
    generate_relation_id,
)

logger = logging.getLogger(__name__)


class RelationshipStore(ABC):
    @abstractmethod
    async def get_relation(
        self, caregiver_id: str, senior_id: str
    ) -> Optional[CaregiverRelation]: ...

    @abstractmethod
    async def get_relation_by_id(self, relation_id: str) -> Optional[CaregiverRelation]: ...

    @abstractmethod
    async def get_relations_by_caregiver(
        self, caregiver_id: str, status: Optional[RelationStatus] = None
    ) -> List[CaregiverRelation]: ...

    @abstractmethod
    async def get_relations_by_senior(
        self, senior_id: str, status: Optional[RelationStatus] = None
    ) -> List[CaregiverRelation]: ...

    @abstractmethod
    async def create_relation(self, relation: CaregiverRelation) -> CaregiverRelation: ...

    @abstractmethod
    async def approve_relation(self, relation_id: str, approved_by: str) -> bool: ...

    @abstractmethod
    async def reject_relation(self, relation_id: str, rejected_by: str) -> bool: ...

    @abstractmethod
    async def update_permissions(
        self, relation_id: str, permissions: RelationPermissions
    ) -> bool: ...

    @abstractmethod
    async def update_relation_info(
        self,
        relation_id: str,
        relationship: Optional[str] = None,
        nickname: Optional[str] = None,
    ) -> bool: ...

    @abstractmethod
    async def delete_relation(self, relation_id: str) -> bool: ...

    async def get_active_relations_by_caregiver(
        self, caregiver_id: str
    ) -> List[CaregiverRelation]:
        return await self.get_relations_by_caregiver(caregiver_id, RelationStatus.ACTIVE)

    async def get_active_relations_by_senior(self, senior_id: str) -> List[CaregiverRelation]:
        return await self.get_relations_by_senior(senior_id, RelationStatus.ACTIVE)

    async def get_pending_relations_by_senior(self, senior_id: str) -> List[CaregiverRelation]:
        return await self.get_relations_by_senior(senior_id, RelationStatus.PENDING)

    async def has_active_relation(self, caregiver_id: str, senior_id: str) -> bool:
        relation = await self.get_relation(caregiver_id, senior_id)
        return relation is not None and relation.is_active

    async def delete_relation_between(self, caregiver_id: str, senior_id: str) -> bool:
        return await self.delete_relation(generate_relation_id(caregiver_id, senior_id))

    async def delete_relations_by_senior(self, senior_id: str) -> int:
        deleted = 0
        for relation in await self.get_relations_by_senior(senior_id):
            if await self.delete_relation(relation.id):
                deleted += 1
        return deleted


class SqlRelationshipStore(RelationshipStore):
    def __init__(
        self,
        session_factory: Callable[[], AsyncSession],
        cipher: Optional[SecretCipher] = None,
    ):
        self.session_factory = session_factory
        self.cipher = cipher or SecretCipher()

    def _to_model(self, row: CaregiverRelationRow) -> CaregiverRelation:
        return CaregiverRelation(
            id=row.id,
            caregiver_id=row.caregiver_id,
            senior_id=row.senior_id,
            relationship=row.relationship or "",
            nickname=row.nickname or "",
            message=row.message or "",
            status=RelationStatus(row.status),
            can_view_health_data=row.can_view_health_data,
            can_edit_health_data=row.can_edit_health_data,
            can_view_reminders=row.can_view_reminders,
            can_edit_reminders=row.can_edit_reminders,
            can_approve_requests=row.can_approve_requests,
            virtual_account_password=self.cipher.reveal(row.virtual_account_password),
            created_at=as_utc(row.created_at),
            approved_at=as_utc(row.approved_at),
            approved_by=row.approved_by,
            rejected_at=as_utc(row.rejected_at),
            rejected_by=row.rejected_by,
        )

    async def _update(self, relation_id: str, **values) -> bool:
        async with self.session_factory() as session:
            result = await session.execute(
                update(CaregiverRelationRow)
                .where(CaregiverRelationRow.id == relation_id)
                .values(**values)
            )
            await session.commit()
        return bool(result.rowcount)

    async def get_relation(
        self, caregiver_id: str, senior_id: str
    ) -> Optional[CaregiverRelation]:
        return await self.get_relation_by_id(generate_relation_id(caregiver_id, senior_id))

    async def get_relation_by_id(self, relation_id: str) -> Optional[CaregiverRelation]:
        async with self.session_factory() as session:
            row = await session.get(CaregiverRelationRow, relation_id)
            return self._to_model(row) if row else None

    async def get_relations_by_caregiver(
        self, caregiver_id: str, status: Optional[RelationStatus] = None
    ) -> List[CaregiverRelation]:
        stmt = select(CaregiverRelationRow).where(
            CaregiverRelationRow.caregiver_id == caregiver_id
        )
        if status is not None:
            stmt = stmt.where(CaregiverRelationRow.status == status.value)
        async with self.session_factory() as session:
            result = await session.execute(stmt)
            return [self._to_model(r) for r in result.scalars().all()]

    async def get_relations_by_senior(
        self, senior_id: str, status: Optional[RelationStatus] = None
    ) -> List[CaregiverRelation]:
        stmt = select(CaregiverRelationRow).where(CaregiverRelationRow.senior_id == senior_id)
        if status is not None:
            stmt = stmt.where(CaregiverRelationRow.status == status.value)
        async with self.session_factory() as session:
            result = await session.execute(stmt)
            return [self._to_model(r) for r in result.scalars().all()]

    async def create_relation(self, relation: CaregiverRelation) -> CaregiverRelation:
        relation = relation.with_id()
        row = CaregiverRelationRow(
            **relation.model_dump(exclude={"status", "virtual_account_password"}),
            status=relation.status.value,
            virtual_account_password=self.cipher.protect(relation.virtual_account_password),
        )
        async with self.session_factory() as session:
            await session.merge(row)
            await session.commit()
        logger.info("Created relation %s (%s)", relation.id, relation.status.value)
        return relation

    async def approve_relation(self, relation_id: str, approved_by: str) -> bool:
        ok = await self._update(
            relation_id,
            status=RelationStatus.ACTIVE.value,
            approved_at=utcnow(),
            approved_by=approved_by,
        )
        logger.info("Approved relation %s by %s", relation_id, approved_by)
        return ok

    async def reject_relation(self, relation_id: str, rejected_by: str) -> bool:
        ok = await self._update(
            relation_id,
            status=RelationStatus.REJECTED.value,
            rejected_at=utcnow(),
            rejected_by=rejected_by,
        )
        logger.info("Rejected relation %s by %s", relation_id, rejected_by)
        return ok

    async def update_permissions(
        self, relation_id: str, permissions: RelationPermissions
    ) -> bool:
        return await self._update(relation_id, **permissions.model_dump())

    async def update_relation_info(
        self,
        relation_id: str,
        relationship: Optional[str] = None,
        nickname: Optional[str] = None,
    ) -> bool:
        values = {}
        if relationship is not None:
            values["relationship"] = relationship
        if nickname is not None:
            values["nickname"] = nickname
        if not values:
            return await self.get_relation_by_id(relation_id) is not None
        return await self._update(relation_id, **values)

    async def delete_relation(self, relation_id: str) -> bool:
        async with self.session_factory() as session:
            result = await session.execute(
                delete(CaregiverRelationRow).where(CaregiverRelationRow.id == relation_id)
            )
            await session.commit()
        logger.info("Deleted relation %s", relation_id)
        return bool(result.rowcount)


class InMemoryRelationshipStore(RelationshipStore):
    def __init__(self) -> None:
        self._relations: Dict[str, CaregiverRelation] = {}

    def _patch(self, relation_id: str, **values) -> bool:
        current = self._relations.get(relation_id)
        if current is None:
            return False
        self._relations[relation_id] = current.model_copy(update=values)
        return True

    async def get_relation(
        self, caregiver_id: str, senior_id: str
    ) -> Optional[CaregiverRelation]:
        return await self.get_relation_by_id(generate_relation_id(caregiver_id, senior_id))

    async def get_relation_by_id(self, relation_id: str) -> Optional[CaregiverRelation]:
        r = self._relations.get(relation_id)
        return r.model_copy() if r else None

    async def get_relations_by_caregiver(
        self, caregiver_id: str, status: Optional[RelationStatus] = None
    ) -> List[CaregiverRelation]:
        return [
            r.model_copy()
            for r in self._relations.values()
            if r.caregiver_id == caregiver_id and (status is None or r.status == status)
        ]

    async def get_relations_by_senior(
        self, senior_id: str, status: Optional[RelationStatus] = None
    ) -> List[CaregiverRelation]:
        return [
            r.model_copy()
            for r in self._relations.values()
            if r.senior_id == senior_id and (status is None or r.status == status)
        ]

    async def create_relation(self, relation: CaregiverRelation) -> CaregiverRelation:
        relation = relation.with_id()
        self._relations[relation.id] = relation
        return relation.model_copy()

    async def approve_relation(self, relation_id: str, approved_by: str) -> bool:
        return self._patch(
            relation_id,
            status=RelationStatus.ACTIVE,
            approved_at=utcnow(),
            approved_by=approved_by,
        )

    async def reject_relation(self, relation_id: str, rejected_by: str) -> bool:
        return self._patch(
            relation_id,
            status=RelationStatus.REJECTED,
            rejected_at=utcnow(),
            rejected_by=rejected_by,
        )

    async def update_permissions(
        self, relation_id: str, permissions: RelationPermissions
    ) -> bool:
        return self._patch(relation_id, **permissions.model_dump())

    async def update_relation_info(
        self,
        relation_id: str,
        relationship: Optional[str] = None,
        nickname: Optional[str] = None,
    ) -> bool:
        values = {}
        if relationship is not None:
            values["relationship"] = relationship
        if nickname is not None:
            values["nickname"] = nickname
        return self._patch(relation_id, **values)

    async def delete_relation(self, relation_id: str) -> bool:
        return self._relations.pop(relation_id, None) is not None
