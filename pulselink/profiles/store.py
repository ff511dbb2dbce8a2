"""
Profile storage: the ``senior_profiles`` collection.

``ProfileStore`` is the interface the provisioning saga and the gateways
depend on. ``SqlProfileStore`` persists through async SQLAlchemy;
``InMemoryProfileStore`` keeps documents in a dict for tests and local runs.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Callable, Dict, List, Optional

from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from ..db_models import SeniorProfileRow, as_utc
from ..identity.codec import IdentityCodec
from .models import RegistrationType, SeniorProfile

logger = logging.getLogger(__name__)

MAX_ID_ATTEMPTS = 5
# Fields that never change after creation
IMMUTABLE_FIELDS = {"id", "creator_id", "created_at", "registration_type"}


class ProfileStore(ABC):
    def __init__(self, codec: Optional[IdentityCodec] = None):
        self.codec = codec or IdentityCodec()

    @abstractmethod
    async def create_profile(self, profile: SeniorProfile) -> SeniorProfile:
        """Persist a profile, assigning a fresh identity when ``id`` is empty."""

    @abstractmethod
    async def get_profile(self, profile_id: str) -> Optional[SeniorProfile]: ...

    @abstractmethod
    async def get_profile_by_user_id(self, user_id: str) -> Optional[SeniorProfile]: ...

    @abstractmethod
    async def get_profiles_by_creator(self, creator_id: str) -> List[SeniorProfile]: ...

    @abstractmethod
    async def get_profiles(self, profile_ids: List[str]) -> List[SeniorProfile]: ...

    @abstractmethod
    async def update_profile(self, profile: SeniorProfile) -> bool:
        """Update mutable fields; returns False when the profile is absent."""

    @abstractmethod
    async def bind_user_id(self, profile_id: str, user_id: str) -> bool: ...

    @abstractmethod
    async def delete_profile(self, profile_id: str) -> bool: ...

    async def _new_profile_id(self) -> str:
        for _ in range(MAX_ID_ATTEMPTS):
            candidate = self.codec.generate()
            if await self.get_profile(candidate) is None:
                return candidate
            logger.warning("Identity collision on %s, regenerating", candidate)
        raise RuntimeError("Could not allocate a unique senior identity")


def _row_to_profile(row: SeniorProfileRow) -> SeniorProfile:
    return SeniorProfile(
        id=row.id,
        user_id=row.user_id,
        name=row.name,
        age=row.age,
        gender=row.gender or "",
        avatar_type=row.avatar_type or "",
        creator_id=row.creator_id or "",
        created_at=as_utc(row.created_at),
        registration_type=RegistrationType(row.registration_type),
    )


class SqlProfileStore(ProfileStore):
    def __init__(
        self,
        session_factory: Callable[[], AsyncSession],
        codec: Optional[IdentityCodec] = None,
    ):
        super().__init__(codec)
        self.session_factory = session_factory

    async def create_profile(self, profile: SeniorProfile) -> SeniorProfile:
        profile_id = profile.id or await self._new_profile_id()
        created = profile.model_copy(update={"id": profile_id})
        async with self.session_factory() as session:
            session.add(
                SeniorProfileRow(
                    id=created.id,
                    user_id=created.user_id,
                    name=created.name,
                    age=created.age,
                    gender=created.gender,
                    avatar_type=created.avatar_type,
                    creator_id=created.creator_id,
                    created_at=created.created_at,
                    registration_type=created.registration_type.value,
                )
            )
            await session.commit()
        logger.info("Created profile %s", profile_id)
        return created

    async def get_profile(self, profile_id: str) -> Optional[SeniorProfile]:
        async with self.session_factory() as session:
            row = await session.get(SeniorProfileRow, profile_id)
            return _row_to_profile(row) if row else None

    async def get_profile_by_user_id(self, user_id: str) -> Optional[SeniorProfile]:
        async with self.session_factory() as session:
            row = await session.scalar(
                select(SeniorProfileRow).where(SeniorProfileRow.user_id == user_id).limit(1)
            )
            return _row_to_profile(row) if row else None

    async def get_profiles_by_creator(self, creator_id: str) -> List[SeniorProfile]:
        async with self.session_factory() as session:
            result = await session.execute(
                select(SeniorProfileRow).where(SeniorProfileRow.creator_id == creator_id)
            )
            return [_row_to_profile(r) for r in result.scalars().all()]

    async def get_profiles(self, profile_ids: List[str]) -> List[SeniorProfile]:
        if not profile_ids:
            return []
        async with self.session_factory() as session:
            result = await session.execute(
                select(SeniorProfileRow).where(SeniorProfileRow.id.in_(set(profile_ids)))
            )
            return [_row_to_profile(r) for r in result.scalars().all()]

    async def update_profile(self, profile: SeniorProfile) -> bool:
        values = profile.model_dump(exclude=IMMUTABLE_FIELDS)
        async with self.session_factory() as session:
            result = await session.execute(
                update(SeniorProfileRow)
                .where(SeniorProfileRow.id == profile.id)
                .values(**values)
            )
            await session.commit()
        return bool(result.rowcount)

    async def bind_user_id(self, profile_id: str, user_id: str) -> bool:
        async with self.session_factory() as session:
            result = await session.execute(
                update(SeniorProfileRow)
                .where(SeniorProfileRow.id == profile_id)
                .values(user_id=user_id)
            )
            await session.commit()
        logger.info("Bound user %s to profile %s", user_id, profile_id)
        return bool(result.rowcount)

    async def delete_profile(self, profile_id: str) -> bool:
        async with self.session_factory() as session:
            result = await session.execute(
                delete(SeniorProfileRow).where(SeniorProfileRow.id == profile_id)
            )
            await session.commit()
        logger.info("Deleted profile %s", profile_id)
        return bool(result.rowcount)


class InMemoryProfileStore(ProfileStore):
    def __init__(self, codec: Optional[IdentityCodec] = None):
        super().__init__(codec)
        self._profiles: Dict[str, SeniorProfile] = {}

    async def create_profile(self, profile: SeniorProfile) -> SeniorProfile:
        profile_id = profile.id or await self._new_profile_id()
        created = profile.model_copy(update={"id": profile_id})
        self._profiles[profile_id] = created
        return created.model_copy()

    async def get_profile(self, profile_id: str) -> Optional[SeniorProfile]:
        p = self._profiles.get(profile_id)
        return p.model_copy() if p else None

    async def get_profile_by_user_id(self, user_id: str) -> Optional[SeniorProfile]:
        for p in self._profiles.values():
            if p.user_id == user_id:
                return p.model_copy()
        return None

    async def get_profiles_by_creator(self, creator_id: str) -> List[SeniorProfile]:
        return [p.model_copy() for p in self._profiles.values() if p.creator_id == creator_id]

    async def get_profiles(self, profile_ids: List[str]) -> List[SeniorProfile]:
        wanted = set(profile_ids)
        return [p.model_copy() for pid, p in self._profiles.items() if pid in wanted]

    async def update_profile(self, profile: SeniorProfile) -> bool:
        current = self._profiles.get(profile.id)
        if current is None:
            return False
        self._profiles[profile.id] = current.model_copy(
            update=profile.model_dump(exclude=IMMUTABLE_FIELDS)
        )
        return True

    async def bind_user_id(self, profile_id: str, user_id: str) -> bool:
        current = self._profiles.get(profile_id)
        if current is None:
            return False
        self._profiles[profile_id] = current.model_copy(update={"user_id": user_id})
        return True

    async def delete_profile(self, profile_id: str) -> bool:
        return self._profiles.pop(profile_id, None) is not None
