"""
Health record storage: the ``health_records`` collection.
"""

from __future__ import annotations

import logging
import uuid
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Callable, Dict, List, Optional

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from ..db_models import HealthRecordRow, as_utc
from .models import HealthRecord, HealthRecordType

logger = logging.getLogger(__name__)

DEFAULT_LIMIT = 50


class HealthRecordStore(ABC):
    @abstractmethod
    async def create_record(self, record: HealthRecord) -> HealthRecord:
        """Persist a record under a freshly assigned UUID."""

    @abstractmethod
    async def get_record(self, record_id: str) -> Optional[HealthRecord]: ...

    @abstractmethod
    async def get_records_by_senior(
        self, senior_id: str, limit: int = DEFAULT_LIMIT
    ) -> List[HealthRecord]:
        """Newest first."""

    @abstractmethod
    async def get_records_by_type(
        self, senior_id: str, record_type: HealthRecordType, limit: int = DEFAULT_LIMIT
    ) -> List[HealthRecord]: ...

    @abstractmethod
    async def get_records_in_range(
        self,
        senior_id: str,
        start: datetime,
        end: datetime,
        record_type: Optional[HealthRecordType] = None,
    ) -> List[HealthRecord]: ...

    @abstractmethod
    async def delete_record(self, record_id: str) -> bool: ...

    @abstractmethod
    async def delete_all_records(self, senior_id: str) -> int:
        """Delete every record of a senior in one batch; returns the count."""

    async def get_latest_record(
        self, senior_id: str, record_type: HealthRecordType
    ) -> Optional[HealthRecord]:
        records = await self.get_records_by_type(senior_id, record_type, limit=1)
        return records[0] if records else None

    async def get_latest_records(
        self, senior_id: str, limit: int = 10
    ) -> List[HealthRecord]:
        return await self.get_records_by_senior(senior_id, limit=limit)


def _row_to_record(row: HealthRecordRow) -> HealthRecord:
    return HealthRecord(
        id=row.id,
        senior_id=row.senior_id,
        type=HealthRecordType(row.type),
        recorded_at=as_utc(row.recorded_at),
        recorded_by=row.recorded_by or "",
        systolic=row.systolic,
        diastolic=row.diastolic,
        heart_rate=row.heart_rate,
        blood_sugar=row.blood_sugar,
        weight=row.weight,
        notes=row.notes or "",
    )


class SqlHealthRecordStore(HealthRecordStore):
    def __init__(self, session_factory: Callable[[], AsyncSession]):
        self.session_factory = session_factory

    async def create_record(self, record: HealthRecord) -> HealthRecord:
        created = record.model_copy(update={"id": str(uuid.uuid4())})
        async with self.session_factory() as session:
            session.add(
                HealthRecordRow(
                    **created.model_dump(exclude={"type"}),
                    type=created.type.value,
                )
            )
            await session.commit()
        logger.info("Stored %s record %s for %s", created.type.value, created.id, created.senior_id)
        return created

    async def get_record(self, record_id: str) -> Optional[HealthRecord]:
        async with self.session_factory() as session:
            row = await session.get(HealthRecordRow, record_id)
            return _row_to_record(row) if row else None

    async def get_records_by_senior(
        self, senior_id: str, limit: int = DEFAULT_LIMIT
    ) -> List[HealthRecord]:
        stmt = (
            select(HealthRecordRow)
            .where(HealthRecordRow.senior_id == senior_id)
            .order_by(HealthRecordRow.recorded_at.desc())
            .limit(limit)
        )
        async with self.session_factory() as session:
            result = await session.execute(stmt)
            return [_row_to_record(r) for r in result.scalars().all()]

    async def get_records_by_type(
        self, senior_id: str, record_type: HealthRecordType, limit: int = DEFAULT_LIMIT
    ) -> List[HealthRecord]:
        stmt = (
            select(HealthRecordRow)
            .where(
                HealthRecordRow.senior_id == senior_id,
                HealthRecordRow.type == record_type.value,
            )
            .order_by(HealthRecordRow.recorded_at.desc())
            .limit(limit)
        )
        async with self.session_factory() as session:
            result = await session.execute(stmt)
            return [_row_to_record(r) for r in result.scalars().all()]

    async def get_records_in_range(
        self,
        senior_id: str,
        start: datetime,
        end: datetime,
        record_type: Optional[HealthRecordType] = None,
    ) -> List[HealthRecord]:
        stmt = select(HealthRecordRow).where(
            HealthRecordRow.senior_id == senior_id,
            HealthRecordRow.recorded_at >= start,
            HealthRecordRow.recorded_at <= end,
        )
        if record_type is not None:
            stmt = stmt.where(HealthRecordRow.type == record_type.value)
        stmt = stmt.order_by(HealthRecordRow.recorded_at.desc())
        async with self.session_factory() as session:
            result = await session.execute(stmt)
            return [_row_to_record(r) for r in result.scalars().all()]

    async def delete_record(self, record_id: str) -> bool:
        async with self.session_factory() as session:
            result = await session.execute(
                delete(HealthRecordRow).where(HealthRecordRow.id == record_id)
            )
            await session.commit()
        return bool(result.rowcount)

    async def delete_all_records(self, senior_id: str) -> int:
        async with self.session_factory() as session:
            result = await session.execute(
                delete(HealthRecordRow).where(HealthRecordRow.senior_id == senior_id)
            )
            await session.commit()
        logger.info("Deleted %s health records of %s", result.rowcount, senior_id)
        return int(result.rowcount or 0)


class InMemoryHealthRecordStore(HealthRecordStore):
    def __init__(self) -> None:
        self._records: Dict[str, HealthRecord] = {}

    def _newest_first(self, predicate) -> List[HealthRecord]:
        matched = [r for r in self._records.values() if predicate(r)]
        matched.sort(key=lambda r: r.recorded_at, reverse=True)
        return [r.model_copy() for r in matched]

    async def create_record(self, record: HealthRecord) -> HealthRecord:
        created = record.model_copy(update={"id": str(uuid.uuid4())})
        self._records[created.id] = created
        return created.model_copy()

    async def get_record(self, record_id: str) -> Optional[HealthRecord]:
        r = self._records.get(record_id)
        return r.model_copy() if r else None

    async def get_records_by_senior(
        self, senior_id: str, limit: int = DEFAULT_LIMIT
    ) -> List[HealthRecord]:
        return self._newest_first(lambda r: r.senior_id == senior_id)[:limit]

    async def get_records_by_type(
        self, senior_id: str, record_type: HealthRecordType, limit: int = DEFAULT_LIMIT
    ) -> List[HealthRecord]:
        return self._newest_first(
            lambda r: r.senior_id == senior_id and r.type == record_type
        )[:limit]

    async def get_records_in_range(
        self,
        senior_id: str,
        start: datetime,
        end: datetime,
        record_type: Optional[HealthRecordType] = None,
    ) -> List[HealthRecord]:
        return self._newest_first(
            lambda r: r.senior_id == senior_id
            and start <= r.recorded_at <= end
            and (record_type is None or r.type == record_type)
        )

    async def delete_record(self, record_id: str) -> bool:
        return self._records.pop(record_id, None) is not None

    async def delete_all_records(self, senior_id: str) -> int:
        ids = [rid for rid, r in self._records.items() if r.senior_id == senior_id]
        for rid in ids:
            del self._records[rid]
        return len(ids)
