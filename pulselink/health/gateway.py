"""
Permission-gated access to a senior's health records.

Every write validates the reading first, so out-of-range values are rejected
whatever the caller's permissions. Access is then granted to the senior's own
linked account or to a caregiver whose active relation carries the matching
flag.
"""

from __future__ import annotations

import logging
from datetime import timedelta
from typing import List, Optional, Tuple

from ..audit.service import AuditCategory, AuditService
from ..errors import PermissionDeniedError, ValidationError
from ..monitoring.metrics import permission_denials_total
from ..policy.evaluator import Capability, PermissionEvaluator
from ..profiles.models import utcnow
from ..profiles.store import ProfileStore
from .models import (
    BLOOD_SUGAR_MAX,
    DIASTOLIC_RANGE,
    HEART_RATE_RANGE,
    SYSTOLIC_RANGE,
    WEIGHT_MAX,
    HealthRecord,
    HealthRecordType,
    HealthSummary,
)
from .store import DEFAULT_LIMIT, HealthRecordStore

logger = logging.getLogger(__name__)


def _require_id(value: str, field: str) -> None:
    if not value or not value.strip():
        raise ValidationError(f"{field} must not be blank")


def _check_range(value: int, bounds: Tuple[int, int], label: str) -> None:
    low, high = bounds
    if not low <= value <= high:
        raise ValidationError(f"{label} must be between {low} and {high}, got {value}")


def _check_positive(value: float, maximum: float, label: str) -> None:
    if not 0 < value <= maximum:
        raise ValidationError(f"{label} must be greater than 0 and at most {maximum}, got {value}")


def parse_record_type(value: str) -> HealthRecordType:
    try:
        return HealthRecordType(value)
    except ValueError:
        raise ValidationError(f"Unknown health record type: {value}") from None


class HealthRecordGateway:
    def __init__(
        self,
        records: HealthRecordStore,
        profiles: ProfileStore,
        evaluator: PermissionEvaluator,
        audit_service: Optional[AuditService] = None,
    ):
        self.records = records
        self.profiles = profiles
        self.evaluator = evaluator
        self.audit_service = audit_service or AuditService()

    async def _authorize(
        self, requester_id: str, senior_id: str, capability: Capability, operation: str
    ) -> None:
        _require_id(senior_id, "senior_id")
        _require_id(requester_id, "requester_id")
        profile = await self.profiles.get_profile(senior_id)
        if self.evaluator.is_self(requester_id, profile):
            return
        result = await self.evaluator.evaluate(requester_id, senior_id, capability)
        if result.allowed:
            return
        permission_denials_total.labels(operation=operation).inc()
        await self.audit_service.log_event(
            event_type="health_access_denied",
            category=AuditCategory.SECURITY,
            action=operation,
            result="denied",
            description=f"{capability.value} denied ({result.reason})",
            resource_type="senior_profile",
            resource_id=senior_id,
            user_id=requester_id,
            phi_involved=True,
        )
        raise PermissionDeniedError(
            f"{requester_id} lacks {capability.value} for {senior_id}"
        )

    async def _save(self, record: HealthRecord, operation: str) -> HealthRecord:
        await self._authorize(
            record.recorded_by, record.senior_id, Capability.EDIT_HEALTH, operation
        )
        created = await self.records.create_record(record)
        await self.audit_service.log_event(
            event_type="health_record_saved",
            category=AuditCategory.HEALTH_DATA,
            action=operation,
            result="success",
            description=f"{record.type.value} record stored",
            resource_type="health_record",
            resource_id=created.id,
            user_id=record.recorded_by,
            phi_involved=True,
            details={"senior_id": record.senior_id, "type": record.type.value},
        )
        return created

    # -- reads -------------------------------------------------------------

    async def get_health_summary(self, senior_id: str, requester_id: str) -> HealthSummary:
        await self._authorize(requester_id, senior_id, Capability.VIEW_HEALTH, "get_health_summary")
        return HealthSummary(
            senior_id=senior_id,
            latest_blood_pressure=await self.records.get_latest_record(
                senior_id, HealthRecordType.BLOOD_PRESSURE
            ),
            latest_heart_rate=await self.records.get_latest_record(
                senior_id, HealthRecordType.HEART_RATE
            ),
            latest_blood_sugar=await self.records.get_latest_record(
                senior_id, HealthRecordType.BLOOD_SUGAR
            ),
            latest_weight=await self.records.get_latest_record(
                senior_id, HealthRecordType.WEIGHT
            ),
        )

    async def get_latest_records(
        self, senior_id: str, requester_id: str, limit: int = 10
    ) -> List[HealthRecord]:
        await self._authorize(requester_id, senior_id, Capability.VIEW_HEALTH, "get_latest_records")
        return await self.records.get_latest_records(senior_id, limit=limit)

    async def get_records_by_type(
        self,
        senior_id: str,
        requester_id: str,
        record_type: str,
        limit: int = DEFAULT_LIMIT,
    ) -> List[HealthRecord]:
        parsed = parse_record_type(record_type)
        await self._authorize(requester_id, senior_id, Capability.VIEW_HEALTH, "get_records_by_type")
        return await self.records.get_records_by_type(senior_id, parsed, limit=limit)

    async def get_average_blood_pressure(
        self, senior_id: str, requester_id: str, days: int = 7
    ) -> Optional[Tuple[float, float]]:
        """Mean (systolic, diastolic) over the last ``days`` days, or None."""
        if days < 1:
            raise ValidationError("days must be at least 1")
        await self._authorize(
            requester_id, senior_id, Capability.VIEW_HEALTH, "get_average_blood_pressure"
        )
        end = utcnow()
        records = await self.records.get_records_in_range(
            senior_id, end - timedelta(days=days), end, HealthRecordType.BLOOD_PRESSURE
        )
        systolic = [r.systolic for r in records if r.systolic is not None]
        diastolic = [r.diastolic for r in records if r.diastolic is not None]
        if not systolic or not diastolic:
            return None
        return sum(systolic) / len(systolic), sum(diastolic) / len(diastolic)

    async def get_average_heart_rate(
        self, senior_id: str, requester_id: str, days: int = 7
    ) -> Optional[float]:
        if days < 1:
            raise ValidationError("days must be at least 1")
        await self._authorize(
            requester_id, senior_id, Capability.VIEW_HEALTH, "get_average_heart_rate"
        )
        end = utcnow()
        records = await self.records.get_records_in_range(
            senior_id, end - timedelta(days=days), end, HealthRecordType.HEART_RATE
        )
        rates = [r.heart_rate for r in records if r.heart_rate is not None]
        if not rates:
            return None
        return sum(rates) / len(rates)

    # -- writes ------------------------------------------------------------

    async def save_blood_pressure(
        self,
        senior_id: str,
        recorded_by: str,
        systolic: int,
        diastolic: int,
        heart_rate: Optional[int] = None,
        notes: Optional[str] = None,
    ) -> HealthRecord:
        _check_range(systolic, SYSTOLIC_RANGE, "Systolic pressure")
        _check_range(diastolic, DIASTOLIC_RANGE, "Diastolic pressure")
        if systolic <= diastolic:
            raise ValidationError("Systolic pressure must be greater than diastolic pressure")
        if heart_rate is not None:
            _check_range(heart_rate, HEART_RATE_RANGE, "Heart rate")
        return await self._save(
            HealthRecord(
                senior_id=senior_id,
                type=HealthRecordType.BLOOD_PRESSURE,
                recorded_by=recorded_by,
                systolic=systolic,
                diastolic=diastolic,
                heart_rate=heart_rate,
                notes=notes or "",
            ),
            "save_blood_pressure",
        )

    async def save_heart_rate(
        self,
        senior_id: str,
        recorded_by: str,
        heart_rate: int,
        notes: Optional[str] = None,
    ) -> HealthRecord:
        _check_range(heart_rate, HEART_RATE_RANGE, "Heart rate")
        return await self._save(
            HealthRecord(
                senior_id=senior_id,
                type=HealthRecordType.HEART_RATE,
                recorded_by=recorded_by,
                heart_rate=heart_rate,
                notes=notes or "",
            ),
            "save_heart_rate",
        )

    async def save_blood_sugar(
        self,
        senior_id: str,
        recorded_by: str,
        blood_sugar: float,
        notes: Optional[str] = None,
    ) -> HealthRecord:
        _check_positive(blood_sugar, BLOOD_SUGAR_MAX, "Blood sugar")
        return await self._save(
            HealthRecord(
                senior_id=senior_id,
                type=HealthRecordType.BLOOD_SUGAR,
                recorded_by=recorded_by,
                blood_sugar=blood_sugar,
                notes=notes or "",
            ),
            "save_blood_sugar",
        )

    async def save_weight(
        self,
        senior_id: str,
        recorded_by: str,
        weight: float,
        notes: Optional[str] = None,
    ) -> HealthRecord:
        _check_positive(weight, WEIGHT_MAX, "Weight")
        return await self._save(
            HealthRecord(
                senior_id=senior_id,
                type=HealthRecordType.WEIGHT,
                recorded_by=recorded_by,
                weight=weight,
                notes=notes or "",
            ),
            "save_weight",
        )
