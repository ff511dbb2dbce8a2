"""
Health record models and vital-sign limits.
"""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field

from ..profiles.models import utcnow

SYSTOLIC_RANGE = (1, 300)
DIASTOLIC_RANGE = (1, 200)
HEART_RATE_RANGE = (1, 250)
BLOOD_SUGAR_MAX = 50.0  # mmol/L, exclusive lower bound of 0
WEIGHT_MAX = 500.0  # kg, exclusive lower bound of 0


class HealthRecordType(str, Enum):
    BLOOD_PRESSURE = "blood_pressure"
    HEART_RATE = "heart_rate"
    BLOOD_SUGAR = "blood_sugar"
    WEIGHT = "weight"


class HealthRecord(BaseModel):
    id: str = ""
    senior_id: str
    type: HealthRecordType = HealthRecordType.BLOOD_PRESSURE
    recorded_at: datetime = Field(default_factory=utcnow)
    recorded_by: str = ""

    systolic: Optional[int] = None
    diastolic: Optional[int] = None
    heart_rate: Optional[int] = None
    blood_sugar: Optional[float] = None
    weight: Optional[float] = None

    notes: str = ""

    def format_blood_pressure(self) -> str:
        if self.systolic is not None and self.diastolic is not None:
            return f"{self.systolic}/{self.diastolic} mmHg"
        return "--/-- mmHg"

    def format_heart_rate(self) -> str:
        return f"{self.heart_rate} bpm" if self.heart_rate is not None else "-- bpm"

    def format_blood_sugar(self) -> str:
        if self.blood_sugar is None:
            return "-- mmol/L"
        return f"{self.blood_sugar:.1f} mmol/L"


class HealthSummary(BaseModel):
    """Latest reading of each record type, for dashboards."""

    senior_id: str
    latest_blood_pressure: Optional[HealthRecord] = None
    latest_heart_rate: Optional[HealthRecord] = None
    latest_blood_sugar: Optional[HealthRecord] = None
    latest_weight: Optional[HealthRecord] = None

    @property
    def latest_systolic(self) -> Optional[int]:
        return self.latest_blood_pressure.systolic if self.latest_blood_pressure else None

    @property
    def latest_diastolic(self) -> Optional[int]:
        return self.latest_blood_pressure.diastolic if self.latest_blood_pressure else None

    @property
    def latest_heart_rate_value(self) -> Optional[int]:
        if self.latest_heart_rate and self.latest_heart_rate.heart_rate is not None:
            return self.latest_heart_rate.heart_rate
        if self.latest_blood_pressure:
            return self.latest_blood_pressure.heart_rate
        return None
