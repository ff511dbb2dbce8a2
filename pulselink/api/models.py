from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from ..profiles.models import SeniorProfile
from ..relations.models import CaregiverRelation, RelationPermissions, RelationStatus


class CreateSeniorRequest(BaseModel):
    name: str = Field(..., max_length=255)
    age: int
    gender: str = ""
    avatar_type: str = ""
    password: Optional[str] = None
    relationship: str = "Son"
    nickname: str = ""


class RelationRequest(BaseModel):
    senior_id: str
    relationship: str = "CAREGIVER"
    nickname: str = ""
    message: str = Field("", max_length=500)


class RelationInfoUpdate(BaseModel):
    relationship: Optional[str] = None
    nickname: Optional[str] = None


class RelationView(BaseModel):
    id: str
    caregiver_id: str
    senior_id: str
    relationship: str
    nickname: str
    message: str
    status: RelationStatus
    can_view_health_data: bool
    can_edit_health_data: bool
    can_view_reminders: bool
    can_edit_reminders: bool
    can_approve_requests: bool
    created_at: datetime
    approved_at: Optional[datetime] = None
    approved_by: Optional[str] = None
    rejected_at: Optional[datetime] = None
    rejected_by: Optional[str] = None
    # Only returned to the caregiver who holds the relation
    virtual_account_password: Optional[str] = None

    @classmethod
    def for_viewer(cls, relation: CaregiverRelation, viewer_id: str) -> "RelationView":
        data = relation.model_dump()
        if relation.caregiver_id != viewer_id:
            data["virtual_account_password"] = None
        return cls(**data)


class PermissionsUpdate(BaseModel):
    """Full replacement of the five capability flags; none may be omitted."""

    can_view_health_data: bool
    can_edit_health_data: bool
    can_view_reminders: bool
    can_edit_reminders: bool
    can_approve_requests: bool

    def to_permissions(self) -> RelationPermissions:
        return RelationPermissions(**self.model_dump())


class ManagedSenior(BaseModel):
    profile: SeniorProfile
    relation: RelationView


class BloodPressureRequest(BaseModel):
    systolic: int
    diastolic: int
    heart_rate: Optional[int] = None
    notes: Optional[str] = None


class HeartRateRequest(BaseModel):
    heart_rate: int
    notes: Optional[str] = None


class BloodSugarRequest(BaseModel):
    blood_sugar: float
    notes: Optional[str] = None


class WeightRequest(BaseModel):
    weight: float
    notes: Optional[str] = None
