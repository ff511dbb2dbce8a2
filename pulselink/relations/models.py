"""
Caregiver relation models.

A relation is the authorization edge between a caregiver and a senior. Its id
is derived from the pair, so a caregiver holds at most one relation per
senior. Capability flags only mean something while the relation is active.
"""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field

from ..profiles.models import utcnow


class RelationStatus(str, Enum):
    PENDING = "pending"
    ACTIVE = "active"
    REJECTED = "rejected"


def generate_relation_id(caregiver_id: str, senior_id: str) -> str:
    return f"{caregiver_id}_{senior_id}"


class RelationPermissions(BaseModel):
    can_view_health_data: bool = True
    can_edit_health_data: bool = False
    can_view_reminders: bool = True
    can_edit_reminders: bool = False
    can_approve_requests: bool = False

    @classmethod
    def full(cls) -> "RelationPermissions":
        return cls(
            can_view_health_data=True,
            can_edit_health_data=True,
            can_view_reminders=True,
            can_edit_reminders=True,
            can_approve_requests=True,
        )

    @classmethod
    def denied(cls) -> "RelationPermissions":
        return cls(
            can_view_health_data=False,
            can_edit_health_data=False,
            can_view_reminders=False,
            can_edit_reminders=False,
            can_approve_requests=False,
        )


class CaregiverRelation(BaseModel):
    id: str = ""
    caregiver_id: str
    senior_id: str
    relationship: str = ""  # what the caregiver is to the senior, e.g. "Son"
    nickname: str = ""  # what the caregiver calls the senior, e.g. "Dad"
    message: str = ""
    status: RelationStatus = RelationStatus.PENDING

    can_view_health_data: bool = True
    can_edit_health_data: bool = False
    can_view_reminders: bool = True
    can_edit_reminders: bool = False
    can_approve_requests: bool = False

    # Only set for caregiver-created seniors, so the caregiver can relay it
    virtual_account_password: Optional[str] = None

    created_at: datetime = Field(default_factory=utcnow)
    approved_at: Optional[datetime] = None
    approved_by: Optional[str] = None
    rejected_at: Optional[datetime] = None
    rejected_by: Optional[str] = None

    def with_id(self) -> "CaregiverRelation":
        if self.id:
            return self
        return self.model_copy(
            update={"id": generate_relation_id(self.caregiver_id, self.senior_id)}
        )

    @property
    def is_active(self) -> bool:
        return self.status == RelationStatus.ACTIVE

    @property
    def is_pending(self) -> bool:
        return self.status == RelationStatus.PENDING

    @property
    def is_rejected(self) -> bool:
        return self.status == RelationStatus.REJECTED

    def permissions(self) -> RelationPermissions:
        return RelationPermissions(
            can_view_health_data=self.can_view_health_data,
            can_edit_health_data=self.can_edit_health_data,
            can_view_reminders=self.can_view_reminders,
            can_edit_reminders=self.can_edit_reminders,
            can_approve_requests=self.can_approve_requests,
        )
