"""
Provisioning saga stages and results.
"""

import json
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field

from ..profiles.models import SeniorProfile
from ..relations.models import CaregiverRelation

LOGIN_PAYLOAD_TYPE = "pulselink_login"


class ProvisioningStage(str, Enum):
    """Last stage that committed; errors carry the stage they failed after."""

    VALIDATING = "validating"
    PROFILE_CREATED = "profile_created"
    ACCOUNT_ISSUED = "account_issued"
    RELATION_CREATED = "relation_created"
    PROVISIONED = "provisioned"


class IssuedAccount(BaseModel):
    account_id: str
    email: str
    password: str


class ProvisionedSenior(BaseModel):
    profile: SeniorProfile
    email: str
    password: str
    account_id: str
    relation: CaregiverRelation
    login_payload: str


class DeletionReport(BaseModel):
    senior_id: str
    deleted_profile: bool = False
    deleted_health_records: int = 0
    deleted_relations: int = 0
    deleted_account: bool = False
    failures: List[str] = Field(default_factory=list)

    @property
    def complete(self) -> bool:
        return self.deleted_profile and self.deleted_account and not self.failures


class DeletionCheck(BaseModel):
    can_delete: bool
    has_other_caregivers: bool
    total_active_relations: int
    other_caregivers_info: List[str] = Field(default_factory=list)
    senior_name: str = ""


def build_login_payload(senior_id: str, password: str) -> str:
    """JSON document a caregiver renders as a QR code for the senior's device."""
    return json.dumps({"type": LOGIN_PAYLOAD_TYPE, "id": senior_id, "password": password})


def parse_login_payload(payload: str) -> Optional[dict]:
    try:
        data = json.loads(payload)
    except (TypeError, ValueError):
        return None
    if not isinstance(data, dict) or data.get("type") != LOGIN_PAYLOAD_TYPE:
        return None
    if not data.get("id") or "password" not in data:
        return None
    return data
