"""
Senior profile models.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field

MIN_AGE = 1
MAX_AGE = 150


def utcnow() -> datetime:
    return datetime.now(tz=timezone.utc)


class RegistrationType(str, Enum):
    SELF_REGISTERED = "SELF_REGISTERED"
    CAREGIVER_CREATED = "CAREGIVER_CREATED"


class SeniorProfile(BaseModel):
    """Demographic record of a senior; ``id`` is the senior's identity."""

    id: str = ""
    user_id: Optional[str] = None  # linked external account, bound on first login
    name: str
    age: int = Field(..., ge=MIN_AGE, le=MAX_AGE)
    gender: str = ""
    avatar_type: str = ""
    creator_id: str = ""
    created_at: datetime = Field(default_factory=utcnow)
    registration_type: RegistrationType = RegistrationType.CAREGIVER_CREATED

    @property
    def is_self_registered(self) -> bool:
        return self.registration_type == RegistrationType.SELF_REGISTERED

    @property
    def is_caregiver_created(self) -> bool:
        return self.registration_type == RegistrationType.CAREGIVER_CREATED
