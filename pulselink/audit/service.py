"""
Audit logging for provisioning, relation changes and health-data access.

Events are emitted as structured ``audit_event=`` log lines and kept in a
bounded in-memory buffer for listing. Only meta-information is logged;
credentials, contact details and vital-sign values are redacted.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional
import json
import logging


class AuditCategory(str, Enum):
    PROVISIONING = "provisioning"
    RELATION = "relation"
    HEALTH_DATA = "health_data"
    SECURITY = "security"


logger = logging.getLogger(__name__)

_EVENT_BUFFER_LIMIT = 1000


class AuditService:
    SENSITIVE_KEYS = {
        "password",
        "virtual_account_password",
        "token",
        "email",
        "email_address",
        "phone",
        "phone_number",
        "address",
        "systolic",
        "diastolic",
        "heart_rate",
        "blood_sugar",
        "weight",
        "notes",
    }

    def __init__(self, buffer_limit: int = _EVENT_BUFFER_LIMIT):
        self.buffer_limit = buffer_limit
        self._events: list[dict] = []

    @classmethod
    def _sanitize(cls, data: Any) -> Any:
        """Recursively redact sensitive keys."""
        if isinstance(data, dict):
            out: Dict[str, Any] = {}
            for k, v in data.items():
                key_l = str(k).lower()
                if key_l in cls.SENSITIVE_KEYS or any(
                    t in key_l for t in ("password", "secret", "email")
                ):
                    out[k] = "[REDACTED]"
                else:
                    out[k] = cls._sanitize(v)
            return out
        if isinstance(data, (list, tuple)):
            return [cls._sanitize(x) for x in list(data)[:50]]  # cap length
        if isinstance(data, Enum):
            return data.value
        if isinstance(data, (str, int, float, bool)) or data is None:
            return data
        return str(data)

    async def log_event(
        self,
        event_type: str,
        category: AuditCategory,
        action: str,
        result: str,
        description: str,
        resource_type: Optional[str] = None,
        resource_id: Optional[str] = None,
        user_id: Optional[str] = None,
        phi_involved: bool = False,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        payload = {
            "type": event_type,
            "category": category.value if isinstance(category, AuditCategory) else str(category),
            "action": action,
            "result": result,
            "phi_involved": bool(phi_involved),
            "resource_type": resource_type,
            "resource_id": resource_id,
            "user_id": user_id,
            "description": description,
            "details": self._sanitize(details or {}),
            "ts": datetime.now(tz=timezone.utc).isoformat(),
        }
        logger.info("audit_event=%s", json.dumps(payload, separators=(",", ":")))
        self._events.append(payload)
        if len(self._events) > self.buffer_limit:
            del self._events[: len(self._events) - self.buffer_limit]

    async def list_events(self, limit: int = 100, offset: int = 0) -> dict:
        items = list(reversed(self._events))
        return {
            "items": items[offset : offset + limit],
            "total": len(self._events),
            "limit": limit,
            "offset": offset,
        }


_AUDIT_SERVICE: Optional[AuditService] = None


def get_audit_service() -> AuditService:
    global _AUDIT_SERVICE
    if _AUDIT_SERVICE is None:
        _AUDIT_SERVICE = AuditService()
    return _AUDIT_SERVICE
