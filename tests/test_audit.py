import asyncio
import json
import logging

from pulselink.audit.service import AuditCategory, AuditService, get_audit_service


def run(coro):
    return asyncio.run(coro)


def test_sensitive_details_are_redacted(caplog):
    svc = AuditService()
    with caplog.at_level(logging.INFO, logger="pulselink.audit.service"):
        run(
            svc.log_event(
                event_type="senior_provisioned",
                category=AuditCategory.PROVISIONING,
                action="create",
                result="success",
                description="Provisioned",
                resource_id="SNR-AAAAAAAAAAAA",
                user_id="cg-1",
                details={
                    "password": "Xy12Ab34",
                    "virtual_account_password": "Xy12Ab34",
                    "senior_email": "senior_SNR-AAAAAAAAAAAA@pulselink.app",
                    "nested": {"systolic": 120, "stage": "provisioned"},
                    "items": [{"notes": "dizzy"}],
                },
            )
        )
    line = [r.getMessage() for r in caplog.records if "audit_event=" in r.getMessage()][-1]
    payload = json.loads(line.split("audit_event=", 1)[1])
    details = payload["details"]
    assert details["password"] == "[REDACTED]"
    assert details["virtual_account_password"] == "[REDACTED]"
    assert details["senior_email"] == "[REDACTED]"
    assert details["nested"] == {"systolic": "[REDACTED]", "stage": "provisioned"}
    assert details["items"] == [{"notes": "[REDACTED]"}]
    assert "Xy12Ab34" not in line
    assert payload["category"] == "provisioning"


def test_buffer_is_bounded_and_listed_newest_first():
    svc = AuditService(buffer_limit=3)
    for i in range(5):
        run(
            svc.log_event(
                event_type=f"e{i}",
                category=AuditCategory.RELATION,
                action="noop",
                result="success",
                description="",
            )
        )
    listing = run(svc.list_events(limit=2))
    assert listing["total"] == 3
    assert [e["type"] for e in listing["items"]] == ["e4", "e3"]


def test_singleton():
    assert get_audit_service() is get_audit_service()
