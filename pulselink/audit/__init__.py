from .service import AuditCategory, AuditService, get_audit_service

__all__ = ["AuditCategory", "AuditService", "get_audit_service"]
