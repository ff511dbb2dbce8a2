from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Optional

from fastapi import HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from ..audit.service import AuditService, get_audit_service
from ..config import Settings, get_settings
from ..errors import (
    ExternalServiceError,
    NotFoundError,
    PermissionDeniedError,
    ProvisioningError,
    PulseLinkError,
    ValidationError,
)
from ..health.gateway import HealthRecordGateway
from ..health.store import HealthRecordStore, InMemoryHealthRecordStore, SqlHealthRecordStore
from ..identity.auth import get_current_user
from ..identity.codec import IdentityCodec
from ..policy.evaluator import PermissionEvaluator
from ..profiles.store import InMemoryProfileStore, ProfileStore, SqlProfileStore
from ..provisioning.coordinator import ProvisioningCoordinator
from ..provisioning.issuer import AccountIssuer, HttpAccountIssuer, InMemoryAccountIssuer
from ..relations.service import RelationService
from ..relations.store import InMemoryRelationshipStore, RelationshipStore, SqlRelationshipStore
from ..security.encryption import SecretCipher


@dataclass
class ServiceContainer:
    profiles: ProfileStore
    relations: RelationshipStore
    records: HealthRecordStore
    issuer: AccountIssuer
    audit: AuditService
    evaluator: PermissionEvaluator
    coordinator: ProvisioningCoordinator
    relation_service: RelationService
    health_gateway: HealthRecordGateway


def _assemble(
    profiles: ProfileStore,
    relations: RelationshipStore,
    records: HealthRecordStore,
    issuer: AccountIssuer,
    audit: AuditService,
) -> ServiceContainer:
    evaluator = PermissionEvaluator(relations)
    return ServiceContainer(
        profiles=profiles,
        relations=relations,
        records=records,
        issuer=issuer,
        audit=audit,
        evaluator=evaluator,
        coordinator=ProvisioningCoordinator(
            profiles, relations, records, issuer, evaluator, audit
        ),
        relation_service=RelationService(relations, profiles, evaluator, audit),
        health_gateway=HealthRecordGateway(records, profiles, evaluator, audit),
    )


def build_services(
    session_factory: Callable[[], AsyncSession],
    settings: Optional[Settings] = None,
) -> ServiceContainer:
    settings = settings or get_settings()
    codec = IdentityCodec(settings.virtual_email_prefix, settings.virtual_email_domain)
    return _assemble(
        profiles=SqlProfileStore(session_factory, codec),
        relations=SqlRelationshipStore(
            session_factory, SecretCipher(settings.relation_secret_key)
        ),
        records=SqlHealthRecordStore(session_factory),
        issuer=HttpAccountIssuer(
            settings.account_issuer_url,
            timeout=settings.account_issuer_timeout,
            token=settings.account_issuer_token,
        ),
        audit=get_audit_service(),
    )


def build_in_memory_services(codec: Optional[IdentityCodec] = None) -> ServiceContainer:
    codec = codec or IdentityCodec()
    return _assemble(
        profiles=InMemoryProfileStore(codec),
        relations=InMemoryRelationshipStore(),
        records=InMemoryHealthRecordStore(),
        issuer=InMemoryAccountIssuer(codec),
        audit=AuditService(),
    )


# Set by pulselink.main at startup
_SERVICES: Optional[ServiceContainer] = None


def configure_services(services: Optional[ServiceContainer]) -> None:
    global _SERVICES
    _SERVICES = services


def services_configured() -> bool:
    return _SERVICES is not None


def get_services() -> ServiceContainer:
    if _SERVICES is None:
        raise HTTPException(status_code=500, detail="Services not configured")
    return _SERVICES


def http_error(e: PulseLinkError) -> HTTPException:
    if isinstance(e, ValidationError):
        return HTTPException(status_code=422, detail=e.message)
    if isinstance(e, PermissionDeniedError):
        return HTTPException(status_code=403, detail=e.message)
    if isinstance(e, NotFoundError):
        return HTTPException(status_code=404, detail=e.message)
    if isinstance(e, ProvisioningError):
        detail = {
            "message": e.message,
            "code": e.code,
            "stage": e.stage.value if e.stage else None,
            "profile_id": e.profile_id,
            "account_id": e.account_id,
        }
        status = 502 if isinstance(e, ExternalServiceError) else 500
        return HTTPException(status_code=status, detail=detail)
    return HTTPException(status_code=500, detail=e.message)


__all__ = [
    "ServiceContainer",
    "build_services",
    "build_in_memory_services",
    "configure_services",
    "services_configured",
    "get_services",
    "get_current_user",
    "http_error",
]
