from __future__ import annotations

from typing import Any, Dict, List

from fastapi import APIRouter, Depends, status

from ..errors import PulseLinkError
from ..provisioning.models import DeletionCheck, DeletionReport, ProvisionedSenior
from ..relations.models import RelationPermissions
from .dependencies import ServiceContainer, get_current_user, get_services, http_error
from .models import CreateSeniorRequest, ManagedSenior, RelationView

seniors_router = APIRouter(prefix="/seniors", tags=["seniors"])


@seniors_router.post(
    "", response_model=ProvisionedSenior, status_code=status.HTTP_201_CREATED
)
async def create_senior(
    payload: CreateSeniorRequest,
    user: Dict[str, Any] = Depends(get_current_user),
    services: ServiceContainer = Depends(get_services),
):
    try:
        return await services.coordinator.create_senior_identity(
            name=payload.name,
            age=payload.age,
            gender=payload.gender,
            avatar_type=payload.avatar_type,
            creator_id=user["id"],
            password=payload.password,
            relationship=payload.relationship,
            nickname=payload.nickname,
        )
    except PulseLinkError as e:
        raise http_error(e) from e


@seniors_router.get("/managed", response_model=List[ManagedSenior])
async def list_managed_seniors(
    user: Dict[str, Any] = Depends(get_current_user),
    services: ServiceContainer = Depends(get_services),
):
    managed = await services.relation_service.get_managed_seniors(user["id"])
    return [
        ManagedSenior(profile=p, relation=RelationView.for_viewer(r, user["id"]))
        for p, r in managed
    ]


@seniors_router.get("/{senior_id}/deletion-check", response_model=DeletionCheck)
async def deletion_check(
    senior_id: str,
    user: Dict[str, Any] = Depends(get_current_user),
    services: ServiceContainer = Depends(get_services),
):
    try:
        return await services.coordinator.check_deletion_allowed(senior_id, user["id"])
    except PulseLinkError as e:
        raise http_error(e) from e


@seniors_router.delete("/{senior_id}", response_model=DeletionReport)
async def delete_senior(
    senior_id: str,
    user: Dict[str, Any] = Depends(get_current_user),
    services: ServiceContainer = Depends(get_services),
):
    try:
        return await services.coordinator.delete_senior_identity(senior_id, user["id"])
    except PulseLinkError as e:
        raise http_error(e) from e


@seniors_router.get("/{senior_id}/caregivers", response_model=List[RelationView])
async def list_caregivers(
    senior_id: str,
    user: Dict[str, Any] = Depends(get_current_user),
    services: ServiceContainer = Depends(get_services),
):
    try:
        caregivers = await services.relation_service.get_caregivers_for_senior(
            senior_id, user["id"]
        )
    except PulseLinkError as e:
        raise http_error(e) from e
    return [RelationView.for_viewer(r, user["id"]) for r in caregivers]


@seniors_router.get(
    "/{senior_id}/pending-requests", response_model=List[RelationView]
)
async def list_pending_requests(
    senior_id: str,
    user: Dict[str, Any] = Depends(get_current_user),
    services: ServiceContainer = Depends(get_services),
):
    try:
        pending = await services.relation_service.get_pending_requests(
            senior_id, user["id"]
        )
    except PulseLinkError as e:
        raise http_error(e) from e
    return [RelationView.for_viewer(r, user["id"]) for r in pending]


@seniors_router.get("/{senior_id}/permissions", response_model=RelationPermissions)
async def my_permissions(
    senior_id: str,
    user: Dict[str, Any] = Depends(get_current_user),
    services: ServiceContainer = Depends(get_services),
):
    return await services.evaluator.get_permissions(user["id"], senior_id)
