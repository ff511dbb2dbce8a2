from __future__ import annotations

from typing import Any, Dict

from fastapi import APIRouter, Depends, status

from ..errors import PulseLinkError
from .dependencies import ServiceContainer, get_current_user, get_services, http_error
from .models import PermissionsUpdate, RelationInfoUpdate, RelationRequest, RelationView

relations_router = APIRouter(prefix="/relations", tags=["relations"])


@relations_router.post(
    "", response_model=RelationView, status_code=status.HTTP_201_CREATED
)
async def request_relation(
    payload: RelationRequest,
    user: Dict[str, Any] = Depends(get_current_user),
    services: ServiceContainer = Depends(get_services),
):
    try:
        relation = await services.relation_service.request_relation(
            caregiver_id=user["id"],
            senior_id=payload.senior_id,
            relationship=payload.relationship,
            nickname=payload.nickname,
            message=payload.message,
        )
    except PulseLinkError as e:
        raise http_error(e) from e
    return RelationView.for_viewer(relation, user["id"])


@relations_router.post("/{relation_id}/approve", response_model=RelationView)
async def approve_relation(
    relation_id: str,
    user: Dict[str, Any] = Depends(get_current_user),
    services: ServiceContainer = Depends(get_services),
):
    try:
        relation = await services.relation_service.approve_relation(relation_id, user["id"])
    except PulseLinkError as e:
        raise http_error(e) from e
    return RelationView.for_viewer(relation, user["id"])


@relations_router.post("/{relation_id}/reject", response_model=RelationView)
async def reject_relation(
    relation_id: str,
    user: Dict[str, Any] = Depends(get_current_user),
    services: ServiceContainer = Depends(get_services),
):
    try:
        relation = await services.relation_service.reject_relation(relation_id, user["id"])
    except PulseLinkError as e:
        raise http_error(e) from e
    return RelationView.for_viewer(relation, user["id"])


@relations_router.put("/{relation_id}/permissions", response_model=RelationView)
async def update_permissions(
    relation_id: str,
    payload: PermissionsUpdate,
    user: Dict[str, Any] = Depends(get_current_user),
    services: ServiceContainer = Depends(get_services),
):
    try:
        relation = await services.relation_service.update_permissions(
            relation_id, user["id"], payload.to_permissions()
        )
    except PulseLinkError as e:
        raise http_error(e) from e
    return RelationView.for_viewer(relation, user["id"])


@relations_router.patch("/{relation_id}", response_model=RelationView)
async def update_relation_info(
    relation_id: str,
    payload: RelationInfoUpdate,
    user: Dict[str, Any] = Depends(get_current_user),
    services: ServiceContainer = Depends(get_services),
):
    try:
        relation = await services.relation_service.update_relation_info(
            relation_id, user["id"], payload.relationship, payload.nickname
        )
    except PulseLinkError as e:
        raise http_error(e) from e
    return RelationView.for_viewer(relation, user["id"])


@relations_router.delete("/{relation_id}")
async def remove_relation(
    relation_id: str,
    user: Dict[str, Any] = Depends(get_current_user),
    services: ServiceContainer = Depends(get_services),
):
    try:
        removed = await services.relation_service.remove_relation(relation_id, user["id"])
    except PulseLinkError as e:
        raise http_error(e) from e
    return {"status": "ok", "removed": removed}
