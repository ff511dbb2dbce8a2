from __future__ import annotations

from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Query, status

from ..errors import PulseLinkError
from ..health.models import HealthRecord, HealthSummary
from .dependencies import ServiceContainer, get_current_user, get_services, http_error
from .models import BloodPressureRequest, BloodSugarRequest, HeartRateRequest, WeightRequest

health_router = APIRouter(prefix="/health-records", tags=["health-records"])


@health_router.get("/{senior_id}/summary", response_model=HealthSummary)
async def get_summary(
    senior_id: str,
    user: Dict[str, Any] = Depends(get_current_user),
    services: ServiceContainer = Depends(get_services),
):
    try:
        return await services.health_gateway.get_health_summary(senior_id, user["id"])
    except PulseLinkError as e:
        raise http_error(e) from e


@health_router.get("/{senior_id}/averages")
async def get_averages(
    senior_id: str,
    days: int = Query(7, ge=1, le=365),
    user: Dict[str, Any] = Depends(get_current_user),
    services: ServiceContainer = Depends(get_services),
):
    gateway = services.health_gateway
    try:
        bp = await gateway.get_average_blood_pressure(senior_id, user["id"], days)
        hr = await gateway.get_average_heart_rate(senior_id, user["id"], days)
    except PulseLinkError as e:
        raise http_error(e) from e
    return {
        "days": days,
        "blood_pressure": {"systolic": bp[0], "diastolic": bp[1]} if bp else None,
        "heart_rate": hr,
    }


@health_router.get("/{senior_id}", response_model=List[HealthRecord])
async def list_records(
    senior_id: str,
    type: Optional[str] = Query(None),
    limit: int = Query(10, ge=1, le=200),
    user: Dict[str, Any] = Depends(get_current_user),
    services: ServiceContainer = Depends(get_services),
):
    gateway = services.health_gateway
    try:
        if type:
            return await gateway.get_records_by_type(senior_id, user["id"], type, limit=limit)
        return await gateway.get_latest_records(senior_id, user["id"], limit=limit)
    except PulseLinkError as e:
        raise http_error(e) from e


@health_router.post(
    "/{senior_id}/blood-pressure",
    response_model=HealthRecord,
    status_code=status.HTTP_201_CREATED,
)
async def save_blood_pressure(
    senior_id: str,
    payload: BloodPressureRequest,
    user: Dict[str, Any] = Depends(get_current_user),
    services: ServiceContainer = Depends(get_services),
):
    try:
        return await services.health_gateway.save_blood_pressure(
            senior_id,
            user["id"],
            payload.systolic,
            payload.diastolic,
            heart_rate=payload.heart_rate,
            notes=payload.notes,
        )
    except PulseLinkError as e:
        raise http_error(e) from e


@health_router.post(
    "/{senior_id}/heart-rate",
    response_model=HealthRecord,
    status_code=status.HTTP_201_CREATED,
)
async def save_heart_rate(
    senior_id: str,
    payload: HeartRateRequest,
    user: Dict[str, Any] = Depends(get_current_user),
    services: ServiceContainer = Depends(get_services),
):
    try:
        return await services.health_gateway.save_heart_rate(
            senior_id, user["id"], payload.heart_rate, notes=payload.notes
        )
    except PulseLinkError as e:
        raise http_error(e) from e


@health_router.post(
    "/{senior_id}/blood-sugar",
    response_model=HealthRecord,
    status_code=status.HTTP_201_CREATED,
)
async def save_blood_sugar(
    senior_id: str,
    payload: BloodSugarRequest,
    user: Dict[str, Any] = Depends(get_current_user),
    services: ServiceContainer = Depends(get_services),
):
    try:
        return await services.health_gateway.save_blood_sugar(
            senior_id, user["id"], payload.blood_sugar, notes=payload.notes
        )
    except PulseLinkError as e:
        raise http_error(e) from e


@health_router.post(
    "/{senior_id}/weight",
    response_model=HealthRecord,
    status_code=status.HTTP_201_CREATED,
)
async def save_weight(
    senior_id: str,
    payload: WeightRequest,
    user: Dict[str, Any] = Depends(get_current_user),
    services: ServiceContainer = Depends(get_services),
):
    try:
        return await services.health_gateway.save_weight(
            senior_id, user["id"], payload.weight, notes=payload.notes
        )
    except PulseLinkError as e:
        raise http_error(e) from e
