from prometheus_client import CollectorRegistry, Counter, Histogram
from prometheus_client import generate_latest, CONTENT_TYPE_LATEST
from fastapi import APIRouter
from fastapi.responses import Response

registry = CollectorRegistry()

provisioning_total = Counter(
    "pulselink_provisioning_total",
    "Senior provisioning attempts by outcome and failed stage",
    ["outcome", "stage"],
    registry=registry,
)

provisioning_duration = Histogram(
    "pulselink_provisioning_duration_seconds",
    "Duration of the senior provisioning saga",
    registry=registry,
)

deletion_total = Counter(
    "pulselink_deletion_total",
    "Senior deletion attempts by outcome",
    ["outcome"],
    registry=registry,
)

deletion_step_failures_total = Counter(
    "pulselink_deletion_step_failures_total",
    "Best-effort deletion steps that failed",
    ["step"],
    registry=registry,
)

permission_denials_total = Counter(
    "pulselink_permission_denials_total",
    "Requests denied by the permission evaluator",
    ["operation"],
    registry=registry,
)

metrics_router = APIRouter()


@metrics_router.get("/metrics")
async def get_metrics():
    return Response(generate_latest(registry), media_type=CONTENT_TYPE_LATEST)
