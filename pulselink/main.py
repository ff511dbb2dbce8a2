from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
import logging
from datetime import datetime, timezone
import os

from .api import health_router, relations_router, seniors_router
from .api.dependencies import build_services, configure_services, services_configured
from .config import get_settings
from .database import async_session_factory, init_schema
from .monitoring.metrics import metrics_router


class AddTraceIdFilter(logging.Filter):
    def filter(self, record):
        if not hasattr(record, "trace_id"):
            record.trace_id = "system"
        return True


logging.basicConfig(
    level=get_settings().log_level,
    format="%(asctime)s - %(name)s - %(levelname)s - trace_id=%(trace_id)s - %(message)s",
)
for _handler in logging.getLogger().handlers:
    _handler.addFilter(AddTraceIdFilter())
logger = logging.getLogger("pulselink")

app = FastAPI(
    title="PulseLink Care Service",
    version="1.0.0",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[o for o in os.getenv("ALLOWED_ORIGINS", "").split(",") if o],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(seniors_router)
app.include_router(relations_router)
app.include_router(health_router)
app.include_router(metrics_router)


@app.get("/health")
async def health_check():
    return {
        "status": "healthy",
        "timestamp": datetime.now(tz=timezone.utc).isoformat(),
        "version": "1.0.0",
        "service": "pulselink",
    }


@app.on_event("startup")
async def startup_event():
    settings = get_settings()
    if services_configured():
        logger.info("Using preconfigured services")
        return
    if settings.dev_mode or os.getenv("DB_INIT", "").lower() in {"1", "true", "yes"}:
        await init_schema()
        logger.info("Database schema ensured")
    configure_services(build_services(async_session_factory, settings))
    logger.info("PulseLink services configured (issuer=%s)", settings.account_issuer_url)
