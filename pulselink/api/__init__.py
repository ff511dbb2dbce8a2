"""
HTTP endpoints for caregivers and seniors.

Provides bearer-authenticated access to:
- Senior provisioning and deletion
- Caregiver link requests and permissions
- Health record reads and writes
"""

from .health import health_router
from .relations import relations_router
from .seniors import seniors_router
from .dependencies import configure_services, get_services  # re-export

__all__ = [
    "health_router",
    "relations_router",
    "seniors_router",
    "configure_services",
    "get_services",
]
