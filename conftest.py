import pytest
from fastapi.testclient import TestClient

from pulselink.api.dependencies import build_in_memory_services, configure_services
from pulselink.identity.auth import get_auth_manager


@pytest.fixture
def services():
    return build_in_memory_services()


@pytest.fixture
def auth_headers():
    def _headers(user_id: str) -> dict:
        token = get_auth_manager().generate_user_token(user_id)
        return {"Authorization": f"Bearer {token}"}

    return _headers


@pytest.fixture
def client(services):
    from pulselink.main import app

    configure_services(services)
    try:
        with TestClient(app) as c:
            yield c
    finally:
        configure_services(None)
