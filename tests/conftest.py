"""
Shared fixtures for the marketplace test suite.

Every test runs against a fresh SQLite file and a private upload
directory under ``tmp_path``.  Service tests use the async ``accounts``
and ``job`` fixtures; API tests use ``client`` and ``auth_headers``,
which go through the HTTP layer only.
"""

from typing import Dict

import pytest
import pytest_asyncio
from fastapi.testclient import TestClient

from freelance_marketplace_api.app.core.config import settings
from freelance_marketplace_api.app.core.db import init_db
from freelance_marketplace_api.app.core.security import create_access_token
from freelance_marketplace_api.app.main import app
from freelance_marketplace_api.app.schemas.job import JobCreate
from freelance_marketplace_api.app.schemas.user import UserCreate
from freelance_marketplace_api.app.services.job_service import JobService
from freelance_marketplace_api.app.services.user_service import UserService


TEST_PASSWORD = "s3cure-password"


@pytest.fixture(autouse=True)
def database(tmp_path, monkeypatch):
    """Point the application at a throwaway database and upload folder."""
    monkeypatch.setattr(settings, "database_url", str(tmp_path / "marketplace-test.db"))
    monkeypatch.setattr(settings, "storage_provider", "local")
    monkeypatch.setattr(settings, "storage_local_path", str(tmp_path / "uploads"))
    monkeypatch.setattr(settings, "admin_static_token", "")
    init_db()
    return tmp_path


# ---------------------------------------------------------------------------
# Service level fixtures
# ---------------------------------------------------------------------------

@pytest_asyncio.fixture
async def accounts():
    """An admin (first account), a client and a developer."""
    admin = await UserService.create_user(
        UserCreate(email="admin@example.com", full_name="Ada Admin", password=TEST_PASSWORD)
    )
    client_user = await UserService.create_user(
        UserCreate(email="client@example.com", full_name="Carl Client", password=TEST_PASSWORD, role="CLIENT")
    )
    developer = await UserService.create_user(
        UserCreate(email="dev@example.com", full_name="Dana Developer", password=TEST_PASSWORD, role="DEVELOPER")
    )
    return {"admin": admin, "client": client_user, "developer": developer}


@pytest_asyncio.fixture
async def job(accounts):
    return await JobService.create_job(
        JobCreate(title="Company website", description="Marketing site with a blog"),
        accounts["client"].id,
    )


# ---------------------------------------------------------------------------
# HTTP fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def client():
    with TestClient(app) as test_client:
        yield test_client


def register_user(client: TestClient, email: str, full_name: str, role: str = "CLIENT") -> Dict:
    response = client.post(
        "/api/v1/users/",
        json={"email": email, "fullName": full_name, "password": TEST_PASSWORD, "role": role},
    )
    assert response.status_code == 201, response.text
    return response.json()


def bearer(email: str) -> Dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token({'sub': email})}"}


@pytest.fixture
def auth_headers(client) -> Dict[str, Dict[str, str]]:
    """Registered admin, client and developer with ready-made auth headers."""
    register_user(client, "admin@example.com", "Ada Admin")
    register_user(client, "client@example.com", "Carl Client", "CLIENT")
    register_user(client, "dev@example.com", "Dana Developer", "DEVELOPER")
    return {
        "admin": bearer("admin@example.com"),
        "client": bearer("client@example.com"),
        "developer": bearer("dev@example.com"),
    }
