# tests/conftest.py
import os

# Configure the environment before any app module reads settings
os.environ["TESTING"] = "1"
os.environ["APP_ENV"] = "test"
os.environ["JWT_SECRET"] = "test-secret"
os.environ["MAX_SEARCH_RADIUS_KM"] = "5"
os.environ["DEFAULT_SEARCH_RADIUS_KM"] = "5"
os.environ["SPAM_FLAG_THRESHOLD"] = "5"
os.environ.pop("SENTRY_DSN", None)

import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402

from app.api.deps import (  # noqa: E402
    get_health_service,
    get_issue_service,
    get_moderation_service,
)
from app.main import create_app  # noqa: E402
from tests.fakes import (  # noqa: E402
    InMemoryStore,
    make_issue_service,
    make_moderation_service,
)


class _HealthyService:
    async def ok(self) -> dict:
        return {"ok": True}


@pytest.fixture
def store() -> InMemoryStore:
    s = InMemoryStore()
    s.add_user(1, "alice")
    s.add_user(2, "bob")
    s.add_user(3, "mod", role="moderator")
    s.add_user(4, "root", role="admin")
    return s


@pytest.fixture
def app(store):
    application = create_app()
    application.dependency_overrides[get_issue_service] = lambda: make_issue_service(store)
    application.dependency_overrides[get_moderation_service] = lambda: make_moderation_service(
        store
    )
    application.dependency_overrides[get_health_service] = _HealthyService
    try:
        yield application
    finally:
        application.dependency_overrides.clear()


@pytest_asyncio.fixture
async def app_client(app):
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
