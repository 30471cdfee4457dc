"""
Test configuration and fixtures.

Provides:
- A temporary SQLite database (aiosqlite) per test
- Services wired to that database with a controllable clock
- JWT token minting for authenticated requests
- HTTPX AsyncClient over the ASGI app
"""
import os
from datetime import datetime, timedelta, timezone

import jwt
import pytest
from httpx import ASGITransport, AsyncClient

# Module import builds a default app; keep it off Firebase and the limiter
os.environ.setdefault("JWT_SECRET", "test-secret")
os.environ["RATE_LIMIT_ENABLED"] = "false"

from db.database import Database
from db.stores import FormStore, SubmissionStore
from main import create_app
from models.base import FormCreate
from services.file_storage import LocalFileStorage
from services.forms_service import FormsService
from services.identity import Identity
from services.submissions_service import SubmissionsService
from utils.config import Settings

TEST_SECRET = "test-secret"

OWNER = Identity(uid="owner-1")
RESPONDENT = Identity(uid="respondent-1")
STRANGER = Identity(uid="stranger-1")


class FrozenClock:
    """Callable clock the services read instead of the wall clock."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now = self.now + timedelta(**kwargs)


def form_definition(**overrides) -> dict:
    """A one-section form: text field f1, select field f2, file field f3."""
    payload = {
        "title": "Job application",
        "description": "Tell us about you",
        "sections": [
            {
                "id": "s1",
                "title": "About you",
                "fields": [
                    {"id": "f1", "type": "text", "label": "Name", "name": "name", "required": True},
                    {"id": "f2", "type": "select", "label": "Color", "name": "color", "options": ["Red", "Blue"]},
                    {"id": "f3", "type": "file", "label": "Resume", "name": "resume"},
                ],
            }
        ],
    }
    payload.update(overrides)
    return payload


# =============================================================================
# Database and services
# =============================================================================

@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        database_url=f"sqlite+aiosqlite:///{tmp_path / 'flexiforms-test.db'}",
        auth_provider="jwt",
        jwt_secret=TEST_SECRET,
        storage_backend="local",
        upload_dir=str(tmp_path / "uploads"),
        rate_limit_enabled=False,
    )


@pytest.fixture
async def database(settings):
    db = Database(settings.database_url)
    await db.connect()
    yield db
    await db.close()


@pytest.fixture
async def session(database):
    async with database.session() as s:
        yield s


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock(datetime(2024, 3, 1, 12, 0, tzinfo=timezone.utc))


@pytest.fixture
def storage(tmp_path) -> LocalFileStorage:
    return LocalFileStorage(str(tmp_path / "uploads"))


@pytest.fixture
def forms_service(session, clock) -> FormsService:
    return FormsService(FormStore(session), clock=clock)


@pytest.fixture
def submissions_service(session, storage, clock) -> SubmissionsService:
    return SubmissionsService(FormStore(session), SubmissionStore(session), storage, clock=clock)


@pytest.fixture
def create_form(forms_service):
    """Create a form owned by OWNER (or `owner`) from form_definition(**overrides)."""

    async def _create(owner: Identity = OWNER, **overrides):
        return await forms_service.create_form(owner, FormCreate.model_validate(form_definition(**overrides)))

    return _create


# =============================================================================
# HTTP
# =============================================================================

@pytest.fixture
def app(settings, database):
    application = create_app(settings)
    # ASGITransport does not run the lifespan; hand the app the open database
    application.state.db = database
    return application


@pytest.fixture
async def client(app):
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as c:
        yield c


def mint_token(uid: str, secret: str = TEST_SECRET, expires_in: timedelta = timedelta(hours=1)) -> str:
    payload = {"userId": uid, "exp": datetime.now(timezone.utc) + expires_in}
    return jwt.encode(payload, secret, algorithm="HS256")


@pytest.fixture
def auth_headers():
    def _headers(uid: str) -> dict:
        return {"Authorization": f"Bearer {mint_token(uid)}"}

    return _headers
