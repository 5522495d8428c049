import gc
import os
from pathlib import Path

import pytest
from alembic import command
from alembic.config import Config
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, event, text
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import NullPool

# Set test environment before importing app/settings
os.environ["ENV"] = "test"
os.environ["JWT_SECRET"] = "test-jwt-secret-0123456789"
os.environ["LOG_LEVEL"] = "WARNING"

from garage.app.main import app
from garage.app.config.settings import settings
from garage.app.core.security import create_access_token
from garage.app.db.repo.garages_repo import create_garage, set_monthly_quota
from garage.app.db.session import get_db
from garage.app.providers.registry import registry
from garage.app.providers.types import ChatCompletion, ProviderHealth
from garage.app.services.rate_limit import RateLimiter, set_rate_limiter

GARAGE_ID = "11111111-1111-1111-1111-111111111111"
OTHER_GARAGE_ID = "22222222-2222-2222-2222-222222222222"


class FakeProvider:
    """Fake provider for testing AI features."""

    provider_id = "fake"
    display_name = "Fake Provider"

    def __init__(self, content="Voici l'explication du devis.", error: Exception | None = None):
        self.content = content
        self.error = error
        self.calls: list[list[dict]] = []

    async def chat_once(self, messages, model=None):
        self.calls.append(messages)
        if self.error is not None:
            raise self.error
        return ChatCompletion(
            content=self.content,
            model="fake-model",
            usage={"prompt_tokens": 12, "completion_tokens": 7, "total_tokens": 19},
        )

    async def healthcheck(self):
        return ProviderHealth(ok=True, detail="Fake provider is healthy")


class FakeClock:
    """Manually advanced monotonic clock for the rate limiter."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def _auth_headers(garage_id: str | None = GARAGE_ID, role: str = "user", user_id: str = "user-1") -> dict:
    token, _ = create_access_token(user_id, garage_id, role=role)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def auth_headers():
    """Build bearer headers: auth_headers(garage_id=..., role=...)."""
    return _auth_headers


@pytest.fixture
def admin_headers():
    return _auth_headers(garage_id=None, role="admin", user_id="admin-1")


@pytest.fixture(scope="session")
def project_root():
    return Path(__file__).resolve().parent.parent.parent


@pytest.fixture
def tmp_db_path(tmp_path):
    return tmp_path / "test.db"


@pytest.fixture
def engine(tmp_db_path):
    db_url = f"sqlite:///{tmp_db_path}"
    engine = create_engine(
        db_url,
        poolclass=NullPool,
        connect_args={"check_same_thread": False, "timeout": 30},
    )

    # Same constraint enforcement as the application engine
    @event.listens_for(engine, "connect")
    def _enable_foreign_keys(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    # Force journal mode DELETE to avoid WAL locking on Windows
    with engine.connect() as conn:
        conn.execute(text("PRAGMA journal_mode=DELETE;"))
        conn.execute(text("PRAGMA synchronous=NORMAL;"))
    yield engine
    engine.dispose()


def apply_migrations(db_url, project_root):
    cfg = Config(str(project_root / "garage" / "alembic.ini"))
    cfg.set_main_option("script_location", str(project_root / "garage" / "migrations"))
    cfg.set_main_option("sqlalchemy.url", db_url)
    command.upgrade(cfg, "head")


@pytest.fixture
def db_session(engine, tmp_db_path, project_root):
    apply_migrations(f"sqlite:///{tmp_db_path}", project_root)
    SessionLocal = sessionmaker(bind=engine)
    session = SessionLocal()
    yield session
    session.close()
    # Force garbage collection to release locks
    gc.collect()


@pytest.fixture
def garages(db_session):
    """Two garages; the first one capped at 3 AI requests a month."""
    create_garage(db_session, GARAGE_ID, name="Garage du Centre")
    create_garage(db_session, OTHER_GARAGE_ID, name="Auto Service Nord")
    set_monthly_quota(db_session, GARAGE_ID, 3)
    db_session.commit()
    return GARAGE_ID, OTHER_GARAGE_ID


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def rate_limiter(clock):
    limiter = RateLimiter(max_requests=10, window_seconds=60, clock=clock)
    set_rate_limiter(limiter)
    yield limiter
    set_rate_limiter(None)


@pytest.fixture
def fake_provider():
    return FakeProvider()


@pytest.fixture
def client(db_session, rate_limiter, fake_provider, monkeypatch):
    monkeypatch.setattr(settings, "ai_max_retries", 0)
    monkeypatch.setattr(settings, "ai_quota_fail_open", False)

    def override_get_db():
        yield db_session

    try:
        app.dependency_overrides[get_db] = override_get_db
        with TestClient(app) as c:
            registry.clear()
            registry.register(fake_provider)
            yield c
    finally:
        app.dependency_overrides.clear()
        registry.clear()
