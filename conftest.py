import hashlib
import os
import tempfile
import urllib.parse
from typing import AsyncGenerator, Optional

import httpx
import pytest
import pytest_asyncio
from dotenv import load_dotenv
from httpx import AsyncClient, ASGITransport
from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

# Try loading .env.test for local overrides (e.g. a Postgres DATABASE_URL)
env_test_path = os.path.join(os.path.dirname(__file__), ".env.test")
if os.path.exists(env_test_path):
    load_dotenv(env_test_path, override=True)

# Without a configured database the suite runs on a throwaway SQLite file
os.environ.setdefault(
    "DATABASE_URL",
    f"sqlite+aiosqlite:///{os.path.join(tempfile.gettempdir(), 'kvastram-tests.db')}",
)
os.environ.setdefault("ENVIRONMENT", "test")

from libs.auth.dependencies import get_current_user, get_optional_user
from libs.auth.models import AuthUser
from libs.common.config import get_settings
from libs.db.base import Base
from libs.db.session import get_async_db
from services.store_service import models as _store_models  # noqa: F401
from services.store_service.app.main import app
from services.store_service.stripe_client import StripeClient, get_stripe_client

# Clear cached settings to reload with new env vars
get_settings.cache_clear()
settings = get_settings()


def is_postgres() -> bool:
    return settings.DATABASE_URL.startswith("postgresql")


def _test_database_url(tmp_path) -> str:
    if is_postgres():
        return settings.DATABASE_URL.replace("host.docker.internal", "localhost")
    return f"sqlite+aiosqlite:///{tmp_path / 'store.db'}"


@pytest_asyncio.fixture
async def test_engine(tmp_path):
    """
    Fresh schema per test. On SQLite every test gets its own database file;
    on Postgres the tables are created and dropped around each test.
    """
    engine = create_async_engine(_test_database_url(tmp_path), future=True)

    try:
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
    except OperationalError:
        await engine.dispose()
        pytest.skip("Database not available for tests")

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest.fixture
def session_factory(test_engine) -> async_sessionmaker:
    """
    Sessions configured like the app's. Checkout commits for real, so tests
    see committed state rather than running inside a rolled-back savepoint.
    """
    return async_sessionmaker(
        bind=test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


@pytest_asyncio.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    session = session_factory()
    try:
        yield session
    finally:
        await session.close()


# ---------------------------------------------------------------------------
# Outbound services
# ---------------------------------------------------------------------------


class RecordingEmailClient:
    """Stands in for the notifications service; keeps every templated email."""

    def __init__(self):
        self.sent = []

    async def send_template(self, template_type, to_email, template_data) -> bool:
        self.sent.append(
            {"template_type": template_type, "to_email": to_email, "data": template_data}
        )
        return True


@pytest.fixture(autouse=True)
def email_outbox(monkeypatch) -> RecordingEmailClient:
    outbox = RecordingEmailClient()
    monkeypatch.setattr(
        "services.store_service.services.notifications.get_email_client",
        lambda: outbox,
    )
    return outbox


class StripeStub:
    """
    httpx handler that answers like the PaymentIntents API. The intent id is
    derived from the Idempotency-Key so a repeated create returns the same id.
    """

    def __init__(self):
        self.requests: list[httpx.Request] = []
        self.fail_with: Optional[int] = None

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.fail_with:
            return httpx.Response(
                self.fail_with, json={"error": {"message": "Processor unavailable"}}
            )

        form = dict(urllib.parse.parse_qsl(request.content.decode("utf-8")))
        key = request.headers.get("Idempotency-Key", "")
        intent_id = "pi_" + hashlib.sha1(key.encode("utf-8")).hexdigest()[:16]
        return httpx.Response(
            200,
            json={
                "id": intent_id,
                "client_secret": f"{intent_id}_secret",
                "amount": int(form["amount"]),
                "currency": form["currency"],
                "status": "requires_payment_method",
                "metadata": {
                    k[len("metadata["):-1]: v
                    for k, v in form.items()
                    if k.startswith("metadata[")
                },
            },
        )


@pytest.fixture
def stripe_stub() -> StripeStub:
    return StripeStub()


@pytest.fixture
def stripe_client(stripe_stub) -> StripeClient:
    return StripeClient(
        secret_key="sk_test_123",
        base_url="https://stripe.test",
        transport=httpx.MockTransport(stripe_stub),
    )


# ---------------------------------------------------------------------------
# HTTP client + auth
# ---------------------------------------------------------------------------


@pytest_asyncio.fixture
async def client(db_session, stripe_client) -> AsyncGenerator[AsyncClient, None]:
    """
    Yield an AsyncClient with the app and overridden DB and processor dependencies.
    """
    app.dependency_overrides[get_async_db] = lambda: db_session
    app.dependency_overrides[get_stripe_client] = lambda: stripe_client

    async with AsyncClient(
        transport=ASGITransport(app=app), base_url="http://test"
    ) as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest.fixture
def login():
    """
    Authenticate every following request as ``user`` (None for a guest).

    Usage:
        login(AuthUser(user_id="u1", email="buyer@test.com"))
    """

    def _login(user: Optional[AuthUser]):
        app.dependency_overrides[get_optional_user] = lambda: user
        if user is None:
            app.dependency_overrides.pop(get_current_user, None)
        else:
            app.dependency_overrides[get_current_user] = lambda: user
        return user

    yield _login

    app.dependency_overrides.pop(get_optional_user, None)
    app.dependency_overrides.pop(get_current_user, None)


@pytest.fixture
def admin_user(login) -> AuthUser:
    return login(AuthUser(user_id="admin-1", email="admin@test.com", role="admin"))
