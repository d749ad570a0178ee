import httpx
import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.pool import NullPool

from shopquotes.main import app
from shopquotes.config import Settings, get_settings
from shopquotes.database import Base, get_db, dispose_engines
from shopquotes.api.deps import get_notifier, get_logo_storage
from shopquotes.services.logo_storage import LogoStorageService
from shopquotes.services.notification_webhook import NotificationWebhookService

# Test database URL (SQLite for testing)
TEST_DATABASE_URL = "sqlite+aiosqlite:///./test_shopquotes.db"

WEBHOOK_URL = "https://hooks.test/webhook/quotes"
WEBHOOK_TOKEN = "test-webhook-token"
STORAGE_URL = "https://storage.test"
STORAGE_KEY = "test-service-key"


def make_settings(**overrides) -> Settings:
    values = {
        "DATABASE_URL": TEST_DATABASE_URL,
        "SUPABASE_URL": STORAGE_URL,
        "SUPABASE_SERVICE_ROLE_KEY": STORAGE_KEY,
        "NOTIFY_WEBHOOK_URL": WEBHOOK_URL,
        "NOTIFY_WEBHOOK_TOKEN": WEBHOOK_TOKEN,
        "ENVIRONMENT": "test",
        "DEBUG": False,
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


class FakeWebhook:
    """Records webhook calls; flip `status_code` or `fail` to simulate outages."""

    def __init__(self):
        self.requests: list[httpx.Request] = []
        self.status_code = 200
        self.fail = False

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.fail:
            raise httpx.ConnectError("connection refused", request=request)
        return httpx.Response(self.status_code, json={"ok": self.status_code < 400})

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)


class FakeStorage:
    """Minimal Storage REST stand-in: bucket creation and object upload."""

    def __init__(self):
        self.requests: list[httpx.Request] = []
        self.upload_status = 200

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if request.url.path.endswith("/storage/v1/bucket"):
            return httpx.Response(409, json={"message": "The resource already exists"})
        if self.upload_status >= 400:
            return httpx.Response(self.upload_status, json={"message": "mime type not supported"})
        return httpx.Response(200, json={"Key": request.url.path})

    @property
    def uploads(self) -> list[httpx.Request]:
        return [r for r in self.requests if "/storage/v1/object/" in r.url.path]

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)


@pytest.fixture
def test_settings() -> Settings:
    return make_settings()


@pytest.fixture
def webhook() -> FakeWebhook:
    return FakeWebhook()


@pytest.fixture
def storage() -> FakeStorage:
    return FakeStorage()


@pytest_asyncio.fixture
async def test_db():
    """Create test database and tables."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        poolclass=NullPool,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async_session = async_sessionmaker(
        engine, class_=AsyncSession, expire_on_commit=False
    )

    async with async_session() as session:
        yield session

    # Engines opened by the app itself (diagnostics) share the same file
    await dispose_engines()

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest_asyncio.fixture
async def client(test_db: AsyncSession, test_settings: Settings, webhook: FakeWebhook, storage: FakeStorage):
    """Create test client with overridden database, settings and outbound HTTP."""

    async def override_get_db():
        yield test_db

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_settings] = lambda: test_settings
    app.dependency_overrides[get_notifier] = lambda: NotificationWebhookService(
        test_settings, transport=webhook.transport
    )
    app.dependency_overrides[get_logo_storage] = lambda: LogoStorageService(
        test_settings, transport=storage.transport
    )

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()
