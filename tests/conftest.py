"""Test configuration and fixtures."""

import os
from collections.abc import AsyncGenerator
from datetime import date, timedelta

import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from app.core.database import Base, get_db
from app.core.deps import get_notifier, get_storage
from app.core.permissions import Role
from app.core.security import get_password_hash
from app.models.feature import Feature, PricingType, SchoolFeature
from app.models.school import Branch, School
from app.models.user import User
from app.services.notifications import Notifier
from main import app

# SQLite by default; point TEST_DATABASE_URL at a Postgres test database to run there
TEST_DATABASE_URL = os.environ.get(
    "TEST_DATABASE_URL", "sqlite+aiosqlite:///./test_school_billing.db"
)

# Create test engine with NullPool to avoid connection issues
test_engine = create_async_engine(
    TEST_DATABASE_URL,
    echo=False,
    poolclass=NullPool,
)
test_session_maker = async_sessionmaker(
    test_engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
    """Override database dependency for tests."""
    async with test_session_maker() as session:
        yield session


class FakeEmailSender:
    """Records emails instead of talking to SMTP."""

    configured = True

    def __init__(self, fail: bool = False) -> None:
        self.fail = fail
        self.sent: list[dict] = []

    def send_email(self, to: str, subject: str, html: str) -> bool:
        if self.fail:
            raise ConnectionError("SMTP server unreachable")
        self.sent.append({"to": to, "subject": subject, "html": html})
        return True


class FakeMessageSender:
    """Records WhatsApp/SMS messages instead of calling Twilio."""

    configured = True

    def __init__(self, fail: bool = False) -> None:
        self.fail = fail
        self.sent: list[dict] = []

    def send_message(self, to: str, body: str, channel: str) -> bool:
        if self.fail:
            raise ConnectionError("Twilio unavailable")
        self.sent.append({"to": to, "body": body, "channel": channel})
        return True


class FakeStorage:
    """Keeps uploads in memory."""

    def __init__(self) -> None:
        self.files: dict[str, bytes] = {}

    async def upload(self, content, filename, content_type, folder):
        name = f"{folder}/{filename}"
        self.files[name] = content
        return {"url": f"https://cdn.test/{name}", "filename": filename}


@pytest_asyncio.fixture(scope="function")
async def setup_database() -> AsyncGenerator[None, None]:
    """Create test database tables before each test that needs it."""
    app.dependency_overrides[get_db] = override_get_db

    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    app.dependency_overrides.pop(get_db, None)


@pytest_asyncio.fixture
async def db(setup_database: None) -> AsyncGenerator[AsyncSession, None]:
    """Get database session for tests."""
    async with test_session_maker() as session:
        yield session


@pytest_asyncio.fixture
async def email_sender() -> FakeEmailSender:
    return FakeEmailSender()


@pytest_asyncio.fixture
async def message_sender() -> FakeMessageSender:
    return FakeMessageSender()


@pytest_asyncio.fixture
async def storage() -> FakeStorage:
    return FakeStorage()


@pytest_asyncio.fixture
async def client(
    setup_database: None,
    email_sender: FakeEmailSender,
    message_sender: FakeMessageSender,
    storage: FakeStorage,
) -> AsyncGenerator[AsyncClient, None]:
    """Get async HTTP client with fake outbound collaborators."""
    notifier = Notifier(email_sender, message_sender, timeout=5.0)
    app.dependency_overrides[get_notifier] = lambda: notifier
    app.dependency_overrides[get_storage] = lambda: storage

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac

    app.dependency_overrides.pop(get_notifier, None)
    app.dependency_overrides.pop(get_storage, None)


@pytest_asyncio.fixture
async def superadmin(db: AsyncSession) -> User:
    """Create a platform operator."""
    user = User(
        email="admin@platform.test",
        password_hash=get_password_hash("password123"),
        name="Platform Admin",
        role=Role.SUPERADMIN,
        school_id=None,
    )
    db.add(user)
    await db.commit()
    await db.refresh(user)
    return user


@pytest_asyncio.fixture
async def superadmin_token(client: AsyncClient, superadmin: User) -> str:
    """Get auth token for the superadmin."""
    response = await client.post(
        "/api/v1/auth/login",
        json={"email": "admin@platform.test", "password": "password123"},
    )
    return response.json()["access_token"]


@pytest_asyncio.fixture
async def school(db: AsyncSession) -> School:
    """Create a test school with its main branch."""
    school = School(
        name="Greenfield Academy",
        short_name="greenfield",
        email="bursar@greenfield.test",
        phones=["+2348012345678"],
    )
    db.add(school)
    await db.flush()
    branch = Branch(school_id=school.id, name="Main Branch", is_main=True)
    db.add(branch)
    await db.flush()
    school.main_branch_id = branch.id
    await db.commit()
    await db.refresh(school)
    return school


@pytest_asyncio.fixture
async def other_school(db: AsyncSession) -> School:
    """A second tenant."""
    school = School(name="Hilltop College", short_name="hilltop")
    db.add(school)
    await db.commit()
    await db.refresh(school)
    return school


@pytest_asyncio.fixture
async def school_admin(db: AsyncSession, school: School) -> User:
    """School admin of the test school."""
    user = User(
        email="head@greenfield.test",
        password_hash=get_password_hash("password123"),
        name="Head Teacher",
        role=Role.SCHOOL_ADMIN,
        school_id=school.id,
    )
    db.add(user)
    await db.commit()
    await db.refresh(user)
    return user


@pytest_asyncio.fixture
async def school_admin_token(client: AsyncClient, school_admin: User) -> str:
    """Get auth token for the school admin."""
    response = await client.post(
        "/api/v1/auth/login",
        json={"email": "head@greenfield.test", "password": "password123"},
    )
    return response.json()["access_token"]


@pytest_asyncio.fixture
async def features(db: AsyncSession) -> dict[str, Feature]:
    """A small catalog keyed by feature key."""
    catalog = [
        Feature(
            key="attendance",
            name="Attendance",
            price=50_000,
            pricing_type=PricingType.PER_STUDENT,
            menu_links=[
                {"name": "Attendance", "href": "/attendance", "icon": "fas fa-check", "enabled": True}
            ],
        ),
        Feature(
            key="result_checker",
            name="Result Checker",
            price=2_000_000,
            pricing_type=PricingType.PER_TERM,
        ),
        Feature(
            key="sms_alerts",
            name="SMS Alerts",
            price=1_000,
            pricing_type=PricingType.PAY_AS_YOU_GO,
            requires_date_range=True,
        ),
    ]
    db.add_all(catalog)
    await db.commit()
    for feature in catalog:
        await db.refresh(feature)
    return {feature.key: feature for feature in catalog}


@pytest_asyncio.fixture
async def entitled_school(
    db: AsyncSession, school: School, features: dict[str, Feature]
) -> School:
    """Test school with attendance and result_checker enabled, sms_alerts not granted."""
    db.add_all(
        [
            SchoolFeature(school_id=school.id, feature_id=features["attendance"].id, enabled=True),
            SchoolFeature(
                school_id=school.id, feature_id=features["result_checker"].id, enabled=True
            ),
        ]
    )
    await db.commit()
    return school


def auth_header(token: str) -> dict[str, str]:
    """Create authorization header."""
    return {"Authorization": f"Bearer {token}"}


def due_in(days: int) -> str:
    """ISO due date ``days`` from today."""
    return (date.today() + timedelta(days=days)).isoformat()
