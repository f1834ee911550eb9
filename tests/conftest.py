import os

# Settings are read at import time
os.environ.setdefault("SECRET_KEY", "test-secret-key-for-telecare")
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["REDIS_ENABLED"] = "false"
os.environ.pop("ADMIN_NOTIFICATION_EMAIL", None)

import pytest
from typing import AsyncGenerator
from unittest.mock import AsyncMock, MagicMock, patch
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import AsyncSession

from telecare.main import app
from telecare.core.security import create_access_token
from telecare.infrastructure.database import engine, AsyncSessionLocal, Base
from telecare.infrastructure.meetings import Meeting
from telecare.infrastructure.payments import PaymentIntent, CaptureResult
from telecare.api.deps import get_payment_gateway, get_meeting_provisioner, get_email_sender
from telecare.domain.auth.models import User, UserRole, UserStatus
import telecare.models  # noqa: F401

CLIENT_PASSWORD = "client-pass-123"
ADMIN_PASSWORD = "admin-pass-123"
JOIN_URL = "https://zoom.us/j/987654321"


@pytest.fixture(scope="function")
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """Create a fresh database for each test."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with AsyncSessionLocal() as session:
        try:
            yield session
        finally:
            await session.close()

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@pytest.fixture
def payment_gateway() -> MagicMock:
    """Gateway that authorizes and captures successfully."""
    gateway = MagicMock()
    gateway.authorize = AsyncMock(return_value=PaymentIntent(
        id="pi_test_123",
        status="requires_capture",
        client_secret="pi_test_123_secret_abc"
    ))
    gateway.capture = AsyncMock(return_value=CaptureResult(status="succeeded"))
    gateway.cancel = AsyncMock(return_value=None)
    return gateway


@pytest.fixture
def meeting_provisioner() -> MagicMock:
    provisioner = MagicMock()
    provisioner.create_meeting = AsyncMock(return_value=Meeting(join_url=JOIN_URL, id="987654321"))
    return provisioner


@pytest.fixture
def email_sender() -> MagicMock:
    sender = MagicMock()
    sender.send_template = AsyncMock(return_value={"id": "email_1"})
    sender.send_html = AsyncMock(return_value={"id": "email_1"})
    sender.send_text = AsyncMock(return_value={"id": "email_1"})
    return sender


@pytest.fixture(autouse=True)
def activation_email_task():
    """Keep Celery from reaching a broker."""
    with patch("telecare.domain.auth.service.send_text_email_task") as task:
        yield task


@pytest.fixture(scope="function")
async def client(
    db_session: AsyncSession,
    payment_gateway: MagicMock,
    meeting_provisioner: MagicMock,
    email_sender: MagicMock
) -> AsyncGenerator[AsyncClient, None]:
    """Create a test client with provider dependency overrides."""
    app.dependency_overrides[get_payment_gateway] = lambda: payment_gateway
    app.dependency_overrides[get_meeting_provisioner] = lambda: meeting_provisioner
    app.dependency_overrides[get_email_sender] = lambda: email_sender

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


async def make_user(
    db: AsyncSession,
    email: str,
    password: str = CLIENT_PASSWORD,
    role: UserRole = UserRole.CLIENT,
    status: UserStatus = UserStatus.ACTIVE,
    name: str = "Test User"
) -> User:
    user = User(
        email=email,
        name=name,
        contact="+14155550100",
        city="Lahore",
        address="12 Mall Road",
        postal_code="54000",
        role=role,
        status=status
    )
    user.set_password(password)
    db.add(user)
    await db.commit()
    await db.refresh(user)
    return user


@pytest.fixture(scope="function")
async def client_user(db_session: AsyncSession) -> User:
    """Create a client user."""
    return await make_user(db_session, "patient@example.com", name="Pat Client")


@pytest.fixture(scope="function")
async def other_client_user(db_session: AsyncSession) -> User:
    return await make_user(db_session, "someone.else@example.com", name="Other Client")


@pytest.fixture(scope="function")
async def admin_user(db_session: AsyncSession) -> User:
    """Create an admin user."""
    return await make_user(
        db_session, "admin@example.com", password=ADMIN_PASSWORD, role=UserRole.ADMIN, name="Ada Admin"
    )


def auth_headers(user: User) -> dict:
    return {"Authorization": f"Bearer {create_access_token(str(user.id))}"}


@pytest.fixture
def client_headers(client_user: User) -> dict:
    return auth_headers(client_user)


@pytest.fixture
def admin_headers(admin_user: User) -> dict:
    return auth_headers(admin_user)
