"""Global test fixtures and shared test infrastructure.

Provides:
- Environment variable defaults (must be set before any app import)
- An in-memory SQLite database with the full schema, one per test
- Model factories (make_user) and system credential seeding
- A recording SMS adapter and email sender standing in for the gateways
- An ASGI client bound to the test database, plus token helpers
"""

from __future__ import annotations

import os

# Environment defaults must be set before importing the app, which triggers
# pydantic Settings validation on import.
os.environ.setdefault("SECRET_KEY", "test-secret-key-boot")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")
os.environ.setdefault("REDIS_URL", "redis://localhost:6379/0")
os.environ.setdefault("RATE_LIMIT_STORAGE_URI", "memory://")
os.environ.setdefault("DEFAULT_SMS_PROVIDER", "hubtel")

import re
from typing import Any
from uuid import uuid4

import httpx
import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from app import models  # noqa: F401
from app.core.limiter import limiter
from app.core.security import create_access_token, create_challenge_token
from app.db.base import Base
from app.db.session import get_db
from app.main import app
from app.models import system_config as config_keys
from app.models.user import User
from app.services import notifications as notification_service
from app.services import sms as sms_module
from app.services.delivery import EMAIL, DeliveryResult
from app.services.email import EmailCredentials, ResendEmailSender
from app.services.notification_config import set_system_config
from app.services.sms import HubtelSmsAdapter, SmsCredentials

_CODE_IN_TEXT = re.compile(r"code is: (\d+)")


# ---------------------------------------------------------------------------
# Database
# ---------------------------------------------------------------------------


@pytest_asyncio.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, expire_on_commit=False, autoflush=False)


@pytest_asyncio.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


# ---------------------------------------------------------------------------
# Model factories
# ---------------------------------------------------------------------------


def make_user(
    *,
    email: str | None = "user@example.com",
    phone_number: str | None = "0241234567",
    full_name: str = "Ama Mensah",
    role: str = "user",
    **overrides: Any,
) -> User:
    defaults: dict[str, Any] = dict(
        id=uuid4(),
        email=email,
        full_name=full_name,
        phone_number=phone_number,
        role=role,
        is_active=True,
    )
    defaults.update(overrides)
    return User(**defaults)


@pytest_asyncio.fixture
async def user(db) -> User:
    user = make_user()
    db.add(user)
    await db.commit()
    return user


@pytest_asyncio.fixture
async def sms_credentials(db) -> None:
    """System-wide Hubtel credentials so SMS delivery is configured."""
    await set_system_config(db, key=config_keys.SMS_API_KEY, value="client-id")
    await set_system_config(db, key=config_keys.SMS_API_SECRET, value="client-secret")


@pytest_asyncio.fixture
async def email_credentials(db) -> None:
    await set_system_config(db, key=config_keys.RESEND_API_KEY, value="re_test_key")
    await set_system_config(db, key=config_keys.RESEND_SENDER_EMAIL, value="alerts@example.com")


# ---------------------------------------------------------------------------
# Recording gateways
# ---------------------------------------------------------------------------


class FakeSmsAdapter(HubtelSmsAdapter):
    """Keeps Hubtel's credential rules but records messages instead of calling out."""

    def __init__(self) -> None:
        super().__init__(url="http://sms.test/send")
        self.sent: list[tuple[str, str]] = []
        self.fail_with: str | None = None

    async def send(self, phone: str, message: str, credentials: SmsCredentials) -> DeliveryResult:
        self.check_credentials(credentials)
        self.sent.append((phone, message))
        if self.fail_with:
            return DeliveryResult.failed("sms", provider=self.name, error=self.fail_with)
        return DeliveryResult.sent("sms", provider=self.name, message_id=f"msg-{len(self.sent)}")

    def last_code(self) -> str:
        match = _CODE_IN_TEXT.search(self.sent[-1][1])
        assert match, self.sent[-1][1]
        return match.group(1)


class FakeEmailSender(ResendEmailSender):
    def __init__(self) -> None:
        super().__init__(url="http://email.test/emails", timeout=1.0)
        self.sent: list[dict[str, str]] = []

    async def send(self, to: str, subject: str, html: str, credentials: EmailCredentials) -> DeliveryResult:
        self.check_credentials(credentials)
        self.sent.append({"to": to, "subject": subject, "html": html})
        return DeliveryResult.sent(EMAIL, provider=self.name, message_id=f"email-{len(self.sent)}")


@pytest.fixture
def fake_sms(monkeypatch) -> FakeSmsAdapter:
    adapter = FakeSmsAdapter()
    monkeypatch.setitem(sms_module.ADAPTERS, "hubtel", lambda: adapter)
    return adapter


@pytest.fixture
def fake_email(monkeypatch) -> FakeEmailSender:
    sender = FakeEmailSender()
    monkeypatch.setattr(notification_service, "get_email_sender", lambda: sender)
    return sender


# ---------------------------------------------------------------------------
# HTTP
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _reset_rate_limiter():
    limiter.reset()
    yield
    limiter.reset()


@pytest_asyncio.fixture
async def client(session_factory):
    async def _get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = _get_db
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as http_client:
        yield http_client
    app.dependency_overrides.pop(get_db, None)


def auth_headers(user: User, *, user_agent: str = "pytest-browser/1.0") -> dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token(str(user.id))}", "User-Agent": user_agent}


def challenge_headers(user: User, *, user_agent: str = "pytest-browser/1.0") -> dict[str, str]:
    return {"Authorization": f"Bearer {create_challenge_token(str(user.id))}", "User-Agent": user_agent}
