"""
Shared fixtures.

The application reads its settings at import time, so the environment is
prepared before anything from ``app`` or ``main`` is imported.
"""

import os
import tempfile
from pathlib import Path
from typing import AsyncGenerator, Optional

_TMP_DIR = tempfile.mkdtemp(prefix="agriconnect-tests-")
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{Path(_TMP_DIR) / 'test.db'}"
os.environ["APP_ENV"] = "test"
os.environ["DEBUG"] = "false"
os.environ["JWT_ACCESS_SECRET"] = "test-access-secret"
os.environ["JWT_REFRESH_SECRET"] = "test-refresh-secret"
os.environ["TELEGRAM_BOT_TOKEN"] = ""
os.environ["TELEGRAM_BOT_USERNAME"] = "AgriConnectTestBot"
os.environ["TELEGRAM_WEBHOOK_SECRET"] = ""
os.environ["SMTP_HOST"] = ""

import httpx  # noqa: E402
import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncSession  # noqa: E402

from app.core.exceptions import DeliveryFailedError  # noqa: E402
from app.core.otp import generate_otp_secret  # noqa: E402
from app.core.rate_limiter import rate_limiter  # noqa: E402
from app.db.session import AsyncSessionLocal, Base, engine, get_db  # noqa: E402
from app.models.user import User, UserRole  # noqa: E402
from app.services.otp_delivery import get_otp_dispatcher  # noqa: E402
from main import app  # noqa: E402


class RecordingDispatcher:
    """Stands in for OtpDispatcher; keeps every code instead of sending it."""

    def __init__(self):
        self.sent = []
        self.notices = []
        self.fail_with: Optional[str] = None

    async def dispatch(self, method, destination, code, verification=False):
        if self.fail_with:
            raise DeliveryFailedError("Failed to send OTP", data={"error": self.fail_with})
        self.sent.append(
            {
                "method": method,
                "destination": destination,
                "code": code,
                "verification": verification,
            }
        )

    async def notify_telegram(self, chat_id, text):
        self.notices.append({"chat_id": chat_id, "text": text})
        return True

    @property
    def last_code(self) -> str:
        return self.sent[-1]["code"]


@pytest.fixture(autouse=True)
def reset_rate_limits():
    rate_limiter.clear()
    yield
    rate_limiter.clear()


@pytest_asyncio.fixture(scope="function")
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with AsyncSessionLocal() as session:
        try:
            yield session
        finally:
            await session.close()

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    # pooled aiosqlite connections are bound to this test's event loop
    await engine.dispose()


@pytest.fixture
def dispatcher() -> RecordingDispatcher:
    return RecordingDispatcher()


@pytest_asyncio.fixture(scope="function")
async def client(
    db_session: AsyncSession,
    dispatcher: RecordingDispatcher,
) -> AsyncGenerator[AsyncClient, None]:
    # No rollback on error: the session is shared with the test, and a
    # rollback expires the objects the test still holds.
    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_otp_dispatcher] = lambda: dispatcher

    transport = ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest.fixture
def make_user(db_session: AsyncSession):
    """Factory inserting a user directly, bypassing registration."""
    counter = {"n": 0}

    async def _make_user(
        mobile_number: Optional[str] = None,
        recovery_email: Optional[str] = None,
        role: UserRole = UserRole.FARMER,
        is_verified: bool = True,
        telegram_chat_id: Optional[str] = "424242",
    ) -> User:
        counter["n"] += 1
        user = User(
            name=f"Test User {counter['n']}",
            mobile_number=mobile_number or f"98765{counter['n']:05d}",
            recovery_email=recovery_email,
            role=role,
            otp_secret=generate_otp_secret(),
            is_verified=is_verified,
            is_telegram_linked=telegram_chat_id is not None,
            telegram_chat_id=telegram_chat_id,
        )
        db_session.add(user)
        await db_session.commit()
        await db_session.refresh(user)
        return user

    return _make_user
