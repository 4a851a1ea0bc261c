import os
import tempfile
import uuid
from collections.abc import AsyncGenerator, Callable
from datetime import date, timedelta
from pathlib import Path
from unittest.mock import MagicMock

import pytest
import pytest_asyncio
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

# Tests run against a throwaway SQLite file, never the configured database.
# This must happen before any app module reads settings.
TEST_DB_PATH = Path(tempfile.gettempdir()) / f"frontdesk_test_{uuid.uuid4().hex}.db"
TEST_DATABASE_URL = f"sqlite:///{TEST_DB_PATH}"
os.environ["DATABASE_URL"] = TEST_DATABASE_URL
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key")
os.environ.setdefault("LOG_FORMAT", "console")

from httpx import ASGITransport, AsyncClient  # noqa: E402
from sqlalchemy import insert  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker  # noqa: E402
from sqlalchemy.pool import NullPool  # noqa: E402

from app.core.redis_client import CacheManager, get_cache_manager  # noqa: E402
from app.core.security import create_access_token  # noqa: E402
from app.database import build_engine, get_db  # noqa: E402
from app.dependencies import get_notification_sink  # noqa: E402
from app.main import app  # noqa: E402
from app.models import metadata, schedule_change_requests  # noqa: E402
from app.schemas.appointments import AppointmentCreate  # noqa: E402
from app.schemas.auth import Actor, ActorRole  # noqa: E402
from app.services.booking_service import BookingService  # noqa: E402
from app.services.notification_service import NotificationSink  # noqa: E402

# NullPool: every session gets its own connection, so concurrent sessions
# contend on the database exactly like separate requests would
test_engine = build_engine(TEST_DATABASE_URL, poolclass=NullPool)

TestSessionLocal = async_sessionmaker(
    test_engine,
    class_=AsyncSession,
    expire_on_commit=False,
)

# 2030-03-11 is a Monday
MONDAY = date(2030, 3, 11)
DOCTOR_ID = "doc-1"
PATIENT_ID = "patient-1"


@pytest.fixture(scope="session", autouse=True)
def _remove_test_database():
    yield
    TEST_DB_PATH.unlink(missing_ok=True)


@pytest_asyncio.fixture
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """Create a test database session on fresh tables."""
    async with test_engine.begin() as conn:
        await conn.run_sync(metadata.drop_all)
        await conn.run_sync(metadata.create_all)

    async with TestSessionLocal() as session:
        yield session

    async with test_engine.begin() as conn:
        await conn.run_sync(metadata.drop_all)


@pytest.fixture
def session_factory(db_session: AsyncSession) -> async_sessionmaker[AsyncSession]:
    """Factory for extra independent sessions on the same test database."""
    return TestSessionLocal


@pytest.fixture
def sink(session_factory) -> NotificationSink:
    """Notification sink writing to the test database."""
    return NotificationSink(session_factory)


@pytest.fixture
def broken_sink() -> NotificationSink:
    """Notification sink whose every write fails."""

    def unavailable():
        raise ConnectionError("notification store unavailable")

    return NotificationSink(unavailable)


@pytest.fixture
def mock_cache() -> MagicMock:
    """Cache manager double that always misses."""
    cache = MagicMock(spec=CacheManager)
    cache.get_json.return_value = None
    return cache


@pytest_asyncio.fixture
async def client(
    db_session: AsyncSession,
    sink: NotificationSink,
    mock_cache: MagicMock,
) -> AsyncGenerator[AsyncClient, None]:
    """Create a test HTTP client."""

    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_notification_sink] = lambda: sink
    app.dependency_overrides[get_cache_manager] = lambda: mock_cache

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()


@pytest.fixture
def token_headers() -> Callable[[str, str], dict]:
    """Build bearer headers for a requester id and role."""

    def build(subject: str, role: str) -> dict:
        token = create_access_token(
            data={"sub": subject, "role": role},
            expires_delta=timedelta(minutes=30),
        )
        return {"Authorization": f"Bearer {token}"}

    return build


@pytest.fixture
def patient_headers(token_headers) -> dict:
    return token_headers(PATIENT_ID, "patient")


@pytest.fixture
def doctor_headers(token_headers) -> dict:
    return token_headers(DOCTOR_ID, "doctor")


@pytest.fixture
def receptionist_headers(token_headers) -> dict:
    return token_headers("reception-1", "receptionist")


@pytest.fixture
def admin_headers(token_headers) -> dict:
    return token_headers("admin-1", "admin")


@pytest.fixture
def patient() -> Actor:
    return Actor(id=PATIENT_ID, role=ActorRole.PATIENT)


@pytest.fixture
def doctor() -> Actor:
    return Actor(id=DOCTOR_ID, role=ActorRole.DOCTOR)


@pytest.fixture
def receptionist() -> Actor:
    return Actor(id="reception-1", role=ActorRole.RECEPTIONIST)


@pytest.fixture
def admin() -> Actor:
    return Actor(id="admin-1", role=ActorRole.ADMIN)


@pytest.fixture
def sample_appointment_data() -> dict:
    """Sample booking payload for testing."""
    return {
        "doctor_id": DOCTOR_ID,
        "doctor_name": "Asha Rao",
        "patient_name": "Test Patient",
        "patient_phone": "+91 98765 43210",
        "appointment_date": MONDAY.isoformat(),
        "appointment_time": "09:00",
        "reason": "Regular checkup",
        "payment_amount": 500,
    }


@pytest.fixture
def book(db_session: AsyncSession, patient: Actor):
    """Book an appointment through the booking service and return its id."""

    async def _book(
        appointment_time: str = "09:00",
        appointment_date: date = MONDAY,
        *,
        doctor_id: str = DOCTOR_ID,
        actor: Actor | None = None,
        payment_amount: float = 500,
    ) -> uuid.UUID:
        created = await BookingService(db_session).create_appointment(
            actor or patient,
            AppointmentCreate(
                doctor_id=doctor_id,
                doctor_name="Asha Rao",
                patient_name="Test Patient",
                appointment_date=appointment_date,
                appointment_time=appointment_time,
                payment_amount=payment_amount,
            ),
        )
        return created.appointment_id

    return _book


@pytest.fixture
def schedule_request(db_session: AsyncSession):
    """Insert a pending schedule change request and return its id."""

    async def _create(
        request_type: str = "blockedDates",
        *,
        blocked_dates: list | None = None,
        visiting_hours: dict | None = None,
        doctor_id: str = DOCTOR_ID,
    ) -> uuid.UUID:
        request_id = uuid.uuid4()
        await db_session.execute(
            insert(schedule_change_requests).values(
                id=request_id,
                doctor_id=doctor_id,
                request_type=request_type,
                blocked_dates=blocked_dates,
                visiting_hours=visiting_hours,
                reason="Conference",
                status="pending",
            )
        )
        await db_session.commit()
        return request_id

    return _create
