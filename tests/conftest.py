"""Shared test fixtures."""

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from coursewatch.config import Settings
from coursewatch.db.base import Base
# Import all models to register with Base.metadata
import coursewatch.db.models  # noqa: F401
from coursewatch.db.models import ClassRow, CourseOfferingRow, ModuleRow, UserRow
from coursewatch.services.academic_calendar import AcademicCalendar
from coursewatch.workers.backends import MemoryQueueBackend
from coursewatch.workers.notification_queue import NotificationQueueService
from coursewatch.workers.queue import DEFAULT_POLICIES, QueuePolicy
from coursewatch.workers.scanner import ComplianceScanner
from factories import ALLOCATION, FACILITATOR, MANAGERS, OTHER_FACILITATOR, TERM_START, RecordingSender


@pytest.fixture
def test_settings():
    return Settings(
        _env_file=None,
        database_url="sqlite+aiosqlite:///",
        queue_backend="memory",
        queue_poll_interval=0.01,
        send_latency_ms=0,
        scheduler_enabled=False,
        term_start_date=TERM_START,
        json_logs=False,
    )


@pytest.fixture
async def db_engine():
    """Create an in-memory SQLite async engine for testing."""
    engine = create_async_engine("sqlite+aiosqlite:///", echo=False)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    return async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def db_session(session_factory):
    """Create a test database session."""
    async with session_factory() as session:
        yield session


@pytest.fixture
async def seeded(session_factory):
    """Two managers, two facilitators, one assigned and one unassigned offering."""
    async with session_factory() as session:
        for user_id in MANAGERS:
            session.add(UserRow(user_id=user_id, email=f"{user_id}@example.edu", role="manager"))
        session.add(UserRow(user_id=FACILITATOR, email="fac.a@example.edu", role="facilitator"))
        session.add(UserRow(user_id=OTHER_FACILITATOR, email="fac.b@example.edu", role="facilitator"))
        session.add(ModuleRow(module_id="mod_web", name="Web Development", code="WEB101"))
        session.add(ClassRow(class_id="cls_2026j", name="2026-J", start_date=TERM_START))
        await session.flush()
        session.add(CourseOfferingRow(
            allocation_id=ALLOCATION,
            module_id="mod_web",
            class_id="cls_2026j",
            trimester="T1",
            intake="FT",
            facilitator_id=FACILITATOR,
        ))
        session.add(CourseOfferingRow(
            allocation_id="alloc_unassigned",
            module_id="mod_web",
            class_id="cls_2026j",
            trimester="T2",
            intake="HT1",
            facilitator_id=None,
        ))
        await session.commit()
    return session_factory


@pytest.fixture
def zero_backoff_policies():
    """Default attempt counts with immediate retries so drain() runs every attempt."""
    return {
        name: QueuePolicy(
            attempts=policy.attempts,
            backoff_type=policy.backoff_type,
            backoff_delay_ms=0,
            remove_on_complete=policy.remove_on_complete,
            remove_on_fail=policy.remove_on_fail,
        )
        for name, policy in DEFAULT_POLICIES.items()
    }


@pytest.fixture
def sender():
    return RecordingSender()


@pytest.fixture
def queue_backend():
    return MemoryQueueBackend()


@pytest.fixture
async def service(seeded, queue_backend, sender, test_settings, zero_backoff_policies):
    svc = NotificationQueueService(
        seeded,
        queue_backend,
        sender,
        settings=test_settings,
        policies=zero_backoff_policies,
    )
    await svc.initialize()
    yield svc
    await svc.cleanup()


@pytest.fixture
def calendar():
    return AcademicCalendar(TERM_START)


@pytest.fixture
def scanner(service, seeded, calendar, test_settings):
    return ComplianceScanner(service, seeded, calendar, test_settings)


@pytest.fixture
def app(db_engine, session_factory):
    """Application instance with in-memory DB and no embedded worker."""
    from coursewatch.main import create_app

    _app = create_app()
    _app.state.db_engine = db_engine
    _app.state.db_session_factory = session_factory
    _app.state.worker = None
    return _app


@pytest.fixture
async def client(app):
    """Async HTTP test client."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
