import os

# Settings are read at import time; keep the app off the production database
os.environ.setdefault("DATABASE_URL", "sqlite:///./engageflow-test.db")
os.environ["RATE_LIMIT_ENABLED"] = "false"

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.orm import sessionmaker

from engageflow.api import deps
from engageflow.db.session import Base, build_engine
from engageflow.main import app
from engageflow.models.job import JobKind
from engageflow.services.engagement.batch import BatchActionCoordinator
from engageflow.services.engagement.state_machine import EngagementStateMachine
from engageflow.services.engagement.store import EngagementItemStore
from engageflow.services.jobs.handlers import (
    AnalyticsSyncHandler,
    ChannelDiscoveryHandler,
    ContentDiscoveryHandler,
)
from engageflow.services.jobs.records import ChannelStore, SearchAnalyticsStore
from engageflow.services.jobs.runner import JobRunner
from engageflow.services.jobs.store import JobStore
from tests.factories import EngagementItemFactory
from tests.fakes import (
    FakeAnalyticsSource,
    FakeChannelSource,
    FakeContentSource,
    FakeDraftGenerator,
    FakeEligibility,
    FakePublisher,
)


@pytest.fixture(scope="function")
def engine(tmp_path):
    """A fresh SQLite database file for each test."""
    engine = build_engine(f"sqlite:///{tmp_path / 'engageflow.db'}")
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=engine)


@pytest.fixture
def db_session(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def job_store(session_factory):
    return JobStore(session_factory)


@pytest.fixture
def item_store(session_factory):
    return EngagementItemStore(session_factory)


@pytest.fixture
def channel_store(session_factory):
    return ChannelStore(session_factory)


@pytest.fixture
def analytics_store(session_factory):
    return SearchAnalyticsStore(session_factory)


@pytest.fixture
def generator():
    return FakeDraftGenerator()


@pytest.fixture
def publisher():
    return FakePublisher()


@pytest.fixture
def eligibility():
    return FakeEligibility()


@pytest.fixture
def content_source():
    return FakeContentSource()


@pytest.fixture
def channel_source():
    return FakeChannelSource()


@pytest.fixture
def analytics_source():
    return FakeAnalyticsSource()


@pytest.fixture
def state_machine(item_store, generator, publisher, eligibility):
    return EngagementStateMachine(
        item_store,
        generator,
        publisher,
        eligibility,
        timeout=1.0,
        recommended_threshold=7.0,
        publish_threshold=5.0,
        max_publish_length=10000,
        write_retries=3,
    )


@pytest.fixture
def batch_coordinator(state_machine, item_store):
    return BatchActionCoordinator(state_machine, item_store)


@pytest.fixture
def job_runner(job_store, item_store, channel_store, analytics_store,
               content_source, channel_source, analytics_source):
    return JobRunner(job_store, {
        JobKind.CONTENT_DISCOVERY: ContentDiscoveryHandler(content_source, item_store, request_delay=0),
        JobKind.CHANNEL_DISCOVERY: ChannelDiscoveryHandler(channel_source, channel_store),
        JobKind.ANALYTICS_SYNC: AnalyticsSyncHandler(analytics_source, analytics_store),
    })


@pytest.fixture
def make_item(session_factory):
    """Insert an engagement item directly, in any status."""
    def _make(**kwargs):
        item = EngagementItemFactory.create(**kwargs)
        with session_factory() as db:
            db.add(item)
            db.commit()
            db.refresh(item)
        return item
    return _make


@pytest.fixture
def override_dependencies(job_store, item_store, state_machine, batch_coordinator, job_runner):
    """Point the API at the per-test stores and fakes."""
    app.dependency_overrides[deps.get_job_store] = lambda: job_store
    app.dependency_overrides[deps.get_item_store] = lambda: item_store
    app.dependency_overrides[deps.get_state_machine] = lambda: state_machine
    app.dependency_overrides[deps.get_batch_coordinator] = lambda: batch_coordinator
    app.dependency_overrides[deps.get_job_runner] = lambda: job_runner
    yield
    app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def async_client(override_dependencies, job_runner):
    """Create an async HTTP client for testing."""
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client
    await job_runner.join()
