"""
Dependency providers for the API and scheduled tasks.

Each get_* provider returns a process-wide instance; tests replace them
through app.dependency_overrides.
"""

from functools import lru_cache
from typing import Optional

from sqlalchemy.orm import sessionmaker

from engageflow.core.config import settings
from engageflow.db.session import SessionLocal
from engageflow.models.job import JobKind
from engageflow.services.adapters.eligibility import DailyLimitEligibility
from engageflow.services.adapters.reddit import RedditContentSource, RedditPublisher
from engageflow.services.adapters.search_console import SearchConsoleSource
from engageflow.services.adapters.youtube import YouTubeChannelSource
from engageflow.services.ai.draft_generator import LLMDraftGenerator
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


def build_state_machine(session_factory: sessionmaker = SessionLocal) -> EngagementStateMachine:
    item_store = EngagementItemStore(session_factory)
    return EngagementStateMachine(
        item_store,
        generator=LLMDraftGenerator(),
        publisher=RedditPublisher(),
        eligibility=DailyLimitEligibility(item_store),
    )


def build_job_runner(session_factory: sessionmaker = SessionLocal,
                     state_machine: Optional[EngagementStateMachine] = None) -> JobRunner:
    """Wire a runner with the production sources; scheduled tasks build a fresh one per run"""
    analyzer = None
    if settings.AUTO_ANALYZE_DISCOVERED:
        analyzer = (state_machine or build_state_machine(session_factory)).analyze

    handlers = {
        JobKind.CONTENT_DISCOVERY: ContentDiscoveryHandler(
            RedditContentSource(), EngagementItemStore(session_factory), analyzer=analyzer
        ),
        JobKind.CHANNEL_DISCOVERY: ChannelDiscoveryHandler(
            YouTubeChannelSource(), ChannelStore(session_factory)
        ),
        JobKind.ANALYTICS_SYNC: AnalyticsSyncHandler(
            SearchConsoleSource(), SearchAnalyticsStore(session_factory)
        ),
    }
    return JobRunner(JobStore(session_factory), handlers)


@lru_cache
def get_job_store() -> JobStore:
    return JobStore(SessionLocal)


@lru_cache
def get_item_store() -> EngagementItemStore:
    return EngagementItemStore(SessionLocal)


@lru_cache
def get_state_machine() -> EngagementStateMachine:
    return build_state_machine()


@lru_cache
def get_batch_coordinator() -> BatchActionCoordinator:
    return BatchActionCoordinator(get_state_machine(), get_item_store())


@lru_cache
def get_job_runner() -> JobRunner:
    return build_job_runner(state_machine=get_state_machine())
