"""
External adapters: content, channel and analytics sources, the publisher
and account eligibility.
"""

from .base import (
    AccountEligibilityProvider,
    AdapterError,
    AnalyticsSource,
    ChannelSource,
    ContentSource,
    DraftGenerator,
    Publisher,
)
from .eligibility import DailyLimitEligibility
from .reddit import RedditContentSource, RedditPublisher
from .search_console import SearchConsoleSource
from .youtube import YouTubeChannelSource

__all__ = [
    "AccountEligibilityProvider",
    "AdapterError",
    "AnalyticsSource",
    "ChannelSource",
    "ContentSource",
    "DraftGenerator",
    "Publisher",
    "DailyLimitEligibility",
    "RedditContentSource",
    "RedditPublisher",
    "SearchConsoleSource",
    "YouTubeChannelSource",
]
