"""
Job Handlers

One handler per job kind. A handler validates the job parameters, fetches
the work as a finite stream of batches from its source adapter, and turns
each batch into rows through the matching store. Parsing problems are
counted as skipped records, never raised; adapter and store errors propagate
to the runner, which fails the job.
"""

import asyncio
import logging
import math
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta, timezone
from typing import Any, AsyncIterator, Awaitable, Callable, Dict, List, Optional

from engageflow.core.config import settings
from engageflow.core.exceptions import EngageFlowError, ValidationError
from engageflow.models.job import JobKind
from engageflow.services.adapters.base import (
    AnalyticsSource,
    ChannelSource,
    ContentSource,
    SourceBatch,
)
from engageflow.services.engagement.store import EngagementItemStore
from engageflow.services.jobs.records import ChannelStore, SearchAnalyticsStore

logger = logging.getLogger(__name__)

REDDIT_BASE_URL = "https://reddit.com"

# anything a malformed source record can raise while being parsed
RECORD_ERRORS = (KeyError, TypeError, ValueError, AttributeError, OverflowError, OSError)


@dataclass
class JobContext:
    job_id: str
    scope: str
    parameters: Dict[str, Any] = field(default_factory=dict)


@dataclass
class BatchResult:
    """Outcome of persisting one batch"""
    persisted: int = 0
    duplicates: int = 0
    skipped: int = 0

    @property
    def usable(self) -> int:
        return self.persisted + self.duplicates


def _string_list(parameters: Dict[str, Any], name: str, default: List[str]) -> List[str]:
    value = parameters.get(name)
    if value is None:
        value = default
    if isinstance(value, str):
        value = [value]
    if not isinstance(value, (list, tuple)):
        raise ValidationError(f"'{name}' must be a list of strings")
    cleaned = [str(v).strip() for v in value if str(v).strip()]
    if not cleaned:
        raise ValidationError(f"At least one entry is required in '{name}'")
    return cleaned


def _bounded_int(parameters: Dict[str, Any], name: str, default: int, low: int, high: int) -> int:
    value = parameters.get(name, default)
    try:
        number = int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"'{name}' must be an integer")
    if not low <= number <= high:
        raise ValidationError(f"'{name}' must be between {low} and {high}")
    return number


class JobHandler(ABC):
    """Per-kind glue between a source adapter and a store"""

    kind: JobKind

    def prepare(self, parameters: Optional[Dict[str, Any]]) -> Dict[str, Any]:
        """Validate parameters and fill defaults; raises ValidationError"""
        return dict(parameters or {})

    def expected_batches(self, parameters: Dict[str, Any]) -> int:
        return 1

    @abstractmethod
    def fetch(self, parameters: Dict[str, Any]) -> AsyncIterator[SourceBatch]:
        pass

    @abstractmethod
    async def persist(self, batch: SourceBatch, context: JobContext) -> BatchResult:
        pass


class ContentDiscoveryHandler(JobHandler):
    """Searches each community for each keyword and stores new posts as engagement items"""

    kind = JobKind.CONTENT_DISCOVERY

    def __init__(
        self,
        source: ContentSource,
        item_store: EngagementItemStore,
        analyzer: Optional[Callable[[int], Awaitable[Any]]] = None,
        request_delay: Optional[float] = None,
    ):
        self.source = source
        self.item_store = item_store
        self.analyzer = analyzer
        self.request_delay = settings.DISCOVERY_REQUEST_DELAY if request_delay is None else request_delay

    def prepare(self, parameters):
        parameters = parameters or {}
        return {
            "communities": _string_list(parameters, "communities", settings.DISCOVERY_COMMUNITIES),
            "keywords": _string_list(parameters, "keywords", settings.DISCOVERY_KEYWORDS),
            "limit": _bounded_int(parameters, "limit", settings.DISCOVERY_LIMIT, 1, 100),
        }

    def expected_batches(self, parameters):
        return len(parameters["communities"]) * len(parameters["keywords"])

    async def fetch(self, parameters):
        first = True
        for community in parameters["communities"]:
            for keyword in parameters["keywords"]:
                if not first and self.request_delay > 0:
                    await asyncio.sleep(self.request_delay)
                first = False
                records = await self.source.search(community, keyword, parameters["limit"])
                yield SourceBatch(label=f"{community}:{keyword}", records=list(records or []), keyword=keyword)

    async def persist(self, batch, context):
        result = BatchResult()
        for record in batch.records:
            try:
                fields = self.parse_post(record)
            except RECORD_ERRORS as e:
                result.skipped += 1
                logger.warning(f"Job {context.job_id}: skipped unparseable post in {batch.label}: {e}")
                continue

            fields["matched_keyword"] = batch.keyword
            source_post_id = fields.pop("source_post_id")
            item = self.item_store.create_discovered(context.scope, source_post_id, **fields)
            if item is None:
                result.duplicates += 1
                continue
            result.persisted += 1

            if self.analyzer is not None:
                try:
                    await self.analyzer(item.id)
                except EngageFlowError as e:
                    logger.warning(f"Auto-analysis of item {item.id} failed: {e.message}")
        return result

    @staticmethod
    def parse_post(record: Dict[str, Any]) -> Dict[str, Any]:
        """Map a raw post listing entry to EngagementItem columns"""
        post_id = str(record["id"]).strip()
        title = str(record["title"]).strip()
        community = str(record["subreddit"]).strip()
        if not post_id or not title or not community:
            raise ValueError("post is missing id, title or community")

        permalink = record.get("permalink")
        if permalink and not isinstance(permalink, str):
            raise TypeError(f"permalink must be a string, got {type(permalink).__name__}")
        if permalink:
            source_url = permalink if permalink.startswith("http") else f"{REDDIT_BASE_URL}{permalink}"
        else:
            source_url = record.get("url")

        created_utc = record.get("created_utc")
        return {
            "source_post_id": post_id,
            "community": community,
            "title": title,
            "body": record.get("selftext") or "",
            "author": record.get("author"),
            "source_url": source_url,
            "source_score": int(record.get("score") or 0),
            "source_created_at": (
                datetime.fromtimestamp(float(created_utc), tz=timezone.utc) if created_utc is not None else None
            ),
        }


class ChannelDiscoveryHandler(JobHandler):
    """Searches a video platform for channels per keyword"""

    kind = JobKind.CHANNEL_DISCOVERY

    def __init__(self, source: ChannelSource, channel_store: ChannelStore):
        self.source = source
        self.channel_store = channel_store

    def prepare(self, parameters):
        parameters = parameters or {}
        return {
            "keywords": _string_list(parameters, "keywords", settings.DISCOVERY_KEYWORDS),
            "max_results_per_keyword": _bounded_int(parameters, "max_results_per_keyword", 10, 1, 50),
        }

    def expected_batches(self, parameters):
        return len(parameters["keywords"])

    async def fetch(self, parameters):
        for keyword in parameters["keywords"]:
            records = await self.source.search_channels(keyword, parameters["max_results_per_keyword"])
            yield SourceBatch(label=keyword, records=list(records or []), keyword=keyword)

    async def persist(self, batch, context):
        result = BatchResult()
        for record in batch.records:
            try:
                fields = self.parse_channel(record)
            except RECORD_ERRORS as e:
                result.skipped += 1
                logger.warning(f"Job {context.job_id}: skipped unparseable channel for '{batch.label}': {e}")
                continue

            channel_id = fields.pop("channel_id")
            channel = self.channel_store.add_if_new(
                context.scope, channel_id, discovered_keyword=batch.keyword, **fields
            )
            if channel is None:
                result.duplicates += 1
            else:
                result.persisted += 1
        return result

    @staticmethod
    def parse_channel(record: Dict[str, Any]) -> Dict[str, Any]:
        snippet = record["snippet"]
        statistics = record.get("statistics") or {}
        if not isinstance(statistics, dict):
            raise TypeError("channel statistics must be an object")
        channel_id = str(record["id"]).strip()
        name = str(snippet["title"]).strip()
        if not channel_id or not name:
            raise ValueError("channel is missing id or title")

        thumbnails = snippet.get("thumbnails") or {}
        thumbnail = thumbnails.get("high") or thumbnails.get("default") or {}
        return {
            "channel_id": channel_id,
            "name": name,
            "description": snippet.get("description") or "",
            "custom_url": snippet.get("customUrl"),
            "thumbnail_url": thumbnail.get("url"),
            "subscriber_count": int(statistics.get("subscriberCount") or 0),
            "video_count": int(statistics.get("videoCount") or 0),
            "view_count": int(statistics.get("viewCount") or 0),
        }


class AnalyticsSyncHandler(JobHandler):
    """Pages search analytics rows for a date range into the analytics table"""

    kind = JobKind.ANALYTICS_SYNC

    # search analytics data lags a few days behind
    DEFAULT_LAG_DAYS = 3
    DEFAULT_WINDOW_DAYS = 28

    def __init__(self, source: AnalyticsSource, analytics_store: SearchAnalyticsStore):
        self.source = source
        self.analytics_store = analytics_store

    def prepare(self, parameters):
        parameters = parameters or {}
        end_default = date.today() - timedelta(days=self.DEFAULT_LAG_DAYS)
        start_default = end_default - timedelta(days=self.DEFAULT_WINDOW_DAYS)
        try:
            end_date = date.fromisoformat(str(parameters.get("end_date") or end_default.isoformat()))
            start_date = date.fromisoformat(str(parameters.get("start_date") or start_default.isoformat()))
        except ValueError:
            raise ValidationError("'start_date' and 'end_date' must be ISO dates (YYYY-MM-DD)")
        if start_date > end_date:
            raise ValidationError("'start_date' must not be after 'end_date'")

        return {
            "start_date": start_date.isoformat(),
            "end_date": end_date.isoformat(),
            "row_limit": _bounded_int(parameters, "row_limit", 1000, 1, 25000),
            "max_rows": _bounded_int(parameters, "max_rows", 25000, 1, 1000000),
        }

    def expected_batches(self, parameters):
        return math.ceil(parameters["max_rows"] / parameters["row_limit"])

    async def fetch(self, parameters):
        start_row = 0
        while start_row < parameters["max_rows"]:
            page_size = min(parameters["row_limit"], parameters["max_rows"] - start_row)
            rows = await self.source.query(
                parameters["start_date"], parameters["end_date"], page_size, start_row
            )
            rows = list(rows or [])
            if not rows:
                break
            yield SourceBatch(label=f"rows {start_row}-{start_row + len(rows) - 1}", records=rows)
            if len(rows) < page_size:
                break
            start_row += len(rows)

    async def persist(self, batch, context):
        result = BatchResult()
        for row in batch.records:
            try:
                query, page, country, device, day = self.parse_keys(row)
            except RECORD_ERRORS as e:
                result.skipped += 1
                logger.warning(f"Job {context.job_id}: skipped analytics row in {batch.label}: {e}")
                continue
            self.analytics_store.upsert(
                context.scope, query, day, row, page=page, country=country, device=device
            )
            result.persisted += 1
        return result

    @staticmethod
    def parse_keys(row: Dict[str, Any]):
        """Split the dimension keys (query, page, country, device, date) of a row"""
        keys = row["keys"]
        if len(keys) != 5:
            raise ValueError(f"expected 5 dimension keys, got {len(keys)}")
        query, page, country, device, day = keys
        if not query:
            raise ValueError("row has no query")
        return str(query), str(page or ""), str(country or ""), str(device or ""), date.fromisoformat(day)
