import json
from datetime import timedelta
from urllib.parse import parse_qs

import httpx
import pytest

from engageflow.core.http_client import HTTPClientConfig, RetryableStatusError, UnifiedHTTPClient
from engageflow.models.engagement import EngagementStatus, utcnow
from engageflow.services.adapters.base import AdapterError
from engageflow.services.adapters.eligibility import DailyLimitEligibility
from engageflow.services.adapters.reddit import RedditContentSource, RedditPublisher
from engageflow.services.adapters.search_console import SearchConsoleSource
from engageflow.services.adapters.youtube import YouTubeChannelSource
from tests.factories import EngagementItemFactory, RedditPostFactory, YouTubeChannelFactory, analytics_row


def make_client(handler, max_retries=3):
    config = HTTPClientConfig(timeout=5, max_retries=max_retries, retry_wait_min=0, retry_wait_max=0)
    return UnifiedHTTPClient(config, transport=httpx.MockTransport(handler))


@pytest.mark.unit
class TestUnifiedHTTPClient:

    @pytest.mark.asyncio
    async def test_get_retries_server_errors(self):
        calls = []

        def handler(request):
            calls.append(request)
            if len(calls) < 3:
                return httpx.Response(503)
            return httpx.Response(200, json={"ok": True})

        async with make_client(handler) as client:
            assert await client.get_json("https://api.test/items") == {"ok": True}
        assert len(calls) == 3

    @pytest.mark.asyncio
    async def test_get_gives_up_after_max_retries(self):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(429)

        async with make_client(handler, max_retries=2) as client:
            with pytest.raises(RetryableStatusError):
                await client.get_json("https://api.test/items")
        assert len(calls) == 2

    @pytest.mark.asyncio
    async def test_client_errors_are_not_retried(self):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(404)

        async with make_client(handler) as client:
            with pytest.raises(httpx.HTTPStatusError):
                await client.get_json("https://api.test/missing")
        assert len(calls) == 1

    @pytest.mark.asyncio
    async def test_post_is_sent_once(self):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(502)

        async with make_client(handler) as client:
            with pytest.raises(RetryableStatusError):
                await client.post_json("https://api.test/comment", data={"text": "hi"})
        assert len(calls) == 1

    @pytest.mark.asyncio
    async def test_sends_user_agent(self):
        seen = {}

        def handler(request):
            seen["ua"] = request.headers["user-agent"]
            return httpx.Response(200, json={})

        client = UnifiedHTTPClient(HTTPClientConfig(user_agent="EngageFlowTest/0.1"),
                                   transport=httpx.MockTransport(handler))
        await client.get_json("https://api.test/")
        await client.aclose()
        assert seen["ua"] == "EngageFlowTest/0.1"


@pytest.mark.unit
class TestRedditAdapters:

    @pytest.mark.asyncio
    async def test_search_returns_post_data(self):
        posts = RedditPostFactory.create_batch(2)
        seen = {}

        def handler(request):
            seen["path"] = request.url.path
            seen["params"] = dict(request.url.params)
            return httpx.Response(200, json={"data": {"children": [{"kind": "t3", "data": p} for p in posts]}})

        source = RedditContentSource(make_client(handler))

        results = await source.search("r/homegym", "rowing machine", 25)

        assert results == posts
        assert seen["path"] == "/r/homegym/search.json"
        assert seen["params"]["q"] == "rowing machine"
        assert seen["params"]["restrict_sr"] == "1"
        assert seen["params"]["limit"] == "25"

    @pytest.mark.asyncio
    async def test_search_rejects_unexpected_payload(self):
        source = RedditContentSource(make_client(lambda request: httpx.Response(200, json={"error": 403})))

        with pytest.raises(AdapterError):
            await source.search("homegym", "bike", 5)

    @pytest.mark.asyncio
    async def test_publish_posts_comment_with_account_token(self):
        seen = {}

        def handler(request):
            seen["auth"] = request.headers["authorization"]
            seen["form"] = parse_qs(request.content.decode())
            return httpx.Response(200, json={"json": {"errors": [], "data": {"things": [
                {"kind": "t1", "data": {"id": "c0ffee", "name": "t1_c0ffee", "permalink": "/r/homegym/comments/x/c0ffee/"}}
            ]}}})

        publisher = RedditPublisher(make_client(handler), account_tokens={"acct-1": "token-abc"})
        item = EngagementItemFactory.build(source_post_id="abc123")

        result = await publisher.publish("Great question!", "acct-1", item)

        assert result.external_id == "t1_c0ffee"
        assert result.url == "https://www.reddit.com/r/homegym/comments/x/c0ffee/"
        assert seen["auth"] == "bearer token-abc"
        assert seen["form"]["thing_id"] == ["t3_abc123"]
        assert seen["form"]["text"] == ["Great question!"]

    @pytest.mark.asyncio
    async def test_publish_surfaces_reddit_errors(self):
        payload = {"json": {"errors": [["RATELIMIT", "you are doing that too much", "ratelimit"]]}}
        publisher = RedditPublisher(make_client(lambda request: httpx.Response(200, json=payload)),
                                    account_tokens={"acct-1": "token"})

        with pytest.raises(AdapterError):
            await publisher.publish("hi", "acct-1", EngagementItemFactory.build())

    @pytest.mark.asyncio
    async def test_publish_without_credentials(self):
        publisher = RedditPublisher(make_client(lambda request: httpx.Response(500)), account_tokens={})

        with pytest.raises(AdapterError):
            await publisher.publish("hi", "acct-unknown", EngagementItemFactory.build())


@pytest.mark.unit
class TestYouTubeChannelSource:

    @pytest.mark.asyncio
    async def test_search_then_fetch_details(self):
        channels = YouTubeChannelFactory.create_batch(2)
        requests = []

        def handler(request):
            requests.append(request)
            if request.url.path.endswith("/search"):
                return httpx.Response(200, json={"items": [{"id": {"channelId": c["id"]}} for c in channels]})
            return httpx.Response(200, json={"items": channels})

        source = YouTubeChannelSource(make_client(handler), api_key="key-1")

        results = await source.search_channels("home gym", 10)

        assert results == channels
        assert requests[0].url.params["q"] == "home gym"
        assert requests[1].url.params["id"] == ",".join(c["id"] for c in channels)
        assert requests[1].url.params["part"] == "snippet,statistics"

    @pytest.mark.asyncio
    async def test_no_search_hits_skips_details_call(self):
        requests = []

        def handler(request):
            requests.append(request)
            return httpx.Response(200, json={"items": []})

        source = YouTubeChannelSource(make_client(handler), api_key="key-1")

        assert await source.search_channels("nothing", 5) == []
        assert len(requests) == 1

    @pytest.mark.asyncio
    async def test_requires_api_key(self):
        source = YouTubeChannelSource(make_client(lambda request: httpx.Response(200)), api_key="")

        with pytest.raises(AdapterError):
            await source.search_channels("bike", 5)


@pytest.mark.unit
class TestSearchConsoleSource:

    @pytest.mark.asyncio
    async def test_query_posts_paging_window(self):
        seen = {}

        def handler(request):
            seen["path"] = request.url.raw_path.decode()
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={"rows": [analytics_row("rower")]})

        source = SearchConsoleSource(make_client(handler), site_url="https://example.com/", access_token="t")

        rows = await source.query("2026-09-01", "2026-09-30", 500, 1000)

        assert rows[0]["keys"][0] == "rower"
        assert "https%3A%2F%2Fexample.com%2F" in seen["path"]
        assert seen["body"]["rowLimit"] == 500
        assert seen["body"]["startRow"] == 1000
        assert seen["body"]["dimensions"] == ["query", "page", "country", "device", "date"]

    @pytest.mark.asyncio
    async def test_missing_rows_means_empty_page(self):
        source = SearchConsoleSource(make_client(lambda request: httpx.Response(200, json={})),
                                     site_url="sc-domain:example.com", access_token="t")

        assert await source.query("2026-09-01", "2026-09-30", 500, 0) == []


@pytest.mark.unit
class TestDailyLimitEligibility:

    @pytest.mark.asyncio
    async def test_suspended_account_is_ineligible(self, item_store):
        eligibility = DailyLimitEligibility(item_store, suspended_account_ids=["acct-9"], daily_limit=5)

        assert await eligibility.is_eligible("acct-9") is False
        assert await eligibility.is_eligible("acct-1") is True

    @pytest.mark.asyncio
    async def test_daily_limit(self, item_store, make_item):
        now = utcnow()
        for _ in range(2):
            make_item(status=EngagementStatus.PUBLISHED, assigned_account_id="acct-1", published_at=now)
        make_item(status=EngagementStatus.PUBLISHED, assigned_account_id="acct-2",
                  published_at=now - timedelta(days=2))
        eligibility = DailyLimitEligibility(item_store, suspended_account_ids=[], daily_limit=2)

        assert await eligibility.is_eligible("acct-1") is False
        assert await eligibility.is_eligible("acct-2") is True
