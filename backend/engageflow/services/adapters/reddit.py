"""
Reddit adapters: public search for content discovery and OAuth comment posting
"""

import logging
from typing import Any, Dict, List, Optional

from engageflow.core.config import settings
from engageflow.core.http_client import UnifiedHTTPClient
from engageflow.services.adapters.base import AdapterError, ContentSource, PublishResult, Publisher

logger = logging.getLogger(__name__)

REDDIT_PUBLIC_URL = "https://www.reddit.com"
REDDIT_OAUTH_URL = "https://oauth.reddit.com"


class RedditContentSource(ContentSource):
    """Searches a subreddit through the public JSON listing"""

    def __init__(self, http_client: Optional[UnifiedHTTPClient] = None, time_filter: str = "week"):
        self.http = http_client or UnifiedHTTPClient()
        self.time_filter = time_filter

    async def search(self, community: str, keyword: str, limit: int) -> List[Dict[str, Any]]:
        subreddit = community.removeprefix("r/").strip("/")
        payload = await self.http.get_json(
            f"{REDDIT_PUBLIC_URL}/r/{subreddit}/search.json",
            params={
                "q": keyword,
                "restrict_sr": "1",
                "sort": "new",
                "t": self.time_filter,
                "limit": limit,
            },
        )
        try:
            children = payload["data"]["children"]
        except (KeyError, TypeError):
            raise AdapterError(f"Unexpected search response for r/{subreddit}", provider="reddit")

        posts = [child.get("data") for child in children if isinstance(child, dict)]
        logger.debug(f"r/{subreddit} '{keyword}': {len(posts)} posts")
        return [post for post in posts if post is not None]


class RedditPublisher(Publisher):
    """Posts a top-level comment with the assigned account's OAuth token"""

    def __init__(self, http_client: Optional[UnifiedHTTPClient] = None,
                 account_tokens: Optional[Dict[str, str]] = None):
        self.http = http_client or UnifiedHTTPClient()
        self.account_tokens = settings.REDDIT_ACCOUNT_TOKENS if account_tokens is None else account_tokens

    async def publish(self, text: str, account_id: str, item) -> PublishResult:
        token = self.account_tokens.get(account_id)
        if not token:
            raise AdapterError(f"No Reddit credentials configured for account {account_id}", provider="reddit")

        thing_id = item.source_post_id if item.source_post_id.startswith("t3_") else f"t3_{item.source_post_id}"
        payload = await self.http.post_json(
            f"{REDDIT_OAUTH_URL}/api/comment",
            data={"api_type": "json", "thing_id": thing_id, "text": text},
            headers={"Authorization": f"bearer {token}"},
        )

        body = (payload or {}).get("json") or {}
        errors = body.get("errors") or []
        if errors:
            raise AdapterError(f"Reddit rejected the comment: {errors}", provider="reddit")
        try:
            comment = body["data"]["things"][0]["data"]
        except (KeyError, IndexError, TypeError):
            raise AdapterError("Reddit response did not include the new comment", provider="reddit")

        permalink = comment.get("permalink")
        return PublishResult(
            external_id=comment.get("name") or comment["id"],
            url=f"{REDDIT_PUBLIC_URL}{permalink}" if permalink else None,
        )
