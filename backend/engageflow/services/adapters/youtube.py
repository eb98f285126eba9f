"""
YouTube channel search over the Data API v3
"""

import logging
from typing import Any, Dict, List, Optional

from engageflow.core.config import settings
from engageflow.core.http_client import UnifiedHTTPClient
from engageflow.services.adapters.base import AdapterError, ChannelSource

logger = logging.getLogger(__name__)

YOUTUBE_API_URL = "https://www.googleapis.com/youtube/v3"


class YouTubeChannelSource(ChannelSource):
    """Finds channels by keyword and returns them with snippet and statistics"""

    def __init__(self, http_client: Optional[UnifiedHTTPClient] = None, api_key: Optional[str] = None):
        self.http = http_client or UnifiedHTTPClient()
        self.api_key = api_key if api_key is not None else settings.YOUTUBE_API_KEY

    async def search_channels(self, keyword: str, max_results: int) -> List[Dict[str, Any]]:
        if not self.api_key:
            raise AdapterError("YouTube API key not configured", provider="youtube")

        search = await self.http.get_json(
            f"{YOUTUBE_API_URL}/search",
            params={
                "part": "snippet",
                "type": "channel",
                "q": keyword,
                "maxResults": max_results,
                "key": self.api_key,
            },
        )
        channel_ids = []
        for result in search.get("items", []):
            channel_id = (result.get("id") or {}).get("channelId") or (result.get("snippet") or {}).get("channelId")
            if channel_id and channel_id not in channel_ids:
                channel_ids.append(channel_id)
        if not channel_ids:
            return []

        details = await self.http.get_json(
            f"{YOUTUBE_API_URL}/channels",
            params={"part": "snippet,statistics", "id": ",".join(channel_ids), "key": self.api_key},
        )
        channels = details.get("items", [])
        logger.debug(f"YouTube '{keyword}': {len(channels)} channels")
        return channels
