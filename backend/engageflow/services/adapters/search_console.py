"""
Google Search Console search analytics query
"""

from typing import Any, Dict, List, Optional
from urllib.parse import quote

from engageflow.core.config import settings
from engageflow.core.http_client import UnifiedHTTPClient
from engageflow.services.adapters.base import AdapterError, AnalyticsSource

SEARCH_CONSOLE_API_URL = "https://www.googleapis.com/webmasters/v3"
DIMENSIONS = ["query", "page", "country", "device", "date"]


class SearchConsoleSource(AnalyticsSource):
    def __init__(self, http_client: Optional[UnifiedHTTPClient] = None,
                 site_url: Optional[str] = None, access_token: Optional[str] = None):
        self.http = http_client or UnifiedHTTPClient()
        self.site_url = site_url if site_url is not None else settings.GSC_SITE_URL
        self.access_token = access_token if access_token is not None else settings.GSC_ACCESS_TOKEN

    async def query(self, start_date: str, end_date: str, row_limit: int, start_row: int) -> List[Dict[str, Any]]:
        if not self.site_url or not self.access_token:
            raise AdapterError("Search Console site or access token not configured", provider="search_console")

        payload = await self.http.post_json(
            f"{SEARCH_CONSOLE_API_URL}/sites/{quote(self.site_url, safe='')}/searchAnalytics/query",
            json={
                "startDate": start_date,
                "endDate": end_date,
                "dimensions": DIMENSIONS,
                "rowLimit": row_limit,
                "startRow": start_row,
            },
            headers={"Authorization": f"Bearer {self.access_token}"},
            # a query, safe to repeat
            retry=True,
        )
        return payload.get("rows", [])
