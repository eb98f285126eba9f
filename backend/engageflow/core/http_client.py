"""
HTTP client shared by the external source and publish adapters
"""

import logging
from typing import Any, Dict, Optional

import httpx
from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from engageflow.core.config import settings

logger = logging.getLogger(__name__)

RETRYABLE_STATUS_CODES = frozenset({429, 500, 502, 503, 504})


class RetryableStatusError(Exception):
    """A response status worth retrying (rate limit or server error)"""
    def __init__(self, response: httpx.Response):
        self.response = response
        super().__init__(f"HTTP {response.status_code} from {response.request.url}")


class HTTPClientConfig:
    """Configuration for HTTP client"""

    def __init__(
        self,
        timeout: float = None,
        max_retries: int = None,
        user_agent: str = None,
        headers: Dict[str, str] = None,
        retry_wait_min: float = 1.0,
        retry_wait_max: float = 10.0,
    ):
        self.timeout = settings.SOURCE_REQUEST_TIMEOUT if timeout is None else timeout
        self.max_retries = settings.SOURCE_MAX_RETRIES if max_retries is None else max_retries
        self.user_agent = user_agent or settings.USER_AGENT
        self.headers = headers or {}
        self.retry_wait_min = retry_wait_min
        self.retry_wait_max = retry_wait_max


class UnifiedHTTPClient:
    """httpx wrapper: JSON GETs are retried on transport errors, 429 and 5xx; POSTs never are"""

    def __init__(self, config: HTTPClientConfig = None, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.config = config or HTTPClientConfig()
        self._client = httpx.AsyncClient(
            timeout=self.config.timeout,
            headers={"User-Agent": self.config.user_agent, "Accept": "application/json", **self.config.headers},
            follow_redirects=True,
            transport=transport,
        )

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.aclose()

    async def aclose(self):
        await self._client.aclose()

    async def get_json(self, url: str, params: Dict[str, Any] = None,
                       headers: Dict[str, str] = None) -> Any:
        return await self.request_json("GET", url, retry=True, params=params, headers=headers)

    async def post_json(self, url: str, json: Dict[str, Any] = None, data: Dict[str, Any] = None,
                        headers: Dict[str, str] = None, retry: bool = False) -> Any:
        """POSTs are sent once unless the caller marks them as read-only queries"""
        return await self.request_json("POST", url, retry=retry, json=json, data=data, headers=headers)

    async def request_json(self, method: str, url: str, retry: bool = True, **kwargs) -> Any:
        if not retry:
            return await self._send(method, url, **kwargs)

        async for attempt in AsyncRetrying(
            stop=stop_after_attempt(max(1, self.config.max_retries)),
            wait=wait_exponential(multiplier=1, min=self.config.retry_wait_min, max=self.config.retry_wait_max),
            retry=retry_if_exception_type((httpx.TransportError, RetryableStatusError)),
            before_sleep=before_sleep_log(logger, logging.INFO),
            reraise=True,
        ):
            with attempt:
                return await self._send(method, url, **kwargs)

    async def _send(self, method: str, url: str, **kwargs) -> Any:
        response = await self._client.request(method, url, **kwargs)
        if response.status_code in RETRYABLE_STATUS_CODES:
            raise RetryableStatusError(response)
        response.raise_for_status()
        return response.json()
