"""
Base AI Service Classes

Provider abstraction for text completion with standardized errors, a
client-side request rate limiter and retries for transient provider failures.
"""

import asyncio
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional
import logging

from tenacity import (
    retry,
    stop_after_attempt,
    wait_exponential,
    retry_if_exception_type,
    before_sleep_log
)

from engageflow.core.config import settings

logger = logging.getLogger(__name__)

# rough upper bound on prompt size, about four characters per token
CHARS_PER_TOKEN = 4
MAX_PROMPT_TOKENS = 32000


class AIProvider(str, Enum):
    """Supported AI providers"""
    OPENAI = "openai"
    ANTHROPIC = "anthropic"


@dataclass
class AIUsageMetrics:
    """Token usage of a single completion"""
    provider: str
    model: str
    tokens_input: int = 0
    tokens_output: int = 0
    latency_ms: int = 0
    timestamp: float = field(default_factory=time.time)


@dataclass
class AIResponse:
    """Standardized AI response format"""
    content: str
    usage: AIUsageMetrics
    metadata: Dict[str, Any] = field(default_factory=dict)


class AIServiceError(Exception):
    """Base exception for AI service errors"""
    def __init__(self, message: str, provider: str = "", model: str = "", original_error: Exception = None):
        self.message = message
        self.provider = provider
        self.model = model
        self.original_error = original_error
        super().__init__(self.message)


class RateLimitError(AIServiceError):
    """Rate limit exceeded error"""
    pass


class ProviderError(AIServiceError):
    """Provider-specific error"""
    pass


class RateLimiter:
    """Sliding-window limiter for outgoing AI calls"""

    def __init__(self, max_requests: int = 60, time_window: int = 60):
        self.max_requests = max_requests
        self.time_window = time_window
        self.requests: List[float] = []

    async def acquire(self) -> None:
        current_time = time.time()
        self.requests = [t for t in self.requests if current_time - t < self.time_window]

        if len(self.requests) >= self.max_requests:
            wait_time = self.time_window - (current_time - min(self.requests))
            if wait_time > 0:
                logger.info(f"AI rate limit reached, waiting {wait_time:.2f} seconds")
                await asyncio.sleep(wait_time)

        self.requests.append(time.time())


class BaseAIService(ABC):
    """Abstract base class for all AI services"""

    def __init__(self, provider: AIProvider, model: str):
        self.provider = provider
        self.model = model
        self.rate_limiter = RateLimiter()
        self.total_requests = 0
        self.total_tokens_input = 0
        self.total_tokens_output = 0
        self.total_latency_ms = 0

    @abstractmethod
    async def _make_request(self, prompt: str, **kwargs) -> AIResponse:
        """Make the actual API request to the AI provider"""
        pass

    def validate_input(self, text: str) -> None:
        if not text or not text.strip():
            raise AIServiceError("Input text cannot be empty", self.provider, self.model)
        if len(text) // CHARS_PER_TOKEN > MAX_PROMPT_TOKENS:
            raise AIServiceError(
                f"Prompt of {len(text)} characters is too long", self.provider, self.model
            )

    @retry(
        stop=stop_after_attempt(settings.AI_MAX_RETRIES),
        wait=wait_exponential(multiplier=1, min=4, max=10),
        retry=retry_if_exception_type((RateLimitError, ProviderError)),
        before_sleep=before_sleep_log(logger, logging.INFO),
        reraise=True,
    )
    async def generate(self, prompt: str, **kwargs) -> AIResponse:
        """Run one completion, retrying rate limits and provider errors"""
        self.validate_input(prompt)
        await self.rate_limiter.acquire()

        start_time = time.time()
        response = await self._make_request(prompt=prompt, **kwargs)
        response.usage.latency_ms = int((time.time() - start_time) * 1000)
        self.record_usage(response.usage)

        if not response.content or not response.content.strip():
            raise AIServiceError("Provider returned an empty completion", self.provider, self.model)
        return response

    def record_usage(self, usage: AIUsageMetrics) -> None:
        """Fold one completion into the running totals"""
        self.total_requests += 1
        self.total_tokens_input += usage.tokens_input
        self.total_tokens_output += usage.tokens_output
        self.total_latency_ms += usage.latency_ms

    def get_usage_stats(self) -> Dict[str, Any]:
        if not self.total_requests:
            return {}

        return {
            "provider": self.provider,
            "model": self.model,
            "total_tokens_input": self.total_tokens_input,
            "total_tokens_output": self.total_tokens_output,
            "total_requests": self.total_requests,
            "average_latency_ms": self.total_latency_ms / self.total_requests,
        }
