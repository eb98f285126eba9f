"""
AI Provider Implementations

Concrete text completion services for OpenAI and Anthropic behind a common
interface, plus the factory that picks one from configuration.
"""

from typing import Optional

import openai
import anthropic
from openai import AsyncOpenAI
from anthropic import AsyncAnthropic

from engageflow.core.config import settings
from engageflow.services.ai.base import (
    BaseAIService,
    AIProvider,
    AIResponse,
    AIUsageMetrics,
    AIServiceError,
    RateLimitError,
    ProviderError,
)

import logging

logger = logging.getLogger(__name__)

DEFAULT_OPENAI_MODEL = "gpt-4o"
DEFAULT_ANTHROPIC_MODEL = "claude-sonnet-4-20250514"


class OpenAIService(BaseAIService):
    """OpenAI chat completion service"""

    def __init__(self, model: str = None):
        super().__init__(AIProvider.OPENAI, model or DEFAULT_OPENAI_MODEL)

        if not settings.OPENAI_API_KEY:
            raise AIServiceError("OpenAI API key not configured", "openai", self.model)

        self.client = AsyncOpenAI(
            api_key=settings.OPENAI_API_KEY,
            timeout=settings.AI_REQUEST_TIMEOUT
        )

    async def _make_request(self, prompt: str, **kwargs) -> AIResponse:
        max_tokens = kwargs.get('max_tokens', settings.MAX_TOKENS_PER_REQUEST)
        temperature = kwargs.get('temperature', 0.7)
        system_prompt = kwargs.get('system_prompt', '')

        messages = []
        if system_prompt:
            messages.append({"role": "system", "content": system_prompt})
        messages.append({"role": "user", "content": prompt})

        try:
            response = await self.client.chat.completions.create(
                model=self.model,
                messages=messages,
                max_tokens=max_tokens,
                temperature=temperature,
            )
        except openai.RateLimitError as e:
            raise RateLimitError(f"OpenAI rate limit exceeded: {e}", "openai", self.model, e)
        except openai.APIError as e:
            raise ProviderError(f"OpenAI API error: {e}", "openai", self.model, e)

        usage = response.usage
        return AIResponse(
            content=response.choices[0].message.content or "",
            usage=AIUsageMetrics(
                provider=self.provider,
                model=self.model,
                tokens_input=usage.prompt_tokens if usage else 0,
                tokens_output=usage.completion_tokens if usage else 0,
            ),
            metadata={
                "finish_reason": response.choices[0].finish_reason,
                "model": response.model
            }
        )


class AnthropicService(BaseAIService):
    """Anthropic Claude messages service"""

    def __init__(self, model: str = None):
        super().__init__(AIProvider.ANTHROPIC, model or DEFAULT_ANTHROPIC_MODEL)

        if not settings.ANTHROPIC_API_KEY:
            raise AIServiceError("Anthropic API key not configured", "anthropic", self.model)

        self.client = AsyncAnthropic(
            api_key=settings.ANTHROPIC_API_KEY,
            timeout=settings.AI_REQUEST_TIMEOUT
        )

    async def _make_request(self, prompt: str, **kwargs) -> AIResponse:
        max_tokens = kwargs.get('max_tokens', settings.MAX_TOKENS_PER_REQUEST)
        temperature = kwargs.get('temperature', 0.7)
        system_prompt = kwargs.get('system_prompt', '')

        request = {
            "model": self.model,
            "max_tokens": max_tokens,
            "temperature": temperature,
            "messages": [{"role": "user", "content": prompt}],
        }
        if system_prompt:
            request["system"] = system_prompt

        try:
            response = await self.client.messages.create(**request)
        except anthropic.RateLimitError as e:
            raise RateLimitError(f"Anthropic rate limit exceeded: {e}", "anthropic", self.model, e)
        except anthropic.APIError as e:
            raise ProviderError(f"Anthropic API error: {e}", "anthropic", self.model, e)

        # Anthropic returns a list of content blocks; only text blocks matter here
        content = "".join(block.text for block in response.content if getattr(block, "type", "") == "text")
        return AIResponse(
            content=content,
            usage=AIUsageMetrics(
                provider=self.provider,
                model=self.model,
                tokens_input=response.usage.input_tokens,
                tokens_output=response.usage.output_tokens,
            ),
            metadata={
                "stop_reason": response.stop_reason,
                "model": response.model
            }
        )


class AIServiceFactory:
    """Factory for creating AI service instances"""

    @staticmethod
    def create_text_service(provider: Optional[str] = None, model: Optional[str] = None) -> BaseAIService:
        provider = provider or settings.DEFAULT_MODEL_PROVIDER
        if model is None and provider == settings.DEFAULT_MODEL_PROVIDER:
            model = settings.DEFAULT_TEXT_MODEL

        if provider == AIProvider.OPENAI.value:
            return OpenAIService(model)
        elif provider == AIProvider.ANTHROPIC.value:
            return AnthropicService(model)
        else:
            raise AIServiceError(f"Unsupported provider: {provider}")
