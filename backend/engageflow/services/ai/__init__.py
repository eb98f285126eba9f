"""
AI Services Package

Text completion providers (OpenAI, Anthropic), the prompt registry and the
LLM-backed draft generator used by the engagement workflow.
"""

from .base import AIServiceError, BaseAIService, RateLimitError, ProviderError
from .providers import AIServiceFactory, AnthropicService, OpenAIService
from .prompts import PromptRegistry, PromptTemplate, PromptType, get_prompt_registry
from .draft_generator import LLMDraftGenerator

__all__ = [
    "AIServiceError",
    "BaseAIService",
    "RateLimitError",
    "ProviderError",
    "AIServiceFactory",
    "AnthropicService",
    "OpenAIService",
    "PromptRegistry",
    "PromptTemplate",
    "PromptType",
    "get_prompt_registry",
    "LLMDraftGenerator",
]
