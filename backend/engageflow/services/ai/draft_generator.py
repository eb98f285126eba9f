"""
LLM Draft Generator

DraftGenerator implementation backed by a text completion provider. Builds
the prompts from the registry, calls the configured provider and parses the
structured (JSON) answers for analysis and proofreading.
"""

import json
import logging
import re
from typing import Any, Dict, Optional

from engageflow.core.config import settings
from engageflow.services.adapters.base import (
    AnalysisResult,
    DraftGenerator,
    DraftLength,
    DraftStyle,
    GenerationOptions,
    ProofreadResult,
    RefineAction,
)
from engageflow.services.ai.base import AIServiceError, BaseAIService
from engageflow.services.ai.prompts import (
    LENGTH_GUIDANCE,
    STYLE_GUIDANCE,
    PromptRegistry,
    PromptType,
    get_prompt_registry,
)
from engageflow.services.ai.providers import AIServiceFactory

logger = logging.getLogger(__name__)

_FENCE_RE = re.compile(r"^```(?:json)?\s*|\s*```$", re.IGNORECASE)


def clean_json_response(text: str) -> str:
    """Strip markdown code fences models like to wrap JSON in"""
    cleaned = _FENCE_RE.sub("", (text or "").strip())
    return cleaned.strip()


def parse_json_response(text: str) -> Dict[str, Any]:
    cleaned = clean_json_response(text)
    try:
        data = json.loads(cleaned)
    except json.JSONDecodeError:
        # some models add a sentence around the object
        start, end = cleaned.find("{"), cleaned.rfind("}")
        if start == -1 or end <= start:
            raise AIServiceError(f"Model returned invalid JSON: {cleaned[:200]}")
        try:
            data = json.loads(cleaned[start:end + 1])
        except json.JSONDecodeError as e:
            raise AIServiceError(f"Model returned invalid JSON: {e}", original_error=e)
    if not isinstance(data, dict):
        raise AIServiceError("Model returned JSON that is not an object")
    return data


def _as_list(value) -> list:
    if value is None:
        return []
    if isinstance(value, (list, tuple)):
        return [str(v) for v in value if v]
    return [str(value)]


def _persona_section(persona: Optional[Dict[str, Any]]) -> str:
    if not persona:
        return ""
    lines = ["Persona:"]
    for label, key in (
        ("Name", "name"),
        ("Background", "background"),
        ("Tone of voice", "tone_of_voice"),
        ("Writing guidelines", "writing_guidelines"),
    ):
        if persona.get(key):
            lines.append(f"{label}: {persona[key]}")
    for label, key in (("Traits", "traits"), ("Expertise", "expertise_areas"), ("Goals", "goals")):
        values = _as_list(persona.get(key))
        if values:
            lines.append(f"{label}: {', '.join(values)}")
    examples = _as_list(persona.get("example_responses"))
    if examples:
        lines.append("Example replies in this voice:")
        lines.extend(f"- {example}" for example in examples)
    return "\n".join(lines) + "\n"


class LLMDraftGenerator(DraftGenerator):
    """Analysis, drafting, refinement and proofreading through an LLM"""

    def __init__(self, service: Optional[BaseAIService] = None,
                 registry: Optional[PromptRegistry] = None,
                 brand_context: Optional[str] = None):
        self._service = service
        self.registry = registry or get_prompt_registry()
        self.brand_context = brand_context or settings.BRAND_CONTEXT

    @property
    def service(self) -> BaseAIService:
        # created on first use so the API can start without provider keys
        if self._service is None:
            self._service = AIServiceFactory.create_text_service()
        return self._service

    async def _complete(self, prompt_type: PromptType, **variables) -> str:
        template = self.registry.get_template(prompt_type.value)
        response = await self.service.generate(
            template.format(**variables),
            max_tokens=template.max_tokens,
            temperature=template.temperature,
            system_prompt=template.system_prompt,
        )
        return response.content.strip()

    async def analyze(self, item) -> AnalysisResult:
        content = await self._complete(
            PromptType.ENGAGEMENT_ANALYSIS,
            brand_context=self.brand_context,
            community=item.community,
            title=item.title,
            body=item.body or "(no body)",
            score=item.source_score or 0,
        )
        data = parse_json_response(content)
        try:
            score = float(data.get("relevance_score", 0))
        except (TypeError, ValueError):
            raise AIServiceError(f"Relevance score is not a number: {data.get('relevance_score')!r}")

        should_engage = bool(data.get("should_engage", False))
        return AnalysisResult(
            relevance_score=score,
            recommended=should_engage,
            rationale=str(data.get("reasoning") or ""),
            opportunity_type=data.get("opportunity_type"),
            recommended_approach=data.get("recommended_approach"),
            should_engage=should_engage,
            cautions=_as_list(data.get("cautions")),
        )

    async def generate(self, item, options: GenerationOptions) -> str:
        length = DraftLength(options.length or DraftLength.STANDARD)
        style = DraftStyle(options.style or DraftStyle.FRIENDLY)
        custom = f"\nAdditional instructions:\n{options.custom_instructions}\n" if options.custom_instructions else ""
        return await self._complete(
            PromptType.REPLY_GENERATION,
            persona_section=_persona_section(options.persona),
            brand_context=options.brand_voice or self.brand_context,
            length_guidance=LENGTH_GUIDANCE[length.value],
            style_guidance=STYLE_GUIDANCE[style.value],
            custom_instructions=custom,
            community=item.community,
            title=item.title,
            body=item.body or "(no body)",
        )

    async def refine(self, current_text, action, target_style=None, item=None, custom_instructions=None) -> str:
        action = RefineAction(action)
        if action == RefineAction.SHORTEN:
            task = ("Make the reply shorter.\n" + LENGTH_GUIDANCE[DraftLength.CONCISE.value]
                    + "\n- Keep the key point and the voice")
        elif action == RefineAction.EXPAND:
            task = ("Add more detail to the reply.\n" + LENGTH_GUIDANCE[DraftLength.DETAILED.value]
                    + "\n- Keep the voice and avoid padding")
        else:
            style = DraftStyle(target_style or DraftStyle.FRIENDLY)
            task = ("Rewrite the reply in a different style.\n" + STYLE_GUIDANCE[style.value]
                    + "\n- Keep the message and roughly the same length")

        return await self._complete(
            PromptType.REPLY_REFINEMENT,
            community=item.community if item is not None else "the community",
            title=item.title if item is not None else "",
            draft=current_text,
            task=task,
            custom_instructions=f"Also: {custom_instructions}\n" if custom_instructions else "",
        )

    async def proofread(self, text: str, item=None) -> ProofreadResult:
        content = await self._complete(
            PromptType.REPLY_PROOFREAD,
            community=item.community if item is not None else "the community",
            draft=text,
        )
        data = parse_json_response(content)
        confidence = data.get("confidence_score")
        return ProofreadResult(
            issues=_as_list(data.get("issues")),
            suggestions=_as_list(data.get("suggestions")),
            revised_text=data.get("revised_text") or None,
            approval_recommended=bool(data.get("approval_recommendation", False)),
            confidence_score=float(confidence) if isinstance(confidence, (int, float)) else None,
        )
