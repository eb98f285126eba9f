import pytest

from engageflow.services.adapters.base import DraftLength, DraftStyle, GenerationOptions, RefineAction
from engageflow.services.ai.base import (
    AIProvider,
    AIResponse,
    AIServiceError,
    AIUsageMetrics,
    BaseAIService,
)
from engageflow.services.ai.draft_generator import LLMDraftGenerator, clean_json_response, parse_json_response
from engageflow.services.ai.prompts import PromptRegistry, PromptType
from tests.factories import EngagementItemFactory


class CannedAIService(BaseAIService):
    """Returns queued completions and remembers the prompts it was given."""

    def __init__(self, *responses):
        super().__init__(AIProvider.ANTHROPIC, "test-model")
        self.responses = list(responses)
        self.prompts = []

    async def _make_request(self, prompt: str, **kwargs) -> AIResponse:
        self.prompts.append((prompt, kwargs))
        return AIResponse(
            content=self.responses.pop(0),
            usage=AIUsageMetrics(provider=self.provider, model=self.model, tokens_input=10, tokens_output=5),
        )


@pytest.fixture
def post():
    return EngagementItemFactory.build(
        community="homegym",
        title="Best compact rower for a small flat?",
        body="Looking for something quiet.",
        source_score=42,
    )


@pytest.mark.unit
class TestJsonParsing:

    def test_clean_json_response_strips_fences(self):
        assert clean_json_response('```json\n{"a": 1}\n```') == '{"a": 1}'
        assert clean_json_response('```\n{"a": 1}```') == '{"a": 1}'
        assert clean_json_response('{"a": 1}') == '{"a": 1}'

    def test_parse_json_response_finds_object_in_prose(self):
        assert parse_json_response('Sure! Here it is: {"score": 7} Hope that helps') == {"score": 7}

    def test_parse_json_response_rejects_garbage(self):
        with pytest.raises(AIServiceError):
            parse_json_response("I cannot help with that")
        with pytest.raises(AIServiceError):
            parse_json_response("[1, 2, 3]")


@pytest.mark.unit
class TestLLMDraftGenerator:
    """Prompt building and response mapping over a canned provider."""

    @pytest.mark.asyncio
    async def test_analyze_maps_json_fields(self, post):
        service = CannedAIService(
            '```json\n{"relevance_score": 8.5, "should_engage": true, "reasoning": "Direct product fit",'
            ' "opportunity_type": "recommendation_request", "cautions": ["no hard sell"]}\n```'
        )
        generator = LLMDraftGenerator(service=service, brand_context="- Product: QuietRow compact rower")

        result = await generator.analyze(post)

        assert result.relevance_score == 8.5
        assert result.recommended is True
        assert result.rationale == "Direct product fit"
        assert result.cautions == ["no hard sell"]
        prompt, kwargs = service.prompts[0]
        assert "QuietRow compact rower" in prompt
        assert "Best compact rower for a small flat?" in prompt
        assert kwargs["system_prompt"]

    @pytest.mark.asyncio
    async def test_analyze_rejects_non_numeric_score(self, post):
        generator = LLMDraftGenerator(service=CannedAIService('{"relevance_score": "high"}'))

        with pytest.raises(AIServiceError):
            await generator.analyze(post)

    @pytest.mark.asyncio
    async def test_generate_includes_options_in_prompt(self, post):
        service = CannedAIService("Have you looked at magnetic rowers? Mine is whisper quiet.")
        generator = LLMDraftGenerator(service=service)
        options = GenerationOptions(
            length=DraftLength.CONCISE,
            style=DraftStyle.TECHNICAL,
            custom_instructions="Mention the folding frame",
            persona={"name": "Sam", "traits": ["patient", "practical"]},
        )

        draft = await generator.generate(post, options)

        assert draft == "Have you looked at magnetic rowers? Mine is whisper quiet."
        prompt = service.prompts[0][0]
        assert "Mention the folding frame" in prompt
        assert "Name: Sam" in prompt
        assert "Traits: patient, practical" in prompt
        assert "roughly 80 words" in prompt
        assert "Precise terminology" in prompt

    @pytest.mark.asyncio
    async def test_refine_shorten_sends_current_draft(self, post):
        service = CannedAIService("Shorter reply.")
        generator = LLMDraftGenerator(service=service)

        revised = await generator.refine("A long reply " * 20, RefineAction.SHORTEN, item=post)

        assert revised == "Shorter reply."
        prompt = service.prompts[0][0]
        assert "Make the reply shorter." in prompt
        assert "A long reply" in prompt

    @pytest.mark.asyncio
    async def test_proofread_maps_result(self):
        service = CannedAIService(
            '{"issues": ["typo in line 1"], "suggestions": [], "revised_text": "Fixed text",'
            ' "approval_recommendation": false, "confidence_score": 6}'
        )
        generator = LLMDraftGenerator(service=service)

        result = await generator.proofread("Fxied text")

        assert result.issues == ["typo in line 1"]
        assert result.revised_text == "Fixed text"
        assert result.approval_recommended is False
        assert result.confidence_score == 6.0

    @pytest.mark.asyncio
    async def test_empty_completion_is_an_error(self, post):
        generator = LLMDraftGenerator(service=CannedAIService("   "))

        with pytest.raises(AIServiceError):
            await generator.generate(post, GenerationOptions())

    @pytest.mark.asyncio
    async def test_usage_is_tracked(self, post):
        service = CannedAIService("one", "two")
        generator = LLMDraftGenerator(service=service)

        await generator.generate(post, GenerationOptions())
        await generator.generate(post, GenerationOptions())

        stats = service.get_usage_stats()
        assert stats["total_requests"] == 2
        assert stats["total_tokens_input"] == 20

    def test_usage_is_kept_as_running_totals(self):
        service = CannedAIService()
        assert service.get_usage_stats() == {}

        for latency in range(1000):
            service.record_usage(AIUsageMetrics(
                provider=service.provider, model=service.model,
                tokens_input=3, tokens_output=2, latency_ms=latency,
            ))

        stats = service.get_usage_stats()
        assert stats["total_requests"] == 1000
        assert stats["total_tokens_input"] == 3000
        assert stats["total_tokens_output"] == 2000
        assert stats["average_latency_ms"] == 499.5
        assert not any(isinstance(value, list) and len(value) >= 1000 for value in vars(service).values())


@pytest.mark.unit
class TestPromptRegistry:

    def test_every_prompt_type_is_registered(self):
        registry = PromptRegistry()

        for prompt_type in PromptType:
            assert registry.get_template(prompt_type.value).name == prompt_type.value

    def test_missing_variables_are_reported(self):
        template = PromptRegistry().get_template(PromptType.REPLY_PROOFREAD.value)

        with pytest.raises(ValueError):
            template.format(community="homegym")

    def test_unknown_template(self):
        with pytest.raises(ValueError):
            PromptRegistry().get_template("does_not_exist")
