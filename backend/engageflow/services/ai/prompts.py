"""
AI Prompt Templates

Versioned prompt templates for the engagement workflow: relevance analysis of
a discovered post, reply drafting, refinement and proofreading.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Optional
import logging

logger = logging.getLogger(__name__)


class PromptType(str, Enum):
    """Types of prompts"""
    ENGAGEMENT_ANALYSIS = "engagement_analysis"
    REPLY_GENERATION = "reply_generation"
    REPLY_REFINEMENT = "reply_refinement"
    REPLY_PROOFREAD = "reply_proofread"


LENGTH_GUIDANCE: Dict[str, str] = {
    "concise": "- Stay below roughly 80 words\n- Lead with the answer and drop any padding",
    "standard": "- Stay below roughly 150 words\n- Be complete without rambling",
    "detailed": "- Up to roughly 300 words is fine\n- Use a concrete example or explanation where it helps",
}

STYLE_GUIDANCE: Dict[str, str] = {
    "casual": "- Relaxed, conversational wording; contractions are fine\n- A little humour is fine when it fits the thread",
    "professional": "- Polished and measured wording\n- No slang",
    "technical": "- Precise terminology\n- Back claims with specifics or data\n- Assume the reader knows the domain",
    "friendly": "- Warm and encouraging\n- Show real interest in the poster's situation",
}


@dataclass
class PromptTemplate:
    """Prompt template with metadata and versioning"""
    name: str
    template: str
    version: str
    description: str
    variables: List[str]
    max_tokens: int = 1000
    temperature: float = 0.7
    system_prompt: str = ""

    def format(self, **kwargs) -> str:
        """Format template with provided variables"""
        missing = [var for var in self.variables if var not in kwargs]
        if missing:
            raise ValueError(f"Missing required variables: {missing}")
        return self.template.format(**kwargs)


class PromptRegistry:
    """Registry for managing prompt templates"""

    def __init__(self):
        self.templates: Dict[str, Dict[str, PromptTemplate]] = {}
        self._initialize_default_templates()

    def _initialize_default_templates(self):
        self.register_template(PromptTemplate(
            name=PromptType.ENGAGEMENT_ANALYSIS.value,
            template="""Decide whether the brand below should reply to this community post.

Brand context:
{brand_context}

Post:
Community: {community}
Title: {title}
Body: {body}
Score: {score}

Answer with a single JSON object and nothing else:
{{
  "relevance_score": <number from 1 to 10>,
  "opportunity_type": "education|problem_solving|community|competitor|brand_mention",
  "reasoning": "<one or two sentences>",
  "recommended_approach": "<how to reply, if at all>",
  "should_engage": <true or false>,
  "cautions": ["<risks to keep in mind>"]
}}""",
            version="1.0",
            description="Scores a discovered post for engagement relevance",
            variables=["brand_context", "community", "title", "body", "score"],
            max_tokens=600,
            temperature=0.2,
            system_prompt="You assess online discussions for a brand's community team and answer in strict JSON."
        ))

        self.register_template(PromptTemplate(
            name=PromptType.REPLY_GENERATION.value,
            template="""Write a reply to the post below.

{persona_section}
Brand context:
{brand_context}

Length:
{length_guidance}

Style:
{style_guidance}

Rules:
- Be useful first; mention the product only where it genuinely helps
- Keep product talk to a small part of the reply
- Follow the norms of {community}
- Never read like an advert
{custom_instructions}
Post:
Community: {community}
Title: {title}
Body: {body}

Return only the reply text, with no preamble or commentary.""",
            version="1.0",
            description="Drafts a reply in the configured persona and brand voice",
            variables=["persona_section", "brand_context", "length_guidance", "style_guidance",
                       "custom_instructions", "community", "title", "body"],
            max_tokens=800,
            temperature=0.7,
            system_prompt="You write authentic, helpful community replies on behalf of a brand."
        ))

        self.register_template(PromptTemplate(
            name=PromptType.REPLY_REFINEMENT.value,
            template="""Revise this draft reply for a post in {community}.

Post title: {title}

Current draft:
{draft}

Task:
{task}
{custom_instructions}
Return only the revised reply text.""",
            version="1.0",
            description="Shortens, expands or restyles an existing draft",
            variables=["community", "title", "draft", "task", "custom_instructions"],
            max_tokens=800,
            temperature=0.5,
            system_prompt="You edit community replies while keeping the author's voice."
        ))

        self.register_template(PromptTemplate(
            name=PromptType.REPLY_PROOFREAD.value,
            template="""Review this draft reply for {community} before it is posted.

Draft:
{draft}

Check spelling and grammar, tone, how promotional it reads, community etiquette,
whether it sounds natural, and any claim that would need a source.

Answer with a single JSON object and nothing else:
{{
  "issues": ["<problems found>"],
  "suggestions": ["<improvements>"],
  "revised_text": "<improved reply, or an empty string if none is needed>",
  "approval_recommendation": <true or false>,
  "confidence_score": <number from 1 to 10>
}}""",
            version="1.0",
            description="Quality and brand-safety review of a draft",
            variables=["community", "draft"],
            max_tokens=800,
            temperature=0.2,
            system_prompt="You are a careful editor reviewing brand replies and answer in strict JSON."
        ))

    def register_template(self, template: PromptTemplate):
        if template.name not in self.templates:
            self.templates[template.name] = {}
        self.templates[template.name][template.version] = template
        logger.debug(f"Registered prompt template: {template.name} v{template.version}")

    def get_template(self, name: str, version: str = None) -> PromptTemplate:
        """Get a template; the highest version unless one is named"""
        versions = self.templates.get(name)
        if not versions:
            raise ValueError(f"Prompt template '{name}' not found")
        if version:
            if version not in versions:
                raise ValueError(f"Prompt template '{name}' has no version {version}")
            return versions[version]
        return versions[max(versions)]


_prompt_registry: Optional[PromptRegistry] = None


def get_prompt_registry() -> PromptRegistry:
    global _prompt_registry
    if _prompt_registry is None:
        _prompt_registry = PromptRegistry()
    return _prompt_registry
