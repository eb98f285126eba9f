"""
External Adapter Contracts

Abstract interfaces for the collaborators the engagement workflow consumes:
content / channel / analytics sources, the AI draft generator, the publisher
and the account eligibility provider. Concrete implementations live next to
this module; tests substitute in-memory fakes.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional


class DraftLength(str, Enum):
    CONCISE = "concise"
    STANDARD = "standard"
    DETAILED = "detailed"


class DraftStyle(str, Enum):
    CASUAL = "casual"
    PROFESSIONAL = "professional"
    TECHNICAL = "technical"
    FRIENDLY = "friendly"


class RefineAction(str, Enum):
    SHORTEN = "shorten"
    EXPAND = "expand"
    RESTYLE = "restyle"


@dataclass
class GenerationOptions:
    """Optional knobs for draft generation"""
    length: Optional[DraftLength] = None
    style: Optional[DraftStyle] = None
    brand_voice: Optional[str] = None
    custom_instructions: Optional[str] = None
    persona: Optional[Dict[str, Any]] = None


@dataclass
class AnalysisResult:
    """Relevance assessment of a discovered post"""
    relevance_score: float
    recommended: bool
    rationale: str = ""
    opportunity_type: Optional[str] = None
    recommended_approach: Optional[str] = None
    should_engage: bool = True
    cautions: List[str] = field(default_factory=list)

    def to_summary(self) -> Dict[str, Any]:
        return {
            "rationale": self.rationale,
            "opportunity_type": self.opportunity_type,
            "recommended_approach": self.recommended_approach,
            "should_engage": self.should_engage,
            "cautions": list(self.cautions),
        }


@dataclass
class ProofreadResult:
    issues: List[str] = field(default_factory=list)
    suggestions: List[str] = field(default_factory=list)
    revised_text: Optional[str] = None
    approval_recommended: bool = False
    confidence_score: Optional[float] = None


@dataclass
class PublishResult:
    external_id: str
    url: Optional[str] = None


@dataclass
class SourceBatch:
    """One unit of fetched work: the raw records of a single search or page"""
    label: str
    records: List[Dict[str, Any]]
    keyword: Optional[str] = None


class AdapterError(Exception):
    """Raised by adapters for failures the caller should surface"""
    def __init__(self, message: str, provider: str = "", original_error: Exception = None):
        self.message = message
        self.provider = provider
        self.original_error = original_error
        super().__init__(self.message)


class ContentSource(ABC):
    """Searches a community for posts matching a keyword"""

    @abstractmethod
    async def search(self, community: str, keyword: str, limit: int) -> List[Dict[str, Any]]:
        pass


class ChannelSource(ABC):
    """Searches a video platform for channels matching a keyword"""

    @abstractmethod
    async def search_channels(self, keyword: str, max_results: int) -> List[Dict[str, Any]]:
        pass


class AnalyticsSource(ABC):
    """Pages through search analytics rows for a date range"""

    @abstractmethod
    async def query(self, start_date: str, end_date: str, row_limit: int, start_row: int) -> List[Dict[str, Any]]:
        pass


class DraftGenerator(ABC):
    """AI text adapter used by the state machine"""

    @abstractmethod
    async def analyze(self, item) -> AnalysisResult:
        pass

    @abstractmethod
    async def generate(self, item, options: GenerationOptions) -> str:
        pass

    @abstractmethod
    async def refine(
        self,
        current_text: str,
        action: RefineAction,
        target_style: Optional[DraftStyle] = None,
        item=None,
        custom_instructions: Optional[str] = None,
    ) -> str:
        pass

    @abstractmethod
    async def proofread(self, text: str, item=None) -> ProofreadResult:
        pass


class Publisher(ABC):
    """Posts a reply on the external platform; never retried by the core"""

    @abstractmethod
    async def publish(self, text: str, account_id: str, item) -> PublishResult:
        pass


class AccountEligibilityProvider(ABC):
    """Warm-up, suspension and rate checks for an account"""

    @abstractmethod
    async def is_eligible(self, account_id: str) -> bool:
        pass
