from pydantic import BaseModel, Field
from datetime import datetime
from typing import Optional, Dict, Any, List

from engageflow.models.engagement import EngagementStatus
from engageflow.services.adapters.base import DraftLength, DraftStyle, RefineAction
from engageflow.services.engagement.batch import OutcomeKind


class EngagementItem(BaseModel):
    id: int
    scope: str
    sourcePostId: str
    community: str
    sourceUrl: Optional[str] = None
    title: str
    body: Optional[str] = None
    author: Optional[str] = None
    matchedKeyword: Optional[str] = None
    sourceScore: Optional[int] = None
    sourceCreatedAt: Optional[datetime] = None

    relevanceScore: Optional[float] = None
    isRecommended: bool = False
    analysis: Optional[Dict[str, Any]] = None
    lowRelevance: bool = False

    generatedDraft: Optional[str] = None
    editedDraft: Optional[str] = None
    currentDraft: Optional[str] = None

    status: EngagementStatus
    assignedAccountId: Optional[str] = None
    reviewerId: Optional[str] = None
    reviewerNotes: Optional[str] = None
    reviewedAt: Optional[datetime] = None

    publishAttemptedAt: Optional[datetime] = None
    publishedAt: Optional[datetime] = None
    publishedReferenceId: Optional[str] = None
    publishError: Optional[str] = None

    version: int
    discoveredAt: datetime
    updatedAt: Optional[datetime] = None

    class Config:
        from_attributes = True


class EngagementListResponse(BaseModel):
    items: List[EngagementItem]
    total: int
    limit: int
    offset: int


class GenerateRequest(BaseModel):
    accountId: Optional[str] = None
    length: Optional[DraftLength] = None
    style: Optional[DraftStyle] = None
    brandVoice: Optional[str] = None
    customInstructions: Optional[str] = None
    persona: Optional[Dict[str, Any]] = None


class RefineRequest(BaseModel):
    action: RefineAction
    targetStyle: Optional[DraftStyle] = None
    customInstructions: Optional[str] = None


class EditRequest(BaseModel):
    editedDraft: Optional[str] = None
    assignedAccountId: Optional[str] = None
    reviewerNotes: Optional[str] = None


class ApproveRequest(BaseModel):
    reviewerId: Optional[str] = None


class RejectRequest(BaseModel):
    reviewerId: Optional[str] = None
    notes: Optional[str] = None


class ProofreadResponse(BaseModel):
    issues: List[str]
    suggestions: List[str]
    revisedText: Optional[str] = None
    approvalRecommended: bool
    confidenceScore: Optional[float] = None


class BatchRequest(BaseModel):
    ids: List[int] = Field(min_length=1, max_length=100)
    reviewerId: Optional[str] = None
    notes: Optional[str] = None


class BatchOutcome(BaseModel):
    id: int
    outcome: OutcomeKind
    detail: Optional[str] = None


class BatchResponse(BaseModel):
    results: List[BatchOutcome]
    succeeded: int
    failed: int
    skipped: int
