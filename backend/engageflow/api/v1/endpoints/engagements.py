from fastapi import APIRouter, Depends, Query, Request
from typing import Optional

from engageflow.api.deps import get_batch_coordinator, get_item_store, get_state_machine
from engageflow.core.rate_limiting import limiter, RATE_LIMITS
from engageflow.models.engagement import EngagementItem, EngagementStatus
from engageflow.schemas.engagement import (
    ApproveRequest,
    BatchOutcome,
    BatchRequest,
    BatchResponse,
    EditRequest,
    EngagementItem as EngagementItemSchema,
    EngagementListResponse,
    GenerateRequest,
    ProofreadResponse,
    RefineRequest,
    RejectRequest,
)
from engageflow.services.adapters.base import GenerationOptions
from engageflow.services.engagement.batch import BatchActionCoordinator, OutcomeKind
from engageflow.services.engagement.state_machine import EngagementStateMachine
from engageflow.services.engagement.store import EngagementItemStore, ItemFilter

router = APIRouter()


def _to_schema(item: EngagementItem) -> EngagementItemSchema:
    return EngagementItemSchema(
        id=item.id,
        scope=item.scope,
        sourcePostId=item.source_post_id,
        community=item.community,
        sourceUrl=item.source_url,
        title=item.title,
        body=item.body,
        author=item.author,
        matchedKeyword=item.matched_keyword,
        sourceScore=item.source_score,
        sourceCreatedAt=item.source_created_at,
        relevanceScore=item.relevance_score,
        isRecommended=bool(item.is_recommended),
        analysis=item.analysis,
        lowRelevance=bool(item.low_relevance),
        generatedDraft=item.generated_draft,
        editedDraft=item.edited_draft,
        currentDraft=item.current_draft,
        status=item.status,
        assignedAccountId=item.assigned_account_id,
        reviewerId=item.reviewer_id,
        reviewerNotes=item.reviewer_notes,
        reviewedAt=item.reviewed_at,
        publishAttemptedAt=item.publish_attempted_at,
        publishedAt=item.published_at,
        publishedReferenceId=item.published_reference_id,
        publishError=item.publish_error,
        version=item.version,
        discoveredAt=item.discovered_at,
        updatedAt=item.updated_at
    )


def _batch_response(outcomes) -> BatchResponse:
    return BatchResponse(
        results=[BatchOutcome(id=o.id, outcome=o.outcome, detail=o.detail) for o in outcomes],
        succeeded=sum(1 for o in outcomes if o.outcome == OutcomeKind.SUCCESS),
        failed=sum(1 for o in outcomes if o.outcome == OutcomeKind.ERROR),
        skipped=sum(1 for o in outcomes if o.outcome == OutcomeKind.SKIPPED)
    )


@router.get("", response_model=EngagementListResponse)
def list_engagements(
    status: Optional[EngagementStatus] = None,
    community: Optional[str] = None,
    recommended: Optional[bool] = None,
    scope: Optional[str] = None,
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    item_store: EngagementItemStore = Depends(get_item_store)
):
    """
    Engagement items, most recently discovered first
    """
    items, total = item_store.list_items(ItemFilter(
        status=status,
        community=community,
        recommended=recommended,
        scope=scope,
        limit=limit,
        offset=offset
    ))
    return EngagementListResponse(
        items=[_to_schema(item) for item in items],
        total=total,
        limit=limit,
        offset=offset
    )


# Batch routes are declared before /{item_id} routes so "batch" is never parsed as an id
@router.post("/batch/approve", response_model=BatchResponse)
async def batch_approve(
    body: BatchRequest,
    coordinator: BatchActionCoordinator = Depends(get_batch_coordinator)
):
    outcomes = await coordinator.batch_approve(body.ids, reviewer_id=body.reviewerId)
    return _batch_response(outcomes)


@router.post("/batch/reject", response_model=BatchResponse)
async def batch_reject(
    body: BatchRequest,
    coordinator: BatchActionCoordinator = Depends(get_batch_coordinator)
):
    outcomes = await coordinator.batch_reject(body.ids, reviewer_id=body.reviewerId, notes=body.notes)
    return _batch_response(outcomes)


@router.get("/{item_id}", response_model=EngagementItemSchema)
def get_engagement(
    item_id: int,
    item_store: EngagementItemStore = Depends(get_item_store)
):
    return _to_schema(item_store.get(item_id))


@router.patch("/{item_id}", response_model=EngagementItemSchema)
async def edit_engagement(
    item_id: int,
    body: EditRequest,
    state_machine: EngagementStateMachine = Depends(get_state_machine)
):
    """
    Human edit of the draft, account assignment or notes; moves the item to in_review
    """
    item = await state_machine.edit_draft(
        item_id,
        edited_draft=body.editedDraft,
        assigned_account_id=body.assignedAccountId,
        reviewer_notes=body.reviewerNotes
    )
    return _to_schema(item)


@router.post("/{item_id}/analyze", response_model=EngagementItemSchema)
@limiter.limit(RATE_LIMITS["ai_action"])
async def analyze_engagement(
    request: Request,
    item_id: int,
    state_machine: EngagementStateMachine = Depends(get_state_machine)
):
    return _to_schema(await state_machine.analyze(item_id))


@router.post("/{item_id}/generate", response_model=EngagementItemSchema)
@limiter.limit(RATE_LIMITS["ai_action"])
async def generate_draft(
    request: Request,
    item_id: int,
    body: Optional[GenerateRequest] = None,
    state_machine: EngagementStateMachine = Depends(get_state_machine)
):
    body = body or GenerateRequest()
    options = GenerationOptions(
        length=body.length,
        style=body.style,
        brand_voice=body.brandVoice,
        custom_instructions=body.customInstructions,
        persona=body.persona
    )
    item = await state_machine.generate_draft(item_id, account_id=body.accountId, options=options)
    return _to_schema(item)


@router.post("/{item_id}/refine", response_model=EngagementItemSchema)
@limiter.limit(RATE_LIMITS["ai_action"])
async def refine_draft(
    request: Request,
    item_id: int,
    body: RefineRequest,
    state_machine: EngagementStateMachine = Depends(get_state_machine)
):
    item = await state_machine.refine(
        item_id,
        body.action,
        target_style=body.targetStyle,
        custom_instructions=body.customInstructions
    )
    return _to_schema(item)


@router.post("/{item_id}/proofread", response_model=ProofreadResponse)
@limiter.limit(RATE_LIMITS["ai_action"])
async def proofread_draft(
    request: Request,
    item_id: int,
    state_machine: EngagementStateMachine = Depends(get_state_machine)
):
    result = await state_machine.proofread(item_id)
    return ProofreadResponse(
        issues=result.issues,
        suggestions=result.suggestions,
        revisedText=result.revised_text,
        approvalRecommended=result.approval_recommended,
        confidenceScore=result.confidence_score
    )


@router.post("/{item_id}/approve", response_model=EngagementItemSchema)
async def approve_engagement(
    item_id: int,
    body: Optional[ApproveRequest] = None,
    state_machine: EngagementStateMachine = Depends(get_state_machine)
):
    reviewer_id = body.reviewerId if body else None
    return _to_schema(await state_machine.approve(item_id, reviewer_id=reviewer_id))


@router.post("/{item_id}/reject", response_model=EngagementItemSchema)
async def reject_engagement(
    item_id: int,
    body: Optional[RejectRequest] = None,
    state_machine: EngagementStateMachine = Depends(get_state_machine)
):
    body = body or RejectRequest()
    item = await state_machine.reject(item_id, reviewer_id=body.reviewerId, notes=body.notes)
    return _to_schema(item)


@router.post("/{item_id}/publish", response_model=EngagementItemSchema)
@limiter.limit(RATE_LIMITS["publish"])
async def publish_engagement(
    request: Request,
    item_id: int,
    state_machine: EngagementStateMachine = Depends(get_state_machine)
):
    """
    Post the approved draft; no automatic retry, a failure leaves the item in failed
    """
    return _to_schema(await state_machine.publish(item_id))
