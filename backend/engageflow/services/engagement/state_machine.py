"""
Engagement State Machine

Owns every status change of an engagement item. Each operation is guarded by
the transition table, performs at most one adapter call bounded by a timeout,
and then writes its result through the item store against the version it
read. Nothing is written when an adapter fails, except for publish, which
records the failure on the item.
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, Optional, Tuple, Type

from engageflow.core.config import settings
from engageflow.core.exceptions import (
    AccountIneligibleError,
    AdapterUnavailableError,
    AnalysisUnavailableError,
    ConcurrentModificationError,
    ConflictError,
    ContentTooLongError,
    GenerationUnavailableError,
    InvalidTransitionError,
    PublishUnavailableError,
    ValidationError,
)
from engageflow.models.engagement import EngagementItem, EngagementStatus, utcnow
from engageflow.services.adapters.base import (
    AccountEligibilityProvider,
    DraftGenerator,
    DraftStyle,
    GenerationOptions,
    ProofreadResult,
    Publisher,
    RefineAction,
)
from engageflow.services.engagement.store import EngagementItemStore
from engageflow.services.engagement.transitions import Operation, Transition, TRANSITIONS

logger = logging.getLogger(__name__)

ChangeBuilder = Callable[[EngagementItem], Dict[str, Any]]


class EngagementStateMachine:
    def __init__(
        self,
        item_store: EngagementItemStore,
        generator: DraftGenerator,
        publisher: Publisher,
        eligibility: AccountEligibilityProvider,
        timeout: Optional[float] = None,
        recommended_threshold: Optional[float] = None,
        publish_threshold: Optional[float] = None,
        max_publish_length: Optional[int] = None,
        write_retries: Optional[int] = None,
    ):
        self.item_store = item_store
        self.generator = generator
        self.publisher = publisher
        self.eligibility = eligibility
        self.timeout = settings.ADAPTER_TIMEOUT_SECONDS if timeout is None else timeout
        self.recommended_threshold = (
            settings.RECOMMENDED_RELEVANCE_THRESHOLD if recommended_threshold is None else recommended_threshold
        )
        self.publish_threshold = (
            settings.PUBLISH_RELEVANCE_THRESHOLD if publish_threshold is None else publish_threshold
        )
        self.max_publish_length = settings.MAX_PUBLISH_LENGTH if max_publish_length is None else max_publish_length
        self.write_retries = max(1, settings.ITEM_WRITE_RETRIES if write_retries is None else write_retries)

    # Guards and helpers

    def _guard(self, item: EngagementItem, operation: Operation) -> Transition:
        transition = TRANSITIONS[operation]
        if not transition.allows(item.status):
            raise InvalidTransitionError(operation.value, item.status.value, item.id)
        return transition

    def _load(self, item_id: int, operation: Operation) -> Tuple[EngagementItem, Transition]:
        item = self.item_store.get(item_id)
        return item, self._guard(item, operation)

    async def _call(self, awaitable: Awaitable, error_cls: Type[AdapterUnavailableError], what: str):
        try:
            return await asyncio.wait_for(awaitable, timeout=self.timeout)
        except asyncio.TimeoutError:
            logger.warning(f"{what} timed out after {self.timeout:g}s")
            raise error_cls(f"{what} timed out after {self.timeout:g}s")
        except Exception as e:
            logger.warning(f"{what} failed: {type(e).__name__}: {e}")
            raise error_cls(f"{what} failed: {e}") from e

    def _apply_local(self, item_id: int, operation: Operation, build: ChangeBuilder) -> EngagementItem:
        """Re-read, re-guard and retry a write that calls no adapter"""
        for attempt in range(1, self.write_retries + 1):
            item, transition = self._load(item_id, operation)
            changes = build(item)
            try:
                return self.item_store.apply(item, changes, status=transition.target)
            except ConcurrentModificationError:
                if attempt == self.write_retries:
                    raise
                logger.debug(f"Item {item_id}: {operation.value} lost a race, retrying ({attempt})")

    def _draft_of(self, item: EngagementItem, purpose: str) -> str:
        text = item.current_draft
        if not text or not text.strip():
            raise ValidationError(f"Item {item.id} has no draft to {purpose}")
        return text

    # Operations

    async def analyze(self, item_id: int) -> EngagementItem:
        item, transition = self._load(item_id, Operation.ANALYZE)
        result = await self._call(self.generator.analyze(item), AnalysisUnavailableError, "Analysis")

        score = max(0.0, min(10.0, float(result.relevance_score)))
        summary = result.to_summary()
        summary["recommended"] = bool(result.recommended)
        changes = {
            "relevance_score": score,
            "is_recommended": score >= self.recommended_threshold,
            "analysis": summary,
        }
        return self.item_store.apply(item, changes, status=transition.target)

    async def generate_draft(self, item_id: int, account_id: Optional[str] = None,
                             options: Optional[GenerationOptions] = None) -> EngagementItem:
        item, transition = self._load(item_id, Operation.GENERATE_DRAFT)
        draft = await self._call(
            self.generator.generate(item, options or GenerationOptions()),
            GenerationUnavailableError,
            "Draft generation",
        )
        if not draft or not draft.strip():
            raise GenerationUnavailableError("Draft generation returned no text")

        low_relevance = item.relevance_score is not None and item.relevance_score < self.publish_threshold
        changes = {"generated_draft": draft, "low_relevance": low_relevance}
        if not item.edited_draft:
            changes["edited_draft"] = draft
        if account_id:
            changes["assigned_account_id"] = account_id

        updated = self.item_store.apply(item, changes, status=transition.target)
        if low_relevance:
            logger.info(f"Item {item.id} drafted below the publish relevance threshold ({item.relevance_score})")
        return updated

    async def refine(self, item_id: int, action: RefineAction, target_style: Optional[DraftStyle] = None,
                     custom_instructions: Optional[str] = None) -> EngagementItem:
        item, transition = self._load(item_id, Operation.REFINE)
        action = RefineAction(action)
        if action == RefineAction.RESTYLE and target_style is None:
            raise ValidationError("A target style is required to restyle a draft")
        current = self._draft_of(item, "refine")

        revised = await self._call(
            self.generator.refine(
                current,
                action,
                target_style=DraftStyle(target_style) if target_style else None,
                item=item,
                custom_instructions=custom_instructions,
            ),
            GenerationUnavailableError,
            "Refinement",
        )
        if not revised or not revised.strip():
            raise GenerationUnavailableError("Refinement returned no text")
        return self.item_store.apply(item, {"edited_draft": revised}, status=transition.target)

    async def edit_draft(self, item_id: int, edited_draft: Optional[str] = None,
                         assigned_account_id: Optional[str] = None,
                         reviewer_notes: Optional[str] = None) -> EngagementItem:
        if edited_draft is not None and not edited_draft.strip():
            raise ValidationError("Edited draft cannot be empty")

        def build(item):
            changes = {}
            if edited_draft is not None:
                changes["edited_draft"] = edited_draft
            if assigned_account_id is not None:
                changes["assigned_account_id"] = assigned_account_id or None
            if reviewer_notes is not None:
                changes["reviewer_notes"] = reviewer_notes
            return changes

        return self._apply_local(item_id, Operation.EDIT_DRAFT, build)

    async def proofread(self, item_id: int) -> ProofreadResult:
        item, _ = self._load(item_id, Operation.PROOFREAD)
        text = self._draft_of(item, "proofread")
        return await self._call(self.generator.proofread(text, item=item), GenerationUnavailableError, "Proofreading")

    async def approve(self, item_id: int, reviewer_id: Optional[str] = None) -> EngagementItem:
        def build(item):
            text = self._draft_of(item, "approve")
            if len(text) > self.max_publish_length:
                raise ContentTooLongError(len(text), self.max_publish_length)
            changes = {"reviewed_at": utcnow()}
            if reviewer_id:
                changes["reviewer_id"] = reviewer_id
            return changes

        return self._apply_local(item_id, Operation.APPROVE, build)

    async def reject(self, item_id: int, reviewer_id: Optional[str] = None,
                     notes: Optional[str] = None) -> EngagementItem:
        def build(item):
            changes = {"reviewed_at": utcnow()}
            if reviewer_id:
                changes["reviewer_id"] = reviewer_id
            if notes:
                changes["reviewer_notes"] = notes
            return changes

        return self._apply_local(item_id, Operation.REJECT, build)

    async def publish(self, item_id: int) -> EngagementItem:
        item, transition = self._load(item_id, Operation.PUBLISH)
        if item.publish_attempted_at is not None:
            raise ConflictError(f"Publishing of item {item.id} is already in progress")

        account_id = item.assigned_account_id
        if not account_id:
            raise AccountIneligibleError(f"Item {item.id} has no assigned account")
        text = self._draft_of(item, "publish")

        eligible = await self._call(
            self.eligibility.is_eligible(account_id), PublishUnavailableError, "Eligibility check"
        )
        if not eligible:
            raise AccountIneligibleError(f"Account {account_id} is not eligible to publish right now")

        # claim before the external call; a racing publish fails on the version check or sees the claim
        claimed = self.item_store.apply(item, {"publish_attempted_at": utcnow()})

        try:
            result = await asyncio.wait_for(self.publisher.publish(text, account_id, claimed), timeout=self.timeout)
        except asyncio.TimeoutError:
            message = f"Publish timed out after {self.timeout:g}s"
            self._record_publish_failure(claimed, transition, message)
            raise PublishUnavailableError(message)
        except Exception as e:
            message = f"Publish failed: {e}"
            self._record_publish_failure(claimed, transition, message)
            raise PublishUnavailableError(message) from e

        published = self.item_store.apply(
            claimed,
            {
                "published_at": utcnow(),
                "published_reference_id": result.external_id,
                "publish_error": None,
            },
            status=transition.target,
        )
        logger.info(f"Item {item.id} published as {result.external_id} from account {account_id}")
        return published

    def _record_publish_failure(self, item: EngagementItem, transition: Transition, message: str) -> None:
        logger.error(f"Item {item.id}: {message}")
        self.item_store.apply(item, {"publish_error": message}, status=transition.failure_target)
