"""
Bulk approve / reject over a list of item ids.

Each id is handled on its own: one failing item never stops the rest, and
the caller always gets back one outcome per distinct id.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Awaitable, Callable, Iterable, List, Optional

from engageflow.core.exceptions import EngageFlowError
from engageflow.models.engagement import EngagementItem, is_review_actionable
from engageflow.services.engagement.state_machine import EngagementStateMachine
from engageflow.services.engagement.store import EngagementItemStore

logger = logging.getLogger(__name__)


class OutcomeKind(str, Enum):
    SUCCESS = "success"
    ERROR = "error"
    SKIPPED = "skipped"


@dataclass
class BatchOutcome:
    id: int
    outcome: OutcomeKind
    detail: Optional[str] = None


class BatchActionCoordinator:
    def __init__(self, state_machine: EngagementStateMachine, item_store: EngagementItemStore):
        self.state_machine = state_machine
        self.item_store = item_store

    async def batch_approve(self, item_ids: Iterable[int], reviewer_id: Optional[str] = None) -> List[BatchOutcome]:
        return await self._run(
            "approve", item_ids, lambda item_id: self.state_machine.approve(item_id, reviewer_id=reviewer_id)
        )

    async def batch_reject(self, item_ids: Iterable[int], reviewer_id: Optional[str] = None,
                           notes: Optional[str] = None) -> List[BatchOutcome]:
        return await self._run(
            "reject", item_ids,
            lambda item_id: self.state_machine.reject(item_id, reviewer_id=reviewer_id, notes=notes),
        )

    async def _run(self, action: str, item_ids: Iterable[int],
                   invoke: Callable[[int], Awaitable[EngagementItem]]) -> List[BatchOutcome]:
        ids = list(dict.fromkeys(item_ids))
        items = self.item_store.get_many(ids)

        outcomes = []
        for item_id in ids:
            item = items.get(item_id)
            if item is None:
                outcomes.append(BatchOutcome(item_id, OutcomeKind.ERROR, "not found"))
                continue
            if not is_review_actionable(item.status):
                outcomes.append(BatchOutcome(item_id, OutcomeKind.SKIPPED, f"status is {item.status.value}"))
                continue

            try:
                await invoke(item_id)
            except EngageFlowError as e:
                outcomes.append(BatchOutcome(item_id, OutcomeKind.ERROR, e.message))
            except Exception as e:
                logger.exception(f"Unexpected error during batch {action} of item {item_id}")
                outcomes.append(BatchOutcome(item_id, OutcomeKind.ERROR, str(e)))
            else:
                outcomes.append(BatchOutcome(item_id, OutcomeKind.SUCCESS))

        succeeded = sum(1 for o in outcomes if o.outcome == OutcomeKind.SUCCESS)
        logger.info(f"Batch {action}: {succeeded}/{len(ids)} succeeded")
        return outcomes
