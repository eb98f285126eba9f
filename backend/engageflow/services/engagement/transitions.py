"""
Engagement transition table

The single source of truth for which operation may run from which status and
where it leads. The state machine guards operations with it; the item store
refuses any status write that is not an edge of the resulting graph.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Dict, FrozenSet, Optional

from engageflow.models.engagement import EngagementStatus, REVIEW_ACTIONABLE_STATUSES

S = EngagementStatus


class Operation(str, Enum):
    ANALYZE = "analyze"
    GENERATE_DRAFT = "generate_draft"
    REFINE = "refine"
    EDIT_DRAFT = "edit_draft"
    PROOFREAD = "proofread"
    APPROVE = "approve"
    REJECT = "reject"
    PUBLISH = "publish"


@dataclass(frozen=True)
class Transition:
    sources: FrozenSet[EngagementStatus]
    # None leaves the status unchanged
    target: Optional[EngagementStatus] = None
    failure_target: Optional[EngagementStatus] = None

    def allows(self, status: EngagementStatus) -> bool:
        return status in self.sources


TRANSITIONS: Dict[Operation, Transition] = {
    Operation.ANALYZE: Transition(frozenset({S.DISCOVERED, S.ANALYZING}), S.ANALYZING),
    Operation.GENERATE_DRAFT: Transition(
        frozenset({S.DISCOVERED, S.ANALYZING, S.DRAFT_READY, S.IN_REVIEW}), S.DRAFT_READY
    ),
    Operation.REFINE: Transition(REVIEW_ACTIONABLE_STATUSES),
    Operation.EDIT_DRAFT: Transition(REVIEW_ACTIONABLE_STATUSES, S.IN_REVIEW),
    Operation.PROOFREAD: Transition(REVIEW_ACTIONABLE_STATUSES),
    Operation.APPROVE: Transition(REVIEW_ACTIONABLE_STATUSES, S.APPROVED),
    Operation.REJECT: Transition(REVIEW_ACTIONABLE_STATUSES, S.REJECTED),
    Operation.PUBLISH: Transition(frozenset({S.APPROVED}), S.PUBLISHED, failure_target=S.FAILED),
}


def _build_graph() -> Dict[EngagementStatus, FrozenSet[EngagementStatus]]:
    edges = {status: set() for status in EngagementStatus}
    for transition in TRANSITIONS.values():
        for source in transition.sources:
            for target in (transition.target, transition.failure_target):
                if target is not None and target != source:
                    edges[source].add(target)
    return {status: frozenset(targets) for status, targets in edges.items()}


STATUS_GRAPH = _build_graph()


def is_valid_edge(current: EngagementStatus, new: EngagementStatus) -> bool:
    return new == current or new in STATUS_GRAPH[current]
