"""
Engagement Item Store

Every write is a conditional UPDATE keyed on (id, version) that bumps the
version, so two operations racing on the same item cannot both apply to a
stale read. Status changes must follow the transition graph; callers cannot
write status, version or identity columns through the generic change set.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional, Tuple

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import sessionmaker

from engageflow.core.exceptions import ConcurrentModificationError, ItemNotFoundError
from engageflow.models.engagement import EngagementItem, EngagementStatus
from engageflow.services.engagement.transitions import is_valid_edge

logger = logging.getLogger(__name__)

PROTECTED_FIELDS = frozenset({"id", "status", "version", "source_post_id", "discovered_at"})


@dataclass
class ItemFilter:
    status: Optional[EngagementStatus] = None
    community: Optional[str] = None
    recommended: Optional[bool] = None
    scope: Optional[str] = None
    limit: int = 20
    offset: int = 0


class EngagementItemStore:
    """Persistence for engagement items with per-item optimistic locking"""

    def __init__(self, session_factory: sessionmaker):
        self._session_factory = session_factory

    def get(self, item_id: int) -> EngagementItem:
        with self._session_factory() as db:
            item = db.get(EngagementItem, item_id)
        if item is None:
            raise ItemNotFoundError(f"Engagement item {item_id} not found")
        return item

    def get_many(self, item_ids: Iterable[int]) -> Dict[int, EngagementItem]:
        ids = list(item_ids)
        if not ids:
            return {}
        with self._session_factory() as db:
            items = db.scalars(select(EngagementItem).where(EngagementItem.id.in_(ids)))
            return {item.id: item for item in items}

    def create_discovered(self, scope: str, source_post_id: str, **fields: Any) -> Optional[EngagementItem]:
        """Insert a new item in `discovered`; returns None when the post is already known"""
        with self._session_factory() as db:
            existing = db.scalars(
                select(EngagementItem.id).where(EngagementItem.source_post_id == source_post_id)
            ).first()
            if existing is not None:
                return None

            item = EngagementItem(
                scope=scope,
                source_post_id=source_post_id,
                status=EngagementStatus.DISCOVERED,
                version=1,
                **fields,
            )
            db.add(item)
            try:
                db.commit()
            except IntegrityError:
                # another job inserted the same post in between
                db.rollback()
                return None
            db.refresh(item)
            return item

    def apply(self, item: EngagementItem, changes: Dict[str, Any],
              status: Optional[EngagementStatus] = None) -> EngagementItem:
        """Write `changes` (and optionally a new status) against the version `item` was read at"""
        protected = PROTECTED_FIELDS.intersection(changes)
        if protected:
            raise ValueError(f"Fields {sorted(protected)} cannot be written directly")
        if status is not None and not is_valid_edge(item.status, status):
            raise ValueError(f"Illegal status edge {item.status.value} -> {status.value}")

        values = dict(changes)
        values["version"] = item.version + 1
        if status is not None:
            values["status"] = status

        with self._session_factory() as db:
            result = db.execute(
                update(EngagementItem)
                .where(EngagementItem.id == item.id, EngagementItem.version == item.version)
                .values(**values)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 0:
                db.rollback()
                if db.get(EngagementItem, item.id) is None:
                    raise ItemNotFoundError(f"Engagement item {item.id} not found")
                raise ConcurrentModificationError(item.id)
            db.commit()
            updated = db.get(EngagementItem, item.id)

        if status is not None and status != item.status:
            logger.info(f"Item {item.id}: {item.status.value} -> {status.value} (v{updated.version})")
        return updated

    def list_items(self, filters: ItemFilter) -> Tuple[List[EngagementItem], int]:
        """Most recently discovered first; ties broken by id so paging is stable"""
        conditions = []
        if filters.status is not None:
            conditions.append(EngagementItem.status == filters.status)
        if filters.community:
            conditions.append(EngagementItem.community == filters.community)
        if filters.recommended is not None:
            conditions.append(EngagementItem.is_recommended == filters.recommended)
        if filters.scope:
            conditions.append(EngagementItem.scope == filters.scope)

        with self._session_factory() as db:
            total = db.scalar(select(func.count(EngagementItem.id)).where(*conditions))
            items = list(db.scalars(
                select(EngagementItem)
                .where(*conditions)
                .order_by(EngagementItem.discovered_at.desc(), EngagementItem.id.desc())
                .limit(filters.limit)
                .offset(filters.offset)
            ))
        return items, total or 0

    def count_published_since(self, account_id: str, since: datetime) -> int:
        with self._session_factory() as db:
            return db.scalar(
                select(func.count(EngagementItem.id)).where(
                    EngagementItem.assigned_account_id == account_id,
                    EngagementItem.status == EngagementStatus.PUBLISHED,
                    EngagementItem.published_at >= since,
                )
            ) or 0
