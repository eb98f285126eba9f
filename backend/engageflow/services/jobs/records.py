"""
Stores for the side tables filled by channel discovery and analytics sync jobs.
"""

import logging
from datetime import date
from typing import Any, Dict, Optional

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import sessionmaker

from engageflow.models.analytics import SearchAnalyticsRecord
from engageflow.models.channel import DiscoveredChannel

logger = logging.getLogger(__name__)


class ChannelStore:
    def __init__(self, session_factory: sessionmaker):
        self._session_factory = session_factory

    def add_if_new(self, scope: str, channel_id: str, **fields: Any) -> Optional[DiscoveredChannel]:
        """Insert a channel unless one with the same channel_id exists"""
        with self._session_factory() as db:
            exists = db.scalars(
                select(DiscoveredChannel.id).where(DiscoveredChannel.channel_id == channel_id)
            ).first()
            if exists is not None:
                return None

            channel = DiscoveredChannel(scope=scope, channel_id=channel_id, **fields)
            db.add(channel)
            try:
                db.commit()
            except IntegrityError:
                db.rollback()
                logger.debug(f"Channel {channel_id} was inserted concurrently, keeping the existing row")
                return None
            db.refresh(channel)
            return channel

    def count(self, scope: Optional[str] = None) -> int:
        stmt = select(func.count(DiscoveredChannel.id))
        if scope:
            stmt = stmt.where(DiscoveredChannel.scope == scope)
        with self._session_factory() as db:
            return db.scalar(stmt) or 0


class SearchAnalyticsStore:
    def __init__(self, session_factory: sessionmaker):
        self._session_factory = session_factory

    def upsert(self, scope: str, query: str, data_date: date, metrics: Dict[str, Any],
               page: str = "", country: str = "", device: str = "") -> bool:
        """Insert or refresh one analytics row; returns True when the row was new"""
        key = dict(scope=scope, query=query, page=page or "", country=country or "",
                   device=device or "", data_date=data_date)
        with self._session_factory() as db:
            record = db.scalars(select(SearchAnalyticsRecord).filter_by(**key)).first()
            created = record is None
            if created:
                record = SearchAnalyticsRecord(**key)
                db.add(record)
            record.clicks = int(metrics.get("clicks") or 0)
            record.impressions = int(metrics.get("impressions") or 0)
            record.ctr = float(metrics.get("ctr") or 0.0)
            record.position = float(metrics.get("position") or 0.0)
            db.commit()
        return created
