"""
Account eligibility: suspended accounts never publish, others up to a daily cap
"""

import logging
from datetime import timedelta
from typing import Iterable, Optional

from engageflow.core.config import settings
from engageflow.models.engagement import utcnow
from engageflow.services.adapters.base import AccountEligibilityProvider
from engageflow.services.engagement.store import EngagementItemStore

logger = logging.getLogger(__name__)


class DailyLimitEligibility(AccountEligibilityProvider):
    def __init__(self, item_store: EngagementItemStore,
                 suspended_account_ids: Optional[Iterable[str]] = None,
                 daily_limit: Optional[int] = None):
        self.item_store = item_store
        self.suspended = set(settings.SUSPENDED_ACCOUNT_IDS if suspended_account_ids is None else suspended_account_ids)
        self.daily_limit = settings.DAILY_PUBLISH_LIMIT if daily_limit is None else daily_limit

    async def is_eligible(self, account_id: str) -> bool:
        if account_id in self.suspended:
            logger.info(f"Account {account_id} is suspended")
            return False

        published = self.item_store.count_published_since(account_id, utcnow() - timedelta(days=1))
        if published >= self.daily_limit:
            logger.info(f"Account {account_id} reached its daily limit ({published}/{self.daily_limit})")
            return False
        return True
