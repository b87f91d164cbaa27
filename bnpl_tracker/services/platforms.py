"""Platform limits, schedule defaults and subscriptions"""

import logging
from dataclasses import replace
from datetime import datetime
from typing import List, Optional

from bnpl_tracker.domain.defaults import AFFIRM_INSTALLMENT_OPTIONS
from bnpl_tracker.domain.exceptions import EntityNotFoundError
from bnpl_tracker.domain.limits import on_time_streak, record_limit_change
from bnpl_tracker.domain.models import LimitChange, Platform, Subscription
from bnpl_tracker.infrastructure.database.repositories import Collection
from bnpl_tracker.infrastructure.database.store import LocalStore
from bnpl_tracker.utils.date_utils import utc_now

logger = logging.getLogger(__name__)


class PlatformService:
    def __init__(self, store: LocalStore):
        self.store = store

    async def _get_platform(self, platform_id: str) -> Platform:
        platform = await self.store.get(Collection.PLATFORMS, platform_id)
        if platform is None:
            raise EntityNotFoundError(Collection.PLATFORMS.value, platform_id)
        return platform

    async def update_platform_limit(
        self,
        platform_id: str,
        new_limit: int,
        now: Optional[datetime] = None,
    ) -> Platform:
        """
        Change a platform's credit limit and log the change.

        The history entry records the on-time payment streak on that platform
        at the time of the change. Setting the current limit again is a no-op.
        """
        platform = await self._get_platform(platform_id)
        if platform.credit_limit == new_limit:
            return platform

        payments = await self.store.get_by_index(Collection.PAYMENTS, "by-platform", platform_id)
        change = record_limit_change(
            platform,
            new_limit,
            changed_at=now or utc_now(),
            streak=on_time_streak(payments, platform_id),
        )
        await self.store.put(Collection.LIMIT_HISTORY, change)

        updated = replace(platform, credit_limit=new_limit)
        await self.store.put(Collection.PLATFORMS, updated)
        logger.info(
            "Platform limit changed",
            extra={"platform_id": platform_id, "previous_limit": change.previous_limit, "new_limit": new_limit},
        )
        return updated

    async def update_platform_schedule(self, platform_id: str, installments: int, interval_days: int) -> Platform:
        if installments < 1:
            raise ValueError("Must have at least 1 installment")
        if interval_days < 0:
            raise ValueError("Interval cannot be negative")

        platform = await self._get_platform(platform_id)
        if platform_id == "affirm" and installments not in AFFIRM_INSTALLMENT_OPTIONS:
            raise ValueError(f"Affirm offers {AFFIRM_INSTALLMENT_OPTIONS} installments, not {installments}")
        updated = replace(platform, default_installments=installments, default_interval_days=interval_days)
        await self.store.put(Collection.PLATFORMS, updated)
        return updated

    async def update_subscription(self, subscription: Subscription) -> Subscription:
        await self._get_platform(subscription.platform_id)
        await self.store.put(Collection.SUBSCRIPTIONS, subscription)
        return subscription

    async def get_limit_history(self, platform_id: str) -> List[LimitChange]:
        changes = await self.store.get_by_index(Collection.LIMIT_HISTORY, "by-platform", platform_id)
        return sorted(changes, key=lambda c: c.changed_at)
