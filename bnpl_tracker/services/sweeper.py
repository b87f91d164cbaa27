"""Overdue sweeper - persists status changes found by domain.overdue.sweep"""

import asyncio
import logging
from datetime import datetime
from typing import List, Optional, Sequence

from bnpl_tracker.domain.exceptions import DomainException
from bnpl_tracker.domain.models import Payment
from bnpl_tracker.domain.overdue import sweep
from bnpl_tracker.infrastructure.database.repositories import Collection
from bnpl_tracker.infrastructure.database.store import LocalStore
from bnpl_tracker.infrastructure.observability.metrics import overdue_marked_counter

logger = logging.getLogger(__name__)


class OverdueSweeper:
    def __init__(self, store: LocalStore):
        self.store = store

    async def run(self, now: Optional[datetime] = None, payments: Optional[Sequence[Payment]] = None) -> List[Payment]:
        """
        Mark past-due pending payments overdue and save them.

        Sweeps every stored payment unless a subset is given. Returns the
        payments that changed; nothing else is written.
        """
        if now is None:
            now = datetime.now().astimezone()
        if payments is None:
            payments = await self.store.get_all(Collection.PAYMENTS)

        changed = sweep(now, payments)
        for payment in changed:
            await self.store.put(Collection.PAYMENTS, payment)

        if changed:
            overdue_marked_counter.inc(len(changed))
            logger.info(f"Marked {len(changed)} payment(s) overdue")
        return changed

    async def run_forever(self, interval_seconds: float) -> None:
        """Sweep on a fixed interval until cancelled"""
        while True:
            try:
                await self.run()
            except DomainException as e:
                logger.error(f"Overdue sweep failed: {e}")
            await asyncio.sleep(interval_seconds)
