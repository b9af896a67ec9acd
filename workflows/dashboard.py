import asyncio

import cache
from workflows.base import Workflow


class Dashboard(Workflow):
    context = "dashboard"

    def __init__(self, api, query_cache, coordinator=None, notifier=None, scope=None):
        super().__init__(api, query_cache, coordinator, notifier, scope)
        self.admin_stats = None
        self.payment_stats = None
        self.teacher_stats = None

    async def load_admin(self):
        (stats, current), (payments, _) = await asyncio.gather(
            self._read(cache.ADMIN_STATS, self.api.admin_stats),
            self._read(cache.PAYMENT_STATS, self.api.payment_stats),
        )
        if current:
            self.admin_stats = stats
            self.payment_stats = payments
        return stats

    async def load_teacher(self):
        stats, current = await self._read(cache.TEACHER_STATS, self.api.teacher_stats)
        if current:
            self.teacher_stats = stats
        return stats
