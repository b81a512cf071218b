from typing import Any

from intent_engine.models.sales import SalesCustomer, SalesTask
from intent_engine.repositories.base import BaseRepository


class SalesRepository(BaseRepository):
    """Writes the downstream sales records created by auto-push."""

    async def create_customer(self, **kwargs: Any) -> SalesCustomer:
        customer = SalesCustomer(**kwargs)
        self._db.add(customer)
        await self._db.flush()
        return customer

    async def create_task(self, **kwargs: Any) -> SalesTask:
        task = SalesTask(**kwargs)
        self._db.add(task)
        await self._db.flush()
        return task
