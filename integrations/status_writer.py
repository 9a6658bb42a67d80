"""
Purpose: Reconciliation writes back to the shop database.
What it does:
- bulk_update(order_ids, status): one UPDATE ... WHERE id IN (...) per call

Rule: Empty id lists issue no statement. Any database error surfaces as StatusWriteError.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Iterable, Optional

from sqlalchemy import bindparam, text
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine

logger = logging.getLogger(__name__)

_UPDATE_STATUS = text(
    "UPDATE shopify_orders SET process_status = :status WHERE id IN :ids"
).bindparams(bindparam("ids", expanding=True))


class StatusWriteError(Exception):
    pass


class SqlOrderStatusWriter:
    def __init__(self, database_url: str = "", engine: Optional[AsyncEngine] = None, timeout: float = 30.0):
        if engine is None and not database_url:
            raise ValueError("Database URL not set. Please set DATABASE_URL in the .env file.")
        self.database_url = database_url
        self.timeout = timeout
        self._engine = engine

    @property
    def engine(self) -> AsyncEngine:
        if self._engine is None:
            self._engine = create_async_engine(self.database_url, pool_pre_ping=True)
        return self._engine

    async def _execute(self, ids: list, status: str) -> int:
        async with self.engine.begin() as conn:
            result = await conn.execute(_UPDATE_STATUS, {"status": status, "ids": ids})
            return result.rowcount

    async def bulk_update(self, order_ids: Iterable[int], status: str) -> int:
        """
        Set process_status on every id. Returns the affected row count.
        """
        ids = list(dict.fromkeys(order_ids))
        if not ids:
            return 0
        try:
            updated = await asyncio.wait_for(self._execute(ids, status), timeout=self.timeout)
        except Exception as e:
            logger.error(f"Setting process_status={status!r} on {len(ids)} orders failed: {e}")
            raise StatusWriteError(str(e) or e.__class__.__name__) from e
        logger.info(f"process_status={status!r} written for {updated} of {len(ids)} orders")
        return updated

    async def dispose(self) -> None:
        if self._engine is not None:
            await self._engine.dispose()
