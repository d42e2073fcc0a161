"""
Civil Registry Backend - Resident Store
========================================

What:  Thin async SQLAlchemy access layer for the `residents` table.
How:   Wraps one AsyncSession. Every write is flushed immediately so that
       constraint violations surface inside the calling service method,
       not later at commit time in the session dependency.
Who:   Constructed per request by the service dependency and handed to
       ResidentService.

Transactions:
    The session dependency owns commit/rollback. `insert_isolated` wraps
    its insert in a SAVEPOINT so one failing row can be rolled back while
    the rest of the request's work survives.
"""

import logging
import uuid
from typing import Any, Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from civil_registry.models.resident import Resident

logger = logging.getLogger(__name__)


class ResidentStore:
    """CRUD over Resident rows for a single session."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def add(self, resident: Resident) -> Resident:
        self.session.add(resident)
        await self.session.flush()
        return resident

    async def list_all(self) -> List[Resident]:
        """Full scan, no ordering."""
        result = await self.session.execute(select(Resident))
        return list(result.scalars().all())

    async def get(self, key: uuid.UUID) -> Optional[Resident]:
        result = await self.session.execute(
            select(Resident).where(Resident.id == key)
        )
        return result.scalar_one_or_none()

    async def save(self, resident: Resident) -> Resident:
        """Flush pending attribute changes on an already-loaded row."""
        await self.session.flush()
        return resident

    async def delete(self, key: uuid.UUID) -> bool:
        """Remove a row. Returns False when nothing matched."""
        resident = await self.get(key)
        if resident is None:
            return False
        await self.session.delete(resident)
        await self.session.flush()
        return True

    async def insert_isolated(self, values: Dict[str, Any]) -> Resident:
        """
        Insert one row inside a SAVEPOINT.

        On failure the savepoint is rolled back and the exception propagates;
        earlier rows of the same transaction are kept.
        """
        resident = Resident(**values)
        async with self.session.begin_nested():
            self.session.add(resident)
            await self.session.flush()
        return resident
