"""Read-only catalog repository."""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from tutordesk.modules.catalog.models import CatalogSession


class CatalogRepository:
    """Lookups into curriculum metadata. Never writes."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def get_session(self, catalog_session_id: UUID) -> CatalogSession | None:
        stmt = select(CatalogSession).where(CatalogSession.id == catalog_session_id)
        return await self.session.scalar(stmt)
