"""
Repositories for visit requests and listing reports.
"""

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func, and_, desc
from marketplace.repositories.base import BaseRepository
from marketplace.models.visit import PropertyVisit, PropertyReport, ReportStatus, VisitStatus
from typing import List, Optional, Tuple
import uuid
import logging

logger = logging.getLogger(__name__)


class VisitRepository(BaseRepository[PropertyVisit]):

    def __init__(self, db: AsyncSession):
        super().__init__(PropertyVisit, db)

    async def get_user_visits(self, user_id: uuid.UUID) -> List[PropertyVisit]:
        query = (
            select(PropertyVisit)
            .where(PropertyVisit.user_id == user_id)
            .order_by(desc(PropertyVisit.visit_date))
        )
        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def get_property_visits(
        self,
        property_id: uuid.UUID,
        status: Optional[VisitStatus] = None
    ) -> List[PropertyVisit]:
        conditions = [PropertyVisit.property_id == property_id]
        if status is not None:
            conditions.append(PropertyVisit.status == status)

        query = select(PropertyVisit).where(*conditions).order_by(PropertyVisit.visit_date.asc())
        result = await self.db.execute(query)
        return list(result.scalars().all())


class ReportRepository(BaseRepository[PropertyReport]):

    def __init__(self, db: AsyncSession):
        super().__init__(PropertyReport, db)

    async def get_open_report(self, user_id: uuid.UUID, property_id: uuid.UUID) -> Optional[PropertyReport]:
        """The user's open report on the property, if any."""
        query = select(PropertyReport).where(
            and_(
                PropertyReport.user_id == user_id,
                PropertyReport.property_id == property_id,
                PropertyReport.status == ReportStatus.OPEN,
            )
        )
        result = await self.db.execute(query)
        return result.scalars().first()

    async def list_reports(
        self,
        status: Optional[ReportStatus] = None,
        skip: int = 0,
        limit: int = 20
    ) -> Tuple[List[PropertyReport], int]:
        conditions = [PropertyReport.status == status] if status is not None else []

        total = (
            await self.db.execute(select(func.count(PropertyReport.id)).where(*conditions))
        ).scalar() or 0

        query = (
            select(PropertyReport)
            .where(*conditions)
            .order_by(desc(PropertyReport.created_at))
            .offset(skip)
            .limit(limit)
        )
        result = await self.db.execute(query)
        return list(result.scalars().all()), total
