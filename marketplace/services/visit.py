"""
Visit requests from seekers and listing reports for moderators.
"""

from typing import List, Optional, Tuple
from datetime import datetime, timezone
from sqlalchemy.ext.asyncio import AsyncSession
from marketplace.models.property import Property
from marketplace.models.user import User
from marketplace.models.visit import PropertyVisit, PropertyReport, ReportStatus, VisitStatus
from marketplace.repositories.property import PropertyRepository
from marketplace.repositories.visit import VisitRepository, ReportRepository
from marketplace.utils.exceptions import (
    APIException,
    BadRequestError,
    ConflictError,
    ForbiddenError,
    InsufficientPermissionsError,
    NotFoundError,
    PropertyNotFoundError,
    PropertyStatusError,
    ValidationError,
)
import uuid
import logging

logger = logging.getLogger(__name__)

# status -> who may set it
OWNER_VISIT_STATUSES = {VisitStatus.APPROVED, VisitStatus.REJECTED}
REQUESTER_VISIT_STATUSES = {VisitStatus.CANCELLED}


def _as_utc(value: datetime) -> datetime:
    return value.replace(tzinfo=timezone.utc) if value.tzinfo is None else value.astimezone(timezone.utc)


class VisitService:
    """
    Visit requests move from pending to approved or rejected by the owner,
    or to cancelled by the requester.
    """

    def __init__(self, db_session: AsyncSession):
        self.db = db_session
        self.visit_repo = VisitRepository(db_session)
        self.report_repo = ReportRepository(db_session)
        self.property_repo = PropertyRepository(db_session)

    async def request_visit(
        self,
        current_user: User,
        property_id: uuid.UUID,
        visit_date: datetime,
        message: Optional[str] = None
    ) -> PropertyVisit:
        """
        Ask the owner for a visit.

        Raises:
            PropertyNotFoundError: If the property doesn't exist or isn't published
            ValidationError: If the date is not in the future
            ForbiddenError: If the user owns the property
        """
        try:
            property_obj = await self._get_published_property(property_id)

            if property_obj.owner_id == current_user.id:
                raise ForbiddenError("You cannot request a visit to your own property")

            visit_date = _as_utc(visit_date)
            if visit_date <= datetime.now(timezone.utc):
                raise ValidationError("Visit date must be in the future")

            visit = await self.visit_repo.create({
                "property_id": property_obj.id,
                "user_id": current_user.id,
                "visit_date": visit_date,
                "message": message.strip() if message else None,
                "status": VisitStatus.PENDING,
            })

            logger.info(f"Visit {visit.id} requested by {current_user.email} for property {property_obj.code}")
            return visit

        except APIException:
            raise
        except Exception as e:
            logger.error(f"Failed to request visit to property {property_id}: {e}")
            raise BadRequestError(f"Failed to request visit: {str(e)}")

    async def list_my_visits(self, current_user: User) -> List[PropertyVisit]:
        return await self.visit_repo.get_user_visits(current_user.id)

    async def list_property_visits(
        self,
        property_id: uuid.UUID,
        current_user: User,
        status: Optional[VisitStatus] = None
    ) -> List[PropertyVisit]:
        """Visit requests for a property, for its owner and admins."""
        property_obj = await self.property_repo.get_by_id(property_id)
        if not property_obj:
            raise PropertyNotFoundError(str(property_id))
        if not current_user.can_manage_property(property_obj.owner_id):
            raise InsufficientPermissionsError("view visits of this property")

        return await self.visit_repo.get_property_visits(property_id, status)

    async def update_visit_status(
        self,
        visit_id: uuid.UUID,
        status: VisitStatus,
        current_user: User
    ) -> PropertyVisit:
        """
        Approve, reject or cancel a pending visit.

        Raises:
            NotFoundError: If the visit doesn't exist
            InsufficientPermissionsError: If the user may not set this status
            PropertyStatusError: If the visit is no longer pending
        """
        try:
            visit = await self.visit_repo.get_by_id(visit_id)
            if not visit:
                raise NotFoundError("Visit", str(visit_id))

            property_obj = await self.property_repo.get_by_id(visit.property_id)
            is_owner = property_obj is not None and current_user.can_manage_property(property_obj.owner_id)
            is_requester = visit.user_id == current_user.id

            if status in OWNER_VISIT_STATUSES and not is_owner:
                raise InsufficientPermissionsError(f"mark this visit as {status.value}")
            if status in REQUESTER_VISIT_STATUSES and not is_requester:
                raise InsufficientPermissionsError(f"mark this visit as {status.value}")
            if status == VisitStatus.PENDING:
                raise ValidationError("A visit cannot be moved back to pending")

            if visit.status != VisitStatus.PENDING:
                raise PropertyStatusError(f"Visit is already {visit.status.value}")

            updated = await self.visit_repo.update_instance(visit, {"status": status})
            logger.info(f"Visit {visit_id} marked {status.value} by {current_user.email}")
            return updated

        except APIException:
            raise
        except Exception as e:
            logger.error(f"Failed to update visit {visit_id}: {e}")
            raise BadRequestError(f"Failed to update visit: {str(e)}")

    async def report_property(
        self,
        current_user: User,
        property_id: uuid.UUID,
        reason: str,
        description: Optional[str] = None
    ) -> PropertyReport:
        """
        Report a listing to the moderators.

        Raises:
            ConflictError: If the user already has an open report on the property
        """
        try:
            property_obj = await self._get_published_property(property_id)

            if await self.report_repo.get_open_report(current_user.id, property_obj.id):
                raise ConflictError("You already have an open report for this property")

            report = await self.report_repo.create({
                "property_id": property_obj.id,
                "user_id": current_user.id,
                "reason": reason,
                "description": description.strip() if description else None,
                "status": ReportStatus.OPEN,
            })

            logger.info(f"Property {property_obj.code} reported by {current_user.email}: {reason}")
            return report

        except APIException:
            raise
        except Exception as e:
            logger.error(f"Failed to report property {property_id}: {e}")
            raise BadRequestError(f"Failed to report property: {str(e)}")

    async def list_reports(
        self,
        current_user: User,
        status: Optional[ReportStatus] = None,
        page: int = 1,
        page_size: int = 20
    ) -> Tuple[List[PropertyReport], int]:
        if not current_user.is_staff:
            raise InsufficientPermissionsError("view reports")
        return await self.report_repo.list_reports(status, skip=(page - 1) * page_size, limit=page_size)

    async def resolve_report(
        self,
        report_id: uuid.UUID,
        status: ReportStatus,
        current_user: User
    ) -> PropertyReport:
        """Close an open report as resolved or dismissed."""
        try:
            if not current_user.is_staff:
                raise InsufficientPermissionsError("resolve reports")
            if status == ReportStatus.OPEN:
                raise ValidationError("A report can only be resolved or dismissed")

            report = await self.report_repo.get_by_id(report_id)
            if not report:
                raise NotFoundError("Report", str(report_id))
            if report.status != ReportStatus.OPEN:
                raise PropertyStatusError(f"Report is already {report.status.value}")

            updated = await self.report_repo.update_instance(
                report, {"status": status, "resolved_by_id": current_user.id}
            )
            logger.info(f"Report {report_id} {status.value} by {current_user.email}")
            return updated

        except APIException:
            raise
        except Exception as e:
            logger.error(f"Failed to resolve report {report_id}: {e}")
            raise BadRequestError(f"Failed to resolve report: {str(e)}")

    async def _get_published_property(self, property_id: uuid.UUID) -> Property:
        property_obj = await self.property_repo.get_by_id(property_id)
        if not property_obj or not property_obj.is_published:
            raise PropertyNotFoundError(str(property_id))
        return property_obj
