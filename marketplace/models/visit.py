"""
Visit requests and listing reports raised by seekers.
"""

from sqlalchemy import String, Text, DateTime, ForeignKey, Enum as SQLEnum, Index
from sqlalchemy.orm import Mapped, mapped_column, relationship
from marketplace.database import Base
from datetime import datetime
import enum
import uuid
from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from marketplace.models.property import Property
    from marketplace.models.user import User


class VisitStatus(str, enum.Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    CANCELLED = "cancelled"


class ReportStatus(str, enum.Enum):
    OPEN = "open"
    RESOLVED = "resolved"
    DISMISSED = "dismissed"


def _enum_values(enum_cls):
    return [member.value for member in enum_cls]


class PropertyVisit(Base):
    """A seeker's request to visit a published property."""

    __tablename__ = "property_visits"

    property_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("properties.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )

    user_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
        comment="User requesting the visit"
    )

    visit_date: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        comment="Requested visit date and time"
    )

    message: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    status: Mapped[VisitStatus] = mapped_column(
        SQLEnum(VisitStatus, values_callable=_enum_values),
        nullable=False,
        default=VisitStatus.PENDING,
        index=True
    )

    property_rel: Mapped["Property"] = relationship("Property", lazy="selectin")
    user: Mapped["User"] = relationship("User", lazy="selectin")

    def __repr__(self) -> str:
        return f"<PropertyVisit(id={self.id}, property_id={self.property_id}, status={self.status})>"

    def to_dict(self) -> dict:
        return {
            "id": str(self.id),
            "property_id": str(self.property_id),
            "user_id": str(self.user_id),
            "visit_date": self.visit_date.isoformat(),
            "message": self.message,
            "status": self.status.value,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }


class PropertyReport(Base):
    """A user's report about a misleading or abusive listing."""

    __tablename__ = "property_reports"

    property_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("properties.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )

    user_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
        comment="Reporting user"
    )

    reason: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    status: Mapped[ReportStatus] = mapped_column(
        SQLEnum(ReportStatus, values_callable=_enum_values),
        nullable=False,
        default=ReportStatus.OPEN,
        index=True
    )

    resolved_by_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
        comment="Moderator who closed the report"
    )

    property_rel: Mapped["Property"] = relationship("Property", lazy="selectin")

    def __repr__(self) -> str:
        return f"<PropertyReport(id={self.id}, property_id={self.property_id}, status={self.status})>"

    def to_dict(self) -> dict:
        return {
            "id": str(self.id),
            "property_id": str(self.property_id),
            "user_id": str(self.user_id),
            "reason": self.reason,
            "description": self.description,
            "status": self.status.value,
            "resolved_by_id": str(self.resolved_by_id) if self.resolved_by_id else None,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }


open_reports_index = Index(
    'idx_property_reports_property_user_status',
    PropertyReport.property_id,
    PropertyReport.user_id,
    PropertyReport.status
)
