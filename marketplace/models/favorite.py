"""
PropertyLike model: a seeker's saved listing.
"""

from sqlalchemy import ForeignKey, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship
from marketplace.database import Base
import uuid
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from marketplace.models.property import Property


class PropertyLike(Base):
    """One row per (user, property) pair."""

    __tablename__ = "property_likes"
    __table_args__ = (
        UniqueConstraint("user_id", "property_id", name="uq_property_likes_user_property"),
    )

    user_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
        comment="User who liked the property"
    )

    property_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("properties.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
        comment="Liked property"
    )

    property_rel: Mapped["Property"] = relationship("Property", lazy="selectin")

    def __repr__(self) -> str:
        return f"<PropertyLike(user_id={self.user_id}, property_id={self.property_id})>"

    def to_dict(self) -> dict:
        return {
            "id": str(self.id),
            "user_id": str(self.user_id),
            "property_id": str(self.property_id),
            "created_at": self.created_at.isoformat(),
        }
