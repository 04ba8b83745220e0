"""
PropertyCoordinates model.
A side table filled by the coordinate sync so map and radius queries do not
have to parse the details blob.
"""

from sqlalchemy import String, Float, ForeignKey, Index
from sqlalchemy.orm import Mapped, mapped_column, relationship
from marketplace.database import Base
import uuid
from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from marketplace.models.property import Property


class PropertyCoordinates(Base):
    """Latitude and longitude of a property, one row per property."""

    __tablename__ = "property_coordinates"

    property_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("properties.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
        index=True,
        comment="Property these coordinates belong to"
    )

    latitude: Mapped[float] = mapped_column(
        Float,
        nullable=False,
        comment="Latitude in degrees"
    )

    longitude: Mapped[float] = mapped_column(
        Float,
        nullable=False,
        comment="Longitude in degrees"
    )

    address: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    city: Mapped[Optional[str]] = mapped_column(String(100), nullable=True, index=True)
    state: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)

    property_rel: Mapped["Property"] = relationship("Property", lazy="selectin")

    def __repr__(self) -> str:
        return f"<PropertyCoordinates(property_id={self.property_id}, lat={self.latitude}, lng={self.longitude})>"

    def to_dict(self) -> dict:
        return {
            "property_id": str(self.property_id),
            "latitude": self.latitude,
            "longitude": self.longitude,
            "address": self.address,
            "city": self.city,
            "state": self.state,
            "updated_at": self.updated_at.isoformat(),
        }


lat_lng_index = Index(
    'idx_property_coordinates_lat_lng',
    PropertyCoordinates.latitude,
    PropertyCoordinates.longitude
)
