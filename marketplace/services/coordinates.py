"""
Coordinate sync: copies the location step of each listing into the
property_coordinates table that the map and nearby searches read.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional
from sqlalchemy.ext.asyncio import AsyncSession
from marketplace.config import settings
from marketplace.flows.extraction import clip, extract_location
from marketplace.models.coordinates import PropertyCoordinates
from marketplace.models.property import Property
from marketplace.repositories.coordinates import CoordinatesRepository
from marketplace.repositories.property import PropertyRepository
from marketplace.utils.exceptions import PropertyNotFoundError, ValidationError
from marketplace.utils.geo import valid_coordinates
import uuid
import logging

logger = logging.getLogger(__name__)

MAX_BOUNDS_RESULTS = 500


@dataclass
class PropertySync:
    """Outcome of syncing one property."""
    property_id: str
    synced: bool
    reason: Optional[str] = None
    coordinates: Optional[PropertyCoordinates] = None

    def to_dict(self) -> dict:
        return {
            "property_id": self.property_id,
            "synced": self.synced,
            "reason": self.reason,
            "coordinates": self.coordinates.to_dict() if self.coordinates else None,
        }


@dataclass
class SyncResult:
    """Totals of a full sync run; failures are collected, never raised."""
    synced_count: int = 0
    total_properties: int = 0
    skipped: int = 0
    errors: List[Dict[str, str]] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "synced_count": self.synced_count,
            "total_properties": self.total_properties,
            "skipped": self.skipped,
            "errors": list(self.errors),
        }


class CoordinateService:
    """Keeps property_coordinates in step with the location step of each blob."""

    def __init__(self, db_session: AsyncSession):
        self.db = db_session
        self.property_repo = PropertyRepository(db_session)
        self.coordinates_repo = CoordinatesRepository(db_session)

    async def sync_property(self, property_id: uuid.UUID) -> PropertySync:
        """
        Sync the coordinates of one property.

        Raises:
            PropertyNotFoundError: If the property doesn't exist
        """
        property_obj = await self.property_repo.get_by_id(property_id)
        if not property_obj:
            raise PropertyNotFoundError(str(property_id))
        return await self.sync_loaded_property(property_obj)

    async def sync_all(self, batch_size: Optional[int] = None) -> SyncResult:
        """
        Sync every property in batches.

        Args:
            batch_size: Properties loaded per query, defaults to the configured size

        Returns:
            SyncResult with counts and per-property errors
        """
        batch_size = max(1, batch_size or settings.coordinate_sync_batch_size)
        result = SyncResult()
        offset = 0

        while True:
            batch = await self.property_repo.get_batch(offset, batch_size)
            if not batch:
                break

            # a failed write rolls the session back and expires the loaded rows
            snapshot = [(property_obj.id, property_obj.property_details) for property_obj in batch]

            for property_uuid, details in snapshot:
                result.total_properties += 1
                property_id = str(property_uuid)
                try:
                    outcome = await self._sync_details(property_uuid, details)
                except Exception as e:
                    logger.error(f"Coordinate sync failed for property {property_id}: {e}")
                    result.errors.append({"property_id": property_id, "error": str(e)})
                    continue

                if outcome.synced:
                    result.synced_count += 1
                else:
                    result.skipped += 1

            offset += batch_size

        logger.info(
            f"Coordinate sync finished: {result.synced_count}/{result.total_properties} synced, "
            f"{result.skipped} skipped, {len(result.errors)} errors"
        )
        return result

    async def get_migration_stats(self) -> Dict[str, Any]:
        """How many properties have a coordinates row."""
        total = await self.property_repo.count()
        migrated = await self.coordinates_repo.count_synced()
        missing = max(total - migrated, 0)
        percentage = round(100 * migrated / total, 1) if total else 0.0
        return {"total": total, "migrated": migrated, "missing": missing, "percentage": percentage}

    async def find_in_bounds(
        self,
        south: float,
        west: float,
        north: float,
        east: float,
        limit: int = 200
    ) -> List[Dict[str, Any]]:
        """
        Map markers of published properties inside a bounding box.

        Raises:
            ValidationError: If the box is malformed
        """
        if not (-90 <= south <= 90 and -90 <= north <= 90):
            raise ValidationError("Latitudes must be between -90 and 90 degrees")
        if not (-180 <= west <= 180 and -180 <= east <= 180):
            raise ValidationError("Longitudes must be between -180 and 180 degrees")
        if south > north:
            raise ValidationError("South edge must not be north of the north edge")

        rows = await self.coordinates_repo.find_in_bounds(
            south, west, north, east, limit=max(1, min(limit, MAX_BOUNDS_RESULTS))
        )
        return [self._marker(row) for row in rows if row.property_rel is not None]

    async def sync_loaded_property(self, property_obj: Property) -> PropertySync:
        """Sync a property that is already loaded; skipped properties carry a reason."""
        return await self._sync_details(property_obj.id, property_obj.property_details)

    async def _sync_details(self, property_uuid: uuid.UUID, details: Optional[Dict[str, Any]]) -> PropertySync:
        property_id = str(property_uuid)
        location = extract_location(details)
        latitude, longitude = location["latitude"], location["longitude"]

        if latitude is None or longitude is None:
            return PropertySync(property_id, synced=False, reason="No coordinates in the location step")
        if not valid_coordinates(latitude, longitude):
            return PropertySync(property_id, synced=False, reason="Coordinates are out of range")

        coordinates = await self.coordinates_repo.upsert(property_uuid, {
            "latitude": latitude,
            "longitude": longitude,
            "address": clip(location["address"], "address"),
            "city": clip(location["city"], "city"),
            "state": clip(location["state"], "state"),
        })
        logger.debug(f"Synced coordinates of property {property_id}: {latitude},{longitude}")
        return PropertySync(property_id, synced=True, coordinates=coordinates)

    def _marker(self, row: PropertyCoordinates) -> Dict[str, Any]:
        property_obj = row.property_rel
        return {
            "property_id": str(property_obj.id),
            "code": property_obj.code,
            "title": property_obj.title,
            "price": float(property_obj.price or 0),
            "latitude": row.latitude,
            "longitude": row.longitude,
        }
