"""
Property service for the listing lifecycle.
Handles the wizard steps, publishing, visibility rules, search and the similar/nearby views.
"""

from typing import Optional, List, Dict, Any, Tuple
from sqlalchemy.ext.asyncio import AsyncSession
from marketplace.config import settings
from marketplace.repositories.property import PropertyRepository, PropertySearchFilters
from marketplace.repositories.coordinates import CoordinatesRepository
from marketplace.services.coordinates import CoordinateService
from marketplace.models.property import Property, PropertyStatus, PUBLIC_TAG
from marketplace.models.user import User
from marketplace.flows.definitions import FlowType, coerce_flow_type, get_flow, require_step
from marketplace.flows.detection import map_subtype_to_flow, extract_transaction_type
from marketplace.flows.extraction import (
    build_details,
    check_details_shape,
    denormalize,
    with_meta,
    with_step,
)
from marketplace.flows.validation import (
    CompletionStatus,
    StepValidationResult,
    check_completion,
    validate_all_steps,
    validate_step,
)
from marketplace.schemas.property import (
    PropertyCreate,
    PropertyUpdate,
    PropertySearchFilters as PropertySearchSchema,
)
from marketplace.utils.geo import haversine_km, valid_coordinates
from marketplace.utils.exceptions import (
    APIException,
    BadRequestError,
    InsufficientPermissionsError,
    PropertyIncompleteError,
    PropertyNotFoundError,
    PropertyStatusError,
    StepValidationError,
    ValidationError,
)
from datetime import datetime, timezone
from decimal import Decimal
import secrets
import string
import uuid
import logging

logger = logging.getLogger(__name__)

CODE_ALPHABET = string.ascii_uppercase + string.digits
CODE_LENGTH = 6
CODE_ATTEMPTS = 10

SIMILAR_FLOW_WEIGHT = 0.4
SIMILAR_CITY_WEIGHT = 0.3
SIMILAR_PRICE_WEIGHT = 0.2
SIMILAR_BEDROOMS_WEIGHT = 0.1
SIMILAR_PRICE_TOLERANCE = Decimal("0.3")

MAX_NEARBY_RADIUS_KM = 100


class PropertyService:
    """
    Property service for managing listings with business logic validation.
    The details blob is the source of truth; columns are re-derived on every save.
    """

    def __init__(self, db_session: AsyncSession):
        self.db = db_session
        self.property_repo = PropertyRepository(db_session)
        self.coordinates_repo = CoordinatesRepository(db_session)

    async def create_property(self, property_data: PropertyCreate, current_user: User) -> Property:
        """
        Start a draft listing in the given flow.

        Args:
            property_data: Flow type plus optional initial steps, description and tags
            current_user: User creating the property

        Returns:
            Created property instance

        Raises:
            InsufficientPermissionsError: If the user can't list properties
            InvalidFlowError: If an initial step doesn't belong to the flow
        """
        try:
            if not self._can_create_property(current_user):
                raise InsufficientPermissionsError("create properties")

            flow = get_flow(property_data.flow_type)
            for step_id in property_data.steps:
                require_step(flow.flow_type, step_id)

            property_id = uuid.uuid4()
            code = await self._generate_code()
            details = build_details(
                flow.flow_type,
                property_id=str(property_id),
                owner_id=str(current_user.id),
                code=code,
                steps=property_data.steps,
                status=PropertyStatus.DRAFT.value,
            )

            create_data = {
                "id": property_id,
                "owner_id": current_user.id,
                "code": code,
                "flow_type": flow.flow_type,
                "status": PropertyStatus.DRAFT,
                "property_details": details,
                "tags": [tag for tag in property_data.tags if tag != PUBLIC_TAG],
                "description": property_data.description,
                **denormalize(flow.flow_type, details),
            }
            property_obj = await self.property_repo.create_property(create_data)

            logger.info(f"Property created by user {current_user.email}: {property_obj.code} (ID: {property_obj.id})")
            return property_obj

        except APIException:
            raise
        except Exception as e:
            logger.error(f"Failed to create property for user {current_user.id}: {e}")
            raise BadRequestError(f"Failed to create property: {str(e)}")

    async def save_step(
        self,
        property_id: uuid.UUID,
        step_id: str,
        data: Dict[str, Any],
        current_user: User,
        validate: bool = False
    ) -> Property:
        """
        Replace the data of one wizard step.

        Args:
            property_id: Property being edited
            step_id: Full step id, e.g. res_rent_location
            data: Field values of the step
            current_user: User editing the property
            validate: Reject the save when the step has invalid fields

        Raises:
            InvalidFlowError: If the step doesn't belong to the property's flow
            StepValidationError: If validate is set and the step has invalid fields
            PropertyStatusError: If the property is archived
        """
        try:
            property_obj = await self._get_manageable_property(property_id, current_user, "edit this property")
            self._ensure_editable(property_obj)
            require_step(property_obj.flow_type, step_id)

            if validate:
                result = validate_step(property_obj.flow_type, step_id, data)
                if not result.is_valid:
                    raise StepValidationError(step_id, result.errors)

            details = with_step(property_obj.property_details or {}, step_id, data)
            updated = await self._save_details(property_obj, details)
            if step_id.endswith("_location"):
                await CoordinateService(self.db).sync_loaded_property(updated)

            logger.info(f"Step {step_id} saved on property {property_id} by {current_user.email}")
            return updated

        except APIException:
            raise
        except Exception as e:
            logger.error(f"Failed to save step {step_id} of property {property_id}: {e}")
            raise BadRequestError(f"Failed to save step: {str(e)}")

    async def validate_step(self, property_id: uuid.UUID, step_id: str, current_user: User) -> StepValidationResult:
        """Validate the stored data of one step."""
        property_obj = await self._get_manageable_property(property_id, current_user, "validate this property")
        require_step(property_obj.flow_type, step_id)
        return validate_step(property_obj.flow_type, step_id, property_obj.steps.get(step_id))

    async def get_completion(self, property_id: uuid.UUID, current_user: User) -> CompletionStatus:
        property_obj = await self._get_manageable_property(property_id, current_user, "view this property's progress")
        return check_completion(property_obj.flow_type, property_obj.property_details, property_obj.image_count)

    async def update_property(
        self,
        property_id: uuid.UUID,
        property_data: PropertyUpdate,
        current_user: User
    ) -> Property:
        """
        Update description and tags, or replace the whole details blob.

        A replacement blob must be in the canonical shape; its identity fields and
        media section are kept from the stored blob.

        Raises:
            ValidationError: If the replacement blob is not in the canonical shape
        """
        try:
            property_obj = await self._get_manageable_property(property_id, current_user, "update this property")
            self._ensure_editable(property_obj)

            values: Dict[str, Any] = {}
            if property_data.description is not None:
                values["description"] = property_data.description or None
            if property_data.tags is not None:
                values["tags"] = self._merge_tags(property_obj, property_data.tags)

            if property_data.property_details is not None:
                check_details_shape(property_obj.flow_type, property_data.property_details)
                details = self._keep_identity(property_obj, property_data.property_details)
                updated = await self._save_details(property_obj, details, **values)
                await CoordinateService(self.db).sync_loaded_property(updated)
                logger.info(f"Property details replaced by user {current_user.email}: {property_id}")
                return updated

            updated = await self.property_repo.update_instance(property_obj, values)
            logger.info(f"Property updated by user {current_user.email}: {property_id}")
            return updated

        except APIException:
            raise
        except Exception as e:
            logger.error(f"Failed to update property {property_id}: {e}")
            raise BadRequestError(f"Failed to update property: {str(e)}")

    async def publish_property(self, property_id: uuid.UUID, current_user: User) -> Property:
        """
        Publish a complete draft, or resubmit a rejected listing.
        A resubmission goes back to draft and waits in the moderation queue.

        Raises:
            PropertyStatusError: If the property is already published or archived
            PropertyIncompleteError: If steps or images are missing
            StepValidationError: For the first step with invalid fields
        """
        try:
            property_obj = await self._get_manageable_property(property_id, current_user, "publish this property")
            if property_obj.status not in (PropertyStatus.DRAFT, PropertyStatus.REJECTED):
                raise PropertyStatusError(f"Cannot publish a property that is {property_obj.status.value}")

            self._ensure_publishable(property_obj)
            now = datetime.now(timezone.utc).isoformat()

            if property_obj.status == PropertyStatus.REJECTED:
                details = with_meta(
                    property_obj.property_details or {},
                    rejectionReason=None,
                    rejectedAt=None,
                    resubmittedAt=now,
                )
                updated = await self._save_details(property_obj, details, status=PropertyStatus.DRAFT)
                logger.info(f"Property {property_obj.code} resubmitted for review by {current_user.email}")
                return updated

            details = with_meta(property_obj.property_details or {}, publishedAt=now)
            updated = await self._save_details(property_obj, details, status=PropertyStatus.PUBLISHED)

            logger.info(f"Property {property_obj.code} published by {current_user.email}")
            return updated

        except APIException:
            raise
        except Exception as e:
            logger.error(f"Failed to publish property {property_id}: {e}")
            raise BadRequestError(f"Failed to publish property: {str(e)}")

    async def toggle_publish(self, property_id: uuid.UUID, current_user: User) -> Property:
        """Unpublish a published listing, or publish a draft."""
        property_obj = await self._get_manageable_property(property_id, current_user, "change this property's status")

        if property_obj.status == PropertyStatus.PUBLISHED:
            updated = await self._save_details(
                property_obj,
                property_obj.property_details or {},
                status=PropertyStatus.DRAFT,
            )
            logger.info(f"Property {property_obj.code} unpublished by {current_user.email}")
            return updated

        return await self.publish_property(property_id, current_user)

    async def archive_property(self, property_id: uuid.UUID, current_user: User) -> Property:
        """Soft delete: the listing leaves search but keeps its data."""
        try:
            property_obj = await self._get_manageable_property(property_id, current_user, "archive this property")
            if property_obj.status == PropertyStatus.ARCHIVED:
                raise PropertyStatusError("Property is already archived")

            updated = await self._save_details(
                property_obj,
                with_meta(property_obj.property_details or {}, archivedAt=datetime.now(timezone.utc).isoformat()),
                status=PropertyStatus.ARCHIVED,
                tags=[tag for tag in property_obj.tags or [] if tag != PUBLIC_TAG],
            )
            logger.info(f"Property {property_obj.code} archived by {current_user.email}")
            return updated

        except APIException:
            raise
        except Exception as e:
            logger.error(f"Failed to archive property {property_id}: {e}")
            raise BadRequestError(f"Failed to archive property: {str(e)}")

    async def delete_property(self, property_id: uuid.UUID, current_user: User) -> bool:
        """
        Delete a property, its image files and every row that references it.

        Returns:
            True if the property was deleted
        """
        from marketplace.services.image import ImageService

        try:
            property_obj = await self._get_manageable_property(property_id, current_user, "delete this property")

            deleted_images = await ImageService(self.db).delete_property_images(property_obj.id)
            await self.db.refresh(property_obj, attribute_names=["images"])

            deleted = await self.property_repo.delete(property_obj.id)
            if deleted:
                logger.info(
                    f"Property deleted by user {current_user.email}: {property_id} (with {deleted_images} images)"
                )
            return deleted

        except APIException:
            raise
        except Exception as e:
            logger.error(f"Failed to delete property {property_id}: {e}")
            raise BadRequestError(f"Failed to delete property: {str(e)}")

    async def get_property(self, property_id: uuid.UUID, current_user: Optional[User] = None) -> Property:
        """
        Get a property the user is allowed to see.

        Unpublished listings are only visible to their owner and to staff;
        everyone else gets a not-found error.
        """
        property_obj = await self.property_repo.get_by_id(property_id)
        if not property_obj or not self._can_view_property(property_obj, current_user):
            raise PropertyNotFoundError(str(property_id))
        return property_obj

    async def get_by_code(self, code: str, current_user: Optional[User] = None) -> Property:
        property_obj = await self.property_repo.get_by_code(code)
        if not property_obj or not self._can_view_property(property_obj, current_user):
            raise PropertyNotFoundError(code)
        return property_obj

    async def get_owner_properties(
        self,
        owner_id: uuid.UUID,
        current_user: Optional[User] = None,
        page: int = 1,
        page_size: int = 20,
        status: Optional[PropertyStatus] = None,
        include_archived: bool = False
    ) -> Tuple[List[Property], int]:
        """
        Listings of one owner.
        Other users only see the owner's published listings.
        """
        skip = (page - 1) * page_size
        if not self._can_view_all_of_owner(owner_id, current_user):
            status = PropertyStatus.PUBLISHED

        return await self.property_repo.get_properties_by_owner(
            owner_id, skip=skip, limit=page_size, status=status, include_archived=include_archived
        )

    async def search_properties(
        self,
        search_filters: PropertySearchSchema,
        current_user: Optional[User] = None
    ) -> Tuple[List[Property], int]:
        """
        Search published properties.

        An explicit flow_type wins; otherwise property_type, subtype and
        transaction_type are mapped to a flow.

        Returns:
            Tuple of (properties list, total count)
        """
        try:
            repo_filters = self._convert_search_filters(search_filters, current_user)
            skip = (search_filters.page - 1) * search_filters.page_size

            properties, total = await self.property_repo.search_properties(
                filters=repo_filters,
                skip=skip,
                limit=search_filters.page_size,
                order_by=search_filters.sort_by,
                order_direction=search_filters.sort_order,
            )

            logger.debug(f"Property search returned {len(properties)} of {total} results")
            return properties, total

        except APIException:
            raise
        except Exception as e:
            logger.error(f"Failed to search properties: {e}")
            raise BadRequestError(f"Failed to search properties: {str(e)}")

    async def get_similar_properties(
        self,
        property_id: uuid.UUID,
        limit: Optional[int] = None,
        min_score: Optional[float] = None,
        current_user: Optional[User] = None
    ) -> List[Tuple[Property, float]]:
        """
        Published listings resembling the given one.

        Scores add up: same flow 0.4, same city 0.3, price within 30% 0.2,
        same bedrooms 0.1. Results are ordered by score, then by recency.

        Returns:
            List of (property, score) tuples
        """
        limit = settings.similar_properties_limit if limit is None else limit
        min_score = settings.similar_properties_min_score if min_score is None else min_score
        limit = max(1, min(50, limit))
        min_score = max(0.0, min(1.0, min_score))

        property_obj = await self.get_property(property_id, current_user)
        candidates = await self.property_repo.get_similar_candidates(property_obj)

        scored = []
        for candidate in candidates:
            score = self._similarity_score(property_obj, candidate)
            if score >= min_score:
                scored.append((candidate, score))

        scored.sort(key=lambda item: (item[1], _aware(item[0].created_at)), reverse=True)
        return scored[:limit]

    async def get_nearby_properties(
        self,
        latitude: float,
        longitude: float,
        radius_km: float = 5.0,
        limit: int = 20
    ) -> List[Tuple[Property, float]]:
        """
        Published properties within radius_km of a point, nearest first.

        Returns:
            List of (property, distance_km) tuples
        """
        if not -90 <= latitude <= 90:
            raise ValidationError("Latitude must be between -90 and 90 degrees")
        if not -180 <= longitude <= 180:
            raise ValidationError("Longitude must be between -180 and 180 degrees")
        if radius_km <= 0 or radius_km > MAX_NEARBY_RADIUS_KM:
            raise ValidationError(f"Radius must be greater than 0 and at most {MAX_NEARBY_RADIUS_KM} kilometers")

        try:
            rows = await self.coordinates_repo.get_published_with_coordinates()

            nearby = []
            for row in rows:
                if not valid_coordinates(row.latitude, row.longitude):
                    continue
                distance = haversine_km(latitude, longitude, row.latitude, row.longitude)
                if distance <= radius_km:
                    nearby.append((row.property_rel, round(distance, 3)))

            nearby.sort(key=lambda item: item[1])
            return nearby[:max(1, limit)]

        except APIException:
            raise
        except Exception as e:
            logger.error(f"Failed to get nearby properties: {e}")
            raise BadRequestError(f"Failed to get nearby properties: {str(e)}")

    async def get_property_statistics(
        self,
        current_user: User,
        owner_id: Optional[uuid.UUID] = None
    ) -> Dict[str, Any]:
        """Statistics scoped to the user's own listings unless the user is an admin."""
        if not current_user.is_admin:
            if owner_id is not None and owner_id != current_user.id:
                raise InsufficientPermissionsError("view these statistics")
            owner_id = current_user.id

        return await self.property_repo.get_property_statistics(owner_id)

    # Private helper methods for business logic validation

    def _can_create_property(self, user: User) -> bool:
        return user.is_active and user.can_list_properties

    def _can_view_property(self, property_obj: Property, user: Optional[User]) -> bool:
        if property_obj.is_published:
            return True
        if user is None:
            return False
        return user.id == property_obj.owner_id or user.is_staff

    def _can_view_all_of_owner(self, owner_id: uuid.UUID, user: Optional[User]) -> bool:
        return user is not None and (user.id == owner_id or user.is_staff)

    async def _get_manageable_property(self, property_id: uuid.UUID, user: User, action: str) -> Property:
        property_obj = await self.get_property(property_id, user)
        if not user.can_manage_property(property_obj.owner_id):
            raise InsufficientPermissionsError(action)
        return property_obj

    def _ensure_editable(self, property_obj: Property) -> None:
        if property_obj.status == PropertyStatus.ARCHIVED:
            raise PropertyStatusError("Archived properties cannot be edited")

    def _ensure_publishable(self, property_obj: Property) -> None:
        completion = check_completion(property_obj.flow_type, property_obj.property_details, property_obj.image_count)
        if not completion.is_complete:
            raise PropertyIncompleteError(completion.missing_steps, completion.has_images)

        for step_id, result in validate_all_steps(property_obj.flow_type, property_obj.steps).items():
            if not result.is_valid:
                raise StepValidationError(step_id, result.errors)

    async def _save_details(
        self,
        property_obj: Property,
        details: Dict[str, Any],
        status: Optional[PropertyStatus] = None,
        **values: Any
    ) -> Property:
        """Store the blob, re-derive the columns and keep meta in step with the row."""
        status = status or property_obj.status
        derived = denormalize(property_obj.flow_type, details)
        details = with_meta(details, title=derived["title"], status=status.value)
        return await self.property_repo.update_instance(
            property_obj,
            {**derived, **values, "status": status, "property_details": details},
        )

    def _keep_identity(self, property_obj: Property, details: Dict[str, Any]) -> Dict[str, Any]:
        stored = property_obj.property_details or {}
        stored_meta = stored.get("meta") or {}
        identity = {
            key: stored_meta[key]
            for key in ("id", "owner_id", "code", "created_at")
            if key in stored_meta
        }
        updated = with_meta(details, **identity)
        if "media" in stored:
            updated["media"] = stored["media"]
        return updated

    def _merge_tags(self, property_obj: Property, tags: List[str]) -> List[str]:
        """Owners can't grant or drop the moderation tag themselves."""
        merged = [tag for tag in tags if tag != PUBLIC_TAG]
        if PUBLIC_TAG in (property_obj.tags or []):
            merged.append(PUBLIC_TAG)
        return merged

    def _similarity_score(self, reference: Property, candidate: Property) -> float:
        score = 0.0
        if candidate.flow_type == reference.flow_type:
            score += SIMILAR_FLOW_WEIGHT
        if reference.city and candidate.city and reference.city.lower() == candidate.city.lower():
            score += SIMILAR_CITY_WEIGHT

        reference_price = Decimal(reference.price or 0)
        candidate_price = Decimal(candidate.price or 0)
        if reference_price > 0 and abs(candidate_price - reference_price) <= reference_price * SIMILAR_PRICE_TOLERANCE:
            score += SIMILAR_PRICE_WEIGHT

        if reference.bedrooms is not None and candidate.bedrooms == reference.bedrooms:
            score += SIMILAR_BEDROOMS_WEIGHT

        return round(score, 2)

    def _convert_search_filters(
        self,
        filters: PropertySearchSchema,
        current_user: Optional[User]
    ) -> PropertySearchFilters:
        owner_id = None
        if filters.owner_id:
            if current_user is None or not current_user.is_admin:
                raise InsufficientPermissionsError("filter by owner")
            try:
                owner_id = uuid.UUID(filters.owner_id)
            except ValueError:
                raise ValidationError("Invalid owner ID format")

        return PropertySearchFilters(
            query=filters.query,
            city=filters.city,
            state=filters.state,
            flow_types=self._resolve_flow_types(filters),
            min_price=filters.min_price,
            max_price=filters.max_price,
            min_bedrooms=filters.bedrooms,
            bathrooms=filters.bathrooms,
            min_area=filters.min_area,
            max_area=filters.max_area,
            owner_id=owner_id,
        )

    def _resolve_flow_types(self, filters: PropertySearchSchema) -> Optional[List[FlowType]]:
        if filters.flow_type is not None:
            return [coerce_flow_type(filters.flow_type)]

        if filters.property_type or filters.subtype:
            return [map_subtype_to_flow(filters.property_type or "residential", filters.subtype, filters.transaction_type)]

        if filters.transaction_type:
            return [flow for flow in FlowType if extract_transaction_type(flow) == filters.transaction_type]

        return None

    async def _generate_code(self) -> str:
        for _ in range(CODE_ATTEMPTS):
            code = "".join(secrets.choice(CODE_ALPHABET) for _ in range(CODE_LENGTH))
            if not await self.property_repo.code_exists(code):
                return code
        raise BadRequestError("Could not allocate a unique property code")


def _aware(value: datetime) -> datetime:
    """SQLite hands back naive timestamps; they are stored as UTC."""
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
