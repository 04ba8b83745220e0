"""
Image service for listing photos: upload, ordering, cover image and cleanup.
Every change is mirrored into media.photos.images of the property details blob.
A property can also carry one walkthrough video, kept only in media.videos.
"""

import uuid
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

from fastapi import UploadFile
from sqlalchemy.ext.asyncio import AsyncSession

from marketplace.config import settings
from marketplace.flows.extraction import get_video, with_media, with_video
from marketplace.models.image import PropertyImage
from marketplace.models.property import Property
from marketplace.models.user import User
from marketplace.repositories.image import ImageRepository
from marketplace.repositories.property import PropertyRepository
from marketplace.schemas.image import PropertyImageUpdate
from marketplace.utils.exceptions import (
    APIException,
    BadRequestError,
    FileUploadError,
    InsufficientPermissionsError,
    NotFoundError,
    PropertyNotFoundError,
    ResourceLimitExceededError,
)
from marketplace.utils.file_utils import FileStorage, FileValidator, VideoValidator

logger = logging.getLogger(__name__)


class ImageService:
    """Service for managing property image uploads and storage."""

    def __init__(self, db_session: AsyncSession):
        self.db = db_session
        self.image_repo = ImageRepository(db_session)
        self.property_repo = PropertyRepository(db_session)
        self.storage = FileStorage()

    async def upload_image(
        self,
        property_id: uuid.UUID,
        file: UploadFile,
        current_user: User,
        is_primary: bool = False,
        display_order: Optional[int] = None
    ) -> PropertyImage:
        """
        Upload and store a property image.

        The first image of a property always becomes its cover image.

        Raises:
            PropertyNotFoundError: If the property doesn't exist
            InsufficientPermissionsError: If the user can't manage the property
            ResourceLimitExceededError: If the property already has the maximum number of images
            FileUploadError: If the file is not an acceptable image
        """
        property_obj = await self._get_manageable_property(property_id, current_user)
        return await self._store_image(property_obj, file, is_primary, display_order)

    async def upload_multiple_images(
        self,
        property_id: uuid.UUID,
        files: List[UploadFile],
        current_user: User
    ) -> Tuple[List[PropertyImage], List[str]]:
        """
        Upload several images; a failing file does not stop the others.

        Returns:
            Tuple of (uploaded images, error messages)

        Raises:
            FileUploadError: If every file failed
        """
        property_obj = await self._get_manageable_property(property_id, current_user)

        uploaded: List[PropertyImage] = []
        errors: List[str] = []
        for file in files:
            try:
                uploaded.append(await self._store_image(property_obj, file))
            except (FileUploadError, ResourceLimitExceededError) as e:
                errors.append(f"{file.filename}: {e.detail}")

        if errors and not uploaded:
            raise FileUploadError(f"All uploads failed: {'; '.join(errors)}")

        logger.info(f"Uploaded {len(uploaded)} images to property {property_id} ({len(errors)} failed)")
        return uploaded, errors

    async def list_images(self, property_id: uuid.UUID, current_user: Optional[User] = None) -> List[PropertyImage]:
        """Images of a property the user is allowed to see."""
        property_obj = await self.property_repo.get_by_id(property_id)
        if not property_obj or not self._can_view_property(property_obj, current_user):
            raise PropertyNotFoundError(str(property_id))
        return await self.image_repo.get_by_property_id(property_id)

    async def get_image(self, property_id: uuid.UUID, image_id: uuid.UUID) -> PropertyImage:
        image = await self.image_repo.get_by_id(image_id)
        if not image or image.property_id != property_id:
            raise NotFoundError("Image", str(image_id))
        return image

    async def set_primary(self, property_id: uuid.UUID, image_id: uuid.UUID, current_user: User) -> PropertyImage:
        """Make an image the cover image of its property."""
        property_obj = await self._get_manageable_property(property_id, current_user)
        image = await self.get_image(property_id, image_id)

        try:
            await self.image_repo.update_primary_status(property_id, image.id)
            await self.db.refresh(image)
            await self.sync_media(property_obj)

            logger.info(f"Primary image of property {property_id} set to {image_id}")
            return image

        except APIException:
            raise
        except Exception as e:
            logger.error(f"Failed to set primary image {image_id}: {e}")
            raise BadRequestError(f"Failed to set primary image: {str(e)}")

    async def update_image(
        self,
        property_id: uuid.UUID,
        image_id: uuid.UUID,
        image_data: PropertyImageUpdate,
        current_user: User
    ) -> PropertyImage:
        property_obj = await self._get_manageable_property(property_id, current_user)
        image = await self.get_image(property_id, image_id)

        try:
            if image_data.display_order is not None:
                image = await self.image_repo.update_instance(image, {"display_order": image_data.display_order})

            if image_data.is_primary:
                await self.image_repo.update_primary_status(property_id, image.id)
                await self.db.refresh(image)

            await self.sync_media(property_obj)
            return image

        except APIException:
            raise
        except Exception as e:
            logger.error(f"Failed to update image {image_id}: {e}")
            raise BadRequestError(f"Failed to update image: {str(e)}")

    async def delete_image(self, property_id: uuid.UUID, image_id: uuid.UUID, current_user: User) -> bool:
        """
        Delete an image and its file.
        Deleting the cover image promotes the next image in display order.
        """
        property_obj = await self._get_manageable_property(property_id, current_user)
        image = await self.get_image(property_id, image_id)
        was_primary = image.is_primary
        file_path = self.storage.absolute_path(image.file_path)

        try:
            await self.image_repo.delete(image.id)
            self.storage.delete(file_path)

            if was_primary:
                remaining = await self.image_repo.get_by_property_id(property_id)
                if remaining:
                    await self.image_repo.update_primary_status(property_id, remaining[0].id)

            self.storage.cleanup_property_directory(property_id)
            await self.sync_media(property_obj)

            logger.info(f"Image {image_id} deleted from property {property_id}")
            return True

        except APIException:
            raise
        except Exception as e:
            logger.error(f"Failed to delete image {image_id}: {e}")
            raise BadRequestError(f"Failed to delete image: {str(e)}")

    async def delete_property_images(self, property_id: uuid.UUID) -> int:
        """
        Delete every image file and record of a property.

        Returns:
            Number of images deleted
        """
        images = await self.image_repo.get_by_property_id(property_id)
        for image in images:
            self.storage.delete(self.storage.absolute_path(image.file_path))

        deleted_count = await self.image_repo.delete_by_property_id(property_id)
        videos = self.storage.clear_videos(property_id)
        self.storage.cleanup_property_directory(property_id)

        logger.info(f"Deleted {deleted_count} images and {videos} videos of property {property_id}")
        return deleted_count

    async def upload_video(self, property_id: uuid.UUID, file: UploadFile, current_user: User) -> Dict[str, Any]:
        """
        Upload the walkthrough video of a property, replacing any earlier one.

        Returns:
            The video entry stored under media.videos.video

        Raises:
            PropertyNotFoundError: If the property doesn't exist
            InsufficientPermissionsError: If the user can't manage the property
            FileUploadError: If the file is not an MP4 or WebM video within the size limit
        """
        property_obj = await self._get_manageable_property(property_id, current_user, "manage the video of this property")
        content, mime_type = await VideoValidator.validate_upload_video(file)

        file_path = self.storage.generate_video_path(property_obj.id, file.filename)
        file_size = await self.storage.save(content, file_path)
        relative_path = self.storage.relative_path(file_path)

        video = {
            "url": f"/uploads/{relative_path}",
            "fileName": file.filename,
            "filePath": relative_path,
            "fileSize": file_size,
            "mimeType": mime_type,
            "uploadedAt": datetime.now(timezone.utc).isoformat(),
        }
        previous = get_video(property_obj.property_details)

        try:
            details = with_video(property_obj.property_details or {}, video)
            await self.property_repo.update_instance(property_obj, {"property_details": details})
        except Exception as e:
            self.storage.delete(file_path)
            logger.error(f"Failed to store video of property {property_id}: {e}")
            raise BadRequestError(f"Failed to store video: {str(e)}")

        if previous and previous.get("filePath"):
            self.storage.delete(self.storage.absolute_path(previous["filePath"]))

        logger.info(f"Video {video['fileName']} uploaded to property {property_id} ({file_size} bytes)")
        return video

    async def get_video(self, property_id: uuid.UUID, current_user: Optional[User] = None) -> Dict[str, Any]:
        """
        Raises:
            PropertyNotFoundError: If the property is missing or hidden from the user
            NotFoundError: If the property has no video
        """
        property_obj = await self.property_repo.get_by_id(property_id)
        if not property_obj or not self._can_view_property(property_obj, current_user):
            raise PropertyNotFoundError(str(property_id))

        video = get_video(property_obj.property_details)
        if video is None:
            raise NotFoundError("Video", str(property_id))
        return video

    async def delete_video(self, property_id: uuid.UUID, current_user: User) -> bool:
        """Remove the walkthrough video and its file."""
        property_obj = await self._get_manageable_property(property_id, current_user, "manage the video of this property")
        video = get_video(property_obj.property_details)
        if video is None:
            raise NotFoundError("Video", str(property_id))

        details = with_video(property_obj.property_details or {}, None)
        await self.property_repo.update_instance(property_obj, {"property_details": details})

        if video.get("filePath"):
            self.storage.delete(self.storage.absolute_path(video["filePath"]))
        self.storage.cleanup_property_directory(property_id)

        logger.info(f"Video removed from property {property_id}")
        return True

    async def sync_media(self, property_obj: Property) -> Property:
        """Write the current image list into the details blob."""
        images = await self.image_repo.get_by_property_id(property_obj.id)
        details = with_media(property_obj.property_details or {}, [image.to_media_entry() for image in images])
        return await self.property_repo.update_instance(property_obj, {"property_details": details})

    async def _store_image(
        self,
        property_obj: Property,
        file: UploadFile,
        is_primary: bool = False,
        display_order: Optional[int] = None
    ) -> PropertyImage:
        existing_count = await self.image_repo.count_by_property_id(property_obj.id)
        if existing_count >= settings.max_images_per_property:
            raise ResourceLimitExceededError("Images per property", settings.max_images_per_property)

        content, mime_type, width, height = await FileValidator.validate_upload_file(file)

        file_path = self.storage.generate_file_path(property_obj.id, file.filename)
        file_size = await self.storage.save(content, file_path)

        if display_order is None:
            display_order = await self.image_repo.next_display_order(property_obj.id)

        try:
            image = await self.image_repo.create({
                "property_id": property_obj.id,
                "filename": file.filename,
                "file_path": self.storage.relative_path(file_path),
                "file_size": file_size,
                "mime_type": mime_type,
                "width": width,
                "height": height,
                "is_primary": False,
                "display_order": display_order,
            })
        except Exception as e:
            self.storage.delete(file_path)
            logger.error(f"Failed to create image record for property {property_obj.id}: {e}")
            raise BadRequestError(f"Failed to create image record: {str(e)}")

        if is_primary or existing_count == 0:
            await self.image_repo.update_primary_status(property_obj.id, image.id)
            await self.db.refresh(image)

        await self.sync_media(property_obj)

        logger.info(f"Image {image.id} uploaded to property {property_obj.id}")
        return image

    async def _get_manageable_property(
        self,
        property_id: uuid.UUID,
        current_user: User,
        action: str = "manage images of this property"
    ) -> Property:
        property_obj = await self.property_repo.get_by_id(property_id)
        if not property_obj or not self._can_view_property(property_obj, current_user):
            raise PropertyNotFoundError(str(property_id))

        if not current_user.can_manage_property(property_obj.owner_id):
            raise InsufficientPermissionsError(action)

        return property_obj

    def _can_view_property(self, property_obj: Property, current_user: Optional[User]) -> bool:
        if property_obj.is_published:
            return True
        if current_user is None:
            return False
        return current_user.id == property_obj.owner_id or current_user.is_staff
