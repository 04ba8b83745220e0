"""
Image management API endpoints.
Handles image upload, listing, cover selection and deletion for a property.
"""

from typing import List, Optional
from uuid import UUID
from fastapi import APIRouter, Depends, UploadFile, File, Form, Path, Response, status

from marketplace.models.user import User
from marketplace.services.image import ImageService
from marketplace.schemas.image import (
    PropertyImageResponse,
    PropertyImageListResponse,
    ImageUploadResponse,
    MultipleImageUploadResponse,
    PropertyImageUpdate,
    PropertyVideoResponse,
)
from marketplace.schemas.error import get_crud_error_responses, get_common_error_responses
from marketplace.utils.dependencies import get_current_active_user, get_optional_current_user, get_image_service
from marketplace.utils.exceptions import BadRequestError

MAX_FILES_PER_UPLOAD = 10

router = APIRouter(prefix="/properties/{property_id}/images", tags=["Images"])
video_router = APIRouter(prefix="/properties/{property_id}/video", tags=["Videos"])


@router.post(
    "",
    response_model=ImageUploadResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Upload single image for property",
    description="Upload a single image file for a property. Supports JPEG, PNG, and WebP formats up to 10MB.",
    responses=get_crud_error_responses()
)
async def upload_property_image(
    property_id: UUID = Path(..., description="Property ID"),
    file: UploadFile = File(..., description="Image file to upload"),
    is_primary: bool = Form(False, description="Set as the cover image of the property"),
    display_order: Optional[int] = Form(None, ge=0, description="Position in the gallery, appended by default"),
    current_user: User = Depends(get_current_active_user),
    image_service: ImageService = Depends(get_image_service)
) -> ImageUploadResponse:
    image = await image_service.upload_image(
        property_id,
        file,
        current_user,
        is_primary=is_primary,
        display_order=display_order
    )

    return ImageUploadResponse(
        success=True,
        message="Image uploaded successfully",
        image=PropertyImageResponse.model_validate(image.to_dict())
    )


@router.post(
    "/batch",
    response_model=MultipleImageUploadResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Upload multiple images for property",
    description="Upload several image files at once; invalid files are reported without stopping the batch.",
    responses=get_crud_error_responses()
)
async def upload_multiple_property_images(
    property_id: UUID = Path(..., description="Property ID"),
    files: List[UploadFile] = File(..., description="List of image files to upload"),
    current_user: User = Depends(get_current_active_user),
    image_service: ImageService = Depends(get_image_service)
) -> MultipleImageUploadResponse:
    if not files:
        raise BadRequestError("No files provided")

    if len(files) > MAX_FILES_PER_UPLOAD:
        raise BadRequestError(f"Maximum {MAX_FILES_PER_UPLOAD} files allowed per upload")

    images, errors = await image_service.upload_multiple_images(property_id, files, current_user)

    return MultipleImageUploadResponse(
        success=not errors,
        message=f"{len(images)} images uploaded successfully",
        images=[PropertyImageResponse.model_validate(image.to_dict()) for image in images],
        uploaded_count=len(images),
        failed_count=len(errors),
        errors=errors
    )


@router.get(
    "",
    response_model=PropertyImageListResponse,
    status_code=status.HTTP_200_OK,
    summary="List images of a property",
    responses=get_common_error_responses()
)
async def list_property_images(
    property_id: UUID = Path(..., description="Property ID"),
    current_user: Optional[User] = Depends(get_optional_current_user),
    image_service: ImageService = Depends(get_image_service)
) -> PropertyImageListResponse:
    images = await image_service.list_images(property_id, current_user)
    responses = [PropertyImageResponse.model_validate(image.to_dict()) for image in images]
    primary = next((response for response in responses if response.is_primary), None)

    return PropertyImageListResponse(images=responses, total=len(responses), primary_image=primary)


@router.put(
    "/{image_id}",
    response_model=PropertyImageResponse,
    status_code=status.HTTP_200_OK,
    summary="Update image metadata",
    responses=get_crud_error_responses()
)
async def update_property_image(
    image_data: PropertyImageUpdate,
    property_id: UUID = Path(..., description="Property ID"),
    image_id: UUID = Path(..., description="Image ID"),
    current_user: User = Depends(get_current_active_user),
    image_service: ImageService = Depends(get_image_service)
) -> PropertyImageResponse:
    image = await image_service.update_image(property_id, image_id, image_data, current_user)
    return PropertyImageResponse.model_validate(image.to_dict())


@router.post(
    "/{image_id}/primary",
    response_model=PropertyImageResponse,
    status_code=status.HTTP_200_OK,
    summary="Set the cover image",
    responses=get_crud_error_responses()
)
async def set_primary_image(
    property_id: UUID = Path(..., description="Property ID"),
    image_id: UUID = Path(..., description="Image ID"),
    current_user: User = Depends(get_current_active_user),
    image_service: ImageService = Depends(get_image_service)
) -> PropertyImageResponse:
    image = await image_service.set_primary(property_id, image_id, current_user)
    return PropertyImageResponse.model_validate(image.to_dict())


@router.delete(
    "/{image_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete an image",
    description="Deleting the cover image promotes the next image in the gallery",
    responses=get_common_error_responses()
)
async def delete_property_image(
    property_id: UUID = Path(..., description="Property ID"),
    image_id: UUID = Path(..., description="Image ID"),
    current_user: User = Depends(get_current_active_user),
    image_service: ImageService = Depends(get_image_service)
) -> Response:
    await image_service.delete_image(property_id, image_id, current_user)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@video_router.post(
    "",
    response_model=PropertyVideoResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Upload the walkthrough video",
    description="Upload one MP4 or WebM video up to 50MB. A new upload replaces the previous video.",
    responses=get_crud_error_responses()
)
async def upload_property_video(
    property_id: UUID = Path(..., description="Property ID"),
    file: UploadFile = File(..., description="Video file to upload"),
    current_user: User = Depends(get_current_active_user),
    image_service: ImageService = Depends(get_image_service)
) -> PropertyVideoResponse:
    video = await image_service.upload_video(property_id, file, current_user)
    return PropertyVideoResponse.from_entry(property_id, video)


@video_router.get(
    "",
    response_model=PropertyVideoResponse,
    summary="Get the walkthrough video",
    responses=get_common_error_responses()
)
async def get_property_video(
    property_id: UUID = Path(..., description="Property ID"),
    current_user: Optional[User] = Depends(get_optional_current_user),
    image_service: ImageService = Depends(get_image_service)
) -> PropertyVideoResponse:
    video = await image_service.get_video(property_id, current_user)
    return PropertyVideoResponse.from_entry(property_id, video)


@video_router.delete(
    "",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete the walkthrough video",
    responses=get_common_error_responses()
)
async def delete_property_video(
    property_id: UUID = Path(..., description="Property ID"),
    current_user: User = Depends(get_current_active_user),
    image_service: ImageService = Depends(get_image_service)
) -> Response:
    await image_service.delete_video(property_id, current_user)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
