"""
File upload utilities for listing photos and videos.
Validation reads the upload once and checks type, size and content: Pillow
decodes photos, videos are checked by their container signature.
"""

import io
import uuid
import logging
from pathlib import Path
from typing import List, Optional, Tuple

import aiofiles
from fastapi import UploadFile
from PIL import Image, UnidentifiedImageError

from marketplace.config import settings
from marketplace.utils.exceptions import FileUploadError

logger = logging.getLogger(__name__)


class FileValidator:
    """Validation of uploaded image files."""

    EXTENSIONS = {
        'image/jpeg': ['.jpg', '.jpeg'],
        'image/png': ['.png'],
        'image/webp': ['.webp'],
    }

    PIL_FORMATS = {
        'image/jpeg': 'jpeg',
        'image/png': 'png',
        'image/webp': 'webp',
    }

    @classmethod
    def allowed_types(cls) -> List[str]:
        return [mime for mime in settings.allowed_file_types if mime in cls.EXTENSIONS]

    @classmethod
    def validate_mime_type(cls, mime_type: Optional[str]) -> str:
        allowed = cls.allowed_types()
        if not mime_type or mime_type not in allowed:
            raise FileUploadError(
                f"File type '{mime_type}' not allowed. Allowed types: {', '.join(allowed)}"
            )
        return mime_type

    @classmethod
    def validate_extension(cls, filename: Optional[str], mime_type: str) -> str:
        """
        Check the extension is known and matches the declared MIME type.

        Returns:
            Lowercase extension including the dot
        """
        if not filename:
            raise FileUploadError("Filename is required")

        extension = Path(filename).suffix.lower()
        if not extension:
            raise FileUploadError("File must have an extension")

        if extension not in cls.EXTENSIONS.get(mime_type, []):
            raise FileUploadError(f"File extension '{extension}' doesn't match MIME type '{mime_type}'")

        return extension

    @classmethod
    def max_size(cls) -> int:
        return settings.max_file_size

    @classmethod
    def validate_size(cls, file_size: int) -> int:
        if file_size <= 0:
            raise FileUploadError("File is empty")

        if file_size > cls.max_size():
            max_mb = cls.max_size() / (1024 * 1024)
            actual_mb = file_size / (1024 * 1024)
            raise FileUploadError(
                f"File size ({actual_mb:.1f}MB) exceeds maximum allowed size ({max_mb:.1f}MB)"
            )
        return file_size

    @classmethod
    def inspect_image(cls, content: bytes, mime_type: str) -> Tuple[int, int]:
        """
        Decode the image and check its format.

        Returns:
            Tuple of (width, height)
        """
        try:
            with Image.open(io.BytesIO(content)) as img:
                img.verify()
            # verify() leaves the image unusable, reopen for the size
            with Image.open(io.BytesIO(content)) as img:
                width, height = img.size
                pil_format = (img.format or "").lower()
        except (UnidentifiedImageError, OSError, SyntaxError) as e:
            raise FileUploadError(f"Invalid image file: {str(e)}")

        if pil_format != cls.PIL_FORMATS.get(mime_type):
            raise FileUploadError(f"File content doesn't match declared type {mime_type}")

        return width, height

    @classmethod
    async def validate_upload_file(cls, file: UploadFile) -> Tuple[bytes, str, int, int]:
        """
        Validate an uploaded image.

        Returns:
            Tuple of (content, mime_type, width, height)

        Raises:
            FileUploadError: If any check fails
        """
        mime_type = cls.validate_mime_type(file.content_type)
        cls.validate_extension(file.filename, mime_type)

        await file.seek(0)
        content = await file.read()
        cls.validate_size(len(content))

        width, height = cls.inspect_image(content, mime_type)
        return content, mime_type, width, height


class VideoValidator(FileValidator):
    """Validation of uploaded walkthrough videos: MP4 or WebM up to the video size limit."""

    EXTENSIONS = {
        'video/mp4': ['.mp4'],
        'video/webm': ['.webm'],
    }

    @classmethod
    def allowed_types(cls) -> List[str]:
        return [mime for mime in settings.allowed_video_types if mime in cls.EXTENSIONS]

    @classmethod
    def max_size(cls) -> int:
        return settings.max_video_size

    @classmethod
    def inspect_video(cls, content: bytes, mime_type: str) -> None:
        """Check the container signature matches the declared type."""
        if mime_type == 'video/mp4':
            matches = content[4:8] == b'ftyp'
        else:
            matches = content[:4] == b'\x1a\x45\xdf\xa3'

        if not matches:
            raise FileUploadError(f"File content doesn't match declared type {mime_type}")

    @classmethod
    async def validate_upload_video(cls, file: UploadFile) -> Tuple[bytes, str]:
        """
        Validate an uploaded video.

        Returns:
            Tuple of (content, mime_type)

        Raises:
            FileUploadError: If any check fails
        """
        mime_type = cls.validate_mime_type(file.content_type)
        cls.validate_extension(file.filename, mime_type)

        await file.seek(0)
        content = await file.read()
        cls.validate_size(len(content))

        cls.inspect_video(content, mime_type)
        return content, mime_type


class FileStorage:
    """
    Media files stored under <upload_dir>/properties/<property_id>/, with the
    walkthrough video in a videos/ subdirectory.
    """

    def __init__(self, base_dir: Optional[str] = None):
        self.base_dir = Path(base_dir or settings.upload_dir)

    def property_directory(self, property_id: uuid.UUID) -> Path:
        return self.base_dir / "properties" / str(property_id)

    def generate_file_path(self, property_id: uuid.UUID, filename: str) -> Path:
        extension = Path(filename).suffix.lower()
        return self.property_directory(property_id) / f"{uuid.uuid4()}{extension}"

    def video_directory(self, property_id: uuid.UUID) -> Path:
        return self.property_directory(property_id) / "videos"

    def generate_video_path(self, property_id: uuid.UUID, filename: str) -> Path:
        extension = Path(filename).suffix.lower()
        return self.video_directory(property_id) / f"{uuid.uuid4()}{extension}"

    def clear_videos(self, property_id: uuid.UUID) -> int:
        """
        Delete every video file of a property.

        Returns:
            Number of files deleted
        """
        video_dir = self.video_directory(property_id)
        if not video_dir.exists():
            return 0
        return sum(1 for path in list(video_dir.iterdir()) if path.is_file() and self.delete(path))

    def relative_path(self, full_path: Path) -> str:
        return full_path.relative_to(self.base_dir).as_posix()

    def absolute_path(self, relative_path: str) -> Path:
        return self.base_dir / relative_path

    async def save(self, content: bytes, file_path: Path) -> int:
        """
        Write content to disk.

        Returns:
            Number of bytes written
        """
        try:
            file_path.parent.mkdir(parents=True, exist_ok=True)
            async with aiofiles.open(file_path, 'wb') as f:
                await f.write(content)
            return len(content)
        except OSError as e:
            self.delete(file_path)
            raise FileUploadError(f"Failed to save file: {str(e)}")

    def delete(self, file_path: Path) -> bool:
        try:
            if file_path.exists():
                file_path.unlink()
                return True
        except OSError as e:
            logger.warning(f"Could not delete file {file_path}: {e}")
        return False

    def cleanup_property_directory(self, property_id: uuid.UUID) -> bool:
        """Remove the property directory once it is empty."""
        property_dir = self.property_directory(property_id)
        video_dir = self.video_directory(property_id)
        try:
            if video_dir.exists() and not any(video_dir.iterdir()):
                video_dir.rmdir()
            if property_dir.exists() and not any(property_dir.iterdir()):
                property_dir.rmdir()
                return True
        except OSError as e:
            logger.warning(f"Could not remove directory {property_dir}: {e}")
        return False
