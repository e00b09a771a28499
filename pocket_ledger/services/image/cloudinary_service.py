"""
Image Upload Service using Cloudinary

Cloudinary stores wallet icons, user avatars and transaction receipts.

This service handles:
1. Size and format checks before anything leaves the machine
2. Upload to Cloudinary under <root_folder>/<folder>
3. Returning the secure URL

There is no retry here. A failed upload surfaces to the caller, which
aborts its own operation.
"""

import hashlib
from io import BytesIO
from typing import Optional

import cloudinary
import cloudinary.uploader
from cloudinary.exceptions import Error as CloudinaryError
from PIL import Image, UnidentifiedImageError

from pocket_ledger.config import AppSettings, CloudinarySettings, get_settings
from pocket_ledger.logs import get_logger
from pocket_ledger.services.image.interface import (
    ImageFile,
    ImageUploadError,
    ImageUploadInterface,
)

logger = get_logger(__name__)

# PIL reports JPEG for both extensions
_FORMAT_ALIASES = {"jpg": "jpeg"}


class CloudinaryUploadService(ImageUploadInterface):
    """
    Upload gateway backed by Cloudinary.

    Flow:
    1. Read the file content
    2. Reject oversized or non-image content
    3. Upload and return the secure URL
    """

    def __init__(
        self,
        settings: Optional[CloudinarySettings] = None,
        app_settings: Optional[AppSettings] = None,
    ):
        self._settings = settings or get_settings().cloudinary
        self._app_settings = app_settings or get_settings().app
        self._configured = False

    def _configure(self):
        """Configure Cloudinary SDK."""
        if not self._configured:
            cloudinary.config(
                cloud_name=self._settings.cloud_name,
                api_key=self._settings.api_key,
                api_secret=self._settings.api_secret,
                secure=True,
            )
            self._configured = True

    @staticmethod
    def _read(file: ImageFile) -> bytes:
        if isinstance(file, (bytes, bytearray)):
            return bytes(file)
        return file.read()

    def _check_image(self, data: bytes) -> str:
        """
        Make sure the content is an image we accept.

        Returns the detected format, lower-case.
        """
        if not data:
            raise ImageUploadError("The selected file is empty")

        max_bytes = self._app_settings.max_upload_size_bytes
        if len(data) > max_bytes:
            raise ImageUploadError(
                f"Image is too large (maximum {self._app_settings.max_upload_size_mb} MB)"
            )

        try:
            with Image.open(BytesIO(data)) as img:
                img.verify()
                detected = (img.format or "").lower()
        except (UnidentifiedImageError, OSError, SyntaxError):
            raise ImageUploadError("The selected file is not a valid image")

        allowed = {
            _FORMAT_ALIASES.get(fmt, fmt)
            for fmt in self._app_settings.supported_formats_list
        }
        if detected not in allowed:
            raise ImageUploadError(
                f"Unsupported image format: {detected or 'unknown'}. "
                f"Allowed: {self._app_settings.supported_image_formats}"
            )
        return detected

    def _public_id(self, data: bytes) -> str:
        """Content-derived id, so re-uploading the same receipt overwrites it."""
        return hashlib.md5(data).hexdigest()[:16]

    async def upload(self, file: ImageFile, folder: str) -> str:
        """
        Upload an image to Cloudinary.

        Args:
            file: Raw image bytes or a binary file object
            folder: Logical folder ('wallets', 'users', 'transactions')

        Returns:
            Secure URL of the uploaded image

        Raises:
            ImageUploadError: If the image is rejected or the upload fails
        """
        data = self._read(file)
        self._check_image(data)
        self._configure()

        try:
            result = cloudinary.uploader.upload(
                data,
                public_id=self._public_id(data),
                folder=f"{self._settings.root_folder}/{folder}",
                resource_type="image",
                overwrite=True,
            )
        except CloudinaryError as e:
            logger.warning("image_upload_failed", folder=folder, error=str(e))
            raise ImageUploadError(f"Failed to upload image: {e}")
        except Exception as e:
            logger.exception("image_upload_crashed", folder=folder)
            raise ImageUploadError(f"Failed to upload image: {e}")

        url = result.get("secure_url") or result.get("url")
        if not url:
            raise ImageUploadError("No URL returned from Cloudinary")

        logger.info("image_uploaded", folder=folder, url=url)
        return url
