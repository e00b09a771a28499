"""Image upload services package."""

from pocket_ledger.services.image.interface import (
    ImageFile,
    ImageUploadError,
    ImageUploadInterface,
)
from pocket_ledger.services.image.cloudinary_service import CloudinaryUploadService

__all__ = [
    "CloudinaryUploadService",
    "ImageFile",
    "ImageUploadError",
    "ImageUploadInterface",
]
