"""Turning an image field into a stored URL."""

from typing import Optional, Union

from pocket_ledger.services.image import ImageUploadError, ImageUploadInterface


async def resolve_image(
    image_service: Optional[ImageUploadInterface],
    image: Optional[Union[str, bytes]],
    folder: str,
    failure_message: str = "Failed to upload image",
) -> Optional[str]:
    """
    Upload raw image content and return its URL.

    A str is an image that was uploaded earlier and passes through
    unchanged, as does None.

    Raises:
        ImageUploadError: If there is no upload service or the upload fails
    """
    if image is None or isinstance(image, str):
        return image
    if image_service is None:
        raise ImageUploadError("Image uploads are not configured")
    try:
        return await image_service.upload(image, folder)
    except ImageUploadError as e:
        raise ImageUploadError(str(e) or failure_message)
