"""
Upload Gateway Interface

Wallet icons, user avatars and transaction receipts all go through one
operation: upload(file, folder) -> URL. Each call is all-or-nothing and
is never retried by the caller.
"""

from abc import ABC, abstractmethod
from typing import BinaryIO, Union


ImageFile = Union[bytes, BinaryIO]


class ImageUploadError(Exception):
    """Upload failed. The message is shown to the user as is."""
    pass


class ImageUploadInterface(ABC):
    """Anything that can turn image content into a public URL."""

    @abstractmethod
    async def upload(self, file: ImageFile, folder: str) -> str:
        """
        Upload an image.

        Args:
            file: Raw image bytes or a binary file object
            folder: Logical folder, e.g. 'wallets', 'users', 'transactions'

        Returns:
            The public URL of the stored image

        Raises:
            ImageUploadError: If the file is rejected or the upload fails
        """
        pass
