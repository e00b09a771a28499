"""
User Profile Service

Sign-in and sign-up happen elsewhere; this service only keeps the profile
document (name, email, avatar) that the identity provider hands over.
"""

from typing import Optional, Union

from pocket_ledger.ledger.engine import LedgerValidationError
from pocket_ledger.ledger.uploads import resolve_image
from pocket_ledger.logs import get_logger
from pocket_ledger.models.ledger import LedgerResponse, UserProfile
from pocket_ledger.services.image import ImageUploadError, ImageUploadInterface
from pocket_ledger.services.storage import StorageError, UserStorageInterface

logger = get_logger(__name__)

AVATARS_FOLDER = "users"


class UserService:
    """Profile reads and updates."""

    def __init__(
        self,
        user_storage: UserStorageInterface,
        image_service: Optional[ImageUploadInterface] = None,
    ):
        self._users = user_storage
        self._image_service = image_service

    async def get_user(self, uid: str) -> LedgerResponse:
        try:
            profile = await self._users.get_user(uid)
            if profile is None:
                return LedgerResponse.fail("User not found", error="NotFoundError")
            return LedgerResponse.ok(profile)
        except StorageError as e:
            return LedgerResponse.fail(str(e), error=type(e).__name__)

    async def update_user(
        self,
        uid: str,
        name: Optional[str] = None,
        email: Optional[str] = None,
        image: Optional[Union[str, bytes]] = None,
    ) -> LedgerResponse:
        """
        Merge new profile fields, uploading a new avatar if one is given.

        A profile that does not exist yet is created.
        """
        try:
            if not uid:
                raise LedgerValidationError("Missing user")
            if name is not None and not name.strip():
                raise LedgerValidationError("Name cannot be empty")

            profile = await self._users.get_user(uid) or UserProfile(uid=uid)
            image_url = await resolve_image(self._image_service, image, AVATARS_FOLDER)

            changes = {}
            if name is not None:
                changes["name"] = name.strip()
            if email is not None:
                changes["email"] = email.strip()
            if image_url is not None:
                changes["image"] = image_url

            saved = await self._users.save_user(
                UserProfile.model_validate({**profile.model_dump(), **changes})
            )
            logger.info("user_updated", uid=uid, fields=sorted(changes))
            return LedgerResponse.ok(saved, "Updated successfully")

        except (LedgerValidationError, ImageUploadError, StorageError) as e:
            logger.warning("user_update_rejected", uid=uid, reason=str(e))
            return LedgerResponse.fail(str(e), error=type(e).__name__)
        except Exception as e:
            logger.exception("user_update_failed", uid=uid)
            return LedgerResponse.fail(str(e) or "Failed to update user", error=type(e).__name__)
