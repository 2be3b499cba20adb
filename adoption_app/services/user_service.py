"""
User profile service for Firestore database operations.
"""
import logging
from typing import Optional

from ..config import USERS_COLLECTION, AVATARS_PREFIX, MAX_AVATAR_SIZE_MB
from ..exceptions import ServiceUnavailableError, NotFoundError
from ..models.user import UserProfile, ROLE_USER
from ..utils.image_staging import PendingUpload
from ..utils.url_helpers import object_path
from ..utils.validators import validate_image
from .storage_service import StorageService
from .upload_pipeline import MonotonicMillis
from .. import gcp_clients

logger = logging.getLogger(__name__)


class UserService:
    """Service for managing user profiles in Firestore."""

    def __init__(self, firestore_client=None, storage_service: Optional[StorageService] = None,
                 timestamps=None):
        self.firestore = firestore_client or gcp_clients.firestore_client
        self.storage = storage_service or StorageService()
        self.timestamps = timestamps or MonotonicMillis()
        self.collection_name = USERS_COLLECTION

    def _doc(self, uid: str):
        if not self.firestore:
            raise ServiceUnavailableError("Firestore")
        return self.firestore.collection(self.collection_name).document(uid)

    def ensure_user_doc(self, uid: str, email: Optional[str], display_name: Optional[str]) -> bool:
        """
        Create the profile document on first authentication if it is absent.

        Returns:
            bool: True if a document was created
        """
        doc_ref = self._doc(uid)
        if doc_ref.get().exists:
            return False

        profile = UserProfile(uid=uid, email=email, display_name=display_name, role=ROLE_USER)
        doc_ref.set(profile.to_firestore_document())
        logger.info(f"Created user profile document: {uid}")
        return True

    def create_profile(self, profile: UserProfile):
        """Write the profile of a newly registered user."""
        self._doc(profile.uid).set(profile.to_firestore_document())
        logger.info(f"Created user profile document: {profile.uid} ({profile.role})")

    def get_profile(self, uid: str) -> UserProfile:
        """
        Fetch a profile.

        Raises:
            NotFoundError: If no profile exists for ``uid``
        """
        snapshot = self._doc(uid).get()
        if not snapshot.exists:
            raise NotFoundError("User", uid)
        return UserProfile.from_firestore_doc(snapshot.id, snapshot.to_dict() or {})

    def upload_avatar(self, uid: str, upload: PendingUpload) -> str:
        """
        Validate and upload a new avatar image.

        Returns:
            str: Public URL of the avatar
        """
        validate_image(upload.content_type, upload.size, MAX_AVATAR_SIZE_MB)
        path = object_path(f"{AVATARS_PREFIX}/{uid}", self.timestamps(), upload.filename,
                           default_ext=".jpg")
        return self.storage.upload_bytes(path, upload.data, upload.content_type)

    def update_profile(self, uid: str, display_name: Optional[str],
                       photo_url: Optional[str] = None) -> dict:
        """
        Update the owner-editable profile fields.

        Returns:
            dict: The fields written
        """
        updates = {"display_name": display_name or None}
        if photo_url:
            updates["photo_url"] = photo_url
        self._doc(uid).update(updates)
        logger.info(f"Updated user profile: {uid}")
        return updates
