"""
Listing service for Firestore database operations.
"""
import logging
from typing import Optional

from google.cloud import firestore

from ..config import LISTINGS_COLLECTION, LISTING_IMAGES_PREFIX
from ..exceptions import ServiceUnavailableError, NotFoundError, PermissionDeniedError, ConfirmationRequiredError
from ..models.listing import Listing, ListingForm, new_listing_document, status_transition_updates
from ..utils.filters import sort_listings
from ..utils.validators import validate_listing_form
from .storage_service import StorageService
from .upload_pipeline import UploadPipeline, CleanupReport
from .. import gcp_clients

logger = logging.getLogger(__name__)


class ListingService:
    """Service for managing adoption listings in Firestore."""

    def __init__(self, firestore_client=None, pipeline: Optional[UploadPipeline] = None,
                 storage_service: Optional[StorageService] = None):
        """
        Initialize listing service.

        Args:
            firestore_client: Firestore client (or None to use global client)
            pipeline: Upload pipeline (built on storage_service when omitted)
            storage_service: Storage service used by the default pipeline
        """
        self.firestore = firestore_client or gcp_clients.firestore_client
        self.pipeline = pipeline or UploadPipeline(storage_service)
        self.collection_name = LISTINGS_COLLECTION

    def _collection(self):
        if not self.firestore:
            raise ServiceUnavailableError("Firestore")
        return self.firestore.collection(self.collection_name)

    @staticmethod
    def image_namespace(listing_id: str) -> str:
        return f"{LISTING_IMAGES_PREFIX}/{listing_id}"

    def get_listing(self, listing_id: str) -> Listing:
        """
        Fetch one listing.

        Raises:
            NotFoundError: If the listing does not exist
        """
        snapshot = self._collection().document(listing_id).get()
        if not snapshot.exists:
            raise NotFoundError("Listing", listing_id)
        return Listing.from_firestore_doc(snapshot.id, snapshot.to_dict() or {})

    def list_by_owner(self, owner_uid: str) -> list[Listing]:
        """All listings of one owner, available first and newest first."""
        query = self._collection().where("owner_uid", "==", owner_uid)
        listings = [Listing.from_firestore_doc(doc.id, doc.to_dict() or {}) for doc in query.stream()]
        return sort_listings(listings)

    def create_listing(self, owner_uid: str, owner_name: Optional[str], form: ListingForm,
                       images: list) -> str:
        """
        Upload the photos of a new listing, then write its record.

        The document id is allocated up front (without a write) so it can name
        the image folder. Nothing is written unless every upload succeeded.

        Args:
            owner_uid: Id of the creating user
            owner_name: Display name copied onto the listing
            form: Submitted form values
            images: Finalized staged image list

        Returns:
            str: Document ID of created listing

        Raises:
            ValidationError: If the form is invalid (nothing is written)
            UploadError: If any image upload fails (nothing is written)
        """
        validation = validate_listing_form(form)
        validation.raise_for_errors()

        fields = form.to_firestore_fields(validation.age_years)
        doc_ref = self._collection().document()

        photos = self.pipeline.upload_all(images, self.image_namespace(doc_ref.id)) if images else []

        try:
            doc_ref.set(new_listing_document(owner_uid, owner_name, fields, photos))
        except Exception as e:
            logger.error(f"Failed to create listing {doc_ref.id}: {e}")
            self._discard_uploads(photos, images)
            raise

        logger.info(f"Created listing document: {doc_ref.id} with {len(photos)} photo(s)")
        return doc_ref.id

    def update_listing(self, snapshot: Listing, editor_uid: Optional[str], form: ListingForm,
                       images: list) -> CleanupReport:
        """
        Save an edit made against a snapshot of the listing.

        Status transition timestamps are computed against the snapshot's
        status. Images dropped from the staged list are deleted from storage
        only after the record write succeeded.

        Args:
            snapshot: Listing as loaded when editing started
            editor_uid: Id of the editing user
            form: Submitted form values
            images: Finalized staged image list

        Returns:
            CleanupReport: Outcome of the orphaned-image cleanup

        Raises:
            PermissionDeniedError: If the editor does not own the listing
            ValidationError: If the form is invalid
            UploadError: If any image upload fails (nothing is written)
        """
        self._check_owner(snapshot, editor_uid)

        validation = validate_listing_form(form)
        validation.raise_for_errors()

        references = self.pipeline.upload_all(images, self.image_namespace(snapshot.id))
        photos = [p for p in references if p]

        updates = form.to_firestore_fields(validation.age_years)
        updates.update({
            "status": form.status,
            "photos": photos,
            "updated_at": firestore.SERVER_TIMESTAMP,
        })
        updates.update(status_transition_updates(snapshot.status, form.status, firestore.SERVER_TIMESTAMP))

        try:
            self._collection().document(snapshot.id).update(updates)
        except Exception as e:
            logger.error(f"Failed to update listing {snapshot.id}: {e}")
            self._discard_uploads(references, images)
            raise
        logger.info(f"Updated listing document: {snapshot.id}")

        return self.pipeline.delete_orphans(snapshot.photos, photos)

    def delete_listing(self, listing_id: str, actor_uid: Optional[str], confirmed: bool = False) -> CleanupReport:
        """
        Delete a listing and every stored image it references.

        Args:
            listing_id: Listing to delete
            actor_uid: Id of the requesting user
            confirmed: Whether the user explicitly confirmed the deletion

        Returns:
            CleanupReport: Outcome of the image cleanup

        Raises:
            NotFoundError: If the listing does not exist
            PermissionDeniedError: If the actor does not own the listing
            ConfirmationRequiredError: If ``confirmed`` is False
        """
        listing = self.get_listing(listing_id)
        self._check_owner(listing, actor_uid)
        if not confirmed:
            raise ConfirmationRequiredError("Deleting a listing")

        self._collection().document(listing_id).delete()
        logger.info(f"Deleted listing document: {listing_id}")

        return self.pipeline.delete_references(listing.photos)

    def _discard_uploads(self, references: list, images: list):
        """Best-effort delete of the objects uploaded for entries that were new."""
        fresh = [ref for ref, entry in zip(references, images) if ref and entry.is_new]
        if fresh:
            self.pipeline.delete_references(fresh)

    @staticmethod
    def _check_owner(listing: Listing, uid: Optional[str]):
        if not listing.is_owned_by(uid):
            logger.warning(f"User {uid} is not the owner of listing {listing.id}")
            raise PermissionDeniedError(f"Only the owner can modify listing {listing.id}")
