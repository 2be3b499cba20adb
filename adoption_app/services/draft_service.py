"""
Editing sessions ("drafts") for new and existing listings.

A draft owns one image staging buffer. Drafts for existing listings also hold
the listing as it was when editing began; the draft is never re-synced with
later changes to the stored listing.
"""
import logging
import threading
import time
import uuid
from dataclasses import dataclass, field
from typing import Callable, Optional

from ..config import DRAFT_TTL_SECONDS
from ..exceptions import NotFoundError, PermissionDeniedError
from ..models.listing import Listing, ListingForm
from ..utils.image_staging import ImageStagingBuffer, PreviewStore

logger = logging.getLogger(__name__)


@dataclass
class ListingDraft:
    """One open editing session."""
    draft_id: str
    owner_uid: str
    images: ImageStagingBuffer
    form: ListingForm = field(default_factory=ListingForm)
    snapshot: Optional[Listing] = None
    touched_at: float = 0.0

    @property
    def listing_id(self) -> Optional[str]:
        return self.snapshot.id if self.snapshot else None

    @property
    def is_edit(self) -> bool:
        return self.snapshot is not None

    def to_dict(self) -> dict:
        return {
            "draft_id": self.draft_id,
            "listing_id": self.listing_id,
            "form": self.form.to_dict(),
            "images": self.images.to_list(),
            "can_add_images": self.images.can_add_more,
        }


class DraftStore:
    """In-memory registry of open drafts with idle expiry."""

    def __init__(self, previews: Optional[PreviewStore] = None, ttl_seconds: int = DRAFT_TTL_SECONDS,
                 clock: Callable[[], float] = time.monotonic):
        self.previews = previews or PreviewStore()
        self.ttl_seconds = ttl_seconds
        self.clock = clock
        self._drafts = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._drafts)

    def _register(self, draft: ListingDraft) -> ListingDraft:
        self.expire_stale()
        draft.touched_at = self.clock()
        with self._lock:
            self._drafts[draft.draft_id] = draft
        logger.info(f"Opened draft {draft.draft_id} (listing: {draft.listing_id or 'new'})")
        return draft

    def open_new(self, owner_uid: str, contact_email: str = "") -> ListingDraft:
        """Start a draft for a new listing."""
        return self._register(ListingDraft(
            draft_id=uuid.uuid4().hex,
            owner_uid=owner_uid,
            images=ImageStagingBuffer(self.previews),
            form=ListingForm(contact_email=contact_email or ""),
        ))

    def open_edit(self, owner_uid: str, listing: Listing) -> ListingDraft:
        """
        Start a draft editing ``listing``.

        Raises:
            PermissionDeniedError: If ``owner_uid`` does not own the listing
        """
        if not listing.is_owned_by(owner_uid):
            raise PermissionDeniedError(f"Only the owner can edit listing {listing.id}")
        return self._register(ListingDraft(
            draft_id=uuid.uuid4().hex,
            owner_uid=owner_uid,
            images=ImageStagingBuffer.hydrate(self.previews, listing.photos),
            form=ListingForm.from_listing(listing),
            snapshot=listing,
        ))

    def get(self, draft_id: str, owner_uid: Optional[str]) -> ListingDraft:
        """
        Fetch an open draft of ``owner_uid``.

        Raises:
            NotFoundError: If the draft does not exist or expired
            PermissionDeniedError: If the draft belongs to someone else
        """
        self.expire_stale()
        with self._lock:
            draft = self._drafts.get(draft_id)
        if draft is None:
            raise NotFoundError("Draft", draft_id)
        if draft.owner_uid != owner_uid:
            raise PermissionDeniedError(f"Draft {draft_id} belongs to another user")
        draft.touched_at = self.clock()
        return draft

    def close(self, draft_id: str) -> bool:
        """
        Close a draft and release its previews.

        Safe to call more than once and while a submission is in flight.
        """
        with self._lock:
            draft = self._drafts.pop(draft_id, None)
        if draft is None:
            return False
        released = draft.images.dispose()
        logger.info(f"Closed draft {draft_id}, released {released} preview(s)")
        return True

    def expire_stale(self) -> int:
        """Close drafts idle for longer than the TTL."""
        cutoff = self.clock() - self.ttl_seconds
        with self._lock:
            stale = [d for d, draft in self._drafts.items() if draft.touched_at < cutoff]
        for draft_id in stale:
            self.close(draft_id)
        return len(stale)

    def close_all(self):
        with self._lock:
            draft_ids = list(self._drafts)
        for draft_id in draft_ids:
            self.close(draft_id)
