"""
Realtime sync adapter over Firestore snapshot listeners.

Every change delivers the full materialized value (a document dict, ``None``
for a missing document, or the whole ordered list of a query). Each value
replaces whatever the consumer held before; nothing is merged.
"""
import logging
import threading
from typing import Callable, Iterable, Optional

from google.cloud import firestore

from ..config import LISTINGS_COLLECTION, USERS_COLLECTION, DEFAULT_OWNER_NAME
from ..exceptions import ServiceUnavailableError
from ..models.listing import Listing
from .. import gcp_clients

logger = logging.getLogger(__name__)

STATE_LOADING = "loading"
STATE_READY = "ready"
STATE_NOT_FOUND = "not_found"


def _snapshot_to_dict(snapshot) -> dict:
    data = snapshot.to_dict() or {}
    data["id"] = snapshot.id
    return data


def _document_value(snapshots) -> Optional[dict]:
    if not snapshots:
        return None
    snapshot = snapshots[0]
    if not getattr(snapshot, "exists", True):
        return None
    return _snapshot_to_dict(snapshot)


class Subscription:
    """
    Handle of one snapshot listener.

    ``unsubscribe`` is idempotent; once it returns no further callback runs.
    """

    def __init__(self, description: str):
        self.description = description
        self._watch = None
        self._active = True
        self._lock = threading.RLock()

    @property
    def active(self) -> bool:
        return self._active

    def _attach(self, watch):
        with self._lock:
            self._watch = watch
        if not self._active:
            self._close_watch(watch)

    def _deliver(self, callback: Callable, value):
        with self._lock:
            if not self._active:
                return
            try:
                callback(value)
            except Exception as e:
                logger.exception(f"Snapshot callback for {self.description} failed: {e}")

    def unsubscribe(self):
        with self._lock:
            if not self._active:
                return
            self._active = False
            watch = self._watch
        if watch is not None:
            self._close_watch(watch)
        logger.debug(f"Unsubscribed from {self.description}")

    def _close_watch(self, watch):
        try:
            watch.unsubscribe()
        except Exception as e:
            # The listener may already be closed by the client
            logger.debug(f"Listener for {self.description} already closed: {e}")


def subscribe_document(doc_ref, on_change: Callable[[Optional[dict]], None]) -> Subscription:
    """
    Listen to one document.

    Args:
        doc_ref: Firestore DocumentReference
        on_change: Receives the document as a dict with ``id``, or None when
                   the document does not exist

    Returns:
        Subscription: Handle to stop delivery
    """
    subscription = Subscription(f"document {doc_ref.path}")

    def callback(snapshots, changes, read_time):
        subscription._deliver(on_change, _document_value(snapshots))

    subscription._attach(doc_ref.on_snapshot(callback))
    return subscription


def subscribe_query(query, on_change: Callable[[list], None], description: str = "query") -> Subscription:
    """
    Listen to a collection or query.

    Args:
        query: Firestore CollectionReference or Query
        on_change: Receives the full ordered list of document dicts (possibly empty)
        description: Label used in log messages

    Returns:
        Subscription: Handle to stop delivery
    """
    subscription = Subscription(description)

    def callback(snapshots, changes, read_time):
        subscription._deliver(on_change, [_snapshot_to_dict(s) for s in snapshots or []])

    subscription._attach(query.on_snapshot(callback))
    return subscription


def subscribe(source, on_change: Callable) -> Subscription:
    """Listen to a document reference or a query, whichever ``source`` is."""
    if isinstance(source, firestore.DocumentReference):
        return subscribe_document(source, on_change)
    return subscribe_query(source, on_change)


class LiveDocument:
    """Latest snapshot of one document, with an explicit loading state."""

    def __init__(self, doc_ref, transform: Optional[Callable[[dict], object]] = None):
        self.doc_ref = doc_ref
        self.transform = transform
        self.state = STATE_LOADING
        self.value = None
        self._subscription = None
        self._loaded = threading.Event()

    def start(self) -> 'LiveDocument':
        self._subscription = subscribe_document(self.doc_ref, self._on_change)
        return self

    def stop(self):
        if self._subscription is not None:
            self._subscription.unsubscribe()

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Wait for the first snapshot; False if still loading after ``timeout``."""
        return self._loaded.wait(timeout)

    def _on_change(self, data: Optional[dict]):
        if data is None:
            self.value = None
            self.state = STATE_NOT_FOUND
        else:
            self.value = self.transform(data) if self.transform else data
            self.state = STATE_READY
        self._loaded.set()


class LiveCollection:
    """Latest snapshot of a query; an empty ready list is distinct from loading."""

    def __init__(self, query, transform: Optional[Callable[[dict], object]] = None,
                 description: str = "query"):
        self.query = query
        self.transform = transform
        self.description = description
        self.state = STATE_LOADING
        self._items = []
        self._lock = threading.Lock()
        self._subscription = None
        self._listeners = []

    def start(self):
        self._subscription = subscribe_query(self.query, self._on_change, self.description)
        return self

    def stop(self):
        if self._subscription is not None:
            self._subscription.unsubscribe()

    @property
    def items(self) -> list:
        with self._lock:
            return list(self._items)

    @property
    def is_loading(self) -> bool:
        return self.state == STATE_LOADING

    @property
    def is_empty(self) -> bool:
        return self.state == STATE_READY and not self._items

    def add_listener(self, listener: Callable[[list], None]):
        self._listeners.append(listener)

    def _on_change(self, rows: list):
        items = [self.transform(row) for row in rows] if self.transform else list(rows)
        with self._lock:
            self._items = items
            self.state = STATE_READY
        for listener in self._listeners:
            listener(items)


class OwnerNameResolver:
    """
    Lazily resolves owner display names for listings that lack one.

    Keeps one user-document subscription per distinct missing owner id.
    Ids that leave the tracked set have their subscription torn down.
    """

    def __init__(self, firestore_client=None):
        self.firestore = firestore_client or gcp_clients.firestore_client
        self._lock = threading.Lock()
        self._subscriptions = {}
        self._names = {}

    @property
    def names(self) -> dict:
        with self._lock:
            return dict(self._names)

    @property
    def tracked(self) -> set:
        with self._lock:
            return set(self._subscriptions)

    def track(self, uids: Iterable[str]):
        """Replace the set of owner ids whose names should be resolved."""
        wanted = {uid for uid in uids if uid}
        with self._lock:
            stale = {uid: sub for uid, sub in self._subscriptions.items() if uid not in wanted}
            for uid in stale:
                del self._subscriptions[uid]
                self._names.pop(uid, None)
            missing = wanted - set(self._subscriptions)

        for sub in stale.values():
            sub.unsubscribe()

        if missing and not self.firestore:
            raise ServiceUnavailableError("Firestore")

        for uid in sorted(missing):
            doc_ref = self.firestore.collection(USERS_COLLECTION).document(uid)
            sub = subscribe_document(doc_ref, self._name_callback(uid))
            with self._lock:
                self._subscriptions[uid] = sub

    def _name_callback(self, uid: str):
        def on_change(data: Optional[dict]):
            name = (data or {}).get("display_name") or DEFAULT_OWNER_NAME
            with self._lock:
                self._names[uid] = name
        return on_change

    def name_for(self, listing: Listing) -> Optional[str]:
        if listing.owner_name:
            return listing.owner_name
        with self._lock:
            return self._names.get(listing.owner_uid)

    def close(self):
        self.track(())


def listing_from_row(row: dict) -> Listing:
    return Listing.from_firestore_doc(row["id"], row)


class ListingFeed(LiveCollection):
    """
    Process-wide live view of all listings, newest first.

    Owner names missing from listings are backfilled through an
    OwnerNameResolver whenever a new snapshot arrives.
    """

    def __init__(self, firestore_client=None, resolver: Optional[OwnerNameResolver] = None):
        self.firestore = firestore_client or gcp_clients.firestore_client
        if not self.firestore:
            raise ServiceUnavailableError("Firestore")
        query = self.firestore.collection(LISTINGS_COLLECTION).order_by(
            "created_at", direction=firestore.Query.DESCENDING
        )
        super().__init__(query, transform=listing_from_row, description="listings feed")
        self.resolver = resolver or OwnerNameResolver(self.firestore)
        self.add_listener(self._backfill_owner_names)

    def _backfill_owner_names(self, listings: list):
        self.resolver.track(x.owner_uid for x in listings if not x.owner_name and x.owner_uid)

    def listings(self) -> list[Listing]:
        """Current listings with owner names filled in where resolved."""
        return [x.with_owner_name(self.resolver.name_for(x)) for x in self.items]

    def get(self, listing_id: str) -> Optional[Listing]:
        for listing in self.items:
            if listing.id == listing_id:
                return listing.with_owner_name(self.resolver.name_for(listing))
        return None

    def stop(self):
        super().stop()
        self.resolver.close()
