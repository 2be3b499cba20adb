"""
Staging of listing images inside an editing session.

A staged list mixes images already stored for a listing ("existing", held by
their public URL) with freshly selected files ("new", held by a preview
handle plus the bytes waiting to be uploaded). Position 0 is the cover.

The module-level functions are pure: they return a new list and leave the
input untouched. ``ImageStagingBuffer`` owns one such list for a session and
guarantees every preview handle it created is released exactly once.
"""
import logging
import threading
import uuid
from dataclasses import dataclass
from typing import Iterable, Optional

from ..config import MAX_LISTING_IMAGES, MAX_IMAGE_SIZE_MB
from ..exceptions import ValidationError
from .validators import validate_image

logger = logging.getLogger(__name__)

KIND_EXISTING = "existing"
KIND_NEW = "new"


@dataclass(frozen=True)
class PendingUpload:
    """A selected file waiting to be uploaded."""
    filename: str
    content_type: str
    data: bytes

    @property
    def size(self) -> int:
        return len(self.data)

    @classmethod
    def from_file_storage(cls, file_storage) -> 'PendingUpload':
        """Read an uploaded werkzeug FileStorage into memory."""
        data = file_storage.read()
        return cls(
            filename=file_storage.filename or "",
            content_type=file_storage.mimetype or file_storage.content_type or "",
            data=data,
        )


@dataclass(frozen=True)
class StagedImage:
    """One entry of a staged image list."""
    kind: str
    src: str
    upload: Optional[PendingUpload] = None

    @classmethod
    def existing(cls, url: str) -> 'StagedImage':
        return cls(kind=KIND_EXISTING, src=url)

    @property
    def is_new(self) -> bool:
        return self.kind == KIND_NEW

    def to_dict(self) -> dict:
        entry = {"kind": self.kind, "src": self.src}
        if self.upload is not None:
            entry["filename"] = self.upload.filename
            entry["size"] = self.upload.size
        return entry


class PreviewStore:
    """Thread-safe in-memory store of preview bytes keyed by opaque handles."""

    def __init__(self):
        self._lock = threading.Lock()
        self._previews = {}

    def create(self, data: bytes, content_type: str) -> str:
        handle = uuid.uuid4().hex
        with self._lock:
            self._previews[handle] = (data, content_type)
        return handle

    def get(self, handle: str) -> Optional[tuple]:
        with self._lock:
            return self._previews.get(handle)

    def release(self, handle: str) -> bool:
        """Release a handle. Returns False if it was not live."""
        with self._lock:
            return self._previews.pop(handle, None) is not None

    def __contains__(self, handle) -> bool:
        with self._lock:
            return handle in self._previews

    def __len__(self) -> int:
        with self._lock:
            return len(self._previews)


def dedupe_selection(files: Iterable[PendingUpload]) -> list[PendingUpload]:
    """Drop repeated picks of the same file (same name and size) from one selection."""
    seen = set()
    unique = []
    for f in files:
        key = (f.filename, f.size)
        if key not in seen:
            seen.add(key)
            unique.append(f)
    return unique


def add_files(entries: list, files: Iterable[PendingUpload], previews: PreviewStore,
              max_count: int = MAX_LISTING_IMAGES,
              max_size_mb: int = MAX_IMAGE_SIZE_MB) -> tuple[list, Optional[ValidationError]]:
    """
    Append selected files as new entries.

    The whole selection is rejected if any file is not an image or is too
    large. Otherwise files are appended until ``max_count`` is reached and
    the rest are dropped.

    Args:
        entries: Current staged list
        files: Newly selected files
        previews: Store that hands out preview handles
        max_count: Maximum number of staged images
        max_size_mb: Per-file size cap in megabytes

    Returns:
        tuple: (next list, error or None)
    """
    picked = dedupe_selection(files)

    for f in picked:
        try:
            validate_image(f.content_type, f.size, max_size_mb)
        except ValidationError as e:
            return list(entries), e

    remaining = max(0, max_count - len(entries))
    to_add = picked[:remaining]
    if not to_add:
        return list(entries), None

    if len(picked) > remaining:
        logger.info(f"Dropping {len(picked) - remaining} image(s) over the limit of {max_count}")

    added = [
        StagedImage(kind=KIND_NEW, src=previews.create(f.data, f.content_type), upload=f)
        for f in to_add
    ]
    return list(entries) + added, None


def remove_at(entries: list, index: int, previews: PreviewStore) -> list:
    """Remove the entry at ``index``, releasing its preview if it was new."""
    if not 0 <= index < len(entries):
        raise IndexError(f"No staged image at position {index}")

    result = list(entries)
    removed = result.pop(index)
    if removed.is_new:
        previews.release(removed.src)
    return result


def reorder(entries: list, from_index: int, to_index: int) -> list:
    """Move one entry, keeping the relative order of all others."""
    if from_index == to_index:
        return list(entries)
    for i in (from_index, to_index):
        if not 0 <= i < len(entries):
            raise IndexError(f"No staged image at position {i}")

    result = list(entries)
    moved = result.pop(from_index)
    result.insert(to_index, moved)
    return result


def promote_to_cover(entries: list, index: int) -> list:
    return reorder(entries, index, 0)


class ImageStagingBuffer:
    """
    The staged image list of one editing session.

    Every mutation replaces the list. ``dispose`` releases the preview of every
    remaining new entry; after disposal the buffer rejects changes.
    """

    def __init__(self, previews: PreviewStore, entries: Optional[list] = None,
                 max_count: int = MAX_LISTING_IMAGES, max_size_mb: int = MAX_IMAGE_SIZE_MB):
        self.previews = previews
        self.max_count = max_count
        self.max_size_mb = max_size_mb
        self._entries = list(entries or [])
        self._lock = threading.RLock()
        self._disposed = False

    @classmethod
    def hydrate(cls, previews: PreviewStore, photo_urls: Iterable[str], **kwargs) -> 'ImageStagingBuffer':
        """Start from the photos already stored on a listing."""
        return cls(previews, [StagedImage.existing(u) for u in photo_urls if u], **kwargs)

    @property
    def entries(self) -> list:
        with self._lock:
            return list(self._entries)

    @property
    def disposed(self) -> bool:
        return self._disposed

    @property
    def can_add_more(self) -> bool:
        return len(self._entries) < self.max_count

    def __len__(self) -> int:
        return len(self._entries)

    def _check_open(self):
        if self._disposed:
            raise RuntimeError("Image staging buffer has been disposed")

    def add(self, files: Iterable[PendingUpload]):
        """
        Stage selected files.

        Raises:
            ValidationError: If the selection was rejected (nothing is staged)
        """
        with self._lock:
            self._check_open()
            entries, error = add_files(self._entries, files, self.previews,
                                       self.max_count, self.max_size_mb)
            if error is not None:
                raise error
            self._entries = entries

    def remove(self, index: int):
        with self._lock:
            self._check_open()
            self._entries = remove_at(self._entries, index, self.previews)

    def reorder(self, from_index: int, to_index: int):
        with self._lock:
            self._check_open()
            self._entries = reorder(self._entries, from_index, to_index)

    def move_left(self, index: int):
        if index > 0:
            self.reorder(index, index - 1)

    def move_right(self, index: int):
        if index < len(self._entries) - 1:
            self.reorder(index, index + 1)

    def promote_to_cover(self, index: int):
        with self._lock:
            self._check_open()
            self._entries = promote_to_cover(self._entries, index)

    def dispose(self) -> int:
        """
        Release every outstanding preview handle.

        Returns:
            int: Number of handles released by this call (0 when already disposed)
        """
        with self._lock:
            if self._disposed:
                return 0
            self._disposed = True
            released = 0
            for entry in self._entries:
                if entry.is_new and self.previews.release(entry.src):
                    released += 1
            logger.debug(f"Disposed staging buffer, released {released} preview(s)")
            return released

    def to_list(self) -> list:
        return [entry.to_dict() for entry in self.entries]
