"""
Upload pipeline turning a staged image list into stored image references.
"""
import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Callable, Iterable, Optional

from ..config import UPLOAD_WORKERS
from ..exceptions import UploadError, StorageCleanupError, ServiceUnavailableError
from ..utils.image_staging import StagedImage
from ..utils.url_helpers import object_path
from .storage_service import StorageService

logger = logging.getLogger(__name__)


class MonotonicMillis:
    """Millisecond wall-clock timestamps that never repeat or go backwards."""

    def __init__(self, clock: Callable[[], float] = time.time):
        self._clock = clock
        self._last = 0
        self._lock = threading.Lock()

    def __call__(self) -> int:
        with self._lock:
            now = int(self._clock() * 1000)
            self._last = max(now, self._last + 1)
            return self._last


@dataclass
class CleanupReport:
    """Outcome of a best-effort delete batch."""
    deleted: list = field(default_factory=list)
    failures: list = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failures


class UploadPipeline:
    """Uploads staged images concurrently and removes orphaned ones."""

    def __init__(self, storage_service: Optional[StorageService] = None,
                 max_workers: int = UPLOAD_WORKERS, timestamps: Optional[Callable[[], int]] = None):
        self.storage = storage_service or StorageService()
        self.max_workers = max_workers
        self.timestamps = timestamps or MonotonicMillis()

    def upload_all(self, entries: Iterable[StagedImage], namespace: str) -> list[str]:
        """
        Produce stored references for a finalized staged list.

        Existing entries pass through; new entries are uploaded concurrently.
        The result follows staged positions, not completion order.

        Args:
            entries: Finalized staged list (position 0 is the cover)
            namespace: Object path prefix, e.g. ``listings/<id>``

        Returns:
            list: One reference per entry, in staged order

        Raises:
            UploadError: If any upload fails; objects uploaded by the failed
                         batch are deleted best-effort
        """
        entries = list(entries)
        references = [None] * len(entries)
        pending = {}

        for index, entry in enumerate(entries):
            if entry.is_new:
                path = object_path(namespace, self.timestamps(), entry.upload.filename, index)
                pending[index] = path
            else:
                references[index] = entry.src

        if not pending:
            return references

        logger.info(f"Uploading {len(pending)} image(s) to {namespace}")
        with ThreadPoolExecutor(max_workers=min(self.max_workers, len(pending))) as executor:
            futures = {
                index: executor.submit(
                    self.storage.upload_bytes, path, entries[index].upload.data,
                    entries[index].upload.content_type,
                )
                for index, path in pending.items()
            }

        failures = []
        for index, future in futures.items():
            error = future.exception()
            if error is None:
                references[index] = future.result()
            else:
                failures.append((index, error))

        if failures:
            uploaded = [references[i] for i in pending if references[i] is not None]
            if uploaded:
                self.delete_references(uploaded)
            index, error = failures[0]
            logger.error(f"Upload of image {index} to {namespace} failed: {error}")
            if isinstance(error, ServiceUnavailableError):
                raise error
            raise UploadError(f"Failed to upload {len(failures)} image(s)") from error

        return references

    def delete_references(self, references: Iterable[str]) -> CleanupReport:
        """
        Delete stored images concurrently, tolerating individual failures.

        Failures are logged and collected as StorageCleanupError values; this
        method never raises for a failed delete.
        """
        references = list(dict.fromkeys(r for r in references if r))
        report = CleanupReport()
        if not references:
            return report

        with ThreadPoolExecutor(max_workers=min(self.max_workers, len(references))) as executor:
            futures = [(ref, executor.submit(self.storage.delete_image, ref)) for ref in references]

        for ref, future in futures:
            error = future.exception()
            if error is None and future.result():
                report.deleted.append(ref)
                continue
            failure = StorageCleanupError(ref, str(error) if error else "delete returned False")
            logger.warning(f"Storage cleanup failed: {failure}")
            report.failures.append(failure)

        return report

    def delete_orphans(self, previous: Iterable[str], current: Iterable[str]) -> CleanupReport:
        """
        Delete previously stored references missing from the current list.

        Must only be called after the record holding ``current`` was written.
        """
        current = set(current)
        orphans = [ref for ref in previous if ref and ref not in current]
        if orphans:
            logger.info(f"Deleting {len(orphans)} orphaned image(s)")
        return self.delete_references(orphans)
