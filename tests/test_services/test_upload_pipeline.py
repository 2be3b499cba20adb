"""
Tests for the concurrent upload pipeline.
"""
import threading
import pytest
from unittest.mock import MagicMock
from adoption_app.exceptions import (
    StorageError, UploadError, ServiceUnavailableError, StorageCleanupError,
)
from adoption_app.services.upload_pipeline import MonotonicMillis, UploadPipeline
from adoption_app.utils.image_staging import KIND_NEW, PendingUpload, StagedImage

BASE = "https://storage.googleapis.com/b/"


def new_entry(name):
    upload = PendingUpload(filename=name, content_type="image/jpeg", data=b"data")
    return StagedImage(kind=KIND_NEW, src=f"preview-{name}", upload=upload)


class FakeStorage:
    """Storage stand-in whose first upload only finishes after the last one."""

    def __init__(self, fail_on=None, last_name="c.jpg"):
        self.fail_on = fail_on
        self.last_name = last_name
        self.last_done = threading.Event()
        self.completed = []
        self.deleted = []
        self._lock = threading.Lock()

    def upload_bytes(self, path, data, content_type, progress=None):
        if path.endswith("_0_a.jpg"):
            self.last_done.wait(timeout=5)
        if self.fail_on and path.endswith(self.fail_on):
            raise StorageError(f"Failed to upload image: {self.fail_on}")
        with self._lock:
            self.completed.append(path)
        if path.endswith(self.last_name):
            self.last_done.set()
        return BASE + path

    def delete_image(self, url):
        with self._lock:
            self.deleted.append(url)
        return True


def counter():
    values = iter(range(1000, 2000))
    return lambda: next(values)


class TestMonotonicMillis:
    """Tests for collision-free timestamps."""

    def test_strictly_increasing_for_same_clock(self):
        """Test repeated reads in the same millisecond never collide."""
        stamps = MonotonicMillis(clock=lambda: 1.0)
        assert [stamps(), stamps(), stamps()] == [1000, 1001, 1002]

    def test_follows_clock(self):
        """Test timestamps track the wall clock when it moves ahead."""
        now = [1.0]
        stamps = MonotonicMillis(clock=lambda: now[0])
        assert stamps() == 1000
        now[0] = 5.0
        assert stamps() == 5000


class TestUploadAll:
    """Tests for UploadPipeline.upload_all."""

    def test_order_follows_positions_not_completion(self):
        """Test the cover stays first even when it finishes last."""
        storage = FakeStorage()
        pipeline = UploadPipeline(storage, max_workers=5, timestamps=counter())
        entries = [new_entry("a.jpg"), StagedImage.existing(BASE + "old.jpg"),
                   new_entry("b.jpg"), new_entry("c.jpg")]

        refs = pipeline.upload_all(entries, "listings/l1")

        assert refs == [
            BASE + "listings/l1/1000_0_a.jpg",
            BASE + "old.jpg",
            BASE + "listings/l1/1001_2_b.jpg",
            BASE + "listings/l1/1002_3_c.jpg",
        ]
        assert storage.completed[-1].endswith("_0_a.jpg")

    def test_existing_only_skips_uploads(self):
        """Test a list of existing entries passes through untouched."""
        storage = MagicMock()
        pipeline = UploadPipeline(storage)
        refs = pipeline.upload_all([StagedImage.existing("u1"), StagedImage.existing("u2")], "listings/l")
        assert refs == ["u1", "u2"]
        storage.upload_bytes.assert_not_called()

    def test_empty(self):
        """Test an empty staged list."""
        assert UploadPipeline(MagicMock()).upload_all([], "listings/l") == []

    def test_failure_raises_and_cleans_up(self):
        """Test one failed upload fails the batch and deletes what it uploaded."""
        storage = FakeStorage(fail_on="b.jpg")
        pipeline = UploadPipeline(storage, max_workers=5, timestamps=counter())
        entries = [new_entry("a.jpg"), new_entry("b.jpg"), new_entry("c.jpg")]

        with pytest.raises(UploadError) as exc_info:
            pipeline.upload_all(entries, "listings/l1")

        assert isinstance(exc_info.value.__cause__, StorageError)
        assert sorted(storage.deleted) == [
            BASE + "listings/l1/1000_0_a.jpg",
            BASE + "listings/l1/1002_2_c.jpg",
        ]

    def test_service_unavailable_propagates(self):
        """Test a missing storage client is reported as such."""
        storage = MagicMock()
        storage.upload_bytes.side_effect = ServiceUnavailableError("Storage")
        pipeline = UploadPipeline(storage)
        with pytest.raises(ServiceUnavailableError):
            pipeline.upload_all([new_entry("a.jpg")], "listings/l1")


class TestDeleteReferences:
    """Tests for best-effort deletes."""

    def test_collects_failures(self):
        """Test individual failures are reported, not raised."""
        def delete_image(ref):
            if ref == "r3":
                raise Exception("boom")
            return ref == "r1"

        storage = MagicMock()
        storage.delete_image.side_effect = delete_image
        pipeline = UploadPipeline(storage)

        report = pipeline.delete_references(["r1", "r2", "r1", "r3", ""])

        assert report.deleted == ["r1"]
        assert not report.ok
        assert [f.reference for f in report.failures] == ["r2", "r3"]
        assert all(isinstance(f, StorageCleanupError) for f in report.failures)
        assert storage.delete_image.call_count == 3

    def test_delete_orphans(self):
        """Test only references dropped from the new list are deleted."""
        storage = MagicMock()
        storage.delete_image.return_value = True
        pipeline = UploadPipeline(storage)

        report = pipeline.delete_orphans(["u1", "u2", "u3"], ["u3", "u1", "u4"])

        storage.delete_image.assert_called_once_with("u2")
        assert report.deleted == ["u2"]
        assert report.ok

    def test_no_orphans(self):
        """Test nothing is deleted when every reference is kept."""
        storage = MagicMock()
        report = UploadPipeline(storage).delete_orphans(["u1"], ["u1"])
        storage.delete_image.assert_not_called()
        assert report.ok
