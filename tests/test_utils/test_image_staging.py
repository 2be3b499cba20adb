"""
Tests for the image staging buffer.
"""
import pytest
from unittest.mock import MagicMock
from adoption_app.exceptions import ValidationError
from adoption_app.utils.image_staging import (
    KIND_EXISTING, KIND_NEW, PendingUpload, StagedImage, PreviewStore, ImageStagingBuffer,
    dedupe_selection, add_files, remove_at, reorder, promote_to_cover,
)

MB = 1024 * 1024


def jpeg(name, size=10):
    return PendingUpload(filename=name, content_type="image/jpeg", data=b"x" * size)


@pytest.fixture
def previews():
    return PreviewStore()


class TestPendingUpload:
    """Tests for PendingUpload."""

    def test_from_file_storage(self):
        """Test reading a werkzeug FileStorage."""
        file_storage = MagicMock()
        file_storage.filename = "rex.png"
        file_storage.mimetype = "image/png"
        file_storage.read.return_value = b"abc"

        upload = PendingUpload.from_file_storage(file_storage)
        assert upload.filename == "rex.png"
        assert upload.content_type == "image/png"
        assert upload.size == 3


class TestPreviewStore:
    """Tests for preview handles."""

    def test_create_and_release(self, previews):
        """Test a handle is live until released once."""
        handle = previews.create(b"img", "image/png")
        assert handle in previews
        assert previews.get(handle) == (b"img", "image/png")
        assert previews.release(handle) is True
        assert previews.release(handle) is False
        assert previews.get(handle) is None
        assert len(previews) == 0


class TestStagingFunctions:
    """Tests for the pure staging operations."""

    def test_dedupe_same_name_and_size(self):
        """Test repeated picks in one selection are dropped."""
        files = [jpeg("a.jpg"), jpeg("a.jpg"), jpeg("a.jpg", size=11), jpeg("b.jpg")]
        assert [(f.filename, f.size) for f in dedupe_selection(files)] == [
            ("a.jpg", 10), ("a.jpg", 11), ("b.jpg", 10),
        ]

    def test_add_files_appends_new(self, previews):
        """Test files are appended after existing entries."""
        entries = [StagedImage.existing("https://x/1.jpg")]
        result, error = add_files(entries, [jpeg("a.jpg")], previews)
        assert error is None
        assert [e.kind for e in result] == [KIND_EXISTING, KIND_NEW]
        assert result[1].src in previews
        assert len(entries) == 1

    def test_add_files_caps_at_capacity(self, previews):
        """Test 3 existing plus 4 selected keeps only the first 2 new files."""
        entries = [StagedImage.existing(f"https://x/{i}.jpg") for i in range(3)]
        files = [jpeg(f"{i}.jpg") for i in range(4)]
        result, error = add_files(entries, files, previews, max_count=5)
        assert error is None
        assert len(result) == 5
        assert [e.upload.filename for e in result[3:]] == ["0.jpg", "1.jpg"]
        assert len(previews) == 2

    def test_add_files_when_full_is_noop(self, previews):
        """Test adding to a full list changes nothing and reports no error."""
        entries = [StagedImage.existing(f"https://x/{i}.jpg") for i in range(5)]
        result, error = add_files(entries, [jpeg("a.jpg")], previews, max_count=5)
        assert error is None
        assert result == entries
        assert len(previews) == 0

    def test_add_files_rejects_non_image(self, previews):
        """Test one non-image rejects the whole selection."""
        files = [jpeg("a.jpg"), PendingUpload("doc.pdf", "application/pdf", b"%PDF")]
        result, error = add_files([], files, previews)
        assert result == []
        assert isinstance(error, ValidationError)
        assert error.message == "Only image files are allowed."
        assert len(previews) == 0

    def test_add_files_rejects_oversize(self, previews):
        """Test a file over the cap rejects the selection."""
        result, error = add_files([], [jpeg("big.jpg", size=8 * MB + 1)], previews, max_size_mb=8)
        assert result == []
        assert error.message == "Each image must be < 8 MB."

    def test_remove_at_releases_new_preview(self, previews):
        """Test removing a new entry releases its handle."""
        entries, _ = add_files([StagedImage.existing("https://x/1.jpg")], [jpeg("a.jpg")], previews)
        handle = entries[1].src
        result = remove_at(entries, 1, previews)
        assert [e.src for e in result] == ["https://x/1.jpg"]
        assert handle not in previews

    def test_remove_at_existing_keeps_previews(self, previews):
        """Test removing an existing entry touches no handle."""
        entries, _ = add_files([StagedImage.existing("https://x/1.jpg")], [jpeg("a.jpg")], previews)
        result = remove_at(entries, 0, previews)
        assert len(result) == 1
        assert len(previews) == 1

    def test_remove_at_out_of_range(self, previews):
        """Test removing a missing position."""
        with pytest.raises(IndexError):
            remove_at([], 0, previews)

    def test_reorder(self):
        """Test [A,B,C,D] moving 3 to 1 gives [A,D,B,C]."""
        entries = [StagedImage.existing(x) for x in "ABCD"]
        assert [e.src for e in reorder(entries, 3, 1)] == ["A", "D", "B", "C"]
        assert [e.src for e in entries] == ["A", "B", "C", "D"]

    def test_reorder_same_index(self):
        """Test moving an entry onto itself is a no-op."""
        entries = [StagedImage.existing(x) for x in "AB"]
        assert reorder(entries, 1, 1) == entries

    def test_reorder_out_of_range(self):
        """Test invalid positions."""
        with pytest.raises(IndexError):
            reorder([StagedImage.existing("A")], 0, 3)

    def test_promote_to_cover(self):
        """Test [A,B,C] promoting 2 gives [C,A,B]."""
        entries = [StagedImage.existing(x) for x in "ABC"]
        assert [e.src for e in promote_to_cover(entries, 2)] == ["C", "A", "B"]


class TestImageStagingBuffer:
    """Tests for the session-owned buffer."""

    def test_hydrate(self, previews):
        """Test hydrating from stored photo URLs."""
        buffer = ImageStagingBuffer.hydrate(previews, ["https://x/1.jpg", "", "https://x/2.jpg"])
        assert [e.src for e in buffer.entries] == ["https://x/1.jpg", "https://x/2.jpg"]
        assert buffer.can_add_more

    def test_add_raises_validation_error(self, previews):
        """Test a rejected selection raises and stages nothing."""
        buffer = ImageStagingBuffer(previews)
        with pytest.raises(ValidationError):
            buffer.add([PendingUpload("a.txt", "text/plain", b"hi")])
        assert len(buffer) == 0

    def test_moves(self, previews):
        """Test arrow moves and boundaries."""
        buffer = ImageStagingBuffer(previews, [StagedImage.existing(x) for x in "ABC"])
        buffer.move_left(0)
        buffer.move_right(2)
        assert [e.src for e in buffer.entries] == ["A", "B", "C"]
        buffer.move_right(0)
        assert [e.src for e in buffer.entries] == ["B", "A", "C"]
        buffer.promote_to_cover(2)
        assert [e.src for e in buffer.entries] == ["C", "B", "A"]

    def test_dispose_releases_every_handle_once(self, previews):
        """Test every handle created is released exactly once."""
        buffer = ImageStagingBuffer.hydrate(previews, ["https://x/1.jpg"])
        buffer.add([jpeg("a.jpg"), jpeg("b.jpg"), jpeg("c.jpg")])
        buffer.remove(2)
        assert len(previews) == 2

        assert buffer.dispose() == 2
        assert len(previews) == 0
        assert buffer.dispose() == 0
        assert buffer.disposed

    def test_disposed_buffer_rejects_changes(self, previews):
        """Test mutations after dispose."""
        buffer = ImageStagingBuffer(previews)
        buffer.dispose()
        with pytest.raises(RuntimeError):
            buffer.add([jpeg("a.jpg")])
        with pytest.raises(RuntimeError):
            buffer.reorder(0, 0)

    def test_to_list(self, previews):
        """Test the serialized staged list."""
        buffer = ImageStagingBuffer.hydrate(previews, ["https://x/1.jpg"])
        buffer.add([jpeg("a.jpg", size=4)])
        listed = buffer.to_list()
        assert listed[0] == {"kind": "existing", "src": "https://x/1.jpg"}
        assert listed[1]["kind"] == "new"
        assert listed[1]["filename"] == "a.jpg"
        assert listed[1]["size"] == 4
