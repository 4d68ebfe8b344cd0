"""
KV Pages - Page Store Tests

Tests for kvpages/store.py. Validates:
- put/get for text, markup and file uploads
- Idempotent delete
- Rename semantics, including the missing-source and partial-failure cases
- Listing
"""

import pytest

from kvpages.backends import MemoryBackend
from kvpages.content import FileContent, MarkupContent, TextContent
from kvpages.errors import PageNotFound, StorageError
from kvpages.store import PageStore, Upload
from tests.conftest import SAMPLE_PDF, SAMPLE_PNG, run

# ===========================================================================
# put / get
# ===========================================================================


class TestPutGet:
    def test_text_stored_verbatim(self, store, backend):
        value = "hello\n<b>world</b> & more"
        result = run(store.put("notes", value))
        assert result == TextContent(value)
        assert run(backend.get("notes")) == value

    def test_text_read_back(self, store):
        run(store.put("notes", "a < b\nc"))
        page = run(store.get("notes"))
        assert page.key == "notes"
        assert page.raw == "a < b\nc"
        assert page.content == TextContent("a < b\nc")

    def test_markup_read_back(self, store):
        run(store.put("frag", "<div>hi</div>"))
        assert run(store.get("frag")).content == MarkupContent("<div>hi</div>")

    def test_missing_key_raises(self, store):
        with pytest.raises(PageNotFound):
            run(store.get("nope"))

    def test_empty_string_counts_as_missing(self, store, backend):
        run(store.put("blank", ""))
        assert run(backend.get("blank")) == ""
        with pytest.raises(PageNotFound):
            run(store.get("blank"))

    def test_overwrite(self, store):
        run(store.put("k", "one"))
        run(store.put("k", "two"))
        assert run(store.get("k")).raw == "two"

    def test_image_upload_round_trip(self, store):
        run(store.put("pic", "ignored", Upload("pic.png", "image/png", SAMPLE_PNG)))
        content = run(store.get("pic")).content
        assert isinstance(content, FileContent)
        assert content.record.is_image
        assert content.record.content.startswith("data:image/png;base64,")
        assert content.record.payload == SAMPLE_PNG

    def test_pdf_upload_round_trip(self, store):
        run(store.put("doc", "", Upload("report.pdf", "application/pdf", SAMPLE_PDF)))
        record = run(store.get("doc")).content.record
        assert record.file_name == "report.pdf"
        assert record.mime_type == "application/pdf"
        assert record.payload == SAMPLE_PDF

    def test_empty_upload_falls_back_to_text(self, store):
        result = run(store.put("k", "text body", Upload("empty.txt", "text/plain", b"")))
        assert result == TextContent("text body")

    def test_upload_replaces_text(self, store):
        run(store.put("k", "old text"))
        run(store.put("k", "", Upload("a.pdf", "application/pdf", SAMPLE_PDF)))
        assert isinstance(run(store.get("k")).content, FileContent)


# ===========================================================================
# delete
# ===========================================================================


class TestDelete:
    def test_delete_existing(self, store):
        run(store.put("k", "v"))
        run(store.delete("k"))
        with pytest.raises(PageNotFound):
            run(store.get("k"))

    def test_delete_missing_is_noop(self, store):
        run(store.delete("never-existed"))
        with pytest.raises(PageNotFound):
            run(store.get("never-existed"))


# ===========================================================================
# rename
# ===========================================================================


class _FailingDeleteBackend(MemoryBackend):
    async def delete(self, key: str) -> None:
        raise StorageError("delete unavailable")


class TestRename:
    def test_moves_value(self, store):
        run(store.put("old", "value"))
        run(store.rename("old", "new"))
        assert run(store.get("new")).raw == "value"
        with pytest.raises(PageNotFound):
            run(store.get("old"))

    def test_moves_file_envelope_unchanged(self, store, backend):
        run(store.put("old", "", Upload("a.pdf", "application/pdf", SAMPLE_PDF)))
        raw = run(backend.get("old"))
        run(store.rename("old", "new"))
        assert run(backend.get("new")) == raw

    def test_missing_source_raises_without_writing(self, store, backend):
        with pytest.raises(PageNotFound):
            run(store.rename("ghost", "target"))
        assert run(backend.list_keys()) == []

    def test_empty_source_raises_without_writing(self, store, backend):
        run(backend.put("blank", ""))
        with pytest.raises(PageNotFound):
            run(store.rename("blank", "target"))
        assert run(backend.get("target")) is None

    def test_overwrites_existing_target(self, store):
        run(store.put("a", "from a"))
        run(store.put("b", "from b"))
        run(store.rename("a", "b"))
        assert run(store.get("b")).raw == "from a"

    def test_rename_onto_itself_keeps_value(self, store):
        run(store.put("same", "v"))
        run(store.rename("same", "same"))
        assert run(store.get("same")).raw == "v"

    def test_partial_failure_leaves_duplicate(self):
        """Write succeeded, delete failed: both keys hold the value."""
        backend = _FailingDeleteBackend({"old": "value"})
        store = PageStore(backend)
        with pytest.raises(StorageError):
            run(store.rename("old", "new"))
        assert run(backend.get("old")) == "value"
        assert run(backend.get("new")) == "value"


# ===========================================================================
# list
# ===========================================================================


class TestList:
    def test_empty(self, store):
        assert run(store.list()) == []

    def test_lists_all_keys(self, store):
        for key in ("b", "a", "c"):
            run(store.put(key, key))
        assert sorted(run(store.list())) == ["a", "b", "c"]
