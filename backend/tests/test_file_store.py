"""
Notebook Backend: File Store Tests
===================================

What:  Tests for LocalFileStore and RemoteFileStore.
Why:   The file store is the upload security boundary (size, type, path
       traversal) and the compensation path relies on delete() never raising.
How:   Local tests write into tmp_path; remote tests run against an
       httpx.MockTransport standing in for the object store.

What we test:
    ✅ Validation order: empty → size → declared type
    ✅ Stored bytes come back byte-identical
    ✅ Traversal outside the storage root is refused
    ✅ delete() is best effort: missing files, retries, refusals
    ✅ Remote references are public URLs; retrieve redirects
"""

import re
from unittest.mock import AsyncMock

import httpx
import pytest

from notebook.config import Settings
from notebook.exceptions import (
    AccessDeniedError,
    NotFoundError,
    PayloadTooLargeError,
    UnsupportedTypeError,
    ValidationError,
)
from notebook.services.file_store import (
    LocalFileStore,
    RemoteFileStore,
    build_file_store,
    guess_mime_type,
    normalize_mime_type,
    reference_filename,
)


class TestValidation:
    """Shared FileStore.validate() rules."""

    def test_empty_content_rejected(self, file_store):
        with pytest.raises(ValidationError, match="empty"):
            file_store.validate(b"", "application/pdf")

    def test_size_checked_before_type(self, file_store):
        """An oversized file with a bad type reports the size problem."""
        content = b"x" * (file_store.max_file_size + 1)
        with pytest.raises(PayloadTooLargeError):
            file_store.validate(content, "application/zip")

    def test_file_at_size_cap_accepted(self, file_store):
        content = b"x" * file_store.max_file_size
        mime, ext = file_store.validate(content, "application/pdf")
        assert (mime, ext) == ("application/pdf", ".pdf")

    @pytest.mark.parametrize("declared", ["text/plain", "image/gif", "application/zip", None])
    def test_unsupported_types_rejected(self, file_store, declared):
        with pytest.raises(UnsupportedTypeError):
            file_store.validate(b"data", declared)

    def test_jpeg_aliases_normalized(self, file_store):
        assert file_store.validate(b"data", "image/jpg") == ("image/jpeg", ".jpg")
        assert file_store.validate(b"data", "IMAGE/PJPEG") == ("image/jpeg", ".jpg")

    def test_content_type_parameters_ignored(self):
        assert normalize_mime_type("application/pdf; charset=binary") == "application/pdf"


class TestHelpers:
    def test_reference_filename_of_relative_path(self):
        assert reference_filename("2024/01/15/abc.pdf") == "abc.pdf"

    def test_reference_filename_of_url_drops_query(self):
        assert reference_filename("https://cdn.test/notes/abc.png?v=2") == "abc.png"

    def test_guess_mime_type_falls_back_to_octet_stream(self):
        assert guess_mime_type("a/b/file.JPEG") == "image/jpeg"
        assert guess_mime_type("a/b/file.docx") == "application/octet-stream"

    def test_build_file_store_picks_backend(self, test_settings):
        assert isinstance(build_file_store(test_settings), LocalFileStore)
        remote = test_settings.model_copy(
            update={
                "storage_backend": "remote",
                "remote_storage_url": "https://storage.test/api",
                "remote_public_url": "https://cdn.test",
            }
        )
        assert isinstance(build_file_store(remote), RemoteFileStore)


class TestLocalFileStore:
    @pytest.mark.asyncio
    async def test_store_and_fetch_byte_identical(self, file_store, make_pdf):
        content = make_pdf("Thermodynamics lecture 1")
        stored = await file_store.store(content, "application/pdf", "lecture1.pdf")

        assert re.fullmatch(r"\d{4}/\d{2}/\d{2}/[0-9a-f-]{36}\.pdf", stored.reference)
        assert stored.size == len(content)

        fetched = await file_store.fetch(stored.reference)
        assert fetched.content == content
        assert fetched.content_type == "application/pdf"

    @pytest.mark.asyncio
    async def test_store_leaves_no_temp_files(self, file_store, png_bytes):
        stored = await file_store.store(png_bytes, "image/png")
        leftovers = [p for p in file_store.storage_root.rglob("*") if p.name.endswith(".tmp")]
        assert leftovers == []
        assert file_store.resolve(stored.reference).is_file()

    @pytest.mark.asyncio
    async def test_rejected_upload_writes_nothing(self, file_store):
        with pytest.raises(UnsupportedTypeError):
            await file_store.store(b"GIF89a", "image/gif")
        assert [p for p in file_store.storage_root.rglob("*") if p.is_file()] == []

    @pytest.mark.asyncio
    async def test_retrieve_returns_path_and_media_type(self, file_store, png_bytes):
        stored = await file_store.store(png_bytes, "image/png")
        retrieved = await file_store.retrieve(stored.reference)
        assert retrieved.path == file_store.resolve(stored.reference)
        assert retrieved.media_type == "image/png"
        assert retrieved.redirect_url is None

    @pytest.mark.asyncio
    async def test_missing_reference_not_found(self, file_store):
        with pytest.raises(NotFoundError):
            await file_store.retrieve("2024/01/01/missing.pdf")
        with pytest.raises(NotFoundError):
            await file_store.fetch("2024/01/01/missing.pdf")

    @pytest.mark.parametrize("reference", ["../outside.pdf", "2024/../../etc/passwd"])
    def test_traversal_refused(self, file_store, reference):
        with pytest.raises(AccessDeniedError):
            file_store.resolve(reference)

    @pytest.mark.asyncio
    async def test_delete_removes_file(self, file_store, png_bytes):
        stored = await file_store.store(png_bytes, "image/png")
        assert await file_store.delete(stored.reference) is True
        assert not file_store.resolve(stored.reference).exists()

    @pytest.mark.asyncio
    async def test_delete_missing_file_returns_false(self, file_store):
        assert await file_store.delete("2024/01/01/gone.pdf") is False
        assert await file_store.delete("") is False

    @pytest.mark.asyncio
    async def test_delete_outside_root_refused_without_raising(self, file_store):
        assert await file_store.delete("../../etc/passwd") is False

    @pytest.mark.asyncio
    async def test_delete_retries_then_gives_up(self, file_store):
        """Persistent I/O errors are retried, then reported as False."""
        file_store._delete_once = AsyncMock(side_effect=OSError("disk busy"))
        assert await file_store.delete("2024/01/01/stuck.pdf") is False
        assert file_store._delete_once.await_count == file_store.delete_attempts


# ══════════════════════════════════════════════════════════════════════════
# Remote store against a mock object storage API
# ══════════════════════════════════════════════════════════════════════════


class FakeObjectStorage:
    """In-memory stand-in for the object store's PUT/GET/DELETE API."""

    def __init__(self):
        self.objects = {}
        self.requests = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if request.url.host == "storage.test":
            key = request.url.path.removeprefix("/api/")
            if request.method == "PUT":
                self.objects[key] = (request.content, request.headers["content-type"])
                return httpx.Response(200)
            if request.method == "DELETE":
                if self.objects.pop(key, None) is None:
                    return httpx.Response(404)
                return httpx.Response(204)
        if request.url.host == "cdn.test" and request.method == "GET":
            key = request.url.path.lstrip("/")
            if key not in self.objects:
                return httpx.Response(404)
            content, content_type = self.objects[key]
            return httpx.Response(200, content=content, headers={"content-type": content_type})
        return httpx.Response(500)


@pytest.fixture
def storage():
    return FakeObjectStorage()


@pytest.fixture
def remote_store(tmp_path, storage):
    settings = Settings(
        _env_file=None,
        database_url=f"sqlite+aiosqlite:///{tmp_path / 'remote.db'}",
        storage_backend="remote",
        remote_storage_url="https://storage.test/api/",
        remote_public_url="https://cdn.test/",
        remote_storage_token="secret-token",
        remote_storage_folder="notes",
        file_delete_attempts=2,
    )
    return RemoteFileStore(settings, transport=httpx.MockTransport(storage.handler))


class TestRemoteFileStore:
    @pytest.mark.asyncio
    async def test_store_uploads_and_returns_public_url(self, remote_store, storage, make_pdf):
        content = make_pdf("Signals and systems")
        stored = await remote_store.store(content, "application/pdf", "signals.pdf")

        assert re.fullmatch(r"https://cdn\.test/notes/[0-9a-f-]{36}\.pdf", stored.reference)
        put = storage.requests[0]
        assert put.method == "PUT"
        assert put.headers["authorization"] == "Bearer secret-token"
        assert put.headers["content-type"] == "application/pdf"
        assert storage.objects[f"notes/{reference_filename(stored.reference)}"][0] == content

    @pytest.mark.asyncio
    async def test_fetch_returns_bytes(self, remote_store, png_bytes):
        stored = await remote_store.store(png_bytes, "image/png")
        fetched = await remote_store.fetch(stored.reference)
        assert fetched.content == png_bytes
        assert fetched.content_type == "image/png"

    @pytest.mark.asyncio
    async def test_retrieve_redirects_to_public_url(self, remote_store, png_bytes):
        stored = await remote_store.store(png_bytes, "image/png")
        retrieved = await remote_store.retrieve(stored.reference)
        assert retrieved.redirect_url == stored.reference
        assert retrieved.path is None

    @pytest.mark.asyncio
    async def test_fetch_unknown_object_not_found(self, remote_store):
        with pytest.raises(NotFoundError):
            await remote_store.fetch("https://cdn.test/notes/missing.pdf")

    @pytest.mark.asyncio
    async def test_foreign_reference_refused(self, remote_store):
        with pytest.raises(AccessDeniedError):
            await remote_store.retrieve("https://elsewhere.test/notes/a.pdf")
        with pytest.raises(AccessDeniedError):
            await remote_store.fetch("https://cdn.test/notes/../secrets.pdf")

    @pytest.mark.asyncio
    async def test_delete_is_best_effort(self, remote_store, storage, png_bytes):
        stored = await remote_store.store(png_bytes, "image/png")
        assert await remote_store.delete(stored.reference) is True
        assert storage.objects == {}
        assert await remote_store.delete(stored.reference) is False
        assert await remote_store.delete("https://elsewhere.test/x.png") is False

    @pytest.mark.asyncio
    async def test_validation_happens_before_upload(self, remote_store, storage):
        with pytest.raises(UnsupportedTypeError):
            await remote_store.store(b"plain text", "text/plain")
        assert storage.requests == []
