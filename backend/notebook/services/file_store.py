"""
Notebook Backend: File Store
=============================

What:  Persists uploaded note files and hands them back by opaque reference.
Why:   Notes, requests and the summarization pipeline all need the binary, but
       none of them should care whether it lives on local disk or in an
       object store.
How:   FileStore defines the contract and the shared validation; LocalFileStore
       and RemoteFileStore implement it. build_file_store() picks one from
       Settings.storage_backend.
Who:   NoteService and ModerationService (store / compensating delete),
       the download route (retrieve), SummaryService (fetch).

Validation order (cheapest first):
    1. Empty content          → ValidationError
    2. Size cap (10 MiB)      → PayloadTooLargeError
    3. Declared MIME type     → UnsupportedTypeError

    The declared content type is trusted once it is in the allow-list; there
    is no content sniffing.

Local layout:
    uploads/
    └── 2024/
        └── 01/
            └── 15/
                ├── a1b2c3d4-....pdf
                └── e5f6g7h8-....png

    The stored reference is the path relative to the storage root
    ("2024/01/15/<uuid>.pdf").
"""

import logging
import os
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path, PurePosixPath
from typing import Optional, Tuple

import aiofiles
import httpx
from tenacity import (
    AsyncRetrying,
    RetryError,
    retry_if_not_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from notebook.config import Settings
from notebook.exceptions import (
    AccessDeniedError,
    FileStorageError,
    NotFoundError,
    PayloadTooLargeError,
    UnsupportedTypeError,
    ValidationError,
)

logger = logging.getLogger(__name__)

# ── Allowed File Types ────────────────────────────────────────────────────
ALLOWED_MIME_TYPES = {
    "application/pdf": ".pdf",
    "image/png": ".png",
    "image/jpeg": ".jpg",
}

# Non-standard aliases some browsers send
MIME_ALIASES = {"image/jpg": "image/jpeg", "image/pjpeg": "image/jpeg"}

EXTENSION_MIME_TYPES = {
    ".pdf": "application/pdf",
    ".png": "image/png",
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
}


@dataclass(frozen=True)
class StoredFile:
    reference: str
    size: int
    content_type: str


@dataclass(frozen=True)
class RetrievedFile:
    """
    How to serve a stored file: either a local path to stream or a URL to
    redirect the client to. Exactly one of the two is set.
    """

    media_type: str
    path: Optional[Path] = None
    redirect_url: Optional[str] = None


@dataclass(frozen=True)
class FetchedFile:
    content: bytes
    content_type: str


def normalize_mime_type(declared: Optional[str]) -> Optional[str]:
    if not declared:
        return None
    mime = declared.split(";", 1)[0].strip().lower()
    return MIME_ALIASES.get(mime, mime)


def guess_mime_type(reference: str) -> str:
    """Content type implied by a reference's extension."""
    ext = PurePosixPath(reference).suffix.lower()
    return EXTENSION_MIME_TYPES.get(ext, "application/octet-stream")


def reference_filename(reference: str) -> str:
    """Last path segment of a reference, as used by the download route."""
    return PurePosixPath(reference.split("?", 1)[0]).name


class FileStore(ABC):
    """
    Abstract file store.

    Contract:
        - store() validates then persists atomically; nothing is left behind
          when it raises
        - retrieve()/fetch() raise NotFoundError for unknown references
        - delete() never raises; it returns False when the file could not be
          removed
    """

    def __init__(self, settings: Settings):
        self.settings = settings
        self.max_file_size = settings.max_file_size
        self.delete_attempts = settings.file_delete_attempts

    def validate(self, content: bytes, declared_mime_type: Optional[str]) -> Tuple[str, str]:
        """
        Check size and type of an upload.

        Returns:
            (normalized content type, storage extension)
        """
        if not content:
            raise ValidationError(message="Uploaded file is empty", field="file")

        if len(content) > self.max_file_size:
            raise PayloadTooLargeError(max_size=self.max_file_size, actual_size=len(content))

        mime = normalize_mime_type(declared_mime_type)
        if mime not in ALLOWED_MIME_TYPES:
            raise UnsupportedTypeError(
                content_type=declared_mime_type,
                allowed=sorted(ALLOWED_MIME_TYPES),
            )
        return mime, ALLOWED_MIME_TYPES[mime]

    @staticmethod
    def _unique_name(extension: str) -> str:
        return f"{uuid.uuid4()}{extension}"

    @abstractmethod
    async def store(
        self,
        content: bytes,
        declared_mime_type: Optional[str],
        original_name: Optional[str] = None,
    ) -> StoredFile:
        """Validate and persist an upload; returns its opaque reference."""

    @abstractmethod
    async def retrieve(self, reference: str) -> RetrievedFile:
        """Resolve a reference to something the HTTP layer can serve."""

    @abstractmethod
    async def fetch(self, reference: str) -> FetchedFile:
        """Read the raw bytes behind a reference."""

    @abstractmethod
    async def _delete_once(self, reference: str) -> bool:
        """
        Remove the file once. Returns False if there was nothing to remove;
        raises on failures worth retrying.
        """

    async def delete(self, reference: str) -> bool:
        """
        Best-effort removal with a bounded retry.

        Used on compensation paths (failed submissions) and note deletion,
        where a leftover file must never turn into a client-facing error.
        """
        if not reference:
            return False
        try:
            async for attempt in AsyncRetrying(
                stop=stop_after_attempt(self.delete_attempts),
                wait=wait_exponential(multiplier=0.1, max=1),
                retry=retry_if_not_exception_type(AccessDeniedError),
                reraise=False,
            ):
                with attempt:
                    removed = await self._delete_once(reference)
        except RetryError as e:
            logger.warning(
                "Failed to delete file %s after %d attempts: %s",
                reference,
                self.delete_attempts,
                e.last_attempt.exception(),
            )
            return False
        except AccessDeniedError:
            logger.warning("Refusing to delete reference outside the store: %s", reference)
            return False

        if removed:
            logger.info("Deleted file: %s", reference)
        else:
            logger.debug("Delete: file already gone: %s", reference)
        return removed


# ══════════════════════════════════════════════════════════════════════════
# Local disk
# ══════════════════════════════════════════════════════════════════════════


class LocalFileStore(FileStore):
    """Stores files under settings.storage_root in date directories."""

    def __init__(self, settings: Settings, storage_root: Optional[str] = None):
        super().__init__(settings)
        self.storage_root = Path(storage_root or settings.storage_root).resolve()
        self.storage_root.mkdir(parents=True, exist_ok=True)
        logger.info("LocalFileStore initialized with storage_root=%s", self.storage_root)

    def _generate_storage_path(self, extension: str) -> Tuple[Path, str]:
        date_dir = datetime.now(timezone.utc).strftime("%Y/%m/%d")
        relative_path = f"{date_dir}/{self._unique_name(extension)}"
        return self.storage_root / relative_path, relative_path

    def resolve(self, reference: str) -> Path:
        """
        Map a reference to an absolute path inside the storage root.

        Raises:
            AccessDeniedError: the reference escapes the root ("../", absolute paths)
        """
        candidate = (self.storage_root / reference.lstrip("/")).resolve()
        if not candidate.is_relative_to(self.storage_root):
            logger.warning("Path traversal attempt blocked: %s", reference)
            raise AccessDeniedError()
        return candidate

    async def store(
        self,
        content: bytes,
        declared_mime_type: Optional[str],
        original_name: Optional[str] = None,
    ) -> StoredFile:
        mime, ext = self.validate(content, declared_mime_type)
        absolute_path, relative_path = self._generate_storage_path(ext)
        temp_path = absolute_path.with_name(f".{absolute_path.name}.tmp")

        try:
            absolute_path.parent.mkdir(parents=True, exist_ok=True)
            async with aiofiles.open(temp_path, "wb") as f:
                await f.write(content)
            os.replace(temp_path, absolute_path)
        except OSError as e:
            logger.error("Failed to store file at %s: %s", absolute_path, e)
            try:
                temp_path.unlink(missing_ok=True)
            except OSError:
                logger.warning("Could not remove temporary file %s", temp_path)
            raise FileStorageError(
                message="Failed to save uploaded file. Please try again.",
                context={"path": relative_path, "os_error": str(e)},
            )

        logger.info(
            "File stored: %s (%d bytes, %s, original=%s)",
            relative_path,
            len(content),
            mime,
            original_name,
        )
        return StoredFile(reference=relative_path, size=len(content), content_type=mime)

    async def retrieve(self, reference: str) -> RetrievedFile:
        path = self.resolve(reference)
        if not path.is_file():
            raise NotFoundError("file", reference_filename(reference))
        return RetrievedFile(media_type=guess_mime_type(reference), path=path)

    async def fetch(self, reference: str) -> FetchedFile:
        path = self.resolve(reference)
        if not path.is_file():
            raise NotFoundError("file", reference_filename(reference))
        async with aiofiles.open(path, "rb") as f:
            content = await f.read()
        return FetchedFile(content=content, content_type=guess_mime_type(reference))

    async def _delete_once(self, reference: str) -> bool:
        path = self.resolve(reference)
        if not path.exists():
            return False
        os.remove(path)
        return True


# ══════════════════════════════════════════════════════════════════════════
# Remote object storage
# ══════════════════════════════════════════════════════════════════════════


class RemoteFileStore(FileStore):
    """
    Stores files in an HTTP object store.

    Writes go to  {remote_storage_url}/{folder}/{name}  (PUT/DELETE, bearer
    token); reads use the public URL, which is also the stored reference:
    {remote_public_url}/{folder}/{name}.
    """

    def __init__(
        self,
        settings: Settings,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        super().__init__(settings)
        self.api_url = settings.remote_storage_url.rstrip("/")
        self.public_url = settings.remote_public_url.rstrip("/")
        self.folder = settings.remote_storage_folder.strip("/")
        self.timeout = settings.remote_storage_timeout
        self.token = settings.remote_storage_token
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        headers = {"Authorization": f"Bearer {self.token}"} if self.token else {}
        return httpx.AsyncClient(
            transport=self._transport,
            timeout=self.timeout,
            headers=headers,
        )

    def _object_key(self, reference: str) -> str:
        prefix = f"{self.public_url}/"
        if not reference.startswith(prefix):
            raise AccessDeniedError()
        key = reference[len(prefix):]
        if ".." in PurePosixPath(key).parts:
            raise AccessDeniedError()
        return key

    async def store(
        self,
        content: bytes,
        declared_mime_type: Optional[str],
        original_name: Optional[str] = None,
    ) -> StoredFile:
        mime, ext = self.validate(content, declared_mime_type)
        key = f"{self.folder}/{self._unique_name(ext)}"

        try:
            async with self._client() as client:
                response = await client.put(
                    f"{self.api_url}/{key}",
                    content=content,
                    headers={"Content-Type": mime},
                )
                response.raise_for_status()
        except httpx.HTTPError as e:
            logger.error("Remote upload of %s failed: %s", key, e)
            raise FileStorageError(
                message="Failed to save uploaded file. Please try again.",
                context={"key": key, "error": str(e)},
            )

        reference = f"{self.public_url}/{key}"
        logger.info(
            "File uploaded: %s (%d bytes, %s, original=%s)",
            reference,
            len(content),
            mime,
            original_name,
        )
        return StoredFile(reference=reference, size=len(content), content_type=mime)

    async def retrieve(self, reference: str) -> RetrievedFile:
        self._object_key(reference)
        return RetrievedFile(media_type=guess_mime_type(reference), redirect_url=reference)

    async def fetch(self, reference: str) -> FetchedFile:
        self._object_key(reference)
        try:
            async with self._client() as client:
                response = await client.get(reference, follow_redirects=True)
        except httpx.HTTPError as e:
            logger.error("Remote fetch of %s failed: %s", reference, e)
            raise FileStorageError(
                message="Failed to read stored file.",
                context={"reference": reference, "error": str(e)},
            )

        if response.status_code == 404:
            raise NotFoundError("file", reference_filename(reference))
        if response.is_error:
            raise FileStorageError(
                message="Failed to read stored file.",
                context={"reference": reference, "status": response.status_code},
            )

        content_type = normalize_mime_type(response.headers.get("content-type"))
        if not content_type or content_type == "application/octet-stream":
            content_type = guess_mime_type(reference)
        return FetchedFile(content=response.content, content_type=content_type)

    async def _delete_once(self, reference: str) -> bool:
        key = self._object_key(reference)
        async with self._client() as client:
            response = await client.delete(f"{self.api_url}/{key}")
        if response.status_code == 404:
            return False
        response.raise_for_status()
        return True


def build_file_store(settings: Settings) -> FileStore:
    """Instantiate the backend named by settings.storage_backend."""
    if settings.storage_backend == "remote":
        return RemoteFileStore(settings)
    return LocalFileStore(settings)
