"""
Text extraction for the summarization pipeline.

Only PDFs carry extractable text; images are classified so the pipeline can
answer them without calling the model.
"""

import io
import logging
from pathlib import PurePosixPath
from typing import Optional

from pypdf import PdfReader
from pypdf.errors import PdfReadError

from notebook.exceptions import UnextractableContentError
from notebook.services.file_store import normalize_mime_type

logger = logging.getLogger(__name__)

PDF = "pdf"
IMAGE = "image"

IMAGE_EXTENSIONS = {".png", ".jpg", ".jpeg"}


def classify(reference: str, content_type: Optional[str] = None) -> Optional[str]:
    """
    Decide how to treat a stored file: PDF, IMAGE or None (unsupported).

    The reference's extension wins; the fetched content type is the fallback
    for references without a usable extension.
    """
    ext = PurePosixPath(reference.split("?", 1)[0]).suffix.lower()
    if ext == ".pdf":
        return PDF
    if ext in IMAGE_EXTENSIONS:
        return IMAGE

    mime = normalize_mime_type(content_type)
    if mime == "application/pdf":
        return PDF
    if mime and mime.startswith("image/"):
        return IMAGE
    return None


def extract_pdf_text(content: bytes) -> str:
    """
    Concatenate the text of every page.

    Raises:
        UnextractableContentError: unreadable PDF, or no text at all (typically
            a scanned, image-only document)
    """
    try:
        reader = PdfReader(io.BytesIO(content))
        pages = [page.extract_text() or "" for page in reader.pages]
    except (PdfReadError, ValueError) as e:
        logger.warning("PDF could not be parsed: %s", e)
        raise UnextractableContentError("Could not read this PDF. The file may be corrupted.")

    text = "\n".join(pages)
    if not text.strip():
        raise UnextractableContentError()

    logger.info("Extracted %d characters from %d PDF pages", len(text), len(pages))
    return text
