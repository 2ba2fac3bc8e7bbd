"""
Notebook Backend: Summarization Pipeline
=========================================

What:  Turns raw note text, or a stored note, into an LLM summary.
Who:   POST /api/summarize.

Pipeline:
    ┌──────────┐   ┌────────────┐   ┌──────────┐   ┌──────────┐   ┌─────┐
    │ config   │──▶│ resolve    │──▶│ classify │──▶│ extract  │──▶│ LLM │
    │ check    │   │ note+fetch │   │ pdf/img  │   │ truncate │   │     │
    └──────────┘   └────────────┘   └──────────┘   └──────────┘   └─────┘

    Raw `notes` text skips straight to truncation. Images short-circuit with
    a fixed message; no extraction, no model call.
"""

import asyncio
import logging
import uuid
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from notebook.config import Settings
from notebook.exceptions import ConfigurationError, NotFoundError, UnsupportedTypeError, ValidationError
from notebook.models.note import Note
from notebook.models.user import User
from notebook.services import text_extraction
from notebook.services.authorization import Action, authorize
from notebook.services.file_store import FileStore
from notebook.services.llm_base import LLMService

logger = logging.getLogger(__name__)

IMAGE_UNAVAILABLE_MESSAGE = (
    "Image summarization is currently unavailable as the vision models have been decommissioned."
)
TRUNCATION_MARKER = "...[truncated]"


def truncate_text(text: str, max_chars: int) -> str:
    """Cut to max_chars and mark the cut; shorter text is returned unchanged."""
    if len(text) <= max_chars:
        return text
    return text[:max_chars] + TRUNCATION_MARKER


class SummaryService:
    def __init__(self, settings: Settings, file_store: FileStore, summarizer: LLMService):
        self.settings = settings
        self.file_store = file_store
        self.summarizer = summarizer

    async def summarize(
        self,
        db: AsyncSession,
        user: User,
        notes: Optional[str] = None,
        note_id: Optional[uuid.UUID] = None,
    ) -> str:
        """
        Summarize raw text, or the file behind a stored note.

        `note_id` wins when both are given.

        Raises:
            ConfigurationError: no LLM API key (checked before anything else)
            ValidationError: neither notes nor note_id
            NotFoundError: note_id does not exist
            UnextractableContentError: PDF without extractable text
            UnsupportedTypeError: stored file is neither PDF nor image
            UpstreamError: the model call failed
        """
        authorize(user, Action.SUMMARIZE)

        if not self.settings.summarizer_configured:
            logger.error("Summarize request rejected: GEMINI_API_KEY is not configured")
            raise ConfigurationError("Server configuration error: summarization API key is missing")

        if note_id is not None:
            note = await db.get(Note, note_id)
            if note is None:
                raise NotFoundError("note", str(note_id))

            # the extension usually decides; fetch only when it must
            kind = text_extraction.classify(note.file_url)
            if kind == text_extraction.IMAGE:
                logger.info("Note %s is an image; nothing to summarize", note_id)
                return IMAGE_UNAVAILABLE_MESSAGE

            fetched = await self.file_store.fetch(note.file_url)
            if kind is None:
                kind = text_extraction.classify(note.file_url, fetched.content_type)
            logger.info("Summarizing note %s (%s, %d bytes)", note_id, kind, len(fetched.content))

            if kind == text_extraction.IMAGE:
                return IMAGE_UNAVAILABLE_MESSAGE
            if kind != text_extraction.PDF:
                raise UnsupportedTypeError(
                    content_type=fetched.content_type,
                    message="Only PDF notes can be summarized",
                )

            notes = await asyncio.to_thread(text_extraction.extract_pdf_text, fetched.content)

        if not notes or not notes.strip():
            raise ValidationError(message="Notes content is required", field="notes")

        text = truncate_text(notes, self.settings.summary_max_chars)
        summary = await self.summarizer.summarize_text(text)
        logger.info("Summary generated (%d chars in, %d chars out)", len(text), len(summary))
        return summary
