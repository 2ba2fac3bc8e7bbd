"""Schemas for POST /api/summarize."""

import uuid
from typing import Optional

from notebook.schemas.common import CamelModel


class SummarizeRequest(CamelModel):
    """Either raw `notes` text or the `noteId` of a stored note."""

    notes: Optional[str] = None
    note_id: Optional[uuid.UUID] = None


class SummarizeResponse(CamelModel):
    summary: str
