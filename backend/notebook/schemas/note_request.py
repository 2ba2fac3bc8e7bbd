"""Schemas for the note-request moderation endpoints."""

import uuid
from datetime import datetime
from typing import Optional

from notebook.schemas.common import CamelModel, UserSummary


class NoteRequestResponse(CamelModel):
    id: uuid.UUID
    title: str
    description: str = ""
    subject: str
    department: str
    semester: int
    type: str
    year: Optional[int] = None
    exam_type: str
    file_url: str
    status: str
    requested_by: uuid.UUID
    requester: Optional[UserSummary] = None
    college_id: Optional[uuid.UUID] = None
    teacher_message: Optional[str] = None
    reviewed_by: Optional[uuid.UUID] = None
    reviewed_at: Optional[datetime] = None
    note_id: Optional[uuid.UUID] = None
    created_at: datetime
    updated_at: datetime


class RejectPayload(CamelModel):
    """
    Body of PUT /api/requests/{id}/reject.

    Optional at the schema level so a missing message reaches the service and
    is reported as a 400 validation_error like a blank one.
    """

    teacher_message: Optional[str] = None
