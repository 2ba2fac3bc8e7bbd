"""
Notebook Backend: Note Schemas
===============================

What:  API contract for the note library: upload metadata, list filters and
       the Note payload.
Why:   Upload metadata arrives as multipart form strings; NoteMetadata turns
       it into typed values and reports missing fields the way the client
       expects (a `missing` map, HTTP 400).
"""

import uuid
from datetime import datetime
from typing import Any, Dict, Mapping, Optional

from pydantic import BaseModel, Field, field_validator
from pydantic import ValidationError as PydanticValidationError

from notebook.exceptions import ValidationError
from notebook.models.enums import ExamType, NoteType
from notebook.schemas.common import CamelModel, UserSummary

REQUIRED_METADATA_FIELDS = ("title", "subject", "department", "semester")


# ══════════════════════════════════════════════════════════════════════════
# Input Models
# ══════════════════════════════════════════════════════════════════════════


class NoteMetadata(BaseModel):
    """
    Validated descriptive fields for a note or a note request.

    Constraints:
        title/subject/department: non-blank after trimming
        semester: integer 1-8
        type: note | pastpaper (default note)
        exam_type: midsem | endsem | quiz | other (default other)
        year: optional integer
    """

    title: str = Field(min_length=1, max_length=255)
    description: str = Field(default="")
    subject: str = Field(min_length=1, max_length=120)
    department: str = Field(min_length=1, max_length=120)
    semester: int = Field(ge=1, le=8)
    type: NoteType = NoteType.NOTE
    year: Optional[int] = Field(default=None, ge=1900, le=2100)
    exam_type: ExamType = ExamType.OTHER

    model_config = {"str_strip_whitespace": True}

    @classmethod
    def from_form(cls, raw: Mapping[str, Any]) -> "NoteMetadata":
        """
        Build metadata from raw form values.

        Blank optional values fall back to their defaults. Missing required
        fields are reported together before type validation runs.

        Raises:
            ValidationError: with context {"missing": {...}} or {"errors": [...]}
        """
        cleaned: Dict[str, Any] = {}
        for key, value in raw.items():
            if isinstance(value, str):
                value = value.strip()
            if value in (None, ""):
                continue
            cleaned[key] = value

        missing = {name: name not in cleaned for name in REQUIRED_METADATA_FIELDS}
        if any(missing.values()):
            raise ValidationError(
                message="Title, subject, department, and semester are required",
                context={"missing": missing},
            )

        try:
            return cls.model_validate(cleaned)
        except PydanticValidationError as e:
            errors = [
                {"field": ".".join(str(p) for p in err["loc"]), "message": err["msg"]}
                for err in e.errors()
            ]
            first = errors[0]
            raise ValidationError(
                message=f"Invalid value for '{first['field']}': {first['message']}",
                field=first["field"],
                context={"errors": errors},
            )


class NoteFilter(BaseModel):
    """
    Query filters for GET /api/notes.

    All fields are optional and AND-ed together; `search` is a case-insensitive
    substring match over title OR subject OR description.
    """

    search: Optional[str] = None
    college_id: Optional[uuid.UUID] = None
    department: Optional[str] = None
    semester: Optional[int] = None
    subject: Optional[str] = None
    type: Optional[NoteType] = None
    year: Optional[int] = None
    exam_type: Optional[ExamType] = None

    @field_validator("*", mode="before")
    @classmethod
    def blank_to_none(cls, v: Any) -> Any:
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @classmethod
    def from_query(cls, **params: Optional[str]) -> "NoteFilter":
        """Build filters from raw query strings; bad values become a 400."""
        try:
            return cls.model_validate(params)
        except PydanticValidationError as e:
            first = e.errors()[0]
            field = ".".join(str(p) for p in first["loc"])
            raise ValidationError(
                message=f"Invalid value for '{field}': {first['msg']}",
                field=field,
            )


# ══════════════════════════════════════════════════════════════════════════
# Response Models
# ══════════════════════════════════════════════════════════════════════════


class NoteResponse(CamelModel):
    """A published note as the library lists it."""

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
    uploaded_by: uuid.UUID
    uploader: Optional[UserSummary] = None
    college_id: Optional[uuid.UUID] = None
    created_at: datetime


class NoteUploadResponse(CamelModel):
    """Returned by POST /api/notes/upload with HTTP 201."""

    message: str = "Note uploaded successfully"
    note: NoteResponse
    file_url: str
