"""
Notebook Backend: Note SQLAlchemy Model
========================================

What:  ORM model for the `notes` table: published, downloadable study material.
Why:   Maps Python objects to rows for type-safe queries in NoteService.
How:   Inherits from the shared DeclarativeBase; Alembic reads it for migrations.
Who:   NoteService (library, upload, delete) and ModerationService (approval).

Table Design Rationale:
    - UUID primary key: non-sequential, safe to expose in URLs
    - file_url: opaque File Store reference (relative path or public URL)
    - semester: integer 1-8, enforced in the service layer
    - created_at DESC index: the library is always listed newest first
    - (college_id, department, semester) index: the common filter combination
"""

import uuid
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Optional

from sqlalchemy import CheckConstraint, DateTime, ForeignKey, Index, Integer, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from notebook.database import Base

if TYPE_CHECKING:
    from notebook.models.user import User


class NoteFieldsMixin:
    """
    Descriptive columns shared by Note and NoteRequest.

    A request carries exactly what its Note will carry once approved, so
    approval is a field-for-field copy with no re-upload.
    """

    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    subject: Mapped[str] = mapped_column(String(120), nullable=False)
    department: Mapped[str] = mapped_column(String(120), nullable=False)
    semester: Mapped[int] = mapped_column(Integer, nullable=False)

    # Values: note, pastpaper
    type: Mapped[str] = mapped_column(String(20), nullable=False, default="note")
    year: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    # Values: midsem, endsem, quiz, other
    exam_type: Mapped[str] = mapped_column(String(20), nullable=False, default="other")

    # Opaque File Store reference: never parsed outside the store itself
    file_url: Mapped[str] = mapped_column(String(500), nullable=False)


class Note(NoteFieldsMixin, Base):
    """
    A published note or past paper.

    Lifecycle:
        1. Created by a teacher upload, or by approving a NoteRequest
        2. Listed/filtered by any authenticated user of the college
        3. Deleted by a teacher (file deletion is best-effort)
    """

    __tablename__ = "notes"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)

    uploaded_by: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id"), nullable=False
    )
    college_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid, ForeignKey("colleges.id", ondelete="SET NULL"), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    # Loaded explicitly (selectinload) or assigned in memory; never lazily
    uploader: Mapped[Optional["User"]] = relationship(lazy="raise")

    __table_args__ = (
        Index("idx_notes_created_at", created_at.desc()),
        Index("idx_notes_college_department_semester", "college_id", "department", "semester"),
        CheckConstraint("semester BETWEEN 1 AND 8", name="ck_notes_semester"),
    )

    def __repr__(self) -> str:
        return f"<Note(id={self.id}, title='{self.title}', semester={self.semester})>"
