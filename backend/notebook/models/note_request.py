"""
NoteRequest table: a submission waiting for (or done with) moderation.

State machine:
    pending ──approve──▶ approved   (note_id points at the published Note)
       │
       └────reject────▶ rejected   (teacher_message holds the feedback)

Both targets are terminal. Transitions are performed by ModerationService with
a conditional UPDATE ... WHERE status = 'pending', so a row leaves `pending`
exactly once even under concurrent reviewers.
"""

import uuid
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Optional

from sqlalchemy import CheckConstraint, DateTime, ForeignKey, Index, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from notebook.database import Base
from notebook.models.note import NoteFieldsMixin

if TYPE_CHECKING:
    from notebook.models.user import User


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class NoteRequest(NoteFieldsMixin, Base):
    __tablename__ = "note_requests"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)

    status: Mapped[str] = mapped_column(String(20), nullable=False, default="pending")

    requested_by: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id"), nullable=False
    )
    college_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid, ForeignKey("colleges.id", ondelete="SET NULL"), nullable=True
    )

    # Reviewer feedback; mandatory on rejection
    teacher_message: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    reviewed_by: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid, ForeignKey("users.id"), nullable=True
    )
    reviewed_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    # Published note; set on approval
    note_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid, ForeignKey("notes.id", ondelete="SET NULL"), nullable=True
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow
    )

    requester: Mapped[Optional["User"]] = relationship(
        foreign_keys=[requested_by], lazy="raise"
    )

    __table_args__ = (
        Index("idx_note_requests_status_created_at", "status", created_at.desc()),
        Index("idx_note_requests_requested_by", "requested_by"),
        CheckConstraint(
            "status IN ('pending', 'approved', 'rejected')",
            name="ck_note_requests_status",
        ),
        CheckConstraint("semester BETWEEN 1 AND 8", name="ck_note_requests_semester"),
    )

    def __repr__(self) -> str:
        return f"<NoteRequest(id={self.id}, status='{self.status}')>"
