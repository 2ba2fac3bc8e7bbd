"""
Notebook Backend: Note Service
===============================

What:  Business logic for the published note library.
Why:   Keeps storage, validation, authorization and persistence ordering out
       of the HTTP layer.
How:   Stateless apart from its FileStore; every method receives the request's
       AsyncSession and commits its own mutations.
Who:   routes/notes.py.

Upload Flow (POST /api/notes/upload):
    ┌───────────┐    ┌───────────┐    ┌────────────┐    ┌──────────┐
    │ authorize │───▶│ FileStore │───▶│  Metadata  │───▶│  Insert  │
    │ (teacher) │    │  .store   │    │ validation │    │  + commit│
    └───────────┘    └───────────┘    └────────────┘    └──────────┘

    Validation or insert failure → stored file deleted (best effort) → raise.
    The file is stored first so a request is never persisted without its
    binary.
"""

import logging
import uuid
from typing import List, Mapping, Optional

from sqlalchemy import or_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from notebook.exceptions import DatabaseError, NotebookError, NotFoundError, ValidationError
from notebook.models.note import Note
from notebook.models.note_request import NoteRequest
from notebook.models.user import User
from notebook.schemas.note import NoteFilter, NoteMetadata
from notebook.services.authorization import Action, authorize
from notebook.services.file_store import FileStore, reference_filename

logger = logging.getLogger(__name__)


class NoteService:
    """
    Note library operations.

    Responsibilities:
        - list_notes(): filtered, newest-first listing
        - create_note(): teacher upload with compensation on failure
        - delete_note(): teacher delete with best-effort file removal
        - find_reference(): map a download filename back to a stored reference
    """

    def __init__(self, file_store: FileStore):
        self.file_store = file_store

    async def list_notes(
        self,
        db: AsyncSession,
        user: User,
        filters: NoteFilter,
    ) -> List[Note]:
        """
        List notes matching every given filter, newest first.

        The college filter defaults to the caller's own college; an explicit
        `college` query value overrides it, so any authenticated user can
        browse another college's library.
        """
        authorize(user, Action.LIST_NOTES)

        stmt = select(Note).options(selectinload(Note.uploader))

        college_id = filters.college_id or user.college_id
        if college_id is not None:
            stmt = stmt.where(Note.college_id == college_id)
        if filters.department:
            stmt = stmt.where(Note.department == filters.department)
        if filters.semester is not None:
            stmt = stmt.where(Note.semester == filters.semester)
        if filters.subject:
            stmt = stmt.where(Note.subject == filters.subject)
        if filters.type is not None:
            stmt = stmt.where(Note.type == filters.type.value)
        if filters.year is not None:
            stmt = stmt.where(Note.year == filters.year)
        if filters.exam_type is not None:
            stmt = stmt.where(Note.exam_type == filters.exam_type.value)
        if filters.search:
            # user text is matched literally, % and _ included
            stmt = stmt.where(
                or_(
                    Note.title.icontains(filters.search, autoescape=True),
                    Note.subject.icontains(filters.search, autoescape=True),
                    Note.description.icontains(filters.search, autoescape=True),
                )
            )

        stmt = stmt.order_by(Note.created_at.desc())
        result = await db.execute(stmt)
        notes = list(result.scalars().all())
        logger.info("Found %d notes (college=%s, search=%r)", len(notes), college_id, filters.search)
        return notes

    async def create_note(
        self,
        db: AsyncSession,
        user: User,
        raw_metadata: Mapping[str, object],
        content: Optional[bytes],
        content_type: Optional[str],
        filename: Optional[str] = None,
    ) -> Note:
        """
        Publish a note directly (teachers only).

        Raises:
            ForbiddenError: caller is not a teacher
            ValidationError / PayloadTooLargeError / UnsupportedTypeError:
                bad file or metadata (stored file already removed)
            DatabaseError: insert failed (stored file already removed)
        """
        authorize(user, Action.UPLOAD_NOTE)

        if content is None:
            raise ValidationError(message="File is required", field="file")

        stored = await self.file_store.store(content, content_type, filename)

        try:
            metadata = NoteMetadata.from_form(raw_metadata)
            note = Note(
                title=metadata.title,
                description=metadata.description,
                subject=metadata.subject,
                department=metadata.department,
                semester=metadata.semester,
                type=metadata.type.value,
                year=metadata.year,
                exam_type=metadata.exam_type.value,
                file_url=stored.reference,
                uploaded_by=user.id,
                college_id=user.college_id,
            )
            db.add(note)
            await db.commit()
        except NotebookError:
            await db.rollback()
            await self.file_store.delete(stored.reference)
            raise
        except SQLAlchemyError as e:
            await db.rollback()
            logger.error("Failed to insert note: %s", e, exc_info=True)
            await self.file_store.delete(stored.reference)
            raise DatabaseError(context={"operation": "create_note"})

        note.uploader = user
        logger.info("Note %s uploaded by %s (%s)", note.id, user.id, stored.reference)
        return note

    async def delete_note(self, db: AsyncSession, user: User, note_id: uuid.UUID) -> None:
        """
        Delete a note and, best effort, its file.

        A file that cannot be removed is logged and left behind; the record
        is deleted regardless.
        """
        authorize(user, Action.DELETE_NOTE)

        note = await db.get(Note, note_id)
        if note is None:
            raise NotFoundError("note", str(note_id))

        reference = note.file_url
        removed = await self.file_store.delete(reference)
        if not removed:
            logger.warning("File for note %s was not removed: %s", note_id, reference)

        await db.delete(note)
        await db.commit()
        logger.info("Note %s deleted by %s", note_id, user.id)

    async def find_reference(self, db: AsyncSession, filename: str) -> str:
        """
        Resolve a download filename to the stored reference it names.

        Published notes are searched first, then note requests so reviewers
        can open pending submissions.
        """
        if not filename or "/" in filename or "\\" in filename:
            raise NotFoundError("file")

        for model in (Note, NoteRequest):
            result = await db.execute(
                select(model.file_url)
                .where(model.file_url.endswith(filename, autoescape=True))
                .limit(10)
            )
            for reference in result.scalars():
                if reference_filename(reference) == filename:
                    return reference

        raise NotFoundError("file")
