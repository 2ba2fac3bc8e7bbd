"""
Notebook Backend: Moderation Service
=====================================

What:  Note requests and their review workflow.
Why:   Students cannot publish directly; a teacher or admin approves each
       submission, which then becomes a Note without re-uploading the file.
How:   Requests move  pending → approved | rejected  exactly once. Each
       transition is a conditional UPDATE ... WHERE status = 'pending'; only
       the reviewer whose UPDATE matched a row continues, so two reviewers
       approving at the same time produce a single Note.
Who:   routes/requests.py.

Approval, step by step:
    1. UPDATE note_requests SET status='approved' WHERE id=:id AND status='pending'
    2. rowcount == 0 → re-read status → NotFoundError or InvalidStateError
    3. Reuse a Note already published with the same file_url, or insert one
    4. Link request.note_id, commit (steps 1-4 are one transaction)
"""

import logging
import uuid
from datetime import datetime, timezone
from typing import List, Mapping, Optional

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from notebook.exceptions import (
    DatabaseError,
    InvalidStateError,
    NotebookError,
    NotFoundError,
    ValidationError,
)
from notebook.models.enums import RequestStatus
from notebook.models.note import Note
from notebook.models.note_request import NoteRequest
from notebook.models.user import User
from notebook.schemas.note import NoteMetadata
from notebook.services.authorization import Action, authorize
from notebook.services.file_store import FileStore

logger = logging.getLogger(__name__)


class ModerationService:
    """Submission, listing and review of note requests."""

    def __init__(self, file_store: FileStore):
        self.file_store = file_store

    # ── Submission ────────────────────────────────────────────────────────

    async def submit(
        self,
        db: AsyncSession,
        user: User,
        raw_metadata: Mapping[str, object],
        content: Optional[bytes],
        content_type: Optional[str],
        filename: Optional[str] = None,
    ) -> NoteRequest:
        """
        Store the file and create a pending request.

        Raises:
            ValidationError: bad metadata; the stored file is deleted first
            DatabaseError: insert failed; the stored file is deleted first
        """
        authorize(user, Action.SUBMIT_REQUEST)

        if content is None:
            raise ValidationError(message="File is required", field="file")

        stored = await self.file_store.store(content, content_type, filename)

        try:
            metadata = NoteMetadata.from_form(raw_metadata)
            note_request = NoteRequest(
                title=metadata.title,
                description=metadata.description,
                subject=metadata.subject,
                department=metadata.department,
                semester=metadata.semester,
                type=metadata.type.value,
                year=metadata.year,
                exam_type=metadata.exam_type.value,
                file_url=stored.reference,
                status=RequestStatus.PENDING.value,
                requested_by=user.id,
                college_id=user.college_id,
            )
            db.add(note_request)
            await db.commit()
        except NotebookError:
            await db.rollback()
            await self.file_store.delete(stored.reference)
            raise
        except SQLAlchemyError as e:
            await db.rollback()
            logger.error("Failed to insert note request: %s", e, exc_info=True)
            await self.file_store.delete(stored.reference)
            raise DatabaseError(context={"operation": "submit_request"})

        note_request.requester = user
        logger.info("Note request %s submitted by %s", note_request.id, user.id)
        return note_request

    # ── Listing ───────────────────────────────────────────────────────────

    async def _list(self, db: AsyncSession, *criteria) -> List[NoteRequest]:
        stmt = (
            select(NoteRequest)
            .options(selectinload(NoteRequest.requester))
            .where(*criteria)
            .order_by(NoteRequest.created_at.desc())
        )
        result = await db.execute(stmt)
        return list(result.scalars().all())

    async def list_pending(self, db: AsyncSession, user: User) -> List[NoteRequest]:
        authorize(user, Action.REVIEW_REQUESTS)
        return await self._list(db, NoteRequest.status == RequestStatus.PENDING.value)

    async def list_reviewed(self, db: AsyncSession, user: User) -> List[NoteRequest]:
        authorize(user, Action.REVIEW_REQUESTS)
        return await self._list(db, NoteRequest.status != RequestStatus.PENDING.value)

    async def list_mine(self, db: AsyncSession, user: User) -> List[NoteRequest]:
        authorize(user, Action.LIST_OWN_REQUESTS)
        return await self._list(db, NoteRequest.requested_by == user.id)

    # ── Review ────────────────────────────────────────────────────────────

    async def _transition(
        self,
        db: AsyncSession,
        request_id: uuid.UUID,
        target: RequestStatus,
        reviewer: User,
        teacher_message: Optional[str] = None,
    ) -> None:
        """
        Move a pending request to `target`, or explain why it cannot move.

        Leaves the transaction open so the caller can add work to it.
        """
        now = datetime.now(timezone.utc)
        values = {
            "status": target.value,
            "reviewed_by": reviewer.id,
            "reviewed_at": now,
            "updated_at": now,
        }
        if teacher_message is not None:
            values["teacher_message"] = teacher_message

        result = await db.execute(
            update(NoteRequest)
            .where(
                NoteRequest.id == request_id,
                NoteRequest.status == RequestStatus.PENDING.value,
            )
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 1:
            return

        current = await db.scalar(select(NoteRequest.status).where(NoteRequest.id == request_id))
        if current is None:
            raise NotFoundError("request", str(request_id))
        logger.info(
            "Refused to move request %s to %s: already %s",
            request_id,
            target.value,
            current,
        )
        raise InvalidStateError(current_status=current)

    async def _reload(self, db: AsyncSession, request_id: uuid.UUID) -> NoteRequest:
        result = await db.execute(
            select(NoteRequest)
            .options(selectinload(NoteRequest.requester))
            .where(NoteRequest.id == request_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one()

    async def approve(self, db: AsyncSession, reviewer: User, request_id: uuid.UUID) -> NoteRequest:
        """
        Approve a pending request and publish it as a Note.

        If a Note with the same file reference already exists it is linked
        instead of duplicated.

        Raises:
            ForbiddenError: reviewer is not a teacher or admin
            NotFoundError: no such request
            InvalidStateError: request was already approved or rejected
        """
        authorize(reviewer, Action.APPROVE_REQUEST)

        try:
            await self._transition(db, request_id, RequestStatus.APPROVED, reviewer)

            note_request = await self._reload(db, request_id)
            note = await db.scalar(
                select(Note).where(Note.file_url == note_request.file_url).limit(1)
            )
            if note is not None:
                logger.info("Request %s already published as note %s", request_id, note.id)
            else:
                note = Note(
                    title=note_request.title,
                    description=note_request.description,
                    subject=note_request.subject,
                    department=note_request.department,
                    semester=note_request.semester,
                    type=note_request.type,
                    year=note_request.year,
                    exam_type=note_request.exam_type,
                    file_url=note_request.file_url,
                    uploaded_by=note_request.requested_by,
                    college_id=note_request.college_id,
                )
                db.add(note)
                await db.flush()

            note_request.note_id = note.id
            await db.commit()
        except SQLAlchemyError as e:
            await db.rollback()
            logger.error("Failed to approve request %s: %s", request_id, e, exc_info=True)
            raise DatabaseError(context={"operation": "approve_request"})

        logger.info("Request %s approved by %s → note %s", request_id, reviewer.id, note.id)
        return await self._reload(db, request_id)

    async def reject(
        self,
        db: AsyncSession,
        reviewer: User,
        request_id: uuid.UUID,
        teacher_message: Optional[str],
    ) -> NoteRequest:
        """
        Reject a pending request with mandatory feedback.

        The message is stored exactly as given; it only has to contain
        something besides whitespace. The submitted file is kept.
        """
        authorize(reviewer, Action.REJECT_REQUEST)

        if teacher_message is None or not teacher_message.strip():
            raise ValidationError(
                message="Teacher message is required when rejecting a request",
                field="teacherMessage",
            )

        try:
            await self._transition(
                db,
                request_id,
                RequestStatus.REJECTED,
                reviewer,
                teacher_message=teacher_message,
            )
            await db.commit()
        except SQLAlchemyError as e:
            await db.rollback()
            logger.error("Failed to reject request %s: %s", request_id, e, exc_info=True)
            raise DatabaseError(context={"operation": "reject_request"})

        logger.info("Request %s rejected by %s", request_id, reviewer.id)
        return await self._reload(db, request_id)
