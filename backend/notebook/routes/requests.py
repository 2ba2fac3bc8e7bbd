"""
Notebook Backend: Note Request Route Handlers
==============================================

What:  Submission and moderation of note requests.

Endpoints:
    POST /api/requests                      authenticated (multipart)
    GET  /api/requests/my                   authenticated
    GET  /api/requests/pending              teacher, admin
    GET  /api/requests/reviewed             teacher, admin
    PUT  /api/requests/{request_id}/approve teacher, admin
    PUT  /api/requests/{request_id}/reject  teacher, admin  {teacherMessage}
"""

import logging
from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Body, Depends, File, Form, UploadFile
from sqlalchemy.ext.asyncio import AsyncSession

from notebook.database import get_db_session
from notebook.dependencies import get_current_user, get_moderation_service
from notebook.models.user import User
from notebook.schemas.common import ErrorResponse
from notebook.schemas.note_request import NoteRequestResponse, RejectPayload
from notebook.services.moderation_service import ModerationService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/requests", tags=["Requests"])

REVIEW_ERRORS = {
    400: {"description": "Missing teacher message", "model": ErrorResponse},
    403: {"description": "Caller is not a teacher or admin", "model": ErrorResponse},
    404: {"description": "Request not found", "model": ErrorResponse},
    409: {"description": "Request already reviewed", "model": ErrorResponse},
}


@router.post(
    "",
    status_code=201,
    response_model=NoteRequestResponse,
    responses={400: {"description": "Invalid file or metadata", "model": ErrorResponse}},
    summary="Submit a note for review",
)
async def submit_request(
    file: Optional[UploadFile] = File(default=None),
    title: Optional[str] = Form(default=None),
    description: Optional[str] = Form(default=None),
    subject: Optional[str] = Form(default=None),
    department: Optional[str] = Form(default=None),
    semester: Optional[str] = Form(default=None),
    type: Optional[str] = Form(default=None),
    year: Optional[str] = Form(default=None),
    exam_type: Optional[str] = Form(default=None, alias="examType"),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
    service: ModerationService = Depends(get_moderation_service),
) -> NoteRequestResponse:
    content = await file.read() if file is not None else None
    try:
        note_request = await service.submit(
            db,
            user,
            raw_metadata={
                "title": title,
                "description": description,
                "subject": subject,
                "department": department,
                "semester": semester,
                "type": type,
                "year": year,
                "exam_type": exam_type,
            },
            content=content,
            content_type=file.content_type if file else None,
            filename=file.filename if file else None,
        )
    finally:
        if file is not None:
            await file.close()
    return NoteRequestResponse.model_validate(note_request)


@router.get("/my", response_model=List[NoteRequestResponse], summary="Caller's own requests")
async def list_my_requests(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
    service: ModerationService = Depends(get_moderation_service),
) -> List[NoteRequestResponse]:
    requests = await service.list_mine(db, user)
    return [NoteRequestResponse.model_validate(r) for r in requests]


@router.get(
    "/pending",
    response_model=List[NoteRequestResponse],
    responses={403: REVIEW_ERRORS[403]},
    summary="Requests awaiting review",
)
async def list_pending_requests(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
    service: ModerationService = Depends(get_moderation_service),
) -> List[NoteRequestResponse]:
    requests = await service.list_pending(db, user)
    return [NoteRequestResponse.model_validate(r) for r in requests]


@router.get(
    "/reviewed",
    response_model=List[NoteRequestResponse],
    responses={403: REVIEW_ERRORS[403]},
    summary="Approved and rejected requests",
)
async def list_reviewed_requests(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
    service: ModerationService = Depends(get_moderation_service),
) -> List[NoteRequestResponse]:
    requests = await service.list_reviewed(db, user)
    return [NoteRequestResponse.model_validate(r) for r in requests]


@router.put(
    "/{request_id}/approve",
    response_model=NoteRequestResponse,
    responses={k: v for k, v in REVIEW_ERRORS.items() if k != 400},
    summary="Approve a request and publish it as a note",
)
async def approve_request(
    request_id: UUID,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
    service: ModerationService = Depends(get_moderation_service),
) -> NoteRequestResponse:
    note_request = await service.approve(db, user, request_id)
    return NoteRequestResponse.model_validate(note_request)


@router.put(
    "/{request_id}/reject",
    response_model=NoteRequestResponse,
    responses=REVIEW_ERRORS,
    summary="Reject a request with feedback",
)
async def reject_request(
    request_id: UUID,
    payload: Optional[RejectPayload] = Body(default=None),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
    service: ModerationService = Depends(get_moderation_service),
) -> NoteRequestResponse:
    message = payload.teacher_message if payload else None
    note_request = await service.reject(db, user, request_id, message)
    return NoteRequestResponse.model_validate(note_request)
