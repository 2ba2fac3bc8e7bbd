"""
Notebook Backend: Notes Route Handlers
=======================================

What:  The note library: list, upload, delete, download.
How:   Thin handlers: pull values out of the request, call NoteService,
       shape the response. Authorization and validation live in the service.

Endpoints:
    GET    /api/notes                      authenticated
    POST   /api/notes/upload               teacher (multipart)
    DELETE /api/notes/{note_id}            teacher
    GET    /api/notes/download/{filename}  public
"""

import logging
from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, File, Form, Query, Response, UploadFile
from fastapi.responses import FileResponse, RedirectResponse
from sqlalchemy.ext.asyncio import AsyncSession

from notebook.database import get_db_session
from notebook.dependencies import get_current_user, get_file_store, get_note_service
from notebook.models.user import User
from notebook.schemas.common import ErrorResponse, MessageResponse
from notebook.schemas.note import NoteFilter, NoteResponse, NoteUploadResponse
from notebook.services.file_store import FileStore
from notebook.services.note_service import NoteService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/notes", tags=["Notes"])


@router.get(
    "",
    response_model=List[NoteResponse],
    responses={
        400: {"description": "Invalid filter value", "model": ErrorResponse},
        401: {"description": "Missing or invalid token", "model": ErrorResponse},
    },
    summary="List notes",
    description=(
        "Returns notes matching every given filter, newest first. `search` matches "
        "title, subject or description (case-insensitive). Without `college`, the "
        "caller's own college is used."
    ),
)
async def list_notes(
    response: Response,
    search: Optional[str] = Query(default=None),
    college: Optional[str] = Query(default=None, description="College id; defaults to the caller's"),
    department: Optional[str] = Query(default=None),
    semester: Optional[str] = Query(default=None),
    subject: Optional[str] = Query(default=None),
    type: Optional[str] = Query(default=None, description="note or pastpaper"),
    year: Optional[str] = Query(default=None),
    exam_type: Optional[str] = Query(default=None, alias="examType"),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
    service: NoteService = Depends(get_note_service),
) -> List[NoteResponse]:
    """
    Why raw strings for numeric filters:
        The SPA sends empty values (`semester=`) for unset dropdowns; NoteFilter
        treats blanks as "no filter" and reports real garbage as a 400.
    """
    filters = NoteFilter.from_query(
        search=search,
        college_id=college,
        department=department,
        semester=semester,
        subject=subject,
        type=type,
        year=year,
        exam_type=exam_type,
    )
    notes = await service.list_notes(db, user, filters)

    # Same convention as other list endpoints: count in a header, bare array in the body
    response.headers["X-Total-Count"] = str(len(notes))
    return [NoteResponse.model_validate(note) for note in notes]


@router.post(
    "/upload",
    status_code=201,
    response_model=NoteUploadResponse,
    responses={
        400: {"description": "Invalid file or metadata", "model": ErrorResponse},
        401: {"description": "Missing or invalid token", "model": ErrorResponse},
        403: {"description": "Caller is not a teacher", "model": ErrorResponse},
    },
    summary="Upload a note (teachers)",
    description="Multipart upload of a PDF, PNG or JPEG (max 10MB) plus note metadata.",
)
async def upload_note(
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
    service: NoteService = Depends(get_note_service),
) -> NoteUploadResponse:
    content = await file.read() if file is not None else None
    logger.info(
        "Received note upload: filename=%s, size=%s, user=%s",
        file.filename if file else None,
        len(content) if content is not None else None,
        user.id,
    )

    try:
        note = await service.create_note(
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

    return NoteUploadResponse(note=NoteResponse.model_validate(note), file_url=note.file_url)


@router.get(
    "/download/{filename}",
    responses={
        200: {"description": "File contents"},
        307: {"description": "Redirect to the file's public URL"},
        403: {"description": "Reference outside the store", "model": ErrorResponse},
        404: {"description": "No note or request has this file", "model": ErrorResponse},
    },
    summary="Download a note file",
    description="Serves the stored file whose reference ends with `filename`.",
)
async def download_note(
    filename: str,
    db: AsyncSession = Depends(get_db_session),
    service: NoteService = Depends(get_note_service),
    file_store: FileStore = Depends(get_file_store),
):
    reference = await service.find_reference(db, filename)
    retrieved = await file_store.retrieve(reference)

    if retrieved.redirect_url:
        return RedirectResponse(url=retrieved.redirect_url, status_code=307)

    return FileResponse(
        path=str(retrieved.path),
        media_type=retrieved.media_type,
        filename=filename,
        content_disposition_type="inline",
        headers={"Cache-Control": "public, max-age=86400"},
    )


@router.delete(
    "/{note_id}",
    response_model=MessageResponse,
    responses={
        403: {"description": "Caller is not a teacher", "model": ErrorResponse},
        404: {"description": "Note not found", "model": ErrorResponse},
    },
    summary="Delete a note (teachers)",
)
async def delete_note(
    note_id: UUID,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
    service: NoteService = Depends(get_note_service),
) -> MessageResponse:
    await service.delete_note(db, user, note_id)
    return MessageResponse(message="Note deleted successfully")
