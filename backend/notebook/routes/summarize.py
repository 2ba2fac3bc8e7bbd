"""
Summarize Route Handler

POST /api/summarize  {notes} | {noteId}  →  {summary}
"""

import logging

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from notebook.database import get_db_session
from notebook.dependencies import get_current_user, get_summary_service
from notebook.models.user import User
from notebook.schemas.common import ErrorResponse
from notebook.schemas.summary import SummarizeRequest, SummarizeResponse
from notebook.services.summary_service import SummaryService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["Summarize"])


@router.post(
    "/summarize",
    response_model=SummarizeResponse,
    responses={
        400: {"description": "No text, unreadable PDF or unsupported file", "model": ErrorResponse},
        404: {"description": "Note not found", "model": ErrorResponse},
        500: {"description": "Missing API key or model failure", "model": ErrorResponse},
    },
    summary="Summarize notes",
    description=(
        "Summarizes raw `notes` text, or the PDF behind `noteId`. Image notes get a "
        "fixed explanatory message instead of a summary."
    ),
)
async def summarize_notes(
    payload: SummarizeRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
    service: SummaryService = Depends(get_summary_service),
) -> SummarizeResponse:
    summary = await service.summarize(db, user, notes=payload.notes, note_id=payload.note_id)
    return SummarizeResponse(summary=summary)
