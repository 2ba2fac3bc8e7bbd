"""
Notebook Backend: FastAPI Dependencies
=======================================

What:  Providers that hand route handlers their collaborators.
Why:   Settings, the file store and the summarizer are built once in
       create_app() and kept on app.state; routes receive them through
       Depends() so tests can swap any of them.
How:   Each provider reads from request.app.state. get_current_user() turns
       the bearer token into a User row or raises AuthenticationError.
"""

import logging
from typing import Optional

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from notebook.config import Settings
from notebook.database import get_db_session
from notebook.exceptions import AuthenticationError
from notebook.models.user import User
from notebook.security import decode_token_subject
from notebook.services.college_service import CollegeService
from notebook.services.file_store import FileStore
from notebook.services.llm_base import LLMService
from notebook.services.moderation_service import ModerationService
from notebook.services.note_service import NoteService
from notebook.services.summary_service import SummaryService

logger = logging.getLogger(__name__)

# auto_error=False: a missing header is reported through our own 401 shape
bearer_scheme = HTTPBearer(auto_error=False)


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_file_store(request: Request) -> FileStore:
    return request.app.state.file_store


def get_summarizer(request: Request) -> LLMService:
    return request.app.state.summarizer


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    settings: Settings = Depends(get_app_settings),
    db: AsyncSession = Depends(get_db_session),
) -> User:
    """
    Resolve the caller from `Authorization: Bearer <jwt>`.

    Raises:
        AuthenticationError: header missing, token invalid or expired, or the
            subject no longer exists
    """
    if credentials is None or not credentials.credentials:
        raise AuthenticationError("Not authorized, no token")

    user_id = decode_token_subject(credentials.credentials, settings)
    if user_id is None:
        raise AuthenticationError("Not authorized, token failed")

    user = await db.get(User, user_id)
    if user is None:
        logger.warning("Token subject %s not found", user_id)
        raise AuthenticationError("Not authorized, user not found")
    return user


# ── Service providers ─────────────────────────────────────────────────────


def get_note_service(file_store: FileStore = Depends(get_file_store)) -> NoteService:
    return NoteService(file_store)


def get_moderation_service(file_store: FileStore = Depends(get_file_store)) -> ModerationService:
    return ModerationService(file_store)


def get_college_service() -> CollegeService:
    return CollegeService()


def get_summary_service(
    settings: Settings = Depends(get_app_settings),
    file_store: FileStore = Depends(get_file_store),
    summarizer: LLMService = Depends(get_summarizer),
) -> SummaryService:
    return SummaryService(settings, file_store, summarizer)
