"""
College Route Handlers

Both endpoints are public: the registration form lists colleges before the
user has an account.
"""

from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from notebook.database import get_db_session
from notebook.dependencies import get_college_service
from notebook.schemas.college import CollegeCreate, CollegeResponse
from notebook.schemas.common import ErrorResponse
from notebook.services.college_service import CollegeService

router = APIRouter(prefix="/api/colleges", tags=["Colleges"])


@router.get("", response_model=List[CollegeResponse], summary="List colleges")
async def list_colleges(
    db: AsyncSession = Depends(get_db_session),
    service: CollegeService = Depends(get_college_service),
) -> List[CollegeResponse]:
    colleges = await service.list_colleges(db)
    return [CollegeResponse.model_validate(c) for c in colleges]


@router.post(
    "",
    status_code=201,
    response_model=CollegeResponse,
    responses={400: {"description": "Missing name/code or duplicate code", "model": ErrorResponse}},
    summary="Register a college",
)
async def create_college(
    payload: CollegeCreate,
    db: AsyncSession = Depends(get_db_session),
    service: CollegeService = Depends(get_college_service),
) -> CollegeResponse:
    college = await service.create_college(db, payload.name, payload.code)
    return CollegeResponse.model_validate(college)
