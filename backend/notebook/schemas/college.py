"""College schemas."""

import uuid
from datetime import datetime
from typing import Optional

from pydantic import AliasChoices, Field

from notebook.schemas.common import CamelModel


class CollegeCreate(CamelModel):
    """
    Body of POST /api/colleges.

    The SPA's form posts collegeName/collegeCode; plain name/code work too.
    Both are optional here so blanks reach CollegeService and come back as
    the usual 400 validation_error.
    """

    name: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("name", "collegeName", "college_name")
    )
    code: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("code", "collegeCode", "college_code")
    )


class CollegeResponse(CamelModel):
    id: uuid.UUID
    name: str
    code: str
    created_at: datetime
