"""
Notebook Backend: Shared Schemas
=================================

What:  Base model with camelCase aliases plus the error/health/message shapes
       used by every router.
"""

import uuid
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """
    Base for API schemas.

    - alias_generator: fields serialize as camelCase (FastAPI uses by_alias)
    - populate_by_name: Python code can still construct with snake_case names
    - from_attributes: responses validate directly from ORM objects
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


class UserSummary(CamelModel):
    """Uploader/requester as embedded in note and request payloads."""

    id: uuid.UUID
    name: str
    role: str


class MessageResponse(CamelModel):
    message: str


class ErrorResponse(BaseModel):
    """
    What:  Standardized error body for all API errors.

    Example:
        {
            "error": "invalid_state",
            "message": "Request has already been approved",
            "details": {"status": "approved", "expected": "pending"},
            "request_id": "1f2e3d4c"
        }
    """

    error: str = Field(description="Machine-readable error code")
    message: str = Field(description="Human-readable error description")
    details: Optional[dict] = Field(default=None, description="Additional error context")
    request_id: Optional[str] = Field(default=None, description="Request correlation ID")
    stack: Optional[str] = Field(default=None, description="Stack trace (non-production only)")


class HealthResponse(BaseModel):
    status: str = Field(description="Overall service status: healthy, degraded, unhealthy")
    version: str
    database: str = Field(description="connected or disconnected")
    summarizer: str = Field(description="available, unconfigured, circuit_open")
    storage: str = Field(description="Active File Store backend")
    uptime_seconds: float
