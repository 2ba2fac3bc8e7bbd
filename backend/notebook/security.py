"""
Bearer token handling.

Tokens are issued by the external auth service with a shared HS256 secret and
carry the user id in `sub`. This backend only verifies them; create_access_token
exists for local tooling and tests.
"""

import logging
import uuid
from datetime import datetime, timedelta, timezone
from typing import Optional

from jose import JWTError, jwt

from notebook.config import Settings

logger = logging.getLogger(__name__)

DEFAULT_TOKEN_TTL = timedelta(days=30)


def create_access_token(
    subject: uuid.UUID,
    settings: Settings,
    expires_delta: Optional[timedelta] = None,
) -> str:
    expire = datetime.now(timezone.utc) + (expires_delta or DEFAULT_TOKEN_TTL)
    to_encode = {"sub": str(subject), "exp": expire}
    return jwt.encode(to_encode, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


def decode_token_subject(token: str, settings: Settings) -> Optional[uuid.UUID]:
    """
    Verify a token and return its subject as a user id.

    Returns None for anything unusable: bad signature, expired, missing or
    malformed `sub`.
    """
    try:
        payload = jwt.decode(token, settings.jwt_secret_key, algorithms=[settings.jwt_algorithm])
    except JWTError as e:
        logger.warning("JWT decode error: %s", e)
        return None

    subject = payload.get("sub") or payload.get("id")
    if not subject:
        logger.warning("JWT without subject claim")
        return None
    try:
        return uuid.UUID(str(subject))
    except ValueError:
        logger.warning("JWT subject is not a user id: %r", subject)
        return None
