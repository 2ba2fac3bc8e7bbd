"""
College registry.

Colleges are shared reference data: created once, listed by every client,
never edited here.
"""

import logging
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from notebook.exceptions import ValidationError
from notebook.models.college import College

logger = logging.getLogger(__name__)


class CollegeService:
    async def list_colleges(self, db: AsyncSession) -> List[College]:
        result = await db.execute(select(College).order_by(College.name))
        return list(result.scalars().all())

    async def create_college(
        self,
        db: AsyncSession,
        name: Optional[str],
        code: Optional[str],
    ) -> College:
        """
        Register a college.

        Raises:
            ValidationError: blank name/code, or the code is already taken
        """
        name = (name or "").strip()
        code = (code or "").strip()
        if not name or not code:
            raise ValidationError(
                message="College name and code are required",
                context={"missing": {"name": not name, "code": not code}},
            )

        existing = await db.scalar(select(College.id).where(College.code == code))
        if existing is not None:
            raise ValidationError(
                message=f"College with code '{code}' already exists",
                field="code",
            )

        college = College(name=name, code=code)
        db.add(college)
        try:
            await db.commit()
        except IntegrityError:
            # Lost a race with a concurrent insert of the same code
            await db.rollback()
            raise ValidationError(
                message=f"College with code '{code}' already exists",
                field="code",
            )

        logger.info("College %s (%s) created", college.code, college.id)
        return college
