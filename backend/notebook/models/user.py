"""
User table.

Rows are written by the external auth service at registration; this backend
only reads them to resolve the bearer token's subject into a role and college.
"""

import uuid
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import CheckConstraint, DateTime, ForeignKey, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from notebook.database import Base


class User(Base):
    __tablename__ = "users"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(String(120), nullable=False)
    email: Mapped[str] = mapped_column(String(255), nullable=False, unique=True, index=True)

    # Values: student, teacher, admin. Immutable after registration.
    role: Mapped[str] = mapped_column(String(20), nullable=False, default="student")

    college_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid, ForeignKey("colleges.id", ondelete="SET NULL"), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    __table_args__ = (
        CheckConstraint("role IN ('student', 'teacher', 'admin')", name="ck_users_role"),
    )

    def __repr__(self) -> str:
        return f"<User(id={self.id}, role='{self.role}')>"
