"""Initial schema: colleges, users, notes, note_requests

Revision ID: 001
Revises: None
Create Date: 2025-01-20 00:00:00.000000+00:00

Rollback: downgrade() drops all four tables (destructive).
"""

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _note_fields():
    """Descriptive columns shared by notes and note_requests."""
    return [
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("description", sa.Text(), nullable=False, server_default=sa.text("''")),
        sa.Column("subject", sa.String(120), nullable=False),
        sa.Column("department", sa.String(120), nullable=False),
        sa.Column("semester", sa.Integer(), nullable=False),
        sa.Column("type", sa.String(20), nullable=False, server_default="note"),
        sa.Column("year", sa.Integer(), nullable=True),
        sa.Column("exam_type", sa.String(20), nullable=False, server_default="other"),
        sa.Column("file_url", sa.String(500), nullable=False, comment="Opaque File Store reference"),
    ]


def upgrade() -> None:
    op.create_table(
        "colleges",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("code", sa.String(50), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )
    op.create_index("ix_colleges_code", "colleges", ["code"], unique=True)

    op.create_table(
        "users",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("name", sa.String(120), nullable=False),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("role", sa.String(20), nullable=False, server_default="student"),
        sa.Column(
            "college_id",
            sa.Uuid(),
            sa.ForeignKey("colleges.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.CheckConstraint("role IN ('student', 'teacher', 'admin')", name="ck_users_role"),
    )
    op.create_index("ix_users_email", "users", ["email"], unique=True)

    op.create_table(
        "notes",
        sa.Column("id", sa.Uuid(), primary_key=True),
        *_note_fields(),
        sa.Column("uploaded_by", sa.Uuid(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column(
            "college_id",
            sa.Uuid(),
            sa.ForeignKey("colleges.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.CheckConstraint("semester BETWEEN 1 AND 8", name="ck_notes_semester"),
    )
    op.create_index("idx_notes_created_at", "notes", [sa.text("created_at DESC")])
    op.create_index(
        "idx_notes_college_department_semester",
        "notes",
        ["college_id", "department", "semester"],
    )

    op.create_table(
        "note_requests",
        sa.Column("id", sa.Uuid(), primary_key=True),
        *_note_fields(),
        sa.Column("status", sa.String(20), nullable=False, server_default="pending"),
        sa.Column("requested_by", sa.Uuid(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column(
            "college_id",
            sa.Uuid(),
            sa.ForeignKey("colleges.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("teacher_message", sa.Text(), nullable=True),
        sa.Column("reviewed_by", sa.Uuid(), sa.ForeignKey("users.id"), nullable=True),
        sa.Column("reviewed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column(
            "note_id",
            sa.Uuid(),
            sa.ForeignKey("notes.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.CheckConstraint(
            "status IN ('pending', 'approved', 'rejected')",
            name="ck_note_requests_status",
        ),
        sa.CheckConstraint("semester BETWEEN 1 AND 8", name="ck_note_requests_semester"),
    )
    op.create_index(
        "idx_note_requests_status_created_at",
        "note_requests",
        ["status", sa.text("created_at DESC")],
    )
    op.create_index("idx_note_requests_requested_by", "note_requests", ["requested_by"])


def downgrade() -> None:
    op.drop_table("note_requests")
    op.drop_table("notes")
    op.drop_table("users")
    op.drop_table("colleges")
