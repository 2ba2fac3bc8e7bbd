"""
ORM models.

Importing this package registers every table with Base.metadata, which Alembic
autogenerate and the test fixtures rely on.
"""

from notebook.models.college import College
from notebook.models.note import Note, NoteFieldsMixin
from notebook.models.note_request import NoteRequest
from notebook.models.user import User

__all__ = ["College", "Note", "NoteFieldsMixin", "NoteRequest", "User"]
