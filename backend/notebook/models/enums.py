"""Enumerations shared by ORM models, schemas and the authorization policy."""

import enum


class UserRole(str, enum.Enum):
    STUDENT = "student"
    TEACHER = "teacher"
    ADMIN = "admin"


class NoteType(str, enum.Enum):
    NOTE = "note"
    PASTPAPER = "pastpaper"


class ExamType(str, enum.Enum):
    MIDSEM = "midsem"
    ENDSEM = "endsem"
    QUIZ = "quiz"
    OTHER = "other"


class RequestStatus(str, enum.Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


REVIEWER_ROLES = frozenset({UserRole.TEACHER, UserRole.ADMIN})
