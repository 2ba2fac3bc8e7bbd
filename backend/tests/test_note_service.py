"""
Notebook Backend: Note Service Tests
=====================================

What:  Tests for NoteService against a real (SQLite) database and a local
       file store.
Why:   Listing filters, upload compensation and deletion are the core of the
       note library.

What we test:
    ✅ Filters are AND-ed; search is case-insensitive over title/subject/description
    ✅ Search text is literal: % and _ are not wildcards
    ✅ College defaults to the caller's; explicit college overrides it
    ✅ Newest first
    ✅ Teacher upload stores the file and persists the note
    ✅ Failed metadata validation deletes the stored file
    ✅ Role checks run before any file is written
    ✅ Delete removes the record even when the file is already gone
    ✅ Download filename → stored reference lookup
"""

import uuid
from datetime import datetime, timezone

import pytest
from sqlalchemy import func, select

from notebook.exceptions import ForbiddenError, NotFoundError, UnsupportedTypeError, ValidationError
from notebook.models.college import College
from notebook.models.note import Note
from notebook.models.note_request import NoteRequest
from notebook.schemas.note import NoteFilter
from notebook.services.note_service import NoteService


def utc(*args):
    return datetime(*args, tzinfo=timezone.utc)


def metadata(**overrides):
    values = {
        "title": "Fluid Mechanics Unit 1",
        "description": "Bernoulli and continuity",
        "subject": "Fluid Mechanics",
        "department": "Mechanical",
        "semester": "3",
        "type": "note",
        "year": "",
        "exam_type": "",
    }
    values.update(overrides)
    return values


def stored_files(file_store):
    return [p for p in file_store.storage_root.rglob("*") if p.is_file()]


async def add_note(db, uploader, created_at, **fields):
    values = {
        "title": "Untitled",
        "description": "",
        "subject": "General",
        "department": "CSE",
        "semester": 1,
        "type": "note",
        "exam_type": "other",
        "file_url": f"2024/01/01/{uuid.uuid4()}.pdf",
        "uploaded_by": uploader.id,
        "college_id": uploader.college_id,
        "created_at": created_at,
    }
    values.update(fields)
    note = Note(**values)
    db.add(note)
    await db.commit()
    return note


class TestListNotes:
    @pytest.fixture
    def service(self, file_store):
        return NoteService(file_store)

    @pytest.mark.asyncio
    async def test_filters_are_combined(self, service, db_session, student, teacher):
        await add_note(db_session, teacher, utc(2024, 1, 1), title="DSA", department="CSE", semester=3)
        await add_note(db_session, teacher, utc(2024, 1, 2), title="OS", department="CSE", semester=5)
        await add_note(db_session, teacher, utc(2024, 1, 3), title="Circuits", department="EEE", semester=3)

        notes = await service.list_notes(
            db_session, student, NoteFilter.from_query(department="CSE", semester="3")
        )
        assert [n.title for n in notes] == ["DSA"]

    @pytest.mark.asyncio
    async def test_search_matches_title_subject_or_description(
        self, service, db_session, student, teacher
    ):
        await add_note(db_session, teacher, utc(2024, 1, 1), title="Graph Theory", subject="Maths")
        await add_note(db_session, teacher, utc(2024, 1, 2), title="Unit 2", subject="GRAPHICS")
        await add_note(
            db_session, teacher, utc(2024, 1, 3), title="Misc", description="bipartite graphs"
        )
        await add_note(db_session, teacher, utc(2024, 1, 4), title="Thermo", subject="Physics")

        notes = await service.list_notes(db_session, student, NoteFilter(search="graph"))
        assert [n.title for n in notes] == ["Misc", "Unit 2", "Graph Theory"]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("search", ["%", "_", "D_tabases", "Unit%1"])
    async def test_search_wildcards_are_literal(self, service, db_session, student, teacher, search):
        await add_note(db_session, teacher, utc(2024, 1, 1), title="Algorithms Unit 1")
        await add_note(db_session, teacher, utc(2024, 1, 2), title="Databases")

        notes = await service.list_notes(db_session, student, NoteFilter(search=search))
        assert notes == []

    @pytest.mark.asyncio
    async def test_search_finds_literal_percent(self, service, db_session, student, teacher):
        await add_note(db_session, teacher, utc(2024, 1, 1), title="Top 10% answers")
        await add_note(db_session, teacher, utc(2024, 1, 2), title="Top 100 answers")

        notes = await service.list_notes(db_session, student, NoteFilter(search="10%"))
        assert [n.title for n in notes] == ["Top 10% answers"]

    @pytest.mark.asyncio
    async def test_newest_first_with_uploader_loaded(self, service, db_session, student, teacher):
        await add_note(db_session, teacher, utc(2023, 5, 1), title="old")
        await add_note(db_session, teacher, utc(2024, 5, 1), title="new")

        notes = await service.list_notes(db_session, student, NoteFilter())
        assert [n.title for n in notes] == ["new", "old"]
        assert notes[0].uploader.name == teacher.name

    @pytest.mark.asyncio
    async def test_college_defaults_to_caller_and_can_be_overridden(
        self, service, db_session, student, teacher
    ):
        other = College(name="Other College", code="OTH")
        db_session.add(other)
        await db_session.commit()

        await add_note(db_session, teacher, utc(2024, 1, 1), title="ours")
        await add_note(db_session, teacher, utc(2024, 1, 2), title="theirs", college_id=other.id)

        own = await service.list_notes(db_session, student, NoteFilter())
        assert [n.title for n in own] == ["ours"]

        foreign = await service.list_notes(
            db_session, student, NoteFilter.from_query(college_id=str(other.id))
        )
        assert [n.title for n in foreign] == ["theirs"]

    @pytest.mark.asyncio
    async def test_type_year_and_exam_type_filters(self, service, db_session, student, teacher):
        await add_note(
            db_session, teacher, utc(2024, 1, 1),
            title="Endsem 2023", type="pastpaper", year=2023, exam_type="endsem",
        )
        await add_note(
            db_session, teacher, utc(2024, 1, 2),
            title="Midsem 2023", type="pastpaper", year=2023, exam_type="midsem",
        )
        await add_note(db_session, teacher, utc(2024, 1, 3), title="Lecture")

        filters = NoteFilter.from_query(type="pastpaper", year="2023", exam_type="endsem")
        notes = await service.list_notes(db_session, student, filters)
        assert [n.title for n in notes] == ["Endsem 2023"]

    def test_blank_filters_are_ignored(self):
        filters = NoteFilter.from_query(semester="", department="  ", search="")
        assert filters.semester is None
        assert filters.department is None
        assert filters.search is None

    def test_garbage_filter_is_a_validation_error(self):
        with pytest.raises(ValidationError, match="semester"):
            NoteFilter.from_query(semester="third")


class TestCreateNote:
    @pytest.fixture
    def service(self, file_store):
        return NoteService(file_store)

    @pytest.mark.asyncio
    async def test_teacher_upload_persists_note(self, service, db_session, teacher, file_store, make_pdf):
        content = make_pdf("Bernoulli")
        note = await service.create_note(
            db_session, teacher, metadata(), content, "application/pdf", "fluids.pdf"
        )

        assert note.id is not None
        assert note.semester == 3
        assert note.type == "note"
        assert note.exam_type == "other"
        assert note.year is None
        assert note.uploaded_by == teacher.id
        assert note.college_id == teacher.college_id
        assert note.uploader is teacher
        fetched = await file_store.fetch(note.file_url)
        assert fetched.content == content

    @pytest.mark.asyncio
    async def test_student_is_refused_before_storing(self, service, db_session, student, file_store, png_bytes):
        with pytest.raises(ForbiddenError, match="Only teachers can upload notes"):
            await service.create_note(db_session, student, metadata(), png_bytes, "image/png")
        assert stored_files(file_store) == []

    @pytest.mark.asyncio
    async def test_missing_file(self, service, db_session, teacher):
        with pytest.raises(ValidationError, match="File is required"):
            await service.create_note(db_session, teacher, metadata(), None, None)

    @pytest.mark.asyncio
    async def test_missing_metadata_removes_stored_file(self, service, db_session, teacher, file_store, png_bytes):
        with pytest.raises(ValidationError) as exc_info:
            await service.create_note(
                db_session, teacher, metadata(title="", semester=None), png_bytes, "image/png"
            )

        assert exc_info.value.message == "Title, subject, department, and semester are required"
        assert exc_info.value.context["missing"] == {
            "title": True,
            "subject": False,
            "department": False,
            "semester": True,
        }
        assert stored_files(file_store) == []
        assert await db_session.scalar(select(func.count(Note.id))) == 0

    @pytest.mark.asyncio
    async def test_out_of_range_semester_removes_stored_file(
        self, service, db_session, teacher, file_store, png_bytes
    ):
        with pytest.raises(ValidationError, match="semester"):
            await service.create_note(db_session, teacher, metadata(semester="9"), png_bytes, "image/png")
        assert stored_files(file_store) == []

    @pytest.mark.asyncio
    async def test_unsupported_type_stores_nothing(self, service, db_session, teacher, file_store):
        with pytest.raises(UnsupportedTypeError):
            await service.create_note(db_session, teacher, metadata(), b"hello", "text/plain")
        assert stored_files(file_store) == []


class TestDeleteNote:
    @pytest.fixture
    def service(self, file_store):
        return NoteService(file_store)

    @pytest.mark.asyncio
    async def test_delete_removes_record_and_file(self, service, db_session, teacher, file_store, png_bytes):
        note = await service.create_note(db_session, teacher, metadata(), png_bytes, "image/png")
        path = file_store.resolve(note.file_url)

        await service.delete_note(db_session, teacher, note.id)

        assert await db_session.get(Note, note.id) is None
        assert not path.exists()

    @pytest.mark.asyncio
    async def test_delete_succeeds_when_file_already_gone(self, service, db_session, teacher):
        note = await add_note(db_session, teacher, utc(2024, 1, 1))
        await service.delete_note(db_session, teacher, note.id)
        assert await db_session.get(Note, note.id) is None

    @pytest.mark.asyncio
    async def test_unknown_note(self, service, db_session, teacher):
        with pytest.raises(NotFoundError):
            await service.delete_note(db_session, teacher, uuid.uuid4())

    @pytest.mark.asyncio
    async def test_student_cannot_delete(self, service, db_session, student, teacher):
        note = await add_note(db_session, teacher, utc(2024, 1, 1))
        with pytest.raises(ForbiddenError):
            await service.delete_note(db_session, student, note.id)
        assert await db_session.get(Note, note.id) is not None


class TestFindReference:
    @pytest.fixture
    def service(self, file_store):
        return NoteService(file_store)

    @pytest.mark.asyncio
    async def test_finds_note_reference(self, service, db_session, teacher):
        note = await add_note(db_session, teacher, utc(2024, 1, 1), file_url="2024/01/01/abc.pdf")
        assert await service.find_reference(db_session, "abc.pdf") == note.file_url

    @pytest.mark.asyncio
    async def test_finds_pending_request_reference(self, service, db_session, student):
        request = NoteRequest(
            title="Pending", subject="Maths", department="CSE", semester=2,
            file_url="2024/02/02/pending.png", requested_by=student.id,
        )
        db_session.add(request)
        await db_session.commit()
        assert await service.find_reference(db_session, "pending.png") == "2024/02/02/pending.png"

    @pytest.mark.asyncio
    async def test_suffix_must_be_a_whole_filename(self, service, db_session, teacher):
        await add_note(db_session, teacher, utc(2024, 1, 1), file_url="2024/01/01/xabc.pdf")
        with pytest.raises(NotFoundError):
            await service.find_reference(db_session, "abc.pdf")

    @pytest.mark.asyncio
    @pytest.mark.parametrize("filename", ["", "01/abc.pdf", "..\\abc.pdf"])
    async def test_path_like_names_rejected(self, service, db_session, filename):
        with pytest.raises(NotFoundError):
            await service.find_reference(db_session, filename)
