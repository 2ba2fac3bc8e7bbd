"""
Notebook Backend: Test Configuration (conftest.py)
===================================================

What:  Shared pytest fixtures for the entire test suite.
How:   A throwaway SQLite database (aiosqlite) per test, a LocalFileStore in
       tmp_path, a fake summarizer, and an HTTPX client wired to a fresh app.

Fixture Hierarchy (all function-scoped):
    test_settings
    ├── engine → session_factory → db_session
    │                            └── college, student, teacher, admin
    ├── file_store (LocalFileStore under tmp_path)
    ├── fake_summarizer
    └── app → client
"""

import os
import tempfile
import uuid
from typing import AsyncGenerator, Callable, Dict, List, Optional

# Override settings for testing BEFORE any app imports
# notebook.main builds its module-level app from the environment on import
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("GEMINI_API_KEY", "test-key-not-real")
os.environ.setdefault("STORAGE_ROOT", tempfile.mkdtemp(prefix="notebook_test_"))
os.environ.setdefault("LOG_LEVEL", "WARNING")

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

import notebook.models  # noqa: F401
from notebook.config import Settings
from notebook.database import Base, create_session_factory
from notebook.models.college import College
from notebook.models.user import User
from notebook.security import create_access_token
from notebook.services.file_store import LocalFileStore
from notebook.services.llm_base import LLMService


# ══════════════════════════════════════════════════════════════════════════
# Test doubles and builders
# ══════════════════════════════════════════════════════════════════════════


class FakeSummarizer(LLMService):
    """Records what it was asked to summarize and answers with a canned summary."""

    def __init__(self, summary: str = "- Key point one\n- Key point two"):
        self.summary = summary
        self.calls: List[str] = []

    async def summarize_text(self, text: str) -> str:
        self.calls.append(text)
        return self.summary

    async def health_check(self) -> bool:
        return True


def _pdf_escape(text: str) -> str:
    return text.replace("\\", "\\\\").replace("(", "\\(").replace(")", "\\)")


def build_pdf(pages: List[Optional[str]]) -> bytes:
    """
    Build a minimal, valid PDF with one text line per page.

    A page given as None or "" has an empty content stream, which is what an
    image-only scan looks like to a text extractor.
    """
    page_ids = [4 + 2 * i for i in range(len(pages))]
    objects: Dict[int, bytes] = {
        1: b"<< /Type /Catalog /Pages 2 0 R >>",
        2: (
            "<< /Type /Pages /Kids [%s] /Count %d >>"
            % (" ".join(f"{pid} 0 R" for pid in page_ids), len(pages))
        ).encode(),
        3: b"<< /Type /Font /Subtype /Type1 /BaseFont /Helvetica >>",
    }
    for pid, text in zip(page_ids, pages):
        stream = f"BT /F1 12 Tf 72 720 Td ({_pdf_escape(text)}) Tj ET".encode() if text else b""
        objects[pid] = (
            "<< /Type /Page /Parent 2 0 R /MediaBox [0 0 612 792] "
            "/Resources << /Font << /F1 3 0 R >> >> /Contents %d 0 R >>" % (pid + 1)
        ).encode()
        objects[pid + 1] = (
            b"<< /Length %d >>\nstream\n" % len(stream) + stream + b"\nendstream"
        )

    out = bytearray(b"%PDF-1.4\n")
    offsets: Dict[int, int] = {}
    for oid in sorted(objects):
        offsets[oid] = len(out)
        out += f"{oid} 0 obj\n".encode() + objects[oid] + b"\nendobj\n"

    xref_pos = len(out)
    size = max(objects) + 1
    out += f"xref\n0 {size}\n".encode()
    out += b"0000000000 65535 f \n"
    for oid in range(1, size):
        out += f"{offsets[oid]:010d} 00000 n \n".encode()
    out += f"trailer\n<< /Size {size} /Root 1 0 R >>\nstartxref\n{xref_pos}\n%%EOF\n".encode()
    return bytes(out)


# Minimal PNG: signature + IHDR chunk (contents are never decoded)
PNG_BYTES = b"\x89PNG\r\n\x1a\n\x00\x00\x00\rIHDR\x00\x00\x00\x01\x00\x00\x00\x01\x08\x06\x00\x00\x00"


# ══════════════════════════════════════════════════════════════════════════
# Settings, database and services
# ══════════════════════════════════════════════════════════════════════════


@pytest.fixture
def test_settings(tmp_path) -> Settings:
    return Settings(
        _env_file=None,
        environment="test",
        database_url=f"sqlite+aiosqlite:///{tmp_path / 'test.db'}",
        gemini_api_key="test-key-not-real",
        storage_backend="local",
        storage_root=str(tmp_path / "uploads"),
        jwt_secret_key="test-secret",
        log_level="WARNING",
        retry_max_attempts=2,
        retry_min_wait=0,
        retry_max_wait=1,
        file_delete_attempts=2,
    )


@pytest_asyncio.fixture
async def engine(test_settings):
    """File-backed SQLite so separate sessions really use separate connections."""
    engine = create_async_engine(test_settings.database_url)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine) -> async_sessionmaker[AsyncSession]:
    return create_session_factory(engine)


@pytest_asyncio.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest.fixture
def file_store(test_settings) -> LocalFileStore:
    return LocalFileStore(test_settings)


@pytest.fixture
def fake_summarizer() -> FakeSummarizer:
    return FakeSummarizer()


# ══════════════════════════════════════════════════════════════════════════
# Seed data
# ══════════════════════════════════════════════════════════════════════════


async def _add_user(session: AsyncSession, name: str, role: str, college_id) -> User:
    user = User(
        name=name,
        email=f"{name.lower().replace(' ', '.')}.{uuid.uuid4().hex[:6]}@college.test",
        role=role,
        college_id=college_id,
    )
    session.add(user)
    await session.commit()
    return user


@pytest_asyncio.fixture
async def college(db_session) -> College:
    college = College(name="Institute of Engineering", code="IOE")
    db_session.add(college)
    await db_session.commit()
    return college


@pytest_asyncio.fixture
async def student(db_session, college) -> User:
    return await _add_user(db_session, "Sam Student", "student", college.id)


@pytest_asyncio.fixture
async def teacher(db_session, college) -> User:
    return await _add_user(db_session, "Tara Teacher", "teacher", college.id)


@pytest_asyncio.fixture
async def admin(db_session, college) -> User:
    return await _add_user(db_session, "Ada Admin", "admin", college.id)


@pytest.fixture
def make_pdf() -> Callable[..., bytes]:
    """Usage: make_pdf("page one text", "page two text")"""
    return lambda *pages: build_pdf(list(pages))


@pytest.fixture
def png_bytes() -> bytes:
    return PNG_BYTES


# ══════════════════════════════════════════════════════════════════════════
# Application and HTTP client
# ══════════════════════════════════════════════════════════════════════════


@pytest_asyncio.fixture
async def app(test_settings, engine, session_factory, file_store, fake_summarizer):
    """
    A fresh app whose engine, file store and summarizer are the test ones.
    """
    from notebook.main import create_app

    application = create_app(test_settings)
    await application.state.engine.dispose()
    application.state.engine = engine
    application.state.session_factory = session_factory
    application.state.file_store = file_store
    application.state.summarizer = fake_summarizer
    return application


@pytest_asyncio.fixture
async def client(app) -> AsyncGenerator[AsyncClient, None]:
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


@pytest.fixture
def auth_headers(test_settings) -> Callable[[User], Dict[str, str]]:
    def _headers(user: User) -> Dict[str, str]:
        token = create_access_token(user.id, test_settings)
        return {"Authorization": f"Bearer {token}"}

    return _headers
