"""
Pytest configuration and shared fixtures.

Every test gets its own SQLite file (via aiosqlite) with the full schema and the
default story seeded. ``db`` is a session for calling services directly;
``client`` drives the FastAPI app with ``get_db`` pointed at the same file.
"""
import os
import secrets

# Must be set before cosmicds is imported: the module-level engine reads it.
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///./.pytest-cosmicds.db")

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker

from cosmicds import models
from cosmicds.database import Base, get_db, seed_default_story
from cosmicds.main import app
from cosmicds.utils import hash_password


def pytest_configure(config):
    """Configure pytest markers."""
    config.addinivalue_line("markers", "api: tests that drive the HTTP routes")


@pytest_asyncio.fixture
async def engine(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'cosmicds.db'}")

    # SQLite leaves FK checks (and ON DELETE CASCADE) off unless asked per connection
    @event.listens_for(engine.sync_engine, "connect")
    def _enable_foreign_keys(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def session_maker(engine):
    maker = sessionmaker(engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)
    async with maker() as session:
        await seed_default_story(session)
    return maker


@pytest_asyncio.fixture
async def db(session_maker):
    async with session_maker() as session:
        yield session


@pytest_asyncio.fixture
async def client(session_maker):
    async def _get_test_db():
        async with session_maker() as session:
            yield session

    app.dependency_overrides[get_db] = _get_test_db
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


# ---------------------------------------------
# Row factories
# ---------------------------------------------
@pytest.fixture
def make_student(db):
    """Insert a student directly, bypassing sign-up."""
    async def _make(username="ada", email=None, password="hunter2", verified=True):
        student = models.Student(
            username=username,
            email=email or f"{username}@example.org",
            password=hash_password(password),
            verified=verified,
            verification_code=secrets.token_hex(8),
            visits=0,
        )
        db.add(student)
        await db.commit()
        return student

    return _make


@pytest.fixture
def make_educator(db):
    async def _make(first_name="Edwin", last_name="Hubble", email=None, password="hunter2", verified=True):
        educator = models.Educator(
            first_name=first_name,
            last_name=last_name,
            email=email or f"{first_name.lower()}@example.edu",
            password=hash_password(password),
            verified=verified,
            verification_code=secrets.token_hex(8),
            visits=0,
        )
        db.add(educator)
        await db.commit()
        return educator

    return _make


@pytest.fixture
def make_class(db):
    async def _make(educator, name="Astro 101", code=None, students=()):
        cls = models.Class(educator_id=educator.id, name=name, code=code or secrets.token_hex(4).upper())
        db.add(cls)
        await db.commit()
        for student in students:
            db.add(models.StudentClass(student_id=student.id, class_id=cls.id))
        db.add(models.ClassStory(class_id=cls.id, story_name="hubbles_law"))
        await db.commit()
        return cls

    return _make


@pytest.fixture
def make_galaxy(db):
    async def _make(name="NGC4889.fits", type="E", is_sample=False, is_bad=False):
        galaxy = models.Galaxy(name=name, type=type, ra=195.03, decl=27.98, z=0.0217, is_sample=is_sample, is_bad=is_bad)
        db.add(galaxy)
        await db.commit()
        return galaxy

    return _make
