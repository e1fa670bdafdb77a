import os

os.environ.setdefault("TESTING", "true")

import datetime
import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool
from libris.core.db import Base
from libris.core.models import Department
from libris.core.catalog import AuthorRepository, CatalogRepository
from libris.core.directory import LibrarianDirectory, StudentDirectory
from libris.schemas.author import AuthorCreate
from libris.schemas.book import BookCreate
from libris.schemas.librarian import LibrarianCreate
from libris.schemas.student import StudentCreate


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    try:
        yield engine
    finally:
        Base.metadata.drop_all(engine)
        engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db_session(session_factory):
    session = session_factory()
    Department.seed(session)
    try:
        yield session
    finally:
        session.close()


def _make_student(db, student_id="1cd23is145", name="Asha Rao", email=None, **kwargs):
    email = email or f"{student_id}@cambridge.edu.in"
    return StudentDirectory(db).create(
        StudentCreate(student_id=student_id, name=name, email=email, **kwargs))


def _make_book(db, title="Operating System Concepts", copies=1, **kwargs):
    return CatalogRepository(db).create(BookCreate(title=title, available_copies=copies, **kwargs))


@pytest.fixture
def make_student(db_session):
    return lambda *args, **kwargs: _make_student(db_session, *args, **kwargs)


@pytest.fixture
def make_book(db_session):
    return lambda *args, **kwargs: _make_book(db_session, *args, **kwargs)


@pytest.fixture
def student(db_session):
    return _make_student(db_session)


@pytest.fixture
def librarian(db_session):
    return LibrarianDirectory(db_session).create(
        LibrarianCreate(email="librarian@cambridge.edu.in", name="Meera"))


@pytest.fixture
def author(db_session):
    return AuthorRepository(db_session).create(AuthorCreate(name="Abraham Silberschatz"))


@pytest.fixture
def book(db_session, author):
    return _make_book(db_session, author_id=author.id, publisher="Wiley", year=2018)


@pytest.fixture
def jan():
    """Builds datetimes in January 2024."""
    def build(day, hour=0, minute=0, second=0):
        return datetime.datetime(2024, 1, day, hour, minute, second)
    return build
