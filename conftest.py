import os

# must be set before config.py is imported
os.environ["DATABASE_URL"] = "sqlite:///:memory:"
os.environ["STAFF_API_KEY"] = "test-staff-key"

import pytest
from fastapi.testclient import TestClient

from database import Base, SessionLocal, engine
from repository import DocumentRepository
from security import get_password_hash

STAFF_HEADERS = {"X-Staff-Key": "test-staff-key"}


@pytest.fixture(autouse=True)
def tables():
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def repo(db):
    return DocumentRepository(db)


@pytest.fixture
def client():
    import main

    with TestClient(main.app) as test_client:
        yield test_client


@pytest.fixture
def staff_headers():
    return dict(STAFF_HEADERS)


@pytest.fixture
def make_book(repo):
    def _make(isbn="9780000000001", title="Clean Code", copies=1, **extra):
        data = {"isbn": isbn, "title": title, "available_count": copies, "type": "Novel"}
        data.update(extra)
        return repo.create("books", data)

    return _make


@pytest.fixture
def make_student(repo):
    def _make(usn="1AB21CS001", name="Asha Rao", email="asha@example.com", password="secret", **extra):
        data = {
            "usn": usn,
            "name": name,
            "email": email,
            "hashed_password": get_password_hash(password),
            "branch": "CSE",
            "department": "Engineering",
            "batch": "2021",
        }
        data.update(extra)
        return repo.create("students", data)

    return _make
