"""Test fixtures for the Taskboard backend."""

import os
import tempfile
from collections.abc import Generator
from pathlib import Path

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, event
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")
os.environ.setdefault("RUN_MIGRATIONS_ON_STARTUP", "false")
os.environ.setdefault("STORAGE_BASE_PATH", tempfile.mkdtemp(prefix="taskboard-storage-"))

from app.database import get_db
from app.main import app
from app.models import Base, Task
from app.services.storage import LocalBlobStore, get_blob_store

from .fakes import FakeBlobStore, FakeRecordStore

PUBLIC_BASE_URL = "http://testserver"


# ============================================================================
# Fake Store Fixtures
# ============================================================================


@pytest.fixture
def calls() -> list:
    """Call log shared by the fake record and blob stores."""
    return []


@pytest.fixture
def records(calls) -> FakeRecordStore:
    return FakeRecordStore(calls)


@pytest.fixture
def blobs(calls) -> FakeBlobStore:
    return FakeBlobStore(calls)


# ============================================================================
# Database Fixtures
# ============================================================================


@pytest.fixture(scope="function")
def engine():
    """Create a SQLite in-memory engine for testing."""
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    @event.listens_for(engine, "connect")
    def set_sqlite_pragma(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    Base.metadata.create_all(engine)

    yield engine


@pytest.fixture(scope="function")
def session(engine) -> Generator[Session, None, None]:
    """Create a database session for testing."""
    TestingSessionLocal = sessionmaker(bind=engine, expire_on_commit=False, autoflush=False)
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def blob_store(tmp_path: Path) -> LocalBlobStore:
    return LocalBlobStore(base_path=tmp_path, bucket="task_bk", public_base_url=PUBLIC_BASE_URL)


@pytest.fixture(scope="function")
def client(session: Session, blob_store: LocalBlobStore) -> Generator[TestClient, None, None]:
    """Create a test client with overridden session and storage dependencies."""

    def override_get_db():
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_blob_store] = lambda: blob_store
    with TestClient(app) as client:
        yield client
    app.dependency_overrides.clear()


@pytest.fixture
def task(session: Session) -> Task:
    """Create a test task without an image."""
    task = Task(title="Test Task", detail="Test task detail")
    session.add(task)
    session.commit()
    return task


@pytest.fixture
def task_with_image(session: Session, blob_store: LocalBlobStore) -> Task:
    """Create a test task whose image exists in the blob store."""
    key = "existing-photo.png"
    path = blob_store.path_for(key)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(b"\x89PNG old")

    task = Task(
        title="Task With Image",
        detail="Has a picture",
        image_url=f"{PUBLIC_BASE_URL}/storage/v1/object/public/task_bk/{key}",
    )
    session.add(task)
    session.commit()
    return task
