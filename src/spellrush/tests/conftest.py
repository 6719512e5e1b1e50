"""Test configuration."""
import os
import tempfile
from typing import Generator

import pytest

# Set test environment before any imports
os.environ["ENV"] = "test"
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["NARRATION_ENABLED"] = "false"
os.environ.setdefault("DATA_DIR", tempfile.mkdtemp(prefix="spellrush-test-"))

# Import after environment setup
from sqlalchemy.orm import Session  # noqa: E402

from spellrush.config import ensure_directories  # noqa: E402
from spellrush.models.base import Base, SessionLocal, engine, init_db  # noqa: E402
from spellrush.services.storage_service import StorageService  # noqa: E402


@pytest.fixture(autouse=True)
def setup_test_environment():
    """Set up test environment before each test."""
    ensure_directories()
    yield


@pytest.fixture
def db() -> Generator[Session, None, None]:
    """Create a fresh database session for each test."""
    init_db()
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def storage(db: Session) -> StorageService:
    """Create a storage service instance."""
    return StorageService(db)
