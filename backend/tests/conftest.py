"""
Pytest configuration and fixtures
"""
import os
import sys
import tempfile
from pathlib import Path

import pytest
from sqlalchemy.orm import Session

# Add backend directory to path for imports
backend_dir = Path(__file__).parent.parent
if str(backend_dir) not in sys.path:
    sys.path.insert(0, str(backend_dir))

# Tests run against a throwaway SQLite file unless DATABASE_URL is given explicitly
_test_db_dir = tempfile.mkdtemp(prefix="medkiosk-tests-")
os.environ.setdefault("DATABASE_URL", f"sqlite:///{Path(_test_db_dir) / 'medkiosk.db'}")
os.environ.setdefault("LOG_FILE_ENABLED", "false")
os.environ.setdefault("LOG_FORMAT", "text")
os.environ.setdefault("APP_ENV", "test")

from medkiosk.core.database import Base, get_engine, get_session_local


@pytest.fixture(scope="function")
def db() -> Session:
    """Create a database session on a fresh schema"""
    import medkiosk.models  # noqa: F401

    engine = get_engine()
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)

    session = get_session_local()()
    try:
        yield session
    finally:
        session.rollback()
        session.close()


@pytest.fixture(scope="function")
def client(db: Session):
    """Create test client with database dependency override"""
    from fastapi.testclient import TestClient
    from main import app
    from medkiosk.core.database import get_db

    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def start_session(db: Session):
    """Factory starting a session on a kiosk for a reviewer"""
    from medkiosk.services.session_lifecycle_service import \
        SessionLifecycleService

    def _start(kiosk_id: str = "K1", reviewer_id: str = "doctor-1", name: str = "Jane Roe", age: int = 42):
        return SessionLifecycleService(db).start_session(
            kiosk_id=kiosk_id,
            subject_info={"name": name, "age": age, "phone_number": "+1 555-123-4567"},
            reviewer_id=reviewer_id,
        )

    return _start


@pytest.fixture
def disease_a_reading():
    from medkiosk.services.classifier import Reading
    return Reading(bpm=100, spo2=92, temperature=38.0)


@pytest.fixture
def disease_b_reading():
    from medkiosk.services.classifier import Reading
    return Reading(bpm=60, spo2=98, temperature=35.5)


@pytest.fixture
def normal_reading():
    from medkiosk.services.classifier import Reading
    return Reading(bpm=72, spo2=98, temperature=36.8)
