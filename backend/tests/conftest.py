"""
Civil Registry Backend - Test Configuration (conftest.py)
==========================================================

What:  Shared pytest fixtures for the entire test suite.
How:   pytest auto-discovers conftest.py and makes fixtures available to all tests.

Fixture Hierarchy:
    Function-scoped (created fresh for each test):
    ├── mock_store:       AsyncMock ResidentStore (no real DB needed)
    ├── fake_qr:          QREncoder that records payloads instead of rendering
    ├── backup_dir:       Temporary directory for export files
    ├── resident_service: ResidentService wired to the mocks above
    ├── make_resident:    Factory for transient Resident rows
    ├── sample_payload:   Create body for "Ana Cruz"
    └── test_client:      HTTPX AsyncClient against a temporary SQLite database
"""

import os
import tempfile
import uuid
from datetime import date, datetime, timezone

# Override settings for testing BEFORE any civil_registry imports
os.environ["DATABASE_URL"] = (
    "sqlite+aiosqlite:///"
    + os.path.join(tempfile.mkdtemp(prefix="registry_test_"), "health.db")
)
os.environ["BACKUP_DIR"] = tempfile.mkdtemp(prefix="registry_backups_")
os.environ["LOG_LEVEL"] = "WARNING"  # Reduce noise during tests

from unittest.mock import AsyncMock

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from civil_registry.database import Base, build_engine, build_session_factory, get_db_session
from civil_registry.models.resident import Resident
from civil_registry.services.backup_service import BackupService, backup_service
from civil_registry.services.identifiers import ResidentIdGenerator
from civil_registry.services.qr_base import QREncoder
from civil_registry.services.resident_service import ResidentService
from civil_registry.services.resident_store import ResidentStore

FAKE_DATA_URI = "data:image/png;base64,ZmFrZS1xcg=="


class FakeQREncoder(QREncoder):
    """Returns a fixed data URI and keeps every payload it was asked to encode."""

    def __init__(self, data_uri: str = FAKE_DATA_URI):
        self.data_uri = data_uri
        self.payloads = []

    async def to_data_url(self, payload: str) -> str:
        self.payloads.append(payload)
        return self.data_uri


# ══════════════════════════════════════════════════════════════════════════
# Service Fixtures
# ══════════════════════════════════════════════════════════════════════════

@pytest.fixture
def mock_store():
    """
    ResidentStore double. `add` and `save` hand the row back with the
    store-assigned fields filled in, as a flush would.
    """
    store = AsyncMock(spec=ResidentStore)

    async def assign_keys(resident):
        now = datetime.now(timezone.utc)
        if resident.id is None:
            resident.id = uuid.uuid4()
        if resident.created_at is None:
            resident.created_at = now
        resident.updated_at = now
        return resident

    store.add.side_effect = assign_keys
    store.save.side_effect = assign_keys
    return store


@pytest.fixture
def fake_qr():
    return FakeQREncoder()


@pytest.fixture
def backup_dir(tmp_path):
    directory = tmp_path / "backups"
    directory.mkdir()
    return directory


@pytest.fixture
def resident_service(mock_store, fake_qr, backup_dir):
    return ResidentService(
        store=mock_store,
        qr_encoder=fake_qr,
        backups=BackupService(str(backup_dir)),
        id_generator=ResidentIdGenerator(prefix="BR", node=7),
    )


@pytest.fixture
def make_resident():
    """Builds a transient Resident as it would come back from the store."""

    def _make(**overrides):
        now = datetime.now(timezone.utc)
        values = {
            "id": uuid.uuid4(),
            "resident_id": "BR17000000000000070000",
            "first_name": "Ana",
            "last_name": "Cruz",
            "middle_name": None,
            "date_of_birth": date(1990, 5, 14),
            "gender": "Female",
            "civil_status": "Single",
            "contact_number": "09171234567",
            "email": None,
            "address": {"street": "Rizal St", "barangay": "San Isidro", "city": "Quezon City"},
            "occupation": None,
            "monthly_income": None,
            "voter_status": False,
            "registration_date": now,
            "qr_code": FAKE_DATA_URI,
            "status": "Active",
            "created_at": now,
            "updated_at": now,
        }
        values.update(overrides)
        return Resident(**values)

    return _make


@pytest.fixture
def sample_payload():
    """Create body with every required field plus an address."""
    return {
        "firstName": "Ana",
        "lastName": "Cruz",
        "dateOfBirth": "1990-05-14",
        "gender": "Female",
        "civilStatus": "Single",
        "contactNumber": "09171234567",
        "address": {"street": "Rizal St", "barangay": "San Isidro", "city": "Quezon City"},
    }


# ══════════════════════════════════════════════════════════════════════════
# API Fixtures
# ══════════════════════════════════════════════════════════════════════════

@pytest_asyncio.fixture
async def test_client(tmp_path, monkeypatch):
    """
    HTTPX AsyncClient talking to the app through ASGITransport.

    Each test gets its own SQLite file with the schema created from the
    ORM metadata, and export files land in the test's tmp_path.
    """
    from civil_registry.main import app

    engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'registry.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    session_factory = build_session_factory(engine)

    async def override_db_session():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db_session] = override_db_session
    monkeypatch.setattr(backup_service, "backup_dir", (tmp_path / "exports").resolve())

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()
    await engine.dispose()
