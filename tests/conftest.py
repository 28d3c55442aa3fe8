"""
Shared fixtures.

The app reads its settings at import time, so the environment is pointed at
a throwaway media folder and an in-memory database before ``app.main`` is
imported. Each test gets its own in-memory SQLite database.
"""

import io
import os
import tempfile

os.environ["DATABASE_URL"] = "sqlite://"
os.environ["MEDIA_ROOT"] = tempfile.mkdtemp(prefix="property-media-")
os.environ.setdefault("SECRET_KEY", "test-secret-key")

from datetime import datetime, timedelta

import pytest
from fastapi.testclient import TestClient
from PIL import Image
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.core.config import settings
from app.core.database import get_db, init_db
from app.main import app
from app.models.property import (
    Property,
    PropertyLocation,
    PropertyType,
    TransactionType,
    VerificationStatus,
)
from app.routers.auth import issue_token
from scripts.create_admin import create_user

AGENT_PASSWORD = "agent-password"
ADMIN_PASSWORD = "admin-password"


# =============================================================================
# Database / app
# =============================================================================


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    init_db(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autocommit=False, autoflush=False)


@pytest.fixture
def db_session(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def media_root(tmp_path, monkeypatch):
    monkeypatch.setattr(settings, "MEDIA_ROOT", str(tmp_path))
    return tmp_path


@pytest.fixture
def app_with_db(session_factory, media_root):
    """The FastAPI app wired to the per-test database."""

    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    yield app
    app.dependency_overrides.clear()


@pytest.fixture
def client(app_with_db):
    return TestClient(app_with_db)


# =============================================================================
# Accounts
# =============================================================================


@pytest.fixture
def agent(db_session):
    return create_user(db_session, "Field Agent", "agent@example.com", AGENT_PASSWORD, agent=True)


@pytest.fixture
def other_agent(db_session):
    return create_user(db_session, "Other Agent", "other@example.com", AGENT_PASSWORD, agent=True)


@pytest.fixture
def admin(db_session):
    return create_user(db_session, "Review Admin", "admin@example.com", ADMIN_PASSWORD)


@pytest.fixture
def agent_token(agent):
    return issue_token(agent)


@pytest.fixture
def admin_token(admin):
    return issue_token(admin)


@pytest.fixture
def agent_headers(agent_token):
    return {"Authorization": f"Bearer {agent_token}"}


@pytest.fixture
def admin_headers(admin_token):
    return {"Authorization": f"Bearer {admin_token}"}


# =============================================================================
# Properties and evidence
# =============================================================================


@pytest.fixture
def make_property(db_session, agent):
    """Insert a listing directly, bypassing the upload pipeline."""
    base_time = datetime(2025, 3, 1, 9, 0, 0)
    counter = {"n": 0}

    def _make(**overrides):
        counter["n"] += 1
        city = overrides.pop("city", "Douala")
        country = overrides.pop("country", "Cameroon")
        created_at = overrides.pop("created_at", base_time + timedelta(minutes=counter["n"]))
        fields = dict(
            title=f"Listing {counter['n']}",
            property_type=PropertyType.APARTMENT,
            transaction_type=TransactionType.RENT,
            agent_id=agent.id,
            created_at=created_at,
            updated_at=created_at,
        )
        fields.update(overrides)
        prop = Property(**fields)
        prop.locations.append(PropertyLocation(latitude=4.05, longitude=9.70, city=city, country=country))
        db_session.add(prop)
        db_session.commit()
        db_session.refresh(prop)
        return prop

    return _make


@pytest.fixture
def yellow_property(make_property):
    return make_property(
        verification_status=VerificationStatus.YELLOW,
        admin_feedback="needs better photos",
    )


def make_jpeg(width: int = 8, height: int = 6) -> bytes:
    buffer = io.BytesIO()
    Image.new("RGB", (width, height), (180, 40, 40)).save(buffer, format="JPEG")
    return buffer.getvalue()


PDF_BYTES = b"%PDF-1.4\n1 0 obj << /Type /Catalog >> endobj\ntrailer << /Root 1 0 R >>\n%%EOF\n"


@pytest.fixture
def jpeg_bytes():
    return make_jpeg()


@pytest.fixture
def pdf_bytes():
    return PDF_BYTES
