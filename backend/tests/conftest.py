"""Pytest fixtures for the document lifecycle engine.

Provides reusable test fixtures for:
- In-memory document store, lifecycle service with a fixed clock, template
  and owner settings services
- SQLite database session (tables created and dropped per test)
- FastAPI test client wired to the SQLite database

Usage:
    def test_create(service, owner_id, quotation_data):
        document = service.create(owner_id, DocumentKind.QUOTATION, quotation_data)
        assert document.document_number == "QUO-2025-001"
"""

import os

# Set environment variables BEFORE any imports to ensure they take effect
os.environ["DATABASE_URL"] = "sqlite://"
os.environ.setdefault("LOG_JSON", "false")
os.environ.setdefault("LOG_LEVEL", "WARNING")

from datetime import datetime, timezone
from decimal import Decimal
from typing import Generator
from unittest.mock import Mock
from uuid import UUID, uuid4

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import Session, sessionmaker

from quoteflow.config import Settings
from quoteflow.database import create_db_engine, get_db
from quoteflow.dependencies import get_delivery
from quoteflow.documents.service import DocumentLifecycleService
from quoteflow.domain.documents.ports import DeliveryPort, DeliveryReceipt
from quoteflow.infrastructure.delivery import PdfArtifactRenderer
from quoteflow.infrastructure.repositories import InMemoryDocumentStore, SqlAlchemyDocumentStore
from quoteflow.models import Base
from quoteflow.profiles.service import OwnerProfileService
from quoteflow.templates.service import TemplateService

FIXED_NOW = datetime(2025, 3, 15, 10, 30, tzinfo=timezone.utc)


@pytest.fixture
def owner_id() -> UUID:
    return uuid4()


@pytest.fixture
def other_owner_id() -> UUID:
    return uuid4()


@pytest.fixture
def fixed_now() -> datetime:
    return FIXED_NOW


@pytest.fixture
def settings() -> Settings:
    return Settings(
        DATABASE_URL="sqlite://",
        NUMBERING_MAX_ATTEMPTS=5,
        REVISION_MAX_ATTEMPTS=3,
        DEFAULT_CURRENCY="SAR",
    )


@pytest.fixture
def store() -> InMemoryDocumentStore:
    return InMemoryDocumentStore()


@pytest.fixture
def delivery() -> Mock:
    """Delivery adapter double: real PDF export, successful sends."""
    adapter = Mock(spec=DeliveryPort)
    adapter.export.side_effect = PdfArtifactRenderer().export
    adapter.send.return_value = DeliveryReceipt(success=True, message_id="<test@quoteflow.local>")
    return adapter


@pytest.fixture
def service(store, delivery, settings, fixed_now) -> DocumentLifecycleService:
    return DocumentLifecycleService(store, delivery=delivery, settings=settings, clock=lambda: fixed_now)


@pytest.fixture
def template_service(store) -> TemplateService:
    return TemplateService(store)


@pytest.fixture
def profile_service(store, settings) -> OwnerProfileService:
    return OwnerProfileService(store, settings=settings)


@pytest.fixture
def quotation_data() -> dict:
    """Two lines: (2 × 100) + (1 × 50) = 250."""
    return {
        "client": {"name": "Sara Al-Harbi", "company": "Nakheel Trading", "email": "sara@nakheel.example"},
        "project": {"name": "Office fit-out", "location": "Riyadh"},
        "items": [
            {"description": "Design", "quantity": Decimal("2"), "unit_price": Decimal("100")},
            {"description": "Site visit", "quantity": Decimal("1"), "unit_price": Decimal("50")},
        ],
        "notes": "Prices exclude travel.",
    }


# =============================================================================
# Database fixtures
# =============================================================================

@pytest.fixture
def db_engine():
    """SQLite in-memory engine with all tables created."""
    engine = create_db_engine("sqlite://")
    Base.metadata.create_all(bind=engine)
    try:
        yield engine
    finally:
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture
def db_session(db_engine) -> Generator[Session, None, None]:
    session = sessionmaker(autocommit=False, autoflush=False, bind=db_engine)()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def sql_store(db_session) -> SqlAlchemyDocumentStore:
    return SqlAlchemyDocumentStore(db_session)


@pytest.fixture
def client(db_engine, delivery) -> Generator[TestClient, None, None]:
    """Test client with the database and delivery adapter overridden."""
    from quoteflow.main import app

    testing_session = sessionmaker(autocommit=False, autoflush=False, bind=db_engine)

    def override_get_db():
        db = testing_session()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_delivery] = lambda: delivery

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()


@pytest.fixture
def auth_headers(owner_id) -> dict:
    return {"X-User-ID": str(owner_id)}
