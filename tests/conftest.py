"""Pytest fixtures for testing"""

import uuid
import pytest
from datetime import date, time
from typing import Generator, List
from unittest.mock import AsyncMock, patch
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session
from land_ledger.api.main import create_app
from land_ledger.infrastructure.database.models import Base
from land_ledger.infrastructure.database.session import get_db
from land_ledger.domain.models import Cadence, Installment, RecurringTemplate
from land_ledger.utils.date_utils import add_months


# Test database
TEST_DATABASE_URL = "sqlite:///./test_land_ledger.db"
engine = create_engine(TEST_DATABASE_URL, connect_args={"check_same_thread": False})
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db() -> Generator[Session, None, None]:
    """Create test database and session"""
    Base.metadata.create_all(bind=engine)
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def session_factory(db: Session) -> sessionmaker:
    """Extra sessions on the test database, for concurrent workers"""
    return TestingSessionLocal


@pytest.fixture
def audit_events() -> Generator[AsyncMock, None, None]:
    """Capture audit webhook deliveries instead of sending them"""
    with patch(
        "land_ledger.infrastructure.clients.audit.AuditClient.send_event",
        new_callable=AsyncMock,
    ) as mock_send:
        yield mock_send


@pytest.fixture
def client(db: Session, audit_events: AsyncMock) -> TestClient:
    """Create FastAPI test client with test database"""
    app = create_app()

    def override_get_db():
        try:
            yield db
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    return TestClient(app)


def make_installments(sale_id: uuid.UUID, amounts: List[int], start: date = date(2024, 1, 15)) -> List[Installment]:
    """Domain installments due monthly from start"""
    return [
        Installment(
            id=uuid.uuid4(),
            sale_id=sale_id,
            sequence=i,
            due_date=add_months(start, i - 1),
            amount_due_cents=amount,
        )
        for i, amount in enumerate(amounts, start=1)
    ]


@pytest.fixture
def installment_factory():
    """Build a sale's domain installments from a list of amounts"""
    return make_installments


@pytest.fixture
def three_installments() -> List[Installment]:
    """Sale with installments [100, 100, 100]"""
    return make_installments(uuid.uuid4(), [100, 100, 100])


@pytest.fixture
def monthly_rent_template() -> RecurringTemplate:
    """Monthly expense on the 1st at 08:00, next occurrence 2024-01-01"""
    return RecurringTemplate(
        id=uuid.uuid4(),
        name="Office rent",
        cadence=Cadence.MONTHLY,
        anchor=1,
        anchor_time=time(8, 0),
        amount_cents=50000,
        is_revenue=False,
        next_occurrence=date(2024, 1, 1),
    )
