"""Pytest fixtures for testing"""

import uuid
import pytest
from datetime import date
from typing import Generator, List
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session
from cashflow_engine.api.main import create_app
from cashflow_engine.api.dependencies import get_reference_client
from cashflow_engine.infrastructure.database.models import Base
from cashflow_engine.infrastructure.database.session import get_db
from cashflow_engine.domain.models import (
    Category,
    Frequency,
    Installment,
    InstallmentStatus,
    RecurringTransaction,
    Transaction,
    TransactionType,
)


# Test database
TEST_DATABASE_URL = "sqlite:///./test.db"
engine = create_engine(TEST_DATABASE_URL, connect_args={"check_same_thread": False})
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


class StubReferenceClient:
    """Stands in for the category service"""

    def __init__(self, categories: List[Category]):
        self.categories = categories

    async def get_categories(self) -> List[Category]:
        return self.categories


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
def session_factory():
    """Open extra sessions against the test database, e.g. for a competing writer"""
    return TestingSessionLocal


@pytest.fixture
def reference_client() -> StubReferenceClient:
    return StubReferenceClient(
        [
            Category(id="cat-salary", name="Salary", type="INCOME"),
            Category(id="cat-food", name="Food", type="EXPENSE"),
            Category(id="cat-rent", name="Rent", type="EXPENSE"),
        ]
    )


@pytest.fixture
def client(db: Session, reference_client: StubReferenceClient) -> TestClient:
    """Create FastAPI test client with test database"""
    app = create_app()

    def override_get_db():
        try:
            yield db
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_reference_client] = lambda: reference_client
    return TestClient(app)


@pytest.fixture
def make_transaction():
    """Factory for domain Transactions with sensible defaults"""

    def _make(**overrides) -> Transaction:
        fields = dict(
            id=str(uuid.uuid4()),
            description="Groceries",
            amount_cents=5000,
            type=TransactionType.EXPENSE,
            date=date(2025, 3, 10),
            category_id="cat-food",
            user_id="user-1",
        )
        fields.update(overrides)
        return Transaction(**fields)

    return _make


@pytest.fixture
def make_recurring():
    """Factory for a MONTHLY rent template starting 2025-01-15"""

    def _make(**overrides) -> RecurringTransaction:
        fields = dict(
            id=str(uuid.uuid4()),
            description="Rent",
            amount_cents=120000,
            type=TransactionType.EXPENSE,
            frequency=Frequency.MONTHLY,
            start_date=date(2025, 1, 15),
            next_due_date=date(2025, 1, 15),
            category_id="cat-rent",
            user_id="user-1",
        )
        fields.update(overrides)
        return RecurringTransaction(**fields)

    return _make


@pytest.fixture
def make_installment():
    """Factory for a 3-slot plan starting 2025-03-05"""

    def _make(**overrides) -> Installment:
        fields = dict(
            id=str(uuid.uuid4()),
            description="Laptop",
            total_cents=100000,
            installments=3,
            current_installment=0,
            status=InstallmentStatus.ACTIVE,
            start_date=date(2025, 3, 5),
            category_id="cat-food",
            user_id="user-1",
        )
        fields.update(overrides)
        return Installment(**fields)

    return _make
