"""Pytest fixtures for testing"""

import pytest
from datetime import date
from decimal import Decimal
from typing import Generator
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session
from royalty_service.api.main import create_app
from royalty_service.config import Settings
from royalty_service.infrastructure.database.models import Base
from royalty_service.infrastructure.database.session import get_db
from royalty_service.domain.models import LedgerEntry


# Test database
TEST_DATABASE_URL = "sqlite:///./test.db"
engine = create_engine(TEST_DATABASE_URL, connect_args={"check_same_thread": False})
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

USER_ID = "user_artist"

DISTROKID_CSV = (
    "Sale Month,Store,Artist,Title,Quantity,Earnings (USD)\n"
    "2024-01,Spotify,Test Artist,Song A,1000,4.50\n"
    "2024-01,Apple Music,Test Artist,Song B,200,1.20\n"
    "2024-02,YouTube Music,Test Artist,Song A,300,0.90\n"
)

TEMPLATE_CSV = (
    "source_type,amount,period_start,period_end,notes\n"
    "pro,120.50,2024-01-01,2024-03-31,ASCAP Q1\n"
    "mlc,15.25,2024-01-01,2024-01-31,\n"
)


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
def settings() -> Settings:
    return Settings(database_url=TEST_DATABASE_URL, gmail_api_base="https://mail.test/gmail/v1/users/me")


@pytest.fixture
def client(db: Session, settings: Settings) -> TestClient:
    """Create FastAPI test client with test database"""
    app = create_app(settings)

    def override_get_db():
        try:
            yield db
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    return TestClient(app)


@pytest.fixture
def auth_headers() -> dict:
    return {"X-User-ID": USER_ID}


@pytest.fixture
def distrokid_csv() -> str:
    return DISTROKID_CSV


@pytest.fixture
def template_csv() -> str:
    return TEMPLATE_CSV


@pytest.fixture
def declining_streaming_ledger() -> list[LedgerEntry]:
    """Five months of streaming income, newest two about 30% below the older three"""
    amounts = [
        (date(2024, 5, 1), "70"),
        (date(2024, 4, 1), "70"),
        (date(2024, 3, 1), "100"),
        (date(2024, 2, 1), "100"),
        (date(2024, 1, 1), "100"),
    ]
    return [
        LedgerEntry(
            source_type="streaming",
            amount=Decimal(amount),
            period_start=start,
            period_end=start,
        )
        for start, amount in amounts
    ]
