# backend/modules/seating/tests/conftest.py

import pytest
from datetime import datetime
from typing import Generator
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import StaticPool
from fastapi.testclient import TestClient

from core.database import Base, get_db
from tests.factories import ALL_FACTORIES
from ..services.seating_store import SQLAlchemySeatingStore
from ..services.table_status_service import table_status_service


@pytest.fixture
def now() -> datetime:
    """Fixed Saturday dinner-service clock (naive UTC)"""
    return datetime(2024, 6, 1, 19, 0)


@pytest.fixture(autouse=True)
def clear_table_status_cache():
    table_status_service.clear_cache()
    yield
    table_status_service.clear_cache()


@pytest.fixture
def engine():
    """Fresh in-memory database per test."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def db_session(engine) -> Generator[Session, None, None]:
    """Create a test database session and bind the factories to it."""
    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    session = TestingSessionLocal()
    for factory in ALL_FACTORIES:
        factory.bind_session(session)

    yield session

    for factory in ALL_FACTORIES:
        factory.reset_session()
    session.close()


@pytest.fixture
def store(db_session: Session) -> SQLAlchemySeatingStore:
    return SQLAlchemySeatingStore(db_session)


@pytest.fixture
def client(db_session: Session):
    """Create a test client."""
    from app.main import app

    def _override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = _override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()
