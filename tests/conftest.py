import pytest
import os
import uuid
from datetime import date
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

# Set env before importing app components
os.environ["APP_ENV"] = "testing"
os.environ["DATABASE_URL"] = "sqlite:///:memory:"

from app.database import Base, get_db
from app.main import app
from app.services.balance_init import initialization_guard
from app.services.leave_cache import balance_version_signal
from fastapi.testclient import TestClient

# SQLite in-memory database configuration
SQLALCHEMY_DATABASE_URL = "sqlite:///:memory:"

engine = create_engine(
    SQLALCHEMY_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture(autouse=True)
def reset_engine_state():
    """Process-wide guard and version counter must not leak between tests."""
    initialization_guard.reset()
    balance_version_signal.reset()
    yield
    initialization_guard.reset()
    balance_version_signal.reset()


@pytest.fixture(scope="function")
def db_session():
    """Fresh schema for each test; services commit freely."""
    Base.metadata.create_all(bind=engine)
    session = TestingSessionLocal()

    yield session

    session.close()
    Base.metadata.drop_all(bind=engine)


@pytest.fixture(scope="function")
def org(db_session):
    """Create a default organization for tests."""
    from app.models.organization import Organization
    org = Organization(
        name="Alpha Corp",
        slug=f"alpha-corp-{uuid.uuid4()}",
        default_region_code="NSW",
    )
    db_session.add(org)
    db_session.commit()
    return org


@pytest.fixture(scope="function")
def nes_policies(db_session, org):
    """Seed the NES default policy set for the organization."""
    from app.services.leave_policy_defaults import seed_nes_defaults
    return seed_nes_defaults(db_session, org.id)


@pytest.fixture(scope="function")
def make_employee(db_session, org):
    """Factory for employees of the default organization."""
    from app.models.employee import Employee

    def _make(
        service_start_date=date(2015, 1, 1),
        employment_type="full_time",
        employment_fraction=1.0,
        standard_hours_per_day=7.6,
        region_code="NSW",
        organization_id=None,
        full_name="Jane Citizen",
    ):
        employee = Employee(
            organization_id=organization_id or org.id,
            full_name=full_name,
            service_start_date=service_start_date,
            employment_type=employment_type,
            employment_fraction=employment_fraction,
            standard_hours_per_day=standard_hours_per_day,
            region_code=region_code,
        )
        db_session.add(employee)
        db_session.commit()
        db_session.refresh(employee)
        return employee

    return _make


@pytest.fixture(scope="function")
def employee(make_employee):
    return make_employee()


@pytest.fixture(scope="function")
def org_headers(org):
    return {"X-Organization-Id": str(org.id)}


@pytest.fixture(scope="function")
def client(db_session):
    """Get a TestClient that uses the test database session via dependency override."""
    def override_get_db():
        try:
            yield db_session
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()
