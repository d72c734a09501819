"""Shared test fixtures for all test modules."""

import contextlib
import os
from datetime import UTC, datetime, timedelta
from decimal import Decimal

# Settings refuse to load without a signing secret.
os.environ.setdefault("JWT_SECRET", "test-jwt-secret")

import pytest
from sqlalchemy import create_engine, text
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

import woofadaar.models  # noqa: F401
from woofadaar.core import database as db_module
from woofadaar.core.database import Base
from woofadaar.models.coupon import CouponType
from woofadaar.repositories.coupon_repository import CouponRepository
from woofadaar.repositories.user_repository import UserRepository
from woofadaar.schemas.coupon import CouponCreate
from woofadaar.schemas.user import UserCreate
from woofadaar.services.token_service import TokenService

# Create an in-memory SQLite engine with StaticPool so all connections
# share the same database state and there are no file-locking issues.
_test_engine = create_engine(
    "sqlite://",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
_TestSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=_test_engine)


@pytest.fixture(autouse=True)
def setup_database():
    """Create tables before each test and truncate all data after.

    Patches the module-level engine and SessionLocal so all application code
    uses the in-memory test database.
    """
    original_engine = db_module.engine
    original_session = db_module.SessionLocal
    db_module.engine = _test_engine
    db_module.SessionLocal = _TestSessionLocal

    Base.metadata.create_all(bind=_test_engine)

    yield

    with _test_engine.connect() as conn:
        conn.execute(text("PRAGMA foreign_keys = OFF"))
        for table in reversed(Base.metadata.sorted_tables):
            with contextlib.suppress(OperationalError):
                conn.execute(table.delete())
        conn.execute(text("PRAGMA foreign_keys = ON"))
        conn.commit()

    db_module.engine = original_engine
    db_module.SessionLocal = original_session


@pytest.fixture
def db_session():
    """Create a database session for direct repository testing."""
    gen = db_module.get_db()
    db = next(gen)
    try:
        yield db
    finally:
        for _ in gen:
            pass


@pytest.fixture
def user(db_session):
    """A regular dog owner account."""
    return UserRepository(db_session).create(
        UserCreate(email="owner@woofadaar.in", name="Asha Owner")
    )


@pytest.fixture
def other_user(db_session):
    """A second regular account."""
    return UserRepository(db_session).create(
        UserCreate(email="second@woofadaar.in", name="Ravi Owner")
    )


@pytest.fixture
def admin_user(db_session):
    """An administrator account."""
    return UserRepository(db_session).create(
        UserCreate(email="admin@woofadaar.in", name="Admin", is_admin=True)
    )


@pytest.fixture
def auth_headers(user):
    """Bearer headers for the regular user."""
    return {"Authorization": f"Bearer {TokenService.generate_token(user.id)}"}


@pytest.fixture
def admin_headers(admin_user):
    """Bearer headers for the administrator."""
    return {"Authorization": f"Bearer {TokenService.generate_token(admin_user.id)}"}


@pytest.fixture
def make_coupon(db_session):
    """Factory creating an active coupon valid from yesterday for thirty days."""

    def _make(code: str = "SAVE20", **overrides):
        now = datetime.now(UTC)
        fields = {
            "code": code,
            "name": f"{code} promotion",
            "coupon_type": CouponType.PERCENTAGE,
            "value": Decimal("20"),
            "valid_from": now - timedelta(days=1),
            "valid_until": now + timedelta(days=30),
        }
        fields.update(overrides)
        return CouponRepository(db_session).create(CouponCreate(**fields), "admin")

    return _make
