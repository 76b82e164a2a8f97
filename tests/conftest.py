"""
Pytest configuration and shared fixtures for the booking backend tests.
"""

import datetime
from decimal import Decimal

import pytest
from flask import Flask

from main import create_app
from slotbook.auth import AuthContext, hash_password, issue_token
from slotbook.config import is_production_database
from slotbook.extensions import db as database
from slotbook.models import (
    WEEKDAYS,
    AuthUser,
    Base,
    Business,
    Employee,
    EmployeeSchedule,
    Service,
)


@pytest.fixture(scope="session")
def app(tmp_path_factory):
    """Create and configure a test app instance backed by a throwaway SQLite file."""
    db_file = tmp_path_factory.mktemp("db") / "slotbook_test.db"
    test_db_url = f"sqlite:///{db_file}"

    # Safety check
    if is_production_database(test_db_url):
        pytest.exit(f"Database URL appears to be production: {test_db_url}")

    app = create_app(
        {
            "TESTING": True,
            "SQLALCHEMY_DATABASE_URI": test_db_url,
            "SECRET_KEY": "test-secret-key-for-testing-only",
            "SCHEDULER_ENABLED": False,
            "APPROVAL_POLICY": "BOTH",
            "SLOT_GRANULARITY_MINUTES": 30,
            # worker threads in the concurrency tests share the file database
            "SQLALCHEMY_ENGINE_OPTIONS": {
                "connect_args": {"check_same_thread": False, "timeout": 30}
            },
        }
    )
    yield app


@pytest.fixture(scope="session")
def db(app: Flask):
    """Create the schema once for the whole run."""
    with app.app_context():
        Base.metadata.drop_all(bind=database.engine)
        Base.metadata.create_all(bind=database.engine)

        yield database

        database.session.remove()
        Base.metadata.drop_all(bind=database.engine)


@pytest.fixture
def db_session(app, db):
    """
    A session inside an app context; every table is emptied afterwards.

    The core commits its own transactions, so tests clean up by deleting rows
    rather than rolling back an outer transaction.
    """
    with app.app_context():
        yield database.session

        database.session.rollback()
        for table in reversed(Base.metadata.sorted_tables):
            database.session.execute(table.delete())
        database.session.commit()
        database.session.remove()


@pytest.fixture
def client(app, db_session):
    return app.test_client()


# ---------------------------------------------------------------------------
# Seed data
# ---------------------------------------------------------------------------


def make_user(session, email, role, password="password123", full_name="Test User"):
    user = AuthUser(
        email=email,
        password_hash=hash_password(password),
        full_name=full_name,
        role=role,
        email_verified=True,
    )
    session.add(user)
    session.commit()
    return user


@pytest.fixture
def owner_user(db_session):
    return make_user(db_session, "owner@example.com", "BUSINESS_OWNER", "ownerpass123", "Olivia Owner")


@pytest.fixture
def customer_user(db_session):
    return make_user(db_session, "customer@example.com", "CUSTOMER", full_name="Carl Customer")


@pytest.fixture
def other_customer(db_session):
    return make_user(db_session, "other@example.com", "CUSTOMER", full_name="Olga Other")


@pytest.fixture
def staff_user(db_session):
    return make_user(db_session, "staff@example.com", "STAFF", full_name="Sam Staff")


@pytest.fixture
def business(db_session, owner_user):
    business = Business(
        owner_id=owner_user.id,
        name="Test Studio",
        description="Cuts and colour",
        category="BEAUTY",
        business_type="SALON",
        address="123 Test St",
        city="Newark",
        phone="123-456-7890",
    )
    db_session.add(business)
    db_session.commit()
    return business


@pytest.fixture
def service(db_session, business):
    service = Service(
        business_id=business.id, name="Haircut", duration=60, price=Decimal("50.00")
    )
    db_session.add(service)
    db_session.commit()
    return service


@pytest.fixture
def short_service(db_session, business):
    service = Service(
        business_id=business.id, name="Beard trim", duration=30, price=Decimal("20.00")
    )
    db_session.add(service)
    db_session.commit()
    return service


def add_employee(session, business, name, email, user=None, start="09:00", end="17:00"):
    """Employee working every day of the week between ``start`` and ``end``."""
    employee = Employee(
        business_id=business.id,
        user_id=user.id if user else None,
        name=name,
        email=email,
    )
    for day in WEEKDAYS:
        employee.schedule.append(
            EmployeeSchedule(
                day_of_week=day,
                start_time=datetime.time.fromisoformat(start),
                end_time=datetime.time.fromisoformat(end),
                is_available=True,
            )
        )
    session.add(employee)
    session.commit()
    return employee


@pytest.fixture
def employee(db_session, business, staff_user):
    return add_employee(db_session, business, "Sam Staff", "staff@example.com", staff_user)


@pytest.fixture
def second_employee(db_session, business):
    return add_employee(db_session, business, "Eve Extra", "eve@example.com")


# ---------------------------------------------------------------------------
# Auth helpers
# ---------------------------------------------------------------------------


def actor(user):
    return AuthContext(user_id=user.id, role=user.role, email=user.email)


@pytest.fixture
def owner(owner_user):
    return actor(owner_user)


@pytest.fixture
def customer(customer_user):
    return actor(customer_user)


@pytest.fixture
def staff(staff_user):
    return actor(staff_user)


@pytest.fixture
def headers_for(db_session):
    """Build an Authorization header for a user."""

    def _headers(user):
        return {"Authorization": f"Bearer {issue_token(user)}"}

    return _headers


# ---------------------------------------------------------------------------
# Dates
# ---------------------------------------------------------------------------


@pytest.fixture
def booking_day():
    """A day far enough ahead that 'now' never cuts into its slots."""
    return datetime.date.today() + datetime.timedelta(days=30)


def at(day, hhmm):
    return datetime.datetime.combine(day, datetime.time.fromisoformat(hhmm))
