import os

os.environ.setdefault("SCHEDULER_ENABLED", "false")
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ["N8N_WEBHOOK_URL"] = ""
os.environ["FIREBASE_SERVICE_ACCOUNT"] = ""

from datetime import datetime, timedelta

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from config import Base, get_db, get_session_factory
import tables.users, tables.user_sessions, tables.barbers, tables.services
import tables.queue_entries, tables.appointments, tables.services_completed
from main import app
from repository.users import JWTRepo, SessionRepo, pwd_context
from tables.barbers import BarberProfile
from tables.services import Service
from tables.users import Users

PASSWORD = "secret123"


@pytest.fixture(scope="session")
def password_hash():
    return pwd_context.hash(PASSWORD)


@pytest.fixture
def engine():
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
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


class Seed:
    """Handles to the rows every test starts with"""

    def __init__(self, db, password_hash):
        self.barber_user = Users(username="marco", password=password_hash, full_name="Marco Reyes",
                                 email="marco@example.com", is_barber=True)
        self.other_barber_user = Users(username="jun", password=password_hash, full_name="Jun Santos",
                                       email="jun@example.com", is_barber=True)
        self.customer = Users(username="ana", password=password_hash, full_name="Ana Cruz",
                              email="ana@example.com")
        self.other_customer = Users(username="ben", password=password_hash, full_name="Ben Lim",
                                    email="ben@example.com")
        self.admin = Users(username="admin", password=password_hash, full_name="Shop Admin", is_admin=True)
        db.add_all([self.barber_user, self.other_barber_user, self.customer, self.other_customer, self.admin])
        db.flush()

        self.barber = BarberProfile(user_id=self.barber_user.id, full_name="Marco Reyes",
                                    is_available=True, is_active=True)
        self.other_barber = BarberProfile(user_id=self.other_barber_user.id, full_name="Jun Santos",
                                          is_available=True, is_active=True)
        self.haircut = Service(name="Haircut", duration_minutes=30, price=150.0)
        self.beard = Service(name="Haircut + Beard", duration_minutes=45, price=250.0)
        self.retired = Service(name="Perm", duration_minutes=90, price=900.0, is_active=False)
        db.add_all([self.barber, self.other_barber, self.haircut, self.beard, self.retired])
        db.commit()


@pytest.fixture
def seed(db, password_hash):
    return Seed(db, password_hash)


@pytest.fixture
def client(session_factory):
    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_session_factory] = lambda: session_factory
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def auth_headers(db):
    def make(user):
        session = SessionRepo.create_session(db, user, "pytest", "127.0.0.1")
        token = JWTRepo.generate_session_token(session.session_token)
        return {"Authorization": f"Bearer {token}"}
    return make


@pytest.fixture
def tomorrow_at():
    """Naive shop-local datetime on the day after tomorrow, far from any lead-time edge"""
    from utils.shop_time import shop_today

    def make(hour, minute=0):
        day = shop_today() + timedelta(days=2)
        return datetime(day.year, day.month, day.day, hour, minute)
    return make


class RecordingDispatcher:
    """Stand-in for the email/push sink; fails the first ``failures`` calls"""

    def __init__(self, failures=0):
        self.failures = failures
        self.sent = []

    async def notify(self, entry, context):
        from utils.errors import DownstreamFailure

        if self.failures > 0:
            self.failures -= 1
            raise DownstreamFailure("sink unavailable")
        self.sent.append(entry.id)


@pytest.fixture
def dispatcher():
    return RecordingDispatcher()
