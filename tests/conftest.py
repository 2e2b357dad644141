import os
import tempfile

# Configure the application before any of its modules are imported
os.environ.setdefault("DATABASE_URL", "sqlite:///" + os.path.join(tempfile.mkdtemp(), "ledger.db"))
os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("BCRYPT_ROUNDS", "4")
os.environ.setdefault("RATE_LIMIT_ENABLED", "false")

from datetime import date
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker

from auth import create_access_token
from database import build_engine, get_db, init_db
from main import app
from schemas import SignupRequest, TokenData
from models import Role
import campaigns
import identity


@pytest.fixture
def engine(tmp_path):
    engine = build_engine(f"sqlite:///{tmp_path / 'ledger.db'}")
    init_db(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autocommit=False, autoflush=False)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def client(session_factory):
    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()


def signup(db, role, email, national_id, first_name="Test", last_name="User", password="secret123"):
    return identity.register(db, SignupRequest(
        email=email,
        national_id=national_id,
        password=password,
        role=role,
        first_name=first_name,
        last_name=last_name,
    ))


@pytest.fixture
def staff_id(db):
    return signup(db, "STAFF", "staff@ngo.org", "111111111111", "Asha", "Rao")


@pytest.fixture
def donor_id(db):
    return signup(db, "DONOR", "donor.a@example.com", "222222222222", "Anil", "Kumar")


@pytest.fixture
def other_donor_id(db):
    return signup(db, "DONOR", "donor.b@example.com", "333333333333", "Bela", "Shah")


@pytest.fixture
def campaign_id(db, staff_id):
    return campaigns.create_campaign(
        db, "Clean Water", Decimal("10000"), date(2026, 1, 1), date(2026, 12, 31), staff_id
    )


def bearer(role: Role, profile_id: str, subject_id: str = "USER_TEST") -> dict:
    token = create_access_token(TokenData(subject_id=subject_id, profile_id=profile_id, role=role))
    return {"Authorization": f"Bearer {token}"}
