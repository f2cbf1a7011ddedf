"""
Shared pytest fixtures.

Every test gets a fresh in-memory SQLite database (one connection shared via
StaticPool), the app's get_db dependency pointed at it, rate limiting off,
and a small reference set: two districts, three wards, two departments.
"""
import os

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("JWT_SECRET", "test-secret-for-nagarseva-suite-0123456789")
os.environ.setdefault("STATE_ADMIN_SECRET", "state-secret")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from auth import create_token, hash_password
from database import Base, get_db
from main import app
from models import Admin, Citizen, Department, District, StateAdmin, Ward
from report_updates import AdminPrincipal
from routers.reports import limiter

PASSWORD = "secret123"
PASSWORD_HASH = hash_password(PASSWORD)

RANCHI_WARD_12 = (23.3441, 85.3096)
RANCHI_WARD_5  = (23.4100, 85.4400)
DHANBAD_WARD_3 = (23.7957, 86.4304)

ROADS  = "Engineering / Roads Department"
WATER  = "Water Supply Department"


@pytest.fixture
def session_factory():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    yield sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)
    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def world(db):
    """Reference data plus one account of each kind."""
    ranchi  = District(name="Ranchi",  secret_key="ranchi-key")
    dhanbad = District(name="Dhanbad", secret_key="dhanbad-key")
    db.add_all([ranchi, dhanbad])
    db.flush()

    db.add_all([
        Ward(district_id=ranchi.id,  ward_no="12", latitude=RANCHI_WARD_12[0], longitude=RANCHI_WARD_12[1]),
        Ward(district_id=ranchi.id,  ward_no="5",  latitude=RANCHI_WARD_5[0],  longitude=RANCHI_WARD_5[1]),
        Ward(district_id=dhanbad.id, ward_no="3",  latitude=DHANBAD_WARD_3[0], longitude=DHANBAD_WARD_3[1]),
    ])
    roads = Department(name=ROADS)
    water = Department(name=WATER)
    db.add_all([roads, water])

    asha  = Citizen(name="Asha",  phone="9000000001", password_hash=PASSWORD_HASH)
    ravi  = Citizen(name="Ravi",  phone="9000000002", password_hash=PASSWORD_HASH)
    db.add_all([asha, ravi])

    ranchi_admin  = Admin(name="R Admin", email="admin@ranchi.in",  password_hash=PASSWORD_HASH, district_id=ranchi.id)
    dhanbad_admin = Admin(name="D Admin", email="admin@dhanbad.in", password_hash=PASSWORD_HASH, district_id=dhanbad.id)
    state_admin   = StateAdmin(name="State", email="state@jh.in", password_hash=PASSWORD_HASH)
    db.add_all([ranchi_admin, dhanbad_admin, state_admin])
    db.commit()

    return {
        "ranchi": ranchi, "dhanbad": dhanbad,
        "roads": roads, "water": water,
        "asha": asha, "ravi": ravi,
        "ranchi_admin": ranchi_admin, "dhanbad_admin": dhanbad_admin,
        "state_admin": state_admin,
        "ranchi_principal":  AdminPrincipal(ranchi_admin.id, ranchi.id, ranchi.name),
        "dhanbad_principal": AdminPrincipal(dhanbad_admin.id, dhanbad.id, dhanbad.name),
    }


@pytest.fixture
def client(session_factory):
    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    limiter.enabled = False
    yield TestClient(app)
    app.dependency_overrides.clear()
    limiter.enabled = True


def bearer(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def headers(world):
    w = world
    return {
        "asha":    bearer(create_token(w["asha"].id, "citizen")),
        "ravi":    bearer(create_token(w["ravi"].id, "citizen")),
        "ranchi":  bearer(create_token(w["ranchi_admin"].id, "admin", w["ranchi"].id, "Ranchi")),
        "dhanbad": bearer(create_token(w["dhanbad_admin"].id, "admin", w["dhanbad"].id, "Dhanbad")),
        "state":   bearer(create_token(w["state_admin"].id, "state_admin")),
    }
