"""
Pytest configuration and fixtures for testing.
"""
import os

# Settings are read at import time
os.environ.setdefault("JWT_SECRET", "test-secret-key")
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["REDIS_URL"] = ""
os.environ["ENVIRONMENT"] = "test"

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.pool import StaticPool

from factory_erp.core.security import create_session_token, hash_password
from factory_erp.db.base import Base
from factory_erp.db.seeds import run_seeds
from factory_erp.db.session import Database
from factory_erp.main import create_app
from factory_erp.models.raw_material import RawMaterial
from factory_erp.models.supplier import Supplier
from factory_erp.models.user import User
from factory_erp.models.user_role import UserRole
from factory_erp.services.cache_service import CacheService
from factory_erp.services.role_service import role_service

DEFAULT_PASSWORD = "secret123"


@pytest.fixture(scope="function")
def database():
    """Fresh in-memory SQLite database shared by the test and the app."""
    database = Database(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    database.connect()
    database.create_all()
    yield database
    if database.engine is not None:
        Base.metadata.drop_all(bind=database.engine)
    database.disconnect()


@pytest.fixture(scope="function")
def db(database):
    session = database.session()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture(scope="function")
def cache():
    return CacheService(redis_url=None)


@pytest.fixture(scope="function")
def app(database, cache):
    return create_app(database=database, cache=cache)


@pytest.fixture(scope="function")
def client(app):
    with TestClient(app) as test_client:
        yield test_client


def make_user(db, email, name="Test User", password=DEFAULT_PASSWORD, roles=(), active=True):
    user = User(
        email=email,
        name=name,
        hashed_password=hash_password(password) if password else None,
        is_active=active,
    )
    db.add(user)
    db.flush()
    for role in roles:
        db.add(UserRole(user_id=user.id, role_id=role.id, is_active=True))
    db.commit()
    db.refresh(user)
    return user


def make_role(db, name, pairs, active=True):
    return role_service.create_role(db, name=name, permissions=list(pairs), active=active)


def auth_headers(user, role="member", roles=()):
    token = create_session_token(
        user_id=user.id,
        email=user.email,
        name=user.name,
        role=role,
        roles=list(roles),
    )
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture(scope="function")
def admin(db):
    """Seeded administrator holding every permission."""
    return run_seeds(db)


@pytest.fixture(scope="function")
def admin_headers(admin):
    return auth_headers(admin, role="مدير النظام", roles=["مدير النظام"])


@pytest.fixture(scope="function")
def approver(db):
    """Second purchasing user so orders are never approved by their creator."""
    role = make_role(
        db,
        "Purchasing Approver",
        [("purchases", "read"), ("purchases", "update")],
    )
    return make_user(db, "approver@example.com", name="Approver", roles=[role])


@pytest.fixture(scope="function")
def approver_headers(approver):
    return auth_headers(approver)


@pytest.fixture(scope="function")
def supplier(db):
    supplier = Supplier(name="Nile Chemicals", contact_person="Omar", phone="0100")
    db.add(supplier)
    db.commit()
    db.refresh(supplier)
    return supplier


@pytest.fixture(scope="function")
def materials(db):
    resin = RawMaterial(name="Resin", unit="kg", quantity=100.0, unit_cost=10.0, minimum_stock=20.0)
    pigment = RawMaterial(name="Pigment", unit="kg", quantity=0.0, unit_cost=0.0, minimum_stock=5.0)
    db.add_all([resin, pigment])
    db.commit()
    db.refresh(resin)
    db.refresh(pigment)
    return resin, pigment
