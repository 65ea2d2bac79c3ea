import os

os.environ.setdefault("BCRYPT_ROUNDS", "4")
os.environ.setdefault("SECRET_KEY", "test-secret")

import mongomock
import pytest
from fastapi.testclient import TestClient

from database import ensure_indexes, get_db
from main import app
from schemas import Role
from security import create_access_token, hash_password

PASSWORD = "Secret@123"


@pytest.fixture(scope="function")
def db():
    """Fresh in-memory database with the production indexes, per test."""
    database = mongomock.MongoClient()["store_ratings_test"]
    ensure_indexes(database)
    yield database


@pytest.fixture(scope="function")
def client(db):
    app.dependency_overrides[get_db] = lambda: db
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
def make_user(db):
    """Insert a user directly and return (id, bearer headers)."""
    def _make(role=Role.NORMAL_USER, email=None, name="Person With A Long Enough Name"):
        email = email or f"{role.value.lower()}{db['user'].count_documents({})}@storehub.io"
        res = db["user"].insert_one({
            "name": name,
            "email": email,
            "address": "12 Market Street",
            "password_hash": hash_password(PASSWORD),
            "role": role.value,
        })
        uid = str(res.inserted_id)
        return uid, {"Authorization": f"Bearer {create_access_token(uid, role.value)}"}
    return _make


@pytest.fixture
def admin(make_user):
    return make_user(Role.SYSTEM_ADMIN, email="admin@storehub.io")


@pytest.fixture
def make_store(client, admin):
    _, headers = admin

    def _make(name, email=None, address="1 High Street", owner_id=None):
        body = {"name": name, "email": email or f"{name.lower().replace(' ', '')}@shops.io", "address": address}
        if owner_id:
            body["owner_id"] = owner_id
        resp = client.post("/api/admin/stores", json=body, headers=headers)
        assert resp.status_code == 201, resp.text
        return resp.json()["id"]
    return _make
