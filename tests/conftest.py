import os

# 就算 .env 不在也能跑；必须在 import hire_ledger 之前设置
os.environ.setdefault("secret_key", "test_secret")
os.environ.setdefault("access_token_expire_minutes", "10080")
os.environ.setdefault("database_url", "sqlite://")

import pytest
from fastapi.testclient import TestClient
from sqlmodel import SQLModel, Session, create_engine
from sqlalchemy.pool import StaticPool

from hire_ledger.main import app
from hire_ledger.db import enable_sqlite_foreign_keys, get_session
from hire_ledger.deps import get_image_store
from hire_ledger.models import CatalogItem, User
from hire_ledger.security import hash_password
from hire_ledger.services.images import LocalImageStore

PASSWORD = "secret123"


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    enable_sqlite_foreign_keys(engine)
    SQLModel.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session(engine):
    with Session(engine) as session:
        yield session


@pytest.fixture
def make_user(session):
    def _make(email: str, role: str = "staff", password: str = PASSWORD, **kwargs) -> User:
        user = User(
            email=email,
            password_hash=hash_password(password),
            name=kwargs.pop("name", email.split("@")[0]),
            role=role,
            **kwargs,
        )
        session.add(user)
        session.commit()
        session.refresh(user)
        return user

    return _make


@pytest.fixture
def admin(make_user):
    return make_user("admin@example.com", "admin", username="admin")


@pytest.fixture
def manager(make_user):
    return make_user("manager@example.com", "manager")


@pytest.fixture
def staff(make_user):
    return make_user("staff@example.com", "staff")


@pytest.fixture
def make_item(session):
    def _make(name: str, is_active: bool = True) -> CatalogItem:
        item = CatalogItem(name=name, is_active=is_active)
        session.add(item)
        session.commit()
        session.refresh(item)
        return item

    return _make


@pytest.fixture
def client(engine, tmp_path):
    def override_get_session():
        with Session(engine) as session:
            yield session

    app.dependency_overrides[get_session] = override_get_session
    app.dependency_overrides[get_image_store] = lambda: LocalImageStore(tmp_path / "images")

    with TestClient(app) as c:
        yield c

    app.dependency_overrides.clear()


@pytest.fixture
def login(client):
    def _login(username: str, password: str = PASSWORD) -> dict:
        r = client.post("/auth/login", data={"username": username, "password": password})
        assert r.status_code == 200, r.text
        return {"Authorization": f"Bearer {r.json()['access_token']}"}

    return _login
