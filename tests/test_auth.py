from datetime import datetime, timedelta, timezone

import pytest
from jose import jwt

from hire_ledger.config import get_settings
from hire_ledger.security import create_access_token, decode_token


def test_login_and_me(client, admin, login):
    r = client.post("/auth/login", data={"username": "admin@example.com", "password": "secret123"})
    assert r.status_code == 200
    data = r.json()
    assert "access_token" in data
    assert data["token_type"] == "bearer"
    assert data["user"] == {"id": admin.id, "email": "admin@example.com", "name": "admin", "role": "admin"}

    r2 = client.get("/auth/me", headers=login("admin"))
    assert r2.status_code == 200
    assert r2.json()["email"] == "admin@example.com"
    assert r2.json()["role"] == "admin"


def test_login_invalid_credentials(client, admin):
    r = client.post("/auth/login", data={"username": "admin@example.com", "password": "wrong"})
    assert r.status_code == 401
    assert r.json() == {"detail": {"code": "INVALID_CREDENTIALS", "message": "Invalid credentials"}}
    assert r.headers["www-authenticate"] == "Bearer"


def test_missing_and_bad_token(client):
    r = client.get("/auth/me")
    assert r.status_code == 401
    assert r.json()["detail"]["code"] == "NOT_AUTHENTICATED"

    r = client.get("/auth/me", headers={"Authorization": "Bearer not.a.token"})
    assert r.status_code == 401
    assert r.json()["detail"]["code"] == "INVALID_TOKEN"


def test_disabled_user_token_rejected(client, session, staff, login):
    headers = login("staff@example.com")
    staff.is_active = False
    session.add(staff)
    session.commit()

    r = client.get("/auth/me", headers=headers)
    assert r.status_code == 401
    assert r.json()["detail"]["code"] == "USER_NOT_FOUND"


def test_change_own_password(client, staff, login):
    h = login("staff@example.com")
    r = client.put("/auth/password", json={"current_password": "secret123", "new_password": "changed1"}, headers=h)
    assert r.status_code == 200

    r = client.post("/auth/login", data={"username": "staff@example.com", "password": "changed1"})
    assert r.status_code == 200


def test_token_round_trip():
    token = create_access_token(7, "a@example.com", "manager")
    claims = decode_token(token)
    assert (claims.user_id, claims.email, claims.role) == (7, "a@example.com", "manager")


def test_token_expiry_and_signature():
    now = datetime.now(timezone.utc)
    expired = jwt.encode(
        {"sub": "1", "email": "a@example.com", "role": "staff",
         "iat": int((now - timedelta(days=8)).timestamp()), "exp": int((now - timedelta(days=1)).timestamp())},
        get_settings().secret_key,
        algorithm="HS256",
    )
    with pytest.raises(ValueError):
        decode_token(expired)

    forged = jwt.encode(
        {"sub": "1", "email": "a@example.com", "role": "admin", "exp": int((now + timedelta(days=1)).timestamp())},
        "someone_elses_secret",
        algorithm="HS256",
    )
    with pytest.raises(ValueError):
        decode_token(forged)

    no_role = jwt.encode({"sub": "1", "email": "a@example.com"}, get_settings().secret_key, algorithm="HS256")
    with pytest.raises(ValueError):
        decode_token(no_role)
