"""API tests for /auth and session cookie validation."""

from datetime import datetime, timedelta, timezone

import jwt
from httpx import ASGITransport, AsyncClient

from llanogas.core.config import settings
from llanogas.core.deps import COOKIE_NAME
from llanogas.core.security import create_session_token
from llanogas.db.enums import Role
from llanogas.main import app

CSRF = {"X-Requested-With": "XMLHttpRequest"}
PASSWORD = "clave-segura-2025"


def _cookie_client(token: str) -> AsyncClient:
    return AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
        cookies={COOKIE_NAME: token},
        headers=CSRF,
    )


async def test_login_sets_cookie_that_authenticates(client, make_user):
    user = make_user(Role.GESTOR, name="Ana", email="ana@llanogas.com", password=PASSWORD)

    response = await client.post(
        "/auth/login",
        json={"email": "  ANA@llanogas.com ", "password": PASSWORD},
        headers=CSRF,
    )

    assert response.status_code == 200
    assert response.json()["user_id"] == str(user.id)
    assert response.json()["role"] == "GESTOR"
    set_cookie = response.headers["set-cookie"]
    assert set_cookie.startswith(f"{COOKIE_NAME}=")
    assert "HttpOnly" in set_cookie

    token = response.cookies[COOKIE_NAME]
    async with _cookie_client(token) as c:
        me = await c.get("/auth/me")
        cases = await c.get("/cases")

    assert me.status_code == 200
    assert me.json()["email"] == "ana@llanogas.com"
    assert cases.status_code == 200


async def test_login_rejects_bad_credentials(client, make_user):
    make_user(email="ana@llanogas.com", password=PASSWORD)
    make_user(email="inactiva@llanogas.com", password=PASSWORD, is_active=False)
    make_user(email="sin-clave@llanogas.com")

    attempts = [
        {"email": "ana@llanogas.com", "password": "otra-clave"},
        {"email": "nadie@llanogas.com", "password": PASSWORD},
        {"email": "inactiva@llanogas.com", "password": PASSWORD},
        {"email": "sin-clave@llanogas.com", "password": PASSWORD},
    ]
    for payload in attempts:
        response = await client.post("/auth/login", json=payload, headers=CSRF)
        assert response.status_code == 401
        assert response.json()["detail"] == "Credenciales inválidas"
        assert COOKIE_NAME not in response.cookies


async def test_login_requires_csrf_header(client, make_user):
    make_user(email="ana@llanogas.com", password=PASSWORD)

    response = await client.post(
        "/auth/login", json={"email": "ana@llanogas.com", "password": PASSWORD}
    )

    assert response.status_code == 403


async def test_logout_clears_cookie(client_for, manager_user):
    async with client_for(manager_user) as c:
        response = await c.post("/auth/logout")

    assert response.status_code == 200
    assert response.json() == {"status": "logged_out"}
    assert f'{COOKIE_NAME}=""' in response.headers["set-cookie"]


async def test_requests_without_cookie_are_unauthorized(client):
    response = await client.get("/auth/me")
    assert response.status_code == 401


async def test_token_with_malformed_subject_is_unauthorized(api_overrides):
    token = jwt.encode(
        {
            "sub": "no-es-un-uuid",
            "token_version": 1,
            "exp": datetime.now(timezone.utc) + timedelta(hours=1),
        },
        settings.JWT_SECRET,
        algorithm="HS256",
    )

    async with _cookie_client(token) as c:
        response = await c.get("/cases")

    assert response.status_code == 401
    assert response.json()["detail"] == "Sesión inválida"


async def test_revoked_session_is_unauthorized(api_overrides, manager_user, db):
    token = create_session_token(manager_user.id, manager_user.role, manager_user.token_version)
    manager_user.token_version += 1
    db.commit()

    async with _cookie_client(token) as c:
        response = await c.get("/cases")

    assert response.status_code == 401
    assert response.json()["detail"] == "Sesión revocada"
