"""API tests for /users administration."""

import pytest

from llanogas.core.exceptions import ConflictError, ValidationError
from llanogas.core.security import verify_password
from llanogas.db.enums import Role
from llanogas.db.models import User
from llanogas.services import user_service

NEW_USER = {
    "name": "Carlos Pérez",
    "email": "Carlos.Perez@llanogas.com",
    "password": "clave-segura-2025",
    "role": "REVISOR_JURIDICO",
    "position": "Abogado",
    "process": "Jurídica",
}


async def test_user_admin_is_system_admin_only(client_for, manager_user, make_user):
    assignments_admin = make_user(Role.ADMINISTRADOR_ASIGNACIONES)

    for user in (manager_user, assignments_admin):
        async with client_for(user) as c:
            assert (await c.get("/users")).status_code == 403
            assert (await c.post("/users", json=NEW_USER)).status_code == 403


async def test_create_and_list_users(client_for, admin_user, db):
    async with client_for(admin_user) as c:
        created = await c.post("/users", json=NEW_USER)
        duplicate = await c.post("/users", json=NEW_USER)
        listing = await c.get("/users")

    assert created.status_code == 201
    body = created.json()
    assert body["email"] == "carlos.perez@llanogas.com"
    assert body["role"] == "REVISOR_JURIDICO"
    assert body["position"] == "Abogado"
    assert body["is_active"] is True
    assert "password" not in body and "password_hash" not in body

    assert duplicate.status_code == 409
    assert duplicate.json()["detail"] == "Ya existe un usuario con este email"

    assert listing.status_code == 200
    assert {u["email"] for u in listing.json()} >= {"carlos.perez@llanogas.com", admin_user.email}

    stored = db.query(User).filter(User.email == "carlos.perez@llanogas.com").one()
    assert stored.password_hash != NEW_USER["password"]
    assert verify_password(NEW_USER["password"], stored.password_hash)


async def test_create_user_validates_payload(client_for, admin_user):
    async with client_for(admin_user) as c:
        short_password = await c.post("/users", json={**NEW_USER, "password": "corta"})
        bad_role = await c.post("/users", json={**NEW_USER, "role": "SUPERUSUARIO"})
        bad_email = await c.post("/users", json={**NEW_USER, "email": "no-es-email"})

    assert short_password.status_code == 422
    assert bad_role.status_code == 422
    assert bad_email.status_code == 422


async def test_update_role_revokes_sessions(client_for, admin_user, manager_user, db):
    old_version = manager_user.token_version

    async with client_for(admin_user) as c:
        response = await c.patch(
            f"/users/{manager_user.id}", json={"role": "APROBADOR", "position": "Jefe"}
        )

    assert response.status_code == 200
    assert response.json()["role"] == "APROBADOR"
    assert response.json()["position"] == "Jefe"
    db.expire_all()
    assert manager_user.token_version == old_version + 1

    async with client_for(manager_user) as c:
        assert (await c.get("/cases")).status_code == 200


async def test_deactivate_user(client_for, admin_user, manager_user, db):
    stale_client = client_for(manager_user)

    async with client_for(admin_user) as c:
        response = await c.delete(f"/users/{manager_user.id}")
        self_response = await c.delete(f"/users/{admin_user.id}")

    assert response.status_code == 200
    body = response.json()
    assert body["message"] == "Usuario inactivado correctamente"
    assert body["user"]["is_active"] is False
    assert body["user"]["deactivated_at"] is not None

    assert self_response.status_code == 422

    async with stale_client as c:
        assert (await c.get("/cases")).status_code == 401

    db.expire_all()
    assert db.query(User).filter(User.id == manager_user.id).one().is_active is False


async def test_unknown_user_is_404(client_for, admin_user):
    import uuid

    async with client_for(admin_user) as c:
        response = await c.patch(f"/users/{uuid.uuid4()}", json={"name": "Nadie"})
    assert response.status_code == 404


# =============================================================================
# Service
# =============================================================================


def test_create_user_without_password_cannot_sign_in(db):
    user = user_service.create_user(
        db,
        {
            "name": "Bootstrap",
            "email": "boot@llanogas.com",
            "role": Role.ADMINISTRADOR_SISTEMA,
            "require_password": False,
        },
    )

    assert user.password_hash is None
    assert user_service.authenticate(db, "boot@llanogas.com", "") is None

    user_service.update_user(db, user.id, {"password": "clave-segura-2025"})
    assert user_service.authenticate(db, "BOOT@llanogas.com", "clave-segura-2025").id == user.id


def test_create_user_requires_password_by_default(db):
    with pytest.raises(ValidationError):
        user_service.create_user(
            db, {"name": "Sin clave", "email": "x@llanogas.com", "role": Role.GESTOR}
        )


def test_update_email_conflict(db, make_user):
    first = make_user(email="uno@llanogas.com")
    make_user(email="dos@llanogas.com")

    with pytest.raises(ConflictError):
        user_service.update_user(db, first.id, {"email": "DOS@llanogas.com"})


def test_reactivate_user_clears_deactivation(db, admin_user, manager_user):
    user_service.deactivate_user(db, manager_user.id, admin_user.id)
    assert manager_user.deactivated_at is not None

    user_service.update_user(db, manager_user.id, {"is_active": True})

    assert manager_user.is_active is True
    assert manager_user.deactivated_at is None
