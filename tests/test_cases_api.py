"""API tests for /cases: CRUD, timeline and lifecycle endpoints."""

import uuid

from llanogas.db.enums import CaseState, Role
from llanogas.db.models import Activity, Case
from llanogas.services.case_transition_service import NO_ACTIVE_REVIEWER


async def test_requires_authentication(client):
    response = await client.get("/cases")
    assert response.status_code == 401


async def test_mutation_requires_csrf_header(client_for, manager_user, entity):
    async with client_for(manager_user, csrf=False) as c:
        response = await c.post("/cases", json={"subject": "X", "entity_id": str(entity.id)})
    assert response.status_code == 403


async def test_create_case_computes_due_date(client_for, manager_user, entity):
    async with client_for(manager_user) as c:
        response = await c.post(
            "/cases",
            json={
                "subject": "Solicitud de información tarifaria",
                "entity_id": str(entity.id),
                "inbound_radicado": "322-01527-e25",
                "received_at": "2025-01-02T15:00:00Z",
            },
        )

    assert response.status_code == 201
    data = response.json()
    assert data["state"] == "RECIBIDO"
    assert data["approval_stage"] == "RECIBIDO"
    assert data["inbound_radicado"] == "322-01527-E25"
    assert data["entity"]["acronym"] == "SSPD"
    assert data["creator"]["id"] == str(manager_user.id)
    assert data["due_at"].startswith("2025-01-24")


async def test_read_only_role_cannot_create(client_for, make_user, entity):
    auditor = make_user(Role.AUDITOR)
    async with client_for(auditor) as c:
        response = await c.post("/cases", json={"subject": "X", "entity_id": str(entity.id)})
    assert response.status_code == 403


async def test_unknown_case_returns_404(client_for, manager_user):
    async with client_for(manager_user) as c:
        response = await c.get(f"/cases/{uuid.uuid4()}")
    assert response.status_code == 404
    assert response.json() == {"detail": "Caso no encontrado"}


async def test_list_cases_filters_by_state(client_for, manager_user, make_case):
    make_case(CaseState.RECIBIDO)
    make_case(CaseState.ENVIADO)

    async with client_for(manager_user) as c:
        response = await c.get("/cases", params={"state": "ENVIADO"})

    assert response.status_code == 200
    body = response.json()
    assert body["total"] == 1
    assert body["items"][0]["state"] == "ENVIADO"


async def test_patch_cannot_change_state(client_for, manager_user, make_case):
    case = make_case(CaseState.RECIBIDO)

    async with client_for(manager_user) as c:
        response = await c.patch(
            f"/cases/{case.id}", json={"subject": "Nuevo asunto", "state": "CERRADO"}
        )

    assert response.status_code == 200
    assert response.json()["subject"] == "Nuevo asunto"
    assert response.json()["state"] == "RECIBIDO"


async def test_comment_appears_in_timeline(client_for, manager_user, make_case):
    case = make_case()

    async with client_for(manager_user) as c:
        created = await c.post(
            f"/cases/{case.id}/activities", json={"description": "Se solicitó prórroga"}
        )
        timeline = await c.get(f"/cases/{case.id}/activities")

    assert created.status_code == 201
    assert created.json()["activity_type"] == "COMENTARIO"
    assert [a["description"] for a in timeline.json()] == ["Se solicitó prórroga"]


async def test_legal_review_without_reviewer_is_404(client_for, manager_user, make_case):
    case = make_case(CaseState.EN_REDACCION)

    async with client_for(manager_user) as c:
        response = await c.post(f"/cases/{case.id}/legal-review")

    assert response.status_code == 404
    assert response.json()["detail"] == NO_ACTIVE_REVIEWER


async def test_wrong_state_is_400_with_states(client_for, manager_user, make_case, db):
    case = make_case(CaseState.RECIBIDO)

    async with client_for(manager_user) as c:
        response = await c.post(f"/cases/{case.id}/send-final")

    assert response.status_code == 400
    body = response.json()
    assert body["current_state"] == "RECIBIDO"
    assert body["required_states"] == ["FIRMA_LEGAL"]
    assert db.query(Activity).filter(Activity.case_id == case.id).count() == 0


async def test_reviewer_cannot_send_final(client_for, reviewer_user, make_case):
    case = make_case(CaseState.FIRMA_LEGAL)

    async with client_for(reviewer_user) as c:
        response = await c.post(f"/cases/{case.id}/send-final")

    assert response.status_code == 403


async def test_lifecycle_through_api(
    client_for, db, make_case, admin_user, manager_user, reviewer_user, approver_user, mailer
):
    case = make_case(CaseState.RECIBIDO)

    async with client_for(admin_user) as admin:
        response = await admin.post(
            f"/cases/{case.id}/assign", json={"responsible_user_id": str(manager_user.id)}
        )
        assert response.status_code == 200
        assert response.json()["state"] == "ASIGNADO"

    async with client_for(manager_user) as gestor:
        assert (await gestor.post(f"/cases/{case.id}/start-drafting")).status_code == 200
        review = await gestor.post(f"/cases/{case.id}/legal-review")
        assert review.status_code == 200
        assert review.json()["message"] == "Solicitud de revisión legal creada y asignada."
        assert review.json()["revision_id"] is not None
        assert review.json()["assigned_to"] == reviewer_user.name

    async with client_for(reviewer_user) as revisor:
        response = await revisor.post(
            f"/cases/{case.id}/approve-review", json={"comments": "Conforme"}
        )
        assert response.json()["state"] == "EN_APROBACION"

    async with client_for(approver_user) as aprobador:
        response = await aprobador.post(f"/cases/{case.id}/approve")
        assert response.json()["state"] == "FIRMA_LEGAL"

    async with client_for(manager_user) as gestor:
        sent = await gestor.post(
            f"/cases/{case.id}/send-final", json={"outbound_radicado": "S-2025-0042"}
        )
        assert sent.json()["state"] == "ENVIADO"
        closed = await gestor.post(f"/cases/{case.id}/close")

    assert closed.status_code == 200
    body = closed.json()
    assert body["message"] == "Caso cerrado con éxito, Acuse de Recibo registrado."
    assert body["state"] == "CERRADO"
    assert len(body["activity_ids"]) == 2

    assert [m["action"] for m in mailer.sent] == ["Caso cerrado"]

    db.expire_all()
    stored = db.get(Case, case.id)
    assert stored.state == stored.approval_stage == "CERRADO"
    assert stored.outbound_radicado == "S-2025-0042"
    assert db.query(Activity).filter(Activity.case_id == case.id).count() == 8


async def test_close_succeeds_when_mailer_fails(
    client_for, db, make_case, manager_user, failing_mailer
):
    from llanogas.main import app
    from llanogas.services.outbound_mail import get_notification_mailer

    app.dependency_overrides[get_notification_mailer] = lambda: failing_mailer
    case = make_case(CaseState.ENVIADO)

    async with client_for(manager_user) as c:
        response = await c.post(f"/cases/{case.id}/close")

    assert response.status_code == 200
    assert response.json()["state"] == "CERRADO"
    db.expire_all()
    assert db.get(Case, case.id).state == "CERRADO"
