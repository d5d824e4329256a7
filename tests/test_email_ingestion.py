"""Tests for email ingestion, deduplication and radicado linking."""

import pytest
from sqlalchemy.exc import OperationalError

from llanogas.core.exceptions import NotFoundError
from llanogas.db.enums import ActivityType, CaseState, Priority
from llanogas.db.models import Activity, Email, Notification
from llanogas.services import (
    case_transition_service,
    email_ingestion_service,
    notification_service,
)

from gmail_fixtures import gmail_message


def test_ingest_creates_classified_email(db, entity, admin_user):
    result = email_ingestion_service.ingest_message(
        db, gmail_message(body="Responsable: Ana\nurgente")
    )

    assert result.created
    email = result.email
    assert email.entity_id == entity.id
    assert email.classified is True
    assert email.notified is True
    assert email.processed is False
    assert email.detected_priority == Priority.ALTA.value
    assert email.detected_responsible == "Ana"

    [note] = db.query(Notification).filter(Notification.user_id == admin_user.id).all()
    assert note.title == "Nuevo correo recibido"
    assert "SSPD" in note.message


def test_ingest_same_message_twice_keeps_one_row(db, entity):
    message = gmail_message(message_id="dup-1")

    first = email_ingestion_service.ingest_message(db, message)
    second = email_ingestion_service.ingest_message(db, message)

    assert first.created
    assert second.duplicate
    assert db.query(Email).filter(Email.message_id == "dup-1").count() == 1


def test_unknown_sender_is_stored_unclassified(db, entity):
    result = email_ingestion_service.ingest_message(
        db, gmail_message(sender="alguien@example.org")
    )

    assert result.email.entity_id is None
    assert result.email.classified is False


def test_radicado_links_email_to_case(db, make_case, manager_user):
    case = make_case(CaseState.EN_REDACCION, inbound_radicado="322-01527-E25")

    result = email_ingestion_service.ingest_message(
        db, gmail_message(subject="Alcance al Radicado: 322-01527-E25")
    )

    assert result.linked_case_id == case.id
    assert result.email.case_id == case.id
    assert result.email.processed is True
    titles = [
        n.title
        for n in db.query(Notification).filter(Notification.user_id == manager_user.id).all()
    ]
    assert "Correo vinculado a caso" in titles


def test_radicado_without_case_leaves_email_unlinked(db, make_case):
    make_case(inbound_radicado="999-00000-E25")

    result = email_ingestion_service.ingest_message(
        db, gmail_message(subject="Radicado: 322-01527-E25")
    )

    assert result.created
    assert result.email.radicado == "322-01527-E25"
    assert result.email.case_id is None
    assert result.linked_case_id is None


def test_outbound_radicado_also_matches(db, make_case):
    case = make_case(CaseState.ENVIADO)
    case.outbound_radicado = "S-2025-0042"
    db.commit()

    result = email_ingestion_service.ingest_message(
        db, gmail_message(body="Acusamos recibo del radicado S-2025-0042")
    )

    assert result.linked_case_id == case.id


def test_lowercase_outbound_radicado_from_send_final_still_links(
    db, make_case, manager_user
):
    case = make_case(CaseState.FIRMA_LEGAL)
    case_transition_service.send_final(
        db, case.id, manager_user.id, outbound_radicado="  s-2025-0042 "
    )
    db.refresh(case)
    assert case.outbound_radicado == "S-2025-0042"

    result = email_ingestion_service.ingest_message(
        db, gmail_message(body="Acusamos recibo del radicado s-2025-0042")
    )

    assert result.email.radicado == "S-2025-0042"
    assert result.linked_case_id == case.id


def test_duplicate_retries_link_after_failed_attempt(db, make_case, monkeypatch):
    case = make_case(CaseState.EN_REDACCION, inbound_radicado="322-01527-E25")
    message = gmail_message(message_id="retry-1", subject="Radicado: 322-01527-E25")

    def unavailable(*args, **kwargs):
        raise OperationalError("SELECT", {}, Exception("database is locked"))

    with monkeypatch.context() as m:
        m.setattr(email_ingestion_service, "find_case_by_radicado", unavailable)
        with pytest.raises(OperationalError):
            email_ingestion_service.ingest_message(db, message)

    db.expire_all()
    stored = db.query(Email).filter(Email.message_id == "retry-1").one()
    assert stored.case_id is None

    second = email_ingestion_service.ingest_message(db, message)

    assert second.duplicate
    assert second.linked_case_id == case.id
    assert second.email.case_id == case.id
    assert second.email.processed is True
    assert db.query(Email).filter(Email.message_id == "retry-1").count() == 1


def test_duplicate_already_linked_is_left_alone(db, make_case):
    make_case(inbound_radicado="322-01527-E25")
    message = gmail_message(message_id="linked-1", subject="Radicado: 322-01527-E25")

    email_ingestion_service.ingest_message(db, message)
    second = email_ingestion_service.ingest_message(db, message)

    assert second.duplicate
    assert second.linked_case_id is None


    assert result.linked_case_id == case.id


def test_notification_failure_keeps_the_email(db, entity, admin_user, monkeypatch):
    def boom(*args, **kwargs):
        raise RuntimeError("db hiccup")

    monkeypatch.setattr(notification_service, "notify_users", boom)

    result = email_ingestion_service.ingest_message(db, gmail_message(message_id="keep-1"))

    assert result.created
    db.expire_all()
    stored = db.query(Email).filter(Email.message_id == "keep-1").one()
    assert stored.notified is False


def test_link_email_manually_records_activity(db, make_case, manager_user):
    case = make_case()
    email = email_ingestion_service.ingest_message(db, gmail_message()).email

    linked = email_ingestion_service.link_email_manually(db, email.id, case.id, manager_user.id)

    assert linked.case_id == case.id
    [activity] = db.query(Activity).filter(Activity.case_id == case.id).all()
    assert activity.activity_type == ActivityType.EMAIL_VINCULADO.value
    assert activity.user_id == manager_user.id


def test_link_email_manually_unknown_case(db, manager_user):
    import uuid

    email = email_ingestion_service.ingest_message(db, gmail_message()).email

    with pytest.raises(NotFoundError):
        email_ingestion_service.link_email_manually(db, email.id, uuid.uuid4(), manager_user.id)


def test_list_emails_filters(db, entity):
    email_ingestion_service.ingest_message(
        db, gmail_message(message_id="a", subject="Radicado: 123-A")
    )
    email_ingestion_service.ingest_message(
        db, gmail_message(message_id="b", sender="x@example.org", subject="Hola")
    )

    emails, total = email_ingestion_service.list_emails(db, with_radicado=True)
    assert total == 1
    assert emails[0].message_id == "a"

    emails, total = email_ingestion_service.list_emails(db, entity="sspd")
    assert [e.message_id for e in emails] == ["a"]

    _, total = email_ingestion_service.list_emails(db, domain="example.org")
    assert total == 1
