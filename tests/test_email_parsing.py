"""Tests for Gmail message parsing and content heuristics."""

from datetime import datetime, timezone

import pytest

from llanogas.db.enums import Priority
from llanogas.services.email_parsing import (
    decode_base64url,
    extract_radicado,
    get_header,
    normalize_radicado,
    parse_content_hints,
    parse_gmail_message,
    sender_domain,
    sender_name,
    subject_keywords,
)

from gmail_fixtures import b64, gmail_message


@pytest.mark.parametrize(
    "text,expected",
    [
        ("Radicado: 322-01527-E25", "322-01527-E25"),
        ("Respuesta al RADICADO 20251234", "20251234"),
        ("Rad. pendiente, rad: 2025-ee-77", "2025-EE-77"),
        ("Oficio No. 4455-A", "4455-A"),
        ("Número: 778899", "778899"),
        ("Ref: 2024-0001 adjunto", "2024-0001"),
    ],
)
def test_extract_radicado(text, expected):
    assert extract_radicado(text) == expected


@pytest.mark.parametrize(
    "text",
    ["", "Sin número de referencia", "ref: adjunto", "Informe trimestral de radicación"],
)
def test_extract_radicado_without_token(text):
    assert extract_radicado(text) is None


def test_radicado_keyword_takes_precedence_over_ref():
    assert extract_radicado("Ref: 111 y radicado 222-B") == "222-B"


@pytest.mark.parametrize(
    "value,expected",
    [
        (" s-2025-0042 ", "S-2025-0042"),
        ("322-01527-e25", "322-01527-E25"),
        ("   ", None),
        (None, None),
    ],
)
def test_normalize_radicado(value, expected):
    assert normalize_radicado(value) == expected


def test_decode_base64url_tolerates_missing_padding_and_garbage():
    assert decode_base64url(b64("hola")) == "hola"
    assert decode_base64url("%%%") == ""
    assert decode_base64url(None) == ""


def test_decode_base64url_honours_charset():
    assert decode_base64url(b64("información", "latin-1"), "iso-8859-1") == "información"


def test_get_header_is_case_insensitive():
    headers = [{"name": "SUBJECT", "value": "Hola"}]
    assert get_header(headers, "subject") == "Hola"
    assert get_header(headers, "From") is None


def test_sender_helpers():
    header = '"Mesa de Radicación" <Radicacion@SuperServicios.gov.co>'
    assert sender_name(header) == "Mesa de Radicación"
    assert sender_domain(header) == "superservicios.gov.co"
    assert sender_name("juan.perez@creg.gov.co") == "juan.perez"
    assert sender_domain("not an address") is None


def test_subject_keywords_dedupes_and_limits():
    keywords = subject_keywords("Solicitud urgente: solicitud de tarifas y consumos (gas)")
    assert keywords == ["solicitud", "urgente", "tarifas", "consumos"]
    assert len(subject_keywords(" ".join(f"palabra{i}" for i in range(20)))) == 10


def test_content_hints():
    hints = parse_content_hints(
        "Responsable: Ana Gómez\n"
        "Fecha de vencimiento: 15/03/2025\n"
        "Trámite URGENTE\n"
    )
    assert hints.responsible == "Ana Gómez"
    assert hints.due_date == datetime(2025, 3, 15, tzinfo=timezone.utc)
    assert hints.priority == Priority.ALTA


def test_parse_gmail_message_walks_nested_parts():
    message = gmail_message(
        subject="Radicado: 322-01527-E25 - Requerimiento",
        body="Adjuntamos requerimiento.\nbaja prioridad",
        html="<p>Adjuntamos <b>requerimiento</b></p>",
        attachments=[{"filename": "oficio.pdf", "attachment_id": "att-9", "size": 2048}],
    )

    parsed = parse_gmail_message(message)

    assert parsed.message_id == "msg-1"
    assert parsed.thread_id == "thread-msg-1"
    assert parsed.from_domain == "superservicios.gov.co"
    assert parsed.from_name == "Mesa de Radicación"
    assert parsed.radicado == "322-01527-E25"
    assert parsed.body_text.startswith("Adjuntamos requerimiento.")
    assert parsed.body_html == "<p>Adjuntamos <b>requerimiento</b></p>"
    assert parsed.attachments == [
        {
            "filename": "oficio.pdf",
            "mime_type": "application/pdf",
            "size": 2048,
            "attachment_id": "att-9",
        }
    ]
    assert parsed.hints.priority == Priority.BAJA
    assert parsed.received_at == datetime(2025, 1, 1, 12, 0, tzinfo=timezone.utc)


def test_parse_gmail_message_finds_radicado_in_body():
    parsed = parse_gmail_message(gmail_message(body="Favor responder al radicado 2025-EE-0101"))
    assert parsed.radicado == "2025-EE-0101"


def test_received_at_falls_back_to_date_header():
    parsed = parse_gmail_message(gmail_message(internal_date=None))
    assert parsed.received_at == datetime(2025, 1, 1, 12, 0, tzinfo=timezone.utc)
