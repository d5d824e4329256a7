"""
Test configuration and fixtures.

Provides:
- Per-test SQLite database (file in tmp_path, schema from metadata)
- User, entity and case factories that commit their rows
- JWT token minting for authenticated tests
- HTTPX AsyncClient with proper headers
"""
import os
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import AsyncGenerator, Callable, Generator

# Settings are read at import time
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["TESTING"] = "1"
os.environ["GMAIL_SYNC_ENABLED"] = "False"

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker

from llanogas.core.deps import COOKIE_NAME, get_db
from llanogas.core.security import create_session_token, hash_password
from llanogas.db.base import Base
from llanogas.db.enums import CaseState, Priority, Role
from llanogas.db.models import Case, Entity, User
from llanogas.main import app
from llanogas.services.case_state_machine import set_state
from llanogas.services.gmail_sync_service import (
    GmailSyncConfig,
    GmailSyncService,
    get_gmail_sync_service,
)
from llanogas.services.outbound_mail import get_notification_mailer


# =============================================================================
# Database Fixtures
# =============================================================================

@pytest.fixture(scope="function")
def test_engine(tmp_path):
    engine = create_engine(
        f"sqlite:///{tmp_path / 'llanogas.db'}",
        connect_args={"check_same_thread": False},
    )
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture(scope="function")
def session_factory(test_engine) -> sessionmaker:
    return sessionmaker(autocommit=False, autoflush=False, bind=test_engine)


@pytest.fixture(scope="function")
def db(session_factory) -> Generator[Session, None, None]:
    session = session_factory()
    yield session
    session.close()


# =============================================================================
# Factories
# =============================================================================

@pytest.fixture(scope="function")
def make_user(db: Session) -> Callable[..., User]:
    def _make(
        role: Role = Role.GESTOR,
        name: str | None = None,
        is_active: bool = True,
        email: str | None = None,
        password: str | None = None,
    ) -> User:
        suffix = uuid.uuid4().hex[:8]
        user = User(
            email=email or f"user-{suffix}@llanogas.test",
            name=name or f"Usuario {suffix}",
            role=role.value,
            is_active=is_active,
            password_hash=hash_password(password) if password else None,
        )
        db.add(user)
        db.commit()
        db.refresh(user)
        return user

    return _make


@pytest.fixture(scope="function")
def admin_user(make_user) -> User:
    return make_user(Role.ADMINISTRADOR_SISTEMA, name="Admin")


@pytest.fixture(scope="function")
def manager_user(make_user) -> User:
    return make_user(Role.GESTOR, name="Gestora")


@pytest.fixture(scope="function")
def reviewer_user(make_user) -> User:
    return make_user(Role.REVISOR_JURIDICO, name="Revisor Uno")


@pytest.fixture(scope="function")
def approver_user(make_user) -> User:
    return make_user(Role.APROBADOR, name="Aprobadora")


@pytest.fixture(scope="function")
def entity(db: Session) -> Entity:
    entity = Entity(
        name="Superintendencia de Servicios Públicos Domiciliarios",
        acronym="SSPD",
        color="#2563eb",
        email_domains=["superservicios.gov.co"],
        keywords=["servicios"],
        response_days=15,
    )
    db.add(entity)
    db.commit()
    db.refresh(entity)
    return entity


@pytest.fixture(scope="function")
def make_case(db: Session, entity: Entity, manager_user: User) -> Callable[..., Case]:
    def _make(
        state: CaseState = CaseState.RECIBIDO,
        responsible: User | None = None,
        inbound_radicado: str | None = None,
        due_at: datetime | None = None,
        subject: str = "Solicitud de información tarifaria",
    ) -> Case:
        case = Case(
            subject=subject,
            priority=Priority.MEDIA.value,
            entity_id=entity.id,
            responsible_user_id=(responsible or manager_user).id,
            creator_user_id=manager_user.id,
            inbound_radicado=inbound_radicado,
            received_at=datetime.now(timezone.utc),
            due_at=due_at,
        )
        set_state(case, state)
        db.add(case)
        db.commit()
        db.refresh(case)
        return case

    return _make


# =============================================================================
# Fakes
# =============================================================================

class RecordingMailer:
    """Mailer that records calls and can be told to fail."""

    def __init__(self, fail: bool = False):
        self.fail = fail
        self.sent: list[dict] = []

    async def send_case_notification(self, **kwargs) -> None:
        if self.fail:
            raise RuntimeError("smtp down")
        self.sent.append(kwargs)


@pytest.fixture(scope="function")
def mailer() -> RecordingMailer:
    return RecordingMailer()


@pytest.fixture(scope="function")
def failing_mailer() -> RecordingMailer:
    return RecordingMailer(fail=True)


# =============================================================================
# Auth / Client Fixtures
# =============================================================================

@dataclass
class TestAuth:
    """Test authentication context."""
    user: User
    token: str
    cookie_name: str = COOKIE_NAME


def mint_auth(user: User) -> TestAuth:
    token = create_session_token(
        user_id=user.id,
        role=user.role,
        token_version=user.token_version,
    )
    return TestAuth(user=user, token=token)


@pytest.fixture(scope="function")
def api_overrides(session_factory, mailer) -> Generator[dict, None, None]:
    """Point the app at the per-test database and fakes."""
    sync_service = GmailSyncService(
        GmailSyncConfig(throttle_seconds=0),
        session_factory=session_factory,
    )

    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_notification_mailer] = lambda: mailer
    app.dependency_overrides[get_gmail_sync_service] = lambda: sync_service
    yield {"sync_service": sync_service}
    app.dependency_overrides.clear()


@pytest.fixture(scope="function")
async def client(api_overrides) -> AsyncGenerator[AsyncClient, None]:
    """Unauthenticated AsyncClient."""
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as c:
        yield c


@pytest.fixture(scope="function")
def client_for(api_overrides):
    """
    Factory for authenticated AsyncClients with JWT cookie and CSRF header.

    Usage:
        async with client_for(user) as c:
            await c.get("/cases")
    """
    def _client(user: User, csrf: bool = True) -> AsyncClient:
        auth = mint_auth(user)
        headers = {"X-Requested-With": "XMLHttpRequest"} if csrf else {}
        return AsyncClient(
            transport=ASGITransport(app=app),
            base_url="http://test",
            cookies={auth.cookie_name: auth.token},
            headers=headers,
        )

    return _client
