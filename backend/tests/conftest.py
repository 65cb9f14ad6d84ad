"""Pytest fixtures — file-backed SQLite database recreated for every test."""
import os
os.environ.setdefault("DATABASE_URL", "sqlite:///./test.db")
os.environ.setdefault("REDIS_URL", "")

import pytest
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker
from fastapi.testclient import TestClient

from contract_engine.database import Base, get_db
from contract_engine.main import app
from contract_engine.models.contract_template import ContractTemplate
from contract_engine.services.notifier import notifier

SQLITE_URL = "sqlite:///./test.db"

DEFAULT_TEMPLATE = "Service agreement between @studio_name and {client_name}.\nTotal: {total}"


@pytest.fixture(scope="function")
def db_engine():
    """Create a fresh SQLite engine for each test."""
    engine = create_engine(SQLITE_URL, connect_args={"check_same_thread": False, "timeout": 30})

    # Enable WAL mode so a second session can read while another writes
    @event.listens_for(engine, "connect")
    def _set_sqlite_pragma(dbapi_conn, connection_record):
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA journal_mode=WAL")
        cursor.close()

    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture(scope="function")
def session_factory(db_engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=db_engine)


@pytest.fixture(scope="function")
def db(session_factory):
    """Yield a database session, closed after the test."""
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture(scope="function")
def client(session_factory):
    """FastAPI TestClient with the database dependency overridden to use the test engine."""

    def _override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = _override_get_db
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


class NotificationRecorder:
    """In-process subscriber that keeps every ContractChanged it receives."""

    def __init__(self):
        self.events = []

    def __call__(self, event):
        self.events.append(event)

    def collected(self, timeout: float = 5.0) -> list:
        assert notifier.drain(timeout=timeout), "notification dispatch did not finish"
        return list(self.events)


@pytest.fixture(scope="function")
def notifications():
    recorder = NotificationRecorder()
    unsubscribe = notifier.subscribe(recorder)
    yield recorder
    notifier.drain(timeout=5.0)
    unsubscribe()


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------
def seed_template(db, template_ref: str = "standard", content: str = DEFAULT_TEMPLATE,
                  name: str = "Standard agreement", is_default: bool = True,
                  is_active: bool = True) -> ContractTemplate:
    """Helper — insert a template row directly (templates are authored outside the engine)."""
    template = ContractTemplate(
        template_ref=template_ref,
        name=name,
        content=content,
        is_default=is_default,
        is_active=is_active,
    )
    db.add(template)
    db.commit()
    return template


def generate_contract(client: TestClient, subject_id: str = "booking-1", **overrides) -> dict:
    """Helper — POST /api/contracts and return response JSON."""
    payload = {"subject_id": subject_id, "actor_role": "OWNER", "actor_id": "studio-1"}
    if "template_ref" not in overrides:
        payload["content"] = "Initial terms for " + subject_id
    payload.update(overrides)
    resp = client.post("/api/contracts/", json=payload)
    assert resp.status_code == 201, resp.text
    return resp.json()


def act(client: TestClient, contract_id: str, action: str, role: str, actor_id: str = None, **body):
    """Helper — POST an actor-only operation (publish, sign, cancellation/...)."""
    payload = {"actor_role": role, "actor_id": actor_id or role.lower()}
    payload.update(body)
    return client.post(f"/api/contracts/{contract_id}/{action}", json=payload)


def edit(client: TestClient, contract_id: str, content: str, role: str = "OWNER", **body):
    payload = {"content": content, "actor_role": role, "actor_id": "studio-1"}
    payload.update(body)
    return client.put(f"/api/contracts/{contract_id}", json=payload)


def signed_contract(client: TestClient, subject_id: str = "booking-1") -> dict:
    """Helper — generate, publish and sign; returns the SIGNED contract JSON."""
    contract = generate_contract(client, subject_id)
    assert act(client, contract["contract_id"], "publish", "OWNER").status_code == 200
    resp = act(client, contract["contract_id"], "sign", "COUNTERPARTY", actor_id="client-7")
    assert resp.status_code == 200, resp.text
    return resp.json()
